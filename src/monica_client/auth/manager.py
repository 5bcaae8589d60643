"""Authentication state for the Monica client.

``AuthManager`` owns the session: it restores credentials at startup,
validates new ones against the server, and hands the authenticated API
client to the sync layer. State changes are exposed as an immutable
:class:`AuthState` snapshot, to direct subscribers and as ``auth.*`` events
on the event bus.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from monica_client.api.client import MonicaAPIClient, normalize_base_url
from monica_client.api.errors import APIError
from monica_client.core.events import EventBus, EventType, get_event_bus
from monica_client.security.credentials import CredentialStore
from monica_client.security.redaction import sanitize

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], MonicaAPIClient]
StateListener = Callable[["AuthState"], None]


@dataclass(frozen=True)
class AuthState:
    is_authenticated: bool = False
    api_url: Optional[str] = None


class AuthManager:
    """Authenticated/unauthenticated session state machine.

    Example::

        auth = AuthManager(VaultCredentialStore(vault))
        await auth.check_authentication_status()
        if not auth.is_authenticated:
            await auth.authenticate("https://monica.example.com", token)
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        *,
        client_factory: Optional[ClientFactory] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self._store = credential_store
        self._client_factory: ClientFactory = client_factory or MonicaAPIClient
        self._bus = event_bus or get_event_bus()
        self._state = AuthState()
        self._client: Optional[MonicaAPIClient] = None
        self._listeners: List[StateListener] = []

    # ── observable state ─────────────────────────────────────────

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def api_url(self) -> Optional[str]:
        return self._state.api_url

    @property
    def current_client(self) -> Optional[MonicaAPIClient]:
        """The retained authenticated client, or None when logged out."""
        return self._client

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    # ── operations ───────────────────────────────────────────────

    async def check_authentication_status(self) -> AuthState:
        """Restore the session from stored credentials.

        A stored token the server no longer accepts is deleted so it does not
        linger across restarts.
        """
        credentials = self._store.load()
        if credentials is None:
            logger.info("No stored credentials")
            self._transition(None, None)
            return self._state

        client = self._client_factory(credentials.api_url, credentials.api_token)
        try:
            await asyncio.to_thread(client.test_connection)
        except APIError as exc:
            logger.warning("Stored credentials rejected for %s: %s; clearing", credentials.api_url, exc)
            self._store.clear()
            _close(client)
            self._transition(None, None, EventType.SESSION_EXPIRED, reason=str(exc))
            return self._state

        logger.info("Session restored for %s", credentials.api_url)
        self._transition(client, credentials.api_url, EventType.AUTHENTICATED)
        return self._state

    async def authenticate(self, api_url: str, api_token: str) -> AuthState:
        """Validate new credentials and persist them on success.

        Raises:
            APIError: the connection test failed; nothing is persisted and the
                current state is left unchanged.
        """
        url = normalize_base_url(api_url)
        client = self._client_factory(url, api_token)
        try:
            await asyncio.to_thread(client.test_connection)
        except APIError:
            _close(client)
            raise

        self._store.save(url, api_token)
        if self._client is not None and self._client is not client:
            _close(self._client)
        logger.info("Authenticated against %s", url)
        self._transition(client, url, EventType.AUTHENTICATED)
        return self._state

    def logout(self) -> None:
        """Forget credentials and the retained client."""
        self._store.clear()
        if self._client is not None:
            _close(self._client)
        logger.info("Logged out")
        self._transition(None, None, EventType.LOGGED_OUT)

    # ── internal ─────────────────────────────────────────────────

    def _transition(
        self,
        client: Optional[MonicaAPIClient],
        api_url: Optional[str],
        event: Optional[EventType] = None,
        **data: Any,
    ) -> None:
        self._client = client
        new_state = AuthState(is_authenticated=client is not None, api_url=api_url)
        changed = new_state != self._state
        self._state = new_state

        if event is not None:
            self._bus.publish(event, data=sanitize({"api_url": api_url, **data}), source="auth")

        if not changed:
            return
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as exc:
                logger.error("Auth state listener %r failed: %s", listener, exc)


def _close(client: Any) -> None:
    close = getattr(client, "close", None)
    if callable(close):
        close()


__all__ = ["AuthManager", "AuthState", "ClientFactory"]
