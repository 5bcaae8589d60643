"""Application wiring for the Monica client.

``ClientApp`` builds the credential store, auth and sync controllers and the
contact cache from :class:`ClientSettings`, and exposes the user actions a
presentation layer triggers (login, logout, refresh) as single calls.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, List, Optional

from monica_client.api.client import MonicaAPIClient
from monica_client.auth.manager import AuthManager, AuthState, ClientFactory
from monica_client.config import ClientSettings, configure_logging
from monica_client.contacts.cache import CachedContact, ContactCache
from monica_client.contacts.sync import SyncManager, SyncReport
from monica_client.core.events import EventBus
from monica_client.security.credentials import CredentialStore, VaultCredentialStore
from monica_client.security.redaction import mask_path
from monica_client.security.vault import SecretsVault

logger = logging.getLogger(__name__)


class ClientApp:
    def __init__(
        self,
        settings: ClientSettings,
        *,
        credential_store: Optional[CredentialStore] = None,
        client_factory: Optional[ClientFactory] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.settings = settings
        self.events = event_bus or EventBus()
        store = credential_store or VaultCredentialStore(SecretsVault(settings.vault_path))
        factory = client_factory or functools.partial(
            MonicaAPIClient,
            request_timeout=settings.request_timeout,
            resource_timeout=settings.resource_timeout,
        )
        self.auth = AuthManager(store, client_factory=factory, event_bus=self.events)
        self.cache = ContactCache(settings.cache_path)
        self.sync = SyncManager(
            self.cache,
            self.auth,
            page_limit=settings.page_limit,
            event_bus=self.events,
        )

    @classmethod
    def from_env(cls, *, env_file: Optional[str] = None, **kwargs: Any) -> "ClientApp":
        """Build an app from ``MONICA_*`` settings and configure logging to match."""
        settings = ClientSettings.from_env(env_file=env_file)
        configure_logging(settings.log_level)
        logger.debug("Data directory: %s", mask_path(str(settings.data_dir)))
        return cls(settings, **kwargs)

    async def start(self) -> AuthState:
        """Restore the previous session, if any."""
        return await self.auth.check_authentication_status()

    async def login(self, api_url: str, api_token: str) -> SyncReport:
        """Authenticate, then pull the contact list."""
        await self.auth.authenticate(api_url, api_token)
        return await self.sync.sync_all()

    async def refresh(self) -> SyncReport:
        return await self.sync.sync_all()

    def logout(self) -> None:
        self.sync.cancel()
        self.auth.logout()

    def contacts(self, search_text: str = "") -> List[CachedContact]:
        """Cached contacts sorted by name, filtered by ``search_text``."""
        return self.cache.search(search_text)

    def clear_all_data(self) -> int:
        count = self.cache.clear_all()
        logger.info("Cleared %d cached contacts", count)
        return count


__all__ = ["ClientApp"]
