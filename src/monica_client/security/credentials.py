"""Credential persistence for the API endpoint and access token.

The store keeps exactly two secrets under a fixed namespace. A save always
replaces both values, and a load never returns half a pair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from monica_client.api.client import normalize_base_url
from monica_client.security.vault import DecryptionError, SecretsVault

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "com.monicahq.client"


@dataclass(frozen=True)
class Credentials:
    api_url: str
    api_token: str

    def __repr__(self) -> str:
        return f"Credentials(api_url={self.api_url!r}, api_token='***')"


class CredentialStore(Protocol):
    """Capability interface for credential persistence."""

    def save(self, api_url: str, api_token: str) -> None: ...

    def load(self) -> Optional[Credentials]: ...

    def clear(self) -> None: ...


class VaultCredentialStore:
    """Credential store backed by the encrypted :class:`SecretsVault`."""

    def __init__(self, vault: SecretsVault, namespace: str = DEFAULT_NAMESPACE) -> None:
        self._vault = vault
        self._url_key = f"{namespace}.apiURL"
        self._token_key = f"{namespace}.apiToken"

    def save(self, api_url: str, api_token: str) -> None:
        url = normalize_base_url(api_url)
        if not url:
            raise ValueError("api_url must be non-empty")

        # Full replace: drop both entries before writing either.
        self.clear()
        self._vault.store(self._url_key, url)
        self._vault.store(self._token_key, api_token)
        logger.info("Credentials saved for %s", url)

    def load(self) -> Optional[Credentials]:
        url = self._read(self._url_key)
        token = self._read(self._token_key)
        if not url or not token:
            return None
        return Credentials(api_url=url, api_token=token)

    def clear(self) -> None:
        for key in (self._url_key, self._token_key):
            self._vault.delete(key)

    def _read(self, key: str) -> Optional[str]:
        try:
            return self._vault.retrieve(key)
        except DecryptionError as exc:
            logger.warning("Stored credential %s is unreadable: %s", key, exc)
            return None


class InMemoryCredentialStore:
    """Dict-backed credential store (tests, ephemeral sessions)."""

    def __init__(self) -> None:
        self._values: Dict[str, str] = {}

    def save(self, api_url: str, api_token: str) -> None:
        url = normalize_base_url(api_url)
        if not url:
            raise ValueError("api_url must be non-empty")
        self._values = {"api_url": url, "api_token": api_token}

    def load(self) -> Optional[Credentials]:
        url = self._values.get("api_url")
        token = self._values.get("api_token")
        if not url or not token:
            return None
        return Credentials(api_url=url, api_token=token)

    def clear(self) -> None:
        self._values.clear()


__all__ = [
    "DEFAULT_NAMESPACE",
    "Credentials",
    "CredentialStore",
    "InMemoryCredentialStore",
    "VaultCredentialStore",
]
