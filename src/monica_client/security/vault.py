"""
Fernet-encrypted storage for the client's secrets.

The store is one JSON document::

    {"version": 1, "entries": {"<name>": {"ciphertext": "...", "stored_at": "..."}}}

Only ciphertext touches disk. The key sits beside the store in
``.vault_key`` and, like the store itself, is written owner-only (0600).
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from monica_client.security.redaction import mask_path

logger = logging.getLogger(__name__)

_VAULT_VERSION = 1
_RAW_KEY_BYTES = 32
_FERNET_KEY_CHARS = 44


class VaultError(Exception):
    """Vault could not be opened or written."""


class EncryptionError(VaultError):
    """Key unusable for encryption."""


class DecryptionError(VaultError):
    """Ciphertext does not decrypt with the vault key."""


def _owner_only_write(path: Path, payload: bytes) -> None:
    tmp = path.with_name(path.name + ".tmp")
    fd = os.open(str(tmp), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        tmp.replace(path)
    finally:
        tmp.unlink(missing_ok=True)


def load_or_create_key(key_path: Path) -> bytes:
    """Read the vault key, generating a random one on first use."""
    if key_path.exists():
        try:
            return key_path.read_bytes()
        except OSError as e:
            raise VaultError(f"cannot read vault key {mask_path(str(key_path))}: {e}") from e

    key = os.urandom(_RAW_KEY_BYTES)
    try:
        _owner_only_write(key_path, key)
    except OSError as e:
        raise VaultError(
            f"cannot write vault key {mask_path(str(key_path))}: {e}; "
            "stored credentials would not survive a restart"
        ) from e
    logger.info("Generated new vault key at %s", mask_path(str(key_path)))
    return key


def _fernet_for(key: bytes) -> Fernet:
    """Build a Fernet from a raw 32-byte key, a Fernet key, or any passphrase."""
    if len(key) == _RAW_KEY_BYTES:
        encoded = base64.urlsafe_b64encode(key)
    elif len(key) == _FERNET_KEY_CHARS:
        encoded = key
    else:
        encoded = base64.urlsafe_b64encode(hashlib.sha256(key).digest())
    try:
        return Fernet(encoded)
    except (ValueError, TypeError) as e:
        raise EncryptionError(f"unusable vault key ({len(key)} bytes): {e}") from e


class SecretsVault:
    """Named string secrets, encrypted at rest.

    Example::

        vault = SecretsVault(Path("~/.config/monica-client/vault.json").expanduser())
        vault.store("com.monicahq.client.apiToken", token)
        vault.retrieve("com.monicahq.client.apiToken")
    """

    KEY_FILENAME = ".vault_key"

    def __init__(self, storage_path: Union[str, Path], encryption_key: Optional[bytes] = None):
        """
        Args:
            storage_path: JSON store location; parent directories are created.
            encryption_key: Overrides the ``.vault_key`` file beside the store.
        """
        self._storage_path = Path(storage_path)
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        key = encryption_key
        if key is None:
            key = load_or_create_key(self._storage_path.parent / self.KEY_FILENAME)
        self._fernet = _fernet_for(key)
        self._lock = threading.RLock()
        self._entries: Dict[str, Dict[str, str]] = self._read_entries()

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    # ── persistence ──────────────────────────────────────────────

    def _read_entries(self) -> Dict[str, Dict[str, str]]:
        if not self._storage_path.exists():
            return {}
        try:
            doc = json.loads(self._storage_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Vault %s unreadable, starting empty: %s", mask_path(str(self._storage_path)), exc)
            return {}
        entries = doc.get("entries") if isinstance(doc, dict) else None
        if not isinstance(entries, dict):
            logger.warning("Vault %s has unexpected layout, starting empty", mask_path(str(self._storage_path)))
            return {}
        return {name: entry for name, entry in entries.items() if isinstance(entry, dict)}

    def _flush(self) -> None:
        doc = {"version": _VAULT_VERSION, "entries": self._entries}
        _owner_only_write(self._storage_path, json.dumps(doc, indent=2).encode("utf-8"))

    # ── operations ───────────────────────────────────────────────

    def store(self, name: str, value: str) -> None:
        """Encrypt ``value`` under ``name``, replacing any previous value."""
        ciphertext = self._fernet.encrypt(value.encode("utf-8")).decode("ascii")
        with self._lock:
            self._entries[name] = {
                "ciphertext": ciphertext,
                "stored_at": datetime.now(timezone.utc).isoformat(),
            }
            self._flush()

    def retrieve(self, name: str) -> Optional[str]:
        """
        Returns:
            The plaintext, or None when ``name`` is not stored.

        Raises:
            DecryptionError: the entry was written with a different key or
                has been tampered with.
        """
        with self._lock:
            entry = self._entries.get(name)
        if entry is None or "ciphertext" not in entry:
            return None
        try:
            return self._fernet.decrypt(str(entry["ciphertext"]).encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise DecryptionError(f"cannot decrypt vault entry {name!r}") from e

    def delete(self, name: str) -> bool:
        """Remove ``name``; False when it was not stored."""
        with self._lock:
            if self._entries.pop(name, None) is None:
                return False
            self._flush()
            return True

    def exists(self, name: str) -> bool:
        with self._lock:
            return name in self._entries

    def list_names(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def clear(self) -> int:
        """Remove every entry; returns how many there were."""
        with self._lock:
            removed = len(self._entries)
            self._entries = {}
            self._flush()
            return removed


__all__ = [
    "DecryptionError",
    "EncryptionError",
    "SecretsVault",
    "VaultError",
    "load_or_create_key",
]
