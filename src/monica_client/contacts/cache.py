"""Local contact cache keyed by remote contact id.

Records are held in memory and, when a path is configured, persisted as a
single JSON document (``{"version": 1, "contacts": {id: record}}``) that is
rewritten atomically on :meth:`ContactCache.commit`.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from monica_client.api.models import CONTACT_ATTRIBUTES, Contact, format_datetime, parse_datetime
from monica_client.contacts.display import filter_contacts
from monica_client.security.redaction import mask_path

logger = logging.getLogger(__name__)

_CACHE_VERSION = 1
_DATE_ATTRIBUTES = frozenset({"birthdate", "created_at", "updated_at", "last_synced_at"})


@dataclass
class CachedContact:
    """Local copy of a remote contact."""

    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    nickname: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    birthdate: Optional[datetime] = None
    address: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None

    def field_values(self) -> Dict[str, Any]:
        """Contact fields only (no local sync metadata)."""
        return {attr: getattr(self, attr) for attr in CONTACT_ATTRIBUTES}

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for attr in (*CONTACT_ATTRIBUTES, "last_synced_at"):
            value = getattr(self, attr)
            out[attr] = format_datetime(value) if attr in _DATE_ATTRIBUTES else value
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CachedContact":
        values: Dict[str, Any] = {}
        for attr in (*CONTACT_ATTRIBUTES, "last_synced_at"):
            value = raw.get(attr)
            values[attr] = parse_datetime(value) if attr in _DATE_ATTRIBUTES else value
        values["id"] = int(values["id"])
        return cls(**values)


def _atomic_write_json(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_name = tempfile.mkstemp(prefix="contacts_", suffix=".json", dir=str(path.parent))
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.write("\n")
        Path(tmp_name).replace(path)
    finally:
        Path(tmp_name).unlink(missing_ok=True)


class ContactCache:
    """Thread-safe mapping from contact id to :class:`CachedContact`.

    Usage:
        cache = ContactCache(Path("~/.config/monica-client/contacts.json"))

        cache.upsert_from(remote_contact)
        cache.commit()

        for contact in cache.list_sorted():
            ...
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self._path = Path(path).expanduser() if path else None
        self._records: Dict[int, CachedContact] = {}
        self._lock = threading.RLock()
        self._load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    # ── reads ────────────────────────────────────────────────────

    def get(self, contact_id: int) -> Optional[CachedContact]:
        with self._lock:
            return self._records.get(int(contact_id))

    def all(self) -> List[CachedContact]:
        with self._lock:
            return list(self._records.values())

    def list_sorted(self) -> List[CachedContact]:
        """Contacts ordered by first name, then last name (case-insensitive)."""

        def sort_key(c: CachedContact) -> Tuple[str, str, int]:
            return ((c.first_name or "").casefold(), (c.last_name or "").casefold(), c.id)

        return sorted(self.all(), key=sort_key)

    def search(self, text: str) -> List[CachedContact]:
        return filter_contacts(self.list_sorted(), text)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._records)

    # ── writes ───────────────────────────────────────────────────

    def upsert_from(
        self,
        contact: Contact,
        synced_at: Optional[datetime] = None,
    ) -> Tuple[CachedContact, bool]:
        """Insert or overwrite the record for ``contact.id``.

        Every contact field takes the remote value. ``last_synced_at`` is
        never earlier than the remote ``updated_at``.

        Returns:
            ``(record, created)``
        """
        if not isinstance(contact.id, int) or contact.id <= 0:
            raise ValueError(f"invalid contact id: {contact.id!r}")

        now = synced_at or datetime.now(timezone.utc)
        values = contact.field_values()
        updated_at = values.get("updated_at")
        last_synced = max(now, updated_at) if updated_at is not None else now

        with self._lock:
            record = self._records.get(contact.id)
            created = record is None
            if record is None:
                record = CachedContact(**values)
                self._records[contact.id] = record
            else:
                for attr, value in values.items():
                    setattr(record, attr, value)
            record.last_synced_at = last_synced
            return record, created

    def delete(self, contact_id: int) -> bool:
        with self._lock:
            return self._records.pop(int(contact_id), None) is not None

    def clear_all(self) -> int:
        """Remove every record and persist the empty cache."""
        with self._lock:
            count = len(self._records)
            self._records.clear()
            self.commit()
            return count

    def commit(self) -> None:
        """Persist the current records (no-op for an in-memory cache)."""
        if self._path is None:
            return
        with self._lock:
            data = {
                "version": _CACHE_VERSION,
                "contacts": {str(cid): rec.to_dict() for cid, rec in self._records.items()},
            }
            _atomic_write_json(self._path, data)
        logger.debug("Cache committed: %d contacts", len(data["contacts"]))

    # ── persistence ──────────────────────────────────────────────

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Contact cache %s unreadable, starting empty: %s", mask_path(str(self._path)), exc)
            return

        contacts = data.get("contacts") if isinstance(data, dict) else None
        if not isinstance(contacts, dict):
            logger.warning("Contact cache has unexpected structure, starting empty")
            return

        for key, raw in contacts.items():
            if not isinstance(raw, dict):
                continue
            try:
                record = CachedContact.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping cached contact %s: %s", key, exc)
                continue
            self._records[record.id] = record
        logger.debug("Loaded %d cached contacts", len(self._records))


__all__ = ["CachedContact", "ContactCache"]
