"""One-way sync from the Monica API into the local contact cache.

Remote always wins: every fetched contact overwrites its cached copy, new
ids are inserted, and cached contacts missing from the remote result are
left alone. A record that fails to import is logged, reported in
:attr:`SyncReport.skipped`, and does not abort the batch.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from monica_client.api.client import DEFAULT_PAGE_LIMIT, MonicaAPIClient
from monica_client.api.errors import ServerError, UnauthorizedError
from monica_client.api.models import Contact
from monica_client.auth.manager import AuthManager
from monica_client.contacts.cache import CachedContact, ContactCache
from monica_client.core.events import EventBus, EventType, get_event_bus
from monica_client.security.redaction import mask_secrets

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Outcome of one sync run."""

    committed: List[CachedContact] = field(default_factory=list)
    skipped: List[Tuple[Contact, Exception]] = field(default_factory=list)
    added: int = 0
    updated: int = 0
    cancelled: bool = False
    duration_ms: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "committed": len(self.committed),
            "skipped": len(self.skipped),
            "added": self.added,
            "updated": self.updated,
            "cancelled": self.cancelled,
            "duration_ms": round(self.duration_ms, 1),
            "timestamp": self.timestamp,
        }


class SyncManager:
    """Reconciles remote contacts into a :class:`ContactCache`.

    Runs for the same manager are serialized, so overlapping refreshes never
    interleave their upserts and commits.

    Example::

        sync = SyncManager(cache, auth)
        report = await sync.sync_all()
        print(f"Added {report.added}, updated {report.updated}")
    """

    def __init__(
        self,
        cache: ContactCache,
        auth: AuthManager,
        *,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        event_bus: Optional[EventBus] = None,
    ):
        self._cache = cache
        self._auth = auth
        self._page_limit = int(page_limit)
        self._bus = event_bus or get_event_bus()
        self._lock = asyncio.Lock()
        self._cancel_event = threading.Event()
        self._syncing = False

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def cancel(self) -> None:
        """Stop the running sync before its next page request.

        Records already fetched are still committed.
        """
        self._cancel_event.set()

    # ── operations ───────────────────────────────────────────────

    async def sync_all(self, *, should_stop: Optional[Callable[[], bool]] = None) -> SyncReport:
        """Fetch every remote contact and upsert it into the cache.

        Raises:
            UnauthorizedError: no authenticated client.
            APIError: fetching failed; the cache is not modified.
        """
        async with self._lock:
            client = self._require_client()
            self._cancel_event.clear()
            self._syncing = True
            self._bus.publish(EventType.SYNC_STARTED, data={"scope": "all"}, source="sync")
            start = time.perf_counter()

            stopped = threading.Event()

            def _stop() -> bool:
                if self._cancel_event.is_set() or (should_stop is not None and should_stop()):
                    stopped.set()
                return stopped.is_set()

            try:
                contacts = await asyncio.to_thread(client.fetch_all_contacts, self._page_limit, _stop)
                report = await self._import(contacts)
                report.cancelled = stopped.is_set()
            except Exception as exc:
                logger.error("Contact sync failed: %s", exc)
                self._bus.publish(EventType.SYNC_FAILED, data={"scope": "all", "error": mask_secrets(str(exc))}, source="sync")
                raise
            finally:
                self._syncing = False

            report.duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "Sync completed: %d added, %d updated, %d skipped%s",
                report.added,
                report.updated,
                len(report.skipped),
                " (cancelled)" if report.cancelled else "",
            )
            self._bus.publish(EventType.SYNC_COMPLETED, data={"scope": "all", **report.to_dict()}, source="sync")
            return report

    async def sync_one(self, contact_id: int) -> Optional[CachedContact]:
        """Refresh a single contact by id.

        Fetches ``/api/contacts/{id}`` directly. A 404 (older servers, or an
        unknown id) falls back to a full fetch filtered for the id.

        Returns:
            The refreshed cached record, or None when the remote has no such
            contact (the local record is left untouched).
        """
        async with self._lock:
            client = self._require_client()
            self._syncing = True
            try:
                contact = await self._fetch_one(client, int(contact_id))
                if contact is None:
                    logger.info("Contact %s not found remotely", contact_id)
                    return None
                report = await self._import([contact])
            except Exception as exc:
                self._bus.publish(
                    EventType.SYNC_FAILED,
                    data={"scope": "one", "id": contact_id, "error": mask_secrets(str(exc))},
                    source="sync",
                )
                raise
            finally:
                self._syncing = False

            if report.skipped:
                _, cause = report.skipped[0]
                raise cause
            self._bus.publish(EventType.SYNC_COMPLETED, data={"scope": "one", "id": contact_id}, source="sync")
            return self._cache.get(contact.id)

    # ── internal ─────────────────────────────────────────────────

    def _require_client(self) -> MonicaAPIClient:
        client = self._auth.current_client
        if client is None:
            raise UnauthorizedError()
        return client

    async def _fetch_one(self, client: MonicaAPIClient, contact_id: int) -> Optional[Contact]:
        try:
            return await asyncio.to_thread(client.fetch_contact, contact_id)
        except ServerError as exc:
            if not exc.is_not_found:
                raise
        logger.debug("Direct fetch of contact %d returned 404, scanning full list", contact_id)
        contacts = await asyncio.to_thread(client.fetch_all_contacts, self._page_limit)
        return next((c for c in contacts if c.id == contact_id), None)

    async def _import(self, contacts: Sequence[Contact]) -> SyncReport:
        logger.info("Importing %d contacts into cache", len(contacts))
        report = SyncReport()
        synced_at = datetime.now(timezone.utc)

        for contact in contacts:
            try:
                record, created = self._cache.upsert_from(contact, synced_at)
            except Exception as exc:
                logger.warning("Failed to import contact %s: %s", getattr(contact, "id", "?"), exc)
                report.skipped.append((contact, exc))
                continue
            report.committed.append(record)
            if created:
                report.added += 1
            else:
                report.updated += 1

        await asyncio.to_thread(self._cache.commit)
        return report


__all__ = ["SyncManager", "SyncReport"]
