"""Local contact cache, remote sync and display helpers."""

from __future__ import annotations

from .cache import CachedContact, ContactCache
from .display import detail_rows, filter_contacts, full_name, initials
from .sync import SyncManager, SyncReport

__all__ = [
    "CachedContact",
    "ContactCache",
    "SyncManager",
    "SyncReport",
    "detail_rows",
    "filter_contacts",
    "full_name",
    "initials",
]
