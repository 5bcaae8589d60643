"""Display helpers for contact list and detail screens.

These are framework-agnostic: a presentation layer renders the strings and
rows they return.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")

NEVER = "Never"


def full_name(contact: Any) -> str:
    first = getattr(contact, "first_name", None) or ""
    last = getattr(contact, "last_name", None) or ""
    return f"{first} {last}".strip()


def initials(contact: Any) -> str:
    first = getattr(contact, "first_name", None) or ""
    last = getattr(contact, "last_name", None) or ""
    return f"{first[:1]}{last[:1]}".upper()


def filter_contacts(contacts: Iterable[T], search_text: str = "") -> List[T]:
    """Case-insensitive substring match on "first last"; empty text keeps all."""
    needle = (search_text or "").strip().casefold()
    if not needle:
        return list(contacts)
    return [c for c in contacts if needle in full_name(c).casefold()]


def _format_date(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.date().isoformat()


def detail_rows(contact: Any) -> List[Tuple[str, str]]:
    """Ordered (label, value) rows for the detail screen; empty fields skipped."""
    rows: List[Tuple[str, str]] = []
    for label, attr in (
        ("Email", "email"),
        ("Phone", "phone"),
    ):
        value = getattr(contact, attr, None)
        if value:
            rows.append((label, str(value)))

    birthdate = _format_date(getattr(contact, "birthdate", None))
    if birthdate:
        rows.append(("Birthday", birthdate))

    for label, attr in (
        ("Address", "address"),
        ("Company", "company"),
        ("Job Title", "job_title"),
        ("Notes", "notes"),
    ):
        value = getattr(contact, attr, None)
        if value:
            rows.append((label, str(value)))

    rows.append(("Last Updated", _format_date(getattr(contact, "updated_at", None)) or NEVER))
    return rows
