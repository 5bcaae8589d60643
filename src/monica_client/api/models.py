"""Pydantic models for the Monica REST API wire format.

Domain attribute names and JSON keys are declared once in the field tables
below; the models derive their aliases from them so there is a single
mapping at the serialization boundary.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator


# (attribute, wire key)
CONTACT_FIELDS: tuple[tuple[str, str], ...] = (
    ("id", "id"),
    ("first_name", "first_name"),
    ("last_name", "last_name"),
    ("nickname", "nickname"),
    ("email", "email"),
    ("phone", "phone"),
    ("birthdate", "birthdate"),
    ("address", "address"),
    ("company", "company"),
    ("job_title", "job_title"),
    ("notes", "notes"),
    ("created_at", "created_at"),
    ("updated_at", "updated_at"),
)

PAGINATION_META_FIELDS: tuple[tuple[str, str], ...] = (
    ("current_page", "current_page"),
    ("from_", "from"),
    ("last_page", "last_page"),
    ("per_page", "per_page"),
    ("to", "to"),
    ("total", "total"),
)

CONTACT_ATTRIBUTES: tuple[str, ...] = tuple(attr for attr, _ in CONTACT_FIELDS)

_CONTACT_ALIASES: Dict[str, str] = dict(CONTACT_FIELDS)
_META_ALIASES: Dict[str, str] = dict(PAGINATION_META_FIELDS)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 value into an aware UTC datetime.

    Accepts ``datetime``/``date`` objects, full timestamps (``Z`` or offset
    suffix) and bare ``YYYY-MM-DD`` dates. Naive values are taken as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, datetime.min.time())
    elif isinstance(value, str):
        v = value.strip()
        if not v:
            return None
        if len(v) == 10 and v[4] == "-" and v[7] == "-":
            dt = datetime.combine(date.fromisoformat(v), datetime.min.time())
        else:
            if v.endswith("Z"):
                v = v[:-1] + "+00:00"
            dt = datetime.fromisoformat(v)
    else:
        raise ValueError(f"unsupported datetime value: {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as ISO-8601 UTC with a ``Z`` suffix."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class Contact(BaseModel):
    """A contact as returned by ``/api/contacts``."""

    model_config = ConfigDict(
        alias_generator=lambda name: _CONTACT_ALIASES.get(name, name),
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

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
    created_at: datetime
    updated_at: datetime

    @field_validator("birthdate", mode="before")
    @classmethod
    def parse_optional_date(cls, value: Any) -> Optional[datetime]:
        return parse_datetime(value)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def parse_required_date(cls, value: Any) -> datetime:
        dt = parse_datetime(value)
        if dt is None:
            raise ValueError("timestamp is required")
        return dt

    @field_serializer("birthdate", "created_at", "updated_at")
    def serialize_date(self, value: Optional[datetime]) -> Optional[str]:
        return format_datetime(value)

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict using wire keys."""
        return self.model_dump(mode="json", by_alias=True)

    def field_values(self) -> Dict[str, Any]:
        """Domain attribute values keyed by attribute name."""
        return {attr: getattr(self, attr) for attr in CONTACT_ATTRIBUTES}


class PaginationLinks(BaseModel):
    """``links`` block of a paginated list response."""

    model_config = ConfigDict(extra="ignore")

    first: Optional[str] = None
    last: Optional[str] = None
    prev: Optional[str] = None
    next: Optional[str] = None


class PaginationMeta(BaseModel):
    """``meta`` block of a paginated list response."""

    model_config = ConfigDict(
        alias_generator=lambda name: _META_ALIASES.get(name, name),
        populate_by_name=True,
        extra="ignore",
    )

    current_page: int
    from_: Optional[int] = None
    last_page: int
    per_page: int
    to: Optional[int] = None
    total: int


class ContactsPage(BaseModel):
    """One page of ``GET /api/contacts``."""

    model_config = ConfigDict(extra="ignore")

    data: List[Contact]
    links: Optional[PaginationLinks] = None
    meta: Optional[PaginationMeta] = None


__all__ = [
    "CONTACT_FIELDS",
    "CONTACT_ATTRIBUTES",
    "PAGINATION_META_FIELDS",
    "Contact",
    "ContactsPage",
    "PaginationLinks",
    "PaginationMeta",
    "format_datetime",
    "parse_datetime",
]
