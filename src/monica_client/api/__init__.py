"""Monica REST API access: client, wire models and error taxonomy."""

from __future__ import annotations

from .client import MonicaAPIClient, normalize_base_url
from .errors import (
    APIError,
    DecodingError,
    InvalidResponseError,
    InvalidURLError,
    NetworkError,
    ServerError,
    UnauthorizedError,
)
from .models import Contact, ContactsPage, PaginationLinks, PaginationMeta

__all__ = [
    "MonicaAPIClient",
    "normalize_base_url",
    "APIError",
    "DecodingError",
    "InvalidResponseError",
    "InvalidURLError",
    "NetworkError",
    "ServerError",
    "UnauthorizedError",
    "Contact",
    "ContactsPage",
    "PaginationLinks",
    "PaginationMeta",
]
