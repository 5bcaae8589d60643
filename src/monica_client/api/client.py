from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Dict, Iterator, List, Optional, Type, TypeVar
from urllib.parse import urlsplit

import requests
from pydantic import BaseModel, ValidationError

from monica_client.api.errors import (
    DecodingError,
    InvalidResponseError,
    InvalidURLError,
    NetworkError,
    ServerError,
    UnauthorizedError,
)
from monica_client.api.models import Contact, ContactsPage


logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds
DEFAULT_RESOURCE_TIMEOUT = 60.0  # seconds
DEFAULT_PAGE_LIMIT = 100

PRIMARY_PROBE_ENDPOINT = "/me"
LEGACY_PROBE_ENDPOINT = "/account"

_BODY_PREVIEW_CHARS = 500

M = TypeVar("M", bound=BaseModel)


def normalize_base_url(base_url: str) -> str:
    """Trim whitespace and drop trailing slashes from an endpoint URL."""
    return str(base_url or "").strip().rstrip("/")


def _preview(text: str) -> str:
    t = str(text or "")
    return t[:_BODY_PREVIEW_CHARS] + "..." if len(t) > _BODY_PREVIEW_CHARS else t


def _positive_timeout(name: str, value: float) -> float:
    seconds = float(value)
    if not math.isfinite(seconds) or seconds <= 0:
        raise ValueError(f"{name} must be a positive number of seconds, got {value!r}")
    return seconds


class MonicaAPIClient:
    """Authenticated client for the Monica contacts REST API.

    The client holds no state besides its credentials and HTTP session;
    every call maps the HTTP outcome onto :mod:`monica_client.api.errors`.

    Example::

        client = MonicaAPIClient("https://monica.example.com/", token)
        client.test_connection()
        contacts = client.fetch_all_contacts()
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        resource_timeout: float = DEFAULT_RESOURCE_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = normalize_base_url(base_url)
        self._api_token = api_token or ""
        self._request_timeout = _positive_timeout("request_timeout", request_timeout)
        self._resource_timeout = _positive_timeout("resource_timeout", resource_timeout)
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "MonicaAPIClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ── transport ────────────────────────────────────────────────

    def _url(self, endpoint: str) -> str:
        url = f"{self._base_url}/api{endpoint}"
        parts = urlsplit(url)
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            logger.error("Invalid URL: %s", url)
            raise InvalidURLError()
        return url

    def _request(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        url = self._url(endpoint)
        headers = {
            "Authorization": f"Bearer {self._api_token}",
            "Accept": "application/json",
        }
        data: Optional[bytes] = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(body, ensure_ascii=False).encode("utf-8")

        logger.debug("Making request: %s %s params=%s", method, url, params)
        try:
            r = self._session.request(
                method,
                url,
                params=params,
                headers=headers,
                data=data,
                timeout=(self._request_timeout, self._resource_timeout),
            )
        except (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
        ) as exc:
            logger.error("Invalid URL %s: %s", url, exc)
            raise InvalidURLError() from exc
        except requests.RequestException as exc:
            logger.warning("Network error on %s %s: %s", method, url, exc)
            raise NetworkError(exc) from exc
        except UnicodeError as exc:
            # http.client encodes header values as Latin-1.
            logger.warning("API token cannot be sent in an HTTP header: %s", exc.__class__.__name__)
            raise UnauthorizedError("API token contains characters not allowed in an HTTP header") from exc

        logger.debug("Response status: %d (%s %s)", r.status_code, method, url)
        self._raise_for_status(r)
        return r

    @staticmethod
    def _raise_for_status(r: requests.Response) -> None:
        code = int(r.status_code)
        if 200 <= code <= 299:
            return
        if code == 401:
            logger.warning("Unauthorized: check the API token")
            raise UnauthorizedError()
        if code == 404:
            logger.warning("404 Not Found: check the API URL and endpoint. Response: %s", _preview(r.text))
            raise ServerError(404)
        if 400 <= code <= 499:
            logger.warning("Client error %d. Response: %s", code, _preview(r.text))
            raise ServerError(code)
        if 500 <= code <= 599:
            logger.error("Server error %d", code)
            raise ServerError(code)
        raise InvalidResponseError(f"Unexpected HTTP status {code}")

    @staticmethod
    def _decode(r: requests.Response, model: Type[M]) -> M:
        try:
            payload = r.json()
        except ValueError as exc:
            logger.error("Response is not JSON: %s", _preview(r.text))
            raise DecodingError() from exc
        return MonicaAPIClient._validate(payload, model)

    @staticmethod
    def _validate(payload: Any, model: Type[M]) -> M:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            keys = sorted(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
            logger.error("Decoding %s failed (%d errors); response structure: %s", model.__name__, exc.error_count(), keys)
            raise DecodingError() from exc

    def _decode_contact(self, r: requests.Response) -> Contact:
        try:
            payload = r.json()
        except ValueError as exc:
            raise DecodingError() from exc
        # Single-resource responses may be wrapped as {"data": {...}}.
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            payload = payload["data"]
        return self._validate(payload, Contact)

    # ── probes ───────────────────────────────────────────────────

    def test_connection(self) -> None:
        """Validate the credentials with a lightweight identity probe.

        Newer servers expose ``/api/me``; older ones only ``/api/account``.
        The legacy probe is tried only when the first answers 404.

        Raises:
            UnauthorizedError, ServerError, NetworkError: when the probes fail
                (the second probe's error if both ran).
        """
        try:
            self._request(PRIMARY_PROBE_ENDPOINT)
        except ServerError as exc:
            if not exc.is_not_found:
                raise
            logger.warning("%s not found, trying %s probe", PRIMARY_PROBE_ENDPOINT, LEGACY_PROBE_ENDPOINT)
            self._request(LEGACY_PROBE_ENDPOINT)

    # ── contacts ─────────────────────────────────────────────────

    def fetch_contacts_page(self, page: int = 1, limit: int = DEFAULT_PAGE_LIMIT) -> ContactsPage:
        """Fetch one page of contacts."""
        if page < 1:
            raise ValueError("page must be >= 1")
        if limit < 1:
            raise ValueError("limit must be >= 1")

        r = self._request("/contacts", params={"page": int(page), "limit": int(limit)})
        response = self._decode(r, ContactsPage)
        logger.debug("Decoded %d contacts from page %d", len(response.data), page)
        return response

    def iter_contact_pages(
        self,
        limit: int = DEFAULT_PAGE_LIMIT,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> Iterator[ContactsPage]:
        """Yield pages 1..last_page in order.

        A response without ``meta`` is treated as the only page.
        ``should_stop`` is checked before each further page is requested.
        """
        page = 1
        while True:
            response = self.fetch_contacts_page(page=page, limit=limit)
            yield response

            meta = response.meta
            if meta is None or page >= meta.last_page:
                return
            if should_stop is not None and should_stop():
                logger.info("Contact fetch stopped after page %d of %d", page, meta.last_page)
                return
            page += 1

    def fetch_all_contacts(
        self,
        limit: int = DEFAULT_PAGE_LIMIT,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> List[Contact]:
        """Fetch every contact across all pages, in page order."""
        all_contacts: List[Contact] = []
        for page_no, response in enumerate(self.iter_contact_pages(limit=limit, should_stop=should_stop), start=1):
            all_contacts.extend(response.data)
            logger.debug(
                "Page %d: got %d contacts (total so far: %d)",
                page_no,
                len(response.data),
                len(all_contacts),
            )
        logger.info("Fetched %d contacts", len(all_contacts))
        return all_contacts

    def fetch_contact(self, contact_id: int) -> Contact:
        """Fetch a single contact by id."""
        r = self._request(f"/contacts/{int(contact_id)}")
        return self._decode_contact(r)

    def create_contact(self, contact: Contact) -> Contact:
        r = self._request("/contacts", method="POST", body=contact.to_wire())
        return self._decode_contact(r)

    def update_contact(self, contact: Contact) -> Contact:
        r = self._request(f"/contacts/{int(contact.id)}", method="PUT", body=contact.to_wire())
        return self._decode_contact(r)

    def delete_contact(self, contact_id: int) -> None:
        self._request(f"/contacts/{int(contact_id)}", method="DELETE")


__all__ = [
    "DEFAULT_PAGE_LIMIT",
    "DEFAULT_REQUEST_TIMEOUT",
    "DEFAULT_RESOURCE_TIMEOUT",
    "MonicaAPIClient",
    "normalize_base_url",
]
