from __future__ import annotations

import json
import logging
import socket
import threading
import time
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

import pytest

from monica_client.api.models import Contact
from monica_client.core.events import reset_event_bus

TEST_TOKEN = "test-token-abc123"


def make_contact(contact_id: int, **overrides: Any) -> Dict[str, Any]:
    """Wire-format contact with sensible defaults."""
    record: Dict[str, Any] = {
        "id": contact_id,
        "first_name": f"First{contact_id}",
        "last_name": f"Last{contact_id}",
        "nickname": None,
        "email": f"person{contact_id}@example.com",
        "phone": None,
        "birthdate": None,
        "address": None,
        "company": None,
        "job_title": None,
        "notes": None,
        "created_at": "2024-01-01T10:00:00Z",
        "updated_at": "2024-06-01T12:30:00Z",
    }
    record.update(overrides)
    return record


class MonicaMockState:
    """Mutable behaviour of the mock server, reset for every test."""

    def __init__(self) -> None:
        self.token = TEST_TOKEN
        self.contacts: List[Dict[str, Any]] = []
        # Explicit pages override chunking ``contacts`` by ``limit``.
        self.pages: Optional[List[List[Dict[str, Any]]]] = None
        self.include_meta = True
        self.me_status = 200
        self.account_status = 200
        self.single_contact_endpoint = True
        # Seconds each contact list response is held back.
        self.list_delay = 0.0
        # (method, path) -> (status, raw body)
        self.overrides: Dict[Tuple[str, str], Tuple[int, bytes]] = {}
        self.requests: List[Dict[str, Any]] = []
        self.next_id = 1000

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [r["path"] for r in self.requests if method is None or r["method"] == method]


class _MonicaMockHandler(BaseHTTPRequestHandler):
    server_version = "monica-mock/1.0"

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A003
        # Keep pytest output clean.
        return

    @property
    def state(self) -> MonicaMockState:
        return self.server.state  # type: ignore[attr-defined]

    def _send_json(self, status: int, payload: Any) -> None:
        self._send_raw(status, json.dumps(payload).encode("utf-8"))

    def _send_raw(self, status: int, data: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _read_json(self) -> Any:
        length = int(self.headers.get("Content-Length", "0") or "0")
        raw = self.rfile.read(length) if length > 0 else b"{}"
        return json.loads(raw.decode("utf-8"))

    def _dispatch(self, method: str) -> None:
        parts = urlsplit(self.path)
        path = parts.path.rstrip("/")
        query = {k: v[0] for k, v in parse_qs(parts.query).items()}
        state = self.state
        state.requests.append(
            {
                "method": method,
                "path": path,
                "query": query,
                "headers": dict(self.headers.items()),
            }
        )

        override = state.overrides.get((method, path))
        if override is not None:
            self._send_raw(*override)
            return

        if self.headers.get("Authorization") != f"Bearer {state.token}":
            self._send_json(401, {"error": {"message": "Unauthenticated."}})
            return

        if method == "GET" and path == "/api/me":
            self._probe(state.me_status)
        elif method == "GET" and path == "/api/account":
            self._probe(state.account_status)
        elif method == "GET" and path == "/api/contacts":
            self._list_contacts(query)
        elif method == "POST" and path == "/api/contacts":
            self._create_contact()
        elif path.startswith("/api/contacts/"):
            self._contact_resource(method, path.rsplit("/", 1)[-1])
        else:
            self._send_json(404, {"error": {"message": "not found"}})

    def _probe(self, status: int) -> None:
        if status == 200:
            self._send_json(200, {"data": {"id": 1, "name": "Tester"}})
        else:
            self._send_json(status, {"error": {"message": f"status {status}"}})

    def _list_contacts(self, query: Dict[str, str]) -> None:
        state = self.state
        if state.list_delay:
            time.sleep(state.list_delay)
        page = int(query.get("page", "1"))
        limit = int(query.get("limit", "100"))

        if state.pages is not None:
            pages = state.pages
        else:
            pages = [state.contacts[i:i + limit] for i in range(0, len(state.contacts), limit)] or [[]]

        data = pages[page - 1] if 1 <= page <= len(pages) else []
        body: Dict[str, Any] = {"data": data}
        if state.include_meta:
            body["links"] = {
                "first": "/api/contacts?page=1",
                "last": f"/api/contacts?page={len(pages)}",
                "prev": None if page == 1 else f"/api/contacts?page={page - 1}",
                "next": None if page >= len(pages) else f"/api/contacts?page={page + 1}",
            }
            body["meta"] = {
                "current_page": page,
                "from": 1 if data else None,
                "last_page": len(pages),
                "per_page": limit,
                "to": len(data) or None,
                "total": sum(len(p) for p in pages),
            }
        else:
            body["meta"] = None
        self._send_json(200, body)

    def _find(self, contact_id: str) -> Optional[Dict[str, Any]]:
        for c in self.state.contacts:
            if str(c["id"]) == contact_id:
                return c
        return None

    def _create_contact(self) -> None:
        state = self.state
        body = self._read_json()
        now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        state.next_id += 1
        record = make_contact(state.next_id, **{k: v for k, v in body.items() if k != "id"})
        record["created_at"] = now
        record["updated_at"] = now
        state.contacts.append(record)
        self._send_json(201, {"data": record})

    def _contact_resource(self, method: str, contact_id: str) -> None:
        state = self.state
        if method == "GET" and not state.single_contact_endpoint:
            self._send_json(404, {"error": {"message": "not found"}})
            return

        record = self._find(contact_id)
        if record is None:
            self._send_json(404, {"error": {"message": "contact not found"}})
            return

        if method == "GET":
            self._send_json(200, {"data": record})
        elif method == "PUT":
            body = self._read_json()
            record.update({k: v for k, v in body.items() if k not in {"id", "created_at"}})
            record["updated_at"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
            self._send_json(200, {"data": record})
        elif method == "DELETE":
            state.contacts.remove(record)
            self._send_json(200, {"deleted": True, "id": record["id"]})
        else:
            self._send_json(405, {"error": {"message": "method not allowed"}})

    def do_GET(self) -> None:  # noqa: N802
        self._dispatch("GET")

    def do_POST(self) -> None:  # noqa: N802
        self._dispatch("POST")

    def do_PUT(self) -> None:  # noqa: N802
        self._dispatch("PUT")

    def do_DELETE(self) -> None:  # noqa: N802
        self._dispatch("DELETE")


@pytest.fixture(scope="session")
def _monica_server():
    """Start a tiny Monica-compatible mock API server."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _MonicaMockHandler)
    server.state = MonicaMockState()  # type: ignore[attr-defined]

    host, port = server.server_address[:2]
    url = f"http://{host}:{port}"

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    # Basic readiness check
    deadline = time.time() + 5.0
    while time.time() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.2):
                break
        except OSError:
            time.sleep(0.05)
    else:
        server.shutdown()
        raise RuntimeError("Failed to start Monica mock server")

    yield server, url

    server.shutdown()
    server.server_close()


@pytest.fixture
def monica_state(_monica_server) -> MonicaMockState:
    """Fresh mock server state for one test."""
    server, _ = _monica_server
    server.state = MonicaMockState()
    return server.state


@pytest.fixture
def monica_url(_monica_server, monica_state) -> str:
    _, url = _monica_server
    return url


@pytest.fixture
def contact_factory() -> Callable[..., Dict[str, Any]]:
    return make_contact


@pytest.fixture
def api_token() -> str:
    return TEST_TOKEN


@pytest.fixture(autouse=True)
def _reset_event_bus():
    reset_event_bus()
    yield
    reset_event_bus()


@pytest.fixture(autouse=True)
def _quiet_urllib3():
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    yield


@pytest.fixture
def remote_contact() -> Callable[..., Contact]:
    """Build a validated :class:`Contact` from wire defaults plus overrides."""

    def _make(contact_id: int, **overrides: Any) -> Contact:
        return Contact.model_validate(make_contact(contact_id, **overrides))

    return _make
