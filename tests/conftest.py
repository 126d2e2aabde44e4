"""pytest configuration for Aries tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest

from aries.db import init_db
from aries.registry import ServiceRecord, ServiceStatus, SQLiteServiceStore


# Configure asyncio mode for pytest-asyncio
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


@dataclass
class FakeService:
    """Behaviour of one fake backend, keyed by host in :class:`FakeBackends`.

    ``error`` / ``ping_error`` is one of ``timeout``, ``refused``, ``other``
    or ``hang``.
    """

    name: str
    ping_status: int = 200
    ping_body: str | None = None
    ping_error: str | None = None
    status: int = 200
    payload: Any = field(default_factory=dict)
    text: str | None = None
    delay: float = 0.0
    error: str | None = None


class FakeBackends:
    """In-process stand-in for every downstream service.

    Requests to hosts that were never added fail with connection refused.
    """

    def __init__(self) -> None:
        self.services: dict[str, FakeService] = {}
        self.requests: list[httpx.Request] = []

    def add(self, host: str, name: str, **behaviour: Any) -> str:
        self.services[host] = FakeService(name=name, **behaviour)
        return f"http://{host}"

    def lookups(self, host: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.host == host and r.url.path.startswith("/aries/")
        ]

    def pings(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host and r.url.path == "/aries"]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        svc = self.services.get(request.url.host)
        if svc is None:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        is_ping = request.url.path == "/aries"
        if not is_ping and svc.delay:
            await asyncio.sleep(svc.delay)
        error = svc.ping_error if is_ping else svc.error
        if error == "hang":
            await asyncio.sleep(3600)
        _raise_for(error, request)

        if is_ping:
            body = svc.ping_body if svc.ping_body is not None else f"{svc.name} Aries API"
            return httpx.Response(svc.ping_status, text=body)
        if svc.text is not None:
            return httpx.Response(svc.status, text=svc.text)
        return httpx.Response(svc.status, json=svc.payload)


def _raise_for(error: str | None, request: httpx.Request) -> None:
    if error is None:
        return
    if error == "timeout":
        raise httpx.ReadTimeout("timed out", request=request)
    if error == "refused":
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)
    if error == "other":
        raise httpx.RemoteProtocolError(
            "Server disconnected without sending a response.", request=request
        )
    raise ValueError(f"unknown fake error {error!r}")


@pytest.fixture
def backends():
    return FakeBackends()


@pytest.fixture
def db_conn(tmp_path):
    conn = init_db(tmp_path / "aries.db")
    yield conn
    conn.close()


@pytest.fixture
def store(db_conn):
    return SQLiteServiceStore(db_conn)


@pytest.fixture
def seed(store):
    """Insert records straight into the store, bypassing registry validation."""

    def _seed(name: str, url: str, status: ServiceStatus = ServiceStatus.UNKNOWN) -> int:
        return store.insert(ServiceRecord(name=name, url=url, status=status))

    return _seed
