"""
Pytest configuration and fixtures.

The backend and the book catalog are replaced by ``MockBackend`` routers
plugged into httpx's ``MockTransport``; time is a ``FakeClock``.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import pytest

from shelfsync.context import ClientContext
from shelfsync.core.clock import Clock
from shelfsync.core.config import Settings

API_BASE_URL = "http://backend.test/api/v1"
CATALOG_BASE_URL = "http://catalog.test/books/v1"


class MockBackend:
    """Routes requests by (method, path) and records every request it sees."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json: Any = None,
        status: int = 200,
        handler: Callable[[httpx.Request], Any] | None = None,
    ) -> None:
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status, json=json)

        self.routes[(method, path)] = handler

    def __call__(self, request: httpx.Request) -> Any:
        path = request.url.path
        if path.startswith(self.prefix):
            path = path[len(self.prefix):]
        self.requests.append(request)

        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        return route(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method and r.url.path == f"{self.prefix}{path}"
        ]


class FakeClock(Clock):
    """Clock whose time only moves when told to. ``sleep`` records and advances."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        API_BASE_URL=API_BASE_URL,
        GOOGLE_BOOKS_BASE_URL=CATALOG_BASE_URL,
        GOOGLE_BOOKS_API_KEY="",
        ENVIRONMENT="test",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> MockBackend:
    return MockBackend("/api/v1")


@pytest.fixture
def catalog() -> MockBackend:
    return MockBackend("/books/v1")


@pytest.fixture
async def ctx(settings, clock, backend, catalog):
    """A signed-in client context wired to the mock backend and catalog."""
    context = ClientContext(
        settings,
        clock=clock,
        api_transport=backend.transport(),
        catalog_transport=catalog.transport(),
    )
    context.set_token("test-token")
    yield context
    await context.aclose()


@pytest.fixture
def volume() -> Callable[..., dict]:
    """Build a Google Books volume item."""

    def build(
        volume_id: str = "gb-1",
        title: str = "Klara and the Sun",
        authors: list[str] | None = None,
        **volume_info: Any,
    ) -> dict:
        return {
            "id": volume_id,
            "volumeInfo": {
                "title": title,
                "authors": authors if authors is not None else ["Kazuo Ishiguro"],
                **volume_info,
            },
        }

    return build
