import asyncio
from collections.abc import Callable

import httpx
import pytest

from wassel.auth.verify import auth_dependency
from wassel.offline.store import LocalStore


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock):
    return LocalStore(str(tmp_path / "offline.db"), clock=clock)


class RecordingNetwork(httpx.AsyncBaseTransport):
    """
    Scriptable upstream for the cache manager.

    `routes` maps request URL -> response factory. With `online=False`
    every request fails like a dropped connection.
    """

    def __init__(self):
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: list[httpx.Request] = []
        self.online = True
        self.delay: float | None = None

    def add(self, url: str, status_code: int = 200, **kwargs):
        self.routes[url] = lambda request: httpx.Response(status_code, **kwargs)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.online:
            raise httpx.ConnectError("offline", request=request)
        factory = self.routes.get(str(request.url))
        if factory is None:
            return httpx.Response(404, text="not found")
        return factory(request)

    def calls_to(self, url: str) -> int:
        return sum(1 for call in self.calls if str(call.url) == url)


@pytest.fixture
def network():
    return RecordingNetwork()


class FakeNotifier:
    def __init__(self, permission: str = "granted"):
        self.permission = permission
        self.shown: list[tuple[str, dict]] = []

    async def show_notification(self, title: str, options: dict) -> None:
        self.shown.append((title, options))


class FakeNotification:
    def __init__(self, data: dict):
        self.data = data
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeWindow:
    def __init__(self, url: str):
        self.url = url
        self.messages: list[dict] = []
        self.focused = False

    async def post_message(self, message: dict) -> None:
        self.messages.append(message)

    async def focus(self) -> None:
        self.focused = True


class FakeClients:
    def __init__(self, windows: list[FakeWindow] | None = None):
        self.windows = windows or []
        self.opened: list[str] = []

    async def match_all(self) -> list[FakeWindow]:
        return list(self.windows)

    async def open_window(self, url: str) -> FakeWindow:
        self.opened.append(url)
        window = FakeWindow(url)
        self.windows.append(window)
        return window


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def clients():
    return FakeClients()
