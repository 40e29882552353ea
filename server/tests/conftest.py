from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List

import httpx
import pytest

_HOST = "https://api.test/v2beta"
_PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture(autouse=True)
def api_key(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setenv("STABILITY_KEY", "sk-test")
    return "sk-test"


@pytest.fixture
def host() -> str:
    return _HOST


@pytest.fixture
def png_bytes() -> bytes:
    return _PNG_BYTES


@dataclass
class FakeClock:
    """Monotonic clock whose only way forward is the fake sleep."""

    now: float = 0.0
    sleeps: List[float] = field(default_factory=list)

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@dataclass
class FakeService:
    """Scripted stand-in for the remote generation API."""

    clock: FakeClock
    host: str
    submit: Callable[[httpx.Request], httpx.Response]
    poll_responses: List[httpx.Response] = field(default_factory=list)
    always_in_progress: bool = False
    requests: List[httpx.Request] = field(default_factory=list)
    poll_times: List[float] = field(default_factory=list)

    @property
    def submissions(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def polls(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        if request.method == "POST":
            return self.submit(request)
        self.poll_times.append(self.clock.now)
        if self.always_in_progress:
            return httpx.Response(202, json={"id": request.url.path.rsplit("/", 1)[-1], "status": "in-progress"})
        return self.poll_responses.pop(0)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_service(clock: FakeClock, host: str) -> Callable[..., FakeService]:
    def _make(submit: Callable[[httpx.Request], httpx.Response], **kwargs) -> FakeService:
        return FakeService(clock=clock, host=host, submit=submit, **kwargs)

    return _make
