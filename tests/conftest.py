from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from tvremote.commands.errors import TransportError
from tvremote.core.config import Settings
from tvremote.models.tv import DiscoveredDevice, ProbeSource, TVBrand, TVProfile
from tvremote.services.credential_store import CredentialStore
from tvremote.utils import transport
from tvremote.utils.transport import HttpResponse, SocketEvent, SocketEventKind


@dataclass
class HttpCall:
    url: str
    method: str
    headers: dict | None
    json: Any
    data: Any


@dataclass
class HttpRoute:
    url_part: str
    method: str | None
    responses: list = field(default_factory=list)

    def next_response(self):
        # The last response repeats
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class FakeHttp:
    """Stands in for transport.fetch_with_timeout; unrouted URLs are unreachable"""

    def __init__(self) -> None:
        self.calls: list[HttpCall] = []
        self.routes: list[HttpRoute] = []

    def on(self, url_part: str, *responses, method: str | None = None) -> None:
        """
        Each response is an HttpResponse, an (status, text) tuple, an
        exception to raise, or a callable taking the HttpCall.
        """
        self.routes.append(HttpRoute(url_part, method, list(responses)))

    def calls_to(self, url_part: str) -> list[HttpCall]:
        return [call for call in self.calls if url_part in call.url]

    async def __call__(
        self,
        url: str,
        method: str = "GET",
        headers=None,
        json=None,
        data=None,
        timeout: float = 1.2,
        cancel_event: asyncio.Event | None = None,
    ) -> HttpResponse:
        if cancel_event is not None and cancel_event.is_set():
            raise TransportError("Request cancelled.")

        call = HttpCall(url, method, headers, json, data)
        self.calls.append(call)

        for route in self.routes:
            if route.url_part in url and (route.method is None or route.method == method):
                response = route.next_response()
                if callable(response) and not isinstance(response, HttpResponse):
                    response = response(call)
                if isinstance(response, Exception):
                    raise response
                if isinstance(response, tuple):
                    response = HttpResponse(*response)
                return response

        raise TransportError(f"Cannot connect to {url}")


class FakeChannel:
    """
    Scripted socket channel

    The responder is called with every sent frame and returns the events
    the TV answers with: dicts become messages, SocketEvents pass through.
    """

    def __init__(self, url: str, responder: Callable[[str, dict], list]):
        self.url = url
        self.sent: list[dict] = []
        self._responder = responder
        self._events: asyncio.Queue = asyncio.Queue()

    async def send_json(self, payload: dict) -> None:
        self.sent.append(payload)
        for item in self._responder(self.url, payload) or []:
            if isinstance(item, dict):
                item = SocketEvent(SocketEventKind.MESSAGE, payload=item)
            self._events.put_nowait(item)

    async def events(self):
        while True:
            event = await self._events.get()
            yield event
            if event.kind != SocketEventKind.MESSAGE:
                return


class FakeSockets:
    """Stands in for transport.open_socket_channel"""

    def __init__(self) -> None:
        self.routes: list[tuple[str, Callable | None, Exception | None]] = []
        self.opened: list[str] = []
        self.channels: list[FakeChannel] = []

    def on(self, url_part: str, responder: Callable | None = None, error: Exception | None = None) -> None:
        self.routes.append((url_part, responder, error))

    @asynccontextmanager
    async def open(self, url: str, connect_timeout: float = 5.0, ssl: Any = False):
        self.opened.append(url)
        for url_part, responder, error in self.routes:
            if url_part not in url:
                continue
            if error is not None:
                raise error
            channel = FakeChannel(url, responder or (lambda _url, _payload: []))
            self.channels.append(channel)
            yield channel
            return
        raise TransportError(f"Cannot connect to {url}")


class FakeProber:
    """Executor stand-in that recognises a fixed set of hosts"""

    def __init__(self, brand: TVBrand, hosts, delay: float = 0.0, on_probe=None, source: ProbeSource | None = None):
        self.brand = brand
        self.source = source or ProbeSource(brand.value)
        self.hosts = set(hosts)
        self.delay = delay
        self.on_probe = on_probe
        self.probed: list[tuple[str, bool]] = []

    async def probe(self, host, cancel_event=None, thorough=False):
        self.probed.append((host, thorough))
        if self.on_probe is not None:
            self.on_probe(host)
        if self.delay:
            await asyncio.sleep(self.delay)
        if host not in self.hosts:
            return None
        return DiscoveredDevice(
            id=f"{self.brand.value}-{host}",
            brand=self.brand,
            nickname=f"{self.brand.value} at {host}",
            host=host,
            port=1,
            source=self.source,
        )


def closed() -> SocketEvent:
    return SocketEvent(SocketEventKind.CLOSED)


@pytest.fixture
def fake_http(monkeypatch: pytest.MonkeyPatch) -> FakeHttp:
    fake = FakeHttp()
    monkeypatch.setattr(transport, "fetch_with_timeout", fake)
    return fake


@pytest.fixture
def fake_sockets(monkeypatch: pytest.MonkeyPatch) -> FakeSockets:
    fake = FakeSockets()
    monkeypatch.setattr(transport, "open_socket_channel", fake.open)
    return fake


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        SAMSUNG_TOKEN_TIMEOUT=0.2,
        SAMSUNG_PROMPT_TIMEOUT=0.2,
        SAMSUNG_CONNECT_TIMEOUT=0.2,
        PINNED_TOKEN_WAIT=0.05,
        LG_KEY_TIMEOUT=0.2,
        LG_PROMPT_TIMEOUT=0.2,
        PROBE_TIMEOUT_SCALE=0.1,
        SAMSUNG_PINNED_TLS=False,
        BRIDGE_FALLBACK_FOR_DECLARED_BRANDS=False,
    )


@pytest.fixture
def store() -> CredentialStore:
    return CredentialStore()


def make_profile(brand: TVBrand, host: str | None = "192.168.1.50", port: int | None = None, profile_id: str = "tv-1") -> TVProfile:
    return TVProfile(id=profile_id, brand=brand, nickname="Living Room", host=host, port=port)
