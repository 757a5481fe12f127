"""
Transport utilities shared by every executor

Bounded-time HTTP requests and WebSocket channels over aiohttp.
Every failure surfaces as TransportError so executors only deal with
one exception type for the wire.
"""
import asyncio
import base64
import json as jsonlib
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional, Union

import aiohttp

from ..commands.errors import ConnectionTimeoutError, TransportError

logger = logging.getLogger(__name__)


def describe_error(error: Optional[BaseException]) -> str:
    """Human-readable message for an exception"""
    if error is not None and str(error).strip():
        return str(error).strip()
    return "connection failed"


def base64_encode_ascii(value: str) -> str:
    return base64.b64encode(value.encode("ascii")).decode("ascii")


@dataclass
class HttpResponse:
    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Parsed body, or None when the body is empty or not JSON"""
        if not self.text.strip():
            return None
        try:
            return jsonlib.loads(self.text)
        except ValueError:
            return None


async def fetch_with_timeout(
    url: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    json: Any = None,
    data: Optional[Union[str, bytes]] = None,
    timeout: float = 1.2,
    cancel_event: Optional[asyncio.Event] = None,
) -> HttpResponse:
    """
    Perform one HTTP request and read the whole body within `timeout` seconds

    TLS verification is disabled: TVs serve self-signed certificates.

    Raises:
        TransportError: on timeout, connection failure or cancellation
    """
    if cancel_event is not None and cancel_event.is_set():
        raise TransportError("Request cancelled.")

    client_timeout = aiohttp.ClientTimeout(total=timeout)
    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.request(
                method,
                url,
                headers=headers,
                json=json,
                data=data,
                ssl=False,
                allow_redirects=False,
            ) as response:
                text = await response.text(errors="replace")
                return HttpResponse(status=response.status, text=text)
    except asyncio.TimeoutError:
        raise ConnectionTimeoutError(f"Request to {url} timed out.")
    except aiohttp.ClientError as e:
        raise TransportError(describe_error(e)) from e


class SocketEventKind(str, Enum):
    MESSAGE = "message"
    ERROR = "error"
    CLOSED = "closed"


@dataclass
class SocketEvent:
    kind: SocketEventKind
    payload: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class SocketChannel:
    """Typed event stream over an open WebSocket"""

    def __init__(self, ws: aiohttp.ClientWebSocketResponse):
        self._ws = ws

    async def send_json(self, payload: Dict[str, Any]) -> None:
        try:
            await self._ws.send_str(jsonlib.dumps(payload))
        except (ConnectionError, aiohttp.ClientError) as e:
            raise TransportError(describe_error(e)) from e

    async def events(self) -> AsyncIterator[SocketEvent]:
        """
        Yield message/error/closed events until the socket closes

        Text frames that are not JSON objects are skipped.
        """
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    payload = jsonlib.loads(msg.data)
                except ValueError:
                    continue
                if isinstance(payload, dict):
                    yield SocketEvent(SocketEventKind.MESSAGE, payload=payload)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                yield SocketEvent(SocketEventKind.ERROR, error=describe_error(self._ws.exception()))
                return
        yield SocketEvent(SocketEventKind.CLOSED)


@asynccontextmanager
async def open_socket_channel(
    url: str,
    connect_timeout: float = 5.0,
    ssl: Union[bool, aiohttp.Fingerprint] = False,
) -> AsyncIterator[SocketChannel]:
    """
    Open a WebSocket and always tear it down on exit

    Raises:
        TransportError: when the socket cannot be opened in time
        aiohttp.ServerFingerprintMismatch: when `ssl` pins a different certificate
    """
    session = aiohttp.ClientSession()
    try:
        try:
            ws = await asyncio.wait_for(
                session.ws_connect(url, ssl=ssl, autoping=True),
                timeout=connect_timeout,
            )
        except asyncio.TimeoutError:
            raise ConnectionTimeoutError("Connection timeout. Is the TV on the same Wi-Fi?")
        except aiohttp.ServerFingerprintMismatch:
            raise
        except aiohttp.ClientError as e:
            raise TransportError(describe_error(e)) from e

        try:
            yield SocketChannel(ws)
        finally:
            await ws.close()
    finally:
        await session.close()


async def can_open_socket(
    url: str,
    timeout: float = 1.5,
    cancel_event: Optional[asyncio.Event] = None,
) -> bool:
    """Check whether a WebSocket handshake succeeds"""
    if cancel_event is not None and cancel_event.is_set():
        return False
    try:
        async with open_socket_channel(url, connect_timeout=timeout):
            return True
    except (TransportError, aiohttp.ClientError):
        return False
