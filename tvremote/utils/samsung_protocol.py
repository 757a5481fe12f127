"""
Samsung remote-control channel message helpers

Shared by the plain WebSocket executor and the pinned TLS channel.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from ..commands.errors import AuthenticationError, TransportError
from .transport import SocketChannel, SocketEventKind, base64_encode_ascii

logger = logging.getLogger(__name__)

CHANNEL_PATH = "/api/v2/channels/samsung.remote.control"

EVENT_UNAUTHORIZED = "ms.channel.unauthorized"
EVENT_CONNECT = "ms.channel.connect"


def channel_path(app_name: str, token: Optional[str] = None) -> str:
    """Channel path with the base64 app name and optional pairing token"""
    path = f"{CHANNEL_PATH}?name={base64_encode_ascii(app_name)}"
    if token:
        path += f"&token={quote(token, safe='')}"
    return path


def remote_key_payload(key: str) -> Dict[str, Any]:
    return {
        "method": "ms.remote.control",
        "params": {
            "Cmd": "Click",
            "DataOfCmd": key,
            "Option": "false",
            "TypeOfRemote": "SendRemoteKey",
        },
    }


def _token_value(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    return None


def extract_token(message: Dict[str, Any]) -> Optional[str]:
    """
    Pull the pairing token out of an ms.channel.connect event

    The token is either data.token or the first client attribute token,
    sent as a string or a number depending on firmware.
    """
    data = message.get("data")
    if not isinstance(data, dict):
        return None

    token = _token_value(data.get("token"))
    if token:
        return token

    clients = data.get("clients")
    if not isinstance(clients, list):
        return None
    for client in clients:
        attributes = client.get("attributes") if isinstance(client, dict) else None
        if isinstance(attributes, dict):
            token = _token_value(attributes.get("token"))
            if token:
                return token
    return None


async def read_token(channel: SocketChannel) -> Optional[str]:
    """
    Consume channel events after a key was sent

    Returns:
        The issued token, or None when the TV closed the socket without one

    Raises:
        AuthenticationError: the TV refused this remote
        TransportError: the socket failed
    """
    async for event in channel.events():
        if event.kind == SocketEventKind.MESSAGE:
            name = event.payload.get("event")
            if name == EVENT_UNAUTHORIZED:
                raise AuthenticationError("Samsung TV denied remote authorization.")
            if name == EVENT_CONNECT:
                token = extract_token(event.payload)
                if token:
                    return token
        elif event.kind == SocketEventKind.ERROR:
            raise TransportError("Samsung adapter connection failed.")
        else:
            logger.debug("Samsung socket closed without issuing a token")
            return None
    return None
