"""
LG webOS TV Executor

For LG Smart TVs running webOS (2014+)
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from ..base import CommandExecutor
from ...models import DispatchResult
from ...errors import AuthenticationError, ProtocolError, TVRemoteError, TransportError
from ....models.credentials import LG_CLIENT_KEYS
from ....models.tv import DiscoveredDevice, RemoteCommand, TVBrand, TVProfile
from ....utils import transport
from ....utils.transport import SocketChannel, SocketEventKind

logger = logging.getLogger(__name__)

SEND_BUTTON_URI = "ssap://com.webos.service.networkinput/sendButton"
LAUNCH_URI = "ssap://com.webos.applicationManager/launch"

REGISTER_PERMISSIONS = [
    "LAUNCH",
    "LAUNCH_WEBAPP",
    "APP_TO_APP",
    "CLOSE",
    "TEST_OPEN",
    "TEST_PROTECTED",
    "CONTROL_AUDIO",
    "CONTROL_DISPLAY",
    "CONTROL_INPUT_JOYSTICK",
    "CONTROL_INPUT_MEDIA_PLAYBACK",
    "CONTROL_INPUT_TV",
    "CONTROL_POWER",
    "READ_APP_STATUS",
    "READ_CURRENT_CHANNEL",
    "READ_INPUT_DEVICE_LIST",
    "READ_NETWORK_STATE",
    "READ_RUNNING_APPS",
    "READ_TV_CHANNEL_LIST",
    "WRITE_NOTIFICATION_TOAST",
    "READ_POWER_STATE",
    "READ_COUNTRY_INFO",
    "WRITE_SETTINGS",
]

SIGNED_PERMISSIONS = [
    "CONTROL_AUDIO",
    "CONTROL_DISPLAY",
    "CONTROL_INPUT_JOYSTICK",
    "CONTROL_INPUT_MEDIA_PLAYBACK",
    "CONTROL_INPUT_TV",
    "CONTROL_POWER",
    "READ_APP_STATUS",
    "READ_CURRENT_CHANNEL",
    "READ_RUNNING_APPS",
    "READ_UPDATE_INFO",
    "READ_POWER_STATE",
]


def _button(name: str) -> Dict[str, Any]:
    return {"uri": SEND_BUTTON_URI, "payload": {"name": name}}


def register_payload(client_key: Optional[str] = None) -> Dict[str, Any]:
    """Pairing manifest sent on every connection"""
    payload = {
        "forcePairing": False,
        "pairingType": "PROMPT",
        "manifest": {
            "manifestVersion": 1,
            "appVersion": "1.1",
            "signed": {
                "created": "20140509",
                "appId": "com.lge.test",
                "vendorId": "com.lge",
                "localizedAppNames": {"": "LG Remote App"},
                "localizedVendorNames": {"": "LG Electronics"},
                "permissions": SIGNED_PERMISSIONS,
                "serial": "2f930e2d2cfe083771f68e4fe7bb07",
            },
            "permissions": REGISTER_PERMISSIONS,
        },
    }
    if client_key:
        payload["client-key"] = client_key
    return payload


class LGWebOSExecutor(CommandExecutor):
    """
    Executor for LG webOS TVs

    Protocol: SSAP over WebSocket
    Ports: 3000 (ws), 3001 (wss, newer firmware)
    Authentication: client-key granted after accepting the on-screen prompt
    """

    brand = TVBrand.LG
    label = "LG"

    KEY_MAP = {
        RemoteCommand.POWER: {"uri": "ssap://system/turnOff"},
        RemoteCommand.INPUT: {"uri": LAUNCH_URI, "payload": {"id": "com.webos.app.inputpicker"}},
        RemoteCommand.SETTINGS: {"uri": LAUNCH_URI, "payload": {"id": "com.palm.app.settings"}},
        RemoteCommand.UP: _button("UP"),
        RemoteCommand.DOWN: _button("DOWN"),
        RemoteCommand.LEFT: _button("LEFT"),
        RemoteCommand.RIGHT: _button("RIGHT"),
        RemoteCommand.OK: _button("ENTER"),
        RemoteCommand.BACK: _button("BACK"),
        RemoteCommand.HOME: _button("HOME"),
        RemoteCommand.VOLUME_UP: _button("VOLUMEUP"),
        RemoteCommand.VOLUME_DOWN: _button("VOLUMEDOWN"),
        RemoteCommand.CHANNEL_UP: _button("CHANNELUP"),
        RemoteCommand.CHANNEL_DOWN: _button("CHANNELDOWN"),
        RemoteCommand.MUTE: _button("MUTE"),
        RemoteCommand.PREVIOUS: _button("REWIND"),
        RemoteCommand.PLAY_PAUSE: _button("PLAY"),
        RemoteCommand.NEXT: _button("FASTFORWARD"),
        RemoteCommand.DIGIT_0: _button("0"),
        RemoteCommand.DIGIT_1: _button("1"),
        RemoteCommand.DIGIT_2: _button("2"),
        RemoteCommand.DIGIT_3: _button("3"),
        RemoteCommand.DIGIT_4: _button("4"),
        RemoteCommand.DIGIT_5: _button("5"),
        RemoteCommand.DIGIT_6: _button("6"),
        RemoteCommand.DIGIT_7: _button("7"),
        RemoteCommand.DIGIT_8: _button("8"),
        RemoteCommand.DIGIT_9: _button("9"),
        RemoteCommand.NUMPAD_BACKSPACE: _button("DELETE"),
        RemoteCommand.NUMPAD_ENTER: _button("ENTER"),
    }

    @staticmethod
    def socket_urls(host: str) -> List[str]:
        return [f"ws://{host}:3000", f"wss://{host}:3001"]

    async def _send(
        self,
        profile: TVProfile,
        command: RemoteCommand,
        request: Dict[str, Any]
    ) -> DispatchResult:
        async def attempt(client_key: Optional[str]) -> Optional[str]:
            return await self._send_request(profile.host, request, client_key)

        cached = self.store.get(LG_CLIENT_KEYS, profile)
        try:
            discovered = await self._with_credential_retry(profile, LG_CLIENT_KEYS, attempt)
        except TVRemoteError as e:
            raise type(e)(f"Unable to send LG command. {e}") from e

        if discovered and discovered != cached:
            logger.info(f"LG TV {profile.host} granted a client key")
            self.store.set(LG_CLIENT_KEYS, profile, discovered)

        return DispatchResult.success("Command sent to LG TV.")

    async def _send_request(
        self,
        host: str,
        request: Dict[str, Any],
        client_key: Optional[str]
    ) -> Optional[str]:
        timeout = self.config.LG_KEY_TIMEOUT if client_key else self.config.LG_PROMPT_TIMEOUT
        last_error = None

        for url in self.socket_urls(host):
            try:
                async with transport.open_socket_channel(url, connect_timeout=timeout) as channel:
                    return await asyncio.wait_for(
                        self._exchange(channel, request, client_key),
                        timeout=timeout
                    )
            except asyncio.TimeoutError:
                last_error = TransportError("LG TV connection timeout. Is the TV on the same Wi-Fi?")
            except TransportError as e:
                last_error = e
            logger.debug(f"LG {url} failed: {last_error}")

        raise last_error or TransportError("LG adapter failed to connect.")

    async def _exchange(
        self,
        channel: SocketChannel,
        request: Dict[str, Any],
        client_key: Optional[str]
    ) -> Optional[str]:
        """
        Register, then send the request once the TV confirms registration

        Returns:
            The client key in effect (cached or newly granted)
        """
        register_id = f"register_{uuid.uuid4().hex[:8]}"
        request_id = f"request_{uuid.uuid4().hex[:8]}"
        discovered = client_key
        request_sent = False

        await channel.send_json({
            "id": register_id,
            "type": "register",
            "payload": register_payload(client_key),
        })

        async for event in channel.events():
            if event.kind == SocketEventKind.ERROR:
                raise TransportError("LG adapter connection failed.")
            if event.kind == SocketEventKind.CLOSED:
                break

            message = event.payload
            payload = message.get("payload")
            if not isinstance(payload, dict):
                payload = {}
            message_id = message.get("id")
            message_type = message.get("type")

            granted = payload.get("client-key")
            if isinstance(granted, str) and granted:
                discovered = granted

            if message_type == "error":
                details = str(message.get("error") or "").strip() or "request failed"
                if message_id == register_id:
                    raise AuthenticationError(f"LG TV denied remote authorization ({details}).")
                if message_id == request_id:
                    raise ProtocolError(f"LG TV rejected command ({details}).")
                continue

            if message_type == "registered":
                if not request_sent:
                    request_sent = True
                    await channel.send_json({
                        "id": request_id,
                        "type": "request",
                        "uri": request["uri"],
                        "payload": request.get("payload", {}),
                    })
                continue

            if message_id == register_id and message_type == "response":
                if payload.get("returnValue") is False:
                    raise AuthenticationError("LG TV rejected registration response.")
                # Pairing prompt is on screen, wait for "registered"
                continue

            if message_id == request_id and message_type == "response":
                if payload.get("returnValue") is False:
                    raise ProtocolError("LG TV command returned returnValue=false.")
                return discovered

        raise TransportError("LG TV socket closed before command response.")

    async def probe(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None,
        thorough: bool = False
    ) -> Optional[DiscoveredDevice]:
        nickname = f"LG TV ({host})"

        response = await self._probe_fetch(f"http://{host}:3000/", 0.42, cancel_event)
        if response is not None and response.status < 500:
            return self._device(host, 3000, nickname, suffix="-http3000")

        if not thorough or (cancel_event is not None and cancel_event.is_set()):
            return None

        for url, port in ((f"ws://{host}:3000", 3000), (f"wss://{host}:3001", 3001)):
            if await transport.can_open_socket(url, timeout=self._probe_timeout(0.9), cancel_event=cancel_event):
                return self._device(host, port, nickname, suffix=f"-ws{port}")

        return None
