"""
Samsung Tizen TV Executor

For Samsung Smart TVs (2016+) using the remote-control WebSocket channel
"""

import asyncio
import logging
from typing import List, Optional

from ..base import CommandExecutor
from ...models import DispatchResult
from ...errors import (
    AuthenticationError,
    SecureChannelError,
    SecureChannelFailure,
    TVRemoteError,
    TransportError,
)
from ....models.credentials import SAMSUNG_CERTS, SAMSUNG_TOKENS
from ....models.tv import DiscoveredDevice, RemoteCommand, TVBrand, TVProfile
from ....services.secure_channel import SecureChannel
from ....utils import samsung_protocol, transport

logger = logging.getLogger(__name__)


class SamsungExecutor(CommandExecutor):
    """
    Executor for Samsung Tizen TVs

    Protocol: JSON over WebSocket (ms.remote.control)
    Ports: 8001 (ws), 8002 (wss)
    Authentication: token issued after the user accepts the on-screen prompt
    """

    brand = TVBrand.SAMSUNG
    label = "Samsung"

    KEY_MAP = {
        RemoteCommand.POWER: "KEY_POWER",
        RemoteCommand.INPUT: "KEY_SOURCE",
        RemoteCommand.UP: "KEY_UP",
        RemoteCommand.DOWN: "KEY_DOWN",
        RemoteCommand.LEFT: "KEY_LEFT",
        RemoteCommand.RIGHT: "KEY_RIGHT",
        RemoteCommand.OK: "KEY_ENTER",
        RemoteCommand.BACK: "KEY_RETURN",
        RemoteCommand.HOME: "KEY_HOME",
        RemoteCommand.SETTINGS: "KEY_MENU",
        RemoteCommand.VOLUME_UP: "KEY_VOLUP",
        RemoteCommand.VOLUME_DOWN: "KEY_VOLDOWN",
        RemoteCommand.CHANNEL_UP: "KEY_CHUP",
        RemoteCommand.CHANNEL_DOWN: "KEY_CHDOWN",
        RemoteCommand.MUTE: "KEY_MUTE",
        RemoteCommand.PREVIOUS: "KEY_REWIND",
        RemoteCommand.PLAY_PAUSE: "KEY_PLAY",
        RemoteCommand.NEXT: "KEY_FF",
        RemoteCommand.DIGIT_0: "KEY_0",
        RemoteCommand.DIGIT_1: "KEY_1",
        RemoteCommand.DIGIT_2: "KEY_2",
        RemoteCommand.DIGIT_3: "KEY_3",
        RemoteCommand.DIGIT_4: "KEY_4",
        RemoteCommand.DIGIT_5: "KEY_5",
        RemoteCommand.DIGIT_6: "KEY_6",
        RemoteCommand.DIGIT_7: "KEY_7",
        RemoteCommand.DIGIT_8: "KEY_8",
        RemoteCommand.DIGIT_9: "KEY_9",
        RemoteCommand.NUMPAD_BACKSPACE: "KEY_RETURN",
        RemoteCommand.NUMPAD_ENTER: "KEY_ENTER",
    }

    def __init__(self, *args, secure_channel: Optional[SecureChannel] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.secure_channel = secure_channel or SecureChannel(self.config)

    def channel_urls(self, host: str, token: Optional[str] = None) -> List[str]:
        path = samsung_protocol.channel_path(self.config.REMOTE_APP_NAME, token)
        return [f"ws://{host}:8001{path}", f"wss://{host}:8002{path}"]

    async def _send(self, profile: TVProfile, command: RemoteCommand, key: str) -> DispatchResult:
        async def attempt(token: Optional[str]):
            if self.config.SAMSUNG_PINNED_TLS:
                await self._send_pinned(profile, key, token)
            else:
                await self._send_plain(profile, key, token)

        try:
            await self._with_credential_retry(profile, SAMSUNG_TOKENS, attempt)
        except SecureChannelError:
            raise
        except TVRemoteError as e:
            raise type(e)(f"Unable to send Samsung command. {e}") from e

        return DispatchResult.success("Command sent to Samsung TV.")

    async def _send_plain(self, profile: TVProfile, key: str, token: Optional[str]):
        last_error = None

        for url in self.channel_urls(profile.host, token):
            try:
                issued = await self._send_via_url(url, key, has_token=bool(token))
            except TransportError as e:
                logger.debug(f"Samsung {url} failed: {e}")
                last_error = e
                continue

            if issued:
                logger.info(f"Samsung TV {profile.host} issued a new token")
                self.store.set(SAMSUNG_TOKENS, profile, issued)
            return

        raise last_error or TransportError("Samsung adapter failed to connect.")

    async def _send_via_url(self, url: str, key: str, has_token: bool) -> Optional[str]:
        timeout = self.config.SAMSUNG_TOKEN_TIMEOUT if has_token else self.config.SAMSUNG_PROMPT_TIMEOUT

        async with transport.open_socket_channel(
            url,
            connect_timeout=self.config.SAMSUNG_CONNECT_TIMEOUT
        ) as channel:
            await channel.send_json(samsung_protocol.remote_key_payload(key))
            try:
                return await asyncio.wait_for(samsung_protocol.read_token(channel), timeout=timeout)
            except asyncio.TimeoutError:
                raise TransportError("Samsung TV connection timeout. Is the TV on the same Wi-Fi?")

    async def _send_pinned(self, profile: TVProfile, key: str, token: Optional[str]):
        pinned = self.store.get(SAMSUNG_CERTS, profile)
        try:
            result = await self.secure_channel.send_pinned(profile.host, key, token, pinned)
        except SecureChannelError as e:
            if e.reason == SecureChannelFailure.UNAUTHORIZED:
                # Token is rejected, the pin stays
                raise AuthenticationError(str(e)) from e
            raise

        if result.token:
            self.store.set(SAMSUNG_TOKENS, profile, result.token)
        if result.certificate_fingerprint and not pinned:
            logger.info(f"Pinned Samsung certificate for {profile.credential_key}")
            self.store.set(SAMSUNG_CERTS, profile, result.certificate_fingerprint)

    def clear_certificate_pin(self, profile: TVProfile) -> DispatchResult:
        """Forget the pinned certificate and token so the TV can be paired again"""
        self.store.delete(SAMSUNG_CERTS, profile)
        self.store.delete(SAMSUNG_TOKENS, profile)
        return DispatchResult.success("Samsung pairing cleared. Accept the prompt on the TV to pair again.")

    async def probe(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None,
        thorough: bool = False
    ) -> Optional[DiscoveredDevice]:
        fallback_nickname = f"Samsung TV ({host})"

        response = await self._probe_fetch(f"http://{host}:8001/api/v2/", 0.65, cancel_event)
        if response is not None:
            payload = response.json()
            device = payload.get("device") if isinstance(payload, dict) else None
            device_name = ""
            model_name = ""
            if isinstance(device, dict):
                device_name = device.get("name") or ""
                model_name = device.get("modelName") or ""

            fingerprint = response.text.lower()
            looks_samsung = any(marker in fingerprint for marker in ("samsung", "tizen", "smarttv"))
            if device_name or model_name or (response.status < 500 and looks_samsung):
                return self._device(host, 8001, device_name or model_name or fallback_nickname)

        if not thorough or (cancel_event is not None and cancel_event.is_set()):
            return None

        path = samsung_protocol.channel_path(self.config.REMOTE_APP_NAME)
        for scheme, port in (("ws", 8001), ("wss", 8002)):
            if await transport.can_open_socket(
                f"{scheme}://{host}:{port}{path}",
                timeout=self._probe_timeout(0.7),
                cancel_event=cancel_event
            ):
                return self._device(host, port, fallback_nickname, suffix=f"-ws{port}")

        return None
