"""
Philips TV Executor

For Philips TVs with the JointSpace REST API
"""

import asyncio
import logging
from typing import List, Optional

from ..base import CommandExecutor
from ...models import DispatchResult
from ...errors import AuthenticationError, ProtocolError, TransportError
from ....models.tv import DiscoveredDevice, RemoteCommand, TVBrand, TVProfile
from ....utils import transport

logger = logging.getLogger(__name__)


class PhilipsExecutor(CommandExecutor):
    """
    Executor for Philips TVs

    Protocol: JointSpace JSON API
    Port: 1925 (HTTP), 1926 (HTTPS, Android models)
    API versions: /6 (2016+), /1 (older)
    """

    brand = TVBrand.PHILIPS
    label = "Philips"

    KEY_MAP = {
        RemoteCommand.POWER: "Standby",
        RemoteCommand.INPUT: "Source",
        RemoteCommand.UP: "CursorUp",
        RemoteCommand.DOWN: "CursorDown",
        RemoteCommand.LEFT: "CursorLeft",
        RemoteCommand.RIGHT: "CursorRight",
        RemoteCommand.OK: "Confirm",
        RemoteCommand.BACK: "Back",
        RemoteCommand.HOME: "Home",
        RemoteCommand.SETTINGS: "Options",
        RemoteCommand.VOLUME_UP: "VolumeUp",
        RemoteCommand.VOLUME_DOWN: "VolumeDown",
        RemoteCommand.CHANNEL_UP: "ChannelStepUp",
        RemoteCommand.CHANNEL_DOWN: "ChannelStepDown",
        RemoteCommand.MUTE: "Mute",
        RemoteCommand.PREVIOUS: "Previous",
        RemoteCommand.PLAY_PAUSE: "PlayPause",
        RemoteCommand.NEXT: "Next",
        RemoteCommand.DIGIT_0: "Digit0",
        RemoteCommand.DIGIT_1: "Digit1",
        RemoteCommand.DIGIT_2: "Digit2",
        RemoteCommand.DIGIT_3: "Digit3",
        RemoteCommand.DIGIT_4: "Digit4",
        RemoteCommand.DIGIT_5: "Digit5",
        RemoteCommand.DIGIT_6: "Digit6",
        RemoteCommand.DIGIT_7: "Digit7",
        RemoteCommand.DIGIT_8: "Digit8",
        RemoteCommand.DIGIT_9: "Digit9",
        RemoteCommand.NUMPAD_BACKSPACE: "Back",
        RemoteCommand.NUMPAD_ENTER: "Confirm",
    }

    @staticmethod
    def command_urls(host: str, preferred_port: Optional[int] = None) -> List[str]:
        ports = []
        for port in (preferred_port, 1925, 1926):
            if port is not None and port not in ports:
                ports.append(port)

        urls = []
        for port in ports:
            scheme = "https" if port == 1926 else "http"
            urls.append(f"{scheme}://{host}:{port}/6/input/key")
            urls.append(f"{scheme}://{host}:{port}/1/input/key")
        return urls

    async def _send(self, profile: TVProfile, command: RemoteCommand, key: str) -> DispatchResult:
        unauthorized = False
        last_status = None
        last_error = None

        for url in self.command_urls(profile.host, profile.port):
            for method in ("POST", "PUT"):
                try:
                    response = await transport.fetch_with_timeout(
                        url,
                        method=method,
                        headers={"Accept": "application/json"},
                        json={"key": key},
                        timeout=self.config.PHILIPS_REQUEST_TIMEOUT
                    )
                except TransportError as e:
                    logger.debug(f"Philips {method} {url} failed: {e}")
                    last_error = e
                    continue

                if response.ok:
                    return DispatchResult.success("Command sent to Philips TV.")

                last_status = response.status
                if response.status in (401, 403):
                    unauthorized = True

        if unauthorized:
            raise AuthenticationError(
                "Philips TV denied the command. Enable JointSpace/IP control and pairing on the TV."
            )

        if last_status is not None:
            raise ProtocolError(f"Philips TV rejected command ({last_status}).")

        raise TransportError(f"Unable to send Philips command. {transport.describe_error(last_error)}")

    async def probe(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None,
        thorough: bool = False
    ) -> Optional[DiscoveredDevice]:
        for url in (f"http://{host}:1925/6/system", f"http://{host}:1925/1/system"):
            response = await self._probe_fetch(url, 0.5, cancel_event)
            if response is None:
                continue

            if response.status in (401, 403):
                return self._device(host, 1925, f"Philips TV ({host})", suffix="-auth")

            if not response.ok and response.status >= 500:
                continue

            normalized = response.text.lower()
            if not any(marker in normalized for marker in ("philips", "jointspace", "ambilight", "featuring")):
                continue

            nickname = f"Philips TV ({host})"
            payload = response.json()
            if isinstance(payload, dict):
                label = " ".join(
                    value.strip() for value in (payload.get("name"), payload.get("model"))
                    if isinstance(value, str) and value.strip()
                )
                nickname = label or nickname

            return self._device(host, 1925, nickname)

        return None
