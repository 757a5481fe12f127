"""
Roku Device Executor

For Roku streaming devices and Roku TVs
"""

import asyncio
import logging
import re
from typing import Optional
from urllib.parse import quote

from ..base import CommandExecutor
from ...models import DispatchResult
from ...errors import ProtocolError
from ....models.tv import DiscoveredDevice, RemoteCommand, TVBrand, TVProfile
from ....utils import transport

logger = logging.getLogger(__name__)


def parse_tag(xml: str, tag: str) -> Optional[str]:
    """Text of the first <tag>...</tag>, or None"""
    match = re.search(rf"<{tag}>(.*?)</{tag}>", xml, re.IGNORECASE | re.DOTALL)
    if not match:
        return None
    return match.group(1).strip()


class RokuExecutor(CommandExecutor):
    """
    Executor for Roku devices

    Protocol: ECP (External Control Protocol) - HTTP REST API
    Port: 8060
    Authentication: None
    Documentation: https://developer.roku.com/docs/developer-program/debugging/external-control-api.md
    """

    brand = TVBrand.ROKU
    label = "Roku"
    DEFAULT_PORT = 8060

    # Roku ECP key codes
    KEY_MAP = {
        RemoteCommand.POWER: "Power",
        RemoteCommand.INPUT: "InputTuner",
        RemoteCommand.UP: "Up",
        RemoteCommand.DOWN: "Down",
        RemoteCommand.LEFT: "Left",
        RemoteCommand.RIGHT: "Right",
        RemoteCommand.OK: "Select",
        RemoteCommand.BACK: "Back",
        RemoteCommand.HOME: "Home",
        RemoteCommand.SETTINGS: "Info",  # Roku uses * button for options
        RemoteCommand.VOLUME_UP: "VolumeUp",
        RemoteCommand.VOLUME_DOWN: "VolumeDown",
        RemoteCommand.CHANNEL_UP: "ChannelUp",
        RemoteCommand.CHANNEL_DOWN: "ChannelDown",
        RemoteCommand.MUTE: "VolumeMute",
        RemoteCommand.PREVIOUS: "Rev",
        RemoteCommand.PLAY_PAUSE: "Play",
        RemoteCommand.NEXT: "Fwd",
        RemoteCommand.DIGIT_0: "Lit_0",
        RemoteCommand.DIGIT_1: "Lit_1",
        RemoteCommand.DIGIT_2: "Lit_2",
        RemoteCommand.DIGIT_3: "Lit_3",
        RemoteCommand.DIGIT_4: "Lit_4",
        RemoteCommand.DIGIT_5: "Lit_5",
        RemoteCommand.DIGIT_6: "Lit_6",
        RemoteCommand.DIGIT_7: "Lit_7",
        RemoteCommand.DIGIT_8: "Lit_8",
        RemoteCommand.DIGIT_9: "Lit_9",
        RemoteCommand.NUMPAD_BACKSPACE: "Backspace",
        RemoteCommand.NUMPAD_ENTER: "Enter",
    }

    async def _send(self, profile: TVProfile, command: RemoteCommand, key: str) -> DispatchResult:
        port = profile.port or self.DEFAULT_PORT
        url = f"http://{profile.host}:{port}/keypress/{quote(key)}"

        response = await transport.fetch_with_timeout(
            url,
            method="POST",
            timeout=self.config.ROKU_REQUEST_TIMEOUT
        )

        if not response.ok:
            raise ProtocolError(f"Roku rejected command ({response.status}).")

        logger.debug(f"Roku {profile.host} accepted {key}")
        return DispatchResult.success("Command sent to Roku TV.")

    async def probe(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None,
        thorough: bool = False
    ) -> Optional[DiscoveredDevice]:
        response = await self._probe_fetch(
            f"http://{host}:{self.DEFAULT_PORT}/query/device-info", 0.5, cancel_event
        )
        if response is None or not response.ok:
            return None

        friendly_name = parse_tag(response.text, "friendly-device-name")
        return self._device(host, self.DEFAULT_PORT, friendly_name or "ROKU TV")
