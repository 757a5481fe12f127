"""
Amazon Fire TV Executor

Fire TV has no open IP remote protocol; commands go through the
bridge, which is expected to speak ADB.
"""

import asyncio
import logging
import re
from typing import Optional

from ..base import CommandExecutor
from .bridge import BridgeExecutor
from .roku import parse_tag
from ...models import DispatchResult
from ....models.tv import DiscoveredDevice, RemoteCommand, TVBrand, TVProfile

logger = logging.getLogger(__name__)


def looks_like_fire_tv(value: str) -> bool:
    normalized = value.lower()
    return (
        "fire tv" in normalized
        or "amazon" in normalized
        or "<modelname>aft" in normalized
    )


class FireTVExecutor(CommandExecutor):
    """Executor for Fire TV sticks and Fire TV Edition sets"""

    brand = TVBrand.FIRETV
    label = "Fire TV"
    KEY_MAP = BridgeExecutor.KEY_MAP

    def __init__(self, *args, bridge: Optional[BridgeExecutor] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.bridge = bridge or BridgeExecutor(self.store, self.config)

    async def _send(self, profile: TVProfile, command: RemoteCommand, key: str) -> DispatchResult:
        result = await self.bridge.execute(profile, command)
        if result.ok:
            return DispatchResult.success("Command sent to Fire TV.")

        return DispatchResult.failure(
            f"Fire TV control requires bridge/ADB integration. {result.message}",
            result.error
        )

    async def probe(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None,
        thorough: bool = False
    ) -> Optional[DiscoveredDevice]:
        # DIAL descriptor first
        response = await self._probe_fetch(
            f"http://{host}:8009/ssdp/device-desc.xml", 0.5, cancel_event
        )
        if response is not None and response.ok:
            manufacturer = parse_tag(response.text, "manufacturer") or ""
            model_name = parse_tag(response.text, "modelName") or ""
            friendly_name = parse_tag(response.text, "friendlyName") or ""
            merged = f"{manufacturer} {model_name} {friendly_name}"
            if looks_like_fire_tv(merged) or re.match(r"^aft", model_name, re.IGNORECASE):
                return self._device(host, 8009, friendly_name or model_name or f"Fire TV ({host})")

        response = await self._probe_fetch(
            f"http://{host}:8008/setup/eureka_info", 0.5, cancel_event
        )
        if response is not None and response.ok and looks_like_fire_tv(response.text):
            return self._device(host, 8008, f"Fire TV ({host})", suffix="-cast")

        return None
