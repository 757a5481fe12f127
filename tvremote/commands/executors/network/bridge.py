"""
TV Bridge Executor

Forwards commands to a local bridge service that translates them for
TVs without a direct protocol. Also used as the last-resort fallback.
"""

import asyncio
import logging
from typing import Optional

from ..base import CommandExecutor
from ...models import DispatchResult
from ...errors import ProtocolError, TransportError
from ....models.tv import DiscoveredDevice, ProbeSource, RemoteCommand, TVBrand, TVProfile
from ....utils import transport

logger = logging.getLogger(__name__)


class BridgeExecutor(CommandExecutor):
    """
    Executor for the HTTP bridge

    Protocol: JSON over HTTP
    Port: 8080 (or the profile port)
    Endpoints: GET /remote/ping, POST /remote/command
    """

    brand = TVBrand.OTHER
    label = "TV bridge"

    # Bridge command names, every command is forwarded
    KEY_MAP = {command: command.name for command in RemoteCommand}

    async def _send(self, profile: TVProfile, command: RemoteCommand, key: str) -> DispatchResult:
        port = profile.port or self.config.BRIDGE_DEFAULT_PORT
        base_url = f"http://{profile.host}:{port}"

        try:
            ping = await transport.fetch_with_timeout(
                f"{base_url}/remote/ping",
                timeout=self.config.BRIDGE_PING_TIMEOUT
            )
        except TransportError:
            raise TransportError("Unable to reach TV bridge ping endpoint over Wi-Fi.")

        # A bridge without a ping route still answers 404
        if not ping.ok and ping.status != 404:
            raise ProtocolError(f"TV bridge ping failed ({ping.status}).")

        payload = {
            "brand": profile.brand.value,
            "command": key,
            "nickname": profile.nickname,
        }

        try:
            response = await transport.fetch_with_timeout(
                f"{base_url}/remote/command",
                method="POST",
                json=payload,
                timeout=self.config.BRIDGE_COMMAND_TIMEOUT
            )
        except TransportError as e:
            raise TransportError(f"Unable to reach TV bridge over Wi-Fi. {e}")

        if not response.ok:
            raise ProtocolError(f"TV bridge rejected command ({response.status}).")

        logger.info(f"Bridge at {profile.host}:{port} accepted {key}")
        return DispatchResult.success("Command sent.")

    async def probe(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None,
        thorough: bool = False
    ) -> Optional[DiscoveredDevice]:
        port = self.config.BRIDGE_DEFAULT_PORT
        response = await self._probe_fetch(f"http://{host}:{port}/remote/ping", 0.36, cancel_event)
        if response is None or not response.ok:
            return None
        return self._device(host, port, f"TV Bridge ({host})", source=ProbeSource.BRIDGE)
