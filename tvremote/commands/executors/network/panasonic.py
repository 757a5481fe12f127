"""
Panasonic Viera TV Executor

For Panasonic Viera TVs using the UPnP network remote control service
"""

import asyncio
import logging
import re
from typing import List, Optional

from ..base import CommandExecutor
from .roku import parse_tag
from ...models import DispatchResult
from ...errors import AuthenticationError, ProtocolError, TransportError
from ....models.tv import DiscoveredDevice, RemoteCommand, TVBrand, TVProfile
from ....utils import transport

logger = logging.getLogger(__name__)

SERVICE_URN = "urn:panasonic-com:service:p00NetworkControl:1"

SEND_KEY_ENVELOPE = """<?xml version="1.0" encoding="utf-8"?>
<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/" s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">
  <s:Body>
    <u:X_SendKey xmlns:u="{urn}">
      <X_KeyEvent>{key}</X_KeyEvent>
    </u:X_SendKey>
  </s:Body>
</s:Envelope>"""

_FAULT = re.compile(r"<\s*(?:\w+:)?fault", re.IGNORECASE)
_FAULT_STRING = re.compile(r"<faultstring>(.*?)</faultstring>", re.IGNORECASE | re.DOTALL)
_AUTH_FAULT = re.compile(r"auth|forbid|denied|not allowed|session|authorize", re.IGNORECASE)


def is_soap_fault(body: str) -> bool:
    return bool(_FAULT.search(body))


def extract_fault_string(body: str) -> Optional[str]:
    """Collapsed <faultstring> text of a SOAP fault, if any"""
    match = _FAULT_STRING.search(body)
    if not match:
        return None
    value = re.sub(r"\s+", " ", match.group(1)).strip()
    return value or None


class PanasonicExecutor(CommandExecutor):
    """
    Executor for Panasonic Viera TVs

    Protocol: SOAP over HTTP (p00NetworkControl X_SendKey)
    Port: 55000
    Authentication: None on most models ("TV Remote App" must be enabled)
    """

    brand = TVBrand.PANASONIC
    label = "Panasonic"

    KEY_MAP = {
        RemoteCommand.POWER: "NRC_POWER-ONOFF",
        RemoteCommand.INPUT: "NRC_CHG_INPUT-ONOFF",
        RemoteCommand.UP: "NRC_UP-ONOFF",
        RemoteCommand.DOWN: "NRC_DOWN-ONOFF",
        RemoteCommand.LEFT: "NRC_LEFT-ONOFF",
        RemoteCommand.RIGHT: "NRC_RIGHT-ONOFF",
        RemoteCommand.OK: "NRC_ENTER-ONOFF",
        RemoteCommand.BACK: "NRC_RETURN-ONOFF",
        RemoteCommand.HOME: "NRC_HOME-ONOFF",
        RemoteCommand.SETTINGS: "NRC_SUBMENU-ONOFF",
        RemoteCommand.VOLUME_UP: "NRC_VOLUP-ONOFF",
        RemoteCommand.VOLUME_DOWN: "NRC_VOLDOWN-ONOFF",
        RemoteCommand.CHANNEL_UP: "NRC_CH_UP-ONOFF",
        RemoteCommand.CHANNEL_DOWN: "NRC_CH_DOWN-ONOFF",
        RemoteCommand.MUTE: "NRC_MUTE-ONOFF",
        RemoteCommand.PREVIOUS: "NRC_REW-ONOFF",
        RemoteCommand.PLAY_PAUSE: "NRC_PLAY-ONOFF",
        RemoteCommand.NEXT: "NRC_FF-ONOFF",
        RemoteCommand.DIGIT_0: "NRC_D0-ONOFF",
        RemoteCommand.DIGIT_1: "NRC_D1-ONOFF",
        RemoteCommand.DIGIT_2: "NRC_D2-ONOFF",
        RemoteCommand.DIGIT_3: "NRC_D3-ONOFF",
        RemoteCommand.DIGIT_4: "NRC_D4-ONOFF",
        RemoteCommand.DIGIT_5: "NRC_D5-ONOFF",
        RemoteCommand.DIGIT_6: "NRC_D6-ONOFF",
        RemoteCommand.DIGIT_7: "NRC_D7-ONOFF",
        RemoteCommand.DIGIT_8: "NRC_D8-ONOFF",
        RemoteCommand.DIGIT_9: "NRC_D9-ONOFF",
        RemoteCommand.NUMPAD_BACKSPACE: "NRC_RETURN-ONOFF",
        RemoteCommand.NUMPAD_ENTER: "NRC_ENTER-ONOFF",
    }

    @staticmethod
    def control_urls(host: str, preferred_port: Optional[int] = None) -> List[str]:
        ports = []
        for port in (preferred_port, 55000):
            if port is not None and port not in ports:
                ports.append(port)
        return [f"http://{host}:{port}/nrc/control_0" for port in ports]

    async def _send(self, profile: TVProfile, command: RemoteCommand, key: str) -> DispatchResult:
        unauthorized = False
        last_status = None
        last_fault = None
        last_error = None

        headers = {
            "Content-Type": 'text/xml; charset="utf-8"',
            "SOAPACTION": f'"{SERVICE_URN}#X_SendKey"',
            "Accept": "text/xml, application/xml, */*",
        }
        body = SEND_KEY_ENVELOPE.format(urn=SERVICE_URN, key=key)

        for url in self.control_urls(profile.host, profile.port):
            try:
                response = await transport.fetch_with_timeout(
                    url,
                    method="POST",
                    headers=headers,
                    data=body,
                    timeout=self.config.PANASONIC_REQUEST_TIMEOUT
                )
            except TransportError as e:
                logger.debug(f"Panasonic {url} failed: {e}")
                last_error = e
                continue

            if response.ok and not is_soap_fault(response.text):
                return DispatchResult.success("Command sent to Panasonic TV.")

            last_status = response.status
            if response.status in (401, 403):
                unauthorized = True

            fault = extract_fault_string(response.text)
            if fault:
                last_fault = fault
                if _AUTH_FAULT.search(fault):
                    unauthorized = True

        if unauthorized:
            raise AuthenticationError(
                "Panasonic TV denied the command. Enable TV Remote App / Network Remote Control in TV settings."
            )

        if last_fault:
            raise ProtocolError(f"Panasonic TV returned a SOAP fault: {last_fault}")

        if last_status is not None:
            raise ProtocolError(f"Panasonic TV rejected command ({last_status}).")

        raise TransportError(f"Unable to send Panasonic command. {transport.describe_error(last_error)}")

    async def probe(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None,
        thorough: bool = False
    ) -> Optional[DiscoveredDevice]:
        for url in (f"http://{host}:55000/nrc/sdd_0.xml", f"http://{host}:55000/nrc/ddd.xml"):
            response = await self._probe_fetch(url, 0.5, cancel_event)
            if response is None:
                continue

            if response.status in (401, 403):
                return self._device(host, 55000, f"Panasonic TV ({host})", suffix="-auth")

            if not response.ok and response.status >= 500:
                continue

            normalized = response.text.lower()
            markers = ("panasonic", "viera", "p00networkcontrol", "x_sendkey")
            if not any(marker in normalized for marker in markers):
                continue

            nickname = (
                parse_tag(response.text, "friendlyName")
                or parse_tag(response.text, "modelName")
                or f"Panasonic TV ({host})"
            )
            return self._device(host, 55000, nickname)

        return None
