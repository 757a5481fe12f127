"""
Sony Bravia TV Executor

For Sony Bravia TVs using the REST API with IRCC commands
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from ..base import CommandExecutor
from ...models import DispatchResult, SonyPairingRequest
from ...errors import AuthenticationError, ConfigurationError, ErrorKind, ProtocolError, TransportError
from ....models.credentials import SONY_PSK, SONY_REMOTE_CODES
from ....models.tv import DiscoveredDevice, RemoteCommand, TVBrand, TVProfile
from ....utils import transport
from ....utils.transport import HttpResponse

logger = logging.getLogger(__name__)

IRCC_ENVELOPE = (
    '<?xml version="1.0"?>'
    '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/" '
    's:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
    "<s:Body>"
    '<u:X_SendIRCC xmlns:u="urn:schemas-sony-com:service:IRCC:1">'
    "<IRCCCode>{code}</IRCCCode>"
    "</u:X_SendIRCC>"
    "</s:Body>"
    "</s:Envelope>"
)

PAIRING_PROMPT = "Enter your Sony TV Pre-Shared Key (IP Control) to authorize this remote."


def normalize_code_name(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


def is_unauthorized(status: int, body: Any) -> bool:
    """401/403 either as HTTP status or as the JSON-RPC error code"""
    if status in (401, 403):
        return True
    if not isinstance(body, dict):
        return False
    error = body.get("error")
    if not isinstance(error, list) or not error:
        return False
    return error[0] in (401, 403)


def extract_remote_codes(body: Any) -> Dict[str, str]:
    """Normalized key name -> IRCC code from getRemoteControllerInfo"""
    if not isinstance(body, dict):
        return {}
    result = body.get("result")
    if not isinstance(result, list) or len(result) < 2 or not isinstance(result[1], list):
        return {}

    codes = {}
    for entry in result[1]:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        value = entry.get("value")
        if not isinstance(name, str) or not isinstance(value, str):
            continue
        if name.strip() and value.strip():
            codes[normalize_code_name(name.strip())] = value.strip()
    return codes


class SonyBraviaExecutor(CommandExecutor):
    """
    Executor for Sony Bravia TVs

    Protocol: JSON-RPC for discovery of IRCC codes, SOAP for key presses
    Port: 80 (also tries 10000 and 443)
    Authentication: Pre-Shared Key (X-Auth-PSK header)

    The IRCC code table differs per model, so it is fetched from the TV
    and cached alongside the PSK.
    """

    brand = TVBrand.SONY
    label = "Sony"

    # Candidate IRCC names per command, in priority order
    KEY_MAP = {
        RemoteCommand.POWER: ["Power", "PowerOff", "TvPower"],
        RemoteCommand.INPUT: ["Input", "TvInput", "InputSelect"],
        RemoteCommand.UP: ["Up"],
        RemoteCommand.DOWN: ["Down"],
        RemoteCommand.LEFT: ["Left"],
        RemoteCommand.RIGHT: ["Right"],
        RemoteCommand.OK: ["Confirm", "Enter", "Select"],
        RemoteCommand.BACK: ["Return", "Back"],
        RemoteCommand.HOME: ["Home"],
        RemoteCommand.SETTINGS: ["Options", "ActionMenu", "Display"],
        RemoteCommand.VOLUME_UP: ["VolumeUp", "AudioVolumeUp"],
        RemoteCommand.VOLUME_DOWN: ["VolumeDown", "AudioVolumeDown"],
        RemoteCommand.CHANNEL_UP: ["ChannelUp", "ProgramUp", "ProgUp"],
        RemoteCommand.CHANNEL_DOWN: ["ChannelDown", "ProgramDown", "ProgDown"],
        RemoteCommand.MUTE: ["Mute", "AudioMute"],
        RemoteCommand.PREVIOUS: ["Rewind", "Prev", "PrevChapter"],
        RemoteCommand.PLAY_PAUSE: ["Play", "Pause"],
        RemoteCommand.NEXT: ["Forward", "Next", "NextChapter"],
        RemoteCommand.DIGIT_0: ["Num0", "0"],
        RemoteCommand.DIGIT_1: ["Num1", "1"],
        RemoteCommand.DIGIT_2: ["Num2", "2"],
        RemoteCommand.DIGIT_3: ["Num3", "3"],
        RemoteCommand.DIGIT_4: ["Num4", "4"],
        RemoteCommand.DIGIT_5: ["Num5", "5"],
        RemoteCommand.DIGIT_6: ["Num6", "6"],
        RemoteCommand.DIGIT_7: ["Num7", "7"],
        RemoteCommand.DIGIT_8: ["Num8", "8"],
        RemoteCommand.DIGIT_9: ["Num9", "9"],
        RemoteCommand.NUMPAD_BACKSPACE: ["Return", "Back"],
        RemoteCommand.NUMPAD_ENTER: ["Enter", "Confirm"],
    }

    @staticmethod
    def base_urls(host: str, preferred_port: Optional[int] = None) -> List[str]:
        ports = []
        for port in (preferred_port, 80, 10000, 443):
            if port is not None and port not in ports:
                ports.append(port)
        return [
            f"https://{host}:{port}" if port == 443 else f"http://{host}:{port}"
            for port in ports
        ]

    @staticmethod
    def find_ircc_code(candidates: List[str], codes: Dict[str, str]) -> Optional[str]:
        """Exact normalized match first, then substring match"""
        normalized = [normalize_code_name(candidate) for candidate in candidates]

        for name in normalized:
            if codes.get(name):
                return codes[name]

        for name in normalized:
            for code_name, value in codes.items():
                if name in code_name:
                    return value

        return None

    def _pairing_required(self, profile: TVProfile, message: str = PAIRING_PROMPT) -> DispatchResult:
        return DispatchResult.pairing_required(message, SonyPairingRequest())

    def _forget(self, profile: TVProfile):
        logger.warning(f"Sony TV {profile.host} rejected the PSK, clearing it")
        self.store.delete(SONY_PSK, profile)
        self.store.delete(SONY_REMOTE_CODES, profile)

    async def _json_rpc(
        self,
        profile: TVProfile,
        service: str,
        method: str,
        params: Optional[list] = None,
        psk: Optional[str] = None
    ) -> Tuple[int, Any]:
        headers = {"Accept": "application/json"}
        if psk and psk.strip():
            headers["X-Auth-PSK"] = psk.strip()

        last_error = None
        for base_url in self.base_urls(profile.host, profile.port):
            try:
                response = await transport.fetch_with_timeout(
                    f"{base_url}/sony/{service}",
                    method="POST",
                    headers=headers,
                    json={"method": method, "params": params or [], "id": 1, "version": "1.0"},
                    timeout=self.config.SONY_REQUEST_TIMEOUT
                )
            except TransportError as e:
                last_error = e
                continue

            if response.status in (404, 405):
                last_error = TransportError(f"Sony service not found at {base_url} ({response.status}).")
                continue

            return response.status, response.json()

        raise last_error or TransportError("Sony TV is unreachable.")

    async def fetch_remote_codes(self, profile: TVProfile, psk: str) -> Dict[str, str]:
        """
        Load the model's IRCC code table

        Raises:
            AuthenticationError: the PSK was rejected
            ProtocolError: the TV returned no key data
        """
        status, body = await self._json_rpc(profile, "system", "getRemoteControllerInfo", [], psk)
        if is_unauthorized(status, body):
            raise AuthenticationError("Sony TV authentication required.")

        codes = extract_remote_codes(body)
        if not codes:
            raise ProtocolError("Sony TV returned no IRCC key data.")

        logger.debug(f"Loaded {len(codes)} IRCC codes from {profile.host}")
        return codes

    async def _send_ircc(self, profile: TVProfile, psk: str, code: str):
        headers = {
            "Content-Type": 'text/xml; charset="utf-8"',
            "SOAPACTION": '"urn:schemas-sony-com:service:IRCC:1#X_SendIRCC"',
            "X-Auth-PSK": psk,
        }
        body = IRCC_ENVELOPE.format(code=code)
        last_error = None

        for base_url in self.base_urls(profile.host, profile.port):
            try:
                response: HttpResponse = await transport.fetch_with_timeout(
                    f"{base_url}/sony/IRCC",
                    method="POST",
                    headers=headers,
                    data=body,
                    timeout=self.config.SONY_REQUEST_TIMEOUT
                )
            except TransportError as e:
                last_error = e
                continue

            if response.status in (401, 403):
                raise AuthenticationError("Sony TV authentication required.")
            if response.ok:
                return
            last_error = ProtocolError(f"Sony IRCC request failed ({response.status}).")

        raise last_error or ProtocolError("Sony IRCC request failed.")

    async def _send(self, profile: TVProfile, command: RemoteCommand, candidates: List[str]) -> DispatchResult:
        psk = self.store.get(SONY_PSK, profile)
        if not psk:
            return self._pairing_required(profile)

        codes = self.store.get(SONY_REMOTE_CODES, profile)
        try:
            if not codes:
                try:
                    codes = await self.fetch_remote_codes(profile, psk)
                except (TransportError, ProtocolError) as e:
                    raise type(e)(f"Unable to load Sony remote keys. {e}") from e
                self.store.set(SONY_REMOTE_CODES, profile, codes)

            code = self.find_ircc_code(candidates, codes)
            if not code:
                try:
                    codes = await self.fetch_remote_codes(profile, psk)
                except (TransportError, ProtocolError) as e:
                    raise type(e)(f"Unable to refresh Sony remote keys. {e}") from e
                self.store.set(SONY_REMOTE_CODES, profile, codes)
                code = self.find_ircc_code(candidates, codes)
        except AuthenticationError:
            self._forget(profile)
            return self._pairing_required(
                profile, "Sony authorization expired. Re-enter your TV Pre-Shared Key."
            )

        if not code:
            raise ConfigurationError("This command is unavailable on this Sony TV model.")

        try:
            await self._send_ircc(profile, psk, code)
        except AuthenticationError:
            self._forget(profile)
            return self._pairing_required(
                profile, "Sony key no longer valid. Re-enter your TV Pre-Shared Key."
            )
        except (TransportError, ProtocolError) as e:
            raise type(e)(f"Unable to send Sony command. {e}") from e

        return DispatchResult.success("Command sent to Sony TV.")

    async def complete_pairing(
        self,
        profile: TVProfile,
        secret: str,
        challenge: Any = None
    ) -> DispatchResult:
        """Validate a Pre-Shared Key against the TV and cache it"""
        if not profile.host:
            return DispatchResult.failure("No TV host configured yet.", ErrorKind.CONFIGURATION)

        cleaned = (secret or "").strip()
        if len(cleaned) < 4:
            return DispatchResult.failure("Enter a valid Sony Pre-Shared Key.", ErrorKind.CONFIGURATION)

        async def validate() -> DispatchResult:
            try:
                codes = await self.fetch_remote_codes(profile, cleaned)
            except AuthenticationError:
                return self._pairing_required(
                    profile, "Sony key rejected. Check the TV's Pre-Shared Key and try again."
                )
            except (TransportError, ProtocolError) as e:
                raise type(e)(f"Unable to pair Sony TV. {e}") from e

            self.store.set(SONY_REMOTE_CODES, profile, codes)
            self.store.set(SONY_PSK, profile, cleaned)
            logger.info(f"Sony TV {profile.host} paired")
            return DispatchResult.success("Sony TV paired.")

        return await self._guard(validate())

    async def probe(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None,
        thorough: bool = False
    ) -> Optional[DiscoveredDevice]:
        response = await self._probe_fetch(
            f"http://{host}:80/sony/system",
            0.55,
            cancel_event,
            method="POST",
            headers={"Accept": "application/json"},
            json={"method": "getSystemInformation", "params": [], "id": 1, "version": "1.0"}
        )
        if response is None:
            return None

        if response.status in (401, 403):
            return self._device(host, 80, f"Sony TV ({host})", suffix="-auth")

        if not response.ok and response.status >= 500:
            return None

        normalized = response.text.lower()
        markers = ("sony", "bravia", "illegal request", '"result"', '"error"')
        if not any(marker in normalized for marker in markers):
            return None

        nickname = f"Sony TV ({host})"
        payload = response.json()
        result = payload.get("result") if isinstance(payload, dict) else None
        if isinstance(result, list) and result and isinstance(result[0], dict):
            info = result[0]
            label = " ".join(
                info[field].strip() for field in ("model", "product", "generation")
                if isinstance(info.get(field), str) and info[field].strip()
            )
            nickname = label or nickname

        return self._device(host, 80, nickname)
