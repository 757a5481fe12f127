"""
Vizio SmartCast TV Executor

For Vizio SmartCast TVs (2016+)
Uses HTTPS REST API on port 7345 (or 9000 for older firmware)
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from ..base import CommandExecutor
from ...models import DispatchResult, VizioChallenge, VizioPairingRequest
from ...errors import AuthenticationError, ErrorKind, ProtocolError, TransportError
from ....models.credentials import VIZIO_AUTH_TOKENS
from ....models.tv import DiscoveredDevice, RemoteCommand, TVBrand, TVProfile
from ....utils import transport

logger = logging.getLogger(__name__)

PIN_PATTERN = re.compile(r"^\d{4,8}$")


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip():
        try:
            return int(float(value.strip()))
        except ValueError:
            return None
    return None


def status_result(payload: Any) -> str:
    status = payload.get("STATUS") if isinstance(payload, dict) else None
    if not isinstance(status, dict):
        return ""
    return str(status.get("RESULT") or "").strip().upper()


def status_detail(payload: Any) -> str:
    status = payload.get("STATUS") if isinstance(payload, dict) else None
    detail = status.get("DETAIL") if isinstance(status, dict) else None
    return detail.strip() if isinstance(detail, str) else ""


def item_value(payload: Any, key: str) -> Any:
    """ITEM field lookup, case-insensitive on the key"""
    item = payload.get("ITEM") if isinstance(payload, dict) else None
    if not isinstance(item, dict):
        return None
    if key in item:
        return item[key]
    for candidate, value in item.items():
        if candidate.lower() == key.lower():
            return value
    return None


def extract_auth_token(payload: Any) -> Optional[str]:
    token = item_value(payload, "AUTH_TOKEN")
    if isinstance(token, str) and token.strip():
        return token.strip()
    return None


def extract_challenge(payload: Any, fallback_device_id: str) -> Optional[VizioChallenge]:
    pairing_token = _to_int(item_value(payload, "PAIRING_REQ_TOKEN"))
    challenge_type = _to_int(item_value(payload, "CHALLENGE_TYPE"))
    if pairing_token is None or challenge_type is None:
        return None

    device_id = item_value(payload, "DEVICE_ID")
    if not isinstance(device_id, str) or not device_id.strip():
        device_id = fallback_device_id

    return VizioChallenge(
        challenge_type=challenge_type,
        pairing_token=pairing_token,
        device_id=device_id.strip(),
    )


def is_pairing_required(result: str) -> bool:
    return any(marker in result for marker in ("PAIR", "AUTH", "PIN", "UNAUTHORIZED"))


def device_id_for(profile: TVProfile) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]", "", f"tvremote-{profile.id}")[:40]


def _with_status(message: str, payload: Any) -> str:
    result = status_result(payload)
    detail = status_detail(payload)
    if result:
        message += f" Result: {result}."
    if detail:
        message += f" {detail}"
    return message


class VizioExecutor(CommandExecutor):
    """
    Executor for Vizio SmartCast TVs

    Protocol: HTTPS REST API (JSON PUT)
    Port: 7345 (firmware 4.0+) or 9000 (older firmware)
    Authentication: Auth token from the PIN pairing process
    """

    brand = TVBrand.VIZIO
    label = "Vizio"

    # Command mapping to Vizio (codeset, code)
    KEY_MAP = {
        RemoteCommand.POWER: (11, 2),
        RemoteCommand.INPUT: (7, 1),

        # Volume
        RemoteCommand.VOLUME_DOWN: (5, 0),
        RemoteCommand.VOLUME_UP: (5, 1),
        RemoteCommand.MUTE: (5, 4),

        # Channels
        RemoteCommand.CHANNEL_DOWN: (8, 0),
        RemoteCommand.CHANNEL_UP: (8, 1),
        RemoteCommand.PREVIOUS: (8, 2),

        # Navigation
        RemoteCommand.UP: (3, 8),
        RemoteCommand.DOWN: (3, 0),
        RemoteCommand.LEFT: (3, 1),
        RemoteCommand.RIGHT: (3, 7),
        RemoteCommand.OK: (3, 2),

        # Menu/System
        RemoteCommand.BACK: (4, 0),
        RemoteCommand.HOME: (4, 15),
        RemoteCommand.SETTINGS: (4, 8),

        # Playback
        RemoteCommand.PLAY_PAUSE: (2, 3),
        RemoteCommand.NEXT: (2, 0),

        # Numbers
        RemoteCommand.DIGIT_0: (0, 48),
        RemoteCommand.DIGIT_1: (0, 49),
        RemoteCommand.DIGIT_2: (0, 50),
        RemoteCommand.DIGIT_3: (0, 51),
        RemoteCommand.DIGIT_4: (0, 52),
        RemoteCommand.DIGIT_5: (0, 53),
        RemoteCommand.DIGIT_6: (0, 54),
        RemoteCommand.DIGIT_7: (0, 55),
        RemoteCommand.DIGIT_8: (0, 56),
        RemoteCommand.DIGIT_9: (0, 57),
        RemoteCommand.NUMPAD_BACKSPACE: (0, 8),
        RemoteCommand.NUMPAD_ENTER: (0, 13),
    }

    @staticmethod
    def base_urls(host: str) -> List[str]:
        return [
            f"https://{host}:7345",
            f"https://{host}:9000",
            f"http://{host}:7345",
            f"http://{host}:9000",
        ]

    async def _put(
        self,
        host: str,
        path: str,
        body: Dict[str, Any],
        auth_token: Optional[str] = None
    ) -> Any:
        """PUT JSON to the first base URL that answers, returning the parsed body"""
        headers = {"Accept": "application/json"}
        if auth_token:
            headers["AUTH"] = auth_token

        last_error = None
        for base_url in self.base_urls(host):
            try:
                response = await transport.fetch_with_timeout(
                    f"{base_url}{path}",
                    method="PUT",
                    headers=headers,
                    json=body,
                    timeout=self.config.VIZIO_REQUEST_TIMEOUT
                )
            except TransportError as e:
                logger.debug(f"Vizio PUT {base_url}{path} failed: {e}")
                last_error = e
                continue

            if not response.text.strip():
                if response.ok:
                    return None
                last_error = ProtocolError(f"Vizio endpoint failed ({response.status}).")
                continue

            payload = response.json()
            if payload is None:
                if response.ok:
                    return None
                last_error = ProtocolError(f"Vizio endpoint returned non-JSON ({response.status}).")
                continue
            return payload

        raise last_error or TransportError("Vizio adapter failed to connect.")

    async def _start_pairing(self, profile: TVProfile) -> Union[str, DispatchResult]:
        """
        Ask the TV to pair

        Returns:
            An auth token when the TV grants one without a PIN, otherwise a
            DispatchResult carrying the PIN challenge
        """
        device_id = device_id_for(profile)
        try:
            payload = await self._put(
                profile.host,
                "/pairing/start",
                {"DEVICE_ID": device_id, "DEVICE_NAME": self.config.REMOTE_DEVICE_NAME}
            )
        except (TransportError, ProtocolError) as e:
            raise type(e)(f"Unable to start Vizio pairing. {e}") from e

        token = extract_auth_token(payload)
        if token:
            logger.info(f"Vizio TV {profile.host} granted a token without a PIN")
            self.store.set(VIZIO_AUTH_TOKENS, profile, token)
            return token

        challenge = extract_challenge(payload, device_id)
        if challenge:
            logger.info(f"Vizio TV {profile.host} is showing a pairing PIN")
            return DispatchResult.pairing_required(
                "Enter the PIN shown on your Vizio TV to finish pairing.",
                VizioPairingRequest(challenge=challenge)
            )

        raise ProtocolError(_with_status("Unable to start Vizio pairing.", payload))

    async def _key_press(
        self,
        profile: TVProfile,
        key: Tuple[int, int],
        auth_token: str,
        allow_repair: bool
    ) -> DispatchResult:
        codeset, code = key
        body = {"KEYLIST": [{"CODESET": codeset, "CODE": code, "ACTION": "KEYPRESS"}]}

        try:
            payload = await self._put(profile.host, "/key_command/", body, auth_token)
        except (TransportError, ProtocolError) as e:
            raise type(e)(f"Unable to send Vizio command. {e}") from e

        result = status_result(payload)
        if not result or result == "SUCCESS":
            return DispatchResult.success("Command sent to Vizio TV.")

        if is_pairing_required(result):
            logger.warning(f"Vizio TV {profile.host} rejected the token ({result}), clearing it")
            self.store.delete(VIZIO_AUTH_TOKENS, profile)
            if allow_repair:
                return await self._pair_and_send(profile, key)
            raise AuthenticationError(f"Vizio rejected command ({result}).")

        detail = status_detail(payload)
        raise ProtocolError(f"Vizio rejected command ({result}{': ' + detail if detail else ''}).")

    async def _pair_and_send(self, profile: TVProfile, key: Tuple[int, int]) -> DispatchResult:
        outcome = await self._start_pairing(profile)
        if isinstance(outcome, DispatchResult):
            return outcome
        return await self._key_press(profile, key, outcome, allow_repair=False)

    async def _send(self, profile: TVProfile, command: RemoteCommand, key: Tuple[int, int]) -> DispatchResult:
        auth_token = self.store.get(VIZIO_AUTH_TOKENS, profile)
        if not auth_token:
            return await self._pair_and_send(profile, key)
        return await self._key_press(profile, key, auth_token, allow_repair=True)

    async def complete_pairing(
        self,
        profile: TVProfile,
        secret: str,
        challenge: Any = None
    ) -> DispatchResult:
        """Submit the PIN shown on the TV and cache the resulting auth token"""
        if not profile.host:
            return DispatchResult.failure("No TV host configured yet.", ErrorKind.CONFIGURATION)

        pin = (secret or "").strip()
        if not PIN_PATTERN.match(pin):
            return DispatchResult.failure(
                "Enter a valid numeric PIN from your Vizio TV.", ErrorKind.CONFIGURATION
            )

        if isinstance(challenge, dict):
            try:
                challenge = VizioChallenge.model_validate(challenge)
            except ValidationError:
                challenge = None
        if not isinstance(challenge, VizioChallenge):
            return DispatchResult.failure(
                "No Vizio pairing session found. Start pairing again.", ErrorKind.CONFIGURATION
            )

        async def pair() -> DispatchResult:
            try:
                payload = await self._put(
                    profile.host,
                    "/pairing/pair",
                    {
                        "DEVICE_ID": challenge.device_id,
                        "CHALLENGE_TYPE": challenge.challenge_type,
                        "RESPONSE_VALUE": pin,
                        "PAIRING_REQ_TOKEN": challenge.pairing_token,
                    }
                )
            except (TransportError, ProtocolError) as e:
                raise type(e)(f"Vizio pairing failed. {e}") from e

            token = extract_auth_token(payload)
            if not token:
                raise AuthenticationError(_with_status("Vizio pairing failed.", payload))

            self.store.set(VIZIO_AUTH_TOKENS, profile, token)
            logger.info(f"Vizio TV {profile.host} paired")
            return DispatchResult.success("Vizio pairing complete.")

        return await self._guard(pair())

    async def probe(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None,
        thorough: bool = False
    ) -> Optional[DiscoveredDevice]:
        response = await self._probe_fetch(f"http://{host}:7345/state/device/name", 0.42, cancel_event)
        if response is None or (not response.ok and response.status != 401):
            return None

        nickname = "VIZIO TV"
        payload = response.json()
        value = item_value(payload, "VALUE")
        if isinstance(value, dict) and isinstance(value.get("NAME"), str) and value["NAME"].strip():
            nickname = value["NAME"].strip()

        return self._device(host, 7345, nickname)
