"""
Command Protocol Router

Determines which executor should handle a command based on the
profile's declared brand, fingerprinting the host when the brand is
generic.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from .models import (
    DispatchResult,
    PairingRequest,
    SonyChallenge,
    SonyPairingRequest,
    VizioChallenge,
    VizioPairingRequest,
)
from .errors import ErrorKind
from .executors.base import CommandExecutor
from .executors.network import (
    BridgeExecutor,
    FireTVExecutor,
    LGWebOSExecutor,
    PanasonicExecutor,
    PhilipsExecutor,
    RokuExecutor,
    SamsungExecutor,
    SonyBraviaExecutor,
    VizioExecutor,
)
from ..core.config import Settings, settings as default_settings
from ..models.tv import RemoteCommand, TVBrand, TVProfile
from ..services.credential_store import CredentialStore
from ..services.pairing_sessions import PairingSessionManager

logger = logging.getLogger(__name__)

# Order used when a generic profile matched several fingerprints
PROBE_PRIORITY = (
    TVBrand.SAMSUNG,
    TVBrand.LG,
    TVBrand.SONY,
    TVBrand.VIZIO,
    TVBrand.PANASONIC,
    TVBrand.PHILIPS,
    TVBrand.ROKU,
    TVBrand.FIRETV,
)

GENERIC_BRANDS = (TVBrand.TCL, TVBrand.OTHER)

_pairing_adapter = TypeAdapter(PairingRequest)


def build_executors(
    store: CredentialStore,
    config: Settings = default_settings
) -> Tuple[Dict[TVBrand, CommandExecutor], BridgeExecutor]:
    """Create one executor per brand sharing a store and config"""
    bridge = BridgeExecutor(store, config)
    executors = {
        TVBrand.SAMSUNG: SamsungExecutor(store, config),
        TVBrand.LG: LGWebOSExecutor(store, config),
        TVBrand.SONY: SonyBraviaExecutor(store, config),
        TVBrand.VIZIO: VizioExecutor(store, config),
        TVBrand.PANASONIC: PanasonicExecutor(store, config),
        TVBrand.PHILIPS: PhilipsExecutor(store, config),
        TVBrand.ROKU: RokuExecutor(store, config),
        TVBrand.FIRETV: FireTVExecutor(store, config, bridge=bridge),
    }
    return executors, bridge


def resolve_challenge(challenge: Any) -> Tuple[Optional[TVBrand], Any]:
    """
    Work out which brand an explicit challenge belongs to

    Accepts a full pairing request, a bare challenge or their dict forms.

    Returns:
        (brand or None, bare challenge or None)
    """
    if challenge is None:
        return None, None

    if isinstance(challenge, dict):
        try:
            if "brand" in challenge:
                challenge = _pairing_adapter.validate_python(challenge)
            elif "kind" in challenge:
                challenge = SonyChallenge.model_validate(challenge)
            else:
                challenge = VizioChallenge.model_validate(challenge)
        except ValidationError as e:
            logger.debug(f"Ignoring unreadable pairing challenge: {e}")
            return None, None

    if isinstance(challenge, (VizioPairingRequest, SonyPairingRequest)):
        return TVBrand(challenge.brand), challenge.challenge
    if isinstance(challenge, VizioChallenge):
        return TVBrand.VIZIO, challenge
    if isinstance(challenge, SonyChallenge):
        return TVBrand.SONY, challenge
    return None, None


class ProtocolRouter:
    """
    Routes commands to the appropriate executor

    Declared brands go straight to their executor. TCL and "other"
    profiles are fingerprinted against every probe and tried in
    PROBE_PRIORITY order, with the bridge as the last resort.
    """

    def __init__(
        self,
        store: CredentialStore,
        config: Settings = default_settings,
        executors: Optional[Dict[TVBrand, CommandExecutor]] = None,
        bridge: Optional[BridgeExecutor] = None
    ):
        self.store = store
        self.config = config
        if executors is None:
            executors, default_bridge = build_executors(store, config)
            bridge = bridge or default_bridge
        self.executors = executors
        self.bridge = bridge or BridgeExecutor(store, config)
        self.sessions = PairingSessionManager(store)

    def get_executor(self, profile: TVProfile) -> Optional[CommandExecutor]:
        """
        Get the executor registered for the profile's declared brand

        Returns:
            CommandExecutor instance or None for generic brands
        """
        if profile.brand in GENERIC_BRANDS:
            return None
        return self.executors.get(profile.brand)

    def probe_executors(self) -> List[CommandExecutor]:
        """Every executor whose probe takes part in discovery"""
        return [*self.executors.values(), self.bridge]

    async def dispatch(self, profile: TVProfile, command: RemoteCommand) -> DispatchResult:
        """
        Send a command, recording any pairing request the TV answers with

        Returns:
            DispatchResult, never raises
        """
        executor = self.get_executor(profile)
        if executor is not None:
            logger.debug(f"Dispatching {command.value} to {executor.get_name()} for {profile.credential_key}")
            result = await executor.execute(profile, command)
            result = await self._declared_bridge_fallback(profile, command, result)
        else:
            result = await self._dispatch_generic(profile, command)

        if result.pairing is not None:
            self.sessions.begin(profile, result.pairing, command)

        return result

    async def _declared_bridge_fallback(
        self,
        profile: TVProfile,
        command: RemoteCommand,
        result: DispatchResult
    ) -> DispatchResult:
        if result.ok or result.pairing is not None:
            return result
        if not self.config.BRIDGE_FALLBACK_FOR_DECLARED_BRANDS or profile.brand == TVBrand.FIRETV:
            return result
        if result.error not in (ErrorKind.TRANSPORT, ErrorKind.PROTOCOL):
            return result

        logger.info(f"{profile.brand.value} failed at {profile.host}, trying the bridge")
        bridged = await self.bridge.execute(profile, command)
        if bridged.ok:
            return bridged
        return DispatchResult.failure(
            f"{result.message} Bridge fallback failed: {bridged.message}",
            result.error
        )

    async def _dispatch_generic(self, profile: TVProfile, command: RemoteCommand) -> DispatchResult:
        if not profile.host:
            return DispatchResult.failure("No TV host configured yet.", ErrorKind.CONFIGURATION)

        matched = await self._fingerprint(profile.host)
        logger.info(
            f"Fingerprinted {profile.host}: "
            f"{', '.join(brand.value for brand in matched) or 'no match'}"
        )

        for brand in PROBE_PRIORITY:
            if brand not in matched:
                continue
            result = await self.executors[brand].execute(profile, command)
            if result.ok or result.pairing is not None:
                logger.info(f"{brand.value} protocol answered at {profile.host}")
                return result
            logger.debug(f"{brand.value} protocol failed at {profile.host}: {result.message}")

        bridged = await self.bridge.execute(profile, command)
        if bridged.ok:
            return bridged

        return DispatchResult.failure(
            f"No supported TV protocol answered at {profile.host}. "
            f"Bridge fallback failed: {bridged.message}",
            bridged.error
        )

    async def _fingerprint(self, host: str) -> List[TVBrand]:
        """Run every brand probe concurrently, returning the brands that matched"""
        brands = [brand for brand in PROBE_PRIORITY if brand in self.executors]
        results = await asyncio.gather(
            *(self.executors[brand].probe(host) for brand in brands),
            return_exceptions=True
        )

        matched = []
        for brand, outcome in zip(brands, results):
            if isinstance(outcome, Exception):
                logger.debug(f"{brand.value} probe raised at {host}: {outcome}")
                continue
            if outcome is not None:
                matched.append(brand)
        return matched

    async def complete_pairing(
        self,
        profile: TVProfile,
        secret: str,
        challenge: Any = None
    ) -> DispatchResult:
        """
        Finish a pairing with the user's PIN or pre-shared key

        On success the command that triggered the pairing is sent again
        and both outcomes are reported together.
        """
        session = self.sessions.get(profile)
        brand, explicit_challenge = resolve_challenge(challenge)

        if brand is None and session is not None:
            brand = TVBrand(session.brand)
        if brand is None:
            brand = profile.brand

        held_challenge = explicit_challenge
        if held_challenge is None and session is not None and session.brand == brand.value:
            held_challenge = session.pairing.challenge

        executor = self.executors.get(brand)
        if executor is None:
            return DispatchResult.failure(
                f"Pairing is not supported for {brand.value} TVs.",
                ErrorKind.CONFIGURATION
            )

        result = await executor.complete_pairing(profile, secret, held_challenge)
        if not result.ok:
            if result.pairing is not None:
                self.sessions.begin(profile, result.pairing, session.command if session else None)
            return result

        self.sessions.finish(profile)
        if session is None or session.command is None:
            return result

        logger.info(f"Resuming {session.command.value} for {profile.credential_key} after pairing")
        resumed = await self.dispatch(profile, session.command)
        if resumed.pairing is not None:
            return resumed

        return DispatchResult(
            ok=resumed.ok,
            message=f"{result.message} {resumed.message}",
            error=resumed.error
        )

    def clear_certificate_pin(self, profile: TVProfile) -> DispatchResult:
        """Forget the pinned Samsung certificate so the TV can be paired again"""
        executor = self.executors.get(TVBrand.SAMSUNG)
        if not isinstance(executor, SamsungExecutor):
            return DispatchResult.failure(
                "Certificate pinning is not available.",
                ErrorKind.CONFIGURATION
            )
        self.sessions.finish(profile)
        return executor.clear_certificate_pin(profile)
