"""
Base Command Executor

Abstract base class for all brand executors
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from ...core.config import Settings, settings as default_settings
from ...models.tv import DiscoveredDevice, ProbeSource, RemoteCommand, TVBrand, TVProfile
from ...services.credential_store import CredentialStore
from ...utils import transport
from ...utils.transport import HttpResponse
from ..errors import AuthenticationError, ErrorKind, TVRemoteError, TransportError
from ..models import DispatchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CommandExecutor(ABC):
    """
    Base class for all brand executors

    Each executor (Samsung, LG, Sony, etc.) extends this class and
    implements `_send` for its wire protocol. `execute` is the public
    boundary: it validates the profile and command before any I/O and
    turns every error into a DispatchResult.
    """

    brand: TVBrand
    label: str = "TV"
    KEY_MAP: Dict[RemoteCommand, Any] = {}

    def __init__(self, store: CredentialStore, config: Settings = default_settings):
        self.store = store
        self.config = config

    async def execute(self, profile: TVProfile, command: RemoteCommand) -> DispatchResult:
        """
        Send one command to the TV described by `profile`

        Returns:
            DispatchResult, never raises
        """
        if not profile.host:
            return DispatchResult.failure("No TV host configured yet.", ErrorKind.CONFIGURATION)

        key = self.KEY_MAP.get(command)
        if key is None:
            return DispatchResult.failure(
                f"This command is not mapped for {self.label} yet.",
                ErrorKind.CONFIGURATION
            )

        return await self._guard(self._send(profile, command, key))

    async def _guard(self, operation: Awaitable[DispatchResult]) -> DispatchResult:
        try:
            return await operation
        except TVRemoteError as e:
            logger.info(f"{self.get_name()} failed ({e.kind.value}): {e}")
            return DispatchResult.failure(str(e), e.kind)
        except Exception as e:
            logger.error(f"{self.get_name()} unexpected failure: {e}", exc_info=True)
            return DispatchResult.failure(
                f"{self.label} command failed. {transport.describe_error(e)}",
                ErrorKind.PROTOCOL
            )

    @abstractmethod
    async def _send(self, profile: TVProfile, command: RemoteCommand, key: Any) -> DispatchResult:
        """Perform the wire exchange for a mapped command"""
        pass

    @abstractmethod
    async def probe(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None,
        thorough: bool = False
    ) -> Optional[DiscoveredDevice]:
        """
        Fingerprint a host

        Args:
            host: IPv4 address to check
            cancel_event: stops the probe before its next request when set
            thorough: also run slower checks (socket opens) used for
                hosts the user named explicitly

        Returns:
            DiscoveredDevice when the host looks like this brand, else None
        """
        pass

    async def complete_pairing(
        self,
        profile: TVProfile,
        secret: str,
        challenge: Any = None
    ) -> DispatchResult:
        return DispatchResult.failure(
            f"Pairing is not supported for {self.label}.",
            ErrorKind.CONFIGURATION
        )

    def get_name(self) -> str:
        """Get executor name for logging"""
        return self.__class__.__name__

    async def _with_credential_retry(
        self,
        profile: TVProfile,
        namespace: str,
        attempt: Callable[[Optional[Any]], Awaitable[T]]
    ) -> T:
        """
        Run `attempt` with the cached credential, then once without it

        The retry only happens when a credential was presented and the TV
        rejected it. A second rejection propagates.
        """
        credential = self.store.get(namespace, profile)
        try:
            return await attempt(credential)
        except AuthenticationError:
            if not credential:
                raise
            logger.warning(
                f"{self.label} rejected cached credential for {profile.credential_key}, "
                f"retrying without it"
            )
            self.store.delete(namespace, profile)
            return await attempt(None)

    def _probe_timeout(self, seconds: float) -> float:
        return seconds * self.config.PROBE_TIMEOUT_SCALE

    async def _probe_fetch(
        self,
        url: str,
        timeout: float,
        cancel_event: Optional[asyncio.Event] = None,
        **kwargs
    ) -> Optional[HttpResponse]:
        """Probe request where any failure means "no answer" """
        if cancel_event is not None and cancel_event.is_set():
            return None
        try:
            return await transport.fetch_with_timeout(
                url,
                timeout=self._probe_timeout(timeout),
                cancel_event=cancel_event,
                **kwargs
            )
        except TransportError as e:
            logger.debug(f"Probe {url} failed: {e}")
            return None

    def _device(
        self,
        host: str,
        port: int,
        nickname: str,
        suffix: str = "",
        source: Optional[ProbeSource] = None,
        brand: Optional[TVBrand] = None
    ) -> DiscoveredDevice:
        source = source or ProbeSource(self.brand.value)
        device_id = f"{source.value}-{host}{suffix}"
        return DiscoveredDevice(
            id=device_id,
            brand=brand or self.brand,
            nickname=nickname,
            host=host,
            port=port,
            source=source,
        )
