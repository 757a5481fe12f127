"""
Network Discovery Scanner

Fingerprints hosts on the local network against every brand probe with a
bounded pool of workers and streams back the TVs it recognises.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, List, Optional, Set, Tuple

from ..commands.executors.base import CommandExecutor
from ..commands.errors import TransportError
from ..commands.router import build_executors
from ..core.config import Settings, settings as default_settings
from ..models.tv import DiscoveredDevice, ProbeSource, TVBrand, map_brand
from ..utils import transport
from ..utils.network_utils import get_local_prefix, is_valid_host, is_valid_prefix
from .credential_store import CredentialStore

logger = logging.getLogger(__name__)

HOST_RANGE_MIN = 1
HOST_RANGE_MAX = 254
MAX_CONCURRENCY_LIMIT = 128

# Ports swept on explicit hosts that matched no brand probe
GENERIC_PORTS = [80, 10000, 1925, 3000, 3001, 7345, 8008, 8009, 8001, 8002, 8060, 8080, 55000]

# Fingerprint order for hosts that answer several probes. Chromecast comes
# after the brands and anything else (the bridge) comes last.
FINGERPRINT_ORDER = [
    TVBrand.ROKU,
    TVBrand.SAMSUNG,
    TVBrand.SONY,
    TVBrand.LG,
    TVBrand.VIZIO,
    TVBrand.PHILIPS,
    TVBrand.PANASONIC,
    TVBrand.FIRETV,
]
CHROMECAST_RANK = len(FINGERPRINT_ORDER)

_DONE = object()


@dataclass
class ScanOptions:
    """
    What to scan

    prefixes: None auto-detects, [] disables ranged hosts
    hosts: explicit IPv4 addresses, always scanned first and more thoroughly.
        With prefixes=None they replace the auto-detected subnet sweep.
    """
    prefixes: Optional[List[str]] = None
    hosts: Optional[List[str]] = None
    host_range_start: int = HOST_RANGE_MIN
    host_range_end: int = HOST_RANGE_MAX
    max_concurrency: Optional[int] = None
    cancel_event: Optional[asyncio.Event] = None


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def normalize_hosts(hosts: Optional[List[str]]) -> List[str]:
    """Trimmed, valid, deduplicated IPv4 hosts"""
    if not hosts:
        return []
    candidates = [value.strip() for value in hosts if value and value.strip()]
    return _unique(value for value in candidates if is_valid_host(value))


def probe_rank(executor) -> int:
    brand = getattr(executor, "brand", None)
    if brand in FINGERPRINT_ORDER:
        return FINGERPRINT_ORDER.index(brand)
    return CHROMECAST_RANK + 1


def _cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class NetworkScanner:
    """
    Bounded-concurrency TV discovery

    Each worker pulls the next host from one shared iterator and probes it
    with every executor plus a Chromecast check; the highest-priority
    positive probe wins. Results are deduplicated by host.
    """

    def __init__(
        self,
        executors: Optional[List[CommandExecutor]] = None,
        config: Settings = default_settings,
        store: Optional[CredentialStore] = None
    ):
        self.config = config
        if executors is None:
            by_brand, bridge = build_executors(store or CredentialStore(), config)
            executors = [*by_brand.values(), bridge]
        self.executors = executors

    def resolve_prefixes(self, prefixes: Optional[List[str]]) -> List[str]:
        """
        Subnet prefixes to sweep

        An explicit list wins when any entry is valid, then the detected
        local prefix, then the configured defaults.
        """
        if prefixes is not None and len(prefixes) == 0:
            return []

        candidates = [value.strip() for value in prefixes or [] if value and value.strip()]
        valid = _unique(value for value in candidates if is_valid_prefix(value))
        if valid:
            return valid

        local_prefix = get_local_prefix()
        if local_prefix:
            return [local_prefix]

        return _unique(self.config.SCAN_DEFAULT_PREFIXES)

    def build_hosts(self, options: ScanOptions) -> Tuple[List[str], Set[str]]:
        """
        Returns:
            (ordered host list with explicit hosts first, set of explicit hosts)
        """
        explicit = normalize_hosts(options.hosts)

        if options.prefixes is None and explicit:
            prefixes = []
        else:
            prefixes = self.resolve_prefixes(options.prefixes)

        start = clamp(options.host_range_start, HOST_RANGE_MIN, HOST_RANGE_MAX)
        end = clamp(options.host_range_end, start, HOST_RANGE_MAX)
        ranged = [f"{prefix}.{i}" for prefix in prefixes for i in range(start, end + 1)]

        return _unique([*explicit, *ranged]), set(explicit)

    async def probe_chromecast(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Optional[DiscoveredDevice]:
        if _cancelled(cancel_event):
            return None
        try:
            response = await transport.fetch_with_timeout(
                f"http://{host}:8008/setup/eureka_info",
                timeout=0.5 * self.config.PROBE_TIMEOUT_SCALE,
                cancel_event=cancel_event
            )
        except TransportError as e:
            logger.debug(f"Chromecast probe {host} failed: {e}")
            return None

        payload = response.json()
        if not response.ok or not isinstance(payload, dict):
            return None

        device_info = payload.get("device_info")
        if not isinstance(device_info, dict):
            device_info = {}
        manufacturer = device_info.get("manufacturer") or ""
        model_name = device_info.get("model_name") or ""

        return DiscoveredDevice(
            id=f"cast-{host}",
            brand=map_brand(f"{manufacturer} {model_name}"),
            nickname=payload.get("name") or model_name or "Cast TV",
            host=host,
            port=8008,
            source=ProbeSource.CHROMECAST,
        )

    async def probe_generic(
        self,
        host: str,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Optional[DiscoveredDevice]:
        """Any HTTP answer on a common TV port makes the host a candidate"""
        for port in GENERIC_PORTS:
            if _cancelled(cancel_event):
                return None
            try:
                await transport.fetch_with_timeout(
                    f"http://{host}:{port}/",
                    timeout=0.36 * self.config.PROBE_TIMEOUT_SCALE,
                    cancel_event=cancel_event
                )
            except TransportError:
                continue

            return DiscoveredDevice(
                id=f"generic-{host}-{port}",
                brand=TVBrand.OTHER,
                nickname=f"Potential TV ({host})",
                host=host,
                port=port,
                source=ProbeSource.BRIDGE,
            )
        return None

    async def probe_host(
        self,
        host: str,
        thorough: bool = False,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Optional[DiscoveredDevice]:
        """
        Run every probe concurrently and pick the highest-priority match

        A match is returned as soon as every probe ahead of it in
        FINGERPRINT_ORDER has come back empty; slower probes are cancelled.
        """
        if _cancelled(cancel_event):
            return None

        probes = [
            (probe_rank(executor), executor.probe(host, cancel_event=cancel_event, thorough=thorough))
            for executor in self.executors
        ]
        probes.append((CHROMECAST_RANK, self.probe_chromecast(host, cancel_event)))
        probes.sort(key=lambda item: item[0])
        tasks = [asyncio.ensure_future(probe) for _, probe in probes]

        try:
            for task in tasks:
                try:
                    device = await task
                except Exception as e:
                    # A failed probe means no device
                    logger.debug(f"Probe for {host} raised: {e}")
                    continue
                if device is not None:
                    return device
            return None
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def scan(self, options: Optional[ScanOptions] = None) -> AsyncIterator[DiscoveredDevice]:
        """
        Stream discovered TVs as workers find them

        Setting options.cancel_event ends the stream early without an
        error. Closing the iterator cancels the workers.
        """
        options = options or ScanOptions()
        cancel_event = options.cancel_event
        hosts, explicit = self.build_hosts(options)
        concurrency = clamp(
            options.max_concurrency or self.config.SCAN_MAX_CONCURRENCY,
            1,
            MAX_CONCURRENCY_LIMIT
        )

        logger.info(
            f"Starting TV scan: {len(hosts)} hosts ({len(explicit)} explicit), "
            f"{concurrency} workers"
        )
        start_time = time.time()

        queue: asyncio.Queue = asyncio.Queue()
        pending_hosts = iter(hosts)
        seen_hosts: Set[str] = set()

        async def worker():
            for host in pending_hosts:
                if _cancelled(cancel_event):
                    return
                is_explicit = host in explicit
                device = await self.probe_host(host, thorough=is_explicit, cancel_event=cancel_event)
                if device is None and is_explicit:
                    device = await self.probe_generic(host, cancel_event)
                if device is None or device.host in seen_hosts:
                    continue
                seen_hosts.add(device.host)
                logger.info(f"Discovered {device.brand.value} TV at {device.host}:{device.port} ({device.nickname})")
                await queue.put(device)

        workers = [asyncio.create_task(worker()) for _ in range(min(concurrency, len(hosts)))]

        async def supervise():
            try:
                await asyncio.gather(*workers)
            finally:
                await queue.put(_DONE)

        supervisor = asyncio.create_task(supervise())
        found = 0
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                found += 1
                yield item
            await supervisor
        finally:
            for task in (*workers, supervisor):
                if not task.done():
                    task.cancel()
            await asyncio.gather(*workers, supervisor, return_exceptions=True)

            elapsed = time.time() - start_time
            status = "cancelled" if _cancelled(cancel_event) else "complete"
            logger.info(f"TV scan {status}: {found} devices in {elapsed:.2f} seconds")

    async def discover(self, options: Optional[ScanOptions] = None) -> List[DiscoveredDevice]:
        """Collect a whole scan into a list"""
        return [device async for device in self.scan(options)]
