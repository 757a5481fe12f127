"""
Network Discovery API
Endpoints for finding network-controllable TVs on the LAN
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ..services.network_scanner import HOST_RANGE_MAX, HOST_RANGE_MIN, NetworkScanner, ScanOptions

router = APIRouter(prefix="/api/network", tags=["network-discovery"])
logger = logging.getLogger(__name__)

# Seconds between client disconnect checks while a scan streams
DISCONNECT_POLL_INTERVAL = 0.25


def get_network_scanner(request: Request) -> NetworkScanner:
    return request.app.state.network_scanner


class ScanRequest(BaseModel):
    prefixes: Optional[List[str]] = None  # Will auto-detect if not provided
    hosts: Optional[List[str]] = None
    start: int = HOST_RANGE_MIN
    end: int = HOST_RANGE_MAX
    max_concurrency: Optional[int] = None

    def to_options(self, cancel_event: Optional[asyncio.Event] = None) -> ScanOptions:
        return ScanOptions(
            prefixes=self.prefixes,
            hosts=self.hosts,
            host_range_start=self.start,
            host_range_end=self.end,
            max_concurrency=self.max_concurrency,
            cancel_event=cancel_event,
        )


@router.post("/scan")
async def scan_network(
    scan_request: Optional[ScanRequest] = None,
    scanner: NetworkScanner = Depends(get_network_scanner)
):
    """
    Scan for TVs and return every device once the scan completes

    Auto-detects the local subnet if no prefixes or hosts are given.
    """
    scan_request = scan_request or ScanRequest()
    devices = await scanner.discover(scan_request.to_options())

    return {
        "success": True,
        "message": "TV scan completed",
        "devices_found": len(devices),
        "devices": [device.model_dump(mode="json") for device in devices],
    }


@router.post("/scan/stream")
async def stream_network_scan(
    request: Request,
    scan_request: Optional[ScanRequest] = None,
    scanner: NetworkScanner = Depends(get_network_scanner)
):
    """
    Stream discovered TVs as newline-delimited JSON

    The scan stops when the client disconnects.
    """
    scan_request = scan_request or ScanRequest()
    cancel_event = asyncio.Event()

    async def watch_disconnect():
        while not cancel_event.is_set():
            if await request.is_disconnected():
                logger.info("Scan client disconnected, cancelling")
                cancel_event.set()
                return
            await asyncio.sleep(DISCONNECT_POLL_INTERVAL)

    async def device_stream():
        stream = scanner.scan(scan_request.to_options(cancel_event))
        watcher = asyncio.create_task(watch_disconnect())
        try:
            async for device in stream:
                yield device.model_dump_json() + "\n"
        finally:
            cancel_event.set()
            watcher.cancel()
            await stream.aclose()

    return StreamingResponse(
        device_stream(),
        media_type="application/x-ndjson",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        }
    )
