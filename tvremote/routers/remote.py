"""
Remote Control API
Endpoints for sending commands, finishing pairing and clearing certificate pins
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from ..commands.models import DispatchResult, PairingRequest
from ..commands.router import ProtocolRouter
from ..models.tv import RemoteCommand, TVProfile

router = APIRouter(prefix="/api/remote", tags=["remote"])
logger = logging.getLogger(__name__)


def get_protocol_router(request: Request) -> ProtocolRouter:
    return request.app.state.protocol_router


class DispatchRequest(BaseModel):
    profile: TVProfile
    command: RemoteCommand


class PairingCompleteRequest(BaseModel):
    profile: TVProfile
    secret: str
    challenge: Optional[PairingRequest] = None


class PinClearRequest(BaseModel):
    profile: TVProfile


@router.post("/dispatch", response_model=DispatchResult)
async def dispatch_command(
    request: DispatchRequest,
    protocol_router: ProtocolRouter = Depends(get_protocol_router)
):
    """
    Send one remote command to a TV

    Failures come back as ok=false with a message; a pairing field means
    the TV is waiting for a PIN or pre-shared key.
    """
    logger.info(f"Dispatch {request.command.value} to {request.profile.brand.value} at {request.profile.host}")
    return await protocol_router.dispatch(request.profile, request.command)


@router.post("/pairing/complete", response_model=DispatchResult)
async def complete_pairing(
    request: PairingCompleteRequest,
    protocol_router: ProtocolRouter = Depends(get_protocol_router)
):
    """Submit the PIN (Vizio) or pre-shared key (Sony) shown to the user"""
    return await protocol_router.complete_pairing(request.profile, request.secret, request.challenge)


@router.delete("/pin", response_model=DispatchResult)
async def clear_certificate_pin(
    request: PinClearRequest,
    protocol_router: ProtocolRouter = Depends(get_protocol_router)
):
    """Forget a pinned Samsung certificate so the TV can be paired again"""
    logger.info(f"Clearing certificate pin for {request.profile.credential_key}")
    return protocol_router.clear_certificate_pin(request.profile)
