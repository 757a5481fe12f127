"""
Command result and pairing models
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import ErrorKind


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VizioChallenge(_CamelModel):
    challenge_type: int
    pairing_token: int
    device_id: str


class SonyChallenge(_CamelModel):
    kind: Literal["psk"] = "psk"


class VizioPairingRequest(_CamelModel):
    brand: Literal["vizio"] = "vizio"
    challenge: VizioChallenge


class SonyPairingRequest(_CamelModel):
    brand: Literal["sony"] = "sony"
    challenge: SonyChallenge = Field(default_factory=SonyChallenge)


PairingRequest = Annotated[
    Union[VizioPairingRequest, SonyPairingRequest],
    Field(discriminator="brand"),
]

PairingChallenge = Union[VizioChallenge, SonyChallenge]


class DispatchResult(_CamelModel):
    """
    Outcome of every executor call

    Failures are values, never exceptions. A pairing request is a
    suspended operation waiting for a secret from the user.
    """
    ok: bool
    message: str
    pairing: Optional[PairingRequest] = None
    error: Optional[ErrorKind] = None

    @classmethod
    def success(cls, message: str) -> "DispatchResult":
        return cls(ok=True, message=message)

    @classmethod
    def failure(cls, message: str, error: Optional[ErrorKind] = None) -> "DispatchResult":
        return cls(ok=False, message=message, error=error)

    @classmethod
    def pairing_required(
        cls,
        message: str,
        pairing: Union[VizioPairingRequest, SonyPairingRequest]
    ) -> "DispatchResult":
        return cls(ok=False, message=message, pairing=pairing, error=ErrorKind.AUTHENTICATION)
