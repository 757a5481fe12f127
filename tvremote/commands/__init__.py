"""
Unified Command Dispatch

This package routes abstract remote commands to brand-specific
network executors and reports every outcome as a DispatchResult.
"""

from .models import (
    DispatchResult,
    PairingRequest,
    SonyChallenge,
    SonyPairingRequest,
    VizioChallenge,
    VizioPairingRequest,
)
from .errors import ErrorKind

__all__ = [
    "DispatchResult",
    "ErrorKind",
    "PairingRequest",
    "SonyChallenge",
    "SonyPairingRequest",
    "VizioChallenge",
    "VizioPairingRequest",
]
