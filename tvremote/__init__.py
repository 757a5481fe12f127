"""
TV Remote

Multi-protocol network TV control: brand executors, pairing, credential
caching and LAN discovery.
"""

from .commands.models import DispatchResult
from .commands.router import ProtocolRouter
from .models.tv import DiscoveredDevice, RemoteCommand, TVBrand, TVProfile
from .services.credential_store import CredentialStore
from .services.network_scanner import NetworkScanner, ScanOptions
from .services.secure_channel import SecureChannel

__all__ = [
    "CredentialStore",
    "DiscoveredDevice",
    "DispatchResult",
    "NetworkScanner",
    "ProtocolRouter",
    "RemoteCommand",
    "ScanOptions",
    "SecureChannel",
    "TVBrand",
    "TVProfile",
]
