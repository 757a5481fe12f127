# Models package
from .tv import DiscoveredDevice, ProbeSource, RemoteCommand, TVBrand, TVProfile, map_brand
from .credentials import CredentialNamespace

__all__ = [
    "CredentialNamespace",
    "DiscoveredDevice",
    "ProbeSource",
    "RemoteCommand",
    "TVBrand",
    "TVProfile",
    "map_brand",
]
