"""
Network utility functions for tvremote
"""
import ipaddress
import logging
import re
import socket
from typing import List, Optional

logger = logging.getLogger(__name__)

_OCTET = re.compile(r"^\d{1,3}$")


def _valid_octets(parts: List[str]) -> bool:
    for part in parts:
        if not _OCTET.match(part):
            return False
        if int(part) > 255:
            return False
    return True


def is_valid_prefix(prefix: str) -> bool:
    """
    Validate a subnet prefix like "192.168.1" (exactly three octets)
    """
    parts = prefix.split(".")
    return len(parts) == 3 and _valid_octets(parts)


def is_valid_host(host: str) -> bool:
    """Validate a dotted IPv4 address"""
    parts = host.split(".")
    return len(parts) == 4 and _valid_octets(parts)


def extract_prefix(host: Optional[str]) -> Optional[str]:
    """
    Return the first three octets of an IPv4 address

    Example: "192.168.1.50" -> "192.168.1"
    """
    if not host or not is_valid_host(host):
        return None
    return ".".join(host.split(".")[:3])


def get_local_ip() -> Optional[str]:
    """
    Detect the local IP address by finding the interface used to reach
    the internet. No packets are sent.
    """
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    s.settimeout(0.1)
    try:
        s.connect(("8.8.8.8", 80))
        return s.getsockname()[0]
    except OSError as e:
        logger.debug(f"Could not detect local IP: {e}")
        return None
    finally:
        s.close()


def get_local_prefix() -> Optional[str]:
    """
    Auto-detect the local /24 prefix, ignoring loopback and unconfigured
    addresses.

    Returns:
        Subnet prefix like "192.168.1" or None
    """
    prefix = extract_prefix(get_local_ip())
    if not prefix or prefix == "0.0.0" or prefix.startswith("127."):
        return None
    logger.info(f"Auto-detected local network prefix {prefix}")
    return prefix


def is_private_lan_host(host: str) -> bool:
    """
    True for loopback, localhost, mDNS (.local) and RFC1918 IPv4 addresses
    """
    value = host.strip().lower()
    if value == "localhost" or value.endswith(".local"):
        return True
    if not is_valid_host(value):
        return False

    address = ipaddress.IPv4Address(value)
    return address.is_loopback or any(
        address in network
        for network in (
            ipaddress.IPv4Network("10.0.0.0/8"),
            ipaddress.IPv4Network("172.16.0.0/12"),
            ipaddress.IPv4Network("192.168.0.0/16"),
        )
    )
