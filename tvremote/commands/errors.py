"""
Error taxonomy for the command layer

Executors raise these internally and convert them into a
DispatchResult at their public boundary.
"""

from enum import Enum


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    TRUST = "trust"


class TVRemoteError(Exception):
    """Base error for tvremote."""

    kind = ErrorKind.PROTOCOL


class ConfigurationError(TVRemoteError):
    """Missing host, unmapped command or invalid user input."""

    kind = ErrorKind.CONFIGURATION


class AuthenticationError(TVRemoteError):
    """The TV rejected a token, client key or pre-shared key."""

    kind = ErrorKind.AUTHENTICATION


class TransportError(TVRemoteError):
    """Connection timeout, socket error or unreachable host."""

    kind = ErrorKind.TRANSPORT


class ConnectionTimeoutError(TransportError):
    """A connection or response did not arrive in time."""


class ProtocolError(TVRemoteError):
    """SOAP fault, non-success status or malformed response."""

    kind = ErrorKind.PROTOCOL


class SecureChannelFailure(str, Enum):
    INVALID_HOST = "invalid_host"
    TIMEOUT = "timeout"
    UNAUTHORIZED = "unauthorized"
    PIN_MISMATCH = "pin_mismatch"
    TRUST_CHALLENGE_MISSING = "trust_challenge_missing"
    SEND_FAILED = "send_failed"


_SECURE_CHANNEL_MESSAGES = {
    SecureChannelFailure.INVALID_HOST: "Only private LAN Samsung hosts are allowed for direct TLS override.",
    SecureChannelFailure.TIMEOUT: "Samsung TV connection timed out.",
    SecureChannelFailure.UNAUTHORIZED: "Samsung TV denied remote authorization.",
    SecureChannelFailure.PIN_MISMATCH: "Samsung TV certificate fingerprint changed. Re-pair this TV.",
    SecureChannelFailure.TRUST_CHALLENGE_MISSING: "Samsung TLS trust challenge missing server trust.",
    SecureChannelFailure.SEND_FAILED: "Samsung payload failed to send.",
}


class SecureChannelError(TVRemoteError):
    """Typed failure of the pinned TLS channel"""

    def __init__(self, reason: SecureChannelFailure, details: str = ""):
        self.reason = reason
        message = _SECURE_CHANNEL_MESSAGES[reason]
        if details:
            message = f"{message} {details}"
        super().__init__(message)

    @property
    def kind(self) -> ErrorKind:
        if self.reason == SecureChannelFailure.PIN_MISMATCH:
            return ErrorKind.TRUST
        if self.reason == SecureChannelFailure.UNAUTHORIZED:
            return ErrorKind.AUTHENTICATION
        if self.reason == SecureChannelFailure.INVALID_HOST:
            return ErrorKind.CONFIGURATION
        return ErrorKind.TRANSPORT
