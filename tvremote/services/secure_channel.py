"""
Certificate-pinned Samsung channel

Sends one key over wss://<host>:8002 to a private-LAN TV, trusting the
TV's self-signed certificate only when its SHA-256 fingerprint matches
the pin recorded on first use.
"""
import asyncio
import hashlib
import logging
import ssl
from dataclasses import dataclass
from typing import Optional

import aiohttp

from ..core.config import Settings, settings as default_settings
from ..commands.errors import (
    AuthenticationError,
    ConnectionTimeoutError,
    SecureChannelError,
    SecureChannelFailure,
    TransportError,
)
from ..utils import samsung_protocol, transport
from ..utils.network_utils import is_private_lan_host

logger = logging.getLogger(__name__)

SECURE_PORT = 8002


def normalize_fingerprint(raw: Optional[str]) -> Optional[str]:
    """Lowercase hex with colons and spaces removed, None when blank"""
    if raw is None:
        return None
    value = raw.strip().lower().replace(":", "").replace(" ", "")
    return value or None


def sha256_fingerprint(certificate: bytes) -> str:
    return hashlib.sha256(certificate).hexdigest()


@dataclass
class TrustDecision:
    accepted: bool
    reason: Optional[SecureChannelFailure] = None
    observed_fingerprint: Optional[str] = None


@dataclass
class PinnedSendResult:
    token: Optional[str] = None
    certificate_fingerprint: Optional[str] = None


def evaluate_server_trust(
    certificate: Optional[bytes],
    expected_host: str,
    pinned_fingerprint: Optional[str],
    challenge_host: Optional[str] = None,
) -> TrustDecision:
    """
    Decide whether to trust the server certificate presented by a TV

    Args:
        certificate: DER bytes of the leaf certificate, None if the
            handshake produced none
        expected_host: host the caller asked to connect to
        pinned_fingerprint: fingerprint recorded on first use, if any
        challenge_host: host the TLS challenge was raised for

    Returns:
        TrustDecision carrying the observed fingerprint whenever a
        certificate was presented
    """
    if challenge_host is not None and challenge_host != expected_host:
        return TrustDecision(False, SecureChannelFailure.INVALID_HOST)

    if not is_private_lan_host(expected_host):
        return TrustDecision(False, SecureChannelFailure.INVALID_HOST)

    if certificate is None:
        return TrustDecision(False, SecureChannelFailure.TRUST_CHALLENGE_MISSING)

    observed = sha256_fingerprint(certificate)
    pinned = normalize_fingerprint(pinned_fingerprint)
    if pinned is not None and pinned != observed:
        return TrustDecision(False, SecureChannelFailure.PIN_MISMATCH, observed)

    return TrustDecision(True, None, observed)


class SecureChannel:
    """Pinned TLS WebSocket sender for Samsung TVs"""

    def __init__(self, config: Settings = default_settings):
        self.config = config

    async def fetch_certificate(self, host: str, port: int = SECURE_PORT) -> Optional[bytes]:
        """TLS handshake without verification, returning the leaf certificate"""
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port, ssl=context),
                timeout=self.config.SAMSUNG_CONNECT_TIMEOUT
            )
        except asyncio.TimeoutError:
            raise SecureChannelError(SecureChannelFailure.TIMEOUT)
        except (OSError, ssl.SSLError) as e:
            raise SecureChannelError(SecureChannelFailure.SEND_FAILED, transport.describe_error(e))

        try:
            ssl_object = writer.get_extra_info("ssl_object")
            if ssl_object is None:
                return None
            return ssl_object.getpeercert(binary_form=True)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (OSError, ssl.SSLError) as e:
                logger.debug(f"TLS pre-flight close for {host} failed: {e}")

    async def send_pinned(
        self,
        host: str,
        key: str,
        token: Optional[str] = None,
        pinned_fingerprint: Optional[str] = None,
    ) -> PinnedSendResult:
        """
        Send one key press over the pinned channel

        Raises:
            SecureChannelError: with the failure reason
        """
        if not is_private_lan_host(host):
            raise SecureChannelError(SecureChannelFailure.INVALID_HOST)

        certificate = await self.fetch_certificate(host, SECURE_PORT)
        decision = evaluate_server_trust(certificate, host, pinned_fingerprint, challenge_host=host)
        if not decision.accepted:
            logger.warning(f"Rejected certificate from {host}: {decision.reason.value}")
            raise SecureChannelError(decision.reason)

        path = samsung_protocol.channel_path(self.config.REMOTE_APP_NAME, token)
        url = f"wss://{host}:{SECURE_PORT}{path}"
        fingerprint = aiohttp.Fingerprint(bytes.fromhex(decision.observed_fingerprint))
        wait = self.config.PINNED_TOKEN_WAIT if token else self.config.SAMSUNG_PROMPT_TIMEOUT

        try:
            async with transport.open_socket_channel(
                url,
                connect_timeout=self.config.SAMSUNG_CONNECT_TIMEOUT,
                ssl=fingerprint
            ) as channel:
                try:
                    await channel.send_json(samsung_protocol.remote_key_payload(key))
                except TransportError as e:
                    raise SecureChannelError(SecureChannelFailure.SEND_FAILED, str(e))

                try:
                    issued = await asyncio.wait_for(samsung_protocol.read_token(channel), timeout=wait)
                except asyncio.TimeoutError:
                    # The key was delivered, the TV just did not issue a token
                    issued = None
        except aiohttp.ServerFingerprintMismatch:
            raise SecureChannelError(SecureChannelFailure.PIN_MISMATCH)
        except AuthenticationError:
            raise SecureChannelError(SecureChannelFailure.UNAUTHORIZED)
        except ConnectionTimeoutError:
            raise SecureChannelError(SecureChannelFailure.TIMEOUT)
        except TransportError as e:
            raise SecureChannelError(SecureChannelFailure.SEND_FAILED, str(e))

        return PinnedSendResult(token=issued, certificate_fingerprint=decision.observed_fingerprint)
