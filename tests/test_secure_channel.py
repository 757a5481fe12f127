from __future__ import annotations

import asyncio
import datetime
import ssl

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from tvremote.commands.errors import ErrorKind, SecureChannelError, SecureChannelFailure
from tvremote.services.secure_channel import (
    SecureChannel,
    evaluate_server_trust,
    normalize_fingerprint,
    sha256_fingerprint,
)
from tvremote.utils.network_utils import is_private_lan_host

CERT = b"tv-self-signed-certificate"


def test_normalize_fingerprint() -> None:
    assert normalize_fingerprint("AB:CD ef") == "abcdef"
    assert normalize_fingerprint("  ") is None
    assert normalize_fingerprint(None) is None


def test_first_use_is_accepted_and_reports_fingerprint() -> None:
    decision = evaluate_server_trust(CERT, "192.168.1.50", None)

    assert decision.accepted is True
    assert decision.observed_fingerprint == sha256_fingerprint(CERT)


def test_matching_pin_ignores_case_and_separators() -> None:
    pinned = sha256_fingerprint(CERT).upper()
    pinned = ":".join(pinned[i:i + 2] for i in range(0, len(pinned), 2))

    assert evaluate_server_trust(CERT, "192.168.1.50", pinned).accepted is True


def test_changed_certificate_is_a_pin_mismatch() -> None:
    decision = evaluate_server_trust(CERT, "192.168.1.50", "00" * 32)

    assert decision.accepted is False
    assert decision.reason == SecureChannelFailure.PIN_MISMATCH
    assert decision.observed_fingerprint == sha256_fingerprint(CERT)


@pytest.mark.parametrize(
    "certificate,host,challenge_host,reason",
    [
        (CERT, "8.8.8.8", None, SecureChannelFailure.INVALID_HOST),
        (CERT, "192.168.1.50", "192.168.1.51", SecureChannelFailure.INVALID_HOST),
        (None, "192.168.1.50", None, SecureChannelFailure.TRUST_CHALLENGE_MISSING),
    ],
)
def test_rejections(certificate, host, challenge_host, reason) -> None:
    decision = evaluate_server_trust(certificate, host, None, challenge_host=challenge_host)

    assert decision.accepted is False
    assert decision.reason == reason


def test_private_lan_hosts() -> None:
    for host in ("10.1.2.3", "172.20.0.5", "192.168.0.9", "127.0.0.1", "localhost", "tv.local"):
        assert is_private_lan_host(host), host
    for host in ("172.32.0.1", "8.8.8.8", "example.com"):
        assert not is_private_lan_host(host), host


def test_secure_channel_error_kinds() -> None:
    assert SecureChannelError(SecureChannelFailure.PIN_MISMATCH).kind == ErrorKind.TRUST
    assert SecureChannelError(SecureChannelFailure.UNAUTHORIZED).kind == ErrorKind.AUTHENTICATION
    assert SecureChannelError(SecureChannelFailure.TIMEOUT).kind == ErrorKind.TRANSPORT


async def test_public_host_is_refused_before_connecting(fast_settings, monkeypatch) -> None:
    channel = SecureChannel(fast_settings)

    async def must_not_connect(*args, **kwargs):
        raise AssertionError("handshake attempted")

    monkeypatch.setattr(channel, "fetch_certificate", must_not_connect)

    with pytest.raises(SecureChannelError) as excinfo:
        await channel.send_pinned("8.8.8.8", "KEY_POWER")
    assert excinfo.value.reason == SecureChannelFailure.INVALID_HOST


async def test_pin_mismatch_stops_before_the_socket(fast_settings, fake_sockets, monkeypatch) -> None:
    channel = SecureChannel(fast_settings)

    async def certificate(host, port=8002):
        return CERT

    monkeypatch.setattr(channel, "fetch_certificate", certificate)

    with pytest.raises(SecureChannelError) as excinfo:
        await channel.send_pinned("192.168.1.50", "KEY_POWER", pinned_fingerprint="11" * 32)
    assert excinfo.value.reason == SecureChannelFailure.PIN_MISMATCH
    assert fake_sockets.opened == []


async def test_trusted_send_returns_token_and_fingerprint(fast_settings, fake_sockets, monkeypatch) -> None:
    channel = SecureChannel(fast_settings)

    async def certificate(host, port=8002):
        return CERT

    monkeypatch.setattr(channel, "fetch_certificate", certificate)
    fake_sockets.on(
        "wss://192.168.1.50:8002",
        lambda url, payload: [{"event": "ms.channel.connect", "data": {"token": "555"}}],
    )

    result = await channel.send_pinned("192.168.1.50", "KEY_MUTE")

    assert result.token == "555"
    assert result.certificate_fingerprint == sha256_fingerprint(CERT)
    assert fake_sockets.channels[0].sent[0]["params"]["DataOfCmd"] == "KEY_MUTE"


async def test_unauthorized_channel_event(fast_settings, fake_sockets, monkeypatch) -> None:
    channel = SecureChannel(fast_settings)

    async def certificate(host, port=8002):
        return CERT

    monkeypatch.setattr(channel, "fetch_certificate", certificate)
    fake_sockets.on(":8002", lambda url, payload: [{"event": "ms.channel.unauthorized"}])

    with pytest.raises(SecureChannelError) as excinfo:
        await channel.send_pinned("192.168.1.50", "KEY_MUTE", token="old")
    assert excinfo.value.reason == SecureChannelFailure.UNAUTHORIZED
    assert "token=old" in fake_sockets.opened[0]


@pytest.fixture(scope="module")
def self_signed(tmp_path_factory):
    """Certificate and key files like the ones a TV generates for itself"""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "[TV] Samsung")])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )

    directory = tmp_path_factory.mktemp("tv-cert")
    cert_path = directory / "cert.pem"
    key_path = directory / "key.pem"
    cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption()
    ))
    return certificate, cert_path, key_path


async def serve(handler, ssl_context=None):
    server = await asyncio.start_server(handler, "127.0.0.1", 0, ssl=ssl_context)
    return server, server.sockets[0].getsockname()[1]


async def read_until_closed(reader, writer) -> None:
    await reader.read()
    writer.close()


async def test_fetch_certificate_returns_the_leaf(fast_settings, self_signed) -> None:
    certificate, cert_path, key_path = self_signed
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(cert_path, key_path)
    server, port = await serve(read_until_closed, context)

    try:
        der = await SecureChannel(fast_settings).fetch_certificate("127.0.0.1", port)
    finally:
        server.close()
        await server.wait_closed()

    assert der == certificate.public_bytes(serialization.Encoding.DER)
    assert sha256_fingerprint(der) == certificate.fingerprint(hashes.SHA256()).hex()
    assert evaluate_server_trust(der, "127.0.0.1", None).accepted is True


async def test_fetch_certificate_from_silent_server_times_out(fast_settings) -> None:
    server, port = await serve(read_until_closed)

    try:
        with pytest.raises(SecureChannelError) as excinfo:
            await SecureChannel(fast_settings).fetch_certificate("127.0.0.1", port)
    finally:
        server.close()
        await server.wait_closed()

    assert excinfo.value.reason == SecureChannelFailure.TIMEOUT


async def test_fetch_certificate_from_plain_http_fails(fast_settings) -> None:
    async def plain_http(reader, writer):
        await reader.read(1024)
        writer.write(b"HTTP/1.1 400 Bad Request\r\nContent-Length: 0\r\n\r\n")
        await writer.drain()
        writer.close()

    server, port = await serve(plain_http)

    try:
        with pytest.raises(SecureChannelError) as excinfo:
            await SecureChannel(fast_settings).fetch_certificate("127.0.0.1", port)
    finally:
        server.close()
        await server.wait_closed()

    assert excinfo.value.reason == SecureChannelFailure.SEND_FAILED
