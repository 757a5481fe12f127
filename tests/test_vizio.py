from __future__ import annotations

import json

from conftest import make_profile

from tvremote.commands.errors import ErrorKind
from tvremote.commands.executors.network import VizioExecutor
from tvremote.commands.executors.network.vizio import extract_challenge, item_value
from tvremote.commands.models import VizioChallenge
from tvremote.models.credentials import VIZIO_AUTH_TOKENS
from tvremote.models.tv import RemoteCommand, TVBrand

PAIRING_START = json.dumps({
    "STATUS": {"RESULT": "SUCCESS", "DETAIL": "Success"},
    "ITEM": {"PAIRING_REQ_TOKEN": 123456, "CHALLENGE_TYPE": 1},
})

PAIRING_PAIR = json.dumps({
    "STATUS": {"RESULT": "SUCCESS", "DETAIL": "Success"},
    "ITEM": {"AUTH_TOKEN": "Zmx1ZmZ5"},
})

KEY_SUCCESS = json.dumps({"STATUS": {"RESULT": "SUCCESS", "DETAIL": "Success"}})
KEY_UNAUTHORIZED = json.dumps({"STATUS": {"RESULT": "INVALID_AUTH_TOKEN", "DETAIL": "Invalid token"}})


async def test_first_command_starts_pin_pairing(store, fast_settings, fake_http) -> None:
    fake_http.on("https://192.168.1.50:7345/pairing/start", (200, PAIRING_START))

    result = await VizioExecutor(store, fast_settings).execute(
        make_profile(TVBrand.VIZIO), RemoteCommand.POWER
    )

    assert result.ok is False
    assert result.message == "Enter the PIN shown on your Vizio TV to finish pairing."
    assert result.pairing.brand == "vizio"
    assert result.pairing.challenge == VizioChallenge(
        challenge_type=1, pairing_token=123456, device_id="tvremote-tv-1"
    )
    start = fake_http.calls[0]
    assert start.method == "PUT"
    assert start.json["DEVICE_ID"] == "tvremote-tv-1"
    assert start.json["DEVICE_NAME"] == fast_settings.REMOTE_DEVICE_NAME


async def test_pin_completes_pairing_and_commands_succeed(store, fast_settings, fake_http) -> None:
    fake_http.on("/pairing/start", (200, PAIRING_START))
    fake_http.on("/pairing/pair", (200, PAIRING_PAIR))
    fake_http.on("/key_command/", (200, KEY_SUCCESS))
    executor = VizioExecutor(store, fast_settings)
    profile = make_profile(TVBrand.VIZIO)

    started = await executor.execute(profile, RemoteCommand.POWER)
    paired = await executor.complete_pairing(profile, "482913", started.pairing.challenge)
    result = await executor.execute(profile, RemoteCommand.POWER)

    assert paired.ok is True
    assert paired.message == "Vizio pairing complete."
    assert store.get(VIZIO_AUTH_TOKENS, profile) == "Zmx1ZmZ5"
    assert result.ok is True
    assert result.message == "Command sent to Vizio TV."

    pair = fake_http.calls_to("/pairing/pair")[0]
    assert pair.json == {
        "DEVICE_ID": "tvremote-tv-1",
        "CHALLENGE_TYPE": 1,
        "RESPONSE_VALUE": "482913",
        "PAIRING_REQ_TOKEN": 123456,
    }
    key = fake_http.calls_to("/key_command/")[0]
    assert key.headers["AUTH"] == "Zmx1ZmZ5"
    assert key.json == {"KEYLIST": [{"CODESET": 11, "CODE": 2, "ACTION": "KEYPRESS"}]}
    assert len(fake_http.calls_to("/pairing/start")) == 1


async def test_challenge_may_be_a_plain_dict(store, fast_settings, fake_http) -> None:
    fake_http.on("/pairing/pair", (200, PAIRING_PAIR))

    result = await VizioExecutor(store, fast_settings).complete_pairing(
        make_profile(TVBrand.VIZIO),
        "1234",
        {"challengeType": 1, "pairingToken": 55, "deviceId": "tvremote-tv-1"},
    )

    assert result.ok is True
    assert fake_http.calls[0].json["PAIRING_REQ_TOKEN"] == 55


async def test_invalid_pin_is_rejected_before_io(store, fast_settings, fake_http) -> None:
    challenge = VizioChallenge(challenge_type=1, pairing_token=1, device_id="x")

    for pin in ("12a4", "123", "123456789", ""):
        result = await VizioExecutor(store, fast_settings).complete_pairing(
            make_profile(TVBrand.VIZIO), pin, challenge
        )
        assert result.ok is False
        assert result.message == "Enter a valid numeric PIN from your Vizio TV."

    assert fake_http.calls == []


async def test_pin_without_challenge(store, fast_settings, fake_http) -> None:
    result = await VizioExecutor(store, fast_settings).complete_pairing(
        make_profile(TVBrand.VIZIO), "1234"
    )

    assert result.ok is False
    assert result.error == ErrorKind.CONFIGURATION
    assert result.message == "No Vizio pairing session found. Start pairing again."


async def test_wrong_pin_is_an_authentication_failure(store, fast_settings, fake_http) -> None:
    fake_http.on("/pairing/pair", (200, json.dumps({"STATUS": {"RESULT": "INVALID_PIN", "DETAIL": "Wrong PIN"}})))

    result = await VizioExecutor(store, fast_settings).complete_pairing(
        make_profile(TVBrand.VIZIO),
        "0000",
        VizioChallenge(challenge_type=1, pairing_token=1, device_id="tvremote-tv-1"),
    )

    assert result.ok is False
    assert result.error == ErrorKind.AUTHENTICATION
    assert result.message == "Vizio pairing failed. Result: INVALID_PIN. Wrong PIN"


async def test_rejected_token_is_cleared_and_pairing_restarts(store, fast_settings, fake_http) -> None:
    fake_http.on("/key_command/", (200, KEY_UNAUTHORIZED))
    fake_http.on("/pairing/start", (200, PAIRING_START))
    profile = make_profile(TVBrand.VIZIO)
    store.set(VIZIO_AUTH_TOKENS, profile, "expired")

    result = await VizioExecutor(store, fast_settings).execute(profile, RemoteCommand.MUTE)

    assert result.pairing is not None
    assert store.get(VIZIO_AUTH_TOKENS, profile) is None


async def test_other_status_is_a_protocol_failure(store, fast_settings, fake_http) -> None:
    fake_http.on("/key_command/", (200, json.dumps({"STATUS": {"RESULT": "BLOCKED", "DETAIL": "Busy"}})))
    profile = make_profile(TVBrand.VIZIO)
    store.set(VIZIO_AUTH_TOKENS, profile, "token")

    result = await VizioExecutor(store, fast_settings).execute(profile, RemoteCommand.MUTE)

    assert result.error == ErrorKind.PROTOCOL
    assert result.message == "Vizio rejected command (BLOCKED: Busy)."


async def test_falls_back_across_ports(store, fast_settings, fake_http) -> None:
    fake_http.on("http://192.168.1.50:9000/key_command/", (200, ""))
    profile = make_profile(TVBrand.VIZIO)
    store.set(VIZIO_AUTH_TOKENS, profile, "token")

    result = await VizioExecutor(store, fast_settings).execute(profile, RemoteCommand.VOLUME_UP)

    assert result.ok is True
    assert [call.url.rsplit("/key_command/", 1)[0] for call in fake_http.calls] == [
        "https://192.168.1.50:7345",
        "https://192.168.1.50:9000",
        "http://192.168.1.50:7345",
        "http://192.168.1.50:9000",
    ]


def test_payload_helpers() -> None:
    payload = {"ITEM": {"pairing_req_token": "42", "challenge_type": 1.0, "DEVICE_ID": " tv "}}

    assert item_value(payload, "PAIRING_REQ_TOKEN") == "42"
    assert extract_challenge(payload, "fallback") == VizioChallenge(
        challenge_type=1, pairing_token=42, device_id="tv"
    )
    assert extract_challenge({"ITEM": {}}, "fallback") is None
