from __future__ import annotations

import json

from conftest import make_profile

from tvremote.commands.errors import ErrorKind
from tvremote.commands.executors.network import SonyBraviaExecutor
from tvremote.commands.executors.network.sony_bravia import extract_remote_codes, is_unauthorized
from tvremote.models.credentials import SONY_PSK, SONY_REMOTE_CODES
from tvremote.models.tv import RemoteCommand, TVBrand

REMOTE_INFO = json.dumps({
    "result": [
        {"bundled": True, "type": "IR_REMOTE_BUNDLE_TYPE_AEP_N"},
        [
            {"name": "PowerOff", "value": "AAAAAQAAAAEAAAAvAw=="},
            {"name": "VolumeUp", "value": "AAAAAQAAAAEAAAASAw=="},
            {"name": "Mute", "value": "AAAAAQAAAAEAAAAUAw=="},
        ],
    ],
    "id": 1,
})


async def test_missing_psk_asks_for_pairing_without_io(store, fast_settings, fake_http) -> None:
    result = await SonyBraviaExecutor(store, fast_settings).execute(
        make_profile(TVBrand.SONY), RemoteCommand.VOLUME_UP
    )

    assert result.ok is False
    assert result.pairing is not None
    assert result.pairing.brand == "sony"
    assert result.pairing.challenge.kind == "psk"
    assert fake_http.calls == []


async def test_pairing_validates_psk_and_loads_codes(store, fast_settings, fake_http) -> None:
    fake_http.on(":80/sony/system", (200, REMOTE_INFO))
    profile = make_profile(TVBrand.SONY)

    result = await SonyBraviaExecutor(store, fast_settings).complete_pairing(profile, " 1234 ")

    assert result.ok is True
    assert result.message == "Sony TV paired."
    assert store.get(SONY_PSK, profile) == "1234"
    assert store.get(SONY_REMOTE_CODES, profile)["volumeup"] == "AAAAAQAAAAEAAAASAw=="
    assert fake_http.calls[0].headers["X-Auth-PSK"] == "1234"
    assert fake_http.calls[0].json["method"] == "getRemoteControllerInfo"


async def test_short_psk_is_rejected(store, fast_settings, fake_http) -> None:
    result = await SonyBraviaExecutor(store, fast_settings).complete_pairing(
        make_profile(TVBrand.SONY), "12"
    )

    assert result.ok is False
    assert result.error == ErrorKind.CONFIGURATION
    assert fake_http.calls == []


async def test_wrong_psk_keeps_asking(store, fast_settings, fake_http) -> None:
    fake_http.on(":80/sony/system", (403, '{"error": [403, "Forbidden"]}'))
    profile = make_profile(TVBrand.SONY)

    result = await SonyBraviaExecutor(store, fast_settings).complete_pairing(profile, "9999")

    assert result.pairing is not None
    assert store.get(SONY_PSK, profile) is None


async def test_sends_ircc_code_with_psk(store, fast_settings, fake_http) -> None:
    fake_http.on(":80/sony/system", (200, REMOTE_INFO))
    fake_http.on(":80/sony/IRCC", (200, ""))
    profile = make_profile(TVBrand.SONY)
    store.set(SONY_PSK, profile, "1234")

    result = await SonyBraviaExecutor(store, fast_settings).execute(profile, RemoteCommand.POWER)

    assert result.ok is True
    assert result.message == "Command sent to Sony TV."
    ircc = fake_http.calls_to("/sony/IRCC")[0]
    assert ircc.url == "http://192.168.1.50:80/sony/IRCC"
    assert ircc.headers["X-Auth-PSK"] == "1234"
    assert "<IRCCCode>AAAAAQAAAAEAAAAvAw==</IRCCCode>" in ircc.data


async def test_rejected_psk_is_cleared_and_pairing_requested(store, fast_settings, fake_http) -> None:
    fake_http.on(":80/sony/IRCC", (401, ""))
    profile = make_profile(TVBrand.SONY)
    store.set(SONY_PSK, profile, "1234")
    store.set(SONY_REMOTE_CODES, profile, {"mute": "AAAAAQAAAAEAAAAUAw=="})

    result = await SonyBraviaExecutor(store, fast_settings).execute(profile, RemoteCommand.MUTE)

    assert result.ok is False
    assert result.pairing is not None
    assert result.message == "Sony key no longer valid. Re-enter your TV Pre-Shared Key."
    assert store.get(SONY_PSK, profile) is None
    assert store.get(SONY_REMOTE_CODES, profile) is None


async def test_command_missing_from_model_refreshes_once(store, fast_settings, fake_http) -> None:
    fake_http.on(":80/sony/system", (200, REMOTE_INFO))
    profile = make_profile(TVBrand.SONY)
    store.set(SONY_PSK, profile, "1234")
    store.set(SONY_REMOTE_CODES, profile, {"mute": "AAAAAQAAAAEAAAAUAw=="})

    result = await SonyBraviaExecutor(store, fast_settings).execute(profile, RemoteCommand.INPUT)

    assert result.ok is False
    assert result.error == ErrorKind.CONFIGURATION
    assert result.message == "This command is unavailable on this Sony TV model."
    assert len(fake_http.calls_to("/sony/system")) == 1
    assert fake_http.calls_to("/sony/IRCC") == []


def test_find_ircc_code_prefers_exact_then_substring() -> None:
    codes = {"tvpower": "A", "power": "B", "audiovolumeup": "C"}

    assert SonyBraviaExecutor.find_ircc_code(["Power"], codes) == "B"
    assert SonyBraviaExecutor.find_ircc_code(["VolumeUp"], codes) == "C"
    assert SonyBraviaExecutor.find_ircc_code(["Home"], codes) is None


def test_response_helpers() -> None:
    assert is_unauthorized(200, {"error": [401, "Unauthorized"]})
    assert is_unauthorized(403, None)
    assert not is_unauthorized(200, {"result": []})
    assert extract_remote_codes({"result": [{}, [{"name": "Num 1", "value": "X"}]]}) == {"num1": "X"}
    assert extract_remote_codes({"error": [12]}) == {}
