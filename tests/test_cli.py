from __future__ import annotations

import json

import pytest

from conftest import FakeProber

from tvremote.models.tv import TVBrand
from tvremote.services import standalone_network_scanner as cli
from tvremote.services.network_scanner import NetworkScanner


def test_options_from_args() -> None:
    args = cli.build_parser().parse_args(
        ["--prefix", "10.0.0", "--prefix", "10.0.1", "--host", "10.0.0.9", "--start", "5", "--end", "9", "--concurrency", "3"]
    )

    options = cli.options_from_args(args)

    assert options.prefixes == ["10.0.0", "10.0.1"]
    assert options.hosts == ["10.0.0.9"]
    assert (options.host_range_start, options.host_range_end) == (5, 9)
    assert options.max_concurrency == 3


def test_no_ranges_disables_subnet_sweep() -> None:
    args = cli.build_parser().parse_args(["--no-ranges", "--host", "10.0.0.9"])

    assert cli.options_from_args(args).prefixes == []


async def test_perform_scan_prints_json_lines(fast_settings, fake_http, capsys) -> None:
    scanner = NetworkScanner([FakeProber(TVBrand.ROKU, {"10.0.0.9"})], fast_settings)
    args = cli.build_parser().parse_args(["--no-ranges", "--host", "10.0.0.9", "--json"])

    found = await cli.perform_scan(args, scanner)

    assert found == 1
    lines = capsys.readouterr().out.splitlines()
    assert json.loads(lines[0])["id"] == "roku-10.0.0.9"


async def test_perform_scan_prints_table(fast_settings, fake_http, capsys) -> None:
    scanner = NetworkScanner([FakeProber(TVBrand.ROKU, {"10.0.0.9"})], fast_settings)
    args = cli.build_parser().parse_args(["--no-ranges", "--host", "10.0.0.9"])

    await cli.perform_scan(args, scanner)

    out = capsys.readouterr().out
    assert "10.0.0.9" in out
    assert "roku" in out


def test_run_exit_code_when_nothing_found(monkeypatch) -> None:
    async def nothing(args, scanner=None):
        return 0

    monkeypatch.setattr(cli, "perform_scan", nothing)

    with pytest.raises(SystemExit) as excinfo:
        cli.run(["--no-ranges"])
    assert excinfo.value.code == 1
