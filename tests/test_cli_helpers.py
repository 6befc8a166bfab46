from __future__ import annotations

import json
from pathlib import Path

import vpncheck.cli as cli
from vpncheck.models import ResolutionError


def test_load_domains_from_file_skips_blank_and_comment_lines(tmp_path: Path):
    source = tmp_path / "domains.txt"
    source.write_text("\nexample.com\n# staging\n\nwww.test.org\n", encoding="utf-8")
    assert cli._load_domains_from_file(str(source)) == ["example.com", "www.test.org"]


def test_normalize_domain_input_accepts_url_and_plain_domain():
    assert cli._normalize_domain_input("https://Example.com/path?q=1") == "example.com"
    assert cli._normalize_domain_input("sub.example.com.") == "sub.example.com"
    assert cli._normalize_domain_input("not a domain") is None
    assert cli._normalize_domain_input("10.0.0.1") is None


def test_parse_proxy_dns():
    assert cli._parse_proxy_dns(None) is None
    assert cli._parse_proxy_dns(" , ") is None
    assert cli._parse_proxy_dns("1.1.1.1, 9.9.9.9") == ["1.1.1.1", "9.9.9.9"]


def test_main_json_reports_resolution_failure(monkeypatch, capsys):
    def unresolvable(domain, settings=None):
        raise ResolutionError("NXDOMAIN")

    monkeypatch.setattr(cli, "VPNCHECK", unresolvable)
    cli.main(["-d", "missing.example", "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert payload == {"domain": "missing.example", "error": "could not resolve domain"}


def test_main_passes_cli_overrides(monkeypatch, tmp_path: Path):
    seen = []

    def fake_vpncheck(domain, settings=None):
        seen.append((domain, settings))
        raise ResolutionError("NXDOMAIN")

    source = tmp_path / "domains.txt"
    source.write_text("one.example\nbad input\ntwo.example\n", encoding="utf-8")

    monkeypatch.setattr(cli, "VPNCHECK", fake_vpncheck)
    cli.main(["-f", str(source), "--silent", "--probe-timeout", "1.5", "--proxy-dns", "1.1.1.1"])

    assert [domain for domain, _ in seen] == ["one.example", "two.example"]
    assert seen[0][1]["probe_timeout"] == 1.5
    assert seen[0][1]["proxy_dns"] == ["1.1.1.1"]
