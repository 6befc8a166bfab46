from __future__ import annotations

import asyncio
import json

import httpx
import pytest

import vpncheck.engine.classify as classify
import vpncheck.engine.runtime as runtime
import vpncheck.engine.tls as tls
from vpncheck.engine.probe import PayloadProbeEngine
from vpncheck.models import Family, InvalidDomainError, ProbeSpec, ResolutionError, SecurityLevel
from vpncheck.settings import DEFAULTS

DOMAIN = "example.com"


def _settings():
    return dict(DEFAULTS, proxy_dns=list(DEFAULTS["proxy_dns"]))


class _RecordingEngine:
    def __init__(self):
        self.calls = []

    async def run(self, domain, proxy_ip):
        self.calls.append((domain, proxy_ip))
        return {}


def test_resolution_failure_short_circuits_everything(monkeypatch):
    calls = []

    def record(name):
        def fn(*args, **kwargs):
            calls.append(name)

        return fn

    async def record_async(*args, **kwargs):
        calls.append("async")

    def unresolvable(domain, nameservers=None, timeout=None):
        raise ResolutionError("NXDOMAIN: example.com")

    monkeypatch.setattr(runtime, "resolve_a", unresolvable)
    monkeypatch.setattr(runtime, "probe_port", record("probe_port"))
    monkeypatch.setattr(runtime, "inspect_certificate", record("inspect_certificate"))
    monkeypatch.setattr(runtime, "assess_security", record("assess_security"))
    monkeypatch.setattr(runtime, "check_http_status", record_async)
    monkeypatch.setattr(runtime, "classify_cdn", record_async)
    monkeypatch.setattr(runtime, "classify_hosting", record_async)
    monkeypatch.setattr(runtime, "lookup_geolocation", record_async)

    engine = _RecordingEngine()
    scanner = runtime.DomainScanner(DOMAIN, client=None, settings=_settings(), engine=engine)
    with pytest.raises(ResolutionError):
        asyncio.run(scanner.scan())

    assert calls == []
    assert engine.calls == []


def test_scan_assembles_report_from_all_checks(monkeypatch):
    def handler(request):
        url = str(request.url)
        if url == DEFAULTS["cdn_ranges_url"]:
            return httpx.Response(200, text="173.245.48.0/20\n")
        if "ipapi" in url:
            return httpx.Response(429, json={"error": True})
        if "ip-api" in url:
            return httpx.Response(200, json={"status": "fail"})
        if url.startswith(f"https://{DOMAIN}"):
            return httpx.Response(200)
        raise httpx.ConnectError("unexpected", request=request)

    async def answer(reader, writer):
        try:
            await reader.readuntil(b"\r\n\r\n")
            writer.write(b"HTTP/1.1 200 OK\r\nServer: local\r\nContent-Length: 0\r\n\r\n")
            await writer.drain()
            await reader.read()
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()

    monkeypatch.setattr(runtime, "resolve_a", lambda domain, nameservers=None, timeout=None: ["127.0.0.1"])
    monkeypatch.setattr(runtime, "probe_port", lambda host, port, timeout=5.0: port == 443)
    monkeypatch.setattr(tls, "_handshake", lambda *a, **kw: ("TLSv1.3", "ECDHE-RSA-AES256-GCM-SHA384", None))
    monkeypatch.setattr(classify, "reverse_lookup", lambda ip, timeout=None: [])

    baseline = ProbeSpec(
        name="Direct GET",
        family=Family.GENERAL,
        method="GET",
        path_template="/",
        header_template=(("Host", "{domain}"), ("Connection", "Keep-Alive")),
        use_proxy_routing=True,
    )

    async def scenario():
        server = await asyncio.start_server(answer, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        engine = PayloadProbeEngine(timeout=2.0, proxy_port=port, catalog=[baseline])
        try:
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                scanner = runtime.DomainScanner(DOMAIN, client=client, settings=_settings(), engine=engine)
                return await scanner.scan()
        finally:
            server.close()
            await server.wait_closed()

    report = asyncio.run(scenario())

    assert report.resolved_ips == ("127.0.0.1",)
    assert report.security.level is SecurityLevel.HIGH
    assert dict(report.port_open) == {80: False, 443: True}
    assert report.http_status.protocol == "HTTPS"
    assert report.certificate is None

    ip_report = report.ip_report("127.0.0.1")
    assert ip_report.classification.cdn_name is None
    assert ip_report.classification.hosting_provider is None
    assert ip_report.geolocation is None

    general = ip_report.probes_by_family()[Family.GENERAL]
    assert any(r.success and r.status == 200 for r in general)
    assert general[0].headers["server"] == "local"

    encoded = json.dumps(report.to_dict())
    assert '"level": "High"' in encoded


def test_vpncheck_rejects_invalid_domain_before_io(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("no scan should start for invalid input")

    monkeypatch.setattr(runtime, "_run_async", fail)
    with pytest.raises(InvalidDomainError):
        runtime.VPNCHECK("not a domain")
    with pytest.raises(InvalidDomainError):
        runtime.VPNCHECK("192.0.2.1")
    with pytest.raises(InvalidDomainError):
        runtime.VPNCHECK(" example.com ")


def test_vpncheck_applies_overrides_on_top_of_settings(monkeypatch):
    seen = {}

    async def fake_run(domain, settings):
        seen["domain"] = domain
        seen["settings"] = settings
        return "report"

    monkeypatch.setattr(runtime, "_run_async", fake_run)
    result = runtime.VPNCHECK("example.com", probe_timeout=1.5, proxy_dns=["1.1.1.1"], settings=_settings())

    assert result == "report"
    assert seen["domain"] == "example.com"
    assert seen["settings"]["probe_timeout"] == 1.5
    assert seen["settings"]["proxy_dns"] == ["1.1.1.1"]
    assert seen["settings"]["timeout"] == DEFAULTS["timeout"]


def test_run_coro_sync_works_inside_running_loop():
    async def value():
        return 42

    async def outer():
        return runtime._run_coro_sync(value())

    assert runtime._run_coro_sync(value()) == 42
    assert asyncio.run(outer()) == 42


def test_build_client_limits_redirects():
    client = runtime._build_client(3.0)
    try:
        assert client.max_redirects == runtime.MAX_REDIRECTS
        assert client.timeout.connect == 3.0
    finally:
        asyncio.run(client.aclose())
