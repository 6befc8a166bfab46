from __future__ import annotations

"""Payload probe engine.

Each catalog entry becomes one bounded HTTP/1.1 exchange. The request is
written by hand so non-standard methods, absolute-URI paths and `Expect`
headers go out exactly as templated, and the first response head decides the
outcome:

- 100 to an `Expect: 100-continue` request -> continue (body never sent)
- 101 -> upgrade (socket dropped, no duplex use)
- other 1xx -> ignored, keep reading
- anything else -> response
- transport/handshake/parse failure -> error
- no decision before the deadline -> timeout

The whole exchange runs under one `asyncio.wait_for`, so exactly one outcome
is produced per probe and the connection is aborted on every exit path.
"""

import asyncio
import logging
import re
import ssl
import time
from concurrent.futures import Executor
from typing import Dict, Iterable, Optional, Sequence, Tuple

from ..models import ProbeOutcome, ProbeResult, ProbeSpec, VpnCheckError, error_text
from ..settings import DEFAULT_PROXY_DNS
from .payloads import CATALOG
from .resolver import resolve_proxy_target

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "Timeout"
CONTINUE_MARKER_HEADERS = {
    "status": "100 Continue",
    "connection": "keep-alive",
    "content-length": "1024",
}
STATUS_LINE_RE = re.compile(r"HTTP/\d(?:\.\d)?\s+(\d{3})(?:\s.*)?")
HEAD_TERMINATOR = b"\r\n\r\n"


class ProbeProtocolError(VpnCheckError):
    """The peer answered with something that is not an HTTP/1.x response head."""


def _probe_tls_context() -> ssl.SSLContext:
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def build_request(spec: ProbeSpec, domain: str) -> bytes:
    path = spec.render_path(domain)
    if spec.use_proxy_routing:
        # Forward-proxy form: the proxy sees an absolute URI for the real target.
        path = f"http://{domain}{path}"
    lines = [f"{spec.method} {path} HTTP/1.1"]
    lines.extend(f"{key}: {value}" for key, value in spec.render_headers(domain).items())
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")


def parse_response_head(raw: bytes) -> Tuple[int, Dict[str, str]]:
    """Parse a status line plus headers. Header names are lowercased and
    repeated headers are joined with ", "."""
    lines = raw.decode("iso-8859-1").split("\r\n")
    match = STATUS_LINE_RE.fullmatch(lines[0].strip())
    if not match:
        raise ProbeProtocolError(f"Malformed status line: {lines[0][:80]!r}")
    headers: Dict[str, str] = {}
    for line in lines[1:]:
        if not line:
            continue
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            raise ProbeProtocolError(f"Malformed header line: {line[:80]!r}")
        key = name.strip().lower()
        value = value.strip()
        headers[key] = f"{headers[key]}, {value}" if key in headers else value
    return int(match.group(1)), headers


async def read_response_head(reader: asyncio.StreamReader) -> Tuple[int, Dict[str, str]]:
    try:
        raw = await reader.readuntil(HEAD_TERMINATOR)
    except asyncio.IncompleteReadError as exc:
        raise ConnectionResetError("Connection closed before response head") from exc
    except asyncio.LimitOverrunError as exc:
        raise ProbeProtocolError("Response head too large") from exc
    return parse_response_head(raw)


class PayloadProbeEngine:
    """Run the probe catalog against one domain and one proxy target.

    Direct probes connect to `domain:direct_port` over TLS. Proxy-routed
    probes connect in clear text to `proxy_ip:proxy_port` while the request
    line and `Host` still name the domain. The proxy hop is always plain TCP;
    no TLS handshake is attempted on `proxy_port`.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        proxy_dns: Sequence[str] = DEFAULT_PROXY_DNS,
        proxy_port: int = 80,
        direct_port: int = 443,
        catalog: Iterable[ProbeSpec] = CATALOG,
        executor: Optional[Executor] = None,
    ):
        self.timeout = timeout
        self.proxy_dns = list(proxy_dns)
        self.proxy_port = proxy_port
        self.direct_port = direct_port
        self.catalog = tuple(catalog)
        self.executor = executor

    async def run(self, domain: str, proxy_ip: str) -> Dict[str, ProbeResult]:
        results = await asyncio.gather(*(self.probe(spec, domain, proxy_ip) for spec in self.catalog))
        return {result.name: result for result in results}

    async def probe(self, spec: ProbeSpec, domain: str, proxy_ip: str) -> ProbeResult:
        started = time.perf_counter()

        def elapsed() -> int:
            return int((time.perf_counter() - started) * 1000)

        try:
            outcome, status, headers = await asyncio.wait_for(self._exchange(spec, domain, proxy_ip), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.debug("Probe %s on %s timed out", spec.name, domain)
            return ProbeResult.build(spec, ProbeOutcome.TIMEOUT, error=TIMEOUT_ERROR, elapsed_ms=elapsed())
        except Exception as exc:
            logger.debug("Probe %s on %s failed: %s", spec.name, domain, error_text(exc))
            return ProbeResult.build(spec, ProbeOutcome.ERROR, error=error_text(exc), elapsed_ms=elapsed())
        return ProbeResult.build(spec, outcome, status=status, headers=headers, elapsed_ms=elapsed())

    async def _peer(self, spec: ProbeSpec, domain: str, proxy_ip: str) -> Tuple[str, int, Optional[ssl.SSLContext]]:
        if spec.use_proxy_routing:
            loop = asyncio.get_running_loop()
            address = await loop.run_in_executor(
                self.executor,
                lambda: resolve_proxy_target(proxy_ip, self.proxy_dns, timeout=self.timeout),
            )
            return address, self.proxy_port, None
        return domain, self.direct_port, _probe_tls_context()

    async def _exchange(self, spec: ProbeSpec, domain: str, proxy_ip: str) -> Tuple[ProbeOutcome, int, Dict[str, str]]:
        host, port, tls = await self._peer(spec, domain, proxy_ip)
        reader, writer = await asyncio.open_connection(host, port, ssl=tls, server_hostname=domain if tls else None)
        try:
            writer.write(build_request(spec, domain))
            await writer.drain()
            expects_continue = spec.expects_continue()
            while True:
                status, headers = await read_response_head(reader)
                if status == 100 and expects_continue:
                    return ProbeOutcome.CONTINUE, 100, dict(CONTINUE_MARKER_HEADERS)
                if status == 101:
                    return ProbeOutcome.UPGRADE, 101, headers
                if 100 <= status < 200:
                    continue
                return ProbeOutcome.RESPONSE, status, headers
        finally:
            writer.transport.abort()
