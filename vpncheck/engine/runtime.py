from __future__ import annotations

"""Report assembly runtime for vpncheck.

This module is the seam used by both the CLI and the Python API:
- `DomainScanner` runs every check for one domain and assembles a frozen
  `DomainReport`
- `_run_async` owns the shared HTTP client and I/O thread pool for one scan
- `_run_coro_sync` / `VPNCHECK` expose the whole thing to sync callers

Blocking work (dnspython, sockets, TLS handshakes) always goes through the I/O
executor so the event loop only ever waits on the payload probes and httpx.
"""

import asyncio
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import httpx
from dotenv import load_dotenv

from ..models import (
    ClassificationResult,
    DomainReport,
    InvalidDomainError,
    IPReport,
    ResolutionError,
)
from ..settings import load_runtime_settings, merge_overrides
from .classify import check_http_status, classify_cdn, classify_hosting, lookup_geolocation
from .probe import PayloadProbeEngine
from .resolver import probe_port, resolve_a, validate_domain
from .tls import assess_security, inspect_certificate

load_dotenv()

PROBED_PORTS = (80, 443)
MAX_REDIRECTS = 5

logger = logging.getLogger("vpncheck")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))
    logger.addHandler(handler)


def _build_client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        http2=True,
        verify=False,
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
        max_redirects=MAX_REDIRECTS,
    )


class DomainScanner:
    """Run resolution, reachability, TLS, classification and payload checks
    for one domain.

    Resolution comes first and is the only terminal step: when it fails a
    `ResolutionError` propagates and nothing else is attempted. Every other
    check is contained and shows up in the report as a negative or absent
    value.
    """

    def __init__(
        self,
        domain: str,
        client: httpx.AsyncClient,
        settings: Optional[Mapping[str, Any]] = None,
        io_executor: Optional[ThreadPoolExecutor] = None,
        engine: Optional[PayloadProbeEngine] = None,
    ):
        self.domain = domain
        self.client = client
        self.settings = dict(settings) if settings is not None else load_runtime_settings()
        self.io_executor = io_executor
        self.timeout = float(self.settings["timeout"])
        self.engine = engine or PayloadProbeEngine(
            timeout=float(self.settings["probe_timeout"]),
            proxy_dns=self.settings["proxy_dns"],
            proxy_port=int(self.settings["proxy_port"]),
            direct_port=int(self.settings["direct_port"]),
            executor=io_executor,
        )

    async def _blocking(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.io_executor, lambda: fn(*args, **kwargs))

    async def _resolve(self) -> List[str]:
        try:
            return await self._blocking(resolve_a, self.domain, timeout=self.timeout)
        except ResolutionError as exc:
            logger.warning("Could not resolve %s: %s", self.domain, exc)
            raise

    async def _ports(self) -> Dict[int, bool]:
        port_timeout = float(self.settings["port_timeout"])
        states = await asyncio.gather(
            *(self._blocking(probe_port, self.domain, port, timeout=port_timeout) for port in PROBED_PORTS)
        )
        return dict(zip(PROBED_PORTS, states))

    async def _classify(self, ip: str) -> ClassificationResult:
        cdn, hosting = await asyncio.gather(
            classify_cdn(
                self.client,
                ip,
                self.settings["cdn_ranges_url"],
                executor=self.io_executor,
                timeout=self.timeout,
            ),
            classify_hosting(self.client, ip, self.settings["hosting_url"], timeout=self.timeout),
        )
        return ClassificationResult(
            cdn_name=cdn,
            hosting_provider=hosting.provider if hosting else None,
            hosting_type=hosting.hosting_type if hosting else None,
        )

    async def _ip_report(self, ip: str) -> IPReport:
        classification, geolocation, probes = await asyncio.gather(
            self._classify(ip),
            lookup_geolocation(self.client, ip, self.settings["geo_url"], timeout=self.timeout),
            self.engine.run(self.domain, ip),
        )
        succeeded = sum(1 for result in probes.values() if result.success)
        logger.debug("%s via %s: %d/%d probes succeeded", self.domain, ip, succeeded, len(probes))
        return IPReport(ip=ip, classification=classification, probes=probes, geolocation=geolocation)

    async def scan(self) -> DomainReport:
        """Execute the full check set and return the assembled report.

        Raises `ResolutionError` when the domain has no usable A record.
        """
        ips = await self._resolve()
        logger.debug("Resolved %s to %s", self.domain, ", ".join(ips))

        http_status, ports, certificate, security, ip_reports = await asyncio.gather(
            check_http_status(self.client, self.domain, timeout=self.timeout),
            self._ports(),
            self._blocking(
                inspect_certificate,
                self.domain,
                use_sni=True,
                port=int(self.settings["direct_port"]),
                timeout=self.timeout,
            ),
            self._blocking(assess_security, self.domain, port=int(self.settings["direct_port"]), timeout=self.timeout),
            asyncio.gather(*(self._ip_report(ip) for ip in ips)),
        )

        return DomainReport(
            domain=self.domain,
            resolved_ips=tuple(ips),
            http_status=http_status,
            port_open=ports,
            certificate=certificate,
            security=security,
            ips=tuple(ip_reports),
        )


async def _run_async(domain: str, settings: Mapping[str, Any]) -> DomainReport:
    """Own the shared resources for one scan and close them afterwards."""
    timeout = float(settings["timeout"])
    with ThreadPoolExecutor(max_workers=32) as io_executor:
        async with _build_client(timeout) as client:
            scanner = DomainScanner(domain, client=client, settings=settings, io_executor=io_executor)
            return await scanner.scan()


def _run_coro_sync(coro: Any) -> Any:
    """Run async code from sync callers (CLI and public API).

    Inside a running event loop the coroutine is executed on a helper thread,
    since `asyncio.run()` refuses to nest.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["result"] = asyncio.run(coro)
        except Exception as exc:
            outcome["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")


def VPNCHECK(
    domain: str,
    timeout: Optional[float] = None,
    probe_timeout: Optional[float] = None,
    port_timeout: Optional[float] = None,
    proxy_dns: Optional[Sequence[str]] = None,
    settings: Optional[Mapping[str, Any]] = None,
) -> DomainReport:
    """Public synchronous Python API entrypoint.

    Example:
    `VPNCHECK("example.com", probe_timeout=3.0)`

    Raises `InvalidDomainError` before any network I/O when `domain` is not a
    hostname, and `ResolutionError` when it does not resolve. The domain is
    validated as given; surrounding whitespace is not stripped.
    """
    if not validate_domain(domain):
        raise InvalidDomainError(f"Invalid domain: {domain!r}")

    effective = merge_overrides(
        dict(settings) if settings is not None else load_runtime_settings(),
        timeout=timeout,
        probe_timeout=probe_timeout,
        port_timeout=port_timeout,
        proxy_dns=list(proxy_dns) if proxy_dns else None,
    )
    return _run_coro_sync(_run_async(domain, effective))
