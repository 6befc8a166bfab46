from __future__ import annotations

"""Infrastructure classifiers: CDN, hosting provider, geolocation, HTTP status.

Every classifier is best effort. Lookup failures are raised internally as
`ClassifierError` and turned into an absent value at the public boundary.
"""

import asyncio
import ipaddress
import logging
import re
from concurrent.futures import Executor
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from ..models import ClassifierError, GeoLocation, HostingInfo, HostingType, HttpStatus, error_text
from .resolver import reverse_lookup

logger = logging.getLogger(__name__)

RANGE_CDN_NAME = "Cloudflare"

CDN_HOSTNAME_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("Akamai", re.compile(r"(akamai|akam)", re.IGNORECASE)),
    ("Fastly", re.compile(r"(fastly)", re.IGNORECASE)),
    ("Amazon CloudFront", re.compile(r"(cloudfront|amazon)", re.IGNORECASE)),
    ("Google Cloud CDN", re.compile(r"(google|googleusercontent)", re.IGNORECASE)),
    ("Microsoft Azure CDN", re.compile(r"(azure|msedge)", re.IGNORECASE)),
)

HOSTING_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("AWS", re.compile(r"(amazon|aws)", re.IGNORECASE)),
    ("Google Cloud", re.compile(r"(google|googlecloud)", re.IGNORECASE)),
    ("Azure", re.compile(r"(microsoft|azure|msft)", re.IGNORECASE)),
    ("DigitalOcean", re.compile(r"(digitalocean)", re.IGNORECASE)),
    ("Linode", re.compile(r"(linode)", re.IGNORECASE)),
    ("OVH", re.compile(r"(ovh)", re.IGNORECASE)),
    ("Vultr", re.compile(r"(vultr)", re.IGNORECASE)),
    ("Hetzner", re.compile(r"(hetzner)", re.IGNORECASE)),
)
DATACENTER_RE = re.compile(r"datacenter|hosting|cloud", re.IGNORECASE)

HTTP_STATUS_CANDIDATES = (("HTTPS", "https://{domain}"), ("HTTP", "http://{domain}"))


def _ipv4_int(value: str) -> int:
    return int(ipaddress.IPv4Address(value.strip()))


def ip_in_cidr(ip: str, cidr: str) -> bool:
    """Prefix-mask membership test: (ip & mask) == (network & mask).

    Raises ValueError for malformed input.
    """
    network, _, bits_text = cidr.strip().partition("/")
    bits = int(bits_text) if bits_text else 32
    if not 0 <= bits <= 32:
        raise ValueError(f"Invalid prefix length in {cidr!r}")
    # /0 would need a 32-bit shift; mask it explicitly instead.
    mask = 0 if bits == 0 else (0xFFFFFFFF << (32 - bits)) & 0xFFFFFFFF
    return (_ipv4_int(ip) & mask) == (_ipv4_int(network) & mask)


def ip_in_ranges(ip: str, ranges: Iterable[str]) -> bool:
    for cidr in ranges:
        try:
            if ip_in_cidr(ip, cidr):
                return True
        except ValueError:
            logger.debug("Skipping malformed CIDR block %r", cidr)
    return False


async def fetch_cdn_ranges(client: httpx.AsyncClient, url: str, timeout: Optional[float] = None) -> List[str]:
    """Download the published CIDR list. Fetched fresh on every call."""
    try:
        response = await client.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
    except Exception as exc:
        raise ClassifierError(error_text(exc)) from exc
    return [line.strip() for line in response.text.splitlines() if line.strip()]


async def is_known_cdn_range(client: httpx.AsyncClient, ip: str, url: str, timeout: Optional[float] = None) -> bool:
    try:
        ranges = await fetch_cdn_ranges(client, url, timeout=timeout)
    except ClassifierError as exc:
        logger.debug("CDN range list unavailable: %s", exc)
        return False
    return ip_in_ranges(ip, ranges)


def match_cdn_hostnames(hostnames: Iterable[str]) -> Optional[str]:
    names = [h for h in hostnames if h]
    for cdn, pattern in CDN_HOSTNAME_PATTERNS:
        if any(pattern.search(name) for name in names):
            return cdn
    return None


async def match_cdn_by_hostname(
    ip: str,
    lookup: Callable[..., List[str]] = reverse_lookup,
    executor: Optional[Executor] = None,
    timeout: Optional[float] = None,
) -> Optional[str]:
    loop = asyncio.get_running_loop()
    hostnames = await loop.run_in_executor(executor, lambda: lookup(ip, timeout=timeout))
    return match_cdn_hostnames(hostnames)


async def classify_cdn(
    client: httpx.AsyncClient,
    ip: str,
    ranges_url: str,
    executor: Optional[Executor] = None,
    timeout: Optional[float] = None,
) -> Optional[str]:
    """Published-range match first, reverse-DNS signature second."""
    if await is_known_cdn_range(client, ip, ranges_url, timeout=timeout):
        return RANGE_CDN_NAME
    return await match_cdn_by_hostname(ip, lookup=reverse_lookup, executor=executor, timeout=timeout)


async def _fetch_json(client: httpx.AsyncClient, url: str, timeout: Optional[float] = None) -> Dict[str, Any]:
    try:
        response = await client.get(url, timeout=timeout, follow_redirects=True)
    except Exception as exc:
        raise ClassifierError(error_text(exc)) from exc
    if response.status_code >= 400:
        raise ClassifierError(f"HTTP {response.status_code}")
    try:
        payload = response.json()
    except Exception as exc:
        raise ClassifierError(f"Invalid JSON from {url}") from exc
    if not isinstance(payload, dict):
        raise ClassifierError(f"Unexpected payload from {url}")
    return payload


def classify_org(org: str) -> HostingInfo:
    for provider, pattern in HOSTING_PATTERNS:
        if pattern.search(org):
            return HostingInfo(provider=provider, hosting_type=HostingType.VPS_CLOUD)
    if DATACENTER_RE.search(org):
        return HostingInfo(provider=org, hosting_type=HostingType.DATACENTER)
    return HostingInfo(provider=org, hosting_type=HostingType.DEDICATED_OTHER)


async def classify_hosting(
    client: httpx.AsyncClient,
    ip: str,
    url_template: str,
    timeout: Optional[float] = None,
) -> Optional[HostingInfo]:
    try:
        payload = await _fetch_json(client, url_template.format(ip=ip), timeout=timeout)
        org = payload.get("org")
        if not isinstance(org, str) or not org.strip():
            raise ClassifierError("Missing organization in IP intelligence response")
    except ClassifierError as exc:
        logger.debug("Hosting lookup failed for %s: %s", ip, exc)
        return None
    return classify_org(org.strip())


async def lookup_geolocation(
    client: httpx.AsyncClient,
    ip: str,
    url_template: str,
    timeout: Optional[float] = None,
) -> Optional[GeoLocation]:
    try:
        payload = await _fetch_json(client, url_template.format(ip=ip), timeout=timeout)
    except ClassifierError as exc:
        logger.debug("Geolocation lookup failed for %s: %s", ip, exc)
        return None
    if payload.get("status") != "success":
        return None
    return GeoLocation(
        city=payload.get("city"),
        country=payload.get("country"),
        isp=payload.get("isp"),
        region=payload.get("regionName"),
    )


async def check_http_status(client: httpx.AsyncClient, domain: str, timeout: Optional[float] = None) -> Optional[HttpStatus]:
    """HTTPS first, then HTTP. Any status code counts as reachable."""
    for protocol, template in HTTP_STATUS_CANDIDATES:
        url = template.format(domain=domain)
        try:
            response = await client.get(url, timeout=timeout, follow_redirects=True)
        except Exception as exc:
            logger.debug("HTTP status check failed for %s: %s", url, error_text(exc))
            continue
        return HttpStatus(protocol=protocol, status=response.status_code, url=url)
    return None
