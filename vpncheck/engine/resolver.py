from __future__ import annotations

"""Domain validation, DNS lookups and TCP reachability checks.

All functions here are blocking; the runtime runs them in its I/O executor.
"""

import ipaddress
import logging
import re
import socket
from typing import List, Optional, Sequence

import dns.exception
import dns.resolver
import dns.reversename

from ..models import ResolutionError

logger = logging.getLogger(__name__)

DOMAIN_RE = re.compile(r"([a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}")


def validate_domain(value: object) -> bool:
    """Label-based hostname check. IP literals, ports, paths and whitespace fail."""
    if not isinstance(value, str):
        return False
    return DOMAIN_RE.fullmatch(value) is not None


def _new_resolver(nameservers: Optional[Sequence[str]], timeout: Optional[float]) -> dns.resolver.Resolver:
    if nameservers:
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = list(nameservers)
    else:
        resolver = dns.resolver.Resolver()
    if timeout:
        resolver.timeout = timeout
        resolver.lifetime = max(timeout * 2, timeout + 1.0)
    return resolver


def resolve_a(domain: str, nameservers: Optional[Sequence[str]] = None, timeout: Optional[float] = None) -> List[str]:
    """Return the IPv4 addresses of `domain` in answer order.

    Uses the system resolver unless `nameservers` is given. Raises
    `ResolutionError` when nothing usable comes back.
    """
    try:
        resolver = _new_resolver(nameservers, timeout)
        answers = resolver.resolve(domain, "A")
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers, dns.resolver.YXDOMAIN) as exc:
        raise ResolutionError(f"{exc.__class__.__name__}: {exc}") from exc
    except dns.exception.Timeout as exc:
        raise ResolutionError(f"Timeout resolving {domain}") from exc
    except dns.exception.DNSException as exc:
        raise ResolutionError(f"{exc.__class__.__name__}: {exc}") from exc

    ips: List[str] = []
    for rr in answers:
        ip_text = str(rr).strip()
        try:
            ipaddress.IPv4Address(ip_text)
        except ValueError:
            continue
        if ip_text not in ips:
            ips.append(ip_text)
    if not ips:
        raise ResolutionError(f"No A records for {domain}")
    return ips


def reverse_lookup(ip: str, timeout: Optional[float] = None) -> List[str]:
    """PTR names for `ip`. Best effort: any failure yields an empty list."""
    try:
        resolver = _new_resolver(None, timeout)
        answers = resolver.resolve(dns.reversename.from_address(ip), "PTR")
    except Exception as exc:
        logger.debug("Reverse lookup failed for %s: %s: %s", ip, exc.__class__.__name__, exc)
        return []
    return [str(rr).strip().rstrip(".") for rr in answers if str(rr).strip()]


def resolve_proxy_target(proxy: str, nameservers: Sequence[str], timeout: Optional[float] = None) -> str:
    """Turn a proxy target into a connectable IPv4 address.

    IP literals pass through untouched; hostnames go to the fixed alternate
    resolver pair instead of the system resolver.
    """
    try:
        return str(ipaddress.ip_address(proxy))
    except ValueError:
        pass
    return resolve_a(proxy, nameservers=nameservers, timeout=timeout)[0]


def probe_port(host: str, port: int, timeout: float = 5.0) -> bool:
    try:
        with socket.create_connection((host, int(port)), timeout=timeout):
            return True
    except Exception:
        return False
