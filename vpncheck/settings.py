from __future__ import annotations

"""Runtime settings for vpncheck.

Layering is CLI options > environment (including `.env`) > built-in defaults.
This module only resolves the last two layers; the CLI applies its overrides
on top of the returned dict.
"""

import os
from typing import Any, Dict, List, Mapping, Optional

DEFAULT_PROXY_DNS = ("8.8.8.8", "8.8.4.4")

DEFAULTS: Dict[str, Any] = {
    "timeout": 5.0,
    "probe_timeout": 5.0,
    "port_timeout": 5.0,
    "proxy_dns": list(DEFAULT_PROXY_DNS),
    "proxy_port": 80,
    "direct_port": 443,
    "cdn_ranges_url": "https://www.cloudflare.com/ips-v4",
    "hosting_url": "https://ipapi.co/{ip}/json/",
    "geo_url": "http://ip-api.com/json/{ip}",
}


def _parse_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_int(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_list(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    items = [part.strip() for part in value.split(",") if part.strip()]
    return items or list(default)


def _normalize_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text if text else None


def load_runtime_settings(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    return {
        "timeout": _parse_float(env.get("VPNCHECK_TIMEOUT"), DEFAULTS["timeout"]),
        "probe_timeout": _parse_float(env.get("VPNCHECK_PROBE_TIMEOUT"), DEFAULTS["probe_timeout"]),
        "port_timeout": _parse_float(env.get("VPNCHECK_PORT_TIMEOUT"), DEFAULTS["port_timeout"]),
        "proxy_dns": _parse_list(env.get("VPNCHECK_PROXY_DNS"), DEFAULTS["proxy_dns"]),
        "proxy_port": _parse_int(env.get("VPNCHECK_PROXY_PORT"), DEFAULTS["proxy_port"]),
        "direct_port": _parse_int(env.get("VPNCHECK_DIRECT_PORT"), DEFAULTS["direct_port"]),
        "cdn_ranges_url": _normalize_optional(env.get("VPNCHECK_CDN_RANGES_URL")) or DEFAULTS["cdn_ranges_url"],
        "hosting_url": _normalize_optional(env.get("VPNCHECK_HOSTING_URL")) or DEFAULTS["hosting_url"],
        "geo_url": _normalize_optional(env.get("VPNCHECK_GEO_URL")) or DEFAULTS["geo_url"],
    }


def merge_overrides(settings: Dict[str, Any], **overrides: Any) -> Dict[str, Any]:
    """Apply non-None overrides (typically parsed CLI flags) on top of settings."""
    merged = dict(settings)
    for key, value in overrides.items():
        if value is not None:
            merged[key] = value
    return merged
