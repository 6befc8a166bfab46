from __future__ import annotations

"""Command-line interface for vpncheck.

Translates flags into runtime settings (CLI > environment/.env > defaults),
scans each target through `vpncheck.core` and renders the result.
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .core import VPNCHECK, logger
from .engine.resolver import validate_domain
from .models import DomainReport, InvalidDomainError, ResolutionError
from .output import console, err_console, output, print_json_output, print_resolution_failure
from .settings import load_runtime_settings, merge_overrides
from .version import __version__


def _load_domains_from_file(file_path: str) -> List[str]:
    with Path(file_path).open("r", encoding="utf-8") as fh:
        return [line.strip() for line in fh if line.strip() and not line.strip().startswith("#")]


def _normalize_domain_input(value: str) -> Optional[str]:
    raw = (value or "").strip().lower()
    if "://" in raw:
        raw = (urlparse(raw).hostname or "").strip()
    raw = raw.split("/", 1)[0].rstrip(".")
    return raw if validate_domain(raw) else None


def _parse_proxy_dns(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    servers = [part.strip() for part in value.split(",") if part.strip()]
    return servers or None


def _scan_one(domain: str, settings: Dict[str, Any], silent: bool) -> Optional[DomainReport]:
    try:
        if silent:
            return VPNCHECK(domain, settings=settings)
        with console.status(f"[bold cyan]Testing {domain}..."):
            return VPNCHECK(domain, settings=settings)
    except InvalidDomainError:
        err_console.print(f"[red]Invalid domain input:[/red] {domain}")
    except ResolutionError:
        print_resolution_failure(domain)
    return None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vpncheck",
        description=(
            f"vpncheck v.{__version__} - Domain infrastructure recon and payload probing\n"
            "CLI options > environment (.env) > built-in defaults."
        ),
    )
    target_group = parser.add_argument_group("Target")
    target_group.add_argument("-d", "--domain", help="Domain to analyze (e.g. example.com).")
    target_group.add_argument("-f", "--file", help="File with domains, one per line.")

    runtime_group = parser.add_argument_group("Runtime Overrides")
    runtime_group.add_argument(
        "--timeout",
        help="HTTP, DNS and TLS timeout in seconds (overrides VPNCHECK_TIMEOUT).",
        dest="timeout",
        type=float,
        required=False,
    )
    runtime_group.add_argument(
        "--probe-timeout",
        help="Per-payload deadline in seconds (overrides VPNCHECK_PROBE_TIMEOUT).",
        dest="probe_timeout",
        type=float,
        required=False,
    )
    runtime_group.add_argument(
        "--proxy-dns",
        help="Comma-separated resolvers used for SPLIT routing (overrides VPNCHECK_PROXY_DNS).",
        dest="proxy_dns",
        required=False,
    )

    output_group = parser.add_argument_group("Output")
    output_group.add_argument("--silent", help="Silent mode (hide progress).", action="store_true")
    output_group.add_argument("--json", help="JSON-only output (forces --silent).", action="store_true")
    output_group.add_argument("--debug", help="Verbose logging on stderr.", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entrypoint."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.json:
        args.silent = True
    if args.debug:
        logger.setLevel(logging.DEBUG)

    raw_targets: List[str] = []
    if args.domain:
        raw_targets.append(args.domain)
    if args.file:
        try:
            raw_targets.extend(_load_domains_from_file(args.file))
        except OSError as exc:
            err_console.print(f"[red]Cannot read {args.file}:[/red] {exc}")
            sys.exit(1)
    if not raw_targets:
        parser.print_help()
        return

    for value in (args.timeout, args.probe_timeout):
        if value is not None and value <= 0:
            err_console.print("[red]Timeouts must be positive.[/red]")
            sys.exit(2)

    settings = merge_overrides(
        load_runtime_settings(),
        timeout=args.timeout,
        probe_timeout=args.probe_timeout,
        proxy_dns=_parse_proxy_dns(args.proxy_dns),
    )

    json_items: List[Dict[str, Any]] = []
    for raw in raw_targets:
        domain = _normalize_domain_input(raw)
        if not domain:
            err_console.print(f"[red]Invalid domain input:[/red] {raw}")
            continue
        start_time = datetime.now()
        report = _scan_one(domain, settings, args.silent)
        if args.json:
            json_items.append(report.to_dict() if report else {"domain": domain, "error": "could not resolve domain"})
        elif report:
            output(report, datetime.now() - start_time)

    if args.json and json_items:
        print_json_output(json_items[0] if len(json_items) == 1 else json_items)


if __name__ == "__main__":
    main()
