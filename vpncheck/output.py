from __future__ import annotations

"""Terminal rendering helpers for vpncheck.

Presentation only: everything here reads a finished `DomainReport` and never
performs network I/O.
"""

import json
import sys
from datetime import timedelta
from typing import Any, List, Optional, Union

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import DomainReport, Family, IPReport, ProbeResult, SecurityLevel

console = Console()
err_console = Console(stderr=True)

FAMILY_ORDER = (Family.VIVO, Family.TIM, Family.SPLIT, Family.GENERAL)
FAMILY_TITLES = {
    Family.VIVO: "VIVO",
    Family.TIM: "TIM",
    Family.SPLIT: "SPLIT",
    Family.GENERAL: "General payloads",
}

STATUS_DESCRIPTIONS = {
    200: "OK",
    201: "Created",
    301: "Moved Permanently",
    302: "Found",
    304: "Not Modified",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}

SECURITY_EMOJI = {
    SecurityLevel.HIGH: "🛡️",
    SecurityLevel.MEDIUM: "⚜️",
    SecurityLevel.LOW: "⚠️",
}

KV_FIELD_WIDTH = 22


def fmt_td(td: Optional[timedelta]) -> str:
    if td is None:
        return "-"
    total_seconds = int(td.total_seconds())
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def status_emoji(status: Optional[int]) -> str:
    code = status or 0
    if 200 <= code < 300:
        return "✅"
    if 300 <= code < 400:
        return "↪️"
    if 400 <= code < 500:
        return "⚠️"
    if code >= 500:
        return "❌"
    return "❓"


def status_description(status: Optional[int]) -> str:
    return STATUS_DESCRIPTIONS.get(status or 0, "Unknown Status")


def payload_emoji(result: ProbeResult) -> str:
    if result.success:
        return "✅"
    if 200 <= result.status < 300:
        return "🟡"
    return status_emoji(result.status) if result.status >= 300 else "❓"


def payload_status_text(result: ProbeResult) -> str:
    if result.status == 101:
        return "Switching Protocols"
    if result.status == 200:
        return "OK"
    if result.error:
        return result.error
    return status_description(result.status)


def security_emoji(level: Union[SecurityLevel, str, None]) -> str:
    try:
        return SECURITY_EMOJI.get(SecurityLevel(level), "❓")
    except ValueError:
        return "❓"


def _new_table(title: Optional[str] = None, box_style: Any = box.SIMPLE, show_header: bool = True) -> Table:
    return Table(
        title=title,
        box=box_style,
        show_header=show_header,
        header_style="bold cyan",
        title_justify="left",
        pad_edge=False,
    )


def _kv_table(title: str) -> Table:
    table = _new_table(title=title, box_style=box.MINIMAL_DOUBLE_HEAD)
    table.add_column("Field", style="cyan", width=KV_FIELD_WIDTH, no_wrap=True)
    table.add_column("Value", overflow="fold")
    return table


def _open_label(is_open: bool) -> str:
    return "[green]✅ open[/green]" if is_open else "[red]❌ closed[/red]"


def _summary_table(report: DomainReport) -> Table:
    table = _kv_table(f"Domain: {report.domain}")
    table.add_row("Resolved IPs", ", ".join(report.resolved_ips))

    if report.http_status:
        status = report.http_status.status
        table.add_row("Connection", report.http_status.protocol)
        table.add_row("Status", f"{status_emoji(status)} {status} ({status_description(status)})")
    else:
        table.add_row("Connection", "[red]❌ could not connect[/red]")

    table.add_row("HTTP (80)", _open_label(report.port_open.get(80, False)))
    table.add_row("SSL (443)", _open_label(report.port_open.get(443, False)))

    cert = report.certificate
    if cert:
        table.add_row("Issuer", cert.issuer_org)
        table.add_row("Valid from", cert.valid_from.isoformat() if cert.valid_from else "-")
        table.add_row("Valid to", cert.valid_to.isoformat() if cert.valid_to else "-")
        if cert.subject_common_name:
            table.add_row("Subject CN", cert.subject_common_name)
        if cert.subject_alt_names:
            table.add_row("SANs", ", ".join(cert.subject_alt_names))
    else:
        table.add_row("Certificate", "-")

    security = report.security
    table.add_row("Security", f"{security_emoji(security.level)} {security.level.value}")
    if security.level is not SecurityLevel.UNAVAILABLE:
        table.add_row("TLS version", security.tls_version or "-")
        table.add_row("Cipher", security.cipher or "-")
        table.add_row("Forward secrecy", "✅" if security.has_forward_secrecy else "❌")
    return table


def _ip_table(item: IPReport) -> Table:
    table = _kv_table(f"IP: {item.ip}")
    classification = item.classification
    table.add_row("CDN", classification.cdn_name or "-")
    if classification.hosting_provider:
        table.add_row("Provider", classification.hosting_provider)
        table.add_row("Type", classification.hosting_type.value if classification.hosting_type else "-")
    geo = item.geolocation
    if geo:
        table.add_row("Location", f"{geo.city or '-'}, {geo.country or '-'}")
        table.add_row("Region", geo.region or "-")
        table.add_row("ISP", geo.isp or "-")
    return table


def _probe_table(title: str, results: List[ProbeResult]) -> Table:
    table = _new_table(title=title)
    table.add_column("Payload", style="cyan", no_wrap=True)
    table.add_column("", width=3, no_wrap=True)
    table.add_column("Status", justify="center", no_wrap=True)
    table.add_column("Detail", overflow="fold")
    for result in results:
        table.add_row(
            result.name,
            payload_emoji(result),
            str(result.status) if result.status else "Error",
            payload_status_text(result),
        )
    return table


def output(report: DomainReport, elapsed: Optional[timedelta] = None) -> None:
    """Render a full domain report."""
    console.print(_summary_table(report))
    for item in report.ips:
        console.print(_ip_table(item))
        grouped = item.probes_by_family()
        for family in FAMILY_ORDER:
            if grouped.get(family):
                console.print(_probe_table(FAMILY_TITLES[family], grouped[family]))
    succeeded = sum(1 for item in report.ips for r in item.probes.values() if r.success)
    total = sum(len(item.probes) for item in report.ips)
    console.print(
        Panel.fit(
            f"[bold]Payloads:[/bold] {succeeded}/{total} succeeded  [bold]Elapsed:[/bold] {fmt_td(elapsed)}",
            border_style="cyan",
        )
    )


def print_resolution_failure(domain: str) -> None:
    err_console.print(f"[red]❌ Could not resolve domain:[/red] {domain}")


def print_json_output(results: Any) -> None:
    try:
        sys.stdout.write(json.dumps(results, ensure_ascii=False, indent=2))
        sys.stdout.write("\n")
    except BrokenPipeError:
        # Piped output (e.g. `| head`) closed early.
        return
