"""Fixed catalog of bypass payload probes.

Pure data: each entry names its family explicitly. `{domain}` placeholders in
paths and header values are filled at request time, and `Host` is always
overwritten with the target domain, so the `Host` entries below only fix the
header's position.
"""

from typing import Dict, Tuple

from ..models import Family, ProbeSpec

LOOPBACK = "127.0.0.1"

CONTINUE_BODY_HEADERS = (
    ("Expect", "100-continue"),
    ("Content-Length", "1024"),
    ("Content-Type", "application/x-www-form-urlencoded"),
    ("Connection", "Keep-Alive"),
)

CATALOG: Tuple[ProbeSpec, ...] = (
    ProbeSpec(
        name="Vivo WSS",
        family=Family.VIVO,
        method="GET",
        path_template="/",
        header_template=(
            ("Host", "{domain}"),
            ("Upgrade", "websocket"),
            ("Connection", "Upgrade"),
            ("Sec-WebSocket-Key", "SGVsbG8sIHdvcmxkIQ=="),
        ),
    ),
    ProbeSpec(
        name="Vivo Direct",
        family=Family.VIVO,
        method="GET",
        path_template="/",
        header_template=(
            ("Host", "{domain}"),
            ("Connection", "Upgrade"),
            ("Upgrade", "Websocket"),
            ("X-Real-IP", LOOPBACK),
            ("User-Agent", "Upgrade"),
        ),
    ),
    ProbeSpec(
        name="Vivo Proxy",
        family=Family.VIVO,
        method="GET",
        path_template="http://{domain}/",
        header_template=(
            ("Host", "{domain}"),
            ("X-Online-Host", "{domain}"),
            ("X-Forward-Host", "{domain}"),
            ("Connection", "Keep-Alive"),
        ),
    ),
    ProbeSpec(
        name="Vivo Continue",
        family=Family.VIVO,
        method="POST",
        path_template="/",
        header_template=(("Host", "{domain}"),)
        + CONTINUE_BODY_HEADERS
        + (
            ("X-Online-Host", "{domain}"),
            ("X-Forward-Host", "{domain}"),
            ("X-Forwarded-For", LOOPBACK),
            ("User-Agent", "Googlebot/2.1"),
            ("Accept", "*/*"),
            ("Accept-Encoding", "gzip, deflate"),
            ("Cache-Control", "no-cache"),
        ),
    ),
    ProbeSpec(
        name="TIM Direct",
        family=Family.TIM,
        method="CONNECT",
        path_template="/",
        header_template=(
            ("Host", "{domain}"),
            ("X-Online-Host", "{domain}"),
            ("Connection", "Keep-Alive"),
        ),
    ),
    ProbeSpec(
        name="TIM Proxy",
        family=Family.TIM,
        method="GET",
        path_template="/",
        header_template=(
            ("Host", "{domain}"),
            ("X-Real-IP", LOOPBACK),
            ("Connection", "Keep-Alive"),
            ("Proxy-Connection", "Keep-Alive"),
        ),
    ),
    ProbeSpec(
        name="TIM Upgrade",
        family=Family.TIM,
        method="GET",
        path_template="/",
        header_template=(
            ("Host", "{domain}"),
            ("Upgrade", "websocket"),
            ("Connection", "Upgrade"),
            ("Sec-WebSocket-Protocol", "TIM"),
        ),
    ),
    ProbeSpec(
        name="TIM Continue",
        family=Family.TIM,
        method="POST",
        path_template="/",
        header_template=(("Host", "{domain}"),)
        + CONTINUE_BODY_HEADERS
        + (
            ("X-Online-Host", "{domain}"),
            ("Proxy-Connection", "Keep-Alive"),
            ("X-Forward-Host", "{domain}"),
            ("X-Forwarded-For", LOOPBACK),
            ("User-Agent", "Googlebot/2.1"),
            ("Accept", "*/*"),
            ("Accept-Encoding", "gzip, deflate"),
            ("Cache-Control", "no-cache"),
            ("X-T-Forward-For", LOOPBACK),
            ("X-Real-Host", "{domain}"),
        ),
    ),
    ProbeSpec(
        name="Split ACL",
        family=Family.SPLIT,
        method="ACL",
        path_template="/",
        header_template=(
            ("Host", "{domain}"),
            ("Expect", "100-continue"),
            ("Connection", "Upgrade"),
            ("Proxy-Connection", "Keep-Alive"),
            ("Upgrade", "websocket"),
            ("X-Forward-Protocol", "https"),
            ("X-Forwarded-For", LOOPBACK),
            ("User-Agent", "Googlebot/2.1"),
        ),
        use_proxy_routing=True,
    ),
    ProbeSpec(
        name="Split Direct",
        family=Family.SPLIT,
        method="CONNECT",
        path_template="/{domain}:443",
        header_template=(
            ("Host", "{domain}"),
            ("Connection", "Keep-Alive"),
            ("Proxy-Connection", "Keep-Alive"),
            ("X-Online-Host", "{domain}"),
        ),
        use_proxy_routing=True,
    ),
    ProbeSpec(
        name="CONNECT Direct",
        family=Family.GENERAL,
        method="CONNECT",
        path_template="{domain}:443",
        header_template=(
            ("Host", "{domain}"),
            ("X-Online-Host", "{domain}"),
            ("Connection", "Keep-Alive"),
            ("Proxy-Connection", "Keep-Alive"),
        ),
    ),
    ProbeSpec(
        name="SSL + Upgrade",
        family=Family.GENERAL,
        method="GET",
        path_template="/",
        header_template=(
            ("Host", "{domain}"),
            ("Upgrade", "websocket"),
            ("Connection", "Upgrade,Keep-Alive"),
            ("Sec-WebSocket-Key", "dGhlIHNhbXBsZSBub25jZQ=="),
            ("Sec-WebSocket-Version", "13"),
            ("Sec-WebSocket-Protocol", "chat"),
        ),
    ),
    ProbeSpec(
        name="Real Host",
        family=Family.GENERAL,
        method="GET",
        path_template="/",
        header_template=(
            ("Host", "{domain}"),
            ("X-Real-IP", LOOPBACK),
            ("X-Forwarded-For", LOOPBACK),
            ("Connection", "Keep-Alive"),
            ("Proxy-Connection", "Keep-Alive"),
        ),
    ),
    ProbeSpec(
        name="Continue Test",
        family=Family.GENERAL,
        method="POST",
        path_template="/",
        header_template=(("Host", "{domain}"),) + CONTINUE_BODY_HEADERS,
    ),
    ProbeSpec(
        name="Direct GET",
        family=Family.GENERAL,
        method="GET",
        path_template="/",
        header_template=(
            ("Host", "{domain}"),
            ("Connection", "Keep-Alive"),
        ),
    ),
)

CATALOG_BY_NAME: Dict[str, ProbeSpec] = {spec.name: spec for spec in CATALOG}
