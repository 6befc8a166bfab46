from __future__ import annotations

"""Value objects and error types shared by the engine and presentation layers.

Everything here is created fresh per scan and frozen once built. Mappings are
exposed through `MappingProxyType` so callers cannot mutate an assembled report.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

SUCCESS_CODES: FrozenSet[int] = frozenset({100, 101, 200})


class VpnCheckError(Exception):
    """Base class for errors raised by vpncheck."""


class InvalidDomainError(VpnCheckError):
    pass


class ResolutionError(VpnCheckError):
    """DNS resolution returned no usable address. Terminal for a scan."""


class ClassifierError(VpnCheckError):
    """Lookup failure inside a CDN/hosting/geolocation classifier."""


def error_text(exc: BaseException) -> str:
    message = str(exc).strip()
    return f"{exc.__class__.__name__}: {message}" if message else exc.__class__.__name__


class Family(str, Enum):
    VIVO = "VIVO"
    TIM = "TIM"
    SPLIT = "SPLIT"
    GENERAL = "GENERAL"


class ProbeOutcome(str, Enum):
    RESPONSE = "response"
    CONTINUE = "continue"
    UPGRADE = "upgrade"
    ERROR = "error"
    TIMEOUT = "timeout"


class SecurityLevel(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    UNAVAILABLE = "Unavailable"


class HostingType(str, Enum):
    VPS_CLOUD = "VPS/Cloud"
    DATACENTER = "Datacenter"
    DEDICATED_OTHER = "Dedicated/Other"


def _frozen_map(values: Optional[Mapping[Any, Any]]) -> Mapping[Any, Any]:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class ProbeSpec:
    name: str
    family: Family
    method: str
    path_template: str
    header_template: Tuple[Tuple[str, str], ...]
    use_proxy_routing: bool = False
    expected_success_codes: FrozenSet[int] = SUCCESS_CODES

    def render_path(self, domain: str) -> str:
        return self.path_template.replace("{domain}", domain)

    def render_headers(self, domain: str) -> Dict[str, str]:
        """Expand the header template, then force `Host` to the literal domain.

        An existing `Host` entry keeps its position (last write wins on value);
        differently cased duplicates are dropped.
        """
        headers: Dict[str, str] = {}
        for key, value in self.header_template:
            if key.lower() == "host" and key != "Host":
                continue
            headers[key] = value.replace("{domain}", domain)
        headers["Host"] = domain
        return headers

    def expects_continue(self) -> bool:
        return any(k.lower() == "expect" and "100-continue" in v.lower() for k, v in self.header_template)


@dataclass(frozen=True)
class ProbeResult:
    name: str
    family: Family
    status: int
    success: bool
    outcome: ProbeOutcome
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    error: Optional[str] = None
    elapsed_ms: Optional[int] = None

    @classmethod
    def build(
        cls,
        spec: ProbeSpec,
        outcome: ProbeOutcome,
        status: int = 0,
        headers: Optional[Mapping[str, str]] = None,
        error: Optional[str] = None,
        elapsed_ms: Optional[int] = None,
    ) -> "ProbeResult":
        return cls(
            name=spec.name,
            family=spec.family,
            status=status,
            success=status in spec.expected_success_codes,
            outcome=outcome,
            headers=_frozen_map(headers),
            error=error,
            elapsed_ms=elapsed_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "family": self.family.value,
            "status": self.status,
            "success": self.success,
            "outcome": self.outcome.value,
            "headers": dict(self.headers),
            "error": self.error,
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass(frozen=True)
class CertificateInfo:
    issuer_org: str
    valid_from: Optional[date]
    valid_to: Optional[date]
    subject_common_name: Optional[str] = None
    subject_alt_names: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issuer_org": self.issuer_org,
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_to": self.valid_to.isoformat() if self.valid_to else None,
            "subject_common_name": self.subject_common_name,
            "subject_alt_names": list(self.subject_alt_names),
        }


@dataclass(frozen=True)
class SecurityAssessment:
    tls_version: Optional[str]
    cipher: Optional[str]
    has_modern_tls: bool
    has_strong_cipher: bool
    has_forward_secrecy: bool
    level: SecurityLevel

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tls_version": self.tls_version,
            "cipher": self.cipher,
            "has_modern_tls": self.has_modern_tls,
            "has_strong_cipher": self.has_strong_cipher,
            "has_forward_secrecy": self.has_forward_secrecy,
            "level": self.level.value,
        }


@dataclass(frozen=True)
class HostingInfo:
    provider: str
    hosting_type: HostingType


@dataclass(frozen=True)
class ClassificationResult:
    cdn_name: Optional[str] = None
    hosting_provider: Optional[str] = None
    hosting_type: Optional[HostingType] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cdn_name": self.cdn_name,
            "hosting_provider": self.hosting_provider,
            "hosting_type": self.hosting_type.value if self.hosting_type else None,
        }


@dataclass(frozen=True)
class GeoLocation:
    city: Optional[str]
    country: Optional[str]
    isp: Optional[str]
    region: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"city": self.city, "country": self.country, "isp": self.isp, "region": self.region}


@dataclass(frozen=True)
class HttpStatus:
    protocol: str
    status: int
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"protocol": self.protocol, "status": self.status, "url": self.url}


def group_by_family(results: Mapping[str, ProbeResult]) -> Dict[Family, List[ProbeResult]]:
    grouped: Dict[Family, List[ProbeResult]] = {family: [] for family in Family}
    for result in results.values():
        grouped[result.family].append(result)
    return grouped


@dataclass(frozen=True)
class IPReport:
    ip: str
    classification: ClassificationResult
    probes: Mapping[str, ProbeResult]
    geolocation: Optional[GeoLocation] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "probes", _frozen_map(self.probes))

    def probes_by_family(self) -> Dict[Family, List[ProbeResult]]:
        return group_by_family(self.probes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ip": self.ip,
            "classification": self.classification.to_dict(),
            "probes": {family.value: [r.to_dict() for r in items] for family, items in self.probes_by_family().items()},
            "geolocation": self.geolocation.to_dict() if self.geolocation else None,
        }


@dataclass(frozen=True)
class DomainReport:
    domain: str
    resolved_ips: Tuple[str, ...]
    http_status: Optional[HttpStatus]
    port_open: Mapping[int, bool]
    certificate: Optional[CertificateInfo]
    security: SecurityAssessment
    ips: Tuple[IPReport, ...]

    def __post_init__(self) -> None:
        if not self.resolved_ips:
            raise ResolutionError(f"No resolved addresses for {self.domain}")
        object.__setattr__(self, "port_open", _frozen_map(self.port_open))

    def ip_report(self, ip: str) -> Optional[IPReport]:
        for item in self.ips:
            if item.ip == ip:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "resolved_ips": list(self.resolved_ips),
            "http_status": self.http_status.to_dict() if self.http_status else None,
            "port_open": {str(port): is_open for port, is_open in self.port_open.items()},
            "certificate": self.certificate.to_dict() if self.certificate else None,
            "security": self.security.to_dict(),
            "ips": [item.to_dict() for item in self.ips],
        }
