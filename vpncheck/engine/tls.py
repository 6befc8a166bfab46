from __future__ import annotations

"""TLS inspection: certificate metadata and a coarse security level.

Certificate validation is disabled on purpose here. These handshakes observe
what a host presents; they do not make trust decisions.
"""

import logging
import socket
import ssl
from datetime import date, datetime
from typing import Optional, Tuple

import OpenSSL
from cryptography import x509 as cx509

from ..models import CertificateInfo, SecurityAssessment, SecurityLevel

logger = logging.getLogger(__name__)

MODERN_TLS_VERSIONS = ("TLSv1.2", "TLSv1.3")
STRONG_CIPHER_MARKER = "AES"
FORWARD_SECRECY_MARKER = "ECDHE"


def _unverified_context() -> ssl.SSLContext:
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _handshake(
    domain: str,
    port: int = 443,
    timeout: float = 5.0,
    use_sni: bool = True,
) -> Tuple[Optional[str], Optional[str], Optional[bytes]]:
    """Connect, handshake and return (protocol, cipher name, DER certificate)."""
    ctx = _unverified_context()
    with socket.create_connection((domain, int(port)), timeout=timeout) as sock:
        with ctx.wrap_socket(sock, server_hostname=domain if use_sni else None) as tls_sock:
            cipher = tls_sock.cipher()
            return tls_sock.version(), cipher[0] if cipher else None, tls_sock.getpeercert(binary_form=True)


def _asn1_date(raw: Optional[bytes]) -> Optional[date]:
    # ASN.1 GENERALIZEDTIME as returned by pyOpenSSL, e.g. b"20250520120000Z".
    if not raw:
        return None
    try:
        return datetime.strptime(raw.decode("ascii")[:8], "%Y%m%d").date()
    except ValueError:
        return None


def _subject_alt_names(x509: OpenSSL.crypto.X509) -> Tuple[str, ...]:
    try:
        ext = x509.to_cryptography().extensions.get_extension_for_class(cx509.SubjectAlternativeName)
    except cx509.ExtensionNotFound:
        return ()
    except ValueError as exc:
        logger.debug("Unreadable SAN extension: %s", exc)
        return ()
    names = []
    for general_name in ext.value:
        if isinstance(general_name, (cx509.DNSName, cx509.IPAddress)):
            names.append(str(general_name.value))
        elif isinstance(general_name, cx509.RFC822Name):
            names.append(f"email:{general_name.value}")
        elif isinstance(general_name, cx509.UniformResourceIdentifier):
            names.append(f"URI:{general_name.value}")
    return tuple(names)


def certificate_from_der(der_cert: bytes, use_sni: bool = True) -> CertificateInfo:
    x509 = OpenSSL.crypto.load_certificate(OpenSSL.crypto.FILETYPE_ASN1, der_cert)
    issuer_org = x509.get_issuer().O or "N/A"
    common_name: Optional[str] = None
    sans: Tuple[str, ...] = ()
    if use_sni:
        common_name = x509.get_subject().CN or "N/A"
        sans = _subject_alt_names(x509)
    return CertificateInfo(
        issuer_org=issuer_org,
        valid_from=_asn1_date(x509.get_notBefore()),
        valid_to=_asn1_date(x509.get_notAfter()),
        subject_common_name=common_name,
        subject_alt_names=sans,
    )


def inspect_certificate(domain: str, use_sni: bool = True, port: int = 443, timeout: float = 5.0) -> Optional[CertificateInfo]:
    """Read the peer certificate on `domain:port`.

    With `use_sni` the handshake names the domain and the result also carries
    subject CN and SANs. Any connection or parse error yields None.
    """
    try:
        _, _, der_cert = _handshake(domain, port=port, timeout=timeout, use_sni=use_sni)
        if not der_cert:
            return None
        return certificate_from_der(der_cert, use_sni=use_sni)
    except Exception as exc:
        logger.debug("Certificate inspection failed for %s: %s: %s", domain, exc.__class__.__name__, exc)
        return None


def security_level(has_modern_tls: bool, has_strong_cipher: bool, has_forward_secrecy: bool) -> SecurityLevel:
    if has_modern_tls and has_strong_cipher and has_forward_secrecy:
        return SecurityLevel.HIGH
    if has_modern_tls and (has_strong_cipher or has_forward_secrecy):
        return SecurityLevel.MEDIUM
    return SecurityLevel.LOW


def assessment_from_handshake(tls_version: Optional[str], cipher: Optional[str]) -> SecurityAssessment:
    modern = tls_version in MODERN_TLS_VERSIONS
    strong = bool(cipher) and STRONG_CIPHER_MARKER in str(cipher)
    pfs = bool(cipher) and FORWARD_SECRECY_MARKER in str(cipher)
    return SecurityAssessment(
        tls_version=tls_version,
        cipher=cipher,
        has_modern_tls=modern,
        has_strong_cipher=strong,
        has_forward_secrecy=pfs,
        level=security_level(modern, strong, pfs),
    )


def unavailable_assessment() -> SecurityAssessment:
    return SecurityAssessment(
        tls_version=None,
        cipher=None,
        has_modern_tls=False,
        has_strong_cipher=False,
        has_forward_secrecy=False,
        level=SecurityLevel.UNAVAILABLE,
    )


def assess_security(domain: str, port: int = 443, timeout: float = 5.0) -> SecurityAssessment:
    try:
        tls_version, cipher, _ = _handshake(domain, port=port, timeout=timeout)
    except Exception as exc:
        logger.debug("TLS handshake failed for %s: %s: %s", domain, exc.__class__.__name__, exc)
        return unavailable_assessment()
    return assessment_from_handshake(tls_version, cipher)
