from __future__ import annotations

import ipaddress
from datetime import date, datetime
from itertools import product

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

import vpncheck.engine.tls as tls
from vpncheck.models import SecurityLevel


def _self_signed_der(with_san: bool = True) -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "example.com")])
    issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Issuer Org"),
            x509.NameAttribute(NameOID.COMMON_NAME, "Test Issuer CA"),
        ]
    )
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(datetime(2025, 1, 2, 12, 0, 0))
        .not_valid_after(datetime(2026, 3, 4, 12, 0, 0))
    )
    if with_san:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("example.com"),
                    x509.DNSName("www.example.com"),
                    x509.IPAddress(ipaddress.ip_address("192.0.2.1")),
                ]
            ),
            critical=False,
        )
    return builder.sign(key, hashes.SHA256()).public_bytes(serialization.Encoding.DER)


def test_security_level_matches_precedence_for_all_combinations():
    for modern, strong, pfs in product((True, False), repeat=3):
        level = tls.security_level(modern, strong, pfs)
        if modern and strong and pfs:
            assert level is SecurityLevel.HIGH
        elif modern and (strong or pfs):
            assert level is SecurityLevel.MEDIUM
        else:
            assert level is SecurityLevel.LOW


def test_assessment_from_handshake_flags():
    high = tls.assessment_from_handshake("TLSv1.3", "ECDHE-RSA-AES256-GCM-SHA384")
    assert (high.has_modern_tls, high.has_strong_cipher, high.has_forward_secrecy) == (True, True, True)
    assert high.level is SecurityLevel.HIGH

    medium = tls.assessment_from_handshake("TLSv1.3", "TLS_AES_128_GCM_SHA256")
    assert medium.level is SecurityLevel.MEDIUM
    assert medium.has_forward_secrecy is False

    legacy = tls.assessment_from_handshake("TLSv1", "ECDHE-RSA-AES128-SHA")
    assert legacy.level is SecurityLevel.LOW

    empty = tls.assessment_from_handshake(None, None)
    assert empty.level is SecurityLevel.LOW
    assert empty.has_strong_cipher is False


def test_assess_security_unavailable_on_handshake_failure(monkeypatch):
    def refused(*args, **kwargs):
        raise ConnectionRefusedError(111, "Connection refused")

    monkeypatch.setattr(tls, "_handshake", refused)
    result = tls.assess_security("example.com")
    assert result.level is SecurityLevel.UNAVAILABLE
    assert result.tls_version is None


def test_certificate_from_der_with_sni_includes_subject_details():
    info = tls.certificate_from_der(_self_signed_der(), use_sni=True)
    assert info.issuer_org == "Test Issuer Org"
    assert info.valid_from == date(2025, 1, 2)
    assert info.valid_to == date(2026, 3, 4)
    assert info.subject_common_name == "example.com"
    assert info.subject_alt_names == ("example.com", "www.example.com", "192.0.2.1")


def test_certificate_from_der_without_sni_omits_subject_details():
    info = tls.certificate_from_der(_self_signed_der(), use_sni=False)
    assert info.issuer_org == "Test Issuer Org"
    assert info.subject_common_name is None
    assert info.subject_alt_names == ()


def test_certificate_without_san_extension():
    info = tls.certificate_from_der(_self_signed_der(with_san=False))
    assert info.subject_alt_names == ()


def test_inspect_certificate_uses_handshake_der(monkeypatch):
    der = _self_signed_der()
    calls = []

    def fake_handshake(domain, port=443, timeout=5.0, use_sni=True):
        calls.append((domain, port, use_sni))
        return "TLSv1.3", "TLS_AES_128_GCM_SHA256", der

    monkeypatch.setattr(tls, "_handshake", fake_handshake)
    info = tls.inspect_certificate("example.com", use_sni=False)
    assert info is not None
    assert info.subject_common_name is None
    assert calls == [("example.com", 443, False)]


def test_inspect_certificate_absent_on_failure(monkeypatch):
    def broken(*args, **kwargs):
        raise OSError("unreachable")

    monkeypatch.setattr(tls, "_handshake", broken)
    assert tls.inspect_certificate("example.com") is None


def test_asn1_date_parsing():
    assert tls._asn1_date(b"20250520120000Z") == date(2025, 5, 20)
    assert tls._asn1_date(None) is None
    assert tls._asn1_date(b"garbage") is None
