"""PEM helpers for certbot output."""

from datetime import datetime
from pathlib import Path

from cryptography import x509


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Deserialize certificate from PEM bytes."""
    return x509.load_pem_x509_certificate(pem_data)


def certificate_not_after(pem_data: bytes) -> datetime:
    """Return the certificate's notAfter as an aware UTC datetime."""
    return deserialize_certificate(pem_data).not_valid_after_utc


def certificate_dns_names(pem_data: bytes) -> list[str]:
    """Return DNS names from the subjectAltName extension (empty if absent)."""
    cert = deserialize_certificate(pem_data)
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return san.value.get_values_for_type(x509.DNSName)


def read_certificate_not_after(cert_path: Path) -> datetime | None:
    """Read notAfter from a PEM file, or None if it cannot be parsed."""
    try:
        return certificate_not_after(cert_path.read_bytes())
    except (OSError, ValueError):
        return None
