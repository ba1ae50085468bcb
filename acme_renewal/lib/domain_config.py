"""Parsing and serialization of the ``domains.json`` configuration document."""

import json
import logging
from typing import Any

from .errors import ConfigurationError
from .models import (
    DEFAULT_RENEW_DAYS_BEFORE_EXPIRY,
    DEFAULT_RSA_KEY_SIZE,
    RSA_KEY_SIZES,
    CertificateEntry,
    ConfigDefaults,
    ConfigurationDocument,
    InvalidEntry,
    KeyAlgorithm,
)
from .providers import AcmeProvider

logger = logging.getLogger(__name__)

_KNOWN_TOP_LEVEL_KEYS = {"version", "defaults", "certificates"}


def _parse_provider(value: Any, context: str) -> AcmeProvider:
    try:
        return AcmeProvider(value)
    except ValueError as e:
        raise ConfigurationError(f"{context}: unknown acmeProvider {value!r}") from e


def _parse_threshold(value: Any, context: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(
            f"{context}: renewDaysBeforeExpiry must be a non-negative integer, got {value!r}"
        )
    return value


def _parse_defaults(raw: Any) -> ConfigDefaults:
    if raw is None:
        return ConfigDefaults()
    if not isinstance(raw, dict):
        raise ConfigurationError("defaults must be an object")
    defaults = ConfigDefaults(email=raw.get("email"), raw=dict(raw))
    if raw.get("acmeProvider") is not None:
        defaults.acme_provider = _parse_provider(raw["acmeProvider"], "defaults")
    if raw.get("renewDaysBeforeExpiry") is not None:
        defaults.renew_days_before_expiry = _parse_threshold(
            raw["renewDaysBeforeExpiry"], "defaults"
        )
    return defaults


def parse_entry(raw: Any, defaults: ConfigDefaults) -> CertificateEntry:
    """Build a CertificateEntry, filling omitted fields from defaults.

    Raises:
        ConfigurationError: If the entry violates an invariant
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("certificate entries must be objects")

    cert_id = raw.get("id")
    if not cert_id or not isinstance(cert_id, str):
        raise ConfigurationError("certificate entry is missing 'id'")
    context = f"certificate {cert_id!r}"

    domains = raw.get("domains")
    if (
        not isinstance(domains, list)
        or not domains
        or not all(isinstance(d, str) and d for d in domains)
    ):
        raise ConfigurationError(f"{context}: domains must be a non-empty list of strings")

    email = raw.get("email") or defaults.email
    if not email:
        raise ConfigurationError(f"{context}: email is required (directly or via defaults)")

    raw_provider = raw.get("acmeProvider")
    if raw_provider is None:
        if defaults.acme_provider is None:
            raise ConfigurationError(f"{context}: acmeProvider is required")
        provider = defaults.acme_provider
    else:
        provider = _parse_provider(raw_provider, context)

    server_url = raw.get("acmeServerUrl") or None
    if provider == AcmeProvider.CUSTOM and not server_url:
        raise ConfigurationError(f"{context}: acmeServerUrl is required for custom provider")
    if provider != AcmeProvider.CUSTOM and server_url:
        logger.warning("%s: ignoring acmeServerUrl for provider %s", context, provider)
        server_url = None

    zone_id = raw.get("route53HostedZoneId")
    if not zone_id:
        raise ConfigurationError(f"{context}: route53HostedZoneId is required")

    raw_threshold = raw.get("renewDaysBeforeExpiry")
    if raw_threshold is None:
        threshold = (
            defaults.renew_days_before_expiry
            if defaults.renew_days_before_expiry is not None
            else DEFAULT_RENEW_DAYS_BEFORE_EXPIRY
        )
    else:
        threshold = _parse_threshold(raw_threshold, context)

    try:
        key_type = KeyAlgorithm(raw.get("keyType") or KeyAlgorithm.RSA)
    except ValueError as e:
        raise ConfigurationError(f"{context}: unknown keyType {raw.get('keyType')!r}") from e

    rsa_key_size: int | None = raw.get("rsaKeySize")
    if key_type == KeyAlgorithm.RSA:
        rsa_key_size = rsa_key_size or DEFAULT_RSA_KEY_SIZE
        if rsa_key_size not in RSA_KEY_SIZES:
            raise ConfigurationError(
                f"{context}: rsaKeySize must be one of {RSA_KEY_SIZES}, got {rsa_key_size!r}"
            )
    elif rsa_key_size is not None:
        logger.warning("%s: ignoring rsaKeySize for keyType %s", context, key_type)
        rsa_key_size = None

    return CertificateEntry(
        id=cert_id,
        domains=list(domains),
        email=email,
        acme_provider=provider,
        acme_server_url=server_url,
        route53_hosted_zone_id=zone_id,
        acm_certificate_arn=raw.get("acmCertificateArn") or None,
        renew_days_before_expiry=threshold,
        enabled=bool(raw.get("enabled", True)),
        key_type=key_type,
        rsa_key_size=rsa_key_size,
        raw=dict(raw),
    )


def _parse_or_reject(
    index: int, raw: Any, defaults: ConfigDefaults
) -> CertificateEntry | InvalidEntry:
    try:
        return parse_entry(raw, defaults)
    except ConfigurationError as e:
        cert_id = raw.get("id") if isinstance(raw, dict) else None
        if not isinstance(cert_id, str) or not cert_id:
            cert_id = f"certificates[{index}]"
        logger.warning("Invalid configuration entry %s: %s", cert_id, e)
        return InvalidEntry(id=cert_id, raw=raw, error=str(e))


def parse_document(text: str) -> ConfigurationDocument:
    """Parse ``domains.json`` content.

    Entries that fail validation are kept in document order as ``InvalidEntry``.

    Args:
        text: JSON document

    Returns:
        ConfigurationDocument with defaults applied to every valid entry

    Raises:
        ConfigurationError: If JSON or defaults are invalid, or ids repeat
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Domain configuration is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError("Domain configuration must be a JSON object")

    raw_certificates = raw.get("certificates", [])
    if not isinstance(raw_certificates, list):
        raise ConfigurationError("certificates must be a list")

    defaults = _parse_defaults(raw.get("defaults"))
    entries = [
        _parse_or_reject(index, item, defaults) for index, item in enumerate(raw_certificates)
    ]

    seen: set[str] = set()
    for entry in entries:
        if entry.id in seen:
            raise ConfigurationError(f"Duplicate certificate id {entry.id!r}")
        seen.add(entry.id)

    return ConfigurationDocument(
        version=str(raw.get("version", "1.0")),
        defaults=defaults,
        certificates=entries,
        extra={k: v for k, v in raw.items() if k not in _KNOWN_TOP_LEVEL_KEYS},
    )


def entry_to_dict(entry: CertificateEntry | InvalidEntry) -> Any:
    """Serialize an entry for write-back.

    Entries read from the document are written back as they were read, with
    only ``acmCertificateArn`` updated. Values filled in from ``defaults`` stay
    implicit.
    """
    if isinstance(entry, InvalidEntry):
        return entry.raw
    if entry.raw is not None:
        data = dict(entry.raw)
        if entry.acm_certificate_arn or "acmCertificateArn" in data:
            data["acmCertificateArn"] = entry.acm_certificate_arn
        return data

    data = {
        "id": entry.id,
        "domains": entry.domains,
        "email": entry.email,
        "acmeProvider": str(entry.acme_provider),
    }
    if entry.acme_server_url:
        data["acmeServerUrl"] = entry.acme_server_url
    data["route53HostedZoneId"] = entry.route53_hosted_zone_id
    data["acmCertificateArn"] = entry.acm_certificate_arn
    data["renewDaysBeforeExpiry"] = entry.renew_days_before_expiry
    data["enabled"] = entry.enabled
    if entry.key_type != KeyAlgorithm.RSA:
        data["keyType"] = str(entry.key_type)
    elif entry.rsa_key_size and entry.rsa_key_size != DEFAULT_RSA_KEY_SIZE:
        data["rsaKeySize"] = entry.rsa_key_size
    return data


def dump_document(document: ConfigurationDocument) -> str:
    """Serialize a document for a whole-object overwrite in S3."""
    data: dict[str, Any] = {"version": document.version}
    if document.defaults.raw is not None:
        data["defaults"] = document.defaults.raw
    else:
        defaults: dict[str, Any] = {}
        if document.defaults.email:
            defaults["email"] = document.defaults.email
        if document.defaults.acme_provider:
            defaults["acmeProvider"] = str(document.defaults.acme_provider)
        if document.defaults.renew_days_before_expiry is not None:
            defaults["renewDaysBeforeExpiry"] = document.defaults.renew_days_before_expiry
        if defaults:
            data["defaults"] = defaults
    data.update(document.extra)
    data["certificates"] = [entry_to_dict(entry) for entry in document.certificates]
    return json.dumps(data, indent=2) + "\n"


def upsert_entry(document: ConfigurationDocument, entry: CertificateEntry) -> bool:
    """Append an entry, or replace the one with the same id.

    Returns:
        True if the entry was appended, False if an existing one was replaced
    """
    for index, existing in enumerate(document.certificates):
        if existing.id == entry.id:
            document.certificates[index] = entry
            return False
    document.certificates.append(entry)
    return True
