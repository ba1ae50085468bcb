"""Parse raw Lambda events into request variants."""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .errors import PreconditionError
from .models import DEFAULT_RSA_KEY_SIZE, RSA_KEY_SIZES, KeyAlgorithm

MODE_REGISTER = "register"
MODE_ACQUIRE = "acquire-on-demand"
MODE_RENEW = "renew"
MODE_ALIASES = {"certonly": MODE_ACQUIRE}

# Payload keys used by earlier callers of this function
_FIELD_ALIASES = {
    "externalBindingKeyID": ("eabKid",),
    "externalBindingKey": ("eabHmacKey",),
    "dnsZoneID": ("route53HostedZoneId",),
    "existingHandle": ("acmCertificateArn",),
    "keyAlgorithm": ("keyType",),
}


@dataclass(frozen=True)
class RegisterRequest:
    email: str
    server: str
    eab_kid: str
    eab_hmac_key: str


@dataclass(frozen=True)
class AcquireRequest:
    domains: list[str]
    email: str
    server: str
    dns_zone_id: str
    existing_arn: str | None = None
    key_type: KeyAlgorithm = KeyAlgorithm.RSA
    rsa_key_size: int | None = DEFAULT_RSA_KEY_SIZE
    force_renewal: bool = False

    @property
    def certificate_id(self) -> str:
        """Configuration id for certificates acquired on demand."""
        return "manual-" + re.sub(r"[^a-zA-Z0-9]", "-", self.domains[0])


@dataclass(frozen=True)
class RenewRequest:
    certificate_ids: list[str] | None = None
    dry_run: bool = False

    def includes(self, certificate_id: str) -> bool:
        return self.certificate_ids is None or certificate_id in self.certificate_ids


InvocationRequest = RegisterRequest | AcquireRequest | RenewRequest


def _get(event: Mapping[str, Any], name: str) -> Any:
    if event.get(name) is not None:
        return event[name]
    for alias in _FIELD_ALIASES.get(name, ()):
        if event.get(alias) is not None:
            return event[alias]
    return None


def _require_str(event: Mapping[str, Any], name: str, mode: str) -> str:
    value = _get(event, name)
    if not isinstance(value, str) or not value:
        raise PreconditionError(f"{mode} mode requires '{name}'")
    return value


def _optional_bool(event: Mapping[str, Any], name: str) -> bool:
    value = _get(event, name)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise PreconditionError(f"'{name}' must be a boolean")
    return value


def _parse_register(event: Mapping[str, Any]) -> RegisterRequest:
    return RegisterRequest(
        email=_require_str(event, "email", MODE_REGISTER),
        server=_require_str(event, "server", MODE_REGISTER),
        eab_kid=_require_str(event, "externalBindingKeyID", MODE_REGISTER),
        eab_hmac_key=_require_str(event, "externalBindingKey", MODE_REGISTER),
    )


def _parse_acquire(event: Mapping[str, Any]) -> AcquireRequest:
    domains = _get(event, "domains")
    if (
        not isinstance(domains, list)
        or not domains
        or not all(isinstance(d, str) and d for d in domains)
    ):
        raise PreconditionError(f"{MODE_ACQUIRE} mode requires a non-empty 'domains' list")

    raw_key_type = _get(event, "keyAlgorithm") or KeyAlgorithm.RSA
    try:
        key_type = KeyAlgorithm(raw_key_type)
    except ValueError as e:
        raise PreconditionError(f"Unknown keyAlgorithm {raw_key_type!r}") from e

    rsa_key_size: int | None = None
    if key_type == KeyAlgorithm.RSA:
        rsa_key_size = _get(event, "rsaKeySize") or DEFAULT_RSA_KEY_SIZE
        if rsa_key_size not in RSA_KEY_SIZES:
            raise PreconditionError(f"rsaKeySize must be one of {RSA_KEY_SIZES}")

    existing_arn = _get(event, "existingHandle")
    if existing_arn is not None and not isinstance(existing_arn, str):
        raise PreconditionError("'existingHandle' must be a string")

    return AcquireRequest(
        domains=list(domains),
        email=_require_str(event, "email", MODE_ACQUIRE),
        server=_require_str(event, "server", MODE_ACQUIRE),
        dns_zone_id=_require_str(event, "dnsZoneID", MODE_ACQUIRE),
        existing_arn=existing_arn or None,
        key_type=key_type,
        rsa_key_size=rsa_key_size,
        force_renewal=_optional_bool(event, "forceRenewal"),
    )


def _parse_renew(event: Mapping[str, Any]) -> RenewRequest:
    certificate_ids = _get(event, "certificateIds")
    if certificate_ids is not None and (
        not isinstance(certificate_ids, list)
        or not all(isinstance(i, str) for i in certificate_ids)
    ):
        raise PreconditionError("'certificateIds' must be a list of strings")
    return RenewRequest(
        certificate_ids=list(certificate_ids) if certificate_ids is not None else None,
        dry_run=_optional_bool(event, "dryRun"),
    )


def parse_event(event: Mapping[str, Any]) -> InvocationRequest:
    """Validate an event and return the request for its mode.

    Raises:
        PreconditionError: If mode is missing/unknown or a required field is invalid
    """
    if not isinstance(event, Mapping):
        raise PreconditionError("Event payload must be an object")
    mode = event.get("mode")
    if not mode:
        raise PreconditionError(
            "Mode is required in event payload (register, acquire-on-demand, or renew)"
        )
    mode = MODE_ALIASES.get(mode, mode)
    if mode == MODE_REGISTER:
        return _parse_register(event)
    if mode == MODE_ACQUIRE:
        return _parse_acquire(event)
    if mode == MODE_RENEW:
        return _parse_renew(event)
    raise PreconditionError(f"Unknown mode: {mode}")
