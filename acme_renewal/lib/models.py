"""Domain models for certificate renewal."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from .providers import AcmeProvider

DEFAULT_RENEW_DAYS_BEFORE_EXPIRY = 30
DEFAULT_RSA_KEY_SIZE = 2048
RSA_KEY_SIZES = (2048, 4096)

SKIP_DISABLED = "disabled"
SKIP_NOT_YET_DUE = "not yet due"
SKIP_DRY_RUN = "dry run"


class KeyAlgorithm(StrEnum):
    """Private key algorithm requested from certbot."""

    RSA = "rsa"
    ECDSA = "ecdsa"


class Outcome(StrEnum):
    """Terminal state of one certificate in a pass."""

    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass
class CertificateEntry:
    """One managed certificate lineage from the domain configuration.

    ``acm_certificate_arn`` is None until the first successful import. ``raw``
    holds the entry as it was read from the document, unknown keys included.
    """

    id: str
    domains: list[str]
    email: str
    acme_provider: AcmeProvider
    route53_hosted_zone_id: str
    acm_certificate_arn: str | None = None
    acme_server_url: str | None = None
    renew_days_before_expiry: int = DEFAULT_RENEW_DAYS_BEFORE_EXPIRY
    enabled: bool = True
    key_type: KeyAlgorithm = KeyAlgorithm.RSA
    rsa_key_size: int | None = DEFAULT_RSA_KEY_SIZE
    raw: dict[str, Any] | None = field(default=None, repr=False, compare=False)

    @property
    def primary_domain(self) -> str:
        return self.domains[0]


@dataclass
class ConfigDefaults:
    """Values applied to entries that omit them."""

    email: str | None = None
    acme_provider: AcmeProvider | None = None
    renew_days_before_expiry: int | None = None
    raw: dict[str, Any] | None = field(default=None, repr=False, compare=False)


@dataclass
class InvalidEntry:
    """Configuration entry that failed validation, kept verbatim for write-back."""

    id: str
    raw: Any
    error: str

    @property
    def enabled(self) -> bool:
        return not isinstance(self.raw, dict) or bool(self.raw.get("enabled", True))

    @property
    def domains(self) -> list[str]:
        domains = self.raw.get("domains") if isinstance(self.raw, dict) else None
        if not isinstance(domains, list):
            return []
        return [d for d in domains if isinstance(d, str)]

    @property
    def acm_certificate_arn(self) -> str | None:
        arn = self.raw.get("acmCertificateArn") if isinstance(self.raw, dict) else None
        return arn if isinstance(arn, str) and arn else None


@dataclass
class ConfigurationDocument:
    """The full ``domains.json`` document."""

    version: str = "1.0"
    defaults: ConfigDefaults = field(default_factory=ConfigDefaults)
    certificates: list[CertificateEntry | InvalidEntry] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def find(self, certificate_id: str) -> CertificateEntry | None:
        """Return the valid entry with this id, if any."""
        for entry in self.certificates:
            if entry.id == certificate_id and isinstance(entry, CertificateEntry):
                return entry
        return None


@dataclass(frozen=True)
class CertificatePaths:
    """Files certbot wrote for one lineage."""

    lineage_dir: Path
    cert_path: Path
    chain_path: Path
    full_chain_path: Path
    private_key_path: Path

    @classmethod
    def from_lineage_dir(cls, lineage_dir: Path) -> "CertificatePaths":
        return cls(
            lineage_dir=lineage_dir,
            cert_path=lineage_dir / "cert.pem",
            chain_path=lineage_dir / "chain.pem",
            full_chain_path=lineage_dir / "fullchain.pem",
            private_key_path=lineage_dir / "privkey.pem",
        )

    def files(self) -> dict[str, Path]:
        """Return backup file name to local path mapping."""
        return {
            "cert.pem": self.cert_path,
            "chain.pem": self.chain_path,
            "fullchain.pem": self.full_chain_path,
            "privkey.pem": self.private_key_path,
        }


@dataclass(frozen=True)
class CertificateInfo:
    """ACM certificate details."""

    arn: str
    domain_name: str
    not_after: datetime | None = None
    status: str | None = None


@dataclass
class RenewalResult:
    """Outcome for one processed certificate.

    ``success`` is also true for dry-run skips.
    """

    certificate_id: str
    domains: list[str]
    outcome: Outcome
    success: bool
    acm_certificate_arn: str | None = None
    expiry: datetime | None = None
    error: str | None = None
    skip_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.outcome == Outcome.SKIPPED

    @classmethod
    def succeeded(
        cls,
        certificate_id: str,
        domains: list[str],
        acm_certificate_arn: str | None,
        expiry: datetime | None,
    ) -> "RenewalResult":
        return cls(
            certificate_id=certificate_id,
            domains=list(domains),
            outcome=Outcome.SUCCESS,
            success=True,
            acm_certificate_arn=acm_certificate_arn,
            expiry=expiry,
        )

    @classmethod
    def failed(cls, certificate_id: str, domains: list[str], error: str) -> "RenewalResult":
        return cls(
            certificate_id=certificate_id,
            domains=list(domains),
            outcome=Outcome.FAILURE,
            success=False,
            error=error,
        )

    @classmethod
    def skipped_for(
        cls,
        certificate_id: str,
        domains: list[str],
        reason: str,
        acm_certificate_arn: str | None = None,
        success: bool = False,
    ) -> "RenewalResult":
        return cls(
            certificate_id=certificate_id,
            domains=list(domains),
            outcome=Outcome.SKIPPED,
            success=success,
            acm_certificate_arn=acm_certificate_arn,
            skip_reason=reason,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the Lambda response body."""
        data: dict[str, Any] = {
            "certificateId": self.certificate_id,
            "domains": self.domains,
            "outcome": str(self.outcome),
            "success": self.success,
            "skipped": self.skipped,
        }
        if self.acm_certificate_arn:
            data["storeHandle"] = self.acm_certificate_arn
        if self.expiry:
            data["expiry"] = self.expiry.isoformat()
        if self.error:
            data["error"] = self.error
        if self.skip_reason:
            data["skipReason"] = self.skip_reason
        return data


@dataclass(frozen=True)
class RunSummary:
    """Aggregate counts over a list of results."""

    total_processed: int
    total_success: int
    total_failed: int
    total_skipped: int

    @classmethod
    def from_results(cls, results: list[RenewalResult]) -> "RunSummary":
        return cls(
            total_processed=len(results),
            total_success=sum(1 for r in results if r.outcome == Outcome.SUCCESS),
            total_failed=sum(1 for r in results if r.outcome == Outcome.FAILURE),
            total_skipped=sum(1 for r in results if r.outcome == Outcome.SKIPPED),
        )
