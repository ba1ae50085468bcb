"""Certbot CLI runner.

Certbot owns the ACME protocol and its account state. This module builds
argument vectors and runs the executable. All state lives under one ephemeral
root which the caller syncs to S3.
"""

import logging
import os
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from .config import RuntimeConfig
from .errors import IssuanceError
from .models import DEFAULT_RSA_KEY_SIZE, CertificatePaths, KeyAlgorithm
from .output_resolver import resolve_certificate_paths

logger = logging.getLogger(__name__)

REDACTED = "***"
_SECRET_FLAGS = {"--eab-kid", "--eab-hmac-key"}


def lineage_name_for(primary_domain: str) -> str:
    """Return the ``--cert-name`` pinned for a primary domain.

    Wildcard primaries use the base domain, as certbot does.
    """
    return primary_domain[2:] if primary_domain.startswith("*.") else primary_domain


def redact_args(args: Sequence[str]) -> list[str]:
    """Return a copy of argv with EAB credential values masked."""
    redacted = list(args)
    for i, arg in enumerate(redacted[:-1]):
        if arg in _SECRET_FLAGS:
            redacted[i + 1] = REDACTED
    return redacted


class CertbotRunner:
    """Runs certbot inside an ephemeral working tree."""

    def __init__(
        self,
        certbot_dir: Path,
        certbot_bin: str = "certbot",
        timeout_seconds: int = 600,
        region: str = "us-east-1",
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize runner.

        Args:
            certbot_dir: Ephemeral root holding config, work and logs
            certbot_bin: Certbot executable name or path
            timeout_seconds: Per-invocation subprocess timeout
            region: AWS region exported for the Route53 plugin
            environ: Base environment for the subprocess (default: process environment)
        """
        self.certbot_dir = certbot_dir
        self.config_dir = certbot_dir / "config"
        self.work_dir = certbot_dir / "work"
        self.logs_dir = certbot_dir / "logs"
        self.certbot_bin = certbot_bin
        self.timeout_seconds = timeout_seconds
        self.region = region
        self._environ = environ

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> "CertbotRunner":
        return cls(
            certbot_dir=config.certbot_dir,
            certbot_bin=config.certbot_bin,
            timeout_seconds=config.certbot_timeout_seconds,
            region=config.region,
        )

    @property
    def live_dir(self) -> Path:
        return self.config_dir / "live"

    def initialize(self) -> None:
        """Create config, work and logs directories (idempotent)."""
        for directory in (self.config_dir, self.work_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)
        logger.info("Initialized certbot directories under %s", self.certbot_dir)

    def _common_dir_args(self) -> list[str]:
        return [
            "--config-dir",
            str(self.config_dir),
            "--work-dir",
            str(self.work_dir),
            "--logs-dir",
            str(self.logs_dir),
        ]

    def build_register_args(
        self, email: str, server_url: str, eab_kid: str, eab_hmac_key: str
    ) -> list[str]:
        return [
            self.certbot_bin,
            "register",
            "--non-interactive",
            "--agree-tos",
            "-m",
            email,
            "--server",
            server_url,
            "--eab-kid",
            eab_kid,
            "--eab-hmac-key",
            eab_hmac_key,
            *self._common_dir_args(),
        ]

    def build_certonly_args(
        self,
        domains: Sequence[str],
        email: str,
        server_url: str,
        lineage_name: str,
        force_renewal: bool = False,
        key_type: KeyAlgorithm = KeyAlgorithm.RSA,
        rsa_key_size: int | None = None,
    ) -> list[str]:
        args = [
            self.certbot_bin,
            "certonly",
            "--non-interactive",
            "--agree-tos",
            "--email",
            email,
            "--dns-route53",
            "--server",
            server_url,
            *self._common_dir_args(),
            "--cert-name",
            lineage_name,
        ]
        for domain in domains:
            args.extend(["-d", domain])
        args.extend(["--preferred-challenges", "dns-01", "--key-type", str(key_type)])
        if key_type == KeyAlgorithm.RSA:
            args.extend(["--rsa-key-size", str(rsa_key_size or DEFAULT_RSA_KEY_SIZE)])
        if force_renewal:
            args.append("--force-renewal")
        return args

    def _subprocess_env(self) -> dict[str, str]:
        env = dict(os.environ if self._environ is None else self._environ)
        env["AWS_DEFAULT_REGION"] = self.region
        return env

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        """Run certbot with a literal argv (no shell).

        Raises:
            IssuanceError: On non-zero exit, timeout, or missing executable
        """
        logger.info("Executing: %s", " ".join(redact_args(args)))
        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                env=self._subprocess_env(),
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise IssuanceError(
                f"certbot {args[1]} timed out after {self.timeout_seconds}s",
                stdout=_as_text(e.stdout),
                stderr=_as_text(e.stderr),
            ) from e
        except OSError as e:
            raise IssuanceError(f"certbot {args[1]} could not be started: {e}") from e

        if completed.returncode != 0:
            logger.error(
                "certbot %s failed with exit code %d: %s",
                args[1],
                completed.returncode,
                completed.stderr.strip(),
            )
            raise IssuanceError(
                f"certbot {args[1]} failed with exit code {completed.returncode}: "
                f"{completed.stderr.strip() or completed.stdout.strip()}",
                returncode=completed.returncode,
                stdout=completed.stdout,
                stderr=completed.stderr,
            )
        return completed

    def register_account(
        self, email: str, server_url: str, eab_kid: str, eab_hmac_key: str
    ) -> None:
        """Register an ACME account with external account binding.

        Args:
            email: Contact email
            server_url: ACME directory URL
            eab_kid: External account binding key identifier
            eab_hmac_key: External account binding HMAC key

        Raises:
            IssuanceError: If certbot fails
        """
        logger.info("Registering ACME account for %s on %s", email, server_url)
        self._run(self.build_register_args(email, server_url, eab_kid, eab_hmac_key))
        logger.info("Account registered successfully")

    def obtain(
        self,
        domains: Sequence[str],
        email: str,
        server_url: str,
        dns_zone_id: str,
        force_renewal: bool = False,
        key_type: KeyAlgorithm = KeyAlgorithm.RSA,
        rsa_key_size: int | None = None,
        lineage_name: str | None = None,
    ) -> CertificatePaths:
        """Obtain a certificate with DNS-01 validation through Route53.

        Args:
            domains: Domains, first is primary
            email: Contact email
            server_url: ACME directory URL
            dns_zone_id: Route53 hosted zone (the plugin discovers it; logged for audit)
            force_renewal: Pass ``--force-renewal``
            key_type: Key algorithm
            rsa_key_size: RSA key size, ignored for ECDSA
            lineage_name: ``--cert-name`` pin (default: derived from primary domain)

        Returns:
            CertificatePaths for the produced lineage

        Raises:
            IssuanceError: If certbot fails
            OutputResolutionError: If the produced files cannot be located
        """
        if not domains:
            raise ValueError("at least one domain is required")
        lineage = lineage_name or lineage_name_for(domains[0])
        logger.info(
            "Obtaining certificate for %s (lineage=%s, zone=%s, force_renewal=%s)",
            ", ".join(domains),
            lineage,
            dns_zone_id,
            force_renewal,
        )
        completed = self._run(
            self.build_certonly_args(
                domains,
                email,
                server_url,
                lineage,
                force_renewal=force_renewal,
                key_type=key_type,
                rsa_key_size=rsa_key_size,
            )
        )
        paths = resolve_certificate_paths(
            self.live_dir, lineage, f"{completed.stdout}\n{completed.stderr}"
        )
        logger.info("Certificate obtained at %s", paths.lineage_dir)
        return paths

    def cleanup(self) -> None:
        """Remove the ephemeral root. Failures are logged, never raised."""
        try:
            if self.certbot_dir.exists():
                shutil.rmtree(self.certbot_dir)
                logger.info("Removed directory %s", self.certbot_dir)
        except OSError as e:
            logger.error("Failed to clean up certbot directory %s: %s", self.certbot_dir, e)


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
