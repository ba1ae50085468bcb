"""Mode router and per-certificate renewal procedure.

Every mode runs inside an issuance session: the certbot tree is pulled from
S3 before certbot runs, pushed back afterwards even when the body failed,
and the local copy is always removed.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import assert_never

from .acm_client import ACMClient
from .cert_utils import certificate_dns_names, read_certificate_not_after
from .certbot_runner import CertbotRunner
from .config import RuntimeConfig
from .domain_config import dump_document, parse_document, upsert_entry
from .errors import NotFoundError
from .events import (
    AcquireRequest,
    InvocationRequest,
    RegisterRequest,
    RenewRequest,
)
from .models import (
    DEFAULT_RENEW_DAYS_BEFORE_EXPIRY,
    SKIP_DISABLED,
    SKIP_DRY_RUN,
    SKIP_NOT_YET_DUE,
    CertificateEntry,
    ConfigurationDocument,
    InvalidEntry,
    KeyAlgorithm,
    RenewalResult,
    RunSummary,
)
from .providers import AcmeProvider, get_server_url
from .s3_client import S3Client
from .sns_client import SNSNotifier
from .types import LambdaResponse

logger = logging.getLogger(__name__)

ACCOUNT_RESULT_ID = "acme-account"


def build_response(
    status_code: int, message: str, results: list[RenewalResult]
) -> LambdaResponse:
    summary = RunSummary.from_results(results)
    return {
        "statusCode": status_code,
        "body": {
            "message": message,
            "results": [result.to_dict() for result in results],
            "totalProcessed": summary.total_processed,
            "totalSuccess": summary.total_success,
            "totalFailed": summary.total_failed,
            "totalSkipped": summary.total_skipped,
        },
    }


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RenewalOrchestrator:
    """Runs one invocation against certbot, S3, ACM and SNS."""

    def __init__(
        self,
        config: RuntimeConfig,
        state_store: S3Client,
        certificate_store: ACMClient,
        runner: CertbotRunner,
        notifier: SNSNotifier,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.config = config
        self.state_store = state_store
        self.certificate_store = certificate_store
        self.runner = runner
        self.notifier = notifier
        self.clock = clock

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> "RenewalOrchestrator":
        return cls(
            config=config,
            state_store=S3Client(config.bucket_name, region=config.region),
            certificate_store=ACMClient(region=config.acm_region),
            runner=CertbotRunner.from_config(config),
            notifier=SNSNotifier(config.sns_topic_arn, region=config.region),
        )

    def run(self, request: InvocationRequest) -> LambdaResponse:
        if isinstance(request, RegisterRequest):
            return self.register(request)
        if isinstance(request, AcquireRequest):
            return self.acquire(request)
        if isinstance(request, RenewRequest):
            return self.renew(request)
        assert_never(request)

    @contextmanager
    def issuance_session(self) -> Iterator[CertbotRunner]:
        """Pull certbot state, yield the runner, push state back, clean up."""
        # Discard stale state from an earlier invocation on this container
        self.runner.cleanup()
        self.runner.initialize()
        try:
            self.state_store.pull(self.config.state_prefix, self.runner.config_dir)
            try:
                yield self.runner
            finally:
                self.state_store.push(self.runner.config_dir, self.config.state_prefix)
        finally:
            self.runner.cleanup()

    def register(self, request: RegisterRequest) -> LambdaResponse:
        """Register an ACME account and persist it to S3."""
        logger.info("=== REGISTER MODE === email=%s server=%s", request.email, request.server)
        try:
            with self.issuance_session() as runner:
                runner.register_account(
                    request.email, request.server, request.eab_kid, request.eab_hmac_key
                )
        except Exception as e:
            logger.error("Account registration failed: %s", e)
            self.notifier.send_error(e, "ACME account registration")
            return build_response(
                500,
                f"Registration failed: {e}",
                [RenewalResult.failed(ACCOUNT_RESULT_ID, [], str(e))],
            )

        logger.info("Account registration completed successfully")
        self.notifier.send_success(
            f"ACME account registered successfully for {request.email} on {request.server}"
        )
        return build_response(
            200,
            "ACME account registered successfully",
            [RenewalResult.succeeded(ACCOUNT_RESULT_ID, [], None, None)],
        )

    def acquire(self, request: AcquireRequest) -> LambdaResponse:
        """Obtain a certificate from payload values and record it in the configuration."""
        certificate_id = request.certificate_id
        logger.info(
            "=== ACQUIRE MODE === id=%s domains=%s server=%s",
            certificate_id,
            ", ".join(request.domains),
            request.server,
        )
        try:
            with self.issuance_session():
                document = self._load_or_init_document()
                arn, expiry = self._issue(
                    certificate_id=certificate_id,
                    domains=request.domains,
                    email=request.email,
                    server_url=request.server,
                    dns_zone_id=request.dns_zone_id,
                    existing_arn=request.existing_arn,
                    force_renewal=request.force_renewal,
                    key_type=request.key_type,
                    rsa_key_size=request.rsa_key_size,
                )
                appended = upsert_entry(
                    document,
                    CertificateEntry(
                        id=certificate_id,
                        domains=list(request.domains),
                        email=request.email,
                        acme_provider=AcmeProvider.CUSTOM,
                        acme_server_url=request.server,
                        route53_hosted_zone_id=request.dns_zone_id,
                        acm_certificate_arn=arn,
                        renew_days_before_expiry=DEFAULT_RENEW_DAYS_BEFORE_EXPIRY,
                        enabled=True,
                        key_type=request.key_type,
                        rsa_key_size=request.rsa_key_size,
                    ),
                )
                self._save_document(document)
                logger.info(
                    "%s %s in domain configuration",
                    "Added" if appended else "Updated",
                    certificate_id,
                )
        except Exception as e:
            logger.error("Certificate acquisition failed: %s", e)
            self.notifier.send_error(e, "Certificate acquisition")
            return build_response(
                500,
                f"Certificate acquisition failed: {e}",
                [RenewalResult.failed(certificate_id, request.domains, str(e))],
            )

        self.notifier.send_success(
            f"Certificate obtained successfully for {', '.join(request.domains)}\nACM ARN: {arn}"
        )
        return build_response(
            200,
            "Certificate obtained and imported successfully",
            [RenewalResult.succeeded(certificate_id, request.domains, arn, expiry)],
        )

    def renew(self, request: RenewRequest) -> LambdaResponse:
        """Renew every enabled, selected certificate that is due."""
        logger.info("=== RENEW MODE === dry_run=%s", request.dry_run)
        if request.dry_run:
            logger.info("DRY RUN - certbot will not be invoked")

        results: list[RenewalResult] = []
        try:
            with self.issuance_session():
                document = parse_document(
                    self.state_store.fetch_text(self.config.domain_config_key)
                )
                logger.info(
                    "Loaded configuration version %s with %d certificates",
                    document.version,
                    len(document.certificates),
                )
                for entry in document.certificates:
                    if not entry.enabled:
                        logger.info("Skipping disabled certificate: %s", entry.id)
                        results.append(
                            RenewalResult.skipped_for(
                                entry.id,
                                entry.domains,
                                SKIP_DISABLED,
                                acm_certificate_arn=entry.acm_certificate_arn,
                            )
                        )
                        continue
                    if not request.includes(entry.id):
                        logger.info("Skipping certificate not in event filter: %s", entry.id)
                        continue
                    if isinstance(entry, InvalidEntry):
                        logger.error("Invalid configuration for %s: %s", entry.id, entry.error)
                        results.append(
                            RenewalResult.failed(entry.id, entry.domains, entry.error)
                        )
                        continue
                    results.append(self.process_certificate(entry, request.dry_run))

                if not request.dry_run and self._record_new_arns(document, results):
                    self._save_document(document)
        except Exception as e:
            logger.error("Certificate renewal pass failed: %s", e)
            self.notifier.send_error(e, "Certificate renewal process")
            return build_response(500, f"Error: {e}", results)

        summary = RunSummary.from_results(results)
        logger.info(
            "Certificate renewal completed: processed=%d success=%d failed=%d skipped=%d",
            summary.total_processed,
            summary.total_success,
            summary.total_failed,
            summary.total_skipped,
        )
        self.notifier.send_renewal_summary(results)
        return build_response(200, "Certificate renewal process completed", results)

    def process_certificate(self, entry: CertificateEntry, dry_run: bool) -> RenewalResult:
        """Renew one certificate if due. Never raises.

        pending -> checking-expiry -> (skipped | dry-run-skip | issuing -> importing)
        -> success, with any error ending in failure.
        """
        logger.info(
            "Processing certificate %s: domains=%s provider=%s",
            entry.id,
            ", ".join(entry.domains),
            entry.acme_provider,
        )
        try:
            if entry.acm_certificate_arn and not self.certificate_store.needs_renewal(
                entry.acm_certificate_arn, entry.renew_days_before_expiry, now=self.clock()
            ):
                logger.info("Certificate %s does not need renewal yet", entry.id)
                return RenewalResult.skipped_for(
                    entry.id,
                    entry.domains,
                    SKIP_NOT_YET_DUE,
                    acm_certificate_arn=entry.acm_certificate_arn,
                )

            if dry_run:
                logger.info("DRY RUN: not obtaining certificate %s", entry.id)
                return RenewalResult.skipped_for(
                    entry.id,
                    entry.domains,
                    SKIP_DRY_RUN,
                    acm_certificate_arn=entry.acm_certificate_arn,
                    success=True,
                )

            arn, expiry = self._issue(
                certificate_id=entry.id,
                domains=entry.domains,
                email=entry.email,
                server_url=get_server_url(entry.acme_provider, entry.acme_server_url),
                dns_zone_id=entry.route53_hosted_zone_id,
                existing_arn=entry.acm_certificate_arn,
                force_renewal=bool(entry.acm_certificate_arn),
                key_type=entry.key_type,
                rsa_key_size=entry.rsa_key_size,
            )
        except Exception as e:
            logger.error("Failed to process certificate %s: %s", entry.id, e)
            return RenewalResult.failed(entry.id, entry.domains, str(e))

        logger.info("Certificate %s processed successfully: %s", entry.id, arn)
        return RenewalResult.succeeded(entry.id, entry.domains, arn, expiry)

    def _issue(
        self,
        certificate_id: str,
        domains: list[str],
        email: str,
        server_url: str,
        dns_zone_id: str,
        existing_arn: str | None,
        force_renewal: bool,
        key_type: KeyAlgorithm,
        rsa_key_size: int | None,
    ) -> tuple[str, datetime | None]:
        """Obtain, back up and import a certificate.

        Returns:
            Tuple of (ACM ARN, expiry or None)
        """
        paths = self.runner.obtain(
            domains,
            email,
            server_url,
            dns_zone_id,
            force_renewal=force_renewal,
            key_type=key_type,
            rsa_key_size=rsa_key_size,
        )
        uncovered = set(domains) - set(certificate_dns_names(paths.cert_path.read_bytes()))
        if uncovered:
            logger.warning(
                "Certificate %s does not cover: %s", certificate_id, ", ".join(sorted(uncovered))
            )
        self.state_store.backup_certificate(certificate_id, paths, now=self.clock())
        arn = self.certificate_store.import_certificate(paths, certificate_id, existing_arn)

        info = self.certificate_store.describe(arn)
        expiry = info.not_after if info and info.not_after else None
        if expiry is None:
            expiry = read_certificate_not_after(paths.cert_path)
        return arn, expiry

    def _load_or_init_document(self) -> ConfigurationDocument:
        try:
            text = self.state_store.fetch_text(self.config.domain_config_key)
        except NotFoundError:
            logger.info("No domain configuration yet, creating a new one")
            return ConfigurationDocument()
        return parse_document(text)

    def _save_document(self, document: ConfigurationDocument) -> None:
        self.state_store.put_text(self.config.domain_config_key, dump_document(document))
        logger.info("Domain configuration written to %s", self.config.domain_config_key)

    @staticmethod
    def _record_new_arns(
        document: ConfigurationDocument, results: list[RenewalResult]
    ) -> bool:
        """Copy new ARNs from successful results into the document.

        Returns:
            True if any entry changed
        """
        changed = False
        for result in results:
            if not result.success or not result.acm_certificate_arn:
                continue
            entry = document.find(result.certificate_id)
            if entry and entry.acm_certificate_arn != result.acm_certificate_arn:
                logger.info(
                    "Recording ACM ARN %s for %s", result.acm_certificate_arn, entry.id
                )
                entry.acm_certificate_arn = result.acm_certificate_arn
                changed = True
        return changed
