"""ACM client for certificate import and expiry checks."""

import logging
from datetime import UTC, datetime, timedelta

import boto3
from botocore.exceptions import ClientError
from mypy_boto3_acm import ACMClient as ACMClientType

from .errors import CertificateImportError, NotFoundError
from .models import CertificateInfo, CertificatePaths

logger = logging.getLogger(__name__)

MANAGED_BY = "acme-renewal"


class ACMClient:
    """ACM operations for certificates managed by this function.

    Certificates used by CloudFront must live in us-east-1.
    """

    def __init__(self, region: str = "us-east-1") -> None:
        """Initialize ACM client.

        Args:
            region: AWS region for ACM client
        """
        self.client: ACMClientType = boto3.client("acm", region_name=region)

    def import_certificate(
        self,
        paths: CertificatePaths,
        certificate_id: str,
        existing_arn: str | None = None,
    ) -> str:
        """Import (or re-import) certbot output into ACM.

        Passing existing_arn rotates that certificate in place. First-time
        imports are tagged with ManagedBy, CertificateId and LastRenewal.

        Args:
            paths: Certbot lineage files
            certificate_id: Configuration entry id
            existing_arn: ARN to re-import into

        Returns:
            Certificate ARN

        Raises:
            CertificateImportError: If ACM returns no ARN
        """
        kwargs = {
            "Certificate": paths.cert_path.read_bytes(),
            "PrivateKey": paths.private_key_path.read_bytes(),
            "CertificateChain": paths.chain_path.read_bytes(),
        }
        if existing_arn:
            kwargs["CertificateArn"] = existing_arn
            logger.info("Re-importing certificate %s into %s", certificate_id, existing_arn)
        else:
            logger.info("Importing new certificate %s", certificate_id)

        response = self.client.import_certificate(**kwargs)
        arn = response.get("CertificateArn")
        if not arn:
            raise CertificateImportError("ACM did not return a certificate ARN")
        logger.info("Certificate imported: %s", arn)

        if not existing_arn:
            self._tag_certificate(arn, certificate_id)
        return arn

    def _tag_certificate(self, arn: str, certificate_id: str) -> None:
        self.client.add_tags_to_certificate(
            CertificateArn=arn,
            Tags=[
                {"Key": "ManagedBy", "Value": MANAGED_BY},
                {"Key": "CertificateId", "Value": certificate_id},
                {"Key": "LastRenewal", "Value": datetime.now(UTC).isoformat()},
            ],
        )
        logger.info("Tagged certificate %s", arn)

    def _describe_raw(self, arn: str) -> CertificateInfo:
        """Describe a certificate.

        Raises:
            NotFoundError: If the ARN does not resolve
        """
        try:
            response = self.client.describe_certificate(CertificateArn=arn)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code", "") == "ResourceNotFoundException":
                raise NotFoundError(f"Certificate not found: {arn}") from e
            raise
        certificate = response.get("Certificate")
        if not certificate:
            raise NotFoundError(f"Certificate not found: {arn}")
        return CertificateInfo(
            arn=arn,
            domain_name=certificate.get("DomainName", ""),
            not_after=certificate.get("NotAfter"),
            status=certificate.get("Status"),
        )

    def describe(self, arn: str) -> CertificateInfo | None:
        """Return certificate details, or None if the ARN no longer resolves."""
        try:
            return self._describe_raw(arn)
        except NotFoundError:
            logger.info("Certificate not found: %s", arn)
            return None

    def needs_renewal(
        self, arn: str, days_before_expiry: int, now: datetime | None = None
    ) -> bool:
        """Decide whether a certificate is due.

        Missing certificate or missing NotAfter counts as due.

        Args:
            arn: Certificate ARN
            days_before_expiry: Renewal threshold in days
            now: Reference time (default: current UTC time)

        Returns:
            True if whole days until expiry <= days_before_expiry
        """
        info = self.describe(arn)
        if info is None or info.not_after is None:
            logger.info("Certificate info not available for %s, renewal recommended", arn)
            return True
        return is_due(info.not_after, days_before_expiry, now or datetime.now(UTC))


def days_until(not_after: datetime, now: datetime) -> int:
    """Whole days from now until not_after, rounded down."""
    if not_after.tzinfo is None:
        not_after = not_after.replace(tzinfo=UTC)
    return (not_after - now) // timedelta(days=1)


def is_due(not_after: datetime, days_before_expiry: int, now: datetime) -> bool:
    remaining = days_until(not_after, now)
    logger.info(
        "Certificate expires in %d days (threshold: %d days)", remaining, days_before_expiry
    )
    return remaining <= days_before_expiry
