"""SNS notifier for renewal results."""

import logging
from datetime import UTC, datetime

import boto3
from mypy_boto3_sns import SNSClient as SNSClientType

from .models import Outcome, RenewalResult, RunSummary

logger = logging.getLogger(__name__)

APP_NAME = "ACME Renewal"
SUBJECT_MAX_LENGTH = 100
RULE_WIDTH = 60


def _truncate_subject(subject: str) -> str:
    if len(subject) <= SUBJECT_MAX_LENGTH:
        return subject
    return subject[: SUBJECT_MAX_LENGTH - 3] + "..."


def build_summary_subject(summary: RunSummary) -> str:
    """Failures take priority over successes, successes over skips."""
    if summary.total_failed > 0:
        return f"[FAILURE] {APP_NAME} - {summary.total_failed} certificate(s) failed to renew"
    if summary.total_success > 0:
        return f"[SUCCESS] {APP_NAME} - {summary.total_success} certificate(s) renewed"
    return f"[INFO] {APP_NAME} - {summary.total_skipped} certificate(s) skipped"


def build_summary_message(
    results: list[RenewalResult], summary: RunSummary, now: datetime
) -> str:
    lines = [
        f"{APP_NAME} Certificate Renewal Summary",
        "=" * RULE_WIDTH,
        "",
        f"Total Processed: {summary.total_processed}",
        f"  Success: {summary.total_success}",
        f"  Failed:  {summary.total_failed}",
        f"  Skipped: {summary.total_skipped}",
        "",
    ]

    successes = [r for r in results if r.outcome == Outcome.SUCCESS]
    if successes:
        lines.extend(["Successfully Renewed Certificates:", "-" * RULE_WIDTH])
        for result in successes:
            lines.append(f"  * {result.certificate_id}")
            lines.append(f"    Domains: {', '.join(result.domains)}")
            lines.append(f"    ACM ARN: {result.acm_certificate_arn or 'N/A'}")
            if result.expiry:
                lines.append(f"    Expiry Date: {result.expiry.isoformat()}")
            lines.append("")

    failures = [r for r in results if r.outcome == Outcome.FAILURE]
    if failures:
        lines.extend(["Failed Certificates:", "-" * RULE_WIDTH])
        for result in failures:
            lines.append(f"  * {result.certificate_id}")
            lines.append(f"    Domains: {', '.join(result.domains)}")
            lines.append(f"    Error: {result.error or 'Unknown error'}")
            lines.append("")

    skipped = [r for r in results if r.outcome == Outcome.SKIPPED]
    if skipped:
        lines.extend(["Skipped Certificates:", "-" * RULE_WIDTH])
        for result in skipped:
            lines.append(f"  * {result.certificate_id}")
            lines.append(f"    Domains: {', '.join(result.domains)}")
            lines.append(f"    Reason: {result.skip_reason or 'not yet due'}")
            lines.append("")

    lines.extend(
        [
            "",
            "Check CloudWatch Logs for detailed execution logs.",
            f"Timestamp: {now.isoformat()}",
        ]
    )
    return "\n".join(lines)


class SNSNotifier:
    """Publishes operation results to an SNS topic.

    Publishing never raises. Failures are logged and reported as False.
    """

    def __init__(self, topic_arn: str, region: str = "us-east-1") -> None:
        """Initialize SNS notifier.

        Args:
            topic_arn: Destination topic ARN
            region: AWS region for SNS client
        """
        self.topic_arn = topic_arn
        self.client: SNSClientType = boto3.client("sns", region_name=region)

    def publish(self, subject: str, message: str) -> bool:
        """Publish a message.

        Returns:
            True if SNS accepted the message, False otherwise
        """
        subject = _truncate_subject(subject)
        logger.info("Sending notification: %s", subject)
        try:
            self.client.publish(TopicArn=self.topic_arn, Subject=subject, Message=message)
        except Exception as e:
            logger.error("Failed to send notification: %s", e)
            return False
        logger.info("Notification sent successfully")
        return True

    def send_renewal_summary(self, results: list[RenewalResult]) -> bool:
        summary = RunSummary.from_results(results)
        return self.publish(
            build_summary_subject(summary),
            build_summary_message(results, summary, datetime.now(UTC)),
        )

    def send_success(self, message: str) -> bool:
        body = "\n".join(
            [
                f"{APP_NAME} Operation Completed Successfully",
                "=" * RULE_WIDTH,
                "",
                message,
                "",
                f"Timestamp: {datetime.now(UTC).isoformat()}",
            ]
        )
        return self.publish(f"[SUCCESS] {APP_NAME} - Operation Completed", body)

    def send_error(self, error: BaseException, context: str = "Unknown") -> bool:
        body = "\n".join(
            [
                "A critical error occurred during certificate management.",
                "",
                f"Context: {context}",
                "",
                "Error Details:",
                f"  Type: {type(error).__name__}",
                f"  Message: {error}",
                "",
                "Please check CloudWatch Logs for more details.",
            ]
        )
        return self.publish(f"[ERROR] {APP_NAME} - {context} failed", body)
