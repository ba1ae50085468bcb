"""Test fixtures for acme_renewal tests."""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from acme_renewal.lib.acm_client import ACMClient
from acme_renewal.lib.certbot_runner import CertbotRunner
from acme_renewal.lib.config import RuntimeConfig
from acme_renewal.lib.orchestrator import RenewalOrchestrator
from acme_renewal.lib.s3_client import S3Client
from acme_renewal.lib.sns_client import SNSNotifier
from acme_renewal.lib.types import LambdaContext
from acme_renewal.tests.helpers import (
    NEW_ARN,
    TEST_BUCKET,
    TEST_TOPIC_ARN,
    FakeCertbot,
    FakeS3Client,
    MockLambdaContext,
    fixed_clock,
)


@pytest.fixture
def mock_context() -> LambdaContext:
    """Provide mock Lambda context."""
    return MockLambdaContext()


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def s3_client(fake_s3: FakeS3Client) -> Generator[S3Client]:
    """S3Client backed by the in-memory fake."""
    with patch("acme_renewal.lib.s3_client.boto3") as mock_boto3:
        mock_boto3.client.return_value = fake_s3
        yield S3Client(TEST_BUCKET)


@pytest.fixture
def runtime_config(tmp_path: Path) -> RuntimeConfig:
    return RuntimeConfig(
        bucket_name=TEST_BUCKET,
        sns_topic_arn=TEST_TOPIC_ARN,
        certbot_dir=tmp_path / "certbot",
    )


@pytest.fixture
def env_vars(tmp_path: Path) -> dict[str, str]:
    """Environment for the Lambda handler."""
    return {
        "CERTIFICATE_BUCKET": TEST_BUCKET,
        "SNS_TOPIC_ARN": TEST_TOPIC_ARN,
        "CERTBOT_DIR": str(tmp_path / "certbot"),
    }


@pytest.fixture
def runner(runtime_config: RuntimeConfig) -> CertbotRunner:
    return CertbotRunner.from_config(runtime_config)


@pytest.fixture
def mock_acm() -> MagicMock:
    """ACM client mock: every certificate is due and imports return NEW_ARN."""
    acm = MagicMock(spec=ACMClient)
    acm.needs_renewal.return_value = True
    acm.import_certificate.return_value = NEW_ARN
    acm.describe.return_value = None
    return acm


@pytest.fixture
def mock_notifier() -> MagicMock:
    notifier = MagicMock(spec=SNSNotifier)
    notifier.publish.return_value = True
    notifier.send_renewal_summary.return_value = True
    notifier.send_success.return_value = True
    notifier.send_error.return_value = True
    return notifier


@pytest.fixture
def fake_certbot() -> Generator[FakeCertbot]:
    """Patch subprocess.run in the runner with FakeCertbot."""
    fake = FakeCertbot()
    with patch("acme_renewal.lib.certbot_runner.subprocess.run", side_effect=fake):
        yield fake


@pytest.fixture
def orchestrator(
    runtime_config: RuntimeConfig,
    s3_client: S3Client,
    mock_acm: MagicMock,
    runner: CertbotRunner,
    mock_notifier: MagicMock,
) -> RenewalOrchestrator:
    """Orchestrator wired to the in-memory bucket, mocks and a fixed clock."""
    return RenewalOrchestrator(
        config=runtime_config,
        state_store=s3_client,
        certificate_store=mock_acm,
        runner=runner,
        notifier=mock_notifier,
        clock=fixed_clock,
    )
