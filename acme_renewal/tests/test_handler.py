"""Tests for the renewal Lambda handler."""

import os
from unittest.mock import MagicMock, patch

import pytest

from acme_renewal.handler import _redact_event, handler
from acme_renewal.lib.config import RuntimeConfig
from acme_renewal.lib.errors import PreconditionError
from acme_renewal.lib.orchestrator import RenewalOrchestrator
from acme_renewal.lib.types import LambdaContext
from acme_renewal.tests.helpers import (
    TEST_BUCKET,
    TEST_TOPIC_ARN,
    FakeCertbot,
    FakeS3Client,
    certificate_entry,
    domain_config_json,
)


class TestHandlerPreconditions:
    """Test handler failures raised before any external effect."""

    def test_missing_environment_raises(self, mock_context: LambdaContext) -> None:
        """Handler raises PreconditionError when required variables are absent."""
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("acme_renewal.handler._build_orchestrator") as build,
            pytest.raises(PreconditionError, match="CERTIFICATE_BUCKET"),
        ):
            handler({"mode": "renew"}, mock_context)

        build.assert_not_called()

    @pytest.mark.parametrize("event", [{}, {"mode": "revoke"}])
    def test_invalid_event_raises(
        self, event: dict, env_vars: dict[str, str], mock_context: LambdaContext
    ) -> None:
        """Handler raises PreconditionError for a missing or unknown mode."""
        with (
            patch.dict(os.environ, env_vars, clear=True),
            patch("acme_renewal.handler._build_orchestrator") as build,
            pytest.raises(PreconditionError),
        ):
            handler(event, mock_context)  # type: ignore[arg-type]

        build.assert_not_called()


class TestHandlerRenew:
    """Test handler end to end in renew mode."""

    def test_returns_aggregate_counts(
        self,
        orchestrator: RenewalOrchestrator,
        fake_s3: FakeS3Client,
        fake_certbot: FakeCertbot,
        env_vars: dict[str, str],
        mock_context: LambdaContext,
    ) -> None:
        """Handler returns 200 with per-certificate results."""
        fake_s3.objects["config/domains.json"] = domain_config_json(
            certificate_entry("a-example-com"),
            certificate_entry("b-example-com", enabled=False),
        )

        with (
            patch.dict(os.environ, env_vars, clear=True),
            patch("acme_renewal.handler._build_orchestrator", return_value=orchestrator),
        ):
            response = handler({"mode": "renew"}, mock_context)

        assert response["statusCode"] == 200
        body = response["body"]
        assert body["message"] == "Certificate renewal process completed"
        assert body["totalProcessed"] == 2
        assert body["totalSuccess"] == 1
        assert body["totalSkipped"] == 1
        assert body["totalFailed"] == 0

    def test_config_comes_from_environment(
        self, env_vars: dict[str, str], mock_context: LambdaContext
    ) -> None:
        """Handler builds the orchestrator from environment configuration."""
        built = MagicMock()
        built.run.return_value = {"statusCode": 200, "body": {}}

        with (
            patch.dict(os.environ, {**env_vars, "ACM_REGION": "us-east-1"}, clear=True),
            patch("acme_renewal.handler._build_orchestrator", return_value=built) as build,
        ):
            handler({"mode": "renew", "dryRun": True}, mock_context)

        config = build.call_args.args[0]
        assert config.bucket_name == TEST_BUCKET
        assert config.sns_topic_arn == TEST_TOPIC_ARN
        assert built.run.call_args.args[0].dry_run is True


class TestOrchestratorFactory:
    """Test construction of AWS clients from configuration."""

    def test_clients_use_configured_regions(self, runtime_config: RuntimeConfig) -> None:
        """Should create S3 and SNS in the runtime region and ACM in the ACM region."""
        config = RuntimeConfig(
            bucket_name=TEST_BUCKET,
            sns_topic_arn=TEST_TOPIC_ARN,
            certbot_dir=runtime_config.certbot_dir,
            region="eu-west-1",
            acm_region="us-east-1",
        )

        with (
            patch("acme_renewal.lib.s3_client.boto3") as s3_boto3,
            patch("acme_renewal.lib.acm_client.boto3") as acm_boto3,
            patch("acme_renewal.lib.sns_client.boto3") as sns_boto3,
        ):
            orchestrator = RenewalOrchestrator.from_config(config)

        s3_boto3.client.assert_called_once_with("s3", region_name="eu-west-1")
        acm_boto3.client.assert_called_once_with("acm", region_name="us-east-1")
        sns_boto3.client.assert_called_once_with("sns", region_name="eu-west-1")
        assert orchestrator.state_store.bucket_name == TEST_BUCKET
        assert orchestrator.runner.region == "eu-west-1"


class TestRedactEvent:
    """Test event redaction for logging."""

    def test_masks_eab_credentials(self) -> None:
        """Should mask EAB credentials and keep other fields."""
        event = {
            "mode": "register",
            "email": "admin@example.com",
            "externalBindingKeyID": "kid",
            "externalBindingKey": "secret",
        }

        redacted = _redact_event(event)

        assert redacted["externalBindingKey"] == "***"
        assert redacted["externalBindingKeyID"] == "***"
        assert redacted["email"] == "admin@example.com"
        assert event["externalBindingKey"] == "secret"
