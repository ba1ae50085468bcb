"""Runtime configuration sourced from the Lambda environment."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .errors import PreconditionError

DEFAULT_DOMAIN_CONFIG_KEY = "config/domains.json"
DEFAULT_STATE_PREFIX = "certbot/config"
DEFAULT_CERTBOT_DIR = "/tmp/certbot"
DEFAULT_REGION = "us-east-1"


@dataclass(frozen=True)
class RuntimeConfig:
    """Settings shared by every component of one invocation.

    Built once at handler entry and passed to component constructors.
    """

    bucket_name: str
    sns_topic_arn: str
    domain_config_key: str = DEFAULT_DOMAIN_CONFIG_KEY
    state_prefix: str = DEFAULT_STATE_PREFIX
    certbot_dir: Path = Path(DEFAULT_CERTBOT_DIR)
    certbot_bin: str = "certbot"
    certbot_timeout_seconds: int = 600
    region: str = DEFAULT_REGION
    acm_region: str = DEFAULT_REGION
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "RuntimeConfig":
        """Build configuration from environment variables.

        Args:
            environ: Environment mapping (usually ``os.environ``)

        Returns:
            RuntimeConfig instance

        Raises:
            PreconditionError: If a required variable is missing or a value is invalid
        """
        bucket_name = environ.get("CERTIFICATE_BUCKET", "")
        sns_topic_arn = environ.get("SNS_TOPIC_ARN", "")
        missing = [
            name
            for name, value in (
                ("CERTIFICATE_BUCKET", bucket_name),
                ("SNS_TOPIC_ARN", sns_topic_arn),
            )
            if not value
        ]
        if missing:
            raise PreconditionError(
                f"Required environment variables are missing: {', '.join(missing)}"
            )

        raw_timeout = environ.get("CERTBOT_TIMEOUT_SECONDS", "600")
        try:
            timeout = int(raw_timeout)
        except ValueError as e:
            raise PreconditionError(
                f"CERTBOT_TIMEOUT_SECONDS must be an integer, got {raw_timeout!r}"
            ) from e
        if timeout <= 0:
            raise PreconditionError("CERTBOT_TIMEOUT_SECONDS must be positive")

        log_level = environ.get("LOG_LEVEL", "INFO").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise PreconditionError(f"Unknown LOG_LEVEL {log_level!r}")

        region = environ.get("AWS_REGION") or DEFAULT_REGION

        return cls(
            bucket_name=bucket_name,
            sns_topic_arn=sns_topic_arn,
            domain_config_key=environ.get("DOMAIN_CONFIG_KEY") or DEFAULT_DOMAIN_CONFIG_KEY,
            state_prefix=environ.get("CERTBOT_STATE_PREFIX") or DEFAULT_STATE_PREFIX,
            certbot_dir=Path(environ.get("CERTBOT_DIR") or DEFAULT_CERTBOT_DIR),
            certbot_bin=environ.get("CERTBOT_BIN") or "certbot",
            certbot_timeout_seconds=timeout,
            region=region,
            acm_region=environ.get("ACM_REGION") or DEFAULT_REGION,
            log_level=log_level,
        )
