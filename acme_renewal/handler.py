"""Certificate renewal Lambda handler.

Three invocation modes selected by ``event["mode"]``:

- ``register``: create an ACME account with external account binding
- ``acquire-on-demand``: obtain one certificate from payload values
- ``renew``: renew every configured certificate that is due
"""

import os
from collections.abc import Mapping
from typing import Any

from acme_renewal.lib.config import RuntimeConfig
from acme_renewal.lib.events import parse_event
from acme_renewal.lib.logging_config import LOGGER, set_log_level
from acme_renewal.lib.orchestrator import RenewalOrchestrator
from acme_renewal.lib.types import LambdaContext, LambdaEvent, LambdaResponse

_SECRET_EVENT_KEYS = {"externalBindingKey", "externalBindingKeyID", "eabKid", "eabHmacKey"}


def _redact_event(event: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of the event safe to log."""
    return {key: "***" if key in _SECRET_EVENT_KEYS else value for key, value in event.items()}


def _build_orchestrator(config: RuntimeConfig) -> RenewalOrchestrator:
    """Build the orchestrator and its AWS clients (extracted for testing)."""
    return RenewalOrchestrator.from_config(config)


def handler(event: LambdaEvent, context: LambdaContext) -> LambdaResponse:
    """Route an invocation to its mode.

    Missing environment and malformed events raise before any external
    effect, so Lambda reports them as invocation errors.
    """
    config = RuntimeConfig.from_env(os.environ)
    set_log_level(config.log_level)

    if isinstance(event, Mapping):
        LOGGER.info("Received event: %s", _redact_event(event))
    request = parse_event(event)

    return _build_orchestrator(config).run(request)
