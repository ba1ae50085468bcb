"""Type definitions for the renewal Lambda event and response."""

from typing import Any, Literal, NotRequired, TypedDict


class RegisterEvent(TypedDict):
    """Account registration with external account binding."""

    mode: Literal["register"]
    email: str
    server: str
    externalBindingKeyID: str
    externalBindingKey: str


class AcquireEvent(TypedDict):
    """On-demand certificate acquisition (``certonly`` is an alias mode)."""

    mode: Literal["acquire-on-demand", "certonly"]
    domains: list[str]
    email: str
    server: str
    dnsZoneID: str
    existingHandle: NotRequired[str | None]
    keyAlgorithm: NotRequired[Literal["rsa", "ecdsa"]]
    rsaKeySize: NotRequired[Literal[2048, 4096]]
    forceRenewal: NotRequired[bool]


class RenewEvent(TypedDict):
    """Scheduled renewal pass over the domain configuration."""

    mode: Literal["renew"]
    certificateIds: NotRequired[list[str]]
    dryRun: NotRequired[bool]


LambdaEvent = RegisterEvent | AcquireEvent | RenewEvent


class ResponseBody(TypedDict):
    """Response body shared by every mode."""

    message: str
    results: list[dict[str, Any]]
    totalProcessed: int
    totalSuccess: int
    totalFailed: int
    totalSkipped: int


class LambdaResponse(TypedDict):
    """Lambda response."""

    statusCode: int
    body: ResponseBody


class LambdaContext:
    """AWS Lambda context object stub for typing."""

    function_name: str
    memory_limit_in_mb: int
    invoked_function_arn: str
    aws_request_id: str

    def get_remaining_time_in_millis(self) -> int: ...
