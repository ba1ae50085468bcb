"""Exception taxonomy for certificate renewal operations."""


class AcmeRenewalError(Exception):
    """Base class for all renewal orchestration errors."""


class PreconditionError(AcmeRenewalError):
    """Required runtime configuration or request field is missing or invalid."""


class ConfigurationError(AcmeRenewalError):
    """Domain configuration document is malformed or violates an invariant."""


class IssuanceError(AcmeRenewalError):
    """Certbot exited non-zero (or timed out).

    Carries the captured output so callers can report it.
    """

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class OutputResolutionError(AcmeRenewalError):
    """Certbot succeeded but the expected certificate files cannot be located."""


class CertificateImportError(AcmeRenewalError):
    """ACM did not return a usable certificate ARN."""


class NotFoundError(AcmeRenewalError):
    """Lookup found nothing (S3 key or ACM certificate)."""
