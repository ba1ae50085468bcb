"""ACME provider directory URLs."""

from dataclasses import dataclass
from enum import StrEnum

from .errors import ConfigurationError


class AcmeProvider(StrEnum):
    """ACME certificate authority selector stored in the domain configuration."""

    JPRS = "jprs"
    LETSENCRYPT = "letsencrypt"
    CUSTOM = "custom"


@dataclass(frozen=True)
class AcmeProviderConfig:
    """Directory settings for a named ACME provider."""

    name: str
    server_url: str
    eab_required: bool


# JPRS issues EAB credentials out of band; they are consumed once by register mode.
JPRS_PROVIDER = AcmeProviderConfig(
    name="jprs",
    server_url="https://acme.amecert.jprs.jp/DV/getDirector",
    eab_required=False,
)

LETSENCRYPT_PRODUCTION = AcmeProviderConfig(
    name="letsencrypt",
    server_url="https://acme-v02.api.letsencrypt.org/directory",
    eab_required=False,
)

_NAMED_PROVIDERS = {
    AcmeProvider.JPRS: JPRS_PROVIDER,
    AcmeProvider.LETSENCRYPT: LETSENCRYPT_PRODUCTION,
}


def get_provider_config(
    provider: AcmeProvider, custom_server_url: str | None = None
) -> AcmeProviderConfig:
    """Return provider settings.

    Args:
        provider: Provider selector
        custom_server_url: Directory URL, required for ``custom``

    Returns:
        AcmeProviderConfig for the provider

    Raises:
        ConfigurationError: If ``custom`` has no URL
    """
    if provider == AcmeProvider.CUSTOM:
        if not custom_server_url:
            raise ConfigurationError("Custom ACME provider requires acmeServerUrl")
        return AcmeProviderConfig(name="custom", server_url=custom_server_url, eab_required=False)
    return _NAMED_PROVIDERS[provider]


def get_server_url(provider: AcmeProvider, custom_server_url: str | None = None) -> str:
    """Return the ACME directory URL for a provider."""
    return get_provider_config(provider, custom_server_url).server_url
