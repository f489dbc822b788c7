from typing import TYPE_CHECKING

from ..core.exceptions import ProviderConfigError
from .base import Provider, ProviderName

if TYPE_CHECKING:
    from ..config import AppConfig


def create_provider(config: "AppConfig") -> Provider:
    """
    Build the provider selected by ``config.CLOUD_PROVIDER``.

    Cloud SDKs are imported only for the selected backend.

    Raises:
        ProviderConfigError: Unknown provider or incomplete settings.
    """
    name = config.CLOUD_PROVIDER
    if name == "aws":
        from .aws import AWSProvider

        return AWSProvider(region=config.AWS_REGION, profile=config.AWS_PROFILE)
    if name == "gcp":
        from .gcp import GCPProvider

        return GCPProvider(config.GCP_PROJECT or "", config.GCP_LOCATION)
    if name == "sample":
        from .sample import SampleProvider

        return SampleProvider(region=config.AWS_REGION)
    raise ProviderConfigError(f"unsupported cloud provider: {name}")


__all__ = ["Provider", "ProviderName", "create_provider"]
