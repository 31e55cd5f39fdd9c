"""Providers that turn planned changes into external API calls."""

from typing import Any, Dict, Optional

from .base import Provider, ProviderRegistry
from .ec2 import EC2Provider
from .null import NullProvider


def default_registry(provider_configs: Optional[Dict[str, Dict[str, Any]]] = None) -> ProviderRegistry:
    """
    Build the registry used by the CLI.

    Args:
        provider_configs: `provider "<name>" { ... }` blocks from configuration

    Returns:
        ProviderRegistry with the null provider and, when configured, AWS
    """
    provider_configs = provider_configs or {}
    registry = ProviderRegistry()
    registry.register(NullProvider())
    if "aws" in provider_configs:
        registry.register(EC2Provider(region_name=provider_configs["aws"].get("region")))
    return registry


__all__ = ["Provider", "ProviderRegistry", "EC2Provider", "NullProvider", "default_registry"]
