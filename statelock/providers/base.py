"""Provider interface and registry."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Tuple

from ..errors import ConfigurationError
from ..models import ResourceDescriptor, ResourceSpec

logger = logging.getLogger(__name__)


class Provider(ABC):
    """Translates resource changes into calls against an external API.

    Every method raises ProviderError when the external call fails.
    """

    #: Resource types this provider manages
    resource_types: Tuple[str, ...] = ()

    @abstractmethod
    def create(self, spec: ResourceSpec) -> Tuple[str, Dict[str, Any]]:
        """Create the resource and return its provider-assigned id and attributes."""

    @abstractmethod
    def update(self, descriptor: ResourceDescriptor, spec: ResourceSpec) -> Dict[str, Any]:
        """Update the resource in place and return its new attributes."""

    @abstractmethod
    def delete(self, descriptor: ResourceDescriptor) -> None:
        """Delete the resource."""


class ProviderRegistry:
    """Maps resource types to the provider that manages them."""

    def __init__(self):
        self._providers: Dict[str, Provider] = {}

    def register(self, provider: Provider) -> None:
        for resource_type in provider.resource_types:
            self._providers[resource_type] = provider
            logger.debug(f"Registered {type(provider).__name__} for {resource_type}")

    def get(self, resource_type: str) -> Provider:
        try:
            return self._providers[resource_type]
        except KeyError:
            raise ConfigurationError(f"No provider available for resource type '{resource_type}'")

    @property
    def resource_types(self) -> List[str]:
        return sorted(self._providers)
