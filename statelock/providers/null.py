"""Provider for resources that exist only in state."""

import random
from typing import Any, Dict, Tuple

from ..models import ResourceDescriptor, ResourceSpec
from .base import Provider


class NullProvider(Provider):
    """Manages `null_resource`: no external calls, ids are random integers."""

    resource_types = ("null_resource",)

    def create(self, spec: ResourceSpec) -> Tuple[str, Dict[str, Any]]:
        return str(random.getrandbits(63)), dict(spec.attributes)

    def update(self, descriptor: ResourceDescriptor, spec: ResourceSpec) -> Dict[str, Any]:
        return {**descriptor.attributes, **spec.attributes}

    def delete(self, descriptor: ResourceDescriptor) -> None:
        return None
