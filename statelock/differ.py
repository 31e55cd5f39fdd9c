"""
Differ module for computing the plan between desired and recorded state.

Compares the resources declared in configuration against the State Document
and produces the ordered list of changes an apply has to make.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .models import ResourceDescriptor, ResourceSpec, StateDocument

logger = logging.getLogger(__name__)


class ChangeAction(Enum):
    """Enumeration of the changes an apply can make to a resource."""

    CREATE = "create"      # Resource needs to be created
    UPDATE = "update"      # Resource needs to be updated in place
    DELETE = "delete"      # Resource needs to be deleted
    NO_CHANGE = "no_change"  # No changes needed


@dataclass
class Change:
    """
    A single planned change.

    Attributes:
        action: What to do with the resource
        address: Resource address (`type.name`)
        before: Descriptor recorded in state (None for CREATE)
        after: Desired spec from configuration (None for DELETE)
        changed_attributes: Attribute names whose values differ (UPDATE only)
    """

    action: ChangeAction
    address: str
    before: Optional[ResourceDescriptor] = None
    after: Optional[ResourceSpec] = None
    changed_attributes: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate change consistency."""
        if self.action == ChangeAction.CREATE and self.before is not None:
            raise ValueError("CREATE change cannot have a recorded resource")

        if self.action == ChangeAction.DELETE and self.after is not None:
            raise ValueError("DELETE change cannot have a desired spec")

        if self.action == ChangeAction.UPDATE and (self.before is None or self.after is None):
            raise ValueError("UPDATE change must have both recorded and desired values")

    @property
    def resource_type(self) -> str:
        return self.address.split(".", 1)[0]

    def is_significant(self) -> bool:
        return self.action != ChangeAction.NO_CHANGE

    def get_summary(self) -> str:
        """
        Get a human-readable summary of this change.

        Returns:
            str: Summary string describing the change
        """
        if self.action == ChangeAction.CREATE:
            return f"{self.address} will be created"
        elif self.action == ChangeAction.DELETE:
            return f"{self.address} will be destroyed"
        elif self.action == ChangeAction.UPDATE:
            fields = ", ".join(self.changed_attributes)
            return f"{self.address} will be updated in-place ({fields})"
        return f"{self.address} is up to date"


@dataclass
class Plan:
    """Ordered changes for one apply or destroy."""

    changes: List[Change] = field(default_factory=list)
    destroy: bool = False

    @property
    def significant(self) -> List[Change]:
        return [c for c in self.changes if c.is_significant()]

    def is_empty(self) -> bool:
        return not self.significant

    def counts(self) -> Dict[str, int]:
        counts = {"create": 0, "update": 0, "delete": 0}
        for change in self.significant:
            counts[change.action.value] += 1
        return counts


def _changed_attributes(recorded: Dict[str, Any], desired: Dict[str, Any]) -> List[str]:
    # Only declared keys are compared; provider-computed attributes are ignored
    return [name for name, value in desired.items() if recorded.get(name) != value]


def compute_plan(state: StateDocument, desired: Sequence[ResourceSpec], destroy: bool = False) -> Plan:
    """
    Compare the recorded state against desired resources.

    Args:
        state: Current State Document
        desired: Resources declared in configuration, in declaration order
        destroy: Plan deletion of every recorded resource instead

    Returns:
        Plan with creates and updates in configuration order followed by
        deletes in reverse recorded order

    Raises:
        ValueError: If two desired resources share an address
    """
    seen = set()
    for spec in desired:
        if spec.address in seen:
            raise ValueError(f"Duplicate resource address in configuration: {spec.address}")
        seen.add(spec.address)

    changes: List[Change] = []

    if not destroy:
        for spec in desired:
            recorded = state.get(spec.address)
            if recorded is None:
                changes.append(Change(ChangeAction.CREATE, spec.address, after=spec))
                continue

            changed = _changed_attributes(recorded.attributes, spec.attributes)
            if changed:
                changes.append(Change(ChangeAction.UPDATE, spec.address, before=recorded, after=spec,
                                      changed_attributes=changed))
            else:
                changes.append(Change(ChangeAction.NO_CHANGE, spec.address, before=recorded, after=spec))

    wanted = set() if destroy else seen
    for address in reversed(list(state.resources)):
        if address not in wanted:
            changes.append(Change(ChangeAction.DELETE, address, before=state.resources[address]))

    plan = Plan(changes=changes, destroy=destroy)
    logger.info(f"Computed plan: {plan.counts()}")
    return plan
