"""
Terraform-style output formatting for Statelock operations.

Plans use the familiar symbols:
- `+` for create operations
- `~` for update-in-place operations
- `-` for destroy operations
"""

import json
from typing import Any, Dict, List, Optional

from rich.text import Text

from .differ import Change, ChangeAction, Plan
from .errors import ApplyError
from .models import LockRecord, ResourceDescriptor
from .orchestrator import ApplyResult


class TerraformStyleFormatter:
    """Renders plans, apply results and diagnostics as rich Text."""

    def __init__(self):
        # Color scheme matching Terraform output
        self.colors = {
            'create': 'green',
            'update': 'yellow',
            'delete': 'red',
            'no_change': 'dim',
            'header': 'bold blue',
            'attribute': 'cyan',
            'comment': 'dim',
        }

        # Operation symbols
        self.symbols = {
            'create': '+',
            'update': '~',
            'delete': '-',
            'no_change': ' ',
        }

    def format_value(self, value: Any) -> str:
        if isinstance(value, str):
            return f'"{value}"'
        return json.dumps(value, sort_keys=True, default=str)

    def _format_change(self, change: Change) -> Text:
        action = change.action.value
        color = self.colors[action]
        symbol = self.symbols[action]
        resource_type, name = change.address.split(".", 1)

        output = Text()
        output.append(f"  # {change.get_summary()}\n", style=self.colors['comment'])
        output.append(f"  {symbol} resource \"{resource_type}\" \"{name}\" {{\n", style=color)

        if change.action == ChangeAction.CREATE:
            for key, value in change.after.attributes.items():
                output.append(f"      + {key} = {self.format_value(value)}\n", style=color)
        elif change.action == ChangeAction.UPDATE:
            output.append(f"        id = {self.format_value(change.before.id)}\n", style=self.colors['comment'])
            for key in change.changed_attributes:
                before = self.format_value(change.before.attributes.get(key))
                after = self.format_value(change.after.attributes.get(key))
                output.append(f"      ~ {key} = {before} -> {after}\n", style=color)
        elif change.action == ChangeAction.DELETE:
            output.append(f"      - id = {self.format_value(change.before.id)}\n", style=color)

        output.append("    }\n\n", style=color)
        return output

    def format_plan(self, plan: Plan) -> Text:
        """
        Format a plan showing what an apply would do.

        Args:
            plan: Plan computed by the differ

        Returns:
            Formatted plan output
        """
        output = Text()

        if plan.is_empty():
            output.append("No changes. Your infrastructure matches the configuration.\n", style=self.colors['create'])
            return output

        output.append("Statelock will perform the following actions:\n\n", style=self.colors['header'])
        for change in plan.significant:
            output.append_text(self._format_change(change))

        counts = plan.counts()
        output.append(
            f"Plan: {counts['create']} to add, {counts['update']} to change, {counts['delete']} to destroy.\n",
            style=self.colors['header'],
        )
        return output

    def format_apply(self, result: ApplyResult) -> Text:
        output = Text()
        counts = result.plan.counts()
        verb = "Destroy" if result.plan.destroy else "Apply"
        if result.plan.destroy:
            output.append(f"{verb} complete! Resources: {counts['delete']} destroyed.\n", style=self.colors['create'])
        else:
            output.append(
                f"{verb} complete! Resources: {counts['create']} added, {counts['update']} changed, "
                f"{counts['delete']} destroyed.\n",
                style=self.colors['create'],
            )
        if result.outputs:
            output.append("\nOutputs:\n\n", style=self.colors['header'])
            output.append_text(self.format_outputs(result.outputs))
        return output

    def format_apply_error(self, error: ApplyError) -> Text:
        """Report which resources were applied and which were not."""
        output = Text()
        output.append(f"Error: {error.cause}\n\n", style=f"bold {self.colors['delete']}")
        for address in error.succeeded:
            output.append(f"  ✓ {address}: applied and recorded in state\n", style=self.colors['create'])
        for address in error.failed:
            output.append(f"  ✗ {address}: failed\n", style=self.colors['delete'])
        for address in error.skipped:
            output.append(f"  ⋯ {address}: not attempted\n", style=self.colors['update'])
        output.append(
            "\nState was saved with the changes that succeeded. Fix the error and run apply again.\n",
            style=self.colors['comment'],
        )
        return output

    def format_outputs(self, outputs: Dict[str, Any], sensitive: Optional[List[str]] = None) -> Text:
        sensitive = sensitive or []
        output = Text()
        for name, value in outputs.items():
            shown = "<sensitive>" if name in sensitive else self.format_value(value)
            output.append(f"{name}", style=self.colors['attribute'])
            output.append(f" = {shown}\n")
        return output

    def format_resource(self, descriptor: ResourceDescriptor) -> Text:
        output = Text()
        output.append(f"# {descriptor.address}:\n", style=self.colors['comment'])
        output.append(f"resource \"{descriptor.type}\" \"{descriptor.name}\" {{\n")
        output.append(f"    id = {self.format_value(descriptor.id)}\n")
        for key, value in sorted(descriptor.attributes.items()):
            output.append(f"    {key}", style=self.colors['attribute'])
            output.append(f" = {self.format_value(value)}\n")
        output.append("}\n")
        return output

    def format_lock(self, record: Optional[LockRecord]) -> Text:
        output = Text()
        if record is None:
            output.append("No lock is currently held.\n", style=self.colors['create'])
            return output
        output.append("Lock Info:\n", style=self.colors['header'])
        output.append(f"  ID:        {record.token}\n")
        output.append(f"  Path:      {record.lock_id}\n")
        output.append(f"  Holder:    {record.holder}\n")
        output.append(f"  Operation: {record.operation or '-'}\n")
        output.append(f"  Created:   {record.created.isoformat()}\n")
        return output
