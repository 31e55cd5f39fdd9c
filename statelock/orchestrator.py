"""
Statelock Orchestrator - the locked read-modify-write cycle.

Apply Protocol: acquire lock → read state → plan → apply changes → write state → release lock
Plan: read state (no lock) → plan
Output: read state (no lock) → outputs

Known gap: if the process dies after provider changes succeed but before the
state write in step 5, those resources exist but are untracked. Nothing here
attempts to recover them.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .backend import Backend
from .config import resolve_output
from .differ import Change, ChangeAction, Plan, compute_plan
from .errors import ApplyCancelledError, ApplyError, OutputNotFoundError, StateNotFoundError
from .models import LockRecord, LockToken, OutputSpec, ResourceDescriptor, ResourceSpec, StateDocument
from .providers import ProviderRegistry
from .retry import acquire_with_backoff
from .settings import StatelockSettings, get_settings
from .store import StateVersion

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of a successful apply or destroy."""

    plan: Plan
    succeeded: List[str] = field(default_factory=list)
    version_tag: Optional[str] = None
    outputs: Dict[str, Any] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.succeeded)


class Orchestrator:
    """Main coordinator for state-safe plan, apply and destroy."""

    def __init__(
        self,
        backend: Backend,
        providers: ProviderRegistry,
        settings: Optional[StatelockSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize Orchestrator.

        Args:
            backend: State store and lock coordinator for the target key
            providers: Registry of providers for the configured resource types
            settings: Settings (holder id, lock retry policy); defaults to global settings
            sleep: Sleep function used between lock attempts
        """
        self.backend = backend
        self.providers = providers
        self.settings = settings or get_settings()
        self._sleep = sleep

    # =========================================================================
    # Lock scope
    # =========================================================================

    @contextmanager
    def locked(self, operation: str) -> Iterator[LockToken]:
        """
        Hold the state lock for the duration of the block.

        The lock is released on every exit path, including KeyboardInterrupt.
        A failed release while another exception is propagating is logged so
        it does not replace the original error.

        Each call acquires under its own holder identity, so two operations
        started with the same SL_HOLDER_ID still exclude each other.

        Raises:
            LockTimeoutError: If the lock stays busy through every retry
        """
        token = acquire_with_backoff(
            self.backend.locks,
            self.backend.lock_id,
            self._operation_holder(),
            operation=operation,
            max_attempts=self.settings.lock_max_attempts,
            initial_delay=self.settings.lock_initial_delay,
            max_delay=self.settings.lock_max_delay,
            sleep=self._sleep,
        )
        logger.info(f"Acquired state lock {token.token} for {operation}")
        try:
            yield token
        except BaseException:
            try:
                self.backend.locks.release(self.backend.lock_id, token)
            except Exception:
                logger.exception(
                    f"Failed to release state lock {token.token}; "
                    f"run 'statelock force-unlock' once no operation is running"
                )
            raise
        else:
            self.backend.locks.release(self.backend.lock_id, token)
        logger.info(f"Released state lock {token.token}")

    def _operation_holder(self) -> str:
        return f"{self.settings.holder_id}#{uuid.uuid4().hex[:8]}"

    # =========================================================================
    # Read-only operations
    # =========================================================================

    def _read_state(self) -> Tuple[StateDocument, Optional[str]]:
        """Read the current document; a missing document is an empty state."""
        try:
            return self.backend.store.read(self.backend.key)
        except StateNotFoundError:
            logger.info("No state document yet, starting from empty state")
            return StateDocument.empty(), None

    def plan(self, desired: Sequence[ResourceSpec], destroy: bool = False) -> Plan:
        """
        Dry-run diff. Holds no lock and never writes.

        Args:
            desired: Resources from configuration
            destroy: Plan deletion of every recorded resource

        Returns:
            Plan
        """
        state, _ = self._read_state()
        return compute_plan(state, desired, destroy=destroy)

    def output(self, name: Optional[str] = None) -> Any:
        """
        Query outputs of the last-written State Document.

        Returns:
            All outputs as a dict, or the single named value

        Raises:
            OutputNotFoundError: If `name` is not an output
        """
        state, _ = self._read_state()
        if name is None:
            return dict(state.outputs)
        if name not in state.outputs:
            raise OutputNotFoundError(name)
        return state.outputs[name]

    def state_list(self) -> List[str]:
        state, _ = self._read_state()
        return list(state.resources)

    def state_show(self, address: str) -> Optional[ResourceDescriptor]:
        state, _ = self._read_state()
        return state.get(address)

    def state_versions(self) -> List[StateVersion]:
        return self.backend.store.versions(self.backend.key)

    def lock_info(self) -> Optional[LockRecord]:
        return self.backend.locks.read(self.backend.lock_id)

    def force_unlock(self) -> Optional[LockRecord]:
        """Remove the lock record unconditionally. Bypasses mutual exclusion."""
        return self.backend.locks.force_unlock(self.backend.lock_id)

    # =========================================================================
    # Mutating operations
    # =========================================================================

    def apply(
        self,
        desired: Sequence[ResourceSpec],
        outputs: Sequence[OutputSpec] = (),
        approve: Optional[Callable[[Plan], bool]] = None,
    ) -> ApplyResult:
        """
        Run the full protocol to converge on `desired`.

        Args:
            desired: Resources from configuration
            outputs: Outputs to resolve and record after the changes
            approve: Called with the plan computed under the lock, before any
                change runs; returning False cancels the operation

        Returns:
            ApplyResult

        Raises:
            LockTimeoutError: If the lock could not be acquired
            StateConflictError: If the document changed despite the lock
            ApplyError: If a change failed; earlier changes are recorded
            ApplyCancelledError: If `approve` rejected the plan
        """
        with self.locked("apply"):
            state, version = self._read_state()
            plan = compute_plan(state, desired)
            self._approve(plan, approve)
            return self._execute(plan, state, version, outputs)

    def destroy(
        self,
        desired: Sequence[ResourceSpec] = (),
        approve: Optional[Callable[[Plan], bool]] = None,
    ) -> ApplyResult:
        """Run the protocol with a deletion-only plan."""
        with self.locked("destroy"):
            state, version = self._read_state()
            plan = compute_plan(state, desired, destroy=True)
            self._approve(plan, approve)
            return self._execute(plan, state, version, ())

    def _approve(self, plan: Plan, approve: Optional[Callable[[Plan], bool]]) -> None:
        if approve is None or approve(plan):
            return
        counts = plan.counts()
        logger.info("Plan rejected; releasing the lock without changes")
        raise ApplyCancelledError(
            f"{counts['create']} to add, {counts['update']} to change, {counts['delete']} to destroy"
        )

    def _execute(
        self,
        plan: Plan,
        state: StateDocument,
        version: Optional[str],
        outputs: Sequence[OutputSpec],
    ) -> ApplyResult:
        """Apply planned changes one by one, recording each as it completes."""
        succeeded: List[str] = []
        pending = list(plan.significant)
        failure: Optional[Exception] = None
        failed: List[str] = []

        try:
            while pending:
                change = pending[0]
                try:
                    self._apply_change(change, state)
                except Exception as e:
                    logger.error(f"{change.address}: {change.action.value} failed: {e}")
                    failure = e
                    failed.append(change.address)
                    pending.pop(0)
                    break
                succeeded.append(change.address)
                pending.pop(0)
                logger.info(f"{change.address}: {change.action.value} complete")
        finally:
            # Always persist what has been applied so far, including on interrupt
            version = self._persist(state, version, outputs, changed=bool(succeeded), destroy=plan.destroy)

        if failure is not None:
            raise ApplyError(
                succeeded, failed, failure, version_tag=version,
                skipped=[c.address for c in pending],
            ) from failure

        return ApplyResult(plan=plan, succeeded=succeeded, version_tag=version, outputs=dict(state.outputs))

    def _apply_change(self, change: Change, state: StateDocument) -> None:
        provider = self.providers.get(change.resource_type)

        if change.action == ChangeAction.CREATE:
            spec = change.after
            resource_id, attributes = provider.create(spec)
            state.record(ResourceDescriptor(type=spec.type, name=spec.name, id=resource_id, attributes=attributes))

        elif change.action == ChangeAction.UPDATE:
            attributes = provider.update(change.before, change.after)
            state.record(change.before.model_copy(update={"attributes": attributes}))

        elif change.action == ChangeAction.DELETE:
            provider.delete(change.before)
            state.remove(change.address)

    def _persist(
        self,
        state: StateDocument,
        version: Optional[str],
        outputs: Sequence[OutputSpec],
        changed: bool,
        destroy: bool,
    ) -> Optional[str]:
        if destroy:
            new_outputs = {} if not state.resources else dict(state.outputs)
        else:
            new_outputs = {o.name: resolve_output(o.value, state) for o in outputs}

        if not changed and new_outputs == state.outputs:
            logger.info("No changes; state document left untouched")
            return version

        state.outputs = new_outputs
        state.serial += 1
        new_version = self.backend.store.write(self.backend.key, state, version)
        logger.info(f"Wrote state serial {state.serial} ({new_version})")
        return new_version
