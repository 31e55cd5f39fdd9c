"""
Statelock errors.

Every failure the backend protocol can surface derives from StatelockError so
the CLI can report it uniformly and exit non-zero.
"""

from typing import List, Optional


class StatelockError(Exception):
    """Base exception for all Statelock errors."""
    pass


class ConfigurationError(StatelockError):
    """Errors in configuration."""
    pass


class ParseError(ConfigurationError):
    """Raised when a configuration file cannot be parsed."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        self.message = message
        self.file_path = file_path

        error_msg = f"Parse error: {message}"
        if file_path:
            error_msg += f" in file '{file_path}'"

        super().__init__(error_msg)


# =============================================================================
# Lock errors
# =============================================================================

class LockError(StatelockError):
    """Base exception for lock coordination errors."""

    def __init__(self, message: str, lock_id: str):
        super().__init__(message)
        self.lock_id = lock_id


class LockBusyError(LockError):
    """The lock is held by another holder. Recoverable by retrying."""

    def __init__(self, lock_id: str, record=None):
        self.record = record
        holder = record.holder if record is not None else "unknown"
        super().__init__(f"State lock '{lock_id}' is held by {holder}", lock_id)


class LockTimeoutError(LockError):
    """Retries exhausted while waiting for a lock. No changes were committed."""

    def __init__(self, lock_id: str, attempts: int, record=None):
        self.attempts = attempts
        self.record = record
        message = f"Timed out acquiring state lock '{lock_id}' after {attempts} attempts"
        if record is not None:
            message += (
                f"\nLock info:\n  ID: {record.token}\n  Holder: {record.holder}"
                f"\n  Operation: {record.operation or '-'}\n  Created: {record.created.isoformat()}"
            )
        super().__init__(message, lock_id)


class WrongOwnerError(LockError):
    """Release attempted with a token that does not own the lock."""

    def __init__(self, lock_id: str, token: str, owner: Optional[str] = None):
        self.token = token
        self.owner = owner
        super().__init__(
            f"Lock '{lock_id}' is not owned by token {token}"
            + (f" (held by {owner})" if owner else ""),
            lock_id,
        )


class LockNotFoundError(LockError):
    """Release attempted on a lock that does not exist."""

    def __init__(self, lock_id: str):
        super().__init__(f"No lock record exists for '{lock_id}'", lock_id)


# =============================================================================
# State store errors
# =============================================================================

class StateError(StatelockError):
    """Base exception for state store errors."""
    pass


class StateNotFoundError(StateError):
    """No state document exists yet for the key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No state document found at '{key}'")


class OutputNotFoundError(StateError):
    """The requested output is not present in the state document."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Output '{name}' not found in state")


class StateConflictError(StateError):
    """The stored version changed between read and write.

    Indicates the lock was bypassed or a protocol bug; never resolved
    automatically.
    """

    def __init__(self, key: str, expected: Optional[str], actual: Optional[str] = None):
        self.key = key
        self.expected = expected
        self.actual = actual
        message = (
            f"State document '{key}' changed unexpectedly: expected version "
            f"{expected or '<none>'}"
        )
        if actual:
            message += f", found {actual}"
        message += ". Another process may have written state without holding the lock."
        super().__init__(message)


# =============================================================================
# Provider / apply errors
# =============================================================================

class ProviderError(StatelockError):
    """A provider API call failed."""

    def __init__(self, address: str, message: str):
        self.address = address
        super().__init__(f"{address}: {message}")


class ApplyError(StatelockError):
    """An apply finished partially. Succeeded changes were persisted."""

    def __init__(
        self,
        succeeded: List[str],
        failed: List[str],
        cause: Exception,
        version_tag: Optional[str] = None,
        skipped: Optional[List[str]] = None,
    ):
        self.succeeded = list(succeeded)
        self.failed = list(failed)
        self.skipped = list(skipped or [])
        self.cause = cause
        self.version_tag = version_tag
        super().__init__(
            f"Apply failed: {cause}. {len(self.succeeded)} change(s) succeeded and "
            f"were recorded in state; {len(self.failed)} failed. Re-run apply to "
            "complete the remaining changes."
        )


class ApplyCancelledError(StatelockError):
    """The plan computed under the lock was not approved. Nothing was changed."""

    def __init__(self, plan_summary: str = ""):
        message = "Apply cancelled; no changes were made"
        if plan_summary:
            message += f" ({plan_summary})"
        super().__init__(message)
