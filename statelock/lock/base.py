"""Base lock coordinator for Statelock."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..models import LockRecord, LockToken

logger = logging.getLogger(__name__)


class LockCoordinator(ABC):
    """Guarantees at most one concurrent mutating operation per state key.

    Implementations store at most one LockRecord per key and must make the
    insert in `acquire` and the delete in `release` atomic conditional
    operations against their substrate. Records never expire on their own;
    a crashed holder leaves an orphaned lock that only `force_unlock` clears.
    """

    @abstractmethod
    def acquire(self, key: str, holder_id: str, operation: str = "") -> LockToken:
        """Insert a lock record for `key` if none exists.

        If the existing record belongs to `holder_id` the existing token is
        returned (reentry).

        Raises:
            LockBusyError: If another holder owns the lock
        """

    @abstractmethod
    def release(self, key: str, token: LockToken) -> None:
        """Delete the lock record if `token` owns it.

        Raises:
            WrongOwnerError: If the record belongs to another token
            LockNotFoundError: If no record exists
        """

    @abstractmethod
    def read(self, key: str) -> Optional[LockRecord]:
        """Return the current lock record without side effects."""

    @abstractmethod
    def _delete(self, key: str) -> None:
        """Remove the record for `key` unconditionally."""

    def force_unlock(self, key: str) -> Optional[LockRecord]:
        """Remove the lock record for `key` regardless of holder.

        Returns:
            The record that was removed, or None if there was none
        """
        record = self.read(key)
        logger.warning(
            f"Force-unlocking '{key}' bypasses mutual exclusion"
            + (f" (was held by {record.holder}, token {record.token})" if record else " (no lock was held)")
        )
        self._delete(key)
        return record
