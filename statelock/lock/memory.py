"""In-process lock coordinator."""

import logging
import threading
from typing import Dict, Optional

from ..errors import LockBusyError, LockNotFoundError, WrongOwnerError
from ..models import LockRecord, LockToken
from .base import LockCoordinator

logger = logging.getLogger(__name__)


class MemoryLockCoordinator(LockCoordinator):
    """Thread-safe lock table held in a dict.

    Useful for tests and for coordinating threads in a single process.
    """

    def __init__(self):
        self._records: Dict[str, LockRecord] = {}
        self._mutex = threading.Lock()

    def acquire(self, key: str, holder_id: str, operation: str = "") -> LockToken:
        with self._mutex:
            existing = self._records.get(key)
            if existing is not None:
                if existing.holder == holder_id:
                    logger.debug(f"Reentrant acquire of '{key}' by {holder_id}")
                    return existing.to_token()
                raise LockBusyError(key, existing)

            record = LockRecord(lock_id=key, holder=holder_id, operation=operation)
            self._records[key] = record
            logger.debug(f"Acquired lock '{key}' for {holder_id}")
            return record.to_token()

    def release(self, key: str, token: LockToken) -> None:
        with self._mutex:
            existing = self._records.get(key)
            if existing is None:
                raise LockNotFoundError(key)
            if existing.token != token.token:
                logger.error(f"Refusing to release '{key}': held by {existing.holder}, not {token.holder}")
                raise WrongOwnerError(key, token.token, existing.holder)
            del self._records[key]
            logger.debug(f"Released lock '{key}'")

    def read(self, key: str) -> Optional[LockRecord]:
        with self._mutex:
            record = self._records.get(key)
            return record.model_copy() if record else None

    def _delete(self, key: str) -> None:
        with self._mutex:
            self._records.pop(key, None)
