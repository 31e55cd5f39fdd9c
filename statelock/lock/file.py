"""Lock coordinator backed by lock files on the local filesystem."""

import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from ..errors import LockBusyError, LockNotFoundError, WrongOwnerError
from ..models import LockRecord, LockToken
from .base import LockCoordinator

logger = logging.getLogger(__name__)


class FileLockCoordinator(LockCoordinator):
    """
    One JSON lock file per key.

    Creation uses O_CREAT | O_EXCL so two processes racing for the same key
    cannot both succeed. Release re-reads the file and compares tokens before
    unlinking it.
    """

    def __init__(self, lock_dir: Path):
        self.lock_dir = Path(lock_dir)

    def _path(self, key: str) -> Path:
        return self.lock_dir / f"{quote(key, safe='')}.lock"

    def acquire(self, key: str, holder_id: str, operation: str = "") -> LockToken:
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        record = LockRecord(lock_id=key, holder=holder_id, operation=operation)

        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            existing = self.read(key)
            if existing is not None and existing.holder == holder_id:
                logger.debug(f"Reentrant acquire of '{key}' by {holder_id}")
                return existing.to_token()
            raise LockBusyError(key, existing)

        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(record.to_json())
        logger.debug(f"Acquired lock file {path}")
        return record.to_token()

    def release(self, key: str, token: LockToken) -> None:
        existing = self.read(key)
        if existing is None:
            raise LockNotFoundError(key)
        if existing.token != token.token:
            logger.error(f"Refusing to release '{key}': held by {existing.holder}, not {token.holder}")
            raise WrongOwnerError(key, token.token, existing.holder)
        self._path(key).unlink(missing_ok=True)
        logger.debug(f"Released lock '{key}'")

    def read(self, key: str) -> Optional[LockRecord]:
        path = self._path(key)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        if not content:
            # Another process created the file and has not written it yet
            return LockRecord(lock_id=key, holder="unknown", token="")
        return LockRecord.from_json(content)

    def _delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
