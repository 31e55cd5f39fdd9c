"""
Local filesystem state store.

The current document is a JSON file; each overwritten version is moved to a
`backups/` directory beside it before the new one is renamed into place.
"""

import hashlib
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import StateConflictError, StateNotFoundError
from ..models import StateDocument
from .base import StateStore, StateVersion

logger = logging.getLogger(__name__)


def _tag(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


class LocalStateStore(StateStore):
    """State documents stored as files under `base_dir`, keyed by relative path."""

    def __init__(self, base_dir: Path, backup_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir)
        self.backup_dir = Path(backup_dir) if backup_dir else self.base_dir / "backups"

    def _path(self, key: str) -> Path:
        return self.base_dir / key

    def _backup_prefix(self, key: str) -> str:
        return key.replace("/", "_")

    def read(self, key: str) -> Tuple[StateDocument, str]:
        path = self._path(key)
        try:
            body = path.read_bytes()
        except FileNotFoundError:
            raise StateNotFoundError(key)
        return StateDocument.from_bytes(body), _tag(body)

    def write(self, key: str, document: StateDocument, expected_version: Optional[str]) -> str:
        path = self._path(key)
        try:
            current_body = path.read_bytes()
        except FileNotFoundError:
            current_body = None

        current = _tag(current_body) if current_body is not None else None
        if current != expected_version:
            raise StateConflictError(key, expected_version, current)

        path.parent.mkdir(parents=True, exist_ok=True)
        if current_body is not None:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            backup = self.backup_dir / f"{self._backup_prefix(key)}.{time.time_ns()}.backup"
            backup.write_bytes(current_body)
            logger.debug(f"Backed up previous state to {backup}")

        body = document.to_bytes()
        # Write to temporary file first, then rename (atomic operation)
        temp_file = path.with_suffix(path.suffix + ".tmp")
        temp_file.write_bytes(body)
        temp_file.replace(path)
        logger.debug(f"Saved state to {path}")
        return _tag(body)

    def versions(self, key: str) -> List[StateVersion]:
        result = []
        if self.backup_dir.exists():
            for backup in sorted(self.backup_dir.glob(f"{self._backup_prefix(key)}.*.backup")):
                stat = backup.stat()
                result.append(StateVersion(
                    version_id=_tag(backup.read_bytes()),
                    modified=datetime.fromtimestamp(stat.st_mtime, timezone.utc),
                    size=stat.st_size,
                ))
        path = self._path(key)
        if path.exists():
            body = path.read_bytes()
            result.append(StateVersion(
                version_id=_tag(body),
                modified=datetime.fromtimestamp(path.stat().st_mtime, timezone.utc),
                size=len(body),
                is_latest=True,
            ))
        return result
