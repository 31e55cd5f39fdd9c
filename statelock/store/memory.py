"""In-memory versioned state store."""

import hashlib
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from ..errors import StateConflictError, StateNotFoundError
from ..models import StateDocument
from .base import StateStore, StateVersion


class MemoryStateStore(StateStore):
    """Keeps every written version of every key in a dict."""

    def __init__(self):
        self._objects: Dict[str, List[Tuple[str, bytes, datetime]]] = {}
        self._mutex = threading.Lock()

    def _current_tag(self, key: str) -> Optional[str]:
        history = self._objects.get(key)
        return history[-1][0] if history else None

    def read(self, key: str) -> Tuple[StateDocument, str]:
        with self._mutex:
            history = self._objects.get(key)
            if not history:
                raise StateNotFoundError(key)
            tag, body, _ = history[-1]
        return StateDocument.from_bytes(body), tag

    def write(self, key: str, document: StateDocument, expected_version: Optional[str]) -> str:
        body = document.to_bytes()
        with self._mutex:
            current = self._current_tag(key)
            if current != expected_version:
                raise StateConflictError(key, expected_version, current)
            history = self._objects.setdefault(key, [])
            tag = f"{len(history) + 1}-{hashlib.sha256(body).hexdigest()[:16]}"
            history.append((tag, body, datetime.now(timezone.utc)))
            return tag

    def versions(self, key: str) -> List[StateVersion]:
        with self._mutex:
            history = list(self._objects.get(key, []))
        return [
            StateVersion(version_id=tag, modified=modified, size=len(body), is_latest=i == len(history) - 1)
            for i, (tag, body, modified) in enumerate(history)
        ]
