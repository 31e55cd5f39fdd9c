"""Base state store accessor for Statelock."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from ..models import StateDocument


@dataclass
class StateVersion:
    """A retained version of a state document."""

    version_id: str
    modified: datetime
    size: int = 0
    is_latest: bool = False


class StateStore(ABC):
    """
    Durable, versioned read/write of State Documents.

    Writes are conditional on the caller's expected version tag (optimistic
    concurrency on top of the lock). A `None` expectation means the document
    must not exist yet.
    """

    @abstractmethod
    def read(self, key: str) -> Tuple[StateDocument, str]:
        """Return the current document and its opaque version tag.

        Raises:
            StateNotFoundError: If no document exists for `key`
        """

    @abstractmethod
    def write(self, key: str, document: StateDocument, expected_version: Optional[str]) -> str:
        """Persist `document` if the stored version still matches.

        Returns:
            The new version tag

        Raises:
            StateConflictError: If the stored version differs from `expected_version`
        """

    @abstractmethod
    def versions(self, key: str) -> List[StateVersion]:
        """Return retained versions, oldest first."""
