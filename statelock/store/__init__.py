"""State store accessors for versioned State Documents."""

from .base import StateStore, StateVersion
from .local import LocalStateStore
from .memory import MemoryStateStore
from .s3 import S3StateStore

__all__ = [
    "StateStore",
    "StateVersion",
    "LocalStateStore",
    "MemoryStateStore",
    "S3StateStore",
]
