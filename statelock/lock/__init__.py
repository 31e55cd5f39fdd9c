"""Lock coordinators guarding mutation of a state key."""

from .base import LockCoordinator
from .dynamodb import DynamoDBLockCoordinator
from .file import FileLockCoordinator
from .memory import MemoryLockCoordinator

__all__ = [
    "LockCoordinator",
    "DynamoDBLockCoordinator",
    "FileLockCoordinator",
    "MemoryLockCoordinator",
]
