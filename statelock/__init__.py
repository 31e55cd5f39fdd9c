"""
Statelock - infrastructure provisioning with locked remote state.

State documents live in a versioned store (S3) and every mutating operation
runs under a lock record (DynamoDB) for the state key:

- Acquire the lock, retrying with bounded backoff while it is busy
- Read the state document and its version tag
- Apply planned changes, recording each as it completes
- Write the document back conditionally on the version read
- Release the lock on every exit path
"""

from .backend import Backend, create_backend
from .orchestrator import ApplyResult, Orchestrator
from .settings import StatelockSettings, get_settings, reload_settings

__version__ = "0.1.0"
__all__ = [
    "Backend",
    "create_backend",
    "ApplyResult",
    "Orchestrator",
    "StatelockSettings",
    "get_settings",
    "reload_settings",
]
