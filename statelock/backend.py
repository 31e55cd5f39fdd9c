"""
Backend construction.

A Backend pairs a state store with the lock coordinator guarding it for one
state key.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from .errors import ConfigurationError
from .lock import DynamoDBLockCoordinator, FileLockCoordinator, LockCoordinator
from .models import BackendConfig, BackendType
from .settings import StatelockSettings, get_settings
from .store import LocalStateStore, S3StateStore, StateStore

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_STATE = "terraform.tfstate"


@dataclass
class Backend:
    """The (state store, lock coordinator) pair used for one environment."""

    store: StateStore
    locks: LockCoordinator
    key: str
    lock_id: str
    description: str = ""

    def check(self) -> None:
        """
        Verify that the store and lock table are reachable. Performs no mutation.

        Raises:
            ConfigurationError: If either side cannot be reached
        """
        for component in (self.store, self.locks):
            check = getattr(component, "check", None)
            if check is None:
                continue
            try:
                check()
            except (ClientError, BotoCoreError) as e:
                raise ConfigurationError(f"Backend {self.description} is not reachable: {e}") from e


def apply_overrides(config: Optional[BackendConfig], settings: StatelockSettings) -> BackendConfig:
    """Merge SL_BACKEND_* settings over the configuration's backend block."""
    base = config.model_dump() if config else {"type": BackendType.LOCAL}
    overrides = {
        "bucket": settings.backend_bucket,
        "key": settings.backend_key,
        "region": settings.backend_region,
        "lock_table": settings.backend_lock_table,
        "encrypt": settings.backend_encrypt,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides.get("bucket"):
        overrides["type"] = BackendType.S3
    try:
        return BackendConfig.model_validate({**base, **overrides})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid backend settings: {e}") from e


def create_backend(config: Optional[BackendConfig], settings: Optional[StatelockSettings] = None) -> Backend:
    """
    Build the backend described by `config`.

    Args:
        config: Backend block from configuration; None selects the local backend
        settings: Settings providing overrides and the local state directory

    Returns:
        Backend

    Raises:
        ConfigurationError: If required backend parameters are missing
    """
    settings = settings or get_settings()
    config = apply_overrides(config, settings)

    if config.type == BackendType.S3:
        missing = [name for name in ("bucket", "key", "lock_table") if not getattr(config, name)]
        if missing:
            raise ConfigurationError(f"S3 backend is missing required settings: {', '.join(missing)}")
        if not config.encrypt:
            logger.warning(
                f"Encryption is disabled; state in s3://{config.bucket}/{config.key} relies on bucket defaults"
            )
        backend = Backend(
            store=S3StateStore(config.bucket, region_name=config.region, encrypt=config.encrypt),
            locks=DynamoDBLockCoordinator(config.lock_table, region_name=config.region),
            key=config.key,
            lock_id=config.lock_id,
            description=f"s3://{config.bucket}/{config.key} (lock table {config.lock_table})",
        )
    else:
        state_dir = Path(settings.local_state_dir)
        key = config.path or DEFAULT_LOCAL_STATE
        backend = Backend(
            store=LocalStateStore(state_dir),
            locks=FileLockCoordinator(state_dir / "locks"),
            key=key,
            lock_id=key,
            description=f"local {state_dir / key}",
        )

    logger.info(f"Using backend {backend.description}")
    return backend
