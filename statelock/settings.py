"""
Statelock Settings - Configuration management using Pydantic Settings.

Loads configuration from environment variables and .env files.
"""

import getpass
import socket
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_holder() -> str:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


class StatelockSettings(BaseSettings):
    """
    Statelock configuration settings.

    Settings are loaded from:
    1. Environment variables (highest priority)
    2. .env file in current directory
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="SL_",  # All Statelock env vars must start with SL_
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR) (env: SL_LOG_LEVEL)",
    )

    # Lock Configuration
    holder_id: str = Field(
        default_factory=_default_holder,
        description="Identity recorded in lock records (env: SL_HOLDER_ID)",
    )

    lock_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts to acquire a busy state lock before giving up (env: SL_LOCK_MAX_ATTEMPTS)",
    )

    lock_initial_delay: float = Field(
        default=1.0,
        ge=0,
        description="First backoff delay in seconds (env: SL_LOCK_INITIAL_DELAY)",
    )

    lock_max_delay: float = Field(
        default=30.0,
        ge=0,
        description="Upper bound for a single backoff delay in seconds (env: SL_LOCK_MAX_DELAY)",
    )

    # Project Configuration
    config_file: Path = Field(
        default=Path("main.tf"),
        description="HCL configuration file to load (env: SL_CONFIG_FILE)",
    )

    local_state_dir: Path = Field(
        default=Path(".statelock"),
        description="Directory for the local backend's state and locks (env: SL_LOCAL_STATE_DIR)",
    )

    # Backend overrides (take precedence over the backend block in configuration)
    backend_bucket: str | None = Field(default=None, description="env: SL_BACKEND_BUCKET")
    backend_key: str | None = Field(default=None, description="env: SL_BACKEND_KEY")
    backend_region: str | None = Field(default=None, description="env: SL_BACKEND_REGION")
    backend_lock_table: str | None = Field(default=None, description="env: SL_BACKEND_LOCK_TABLE")
    backend_encrypt: bool | None = Field(default=None, description="env: SL_BACKEND_ENCRYPT")


# Global settings instance
_settings: StatelockSettings | None = None


def get_settings() -> StatelockSettings:
    """
    Get the global settings instance.

    Creates the settings instance on first call, then returns cached instance.

    Returns:
        StatelockSettings instance
    """
    global _settings
    if _settings is None:
        _settings = StatelockSettings()
    return _settings


def reload_settings() -> StatelockSettings:
    """
    Reload settings from environment/files.

    Useful for testing or when .env file changes.

    Returns:
        Fresh StatelockSettings instance
    """
    global _settings
    _settings = StatelockSettings()
    return _settings
