"""
Centralized Pydantic models for Statelock.

This module contains the persisted and configuration data models:
- Resource descriptors and the State Document stored in the backend
- Lock records and the tokens handed to lock holders
- Desired resource specs and backend configuration loaded from HCL
"""

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


STATE_FORMAT_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Desired configuration
# =============================================================================

class ResourceSpec(BaseModel):
    """Desired resource as declared in a configuration file."""
    type: str
    name: str
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"


class OutputSpec(BaseModel):
    """Output declared in configuration; value is a literal or a reference."""
    name: str
    value: Any = None
    description: Optional[str] = None
    sensitive: bool = False


class BackendType(str, Enum):
    """Supported backend kinds."""
    S3 = "s3"
    LOCAL = "local"


class BackendConfig(BaseModel):
    """
    Backend parameters: {bucket, key, region, lock_table, encrypt}.

    State is written with server-side encryption unless `encrypt` is
    explicitly disabled.

    For the local backend only `path` is used.
    """
    type: BackendType = BackendType.S3
    bucket: Optional[str] = None
    key: Optional[str] = None
    region: Optional[str] = None
    lock_table: Optional[str] = None
    encrypt: bool = True
    path: Optional[str] = None

    @field_validator("key")
    @classmethod
    def validate_key(cls, v):
        if v is not None and (not v or v.endswith("/")):
            raise ValueError("Backend key must name an object, not a prefix")
        return v

    @property
    def lock_id(self) -> str:
        """Lock identifier, equal to the state document's key path."""
        if self.type == BackendType.S3:
            return f"{self.bucket}/{self.key}"
        return self.path or "terraform.tfstate"


# =============================================================================
# State Document
# =============================================================================

class ResourceDescriptor(BaseModel):
    """A managed resource recorded in the State Document."""
    type: str
    name: str
    id: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"


class StateDocument(BaseModel):
    """
    Serialized record of all managed resources and their attributes.

    `serial` increases by one on every persisted write; `lineage` is fixed when
    the document is first created and identifies its history.
    """
    version: int = STATE_FORMAT_VERSION
    serial: int = 0
    lineage: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resources: Dict[str, ResourceDescriptor] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def empty(cls) -> "StateDocument":
        """Convenience constructor for a fresh, empty state."""
        return cls()

    def get(self, address: str) -> Optional[ResourceDescriptor]:
        return self.resources.get(address)

    def record(self, descriptor: ResourceDescriptor) -> None:
        """
        Add or update a resource descriptor.

        Raises:
            ValueError: If the descriptor would change an already assigned id
        """
        existing = self.resources.get(descriptor.address)
        if existing is not None and existing.id and descriptor.id != existing.id:
            raise ValueError(
                f"Resource {descriptor.address} already has id {existing.id}; "
                f"refusing to replace it with {descriptor.id}"
            )
        self.resources[descriptor.address] = descriptor

    def remove(self, address: str) -> Optional[ResourceDescriptor]:
        return self.resources.pop(address, None)

    def to_bytes(self) -> bytes:
        # Deterministic JSON: stable key order
        return json.dumps(
            self.model_dump(mode="json"), indent=2, sort_keys=True
        ).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "StateDocument":
        return cls.model_validate(json.loads(data.decode("utf-8")))


# =============================================================================
# Lock models
# =============================================================================

class LockToken(BaseModel):
    """Proof of lock ownership returned by acquire and required by release."""
    model_config = ConfigDict(frozen=True)

    lock_id: str
    holder: str
    token: str


class LockRecord(BaseModel):
    """Lock information stored alongside the lock id."""
    lock_id: str
    holder: str
    token: str = Field(default_factory=lambda: str(uuid.uuid4()))
    operation: str = ""
    created: datetime = Field(default_factory=_utcnow)

    def to_token(self) -> LockToken:
        return LockToken(lock_id=self.lock_id, holder=self.holder, token=self.token)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), sort_keys=True)

    @classmethod
    def from_json(cls, json_str: str) -> "LockRecord":
        return cls.model_validate(json.loads(json_str))


__all__ = [
    "STATE_FORMAT_VERSION",
    "ResourceSpec", "OutputSpec", "BackendType", "BackendConfig",
    "ResourceDescriptor", "StateDocument",
    "LockToken", "LockRecord",
]
