"""
Unit tests for Statelock models.

Tests the core Pydantic models and their validation logic.
"""

import pytest

from statelock.models import (
    BackendConfig, BackendType, LockRecord, ResourceDescriptor, ResourceSpec, StateDocument,
)


class TestStateDocument:
    """Test State Document behaviour."""

    def test_empty_document(self):
        doc = StateDocument.empty()
        assert doc.serial == 0
        assert doc.resources == {}
        assert doc.lineage

    def test_record_and_remove(self):
        doc = StateDocument.empty()
        doc.record(ResourceDescriptor(type="aws_instance", name="web", id="i-1"))
        assert doc.get("aws_instance.web").id == "i-1"

        removed = doc.remove("aws_instance.web")
        assert removed.id == "i-1"
        assert doc.get("aws_instance.web") is None

    def test_id_is_immutable_once_set(self):
        doc = StateDocument.empty()
        doc.record(ResourceDescriptor(type="aws_instance", name="web", id="i-1"))
        with pytest.raises(ValueError):
            doc.record(ResourceDescriptor(type="aws_instance", name="web", id="i-2"))

    def test_update_keeps_id(self):
        doc = StateDocument.empty()
        doc.record(ResourceDescriptor(type="aws_instance", name="web", id="i-1", attributes={"a": 1}))
        doc.record(ResourceDescriptor(type="aws_instance", name="web", id="i-1", attributes={"a": 2}))
        assert doc.get("aws_instance.web").attributes == {"a": 2}

    def test_serialization_is_deterministic(self):
        doc = StateDocument(lineage="fixed")
        doc.record(ResourceDescriptor(type="t", name="b", id="2", attributes={"z": 1, "a": 2}))
        assert doc.to_bytes() == StateDocument.from_bytes(doc.to_bytes()).to_bytes()
        assert b'"lineage": "fixed"' in doc.to_bytes()


class TestBackendConfig:

    def test_lock_id_is_state_key_path(self):
        config = BackendConfig(bucket="tf-state", key="env/prod.tfstate", region="us-east-1",
                               lock_table="locks", encrypt=True)
        assert config.lock_id == "tf-state/env/prod.tfstate"

    def test_local_lock_id(self):
        assert BackendConfig(type=BackendType.LOCAL).lock_id == "terraform.tfstate"

    def test_key_must_not_be_prefix(self):
        with pytest.raises(ValueError):
            BackendConfig(bucket="b", key="env/")


class TestLockRecord:

    def test_json_roundtrip_and_token(self):
        record = LockRecord(lock_id="b/k", holder="alice", operation="apply")
        restored = LockRecord.from_json(record.to_json())
        assert restored == record
        assert restored.to_token().token == record.token


def test_resource_spec_address():
    assert ResourceSpec(type="null_resource", name="x").address == "null_resource.x"
