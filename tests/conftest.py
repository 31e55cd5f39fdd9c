"""
Pytest configuration and fixtures for Statelock tests.

The fake AWS clients mimic the boto3 call shapes and ClientError responses
used by the adapters, so no network access is needed.
"""

import hashlib
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from statelock.backend import Backend
from statelock.errors import ProviderError
from statelock.lock import MemoryLockCoordinator
from statelock.providers import NullProvider, Provider, ProviderRegistry
from statelock.settings import StatelockSettings
from statelock.store import MemoryStateStore


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class _FakeBody:
    def __init__(self, data: bytes) -> None:
        self._data = data

    def read(self) -> bytes:
        return self._data


class _FakePaginator:
    def __init__(self, s3: "FakeS3") -> None:
        self._s3 = s3

    def paginate(self, *, Bucket: str, Prefix: str):
        yield self._s3.list_object_versions(Bucket=Bucket, Prefix=Prefix)


class FakeS3:
    """Versioned bucket store honouring IfMatch / IfNoneMatch on put_object."""

    def __init__(self, buckets=("state-bucket",)) -> None:
        self.buckets = set(buckets)
        self.versions = {}  # (bucket, key) -> list of {Body, ETag, VersionId, LastModified}
        self.put_calls = []
        self.calls = []
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def _current(self, bucket, key):
        history = self.versions.get((bucket, key))
        return history[-1] if history else None

    def get_object(self, *, Bucket: str, Key: str):
        item = self._current(Bucket, Key)
        if not item:
            raise _client_error("NoSuchKey", "GetObject")
        return {"Body": _FakeBody(item["Body"]), "ETag": item["ETag"], "VersionId": item["VersionId"]}

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, ContentType: str = "",
                   IfMatch=None, IfNoneMatch=None, ServerSideEncryption=None):
        self.put_calls.append({"Key": Key, "IfMatch": IfMatch, "IfNoneMatch": IfNoneMatch,
                               "ServerSideEncryption": ServerSideEncryption})
        current = self._current(Bucket, Key)
        if IfNoneMatch == "*" and current is not None:
            raise _client_error("PreconditionFailed", "PutObject")
        if IfMatch is not None:
            if current is None:
                raise _client_error("NoSuchKey", "PutObject")
            if current["ETag"] != IfMatch:
                raise _client_error("PreconditionFailed", "PutObject")

        history = self.versions.setdefault((Bucket, Key), [])
        self._clock += timedelta(seconds=1)
        etag = f'"{hashlib.md5(Body).hexdigest()}-{len(history) + 1}"'
        history.append({
            "Body": Body,
            "ETag": etag,
            "VersionId": f"v{len(history) + 1}",
            "LastModified": self._clock,
        })
        return {"ETag": etag, "VersionId": f"v{len(history)}"}

    def list_object_versions(self, *, Bucket: str, Prefix: str):
        versions = []
        for (bucket, key), history in self.versions.items():
            if bucket != Bucket or not key.startswith(Prefix):
                continue
            for i, item in enumerate(reversed(history)):
                versions.append({
                    "Key": key,
                    "VersionId": item["VersionId"],
                    "LastModified": item["LastModified"],
                    "Size": len(item["Body"]),
                    "IsLatest": i == 0,
                })
        return {"Versions": versions}

    def get_paginator(self, name: str):
        assert name == "list_object_versions"
        return _FakePaginator(self)

    def head_bucket(self, *, Bucket: str):
        self.calls.append(("head_bucket", Bucket))
        if Bucket not in self.buckets:
            raise _client_error("404", "HeadBucket")
        return {}

    def create_bucket(self, *, Bucket: str, CreateBucketConfiguration=None):
        self.calls.append(("create_bucket", Bucket, CreateBucketConfiguration))
        self.buckets.add(Bucket)
        return {}

    def put_bucket_versioning(self, **kwargs):
        self.calls.append(("put_bucket_versioning", kwargs))

    def put_bucket_encryption(self, **kwargs):
        self.calls.append(("put_bucket_encryption", kwargs))

    def put_public_access_block(self, **kwargs):
        self.calls.append(("put_public_access_block", kwargs))


class _FakeWaiter:
    def wait(self, **kwargs):
        return None


class FakeDynamoDB:
    """Single-table DynamoDB honouring the lock coordinator's condition expressions."""

    def __init__(self, tables=("state-locks",)) -> None:
        self.tables = set(tables)
        self.items = {}
        self.calls = []
        self._mutex = threading.Lock()

    def put_item(self, *, TableName, Item, ConditionExpression=None, ExpressionAttributeNames=None):
        with self._mutex:
            key = Item["LockID"]["S"]
            if ConditionExpression and key in self.items:
                raise _client_error("ConditionalCheckFailedException", "PutItem")
            self.items[key] = dict(Item)
        return {}

    def delete_item(self, *, TableName, Key, ConditionExpression=None,
                    ExpressionAttributeNames=None, ExpressionAttributeValues=None):
        with self._mutex:
            key = Key["LockID"]["S"]
            if ConditionExpression:
                item = self.items.get(key)
                expected = ExpressionAttributeValues[":token"]["S"]
                if item is None or item["Token"]["S"] != expected:
                    raise _client_error("ConditionalCheckFailedException", "DeleteItem")
            self.items.pop(key, None)
        return {}

    def get_item(self, *, TableName, Key, ConsistentRead=False):
        with self._mutex:
            item = self.items.get(Key["LockID"]["S"])
        return {"Item": dict(item)} if item else {}

    def describe_table(self, *, TableName):
        self.calls.append(("describe_table", TableName))
        if TableName not in self.tables:
            raise _client_error("ResourceNotFoundException", "DescribeTable")
        return {"Table": {"TableName": TableName}}

    def create_table(self, **kwargs):
        self.calls.append(("create_table", kwargs))
        self.tables.add(kwargs["TableName"])
        return {}

    def get_waiter(self, name):
        return _FakeWaiter()


class RecordingProvider(Provider):
    """Provider for `test_resource` that records calls and fails on demand."""

    resource_types = ("test_resource",)

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []
        self._next_id = 0

    def _check(self, address):
        if address in self.fail_on:
            raise ProviderError(address, "simulated API failure")

    def create(self, spec):
        self.calls.append(("create", spec.address))
        self._check(spec.address)
        self._next_id += 1
        return f"id-{self._next_id}", dict(spec.attributes)

    def update(self, descriptor, spec):
        self.calls.append(("update", spec.address))
        self._check(spec.address)
        return {**descriptor.attributes, **spec.attributes}

    def delete(self, descriptor):
        self.calls.append(("delete", descriptor.address))
        self._check(descriptor.address)


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def fake_s3():
    return FakeS3()


@pytest.fixture
def fake_dynamodb():
    return FakeDynamoDB()


@pytest.fixture
def settings():
    """Settings with a fixed holder and no real waiting between lock attempts."""
    return StatelockSettings(
        _env_file=None,
        holder_id="tester",
        lock_max_attempts=3,
        lock_initial_delay=0.5,
        lock_max_delay=2.0,
    )


@pytest.fixture
def memory_backend():
    return Backend(
        store=MemoryStateStore(),
        locks=MemoryLockCoordinator(),
        key="envA/terraform.tfstate",
        lock_id="state-bucket/envA/terraform.tfstate",
        description="memory",
    )


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def registry(provider):
    registry = ProviderRegistry()
    registry.register(NullProvider())
    registry.register(provider)
    return registry
