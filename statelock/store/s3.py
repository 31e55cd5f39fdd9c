from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

import boto3
from botocore.exceptions import ClientError

from ..errors import StateConflictError, StateNotFoundError
from ..models import StateDocument
from .base import StateStore, StateVersion

logger = logging.getLogger(__name__)

_NOT_FOUND = ("NoSuchKey", "404", "NotFound")
_PRECONDITION = ("PreconditionFailed", "412", "ConditionalRequestConflict", "409")


def _error_code(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Code", "")


class S3StateStore(StateStore):
    """
    S3-backed persistence for `StateDocument`.

    Usage
    - `read(key)` returns a `(document, etag)` pair and raises
      `StateNotFoundError` when the object does not exist.
    - `write(key, document, expected_version)` uses S3 conditional writes:
      `IfMatch=<etag>` when replacing, `IfNoneMatch="*"` for the first write,
      so the put succeeds only if the object is still the version the caller
      read.
    - When `encrypt` is set every put requests SSE-S3 (`AES256`); content is
      never written without it.
    - `versions(key)` lists object versions (the bucket should have
      versioning enabled so prior documents are retained for rollback).
    """

    def __init__(
        self,
        bucket: str,
        *,
        s3: Optional[Any] = None,
        region_name: Optional[str] = None,
        encrypt: bool = True,
    ) -> None:
        self.bucket = bucket
        self.encrypt = encrypt
        self._s3 = s3 or boto3.client("s3", region_name=region_name)

    # -------- Core operations --------
    def read(self, key: str) -> Tuple[StateDocument, str]:
        try:
            resp = self._s3.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND:
                raise StateNotFoundError(f"s3://{self.bucket}/{key}") from e
            raise

        body = resp["Body"].read()
        etag = resp["ETag"]
        try:
            document = StateDocument.from_bytes(body)
        except ValueError as ex:
            raise ValueError(f"s3://{self.bucket}/{key} does not contain a valid state document") from ex
        return document, etag

    def write(self, key: str, document: StateDocument, expected_version: Optional[str]) -> str:
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": document.to_bytes(),
            "ContentType": "application/json",
        }
        if expected_version is None:
            params["IfNoneMatch"] = "*"
        else:
            params["IfMatch"] = expected_version
        if self.encrypt:
            params["ServerSideEncryption"] = "AES256"

        try:
            resp = self._s3.put_object(**params)
        except ClientError as e:
            code = _error_code(e)
            # IfMatch against a deleted object reports NoSuchKey
            if code in _PRECONDITION or (expected_version is not None and code in _NOT_FOUND):
                raise StateConflictError(f"s3://{self.bucket}/{key}", expected_version) from e
            raise

        logger.debug(f"Wrote s3://{self.bucket}/{key} ({resp.get('ETag')})")
        return str(resp["ETag"])

    def versions(self, key: str) -> List[StateVersion]:
        result = []
        paginator = self._s3.get_paginator("list_object_versions")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=key):
            for v in page.get("Versions", []):
                if v["Key"] != key:
                    continue
                result.append(StateVersion(
                    version_id=v["VersionId"],
                    modified=v["LastModified"],
                    size=v.get("Size", 0),
                    is_latest=v.get("IsLatest", False),
                ))
        return sorted(result, key=lambda v: v.modified)

    def check(self) -> None:
        """Verify the bucket exists and is reachable."""
        self._s3.head_bucket(Bucket=self.bucket)
