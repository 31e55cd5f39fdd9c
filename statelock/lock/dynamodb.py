"""
DynamoDB-backed lock coordinator.

Items live in a table whose hash key is the string attribute `LockID`, the
same layout Terraform's S3 backend expects, so a table provisioned for one can
serve the other.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from ..errors import LockBusyError, LockNotFoundError, WrongOwnerError
from ..models import LockRecord, LockToken
from .base import LockCoordinator

logger = logging.getLogger(__name__)

HASH_KEY = "LockID"
CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


def _error_code(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Code", "")


class DynamoDBLockCoordinator(LockCoordinator):
    """
    Lock records stored as DynamoDB items.

    - `acquire` is a conditional PutItem on `attribute_not_exists(LockID)`
    - `release` is a conditional DeleteItem on the stored token
    - `read` uses strongly consistent GetItem
    """

    def __init__(self, table_name: str, *, dynamodb: Optional[Any] = None, region_name: Optional[str] = None):
        self.table_name = table_name
        self._ddb = dynamodb or boto3.client("dynamodb", region_name=region_name)

    # -------- Item conversion --------
    @staticmethod
    def _to_item(record: LockRecord) -> Dict[str, Dict[str, str]]:
        return {
            HASH_KEY: {"S": record.lock_id},
            "Holder": {"S": record.holder},
            "Token": {"S": record.token},
            "Operation": {"S": record.operation},
            "Created": {"S": record.created.isoformat()},
        }

    @staticmethod
    def _from_item(item: Dict[str, Dict[str, str]]) -> LockRecord:
        return LockRecord(
            lock_id=item[HASH_KEY]["S"],
            holder=item.get("Holder", {}).get("S", "unknown"),
            token=item.get("Token", {}).get("S", ""),
            operation=item.get("Operation", {}).get("S", ""),
            created=datetime.fromisoformat(item["Created"]["S"]) if "Created" in item else datetime.min,
        )

    # -------- Core operations --------
    def acquire(self, key: str, holder_id: str, operation: str = "") -> LockToken:
        record = LockRecord(lock_id=key, holder=holder_id, operation=operation)
        try:
            self._ddb.put_item(
                TableName=self.table_name,
                Item=self._to_item(record),
                ConditionExpression="attribute_not_exists(#id)",
                ExpressionAttributeNames={"#id": HASH_KEY},
            )
        except ClientError as e:
            if _error_code(e) != CONDITIONAL_CHECK_FAILED:
                raise
            existing = self.read(key)
            if existing is not None and existing.holder == holder_id:
                logger.debug(f"Reentrant acquire of '{key}' by {holder_id}")
                return existing.to_token()
            raise LockBusyError(key, existing) from e

        logger.debug(f"Acquired DynamoDB lock '{key}' in {self.table_name}")
        return record.to_token()

    def release(self, key: str, token: LockToken) -> None:
        try:
            self._ddb.delete_item(
                TableName=self.table_name,
                Key={HASH_KEY: {"S": key}},
                ConditionExpression="#token = :token",
                ExpressionAttributeNames={"#token": "Token"},
                ExpressionAttributeValues={":token": {"S": token.token}},
            )
        except ClientError as e:
            if _error_code(e) != CONDITIONAL_CHECK_FAILED:
                raise
            existing = self.read(key)
            if existing is None:
                raise LockNotFoundError(key) from e
            logger.error(f"Refusing to release '{key}': held by {existing.holder}, not {token.holder}")
            raise WrongOwnerError(key, token.token, existing.holder) from e

        logger.debug(f"Released DynamoDB lock '{key}'")

    def read(self, key: str) -> Optional[LockRecord]:
        resp = self._ddb.get_item(
            TableName=self.table_name,
            Key={HASH_KEY: {"S": key}},
            ConsistentRead=True,
        )
        item = resp.get("Item")
        return self._from_item(item) if item else None

    def _delete(self, key: str) -> None:
        self._ddb.delete_item(TableName=self.table_name, Key={HASH_KEY: {"S": key}})

    def check(self) -> None:
        """Verify the lock table exists and is reachable."""
        self._ddb.describe_table(TableName=self.table_name)
