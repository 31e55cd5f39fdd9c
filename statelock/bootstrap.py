"""
Provisioning for the S3 state bucket and DynamoDB lock table.

Every step checks for the existing resource first, so running it twice is
harmless.
"""

import logging
from typing import Any, List, Optional

import boto3
from botocore.exceptions import ClientError

from .errors import ConfigurationError
from .lock.dynamodb import HASH_KEY
from .models import BackendConfig

logger = logging.getLogger(__name__)


def ensure_state_bucket(bucket: str, region: Optional[str], *, s3: Optional[Any] = None) -> bool:
    """
    Create a versioned, encrypted, private bucket for state documents.

    Returns:
        True if the bucket was created, False if it already existed
    """
    s3 = s3 or boto3.client("s3", region_name=region)
    try:
        s3.head_bucket(Bucket=bucket)
        logger.info(f"Bucket {bucket} already exists")
        return False
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") not in ("404", "NoSuchBucket", "NotFound"):
            raise

    if not region or region == "us-east-1":
        s3.create_bucket(Bucket=bucket)
    else:
        s3.create_bucket(Bucket=bucket, CreateBucketConfiguration={"LocationConstraint": region})
    logger.info(f"Created S3 bucket: {bucket}")

    # Prior state versions are retained for rollback
    s3.put_bucket_versioning(Bucket=bucket, VersioningConfiguration={"Status": "Enabled"})
    s3.put_bucket_encryption(
        Bucket=bucket,
        ServerSideEncryptionConfiguration={
            "Rules": [
                {
                    "ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "AES256"},
                    "BucketKeyEnabled": True,
                }
            ]
        },
    )
    s3.put_public_access_block(
        Bucket=bucket,
        PublicAccessBlockConfiguration={
            "BlockPublicAcls": True,
            "IgnorePublicAcls": True,
            "BlockPublicPolicy": True,
            "RestrictPublicBuckets": True,
        },
    )
    return True


def ensure_lock_table(table: str, region: Optional[str], *, dynamodb: Optional[Any] = None, wait: bool = True) -> bool:
    """
    Create the pay-per-request lock table keyed by `LockID`.

    Returns:
        True if the table was created, False if it already existed
    """
    dynamodb = dynamodb or boto3.client("dynamodb", region_name=region)
    try:
        dynamodb.describe_table(TableName=table)
        logger.info(f"DynamoDB table {table} already exists")
        return False
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") != "ResourceNotFoundException":
            raise

    dynamodb.create_table(
        TableName=table,
        KeySchema=[{"AttributeName": HASH_KEY, "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": HASH_KEY, "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
        SSESpecification={"Enabled": True},
    )
    logger.info(f"Created DynamoDB table: {table}")
    if wait:
        dynamodb.get_waiter("table_exists").wait(TableName=table)
    return True


def bootstrap_s3_backend(config: BackendConfig, *, s3: Optional[Any] = None,
                         dynamodb: Optional[Any] = None, wait: bool = True) -> List[str]:
    """
    Provision the bucket and lock table named by `config`.

    Returns:
        Human-readable list of the resources created
    """
    if not config.bucket or not config.lock_table:
        raise ConfigurationError("Bootstrapping requires both a bucket and a lock table")

    created = []
    if ensure_state_bucket(config.bucket, config.region, s3=s3):
        created.append(f"s3 bucket {config.bucket}")
    if ensure_lock_table(config.lock_table, config.region, dynamodb=dynamodb, wait=wait):
        created.append(f"dynamodb table {config.lock_table}")
    return created
