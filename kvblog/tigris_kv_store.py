"""
Tigris/S3-compatible storage implementation of the key-value store.

Stores each key as its own object in an S3-compatible bucket,
allowing all distributed components to share the same blog data.
Default object key: blog/<key>.json
"""
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Optional

import boto3
from botocore.exceptions import ClientError

from kvblog.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

_MISSING_CODES = ('NoSuchKey', '404', 'NotFound')


class TigrisKeyValueStore(KeyValueStore):
    """
    Tigris/S3-compatible storage implementation of the key-value store.

    One object per key under a common prefix.
    """

    def __init__(
        self,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        bucket_name: Optional[str] = None,
        region: Optional[str] = None,
        prefix: str = "blog/",
        max_workers: int = 8
    ):
        """
        Initialize Tigris store.

        Args:
            access_key_id: AWS access key ID (defaults to AWS_ACCESS_KEY_ID env var)
            secret_access_key: AWS secret access key (defaults to AWS_SECRET_ACCESS_KEY env var)
            endpoint_url: S3 endpoint URL (defaults to AWS_ENDPOINT_URL_S3 or
                         https://fly.storage.tigris.dev)
            bucket_name: S3 bucket name (defaults to TIGRIS_BUCKET_NAME env var)
            region: AWS region (defaults to AWS_REGION or 'auto')
            prefix: Prefix prepended to every object key
            max_workers: Thread pool size for batched reads
        """
        # Get credentials from parameters or environment variables
        self.access_key_id = access_key_id or os.getenv('AWS_ACCESS_KEY_ID')
        self.secret_access_key = secret_access_key or os.getenv('AWS_SECRET_ACCESS_KEY')
        self.endpoint_url = (
            endpoint_url or
            os.getenv('AWS_ENDPOINT_URL_S3', 'https://fly.storage.tigris.dev')
        )
        self.bucket_name = bucket_name or os.getenv('TIGRIS_BUCKET_NAME')
        self.region = region or os.getenv('AWS_REGION', 'auto')
        self.prefix = prefix
        self.max_workers = max_workers

        if not self.access_key_id or not self.secret_access_key:
            raise ValueError(
                "AWS credentials are required. Set AWS_ACCESS_KEY_ID and "
                "AWS_SECRET_ACCESS_KEY environment variables or pass them as parameters."
            )

        if not self.bucket_name:
            raise ValueError(
                "Bucket name is required. Set TIGRIS_BUCKET_NAME environment variable "
                "or pass it as a parameter."
            )

        # Initialize S3 client
        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            endpoint_url=self.endpoint_url,
            region_name=self.region
        )

    def _get_object_key(self, key: str) -> str:
        """Get the S3 object key for a store key."""
        return f"{self.prefix}{key}.json"

    def get(self, key: str) -> Optional[str]:
        """
        Load a value from its S3 object.

        Returns:
            Object body or None if the object doesn't exist
        """
        try:
            response = self.s3_client.get_object(
                Bucket=self.bucket_name,
                Key=self._get_object_key(key)
            )
            return response['Body'].read().decode('utf-8')
        except ClientError as e:
            if e.response['Error']['Code'] in _MISSING_CODES:
                return None
            raise

    def put(self, key: str, value: str) -> None:
        """Save a value to its S3 object."""
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=self._get_object_key(key),
            Body=value,
            ContentType='application/json',
            CacheControl='no-cache, no-store, must-revalidate'
        )

    def delete(self, key: str) -> bool:
        """Delete a value's S3 object."""
        object_key = self._get_object_key(key)
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=object_key)
        except ClientError as e:
            if e.response['Error']['Code'] in _MISSING_CODES:
                return False
            raise
        self.s3_client.delete_object(Bucket=self.bucket_name, Key=object_key)
        return True

    def get_many(self, keys: Iterable[str]) -> Dict[str, str]:
        """Fetch several objects in parallel."""
        keys = list(keys)
        if not keys:
            return {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(keys))) as pool:
            values = list(pool.map(self.get, keys))
        logger.debug("Fetched %d objects from bucket %s", len(keys), self.bucket_name)
        return {key: value for key, value in zip(keys, values) if value is not None}
