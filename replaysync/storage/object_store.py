"""S3-compatible object storage for replay bodies (Backblaze B2, MinIO, AWS)."""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from replaysync.errors import ObjectStoreError

log = logging.getLogger(__name__)

# Transport-level retries only; the sync pass itself never retries a file
S3_MAX_ATTEMPTS = 3


class S3ObjectStore:
    """
    Thin wrapper around a boto3 S3 client with explicit timeouts so a stalled
    connection cannot block the sync pass forever.
    """

    def __init__(
        self,
        endpoint_url: str,
        key_id: str,
        key: str,
        region: str = "us-east-1",
        timeout: float = 60.0,
        client: Optional[Any] = None,
    ) -> None:
        self._endpoint_url = endpoint_url
        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=key_id,
                aws_secret_access_key=key,
                region_name=region,
                config=BotoConfig(
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    retries={"max_attempts": S3_MAX_ATTEMPTS, "mode": "standard"},
                ),
            )
        self._client = client
        log.debug("Object store endpoint=%s", endpoint_url)

    def put(self, bucket: str, key: str, body: bytes) -> None:
        """Upload body under bucket/key, overwriting any existing object. Raises ObjectStoreError."""
        log.debug("put_object bucket=%s key=%s size=%d", bucket, key, len(body))
        try:
            self._client.put_object(Bucket=bucket, Key=key, Body=body)
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(f"Upload {bucket}/{key} failed: {e}") from e
