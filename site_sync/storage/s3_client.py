"""
S3 blob store client.

Supports AWS S3 and S3-compatible services (MinIO, Cloudflare R2) through an
optional API endpoint URL.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from loguru import logger

from .base import BlobStore, ObjectMeta

if TYPE_CHECKING:  # pragma: no cover
    from ..config import S3Options


NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}
DENIED_CODES = {"AccessDenied", "403"}


def _error_code(e: ClientError) -> Optional[str]:
    return e.response.get("Error", {}).get("Code")


class S3Client(BlobStore):
    """
    S3 client wrapper implementing the BlobStore interface.

    Provides:
    - Prefix-normalized keys for every operation
    - Missing/denied objects reported as None on fetch
    - Idempotent delete and tag (not-found is success)
    """

    def __init__(
        self,
        bucket: str,
        prefix: str,
        region: str = "us-east-1",
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        force_path_style: bool = False,
    ):
        """
        Initialize S3 client.

        Args:
            bucket: Bucket holding the deployed site
            prefix: Key prefix every logical key is stored under
            region: AWS region
            access_key: AWS access key id
            secret_key: AWS secret access key
            endpoint_url: S3 API endpoint for S3-compatible services (e.g., http://minio:9000)
            force_path_style: Use path-style addressing (required for MinIO)
        """
        super().__init__(prefix)
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url

        config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path' if force_path_style else 'auto'}
        )

        self.s3 = boto3.client(
            's3',
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=config
        )

        logger.debug(f"S3Client initialized: bucket={bucket}, prefix={prefix}, endpoint={endpoint_url}")

    def fetch(self, key: str) -> Optional[bytes]:
        """
        Download object from S3.

        Returns:
            Object bytes, or None when the object does not exist or access is denied

        Raises:
            ClientError: Any other S3 error
        """
        full_key = self.normalize_key(key)
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=full_key)
            data = response['Body'].read()
            logger.debug(f"Got object: s3://{self.bucket}/{full_key} ({len(data)} bytes)")
            return data
        except ClientError as e:
            code = _error_code(e)
            if code in NOT_FOUND_CODES or code in DENIED_CODES:
                logger.debug(f"Object not available ({code}): s3://{self.bucket}/{full_key}")
                return None
            raise

    def store(self, key: str, data: bytes, meta: ObjectMeta) -> None:
        """Upload object with content type, length and optional headers."""
        full_key = self.normalize_key(key)

        kwargs = {
            'Bucket': self.bucket,
            'Key': full_key,
            'Body': data,
            'ContentType': meta.content_type,
            'ContentLength': len(data),
        }
        if meta.content_encoding:
            kwargs['ContentEncoding'] = meta.content_encoding
        if meta.cache_control:
            kwargs['CacheControl'] = meta.cache_control
        if meta.acl:
            kwargs['ACL'] = meta.acl

        self.s3.put_object(**kwargs)
        logger.debug(f"Put object: s3://{self.bucket}/{full_key} ({len(data)} bytes, {meta.content_type})")

    def delete(self, key: str) -> None:
        """Delete object from S3."""
        full_key = self.normalize_key(key)
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=full_key)
            logger.debug(f"Deleted object: s3://{self.bucket}/{full_key}")
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                logger.debug(f"Delete skipped, already absent: s3://{self.bucket}/{full_key}")
                return
            logger.error(f"Delete failed for s3://{self.bucket}/{full_key}: {e}")
            raise

    def tag(self, key: str, tag_key: str, tag_value: str) -> None:
        """Replace the object's tag set with a single key/value pair."""
        full_key = self.normalize_key(key)
        try:
            self.s3.put_object_tagging(
                Bucket=self.bucket,
                Key=full_key,
                Tagging={'TagSet': [{'Key': tag_key, 'Value': tag_value}]},
            )
            logger.debug(f"Tagged object: s3://{self.bucket}/{full_key} ({tag_key}={tag_value})")
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                logger.debug(f"Tag skipped, object absent: s3://{self.bucket}/{full_key}")
                return
            raise


def get_s3_client(options: "S3Options") -> S3Client:
    """Factory function to create an S3 client from validated deploy options."""
    return S3Client(
        bucket=options.bucket,
        prefix=options.prefix,
        region=options.region,
        access_key=options.access_key_id,
        secret_key=options.secret_access_key,
        endpoint_url=options.api_endpoint_url,
        force_path_style=options.force_path_style,
    )
