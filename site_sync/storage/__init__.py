"""
Storage layer: blob store interface and its S3 implementation.
"""

from .base import ACL_PRIVATE, ACL_PUBLIC_READ, BlobStore, ObjectMeta
from .s3_client import S3Client, get_s3_client

__all__ = [
    "ACL_PRIVATE",
    "ACL_PUBLIC_READ",
    "BlobStore",
    "ObjectMeta",
    "S3Client",
    "get_s3_client",
]
