"""Blob store abstraction consumed by the sync engine."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from ..exceptions import ParseError

# S3 canned ACLs used by the engine
ACL_PRIVATE = "private"
ACL_PUBLIC_READ = "public-read"


@dataclass
class ObjectMeta:
    """Upload metadata for a single object."""
    content_type: str = "application/octet-stream"
    content_encoding: Optional[str] = None
    cache_control: Optional[str] = None
    acl: Optional[str] = None


class BlobStore(ABC):
    """
    Key-value blob store with tagging support.

    Every logical key is resolved through normalize_key() before it reaches
    the backend, so implementations only ever see fully prefixed keys.
    """

    def __init__(self, prefix: str):
        self.prefix = prefix

    def normalize_key(self, key: str) -> str:
        """Join the configured prefix and a logical key with exactly one '/'."""
        return f"{self.prefix.rstrip('/')}/{key.lstrip('/')}"

    @abstractmethod
    def fetch(self, key: str) -> Optional[bytes]:
        """Return object bytes, or None if the object is missing or access is denied."""

    @abstractmethod
    def store(self, key: str, data: bytes, meta: ObjectMeta) -> None:
        """Upload *data* under *key* with the given metadata."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key*. Succeeds when the object is already gone."""

    @abstractmethod
    def tag(self, key: str, tag_key: str, tag_value: str) -> None:
        """Replace the tag set of *key* with a single pair. Missing objects are ignored."""

    def fetch_json(self, key: str) -> Optional[Any]:
        """Fetch and parse a JSON object; None passes through unchanged."""
        data = self.fetch(key)
        if data is None:
            return None
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ParseError(f"Invalid JSON in {self.normalize_key(key)}: {e}") from e
