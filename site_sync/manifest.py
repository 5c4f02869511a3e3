"""
Fingerprint manifest persisted in the bucket.

The manifest maps each logical name to the SHA-256 digest of the file that was
last uploaded under it. It lives at MANIFEST_KEY under the deploy prefix and is
the only record of what a previous pass uploaded.

Serialized form (no version field):
    {"index": {"hash": "<64 hex chars>"}, "assets/app.js": {"hash": "..."}}
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

from loguru import logger

from .exceptions import ParseError
from .storage.base import BlobStore

MANIFEST_KEY = "fingerprints.json"

_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class Fingerprint:
    """Content fingerprint for one logical name."""
    hash: str


Manifest = Dict[str, Fingerprint]


def hash_file(path: Path) -> str:
    """SHA-256 hex digest of a file's raw bytes."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def manifest_from_json(data: Any) -> Manifest:
    """
    Build a manifest from a decoded JSON document.

    Extra keys inside an entry are ignored so older and newer writers can share
    a bucket.

    Raises:
        ParseError: If the document is not an object of {"hash": str} entries
    """
    if not isinstance(data, dict):
        raise ParseError(f"Manifest must be a JSON object, got {type(data).__name__}")

    manifest: Manifest = {}
    for name, entry in data.items():
        if not isinstance(entry, dict) or not isinstance(entry.get("hash"), str):
            raise ParseError(f"Malformed manifest entry for {name!r}: {entry!r}")
        manifest[name] = Fingerprint(hash=entry["hash"])
    return manifest


def manifest_to_json(manifest: Manifest) -> bytes:
    """Serialize a manifest to UTF-8 JSON bytes."""
    return json.dumps({name: asdict(fp) for name, fp in manifest.items()}).encode("utf-8")


def load_manifest(store: BlobStore) -> Manifest:
    """Load the manifest from the store; an absent manifest is empty."""
    data = store.fetch_json(MANIFEST_KEY)
    if data is None:
        logger.info("No existing manifest, treating every file as new")
        return {}
    manifest = manifest_from_json(data)
    logger.debug(f"Loaded manifest with {len(manifest)} entries")
    return manifest
