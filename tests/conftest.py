from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) in sys.path:
    sys.path.remove(str(_REPO_ROOT))
sys.path.insert(0, str(_REPO_ROOT))

import pytest

from site_sync.config import OPTION_ENV_FALLBACKS, S3_ENV_FALLBACKS, build_config
from site_sync.storage.base import BlobStore, ObjectMeta


class InMemoryStore(BlobStore):
    """
    BlobStore fake keeping objects in a dict keyed by full (prefixed) key.

    Every call is recorded in `calls` as (operation, logical key) so tests can
    assert on the exact sequence of remote mutations.
    """

    def __init__(self, prefix: str = "site"):
        super().__init__(prefix)
        self.objects: Dict[str, Tuple[bytes, ObjectMeta]] = {}
        self.tags: Dict[str, Dict[str, str]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_on: Optional[Tuple[str, str]] = None

    def _check_fail(self, op: str, key: str) -> None:
        if self.fail_on == (op, key):
            raise RuntimeError(f"injected failure: {op} {key}")

    def seed(self, key: str, data: bytes) -> None:
        self.objects[self.normalize_key(key)] = (data, ObjectMeta())

    def fetch(self, key: str) -> Optional[bytes]:
        self.calls.append(("fetch", key))
        entry = self.objects.get(self.normalize_key(key))
        return entry[0] if entry else None

    def store(self, key: str, data: bytes, meta: ObjectMeta) -> None:
        self._check_fail("store", key)
        self.calls.append(("store", key))
        self.objects[self.normalize_key(key)] = (data, meta)

    def delete(self, key: str) -> None:
        self._check_fail("delete", key)
        self.calls.append(("delete", key))
        self.objects.pop(self.normalize_key(key), None)
        self.tags.pop(self.normalize_key(key), None)

    def tag(self, key: str, tag_key: str, tag_value: str) -> None:
        self.calls.append(("tag", key))
        full_key = self.normalize_key(key)
        if full_key in self.objects:
            self.tags[full_key] = {tag_key: tag_value}

    def mutations(self) -> List[Tuple[str, str]]:
        return [c for c in self.calls if c[0] != "fetch"]

    def get(self, key: str) -> Tuple[bytes, ObjectMeta]:
        return self.objects[self.normalize_key(key)]


def base_options(**overrides) -> dict:
    raw = {
        "s3": {
            "bucket": "assets",
            "region": "us-east-1",
            "access_key_id": "AKIATEST",
            "secret_access_key": "secret",
            "endpoint": "https://{bucket}.s3.{region}.amazonaws.com",
            "prefix": "site",
        }
    }
    raw.update(overrides)
    return raw


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore(prefix="site")


@pytest.fixture()
def make_config():
    """Factory for validated DeployConfig objects."""

    def _make(**overrides):
        return build_config(base_options(**overrides))

    return _make


@pytest.fixture()
def out_dir(tmp_path):
    """Empty build output directory."""
    d = tmp_path / "dist"
    d.mkdir()
    return d


@pytest.fixture()
def write_file(out_dir):
    """Write a file below out_dir, creating parent directories."""

    def _write(name: str, content: bytes | str) -> Path:
        path = out_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)
        return path

    return _write


@pytest.fixture()
def clean_env(monkeypatch, tmp_path):
    """No deploy-related environment variables and no default config file."""
    for env in list(S3_ENV_FALLBACKS.values()) + list(OPTION_ENV_FALLBACKS.values()):
        monkeypatch.delenv(env, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch
