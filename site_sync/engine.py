"""
Incremental sync engine.

One pass makes the bucket match a local build output directory:
- Enumerate local files and fingerprint them (SHA-256 of raw bytes)
- Diff against the manifest stored in the bucket
- Upload new/changed files, delete or tag files that disappeared
- Write the rebuilt manifest back, unconditionally

Remote calls are made strictly one at a time. If any of them fails the pass
aborts before the manifest is written; the next pass re-diffs against the old
manifest and reconciles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set

from loguru import logger

from .assets import gzip_compress, is_html, list_local_files, logical_name, upload_meta
from .config import DeployConfig
from .exceptions import ConfigurationError
from .manifest import MANIFEST_KEY, Fingerprint, Manifest, hash_file, load_manifest, manifest_to_json
from .storage.base import ACL_PRIVATE, BlobStore, ObjectMeta
from .storage.s3_client import get_s3_client


@dataclass(frozen=True)
class LocalFile:
    """A local asset with its logical name and current fingerprint."""
    path: Path
    name: str
    fingerprint: Fingerprint


@dataclass
class SyncPlan:
    """Remote mutations needed to bring the bucket in line with the output directory."""
    uploads: List[LocalFile] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    stale: List[str] = field(default_factory=list)
    manifest: Manifest = field(default_factory=dict)


@dataclass
class SyncResult:
    """Names acted on during a pass."""
    uploaded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    tagged: List[str] = field(default_factory=list)
    dry_run: bool = False


class SyncEngine:
    """
    Synchronizes a build output directory with a blob store.

    The manifest is read once at the start of a pass and written once at the
    end; it is never patched remotely in between.
    """

    def __init__(self, config: DeployConfig, store: BlobStore):
        self.config = config
        self.store = store

    def scan(self, out_dir: Path) -> List[LocalFile]:
        """Fingerprint every local file, in enumeration order."""
        files = []
        for path in list_local_files(out_dir):
            name = logical_name(out_dir, path, self.config.clean_html_suffix)
            files.append(LocalFile(path=path, name=name, fingerprint=Fingerprint(hash=hash_file(path))))
        return files

    def plan(self, out_dir: Path) -> SyncPlan:
        """
        Diff the output directory against the stored manifest.

        Only reads from the store. A file is planned for upload iff its hash
        differs from the manifest entry for its name, or the name is new.

        Raises:
            ConfigurationError: If out_dir is not a directory
            ParseError: If the stored manifest is malformed
        """
        out_dir = Path(out_dir)
        if not out_dir.is_dir():
            raise ConfigurationError(f"Output directory not found: {out_dir}")

        local_files = self.scan(out_dir)
        old = load_manifest(self.store)

        plan = SyncPlan()
        seen: Set[str] = set()

        for item in local_files:
            if item.name in plan.manifest:
                # Last file in enumeration order wins the manifest entry
                logger.warning(f"Multiple local files map to {item.name!r}; using {item.path}")
            if item.name in old:
                seen.add(item.name)
            plan.manifest[item.name] = item.fingerprint

            previous = old.get(item.name)
            if previous is None or previous.hash != item.fingerprint.hash:
                plan.uploads.append(item)
            else:
                plan.unchanged.append(item.name)

        plan.stale = [name for name in old if name not in seen]
        return plan

    def run(self, out_dir: Path, dry_run: bool = False) -> SyncResult:
        """
        Execute one full sync pass.

        Args:
            out_dir: Local build output directory
            dry_run: Log the planned actions without touching the store

        Returns:
            SyncResult listing the names uploaded, skipped, deleted and tagged
        """
        plan = self.plan(out_dir)
        result = SyncResult(skipped=list(plan.unchanged), dry_run=dry_run)

        if dry_run:
            for item in plan.uploads:
                logger.info(f"Would upload: {item.name}")
                result.uploaded.append(item.name)
            for name in plan.stale:
                if self.config.delete_use_tag:
                    logger.info(f"Would tag: {name}")
                    result.tagged.append(name)
                else:
                    logger.info(f"Would delete: {name}")
                    result.deleted.append(name)
            logger.info(f"Dry run: {len(plan.manifest)} files in manifest, nothing written")
            return result

        for item in plan.uploads:
            self._upload(item)
            result.uploaded.append(item.name)

        for name in plan.stale:
            tag = self.config.delete_use_tag
            if tag:
                self.store.tag(name, tag.key, tag.value)
                logger.info(f"Tagged: {name} ({tag.key}={tag.value})")
                result.tagged.append(name)
            else:
                self.store.delete(name)
                logger.info(f"Deleted: {name}")
                result.deleted.append(name)

        self.store.store(
            MANIFEST_KEY,
            manifest_to_json(plan.manifest),
            ObjectMeta(content_type="application/json", acl=ACL_PRIVATE),
        )

        logger.info(
            f"Deployed: {len(result.uploaded)} uploaded, {len(result.skipped)} unchanged, "
            f"{len(result.deleted) + len(result.tagged)} removed"
        )
        return result

    def _upload(self, item: LocalFile) -> None:
        meta = upload_meta(item.path)
        data = item.path.read_bytes()

        if self.config.gzip and not is_html(item.path):
            data = gzip_compress(data, self.config.gzip)
            meta.content_encoding = "gzip"
            logger.info(f"Compressed: {item.name} (size: {len(data)} bytes)")

        self.store.store(item.name, data, meta)
        logger.info(f"Uploaded: {item.name}")


def deploy(out_dir: Path, config: DeployConfig, store: Optional[BlobStore] = None, dry_run: bool = False) -> SyncResult:
    """
    Sync a finished build output directory to the configured bucket.

    Single entry point for build hooks and the CLI.
    """
    if store is None:
        store = get_s3_client(config.s3)
    return SyncEngine(config, store).run(Path(out_dir), dry_run=dry_run)
