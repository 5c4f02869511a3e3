"""
Local build output helpers: file enumeration, logical names, upload metadata
and gzip compression.
"""

from __future__ import annotations

import mimetypes
import os
import zlib
from pathlib import Path
from typing import List

from .config import GzipOptions
from .storage.base import ACL_PUBLIC_READ, ObjectMeta

DEFAULT_CONTENT_TYPE = "application/octet-stream"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"
HTML_SUFFIX = ".html"

# zlib window bits selecting a gzip container
_GZIP_WBITS = 16 + zlib.MAX_WBITS


def list_local_files(out_dir: Path) -> List[Path]:
    """
    Every regular file below *out_dir*, recursively, in sorted order.

    Hidden files and directories (name starting with '.') are skipped.
    """
    files: List[Path] = []
    for root, dirs, names in os.walk(out_dir):
        dirs[:] = sorted(d for d in dirs if not d.startswith("."))
        for name in sorted(names):
            if name.startswith("."):
                continue
            path = Path(root) / name
            if path.is_file():
                files.append(path)
    return files


def is_html(path: Path) -> bool:
    return path.name.endswith(HTML_SUFFIX)


def logical_name(out_dir: Path, path: Path, clean_html_suffix: bool = False) -> str:
    """Forward-slash path of *path* relative to *out_dir*, optionally without '.html'."""
    name = path.relative_to(out_dir).as_posix()
    if clean_html_suffix and name.endswith(HTML_SUFFIX):
        name = name[: -len(HTML_SUFFIX)]
    return name


def content_type(path: Path) -> str:
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or DEFAULT_CONTENT_TYPE


def upload_meta(path: Path) -> ObjectMeta:
    """
    Metadata for uploading a local asset.

    Content type always comes from the physical file name, so a stripped
    'about.html' is still served as text/html. Non-HTML assets are
    fingerprinted by content and cached as immutable.
    """
    meta = ObjectMeta(content_type=content_type(path), acl=ACL_PUBLIC_READ)
    if not is_html(path):
        meta.cache_control = IMMUTABLE_CACHE_CONTROL
    return meta


def gzip_compress(data: bytes, options: GzipOptions) -> bytes:
    compressor = zlib.compressobj(
        options.level,
        zlib.DEFLATED,
        _GZIP_WBITS,
        options.mem_level,
        options.strategy,
    )
    return compressor.compress(data) + compressor.flush()
