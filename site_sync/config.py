"""
Deploy configuration: loading and eager validation.

Options are resolved from, in order of precedence:
- explicit overrides (CLI flags)
- the YAML config file (default: configs/deploy.yml)
- environment variables (a .env file is loaded by the CLI)

Everything is validated before the first remote call; any problem raises
ConfigurationError.
"""

from __future__ import annotations

import os
import re
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger

from .exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = Path("configs/deploy.yml")

# s3.<field> -> environment fallback
S3_ENV_FALLBACKS = {
    "bucket": "SITE_SYNC_BUCKET",
    "region": "SITE_SYNC_REGION",
    "access_key_id": "AWS_ACCESS_KEY_ID",
    "secret_access_key": "AWS_SECRET_ACCESS_KEY",
    "endpoint": "SITE_SYNC_ENDPOINT",
    "prefix": "SITE_SYNC_PREFIX",
    "api_endpoint_url": "S3_ENDPOINT",
    "force_path_style": "S3_FORCE_PATH_STYLE",
}

OPTION_ENV_FALLBACKS = {
    "clean_html_suffix": "SITE_SYNC_CLEAN_HTML_SUFFIX",
    "delete_use_tag": "SITE_SYNC_DELETE_TAG",
    "gzip": "SITE_SYNC_GZIP",
}

REQUIRED_S3_FIELDS = ("bucket", "region", "access_key_id", "secret_access_key", "endpoint", "prefix")

# Fields an endpoint template may reference, e.g. https://{bucket}.s3.{region}.amazonaws.com
TEMPLATE_FIELDS = ("bucket", "region", "prefix")

PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")

GZIP_STRATEGIES = {
    "default": zlib.Z_DEFAULT_STRATEGY,
    "filtered": zlib.Z_FILTERED,
    "huffman_only": zlib.Z_HUFFMAN_ONLY,
    "rle": zlib.Z_RLE,
    "fixed": zlib.Z_FIXED,
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass
class S3Options:
    """Addressing and credentials for the target bucket."""
    bucket: str
    region: str
    access_key_id: str
    secret_access_key: str
    endpoint: str  # public base URL, may contain {field} placeholders
    prefix: str
    api_endpoint_url: Optional[str] = None  # S3 API URL for MinIO/R2; None means AWS
    force_path_style: bool = False


@dataclass(frozen=True)
class DeleteTag:
    """Tag attached to stale objects instead of deleting them."""
    key: str
    value: str


@dataclass(frozen=True)
class GzipOptions:
    """zlib parameters for gzip-compressing uploads."""
    level: int = zlib.Z_DEFAULT_COMPRESSION
    mem_level: int = zlib.DEF_MEM_LEVEL
    strategy: int = zlib.Z_DEFAULT_STRATEGY


@dataclass
class DeployConfig:
    """Validated deploy configuration."""
    s3: S3Options
    endpoint: str  # resolved endpoint, always ends with '/'
    clean_html_suffix: bool = False
    delete_use_tag: Optional[DeleteTag] = None
    gzip: Optional[GzipOptions] = None

    @property
    def public_base_url(self) -> str:
        """Public URL the deployed files are served from (endpoint + prefix)."""
        prefix = self.s3.prefix.strip("/")
        return f"{self.endpoint}{prefix}/" if prefix else self.endpoint


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
        return value.strip().lower() in _TRUE
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def parse_delete_tag(value: Union[None, str, Dict[str, Any]]) -> Optional[DeleteTag]:
    """
    Normalize the delete_use_tag option.

    A plain string is used as both key and value. A string of the form
    "key=value" (the environment variable form) or a mapping with key/value
    sets them separately. Both must be non-empty.
    """
    if value is None or value == "" or value is False:
        return None

    if isinstance(value, str):
        if "=" in value:
            key, _, val = value.partition("=")
        else:
            key, val = value, value
    elif isinstance(value, dict):
        unknown = set(value) - {"key", "value"}
        if unknown:
            raise ConfigurationError(f"delete_use_tag has unknown fields: {sorted(unknown)}")
        key, val = value.get("key"), value.get("value")
    else:
        raise ConfigurationError(f"delete_use_tag must be a string or {{key, value}}, got {value!r}")

    if not isinstance(key, str) or not key:
        raise ConfigurationError("delete_use_tag.key is required")
    if not isinstance(val, str) or not val:
        raise ConfigurationError("delete_use_tag.value is required")
    return DeleteTag(key=key, value=val)


def parse_gzip(value: Union[None, bool, str, Dict[str, Any]]) -> Optional[GzipOptions]:
    """
    Normalize the gzip option.

    Accepts a boolean, a level as a digit string (environment form), or a
    mapping with any of level, mem_level and strategy.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            value = {"level": int(text)}
        else:
            value = _parse_bool(text, "gzip")

    if value is None or value is False:
        return None
    if value is True:
        return GzipOptions()
    if not isinstance(value, dict):
        raise ConfigurationError(f"gzip must be a boolean or a mapping, got {value!r}")

    unknown = set(value) - {"level", "mem_level", "strategy"}
    if unknown:
        raise ConfigurationError(f"gzip has unknown parameters: {sorted(unknown)}")

    level = value.get("level", zlib.Z_DEFAULT_COMPRESSION)
    mem_level = value.get("mem_level", zlib.DEF_MEM_LEVEL)
    strategy = value.get("strategy", zlib.Z_DEFAULT_STRATEGY)

    if isinstance(level, bool) or not isinstance(level, int) or not -1 <= level <= 9:
        raise ConfigurationError(f"gzip.level must be an integer in [-1, 9], got {level!r}")
    if isinstance(mem_level, bool) or not isinstance(mem_level, int) or not 1 <= mem_level <= 9:
        raise ConfigurationError(f"gzip.mem_level must be an integer in [1, 9], got {mem_level!r}")
    if isinstance(strategy, str):
        if strategy not in GZIP_STRATEGIES:
            raise ConfigurationError(
                f"gzip.strategy must be one of {sorted(GZIP_STRATEGIES)}, got {strategy!r}"
            )
        strategy = GZIP_STRATEGIES[strategy]
    elif isinstance(strategy, bool) or strategy not in GZIP_STRATEGIES.values():
        raise ConfigurationError(f"gzip.strategy is not a valid zlib strategy: {strategy!r}")

    return GzipOptions(level=level, mem_level=mem_level, strategy=strategy)


def resolve_endpoint(options: S3Options) -> str:
    """
    Substitute {field} placeholders in the endpoint and normalize it.

    Raises:
        ConfigurationError: On an unknown or empty placeholder, or a non-https endpoint
    """

    def _sub(match: re.Match) -> str:
        name = match.group(1)
        if name not in TEMPLATE_FIELDS:
            raise ConfigurationError(
                f"Unknown placeholder {{{name}}} in s3.endpoint (allowed: {', '.join(TEMPLATE_FIELDS)})"
            )
        value = getattr(options, name)
        if not isinstance(value, str) or not value:
            raise ConfigurationError(f"s3.{name} is required by the endpoint template")
        return value

    endpoint = PLACEHOLDER_RE.sub(_sub, options.endpoint)

    if not endpoint.startswith("https://"):
        raise ConfigurationError(f"s3.endpoint must be a valid https:// URL, got {endpoint!r}")
    if not endpoint.endswith("/"):
        endpoint += "/"
    return endpoint


def build_config(raw: Dict[str, Any]) -> DeployConfig:
    """
    Validate a raw option mapping and build a DeployConfig.

    Args:
        raw: Mapping with an "s3" section and optional top-level options

    Raises:
        ConfigurationError: If any option is missing or invalid
    """
    s3_raw = raw.get("s3")
    if not isinstance(s3_raw, dict):
        raise ConfigurationError("s3 options are required")

    missing = [name for name in REQUIRED_S3_FIELDS if not s3_raw.get(name)]
    if missing:
        raise ConfigurationError(f"s3 options are required: missing {', '.join(missing)}")

    for name in REQUIRED_S3_FIELDS:
        if not isinstance(s3_raw[name], str):
            raise ConfigurationError(f"s3.{name} must be a string")

    s3 = S3Options(
        bucket=s3_raw["bucket"],
        region=s3_raw["region"],
        access_key_id=s3_raw["access_key_id"],
        secret_access_key=s3_raw["secret_access_key"],
        endpoint=s3_raw["endpoint"],
        prefix=s3_raw["prefix"],
        api_endpoint_url=s3_raw.get("api_endpoint_url") or None,
        force_path_style=_parse_bool(s3_raw.get("force_path_style"), "s3.force_path_style"),
    )

    unknown = set(raw) - {"s3", "clean_html_suffix", "delete_use_tag", "gzip"}
    if unknown:
        logger.warning(f"Ignoring unknown deploy options: {sorted(unknown)}")

    return DeployConfig(
        s3=s3,
        endpoint=resolve_endpoint(s3),
        clean_html_suffix=_parse_bool(raw.get("clean_html_suffix"), "clean_html_suffix"),
        delete_use_tag=parse_delete_tag(raw.get("delete_use_tag")),
        gzip=parse_gzip(raw.get("gzip")),
    )


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> DeployConfig:
    """
    Load, merge and validate the deploy configuration.

    Args:
        config_path: YAML file; when None the default path is used if it exists
        overrides: Top-level options (and an optional "s3" mapping) that win over file and env

    Returns:
        Validated DeployConfig
    """
    if config_path is None:
        if DEFAULT_CONFIG_PATH.exists():
            raw = _read_yaml(DEFAULT_CONFIG_PATH)
        else:
            logger.debug(f"Config file not found: {DEFAULT_CONFIG_PATH}, using environment only")
            raw = {}
    else:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        raw = _read_yaml(config_path)

    s3_raw = raw.get("s3") or {}
    if not isinstance(s3_raw, dict):
        raise ConfigurationError("s3 must be a mapping")
    s3_raw = dict(s3_raw)

    for name, env in S3_ENV_FALLBACKS.items():
        if s3_raw.get(name) in (None, ""):
            s3_raw[name] = os.getenv(env)

    merged = dict(raw)
    for name, env in OPTION_ENV_FALLBACKS.items():
        if merged.get(name) is None and os.getenv(env) is not None:
            merged[name] = os.getenv(env)

    overrides = dict(overrides or {})
    s3_raw.update({k: v for k, v in (overrides.pop("s3", None) or {}).items() if v is not None})
    merged.update({k: v for k, v in overrides.items() if v is not None})
    merged["s3"] = s3_raw

    return build_config(merged)
