#!/usr/bin/env python3
"""
Command-line entry point for site-sync.

Usage:
  python -m site_sync deploy --out-dir dist              # sync dist/ to the bucket
  python -m site_sync deploy --out-dir dist --dry-run    # show planned actions only
  python -m site_sync base-url                           # print the public base URL

Options are read from configs/deploy.yml (or --config) with environment
fallbacks; see .env.template.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv
from loguru import logger

from .config import load_config
from .engine import deploy
from .exceptions import ConfigurationError, SiteSyncError

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def configure_logging(log_file: bool = True, verbose: bool = False) -> None:
    """Configure loguru logging."""
    logger.remove()

    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level:<8}</level> | {message}",
        level=level,
        colorize=True,
    )

    if log_file:
        log_dir = Path("logs")
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "site_sync.log",
            rotation="10 MB",
            retention=5,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {name} - {message}",
            level="DEBUG",
        )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="site-sync", description="Sync static build output to S3")
    ap.add_argument("--config", type=Path, default=None, help="YAML config (default: configs/deploy.yml)")
    ap.add_argument("--env", dest="env_path", default=".env", help="Path to .env file")
    sub = ap.add_subparsers(dest="command", required=True)

    dp = sub.add_parser("deploy", help="Upload changed files and remove stale ones")
    dp.add_argument("--out-dir", type=Path, required=True, help="Build output directory")
    dp.add_argument("--prefix", default=None, help="Override s3.prefix")
    dp.add_argument("--clean-html-suffix", action="store_true", default=None, help="Strip .html from object keys")
    dp.add_argument("--delete-tag", default=None, help="Tag stale objects (NAME or KEY=VALUE) instead of deleting")
    dp.add_argument("--gzip", action="store_true", default=None, help="Gzip-compress non-HTML uploads")
    dp.add_argument("--dry-run", action="store_true", help="Show planned actions without writing")
    dp.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    dp.add_argument("--no-log-file", action="store_true", help="Log to stderr only")

    sub.add_parser("base-url", help="Print the public base URL for the build tool")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv(args.env_path)

    if args.command == "base-url":
        try:
            config = load_config(args.config)
        except ConfigurationError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return EXIT_CONFIG
        print(config.public_base_url)
        return EXIT_OK

    configure_logging(log_file=not args.no_log_file, verbose=args.verbose)

    overrides = {
        "s3": {"prefix": args.prefix},
        "clean_html_suffix": args.clean_html_suffix,
        "delete_use_tag": args.delete_tag,
        "gzip": args.gzip,
    }

    try:
        config = load_config(args.config, overrides=overrides)
        deploy(args.out_dir, config, dry_run=args.dry_run)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG
    except (SiteSyncError, ClientError, BotoCoreError) as e:
        logger.error(f"Deploy failed: {e}")
        return EXIT_FAILURE

    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
