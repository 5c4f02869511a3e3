"""
site-sync: incremental deploys of static build output to S3.

Fingerprints every built file, diffs against a manifest stored in the bucket,
and uploads, deletes or tags only what changed.
"""

from .config import DeployConfig, load_config
from .engine import SyncEngine, SyncPlan, SyncResult, deploy
from .exceptions import ConfigurationError, ParseError, SiteSyncError

__all__ = [
    "ConfigurationError",
    "DeployConfig",
    "ParseError",
    "SiteSyncError",
    "SyncEngine",
    "SyncPlan",
    "SyncResult",
    "deploy",
    "load_config",
]
