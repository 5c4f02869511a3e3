"""
Exception hierarchy for site-sync.

Remote-store failures are not wrapped: botocore's ClientError/BotoCoreError
propagate unchanged so callers see the original S3 error code.
"""


class SiteSyncError(Exception):
    """Base exception for site-sync errors."""
    pass


class ConfigurationError(SiteSyncError):
    """Raised when deploy options are missing or invalid."""
    pass


class ParseError(SiteSyncError):
    """Raised when a stored JSON document (e.g. the manifest) is malformed."""
    pass
