"""
Cortex Client Core

Configuration, exceptions and logging shared by all modules.
"""

from .config import CortexConfig, get_default_config, set_default_config, reload_config
from .exceptions import (
    CortexError,
    CatalogError,
    SubmissionError,
    JobTimeoutError,
    RateLimitedError,
    RemoteError,
    AuthError,
    NotFoundError,
    JobFailedError,
    JobCancelledError,
    StreamError,
)

__all__ = [
    "CortexConfig", "get_default_config", "set_default_config", "reload_config",
    "CortexError",
    "CatalogError",
    "SubmissionError",
    "JobTimeoutError",
    "RateLimitedError",
    "RemoteError",
    "AuthError",
    "NotFoundError",
    "JobFailedError",
    "JobCancelledError",
    "StreamError",
]
