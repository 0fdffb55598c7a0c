"""
Cortex Remote Job Client

JobService interface and its HTTP implementation.
"""

from .base import JobService
from .auth import APIAuth
from .client import CortexClient, JobsFilter
from .extraction import PATTERNS, extract_artifacts, extract_from_report

__all__ = [
    "JobService",
    "APIAuth",
    "CortexClient",
    "JobsFilter",
    "PATTERNS",
    "extract_artifacts",
    "extract_from_report",
]
