"""
Cortex Client

Client library for the Cortex observable analysis engine. Submits
observables (IPs, domains, hashes, files...) to remote analyzers and runs
one observable through every matching analyzer concurrently.

Usage:
    from cortexclient import CortexClient, CortexConfig, Inline, run_all

    client = CortexClient(CortexConfig(url="http://cortex:9001", api_key="..."))

    # Channel mode: iterate outcomes as analyzers finish
    for outcome in run_all(client, Inline("ip", "8.8.8.8"), timeout=60):
        print(outcome)

    # Callback mode: blocks until every analyzer finished
    run_all(client, Inline("domain", "example.org"), on_report=print, on_error=print)

    # File observable: the file is read once and fanned out to all analyzers
    with open("sample.exe", "rb") as f:
        for outcome in run_all(client, FileStream(f, "sample.exe")):
            print(outcome)
"""

__version__ = "1.0.0"

from loguru import logger

from .core import (
    CortexConfig,
    get_default_config,
    set_default_config,
    reload_config,
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
from .core.logging import setup_logging, setup_console_only, get_analyzer_logger
from .models import (
    Inline,
    FileStream,
    Observable,
    TLP,
    PAP,
    AnalyzerDescriptor,
    Job,
    JobStatus,
    Report,
    Taxonomy,
    TaxonomyLevel,
    Artifact,
    Outcome,
)
from .api import JobService, CortexClient, JobsFilter, extract_artifacts
from .analysis import Runner, run_single, Splitter, split, MultiRun, RunState, run_all

# Silent unless the application opts in
logger.disable("cortexclient")

__all__ = [
    "__version__",
    # Config
    "CortexConfig",
    "get_default_config",
    "set_default_config",
    "reload_config",
    # Logging
    "setup_logging",
    "setup_console_only",
    "get_analyzer_logger",
    # Exceptions
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
    # Models
    "Inline",
    "FileStream",
    "Observable",
    "TLP",
    "PAP",
    "AnalyzerDescriptor",
    "Job",
    "JobStatus",
    "Report",
    "Taxonomy",
    "TaxonomyLevel",
    "Artifact",
    "Outcome",
    # Client
    "JobService",
    "CortexClient",
    "JobsFilter",
    "extract_artifacts",
    # Analysis
    "Runner",
    "run_single",
    "Splitter",
    "split",
    "MultiRun",
    "RunState",
    "run_all",
]
