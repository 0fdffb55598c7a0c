"""
Cortex Analysis Engine

Single-analyzer runs, stream fan-out, and concurrent multi-analyzer runs.
"""

from .runner import Runner, run_single
from .splitter import Splitter, SplitStream, split
from .orchestrator import MultiRun, RunState, run_all

__all__ = [
    "Runner",
    "run_single",
    "Splitter",
    "SplitStream",
    "split",
    "MultiRun",
    "RunState",
    "run_all",
]
