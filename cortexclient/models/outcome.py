"""
Outcome Model

The terminal result of one analyzer within a multi-analyzer run: a Report or
a typed failure, never both.
"""

from dataclasses import dataclass
from typing import Optional

from ..core.exceptions import CortexError
from .analyzer import AnalyzerDescriptor
from .job import Report


@dataclass(frozen=True)
class Outcome:
    analyzer: AnalyzerDescriptor
    report: Optional[Report] = None
    error: Optional[CortexError] = None

    def __post_init__(self):
        if (self.report is None) == (self.error is None):
            raise ValueError("Outcome needs exactly one of report or error")

    @property
    def ok(self) -> bool:
        return self.report is not None

    def summary(self) -> str:
        """One-line description for logs"""
        if self.report is not None:
            level = self.report.max_level()
            verdict = level.value if level else "no taxonomies"
            return f"{len(self.report.taxonomies)} taxonomies, max level {verdict}"
        return f"{type(self.error).__name__}: {self.error.message}"

    def __str__(self) -> str:
        return f"{self.analyzer.name}: {self.summary()}"
