"""
Cortex Client Data Models

Observable, AnalyzerDescriptor, Job, Report, Taxonomy, Artifact, Outcome.
"""

from .observable import Inline, FileStream, Observable, TLP, PAP, is_file
from .analyzer import AnalyzerDescriptor
from .job import Job, JobStatus, Report, Taxonomy, TaxonomyLevel, Artifact
from .outcome import Outcome

__all__ = [
    "Inline", "FileStream", "Observable", "TLP", "PAP", "is_file",
    "AnalyzerDescriptor",
    "Job", "JobStatus", "Report", "Taxonomy", "TaxonomyLevel", "Artifact",
    "Outcome",
]
