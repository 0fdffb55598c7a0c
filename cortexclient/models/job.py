"""
Job and Report Models

A Job is the handle returned by analyzer submission; a Report is the result
of a finished job, with taxonomy verdicts and extracted sub-artifacts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class JobStatus(str, Enum):
    """Cortex job status"""

    WAITING = "Waiting"
    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    FAILURE = "Failure"
    DELETED = "Deleted"

    @property
    def is_final(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILURE, JobStatus.DELETED)

    @classmethod
    def parse(cls, value: Optional[str]) -> "JobStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.WAITING


class TaxonomyLevel(str, Enum):
    """Taxonomy severity, ordered from least to most severe"""

    INFO = "info"
    SAFE = "safe"
    SUSPICIOUS = "suspicious"
    MALICIOUS = "malicious"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


_LEVEL_RANK = {
    TaxonomyLevel.INFO: 0,
    TaxonomyLevel.SAFE: 1,
    TaxonomyLevel.SUSPICIOUS: 2,
    TaxonomyLevel.MALICIOUS: 3,
}


@dataclass
class Job:
    """Cortex job (the handle correlating a submission with its report)"""

    id: str
    analyzer_id: str = ""
    analyzer_name: str = ""
    status: JobStatus = JobStatus.WAITING

    # Submitted observable
    data_type: str = ""
    data: Optional[str] = None
    tlp: Optional[int] = None
    pap: Optional[int] = None

    organization: str = ""
    created_by: str = ""
    created_at: Optional[int] = None  # epoch millis
    start_date: Optional[int] = None
    end_date: Optional[int] = None

    error_message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        """Create Job from Cortex JSON"""
        # Older servers nest the observable under "artifact"
        artifact = data.get("artifact") or {}
        attributes = artifact.get("attributes") or {}
        return cls(
            id=data.get("id") or data.get("_id", ""),
            analyzer_id=data.get("analyzerId") or data.get("analyzerID") or "",
            analyzer_name=data.get("analyzerName") or "",
            status=JobStatus.parse(data.get("status")),
            data_type=data.get("dataType") or attributes.get("dataType") or "",
            data=data.get("data") or artifact.get("data"),
            tlp=data.get("tlp", attributes.get("tlp")),
            pap=data.get("pap"),
            organization=data.get("organization") or "",
            created_by=data.get("createdBy") or "",
            created_at=data.get("createdAt") or data.get("date"),
            start_date=data.get("startDate"),
            end_date=data.get("endDate"),
            error_message=data.get("errorMessage"),
        )


@dataclass(frozen=True)
class Taxonomy:
    """A normalized verdict: namespace:predicate=value at a severity level"""

    predicate: str
    namespace: str
    value: Any
    level: TaxonomyLevel = TaxonomyLevel.INFO

    def __str__(self) -> str:
        return f'{self.namespace}:{self.predicate}="{self.value}"'

    @classmethod
    def from_dict(cls, data: dict) -> "Taxonomy":
        try:
            level = TaxonomyLevel(str(data.get("level", "info")).lower())
        except ValueError:
            level = TaxonomyLevel.INFO
        return cls(
            predicate=data.get("predicate", ""),
            namespace=data.get("namespace", ""),
            value=data.get("value"),
            level=level,
        )


@dataclass(frozen=True)
class Artifact:
    """Sub-artifact extracted from a report"""

    data_type: str
    data: str
    tlp: Optional[int] = None
    message: Optional[str] = None
    tags: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "Artifact":
        # Cortex 2 uses {dataType, data}; Cortex 1 nests under attributes
        attributes = data.get("attributes") or {}
        return cls(
            data_type=data.get("dataType") or data.get("type") or attributes.get("dataType", ""),
            data=data.get("data") or data.get("value") or "",
            tlp=data.get("tlp", attributes.get("tlp")),
            message=data.get("message"),
            tags=tuple(data.get("tags") or ()),
        )


@dataclass(frozen=True)
class Report:
    """Result of a finished job. Immutable."""

    job: Job
    success: bool
    full: Any = None
    taxonomies: Tuple[Taxonomy, ...] = ()
    artifacts: Tuple[Artifact, ...] = ()
    error_message: Optional[str] = None
    summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def job_id(self) -> str:
        return self.job.id

    @property
    def analyzer_id(self) -> str:
        return self.job.analyzer_id

    def max_level(self) -> Optional[TaxonomyLevel]:
        """Most severe taxonomy level, None if there are no taxonomies"""
        if not self.taxonomies:
            return None
        return max((t.level for t in self.taxonomies), key=lambda level: level.rank)

    def extract_artifacts(self) -> List[Artifact]:
        """Artifacts returned by the analyzer, else those found in the full report"""
        if self.artifacts:
            return list(self.artifacts)
        if self.full is None:
            return []
        from ..api.extraction import extract_from_report
        return extract_from_report(self.full)

    @classmethod
    def from_dict(cls, data: dict) -> "Report":
        """Create Report from GET /api/job/{id}/report JSON"""
        body = data.get("report") or {}
        summary = body.get("summary") or {}
        return cls(
            job=Job.from_dict(data),
            success=bool(body.get("success", False)),
            full=body.get("full"),
            taxonomies=tuple(Taxonomy.from_dict(t) for t in summary.get("taxonomies") or ()),
            artifacts=tuple(Artifact.from_dict(a) for a in body.get("artifacts") or ()),
            error_message=body.get("errorMessage"),
            summary=summary,
        )
