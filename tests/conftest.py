"""Shared fixtures for cortexclient tests."""

import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional

import pytest

from cortexclient.api.base import JobService
from cortexclient.core.config import CortexConfig
from cortexclient.core.exceptions import (
    CatalogError,
    JobCancelledError,
    JobFailedError,
    JobTimeoutError,
)
from cortexclient.models import (
    AnalyzerDescriptor,
    FileStream,
    Job,
    JobStatus,
    Report,
    Taxonomy,
    TaxonomyLevel,
)


@dataclass
class Behavior:
    """How one fake analyzer behaves"""

    delay: float = 0.0  # Time the remote job takes
    submit_error: Optional[Exception] = None
    fail_job: bool = False
    level: TaxonomyLevel = TaxonomyLevel.SAFE


class FakeJobService(JobService):
    """
    In-memory JobService.

    Counts calls per analyzer, records the file bytes each submission read,
    and simulates slow jobs by sleeping in short slices (so cancel and
    timeout are observed the way the HTTP client observes them).
    """

    SLICE = 0.01

    def __init__(
        self,
        analyzers: List[AnalyzerDescriptor],
        behaviors: Optional[Dict[str, Behavior]] = None,
        catalog_error: Optional[Exception] = None,
    ):
        self.analyzers = list(analyzers)
        self.behaviors = behaviors or {}
        self.catalog_error = catalog_error

        self._lock = threading.Lock()
        self.list_calls = 0
        self.submit_calls: Dict[str, int] = defaultdict(int)
        self.file_bytes: Dict[str, bytes] = {}
        self.active = 0
        self.max_active = 0

    def behavior(self, analyzer_id: str) -> Behavior:
        return self.behaviors.get(analyzer_id) or Behavior()

    @property
    def total_submits(self) -> int:
        with self._lock:
            return sum(self.submit_calls.values())

    def list_analyzers(self, data_type: str = "*") -> List[AnalyzerDescriptor]:
        with self._lock:
            self.list_calls += 1
        if self.catalog_error is not None:
            raise self.catalog_error
        if data_type == "*":
            return list(self.analyzers)
        return [a for a in self.analyzers if data_type in a.data_types]

    def get_analyzer(self, analyzer_id: str) -> AnalyzerDescriptor:
        for analyzer in self.analyzers:
            if analyzer.id == analyzer_id:
                return analyzer
        raise CatalogError(f"analyzer {analyzer_id} not found")

    def submit(self, analyzer_id: str, observable) -> Job:
        with self._lock:
            self.submit_calls[analyzer_id] += 1
            count = self.submit_calls[analyzer_id]

        behavior = self.behavior(analyzer_id)
        if behavior.submit_error is not None:
            raise behavior.submit_error

        if isinstance(observable, FileStream):
            chunks = []
            while True:
                chunk = observable.reader.read(8192)
                if not chunk:
                    break
                chunks.append(chunk)
            with self._lock:
                self.file_bytes[analyzer_id] = b"".join(chunks)

        return Job(id=f"job-{analyzer_id}-{count}", analyzer_id=analyzer_id, data_type=observable.kind())

    def await_completion(self, job: Job, timeout: float, cancel: Optional[threading.Event] = None) -> Job:
        behavior = self.behavior(job.analyzer_id)
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            start = time.monotonic()
            while time.monotonic() - start < behavior.delay:
                if cancel is not None and cancel.is_set():
                    raise JobCancelledError("job wait cancelled", job_id=job.id)
                if time.monotonic() - start >= timeout:
                    raise JobTimeoutError(timeout, job_id=job.id)
                time.sleep(self.SLICE)
        finally:
            with self._lock:
                self.active -= 1

        if behavior.fail_job:
            raise JobFailedError("analyzer crashed", error_type="JobFailure", job_id=job.id)

        job.status = JobStatus.SUCCESS
        return job

    def fetch_report(self, job: Job) -> Report:
        behavior = self.behavior(job.analyzer_id)
        return Report(
            job=job,
            success=True,
            full={"analyzer": job.analyzer_id},
            taxonomies=(Taxonomy("Score", "Fake", 1, behavior.level),),
        )


def make_analyzer(analyzer_id: str, *data_types: str) -> AnalyzerDescriptor:
    return AnalyzerDescriptor(id=analyzer_id, name=analyzer_id.title(), data_types=tuple(data_types))


@pytest.fixture
def config():
    """Config with small fan-out buffers and short waits."""
    return CortexConfig(
        url="http://cortex.test:9001",
        api_key="test-key",
        timeout=5.0,
        wait_slice=0.05,
        chunk_size=4096,
        max_buffered_chunks=4,
    )


@pytest.fixture
def ip_analyzers():
    return [
        make_analyzer("abuseipdb", "ip"),
        make_analyzer("shodan", "ip", "domain"),
        make_analyzer("maxmind", "ip"),
    ]


@pytest.fixture
def file_analyzers():
    return [make_analyzer(f"filescan_{i}", "file") for i in range(5)]
