"""
Job Service Interface

The remote operations the analysis engine depends on. CortexClient implements
them over HTTP; tests substitute in-memory doubles.
"""

import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import AnalyzerDescriptor, Job, Observable, Report


class JobService(ABC):
    """
    Abstract remote job client.

    Implementations must be safe to call from several threads at once:
    a multi-analyzer run calls submit/await_completion/fetch_report
    concurrently, one thread per analyzer.
    """

    @abstractmethod
    def list_analyzers(self, data_type: str = "*") -> List[AnalyzerDescriptor]:
        """List analyzers accepting data_type ("*" = all)"""
        pass

    @abstractmethod
    def get_analyzer(self, analyzer_id: str) -> AnalyzerDescriptor:
        """Get one analyzer by id"""
        pass

    @abstractmethod
    def submit(self, analyzer_id: str, observable: Observable) -> Job:
        """Start a job for the observable on the given analyzer"""
        pass

    @abstractmethod
    def await_completion(
        self,
        job: Job,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> Job:
        """
        Block until the job is finished.

        Raises:
            JobTimeoutError: timeout elapsed first
            JobCancelledError: cancel was set first
            JobFailedError: job finished with Failure status
            RateLimitedError: remote answered 429
            RemoteError: any other remote failure
        """
        pass

    @abstractmethod
    def fetch_report(self, job: Job) -> Report:
        """Get the report of a finished job"""
        pass
