"""
Single-Target Runner

Runs one observable through one analyzer end to end:
submit -> await completion -> fetch report.

Every failure is terminal. Nothing is retried, a 429 included.
"""

import threading
import time
from typing import Optional

from ..api.base import JobService
from ..core.config import CortexConfig, get_default_config
from ..core.logging import get_analyzer_logger
from ..core.exceptions import (
    CortexError,
    JobCancelledError,
    RateLimitedError,
    RemoteError,
    SubmissionError,
)
from ..models import Observable, Report


class Runner:
    """
    Runs a single analyzer job and classifies its failures.

    Raises (from run()):
        SubmissionError: the job could not be started
        RateLimitedError: the remote answered 429 (submit or wait)
        JobTimeoutError: the job did not finish within timeout
        JobCancelledError: cancel was set before the job finished
        RemoteError: anything else (JobFailedError, NotFoundError, ...)
    """

    def __init__(self, service: JobService, config: Optional[CortexConfig] = None):
        self.service = service
        self.config = config or get_default_config()

    def run(
        self,
        analyzer_id: str,
        observable: Observable,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Report:
        """
        Analyze an observable with one analyzer.

        Args:
            analyzer_id: Analyzer to run
            observable: Inline or FileStream observable
            timeout: Wait budget in seconds (default: config.timeout)
            cancel: Set it to abandon the wait

        Returns:
            The job report
        """
        if timeout is None:
            timeout = self.config.timeout

        if cancel is not None and cancel.is_set():
            raise JobCancelledError("run cancelled before submission", analyzer=analyzer_id)

        log = get_analyzer_logger(analyzer_id)
        start_time = time.time()

        try:
            job = self.service.submit(analyzer_id, observable)
        except RateLimitedError as e:
            raise e.with_context(analyzer=analyzer_id)
        except Exception as e:
            log.warning(f"Failed to run the analyzer {analyzer_id}: {e}")
            raise SubmissionError(
                f"failed to submit {observable.describe()}: {e}",
                cause=e,
                analyzer=analyzer_id,
            ) from e

        log.debug(f"Job {job.id} started on {analyzer_id}, waiting up to {timeout:g}s")

        try:
            finished = self.service.await_completion(job, timeout, cancel=cancel)
        except CortexError as e:
            log.warning(f"Failed to wait for the job {job.id}: {e}")
            raise e.with_context(analyzer=analyzer_id, job_id=job.id)
        except Exception as e:
            log.warning(f"Failed to wait for the job {job.id}: {e}")
            raise RemoteError(str(e), analyzer=analyzer_id, job_id=job.id) from e

        try:
            report = self.service.fetch_report(finished)
        except CortexError as e:
            log.warning(f"Failed to get the job report {finished.id}: {e}")
            raise e.with_context(analyzer=analyzer_id, job_id=finished.id)
        except Exception as e:
            log.warning(f"Failed to get the job report {finished.id}: {e}")
            raise RemoteError(str(e), analyzer=analyzer_id, job_id=finished.id) from e

        log.info(
            f"Analyzer {analyzer_id} finished {observable.describe()} "
            f"in {time.time() - start_time:.1f}s (success={report.success})"
        )
        return report


def run_single(
    service: JobService,
    analyzer_id: str,
    observable: Observable,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> Report:
    """Run one analyzer on one observable and return its report"""
    return Runner(service).run(analyzer_id, observable, timeout, cancel=cancel)
