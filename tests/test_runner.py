"""
Single-Target Runner Tests

submit -> await -> fetch, with every failure classified and nothing retried.
The JobService is a MagicMock so each step can fail on its own.
"""

import threading
from unittest.mock import MagicMock

import pytest
from loguru import logger

from cortexclient.analysis.runner import Runner, run_single
from cortexclient.api.base import JobService
from cortexclient.core.exceptions import (
    JobCancelledError,
    JobFailedError,
    JobTimeoutError,
    NotFoundError,
    RateLimitedError,
    RemoteError,
    SubmissionError,
)
from cortexclient.models import Inline, Job, JobStatus, Report


IP = Inline("ip", "1.1.1.1")


@pytest.fixture
def service():
    mock = MagicMock(spec=JobService)
    job = Job(id="job-1", analyzer_id="Abuse_1_0")
    done = Job(id="job-1", analyzer_id="Abuse_1_0", status=JobStatus.SUCCESS)
    mock.submit.return_value = job
    mock.await_completion.return_value = done
    mock.fetch_report.return_value = Report(job=done, success=True)
    return mock


class TestRunnerSuccess:

    def test_run_returns_report(self, service, config):
        """Happy path chains the three service calls."""
        report = Runner(service, config).run("Abuse_1_0", IP, timeout=30)

        assert report.success is True
        service.submit.assert_called_once_with("Abuse_1_0", IP)
        job = service.submit.return_value
        service.await_completion.assert_called_once_with(job, 30, cancel=None)
        service.fetch_report.assert_called_once_with(service.await_completion.return_value)

    def test_default_timeout_from_config(self, service, config):
        """Without a timeout the configured wait budget is used."""
        config.timeout = 42.0
        Runner(service, config).run("Abuse_1_0", IP)

        assert service.await_completion.call_args[0][1] == 42.0

    def test_run_single(self, service, config):
        """run_single is a thin wrapper around Runner.run."""
        report = run_single(service, "Abuse_1_0", IP, timeout=10)
        assert report.job_id == "job-1"


class TestRunnerFailures:

    def test_submit_failure_wrapped(self, service, config):
        """Submit errors become SubmissionError carrying the cause."""
        cause = NotFoundError("analyzer not found", status_code=404)
        service.submit.side_effect = cause

        with pytest.raises(SubmissionError) as exc_info:
            Runner(service, config).run("Missing_1_0", IP)

        assert exc_info.value.cause is cause
        assert exc_info.value.analyzer == "Missing_1_0"
        service.await_completion.assert_not_called()

    def test_rate_limit_not_retried(self, service, config):
        """A 429 on submit is raised as is, after a single attempt."""
        service.submit.side_effect = RateLimitedError(retry_after=60)

        with pytest.raises(RateLimitedError) as exc_info:
            Runner(service, config).run("Abuse_1_0", IP)

        assert exc_info.value.retry_after == 60
        assert exc_info.value.analyzer == "Abuse_1_0"
        assert service.submit.call_count == 1

    def test_timeout_carries_context(self, service, config):
        """Timeouts keep their budget and gain analyzer/job context."""
        service.await_completion.side_effect = JobTimeoutError(0.05)

        with pytest.raises(JobTimeoutError) as exc_info:
            Runner(service, config).run("Abuse_1_0", IP, timeout=0.05)

        error = exc_info.value
        assert error.timeout == 0.05
        assert error.analyzer == "Abuse_1_0"
        assert error.job_id == "job-1"
        service.fetch_report.assert_not_called()

    def test_job_failure(self, service, config):
        """A failed remote job surfaces as JobFailedError (a RemoteError)."""
        service.await_completion.side_effect = JobFailedError("boom", error_type="JobFailure")

        with pytest.raises(RemoteError):
            Runner(service, config).run("Abuse_1_0", IP)

    def test_unexpected_wait_error_becomes_remote_error(self, service, config):
        """Non-Cortex errors while waiting are reported as RemoteError."""
        service.await_completion.side_effect = ValueError("bad status")

        with pytest.raises(RemoteError) as exc_info:
            Runner(service, config).run("Abuse_1_0", IP)

        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_report_fetch_failure(self, service, config):
        """Report retrieval errors are RemoteError with the job id."""
        service.fetch_report.side_effect = RemoteError("gone", status_code=500)

        with pytest.raises(RemoteError) as exc_info:
            Runner(service, config).run("Abuse_1_0", IP)

        assert exc_info.value.job_id == "job-1"


class TestRunnerCancel:

    def test_cancelled_before_submit(self, service, config):
        """A set cancel event stops the run before anything is sent."""
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(JobCancelledError):
            Runner(service, config).run("Abuse_1_0", IP, cancel=cancel)

        service.submit.assert_not_called()

    def test_cancel_passed_to_wait(self, service, config):
        """The cancel event reaches await_completion."""
        cancel = threading.Event()
        Runner(service, config).run("Abuse_1_0", IP, timeout=5, cancel=cancel)

        assert service.await_completion.call_args.kwargs["cancel"] is cancel


class TestRunnerLogging:

    def test_records_bound_to_analyzer(self, service, config):
        """Runner log records carry the analyzer id in extra."""
        service.submit.side_effect = ConnectionError("connection reset")
        records = []
        logger.enable("cortexclient")
        handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
        try:
            with pytest.raises(SubmissionError):
                Runner(service, config).run("Abuse_1_0", IP)
        finally:
            logger.remove(handler_id)
            logger.disable("cortexclient")

        warnings = [r for r in records if r["level"].name == "WARNING"]
        assert warnings
        assert all(r["extra"]["analyzer"] == "Abuse_1_0" for r in warnings)
