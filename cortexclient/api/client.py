"""
Cortex API Client

HTTP/JSON implementation of JobService on top of httpx.

Usage:
    with CortexClient(CortexConfig(url="http://cortex:9001", api_key="...")) as client:
        analyzers = client.list_analyzers("ip")
        job = client.submit(analyzers[0].id, Inline("ip", "8.8.8.8"))
        job = client.await_completion(job, timeout=60)
        report = client.fetch_report(job)
"""

import json
import threading
import time
from concurrent.futures import Future, wait
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from .. import __version__
from ..core.config import CortexConfig, get_default_config
from ..core.exceptions import (
    AuthError,
    JobCancelledError,
    JobFailedError,
    JobTimeoutError,
    NotFoundError,
    RateLimitedError,
    RemoteError,
)
from ..models import (
    AnalyzerDescriptor,
    FileStream,
    Inline,
    Job,
    JobStatus,
    Observable,
    Report,
)
from .auth import APIAuth
from .base import JobService

ANALYZERS_URL = "api/analyzer"
JOBS_URL = "api/job"
USERS_URL = "api/user"

USER_AGENT = f"cortexclient/{__version__}"
MEDIA_TYPE = "application/json"

# Seconds between cancel checks while a waitreport long-poll is in flight
CANCEL_CHECK_INTERVAL = 0.05


@dataclass
class JobsFilter:
    """Filters for GET /api/job"""

    analyzer: Optional[str] = None
    data_type: Optional[str] = None
    data: Optional[str] = None
    start: Optional[int] = None
    limit: Optional[int] = None

    def to_params(self) -> Dict[str, Any]:
        params = {
            "analyzerFilter": self.analyzer,
            "dataTypeFilter": self.data_type,
            "dataFilter": self.data,
            "start": self.start,
            "limit": self.limit,
        }
        return {k: v for k, v in params.items() if v is not None}


def _format_duration(seconds: float) -> str:
    """Cortex duration syntax used by waitreport's atMost"""
    return f"{max(seconds, 0.0):.2f}seconds"


def _check_response(response: httpx.Response) -> None:
    """Raise the exception matching a non-2xx response"""
    status = response.status_code
    if 200 <= status < 300:
        return

    error_type = None
    message = None
    try:
        body = response.json()
        if isinstance(body, dict):
            error_type = body.get("type")
            message = body.get("message")
    except ValueError:
        pass

    if not message:
        message = f"unknown error, status: {status}"

    if status == 401:
        raise AuthError(message, error_type=error_type, status_code=status)
    if status == 404:
        raise NotFoundError(message, error_type=error_type, status_code=status)
    if status == 429:
        retry_after = response.headers.get("Retry-After")
        try:
            retry_after = float(retry_after) if retry_after else None
        except ValueError:
            retry_after = None
        raise RateLimitedError(message, retry_after=retry_after)

    raise RemoteError(message, error_type=error_type, status_code=status)


class CortexClient(JobService):
    """
    Client for the Cortex REST API.

    Thread-safe: httpx.Client keeps a connection pool and may be shared by
    the concurrent tasks of a multi-analyzer run.
    """

    def __init__(
        self,
        config: Optional[CortexConfig] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize client.

        Args:
            config: Client configuration (default: global default config)
            http_client: Pre-built httpx.Client (tests pass one with a MockTransport)
        """
        self.config = config or get_default_config()

        base_url = self.config.url.rstrip("/") + "/"
        auth = APIAuth(self.config.api_key) if self.config.api_key else None
        headers = {"Accept": MEDIA_TYPE, "User-Agent": USER_AGENT}

        if http_client is None:
            http_client = httpx.Client(
                timeout=httpx.Timeout(self.config.http_timeout, connect=self.config.connect_timeout),
                verify=self.config.verify_ssl,
                proxy=self.config.proxy,
            )
        http_client.base_url = base_url
        http_client.headers.update(headers)
        if auth is not None:
            http_client.auth = auth

        self._http = http_client

    def close(self):
        """Close the connection pool."""
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # =========================================================================
    # Transport
    # =========================================================================

    def _request(self, method: str, url: str, timeout: Optional[float] = None, **kwargs) -> Any:
        """
        Send a request and decode the JSON response.

        Raises:
            AuthError / NotFoundError / RateLimitedError / RemoteError
        """
        if self.config.log_requests:
            logger.debug(f"{method} {url} params={kwargs.get('params')}")

        request_kwargs = dict(kwargs)
        if timeout is not None:
            request_kwargs["timeout"] = httpx.Timeout(timeout, connect=self.config.connect_timeout)

        try:
            response = self._http.request(method, url, **request_kwargs)
        except httpx.TimeoutException as e:
            raise RemoteError(f"request timed out: {method} {url}", error_type="TransportTimeout") from e
        except httpx.TransportError as e:
            raise RemoteError(f"request failed: {method} {url}: {e}", error_type="TransportError") from e

        if self.config.log_requests:
            logger.debug(f"Response status code: {response.status_code}, data: {response.text[:500]}")

        _check_response(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(
                f"invalid JSON response from {url}",
                error_type="InvalidResponse",
                status_code=response.status_code,
            ) from e

    # =========================================================================
    # Analyzers
    # =========================================================================

    def list_analyzers(self, data_type: str = "*") -> List[AnalyzerDescriptor]:
        """
        List enabled analyzers.

        Args:
            data_type: Only analyzers accepting this data type ("*" = all)
        """
        url = ANALYZERS_URL if data_type == "*" else f"{ANALYZERS_URL}/type/{data_type}"
        data = self._request("GET", url)
        return [AnalyzerDescriptor.from_dict(a) for a in data or []]

    def get_analyzer(self, analyzer_id: str) -> AnalyzerDescriptor:
        data = self._request("GET", f"{ANALYZERS_URL}/{analyzer_id}")
        return AnalyzerDescriptor.from_dict(data or {})

    def submit(self, analyzer_id: str, observable: Observable) -> Job:
        """
        Run an analyzer on an observable.

        Inline observables are posted as JSON. File observables are sent as
        multipart/form-data: the file streamed from its reader in the
        `attachment` part and the attributes in the `_json` part.
        """
        url = f"{ANALYZERS_URL}/{analyzer_id}/run"

        if isinstance(observable, FileStream):
            files = {
                "attachment": (
                    observable.filename,
                    observable.reader,
                    observable.content_type or "application/octet-stream",
                ),
            }
            data = {"_json": json.dumps(observable.meta())}
            body = self._request("POST", url, files=files, data=data)
        elif isinstance(observable, Inline):
            body = self._request("POST", url, json=observable.to_payload())
        else:
            raise TypeError(f"Unsupported observable: {type(observable).__name__}")

        job = Job.from_dict(body or {})
        if not job.analyzer_id:
            job.analyzer_id = analyzer_id
        logger.debug(f"Submitted {observable.describe()} to {analyzer_id}: job {job.id}")
        return job

    # =========================================================================
    # Jobs
    # =========================================================================

    def list_jobs(self, jobs_filter: Optional[JobsFilter] = None) -> List[Job]:
        params = jobs_filter.to_params() if jobs_filter else None
        data = self._request("GET", JOBS_URL, params=params)
        return [Job.from_dict(j) for j in data or []]

    def get_job(self, job_id: str) -> Job:
        data = self._request("GET", f"{JOBS_URL}/{job_id}")
        return Job.from_dict(data or {})

    def delete_job(self, job_id: str) -> bool:
        """Mark the job as Deleted (data stays in the database)"""
        self._request("DELETE", f"{JOBS_URL}/{job_id}")
        return True

    def wait_report(self, job_id: str, at_most: float) -> Job:
        """
        One long-poll of waitreport: returns once the job is finished or
        at_most seconds have passed server-side, whichever comes first.
        """
        data = self._request(
            "GET",
            f"{JOBS_URL}/{job_id}/waitreport",
            params={"atMost": _format_duration(at_most)},
            # Leave the server room to answer after atMost
            timeout=at_most + self.config.http_timeout,
        )
        return Job.from_dict(data or {"id": job_id})

    def await_completion(
        self,
        job: Job,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> Job:
        """
        Wait for a job to finish, bounded by timeout.

        The wait is split into waitreport slices of at most config.wait_slice
        seconds. With a cancel event each slice runs on a helper thread, so a
        cancel set mid-poll is observed within CANCEL_CHECK_INTERVAL; the
        abandoned poll ends on its own once atMost expires server-side.
        """
        deadline = time.monotonic() + timeout
        current = job

        while True:
            if cancel is not None and cancel.is_set():
                raise JobCancelledError("job wait cancelled", job_id=job.id)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise JobTimeoutError(timeout, job_id=job.id)

            at_most = min(remaining, self.config.wait_slice)
            if cancel is None:
                polled = self.wait_report(job.id, at_most)
            else:
                polled = self._wait_report_cancellable(job.id, at_most, cancel)
            current = _merge_job(current, polled)

            if current.status == JobStatus.SUCCESS:
                return current
            if current.status == JobStatus.FAILURE:
                raise JobFailedError(
                    current.error_message or "job failed",
                    error_type="JobFailure",
                    job_id=job.id,
                )
            if current.status == JobStatus.DELETED:
                raise JobFailedError("job was deleted", error_type="JobDeleted", job_id=job.id)

    def _wait_report_cancellable(self, job_id: str, at_most: float, cancel: threading.Event) -> Job:
        """One waitreport slice that gives up as soon as cancel is set"""
        result: Future = Future()

        def poll():
            try:
                result.set_result(self.wait_report(job_id, at_most))
            except Exception as e:
                result.set_exception(e)

        threading.Thread(target=poll, name="cortex-waitreport", daemon=True).start()

        while True:
            done, _ = wait([result], timeout=CANCEL_CHECK_INTERVAL)
            if done:
                return result.result()
            if cancel.is_set():
                logger.debug(f"Abandoning waitreport of job {job_id}: cancelled")
                raise JobCancelledError("job wait cancelled", job_id=job_id)

    def fetch_report(self, job: Job) -> Report:
        data = self._request("GET", f"{JOBS_URL}/{job.id}/report")
        return Report.from_dict(data or {"id": job.id})

    # =========================================================================
    # Users
    # =========================================================================

    def current_user(self) -> Dict[str, Any]:
        """Get the user owning the API key"""
        return self._request("GET", f"{USERS_URL}/current") or {}


def _merge_job(previous: Job, polled: Job) -> Job:
    """Keep identifiers from the submission when the poll omits them"""
    if not polled.id:
        polled.id = previous.id
    if not polled.analyzer_id:
        polled.analyzer_id = previous.analyzer_id
    if not polled.analyzer_name:
        polled.analyzer_name = previous.analyzer_name
    return polled
