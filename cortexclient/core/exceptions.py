"""
Cortex Exceptions

Error taxonomy for remote analyzer jobs and multi-analyzer runs.
"""

from typing import Optional


class CortexError(Exception):
    """Base exception for Cortex errors"""

    def __init__(self, message: str, analyzer: str = None, job_id: str = None):
        self.message = message
        self.analyzer = analyzer
        self.job_id = job_id
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.analyzer:
            parts.append(f"analyzer={self.analyzer}")
        if self.job_id:
            parts.append(f"job={self.job_id}")
        return " | ".join(parts)

    def with_context(self, analyzer: str = None, job_id: str = None) -> "CortexError":
        """Attach analyzer/job context (keeps values already set)"""
        if analyzer and not self.analyzer:
            self.analyzer = analyzer
        if job_id and not self.job_id:
            self.job_id = job_id
        self.args = (self._format_message(),)
        return self


class CatalogError(CortexError):
    """Analyzer listing failed, nothing can be dispatched"""
    pass


class SubmissionError(CortexError):
    """Could not start a job"""

    def __init__(self, message: str, cause: Optional[BaseException] = None, **kwargs):
        self.cause = cause
        super().__init__(message, **kwargs)


class JobTimeoutError(CortexError):
    """Job exceeded the caller's wait budget"""

    def __init__(self, timeout: float, message: str = None, **kwargs):
        self.timeout = timeout
        super().__init__(message or f"job passed maximum execution time {timeout:g}s", **kwargs)


class RateLimitedError(CortexError):
    """Remote answered 429. Terminal, never retried."""

    def __init__(self, message: str = "rate limit exceeded", retry_after: float = None, **kwargs):
        self.retry_after = retry_after
        super().__init__(message, **kwargs)


class RemoteError(CortexError):
    """Unexpected remote response"""

    def __init__(
        self,
        message: str,
        error_type: str = None,
        status_code: int = None,
        **kwargs,
    ):
        self.error_type = error_type
        self.status_code = status_code
        super().__init__(message, **kwargs)

    def _format_message(self) -> str:
        msg = super()._format_message()
        if self.error_type:
            msg = f"{self.error_type}: {msg}"
        return msg


class AuthError(RemoteError):
    """Authentication failed (missing or invalid API key)"""
    pass


class NotFoundError(RemoteError):
    """Analyzer or job does not exist"""
    pass


class JobFailedError(RemoteError):
    """Job finished with Failure status"""
    pass


class JobCancelledError(CortexError):
    """Caller cancelled the run before the job finished"""
    pass


class StreamError(CortexError):
    """Upstream read failed while fanning a file out"""

    def __init__(self, message: str, cause: Optional[BaseException] = None, **kwargs):
        self.cause = cause
        super().__init__(message, **kwargs)
