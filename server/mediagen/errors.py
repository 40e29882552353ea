"""Exception taxonomy surfaced to callers of the generation client."""
from __future__ import annotations

from typing import Optional


class GenerationError(Exception):
    """Base class for every classified generation failure."""


class ValidationError(GenerationError):
    """The request was rejected before any network call was made."""


class TransportError(GenerationError):
    """The remote service answered with a non-success status."""

    def __init__(self, status_code: int, body: str, *, job_id: Optional[str] = None) -> None:
        self.status_code = status_code
        self.body = body
        self.job_id = job_id
        super().__init__(f"HTTP {status_code}: {body}")


class ProtocolError(GenerationError):
    """A success response was missing a field the protocol requires."""

    def __init__(self, message: str, *, body: Optional[str] = None) -> None:
        self.body = body
        super().__init__(message)


class PollTimeoutError(GenerationError):
    """The job was still in progress when the polling deadline elapsed."""

    def __init__(self, job_id: str, timeout_seconds: float, elapsed_seconds: float) -> None:
        self.job_id = job_id
        self.timeout_seconds = timeout_seconds
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            f"Job {job_id} timed out after {elapsed_seconds:.1f}s (limit {timeout_seconds:g}s)"
        )


class ConnectionFailure(GenerationError):
    """The service could not be reached or did not answer in time."""

    def __init__(self, message: str, *, timed_out: bool = False, job_id: Optional[str] = None) -> None:
        self.timed_out = timed_out
        self.job_id = job_id
        super().__init__(message)


class GenerationCancelled(GenerationError):
    """The caller signalled cancellation before submission or while the job was being polled."""

    def __init__(self, job_id: Optional[str] = None) -> None:
        self.job_id = job_id
        if job_id is None:
            super().__init__("Generation cancelled by caller before submission")
        else:
            super().__init__(f"Job {job_id} cancelled by caller")
