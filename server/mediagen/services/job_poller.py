"""Fixed-interval poller for asynchronous generation jobs."""
from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

from ..config import PollConfig
from ..errors import ConnectionFailure, GenerationCancelled, PollTimeoutError, TransportError
from ..models.schemas import Artifact, Failed, InProgress, JobStatus, SubmittedJob, Succeeded
from .request_builder import PreparedRequest, build_result_request

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

IN_PROGRESS_STATUS = 202
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class PollState(Enum):
    """Lifecycle states of one asynchronous job."""

    SUBMITTING = "submitting"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


def interpret_poll_response(response: httpx.Response) -> JobStatus:
    """Classify a single ``/results/{id}`` response."""

    if response.status_code == IN_PROGRESS_STATUS:
        return InProgress()
    if not response.is_success:
        return Failed(status_code=response.status_code, detail=response.text)
    content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
    return Succeeded(artifact=response.content, content_type=content_type)


async def send_prepared(
    client: httpx.AsyncClient, prepared: PreparedRequest, *, job_id: Optional[str] = None
) -> httpx.Response:
    """Issue a prepared call on ``client``; network-level failures become :class:`ConnectionFailure`."""

    try:
        return await client.request(
            prepared.method,
            prepared.url,
            headers=prepared.headers,
            data=prepared.data or None,
            files=prepared.files or None,
        )
    except httpx.TimeoutException as exc:
        logger.warning("%s %s timed out: %s", prepared.method, prepared.url, exc)
        raise ConnectionFailure(
            f"{prepared.method} {prepared.url} timed out", timed_out=True, job_id=job_id
        ) from exc
    except httpx.HTTPError as exc:
        logger.warning("%s %s failed: %s", prepared.method, prepared.url, exc)
        raise ConnectionFailure(
            f"{prepared.method} {prepared.url} failed: {exc}", job_id=job_id
        ) from exc


class JobPoller:
    """Polls a submitted job until it succeeds, fails, times out or is cancelled.

    ``clock`` and ``sleep`` are injectable so the deadline arithmetic can be
    driven deterministically; an optional ``cancel_event`` interrupts the wait
    between polls.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        config: Optional[PollConfig] = None,
        host: Optional[str] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        self._client = client
        self._config = config or PollConfig.from_settings()
        self._host = host
        self._clock = clock
        self._sleep = sleep
        self._cancel_event = cancel_event
        self.state = PollState.SUBMITTING
        self.poll_count = 0

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def cancelled(self) -> bool:
        return self._cancelled()

    def _cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    async def _wait(self, seconds: float) -> bool:
        """Sleep for ``seconds``; return False if cancellation interrupted the wait."""

        if self._cancel_event is None:
            await self._sleep(seconds)
            return True

        sleeper = asyncio.ensure_future(self._sleep(seconds))
        watcher = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, watcher):
                if not task.done():
                    task.cancel()
        if watcher in done:
            return False
        sleeper.result()
        return True

    async def poll(self, job: SubmittedJob) -> Artifact:
        """Run the polling loop for ``job`` and return its artifact."""

        self.state = PollState.POLLING
        timeout = self._config.timeout_seconds
        interval = self._config.poll_interval_seconds

        while True:
            if self._cancelled():
                self.state = PollState.CANCELLED
                logger.warning("Job %s cancelled before poll %d", job.job_id, self.poll_count + 1)
                raise GenerationCancelled(job.job_id)

            prepared = build_result_request(job.job_id, host=self._host)
            self.poll_count += 1
            logger.debug("Polling results at %s (attempt %d)", prepared.url, self.poll_count)
            try:
                response = await send_prepared(self._client, prepared, job_id=job.job_id)
            except ConnectionFailure:
                self.state = PollState.FAILED
                raise
            status = interpret_poll_response(response)

            if isinstance(status, Succeeded):
                self.state = PollState.SUCCEEDED
                logger.info(
                    "Job %s finished after %d poll(s) (%s, %d bytes)",
                    job.job_id,
                    self.poll_count,
                    status.content_type,
                    len(status.artifact),
                )
                return Artifact(content=status.artifact, content_type=status.content_type, job_id=job.job_id)

            if isinstance(status, Failed):
                self.state = PollState.FAILED
                raise TransportError(status.status_code, status.detail, job_id=job.job_id)

            # still in progress: the deadline is checked before committing to another wait
            elapsed = self._clock() - job.submitted_at
            if elapsed >= timeout:
                self.state = PollState.TIMED_OUT
                logger.warning("Job %s still running after %.1fs; giving up", job.job_id, elapsed)
                raise PollTimeoutError(job.job_id, timeout, elapsed)

            if not await self._wait(interval):
                self.state = PollState.CANCELLED
                logger.warning("Job %s cancelled while waiting between polls", job.job_id)
                raise GenerationCancelled(job.job_id)
