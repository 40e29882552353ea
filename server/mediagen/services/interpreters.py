"""Result-interpretation strategies for the two completion modes."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

import httpx
import pydantic

from ..errors import GenerationCancelled, ProtocolError, TransportError
from ..models.schemas import Artifact, SubmissionReceipt, SubmittedJob
from .job_poller import DEFAULT_CONTENT_TYPE, JobPoller, PollState, send_prepared
from .request_builder import PreparedRequest

logger = logging.getLogger(__name__)

PollerFactory = Callable[[httpx.AsyncClient], JobPoller]


class ResponseInterpreter(ABC):
    """Submits a prepared call and turns what comes back into an :class:`Artifact`."""

    @abstractmethod
    async def interpret(self, client: httpx.AsyncClient, prepared: PreparedRequest) -> Artifact:
        ...

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if not response.is_success:
            raise TransportError(response.status_code, response.text)


class SyncResponseInterpreter(ResponseInterpreter):
    """The submission response body is the artifact."""

    async def interpret(self, client: httpx.AsyncClient, prepared: PreparedRequest) -> Artifact:
        logger.info("Submitting synchronous generation to %s", prepared.url)
        response = await send_prepared(client, prepared)
        self._raise_for_status(response)
        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        return Artifact(content=response.content, content_type=content_type)


def extract_job_id(response: httpx.Response) -> str:
    """Pull the job identifier out of an accepted submission."""

    try:
        payload = response.json()
    except ValueError as exc:
        raise ProtocolError("Expected a JSON body with an id", body=response.text) from exc
    if not isinstance(payload, dict):
        raise ProtocolError("Expected a JSON object with an id", body=response.text)
    try:
        job_id = SubmissionReceipt.model_validate(payload).id
    except pydantic.ValidationError as exc:
        raise ProtocolError("Expected id in response", body=response.text) from exc
    if job_id in {".", ".."}:
        raise ProtocolError(f"Job id {job_id!r} is not a usable path segment", body=response.text)
    return job_id


class AsyncJobInterpreter(ResponseInterpreter):
    """The submission yields a job id; the artifact comes from polling it.

    A fresh :class:`JobPoller` is created for every call so concurrent
    generations never share a timer or a poll counter.
    """

    def __init__(self, poller_factory: PollerFactory) -> None:
        self._poller_factory = poller_factory

    async def interpret(self, client: httpx.AsyncClient, prepared: PreparedRequest) -> Artifact:
        poller = self._poller_factory(client)
        if poller.cancelled:
            poller.state = PollState.CANCELLED
            logger.warning("Generation cancelled before submission to %s", prepared.url)
            raise GenerationCancelled()

        submitted_at = poller.clock()

        logger.info("Submitting asynchronous generation to %s", prepared.url)
        response = await send_prepared(client, prepared)
        self._raise_for_status(response)
        job_id = extract_job_id(response)

        logger.info("Generation job %s accepted", job_id)
        return await poller.poll(SubmittedJob(job_id=job_id, submitted_at=submitted_at))
