"""Entry points used by callers that need generated media."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Mapping, Optional, Union

import httpx
from typing_extensions import assert_never

from ..config import PollConfig, get_settings
from ..errors import ValidationError
from ..models.schemas import Artifact, GenerationMode, GenerationRequest
from .interpreters import AsyncJobInterpreter, ResponseInterpreter, SyncResponseInterpreter
from .job_poller import Clock, JobPoller, Sleep
from .request_builder import build_generation_request

RequestLike = Union[GenerationRequest, Mapping[str, Any]]


class GenerationClient:
    """Runs generation calls against the remote service in either completion mode.

    The instance only holds configuration and an optional shared
    ``httpx.AsyncClient``; everything tied to a single job lives inside the
    call, so one client can serve concurrent generations.
    """

    def __init__(
        self,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        host: Optional[str] = None,
        poll_config: Optional[PollConfig] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        timeout: Optional[float] = None,
    ) -> None:
        self._http_client = http_client
        self._host = host
        self._poll_config = poll_config or PollConfig.from_settings()
        self._clock = clock
        self._sleep = sleep
        self._timeout = timeout if timeout is not None else get_settings().http_timeout

    @property
    def poll_config(self) -> PollConfig:
        return self._poll_config

    def _interpreter_for(
        self, mode: GenerationMode, cancel_event: Optional[asyncio.Event]
    ) -> ResponseInterpreter:
        if mode is GenerationMode.SYNC:
            return SyncResponseInterpreter()
        if mode is GenerationMode.ASYNC:
            return AsyncJobInterpreter(
                lambda client: JobPoller(
                    client,
                    config=self._poll_config,
                    host=self._host,
                    clock=self._clock,
                    sleep=self._sleep,
                    cancel_event=cancel_event,
                )
            )
        assert_never(mode)

    async def generate(
        self,
        endpoint: str,
        request: RequestLike,
        mode: Union[GenerationMode, str] = GenerationMode.SYNC,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Artifact:
        """Generate media at ``endpoint`` and return the finished artifact.

        Raises a :class:`~mediagen.errors.GenerationError` subclass on failure.
        """

        try:
            mode = GenerationMode(mode)
        except ValueError as exc:
            raise ValidationError(f"unknown generation mode {mode!r}") from exc
        prepared = build_generation_request(endpoint, request, mode, host=self._host)
        interpreter = self._interpreter_for(mode, cancel_event)

        if self._http_client is not None:
            return await interpreter.interpret(self._http_client, prepared)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await interpreter.interpret(client, prepared)


async def send_generation_request(endpoint: str, params: RequestLike, **client_options: Any) -> Artifact:
    """One-shot synchronous generation."""

    return await GenerationClient(**client_options).generate(endpoint, params, GenerationMode.SYNC)


async def send_async_generation_request(
    endpoint: str,
    params: RequestLike,
    *,
    cancel_event: Optional[asyncio.Event] = None,
    **client_options: Any,
) -> Artifact:
    """Submit an asynchronous job and poll it to completion."""

    return await GenerationClient(**client_options).generate(
        endpoint, params, GenerationMode.ASYNC, cancel_event=cancel_event
    )
