"""HTTP endpoint that forwards generation calls to the remote service."""
from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from starlette.datastructures import UploadFile

from ..errors import (
    ConnectionFailure,
    GenerationCancelled,
    GenerationError,
    PollTimeoutError,
    ProtocolError,
    TransportError,
    ValidationError,
)
from ..models.schemas import BINARY_FIELDS, GenerationFailure, GenerationMode
from ..services.image_generation import GenerationClient

router = APIRouter(prefix="/generations", tags=["generations"])

CLIENT_CLOSED_REQUEST = 499
DISCONNECT_CHECK_SECONDS = 1.0


def get_generation_client() -> GenerationClient:
    """Dependency hook; tests override it with a client bound to a mock transport."""

    return GenerationClient()


def _failure(status_code: int, exc: GenerationError, **extra: Any) -> HTTPException:
    detail = GenerationFailure(error=type(exc).__name__, message=str(exc), **extra)
    return HTTPException(status_code=status_code, detail=detail.model_dump(exclude_none=True))


def _to_http_error(exc: GenerationError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return _failure(422, exc)
    if isinstance(exc, TransportError):
        return _failure(502, exc, upstream_status=exc.status_code, job_id=exc.job_id)
    if isinstance(exc, ConnectionFailure):
        return _failure(504 if exc.timed_out else 502, exc, job_id=exc.job_id)
    if isinstance(exc, ProtocolError):
        return _failure(502, exc)
    if isinstance(exc, PollTimeoutError):
        return _failure(504, exc, job_id=exc.job_id)
    if isinstance(exc, GenerationCancelled):
        return _failure(CLIENT_CLOSED_REQUEST, exc, job_id=exc.job_id)
    return _failure(500, exc)


async def _read_form(request: Request) -> Dict[str, Any]:
    form = await request.form()
    params: Dict[str, Any] = {}
    for name, value in form.multi_items():
        if isinstance(value, UploadFile):
            if name in BINARY_FIELDS:
                params[name] = await value.read()
            continue
        params[name] = value
    return params


async def watch_disconnect(
    request: Request, cancel_event: asyncio.Event, interval: float = DISCONNECT_CHECK_SECONDS
) -> None:
    """Set ``cancel_event`` once the HTTP client goes away."""

    while not cancel_event.is_set():
        if await request.is_disconnected():
            cancel_event.set()
            return
        await asyncio.sleep(interval)


@router.post("/{endpoint:path}")
async def create_generation(
    endpoint: str,
    request: Request,
    mode: GenerationMode = Query(default=GenerationMode.SYNC),
    client: GenerationClient = Depends(get_generation_client),
) -> Response:
    """Run one generation and stream the artifact back with its content type."""

    params = await _read_form(request)
    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(watch_disconnect(request, cancel_event))
    try:
        artifact = await client.generate(endpoint, params, mode, cancel_event=cancel_event)
    except GenerationError as exc:
        raise _to_http_error(exc) from exc
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher

    headers = {"X-Job-Id": artifact.job_id} if artifact.job_id else None
    return Response(content=artifact.content, media_type=artifact.content_type, headers=headers)
