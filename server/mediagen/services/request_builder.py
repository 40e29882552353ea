"""Turns a generation request into a ready-to-send multipart call."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import quote

import pydantic

from ..config import current_api_key, get_settings
from ..errors import ValidationError
from ..models.schemas import BINARY_FIELDS, GenerationMode, GenerationRequest

ACCEPT_BY_MODE = {
    GenerationMode.SYNC: "image/*",
    GenerationMode.ASYNC: "application/json",
}

FilePart = Tuple[str, bytes, str]


@dataclass(frozen=True)
class PreparedRequest:
    """Everything needed for one HTTP call; building it performs no I/O."""

    method: str
    url: str
    headers: Dict[str, str]
    data: Dict[str, Union[str, bytes]] = field(default_factory=dict)
    files: Dict[str, Union[FilePart, str]] = field(default_factory=dict)


def coerce_request(request: Union[GenerationRequest, Mapping[str, Any]]) -> GenerationRequest:
    """Accept either a built request or a plain parameter mapping."""

    if isinstance(request, GenerationRequest):
        if not isinstance(request.prompt, str) or not request.prompt.strip():
            raise ValidationError("prompt is required and must not be empty")
        return request
    try:
        return GenerationRequest.model_validate(dict(request))
    except pydantic.ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'request'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(f"invalid generation request: {problems}") from exc


def _sniff_mime(blob: bytes) -> str:
    if blob.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if blob.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if blob[:4] == b"RIFF" and blob[8:12] == b"WEBP":
        return "image/webp"
    return "application/octet-stream"


def _form_value(name: str, value: Any) -> Union[str, bytes]:
    # bool first: it is a subclass of int
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, bytes)):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    raise ValidationError(f"parameter {name!r} has unsupported type {type(value).__name__}")


def _join_url(host: str, endpoint: str) -> str:
    return f"{host.rstrip('/')}/{endpoint.lstrip('/')}"


def auth_headers(accept: str) -> Dict[str, str]:
    """Bearer + Accept headers; the key is re-read on every call."""

    api_key = current_api_key()
    if not api_key:
        raise ValidationError("STABILITY_KEY is not set; cannot authenticate with the generation service")
    return {"Accept": accept, "Authorization": f"Bearer {api_key}"}


def build_generation_request(
    endpoint: str,
    request: Union[GenerationRequest, Mapping[str, Any]],
    mode: GenerationMode,
    *,
    host: Optional[str] = None,
) -> PreparedRequest:
    """Serialize ``request`` into the submission call for ``endpoint``.

    The prompt goes first, followed by extra parameters in insertion order;
    ``image`` and ``mask`` travel as file parts only when they are present.
    """

    generation = coerce_request(request)
    if not endpoint or not endpoint.strip():
        raise ValidationError("endpoint must not be empty")

    data: Dict[str, Union[str, bytes]] = {"prompt": generation.prompt}
    for name, value in generation.parameters.items():
        if value is None:
            continue
        data[name] = _form_value(name, value)

    files: Dict[str, Union[FilePart, str]] = {}
    for name in BINARY_FIELDS:
        blob = getattr(generation, name)
        if blob is not None:
            files[name] = (name, blob, _sniff_mime(blob))
    if not files:
        # forces multipart/form-data, which the service requires even without uploads
        files["none"] = ""

    return PreparedRequest(
        method="POST",
        url=_join_url(host or get_settings().stability_host, endpoint),
        headers=auth_headers(ACCEPT_BY_MODE[GenerationMode(mode)]),
        data=data,
        files=files,
    )


def build_result_request(job_id: str, *, host: Optional[str] = None) -> PreparedRequest:
    """Status query for an accepted asynchronous job.

    The id is percent-encoded as a single path segment so a server-issued
    value can never walk out of ``/results/``.
    """

    return PreparedRequest(
        method="GET",
        url=_join_url(host or get_settings().stability_host, f"results/{quote(job_id, safe='')}"),
        headers=auth_headers("*/*"),
    )
