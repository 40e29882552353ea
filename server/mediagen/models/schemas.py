"""Typed payloads shared by the request builder, the poller and the HTTP surface."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

BINARY_FIELDS = ("image", "mask")


class GenerationMode(str, Enum):
    """Completion mode requested from the remote service."""

    SYNC = "sync"
    ASYNC = "async"


class GenerationRequest(BaseModel):
    """A single generation call: a prompt, optional image/mask inputs and free-form parameters.

    Any keyword besides the declared fields is kept as an extra parameter and
    forwarded verbatim as a form field (``output_format``, ``seed``, ...).
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    prompt: str = Field(..., description="Text prompt driving the generation")
    image: Optional[bytes] = Field(default=None, description="Optional input image")
    mask: Optional[bytes] = Field(default=None, description="Optional inpainting mask")

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be empty")
        return value

    @property
    def parameters(self) -> Dict[str, Any]:
        """Extra parameters in the order they were supplied."""

        return dict(self.model_extra or {})


class SubmissionReceipt(BaseModel):
    """Body returned by the service when it accepts an asynchronous job."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Opaque job identifier")


class GenerationFailure(BaseModel):
    """Error payload returned by the HTTP surface."""

    error: str = Field(..., description="Failure classification")
    message: str
    upstream_status: Optional[int] = None
    job_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Artifact:
    """Finished media returned by either completion mode."""

    content: bytes
    content_type: str
    job_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SubmittedJob:
    """A job the service accepted; ``submitted_at`` is a reading of the poller's clock."""

    job_id: str
    submitted_at: float


@dataclass(frozen=True, slots=True)
class InProgress:
    pass


@dataclass(frozen=True, slots=True)
class Succeeded:
    artifact: bytes
    content_type: str


@dataclass(frozen=True, slots=True)
class Failed:
    status_code: int
    detail: str


JobStatus = Union[InProgress, Succeeded, Failed]
