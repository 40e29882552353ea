from __future__ import annotations

import httpx
import pydantic
import pytest

from mediagen.errors import ValidationError
from mediagen.models.schemas import GenerationMode, GenerationRequest
from mediagen.services.request_builder import (
    PreparedRequest,
    build_generation_request,
    build_result_request,
)


def _encoded_body(prepared: PreparedRequest) -> bytes:
    # pin the multipart boundary; httpx otherwise draws a random one per request
    headers = {**prepared.headers, "Content-Type": "multipart/form-data; boundary=mediagen-test"}
    request = httpx.Request(
        prepared.method, prepared.url, headers=headers, data=prepared.data, files=prepared.files
    )
    return request.read()


def test_missing_prompt_is_rejected(host: str) -> None:
    with pytest.raises(ValidationError, match="prompt"):
        build_generation_request("/stable-image/generate/core", {"seed": 1}, GenerationMode.SYNC, host=host)


@pytest.mark.parametrize("prompt", ["", "   "])
def test_blank_prompt_is_rejected(host: str, prompt: str) -> None:
    with pytest.raises(ValidationError):
        build_generation_request("/stable-image/generate/core", {"prompt": prompt}, GenerationMode.ASYNC, host=host)


def test_accept_header_follows_mode(host: str) -> None:
    sync = build_generation_request("/a", {"prompt": "x"}, GenerationMode.SYNC, host=host)
    deferred = build_generation_request("/a", {"prompt": "x"}, GenerationMode.ASYNC, host=host)
    assert sync.headers["Accept"] == "image/*"
    assert deferred.headers["Accept"] == "application/json"


def test_authorization_reads_key_on_every_call(monkeypatch: pytest.MonkeyPatch, host: str) -> None:
    first = build_generation_request("/a", {"prompt": "x"}, GenerationMode.SYNC, host=host)
    monkeypatch.setenv("STABILITY_KEY", "sk-rotated")
    second = build_generation_request("/a", {"prompt": "x"}, GenerationMode.SYNC, host=host)
    assert first.headers["Authorization"] == "Bearer sk-test"
    assert second.headers["Authorization"] == "Bearer sk-rotated"


def test_missing_credential_is_rejected(monkeypatch: pytest.MonkeyPatch, host: str) -> None:
    monkeypatch.delenv("STABILITY_KEY", raising=False)
    with pytest.raises(ValidationError, match="STABILITY_KEY"):
        build_generation_request("/a", {"prompt": "x"}, GenerationMode.SYNC, host=host)


def test_parameters_and_binary_inputs_are_split(host: str, png_bytes: bytes) -> None:
    request = GenerationRequest(
        prompt="a cat",
        image=png_bytes,
        mask=b"mask-bytes",
        strength=0.75,
        seed=42,
        output_format="png",
        upscale=True,
        style_preset=None,
    )
    prepared = build_generation_request("/stable-image/edit/inpaint", request, GenerationMode.SYNC, host=host)

    assert prepared.method == "POST"
    assert prepared.url == f"{host}/stable-image/edit/inpaint"
    assert prepared.data == {
        "prompt": "a cat",
        "strength": "0.75",
        "seed": "42",
        "output_format": "png",
        "upscale": "true",
    }
    assert list(prepared.data) == ["prompt", "strength", "seed", "output_format", "upscale"]
    assert prepared.files == {
        "image": ("image", png_bytes, "image/png"),
        "mask": ("mask", b"mask-bytes", "application/octet-stream"),
    }


def test_request_without_uploads_still_goes_multipart(host: str) -> None:
    prepared = build_generation_request("/a", {"prompt": "x"}, GenerationMode.SYNC, host=host)
    assert prepared.files == {"none": ""}


def test_unsupported_parameter_type_is_rejected(host: str) -> None:
    with pytest.raises(ValidationError, match="nested"):
        build_generation_request("/a", {"prompt": "x", "nested": {"a": 1}}, GenerationMode.SYNC, host=host)


def test_building_twice_is_idempotent(host: str, png_bytes: bytes) -> None:
    request = GenerationRequest(prompt="a red balloon", image=png_bytes, seed=7, aspect_ratio="1:1")
    first = build_generation_request("/stable-image/generate/sd3", request, GenerationMode.ASYNC, host=host)
    second = build_generation_request("/stable-image/generate/sd3", request, GenerationMode.ASYNC, host=host)

    assert first == second
    assert _encoded_body(first) == _encoded_body(second)
    assert b"a red balloon" in _encoded_body(first)


def test_request_is_immutable() -> None:
    request = GenerationRequest(prompt="x")
    with pytest.raises(pydantic.ValidationError):
        request.prompt = "y"  # type: ignore[misc]


def test_result_request_targets_results_endpoint(host: str) -> None:
    prepared = build_result_request("job-42", host=host + "/")
    assert prepared.method == "GET"
    assert prepared.url == f"{host}/results/job-42"
    assert prepared.headers == {"Accept": "*/*", "Authorization": "Bearer sk-test"}


@pytest.mark.parametrize(
    "job_id, segment",
    [
        ("../stable-image/x", "..%2Fstable-image%2Fx"),
        ("a?b#c", "a%3Fb%23c"),
        ("job 1", "job%201"),
    ],
)
def test_result_request_keeps_job_id_inside_results_path(host: str, job_id: str, segment: str) -> None:
    prepared = build_result_request(job_id, host=host)

    assert prepared.url == f"{host}/results/{segment}"
    url = httpx.URL(prepared.url)
    assert url.host == "api.test"
    assert url.raw_path.decode().startswith("/v2beta/results/")
