from __future__ import annotations

import base64
from types import SimpleNamespace

import pytest
from google.genai import errors as genai_errors

from visual_director.config import DirectorSettings
from visual_director.errors import GenerationFailure
from visual_director.executor import (
    NO_IMAGE_PLACEHOLDER,
    GenerationExecutor,
    GenerationResult,
    build_generation_parts,
    extract_result,
    status_code_of,
)
from visual_director.inputs import ReferenceImage, ReferenceImageSet
from visual_director.models.capabilities import CapabilityCache
from visual_director.models.selectors import CapabilityResolver
from visual_director.plans import DirectorPlan
from visual_director.runs.events import EventWriter

PRO = "gemini-3-pro-image-preview"
FLASH = "gemini-2.5-flash-image"


class _StatusError(RuntimeError):
    def __init__(self, code: int) -> None:
        super().__init__(f"status {code}")
        self.code = code


def _image_response(data: bytes = b"png-bytes", text: str | None = None, mime_type: str = "image/png"):
    parts = [SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))]
    if text is not None:
        parts.append(SimpleNamespace(text=text, inline_data=None))
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))], text=text)


class _ImageBackend:
    name = "fake"

    def __init__(self, outcomes: dict[str, list], models=None) -> None:
        self.outcomes = outcomes
        self.models = models
        self.calls: list[tuple] = []
        self.list_calls = 0

    def list_models(self):
        self.list_calls += 1
        if self.models is None:
            raise PermissionError("listing forbidden")
        return list(self.models)

    def generate_content(self, model, parts, config):
        self.calls.append((model, list(parts), config))
        outcome = self.outcomes[model].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _plan(**overrides) -> DirectorPlan:
    payload = {"mode": "GENERATE", "final_prompt_text": "A portrait", "model_suggestion": PRO}
    payload.update(overrides)
    return DirectorPlan.from_payload(payload)


def _executor(backend: _ImageBackend, settings: DirectorSettings | None = None) -> GenerationExecutor:
    events = EventWriter(None, "run-test")
    resolver = CapabilityResolver(backend.list_models, cache=CapabilityCache(), events=events)
    return GenerationExecutor(backend, resolver, settings or DirectorSettings(), events=events)


def test_successful_generation_returns_data_url() -> None:
    backend = _ImageBackend({PRO: [_image_response(b"abc")]})

    result = _executor(backend).execute(_plan(), ReferenceImageSet())

    assert result.image_url == "data:image/png;base64," + base64.b64encode(b"abc").decode("ascii")
    assert result.text is None
    assert result.model == PRO
    assert result.used_fallback is False
    config = backend.calls[0][2]
    assert config.image_size == "1K"
    assert config.aspect_ratio == "1:1"


def test_recoverable_status_retries_once_with_fallback() -> None:
    backend = _ImageBackend({PRO: [_StatusError(404)], FLASH: [_image_response(b"flash")]})
    executor = _executor(backend)

    result = executor.execute(_plan(image_config={"aspectRatio": "16:9", "imageSize": "4K"}), ReferenceImageSet())

    assert [call[0] for call in backend.calls] == [PRO, FLASH]
    assert result.model == FLASH
    assert result.used_fallback is True
    assert result.image_bytes() == b"flash"
    pro_config, flash_config = backend.calls[0][2], backend.calls[1][2]
    assert pro_config.image_size == "4K"
    assert flash_config.image_size is None
    assert flash_config.aspect_ratio == "16:9"
    assert backend.calls[0][1] == backend.calls[1][1]
    assert "generation_fallback" in executor.events.types()


@pytest.mark.parametrize("status", [403, 404, 429])
def test_each_recoverable_status_triggers_fallback(status: int) -> None:
    backend = _ImageBackend({PRO: [_StatusError(status)], FLASH: [_image_response()]})

    assert _executor(backend).execute(_plan(), ReferenceImageSet()).used_fallback is True


def test_unrecoverable_status_fails_without_retry() -> None:
    backend = _ImageBackend({PRO: [_StatusError(500)], FLASH: [_image_response()]})

    with pytest.raises(GenerationFailure) as excinfo:
        _executor(backend).execute(_plan(), ReferenceImageSet())

    assert [call[0] for call in backend.calls] == [PRO]
    assert excinfo.value.status == 500
    assert excinfo.value.model == PRO


def test_error_without_status_fails_without_retry() -> None:
    backend = _ImageBackend({PRO: [ValueError("bad input")], FLASH: [_image_response()]})

    with pytest.raises(GenerationFailure, match="bad input"):
        _executor(backend).execute(_plan(), ReferenceImageSet())
    assert len(backend.calls) == 1


def test_no_retry_when_already_on_fallback() -> None:
    backend = _ImageBackend({FLASH: [_StatusError(429), _image_response()]})

    with pytest.raises(GenerationFailure):
        _executor(backend).execute(_plan(model_suggestion=FLASH), ReferenceImageSet())
    assert [call[0] for call in backend.calls] == [FLASH]


def test_fallback_failure_wraps_retry_error() -> None:
    backend = _ImageBackend({PRO: [_StatusError(403)], FLASH: [_StatusError(503)]})

    with pytest.raises(GenerationFailure, match="Generation failed with fallback. Details: status 503") as excinfo:
        _executor(backend).execute(_plan(), ReferenceImageSet())

    assert excinfo.value.status == 503
    assert excinfo.value.model == FLASH
    assert isinstance(excinfo.value.__cause__, _StatusError)


def test_configured_retry_statuses_extend_policy() -> None:
    settings = DirectorSettings(retry_statuses=frozenset({403, 404, 429, 503}))
    backend = _ImageBackend({PRO: [_StatusError(503)], FLASH: [_image_response()]})

    assert _executor(backend, settings).execute(_plan(), ReferenceImageSet()).used_fallback is True


def test_google_client_error_status_is_recognised() -> None:
    error = genai_errors.ClientError(404, {"error": {"code": 404, "message": "not found", "status": "NOT_FOUND"}})
    backend = _ImageBackend({PRO: [error], FLASH: [_image_response()]})

    assert status_code_of(error) == 404
    assert _executor(backend).execute(_plan(), ReferenceImageSet()).model == FLASH


def test_resolved_downgrade_omits_image_size() -> None:
    backend = _ImageBackend({FLASH: [_image_response()]}, models=["models/gemini-2.5-flash-image"])
    executor = _executor(backend)

    assert executor.resolver.resolve(PRO) == FLASH
    result = executor.execute(_plan(), ReferenceImageSet())

    assert result.model == FLASH
    assert result.used_fallback is False
    config = backend.calls[0][2]
    assert config.image_size is None
    assert "imageSize" not in config.to_dict()["imageConfig"]
    assert backend.list_calls == 1


def test_blocked_plan_is_refused_without_remote_call() -> None:
    backend = _ImageBackend({})
    plan = DirectorPlan.from_payload({"mode": "BLOCKED", "block_reason": "Not allowed."})

    with pytest.raises(GenerationFailure, match="Not allowed."):
        _executor(backend).execute(plan, ReferenceImageSet())
    assert backend.calls == []


def test_parts_include_negative_instructions_and_references_in_order() -> None:
    images = ReferenceImageSet()
    face = ReferenceImage("image/png", "ZmFjZQ==", "face")
    body = ReferenceImage("image/png", "Ym9keQ==", "body")
    style = ReferenceImage("image/jpeg", "c3R5bGU=", "style")
    source = ReferenceImage("image/png", "aW5wdXQ=", "input")
    images.add("face", [face])
    images.add("body", [body])
    images.add("style", [style])
    images.set_input_image(source)

    edit_parts = build_generation_parts(_plan(mode="EDIT", negative_instructions=["Blur", "Extra fingers"]), images)
    generate_parts = build_generation_parts(_plan(), images)

    assert [part.role for part in edit_parts] == ["prompt", "negative_instructions", "input_image", "face", "body", "style"]
    assert edit_parts[1].text == "\n\nNEGATIVE INSTRUCTIONS (Avoid these): Blur, Extra fingers"
    assert [part.role for part in generate_parts] == ["prompt", "face", "body", "style"]


def test_extraction_prefers_image_over_text() -> None:
    result = extract_result(_image_response(b"img", text="Here is your image", mime_type="image/jpeg"))

    assert result.image_url is not None and result.image_url.startswith("data:image/jpeg;base64,")
    assert result.text is None


def test_extraction_falls_back_to_text_then_placeholder() -> None:
    text_only = SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=[SimpleNamespace(text="Sorry", inline_data=None)]))],
        text="Sorry",
    )
    empty = SimpleNamespace(candidates=[], text=None)

    assert extract_result(text_only).text == "Sorry"
    assert extract_result(empty).text == NO_IMAGE_PLACEHOLDER


def test_generation_result_requires_exactly_one_field() -> None:
    with pytest.raises(ValueError):
        GenerationResult()
    with pytest.raises(ValueError):
        GenerationResult(image_url="data:image/png;base64,AA==", text="both")
