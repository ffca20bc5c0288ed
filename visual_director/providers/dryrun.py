"""Dry-run backend (offline)."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Iterable, Mapping, Sequence

from PIL import Image, ImageDraw, ImageFont

from ..config import DEFAULT_IMAGE_MODEL
from ..models.registry import ModelRegistry
from .base import ContentPart, GenerationConfig, ImageGenerationConfig, PlanningConfig

_RATIO_SIZES = {
    "1:1": (512, 512),
    "3:4": (480, 640),
    "4:3": (640, 480),
    "9:16": (360, 640),
    "16:9": (640, 360),
}


class DryRunStatusError(RuntimeError):
    def __init__(self, code: int, model: str) -> None:
        super().__init__(f"{code} dry-run rejection for model {model}")
        self.code = code


@dataclass
class DryRunBlob:
    data: bytes
    mime_type: str = "image/png"


@dataclass
class DryRunPart:
    text: str | None = None
    inline_data: DryRunBlob | None = None


@dataclass
class DryRunContent:
    parts: list[DryRunPart] = field(default_factory=list)


@dataclass
class DryRunCandidate:
    content: DryRunContent


@dataclass
class DryRunResponse:
    candidates: list[DryRunCandidate]
    text: str | None = None


class DryRunBackend:
    name = "dryrun"

    def __init__(
        self,
        models: Iterable[str] | None = None,
        failures: Mapping[str, int] | None = None,
    ) -> None:
        if models is None:
            models = [f"models/{spec.name}" for spec in ModelRegistry().list()]
        self.models = list(models)
        self.failures = dict(failures or {})
        self.calls: list[tuple[str, GenerationConfig]] = []

    def list_models(self) -> Iterable[str]:
        return list(self.models)

    def generate_content(self, model: str, parts: Sequence[ContentPart], config: GenerationConfig) -> Any:
        self.calls.append((model, config))
        if model in self.failures:
            raise DryRunStatusError(self.failures[model], model)
        if isinstance(config, PlanningConfig):
            return _plan_response(parts)
        return _image_response(parts, config)


def _plan_response(parts: Sequence[ContentPart]) -> DryRunResponse:
    request = ""
    for part in parts:
        if part.role == "request" and part.text:
            request = part.text.split(":", 1)[-1].strip()
            break
    has_input = any(part.role == "input_image" and part.image is not None for part in parts)
    plan = {
        "mode": "EDIT" if has_input else "GENERATE",
        "model_suggestion": DEFAULT_IMAGE_MODEL,
        "subject_analysis": "dryrun subject",
        "image_config": {"aspectRatio": "1:1", "imageSize": "1K"},
        "contents_plan": {"order": ["final_prompt_text", "ref_images_face"], "notes": "dryrun"},
        "final_prompt_text": f"dryrun: {request}",
        "negative_instructions": ["Low quality"],
        "quality_checks": ["Identity preserved"],
    }
    text = json.dumps(plan)
    return DryRunResponse(candidates=[DryRunCandidate(DryRunContent([DryRunPart(text=text)]))], text=text)


def _image_response(parts: Sequence[ContentPart], config: ImageGenerationConfig) -> DryRunResponse:
    prompt = next((part.text for part in parts if part.text), "") or ""
    width, height = _RATIO_SIZES.get(config.aspect_ratio, (512, 512))
    image = Image.new("RGB", (width, height), _color_from_prompt(prompt))
    draw = ImageDraw.Draw(image)
    draw.text((16, 16), f"dryrun\n{prompt[:60]}", fill=(255, 255, 255), font=ImageFont.load_default())
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    blob = DryRunBlob(data=buffer.getvalue())
    content = DryRunContent([DryRunPart(inline_data=blob), DryRunPart(text="dryrun image")])
    return DryRunResponse(candidates=[DryRunCandidate(content)], text="dryrun image")


def _color_from_prompt(prompt: str) -> tuple[int, int, int]:
    digest = hashlib.sha256(prompt.encode("utf-8")).digest()
    return digest[0], digest[1], digest[2]
