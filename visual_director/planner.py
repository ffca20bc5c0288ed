"""Director plan generation."""

from __future__ import annotations

import json
from typing import Any

from .config import DirectorSettings
from .errors import CredentialMissing, PlanningFailure
from .inputs import ReferenceImage, ReferenceImageSet
from .plans import PLAN_RESPONSE_SCHEMA, DirectorPlan
from .prompts import DIRECTOR_SYSTEM_INSTRUCTION
from .providers.base import ContentPart, DirectorBackend, PlanningConfig
from .runs.events import EventWriter

INPUT_IMAGE_MARKER = "\n[INPUT_IMAGE provided for editing]"
FACE_MARKER = "\n[REF_IMAGES_FACE provided - ANALYZE THESE FOR IDENTITY]"
BODY_MARKER = "\n[REF_IMAGES_BODY provided - ANALYZE THESE FOR BODY TYPE]"
STYLE_MARKER = "\n[REF_IMAGES_STYLE provided]"


def build_output_constraints(language: str) -> dict[str, str]:
    return {
        "aspect_ratio": "1:1",
        "resolution": "1K",
        "photorealism_level": "High",
        "language": language,
    }


def build_plan_parts(
    request_text: str,
    images: ReferenceImageSet,
    auxiliary_context: str | None = None,
    *,
    language: str,
) -> list[ContentPart]:
    parts: list[ContentPart] = [ContentPart.of_text(f"USER REQUEST: {request_text}", role="request")]
    if auxiliary_context and auxiliary_context.strip():
        parts.append(
            ContentPart.of_text(
                f"DRIVE_LORA_DATASET: {auxiliary_context.strip()} "
                "(Use this link as high-priority context for identity training/consistency)",
                role="auxiliary_context",
            )
        )
    parts.append(
        ContentPart.of_text(
            f"OUTPUT_CONSTRAINTS: {json.dumps(build_output_constraints(language))}",
            role="output_constraints",
        )
    )
    if images.input_image is not None:
        parts.append(ContentPart.of_text(INPUT_IMAGE_MARKER, role="marker"))
        parts.append(ContentPart.of_image(images.input_image, role="input_image"))
    _extend_labelled(parts, FACE_MARKER, images.face, "face")
    _extend_labelled(parts, BODY_MARKER, images.body, "body")
    _extend_labelled(parts, STYLE_MARKER, images.style, "style")
    return parts


def _extend_labelled(parts: list[ContentPart], marker: str, images: list[ReferenceImage], role: str) -> None:
    if not images:
        return
    parts.append(ContentPart.of_text(marker, role="marker"))
    parts.extend(ContentPart.of_image(image, role=role) for image in images)


class PlanGenerator:
    def __init__(
        self,
        backend: DirectorBackend,
        settings: DirectorSettings | None = None,
        events: EventWriter | None = None,
        system_instruction: str = DIRECTOR_SYSTEM_INSTRUCTION,
    ) -> None:
        self.backend = backend
        self.settings = settings or DirectorSettings()
        self.events = events
        self.system_instruction = system_instruction

    def planning_config(self) -> PlanningConfig:
        return PlanningConfig(
            system_instruction=self.system_instruction,
            response_schema=PLAN_RESPONSE_SCHEMA,
            temperature=self.settings.planner_temperature,
            safety_threshold=self.settings.safety_threshold,
        )

    def create_plan(
        self,
        request_text: str,
        images: ReferenceImageSet,
        auxiliary_context: str | None = None,
    ) -> DirectorPlan:
        parts = build_plan_parts(
            request_text,
            images,
            auxiliary_context,
            language=self.settings.plan_language,
        )
        model = self.settings.planner_model
        self._emit("plan_requested", model=model, parts=[part.describe() for part in parts])
        try:
            response = self.backend.generate_content(model, parts, self.planning_config())
        except CredentialMissing:
            raise
        except Exception as exc:
            self._emit("plan_failed", model=model, error=str(exc))
            raise PlanningFailure(f"Director plan request failed: {exc}") from exc

        try:
            plan = DirectorPlan.from_json(
                _response_text(response),
                default_model=self.settings.image_model,
            )
        except PlanningFailure as exc:
            self._emit("plan_failed", model=model, error=str(exc))
            raise
        self._emit(
            "plan_created",
            model=model,
            mode=plan.mode.value,
            model_suggestion=plan.model_suggestion,
            image_config=plan.image_config.to_dict(),
        )
        return plan

    def _emit(self, event_type: str, **payload: Any) -> None:
        if self.events is not None:
            self.events.emit(event_type, **payload)


def _response_text(response: Any) -> str | None:
    text = getattr(response, "text", None)
    if isinstance(text, str) and text.strip():
        return text
    candidates = getattr(response, "candidates", None) or []
    chunks: list[str] = []
    for candidate in candidates[:1]:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            chunk = getattr(part, "text", None)
            if isinstance(chunk, str):
                chunks.append(chunk)
    joined = "".join(chunks)
    return joined or None
