"""Director plan data model, response schema and normalization."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .config import DEFAULT_ASPECT_RATIO, DEFAULT_IMAGE_SIZE
from .errors import PlanningFailure


class PlanMode(str, Enum):
    EDIT = "EDIT"
    GENERATE = "GENERATE"
    BLOCKED = "BLOCKED"


PLAN_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "mode": {"type": "STRING", "enum": [mode.value for mode in PlanMode]},
        "model_suggestion": {"type": "STRING"},
        "subject_analysis": {
            "type": "STRING",
            "description": "Detailed physical description of the person in the photos.",
        },
        "image_config": {
            "type": "OBJECT",
            "properties": {
                "aspectRatio": {"type": "STRING"},
                "imageSize": {"type": "STRING"},
            },
        },
        "contents_plan": {
            "type": "OBJECT",
            "properties": {
                "order": {"type": "ARRAY", "items": {"type": "STRING"}},
                "notes": {"type": "STRING"},
            },
        },
        "final_prompt_text": {"type": "STRING"},
        "negative_instructions": {"type": "ARRAY", "items": {"type": "STRING"}},
        "masking_recommendation": {
            "type": "OBJECT",
            "properties": {
                "needs_mask": {"type": "BOOLEAN"},
                "mask_targets": {"type": "ARRAY", "items": {"type": "STRING"}},
                "mask_guidance": {"type": "STRING"},
            },
        },
        "quality_checks": {"type": "ARRAY", "items": {"type": "STRING"}},
        "block_reason": {"type": "STRING"},
    },
    "required": ["mode", "final_prompt_text"],
}


@dataclass(frozen=True)
class PlanImageConfig:
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    image_size: str = DEFAULT_IMAGE_SIZE

    def to_dict(self) -> dict[str, str]:
        return {"aspectRatio": self.aspect_ratio, "imageSize": self.image_size}


@dataclass(frozen=True)
class ContentsPlan:
    order: tuple[str, ...] = ()
    notes: str = ""


@dataclass(frozen=True)
class MaskingRecommendation:
    needs_mask: bool = False
    mask_targets: tuple[str, ...] = ()
    mask_guidance: str = ""


@dataclass(frozen=True)
class DirectorPlan:
    mode: PlanMode
    final_prompt_text: str
    model_suggestion: str | None = None
    subject_analysis: str | None = None
    image_config: PlanImageConfig = field(default_factory=PlanImageConfig)
    contents_plan: ContentsPlan = field(default_factory=ContentsPlan)
    negative_instructions: tuple[str, ...] = ()
    masking_recommendation: MaskingRecommendation | None = None
    quality_checks: tuple[str, ...] = ()
    block_reason: str | None = None

    @property
    def blocked(self) -> bool:
        return self.mode is PlanMode.BLOCKED

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, default_model: str | None = None) -> "DirectorPlan":
        """Build a plan from the remote JSON, filling in omitted sections."""
        if not isinstance(payload, Mapping):
            raise PlanningFailure("Director plan must be a JSON object.")
        raw_mode = str(payload.get("mode") or "").strip().upper()
        try:
            mode = PlanMode(raw_mode)
        except ValueError as exc:
            raise PlanningFailure(f"Director plan has an unknown mode: {payload.get('mode')!r}.") from exc
        final_prompt = payload.get("final_prompt_text")
        if not isinstance(final_prompt, str):
            if mode is not PlanMode.BLOCKED:
                raise PlanningFailure("Director plan is missing final_prompt_text.")
            final_prompt = ""

        image_config_raw = payload.get("image_config")
        image_config = PlanImageConfig()
        if isinstance(image_config_raw, Mapping):
            image_config = PlanImageConfig(
                aspect_ratio=_text(image_config_raw.get("aspectRatio")) or DEFAULT_ASPECT_RATIO,
                image_size=_text(image_config_raw.get("imageSize")) or DEFAULT_IMAGE_SIZE,
            )

        contents_raw = payload.get("contents_plan")
        contents_plan = ContentsPlan()
        if isinstance(contents_raw, Mapping):
            contents_plan = ContentsPlan(
                order=_string_tuple(contents_raw.get("order")),
                notes=_text(contents_raw.get("notes")) or "",
            )

        masking_raw = payload.get("masking_recommendation")
        masking = None
        if isinstance(masking_raw, Mapping):
            masking = MaskingRecommendation(
                needs_mask=bool(masking_raw.get("needs_mask")),
                mask_targets=_string_tuple(masking_raw.get("mask_targets")),
                mask_guidance=_text(masking_raw.get("mask_guidance")) or "",
            )

        return cls(
            mode=mode,
            final_prompt_text=final_prompt,
            model_suggestion=_text(payload.get("model_suggestion")) or default_model,
            subject_analysis=_text(payload.get("subject_analysis")),
            image_config=image_config,
            contents_plan=contents_plan,
            negative_instructions=_string_tuple(payload.get("negative_instructions")),
            masking_recommendation=masking,
            quality_checks=_string_tuple(payload.get("quality_checks")),
            block_reason=_text(payload.get("block_reason")),
        )

    @classmethod
    def from_json(cls, text: str | None, *, default_model: str | None = None) -> "DirectorPlan":
        if not text or not text.strip():
            raise PlanningFailure("No response from Director AI.")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PlanningFailure(f"Director plan is not valid JSON: {exc.msg}.") from exc
        return cls.from_payload(payload, default_model=default_model)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "mode": self.mode.value,
            "model_suggestion": self.model_suggestion,
            "image_config": self.image_config.to_dict(),
            "contents_plan": {"order": list(self.contents_plan.order), "notes": self.contents_plan.notes},
            "final_prompt_text": self.final_prompt_text,
            "negative_instructions": list(self.negative_instructions),
            "quality_checks": list(self.quality_checks),
        }
        if self.subject_analysis is not None:
            payload["subject_analysis"] = self.subject_analysis
        if self.masking_recommendation is not None:
            payload["masking_recommendation"] = {
                "needs_mask": self.masking_recommendation.needs_mask,
                "mask_targets": list(self.masking_recommendation.mask_targets),
                "mask_guidance": self.masking_recommendation.mask_guidance,
            }
        if self.block_reason is not None:
            payload["block_reason"] = self.block_reason
        return payload


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _string_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(item) for item in value if item is not None and str(item).strip())
