"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .utils import getenv_flag, getenv_float, getenv_int, parse_status_set

DEFAULT_PLANNER_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-3-pro-image-preview"
FALLBACK_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_PLANNER_TEMPERATURE = 0.6
DEFAULT_RETRY_STATUSES = frozenset({403, 404, 429})
DEFAULT_SAFETY_THRESHOLD = "BLOCK_NONE"
DEFAULT_PLAN_LANGUAGE = "pt-BR"
DEFAULT_ASPECT_RATIO = "1:1"
DEFAULT_IMAGE_SIZE = "1K"


@dataclass(frozen=True)
class ReferenceLimits:
    face: int = 5
    body: int = 5
    style: int = 4
    input_image: int = 1


@dataclass(frozen=True)
class DirectorSettings:
    planner_model: str = DEFAULT_PLANNER_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    fallback_model: str = FALLBACK_IMAGE_MODEL
    planner_temperature: float = DEFAULT_PLANNER_TEMPERATURE
    retry_statuses: frozenset[int] = DEFAULT_RETRY_STATUSES
    capability_ttl_s: float | None = None
    safety_threshold: str = DEFAULT_SAFETY_THRESHOLD
    plan_language: str = DEFAULT_PLAN_LANGUAGE
    limits: ReferenceLimits = field(default_factory=ReferenceLimits)
    events_path: Path | None = None
    dryrun: bool = False

    @classmethod
    def from_env(cls) -> "DirectorSettings":
        events_raw = (os.getenv("VISUAL_DIRECTOR_EVENTS") or "").strip()
        defaults = ReferenceLimits()
        return cls(
            planner_model=os.getenv("VISUAL_DIRECTOR_PLANNER_MODEL") or DEFAULT_PLANNER_MODEL,
            image_model=os.getenv("VISUAL_DIRECTOR_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
            fallback_model=os.getenv("VISUAL_DIRECTOR_FALLBACK_MODEL") or FALLBACK_IMAGE_MODEL,
            planner_temperature=getenv_float("VISUAL_DIRECTOR_PLANNER_TEMPERATURE", DEFAULT_PLANNER_TEMPERATURE)
            or 0.0,
            retry_statuses=parse_status_set(os.getenv("VISUAL_DIRECTOR_RETRY_STATUSES"), DEFAULT_RETRY_STATUSES),
            capability_ttl_s=getenv_float("VISUAL_DIRECTOR_CAPABILITY_TTL_S", None),
            safety_threshold=(os.getenv("VISUAL_DIRECTOR_SAFETY_THRESHOLD") or DEFAULT_SAFETY_THRESHOLD).strip().upper(),
            plan_language=os.getenv("VISUAL_DIRECTOR_PLAN_LANGUAGE") or DEFAULT_PLAN_LANGUAGE,
            limits=ReferenceLimits(
                face=getenv_int("VISUAL_DIRECTOR_MAX_FACE", defaults.face) or 0,
                body=getenv_int("VISUAL_DIRECTOR_MAX_BODY", defaults.body) or 0,
                style=getenv_int("VISUAL_DIRECTOR_MAX_STYLE", defaults.style) or 0,
            ),
            events_path=Path(events_raw).expanduser() if events_raw else None,
            dryrun=getenv_flag("VISUAL_DIRECTOR_DRYRUN", False),
        )
