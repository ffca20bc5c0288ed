"""Model tier classification by naming convention."""

from __future__ import annotations

from enum import Enum
from typing import Callable


class Tier(str, Enum):
    BASE = "base"
    ADVANCED = "advanced"


TierClassifier = Callable[[str], Tier]

ADVANCED_MARKERS = ("pro", "preview", "veo")
# Only these markers imply the model takes a resolution (image_size) parameter.
IMAGE_SIZE_MARKERS = ("pro", "veo")


def classify_tier(model: str) -> Tier:
    lowered = str(model or "").lower()
    if any(marker in lowered for marker in ADVANCED_MARKERS):
        return Tier.ADVANCED
    return Tier.BASE


def accepts_image_size_by_name(model: str) -> bool:
    lowered = str(model or "").lower()
    return any(marker in lowered for marker in IMAGE_SIZE_MARKERS)


# Names that fall back to the base image model when not listed for the key.
DOWNGRADE_MARKERS = ("pro", "preview")


def is_downgrade_candidate(model: str) -> bool:
    name = str(model or "")
    return any(marker in name for marker in DOWNGRADE_MARKERS)
