"""Backend protocol and the neutral request values passed to it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol, Sequence

from ..inputs import ReferenceImage


@dataclass(frozen=True)
class ContentPart:
    text: str | None = None
    image: ReferenceImage | None = None
    role: str = "text"

    @classmethod
    def of_text(cls, text: str, role: str = "text") -> "ContentPart":
        return cls(text=text, role=role)

    @classmethod
    def of_image(cls, image: ReferenceImage, role: str) -> "ContentPart":
        return cls(image=image, role=role)

    def describe(self) -> dict[str, Any]:
        if self.image is not None:
            return {"role": self.role, "mime_type": self.image.mime_type, "name": self.image.name}
        return {"role": self.role, "text_chars": len(self.text or "")}


@dataclass(frozen=True)
class PlanningConfig:
    system_instruction: str
    response_schema: Mapping[str, Any]
    temperature: float
    safety_threshold: str
    response_mime_type: str = "application/json"


@dataclass(frozen=True)
class ImageGenerationConfig:
    aspect_ratio: str
    safety_threshold: str
    image_size: str | None = None

    def to_dict(self) -> dict[str, Any]:
        image_config: dict[str, Any] = {"aspectRatio": self.aspect_ratio}
        if self.image_size:
            image_config["imageSize"] = self.image_size
        return {"imageConfig": image_config, "safetyThreshold": self.safety_threshold}


GenerationConfig = PlanningConfig | ImageGenerationConfig


class DirectorBackend(Protocol):
    name: str

    def list_models(self) -> Iterable[str]:
        ...

    def generate_content(self, model: str, parts: Sequence[ContentPart], config: GenerationConfig) -> Any:
        ...
