"""Known Gemini models and their capabilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from .tiers import Tier, TierClassifier, accepts_image_size_by_name, classify_tier


@dataclass(frozen=True)
class ModelSpec:
    name: str
    tier: Tier
    capabilities: tuple[str, ...]
    known: bool = True

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities

    @property
    def accepts_image_size(self) -> bool:
        return self.supports("image_size")


_DEFAULT_MODELS: dict[str, ModelSpec] = {
    "gemini-3-pro-image-preview": ModelSpec(
        name="gemini-3-pro-image-preview",
        tier=Tier.ADVANCED,
        capabilities=("image", "edit", "image_size"),
    ),
    "gemini-2.5-flash-image": ModelSpec(
        name="gemini-2.5-flash-image",
        tier=Tier.BASE,
        capabilities=("image", "edit"),
    ),
    "gemini-2.5-flash-image-preview": ModelSpec(
        name="gemini-2.5-flash-image-preview",
        tier=Tier.ADVANCED,
        capabilities=("image", "edit"),
    ),
    "gemini-2.5-flash": ModelSpec(
        name="gemini-2.5-flash",
        tier=Tier.BASE,
        capabilities=("text", "vision", "structured"),
    ),
}


class ModelRegistry:
    def __init__(
        self,
        models: Mapping[str, ModelSpec] | None = None,
        classifier: TierClassifier = classify_tier,
    ) -> None:
        self._models = dict(models) if models else dict(_DEFAULT_MODELS)
        self.classifier = classifier

    def get(self, name: str) -> ModelSpec | None:
        return self._models.get(name)

    def list(self) -> Iterable[ModelSpec]:
        return self._models.values()

    def describe(self, name: str) -> ModelSpec:
        """Return the registered spec, or one inferred from the identifier."""
        model = self.get(name)
        if model:
            return model
        capabilities: tuple[str, ...] = ("image",)
        if accepts_image_size_by_name(name):
            capabilities = ("image", "image_size")
        return ModelSpec(name=name, tier=self.classifier(name), capabilities=capabilities, known=False)

    def tier_of(self, name: str) -> Tier:
        return self.describe(name).tier
