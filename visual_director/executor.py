"""Image generation with call-time fallback."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any

from .config import DEFAULT_ASPECT_RATIO, DEFAULT_IMAGE_SIZE, DirectorSettings
from .errors import CredentialMissing, GenerationFailure
from .inputs import ReferenceImageSet
from .models.registry import ModelRegistry
from .models.selectors import CapabilityResolver
from .plans import DirectorPlan, PlanMode
from .providers.base import ContentPart, DirectorBackend, ImageGenerationConfig
from .runs.events import EventWriter

NO_IMAGE_PLACEHOLDER = "No image generated."


@dataclass(frozen=True)
class GenerationResult:
    image_url: str | None = None
    text: str | None = None
    model: str | None = None
    used_fallback: bool = False

    def __post_init__(self) -> None:
        if (self.image_url is None) == (self.text is None):
            raise ValueError("GenerationResult needs exactly one of image_url or text.")

    @property
    def has_image(self) -> bool:
        return self.image_url is not None

    def image_bytes(self) -> bytes | None:
        if self.image_url is None:
            return None
        _, _, payload = self.image_url.partition(",")
        return base64.b64decode(payload)


def status_code_of(exc: BaseException) -> int | None:
    for attr in ("code", "status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
    return None


def build_generation_parts(plan: DirectorPlan, images: ReferenceImageSet) -> list[ContentPart]:
    parts: list[ContentPart] = [ContentPart.of_text(plan.final_prompt_text, role="prompt")]
    if plan.negative_instructions:
        parts.append(
            ContentPart.of_text(
                f"\n\nNEGATIVE INSTRUCTIONS (Avoid these): {', '.join(plan.negative_instructions)}",
                role="negative_instructions",
            )
        )
    if plan.mode is PlanMode.EDIT and images.input_image is not None:
        parts.append(ContentPart.of_image(images.input_image, role="input_image"))
    parts.extend(ContentPart.of_image(image, role="face") for image in images.face)
    parts.extend(ContentPart.of_image(image, role="body") for image in images.body)
    parts.extend(ContentPart.of_image(image, role="style") for image in images.style)
    return parts


def extract_result(response: Any, *, model: str | None = None, used_fallback: bool = False) -> GenerationResult:
    candidates = getattr(response, "candidates", None) or []
    for candidate in candidates[:1]:
        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or getattr(candidate, "parts", None) or []
        for part in parts:
            inline_data = getattr(part, "inline_data", None)
            data = getattr(inline_data, "data", None) if inline_data else None
            if not data:
                continue
            mime_type = getattr(inline_data, "mime_type", None) or "image/png"
            if isinstance(data, (bytes, bytearray)):
                encoded = base64.b64encode(bytes(data)).decode("ascii")
            else:
                encoded = str(data)
            return GenerationResult(
                image_url=f"data:{mime_type};base64,{encoded}",
                model=model,
                used_fallback=used_fallback,
            )
    text = getattr(response, "text", None)
    if not isinstance(text, str) or not text.strip():
        text = NO_IMAGE_PLACEHOLDER
    return GenerationResult(text=text, model=model, used_fallback=used_fallback)


class GenerationExecutor:
    def __init__(
        self,
        backend: DirectorBackend,
        resolver: CapabilityResolver,
        settings: DirectorSettings | None = None,
        registry: ModelRegistry | None = None,
        events: EventWriter | None = None,
    ) -> None:
        self.backend = backend
        self.resolver = resolver
        self.settings = settings or DirectorSettings()
        self.registry = registry or resolver.registry
        self.events = events

    @property
    def fallback_model(self) -> str:
        return self.resolver.fallback_model

    def config_for(self, model: str, plan: DirectorPlan) -> ImageGenerationConfig:
        image_size = None
        if self.registry.describe(model).accepts_image_size:
            image_size = plan.image_config.image_size or DEFAULT_IMAGE_SIZE
        return ImageGenerationConfig(
            aspect_ratio=plan.image_config.aspect_ratio or DEFAULT_ASPECT_RATIO,
            image_size=image_size,
            safety_threshold=self.settings.safety_threshold,
        )

    def execute(self, plan: DirectorPlan, images: ReferenceImageSet) -> GenerationResult:
        if plan.blocked:
            raise GenerationFailure(f"Plan is blocked: {plan.block_reason or 'content policy violation detected.'}")
        preferred = plan.model_suggestion or self.settings.image_model
        chosen = self.resolver.resolve(preferred)
        parts = build_generation_parts(plan, images)

        try:
            response = self._generate(chosen, parts, plan)
        except CredentialMissing:
            raise
        except Exception as exc:
            status = status_code_of(exc)
            recoverable = status in self.settings.retry_statuses
            if not recoverable or chosen == self.fallback_model:
                self._emit("generation_failed", model=chosen, status=status, error=str(exc), retried=False)
                raise GenerationFailure(f"Generation failed: {exc}", status=status, model=chosen) from exc
            return self._retry_with_fallback(chosen, parts, plan, status)

        result = extract_result(response, model=chosen)
        self._emit("generation_completed", model=chosen, has_image=result.has_image, used_fallback=False)
        return result

    def _retry_with_fallback(
        self,
        failed_model: str,
        parts: list[ContentPart],
        plan: DirectorPlan,
        status: int | None,
    ) -> GenerationResult:
        fallback = self.fallback_model
        self._emit("generation_fallback", failed_model=failed_model, status=status, model=fallback)
        try:
            response = self._generate(fallback, parts, plan)
        except CredentialMissing:
            raise
        except Exception as retry_exc:
            retry_status = status_code_of(retry_exc)
            self._emit("generation_failed", model=fallback, status=retry_status, error=str(retry_exc), retried=True)
            raise GenerationFailure(
                f"Generation failed with fallback. Details: {retry_exc}",
                status=retry_status,
                model=fallback,
            ) from retry_exc
        result = extract_result(response, model=fallback, used_fallback=True)
        self._emit("generation_completed", model=fallback, has_image=result.has_image, used_fallback=True)
        return result

    def _generate(self, model: str, parts: list[ContentPart], plan: DirectorPlan) -> Any:
        config = self.config_for(model, plan)
        self._emit("generation_started", model=model, config=config.to_dict(), parts=len(parts))
        return self.backend.generate_content(model, parts, config)

    def _emit(self, event_type: str, **payload: Any) -> None:
        if self.events is not None:
            self.events.emit(event_type, **payload)
