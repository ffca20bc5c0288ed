"""Gemini backend built on google-genai."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from google import genai
from google.genai import types

from ..config import DEFAULT_SAFETY_THRESHOLD
from ..credentials import CredentialStore
from .base import ContentPart, GenerationConfig, ImageGenerationConfig, PlanningConfig

_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class GeminiBackend:
    name = "gemini"

    def __init__(self, credentials: CredentialStore) -> None:
        self.credentials = credentials
        self._client: genai.Client | None = None
        self._client_key: str | None = None
        credentials.on_change(self._drop_client)

    def list_models(self) -> Iterable[str]:
        client = self._get_client()
        return [str(model.name) for model in client.models.list() if getattr(model, "name", None)]

    def generate_content(self, model: str, parts: Sequence[ContentPart], config: GenerationConfig) -> Any:
        client = self._get_client()
        return client.models.generate_content(
            model=model,
            contents=[types.Content(role="user", parts=_build_parts(parts))],
            config=_build_config(config),
        )

    def _get_client(self) -> genai.Client:
        api_key = self.credentials.require()
        if self._client is None or self._client_key != api_key:
            self._client = genai.Client(api_key=api_key)
            self._client_key = api_key
        return self._client

    def _drop_client(self) -> None:
        self._client = None
        self._client_key = None


def _build_parts(parts: Sequence[ContentPart]) -> list[types.Part]:
    built: list[types.Part] = []
    for part in parts:
        if part.image is not None:
            built.append(
                types.Part(
                    inline_data=types.Blob(
                        data=part.image.raw_bytes(),
                        mime_type=part.image.mime_type,
                    )
                )
            )
            continue
        built.append(types.Part(text=part.text or ""))
    return built


def _build_config(config: GenerationConfig) -> types.GenerateContentConfig:
    if isinstance(config, PlanningConfig):
        return _build_planning_config(config)
    return _build_image_config(config)


def _build_planning_config(config: PlanningConfig) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        system_instruction=config.system_instruction,
        response_mime_type=config.response_mime_type,
        response_schema=dict(config.response_schema),
        temperature=config.temperature,
        safety_settings=_safety_settings(config.safety_threshold),
    )


def _build_image_config(config: ImageGenerationConfig) -> types.GenerateContentConfig:
    image_config: dict[str, Any] = {"aspect_ratio": config.aspect_ratio}
    if config.image_size:
        image_config["image_size"] = config.image_size
    config_kwargs: dict[str, Any] = {
        "response_modalities": ["TEXT", "IMAGE"],
        "image_config": types.ImageConfig(**image_config),
        "safety_settings": _safety_settings(config.safety_threshold),
    }
    return types.GenerateContentConfig(**config_kwargs)


def _safety_settings(threshold: str) -> list[types.SafetySetting]:
    name = str(threshold or "").strip().upper()
    if name not in types.HarmBlockThreshold.__members__:
        name = DEFAULT_SAFETY_THRESHOLD
    resolved = types.HarmBlockThreshold[name]
    return [
        types.SafetySetting(category=types.HarmCategory[category], threshold=resolved)
        for category in _SAFETY_CATEGORIES
    ]
