"""Model capability resolution and downgrade logic."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from ..config import DEFAULT_IMAGE_MODEL, FALLBACK_IMAGE_MODEL
from ..runs.events import EventWriter
from .capabilities import CapabilityCache, list_available_models
from .registry import ModelRegistry
from .tiers import Tier, is_downgrade_candidate


class AccountTier(str, Enum):
    PRO = "PRO"
    FLASH = "FLASH"


@dataclass(frozen=True)
class ModelSelection:
    model: str
    requested: str
    fallback_reason: str | None = None
    from_cache: bool = False


class CapabilityResolver:
    """Maps a preferred model onto one the current credential can use.

    Resolution is best effort: when the listing is unavailable the preferred
    model is returned unchanged and the generation call decides.
    """

    def __init__(
        self,
        lister: Callable[[], Iterable[str]],
        cache: CapabilityCache | None = None,
        registry: ModelRegistry | None = None,
        fallback_model: str = FALLBACK_IMAGE_MODEL,
        events: EventWriter | None = None,
    ) -> None:
        self.lister = lister
        self.cache = cache or CapabilityCache()
        self.registry = registry or ModelRegistry()
        self.fallback_model = fallback_model
        self.events = events
        self._populate_lock = threading.Lock()

    def resolve(self, preferred: str) -> str:
        return self.select(preferred).model

    def select(self, preferred: str) -> ModelSelection:
        available = self.cache.snapshot()
        if available is None:
            with self._populate_lock:
                available = self.cache.snapshot()
                if available is None:
                    available = self._refresh()
            if available is None:
                selection = ModelSelection(
                    model=preferred,
                    requested=preferred,
                    fallback_reason="Model listing unavailable; trusting requested model.",
                )
                self._emit("model_resolved", **_selection_payload(selection))
                return selection
        selection = self._select_from(preferred, available)
        self._emit("model_resolved", **_selection_payload(selection))
        return selection

    def detect_account_tier(self, preferred: str = DEFAULT_IMAGE_MODEL) -> AccountTier:
        model = self.resolve(preferred)
        if self.registry.tier_of(model) is Tier.ADVANCED:
            return AccountTier.PRO
        return AccountTier.FLASH

    def invalidate(self) -> None:
        self.cache.invalidate()
        self._emit("capabilities_invalidated")

    def _refresh(self) -> frozenset[str] | None:
        result = list_available_models(self.lister)
        if not result.ok:
            self._emit("capability_listing_failed", error=result.error)
            return None
        available = self.cache.populate(result.models or ())
        self._emit("capabilities_detected", count=len(available), models=sorted(available))
        return available

    def _select_from(self, preferred: str, available: frozenset[str]) -> ModelSelection:
        if preferred in available:
            return ModelSelection(model=preferred, requested=preferred, from_cache=True)
        if is_downgrade_candidate(preferred) and self.fallback_model in available:
            return ModelSelection(
                model=self.fallback_model,
                requested=preferred,
                fallback_reason=f"Model '{preferred}' not available to this key; downgraded to '{self.fallback_model}'.",
                from_cache=True,
            )
        return ModelSelection(
            model=preferred,
            requested=preferred,
            fallback_reason=f"Model '{preferred}' not listed for this key; trying it anyway.",
            from_cache=True,
        )

    def _emit(self, event_type: str, **payload: object) -> None:
        if self.events is not None:
            self.events.emit(event_type, **payload)


def _selection_payload(selection: ModelSelection) -> dict[str, object]:
    return {
        "requested": selection.requested,
        "model": selection.model,
        "fallback_reason": selection.fallback_reason,
        "from_cache": selection.from_cache,
    }
