from __future__ import annotations

import pytest

from visual_director.models.capabilities import CapabilityCache, list_available_models, normalize_model_name
from visual_director.models.selectors import AccountTier, CapabilityResolver
from visual_director.runs.events import EventWriter


class _Lister:
    def __init__(self, names=None, error: Exception | None = None) -> None:
        self.names = list(names or [])
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.names)


def _resolver(lister: _Lister, cache: CapabilityCache | None = None) -> CapabilityResolver:
    return CapabilityResolver(lister, cache=cache or CapabilityCache(), events=EventWriter(None, "run-test"))


def test_exact_match_wins_regardless_of_tier() -> None:
    lister = _Lister(["models/gemini-3-pro-image-preview", "models/gemini-2.5-flash-image"])
    resolver = _resolver(lister)

    assert resolver.resolve("gemini-3-pro-image-preview") == "gemini-3-pro-image-preview"


def test_advanced_model_downgrades_to_cached_fallback() -> None:
    lister = _Lister(["models/gemini-2.5-flash-image", "models/gemini-2.5-flash"])
    resolver = _resolver(lister)

    selection = resolver.select("gemini-3-pro-image-preview")

    assert selection.model == "gemini-2.5-flash-image"
    assert selection.requested == "gemini-3-pro-image-preview"
    assert "downgraded" in (selection.fallback_reason or "")


def test_preview_marker_alone_triggers_downgrade() -> None:
    resolver = _resolver(_Lister(["gemini-2.5-flash-image"]))

    assert resolver.resolve("gemini-2.5-flash-image-preview") == "gemini-2.5-flash-image"


def test_base_tier_model_missing_from_cache_is_returned_unchanged() -> None:
    resolver = _resolver(_Lister(["gemini-2.5-flash-image"]))

    assert resolver.resolve("imagen-fast") == "imagen-fast"


def test_veo_model_missing_from_cache_is_not_downgraded() -> None:
    resolver = _resolver(_Lister(["models/gemini-2.5-flash-image"]))

    assert resolver.resolve("veo-3.0-generate-001") == "veo-3.0-generate-001"


def test_downgrade_markers_are_case_sensitive() -> None:
    resolver = _resolver(_Lister(["models/gemini-2.5-flash-image"]))

    assert resolver.resolve("Gemini-PRO-Image") == "Gemini-PRO-Image"


def test_advanced_model_without_cached_fallback_is_returned_unchanged() -> None:
    resolver = _resolver(_Lister(["gemini-2.5-flash"]))

    assert resolver.resolve("gemini-3-pro-image-preview") == "gemini-3-pro-image-preview"


def test_listing_failure_trusts_preferred_and_leaves_cache_empty() -> None:
    cache = CapabilityCache()
    lister = _Lister(error=PermissionError("403 listing not allowed"))
    resolver = _resolver(lister, cache)

    assert resolver.resolve("gemini-3-pro-image-preview") == "gemini-3-pro-image-preview"
    assert cache.is_populated is False
    assert "capability_listing_failed" in resolver.events.types()


def test_listing_failure_retries_listing_on_next_resolve() -> None:
    lister = _Lister(error=RuntimeError("network down"))
    resolver = _resolver(lister)

    resolver.resolve("gemini-3-pro-image-preview")
    resolver.resolve("gemini-3-pro-image-preview")

    assert lister.calls == 2


def test_populated_cache_is_reused_without_listing_again() -> None:
    lister = _Lister(["models/gemini-2.5-flash-image"])
    resolver = _resolver(lister)

    resolver.resolve("gemini-3-pro-image-preview")
    resolver.resolve("gemini-2.5-flash-image")

    assert lister.calls == 1


def test_invalidate_forces_fresh_listing() -> None:
    lister = _Lister(["models/gemini-2.5-flash-image"])
    resolver = _resolver(lister)
    resolver.resolve("gemini-3-pro-image-preview")

    resolver.invalidate()
    lister.names = ["models/gemini-3-pro-image-preview", "models/gemini-2.5-flash-image"]

    assert resolver.resolve("gemini-3-pro-image-preview") == "gemini-3-pro-image-preview"
    assert lister.calls == 2


def test_empty_listing_still_counts_as_populated() -> None:
    cache = CapabilityCache()
    lister = _Lister([])
    resolver = _resolver(lister, cache)

    assert resolver.resolve("gemini-3-pro-image-preview") == "gemini-3-pro-image-preview"
    assert cache.snapshot() == frozenset()
    resolver.resolve("gemini-3-pro-image-preview")
    assert lister.calls == 1


def test_cache_expires_after_max_age() -> None:
    now = [100.0]
    cache = CapabilityCache(max_age_s=60.0, clock=lambda: now[0])
    lister = _Lister(["gemini-2.5-flash-image"])
    resolver = _resolver(lister, cache)

    resolver.resolve("gemini-3-pro-image-preview")
    now[0] += 61.0
    resolver.resolve("gemini-3-pro-image-preview")

    assert lister.calls == 2


def test_detect_account_tier() -> None:
    assert _resolver(_Lister(["gemini-3-pro-image-preview"])).detect_account_tier() is AccountTier.PRO
    assert _resolver(_Lister(["gemini-2.5-flash-image"])).detect_account_tier() is AccountTier.FLASH


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("models/gemini-2.5-flash-image", "gemini-2.5-flash-image"),
        ("tunedModels/my-model", "my-model"),
        ("gemini-2.5-flash", "gemini-2.5-flash"),
        (None, ""),
    ],
)
def test_normalize_model_name(raw, expected) -> None:
    assert normalize_model_name(raw) == expected


def test_list_available_models_reports_failure_as_value() -> None:
    def boom():
        raise ConnectionError("offline")

    result = list_available_models(boom)

    assert result.ok is False
    assert result.models is None
    assert "offline" in (result.error or "")


def test_list_available_models_treats_none_as_failure() -> None:
    result = list_available_models(lambda: None)

    assert result.ok is False
