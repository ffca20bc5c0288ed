"""Capability cache and model listing."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from ..errors import CapabilityListingFailure

MODEL_NAMESPACE_PREFIXES = ("models/", "tunedModels/")


@dataclass(frozen=True)
class ListingResult:
    models: frozenset[str] | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.models is not None

    @classmethod
    def success(cls, models: Iterable[str]) -> "ListingResult":
        return cls(models=frozenset(models))

    @classmethod
    def failure(cls, reason: str) -> "ListingResult":
        return cls(models=None, error=reason)


def normalize_model_name(raw: str | None) -> str:
    name = str(raw or "").strip()
    for prefix in MODEL_NAMESPACE_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def list_available_models(lister: Callable[[], Iterable[str]]) -> ListingResult:
    """Call the remote listing and report success or failure as a value."""
    try:
        raw_names = lister()
        if raw_names is None:
            raise CapabilityListingFailure("Model listing returned nothing.")
        names = [normalize_model_name(name) for name in raw_names]
    except Exception as exc:
        return ListingResult.failure(f"{type(exc).__name__}: {exc}")
    return ListingResult.success(name for name in names if name)


@dataclass
class CapabilityCache:
    """Model identifiers available to the current credential."""

    max_age_s: float | None = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _models: frozenset[str] | None = field(default=None, init=False, repr=False)
    _populated_at: float | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def is_populated(self) -> bool:
        with self._lock:
            return self._current() is not None

    def snapshot(self) -> frozenset[str] | None:
        with self._lock:
            return self._current()

    def populate(self, models: Iterable[str]) -> frozenset[str]:
        snapshot = frozenset(models)
        with self._lock:
            self._models = snapshot
            self._populated_at = self.clock()
        return snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._models = None
            self._populated_at = None

    def _current(self) -> frozenset[str] | None:
        if self._models is None:
            return None
        if self.max_age_s is not None and self._populated_at is not None:
            if self.clock() - self._populated_at > self.max_age_s:
                self._models = None
                self._populated_at = None
                return None
        return self._models
