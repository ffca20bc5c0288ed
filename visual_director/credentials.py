"""API key handling."""

from __future__ import annotations

import os
from typing import Callable

from .errors import CredentialMissing

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")


def api_key_from_env() -> str | None:
    for name in API_KEY_ENV_VARS:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


class CredentialStore:
    """Holds the active API key and notifies listeners when it changes."""

    def __init__(self, api_key: str | None = None, *, use_env: bool = True) -> None:
        self.use_env = use_env
        self._selected = (api_key or "").strip() or None
        self._listeners: list[Callable[[], None]] = []

    @property
    def api_key(self) -> str | None:
        # An explicitly selected key replaces whatever the environment provides.
        if self._selected:
            return self._selected
        if self.use_env:
            return api_key_from_env()
        return None

    @property
    def available(self) -> bool:
        return self.api_key is not None

    def require(self) -> str:
        key = self.api_key
        if not key:
            raise CredentialMissing()
        return key

    def on_change(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def select(self, api_key: str | None) -> None:
        """Store an interactively selected key and reinitialize."""
        self._selected = (api_key or "").strip() or None
        self.reinitialize()

    def reinitialize(self) -> None:
        for listener in list(self._listeners):
            listener()
