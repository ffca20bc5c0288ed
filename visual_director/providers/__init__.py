"""Remote backends."""

from __future__ import annotations

from ..credentials import CredentialStore
from .base import DirectorBackend
from .dryrun import DryRunBackend
from .gemini import GeminiBackend


def default_backend(credentials: CredentialStore, *, dryrun: bool = False) -> DirectorBackend:
    if dryrun:
        return DryRunBackend()
    return GeminiBackend(credentials)
