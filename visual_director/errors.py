"""Error types raised at component boundaries."""

from __future__ import annotations


class VisualDirectorError(RuntimeError):
    """Base class for failures surfaced to the user."""


class CredentialMissing(VisualDirectorError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "API key not found. Set GEMINI_API_KEY (or GOOGLE_API_KEY) or select an API key."
        )


class PlanningFailure(VisualDirectorError):
    pass


class CapabilityListingFailure(VisualDirectorError):
    """Listing of available models failed. Never leaves the resolver."""


class GenerationFailure(VisualDirectorError):
    def __init__(self, message: str, *, status: int | None = None, model: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.model = model


class SessionStateError(VisualDirectorError):
    pass


class ReferenceImageError(VisualDirectorError):
    pass
