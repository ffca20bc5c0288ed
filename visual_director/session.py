"""Session state machine driving planning and generation."""

from __future__ import annotations

from enum import Enum

from .engine import DirectorEngine
from .errors import (
    CredentialMissing,
    GenerationFailure,
    PlanningFailure,
    SessionStateError,
)
from .executor import GenerationResult
from .inputs import ReferenceImageSet
from .plans import DirectorPlan


class SessionState(str, Enum):
    IDLE = "IDLE"
    PLANNING = "PLANNING"
    PLAN_READY = "PLAN_READY"
    GENERATING = "GENERATING"
    COMPLETE = "COMPLETE"


class SessionController:
    """Sequences one planning/generation cycle.

    Failures are captured in ``error`` and the session falls back to the last
    interactive state: IDLE after planning, PLAN_READY after generation.
    """

    def __init__(self, engine: DirectorEngine, images: ReferenceImageSet | None = None) -> None:
        self.engine = engine
        self.images = images or ReferenceImageSet(limits=engine.settings.limits)
        self.state = SessionState.IDLE
        self.plan: DirectorPlan | None = None
        self.result: GenerationResult | None = None
        self.error: str | None = None
        self.last_exception: Exception | None = None

    @property
    def copyable_prompt(self) -> str | None:
        return self.plan.final_prompt_text if self.plan else None

    def submit(self, request_text: str, auxiliary_context: str | None = None) -> SessionState:
        if self.state is not SessionState.IDLE:
            raise SessionStateError(f"Cannot create a plan while {self.state.value}.")
        if not request_text or not request_text.strip():
            raise ValueError("Request text is required.")
        self._transition(SessionState.PLANNING)
        self._clear_error()
        try:
            plan = self.engine.create_plan(request_text.strip(), self.images, auxiliary_context)
        except (PlanningFailure, CredentialMissing) as exc:
            self._fail(exc)
            self._transition(SessionState.IDLE)
            return self.state
        self.plan = plan
        self._transition(SessionState.PLAN_READY)
        return self.state

    def confirm(self) -> SessionState:
        if self.state is not SessionState.PLAN_READY or self.plan is None:
            raise SessionStateError(f"Nothing to confirm while {self.state.value}.")
        self._transition(SessionState.GENERATING)
        self._clear_error()
        try:
            result = self.engine.execute(self.plan, self.images)
        except (GenerationFailure, CredentialMissing) as exc:
            self._fail(exc)
            self._transition(SessionState.PLAN_READY)
            return self.state
        self.result = result
        self._transition(SessionState.COMPLETE)
        return self.state

    def cancel(self) -> SessionState:
        if self.state is not SessionState.PLAN_READY:
            raise SessionStateError(f"Nothing to cancel while {self.state.value}.")
        self.plan = None
        self._transition(SessionState.IDLE)
        return self.state

    def reset(self) -> SessionState:
        self.plan = None
        self.result = None
        self._clear_error()
        self._transition(SessionState.IDLE)
        return self.state

    def clear_references(self) -> None:
        self.images.clear()

    def change_credential(self, api_key: str | None) -> None:
        self.engine.credentials.select(api_key)

    def dismiss_error(self) -> None:
        self._clear_error()

    def _fail(self, exc: Exception) -> None:
        self.error = str(exc) or type(exc).__name__
        self.last_exception = exc

    def _clear_error(self) -> None:
        self.error = None
        self.last_exception = None

    def _transition(self, state: SessionState) -> None:
        previous = self.state
        self.state = state
        self.engine.events.emit(
            "session_state",
            previous=previous.value,
            state=state.value,
            error=self.error,
        )
