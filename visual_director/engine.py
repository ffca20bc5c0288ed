"""Wires credentials, backend, resolver, planner and executor together."""

from __future__ import annotations

import uuid

from .config import DirectorSettings
from .credentials import CredentialStore
from .executor import GenerationExecutor, GenerationResult
from .inputs import ReferenceImageSet
from .models.capabilities import CapabilityCache
from .models.registry import ModelRegistry
from .models.selectors import AccountTier, CapabilityResolver
from .planner import PlanGenerator
from .plans import DirectorPlan
from .providers import default_backend
from .providers.base import DirectorBackend
from .runs.events import EventWriter


class DirectorEngine:
    def __init__(
        self,
        settings: DirectorSettings | None = None,
        credentials: CredentialStore | None = None,
        backend: DirectorBackend | None = None,
        events: EventWriter | None = None,
    ) -> None:
        self.settings = settings or DirectorSettings()
        self.credentials = credentials or CredentialStore()
        self.run_id = str(uuid.uuid4())
        self.events = events or EventWriter(self.settings.events_path, self.run_id)
        self.backend = backend or default_backend(self.credentials, dryrun=self.settings.dryrun)
        self.registry = ModelRegistry()
        self.cache = CapabilityCache(max_age_s=self.settings.capability_ttl_s)
        self.resolver = CapabilityResolver(
            self.backend.list_models,
            cache=self.cache,
            registry=self.registry,
            fallback_model=self.settings.fallback_model,
            events=self.events,
        )
        self.planner = PlanGenerator(self.backend, self.settings, events=self.events)
        self.executor = GenerationExecutor(
            self.backend,
            self.resolver,
            self.settings,
            registry=self.registry,
            events=self.events,
        )
        self.credentials.on_change(self.resolver.invalidate)
        self.events.emit("engine_started", backend=self.backend.name)

    @property
    def needs_credential(self) -> bool:
        return self.backend.name != "dryrun"

    def ensure_credential(self) -> None:
        if self.needs_credential:
            self.credentials.require()

    def create_plan(
        self,
        request_text: str,
        images: ReferenceImageSet,
        auxiliary_context: str | None = None,
    ) -> DirectorPlan:
        self.ensure_credential()
        return self.planner.create_plan(request_text, images, auxiliary_context)

    def execute(self, plan: DirectorPlan, images: ReferenceImageSet) -> GenerationResult:
        self.ensure_credential()
        return self.executor.execute(plan, images)

    def detect_account_tier(self) -> AccountTier:
        if self.needs_credential and not self.credentials.available:
            return AccountTier.FLASH
        return self.resolver.detect_account_tier(self.settings.image_model)

    def resolve_image_model(self, preferred: str | None = None) -> str:
        return self.resolver.resolve(preferred or self.settings.image_model)
