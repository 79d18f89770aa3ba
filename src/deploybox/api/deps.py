"""Shared API dependency providers."""

from __future__ import annotations

from functools import lru_cache

from deploybox.config import Settings
from deploybox.core.events import EventHub
from deploybox.core.orchestrator import Orchestrator, OrchestratorContext


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache(maxsize=1)
def get_event_hub() -> EventHub:
    return EventHub()


@lru_cache(maxsize=1)
def get_orchestrator() -> Orchestrator:
    context = OrchestratorContext.from_settings(get_settings(), broadcaster=get_event_hub())
    return Orchestrator(context)
