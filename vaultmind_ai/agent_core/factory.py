from __future__ import annotations

"""Convenience factories for wiring the orchestration core.

This module contains small helpers to build the default action registry, the
resilient caller guarding the generation dependency, and an
``AssistantService`` with sensible defaults.

The intent is to keep application wiring and tests concise, while still
allowing deployments to provide their own store, repository, generation
capability or configuration.
"""

from typing import Optional

from .actions.registry import ActionRegistry
from .actions.store import DocumentStore, InMemoryDocumentStore
from .actions.vault import default_actions
from .generation.base import GenerationCapability
from .generation.pydantic_ai import PydanticAIGeneration
from .repos.interfaces import TranscriptRepository
from .repos.memory import InMemoryTranscriptRepository
from .resilience.circuit_breaker import CircuitBreakerConfig, get_circuit_breaker
from .resilience.retry import RetryHandler, RetryPolicy
from .resilience.wrapper import ResilientCaller
from .runtime.coordinator import ResumableCoordinator
from .runtime.models import CoordinatorDeps
from .schemas.config import ApprovalSettings, GenerationConfig
from .service import AssistantService, AssistantServiceDeps

GENERATION_CIRCUIT = "generation"


def build_default_registry(approval: Optional[ApprovalSettings] = None) -> ActionRegistry:
    """Build an ``ActionRegistry`` holding the built-in vault actions."""
    reg = ActionRegistry(approval)
    for action in default_actions():
        reg.register(action)
    return reg


def build_resilient_caller(
    circuit: Optional[CircuitBreakerConfig] = None,
    retry: Optional[RetryPolicy] = None,
) -> ResilientCaller:
    """Guard the generation dependency with the shared circuit and a retry policy."""
    return ResilientCaller(breaker=get_circuit_breaker(GENERATION_CIRCUIT, circuit), retry=RetryHandler(retry))


def build_service(
    *,
    generation: Optional[GenerationCapability] = None,
    store: Optional[DocumentStore] = None,
    transcripts: Optional[TranscriptRepository] = None,
    registry: Optional[ActionRegistry] = None,
    caller: Optional[ResilientCaller] = None,
    generation_config: Optional[GenerationConfig] = None,
    approval: Optional[ApprovalSettings] = None,
    ledger_capacity: int = 50,
) -> AssistantService:
    """Construct an ``AssistantService``; unspecified parts fall back to in-memory defaults."""
    approval = approval or ApprovalSettings()
    registry = registry or build_default_registry(approval)
    deps = AssistantServiceDeps(
        registry=registry,
        generation=generation or PydanticAIGeneration(),
        store=store if store is not None else InMemoryDocumentStore(),
        transcripts=transcripts if transcripts is not None else InMemoryTranscriptRepository(),
        coordinator=ResumableCoordinator(deps=CoordinatorDeps(registry=registry)),
        caller=caller,
        generation_config=generation_config or GenerationConfig(),
        ledger_capacity=ledger_capacity,
        approval_timeout=approval.timeout_seconds,
    )
    return AssistantService(deps=deps)
