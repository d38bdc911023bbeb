"""
Assistant Service Wiring.

Builds the process-wide ``AssistantService`` from ``settings``: SQL transcript
store, pydantic-ai generation guarded by the shared circuit breaker and retry
policy, and the default vault actions.
"""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from vaultmind_ai.agent_core.actions.store import DocumentStore, InMemoryDocumentStore
from vaultmind_ai.agent_core.factory import build_resilient_caller, build_service
from vaultmind_ai.agent_core.generation.pydantic_ai import PydanticAIGeneration
from vaultmind_ai.agent_core.repos.sql import (
    SqlTranscriptRepository,
    create_all,
    create_engine,
    create_sessionmaker,
)
from vaultmind_ai.agent_core.service import AssistantService
from vaultmind_ai.core.logging_config import get_logger
from vaultmind_ai.server.core.config import Settings, settings

logger = get_logger(__name__)


def _model_for(cfg: Settings) -> Any:
    """Model override carrying the configured OpenAI key, if any."""
    provider, _, name = cfg.model.partition(":")
    if provider != "openai" or not cfg.openai_api_key:
        return None
    from pydantic_ai.models.openai import OpenAIChatModel
    from pydantic_ai.providers.openai import OpenAIProvider

    return OpenAIChatModel(name, provider=OpenAIProvider(api_key=cfg.openai_api_key))


def create_assistant_service(
    cfg: Settings,
    engine: AsyncEngine,
    store: Optional[DocumentStore] = None,
) -> AssistantService:
    return build_service(
        generation=PydanticAIGeneration(model=_model_for(cfg)),
        store=store if store is not None else InMemoryDocumentStore(),
        transcripts=SqlTranscriptRepository(session_factory=create_sessionmaker(engine)),
        caller=build_resilient_caller(cfg.circuit_breaker, cfg.retry),
        generation_config=cfg.generation,
        approval=cfg.approval,
        ledger_capacity=cfg.ledger_capacity,
    )


# Global singletons
_engine: Optional[AsyncEngine] = None
_service: Optional[AssistantService] = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_engine(settings.database_url)
    return _engine


async def init_db() -> None:
    await create_all(get_engine())


def get_assistant_service() -> AssistantService:
    global _service
    if _service is None:
        _service = create_assistant_service(settings, get_engine())
        logger.info(f"assistant service ready (model={settings.model})")
    return _service


async def shutdown() -> None:
    global _engine, _service
    _service = None
    if _engine is not None:
        await _engine.dispose()
        _engine = None
