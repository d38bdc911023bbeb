"""Generation capability boundary and the pydantic-ai implementation."""

from .base import GenerationCapability
from .pydantic_ai import PydanticAIGeneration

__all__ = ["GenerationCapability", "PydanticAIGeneration"]
