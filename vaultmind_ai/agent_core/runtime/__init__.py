"""Streaming session, event normalization and the resumable execution coordinator."""

from .context import ConversationContext
from .coordinator import ResumableCoordinator
from .models import CoordinatorDeps
from .normalization import InvocationIdResolver, StreamNormalizer, parse_arguments
from .session import StreamingSession

__all__ = [
    "ConversationContext",
    "CoordinatorDeps",
    "InvocationIdResolver",
    "ResumableCoordinator",
    "StreamNormalizer",
    "StreamingSession",
    "parse_arguments",
]
