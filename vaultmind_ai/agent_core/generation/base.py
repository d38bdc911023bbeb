"""Generation capability boundary.

The generation capability is the external text-generation service. It streams
*raw* events of any shape; the runtime's normalization adapter turns them
into canonical events. Resuming a paused generation passes the opaque
resumption token it emitted together with the per-invocation results.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, List, Optional, Protocol, runtime_checkable

from ..schemas.config import GenerationConfig
from ..schemas.domain import ChatMessage, ResumeRequest


@runtime_checkable
class GenerationCapability(Protocol):
    """Protocol for generation backends.

    ``stream`` returns an async iterator of raw events. It may raise before
    yielding (connection errors, rejected credentials); those failures are
    retried by the caller's resilience wrapper when classified as retryable.
    """

    def stream(
        self,
        conversation: List[ChatMessage],
        config: GenerationConfig,
        *,
        resume: Optional[ResumeRequest] = None,
    ) -> AsyncIterator[Any]: ...
