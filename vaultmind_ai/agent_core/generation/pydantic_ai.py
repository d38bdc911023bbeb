"""Pydantic AI generation adapter.

``PydanticAIGeneration`` implements ``GenerationCapability`` on top of a
pydantic-ai ``Agent``:

- Every declared action is exposed to the model as an *external* tool
  (``ExternalToolset``), so the model can request it but never runs it.
- A run that ends with ``DeferredToolRequests`` is an interruption. Its
  resumption token is the run's full message history serialized with
  ``ModelMessagesTypeAdapter``.
- Resuming decodes that history and passes the invocation results as
  ``DeferredToolResults``. A token that does not decode raises
  ``StreamStateInvalidError``.

The adapter yields plain dict events understood by the runtime's
normalization adapter.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from pydantic import ValidationError
from pydantic_ai import Agent, DeferredToolRequests, DeferredToolResults
from pydantic_ai.messages import (
    ModelMessage,
    ModelMessagesTypeAdapter,
    ModelRequest,
    ModelResponse,
    TextPart,
    TextPartDelta,
    UserPromptPart,
)
from pydantic_ai.tools import ToolDefinition
from pydantic_ai.toolsets import ExternalToolset
from pydantic_ai.usage import UsageLimits

from vaultmind_ai.core.logging_config import get_logger

from ..errors import StreamStateInvalidError
from ..schemas.config import GenerationConfig
from ..schemas.domain import ActionResultPayload, ChatMessage, MessageRole, MessageStatus, ResumeRequest

logger = get_logger(__name__)


def tool_definitions(config: GenerationConfig) -> List[ToolDefinition]:
    return [
        ToolDefinition(
            name=spec.name,
            description=spec.description,
            parameters_json_schema=spec.parameters or {"type": "object", "properties": {}},
        )
        for spec in config.actions
    ]


def model_settings(config: GenerationConfig) -> Dict[str, Any]:
    settings: Dict[str, Any] = {"temperature": config.temperature, "max_tokens": config.max_tokens}
    if config.top_p is not None:
        settings["top_p"] = config.top_p
    return settings


def to_message_history(conversation: List[ChatMessage]) -> Tuple[List[ModelMessage], Optional[str]]:
    """Split a transcript into pydantic-ai history and the prompt to send.

    The prompt is the last user message. Failed, cancelled and empty messages
    are left out of the history.
    """
    usable = [
        m
        for m in conversation
        if m.content and m.status not in (MessageStatus.error, MessageStatus.cancelled) and m.role != MessageRole.system
    ]
    prompt: Optional[str] = None
    if usable and usable[-1].role == MessageRole.user:
        prompt = usable.pop().content

    history: List[ModelMessage] = []
    for message in usable:
        if message.role == MessageRole.user:
            history.append(ModelRequest(parts=[UserPromptPart(content=message.content)]))
        else:
            history.append(ModelResponse(parts=[TextPart(content=message.content)]))
    return history, prompt


def encode_token(messages: List[ModelMessage]) -> str:
    return ModelMessagesTypeAdapter.dump_json(messages).decode()


def decode_token(token: str) -> List[ModelMessage]:
    try:
        return list(ModelMessagesTypeAdapter.validate_json(token))
    except ValidationError as exc:
        raise StreamStateInvalidError(
            "resumption token does not decode to a message history",
            user_message="This response can no longer be resumed. Please send your message again.",
            cause=exc,
        ) from exc


def _result_value(result: ActionResultPayload) -> Dict[str, Any]:
    if result.declined:
        return {"declined": True, "message": result.error}
    if not result.ok:
        return {"ok": False, "error": result.error, **result.output}
    return {"ok": True, **result.output}


def deferred_results(resume: ResumeRequest) -> DeferredToolResults:
    return DeferredToolResults(calls={r.invocation_id: _result_value(r) for r in resume.results})


class PydanticAIGeneration:
    """Generation capability backed by a pydantic-ai ``Agent``.

    Args:
        model: Model instance or name overriding ``GenerationConfig.model``
            (e.g. a pydantic-ai test model).
    """

    def __init__(self, model: Any = None) -> None:
        self._model = model

    def build_agent(self, config: GenerationConfig) -> Agent:
        kwargs: Dict[str, Any] = {
            "output_type": [str, DeferredToolRequests],
            "toolsets": [ExternalToolset(tool_definitions(config))],
        }
        if config.system_prompt:
            kwargs["instructions"] = config.system_prompt
        return Agent(self._model or config.model, **kwargs)

    async def stream(
        self,
        conversation: List[ChatMessage],
        config: GenerationConfig,
        *,
        resume: Optional[ResumeRequest] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        if resume is None:
            history, prompt = to_message_history(conversation)
            deferred = None
        else:
            history, prompt = decode_token(resume.token), None
            deferred = deferred_results(resume)

        agent = self.build_agent(config)
        logger.debug(
            f"starting generation: model={self._model or config.model}, history={len(history)}, resumed={resume is not None}"
        )
        async for event in agent.run_stream_events(
            prompt,
            message_history=history or None,
            deferred_tool_results=deferred,
            model_settings=model_settings(config),
            usage_limits=UsageLimits(request_limit=config.max_turns),
        ):
            kind = getattr(event, "event_kind", None)
            if kind == "part_start" and isinstance(event.part, TextPart) and event.part.content:
                yield {"type": "text_delta", "text": event.part.content}
            elif kind == "part_delta" and isinstance(event.delta, TextPartDelta) and event.delta.content_delta:
                yield {"type": "text_delta", "text": event.delta.content_delta}
            elif kind == "agent_run_result":
                yield self._final_event(event.result)

    def _final_event(self, result: Any) -> Dict[str, Any]:
        output = result.output
        token = encode_token(result.all_messages())
        if isinstance(output, DeferredToolRequests):
            return {
                "type": "interrupted",
                "resumption_token": token,
                "interruptions": [
                    {"id": call.tool_call_id, "name": call.tool_name, "arguments": call.args_as_dict()}
                    for call in output.calls
                ],
            }
        return {"type": "completed", "final_text": str(output or ""), "resumption_token": token}
