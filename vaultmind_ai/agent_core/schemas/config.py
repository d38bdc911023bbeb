"""Configuration models passed to the generation capability and the approval layer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ActionSpec(BaseModel):
    """An action declared to the generation capability."""

    name: str = Field(..., description="Action name the model uses to request it")
    description: str = Field(default="", description="What the action does")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="JSON schema of the arguments")
    requires_approval: bool = Field(default=True, description="Whether a human must approve the call")


class GenerationConfig(BaseModel):
    """Model configuration for one streaming session."""

    model: str = Field(default="openai:gpt-4.1", description="Model identifier (provider:model)")
    max_turns: int = Field(default=20, ge=1, description="Turn budget for one generation segment")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Temperature (0.0-2.0)")
    max_tokens: int = Field(default=2000, ge=1, description="Maximum output tokens")
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="Top-p sampling (0.0-1.0)")
    system_prompt: Optional[str] = Field(default=None, description="System prompt for the assistant")
    actions: List[ActionSpec] = Field(default_factory=list, description="Actions available to the model")


class ApprovalSettings(BaseModel):
    """Approval configuration.

    ``approval_required=False`` turns approval off for every action.
    ``overrides`` maps an action name to its approval requirement and takes
    precedence over the action's declared property.
    """

    approval_required: bool = Field(default=True, description="Global approval switch")
    overrides: Dict[str, bool] = Field(default_factory=dict, description="Per-action approval overrides")
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Decision wait timeout")
