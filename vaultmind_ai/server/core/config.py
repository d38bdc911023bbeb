"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
All values are loaded from environment variables and the .env file. Grouped
settings for the orchestration core are exposed as properties returning the
core's own configuration models.
"""

from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vaultmind_ai.agent_core.resilience import CircuitBreakerConfig, RetryPolicy
from vaultmind_ai.agent_core.schemas.config import ApprovalSettings, GenerationConfig

DEFAULT_SYSTEM_PROMPT = (
    "You are an assistant for a personal knowledge vault. You can read, search and analyze notes, "
    "and propose changes to them with the available actions. Changes are reviewed by the user "
    "before they are applied."
)


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are bound from environment variables and the .env file.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Server Configuration
    # =====================================================================
    server_host: str = Field(
        default="0.0.0.0",
        description="VaultMind-AI server host address to bind to",
        alias="VAULTMIND_AI_SERVER_HOST",
    )
    server_port: int = Field(
        default=8000,
        description="VaultMind-AI server port number",
        alias="VAULTMIND_AI_SERVER_PORT",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="VAULTMIND_AI_LOG_LEVEL",
    )
    log_format: str = Field(default="detailed", description="simple, detailed or json", alias="LOG_FORMAT")
    log_file_dir: str = Field(default="logs", description="Directory for log files", alias="LOG_FILE_DIR")
    enable_file_logging: bool = Field(
        default=False, description="Also write logs to files", alias="ENABLE_FILE_LOGGING"
    )

    # =====================================================================
    # Generation Configuration
    # =====================================================================
    openai_api_key: Optional[str] = Field(
        default=None, description="OpenAI API key for authentication", alias="OPENAI_API_KEY"
    )
    model: str = Field(default="openai:gpt-4.1", description="Model identifier", alias="VAULTMIND_AI_MODEL")
    max_turns: int = Field(default=20, ge=1, description="Turn budget per generation", alias="VAULTMIND_AI_MAX_TURNS")
    max_tokens: int = Field(default=2000, ge=1, description="Maximum output tokens", alias="VAULTMIND_AI_MAX_TOKENS")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Temperature", alias="VAULTMIND_AI_TEMPERATURE")
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT, description="System prompt", alias="VAULTMIND_AI_SYSTEM_PROMPT"
    )

    # =====================================================================
    # Approval Configuration
    # =====================================================================
    approval_required: bool = Field(
        default=True, description="Global approval switch", alias="VAULTMIND_AI_APPROVAL_REQUIRED"
    )
    approval_overrides: Dict[str, bool] = Field(
        default_factory=dict,
        description="JSON map of action name to approval requirement",
        alias="VAULTMIND_AI_APPROVAL_OVERRIDES",
    )
    approval_timeout: Optional[float] = Field(
        default=None, gt=0, description="Seconds to wait for decisions", alias="VAULTMIND_AI_APPROVAL_TIMEOUT"
    )

    # =====================================================================
    # Resilience Configuration
    # =====================================================================
    circuit_failure_threshold: int = Field(default=5, ge=1, alias="VAULTMIND_AI_CIRCUIT_FAILURE_THRESHOLD")
    circuit_reset_timeout: float = Field(default=60.0, gt=0, alias="VAULTMIND_AI_CIRCUIT_RESET_TIMEOUT")
    circuit_success_threshold: int = Field(default=3, ge=1, alias="VAULTMIND_AI_CIRCUIT_SUCCESS_THRESHOLD")
    retry_max_attempts: int = Field(default=3, ge=1, alias="VAULTMIND_AI_RETRY_MAX_ATTEMPTS")
    retry_initial_delay: float = Field(default=1.0, ge=0, alias="VAULTMIND_AI_RETRY_INITIAL_DELAY")
    retry_max_delay: float = Field(default=30.0, ge=0, alias="VAULTMIND_AI_RETRY_MAX_DELAY")
    retry_backoff_multiplier: float = Field(default=2.0, ge=1, alias="VAULTMIND_AI_RETRY_BACKOFF_MULTIPLIER")
    retry_jitter: float = Field(default=0.3, ge=0, alias="VAULTMIND_AI_RETRY_JITTER")

    # =====================================================================
    # Ledger and Database Configuration
    # =====================================================================
    ledger_capacity: int = Field(default=50, ge=1, description="Undo history size", alias="VAULTMIND_AI_LEDGER_CAPACITY")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./vaultmind.db",
        description="Async SQLAlchemy URL for the transcript store",
        alias="DATABASE_URL",
    )

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def generation(self) -> GenerationConfig:
        """Generation settings; the action list is filled in per session."""
        return GenerationConfig(
            model=self.model,
            max_turns=self.max_turns,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            system_prompt=self.system_prompt,
        )

    @property
    def approval(self) -> ApprovalSettings:
        return ApprovalSettings(
            approval_required=self.approval_required,
            overrides=self.approval_overrides,
            timeout_seconds=self.approval_timeout,
        )

    @property
    def circuit_breaker(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            failure_threshold=self.circuit_failure_threshold,
            reset_timeout=self.circuit_reset_timeout,
            success_threshold=self.circuit_success_threshold,
        )

    @property
    def retry(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            initial_delay=self.retry_initial_delay,
            max_delay=self.retry_max_delay,
            backoff_multiplier=self.retry_backoff_multiplier,
            jitter=self.retry_jitter,
        )


settings = Settings()
