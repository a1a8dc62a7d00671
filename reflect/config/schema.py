"""
Pydantic configuration schema for Reflect.

reflect.yaml is optional; every field has a default that matches the
hosted providers Reflect ships with. Example:

    env: development
    data_dir: ~/.reflect
    llm:
      retry:
        max_retries: 3
        initial_delay_ms: 1000
      tiers:
        deep:
          model: deepseek-reasoner
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from reflect.llm.llm_config import (
    DEFAULT_SYSTEM_INSTRUCTION,
    LLMConfig,
    RetryPolicy,
)
from reflect.models import Tier

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------

class TierOverride(BaseModel):
    """Fields of one tier's model profile that the user may change."""
    model: Optional[str] = None
    base_url: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, gt=0)
    timeout_seconds: Optional[float] = Field(None, gt=0)


class RetrySettings(BaseModel):
    """Backoff for each provider HTTP call."""
    max_retries: int = Field(3, ge=0, le=10)
    initial_delay_ms: int = Field(1000, ge=0)
    deadline_ms: Optional[int] = Field(
        None, gt=0, description="Total wait budget across retries"
    )
    jitter: bool = False


class LLMSettings(BaseModel):
    retry: RetrySettings = Field(default_factory=RetrySettings)
    tiers: dict[Tier, TierOverride] = Field(default_factory=dict)
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION

    @field_validator("system_instruction")
    @classmethod
    def instruction_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("system_instruction must not be blank")
        return v


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

class ReflectSettings(BaseModel):
    """The complete application configuration."""
    env: str = "development"
    log_level: str = Field("WARNING", description="Root log level; -v forces INFO")
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".reflect",
        description="Where local JSON stores are written",
    )
    demo_mode: bool = False
    demo_delay_seconds: float = Field(1.5, ge=0.0)
    llm: LLMSettings = Field(default_factory=LLMSettings)

    @field_validator("env")
    @classmethod
    def normalise_env(cls, v: str) -> str:
        return v.lower().strip()

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        v = v.upper().strip()
        if v not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return v

    @field_validator("data_dir")
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        return v.expanduser()

    def to_llm_config(self) -> LLMConfig:
        """Build the LLMConfig used to construct adapters."""
        retry = self.llm.retry
        config = LLMConfig(
            retry=RetryPolicy(
                max_retries=retry.max_retries,
                initial_delay_ms=retry.initial_delay_ms,
                deadline_ms=retry.deadline_ms,
                jitter=retry.jitter,
            ),
            system_instruction=self.llm.system_instruction,
        )
        for tier, override in self.llm.tiers.items():
            changes = override.model_dump(exclude_none=True)
            if changes:
                config.override_profile(tier, **changes)
        return config
