"""
LLM Configuration — Tier profiles, retry policy and mode routing.

Defines which hosted model backs each tier, how each HTTP call is
retried, and which tier a mode tries first. The fallback tier is the
only provider that accepts browser-origin calls reliably, so it is the
safety net for both modes.

Usage:
    from reflect.llm.llm_config import LLMConfig, ModelMode, Tier

    config = LLMConfig()
    profile = config.get_profile(Tier.FAST)
    # → ModelProfile(provider="groq", model="llama-3.3-70b-versatile", ...)

    config.primary_tier_for(ModelMode.DEEP)
    # → Tier.DEEP
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Optional

from reflect.models import ModelMode, Tier

logger = logging.getLogger(__name__)


DEFAULT_SYSTEM_INSTRUCTION = (
    "You are a warm, empathetic, non-judgemental CBT coach. Your goal is to "
    "guide the user through the Cognitive Restructuring process.\n"
    "1. Help identifying Automatic Negative Thoughts (ANTs).\n"
    "2. Challenge evidence for/against these thoughts.\n"
    "3. Identify cognitive distortions.\n"
    "4. Find a balanced replacement thought.\n"
    "Use Socratic dialogue. Keep responses concise (2-3 sentences max)."
)


# ---------------------------------------------------------------------------
# Model Profile
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelProfile:
    """A specific hosted model and the knobs sent with each request."""

    provider: str           # "groq", "deepseek", "gemini"
    model: str              # e.g., "llama-3.3-70b-versatile"
    base_url: str
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    timeout_seconds: float = 120.0

    @property
    def display_name(self) -> str:
        return f"{self.provider}/{self.model}"


# ---------------------------------------------------------------------------
# Retry Policy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff for a single HTTP call.

    With the defaults a call is attempted up to 4 times, waiting
    1s, 2s and 4s in between.
    """

    max_retries: int = 3
    initial_delay_ms: int = 1000
    deadline_ms: Optional[int] = None   # total wait budget; None = unbounded
    jitter: bool = False

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_ms < 0:
            raise ValueError("initial_delay_ms must be >= 0")

    @property
    def worst_case_wait_ms(self) -> int:
        """Total wait when every retry is used: delay * (2^n - 1)."""
        return self.initial_delay_ms * (2 ** self.max_retries - 1)


# ---------------------------------------------------------------------------
# Default Model Profiles
# ---------------------------------------------------------------------------

# --- Groq (fast tier) ---
GROQ_LLAMA = ModelProfile(
    provider="groq",
    model="llama-3.3-70b-versatile",
    base_url="https://api.groq.com/openai/v1/chat/completions",
    temperature=0.7,
    max_tokens=1024,
)

# --- DeepSeek (deep tier) ---
DEEPSEEK_CHAT = ModelProfile(
    provider="deepseek",
    model="deepseek-chat",
    base_url="https://api.deepseek.com/chat/completions",
    temperature=0.7,
)

# --- Gemini (multimodal / fallback tier) ---
GEMINI_FLASH = ModelProfile(
    provider="gemini",
    model="gemini-2.5-flash-preview-09-2025",
    base_url="https://generativelanguage.googleapis.com/v1beta/models",
)

DEFAULT_PROFILES: dict[Tier, ModelProfile] = {
    Tier.FAST: GROQ_LLAMA,
    Tier.DEEP: DEEPSEEK_CHAT,
    Tier.FALLBACK: GEMINI_FLASH,
}

# Mode → tier-specific primary. The fallback tier backs every mode.
MODE_PRIMARY: dict[ModelMode, Tier] = {
    ModelMode.FAST: Tier.FAST,
    ModelMode.DEEP: Tier.DEEP,
}


# ---------------------------------------------------------------------------
# LLM Config Manager
# ---------------------------------------------------------------------------

class LLMConfig:
    """
    Holds the tier profiles and retry policy used to build adapters.

    Falls back to DEFAULT_PROFILES for tiers that are not overridden.
    """

    def __init__(
        self,
        profiles: Optional[dict[Tier, ModelProfile]] = None,
        retry: Optional[RetryPolicy] = None,
        system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION,
    ):
        self._profiles = dict(DEFAULT_PROFILES)
        if profiles:
            self._profiles.update(profiles)
        self.retry = retry or RetryPolicy()
        self.system_instruction = system_instruction

    def get_profile(self, tier: str | Tier) -> ModelProfile:
        """Get the model profile for a tier."""
        return self._profiles[Tier(tier)]

    def primary_tier_for(self, mode: str | ModelMode) -> Tier:
        """Tier-specific primary for a mode (before credentials are checked)."""
        return MODE_PRIMARY[ModelMode(mode)]

    def override_profile(self, tier: Tier, **changes: Any) -> ModelProfile:
        """Replace fields of one tier's profile (model id, temperature, ...)."""
        profile = replace(self._profiles[tier], **changes)
        self._profiles[tier] = profile
        logger.debug(
            "llm_profile_overridden",
            extra={"tier": tier.value, "model": profile.display_name},
        )
        return profile

    def list_tiers(self) -> list[dict[str, Any]]:
        """Return a summary of all configured tiers."""
        return [
            {
                "tier": tier.value,
                "model": profile.display_name,
                "temperature": profile.temperature,
                "max_tokens": profile.max_tokens,
            }
            for tier, profile in self._profiles.items()
        ]
