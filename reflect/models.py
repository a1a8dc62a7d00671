"""
Reflect Data Models.

Pydantic models for conversation messages, BYOK provider credentials,
user settings, archived sessions and mood log entries.

Messages are frozen: once appended to a session they are never mutated.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Enums ────────────────────────────────────────────────────


class Role(str, Enum):
    """Author of a message."""
    USER = "user"
    ASSISTANT = "assistant"


class ModelMode(str, Enum):
    """Which primary tier the router tries first."""
    FAST = "fast"
    DEEP = "deep"


class Tier(str, Enum):
    """One of the three hosted LLM providers."""
    FAST = "fast"
    DEEP = "deep"
    FALLBACK = "fallback"


# ── Messages ─────────────────────────────────────────────────


class Message(BaseModel):
    """One turn of the coaching conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    @field_validator("role", mode="before")
    @classmethod
    def _legacy_model_role(cls, v: Any) -> Any:
        # Older sessions stored assistant turns as "model"
        if v == "model":
            return Role.ASSISTANT
        return v

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls(role=Role.ASSISTANT, content=content)


class ArchivedSession(BaseModel):
    """A finished coaching session kept for the user's history."""

    id: str = ""
    history: list[Message] = Field(default_factory=list)
    archived_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


# ── Credentials & Settings ───────────────────────────────────


def _mask(key: Optional[str]) -> str:
    if not key:
        return "-"
    if len(key) < 10:
        return "****"
    return f"{key[:4]}...{key[-4:]}"


class ProviderCredentials(BaseModel):
    """
    The user's own provider API keys (BYOK).

    Blank keys count as absent, and an absent key means the tier is
    skipped by the router.
    """

    model_config = ConfigDict(frozen=True)

    fast_key: Optional[str] = None
    deep_key: Optional[str] = None
    fallback_key: Optional[str] = None

    @field_validator("fast_key", "deep_key", "fallback_key", mode="before")
    @classmethod
    def _blank_is_absent(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    def key_for(self, tier: Tier) -> Optional[str]:
        """Return the key for a tier, or None when it is not configured."""
        return {
            Tier.FAST: self.fast_key,
            Tier.DEEP: self.deep_key,
            Tier.FALLBACK: self.fallback_key,
        }[tier]

    @property
    def is_empty(self) -> bool:
        return not (self.fast_key or self.deep_key or self.fallback_key)

    def masked(self) -> dict[str, str]:
        """Display-safe view of the keys."""
        return {
            "fast": _mask(self.fast_key),
            "deep": _mask(self.deep_key),
            "fallback": _mask(self.fallback_key),
        }

    def __repr__(self) -> str:
        m = self.masked()
        return (
            f"ProviderCredentials(fast={m['fast']}, deep={m['deep']}, "
            f"fallback={m['fallback']})"
        )

    __str__ = __repr__


class UserSettings(BaseModel):
    """Profile fields and provider keys for one user."""

    age: Optional[int] = Field(None, ge=1, le=130)
    credentials: ProviderCredentials = Field(default_factory=ProviderCredentials)

    @field_validator("age", mode="before")
    @classmethod
    def _blank_age(cls, v: Any) -> Any:
        if v == "":
            return None
        return v


# ── Mood Log ─────────────────────────────────────────────────


class Mood(BaseModel):
    """One of the fixed moods a user can log."""

    model_config = ConfigDict(frozen=True)

    emoji: str
    label: str
    score: int = Field(..., ge=1, le=5)


MOODS: tuple[Mood, ...] = (
    Mood(emoji="\U0001F604", label="Joyful", score=5),
    Mood(emoji="\U0001F60C", label="Calm", score=4),
    Mood(emoji="\U0001F610", label="Neutral", score=3),
    Mood(emoji="\U0001F61F", label="Anxious", score=2),
    Mood(emoji="\U0001F62D", label="Distressed", score=1),
)


def find_mood(label: str) -> Mood:
    """Look up a mood by its label (case-insensitive)."""
    for mood in MOODS:
        if mood.label.lower() == label.strip().lower():
            return mood
    valid = ", ".join(m.label for m in MOODS)
    raise ValueError(f"Unknown mood '{label}'. Choose one of: {valid}")


class MoodEntry(BaseModel):
    """A logged mood with the user's caption."""

    id: str = ""
    mood: Mood
    caption: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @field_validator("caption")
    @classmethod
    def _caption_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("caption must not be empty")
        return v
