"""
Provider Router — mode-based tier selection with fallback chaining.

Picks the adapter for an outgoing coaching message and sequences at
most two providers:

- fast mode → Groq, else Gemini
- deep mode → DeepSeek, else Gemini
- a failing tier-specific primary hands over to Gemini once

Tier failures are expected (the tier-specific providers reject
browser-origin calls in some deployments), so they are logged as
warnings and reported as a RouterOutcome instead of raised.

Usage:
    from reflect.llm.router import ProviderRouter

    router = ProviderRouter(build_adapters(LLMConfig()))
    outcome = await router.route(
        mode=ModelMode.FAST,
        history=log.messages,
        instruction=DEFAULT_SYSTEM_INSTRUCTION,
        credentials=ctx.credentials,
    )
    if outcome.ok:
        print(outcome.text)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence, Union

import httpx

from reflect.exceptions import NoCredentialsError, ProviderError
from reflect.llm.adapters import ProviderAdapter
from reflect.llm.llm_config import MODE_PRIMARY
from reflect.models import Message, ModelMode, ProviderCredentials, Tier

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Outcome Types
# ---------------------------------------------------------------------------

class FailureReason(str, Enum):
    """Why a routed message produced no reply."""

    NO_CREDENTIALS = "no_credentials"
    FALLBACK_ALSO_FAILED = "fallback_also_failed"
    NO_FALLBACK_AVAILABLE = "no_fallback_available"


@dataclass(frozen=True)
class Success:
    """The primary tier answered."""

    text: str
    tier: Optional[Tier] = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Recovered:
    """The primary failed and the fallback tier answered."""

    text: str
    via: Tier = Tier.FALLBACK

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """No reply; `message` is suitable for showing to the user."""

    reason: FailureReason
    message: str

    @property
    def ok(self) -> bool:
        return False

    @property
    def text(self) -> None:
        return None


RouterOutcome = Union[Success, Recovered, Failure]

_FAILURE_MESSAGES = {
    FailureReason.NO_CREDENTIALS: (
        "No API key is configured for this mode. Add a key in Settings."
    ),
    FailureReason.FALLBACK_ALSO_FAILED: (
        "Both the {primary} provider and the fallback provider failed."
    ),
    FailureReason.NO_FALLBACK_AVAILABLE: (
        "The {primary} provider failed and no fallback is available."
    ),
}

# Failures the router absorbs into an outcome. Anything else is a bug.
_ROUTABLE_ERRORS = (ProviderError, NoCredentialsError, httpx.HTTPError)


# ---------------------------------------------------------------------------
# Provider Router
# ---------------------------------------------------------------------------

class ProviderRouter:
    """
    Sequences tier adapters for one outgoing message.

    Holds no conversation state: every call is independent, and the
    only side effects are the adapters' own network calls.
    """

    def __init__(self, adapters: Mapping[Tier, ProviderAdapter]):
        missing = [t.value for t in Tier if t not in adapters]
        if missing:
            raise ValueError(f"Missing adapters for tiers: {', '.join(missing)}")
        self._adapters = dict(adapters)

    def adapter(self, tier: Tier) -> ProviderAdapter:
        return self._adapters[tier]

    @staticmethod
    def select_primary(
        mode: str | ModelMode, credentials: ProviderCredentials
    ) -> Optional[Tier]:
        """
        Tier the router will try first, or None when no key can serve
        the mode.
        """
        tier = MODE_PRIMARY[ModelMode(mode)]
        if credentials.key_for(tier):
            return tier
        if credentials.fallback_key:
            return Tier.FALLBACK
        return None

    async def route(
        self,
        mode: str | ModelMode,
        history: Sequence[Message],
        instruction: str,
        credentials: ProviderCredentials,
    ) -> RouterOutcome:
        """
        Produce the assistant reply for `history`, trying at most two tiers.

        Args:
            mode: fast or deep
            history: Full conversation, oldest first, ending with the
                     user's new message
            instruction: Coaching preamble sent as system instruction
            credentials: The user's BYOK keys

        Returns:
            Success, Recovered, or Failure.
        """
        mode = ModelMode(mode)
        primary = self.select_primary(mode, credentials)

        if primary is None:
            logger.warning("llm_no_credentials", extra={"mode": mode.value})
            return _failure(FailureReason.NO_CREDENTIALS, mode.value)

        try:
            text = await self._send(primary, history, instruction, credentials)
        except _ROUTABLE_ERRORS as primary_error:
            logger.warning(
                "llm_primary_failed",
                extra={
                    "mode": mode.value,
                    "tier": primary.value,
                    "error": str(primary_error)[:200],
                },
            )
        else:
            logger.info(
                "llm_routed",
                extra={"mode": mode.value, "tier": primary.value},
            )
            return Success(text=text, tier=primary)

        if primary == Tier.FALLBACK or not credentials.fallback_key:
            return _failure(FailureReason.NO_FALLBACK_AVAILABLE, primary.value)

        try:
            text = await self._send(
                Tier.FALLBACK, history, instruction, credentials
            )
        except _ROUTABLE_ERRORS as fallback_error:
            logger.error(
                "llm_fallback_also_failed",
                extra={
                    "mode": mode.value,
                    "tier": primary.value,
                    "fallback_error": str(fallback_error)[:200],
                },
            )
            return _failure(FailureReason.FALLBACK_ALSO_FAILED, primary.value)

        logger.info(
            "llm_fallback_used",
            extra={"mode": mode.value, "tier": Tier.FALLBACK.value},
        )
        return Recovered(text=text, via=Tier.FALLBACK)

    async def _send(
        self,
        tier: Tier,
        history: Sequence[Message],
        instruction: str,
        credentials: ProviderCredentials,
    ) -> str:
        api_key = credentials.key_for(tier) or ""
        return await self._adapters[tier].send(list(history), instruction, api_key)


def _failure(reason: FailureReason, primary: str) -> Failure:
    return Failure(
        reason=reason,
        message=_FAILURE_MESSAGES[reason].format(primary=primary),
    )
