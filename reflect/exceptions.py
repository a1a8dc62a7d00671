"""
Custom exception hierarchy for Reflect.

Structured error handling with clear categories:
- Configuration errors (caught at startup)
- Provider errors (one hosted LLM call went wrong)
- Retryable vs permanent provider failures
- Session / context misuse
- PIN lock and capability (speech, notifications) failures

Usage:
    from reflect.exceptions import RateLimitedError, ProviderError

    try:
        text = await adapter.send(history, instruction, api_key)
    except ProviderError as e:
        logger.warning("provider_failed", extra={"tier": e.tier})
"""

from __future__ import annotations

from typing import Optional


class ReflectError(Exception):
    """
    Base exception for all Reflect errors.

    All custom exceptions inherit from this, so you can catch
    `ReflectError` to handle any application-specific error.
    """

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


# ── Configuration Errors ──────────────────────────────────────────


class ConfigurationError(ReflectError):
    """
    Raised when reflect.yaml or the environment holds invalid settings.
    """

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.config_path = config_path


# ── Provider Errors ───────────────────────────────────────────────


class ProviderError(ReflectError):
    """
    Raised when a hosted LLM provider call fails.

    The router treats every ProviderError as an expected, recoverable
    event: it moves on to the fallback tier or reports a Failure outcome.
    """

    def __init__(
        self,
        message: str,
        *,
        tier: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.tier = tier
        self.status_code = status_code


class TransientHTTPError(ProviderError):
    """
    A provider failure worth retrying (network blip, timeout, 5xx).

    Absorbed by the backoff wrapper until its retry budget runs out.
    """


class RateLimitedError(TransientHTTPError):
    """The provider answered HTTP 429."""

    def __init__(
        self,
        message: str = "Rate limited",
        *,
        tier: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, tier=tier, status_code=429, details=details)


class ProviderHTTPError(ProviderError):
    """The provider answered with a non-success status."""


class InvalidResponseError(ProviderError):
    """
    The provider answered 2xx but the assistant text was missing,
    malformed, or empty.
    """


class RetryDeadlineExceeded(ProviderError):
    """The backoff wrapper would have waited past its deadline."""

    def __init__(
        self,
        message: str,
        *,
        waited_ms: int = 0,
        deadline_ms: int = 0,
        tier: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, tier=tier, details=details)
        self.waited_ms = waited_ms
        self.deadline_ms = deadline_ms


class NoCredentialsError(ReflectError):
    """No usable API key for the requested tier or mode."""

    def __init__(
        self,
        message: str = "No API key configured",
        *,
        tier: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.tier = tier


# ── Session / Context Errors ──────────────────────────────────────


class SendInProgressError(ReflectError):
    """A message is already being routed; submissions are serialized."""


class ContextClosedError(ReflectError):
    """The application context was closed (sign-out or lock)."""


class StoreError(ReflectError):
    """
    Raised when reading from or writing to a document or key-value
    store fails.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.operation = operation
        self.path = path


# ── PIN Lock ──────────────────────────────────────────────────────


class PinError(ReflectError):
    """Base class for PIN lock errors."""


class InvalidPinError(PinError):
    """The PIN is not exactly four digits."""


class PinMismatchError(PinError):
    """The confirmation PIN does not match."""


# ── Capabilities ──────────────────────────────────────────────────


class CapabilityError(ReflectError):
    """Base class for speech / notification port failures."""


class SpeechUnsupportedError(CapabilityError):
    """Speech recognition or synthesis is not available here."""


class NoSpeechDetectedError(CapabilityError):
    """The recognizer finished without hearing anything."""
