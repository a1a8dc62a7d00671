"""
Provider Adapters — one `send` contract, three hosted wire formats.

Each adapter turns the internal message list plus the coaching
instruction into a provider's JSON request, performs the HTTP call
through the backoff wrapper, and pulls the assistant text back out:

- FastTierAdapter      → Groq (OpenAI-compatible chat completions)
- DeepTierAdapter      → DeepSeek (OpenAI-compatible chat completions)
- FallbackTierAdapter  → Gemini generateContent

The router depends only on `ProviderAdapter`; tests swap in fakes.

Usage:
    adapter = FastTierAdapter()
    text = await adapter.send(history, instruction, api_key="gsk_...")
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import httpx

from reflect.exceptions import (
    InvalidResponseError,
    NoCredentialsError,
    ProviderHTTPError,
    RateLimitedError,
    TransientHTTPError,
)
from reflect.llm.llm_config import (
    DEEPSEEK_CHAT,
    GEMINI_FLASH,
    GROQ_LLAMA,
    ModelProfile,
    RetryPolicy,
)
from reflect.llm.retry import Sleeper, with_backoff
from reflect.models import Message, Role, Tier

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request Description
# ---------------------------------------------------------------------------

class ProviderRequest:
    """Everything needed to POST one chat request."""

    __slots__ = ("url", "headers", "params", "payload")

    def __init__(
        self,
        url: str,
        payload: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
    ):
        self.url = url
        self.payload = payload
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.params = params or {}


def _error_detail(response: httpx.Response) -> str:
    """Best-effort provider error message from a failed response body."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or ""
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])[:200]
        if isinstance(err, str):
            return err[:200]
    return response.reason_phrase or ""


# ---------------------------------------------------------------------------
# Adapter Interface
# ---------------------------------------------------------------------------

class ProviderAdapter(ABC):
    """
    Contract shared by all tiers: `send(history, instruction, api_key)`.

    Subclasses only describe the wire format (`build_request` and
    `parse_response`); the HTTP call, retry and validation live here.
    """

    tier: Tier

    def __init__(
        self,
        profile: ModelProfile,
        *,
        retry: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.profile = profile
        self.retry = retry or RetryPolicy()
        self._transport = transport
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.tier.value

    # --- Wire format ---

    @abstractmethod
    def build_request(
        self,
        history: Sequence[Message],
        instruction: str,
        api_key: str,
    ) -> ProviderRequest:
        """Translate messages + instruction into the provider's request."""

    @abstractmethod
    def parse_response(self, data: Any) -> str:
        """
        Extract the assistant text from a decoded response body.

        Raises:
            InvalidResponseError: If the expected text field is absent.
        """

    # --- Send ---

    async def send(
        self,
        history: Sequence[Message],
        instruction: str,
        api_key: str,
    ) -> str:
        """
        Send the conversation to this tier and return the assistant text.

        Raises:
            NoCredentialsError: If `api_key` is empty.
            ProviderError: Any HTTP, transport, or parsing failure once the
                           retry budget is spent.
        """
        if not api_key:
            raise NoCredentialsError(
                f"No API key for the {self.name} tier", tier=self.name
            )

        request = self.build_request(history, instruction, api_key)
        start = time.monotonic()

        async with httpx.AsyncClient(
            timeout=self.profile.timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await with_backoff(
                lambda: self._post(client, request),
                policy=self.retry,
                sleep=self._sleep,
                label=self.name,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                f"{self.profile.display_name} returned a body that is not JSON",
                tier=self.name,
                status_code=response.status_code,
            ) from e

        text = self.parse_response(data)
        if not text.strip():
            raise InvalidResponseError(
                f"{self.profile.display_name} returned an empty reply",
                tier=self.name,
                status_code=response.status_code,
            )

        logger.debug(
            "llm_adapter_replied",
            extra={
                "tier": self.name,
                "model": self.profile.display_name,
                "latency_ms": round((time.monotonic() - start) * 1000, 1),
                "chars": len(text),
            },
        )
        return text

    async def _post(
        self, client: httpx.AsyncClient, request: ProviderRequest
    ) -> httpx.Response:
        """One HTTP attempt, with failures mapped onto the error taxonomy."""
        try:
            response = await client.post(
                request.url,
                headers=request.headers,
                params=request.params or None,
                json=request.payload,
            )
        except httpx.TimeoutException as e:
            raise TransientHTTPError(
                f"{self.profile.display_name} timed out", tier=self.name
            ) from e
        except httpx.TransportError as e:
            raise TransientHTTPError(
                f"{self.profile.display_name} unreachable: {type(e).__name__}",
                tier=self.name,
            ) from e

        if response.status_code == 429:
            raise RateLimitedError(
                f"{self.profile.display_name} rate limited the request",
                tier=self.name,
            )
        if response.status_code >= 500:
            raise TransientHTTPError(
                f"API Error: {response.status_code} {_error_detail(response)}",
                tier=self.name,
                status_code=response.status_code,
            )
        if not response.is_success:
            raise ProviderHTTPError(
                f"API Error: {response.status_code} {_error_detail(response)}",
                tier=self.name,
                status_code=response.status_code,
            )
        return response


# ---------------------------------------------------------------------------
# OpenAI-compatible Tiers (Groq, DeepSeek)
# ---------------------------------------------------------------------------

class _ChatCompletionsAdapter(ProviderAdapter):
    """Shared shape for `/chat/completions` style providers."""

    send_max_tokens: bool = False

    def build_request(
        self,
        history: Sequence[Message],
        instruction: str,
        api_key: str,
    ) -> ProviderRequest:
        messages: list[dict[str, str]] = []
        if instruction:
            messages.append({"role": "system", "content": instruction})
        messages.extend(
            {"role": m.role.value, "content": m.content} for m in history
        )

        payload: dict[str, Any] = {
            "model": self.profile.model,
            "messages": messages,
            "temperature": self.profile.temperature,
        }
        if self.send_max_tokens and self.profile.max_tokens is not None:
            payload["max_tokens"] = self.profile.max_tokens

        return ProviderRequest(
            url=self.profile.base_url,
            payload=payload,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def parse_response(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise InvalidResponseError(
                f"{self.profile.display_name} response has no "
                "choices[0].message.content",
                tier=self.name,
            ) from e
        if not isinstance(content, str):
            raise InvalidResponseError(
                f"{self.profile.display_name} returned non-text content",
                tier=self.name,
            )
        return content


class FastTierAdapter(_ChatCompletionsAdapter):
    """Groq — low-latency replies for everyday chat."""

    tier = Tier.FAST
    send_max_tokens = True

    def __init__(self, profile: ModelProfile = GROQ_LLAMA, **kwargs: Any):
        super().__init__(profile, **kwargs)


class DeepTierAdapter(_ChatCompletionsAdapter):
    """DeepSeek — slower, more reflective replies."""

    tier = Tier.DEEP

    def __init__(self, profile: ModelProfile = DEEPSEEK_CHAT, **kwargs: Any):
        super().__init__(profile, **kwargs)


# ---------------------------------------------------------------------------
# Gemini (multimodal / fallback tier)
# ---------------------------------------------------------------------------

class FallbackTierAdapter(ProviderAdapter):
    """
    Gemini generateContent.

    The instruction travels as a leading user turn and assistant turns
    use Gemini's "model" role. The key goes in the query string.
    """

    tier = Tier.FALLBACK

    def __init__(self, profile: ModelProfile = GEMINI_FLASH, **kwargs: Any):
        super().__init__(profile, **kwargs)

    def build_request(
        self,
        history: Sequence[Message],
        instruction: str,
        api_key: str,
    ) -> ProviderRequest:
        contents: list[dict[str, Any]] = []
        if instruction:
            contents.append({"role": "user", "parts": [{"text": instruction}]})
        for m in history:
            contents.append({
                "role": "user" if m.role == Role.USER else "model",
                "parts": [{"text": m.content}],
            })

        return ProviderRequest(
            url=f"{self.profile.base_url}/{self.profile.model}:generateContent",
            payload={"contents": contents},
            params={"key": api_key},
        )

    def parse_response(self, data: Any) -> str:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise InvalidResponseError(
                f"{self.profile.display_name} response has no "
                "candidates[0].content.parts[0].text",
                tier=self.name,
            ) from e
        if not isinstance(text, str):
            raise InvalidResponseError(
                f"{self.profile.display_name} returned non-text content",
                tier=self.name,
            )
        return text


ADAPTER_TYPES: dict[Tier, type[ProviderAdapter]] = {
    Tier.FAST: FastTierAdapter,
    Tier.DEEP: DeepTierAdapter,
    Tier.FALLBACK: FallbackTierAdapter,
}


def build_adapters(
    config: Any,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Sleeper = asyncio.sleep,
) -> dict[Tier, ProviderAdapter]:
    """Create one adapter per tier from an LLMConfig."""
    return {
        tier: cls(
            config.get_profile(tier),
            retry=config.retry,
            transport=transport,
            sleep=sleep,
        )
        for tier, cls in ADAPTER_TYPES.items()
    }
