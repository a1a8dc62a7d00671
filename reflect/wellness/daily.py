"""
Daily touches — the quote of the day and the mood check-in reminder.

Quote of the day:
    One quote per calendar day, cached in local storage. A random
    built-in quote is the default; with recent mood logs and a fallback
    tier key, Gemini writes a short quote tuned to those moods.

Check-in reminder:
    Prompt the user to log a mood when nothing has been logged today,
    unless they dismissed the prompt today. At most one notification a
    day, and only with notification permission.
"""

from __future__ import annotations

import json
import logging
import random
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from reflect.exceptions import NoCredentialsError, ProviderError
from reflect.llm.adapters import ProviderAdapter
from reflect.models import Message, MoodEntry, ProviderCredentials
from reflect.ports import Notifier, Permission
from reflect.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

QUOTE_KEY = "reflect_daily_quote"
DISMISSED_KEY = "reflect_last_dismissed"
NOTIFIED_KEY = "reflect_last_notified"

APP_NAME = "Reflect"
CHECK_IN_BODY = "Time to check in with yourself."

QUOTES: tuple[str, ...] = (
    "The only journey is the one within.",
    "Peace comes from within. Do not seek it without.",
    "Your mind will answer most questions if you learn to relax and wait for the answer.",
    "Feelings are something you have; not something you are.",
    "This too shall pass.",
    "Be kind to your mind.",
    "What you think, you become.",
    "Happiness depends upon ourselves.",
    "Turn your wounds into wisdom.",
    "Every moment is a fresh beginning.",
    "Believe you can and you're halfway there.",
    "You are enough just as you are.",
)

QUOTE_PROMPT = (
    "Generate a short, inspiring quote (max 15 words) for someone who has "
    "been feeling: {moods}. Return ONLY the quote text."
)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _local_date(value: datetime) -> date:
    return value.astimezone().date() if value.tzinfo else value.date()


class DailyQuoteService:
    """Picks, and caches, the quote of the day."""

    def __init__(
        self,
        kv: KeyValueStore,
        adapter: Optional[ProviderAdapter],
        credentials: Callable[[], ProviderCredentials],
        *,
        demo_mode: bool = False,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _local_now,
    ):
        self._kv = kv
        self._adapter = adapter
        self._credentials = credentials
        self._demo_mode = demo_mode
        self._rng = rng or random.Random()
        self._clock = clock

    def cached(self, today: Optional[date] = None) -> Optional[str]:
        today = today or self._clock().date()
        raw = self._kv.get(QUOTE_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        if data.get("date") == today.isoformat():
            return data.get("quote")
        return None

    def _cache(self, quote: str, today: date) -> None:
        self._kv.set(QUOTE_KEY, json.dumps({"date": today.isoformat(), "quote": quote}))

    async def quote_of_the_day(self, recent_moods: Sequence[MoodEntry] = ()) -> str:
        """
        Today's quote.

        Args:
            recent_moods: Mood entries, newest first.
        """
        today = self._clock().date()
        cached = self.cached(today)
        if cached:
            return cached

        quote = self._rng.choice(QUOTES)

        if not recent_moods or self._demo_mode or self._adapter is None:
            self._cache(quote, today)
            return quote

        try:
            ai_quote = await self._ask_for_quote(recent_moods)
        except (ProviderError, NoCredentialsError) as e:
            # Not cached: the next call tries the model again
            logger.warning("daily_quote_failed", extra={"error": str(e)[:200]})
            return quote

        self._cache(ai_quote, today)
        return ai_quote

    async def _ask_for_quote(self, recent_moods: Sequence[MoodEntry]) -> str:
        key = self._credentials().fallback_key
        if not key:
            raise NoCredentialsError("No fallback key for the daily quote", tier="fallback")
        moods = ", ".join(e.mood.label for e in recent_moods[:3])
        prompt = QUOTE_PROMPT.format(moods=moods)
        text = await self._adapter.send([Message.user(prompt)], "", key)
        return text.strip()


class CheckInReminder:
    """Decides when to nudge the user to log today's mood."""

    def __init__(
        self,
        kv: KeyValueStore,
        notifier: Optional[Notifier] = None,
        *,
        clock: Callable[[], datetime] = _local_now,
    ):
        self._kv = kv
        self._notifier = notifier
        self._clock = clock

    def _same_day(self, key: str) -> bool:
        raw = self._kv.get(key)
        if not raw:
            return False
        try:
            stamp = datetime.fromisoformat(raw)
        except ValueError:
            return False
        return _local_date(stamp) == self._clock().date()

    def dismissed_today(self) -> bool:
        return self._same_day(DISMISSED_KEY)

    def should_check_in(self, latest: Optional[MoodEntry], *, signed_in: bool = True) -> bool:
        """
        True when the user has not logged a mood today and has not
        dismissed today's prompt.
        """
        if self.dismissed_today():
            return False
        if latest is not None:
            return _local_date(latest.timestamp) != self._clock().date()
        return signed_in

    def dismiss(self) -> None:
        self._kv.set(DISMISSED_KEY, self._clock().isoformat())

    def notify_if_due(self, latest: Optional[MoodEntry], *, signed_in: bool = True) -> bool:
        """
        Send today's check-in notification if one is due and allowed.

        Returns whether a notification was sent.
        """
        if not self.should_check_in(latest, signed_in=signed_in):
            return False
        if self._notifier is None or self._notifier.permission != Permission.GRANTED:
            return False
        if self._same_day(NOTIFIED_KEY):
            return False

        self._notifier.notify(APP_NAME, CHECK_IN_BODY)
        self._kv.set(NOTIFIED_KEY, self._clock().isoformat())
        logger.info("check_in_notified")
        return True
