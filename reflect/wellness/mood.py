"""
Mood logger — log a mood with a caption, read trends back.

Entries live in the `mood_logs` collection. `recent()` returns the
newest 20, the same window the insights view charts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from reflect.models import Mood, MoodEntry, find_mood
from reflect.storage.base import DocumentStore

logger = logging.getLogger(__name__)

MOOD_COLLECTION = "mood_logs"
RECENT_LIMIT = 20

INSIGHT_STABILIZING = (
    "Your mood seems to be stabilizing. Great job logging consistently!"
)
INSIGHT_NEED_MORE = "Log more moods to unlock personalized AI insights."


@dataclass(frozen=True)
class TrendPoint:
    """One chart point: short weekday name and mood score."""

    day: str
    score: int
    timestamp: datetime


class MoodLogger:
    """Writes and reads a user's mood log."""

    def __init__(self, store: DocumentStore):
        self._store = store

    def log(self, mood: str | Mood, caption: str) -> MoodEntry:
        """
        Save a mood entry.

        Raises:
            ValueError: Unknown mood label or empty caption.
        """
        if isinstance(mood, str):
            mood = find_mood(mood)
        entry = MoodEntry(
            mood=mood, caption=caption, timestamp=datetime.now(timezone.utc)
        )
        doc_id = self._store.add(
            MOOD_COLLECTION, entry.model_dump(mode="json", exclude={"id"})
        )
        logger.info(
            "mood_logged",
            extra={"user_id": self._store.user_id, "mood": mood.label},
        )
        return entry.model_copy(update={"id": doc_id})

    def recent(self, limit: int = RECENT_LIMIT) -> list[MoodEntry]:
        """Newest entries first."""
        docs = self._store.list(MOOD_COLLECTION, newest_first=True, limit=limit)
        entries = [MoodEntry.model_validate(d) for d in docs]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries

    def latest(self) -> Optional[MoodEntry]:
        entries = self.recent(limit=1)
        return entries[0] if entries else None


def trend(entries: Sequence[MoodEntry]) -> list[TrendPoint]:
    """
    Chart series, oldest first.

    `entries` are expected newest first, as returned by `recent()`.
    """
    return [
        TrendPoint(
            day=e.timestamp.astimezone().strftime("%a"),
            score=e.mood.score,
            timestamp=e.timestamp,
        )
        for e in reversed(entries)
    ]


def insight(points: Sequence[TrendPoint]) -> str:
    """Encouragement shown under the chart."""
    return INSIGHT_STABILIZING if len(points) > 3 else INSIGHT_NEED_MORE


def average_score(entries: Sequence[MoodEntry]) -> Optional[float]:
    if not entries:
        return None
    return round(sum(e.mood.score for e in entries) / len(entries), 2)
