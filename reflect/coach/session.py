"""
Coaching session — the append-only message log and its lifecycle.

The current session lives at `cbt_sessions/current_session`. Starting a
new session archives a non-empty history into `archived_cbt_sessions`
(with an `archived_at` timestamp) and resets the current one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterator, Optional, Sequence

from reflect.models import ArchivedSession, Message
from reflect.storage.base import DocumentStore

logger = logging.getLogger(__name__)

CURRENT_SESSION_PATH = "cbt_sessions/current_session"
ARCHIVE_COLLECTION = "archived_cbt_sessions"


class MessageLog:
    """Ordered, append-only conversation history."""

    def __init__(self, messages: Sequence[Message] = ()):
        self._messages: list[Message] = list(messages)

    def append(self, message: Message) -> Message:
        if not isinstance(message, Message):
            raise TypeError(f"Expected Message, got {type(message).__name__}")
        self._messages.append(message)
        return message

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def to_documents(self) -> list[dict]:
        return [m.model_dump(mode="json") for m in self._messages]


class SessionLifecycle:
    """
    Loads, persists, and archives the current coaching session.

    `generation` increases every time a new session starts, so callers
    awaiting a reply can tell when the session they appended to is gone.
    """

    def __init__(self, store: DocumentStore, log: Optional[MessageLog] = None):
        self._store = store
        self.log = log or MessageLog()
        self.generation = 0

    def load(self) -> MessageLog:
        """Replace the in-memory log with the stored current session."""
        doc = self._store.get(CURRENT_SESSION_PATH) or {}
        history = [Message.model_validate(m) for m in doc.get("history", [])]
        self.log = MessageLog(history)
        logger.debug(
            "session_loaded",
            extra={"user_id": self._store.user_id, "messages": len(history)},
        )
        return self.log

    def append(self, message: Message) -> Message:
        """Append to the log and persist the whole history."""
        self.log.append(message)
        self.persist()
        return message

    def persist(self) -> None:
        self._store.set(
            CURRENT_SESSION_PATH,
            {"history": self.log.to_documents()},
            merge=True,
        )

    def reset(self) -> None:
        """Drop the in-memory log without touching storage."""
        self.log = MessageLog()
        self.generation += 1

    def start_new_session(self) -> Optional[str]:
        """
        Archive the current history (if any) and start an empty session.

        Returns:
            The archive document id, or None when there was nothing to
            archive. An empty history is left untouched.
        """
        if len(self.log) == 0:
            return None

        archived = ArchivedSession(
            history=list(self.log.messages),
            archived_at=datetime.now(timezone.utc),
        )
        archive_id = self._store.add(
            ARCHIVE_COLLECTION, archived.model_dump(mode="json", exclude={"id"})
        )
        self._store.set(CURRENT_SESSION_PATH, {"history": []})
        self.reset()

        logger.info(
            "session_archived",
            extra={
                "user_id": self._store.user_id,
                "archive_id": archive_id,
                "messages": len(archived.history),
            },
        )
        return archive_id

    def archived_sessions(self, limit: Optional[int] = None) -> list[ArchivedSession]:
        """Archived sessions, newest first."""
        docs = self._store.list(ARCHIVE_COLLECTION, newest_first=True, limit=limit)
        return [ArchivedSession.model_validate(d) for d in docs]
