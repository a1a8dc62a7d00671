"""Tests for the message log and the session lifecycle."""

from __future__ import annotations

import pytest

from reflect.coach.session import (
    ARCHIVE_COLLECTION,
    CURRENT_SESSION_PATH,
    MessageLog,
    SessionLifecycle,
)
from reflect.models import Message
from reflect.storage.memory import InMemoryDocumentStore


@pytest.fixture
def store():
    return InMemoryDocumentStore(user_id="u1")


class TestMessageLog:

    def test_append_keeps_order(self):
        log = MessageLog()
        log.append(Message.user("one"))
        log.append(Message.assistant("two"))
        assert [m.content for m in log] == ["one", "two"]
        assert log.last.content == "two"
        assert len(log) == 2

    def test_rejects_non_messages(self):
        with pytest.raises(TypeError):
            MessageLog().append({"role": "user", "content": "x"})  # type: ignore[arg-type]

    def test_messages_is_a_snapshot(self):
        log = MessageLog([Message.user("a")])
        snapshot = log.messages
        log.append(Message.user("b"))
        assert len(snapshot) == 1

    def test_empty_last(self):
        assert MessageLog().last is None


class TestSessionLifecycle:

    def test_append_n_then_reload(self, store):
        session = SessionLifecycle(store)
        sent = [
            Message.user(f"user {i}") if i % 2 == 0 else Message.assistant(f"coach {i}")
            for i in range(7)
        ]
        for m in sent:
            session.append(m)

        reloaded = SessionLifecycle(store).load()
        assert list(reloaded.messages) == sent

    def test_persisted_document_shape(self, store):
        session = SessionLifecycle(store)
        session.append(Message.user("hello"))
        assert store.get(CURRENT_SESSION_PATH) == {
            "history": [{"role": "user", "content": "hello"}]
        }

    def test_load_missing_session(self, store):
        assert len(SessionLifecycle(store).load()) == 0

    def test_load_legacy_model_role(self, store):
        store.set(CURRENT_SESSION_PATH, {"history": [
            {"role": "user", "content": "hi"},
            {"role": "model", "content": "hello"},
        ]})
        log = SessionLifecycle(store).load()
        assert log.last == Message.assistant("hello")

    def test_new_session_on_empty_history_is_noop(self, store):
        session = SessionLifecycle(store)
        assert session.start_new_session() is None
        assert store.list(ARCHIVE_COLLECTION) == []
        assert session.generation == 0

    def test_new_session_archives_and_resets(self, store):
        session = SessionLifecycle(store)
        session.append(Message.user("I failed my exam"))
        session.append(Message.assistant("What evidence supports that?"))

        archive_id = session.start_new_session()

        assert archive_id
        assert len(session.log) == 0
        assert session.generation == 1
        assert store.get(CURRENT_SESSION_PATH) == {"history": []}

        archived = session.archived_sessions()
        assert len(archived) == 1
        assert archived[0].id == archive_id
        assert [m.content for m in archived[0].history] == [
            "I failed my exam", "What evidence supports that?",
        ]
        assert archived[0].archived_at is not None

    def test_archives_listed_newest_first(self, store):
        session = SessionLifecycle(store)
        for text in ("first", "second"):
            session.append(Message.user(text))
            session.start_new_session()
        archived = session.archived_sessions()
        assert [a.history[0].content for a in archived] == ["second", "first"]
        assert len(session.archived_sessions(limit=1)) == 1

    def test_reset_leaves_storage_alone(self, store):
        session = SessionLifecycle(store)
        session.append(Message.user("keep me"))
        session.reset()
        assert len(session.log) == 0
        assert session.generation == 1
        assert len(SessionLifecycle(store).load()) == 1
