"""Tests for the pydantic data models."""

from __future__ import annotations

import pydantic
import pytest

from reflect.models import (
    MOODS,
    ArchivedSession,
    Message,
    MoodEntry,
    ProviderCredentials,
    Role,
    Tier,
    UserSettings,
    find_mood,
)


class TestMessage:

    def test_constructors(self):
        assert Message.user("hi").role == Role.USER
        assert Message.assistant("hello").role == Role.ASSISTANT

    def test_frozen(self):
        msg = Message.user("hi")
        with pytest.raises(pydantic.ValidationError):
            msg.content = "changed"

    def test_legacy_model_role(self):
        msg = Message.model_validate({"role": "model", "content": "old reply"})
        assert msg.role == Role.ASSISTANT

    def test_unknown_role_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            Message.model_validate({"role": "system", "content": "x"})

    def test_json_round_trip(self):
        msg = Message.assistant("Let's reframe that.")
        assert Message.model_validate(msg.model_dump(mode="json")) == msg


class TestProviderCredentials:

    def test_blank_keys_are_absent(self):
        creds = ProviderCredentials(fast_key="", deep_key="  ", fallback_key=None)
        assert creds.fast_key is None
        assert creds.deep_key is None
        assert creds.is_empty

    def test_keys_are_stripped(self):
        assert ProviderCredentials(fast_key=" gsk-1 ").fast_key == "gsk-1"

    def test_key_for(self):
        creds = ProviderCredentials(fast_key="a", deep_key="b", fallback_key="c")
        assert creds.key_for(Tier.FAST) == "a"
        assert creds.key_for(Tier.DEEP) == "b"
        assert creds.key_for(Tier.FALLBACK) == "c"

    def test_repr_masks_keys(self):
        creds = ProviderCredentials(fast_key="gsk-abcdefghijklmnop")
        text = repr(creds)
        assert "gsk-abcdefghijklmnop" not in text
        assert "gsk-...mnop" in text
        assert str(creds) == text

    def test_short_keys_fully_masked(self):
        assert ProviderCredentials(deep_key="short").masked()["deep"] == "****"
        assert ProviderCredentials().masked()["fallback"] == "-"


class TestUserSettings:

    def test_blank_age(self):
        assert UserSettings(age="").age is None

    def test_age_bounds(self):
        with pytest.raises(pydantic.ValidationError):
            UserSettings(age=0)
        assert UserSettings(age=34).age == 34

    def test_defaults(self):
        settings = UserSettings()
        assert settings.credentials.is_empty


class TestMoods:

    def test_five_moods_with_scores(self):
        assert [(m.label, m.score) for m in MOODS] == [
            ("Joyful", 5), ("Calm", 4), ("Neutral", 3), ("Anxious", 2), ("Distressed", 1),
        ]

    def test_find_mood_case_insensitive(self):
        assert find_mood("calm").score == 4

    def test_find_mood_unknown(self):
        with pytest.raises(ValueError, match="Choose one of"):
            find_mood("Hangry")

    def test_entry_requires_caption(self):
        with pytest.raises(pydantic.ValidationError):
            MoodEntry(mood=MOODS[0], caption="   ")

    def test_entry_strips_caption(self):
        assert MoodEntry(mood=MOODS[0], caption="  sunny day ").caption == "sunny day"


class TestArchivedSession:

    def test_defaults(self):
        archived = ArchivedSession(history=[Message.user("hi")])
        assert archived.archived_at.tzinfo is not None
        assert archived.id == ""
