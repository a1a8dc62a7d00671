"""
Tests for encrypted BYOK credential storage.

Validates:
- Fernet round-trip with a master key
- Plaintext storage (with one warning) when no master key is set
- Legacy web-client field names are still readable
- Merge semantics of save()
"""

from __future__ import annotations

import base64
import hashlib
import logging

import pytest
from cryptography.fernet import Fernet, InvalidToken

from reflect.exceptions import ConfigurationError
from reflect.models import ProviderCredentials, UserSettings
from reflect.security.credentials import (
    MASTER_KEY_ENV,
    SETTINGS_PATH,
    SettingsRepository,
    decrypt_value,
    encrypt_value,
    resolve_master_key,
)
from reflect.storage.memory import InMemoryDocumentStore


@pytest.fixture(autouse=True)
def _no_master_key_env(monkeypatch):
    monkeypatch.delenv(MASTER_KEY_ENV, raising=False)


@pytest.fixture
def store():
    return InMemoryDocumentStore(user_id="u1")


SETTINGS = UserSettings(
    age=29,
    credentials=ProviderCredentials(fast_key="gsk-fast-123456", fallback_key="AIza-fb-654321"),
)


class TestEncryptionUtilities:

    def test_roundtrip(self):
        token = encrypt_value("gsk-secret", "master")
        assert token != "gsk-secret"
        assert decrypt_value(token, "master") == "gsk-secret"

    def test_wrong_master_key(self):
        token = encrypt_value("gsk-secret", "master")
        with pytest.raises(InvalidToken):
            decrypt_value(token, "other")

    def test_key_is_sha256_of_master(self):
        token = encrypt_value("gsk-secret", "master")
        key = base64.urlsafe_b64encode(hashlib.sha256(b"master").digest())
        assert Fernet(key).decrypt(token.encode()).decode() == "gsk-secret"

    def test_resolve_master_key(self, monkeypatch):
        assert resolve_master_key() is None
        monkeypatch.setenv(MASTER_KEY_ENV, "from-env")
        assert resolve_master_key() == "from-env"
        assert resolve_master_key("explicit") == "explicit"


class TestSettingsRepository:

    def test_missing_document_gives_empty_settings(self, store):
        settings = SettingsRepository(store).load()
        assert settings.age is None
        assert settings.credentials.is_empty

    def test_encrypted_roundtrip(self, store):
        repo = SettingsRepository(store, master_key="master")
        repo.save(SETTINGS)

        raw = store.get(SETTINGS_PATH)
        assert raw["encrypted"] is True
        assert raw["fast_key"] != "gsk-fast-123456"
        assert raw["deep_key"] is None

        loaded = SettingsRepository(store, master_key="master").load()
        assert loaded == SETTINGS

    def test_master_key_from_env(self, store, monkeypatch):
        monkeypatch.setenv(MASTER_KEY_ENV, "env-master")
        SettingsRepository(store).save(SETTINGS)
        assert SettingsRepository(store, master_key="env-master").load() == SETTINGS

    def test_plaintext_without_master_key_warns_once(self, store, caplog):
        repo = SettingsRepository(store)
        with caplog.at_level(logging.WARNING):
            repo.save(SETTINGS)
            repo.save(SETTINGS)

        warnings = [r for r in caplog.records if r.getMessage() == "credentials_stored_unencrypted"]
        assert len(warnings) == 1
        assert store.get(SETTINGS_PATH)["fast_key"] == "gsk-fast-123456"
        assert repo.load() == SETTINGS

    def test_keys_never_logged(self, store, caplog):
        with caplog.at_level(logging.DEBUG):
            SettingsRepository(store).save(SETTINGS)
        assert "gsk-fast-123456" not in caplog.text

    def test_encrypted_without_master_key_is_config_error(self, store):
        SettingsRepository(store, master_key="master").save(SETTINGS)
        with pytest.raises(ConfigurationError):
            SettingsRepository(store).load()

    def test_wrong_master_key_is_config_error(self, store):
        SettingsRepository(store, master_key="master").save(SETTINGS)
        with pytest.raises(ConfigurationError, match="decrypt"):
            SettingsRepository(store, master_key="wrong").load()

    def test_legacy_field_names(self, store):
        store.set(SETTINGS_PATH, {
            "age": "41",
            "groqKey": "gsk-legacy",
            "deepseekKey": "",
            "geminiKey": "AIza-legacy",
        })
        settings = SettingsRepository(store).load()
        assert settings.age == 41
        assert settings.credentials.fast_key == "gsk-legacy"
        assert settings.credentials.deep_key is None
        assert settings.credentials.fallback_key == "AIza-legacy"

    def test_save_merges_with_existing_document(self, store):
        store.set(SETTINGS_PATH, {"theme": "dark"})
        SettingsRepository(store).save(SETTINGS)
        assert store.get(SETTINGS_PATH)["theme"] == "dark"
