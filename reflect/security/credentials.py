"""
Credential storage — encrypted BYOK provider keys and profile fields.

Keys are the user's own (Groq, DeepSeek, Gemini). They are saved only
through `SettingsRepository.save` and are Fernet-encrypted at rest when
a master key is available.

Security model:
    - Encryption key is derived from REFLECT_MASTER_KEY
    - Each provider key is independently encrypted
    - Without a master key, keys are stored as entered (legacy
      behaviour of the hosted store) and a warning is logged once
    - Keys never appear in logs; display uses masked values

Usage:
    from reflect.security.credentials import SettingsRepository

    repo = SettingsRepository(store)
    repo.save(UserSettings(credentials=ProviderCredentials(fast_key="gsk_...")))
    settings = repo.load()
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

from reflect.exceptions import ConfigurationError
from reflect.models import ProviderCredentials, UserSettings
from reflect.storage.base import DocumentStore

logger = logging.getLogger(__name__)


MASTER_KEY_ENV = "REFLECT_MASTER_KEY"
SETTINGS_PATH = "user_settings/keys"

_KEY_FIELDS = ("fast_key", "deep_key", "fallback_key")

# Field names written by the original web client
_LEGACY_FIELDS = {
    "groqKey": "fast_key",
    "deepseekKey": "deep_key",
    "geminiKey": "fallback_key",
}


# ---------------------------------------------------------------------------
# Encryption Utilities
# ---------------------------------------------------------------------------

def _derive_fernet_key(master_key: str) -> bytes:
    """
    Derive a Fernet-compatible key from a master key string.

    SHA-256 of the master key, url-safe base64 encoded (32 bytes).
    """
    hashed = hashlib.sha256(master_key.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(hashed)


def resolve_master_key(master_key: Optional[str] = None) -> Optional[str]:
    """Explicit key, else REFLECT_MASTER_KEY, else None."""
    key = master_key or os.environ.get(MASTER_KEY_ENV, "").strip()
    return key or None


def encrypt_value(plaintext: str, master_key: str) -> str:
    """Encrypt a credential; returns a token safe to store."""
    f = Fernet(_derive_fernet_key(master_key))
    return f.encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt_value(encrypted_text: str, master_key: str) -> str:
    """
    Decrypt a stored credential.

    Raises:
        InvalidToken: If the token is corrupt or the master key is wrong.
    """
    f = Fernet(_derive_fernet_key(master_key))
    return f.decrypt(encrypted_text.encode("utf-8")).decode("utf-8")


# ---------------------------------------------------------------------------
# Settings Repository
# ---------------------------------------------------------------------------

class SettingsRepository:
    """
    Reads and writes the user's settings document.

    The router only ever reads credentials through `load()`; the single
    write path is `save()`, which merges into the stored document.
    """

    def __init__(self, store: DocumentStore, master_key: Optional[str] = None):
        self._store = store
        self._master_key = resolve_master_key(master_key)
        self._warned_plaintext = False

    @property
    def encrypts(self) -> bool:
        return self._master_key is not None

    def load(self) -> UserSettings:
        """Load settings; a missing document yields empty settings."""
        doc = self._store.get(SETTINGS_PATH)
        if not doc:
            return UserSettings()

        doc = dict(doc)
        for legacy, field in _LEGACY_FIELDS.items():
            if legacy in doc and field not in doc:
                doc[field] = doc.pop(legacy)

        keys: dict[str, Optional[str]] = {}
        encrypted = bool(doc.get("encrypted"))
        for field in _KEY_FIELDS:
            value = doc.get(field)
            if value and encrypted:
                value = self._decrypt(field, value)
            keys[field] = value

        return UserSettings(
            age=doc.get("age"),
            credentials=ProviderCredentials(**keys),
        )

    def save(self, settings: UserSettings) -> None:
        """Merge settings into the stored document."""
        creds = settings.credentials
        doc: dict[str, Any] = {"age": settings.age, "encrypted": self.encrypts}

        for field in _KEY_FIELDS:
            value = getattr(creds, field)
            if value and self._master_key:
                value = encrypt_value(value, self._master_key)
            doc[field] = value

        if not self.encrypts and not creds.is_empty and not self._warned_plaintext:
            logger.warning(
                "credentials_stored_unencrypted",
                extra={"hint": f"set {MASTER_KEY_ENV} to encrypt provider keys"},
            )
            self._warned_plaintext = True

        self._store.set(SETTINGS_PATH, doc, merge=True)
        logger.info(
            "settings_saved",
            extra={
                "user_id": self._store.user_id,
                "tiers": [f for f in _KEY_FIELDS if getattr(creds, f)],
                "encrypted": self.encrypts,
            },
        )

    def _decrypt(self, field: str, token: str) -> str:
        if not self._master_key:
            raise ConfigurationError(
                f"Stored provider keys are encrypted; set {MASTER_KEY_ENV} "
                "to read them."
            )
        try:
            return decrypt_value(token, self._master_key)
        except InvalidToken as e:
            raise ConfigurationError(
                f"Could not decrypt {field}: wrong {MASTER_KEY_ENV}?"
            ) from e
