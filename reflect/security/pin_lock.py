"""
PIN Lock — a 4-digit device PIN guarding the app.

The PIN is set with a confirmation entry, stored as a salted PBKDF2
hash in the local key-value store, and checked in constant time. An
app with a PIN starts locked.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from typing import Optional

from reflect.exceptions import InvalidPinError, PinMismatchError
from reflect.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

PIN_KEY = "reflect_pin"
PIN_LENGTH = 4
_ITERATIONS = 100_000


def _hash_pin(pin: str, salt: bytes) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", pin.encode("utf-8"), salt, _ITERATIONS)
    return digest.hex()


def validate_pin(pin: str) -> str:
    """Return the PIN if it is exactly four digits."""
    if len(pin) != PIN_LENGTH or not pin.isdigit():
        raise InvalidPinError(f"PIN must be exactly {PIN_LENGTH} digits")
    return pin


class PinLock:
    """Lock state plus the stored PIN hash."""

    def __init__(self, kv: KeyValueStore):
        self._kv = kv
        self._locked = self.has_pin

    @property
    def has_pin(self) -> bool:
        return self._kv.get(PIN_KEY) is not None

    @property
    def is_locked(self) -> bool:
        return self._locked

    def set_pin(self, pin: str, confirm: str) -> None:
        """
        Store a new PIN and unlock.

        Raises:
            InvalidPinError: If the PIN is not four digits.
            PinMismatchError: If the confirmation differs.
        """
        validate_pin(pin)
        if not hmac.compare_digest(pin, confirm):
            raise PinMismatchError("PINs don't match")

        salt = secrets.token_bytes(16)
        self._kv.set(PIN_KEY, f"{salt.hex()}${_hash_pin(pin, salt)}")
        self._locked = False
        logger.info("pin_set")

    def unlock(self, pin: str) -> bool:
        """Unlock if `pin` matches. Returns whether the app is now unlocked."""
        stored = self._kv.get(PIN_KEY)
        if stored is None:
            self._locked = False
            return True

        salt_hex, _, expected = stored.partition("$")
        actual = _hash_pin(pin, bytes.fromhex(salt_hex))
        if hmac.compare_digest(actual, expected):
            self._locked = False
            logger.info("pin_unlocked")
            return True

        logger.warning("pin_rejected")
        return False

    def lock(self) -> bool:
        """Lock the app. Without a PIN there is nothing to lock."""
        if self.has_pin:
            self._locked = True
        return self._locked

    def clear(self, pin: str) -> Optional[bool]:
        """Remove the PIN after verifying it. None when no PIN was set."""
        if not self.has_pin:
            return None
        if not self.unlock(pin):
            return False
        self._kv.remove(PIN_KEY)
        self._locked = False
        return True
