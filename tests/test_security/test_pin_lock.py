"""Tests for the 4-digit PIN lock."""

from __future__ import annotations

import pytest

from reflect.exceptions import InvalidPinError, PinMismatchError
from reflect.security.pin_lock import PIN_KEY, PinLock, validate_pin
from reflect.storage.memory import InMemoryKeyValueStore


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


class TestValidatePin:

    @pytest.mark.parametrize("pin", ["123", "12345", "12a4", "", "    "])
    def test_rejects(self, pin):
        with pytest.raises(InvalidPinError):
            validate_pin(pin)

    def test_accepts_four_digits(self):
        assert validate_pin("0420") == "0420"


class TestPinLock:

    def test_no_pin_starts_unlocked(self, kv):
        lock = PinLock(kv)
        assert not lock.has_pin
        assert not lock.is_locked
        assert lock.unlock("0000") is True

    def test_set_pin_stores_hash_not_pin(self, kv):
        PinLock(kv).set_pin("1234", "1234")
        stored = kv.get(PIN_KEY)
        salt_hex, sep, digest = stored.partition("$")
        assert sep == "$"
        assert len(salt_hex) == 32
        assert len(digest) == 64

    def test_mismatch(self, kv):
        with pytest.raises(PinMismatchError, match="don't match"):
            PinLock(kv).set_pin("1234", "4321")
        assert kv.get(PIN_KEY) is None

    def test_existing_pin_starts_locked(self, kv):
        PinLock(kv).set_pin("1234", "1234")
        lock = PinLock(kv)
        assert lock.is_locked
        assert lock.unlock("9999") is False
        assert lock.is_locked
        assert lock.unlock("1234") is True
        assert not lock.is_locked

    def test_lock_again(self, kv):
        lock = PinLock(kv)
        lock.set_pin("1234", "1234")
        assert lock.lock() is True
        assert lock.is_locked

    def test_lock_without_pin_stays_open(self, kv):
        assert PinLock(kv).lock() is False

    def test_same_pin_hashes_differently(self):
        a, b = InMemoryKeyValueStore(), InMemoryKeyValueStore()
        PinLock(a).set_pin("1234", "1234")
        PinLock(b).set_pin("1234", "1234")
        assert a.get(PIN_KEY) != b.get(PIN_KEY)

    def test_clear(self, kv):
        lock = PinLock(kv)
        assert lock.clear("1234") is None
        lock.set_pin("1234", "1234")
        assert lock.clear("0000") is False
        assert lock.has_pin
        assert lock.clear("1234") is True
        assert not lock.has_pin
