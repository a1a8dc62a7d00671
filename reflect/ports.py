"""
Capability ports — speech and notifications as injected collaborators.

The coaching core never reaches for a microphone, a speaker or the
desktop notification centre directly. Front-ends pass in objects that
satisfy these protocols; the Null implementations report that the
capability is missing.

Usage:
    draft = await dictate(recognizer, draft)
    synthesizer.speak(reply)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol, runtime_checkable

from reflect.exceptions import NoSpeechDetectedError, SpeechUnsupportedError

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


@runtime_checkable
class SpeechRecognizer(Protocol):
    """One-shot speech-to-text."""

    async def listen_once(self) -> str:
        """
        Listen for a single utterance.

        Raises:
            SpeechUnsupportedError: No recognizer on this platform.
            NoSpeechDetectedError: Listening ended without speech.
        """
        ...


@runtime_checkable
class SpeechSynthesizer(Protocol):
    """Text-to-speech; speaking again cancels the current utterance."""

    @property
    def speaking(self) -> bool:
        ...

    def speak(self, text: str) -> None:
        ...

    def stop(self) -> None:
        ...


@runtime_checkable
class Notifier(Protocol):
    """Local (desktop) notifications."""

    @property
    def permission(self) -> Permission:
        ...

    async def request_permission(self) -> Permission:
        ...

    def notify(self, title: str, body: str) -> None:
        ...


# ── Helpers ───────────────────────────────────────────────────


async def dictate(recognizer: SpeechRecognizer, draft: str = "") -> str:
    """
    Append one spoken utterance to the draft message.

    Raises whatever the recognizer raises; the draft is unchanged then.
    """
    transcript = (await recognizer.listen_once()).strip()
    if not transcript:
        raise NoSpeechDetectedError("No speech was detected")
    return f"{draft} {transcript}" if draft else transcript


async def enable_notifications(notifier: Notifier, app_name: str) -> bool:
    """Ask for permission if undecided; confirm with a notification."""
    permission = notifier.permission
    if permission == Permission.DEFAULT:
        permission = await notifier.request_permission()
    if permission != Permission.GRANTED:
        logger.info("notifications_not_granted", extra={"status": permission.value})
        return False
    notifier.notify(app_name, "Notifications enabled! We'll remind you to check in.")
    return True


# ── Null implementations ──────────────────────────────────────


class NullSpeechRecognizer:
    async def listen_once(self) -> str:
        raise SpeechUnsupportedError(
            "Speech recognition not supported on this platform."
        )


class NullSpeechSynthesizer:
    @property
    def speaking(self) -> bool:
        return False

    def speak(self, text: str) -> None:
        raise SpeechUnsupportedError("Speech synthesis not supported on this platform.")

    def stop(self) -> None:
        return None


class NullNotifier:
    @property
    def permission(self) -> Permission:
        return Permission.DENIED

    async def request_permission(self) -> Permission:
        return Permission.DENIED

    def notify(self, title: str, body: str) -> None:
        return None
