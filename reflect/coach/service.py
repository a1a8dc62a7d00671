"""
Coach Service — one outgoing message, end to end.

    user text → append + persist → route → append reply + persist

Only one message may be in flight at a time; a second submission while
the first is still routing raises SendInProgressError. If a new session
starts while a reply is pending, the late reply is dropped.

Demo mode never touches the network and answers with a canned echo.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from reflect.coach.session import SessionLifecycle
from reflect.exceptions import SendInProgressError
from reflect.llm.router import ProviderRouter, Recovered, RouterOutcome, Success
from reflect.models import Message, ModelMode, ProviderCredentials

logger = logging.getLogger(__name__)

DEMO_REPLY = (
    "I'm in Demo Mode. I can't really think, but I hear you saying: "
    '"{text}". How does that make you feel?'
)


class CoachService:
    """Sends coaching messages for one signed-in user."""

    def __init__(
        self,
        session: SessionLifecycle,
        router: ProviderRouter,
        credentials: Callable[[], ProviderCredentials],
        *,
        instruction: str,
        mode: ModelMode = ModelMode.FAST,
        demo_mode: bool = False,
        demo_delay_seconds: float = 0.0,
    ):
        self.session = session
        self._router = router
        self._credentials = credentials
        self.instruction = instruction
        self.mode = mode
        self.demo_mode = demo_mode
        self._demo_delay = demo_delay_seconds
        self._in_flight = False

    @property
    def busy(self) -> bool:
        """True while a message is being routed; the UI disables input."""
        return self._in_flight

    @property
    def history(self) -> tuple[Message, ...]:
        return self.session.log.messages

    def set_mode(self, mode: str | ModelMode) -> ModelMode:
        self.mode = ModelMode(mode)
        logger.info("coach_mode_changed", extra={"mode": self.mode.value})
        return self.mode

    async def send_message(self, text: str) -> RouterOutcome:
        """
        Append the user's message, get a reply, append it.

        Returns:
            The router's outcome. On Failure the history holds the
            user's message and nothing else was appended.

        Raises:
            ValueError: If `text` is blank.
            SendInProgressError: If another message is still routing.
        """
        if not text or not text.strip():
            raise ValueError("Message must not be empty")
        if self._in_flight:
            raise SendInProgressError("A message is already being sent")

        self._in_flight = True
        try:
            return await self._send(text)
        finally:
            self._in_flight = False

    async def _send(self, text: str) -> RouterOutcome:
        generation = self.session.generation

        if self.demo_mode:
            self.session.append(Message.user(text))
            if self._demo_delay:
                await asyncio.sleep(self._demo_delay)
            outcome: RouterOutcome = Success(text=DEMO_REPLY.format(text=text))
            self._accept_reply(outcome, generation)
            return outcome

        self.session.append(Message.user(text))
        outcome = await self._router.route(
            mode=self.mode,
            history=self.session.log.messages,
            instruction=self.instruction,
            credentials=self._credentials(),
        )

        if isinstance(outcome, (Success, Recovered)):
            self._accept_reply(outcome, generation)
        else:
            logger.warning(
                "coach_reply_failed",
                extra={"mode": self.mode.value, "reason": outcome.reason.value},
            )
        return outcome

    def _accept_reply(
        self, outcome: Success | Recovered, generation: int
    ) -> Optional[Message]:
        if generation != self.session.generation:
            logger.info(
                "coach_stale_reply_dropped",
                extra={"generation": generation},
            )
            return None
        return self.session.append(Message.assistant(outcome.text))

    def start_new_session(self) -> Optional[str]:
        """Archive and reset. Demo mode keeps nothing, so it just resets."""
        if self.demo_mode:
            if len(self.session.log) > 0:
                self.session.reset()
                self.session.persist()
            return None
        return self.session.start_new_session()
