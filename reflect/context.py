"""
Application context — everything that belongs to one signed-in user.

Created by `AppContext.sign_in()` and torn down by `close()` (sign-out
or PIN lock). Nothing here is module-global: two contexts never share
credentials, history or stores.

Usage:
    settings = load_settings()
    ctx = AppContext.sign_in("user-123", settings)
    outcome = await ctx.coach.send_message("I keep thinking I'll fail.")
    ctx.close()
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Optional

import httpx

from reflect.coach.service import CoachService
from reflect.coach.session import SessionLifecycle
from reflect.config.schema import ReflectSettings
from reflect.exceptions import ContextClosedError
from reflect.llm.adapters import Sleeper, build_adapters
from reflect.llm.llm_config import LLMConfig
from reflect.llm.router import ProviderRouter
from reflect.models import ModelMode, ProviderCredentials, Tier, UserSettings
from reflect.observability.logging_config import clear_session_id, set_session_id
from reflect.ports import Notifier, NullNotifier
from reflect.security.credentials import SettingsRepository
from reflect.security.pin_lock import PinLock
from reflect.storage.base import DocumentStore, KeyValueStore
from reflect.storage.local import JsonDocumentStore, JsonKeyValueStore
from reflect.storage.memory import InMemoryDocumentStore, InMemoryKeyValueStore
from reflect.storage.supabase_store import SupabaseDocumentStore, supabase_configured
from reflect.wellness.daily import CheckInReminder, DailyQuoteService
from reflect.wellness.mood import MoodLogger

logger = logging.getLogger(__name__)

DEMO_USER_ID = "demo-user"


def default_document_store(settings: ReflectSettings, user_id: str) -> DocumentStore:
    """Demo → memory; Supabase when configured; otherwise local JSON files."""
    if settings.demo_mode:
        return InMemoryDocumentStore(user_id=user_id)
    if supabase_configured():
        return SupabaseDocumentStore(user_id)
    return JsonDocumentStore(settings.data_dir, user_id)


def default_kv_store(settings: ReflectSettings) -> KeyValueStore:
    if settings.demo_mode:
        return InMemoryKeyValueStore()
    return JsonKeyValueStore(settings.data_dir)


class AppContext:
    """The signed-in user's services, built once per sign-in."""

    def __init__(
        self,
        *,
        user_id: str,
        settings: ReflectSettings,
        store: DocumentStore,
        kv: KeyValueStore,
        llm_config: LLMConfig,
        router: ProviderRouter,
        notifier: Notifier,
        master_key: Optional[str] = None,
    ):
        self.user_id = user_id
        self.settings = settings
        self.llm_config = llm_config
        self.session_id = uuid.uuid4().hex[:12]
        self._store = store
        self._kv = kv
        self._router = router
        self._repository = SettingsRepository(store, master_key=master_key)
        self._user_settings: Optional[UserSettings] = self._repository.load()
        self._closed = False

        self._session = SessionLifecycle(store)
        self._session.load()
        self._coach = CoachService(
            self._session,
            router,
            self._current_credentials,
            instruction=llm_config.system_instruction,
            demo_mode=settings.demo_mode,
            demo_delay_seconds=settings.demo_delay_seconds,
        )
        self._moods = MoodLogger(store)
        self._pin = PinLock(kv)
        self._quotes = DailyQuoteService(
            kv,
            router.adapter(Tier.FALLBACK),
            self._current_credentials,
            demo_mode=settings.demo_mode,
        )
        self._check_in = CheckInReminder(kv, notifier)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def sign_in(
        cls,
        user_id: Optional[str],
        settings: ReflectSettings,
        *,
        store: Optional[DocumentStore] = None,
        kv: Optional[KeyValueStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleeper = asyncio.sleep,
        notifier: Optional[Notifier] = None,
        master_key: Optional[str] = None,
    ) -> AppContext:
        """
        Build a context for `user_id`.

        Args:
            user_id: The signed-in user. Defaults to the demo user in demo mode.
            settings: Validated application settings.
            store / kv: Override the persistence backends (tests, embedding).
            transport: httpx transport for provider calls (tests).
            sleep: Awaitable sleep used by the retry wrapper.

        Raises:
            ValueError: No user_id outside demo mode.
        """
        if not user_id:
            if not settings.demo_mode:
                raise ValueError("user_id is required unless demo mode is on")
            user_id = DEMO_USER_ID

        llm_config = settings.to_llm_config()
        router = ProviderRouter(
            build_adapters(llm_config, transport=transport, sleep=sleep)
        )
        ctx = cls(
            user_id=user_id,
            settings=settings,
            store=store or default_document_store(settings, user_id),
            kv=kv or default_kv_store(settings),
            llm_config=llm_config,
            router=router,
            notifier=notifier or NullNotifier(),
            master_key=master_key,
        )
        set_session_id(ctx.session_id)
        logger.info(
            "signed_in",
            extra={
                "user_id": user_id,
                "demo_mode": settings.demo_mode,
                "messages": len(ctx._session.log),
            },
        )
        return ctx

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def _require_open(self) -> None:
        if self._closed:
            raise ContextClosedError("This session has been closed; sign in again")

    def _current_credentials(self) -> ProviderCredentials:
        self._require_open()
        return self._user_settings.credentials

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def credentials(self) -> ProviderCredentials:
        return self._current_credentials()

    @property
    def user_settings(self) -> UserSettings:
        self._require_open()
        return self._user_settings

    @property
    def store(self) -> DocumentStore:
        self._require_open()
        return self._store

    @property
    def kv(self) -> KeyValueStore:
        self._require_open()
        return self._kv

    @property
    def router(self) -> ProviderRouter:
        self._require_open()
        return self._router

    @property
    def coach(self) -> CoachService:
        self._require_open()
        return self._coach

    @property
    def session(self) -> SessionLifecycle:
        self._require_open()
        return self._session

    @property
    def moods(self) -> MoodLogger:
        self._require_open()
        return self._moods

    @property
    def pin(self) -> PinLock:
        self._require_open()
        return self._pin

    @property
    def quotes(self) -> DailyQuoteService:
        self._require_open()
        return self._quotes

    @property
    def check_in(self) -> CheckInReminder:
        self._require_open()
        return self._check_in

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def save_settings(self, settings: UserSettings) -> UserSettings:
        """Persist new settings; the next routed message uses the new keys."""
        self._require_open()
        self._repository.save(settings)
        self._user_settings = settings
        return settings

    def set_mode(self, mode: str | ModelMode) -> ModelMode:
        return self.coach.set_mode(mode)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def lock(self) -> bool:
        """
        PIN-lock the app, which also signs out.

        Returns False, leaving the context open, when no PIN is set.
        """
        self._require_open()
        if not self._pin.lock():
            return False
        logger.info("app_locked", extra={"user_id": self.user_id})
        self.close()
        return True

    def close(self) -> None:
        """Sign out: drop credentials and the in-memory conversation."""
        if self._closed:
            return
        self._closed = True
        self._user_settings = None
        self._session.reset()
        clear_session_id()
        logger.info("signed_out", extra={"user_id": self.user_id})
