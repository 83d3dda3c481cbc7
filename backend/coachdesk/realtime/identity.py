"""Per-connection session state.

A :class:`SessionState` is created once for a connection, started, and closed
when the connection ends. It resolves the token into an identity, loads that
identity's profile and then follows the identity's auth notifications.
"""
from __future__ import annotations

import logging
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from coachdesk.core.security import user_id_from_access_token
from coachdesk.realtime.feed import ChangeEvent, ChangeFeed, Subscription, auth_channel
from coachdesk.schemas.profile import ProfilePublic
from coachdesk.services import accounts

logger = logging.getLogger(__name__)

AUTH_TABLE = "auth"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"
USER_UPDATED = "USER_UPDATED"


def auth_event(user_id: str, event_type: str) -> ChangeEvent:
    return ChangeEvent(table=AUTH_TABLE, type=event_type, new={"user_id": user_id})


class SessionState:
    def __init__(self, token: str, session_factory: sessionmaker, feed: ChangeFeed) -> None:
        self.token = token
        self.feed = feed
        self.user_id: str | None = None
        self.profile: ProfilePublic | None = None
        self.loading = True
        self._session_factory = session_factory
        self._subscription: Subscription | None = None

    @property
    def has_session(self) -> bool:
        return self.user_id is not None

    def _load_profile(self, user_id: str) -> ProfilePublic | None:
        db = self._session_factory()
        try:
            profile = accounts.get_profile(db, user_id)
            return ProfilePublic.model_validate(profile) if profile is not None else None
        finally:
            db.close()

    async def start(self) -> None:
        """Resolve the session and load the profile. ``loading`` is cleared
        however the resolution ends.
        """
        try:
            try:
                self.user_id = user_id_from_access_token(self.token)
            except ValueError:
                logger.info("No valid session for connection")
                self.user_id = None
                return
            self._subscription = self.feed.subscribe(
                auth_channel(self.user_id),
                AUTH_TABLE,
                predicate=lambda event: (event.new or {}).get("user_id") == self.user_id,
            )
            await self.refresh_profile()
        finally:
            self.loading = False

    async def refresh_profile(self) -> ProfilePublic | None:
        if self.user_id is None:
            self.profile = None
            return None
        try:
            self.profile = await run_in_threadpool(self._load_profile, self.user_id)
        except SQLAlchemyError:
            logger.exception(f"Could not load profile for {self.user_id}")
            self.profile = None
        return self.profile

    async def handle(self, event: ChangeEvent) -> None:
        if event.type == SIGNED_OUT:
            logger.info(f"Session for {self.user_id} signed out")
            self.user_id = None
            self.profile = None
            self.close()
        elif event.type in (SIGNED_IN, USER_UPDATED, TOKEN_REFRESHED):
            await self.refresh_profile()

    async def watch(self) -> AsyncIterator[ChangeEvent]:
        """Apply auth notifications as they arrive; ends on sign-out or close."""
        if self._subscription is None:
            return
        async for event in self._subscription:
            await self.handle(event)
            yield event

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def snapshot(self) -> dict:
        return {
            "loading": self.loading,
            "user_id": self.user_id,
            "profile": self.profile.model_dump(mode="json") if self.profile else None,
        }
