"""Live unread-message counter for the navigation badge."""
from __future__ import annotations

import logging
from typing import AsyncIterator

from starlette.concurrency import run_in_threadpool

from coachdesk.realtime.feed import ChangeEvent, ChangeFeed, Subscription, unread_channel
from coachdesk.services.messaging import MessageStore

logger = logging.getLogger(__name__)


class UnreadCounter:
    """Recomputes the user's unread count whenever a message addressed to
    them is inserted, updated or deleted, whichever conversation it is in.
    """

    def __init__(self, user_id: str, store: MessageStore, feed: ChangeFeed) -> None:
        self.user_id = user_id
        self.store = store
        self.feed = feed
        self.count = 0
        self._subscription: Subscription | None = None

    def _addressed_to_user(self, event: ChangeEvent) -> bool:
        rows = (event.new or {}, event.old or {})
        return any(row.get("receiver_id") == self.user_id for row in rows)

    async def refresh(self) -> int:
        self.count = await run_in_threadpool(self.store.count_unread, self.user_id)
        return self.count

    async def start(self) -> int:
        if self._subscription is None:
            self._subscription = self.feed.subscribe(
                unread_channel(self.user_id),
                "messages",
                predicate=self._addressed_to_user,
            )
        return await self.refresh()

    async def updates(self) -> AsyncIterator[int]:
        """Yield the recomputed count after every relevant change."""
        if self._subscription is None:
            await self.start()
        async for _event in self._subscription:
            yield await self.refresh()

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
