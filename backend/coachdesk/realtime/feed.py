"""In-process change feed.

Writers publish a :class:`ChangeEvent` after their transaction commits;
readers hold a :class:`Subscription`, an async iterator over the events that
match its table, event types and predicate. Publishing is safe from worker
threads (sync routes run in the threadpool): delivery is handed to the
subscriber's own event loop.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
ALL_EVENTS = "*"

_CLOSED = object()


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    type: str
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None


def conversation_channel(first_id: str, second_id: str) -> str:
    low, high = sorted((first_id, second_id))
    return f"chat_{low}_{high}"


def unread_channel(user_id: str) -> str:
    return f"unread_{user_id}"


def auth_channel(user_id: str) -> str:
    return f"auth_{user_id}"


class Subscription:
    """One subscriber's stream of events.

    Iterate with ``async for``; iteration ends once :meth:`close` is called.
    Usable as an async context manager so the subscription is released when
    the scope exits.
    """

    def __init__(
        self,
        feed: "ChangeFeed",
        channel: str,
        table: str,
        events: Iterable[str],
        predicate: Callable[[ChangeEvent], bool] | None,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self.feed = feed
        self.channel = channel
        self.table = table
        self.events = frozenset(events)
        self.predicate = predicate
        self.closed = False
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue()

    def matches(self, event: ChangeEvent) -> bool:
        if self.closed or event.table != self.table:
            return False
        if ALL_EVENTS not in self.events and event.type not in self.events:
            return False
        return self.predicate is None or self.predicate(event)

    def _put(self, item: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # Subscriber's loop is gone; nobody is left to read.
            self.closed = True

    def deliver(self, event: ChangeEvent) -> None:
        self._put(event)

    async def get(self) -> ChangeEvent | None:
        """Next event, or ``None`` once the subscription is closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.feed.unsubscribe(self)
        self._put(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class ChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        channel: str,
        table: str,
        events: Iterable[str] = (ALL_EVENTS,),
        predicate: Callable[[ChangeEvent], bool] | None = None,
    ) -> Subscription:
        """Open a subscription bound to the running event loop."""
        subscription = Subscription(
            self, channel, table, events, predicate, asyncio.get_running_loop()
        )
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug(f"Subscribed to {channel} ({table})")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
                logger.debug(f"Unsubscribed from {subscription.channel}")

    def publish(self, event: ChangeEvent) -> int:
        """Hand ``event`` to every matching subscription; returns how many."""
        with self._lock:
            targets = [sub for sub in self._subscriptions if sub.matches(event)]
        for subscription in targets:
            subscription.deliver(event)
        return len(targets)

    def channels(self) -> set[str]:
        with self._lock:
            return {sub.channel for sub in self._subscriptions}
