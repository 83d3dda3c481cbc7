"""Live view of one coach/student conversation.

Entries are either a :class:`PendingMessage` (sent locally, not yet
persisted) or a :class:`ConfirmedMessage` (a stored row). A pending entry is
replaced in place by its stored row, matched on the correlation token the
row was written with, so the conversation order never changes on
confirmation. Confirmed entries are unique by id however many paths deliver
the same row.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Union

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from coachdesk.realtime.feed import INSERT, ChangeEvent, ChangeFeed, Subscription, conversation_channel
from coachdesk.services.messaging import MessageStore

logger = logging.getLogger(__name__)


class MessageValidationError(ValueError):
    """Rejected before any I/O; nothing was added to the conversation."""


class MessageSendError(Exception):
    """Persisting a message failed; its optimistic entry has been removed."""


@dataclass
class PendingMessage:
    local_id: str
    sender_id: str
    receiver_id: str
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: str = field(default="pending", init=False)


@dataclass
class ConfirmedMessage:
    id: str
    sender_id: str
    receiver_id: str
    content: str
    created_at: datetime
    is_read: bool = False
    client_token: str | None = None
    state: str = field(default="confirmed", init=False)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ConfirmedMessage":
        return cls(
            id=row["id"],
            sender_id=row["sender_id"],
            receiver_id=row["receiver_id"],
            content=row["content"],
            created_at=row["created_at"],
            is_read=row.get("is_read", False),
            client_token=row.get("client_token"),
        )


Entry = Union[PendingMessage, ConfirmedMessage]


class Conversation:
    def __init__(self, user_id: str, store: MessageStore, feed: ChangeFeed) -> None:
        self.user_id = user_id
        self.store = store
        self.feed = feed
        self.partner_id: str | None = None
        self.entries: list[Entry] = []
        self._generation = 0
        self._subscription: Subscription | None = None
        # Correlation tokens of messages sent through this conversation
        self._sent_tokens: set[str] = set()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    def _teardown(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def is_relevant(self, row: dict[str, Any]) -> bool:
        if self.partner_id is None:
            return False
        return {row.get("sender_id"), row.get("receiver_id")} == {self.user_id, self.partner_id}

    def _confirmed_ids(self) -> set[str]:
        return {entry.id for entry in self.entries if isinstance(entry, ConfirmedMessage)}

    def _reconcile(self, row: dict[str, Any]) -> bool:
        """Merge a stored row. Returns False if it was already present."""
        if row["id"] in self._confirmed_ids():
            return False
        confirmed = ConfirmedMessage.from_row(row)
        token = row.get("client_token")
        if token:
            for index, entry in enumerate(self.entries):
                if isinstance(entry, PendingMessage) and entry.local_id == token:
                    self.entries[index] = confirmed
                    return True
        self.entries.append(confirmed)
        return True

    async def open(self, partner_id: str) -> bool:
        """Switch to ``partner_id``, load its history and mark it read.

        Returns False when a newer ``open`` superseded this one while the
        history was loading; the stale response is dropped.
        """
        self._generation += 1
        generation = self._generation
        self._teardown()
        self.partner_id = partner_id
        self.entries = []
        self._sent_tokens = set()

        # Subscribe before loading so nothing inserted in between is missed;
        # duplicates are dropped by id.
        self._subscription = self.feed.subscribe(
            conversation_channel(self.user_id, partner_id),
            "messages",
            events=(INSERT,),
            predicate=lambda event: self.is_relevant(event.new or {}),
        )
        rows = await run_in_threadpool(self.store.fetch_conversation, self.user_id, partner_id)
        if generation != self._generation:
            logger.info(
                f"Dropping stale history for {partner_id}, conversation moved on"
            )
            return False
        for row in rows:
            self._reconcile(row)
        await run_in_threadpool(self.store.mark_read, self.user_id, partner_id)
        return True

    async def send(self, content: str) -> ConfirmedMessage:
        content = (content or "").strip()
        if not content:
            raise MessageValidationError("Message cannot be empty")
        if self.partner_id is None:
            raise MessageValidationError("No conversation is open")

        generation = self._generation
        pending = PendingMessage(
            local_id=uuid.uuid4().hex,
            sender_id=self.user_id,
            receiver_id=self.partner_id,
            content=content,
        )
        self.entries.append(pending)
        self._sent_tokens.add(pending.local_id)
        try:
            row = await run_in_threadpool(
                self.store.send, self.user_id, self.partner_id, content, pending.local_id
            )
        except (SQLAlchemyError, LookupError, PermissionError, ValueError) as exc:
            if pending in self.entries:
                self.entries.remove(pending)
            self._sent_tokens.discard(pending.local_id)
            logger.warning(f"Send from {self.user_id} failed, rolled back: {exc}")
            raise MessageSendError(str(exc)) from exc

        if generation == self._generation:
            self._reconcile(row)
        return ConfirmedMessage.from_row(row)

    async def apply(self, event: ChangeEvent) -> bool:
        """Merge a change event. Returns True when it added an entry."""
        if event.table != "messages" or event.type != INSERT or not event.new:
            return False
        row = event.new
        if not self.is_relevant(row):
            return False
        if not self._reconcile(row):
            return False
        if row["receiver_id"] == self.user_id and not row.get("is_read"):
            await run_in_threadpool(self.store.mark_read, self.user_id, self.partner_id)
        return True

    def sent_here(self, row: dict[str, Any]) -> bool:
        """Whether ``row`` is the stored copy of a message sent through ``send``."""
        return row.get("client_token") in self._sent_tokens

    async def listen(self) -> AsyncIterator[ConfirmedMessage]:
        """Apply events from the current subscription, yielding each new entry.

        Rows sent through :meth:`send` are merged but not yielded, since
        ``send`` already returns them. Ends when the subscription is torn
        down by ``open`` or ``close``.
        """
        subscription = self._subscription
        if subscription is None:
            return
        async for event in subscription:
            if await self.apply(event) and not self.sent_here(event.new):
                yield self.find(event.new["id"])

    def find(self, message_id: str) -> ConfirmedMessage | None:
        for entry in self.entries:
            if isinstance(entry, ConfirmedMessage) and entry.id == message_id:
                return entry
        return None

    def close(self) -> None:
        self._generation += 1
        self._teardown()
        self.partner_id = None

    def snapshot(self) -> list[dict[str, Any]]:
        return [asdict(entry) for entry in self.entries]
