import asyncio
import contextlib
import json
import logging
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from coachdesk.api import deps
from coachdesk.core.config import get_settings
from coachdesk.core.security import user_id_from_access_token
from coachdesk.db.session import get_db, get_session_factory
from coachdesk.models.profile import Profile
from coachdesk.realtime.conversation import Conversation, MessageSendError, MessageValidationError
from coachdesk.realtime.feed import ChangeFeed
from coachdesk.realtime.unread import UnreadCounter
from coachdesk.schemas.message import MessageCreate, MessagePublic, UnreadSummary
from coachdesk.services import accounts, messaging

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_pair(db: Session, user_id: str, partner_id: str) -> None:
    if accounts.find_pair_between(db, user_id, partner_id) is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only message your coach or your students",
        )


@router.get("/unread", response_model=UnreadSummary)
def get_unread(
    db: Session = Depends(get_db),
    profile: Profile = Depends(deps.get_current_profile),
) -> UnreadSummary:
    by_sender = messaging.unread_by_sender(db, profile.id)
    return UnreadSummary(count=sum(by_sender.values()), by_sender=by_sender)


@router.get("/{partner_id}", response_model=list[MessagePublic])
def get_conversation(
    partner_id: str,
    db: Session = Depends(get_db),
    profile: Profile = Depends(deps.get_current_profile),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> list[MessagePublic]:
    """Conversation history, oldest first. Marks the partner's messages read."""
    _require_pair(db, profile.id, partner_id)
    messages = messaging.fetch_conversation(
        db, profile.id, partner_id, get_settings().message_history_limit
    )
    history = [MessagePublic.model_validate(message) for message in messages]
    messaging.mark_read(db, profile.id, partner_id, feed=feed)
    return history


@router.post("/", response_model=MessagePublic, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: MessageCreate,
    db: Session = Depends(get_db),
    profile: Profile = Depends(deps.get_current_profile),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> MessagePublic:
    try:
        return messaging.send_message(
            db,
            profile.id,
            payload.receiver_id,
            payload.content,
            payload.client_token,
            feed=feed,
        )
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _paired(session_factory: sessionmaker, user_id: str, partner_id: str) -> bool:
    db = session_factory()
    try:
        return accounts.find_pair_between(db, user_id, partner_id) is not None
    finally:
        db.close()


async def _forward(websocket: WebSocket, kind: str, source: AsyncIterator[Any]) -> None:
    async for item in source:
        await websocket.send_json(jsonable_encoder({"type": kind, "data": item}))


async def _stop(task: asyncio.Task) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
        await task


@router.websocket("/ws/unread")
async def unread_socket(
    websocket: WebSocket,
    token: str = Query(...),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> None:
    """Push the caller's unread count on connect and after every change to it."""
    try:
        user_id = user_id_from_access_token(token)
    except ValueError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()

    feed = deps.get_change_feed(websocket)
    counter = UnreadCounter(user_id, messaging.MessageStore(session_factory, feed), feed)
    pump = None
    try:
        await websocket.send_json({"type": "unread", "data": await counter.start()})
        pump = asyncio.create_task(_forward(websocket, "unread", counter.updates()))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug(f"Unread socket for {user_id} disconnected")
    finally:
        counter.close()
        if pump is not None:
            await _stop(pump)


@router.websocket("/ws/{partner_id}")
async def conversation_socket(
    websocket: WebSocket,
    partner_id: str,
    token: str = Query(...),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> None:
    """Live conversation.

    The server sends ``history`` once, then ``message`` for each new row that
    was not sent over this socket. The client sends ``{"content": ...}``; each
    send is answered with ``sent`` (the stored row) or ``error``.
    """
    try:
        user_id = user_id_from_access_token(token)
    except ValueError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if not await run_in_threadpool(_paired, session_factory, user_id, partner_id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()

    feed = deps.get_change_feed(websocket)
    store = messaging.MessageStore(
        session_factory, feed, history_limit=get_settings().message_history_limit
    )
    conversation = Conversation(user_id, store, feed)
    pump = None
    try:
        await conversation.open(partner_id)
        await websocket.send_json(
            jsonable_encoder({"type": "history", "data": conversation.snapshot()})
        )
        pump = asyncio.create_task(_forward(websocket, "message", conversation.listen()))
        while True:
            try:
                payload = await websocket.receive_json()
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "detail": "Frames must be JSON"})
                continue
            content = payload.get("content", "") if isinstance(payload, dict) else ""
            try:
                confirmed = await conversation.send(str(content))
            except (MessageValidationError, MessageSendError) as exc:
                await websocket.send_json({"type": "error", "detail": str(exc)})
                continue
            await websocket.send_json(jsonable_encoder({"type": "sent", "data": confirmed}))
    except WebSocketDisconnect:
        logger.debug(f"Conversation socket {user_id} -> {partner_id} disconnected")
    finally:
        conversation.close()
        if pump is not None:
            await _stop(pump)
