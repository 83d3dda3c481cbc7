import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session, sessionmaker

from coachdesk.api import deps
from coachdesk.core.security import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    get_password_hash,
    user_id_from_token,
    verify_password,
)
from coachdesk.db.session import get_db, get_session_factory
from coachdesk.models.profile import Profile, Role
from coachdesk.models.user import User
from coachdesk.realtime.feed import ChangeFeed
from coachdesk.realtime.identity import (
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    SessionState,
    auth_event,
)
from coachdesk.schemas import auth as auth_schema
from coachdesk.schemas.profile import ProfilePublic, ProfileSummary
from coachdesk.services import accounts

logger = logging.getLogger(__name__)

router = APIRouter()


def _token_pair(user_id: str) -> auth_schema.TokenPair:
    return auth_schema.TokenPair(
        access_token=create_access_token(user_id),
        refresh_token=create_refresh_token(user_id),
    )


@router.post("/register", response_model=auth_schema.TokenPair)
def register_user(
    payload: auth_schema.RegisterRequest,
    db: Session = Depends(get_db),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> auth_schema.TokenPair:
    existing = db.query(User).filter(User.email == payload.email).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered"
        )
    if accounts.username_exists(db, payload.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Username already taken"
        )
    if payload.coach_id and payload.role != Role.STUDENT.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only students can choose a coach",
        )

    user = User(
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
    )
    user.profile = Profile(
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        username=payload.username,
        email=payload.email,
    )
    db.add(user)
    db.flush()
    if payload.coach_id:
        try:
            accounts.get_profile_with_role(db, payload.coach_id, Role.COACH)
            accounts.pair_student(db, payload.coach_id, user.id)
        except LookupError as exc:
            db.rollback()
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except ValueError as exc:
            db.rollback()
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    db.refresh(user)
    logger.info(f"Registered {payload.role} {user.id}")
    feed.publish(auth_event(user.id, SIGNED_IN))
    return _token_pair(user.id)


@router.post("/login", response_model=auth_schema.TokenPair)
def login_user(
    payload: auth_schema.LoginRequest,
    db: Session = Depends(get_db),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> auth_schema.TokenPair:
    user = db.query(User).filter(User.email == payload.email).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )
    feed.publish(auth_event(user.id, SIGNED_IN))
    return _token_pair(user.id)


@router.post("/refresh", response_model=auth_schema.TokenPair)
def refresh_token(
    payload: auth_schema.RefreshRequest,
    db: Session = Depends(get_db),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> auth_schema.TokenPair:
    try:
        user_id = user_id_from_token(payload.refresh_token, REFRESH)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        ) from exc
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    feed.publish(auth_event(user.id, TOKEN_REFRESHED))
    return _token_pair(user.id)


@router.post("/logout")
def logout_user(
    current_user: User = Depends(deps.get_current_user),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> dict[str, str]:
    """Tokens are stateless; signing out notifies the user's open sessions."""
    feed.publish(auth_event(current_user.id, SIGNED_OUT))
    return {"message": "Signed out"}


@router.get("/session", response_model=auth_schema.SessionInfo)
def read_session(
    current_user: User = Depends(deps.get_current_user),
    db: Session = Depends(get_db),
) -> auth_schema.SessionInfo:
    profile = accounts.get_profile(db, current_user.id)
    return auth_schema.SessionInfo(
        user_id=current_user.id,
        email=current_user.email,
        profile=ProfilePublic.model_validate(profile) if profile else None,
    )


@router.post("/check-username", response_model=auth_schema.UsernameCheckResponse)
def check_username(
    payload: auth_schema.UsernameCheckRequest,
    db: Session = Depends(get_db),
) -> auth_schema.UsernameCheckResponse:
    return auth_schema.UsernameCheckResponse(
        exists=accounts.username_exists(db, payload.username)
    )


@router.get("/coaches", response_model=list[ProfileSummary])
def list_coaches(db: Session = Depends(get_db)) -> list[ProfileSummary]:
    return accounts.list_coaches(db)


@router.websocket("/ws")
async def session_socket(
    websocket: WebSocket,
    token: str = Query(...),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> None:
    """Push the connection's session state on connect and after every auth
    notification, until the session signs out.
    """
    await websocket.accept()
    state = SessionState(token, session_factory, deps.get_change_feed(websocket))
    try:
        await state.start()
        await websocket.send_json(state.snapshot())
        if not state.has_session:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        async for _event in state.watch():
            await websocket.send_json(state.snapshot())
        await websocket.close()
    except WebSocketDisconnect:
        logger.debug("Session socket disconnected")
    finally:
        state.close()
