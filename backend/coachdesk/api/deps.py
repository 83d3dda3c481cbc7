from typing import Callable

from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from coachdesk.core.security import user_id_from_access_token
from coachdesk.db.session import get_db
from coachdesk.models.profile import Profile, Role
from coachdesk.models.user import User
from coachdesk.realtime.feed import ChangeFeed

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        user_id = user_id_from_access_token(token)
    except ValueError as exc:
        raise credentials_exception from exc
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise credentials_exception
    return user


def get_current_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Profile:
    """The caller's stored profile, read fresh on every request."""
    profile = db.query(Profile).filter(Profile.id == current_user.id).first()
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Profile not found",
        )
    return profile


def require_role(*roles: Role) -> Callable[..., Profile]:
    allowed = {role.value for role in roles}

    def dependency(profile: Profile = Depends(get_current_profile)) -> Profile:
        if profile.role not in allowed:
            label = " or ".join(sorted(allowed))
            article = "an" if label[0] in "aeiou" else "a"
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Forbidden: User is not {article} {label}",
            )
        return profile

    return dependency


def get_change_feed(connection: HTTPConnection) -> ChangeFeed:
    return connection.app.state.change_feed
