"""Password hashing and signed session tokens.

Access and refresh tokens are both JWTs over the user id; the ``type`` claim
keeps one from being accepted where the other is expected.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext

from coachdesk.core.config import get_settings

ACCESS = "access"
REFRESH = "refresh"

# bcrypt only reads the first 72 bytes
_BCRYPT_LIMIT = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password[:_BCRYPT_LIMIT], hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password[:_BCRYPT_LIMIT])


def _encode(user_id: str, token_type: str, lifetime_minutes: int) -> str:
    settings = get_settings()
    issued = datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "sub": user_id,
        "type": token_type,
        "iat": issued,
        "exp": issued + timedelta(minutes=lifetime_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str) -> str:
    return _encode(user_id, ACCESS, get_settings().access_token_expire_minutes)


def create_refresh_token(user_id: str) -> str:
    return _encode(user_id, REFRESH, get_settings().refresh_token_expire_minutes)


def decode_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc


def user_id_from_token(token: str, token_type: str) -> str:
    """Subject of a valid token of ``token_type``; ``ValueError`` otherwise."""
    claims = decode_token(token)
    if claims.get("type") != token_type:
        raise ValueError(f"Expected a {token_type} token")
    subject = claims.get("sub")
    if not subject:
        raise ValueError("Token has no subject")
    return str(subject)


def user_id_from_access_token(token: str) -> str:
    return user_id_from_token(token, ACCESS)
