import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated, Tuple

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from pydantic import BaseModel

from config import Settings, get_settings
from domain.user import User
from errors import AuthError, AuthorizationError
from repositories.users import UserRepository, get_user_repository

logger = logging.getLogger('uvicorn.error')

ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


class TokenData(BaseModel):
    id: str


def verify_password(plain_password, hashed_password):
    return bcrypt.checkpw(
        bytes(plain_password, encoding="utf-8"),
        bytes(hashed_password, encoding="utf-8"),
    )


def get_password_hash(password) -> str:
    return bcrypt.hashpw(
        bytes(password, encoding="utf-8"),
        bcrypt.gensalt(),
    ).decode("utf-8")


def create_access_token(user_id: str, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "id": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expires_minutes),
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> TokenData:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("Your token has expired! Please log in again.")
    except InvalidTokenError:
        raise AuthError("Invalid token. Please log in again!")
    if not payload.get("id"):
        raise AuthError("Invalid token. Please log in again!")
    return TokenData(id=payload["id"])


def generate_email_verify_key() -> str:
    return secrets.token_hex(32)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_password_reset_token(settings: Settings) -> Tuple[str, str, datetime]:
    """Return ``(token, token_hash, expires)``; only the hash is stored, the token is mailed."""
    token = secrets.token_hex(32)
    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.reset_token_ttl_minutes)
    return token, hash_reset_token(token), expires


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthError("You are not logged in! Please log in to get access.")
    token_data = decode_access_token(credentials.credentials, settings)
    user = await users.get(token_data.id)
    if user is None:
        raise AuthError("The user belonging to this token no longer exists.")
    return user.public()


def restrict_to(*roles: str):
    """Dependency factory: the authenticated caller must hold one of ``roles``."""
    allowed = frozenset(roles)

    async def role_gate(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if current_user.role not in allowed:
            logger.warning(f"User '{current_user.username}' ({current_user.role}) denied; requires {sorted(allowed)}")
            raise AuthorizationError("You do not have permission to perform this action")
        return current_user

    return role_gate
