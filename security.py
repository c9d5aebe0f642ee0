from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, Request
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError

from config import Settings
from errors import AuthenticationError, AuthorizationError
from schemas import Identity, User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# Utilities

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user: User, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {
        "id": user.id,
        "email": user.email,
        "role": user.role.value,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> Identity:
    """Verify signature and expiry and return the identity the token carries."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require_exp": True},
        )
        return Identity(id=payload["id"], email=payload["email"], role=payload["role"])
    except (JWTError, KeyError, PydanticValidationError):
        raise AuthenticationError("Invalid or expired token")


# Dependencies

def get_settings_from_app(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings_from_app),
) -> Identity:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Access token required")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Access token required")
    return decode_token(token, settings)


def require_admin(current_user: Identity = Depends(get_current_user)) -> Identity:
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required", details={"user_id": current_user.id})
    return current_user
