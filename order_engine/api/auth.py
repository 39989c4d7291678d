from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request

from order_engine.core_settings import Settings, get_settings
from shared.core import set_request_context

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class CurrentUser:
    id: str
    is_admin: bool = False


def create_access_token(subject: str, settings: Settings, role: str = "user", expires_minutes: int = 60) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "role": role, "iat": now, "exp": now + timedelta(minutes=expires_minutes)}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access_token(token: str, settings: Settings) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.PyJWTError:
        return None


def app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


async def get_current_user(request: Request, settings: Settings = Depends(app_settings)) -> CurrentUser:
    """Identity is established upstream; here we only trust a signed bearer token."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise HTTPException(status_code=401, detail="Missing token")
    token_data = decode_access_token(auth_header.split(" ", 1)[1].strip(), settings)
    if not token_data or not token_data.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = CurrentUser(
        id=str(token_data["sub"]),
        is_admin=token_data.get("role") == "admin" or bool(token_data.get("is_admin")),
    )
    set_request_context(user_id=user.id)
    return user


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin only")
    return user
