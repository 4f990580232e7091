from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from learnpath.core.config import settings

bearer = HTTPBearer(auto_error=False)


def create_token(user_id: str, ttl_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = ttl_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {"sub": user_id, "iat": int(now.timestamp()), "exp": int((now + timedelta(minutes=ttl)).timestamp())}
    return jwt.encode(payload, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)


def decode_token(token: str) -> str:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY.get_secret_value(), algorithms=[settings.ALGORITHM])
        return payload["sub"]
    except (jwt.PyJWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")


def get_user_id(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    user_id: Optional[str] = Header(default=None, alias="user-id"),
) -> str:
    """Bearer token subject, else the trusted ``user-id`` header, else the default user."""
    if creds is not None:
        return decode_token(creds.credentials)
    return user_id or settings.DEFAULT_USER_ID
