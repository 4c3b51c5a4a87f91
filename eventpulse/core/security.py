
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from eventpulse.core.config import settings

ALGORITHM = "HS256"

ROLE_USER = "user"
ROLE_ADMIN = "admin"


def create_access_token(
    subject: str,
    role: str = ROLE_USER,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Issue a bearer token carrying the identity (sub) and role claims."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"exp": expire, "sub": str(subject), "role": role}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Returns the token claims or None if token is invalid/expired."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload
