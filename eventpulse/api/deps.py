from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from eventpulse.core.exceptions import Forbidden
from eventpulse.core.security import ROLE_ADMIN, ROLE_USER, decode_token
from eventpulse.services.presence import PresenceChannel, presence_channel
from eventpulse.services.reservation import ReservationManager, reservation_manager

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The caller, as vouched for by the identity provider's bearer token."""

    user_id: UUID
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def principal_from_token(token: str) -> Optional[Principal]:
    payload = decode_token(token)
    if payload is None:
        return None
    try:
        user_id = UUID(str(payload["sub"]))
    except ValueError:
        return None
    return Principal(user_id=user_id, role=payload.get("role") or ROLE_USER)


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    principal = principal_from_token(credentials.credentials)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def get_current_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise Forbidden()
    return principal


def get_reservation_manager() -> ReservationManager:
    return reservation_manager


def get_presence_channel() -> PresenceChannel:
    return presence_channel
