from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from stockledger.core.logging import actor_id_var
from stockledger.core.security import decode_token
from stockledger.core.settings import get_app_settings
from stockledger.db.session import get_session_maker
from stockledger.repositories.unit_of_work import SqlAlchemyUnitOfWork
from stockledger.services.container import ServiceContainer, build_services
from stockledger.services.realtime import broadcast_manager

logger = logging.getLogger(__name__)

# OAuth2 bearer (used by docs). Tokens are issued by the identity service.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

_services: Optional[ServiceContainer] = None


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, taken from the bearer token claims."""
    id: UUID
    role: str
    is_privileged: bool


# PUBLIC_INTERFACE
def actor_from_claims(claims: dict) -> Actor:
    """
    Build an Actor from decoded token claims.

    Raises:
        HTTPException: 401 when ``sub`` is missing or not a UUID.
    """
    subject = claims.get("sub")
    try:
        actor_id = UUID(str(subject))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    role = str(claims.get("role") or "staff")
    privileged = role in get_app_settings().PRIVILEGED_ROLES
    return Actor(id=actor_id, role=role, is_privileged=privileged)


# PUBLIC_INTERFACE
async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    """Resolve the calling user from the Authorization bearer token."""
    try:
        claims = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    actor = actor_from_claims(claims)
    actor_id_var.set(str(actor.id))
    return actor


# PUBLIC_INTERFACE
async def require_privileged(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Allow only roles listed in PRIVILEGED_ROLES (approvers)."""
    if not actor.is_privileged:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
    return actor


# PUBLIC_INTERFACE
def set_services(container: Optional[ServiceContainer]) -> None:
    """Install (or clear, with None) the process-wide service container."""
    global _services
    _services = container


# PUBLIC_INTERFACE
def get_services() -> ServiceContainer:
    """Return the service container, building the SQL-backed one on first use."""
    global _services
    if _services is None:
        settings = get_app_settings()
        maker = get_session_maker()
        _services = build_services(
            lambda: SqlAlchemyUnitOfWork(maker),
            broadcast_manager,
            privileged_roles=settings.PRIVILEGED_ROLES,
            notify_timeout_seconds=settings.NOTIFY_TIMEOUT_SECONDS,
            max_retries=settings.LEDGER_MAX_RETRIES,
        )
        logger.info("Service container initialised (privileged roles: %s)", settings.PRIVILEGED_ROLES)
    return _services
