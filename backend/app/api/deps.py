"""FastAPI dependency injection — auth guards and role policy checks."""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app import config
from app.db import get_db
from app.errors import AuthorizationError, NotFoundError
from app.models.orm_models import MaterialPassport, User
from app.services.access_policy import Decision, Operation, authorize, can_perform

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not credentials:
        raise _unauthorized("Not authenticated")
    try:
        payload = jwt.decode(credentials.credentials, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
        user_id: str = payload.get("sub")
        if not user_id:
            raise _unauthorized("Invalid token")
    except JWTError:
        raise _unauthorized("Invalid token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise _unauthorized("User not found or inactive")
    return user


def require_operation(operation: Operation, message: str = None):
    """
    Factory for role-gated dependencies.

    Rejects roles whose scope for ``operation`` is NONE before the handler
    runs. Ownership is checked per resource with ``ensure_authorized``.

    Usage:
        user: User = Depends(require_operation(Operation.CREATE))
    """
    async def _require_operation(current_user: User = Depends(get_current_user)) -> User:
        if not can_perform(current_user.role, operation):
            raise AuthorizationError(message)
        return current_user

    return _require_operation


def ensure_authorized(user: User, operation: Operation, owner_id: str, message: str = None) -> None:
    """Raise AuthorizationError unless ``user`` may apply ``operation`` to a resource owned by ``owner_id``."""
    if authorize(user.role, operation, owner_id, user.id) is not Decision.ALLOW:
        raise AuthorizationError(message)


async def ensure_can_link_passport(db: AsyncSession, user: User, passport_id: int | None) -> None:
    """Components may only be attached to a passport the caller is allowed to edit."""
    if passport_id is None:
        return
    passport = await db.get(MaterialPassport, passport_id)
    if passport is None:
        raise NotFoundError("Passport not found")
    ensure_authorized(user, Operation.UPDATE, passport.author_id, "You can only link components to your own passports")
