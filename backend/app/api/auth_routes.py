"""
JWT Authentication routes — register, login, current user, role assignment.

New accounts get the ``viewer`` role unless their email is listed in
BOOTSTRAP_AUTHOR_EMAILS; authors can change anyone's role afterwards.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from passlib.context import CryptContext
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app import config
from app.api.deps import get_current_user
from app.db import get_db
from app.errors import AuthorizationError, NotFoundError, ValidationError
from app.models.orm_models import User
from app.models.passport_schema import CamelModel, UserOut
from app.services.access_policy import Role

logger = logging.getLogger("passport-api.auth")

# Simple RFC-5322 subset email regex (no external library required)
_EMAIL_RE = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")
_MIN_PASSWORD_LEN = 8


def _validate_email(email: str) -> str:
    email = email.strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")
    return email


def _validate_password(password: str) -> None:
    if len(password) < _MIN_PASSWORD_LEN:
        raise ValidationError(f"Password must be at least {_MIN_PASSWORD_LEN} characters")


router = APIRouter(prefix="/api/auth", tags=["Authentication"])

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class RegisterRequest(CamelModel):
    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class RoleUpdateRequest(CamelModel):
    role: Role


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode["exp"] = expire
    return jwt.encode(to_encode, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def _token_response(user: User) -> TokenResponse:
    token = create_access_token({"sub": user.id, "email": user.email, "role": user.role})
    return TokenResponse(access_token=token, user=UserOut.model_validate(user))


@router.post("/register", response_model=TokenResponse)
async def register(req: RegisterRequest, db: AsyncSession = Depends(get_db)):
    email = _validate_email(req.email)
    _validate_password(req.password)

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise ValidationError("Email already registered")

    role = Role.AUTHOR if email in config.BOOTSTRAP_AUTHOR_EMAILS else Role.VIEWER
    user = User(
        email=email,
        hashed_password=pwd_context.hash(req.password),
        first_name=req.first_name,
        last_name=req.last_name,
        role=role.value,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Registered user as {user.role}", extra={"user_id": user.id})
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(req: LoginRequest, db: AsyncSession = Depends(get_db)):
    email = req.email.strip().lower()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    # Same error for unknown email and wrong password to avoid confirming account existence
    if not user or not user.hashed_password or not pwd_context.verify(req.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account deactivated")
    return _token_response(user)


@router.get("/user", response_model=UserOut)
async def get_user(current_user: User = Depends(get_current_user)):
    return UserOut.model_validate(current_user)


@router.put("/users/{user_id}/role", response_model=UserOut)
async def set_user_role(
    user_id: str,
    req: RoleUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if Role.parse(current_user.role) is not Role.AUTHOR:
        raise AuthorizationError("Only authors can assign roles")

    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    user.role = req.role.value
    await db.commit()
    await db.refresh(user)
    logger.info(f"Role changed to {user.role}", extra={"user_id": user.id})
    return UserOut.model_validate(user)
