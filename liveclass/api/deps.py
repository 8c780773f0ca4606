"""Shared dependencies: settings, stores, mailer, JWT auth and role checks."""
from datetime import datetime, timedelta
from typing import Annotated, Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from liveclass.config import Settings, settings as app_settings
from liveclass.models.user import Caller, UserRole
from liveclass.mongo import MongoRepository
from liveclass.repository import Repository
from liveclass.services.clock import Clock, make_clock
from liveclass.services.mailer import Mailer, ResendMailer

security = HTTPBearer(auto_error=False)

_repository = MongoRepository()


def get_settings() -> Settings:
    return app_settings


def get_repository() -> Repository:
    return _repository


def get_clock(settings: Annotated[Settings, Depends(get_settings)]) -> Clock:
    return make_clock(settings.timezone)


def get_mailer(settings: Annotated[Settings, Depends(get_settings)]) -> Mailer:
    # Raises MailerNotConfigured, answered with a 500 by the app-level handler
    return ResendMailer.from_settings(settings)


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(subject: str, role: str, settings: Settings = app_settings) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    to_encode = {"sub": subject, "role": role, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_refresh_token(subject: str, settings: Settings = app_settings) -> str:
    expire = datetime.utcnow() + timedelta(days=settings.jwt_refresh_token_expire_days)
    to_encode = {"sub": subject, "exp": expire, "type": "refresh"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings, expected_type: str = "access") -> Optional[str]:
    """Return the user id carried by a valid token of the expected type, else None."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload.get("sub") or None


async def caller_from_token(token: Optional[str], repo: Repository, settings: Settings) -> Optional[Caller]:
    if not token:
        return None
    user_id = decode_token(token, settings)
    if not user_id:
        return None
    user = await repo.find_user(user_id)
    if not user or not user.is_active:
        return None
    return user


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    repo: Annotated[Repository, Depends(get_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Caller:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = await caller_from_token(credentials.credentials, repo, settings)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


def require_roles(*allowed: UserRole):
    allowed_values = [role.value for role in allowed]

    async def checker(user: Annotated[Caller, Depends(get_current_user)]):
        if user.role.value not in allowed_values:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return checker


# Type aliases for route injection
CurrentUser = Annotated[Caller, Depends(get_current_user)]
Store = Annotated[Repository, Depends(get_repository)]
AppSettings = Annotated[Settings, Depends(get_settings)]
AppClock = Annotated[Clock, Depends(get_clock)]
AppMailer = Annotated[Mailer, Depends(get_mailer)]
StaffOnly = Annotated[Caller, Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER))]
TeacherOnly = Annotated[Caller, Depends(require_roles(UserRole.TEACHER))]
TeacherOrStaff = Annotated[Caller, Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.TEACHER))]
