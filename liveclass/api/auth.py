"""JWT-based stateless authentication."""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from liveclass.api.deps import (
    AppSettings,
    CurrentUser,
    Store,
    create_access_token,
    create_refresh_token,
    decode_token,
    verify_password,
)

router = APIRouter()


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


@router.post("/login", response_model=TokenResponse)
async def login(req: LoginRequest, repo: Store, settings: AppSettings):
    user = await repo.find_user_by_email(req.email)
    if not user or not user.is_active or not user.hashed_password:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(req.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return TokenResponse(
        access_token=create_access_token(user.id, user.role.value, settings),
        refresh_token=create_refresh_token(user.id, settings),
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(req: RefreshRequest, repo: Store, settings: AppSettings):
    user_id = decode_token(req.refresh_token, settings, expected_type="refresh")
    if not user_id:
        raise HTTPException(status_code=401, detail="Expired or invalid refresh token")
    user = await repo.find_user(user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return TokenResponse(
        access_token=create_access_token(user.id, user.role.value, settings),
        refresh_token=create_refresh_token(user.id, settings),
    )


@router.get("/me")
async def me(user: CurrentUser):
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role.value,
        "name": user.name,
    }
