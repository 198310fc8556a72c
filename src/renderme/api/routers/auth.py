from __future__ import annotations

from fastapi import APIRouter, Depends

from ...security.auth import JwtConfig, TokenResponse, User, create_access_token, get_current_user, new_guest_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/guest", response_model=TokenResponse)
def issue_guest_token() -> TokenResponse:
    cfg = JwtConfig.from_env()
    user = new_guest_user()
    return TokenResponse(access_token=create_access_token(user, cfg), expires_in=cfg.expires_min * 60, user=user)


@router.get("/me", response_model=User)
def me(user: User = Depends(get_current_user)) -> User:
    return user
