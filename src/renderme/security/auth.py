"""Authentication: JWT bearer tokens and the current-user dependency.

Env vars:
- JWT_SECRET (required in prod; default for dev)
- JWT_EXPIRES_MIN (default 60)
- RENDERME_PUBLIC_MODE (anonymous requests act as a shared guest)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional
import logging
import os
import uuid

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr


logger = logging.getLogger("renderme.security.auth")
bearer_scheme = HTTPBearer(auto_error=False)

UserType = Literal["guest", "regular"]


@dataclass
class JwtConfig:
    secret: str
    algorithm: str = "HS256"
    expires_min: int = 60

    @staticmethod
    def from_env() -> "JwtConfig":
        secret = os.getenv("JWT_SECRET") or "dev-secret-change-me"
        try:
            expires = int(os.getenv("JWT_EXPIRES_MIN", "60"))
        except ValueError:
            expires = 60
        return JwtConfig(secret=secret, expires_min=expires)


class User(BaseModel):
    id: str
    email: EmailStr
    name: str
    roles: list[str]
    user_type: UserType = "regular"


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: User


PUBLIC_GUEST = User(id="guest", email="guest@example.com", name="Guest", roles=["member"], user_type="guest")


def new_guest_user() -> User:
    guest_id = f"guest-{uuid.uuid4().hex[:12]}"
    return User(id=guest_id, email=f"{guest_id}@example.com", name="Guest", roles=["member"], user_type="guest")


def create_access_token(user: User, cfg: Optional[JwtConfig] = None) -> str:
    cfg = cfg or JwtConfig.from_env()
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=cfg.expires_min)
    payload = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "roles": user.roles,
        "type": user.user_type,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, cfg.secret, algorithm=cfg.algorithm)


def decode_token(token: str, cfg: Optional[JwtConfig] = None) -> User:
    cfg = cfg or JwtConfig.from_env()
    try:
        data = jwt.decode(token, cfg.secret, algorithms=[cfg.algorithm])
        return User(
            id=str(data["sub"]),
            email=data["email"],
            name=data.get("name", ""),
            roles=list(data.get("roles", [])),
            user_type=data.get("type", "regular"),
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def public_mode_enabled() -> bool:
    val = os.getenv("RENDERME_PUBLIC_MODE")
    return bool(val) and val.lower() in ("1", "true", "yes")


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> User:
    """Resolve the current user from the bearer token.

    With public mode on, requests without a usable token act as the shared
    guest user.
    """
    public_mode = public_mode_enabled()
    if creds is None or not creds.scheme or creds.scheme.lower() != "bearer":
        if public_mode:
            return PUBLIC_GUEST
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    try:
        return decode_token(creds.credentials)
    except HTTPException:
        if public_mode:
            logger.info("invalid_token_public_mode")
            return PUBLIC_GUEST
        raise
