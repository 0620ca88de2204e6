# ─────────────────────────────────────────────────────────────────
# auth.py — Passwords, Tokens & Role Gates
#
# Passwords are hashed with bcrypt (passlib). Sessions are signed
# bearer tokens (JWT, HS256) that carry the user's id, username,
# email and role with a fixed expiry.
#
# Routes declare who may call them with a dependency:
#     user = Depends(current_user)                → any signed-in user
#     user = Depends(optional_user)               → user or None
#     user = Depends(require_role("admin"))       → 401 / 403 gate
# The gate runs before the handler body, so a rejected caller never
# reaches the store.
# ─────────────────────────────────────────────────────────────────

import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, Header, Query, Request
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from config import Settings
from errors import Forbidden, Unauthorized
from ids import utcnow

logger = logging.getLogger("auth")


def make_password_context(rounds: int = 12) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def public_user(user: dict) -> dict:
    """A user record without its password hash."""
    return {k: v for k, v in user.items() if k != "password"}


def user_summary(user: dict) -> dict:
    return {
        "id": user["_id"],
        "username": user["username"],
        "email": user["email"],
        "role": user["role"],
    }


# ── TOKENS ────────────────────────────────────────────────────────

def create_token(user: dict, settings: Settings) -> str:
    now = utcnow()
    payload = {
        **user_summary(user),
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expire_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except JWTError:
        raise Unauthorized("Invalid token.")
    if "id" not in claims or "role" not in claims:
        raise Unauthorized("Invalid token.")
    return claims


def _extract_token(authorization: Optional[str], token: Optional[str]) -> Optional[str]:
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
        return None
    return token or None


# ── DEPENDENCIES ──────────────────────────────────────────────────

def current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Query(None),
) -> dict:
    raw = _extract_token(authorization, token)
    if not raw:
        raise Unauthorized("Access denied. No token provided.")
    return decode_token(raw, request.app.state.settings)


def optional_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Query(None),
) -> Optional[dict]:
    raw = _extract_token(authorization, token)
    if not raw:
        return None
    try:
        return decode_token(raw, request.app.state.settings)
    except Unauthorized as exc:
        # Continue anonymously
        logger.warning(f"Ignoring bad token on {request.url.path}: {exc.message}")
        return None


def require_role(*roles: str):
    """Builds a dependency that only lets the given roles through."""

    def gate(user: dict = Depends(current_user)) -> dict:
        if user.get("role") not in roles:
            raise Forbidden("Insufficient permissions.")
        return user

    return gate
