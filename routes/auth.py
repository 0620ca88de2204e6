# ─────────────────────────────────────────────────────────────────
# routes/auth.py — Registration, Login & Profile
#
# Mounted at /api/auth. New accounts are always citizens; only an
# admin can promote a user (see routes/admin.py).
# ─────────────────────────────────────────────────────────────────

import logging

from fastapi import APIRouter, Depends
from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

from auth import create_token, current_user, public_user, user_summary
from config import Settings
from database import Store
from deps import get_pwd_context, get_settings, get_store
from errors import Conflict, NotFound, Unauthorized, ok
from ids import utcnow
from models import LoginRequest, PasswordChange, ProfileUpdate, RegisterRequest

logger = logging.getLogger("routes.auth")

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _load_user(store: Store, claims: dict) -> dict:
    user = store.users.get_by_id(claims["id"])
    if user is None:
        raise NotFound("User not found")
    return user


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
    pwd: CryptContext = Depends(get_pwd_context),
):
    # bcrypt runs off the event loop; the duplicate check and insert stay together after it
    password_hash = await run_in_threadpool(pwd.hash, body.password)

    email = body.email.lower()
    existing = store.users.find_one(
        lambda u: u["email"].lower() == email or u["username"] == body.username
    )
    if existing:
        raise Conflict("User already exists")

    user = store.users.insert({
        "username": body.username,
        "email": email,
        "password": password_hash,
        "role": "citizen",
        "profile": body.profile or {},
        "preferences": {"notifications": {"email": True, "push": True}},
        "isActive": True,
        "createdAt": utcnow(),
    })

    logger.info(f"✅ Registered user '{user['username']}' ({user['_id']})")

    return ok(
        {"user": user_summary(user), "token": create_token(user, settings)},
        message="Registration successful",
    )


@router.post("/login")
async def login(
    body: LoginRequest,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
    pwd: CryptContext = Depends(get_pwd_context),
):
    email = body.email.lower()
    user = store.users.find_one(lambda u: u["email"].lower() == email)

    # Same message for unknown, inactive and wrong-password
    if user is None or not user.get("isActive", True):
        raise Unauthorized("Invalid credentials")
    if not await run_in_threadpool(pwd.verify, body.password, user["password"]):
        raise Unauthorized("Invalid credentials")

    user["lastLogin"] = utcnow()
    logger.info(f"🔑 Login: '{user['username']}'")

    return ok(
        {"user": {**user_summary(user), "profile": user.get("profile")}, "token": create_token(user, settings)},
        message="Login successful",
    )


@router.get("/profile")
async def get_profile(claims: dict = Depends(current_user), store: Store = Depends(get_store)):
    user = _load_user(store, claims)
    return ok({"user": {
        **user_summary(user),
        "profile": user.get("profile"),
        "preferences": user.get("preferences"),
    }})


@router.put("/profile")
async def update_profile(
    body: ProfileUpdate,
    claims: dict = Depends(current_user),
    store: Store = Depends(get_store),
):
    user = _load_user(store, claims)
    if body.profile:
        user.setdefault("profile", {}).update(body.profile)
    if body.preferences:
        user.setdefault("preferences", {}).update(body.preferences)
    user["updatedAt"] = utcnow()

    return ok({"user": public_user(user)}, message="Profile updated")


@router.put("/change-password")
async def change_password(
    body: PasswordChange,
    claims: dict = Depends(current_user),
    store: Store = Depends(get_store),
    pwd: CryptContext = Depends(get_pwd_context),
):
    user = _load_user(store, claims)
    if not await run_in_threadpool(pwd.verify, body.currentPassword, user["password"]):
        raise Unauthorized("Current password is incorrect")

    user["password"] = await run_in_threadpool(pwd.hash, body.newPassword)
    logger.info(f"🔐 Password changed for '{user['username']}'")
    return ok(message="Password changed successfully")


@router.post("/logout")
async def logout(claims: dict = Depends(current_user)):
    # Tokens are stateless; the client just forgets it
    return ok(message="Logged out successfully")


@router.get("/verify")
async def verify(claims: dict = Depends(current_user), store: Store = Depends(get_store)):
    user = store.users.get_by_id(claims["id"])
    if user is None or not user.get("isActive", True):
        raise Unauthorized("Invalid token")
    return ok({"user": user_summary(user)})
