# ─────────────────────────────────────────────────────────────────
# deps.py — Shared Route Dependencies
#
# The store, the broadcaster and the settings are created once in
# main.create_app() and parked on app.state. Routes pull them in
# with Depends(...) instead of importing module globals.
# ─────────────────────────────────────────────────────────────────

from fastapi import Request
from passlib.context import CryptContext

from config import Settings
from database import Store
from notifications import Broadcaster


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pwd_context(request: Request) -> CryptContext:
    return request.app.state.pwd_context
