"""Wallet session module - connect, disconnect and per-session decrypt cache."""

from wallet.session import SessionRegistry, WalletSession
from wallet.middleware import SessionMiddleware, SESSION_COOKIE
from wallet.api import create_session_router

__all__ = [
    "SessionRegistry",
    "WalletSession",
    "SessionMiddleware",
    "SESSION_COOKIE",
    "create_session_router",
]
