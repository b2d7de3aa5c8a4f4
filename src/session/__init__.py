"""Session management package."""

from src.session.manager import (
    AccountDeletionError,
    NoActiveSessionError,
    SessionManager,
)

__all__ = ["AccountDeletionError", "NoActiveSessionError", "SessionManager"]
