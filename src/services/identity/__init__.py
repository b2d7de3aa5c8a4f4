"""Identity provider services package."""

from src.services.identity.interface import (
    USER_MESSAGES,
    AuthError,
    AuthErrorCode,
    IdentityProvider,
)
from src.services.identity.memory import InMemoryIdentityProvider

__all__ = [
    "USER_MESSAGES",
    "AuthError",
    "AuthErrorCode",
    "IdentityProvider",
    "InMemoryIdentityProvider",
]
