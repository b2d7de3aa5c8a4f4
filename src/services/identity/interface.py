"""
Abstract Identity Provider Interface

DESIGN DECISION: Authentication is owned by an external provider.
The core only asks it to perform operations and observes the resulting
identity. Every failure comes back as an AuthError with a classified code,
so the Session Manager can decide what to show without parsing messages.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from src.models.session import Identity


class AuthErrorCode(str, Enum):
    """Classified identity provider failures."""
    INVALID_CREDENTIALS = "invalid-credentials"
    NOT_VERIFIED = "not-verified"
    REQUIRES_RECENT_LOGIN = "requires-recent-login"
    NETWORK = "network"
    UNKNOWN = "unknown"
    EMAIL_ALREADY_IN_USE = "email-already-in-use"
    WEAK_PASSWORD = "weak-password"
    MISSING_EMAIL = "missing-email"


USER_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIALS: "Incorrect email or password.",
    AuthErrorCode.NOT_VERIFIED: "Email not verified. Please check your inbox.",
    AuthErrorCode.REQUIRES_RECENT_LOGIN: "Please sign in again before doing that.",
    AuthErrorCode.NETWORK: "Could not reach the sign-in service. Check your connection.",
    AuthErrorCode.UNKNOWN: "Something went wrong. Please try again.",
    AuthErrorCode.EMAIL_ALREADY_IN_USE: "An account with this email already exists.",
    AuthErrorCode.WEAK_PASSWORD: "Password is too weak.",
    AuthErrorCode.MISSING_EMAIL: "Enter your email to reset password.",
}


class AuthError(Exception):
    """Identity provider failure with a classified code."""

    def __init__(self, code: AuthErrorCode, message: Optional[str] = None):
        self.code = code
        self.message = message or USER_MESSAGES[code]
        super().__init__(self.message)


class IdentityProvider(ABC):
    """
    Abstract interface for the identity provider.

    The provider tracks its own "current user"; the core never reads it
    directly and relies on the identities these methods return.
    """

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> Identity:
        """
        Create an identity and sign it in at the provider.

        Raises:
            AuthError: email-already-in-use, weak-password, network, unknown
        """
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Identity:
        """
        Authenticate with email and password.

        Raises:
            AuthError: invalid-credentials, network, unknown
        """
        pass

    @abstractmethod
    async def sign_out(self, identity_id: Optional[str] = None) -> None:
        """
        End the provider-side session of one identity.

        Other identities signed in through the same provider keep their
        sessions and recent-login marks.
        """
        pass

    @abstractmethod
    async def send_verification_email(self, identity_id: str) -> None:
        """Send (or re-send) the verification email."""
        pass

    @abstractmethod
    async def send_password_reset(self, email: str) -> None:
        """
        Send a password reset email.

        Raises:
            AuthError: invalid-credentials if no account exists, network, unknown
        """
        pass

    @abstractmethod
    async def reauthenticate(self, identity_id: str, password: str) -> None:
        """
        Confirm the password of the signed-in identity.

        Raises:
            AuthError: invalid-credentials on a wrong password
        """
        pass

    @abstractmethod
    async def delete_identity(self, identity_id: str) -> None:
        """
        Delete the identity.

        Raises:
            AuthError: requires-recent-login if not recently authenticated
        """
        pass

    @abstractmethod
    async def reload(self, identity_id: str) -> Identity:
        """Fetch the latest state of an identity (e.g. its verification flag)."""
        pass
