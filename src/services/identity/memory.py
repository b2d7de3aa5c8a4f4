"""
In-Memory Identity Provider

Process-local IdentityProvider for tests and local runs.

Passwords are stored as salted PBKDF2 hashes. Emails that a hosted provider
would send (verification, password reset) are appended to `outbox` instead,
and `confirm_email()` plays the part of the user clicking the link.
"""

import hashlib
import secrets
from typing import Optional
from uuid import uuid4

import structlog

from src.models.session import Identity
from src.services.identity.interface import AuthError, AuthErrorCode, IdentityProvider


MIN_PASSWORD_LENGTH = 6
PBKDF2_ITERATIONS = 100_000


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)


class _Account:
    def __init__(self, identity_id: str, email: str, password: str, verified: bool):
        self.identity_id = identity_id
        self.email = email
        self.salt = secrets.token_bytes(16)
        self.password_hash = _hash_password(password, self.salt)
        self.verified = verified

    def check_password(self, password: str) -> bool:
        return secrets.compare_digest(
            self.password_hash,
            _hash_password(password, self.salt),
        )

    def to_identity(self) -> Identity:
        return Identity(id=self.identity_id, email=self.email, email_verified=self.verified)


class InMemoryIdentityProvider(IdentityProvider):
    """
    Dictionary-backed identity provider.

    One instance may serve several browser sessions: recent-login marks are
    kept per identity and sign_out only ends the identity it is given.
    `current_identity_id` is the identity signed in last.
    """

    def __init__(self, auto_verify: bool = False):
        self._auto_verify = auto_verify
        self._accounts: dict[str, _Account] = {}
        self._current: Optional[str] = None
        self._recently_authenticated: set[str] = set()
        self.outbox: list[tuple[str, str]] = []
        self._logger = structlog.get_logger(__name__)

    @staticmethod
    def _normalize(email: str) -> str:
        return email.strip().lower()

    def _account_by_id(self, identity_id: str) -> _Account:
        for account in self._accounts.values():
            if account.identity_id == identity_id:
                return account
        raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, "No such account")

    @property
    def current_identity_id(self) -> Optional[str]:
        return self._current

    def confirm_email(self, email: str) -> None:
        """Mark an account verified, as if the verification link was opened."""
        self._accounts[self._normalize(email)].verified = True

    async def sign_up(self, email: str, password: str) -> Identity:
        key = self._normalize(email)
        if key in self._accounts:
            raise AuthError(AuthErrorCode.EMAIL_ALREADY_IN_USE)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(
                AuthErrorCode.WEAK_PASSWORD,
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters.",
            )

        account = _Account(uuid4().hex, key, password, verified=self._auto_verify)
        self._accounts[key] = account
        self._current = account.identity_id
        self._recently_authenticated.add(account.identity_id)
        return account.to_identity()

    async def sign_in(self, email: str, password: str) -> Identity:
        account = self._accounts.get(self._normalize(email))
        if account is None or not account.check_password(password):
            raise AuthError(AuthErrorCode.INVALID_CREDENTIALS)
        self._current = account.identity_id
        self._recently_authenticated.add(account.identity_id)
        return account.to_identity()

    async def sign_out(self, identity_id: Optional[str] = None) -> None:
        target = identity_id or self._current
        if target is None:
            return
        self._recently_authenticated.discard(target)
        if self._current == target:
            self._current = None

    async def send_verification_email(self, identity_id: str) -> None:
        account = self._account_by_id(identity_id)
        self.outbox.append(("verify", account.email))
        self._logger.info("verification_email_queued", identity_id=identity_id)

    async def send_password_reset(self, email: str) -> None:
        account = self._accounts.get(self._normalize(email))
        if account is None:
            raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, "No account found for this email.")
        self.outbox.append(("reset", account.email))

    async def reauthenticate(self, identity_id: str, password: str) -> None:
        account = self._account_by_id(identity_id)
        if not account.check_password(password):
            raise AuthError(AuthErrorCode.INVALID_CREDENTIALS)
        self._recently_authenticated.add(identity_id)

    async def delete_identity(self, identity_id: str) -> None:
        if identity_id not in self._recently_authenticated:
            raise AuthError(AuthErrorCode.REQUIRES_RECENT_LOGIN)
        account = self._account_by_id(identity_id)
        del self._accounts[account.email]
        self._recently_authenticated.discard(identity_id)
        if self._current == identity_id:
            self._current = None

    async def reload(self, identity_id: str) -> Identity:
        return self._account_by_id(identity_id).to_identity()

    def has_account(self, email: str) -> bool:
        return self._normalize(email) in self._accounts
