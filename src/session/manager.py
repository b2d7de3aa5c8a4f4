"""
Session Manager

The only source of "who is the current user".

DESIGN DECISION: The session is one immutable SessionState value that is
replaced through transition(). Every replacement is announced to the
registered listeners, in registration order, before the operation that
caused it returns. Nothing else in the system keeps its own idea of who is
signed in.

CRITICAL: An unverified identity never becomes a usable session.
- sign_in() of an unverified identity signs it straight back out
- sign_up() parks the new identity in SIGNED_IN_UNVERIFIED
- only refresh_verification() (a fresh check with the provider) or a new
  sign_in() can promote it
"""

from typing import Awaitable, Callable, Optional

import structlog

from src.models.session import (
    Identity,
    SessionState,
    SessionStatus,
    transition,
)
from src.services.identity import AuthError, AuthErrorCode, IdentityProvider


SessionListener = Callable[[SessionState, SessionState], Awaitable[None]]
CascadeDelete = Callable[[str], Awaitable[None]]


class NoActiveSessionError(Exception):
    """The operation needs a signed-in session in a specific state."""
    pass


class AccountDeletionError(Exception):
    """
    Account deletion stopped before the identity was deleted.

    Some of the user's data may already be gone. The identity still
    exists, so the user can sign in and retry.
    """
    pass


class SessionManager:
    """
    Tracks the authenticated identity and its verification status.

    Operations raise AuthError on provider failures. Unexpected provider
    exceptions are wrapped as AuthError(UNKNOWN).
    """

    def __init__(self, provider: IdentityProvider):
        self._provider = provider
        self._state = SessionState()
        self._listeners: list[SessionListener] = []
        self._logger = structlog.get_logger(__name__)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def identity(self) -> Optional[Identity]:
        return self._state.identity

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    async def _move(
        self,
        status: SessionStatus,
        identity: Optional[Identity] = None,
        error: Optional[AuthError] = None,
    ) -> SessionState:
        previous = self._state
        self._state = transition(
            previous,
            status,
            identity=identity,
            error_code=error.code.value if error else None,
            error_message=error.message if error else None,
        )
        self._logger.info(
            "session_transition",
            previous=previous.status.value,
            current=self._state.status.value,
            identity_id=self._state.identity_id,
            error_code=self._state.error_code,
        )
        for listener in self._listeners:
            await listener(previous, self._state)
        return self._state

    async def _call(self, operation: str, awaitable: Awaitable):
        try:
            return await awaitable
        except AuthError:
            raise
        except Exception as e:
            self._logger.error("identity_provider_error", operation=operation, error=str(e))
            raise AuthError(AuthErrorCode.UNKNOWN, str(e)) from e

    async def _leave_current_session(self) -> None:
        """Tear down whatever session exists before starting another one."""
        if self._state.status != SessionStatus.SIGNED_OUT:
            await self.sign_out()

    async def sign_up(self, email: str, password: str) -> Identity:
        """
        Create an identity.

        An unverified identity gets a verification email and stays in
        SIGNED_IN_UNVERIFIED; it is not granted access.
        """
        await self._leave_current_session()
        await self._move(SessionStatus.AUTHENTICATING)

        try:
            identity = await self._call("sign_up", self._provider.sign_up(email, password))
        except AuthError as e:
            await self._move(SessionStatus.SIGNED_OUT, error=e)
            raise

        if identity.email_verified:
            await self._move(SessionStatus.SIGNED_IN_VERIFIED, identity)
            return identity

        verification_error = None
        try:
            await self._call(
                "send_verification_email",
                self._provider.send_verification_email(identity.id),
            )
        except AuthError as e:
            # The account exists either way; the user can ask for a resend
            self._logger.warning("verification_email_failed", identity_id=identity.id, error=e.message)
            verification_error = e

        await self._move(SessionStatus.SIGNED_IN_UNVERIFIED, identity, error=verification_error)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        """
        Authenticate.

        Raises:
            AuthError: not-verified if the identity has not confirmed its
                email. The provider session is closed and the state ends
                SIGNED_OUT.
        """
        await self._leave_current_session()
        await self._move(SessionStatus.AUTHENTICATING)

        try:
            identity = await self._call("sign_in", self._provider.sign_in(email, password))
        except AuthError as e:
            await self._move(SessionStatus.SIGNED_OUT, error=e)
            raise

        if not identity.email_verified:
            try:
                await self._call("sign_out", self._provider.sign_out(identity.id))
            except AuthError as e:
                self._logger.warning("provider_sign_out_failed", error=e.message)
            error = AuthError(AuthErrorCode.NOT_VERIFIED)
            await self._move(SessionStatus.SIGNED_OUT, error=error)
            raise error

        await self._move(SessionStatus.SIGNED_IN_VERIFIED, identity)
        return identity

    async def sign_out(self) -> None:
        """Clear the session. Always ends SIGNED_OUT, even if the provider call fails."""
        identity_id = self._state.identity_id
        if identity_id is not None:
            try:
                await self._call("sign_out", self._provider.sign_out(identity_id))
            except AuthError as e:
                self._logger.warning("provider_sign_out_failed", error=e.message)
        await self._move(SessionStatus.SIGNED_OUT)

    async def reset_password(self, email: Optional[str]) -> None:
        """Send a password reset email. Fails fast on a blank email."""
        if not email or not email.strip():
            raise AuthError(AuthErrorCode.MISSING_EMAIL)
        await self._call("send_password_reset", self._provider.send_password_reset(email.strip()))

    async def resend_verification(self) -> None:
        """Send the verification email again."""
        if self._state.status != SessionStatus.SIGNED_IN_UNVERIFIED:
            raise NoActiveSessionError("No unverified session to send a verification email for")
        await self._call(
            "send_verification_email",
            self._provider.send_verification_email(self._state.identity_id),
        )

    async def refresh_verification(self) -> SessionState:
        """
        Re-check the verification flag with the provider.

        Promotes SIGNED_IN_UNVERIFIED to SIGNED_IN_VERIFIED only when the
        provider confirms it; otherwise the state is left as it was.
        """
        if self._state.status != SessionStatus.SIGNED_IN_UNVERIFIED:
            raise NoActiveSessionError("No unverified session to refresh")

        identity = await self._call("reload", self._provider.reload(self._state.identity_id))
        if identity.email_verified:
            await self._move(SessionStatus.SIGNED_IN_VERIFIED, identity)
        return self._state

    async def delete_account(self, password: str, cascade: CascadeDelete) -> None:
        """
        Delete the signed-in account and everything it owns.

        Order:
        1. Re-authenticate with `password` (AuthError, nothing touched)
        2. cascade(identity_id) deletes the owned data
           (any failure raises AccountDeletionError, identity kept)
        3. Delete the identity
        4. Clear the session
        """
        if self._state.status != SessionStatus.SIGNED_IN_VERIFIED:
            raise NoActiveSessionError("Sign in before deleting the account")

        identity_id = self._state.identity_id

        await self._call("reauthenticate", self._provider.reauthenticate(identity_id, password))

        try:
            await cascade(identity_id)
        except Exception as e:
            self._logger.error("account_cascade_failed", identity_id=identity_id, error=str(e))
            raise AccountDeletionError(
                f"Could not delete all of your data, your account was kept: {e}"
            ) from e

        await self._call("delete_identity", self._provider.delete_identity(identity_id))
        self._logger.info("identity_deleted", identity_id=identity_id)
        await self._move(SessionStatus.SIGNED_OUT)
