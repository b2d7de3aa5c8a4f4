"""Tests for the Session Manager against the in-memory identity provider."""

import asyncio

import pytest

from src.models.session import SessionStatus
from src.services.identity import AuthError, AuthErrorCode, InMemoryIdentityProvider
from src.session import AccountDeletionError, NoActiveSessionError, SessionManager


def run(coro):
    return asyncio.run(coro)


EMAIL = "user@example.com"
PASSWORD = "secret123"


@pytest.fixture
def manager(provider):
    return SessionManager(provider)


@pytest.fixture
def transitions(manager):
    seen = []

    async def listener(previous, current):
        seen.append((previous.status, current.status))

    manager.add_listener(listener)
    return seen


def verified_user(provider, manager):
    run(manager.sign_up(EMAIL, PASSWORD))
    provider.confirm_email(EMAIL)
    run(manager.sign_in(EMAIL, PASSWORD))


class TestSignUp:
    """Tests for account creation."""

    def test_unverified_sign_up_sends_verification(self, provider, manager, transitions):
        """Test that a new unverified identity is parked, not granted access."""
        identity = run(manager.sign_up(EMAIL, PASSWORD))
        assert identity.email_verified is False
        assert manager.state.status == SessionStatus.SIGNED_IN_UNVERIFIED
        assert provider.outbox == [("verify", EMAIL)]
        assert transitions == [
            (SessionStatus.SIGNED_OUT, SessionStatus.AUTHENTICATING),
            (SessionStatus.AUTHENTICATING, SessionStatus.SIGNED_IN_UNVERIFIED),
        ]

    def test_auto_verified_sign_up(self):
        """Test that a provider-verified identity goes straight in."""
        manager = SessionManager(InMemoryIdentityProvider(auto_verify=True))
        run(manager.sign_up(EMAIL, PASSWORD))
        assert manager.state.is_verified

    def test_duplicate_email(self, manager):
        """Test that sign-up failures end signed out with the error recorded."""
        run(manager.sign_up(EMAIL, PASSWORD))
        with pytest.raises(AuthError) as exc_info:
            run(manager.sign_up(EMAIL, PASSWORD))
        assert exc_info.value.code == AuthErrorCode.EMAIL_ALREADY_IN_USE
        assert manager.state.status == SessionStatus.SIGNED_OUT
        assert manager.state.error_code == "email-already-in-use"

    def test_weak_password(self, manager):
        """Test the provider's password rule."""
        with pytest.raises(AuthError) as exc_info:
            run(manager.sign_up(EMAIL, "123"))
        assert exc_info.value.code == AuthErrorCode.WEAK_PASSWORD


class TestSignIn:
    """Tests for sign-in."""

    def test_verified_sign_in(self, provider, manager, transitions):
        """Test that a verified identity becomes the session."""
        run(manager.sign_up(EMAIL, PASSWORD))
        provider.confirm_email(EMAIL)
        transitions.clear()
        run(manager.sign_in(EMAIL, PASSWORD))
        assert manager.state.is_verified
        assert manager.identity.email == EMAIL
        assert transitions == [
            (SessionStatus.SIGNED_IN_UNVERIFIED, SessionStatus.SIGNED_OUT),
            (SessionStatus.SIGNED_OUT, SessionStatus.AUTHENTICATING),
            (SessionStatus.AUTHENTICATING, SessionStatus.SIGNED_IN_VERIFIED),
        ]

    def test_unverified_sign_in_is_signed_back_out(self, provider, manager):
        """Test that an unverified identity never keeps a session."""
        run(manager.sign_up(EMAIL, PASSWORD))
        run(manager.sign_out())
        with pytest.raises(AuthError) as exc_info:
            run(manager.sign_in(EMAIL, PASSWORD))
        assert exc_info.value.code == AuthErrorCode.NOT_VERIFIED
        assert exc_info.value.message == "Email not verified. Please check your inbox."
        assert manager.state.status == SessionStatus.SIGNED_OUT
        assert manager.state.error_code == "not-verified"
        assert provider.current_identity_id is None

    def test_wrong_password(self, manager):
        """Test invalid credentials."""
        run(manager.sign_up(EMAIL, PASSWORD))
        with pytest.raises(AuthError) as exc_info:
            run(manager.sign_in(EMAIL, "wrong-password"))
        assert exc_info.value.code == AuthErrorCode.INVALID_CREDENTIALS
        assert manager.state.identity is None

    def test_provider_crash_is_classified(self, manager, provider):
        """Test that unexpected provider errors become unknown auth errors."""
        async def broken(email, password):
            raise RuntimeError("socket closed")

        provider.sign_in = broken
        with pytest.raises(AuthError) as exc_info:
            run(manager.sign_in(EMAIL, PASSWORD))
        assert exc_info.value.code == AuthErrorCode.UNKNOWN
        assert manager.state.status == SessionStatus.SIGNED_OUT


class TestVerificationAndReset:
    """Tests for verification refresh, resend and password reset."""

    def test_refresh_promotes_only_when_confirmed(self, provider, manager):
        """Test that the flag is re-read from the provider."""
        run(manager.sign_up(EMAIL, PASSWORD))
        state = run(manager.refresh_verification())
        assert state.status == SessionStatus.SIGNED_IN_UNVERIFIED

        provider.confirm_email(EMAIL)
        state = run(manager.refresh_verification())
        assert state.status == SessionStatus.SIGNED_IN_VERIFIED

    def test_refresh_without_pending_session(self, manager):
        """Test that there is nothing to refresh when signed out."""
        with pytest.raises(NoActiveSessionError):
            run(manager.refresh_verification())

    def test_resend_verification(self, provider, manager):
        """Test resending the verification email."""
        run(manager.sign_up(EMAIL, PASSWORD))
        run(manager.resend_verification())
        assert provider.outbox.count(("verify", EMAIL)) == 2

    @pytest.mark.parametrize("email", [None, "", "   "])
    def test_reset_requires_email(self, manager, email):
        """Test that a blank email fails without calling the provider."""
        with pytest.raises(AuthError) as exc_info:
            run(manager.reset_password(email))
        assert exc_info.value.code == AuthErrorCode.MISSING_EMAIL
        assert exc_info.value.message == "Enter your email to reset password."

    def test_reset_sends_email(self, provider, manager):
        """Test that a reset goes to the provider."""
        run(manager.sign_up(EMAIL, PASSWORD))
        run(manager.reset_password(f"  {EMAIL} "))
        assert ("reset", EMAIL) in provider.outbox


class TestSignOutAndDeletion:
    """Tests for sign-out and account deletion."""

    def test_sign_out_always_ends_signed_out(self, provider, manager):
        """Test that a failing provider sign-out still clears the session."""
        verified_user(provider, manager)

        async def broken(identity_id=None):
            raise RuntimeError("offline")

        provider.sign_out = broken
        run(manager.sign_out())
        assert manager.state.status == SessionStatus.SIGNED_OUT

    def test_delete_account_order(self, provider, manager):
        """Test that the cascade runs before the identity is deleted."""
        verified_user(provider, manager)
        calls = []

        async def cascade(identity_id):
            calls.append(("cascade", provider.has_account(EMAIL)))

        run(manager.delete_account(PASSWORD, cascade))
        assert calls == [("cascade", True)]
        assert not provider.has_account(EMAIL)
        assert manager.state.status == SessionStatus.SIGNED_OUT

    def test_delete_account_wrong_password(self, provider, manager):
        """Test that a failed re-authentication touches nothing."""
        verified_user(provider, manager)
        calls = []

        async def cascade(identity_id):
            calls.append(identity_id)

        with pytest.raises(AuthError):
            run(manager.delete_account("wrong-password", cascade))
        assert calls == []
        assert manager.state.is_verified

    def test_cascade_failure_keeps_identity(self, provider, manager):
        """Test that the identity survives a failed cascade."""
        verified_user(provider, manager)

        async def cascade(identity_id):
            raise RuntimeError("store down")

        with pytest.raises(AccountDeletionError):
            run(manager.delete_account(PASSWORD, cascade))
        assert provider.has_account(EMAIL)
        assert manager.state.is_verified

    def test_delete_requires_verified_session(self, manager):
        """Test that there is no account to delete when signed out."""
        async def cascade(identity_id):
            pass

        with pytest.raises(NoActiveSessionError):
            run(manager.delete_account(PASSWORD, cascade))

    def test_shared_provider_sign_out_spares_other_sessions(self, provider):
        """Test that one session signing out keeps another able to delete its account."""
        alice = SessionManager(provider)
        bob = SessionManager(provider)
        run(alice.sign_up(EMAIL, PASSWORD))
        run(bob.sign_up("bob@example.com", PASSWORD))
        provider.confirm_email(EMAIL)
        provider.confirm_email("bob@example.com")
        run(alice.sign_in(EMAIL, PASSWORD))
        run(bob.sign_in("bob@example.com", PASSWORD))

        run(alice.sign_out())
        assert provider.current_identity_id == bob.state.identity_id

        run(provider.delete_identity(bob.state.identity_id))
        assert not provider.has_account("bob@example.com")
        assert provider.has_account(EMAIL)

    def test_signed_out_session_leaves_provider_alone(self, provider, manager):
        """Test that signing out with no identity ends nobody else's session."""
        other = SessionManager(provider)
        verified_user(provider, other)
        run(manager.sign_out())
        assert provider.current_identity_id == other.state.identity_id
