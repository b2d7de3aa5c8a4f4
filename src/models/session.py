"""
Session Models

The session is one immutable value. Components never poke at "the current
user" directly; they receive a new SessionState from the Session Manager
every time something changes.

State machine:

    SIGNED_OUT ──> AUTHENTICATING ──> SIGNED_IN_VERIFIED
                        │       └──> SIGNED_IN_UNVERIFIED
                        └──> SIGNED_OUT (on error)

    SIGNED_IN_UNVERIFIED ──> SIGNED_OUT | SIGNED_IN_VERIFIED (confirmed only)
    SIGNED_IN_VERIFIED   ──> SIGNED_OUT
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionStatus(str, Enum):
    """Where the session currently is."""
    SIGNED_OUT = "signed_out"
    AUTHENTICATING = "authenticating"
    SIGNED_IN_VERIFIED = "signed_in_verified"
    SIGNED_IN_UNVERIFIED = "signed_in_unverified"


ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.SIGNED_OUT: frozenset({
        SessionStatus.SIGNED_OUT,
        SessionStatus.AUTHENTICATING,
    }),
    SessionStatus.AUTHENTICATING: frozenset({
        SessionStatus.SIGNED_IN_VERIFIED,
        SessionStatus.SIGNED_IN_UNVERIFIED,
        SessionStatus.SIGNED_OUT,
    }),
    SessionStatus.SIGNED_IN_UNVERIFIED: frozenset({
        SessionStatus.SIGNED_OUT,
        SessionStatus.SIGNED_IN_VERIFIED,
    }),
    SessionStatus.SIGNED_IN_VERIFIED: frozenset({
        SessionStatus.SIGNED_OUT,
    }),
}


class InvalidTransitionError(Exception):
    """A session transition that the state machine does not define."""

    def __init__(self, current: SessionStatus, target: SessionStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move session from {current.value} to {target.value}")


class Identity(BaseModel):
    """An authenticated principal as reported by the identity provider."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    email_verified: bool = False


class SessionState(BaseModel):
    """
    The single owned session value.

    error_code/error_message describe why the last transition landed where
    it did (e.g. an unverified sign-in forced back to SIGNED_OUT).
    """
    model_config = ConfigDict(frozen=True)

    status: SessionStatus = SessionStatus.SIGNED_OUT
    identity: Optional[Identity] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_verified(self) -> bool:
        return self.status == SessionStatus.SIGNED_IN_VERIFIED

    @property
    def identity_id(self) -> Optional[str]:
        return self.identity.id if self.identity else None


def transition(
    state: SessionState,
    status: SessionStatus,
    identity: Optional[Identity] = None,
    error_code: Optional[str] = None,
    error_message: Optional[str] = None,
) -> SessionState:
    """
    Produce the next session state.

    Raises InvalidTransitionError for moves the machine does not allow.
    Signed-in states require an identity whose verification flag matches;
    the other states never carry one.
    """
    if status not in ALLOWED_TRANSITIONS[state.status]:
        raise InvalidTransitionError(state.status, status)

    if status in (SessionStatus.SIGNED_IN_VERIFIED, SessionStatus.SIGNED_IN_UNVERIFIED):
        if identity is None:
            raise ValueError(f"{status.value} requires an identity")
        if identity.email_verified != (status == SessionStatus.SIGNED_IN_VERIFIED):
            raise ValueError(
                f"Identity verification flag does not match {status.value}"
            )
    else:
        identity = None

    return SessionState(
        status=status,
        identity=identity,
        error_code=error_code,
        error_message=error_message,
    )
