"""
Audit Models for Expense Tracker

Every significant user action is recorded as an audit event.
This provides:
1. Traceability of what the user did and what the store confirmed
2. Debugging information when a remote call fails
3. A record of budget warnings that were shown

DESIGN DECISION: Audit events are emitted, never edited.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Session
    SIGN_UP_COMPLETED = "sign_up_completed"
    VERIFICATION_EMAIL_SENT = "verification_email_sent"
    SIGN_IN_SUCCEEDED = "sign_in_succeeded"
    SIGN_IN_FAILED = "sign_in_failed"
    SIGN_IN_UNVERIFIED = "sign_in_unverified"
    SIGNED_OUT = "signed_out"
    PASSWORD_RESET_SENT = "password_reset_sent"
    ACCOUNT_DELETED = "account_deleted"
    ACCOUNT_DELETION_FAILED = "account_deletion_failed"

    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSE_REJECTED = "expense_rejected"
    SAVE_FAILED = "save_failed"

    # Budget
    BUDGET_SAVED = "budget_saved"
    BUDGET_DELETED = "budget_deleted"
    BUDGET_EXCEEDED = "budget_exceeded"

    # Export
    EXPORT_GENERATED = "export_generated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Entity ids are opaque strings because both identity and document ids
    are assigned by external collaborators.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'budget', 'identity')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    owner_id: Optional[str] = Field(
        default=None,
        description="Identity the action was performed for"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one account deletion)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "owner_id": self.owner_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_added(expense_id, owner_id, "12.50", correlation_id)
        event = AuditEventBuilder.signed_out(owner_id, correlation_id)
    """

    @staticmethod
    def sign_up_completed(
        owner_id: str,
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGN_UP_COMPLETED,
            entity_type="identity",
            entity_id=owner_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Account created for {email}",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def verification_email_sent(
        owner_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VERIFICATION_EMAIL_SENT,
            entity_type="identity",
            entity_id=owner_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Verification email sent",
        )

    @staticmethod
    def sign_in_succeeded(
        owner_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGN_IN_SUCCEEDED,
            entity_type="identity",
            entity_id=owner_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="User signed in",
            is_user_action=True,
        )

    @staticmethod
    def sign_in_failed(
        error_code: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        event_type = (
            AuditEventType.SIGN_IN_UNVERIFIED
            if error_code == "not-verified"
            else AuditEventType.SIGN_IN_FAILED
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            entity_type="identity",
            correlation_id=correlation_id,
            description=f"Sign-in rejected: {error_code}",
            error_code=error_code,
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def signed_out(
        owner_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            entity_type="identity",
            entity_id=owner_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="User signed out",
            is_user_action=True,
        )

    @staticmethod
    def password_reset_sent(
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PASSWORD_RESET_SENT,
            entity_type="identity",
            correlation_id=correlation_id,
            description="Password reset email requested",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def account_deleted(
        owner_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="identity",
            entity_id=owner_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Account and all of its data deleted",
            is_user_action=True,
        )

    @staticmethod
    def account_deletion_failed(
        owner_id: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="identity",
            entity_id=owner_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Account deletion halted before the identity was removed",
            error_message=error_message,
        )

    @staticmethod
    def expense_added(
        expense_id: str,
        owner_id: str,
        amount: str,
        category: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Expense added: {category} - {amount}",
            details={
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_rejected(
        owner_id: Optional[str],
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Expense rejected with {len(issues)} validation issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        expense_id: str,
        owner_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Expense deleted",
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        entity_type: str,
        operation: str,
        error_message: str,
        owner_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Store write failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def budget_saved(
        owner_id: str,
        period: str,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SAVED,
            entity_type="budget",
            entity_id=f"{owner_id}_{period}",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Budget for {period} set to {amount}",
            details={"period": period, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def budget_deleted(
        owner_id: str,
        period: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            entity_type="budget",
            entity_id=f"{owner_id}_{period}",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Budget for {period} removed",
            details={"period": period},
            is_user_action=True,
        )

    @staticmethod
    def budget_exceeded(
        owner_id: str,
        period: str,
        period_total: str,
        budget: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_EXCEEDED,
            severity=AuditSeverity.WARNING,
            entity_type="budget",
            entity_id=f"{owner_id}_{period}",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Budget for {period} exceeded: {period_total} > {budget}",
            details={
                "period": period,
                "period_total": period_total,
                "budget": budget,
            },
        )

    @staticmethod
    def export_generated(
        owner_id: Optional[str],
        row_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_GENERATED,
            entity_type="export",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"CSV export generated with {row_count} rows",
            details={"row_count": row_count},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
