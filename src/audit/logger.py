"""
Audit Logger

DESIGN DECISION: Every significant user action is logged.
This provides:
1. Traceability
2. Debugging capability
3. A short activity history the UI can show

The audit logger:
- Is async so it can sit on the same await path as the store calls
- Never raises (a failed audit write must not undo a confirmed store write)
- Supports correlation IDs to trace related events
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.config import get_settings
from src.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog.

    structlog renders JSON; stdlib only decides the level and the stream.
    """
    level_name = level or get_settings().app.log_level
    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs every event to the structured local log and keeps the most recent
    ones in memory for display.
    """

    def __init__(self, history_size: int = 100):
        self._logger = structlog.get_logger(__name__)
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        self._history.append(event)

    async def log_sign_up(self, owner_id: str, email: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.sign_up_completed(owner_id, email, correlation_id))

    async def log_verification_email(self, owner_id: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.verification_email_sent(owner_id, correlation_id))

    async def log_sign_in(self, owner_id: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.sign_in_succeeded(owner_id, correlation_id))

    async def log_sign_in_failed(
        self,
        error_code: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a rejected sign-in (bad credentials or unverified email)."""
        await self.log(
            AuditEventBuilder.sign_in_failed(error_code, error_message, correlation_id)
        )

    async def log_sign_out(self, owner_id: Optional[str], correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.signed_out(owner_id, correlation_id))

    async def log_password_reset(self, email: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.password_reset_sent(email, correlation_id))

    async def log_account_deleted(self, owner_id: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.account_deleted(owner_id, correlation_id))

    async def log_account_deletion_failed(
        self,
        owner_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.account_deletion_failed(owner_id, error_message, correlation_id)
        )

    async def log_expense_added(
        self,
        expense_id: str,
        owner_id: str,
        amount: str,
        category: str,
        correlation_id: UUID,
    ) -> None:
        """Log a confirmed expense write."""
        event = AuditEventBuilder.expense_added(
            expense_id=expense_id,
            owner_id=owner_id,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_rejected(
        self,
        owner_id: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_rejected(owner_id, issues, correlation_id))

    async def log_expense_deleted(
        self,
        expense_id: str,
        owner_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(expense_id, owner_id, correlation_id))

    async def log_save_failed(
        self,
        entity_type: str,
        operation: str,
        error_message: str,
        owner_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log a store write that did not go through."""
        event = AuditEventBuilder.save_failed(
            entity_type=entity_type,
            operation=operation,
            error_message=error_message,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_saved(
        self,
        owner_id: str,
        period: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_saved(owner_id, period, amount, correlation_id))

    async def log_budget_deleted(self, owner_id: str, period: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.budget_deleted(owner_id, period, correlation_id))

    async def log_budget_exceeded(
        self,
        owner_id: str,
        period: str,
        period_total: str,
        budget: str,
        correlation_id: UUID,
    ) -> None:
        """Log that an add pushed the period total over the budget."""
        event = AuditEventBuilder.budget_exceeded(
            owner_id=owner_id,
            period=period,
            period_total=period_total,
            budget=budget,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_export(
        self,
        owner_id: Optional[str],
        row_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.export_generated(owner_id, row_count, correlation_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding an expense).
    Pass it through all subsequent operations.
    """
    return uuid4()
