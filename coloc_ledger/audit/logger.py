"""
Audit Logger

DESIGN DECISION: Every significant action on the ledger is logged.
This provides:
1. Traceability of closures and reopenings
2. Debugging capability
3. A record of refused operations

The audit logger:
- Writes structured JSON lines through structlog
- Never raises: a logging failure must not abort a ledger write
- Supports correlation IDs to trace a closure and its sharing together
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from coloc_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
)


# Configure structlog for local logging
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


def configure_logging(level: str = "INFO") -> None:
    """
    Route structlog output to stderr at the given level.

    structlog renders the JSON; the stdlib root logger only filters
    and prints it.
    """
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured local log only. The ledger keeps no
    persisted event history.
    """

    def __init__(self, logger_name: str = "coloc_ledger.audit"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except (TypeError, ValueError) as e:
            # Unserializable details; keep the ledger running
            logging.getLogger(__name__).error(
                "audit event %s could not be rendered: %s", event.event_id, e
            )
            return False

        return True

    def log_month_created(self, month_key: str, implicit: bool = False) -> None:
        """Log month creation."""
        self.log(AuditEventBuilder.month_created(month_key, implicit=implicit))

    def log_transaction_changed(
        self,
        event_type: AuditEventType,
        month_key: str,
        transaction_id: str,
        member_name: str,
        amount: str,
    ) -> None:
        """Log a transaction add, update or delete."""
        self.log(AuditEventBuilder.transaction_changed(
            event_type=event_type,
            month_key=month_key,
            transaction_id=transaction_id,
            member_name=member_name,
            amount=amount,
        ))

    def log_remarks_updated(self, month_key: str) -> None:
        self.log(AuditEventBuilder.remarks_updated(month_key))

    def log_closed_month_write_rejected(self, month_key: str, operation: str) -> None:
        self.log(AuditEventBuilder.closed_month_write_rejected(month_key, operation))

    def log_closure_started(
        self,
        month_key: str,
        direction: str,
        residual_target: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log Pass A success (draft created)."""
        self.log(AuditEventBuilder.closure_started(
            month_key=month_key,
            direction=direction,
            residual_target=residual_target,
            correlation_id=correlation_id,
        ))

    def log_closure_validation_failed(
        self,
        month_key: str,
        stage: str,
        remaining: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a blocked closure pass."""
        self.log(AuditEventBuilder.closure_validation_failed(
            month_key=month_key,
            stage=stage,
            remaining=remaining,
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_month_closed(
        self,
        month_key: str,
        settlement_count: int,
        global_balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed closure."""
        self.log(AuditEventBuilder.month_closed(
            month_key=month_key,
            settlement_count=settlement_count,
            global_balance=global_balance,
            correlation_id=correlation_id,
        ))

    def log_month_reopened(self, month_key: str, discarded_settlements: int) -> None:
        self.log(AuditEventBuilder.month_reopened(month_key, discarded_settlements))

    def log_reopen_denied(self, month_key: str, reason: str) -> None:
        self.log(AuditEventBuilder.reopen_denied(month_key, reason))

    def log_member_changed(
        self,
        event_type: AuditEventType,
        member_id: str,
        member_name: str,
    ) -> None:
        """Log a roster change."""
        self.log(AuditEventBuilder.member_changed(event_type, member_id, member_name))

    def log_settings_updated(self, rule: str, initial_budget: str) -> None:
        self.log(AuditEventBuilder.settings_updated(rule, initial_budget))

    def log_report_exported(
        self,
        month_key: str,
        filename: str,
        size_bytes: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.report_exported(
            month_key=month_key,
            filename=filename,
            size_bytes=size_bytes,
            correlation_id=correlation_id,
        ))

    def log_notification_result(
        self,
        month_key: str,
        recipient: str,
        success: bool,
        error_message: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log one delivery attempt."""
        self.log(AuditEventBuilder.notification_result(
            month_key=month_key,
            recipient=recipient,
            success=success,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when a closure starts and pass it on to the sharing step.
    """
    return uuid4()
