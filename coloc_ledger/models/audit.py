"""
Audit Models for Colocation Ledger

Every significant action on the ledger produces an event in the local
structured log. This provides:
1. Traceability of closures and reopenings
2. Debugging information when things go wrong
3. A record of refused operations (closed-month writes, wrong passphrase)

DESIGN DECISION: Events are logged, not stored. The closed-month
snapshot is the only history the ledger keeps.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Months and transactions
    MONTH_CREATED = "month_created"
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    REMARKS_UPDATED = "remarks_updated"
    CLOSED_MONTH_WRITE_REJECTED = "closed_month_write_rejected"

    # Closure lifecycle
    CLOSURE_STARTED = "closure_started"
    CLOSURE_VALIDATION_FAILED = "closure_validation_failed"
    MONTH_CLOSED = "month_closed"
    MONTH_REOPENED = "month_reopened"
    REOPEN_DENIED = "reopen_denied"

    # Roster and settings
    MEMBER_ADDED = "member_added"
    MEMBER_UPDATED = "member_updated"
    MEMBER_DELETED = "member_deleted"
    SETTINGS_UPDATED = "settings_updated"

    # Sharing
    REPORT_EXPORTED = "report_exported"
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_FAILED = "notification_failed"

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
    """A single audit event."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'month', 'transaction', 'member')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Month key or record ID the event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one closure and its sharing)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = False

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
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.month_closed("Mars-2025", 4, "194.50")
        event = AuditEventBuilder.reopen_denied("Mars-2025")
    """

    @staticmethod
    def month_created(month_key: str, implicit: bool = False) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_CREATED,
            entity_type="month",
            entity_id=month_key,
            description=f"Month created: {month_key}",
            details={"implicit": implicit},
            is_user_action=not implicit,
        )

    @staticmethod
    def transaction_changed(
        event_type: AuditEventType,
        month_key: str,
        transaction_id: str,
        member_name: str,
        amount: str,
    ) -> AuditEvent:
        verb = event_type.value.replace("transaction_", "")
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction {verb} in {month_key}: {member_name} {amount}",
            details={
                "month_key": month_key,
                "member_name": member_name,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def remarks_updated(month_key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMARKS_UPDATED,
            entity_type="month",
            entity_id=month_key,
            description=f"Remarks updated for {month_key}",
            is_user_action=True,
        )

    @staticmethod
    def closed_month_write_rejected(month_key: str, operation: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLOSED_MONTH_WRITE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="month",
            entity_id=month_key,
            description=f"Refused {operation} on closed month {month_key}",
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def closure_started(
        month_key: str,
        direction: str,
        residual_target: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLOSURE_STARTED,
            entity_type="month",
            entity_id=month_key,
            correlation_id=correlation_id,
            description=f"Closure started for {month_key}: {direction} of {residual_target}",
            details={
                "direction": direction,
                "residual_target": residual_target,
            },
            is_user_action=True,
        )

    @staticmethod
    def closure_validation_failed(
        month_key: str,
        stage: str,
        remaining: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLOSURE_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="month",
            entity_id=month_key,
            correlation_id=correlation_id,
            description=f"Closure of {month_key} blocked at {stage}: {remaining} left",
            details={
                "stage": stage,
                "remaining": remaining,
                "issues": issues,
            },
        )

    @staticmethod
    def month_closed(
        month_key: str,
        settlement_count: int,
        global_balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_CLOSED,
            entity_type="month",
            entity_id=month_key,
            correlation_id=correlation_id,
            description=f"Month closed: {month_key} with {settlement_count} settlement lines",
            details={
                "settlement_count": settlement_count,
                "global_balance": global_balance,
            },
            is_user_action=True,
        )

    @staticmethod
    def month_reopened(month_key: str, discarded_settlements: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_REOPENED,
            severity=AuditSeverity.WARNING,
            entity_type="month",
            entity_id=month_key,
            description=f"Month reopened: {month_key}",
            details={"discarded_settlements": discarded_settlements},
            is_user_action=True,
        )

    @staticmethod
    def reopen_denied(month_key: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REOPEN_DENIED,
            severity=AuditSeverity.WARNING,
            entity_type="month",
            entity_id=month_key,
            description=f"Reopen of {month_key} denied",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def member_changed(
        event_type: AuditEventType,
        member_id: str,
        member_name: str,
    ) -> AuditEvent:
        verb = event_type.value.replace("member_", "")
        return AuditEvent(
            event_type=event_type,
            entity_type="member",
            entity_id=member_id,
            description=f"Member {verb}: {member_name}",
            details={"member_name": member_name},
            is_user_action=True,
        )

    @staticmethod
    def settings_updated(rule: str, initial_budget: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            description=f"Reimbursement rule set to {rule}",
            details={
                "rule": rule,
                "initial_budget": initial_budget,
            },
            is_user_action=True,
        )

    @staticmethod
    def report_exported(
        month_key: str,
        filename: str,
        size_bytes: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_EXPORTED,
            entity_type="month",
            entity_id=month_key,
            correlation_id=correlation_id,
            description=f"Report exported for {month_key}: {filename}",
            details={
                "filename": filename,
                "size_bytes": size_bytes,
            },
        )

    @staticmethod
    def notification_result(
        month_key: str,
        recipient: str,
        success: bool,
        error_message: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        if success:
            return AuditEvent(
                event_type=AuditEventType.NOTIFICATION_SENT,
                entity_type="month",
                entity_id=month_key,
                correlation_id=correlation_id,
                description=f"Summary of {month_key} sent to {recipient}",
                details={"recipient": recipient},
            )
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="month",
            entity_id=month_key,
            correlation_id=correlation_id,
            description=f"Summary of {month_key} not delivered to {recipient}",
            details={"recipient": recipient},
            error_message=error_message,
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
        correlation_id: Optional[UUID] = None
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
