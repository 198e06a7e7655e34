"""
Main Orchestrator for Colocation Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Bookkeeping (months, transactions, members) through the LedgerBook
2. Closure (Pass A → draft → Pass B → commit) through the MonthLifecycle
3. Sharing (report → export → email) through the ClosureSharingFlow

DESIGN DECISION: Sharing is a separate step that runs after the closure
is committed. An export or email failure is reported to the caller and
logged; it never reopens or rewrites the month.
"""

from typing import Optional
from uuid import UUID

import pydantic
import structlog
from pydantic import BaseModel, Field

from coloc_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from coloc_ledger.book import LedgerBook
from coloc_ledger.config import LedgerSettings, get_settings
from coloc_ledger.errors import ExternalServiceError
from coloc_ledger.lifecycle import MonthLifecycle
from coloc_ledger.models import Member, Month
from coloc_ledger.services.export import (
    DocumentExporterInterface,
    ExcelReportExporter,
    ExportedDocument,
    MonthReport,
    build_month_report,
)
from coloc_ledger.services.notifications import (
    DeliveryResult,
    EmailJSNotificationService,
    NotificationSenderInterface,
    Recipient,
)
from coloc_ledger.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)
from coloc_ledger.validation import SettlementAllocator


logger = structlog.get_logger(__name__)


class SharingResult(BaseModel):
    """What happened when a month report was shared."""

    month_key: str
    report: MonthReport
    document: Optional[ExportedDocument] = None
    export_error: Optional[str] = None
    deliveries: list[DeliveryResult] = Field(default_factory=list)

    @property
    def failed_deliveries(self) -> list[DeliveryResult]:
        return [d for d in self.deliveries if not d.success]


def recipients_for(roster: list[Member]) -> list[Recipient]:
    """Members with an email address, in roster order."""
    return [
        Recipient(name=member.name, email=member.email)
        for member in roster
        if member.email
    ]


class ClosureSharingFlow:
    """
    Orchestrates sharing a month with the household.

    Flow:
    1. Build the report (summary, settlement, credits)
    2. Export it as a document
    3. Email it to every member of the month's roster with an address

    Each step reports its own outcome. Nothing here writes to the store.
    """

    def __init__(
        self,
        book: LedgerBook,
        exporter: Optional[DocumentExporterInterface] = None,
        notifier: Optional[NotificationSenderInterface] = None,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._book = book
        self._exporter = exporter or ExcelReportExporter()
        self._notifier = notifier
        self._settings = settings or get_settings().ledger
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def can_notify(self) -> bool:
        return self._notifier is not None

    def build_report(self, month: Month) -> MonthReport:
        """Report of a month with credits as they stand now."""
        credits = {
            name: breakdown.total
            for name, breakdown in self._book.credits().items()
        }
        return build_month_report(
            month,
            credits=credits,
            roster=self._book.month_roster(month.key),
            currency_symbol=self._settings.currency_symbol,
        )

    def share(
        self,
        month_key: str,
        send_email: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> SharingResult:
        """
        Export the month's report and email it.

        Raises:
            NotFoundError: if the month does not exist
        """
        correlation_id = correlation_id or create_correlation_id()

        month = self._book.get_month(month_key)
        if month is None:
            raise NotFoundError(f"Month not found: {month_key}")

        report = self.build_report(month)
        result = SharingResult(month_key=month_key, report=report)

        # Export
        try:
            result.document = self._exporter.export(report)
            self._audit_logger.log_report_exported(
                month_key=month_key,
                filename=result.document.filename,
                size_bytes=result.document.size_bytes,
                correlation_id=correlation_id,
            )
        except ExternalServiceError as e:
            result.export_error = e.message
            self._audit_logger.log_external_service_error(
                service=e.service,
                error_message=e.message,
                correlation_id=correlation_id,
            )

        # Email
        if send_email and self._notifier is not None:
            try:
                result.deliveries = self._notifier.send(report, recipients_for(report.roster))
            except Exception as e:
                self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"month_key": month_key, "step": "notify"},
                    correlation_id=correlation_id,
                )
                raise
            for delivery in result.deliveries:
                self._audit_logger.log_notification_result(
                    month_key=month_key,
                    recipient=delivery.recipient.email,
                    success=delivery.success,
                    error_message=delivery.error_message,
                    correlation_id=correlation_id,
                )

        return result


def create_store(backend: str) -> LedgerStoreInterface:
    """
    Build the configured store.

    Falls back to the in-memory store when Google Sheets is not
    configured, so the app still starts (without persistence).
    """
    if backend == "google_sheets":
        try:
            return GoogleSheetsLedgerStore(GoogleSheetsClient())
        except (pydantic.ValidationError, StorageError) as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", backend=backend, error=str(e))
    return InMemoryLedgerStore()


def create_app_components(
    store: Optional[LedgerStoreInterface] = None,
    use_notifications: bool = True,
) -> tuple[LedgerBook, MonthLifecycle, ClosureSharingFlow]:
    """
    Factory function to create all application components.

    Args:
        store: Store to use. If None, built from AppSettings.storage_backend.
        use_notifications: Whether to set up EmailJS.
                           Set to False for testing without network.

    Returns:
        (book, lifecycle, sharing_flow)
    """
    settings = get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level)

    ledger_settings = settings.ledger
    audit_logger = AuditLogger()
    store = store or create_store(app_settings.storage_backend)

    notifier = None
    if use_notifications:
        try:
            notifier = EmailJSNotificationService()
        except pydantic.ValidationError as e:
            # EmailJS not configured - sharing exports only
            logger.warning("notifications_not_configured", error=str(e))

    book = LedgerBook(store, audit_logger=audit_logger)
    lifecycle = MonthLifecycle(
        store,
        allocator=SettlementAllocator(ledger_settings),
        settings=ledger_settings,
        audit_logger=audit_logger,
    )
    sharing_flow = ClosureSharingFlow(
        book,
        notifier=notifier,
        settings=ledger_settings,
        audit_logger=audit_logger,
    )

    return book, lifecycle, sharing_flow
