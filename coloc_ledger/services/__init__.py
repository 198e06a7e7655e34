"""Services package."""

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
    StoreConnectionError,
)

__all__ = [
    # Export services
    "DocumentExporterInterface",
    "ExcelReportExporter",
    "ExportedDocument",
    "MonthReport",
    "build_month_report",
    # Notification services
    "DeliveryResult",
    "EmailJSNotificationService",
    "NotificationSenderInterface",
    "Recipient",
    # Storage services
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "InMemoryLedgerStore",
    "LedgerStoreInterface",
    "NotFoundError",
    "StorageError",
    "StoreConnectionError",
]
