"""
Tests for the sharing flow and component wiring.

Export and email collaborators are replaced by fakes; the closure runs
against the in-memory store.
"""

from decimal import Decimal

import pytest

from coloc_ledger.audit import AuditLogger
from coloc_ledger.book import LedgerBook
from coloc_ledger.errors import ExternalServiceError
from coloc_ledger.lifecycle import MonthLifecycle
from coloc_ledger.models import AuditEventType, Member, ResidualAllocation
from coloc_ledger.orchestrator import (
    ClosureSharingFlow,
    create_app_components,
    recipients_for,
)
from coloc_ledger.services.export import (
    DocumentExporterInterface,
    ExcelReportExporter,
    ExportedDocument,
)
from coloc_ledger.services.notifications import (
    DeliveryResult,
    NotificationSenderInterface,
)
from coloc_ledger.services.storage import InMemoryLedgerStore, NotFoundError


class FakeNotifier(NotificationSenderInterface):
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []

    def send(self, summary, recipients):
        results = []
        for recipient in recipients:
            self.sent.append((summary.month_key, recipient.email))
            if recipient.email in self.failing:
                results.append(DeliveryResult(recipient=recipient, success=False, error_message="HTTP 500"))
            else:
                results.append(DeliveryResult(recipient=recipient, success=True))
        return results


class BrokenExporter(DocumentExporterInterface):
    def export(self, report) -> ExportedDocument:
        raise ExternalServiceError("excel_export", "disk full")


@pytest.fixture
def closed(lifecycle, book, march):
    book.add_member(name="Chloé")
    lifecycle.close_month("Mars-2025", None, ResidualAllocation(savings_amount=Decimal("194.50")))


class TestRecipients:
    """Tests for recipients_for."""

    def test_only_members_with_email(self):
        """Test members without an address are skipped."""
        roster = [
            Member(name="Alice", email="alice@example.org"),
            Member(name="Chloé"),
            Member(name="Bob", email="bob@example.org"),
        ]
        assert [r.name for r in recipients_for(roster)] == ["Alice", "Bob"]


class TestClosureSharingFlow:
    """Tests for ClosureSharingFlow."""

    def test_share_exports_and_emails(self, book, ledger_settings, audit_logger, closed):
        """Test a closed month is exported and sent to the snapshot roster."""
        notifier = FakeNotifier()
        flow = ClosureSharingFlow(
            book,
            exporter=ExcelReportExporter(),
            notifier=notifier,
            settings=ledger_settings,
            audit_logger=audit_logger,
        )

        result = flow.share("Mars-2025")

        assert result.document.filename == "bilan-Mars-2025.xlsx"
        assert result.export_error is None
        assert notifier.sent == [
            ("Mars-2025", "alice@example.org"),
            ("Mars-2025", "bob@example.org"),
        ]
        assert result.failed_deliveries == []

    def test_failed_delivery_is_reported(self, book, ledger_settings, closed):
        """Test one failing recipient is listed and the month stays closed."""
        flow = ClosureSharingFlow(
            book,
            notifier=FakeNotifier(failing={"bob@example.org"}),
            settings=ledger_settings,
        )

        result = flow.share("Mars-2025")

        assert [d.recipient.name for d in result.failed_deliveries] == ["Bob"]
        assert book.get_month("Mars-2025").is_closed

    def test_export_failure_is_captured(self, book, ledger_settings, closed):
        """Test an exporter error does not stop the emails."""
        notifier = FakeNotifier()
        flow = ClosureSharingFlow(
            book, exporter=BrokenExporter(), notifier=notifier, settings=ledger_settings,
        )

        result = flow.share("Mars-2025")

        assert result.document is None
        assert result.export_error == "disk full"
        assert len(result.deliveries) == 2

    def test_unexpected_notifier_error_is_logged_and_raised(self, book, ledger_settings, closed):
        """Test a crashing notifier is logged and the month stays closed."""
        logged = []

        class CrashingNotifier(NotificationSenderInterface):
            def send(self, summary, recipients):
                raise RuntimeError("template engine down")

        class RecordingAuditLogger(AuditLogger):
            def log(self, event):
                logged.append(event)
                return True

        flow = ClosureSharingFlow(
            book,
            notifier=CrashingNotifier(),
            settings=ledger_settings,
            audit_logger=RecordingAuditLogger(),
        )

        with pytest.raises(RuntimeError):
            flow.share("Mars-2025")
        assert logged[-1].event_type == AuditEventType.SYSTEM_ERROR
        assert book.get_month("Mars-2025").is_closed

    def test_without_email(self, book, ledger_settings, closed):
        """Test send_email=False only exports."""
        notifier = FakeNotifier()
        flow = ClosureSharingFlow(book, notifier=notifier, settings=ledger_settings)

        result = flow.share("Mars-2025", send_email=False)

        assert result.document is not None
        assert notifier.sent == []

    def test_without_notifier(self, book, ledger_settings, closed):
        """Test a flow with no notifier cannot notify."""
        flow = ClosureSharingFlow(book, settings=ledger_settings)
        assert flow.can_notify is False
        assert flow.share("Mars-2025").deliveries == []

    def test_unknown_month(self, book, ledger_settings):
        """Test sharing a month that does not exist."""
        flow = ClosureSharingFlow(book, settings=ledger_settings)
        with pytest.raises(NotFoundError):
            flow.share("Mars-2025")

    def test_report_credits(self, book, ledger_settings, closed):
        """Test the report carries current credits."""
        flow = ClosureSharingFlow(book, settings=ledger_settings)
        report = flow.build_report(book.get_month("Mars-2025"))
        assert report.credits["Alice"] == Decimal("114.50")
        assert report.credits["Chloé"] == Decimal("0.00")


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_wiring(self):
        """Test the factory shares one store between components."""
        store = InMemoryLedgerStore()
        book, lifecycle, sharing_flow = create_app_components(store=store, use_notifications=False)

        assert isinstance(book, LedgerBook)
        assert isinstance(lifecycle, MonthLifecycle)
        assert sharing_flow.can_notify is False

        book.create_month("Mars", 2025)
        assert store.load_months()[0].key == "Mars-2025"
