"""
Spreadsheet Export

DESIGN DECISION: The shared document is an .xlsx workbook rather than a
PDF. Roommates can re-check every sum themselves, and the file opens in
any spreadsheet tool.

Sheets:
- Bilan: totals and per-member balances
- Transactions: every due and expense of the month
- Remboursements: the settlement agreed at closure
"""

from abc import ABC, abstractmethod
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from pydantic import BaseModel

from coloc_ledger.errors import ExternalServiceError
from coloc_ledger.services.export.report import MonthReport


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def money_format(symbol: str) -> str:
    """Excel number format rendering amounts with the household currency."""
    symbol = symbol.replace('"', '')
    return f'#,##0.00 "{symbol}"'


class ExportedDocument(BaseModel):
    """A rendered document, ready to download or attach."""

    filename: str
    media_type: str
    content: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.content)


class DocumentExporterInterface(ABC):
    """Renders a month report into a shareable document."""

    @abstractmethod
    def export(self, report: MonthReport) -> ExportedDocument:
        """
        Render the report.

        Raises:
            ExternalServiceError: If rendering fails
        """
        pass


def _style_header(ws, row=1):
    """Apply header styling to worksheet row"""
    header_font = Font(bold=True, color="FFFFFF")
    fill = PatternFill("solid", fgColor="4F81BD")
    align = Alignment(horizontal="center", vertical="center")
    thin = Side(style="thin", color="A0A0A0")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    for cell in ws[row]:
        cell.font = header_font
        cell.fill = fill
        cell.alignment = align
        cell.border = border


def _autosize_columns(ws, min_width=10, max_width=45):
    """Auto-size columns based on content"""
    for col in range(1, ws.max_column + 1):
        letter = get_column_letter(col)
        max_len = 0
        for cell in ws[letter]:
            if cell.value is None:
                continue
            max_len = max(max_len, len(str(cell.value)))
        ws.column_dimensions[letter].width = max(min_width, min(max_width, max_len + 2))


def _money_columns(ws, columns, number_format, first_row=2):
    for r in range(first_row, ws.max_row + 1):
        for c in columns:
            ws.cell(r, c).number_format = number_format


class ExcelReportExporter(DocumentExporterInterface):
    """openpyxl implementation of the document exporter."""

    def _summary_sheet(self, wb: Workbook, report: MonthReport) -> None:
        ws = wb.create_sheet("Bilan")
        s = report.summary
        fmt = money_format(report.currency_symbol)

        ws.append([report.title])
        ws.cell(1, 1).font = Font(bold=True, size=14)
        ws.append([])
        for label, value in (
            ("Total des cotisations", s.total_dues),
            ("Total des dépenses", s.total_expenses),
            ("Cotisations déduites des courses", s.deducted_dues),
            ("Solde du mois", s.global_balance),
        ):
            ws.append([label, value])
            ws.cell(ws.max_row, 2).number_format = fmt
        ws.append([])

        ws.append(["Colocataire", "Cotisations", "Dépenses", "Solde", "Crédit disponible"])
        header_row = ws.max_row
        _style_header(ws, header_row)
        for name, balance in s.balances.items():
            ws.append([
                name,
                balance.dues,
                balance.expenses,
                balance.balance,
                report.credits.get(name),
            ])
        _money_columns(ws, range(2, 6), fmt, first_row=header_row + 1)

        if report.remarks:
            ws.append([])
            ws.append(["Remarques", report.remarks])
            ws.cell(ws.max_row, 1).font = Font(bold=True)

        _autosize_columns(ws)

    def _transactions_sheet(self, wb: Workbook, report: MonthReport) -> None:
        ws = wb.create_sheet("Transactions")
        ws.append(["Date", "Type", "Colocataire", "Description", "Montant", "Déduite des courses"])
        _style_header(ws, 1)
        ws.freeze_panes = "A2"

        for t in report.transactions:
            ws.append([
                t.date,
                "Cotisation" if t.type.value == "due" else "Dépense",
                t.member_name,
                t.description,
                t.amount,
                "oui" if t.deducted_at_purchase else "",
            ])
            ws.cell(ws.max_row, 1).number_format = "DD/MM/YYYY"
        _money_columns(ws, [5], money_format(report.currency_symbol))
        _autosize_columns(ws)

    def _settlements_sheet(self, wb: Workbook, report: MonthReport) -> None:
        ws = wb.create_sheet("Remboursements")
        ws.append(["De", "Vers", "Montant", "Motif"])
        _style_header(ws, 1)
        ws.freeze_panes = "A2"

        for settlement in report.settlements:
            ws.append([
                settlement.from_member,
                settlement.to_member,
                settlement.amount,
                settlement.reason,
            ])
        _money_columns(ws, [3], money_format(report.currency_symbol))
        _autosize_columns(ws)

    def export(self, report: MonthReport) -> ExportedDocument:
        """Build the workbook in memory."""
        try:
            wb = Workbook()
            # remove default sheet
            wb.remove(wb.active)

            self._summary_sheet(wb, report)
            self._transactions_sheet(wb, report)
            self._settlements_sheet(wb, report)

            buffer = BytesIO()
            wb.save(buffer)
        except Exception as e:
            raise ExternalServiceError("excel_export", f"Failed to build workbook: {e}")

        return ExportedDocument(
            filename=f"bilan-{report.month_key}.xlsx",
            media_type=XLSX_MEDIA_TYPE,
            content=buffer.getvalue(),
        )
