"""Report building and document export package."""

from coloc_ledger.services.export.report import MonthReport, build_month_report
from coloc_ledger.services.export.excel_exporter import (
    DocumentExporterInterface,
    ExcelReportExporter,
    ExportedDocument,
)

__all__ = [
    "DocumentExporterInterface",
    "ExcelReportExporter",
    "ExportedDocument",
    "MonthReport",
    "build_month_report",
]
