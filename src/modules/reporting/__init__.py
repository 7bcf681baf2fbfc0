"""Reporting module: HTML rendering, row-safe pagination and PDF export."""

from src.modules.reporting.exporter import ReportExporter, export_file_name
from src.modules.reporting.paginator import (
    ExportPaginator,
    page_budget,
    plan_slices,
    safe_cuts,
)
from src.modules.reporting.report_renderer import ExportContext, ReportRenderer

__all__ = [
    "ExportContext",
    "ExportPaginator",
    "ReportExporter",
    "ReportRenderer",
    "export_file_name",
    "page_budget",
    "plan_slices",
    "safe_cuts",
]
