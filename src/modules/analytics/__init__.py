"""Analytics engines: time rollup, column filters, tab specs and report view."""

from src.modules.analytics.filters import FilterColumn, FilterEngine, FilterState
from src.modules.analytics.report_view import ReportView, table_window
from src.modules.analytics.rollup import Measures, RollupEngine, period_sort_key
from src.modules.analytics.session import DashboardSession, TabState
from src.modules.analytics.tab_specs import (
    CATALOG_SORTS,
    TAB_ORDER,
    ChartSpec,
    Column,
    TabSpec,
    get_tab_spec,
    tab_specs,
)

__all__ = [
    "CATALOG_SORTS",
    "TAB_ORDER",
    "ChartSpec",
    "Column",
    "DashboardSession",
    "FilterColumn",
    "FilterEngine",
    "FilterState",
    "Measures",
    "ReportView",
    "RollupEngine",
    "TabSpec",
    "TabState",
    "get_tab_spec",
    "period_sort_key",
    "tab_specs",
    "table_window",
]
