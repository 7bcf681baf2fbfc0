"""
Compose a tab's payload, filter state and display options into a ReportModel.

KPIs, chart series and table rows are all derived from the same filtered
row set, so the three blocks of a report always agree.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from src.models.analytics import (
    AggregatedPoint,
    Bucket,
    ReportModel,
    TableWindow,
    ViewMode,
)
from src.modules.analytics.filters import FilterEngine, FilterState
from src.modules.analytics.rollup import RollupEngine
from src.modules.analytics.tab_specs import (
    DEFAULT_CATALOG_SORT,
    TabSpec,
    catalog_row_sort,
    catalog_sort,
)

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]


def table_window(
    rows: Sequence[Row],
    spec: TabSpec,
    page: int,
    page_size: int,
) -> TableWindow:
    """Slice *rows* to one page and project them to display strings.

    The page is clamped to ``[1, page_count]``.
    """
    page_size = max(1, int(page_size))
    total = len(rows)
    page_count = max(1, (total + page_size - 1) // page_size)
    page = min(max(1, int(page)), page_count)
    start = (page - 1) * page_size
    cells = [col.as_filter() for col in spec.columns]
    projected = [
        {cell.key: cell.display_value(row) for cell in cells}
        for row in rows[start:start + page_size]
    ]
    return TableWindow(page=page, page_size=page_size, total=total, rows=projected)


class ReportView:
    """Build ``ReportModel`` objects for any tab spec."""

    def __init__(self, rollup: Optional[RollupEngine] = None):
        self.rollup = rollup or RollupEngine()

    def filtered_rows(
        self,
        spec: TabSpec,
        payload: Mapping[str, Any],
        state: FilterState,
    ) -> list[Row]:
        engine = FilterEngine(spec.filter_columns)
        return engine.apply(spec.extract(payload or {}), state)

    def series(
        self,
        spec: TabSpec,
        rows: Sequence[Row],
        bucket: Union[Bucket, str],
        payload: Optional[Mapping[str, Any]] = None,
        filtered: bool = False,
        sort: Optional[str] = None,
    ) -> list[AggregatedPoint]:
        """Chart points for *rows* (already filtered)."""
        chart = spec.chart
        if chart is None:
            return []
        if not rows and not filtered and chart.fallback is not None and payload:
            return chart.fallback(payload)

        source = chart.reduce_rows(rows) if chart.reduce_rows else rows
        if chart.group is None:
            points = self.rollup.rollup(source, bucket, chart.measures, spec.timestamp)
        elif chart.sortable:
            key, reverse = catalog_sort(sort or DEFAULT_CATALOG_SORT)
            points = self.rollup.group_by(source, chart.group, chart.measures, key, reverse)
        else:
            points = self.rollup.group_by(
                source, chart.group, chart.measures, chart.order, chart.reverse
            )

        if chart.derive is not None:
            points = [AggregatedPoint(p.period, chart.derive(p.values)) for p in points]
        return points

    def compose(
        self,
        spec: TabSpec,
        payload: Optional[Mapping[str, Any]],
        state: FilterState,
        bucket: Union[Bucket, str] = Bucket.DAY,
        view_mode: Union[ViewMode, str] = ViewMode.BOTH,
        page: int = 1,
        page_size: int = 20,
        sort: Optional[str] = None,
        all_rows: bool = False,
    ) -> ReportModel:
        """Compose the full report model for one tab.

        Args:
            spec: Projection spec of the tab.
            payload: Decoded JSON payload of the tab's endpoint.
            state: The tab's filter state.
            bucket: Time bucket for time-series charts.
            view_mode: Which blocks are shown.
            page: 1-based table page (clamped).
            page_size: Rows per table page.
            sort: Catalog sort mode, for sortable tabs.
            all_rows: Put every filtered row in the table window instead
                of a single page (used by the export).

        Raises:
            InvalidBucketError: If *bucket* is not recognised.
        """
        bucket = Bucket.parse(bucket)
        view_mode = ViewMode(view_mode)
        payload = payload or {}
        engine = FilterEngine(spec.filter_columns)
        all_source = spec.extract(payload)
        rows = engine.apply(all_source, state)
        filtered = state.active

        if spec.chart is not None and spec.chart.sortable:
            key, reverse = catalog_row_sort(sort or DEFAULT_CATALOG_SORT)
            rows = sorted(rows, key=key, reverse=reverse)

        series = self.series(spec, rows, bucket, payload, filtered, sort)
        kpis = spec.kpis(rows, payload, filtered)
        if all_rows:
            window = table_window(rows, spec, 1, max(1, len(rows)))
        else:
            window = table_window(rows, spec, page, page_size)

        logger.debug(
            "Composed %s: %d/%d rows, %d points, page %d/%d",
            spec.key, len(rows), len(all_source), len(series),
            window.page, window.page_count,
        )

        chart = spec.chart
        return ReportModel(
            tab=spec.key,
            title=spec.label,
            view_mode=view_mode if chart is not None else ViewMode.TABLE,
            bucket=bucket,
            kpis=kpis,
            series=series,
            measures=list(chart.series) if chart else [],
            chart_title=chart.title if chart else "",
            columns=[(c.key, c.title, c.align) for c in spec.columns],
            table=window,
            facets=engine.facets(all_source, state),
            filters_summary=engine.summarize(state),
            note=spec.note,
            chart_kind=chart.kind if chart else "line",
        )
