"""
Interactive dashboard session state.

One ``DashboardSession`` drives the dashboard: a shared toolbar (date range,
bucket, geo level, view mode) and one ``TabState`` per report tab.  Each tab
owns its filters and table cursor.  Fetches are tagged with a per-tab
generation number so that only the most recent response is committed, and
record the toolbar parameters they were made for so that a tab loaded under
an older date range, bucket or geo level is reloaded when shown again.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, timedelta, tzinfo
from pathlib import Path
from typing import Any, Iterator, Optional, Union

import httpx

from src.models.analytics import Bucket, GeoLevel, ReportModel, ViewMode
from src.models.errors import AnalyticsError, ExportInProgressError, StaleDataError
from src.modules.analytics.filters import FilterEngine, FilterState
from src.modules.analytics.report_view import ReportView
from src.modules.analytics.rollup import RollupEngine
from src.modules.analytics.tab_specs import TAB_ORDER, TabSpec, get_tab_spec
from src.modules.reporting.report_renderer import ExportContext
from src.utils.validators import clamp_range

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Erreur lors du chargement."
PAGE_SIZES = (10, 20, 50, 100)


def default_date_range(today: Optional[date] = None) -> tuple[str, str]:
    """First day of the previous month to the last day of the current month."""
    today = today or date.today()
    first_this = today.replace(day=1)
    first_prev = (first_this - timedelta(days=1)).replace(day=1)
    next_month = (first_this + timedelta(days=32)).replace(day=1)
    last_this = next_month - timedelta(days=1)
    return first_prev.isoformat(), last_this.isoformat()


@dataclass
class TabState:
    """Per-tab state; never shared between tabs."""

    key: str
    filters: FilterState
    page: int = 1
    page_size: int = 20
    sort: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    loading: bool = False
    generation: int = 0
    fetched_for: Optional[tuple] = None


class DashboardSession:
    """Toolbar and per-tab state for one dashboard user.

    Args:
        client: Anything with an async ``fetch_tab(spec, bucket, level,
            date_from, date_to)`` method.
        exporter: Optional ``ReportExporter`` used by ``export``.
        tz: Viewer time zone for bucket keys and displayed dates.
        show_producer: Show the producer column (producer scope).
        page_size: Initial table page size of every tab.
        export_all_rows: Export every filtered row instead of the current
            table page.
        user: Name printed on exported reports.
        product: Product name printed on and used to name exports.
        today: Reference date for the default date range.
    """

    def __init__(
        self,
        client: Any,
        exporter: Any = None,
        tz: Optional[tzinfo] = None,
        show_producer: bool = False,
        page_size: int = 20,
        default_bucket: Union[Bucket, str] = Bucket.DAY,
        export_all_rows: bool = False,
        user: Optional[str] = None,
        product: str = "GreenCart",
        today: Optional[date] = None,
    ):
        self.client = client
        self.exporter = exporter
        self.tz = tz
        self.show_producer = show_producer
        self.export_all_rows = export_all_rows
        self.user = user
        self.product = product

        self.date_from, self.date_to = default_date_range(today)
        self.bucket = Bucket.parse(default_bucket)
        self.geo_level = GeoLevel.REGION
        self.view_mode = ViewMode.BOTH
        self.active_tab = TAB_ORDER[0]

        self.view = ReportView(RollupEngine(tz))
        self._capturing = False
        self._tabs: dict[str, TabState] = {}
        for key in TAB_ORDER:
            spec = self.spec(key)
            self._tabs[key] = TabState(
                key=key,
                filters=FilterEngine(spec.filter_columns).new_state(),
                page_size=page_size if page_size in PAGE_SIZES else 20,
            )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def spec(self, tab: str) -> TabSpec:
        return get_tab_spec(tab, self.show_producer, self.tz)

    def state(self, tab: str) -> TabState:
        """Return the state of *tab*.

        Raises:
            UnknownTabError: If *tab* is not a report tab.
        """
        self.spec(tab)
        return self._tabs[tab]

    @property
    def capturing(self) -> bool:
        return self._capturing

    def fetch_key(self) -> tuple:
        """Toolbar parameters a tab's payload depends on."""
        return (self.bucket, self.geo_level, self.date_from, self.date_to)

    def is_stale(self, tab: str) -> bool:
        """True when *tab* has not been loaded for the current toolbar."""
        return self.state(tab).fetched_for != self.fetch_key()

    # ------------------------------------------------------------------
    # Toolbar
    # ------------------------------------------------------------------

    def _reset_pages(self) -> None:
        for state in self._tabs.values():
            state.page = 1

    def set_tab(self, tab: str) -> None:
        self.state(tab)
        self.active_tab = tab

    def set_dates(self, date_from: str, date_to: str) -> None:
        """Set the date range; a start after the end snaps to the end."""
        self.date_from, self.date_to = clamp_range(date_from, date_to)
        self._reset_pages()

    def set_bucket(self, bucket: Union[Bucket, str]) -> None:
        self.bucket = Bucket.parse(bucket)
        self._reset_pages()

    def set_geo_level(self, level: Union[GeoLevel, str]) -> None:
        self.geo_level = GeoLevel(level)
        self.state("geo").page = 1

    def set_view_mode(self, mode: Union[ViewMode, str]) -> None:
        self.view_mode = ViewMode(mode)

    # ------------------------------------------------------------------
    # Filters and table cursor
    # ------------------------------------------------------------------

    def toggle_filter(self, tab: str, column: str, value: Any) -> None:
        state = self.state(tab)
        state.filters.toggle(column, value)
        state.page = 1

    def set_filter(self, tab: str, column: str, values) -> None:
        state = self.state(tab)
        state.filters.set_all(column, values)
        state.page = 1

    def clear_filter(self, tab: str, column: str) -> None:
        state = self.state(tab)
        state.filters.clear(column)
        state.page = 1

    def clear_filters(self, tab: str) -> None:
        state = self.state(tab)
        state.filters.clear_all()
        state.page = 1

    def set_page(self, tab: str, page: int) -> None:
        self.state(tab).page = max(1, int(page))

    def set_page_size(self, tab: str, page_size: int) -> None:
        if page_size not in PAGE_SIZES:
            raise ValueError(f"Page size must be one of {PAGE_SIZES}, got {page_size!r}")
        state = self.state(tab)
        state.page_size = page_size
        state.page = 1

    def set_sort(self, tab: str, mode: str) -> None:
        self.state(tab).sort = mode

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def refresh(self, tab: Optional[str] = None) -> bool:
        """Fetch the payload of *tab* (default: the active tab).

        Returns:
            True if this response was committed, False if a newer request
            for the same tab superseded it.
        """
        tab = tab or self.active_tab
        spec = self.spec(tab)
        state = self._tabs[tab]
        state.generation += 1
        generation = state.generation
        state.loading = True
        state.error = None
        key = self.fetch_key()
        logger.debug("Refresh %s (generation %d)", tab, generation)

        try:
            data = await self.client.fetch_tab(
                spec, self.bucket, self.geo_level, self.date_from, self.date_to
            )
        except (AnalyticsError, httpx.HTTPError, ValueError) as exc:
            if generation != state.generation:
                logger.debug("Discarding stale %s failure (generation %d)", tab, generation)
                return False
            logger.error("Failed to load %s analytics: %s", tab, exc)
            state.error = LOAD_ERROR_MESSAGE
            state.data = None
            state.fetched_for = key
            state.loading = False
            return True

        if generation != state.generation:
            logger.info("Discarding stale %s response (generation %d)", tab, generation)
            return False
        state.data = data
        state.fetched_for = key
        state.loading = False
        logger.info("Committed %s response (generation %d)", tab, generation)
        return True

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def report(self, tab: Optional[str] = None, all_rows: bool = False) -> ReportModel:
        """Compose the current report of *tab* from its committed data."""
        tab = tab or self.active_tab
        state = self.state(tab)
        model = self.view.compose(
            self.spec(tab),
            state.data or {},
            state.filters,
            bucket=self.bucket,
            view_mode=self.view_mode,
            page=state.page,
            page_size=state.page_size,
            sort=state.sort,
            all_rows=all_rows,
        )
        if not all_rows:
            state.page = model.table.page
        return model

    @contextmanager
    def _capturing_mode(self, tab: str) -> Iterator[None]:
        if self._capturing:
            raise ExportInProgressError(tab)
        self._capturing = True
        try:
            yield
        finally:
            self._capturing = False

    async def export(self, tab: Optional[str] = None) -> Path:
        """Export the current view of *tab* as a paginated PDF.

        Raises:
            ExportInProgressError: If another export is running.
            StaleDataError: If *tab* was loaded for another date range,
                bucket or geo level.
            CaptureError: If the report could not be rasterized.
            ExportError: If writing the PDF failed.
        """
        tab = tab or self.active_tab
        if self.exporter is None:
            raise AnalyticsError("No exporter configured for this session.")
        if self.is_stale(tab):
            raise StaleDataError(tab)
        with self._capturing_mode(tab):
            model = self.report(tab, all_rows=self.export_all_rows)
            context = ExportContext(
                product=self.product,
                date_from=self.date_from,
                date_to=self.date_to,
                geo_level=self.geo_level.value,
                user=self.user,
            )
            return await self.exporter.export(model, context)
