"""Value types for the analytics rollup, filter and report view layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from src.models.errors import InvalidBucketError


class Bucket(str, Enum):
    """Time granularity of a rollup series."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def parse(cls, value: Any) -> "Bucket":
        """Return the matching bucket or raise ``InvalidBucketError``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidBucketError(value) from None


class ViewMode(str, Enum):
    """Which blocks of a report are rendered."""

    TABLE = "table"
    CHART = "chart"
    BOTH = "both"

    @property
    def shows_table(self) -> bool:
        return self is not ViewMode.CHART

    @property
    def shows_chart(self) -> bool:
        return self is not ViewMode.TABLE


class GeoLevel(str, Enum):
    REGION = "region"
    DEPARTMENT = "department"
    CITY = "city"


@dataclass(frozen=True)
class AggregatedPoint:
    """One bucket (or category) of a rollup series.

    ``values`` holds every accumulator by name: summed measures and
    de-duplicated counts alike.  Points are rebuilt on each rollup call.
    """

    period: str
    values: dict[str, float] = field(default_factory=dict)

    def get(self, name: str, default: float = 0.0) -> float:
        return self.values.get(name, default)


@dataclass(frozen=True)
class KpiCard:
    """A single summary number shown above a report."""

    key: str
    label: str
    value: float
    unit: Optional[str] = None
    decimals: int = 0

    @property
    def display(self) -> str:
        if self.unit == "eur":
            return f"{self.value:.2f}€"
        if self.unit == "pct":
            return f"{self.value:.1f}%"
        if self.unit == "rating":
            return f"{self.value:.2f} / 5" if self.value else "—"
        if self.decimals:
            return f"{self.value:.{self.decimals}f}"
        return str(int(round(self.value)))


@dataclass(frozen=True)
class TableWindow:
    """Row-count window over the filtered table rows."""

    page: int
    page_size: int
    total: int
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        if self.total == 0:
            return 1
        return (self.total + self.page_size - 1) // self.page_size


@dataclass
class ReportModel:
    """Everything needed to render one report tab."""

    tab: str
    title: str
    view_mode: ViewMode
    bucket: Bucket
    kpis: list[KpiCard]
    series: list[AggregatedPoint]
    measures: list[tuple[str, str]]
    chart_title: str
    columns: list[tuple[str, str, str]]
    table: TableWindow
    facets: dict[str, list[str]]
    filters_summary: str = ""
    note: str = ""
    chart_kind: str = "line"
