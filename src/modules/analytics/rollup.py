"""
Time-bucketed and categorical aggregation over analytics rows.

The engine is pure: it takes rows and measure definitions as arguments and
returns freshly built ``AggregatedPoint`` lists.  Bucket keys are computed in
the viewer's time zone so that period boundaries match the dates shown in
the table.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from src.models.analytics import AggregatedPoint, Bucket
from src.utils.helpers import as_num, parse_timestamp

logger = logging.getLogger(__name__)

Projection = Union[str, Callable[[Mapping[str, Any]], Any]]

_WEEK_PERIOD = re.compile(r"^(\d{4})-W(\d{1,2})$")


def project(row: Mapping[str, Any], projection: Projection) -> Any:
    """Read a field name or apply a callable to *row*."""
    if callable(projection):
        return projection(row)
    return row.get(projection)


@dataclass(frozen=True)
class Measures:
    """Accumulators computed per bucket or per category.

    Attributes:
        sums: name -> projection; projected values are coerced with
            ``as_num`` and summed.
        distinct: name -> projection of an identifier; the accumulator is
            the number of distinct non-empty identifiers seen in the bucket.
    """

    sums: Mapping[str, Projection] = field(default_factory=dict)
    distinct: Mapping[str, Projection] = field(default_factory=dict)

    @property
    def names(self) -> list[str]:
        return list(self.sums) + list(self.distinct)


class _Accumulator:
    """Running sums plus a seen-id set per distinct measure, for one bucket."""

    def __init__(self, measures: Measures):
        self._measures = measures
        self.sums = {name: 0.0 for name in measures.sums}
        self.seen: dict[str, set] = {name: set() for name in measures.distinct}

    def add(self, row: Mapping[str, Any]) -> None:
        for name, proj in self._measures.sums.items():
            self.sums[name] += as_num(project(row, proj))
        for name, proj in self._measures.distinct.items():
            ident = project(row, proj)
            if ident is None or ident == "":
                continue
            self.seen[name].add(str(ident))

    def values(self) -> dict[str, float]:
        out = dict(self.sums)
        for name, ids in self.seen.items():
            out[name] = len(ids)
        return out


def period_sort_key(period: str) -> tuple:
    """Sort key for period strings.

    Week keys compare by ``(year, week)``; zero-padded day and month keys
    compare lexicographically.
    """
    match = _WEEK_PERIOD.match(period or "")
    if match:
        return (int(match.group(1)), int(match.group(2)), "")
    return (0, 0, period or "")


class RollupEngine:
    """Aggregate rows into day / week / month series.

    Args:
        tz: The viewer's time zone.  ``None`` keeps timestamps as parsed
            (aware values in their own offset, naive values as-is).
    """

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz

    # ------------------------------------------------------------------
    # Key functions
    # ------------------------------------------------------------------

    def _local(self, value: Any) -> Optional[datetime]:
        return parse_timestamp(value, self.tz)

    def day_key(self, value: Any) -> Optional[str]:
        """Local calendar date ``YYYY-MM-DD`` or ``None`` if unparseable."""
        dt = self._local(value)
        if dt is None:
            return None
        return f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"

    def week_key(self, value: Any) -> Optional[str]:
        """ISO-8601 week key ``YYYY-Www``.

        The ISO year is the year of the Thursday of the row's week, so the
        last days of December can belong to week 1 of the next year and the
        first days of January to week 52/53 of the previous one.
        """
        dt = self._local(value)
        if dt is None:
            return None
        iso_year, iso_week, _ = dt.date().isocalendar()
        return f"{iso_year:04d}-W{iso_week:02d}"

    def month_key(self, value: Any) -> Optional[str]:
        """Local ``YYYY-MM`` or ``None`` if unparseable."""
        dt = self._local(value)
        if dt is None:
            return None
        return f"{dt.year:04d}-{dt.month:02d}"

    def key_function(self, bucket: Union[Bucket, str]) -> Callable[[Any], Optional[str]]:
        """Return the key function for *bucket*.

        Raises:
            InvalidBucketError: If *bucket* is not day, week or month.
        """
        bucket = Bucket.parse(bucket)
        if bucket is Bucket.WEEK:
            return self.week_key
        if bucket is Bucket.MONTH:
            return self.month_key
        return self.day_key

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def rollup(
        self,
        rows: Iterable[Mapping[str, Any]],
        bucket: Union[Bucket, str],
        measures: Measures,
        timestamp: Projection = "created_at",
    ) -> list[AggregatedPoint]:
        """Aggregate *rows* into one point per period of *bucket*.

        Rows whose timestamp is missing or unparseable are left out.
        Distinct counts de-duplicate identifiers within a bucket only.

        Returns:
            Points sorted ascending by period key.

        Raises:
            InvalidBucketError: If *bucket* is not recognised.
        """
        key_fn = self.key_function(bucket)
        groups: dict[str, _Accumulator] = {}
        skipped = 0

        for row in rows or []:
            key = key_fn(project(row, timestamp))
            if not key:
                skipped += 1
                continue
            acc = groups.get(key)
            if acc is None:
                acc = groups[key] = _Accumulator(measures)
            acc.add(row)

        if skipped:
            logger.debug("Rollup skipped %d row(s) without a usable timestamp", skipped)

        return self.sort_points(
            AggregatedPoint(period=key, values=acc.values())
            for key, acc in groups.items()
        )

    def reroll(
        self,
        points: Iterable[AggregatedPoint],
        bucket: Union[Bucket, str],
    ) -> list[AggregatedPoint]:
        """Roll day points up to a coarser bucket by summing accumulators.

        Rolling day points to week or month gives the same sums as rolling
        the underlying rows directly.
        """
        key_fn = self.key_function(bucket)
        grouped: dict[str, dict[str, float]] = {}
        for point in points:
            key = key_fn(point.period)
            if not key:
                continue
            target = grouped.setdefault(key, {})
            for name, value in point.values.items():
                target[name] = target.get(name, 0.0) + value
        return self.sort_points(
            AggregatedPoint(period=key, values=values)
            for key, values in grouped.items()
        )

    def group_by(
        self,
        rows: Iterable[Mapping[str, Any]],
        key: Projection,
        measures: Measures,
        sort_key: Optional[Callable[[AggregatedPoint], Any]] = None,
        reverse: bool = False,
    ) -> list[AggregatedPoint]:
        """Aggregate *rows* by a categorical key.

        Rows with an empty key are dropped.  Without *sort_key* the
        categories keep the order in which they first appear.
        """
        groups: dict[str, _Accumulator] = {}
        for row in rows or []:
            raw = project(row, key)
            if raw is None:
                continue
            label = str(raw).strip()
            if not label:
                continue
            acc = groups.get(label)
            if acc is None:
                acc = groups[label] = _Accumulator(measures)
            acc.add(row)

        points = [
            AggregatedPoint(period=label, values=acc.values())
            for label, acc in groups.items()
        ]
        if sort_key is not None:
            points.sort(key=sort_key, reverse=reverse)
        return points

    @staticmethod
    def sort_points(points: Iterable[AggregatedPoint]) -> list[AggregatedPoint]:
        return sorted(points, key=lambda p: period_sort_key(p.period))
