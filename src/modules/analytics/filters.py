"""
Per-column multi-select filters with cascading facet values.

``FilterState`` is the mutable selection owned by one report tab.
``FilterEngine`` is stateless: it evaluates rows against a state using the
column projections of a tab.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from src.modules.analytics.rollup import Projection, project
from src.utils.helpers import normalize_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterColumn:
    """A filterable column of a report table.

    Attributes:
        key: Column key used in the filter state.
        label: Header shown in the table and in the filter summary.
        display: Projection of the cell value as displayed.
        values: Optional multi-valued projection used for filtering
            (e.g. every company tag of a row).  Defaults to the display
            value alone.
    """

    key: str
    label: str
    display: Projection
    values: Optional[Callable[[Mapping[str, Any]], Iterable[Any]]] = None

    def display_value(self, row: Mapping[str, Any]) -> str:
        return normalize_value(project(row, self.display))

    def project_values(self, row: Mapping[str, Any]) -> set[str]:
        """Normalized values a row offers for this column."""
        if self.values is None:
            return {self.display_value(row)}
        return {normalize_value(v) for v in self.values(row)} - {""}


class FilterState:
    """Accepted values per column.  An empty set means no restriction."""

    def __init__(self, columns: Iterable[str] = ()):
        self._selected: dict[str, set[str]] = {key: set() for key in columns}

    @property
    def columns(self) -> list[str]:
        return list(self._selected)

    @property
    def active(self) -> bool:
        """True when any column restricts rows."""
        return any(self._selected.values())

    def get(self, column: str) -> frozenset[str]:
        return frozenset(self._selected.get(column, ()))

    def toggle(self, column: str, value: Any) -> None:
        """Flip membership of *value* in *column*'s accepted set."""
        if column not in self._selected:
            logger.debug("Ignoring toggle on unknown filter column %r", column)
            return
        norm = normalize_value(value)
        accepted = self._selected[column]
        if norm in accepted:
            accepted.discard(norm)
        else:
            accepted.add(norm)

    def set_all(self, column: str, values: Iterable[Any]) -> None:
        if column not in self._selected:
            logger.debug("Ignoring set_all on unknown filter column %r", column)
            return
        self._selected[column] = {normalize_value(v) for v in values}

    def clear(self, column: str) -> None:
        if column in self._selected:
            self._selected[column] = set()

    def clear_all(self) -> None:
        for column in self._selected:
            self._selected[column] = set()

    def as_dict(self) -> dict[str, list[str]]:
        return {k: sorted(v) for k, v in self._selected.items() if v}

    def __repr__(self) -> str:
        return f"FilterState({self.as_dict()!r})"


def _sort_values(values: Iterable[str]) -> list[str]:
    return sorted(values, key=lambda v: (v.casefold(), v))


class FilterEngine:
    """Evaluate rows against a ``FilterState`` for a set of columns."""

    def __init__(self, columns: Sequence[FilterColumn]):
        self.columns = list(columns)
        self._by_key = {col.key: col for col in self.columns}

    def new_state(self) -> FilterState:
        return FilterState(self._by_key)

    def column(self, key: str) -> Optional[FilterColumn]:
        return self._by_key.get(key)

    def accepts(
        self,
        row: Mapping[str, Any],
        state: FilterState,
        skip: Optional[str] = None,
    ) -> bool:
        """Whether *row* passes every column filter except *skip*.

        Within a column the row passes when any of its values is accepted;
        across columns all filters must pass.
        """
        for col in self.columns:
            if col.key == skip:
                continue
            accepted = state.get(col.key)
            if not accepted:
                continue
            if accepted.isdisjoint(col.project_values(row)):
                return False
        return True

    def apply(
        self,
        rows: Iterable[Mapping[str, Any]],
        state: FilterState,
    ) -> list[Mapping[str, Any]]:
        return [row for row in rows if self.accepts(row, state)]

    def facets(
        self,
        rows: Sequence[Mapping[str, Any]],
        state: FilterState,
    ) -> dict[str, list[str]]:
        """Candidate values per column.

        The list for a column is drawn from rows that pass every OTHER
        column's filter, so choices narrow as upstream filters are set.
        """
        out: dict[str, list[str]] = {}
        for col in self.columns:
            seen: set[str] = set()
            for row in rows:
                if self.accepts(row, state, skip=col.key):
                    seen.update(col.project_values(row))
            out[col.key] = _sort_values(seen)
        return out

    def summarize(self, state: FilterState) -> str:
        """Render active filters as ``"Commerce: A, B • Date: …"``."""
        parts = []
        for col in self.columns:
            accepted = state.get(col.key)
            if accepted:
                parts.append(f"{col.label}: {', '.join(_sort_values(accepted))}")
        return " • ".join(parts)
