"""
Row-safe page slicing of a rasterized report.

The report is captured as one tall image.  Table row bottoms (converted to
raster pixels) and the end of content are the only legal cut points; the
greedy planner fills each page as far as the page budget allows without
crossing a row.  When no row edge qualifies, the cut falls at the ideal
boundary and the slice is flagged as a fallback.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

from src.models.export import PageGeometry, PageSlice, RasterCapture, RowBox

logger = logging.getLogger(__name__)

DEFAULT_MIN_ADVANCE = 100
DEFAULT_MIN_ROW_HEIGHT = 4.0


def safe_cuts(
    rows: Iterable[RowBox],
    container_top: float,
    device_scale: float,
    raster_height: int,
    min_row_height: float = DEFAULT_MIN_ROW_HEIGHT,
) -> list[int]:
    """Row bottom edges in raster pixels, ascending and de-duplicated.

    Rows no taller than *min_row_height* CSS pixels are ignored, as are
    edges outside ``(0, raster_height)``.
    """
    cuts = set()
    for row in rows:
        if row.height <= min_row_height:
            continue
        y = round((row.bottom - container_top) * device_scale)
        if 0 < y < raster_height:
            cuts.add(y)
    return sorted(cuts)


def page_budget(raster_width: int, geometry: PageGeometry) -> float:
    """Raster height that fills one page once scaled to the content width."""
    if raster_width <= 0 or geometry.content_width <= 0:
        raise ValueError("Raster and page content widths must be positive.")
    return geometry.content_height * (raster_width / geometry.content_width)


def plan_slices(
    total_height: int,
    cuts: Sequence[int],
    budget: float,
    min_advance: int = DEFAULT_MIN_ADVANCE,
) -> list[PageSlice]:
    """Greedy slice plan covering ``[0, total_height)`` exactly.

    Each slice ends at the largest candidate cut within the budget that
    advances at least *min_advance* pixels.  The end of content is always a
    candidate.
    """
    if budget <= 0:
        raise ValueError("Page budget must be positive.")
    candidates = sorted({c for c in cuts if 0 < c < total_height} | {total_height})

    slices: list[PageSlice] = []
    used = 0
    while total_height - used >= 1:
        ideal = used + budget
        best = None
        for cut in candidates:
            if cut > ideal:
                break
            if cut - used >= min_advance:
                best = cut

        if best is not None:
            slices.append(PageSlice(used, best))
            used = best
        elif ideal >= total_height:
            slices.append(PageSlice(used, total_height))
            used = total_height
        else:
            cut = max(used + 1, min(int(math.floor(ideal)), total_height))
            logger.warning("No row edge fits page %d; cutting at %d px", len(slices) + 1, cut)
            slices.append(PageSlice(used, cut, fallback=True))
            used = cut
    return slices


class ExportPaginator:
    """Plan page slices for a captured report."""

    def __init__(
        self,
        geometry: PageGeometry = PageGeometry(),
        min_advance: int = DEFAULT_MIN_ADVANCE,
        min_row_height: float = DEFAULT_MIN_ROW_HEIGHT,
    ):
        self.geometry = geometry
        self.min_advance = min_advance
        self.min_row_height = min_row_height

    def cuts(self, capture: RasterCapture) -> list[int]:
        return safe_cuts(
            capture.rows,
            capture.container_top,
            capture.device_scale,
            capture.height,
            self.min_row_height,
        )

    def paginate(self, capture: RasterCapture) -> list[PageSlice]:
        """Slice *capture* into pages that never split a table row.

        Raises:
            ValueError: If the capture has no width.
        """
        budget = page_budget(capture.width, self.geometry)
        cuts = self.cuts(capture)
        slices = plan_slices(capture.height, cuts, budget, self.min_advance)
        logger.info(
            "Planned %d page(s) for %dx%d raster (%d cut candidates, budget %.0f px)",
            len(slices), capture.width, capture.height, len(cuts), budget,
        )
        return slices
