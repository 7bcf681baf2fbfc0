"""Value types for the geometry-based PDF export."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from PIL.Image import Image

# A4 portrait in PDF points.
A4_WIDTH_PT = 595.28
A4_HEIGHT_PT = 841.89


@dataclass(frozen=True)
class RowBox:
    """Vertical extent of one rendered table row, in CSS pixels (viewport space)."""

    top: float
    bottom: float

    @property
    def height(self) -> float:
        return self.bottom - self.top


@dataclass
class RasterCapture:
    """A rasterized report container plus the row geometry read at capture time."""

    image: "Image"
    container_top: float
    container_width: float
    rows: list[RowBox] = field(default_factory=list)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def device_scale(self) -> float:
        """Raster pixels per CSS pixel."""
        if self.container_width <= 0:
            return 0.0
        return self.image.width / self.container_width


@dataclass(frozen=True)
class PageSlice:
    """A contiguous raster band ``[top, bottom)`` placed on one PDF page.

    ``fallback`` marks a cut taken at the ideal boundary because no row
    edge qualified; it is the only case where a row may be bisected.
    """

    top: int
    bottom: int
    fallback: bool = False

    @property
    def height(self) -> int:
        return self.bottom - self.top


@dataclass(frozen=True)
class PageGeometry:
    """Physical page layout, in PDF points."""

    width: float = A4_WIDTH_PT
    height: float = A4_HEIGHT_PT
    margin_top: float = 40.0
    margin_bottom: float = 40.0
    margin_left: float = 30.0
    margin_right: float = 30.0

    @property
    def content_width(self) -> float:
        return self.width - self.margin_left - self.margin_right

    @property
    def content_height(self) -> float:
        return self.height - self.margin_top - self.margin_bottom


# DOM hooks shared by the HTML renderer and the browser capturer.
CONTAINER_ID = "report-root"
EXPORTING_CLASS = "exporting"
