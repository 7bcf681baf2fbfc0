"""
PDF assembly for analytics report exports.

The rasterized report is cut into row-safe bands by ``ExportPaginator``;
each band is cropped with Pillow and drawn on its own A4 page with
reportlab, scaled to the page content width and anchored at the top margin.
The file is written under a temporary name and renamed only once complete.
"""

import dataclasses
import logging
import os
from pathlib import Path
from typing import Optional

from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from src.integrations.browser_capture import ReportCapturer
from src.models.analytics import ReportModel
from src.models.errors import CaptureError, ExportError
from src.models.export import PageGeometry, PageSlice, RasterCapture
from src.modules.reporting.paginator import ExportPaginator
from src.modules.reporting.report_renderer import ExportContext, ReportRenderer
from src.utils.helpers import slugify

logger = logging.getLogger(__name__)


def export_file_name(product: str, tab: str, date_from: str, date_to: str) -> str:
    """Deterministic artifact name, e.g. ``GreenCart-report-sales-2025-01-01_to_2025-01-31.pdf``."""
    return f"{product}-report-{slugify(tab) or 'report'}-{date_from}_to_{date_to}.pdf"


class ReportExporter:
    """Render, capture, slice and write a report as a paginated PDF."""

    def __init__(
        self,
        capturer: ReportCapturer,
        renderer: Optional[ReportRenderer] = None,
        paginator: Optional[ExportPaginator] = None,
        output_dir: str = "data/exports",
        product: str = "GreenCart",
    ):
        self.capturer = capturer
        self.renderer = renderer or ReportRenderer()
        self.paginator = paginator or ExportPaginator()
        self.output_dir = Path(output_dir)
        self.product = product

    @property
    def geometry(self) -> PageGeometry:
        return self.paginator.geometry

    async def export(self, model: ReportModel, context: ExportContext) -> Path:
        """Export *model* and return the written PDF path.

        Raises:
            CaptureError: If the report could not be rasterized.  No file
                is written in that case.
            ExportError: If slicing or writing failed.
        """
        if not context.product:
            context = dataclasses.replace(context, product=self.product)
        logger.info(
            "Exporting %s report (%s → %s)", model.tab, context.date_from, context.date_to
        )
        html = self.renderer.render_html(model, context)
        capture = await self.capturer.capture(html)
        if capture.width <= 0 or capture.height <= 0:
            raise CaptureError("Captured report is empty.")

        name = export_file_name(context.product, model.tab, context.date_from, context.date_to)
        return self.write_pdf(capture, self.output_dir / name)

    def write_pdf(self, capture: RasterCapture, path: Path) -> Path:
        """Slice *capture* and write it to *path* atomically."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".part")
        try:
            slices = self.paginator.paginate(capture)
            self._draw(capture, slices, tmp_path)
            os.replace(tmp_path, path)
        except Exception as exc:
            if tmp_path.exists():
                tmp_path.unlink()
            logger.error("PDF export to %s failed: %s", path, exc)
            raise ExportError(f"Could not write {path.name}: {exc}", cause=exc) from exc

        fallbacks = sum(1 for s in slices if s.fallback)
        if fallbacks:
            logger.warning("%d page break(s) had to cut through a row", fallbacks)
        logger.info("Wrote %s (%d page(s))", path, len(slices))
        return path

    def _draw(self, capture: RasterCapture, slices: list[PageSlice], target: Path) -> None:
        geom = self.geometry
        pdf = canvas.Canvas(str(target), pagesize=(geom.width, geom.height))
        scale = geom.content_width / capture.width
        for page_slice in slices:
            band = capture.image.crop((0, page_slice.top, capture.width, page_slice.bottom))
            if band.mode != "RGB":
                band = band.convert("RGB")
            height_pt = page_slice.height * scale
            pdf.drawImage(
                ImageReader(band),
                geom.margin_left,
                geom.height - geom.margin_top - height_pt,
                width=geom.content_width,
                height=height_pt,
            )
            pdf.showPage()
        pdf.save()
