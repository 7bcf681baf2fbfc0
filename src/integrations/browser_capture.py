"""Report rasterization using headless Playwright Chromium."""

import logging
from io import BytesIO
from typing import Any, Optional, Protocol

from PIL import Image
from playwright.async_api import Page, async_playwright

from src.models.errors import CaptureError
from src.models.export import CONTAINER_ID, EXPORTING_CLASS, RasterCapture, RowBox

logger = logging.getLogger(__name__)

_ROW_BOXES_JS = """
(container) => Array.from(container.querySelectorAll('tr')).map((tr) => {
    const r = tr.getBoundingClientRect();
    return { top: r.top, bottom: r.bottom };
})
"""


class ReportCapturer(Protocol):
    """Anything that turns report HTML into a ``RasterCapture``."""

    async def capture(self, html: str) -> RasterCapture: ...


class PlaywrightCapturer:
    """Render report HTML in Chromium and screenshot the report container.

    Usage::

        capturer = PlaywrightCapturer(device_scale_factor=2)
        capture = await capturer.capture(html)
    """

    def __init__(
        self,
        device_scale_factor: float = 2.0,
        viewport_width: int = 1280,
        viewport_height: int = 900,
        timeout: int = 30000,
        headless: bool = True,
        container_selector: str = "#" + CONTAINER_ID,
    ):
        self._scale = device_scale_factor
        self._viewport = {"width": viewport_width, "height": viewport_height}
        self._timeout = timeout
        self._headless = headless
        self._selector = container_selector

    async def capture(self, html: str) -> RasterCapture:
        """Rasterize *html* and read every table row's geometry.

        Raises:
            CaptureError: If the container is missing or has no area.
        """
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=self._headless)
            try:
                context = await browser.new_context(
                    viewport=self._viewport,
                    device_scale_factor=self._scale,
                )
                page = await context.new_page()
                page.set_default_timeout(self._timeout)
                await page.set_content(html, wait_until="load")
                return await self._capture_container(page)
            finally:
                await browser.close()

    async def _capture_container(self, page: Page) -> RasterCapture:
        container = await page.query_selector(self._selector)
        if container is None:
            raise CaptureError(f"Report container {self._selector!r} not found.")

        await self._set_exporting(page, True)
        try:
            box: Optional[dict[str, Any]] = await container.bounding_box()
            if not box or box["width"] <= 0 or box["height"] <= 0:
                raise CaptureError("Report container has no visible area.")

            png = await page.screenshot(
                full_page=True,
                clip={"x": box["x"], "y": box["y"], "width": box["width"], "height": box["height"]},
            )
            raw_rows = await container.evaluate(_ROW_BOXES_JS)
        finally:
            await self._set_exporting(page, False)

        image = Image.open(BytesIO(png))
        image.load()
        rows = [RowBox(top=float(r["top"]), bottom=float(r["bottom"])) for r in raw_rows]
        logger.info(
            "Captured report container: %dx%d px, %d table rows",
            image.width, image.height, len(rows),
        )
        return RasterCapture(
            image=image,
            container_top=float(box["y"]),
            container_width=float(box["width"]),
            rows=rows,
        )

    async def _set_exporting(self, page: Page, on: bool) -> None:
        method = "add" if on else "remove"
        await page.eval_on_selector(
            self._selector,
            f"(el) => el.classList.{method}('{EXPORTING_CLASS}')",
        )
