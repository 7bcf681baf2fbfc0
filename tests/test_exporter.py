"""Tests for PDF assembly of captured reports."""

from types import SimpleNamespace

import pytest
from PIL import Image

from src.models.errors import CaptureError, ExportError
from src.models.export import RasterCapture, RowBox
from src.modules.analytics.filters import FilterEngine
from src.modules.analytics.report_view import ReportView
from src.modules.analytics.tab_specs import get_tab_spec
from src.modules.reporting.exporter import ReportExporter, export_file_name
from src.modules.reporting.report_renderer import ExportContext, ReportRenderer


class FakeCapturer:
    """Returns a fixed capture and records the HTML it was given."""

    def __init__(self, capture):
        self._capture = capture
        self.html = None

    async def capture(self, html):
        self.html = html
        return self._capture


def _capture(rows=60):
    image = Image.new("RGBA", (400, 40 + rows * 40), (255, 255, 255, 255))
    boxes = [RowBox(20 + 20 * i, 40 + 20 * i) for i in range(rows)]
    return RasterCapture(image, container_top=0, container_width=200, rows=boxes)


def _model(payload):
    spec = get_tab_spec("sales")
    state = FilterEngine(spec.filter_columns).new_state()
    return ReportView().compose(spec, payload, state, view_mode="table")


def _context():
    return ExportContext(product="GreenCart", date_from="2025-01-01", date_to="2025-01-31",
                         user="admin@greencart.example.com")


class TestExportFileName:

    def test_name(self):
        assert export_file_name("GreenCart", "sales", "2025-01-01", "2025-01-31") == (
            "GreenCart-report-sales-2025-01-01_to_2025-01-31.pdf"
        )

    def test_tab_is_slugified(self):
        assert export_file_name("GreenCart", "Paniers abandonnés", "a", "b") == (
            "GreenCart-report-paniers-abandonnes-a_to_b.pdf"
        )


class TestReportExporter:

    @pytest.mark.asyncio
    async def test_writes_pdf(self, tmp_path, sales_payload):
        capturer = FakeCapturer(_capture())
        exporter = ReportExporter(capturer, output_dir=str(tmp_path))
        path = await exporter.export(_model(sales_payload), _context())

        assert path.name == "GreenCart-report-sales-2025-01-01_to_2025-01-31.pdf"
        assert path.read_bytes().startswith(b"%PDF")
        assert not list(tmp_path.glob("*.part"))
        assert 'id="report-root"' in capturer.html
        assert "Confidentiel" in capturer.html

    @pytest.mark.asyncio
    async def test_missing_product_uses_exporter_default(self, tmp_path, sales_payload):
        exporter = ReportExporter(FakeCapturer(_capture(5)), output_dir=str(tmp_path), product="Marche")
        context = ExportContext(product="", date_from="2025-01-01", date_to="2025-01-31")
        path = await exporter.export(_model(sales_payload), context)

        assert path.name == "Marche-report-sales-2025-01-01_to_2025-01-31.pdf"
        assert context.product == ""

    @pytest.mark.asyncio
    async def test_empty_capture_writes_nothing(self, tmp_path, sales_payload):
        empty = RasterCapture(SimpleNamespace(width=0, height=0), 0, 0, [])
        exporter = ReportExporter(FakeCapturer(empty), output_dir=str(tmp_path))
        with pytest.raises(CaptureError):
            await exporter.export(_model(sales_payload), _context())
        assert list(tmp_path.iterdir()) == []

    def test_failed_write_removes_partial_file(self, tmp_path):
        exporter = ReportExporter(FakeCapturer(None), output_dir=str(tmp_path))

        def broken_draw(capture, slices, target):
            target.write_bytes(b"partial")
            raise OSError("disk full")

        exporter._draw = broken_draw
        target = tmp_path / "out.pdf"
        with pytest.raises(ExportError) as excinfo:
            exporter.write_pdf(_capture(), target)
        assert isinstance(excinfo.value.cause, OSError)
        assert not target.exists()
        assert list(tmp_path.iterdir()) == []


class TestReportRenderer:

    def test_export_header_and_filters(self, sales_payload):
        spec = get_tab_spec("sales")
        state = FilterEngine(spec.filter_columns).new_state()
        state.toggle("company", "Ferme du Lac")
        model = ReportView().compose(spec, sales_payload, state, view_mode="table")
        html = ReportRenderer().render_html(model, _context())

        assert "export-only" in html
        assert "Filtres : Commerce: Ferme du Lac" in html
        assert "2025-01-01 → 2025-01-31" in html
        assert html.count("<tr>") == 1 + 2

    def test_html_is_escaped(self):
        payload = {"rows": [{"created_at": "2025-01-06", "user_name": "<script>",
                             "company_names": ["A & B"], "line_total": 1}]}
        html = ReportRenderer().render_html(_model(payload))
        assert "<script>" not in html
        assert "A &amp; B" in html

    def test_chart_is_rendered_as_png(self, sales_payload):
        spec = get_tab_spec("sales")
        state = FilterEngine(spec.filter_columns).new_state()
        model = ReportView().compose(spec, sales_payload, state)
        html = ReportRenderer().render_html(model)
        assert "data:image/png;base64," in html
