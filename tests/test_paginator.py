"""Tests for row-safe page slicing of captured reports."""

import pytest
from PIL import Image

from src.models.export import PageGeometry, RasterCapture, RowBox
from src.modules.reporting.paginator import ExportPaginator, page_budget, plan_slices, safe_cuts


def _assert_covers(slices, total):
    assert slices[0].top == 0
    assert slices[-1].bottom == total
    for prev, nxt in zip(slices, slices[1:]):
        assert prev.bottom == nxt.top
    assert all(s.height > 0 for s in slices)


class TestSafeCuts:

    def test_converts_css_bottoms_to_raster_pixels(self):
        rows = [RowBox(110, 130), RowBox(130, 150)]
        assert safe_cuts(rows, container_top=100, device_scale=2, raster_height=1000) == [60, 100]

    def test_ignores_hairline_rows(self):
        rows = [RowBox(100, 103), RowBox(100, 104), RowBox(100, 104.5)]
        assert safe_cuts(rows, container_top=0, device_scale=1, raster_height=1000) == [104]

    def test_drops_edges_outside_raster(self):
        rows = [RowBox(-50, -10), RowBox(0, 20), RowBox(480, 520)]
        assert safe_cuts(rows, container_top=0, device_scale=1, raster_height=500) == [20]

    def test_deduplicates(self):
        rows = [RowBox(0, 20), RowBox(0, 20)]
        assert safe_cuts(rows, 0, 1, 100) == [20]


class TestPlanSlices:

    def test_row_aligned_pages(self):
        # 120 rows of 40 px with a budget of exactly 20 rows.
        cuts = [40 * (i + 1) for i in range(120)]
        slices = plan_slices(4800, cuts, budget=800)
        assert len(slices) == 6
        assert all(s.height == 800 for s in slices)
        assert not any(s.fallback for s in slices)
        _assert_covers(slices, 4800)

    def test_never_cuts_inside_a_row(self):
        cuts = [35 * (i + 1) for i in range(100)]
        slices = plan_slices(3500, cuts, budget=300)
        legal = set(cuts) | {3500}
        assert all(s.bottom in legal for s in slices)
        assert all(s.height <= 300 for s in slices)
        _assert_covers(slices, 3500)

    def test_short_content_is_one_page(self):
        assert [(s.top, s.bottom) for s in plan_slices(250, [100, 200], budget=800)] == [(0, 250)]

    def test_minimum_advance_skips_near_cuts(self):
        slices = plan_slices(1000, [50, 290], budget=300)
        assert slices[0].bottom == 290

    def test_fallback_when_no_row_edge_fits(self):
        slices = plan_slices(1000, [], budget=300)
        assert [(s.top, s.bottom) for s in slices] == [(0, 300), (300, 600), (600, 900), (900, 1000)]
        assert [s.fallback for s in slices] == [True, True, True, False]

    def test_invalid_budget(self):
        with pytest.raises(ValueError):
            plan_slices(100, [], budget=0)


class TestExportPaginator:

    def test_page_budget_scales_with_raster_width(self):
        geometry = PageGeometry(width=600, height=900, margin_top=50, margin_bottom=50,
                                margin_left=50, margin_right=50)
        assert page_budget(1000, geometry) == pytest.approx(1600)

    def test_page_budget_rejects_empty_raster(self):
        with pytest.raises(ValueError):
            page_budget(0, PageGeometry())

    def test_paginate_capture(self):
        # 120 rows of 20 CSS px at device scale 2, under a 40 px header.
        rows = [RowBox(140 + 20 * i, 160 + 20 * i) for i in range(120)]
        image = Image.new("RGB", (200, 80 + 120 * 40), "white")
        capture = RasterCapture(image, container_top=100, container_width=100, rows=rows)
        assert capture.device_scale == 2

        paginator = ExportPaginator()
        cuts = paginator.cuts(capture)
        slices = paginator.paginate(capture)
        budget = page_budget(capture.width, paginator.geometry)

        _assert_covers(slices, capture.height)
        assert set(s.bottom for s in slices) <= set(cuts) | {capture.height}
        assert all(s.height <= budget for s in slices)
        assert not any(s.fallback for s in slices)
