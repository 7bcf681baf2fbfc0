"""Tests for composing report models from payloads and filter state."""

import pytest

from src.models.analytics import Bucket, ViewMode
from src.models.errors import InvalidBucketError, UnknownTabError
from src.modules.analytics.filters import FilterEngine
from src.modules.analytics.report_view import ReportView, table_window
from src.modules.analytics.tab_specs import TAB_ORDER, get_tab_spec, tab_specs


def _state(spec):
    return FilterEngine(spec.filter_columns).new_state()


class TestTabSpecs:

    def test_every_tab_is_registered(self):
        assert list(tab_specs()) == list(TAB_ORDER)

    def test_unknown_tab(self):
        with pytest.raises(UnknownTabError):
            get_tab_spec("category")

    def test_producer_column_only_in_producer_scope(self):
        admin = [c.key for c in get_tab_spec("sales").columns]
        producer = [c.key for c in get_tab_spec("sales", show_producer=True).columns]
        assert "producer" not in admin
        assert producer[:2] == ["producer", "company"]

    def test_query_params(self):
        assert get_tab_spec("sales").query(Bucket.WEEK, "region") == {"bucket": "week"}
        assert get_tab_spec("geo").query(Bucket.DAY, "city") == {"level": "city"}
        assert get_tab_spec("carts").query(Bucket.DAY, "region") == {"granularity": "item"}
        assert get_tab_spec("reviews").query(Bucket.DAY, "region") == {"kind": "all"}


class TestTableWindow:

    def test_page_is_clamped(self, sales_rows):
        spec = get_tab_spec("sales")
        window = table_window(sales_rows, spec, page=99, page_size=3)
        assert window.page == 2
        assert window.page_count == 2
        assert len(window.rows) == 1
        assert window.rows[0]["item"] == "31"

    def test_empty_rows_have_one_page(self):
        window = table_window([], get_tab_spec("sales"), page=0, page_size=20)
        assert window.page == 1
        assert window.page_count == 1
        assert window.rows == []


class TestCompose:

    def test_kpis_follow_company_filter(self, sales_payload):
        spec = get_tab_spec("sales")
        state = _state(spec)
        state.toggle("company", "Ferme du Lac")
        model = ReportView().compose(spec, sales_payload, state)

        kpis = {k.key: k for k in model.kpis}
        assert kpis["revenue"].value == 22.0
        assert kpis["revenue"].display == "22.00€"
        assert kpis["units"].value == 5.0
        assert kpis["aiv"].value == pytest.approx(4.4)
        assert model.table.total == 2
        assert sum(p.get("revenue") for p in model.series) == 22.0
        assert model.filters_summary == "Commerce: Ferme du Lac"

    def test_unfiltered_model(self, sales_payload):
        spec = get_tab_spec("sales")
        model = ReportView().compose(spec, sales_payload, _state(spec), bucket="week")
        assert model.bucket is Bucket.WEEK
        assert [p.period for p in model.series] == ["2025-W02"]
        assert model.series[0].get("orders") == 3
        assert model.table.total == 4
        assert model.columns[0] == ("company", "Commerce", "left")
        assert model.facets["company"] == ["Boulangerie Nord", "Ferme du Lac"]

    def test_all_rows_window(self, sales_payload):
        spec = get_tab_spec("sales")
        model = ReportView().compose(spec, sales_payload, _state(spec), page_size=2, all_rows=True)
        assert len(model.table.rows) == 4

    def test_invalid_bucket(self, sales_payload):
        spec = get_tab_spec("sales")
        with pytest.raises(InvalidBucketError):
            ReportView().compose(spec, sales_payload, _state(spec), bucket="year")

    def test_cohorts_are_table_only(self):
        spec = get_tab_spec("cohorts")
        payload = {"rows_company": [{"cohort_month": "2025-01", "periods": [], "company_names": ["A"]}]}
        model = ReportView().compose(spec, payload, _state(spec), view_mode="both")
        assert model.view_mode is ViewMode.TABLE
        assert model.series == []
        assert model.note

    def test_catalog_sort_applies_to_chart_and_table(self):
        spec = get_tab_spec("catalog")
        payload = {"products": [
            {"id": 1, "title": "Pommes", "sold": 5, "stock": 1},
            {"id": 2, "title": "Carottes", "sold": 9, "stock": 3},
            {"id": 3, "title": "Miel", "sold": 1, "stock": 8},
        ]}
        view = ReportView()
        model = view.compose(spec, payload, _state(spec))
        assert [p.period for p in model.series] == ["Carottes", "Pommes", "Miel"]
        assert [r["product"] for r in model.table.rows] == ["Carottes", "Pommes", "Miel"]

        model = view.compose(spec, payload, _state(spec), sort="name-asc")
        assert [p.period for p in model.series] == ["Carottes", "Miel", "Pommes"]
        assert [r["product"] for r in model.table.rows] == ["Carottes", "Miel", "Pommes"]

    def test_payments_fallback_only_without_filters(self):
        spec = get_tab_spec("payments")
        payload = {"rows": [], "by_method": [
            {"method": "card", "count": 4, "success_rate": 0.75, "revenue": 100},
        ]}
        model = ReportView().compose(spec, payload, _state(spec))
        assert [p.period for p in model.series] == ["card"]
        assert model.series[0].get("success_rate") == 75.0
        assert model.series[0].get("aov") == 25.0

        state = _state(spec)
        state.toggle("method", "card")
        model = ReportView().compose(spec, payload, state)
        assert model.series == []
