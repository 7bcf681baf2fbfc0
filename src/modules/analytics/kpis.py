"""
KPI card builders, one per report tab.

Every builder receives the rows that back the table and chart (already
filtered), the raw payload, and whether a column filter is active.  Server
``summary`` figures are only trusted when nothing is filtered; otherwise the
number is recomputed from the rows.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from src.models.analytics import KpiCard
from src.utils.helpers import as_num, first_present

Rows = Sequence[Mapping[str, Any]]

PAID_STATUSES = frozenset({"paid", "succeeded", "success", "completed"})


def _summary(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    summary = payload.get("summary") if payload else None
    return summary if isinstance(summary, Mapping) else {}


def _distinct(values) -> int:
    return len({str(v) for v in values if v is not None and v != ""})


def line_amount(row: Mapping[str, Any]) -> float:
    """Line total, or unit price times quantity when no total is given."""
    line = row.get("line_total")
    if line is None or line == "":
        line = row.get("total_price")
    if line is not None and line != "":
        return as_num(line)
    return as_num(row.get("unit_price")) * as_num(row.get("quantity"), 1)


def is_paid(row: Mapping[str, Any]) -> bool:
    if row.get("paid") is True or row.get("success") is True:
        return True
    status = str(first_present(row, "payment_status", "status", default="")).lower()
    return status in PAID_STATUSES


def review_kind(row: Mapping[str, Any]) -> str:
    """``item``, ``order`` or the raw lower-cased type."""
    kind = str(row.get("type") or "").strip().lower()
    return "order" if kind == "commande" else kind


def rating_of(row: Mapping[str, Any]) -> float:
    return as_num(first_present(row, "rating", "customer_rating"))


# ----------------------------------------------------------------------
# Per-tab builders
# ----------------------------------------------------------------------


def sales_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    revenue = sum(line_amount(r) for r in rows)
    units = sum(as_num(r.get("quantity")) for r in rows)
    aiv = revenue / units if units else 0.0
    return [
        KpiCard("revenue", "CA", revenue, unit="eur"),
        KpiCard("units", "Total produits vendus", units),
        KpiCard("aiv", "AIV (Prix de vente moyen)", aiv, unit="eur"),
    ]


def orders_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    revenue = sum(line_amount(r) for r in rows)
    orders = _distinct(r.get("order_id") for r in rows)
    aov = revenue / orders if orders else 0.0
    by_status = _summary(payload).get("by_status") or {}
    if not filtered and "delivered" in by_status:
        delivered = as_num(by_status.get("delivered"))
    else:
        delivered = _distinct(
            r.get("order_id") for r in rows
            if str(r.get("status") or "").lower() == "delivered"
        )
    return [
        KpiCard("revenue", "CA", revenue, unit="eur"),
        KpiCard("orders", "Commandes", orders),
        KpiCard("aov", "AOV (Panier moyen)", aov, unit="eur"),
        KpiCard("delivered", "Livrées", delivered),
    ]


def customers_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    summary = _summary(payload)
    customers = _distinct(first_present(r, "user_id", "user", "user_name") for r in rows)
    total_customers = as_num(summary.get("total_customers_all"))
    total_producers = as_num(summary.get("total_producers_all"))
    share = (customers / total_customers) * 100 if total_customers > 0 else 0.0
    return [
        KpiCard("customers", "Clients", customers),
        KpiCard("customers_all", "Utilisateurs existants", total_customers),
        KpiCard("producers_all", "Producteurs existants", total_producers),
        KpiCard("customer_share", "Part de Clients", share, unit="pct"),
    ]


def carts_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    qty = sum(as_num(r.get("quantity")) for r in rows)
    amount = sum(line_amount(r) for r in rows)
    return [
        KpiCard("abandoned_qty", "Qté produits abandonnés", qty),
        KpiCard("abandoned_sum", "Somme abandonnée", amount, unit="eur"),
    ]


def catalog_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    ids = _distinct(first_present(p, "id", "code", "title", "name") for p in rows)
    return [KpiCard("products", "Types de produits (distincts)", ids)]


def health_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    summary = _summary(payload)
    products = summary.get("products") or {}
    if not filtered and summary:
        zero = as_num(products.get("zero_stock"))
        low = as_num(products.get("low_stock"))
        dlc = as_num(summary.get("dlc_en_risque"))
    else:
        zero = sum(1 for p in rows if as_num(p.get("stock")) <= 0)
        low = sum(
            1 for p in rows
            if 0 < as_num(p.get("stock")) <= as_num(p.get("low_stock_threshold"), 5)
        )
        dlc = sum(1 for p in rows if p.get("dlc_en_risque") or p.get("dlc_at_risk"))
    return [
        KpiCard("zero_stock", "Produits à zéro stock", zero),
        KpiCard("low_stock", "Produits en stock bas", low),
        KpiCard("dlc_risk", "DLC en risque", dlc),
    ]


def impact_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    co2 = sum(as_num(r.get("avoided_co2_kg")) for r in rows)
    waste = sum(as_num(r.get("avoided_waste_kg")) for r in rows)
    return [
        KpiCard("co2", "Total CO₂ (kg)", co2, decimals=2),
        KpiCard("waste", "Total gaspillage (kg)", waste, decimals=2),
    ]


def payments_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    by_method = payload.get("by_method") if payload else None
    if not filtered and isinstance(by_method, list) and by_method:
        methods = _distinct(first_present(m, "method", "pm", default="inconnu") for m in by_method)
        avg_success = sum(as_num(m.get("success_rate")) * 100 for m in by_method) / len(by_method)
    else:
        methods = _distinct(first_present(r, "method", "payment_method", default="—") for r in rows)
        paid = sum(1 for r in rows if is_paid(r))
        avg_success = (paid / len(rows)) * 100 if rows else 0.0
    return [
        KpiCard("methods", "Méthodes de paiement", methods),
        KpiCard("success_rate", "Taux moyen de succès", avg_success, unit="pct"),
    ]


def cohorts_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    return [KpiCard("cohorts", "Cohortes", _distinct(r.get("cohort_month") for r in rows))]


def geo_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    by_zone = payload.get("by_zone") if payload else None
    if not rows and not filtered and isinstance(by_zone, list):
        orders = sum(as_num(z.get("orders")) for z in by_zone)
        revenue = sum(as_num(z.get("revenue")) for z in by_zone)
        zones = len(by_zone)
    else:
        orders = len(rows)
        revenue = sum(as_num(first_present(r, "revenue_share", "line_total", "amount")) for r in rows)
        zones = _distinct(first_present(r, "zone_code", "region_code", "zone_desc", "region", "zone") for r in rows)
    return [
        KpiCard("orders", "Commandes", orders),
        KpiCard("revenue", "CA", revenue, unit="eur"),
        KpiCard("zones", "Zones", zones),
    ]


def reviews_kpis(rows: Rows, payload: Mapping[str, Any], filtered: bool) -> list[KpiCard]:
    summary = _summary(payload) if not filtered else {}
    item_rows = [r for r in rows if review_kind(r) == "item"]
    order_rows = [r for r in rows if review_kind(r) == "order"]

    evals_items = as_num(summary.get("item_ratings_count")) or len(item_rows)
    evals_orders = as_num(summary.get("order_ratings_count")) or len(order_rows)

    avg_items = as_num(summary.get("avg_item_rating")) or (
        sum(rating_of(r) for r in item_rows) / len(item_rows) if item_rows else 0.0
    )
    avg_orders = as_num(summary.get("avg_order_rating")) or (
        sum(rating_of(r) for r in order_rows) / len(order_rows) if order_rows else 0.0
    )

    total_orders = as_num(summary.get("orders_total")) or _distinct(r.get("order_id") for r in rows)
    total_items = as_num(summary.get("items_units_total")) or sum(
        as_num(r.get("quantity")) for r in item_rows
    )
    pct_orders = evals_orders * 100 / total_orders if total_orders > 0 else 0.0
    pct_items = evals_items * 100 / total_items if total_items > 0 else 0.0

    return [
        KpiCard("order_reviews", "Total commandes évaluées", evals_orders),
        KpiCard("order_rating", "Note moyenne commandes", avg_orders, unit="rating"),
        KpiCard("item_reviews", "Total items évalués", evals_items),
        KpiCard("item_rating", "Note moyenne items", avg_items, unit="rating"),
        KpiCard("order_reviews_pct", "% commandes évaluées", pct_orders, unit="pct"),
        KpiCard("item_reviews_pct", "% items évalués", pct_items, unit="pct"),
    ]
