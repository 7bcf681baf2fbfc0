"""
Projection specs for the report tabs.

Each tab of the dashboard is the same rollup + filter + KPI pattern over a
different row shape.  A ``TabSpec`` declares that shape (where the rows live
in the payload, which timestamp to bucket on, which columns are shown and
filterable, what the chart aggregates and how KPIs are computed) and the
generic ``ReportView`` does the rest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from functools import lru_cache
from typing import Any, Callable, Mapping, Optional, Sequence

from src.models.analytics import AggregatedPoint, Bucket, GeoLevel, KpiCard
from src.models.errors import UnknownTabError
from src.modules.analytics import kpis
from src.modules.analytics.filters import FilterColumn
from src.modules.analytics.rollup import Measures, Projection
from src.utils.helpers import (
    as_name_list,
    as_num,
    first_present,
    format_date_fr,
    format_datetime_fr,
    format_eur,
)

Row = Mapping[str, Any]
KpiBuilder = Callable[[Sequence[Row], Mapping[str, Any], bool], list[KpiCard]]


@dataclass(frozen=True)
class Column:
    """A table column; filterable columns also become a facet."""

    key: str
    title: str
    value: Projection
    align: str = "left"
    filterable: bool = True
    tags: Optional[Callable[[Row], list[str]]] = None

    def as_filter(self) -> FilterColumn:
        return FilterColumn(self.key, self.title, self.value, self.tags)


@dataclass(frozen=True)
class ChartSpec:
    """What the chart of a tab aggregates.

    ``group`` is ``None`` for time-bucketed series; otherwise rows are
    grouped by that categorical projection.
    """

    title: str
    series: tuple[tuple[str, str], ...]
    measures: Measures
    kind: str = "line"
    group: Optional[Projection] = None
    order: Optional[Callable[[AggregatedPoint], Any]] = None
    reverse: bool = False
    sortable: bool = False
    derive: Optional[Callable[[dict[str, float]], dict[str, float]]] = None
    reduce_rows: Optional[Callable[[Sequence[Row]], list[Row]]] = None
    fallback: Optional[Callable[[Mapping[str, Any]], list[AggregatedPoint]]] = None


@dataclass(frozen=True)
class TabSpec:
    key: str
    label: str
    path: str
    extract: Callable[[Mapping[str, Any]], list[Row]]
    columns: tuple[Column, ...]
    kpis: KpiBuilder
    chart: Optional[ChartSpec] = None
    timestamp: Projection = "created_at"
    uses_bucket: bool = True
    uses_level: bool = False
    extra_params: Mapping[str, str] = field(default_factory=dict)
    note: str = ""

    @property
    def filter_columns(self) -> list[FilterColumn]:
        return [c.as_filter() for c in self.columns if c.filterable]

    def query(self, bucket: Bucket, level: GeoLevel) -> dict[str, str]:
        """Query parameters (besides the date range) for this tab's endpoint."""
        params: dict[str, str] = {}
        if self.uses_bucket:
            params["bucket"] = Bucket.parse(bucket).value
        if self.uses_level:
            params["level"] = GeoLevel(level).value
        params.update(self.extra_params)
        return params


# ----------------------------------------------------------------------
# Row accessors shared by several tabs
# ----------------------------------------------------------------------


def rows_of(payload: Mapping[str, Any]) -> list[Row]:
    rows = payload.get("rows") if payload else None
    return [r for r in rows if isinstance(r, Mapping)] if isinstance(rows, list) else []


def products_of(payload: Mapping[str, Any]) -> list[Row]:
    """Products live under ``products``, ``rows.products`` or ``rows.products.data``."""
    if not payload:
        return []
    if isinstance(payload.get("products"), list):
        return list(payload["products"])
    rows = payload.get("rows")
    if isinstance(rows, Mapping):
        products = rows.get("products")
        if isinstance(products, list):
            return list(products)
        if isinstance(products, Mapping) and isinstance(products.get("data"), list):
            return list(products["data"])
    return []


def cohort_rows_of(payload: Mapping[str, Any]) -> list[Row]:
    if payload and isinstance(payload.get("rows_company"), list):
        return list(payload["rows_company"])
    return rows_of(payload)


def flatten_orders(payload: Mapping[str, Any]) -> list[Row]:
    """One row per order item, carrying the order's fields."""
    out = []
    for order in rows_of(payload):
        for item in order.get("items") or []:
            quantity = as_num(item.get("quantity"))
            total = as_num(item.get("total_price"))
            unit = item.get("unit_price")
            if not isinstance(unit, (int, float)):
                unit = total / max(1.0, quantity)
            snapshot = item.get("bundle_snapshot") or {}
            out.append({
                "order_id": order.get("id"),
                "order_code": first_present(order, "order_code", "code", default="—"),
                "created_at": order.get("created_at"),
                "status": order.get("status"),
                "user_name": user_of(order),
                "producer_names": as_name_list(item.get("producer_names"))
                or as_name_list(order.get("producer_names")),
                "company_names": as_name_list(item.get("company_names"))
                or as_name_list(order.get("company_names")),
                "item_id": first_present(item, "item_id", "id"),
                "quantity": quantity,
                "unit_price": unit,
                "total_price": total,
                "bundle_title": first_present(
                    snapshot, "title",
                    default=first_present(item, "bundle_title", "label", default="—"),
                ),
            })
    return out


def company_tags(row: Row) -> list[str]:
    tags = as_name_list(row.get("company_names")) or as_name_list(row.get("company_name"))
    bundle = row.get("bundle")
    if isinstance(bundle, Mapping):
        for name in as_name_list(bundle.get("company_names")):
            if name not in tags:
                tags.append(name)
    return tags


def company_of(row: Row) -> str:
    return ", ".join(company_tags(row))


def producer_of(row: Row) -> str:
    if row.get("producer_name") is not None:
        return str(row["producer_name"])
    return ", ".join(as_name_list(row.get("producer_names")))


def user_of(row: Row) -> str:
    return str(first_present(row, "user_name", "customer_name", "user", "user_id", default="—"))


def product_label(row: Row) -> str:
    return str(row.get("title") or row.get("name") or "")


def cart_product(row: Row) -> str:
    bundle = row.get("bundle") or {}
    products = bundle.get("products") or []
    if products and isinstance(products[0], Mapping) and products[0].get("title"):
        return str(products[0]["title"])
    return str(bundle.get("title") or row.get("bundle_title") or "—")


def category_of(row: Row) -> str:
    cat = row.get("category")
    if isinstance(cat, Mapping):
        return str(first_present(cat, "label", "name", "code", default="—"))
    return str(cat or "—")


def zone_of(row: Row) -> str:
    name = str(row.get("zone_desc") or row.get("region") or row.get("zone") or "").strip()
    code = str(row.get("zone_code") or row.get("region_code") or "").upper()
    return name or code


def payment_method(row: Row) -> str:
    return str(first_present(row, "method", "payment_method", default="—"))


def rating_label(row: Row) -> str:
    rating = int(kpis.rating_of(row))
    return str(rating) if rating else ""


def first_seen_per_user(rows: Sequence[Row]) -> list[Row]:
    """Keep each user's earliest row (by ``created_at``)."""
    first: dict[str, Row] = {}
    for row in rows:
        uid = first_present(row, "user_id", "user", "user_name")
        created = row.get("created_at")
        if not uid or not created:
            continue
        uid = str(uid)
        if uid not in first or str(created) < str(first[uid]["created_at"]):
            first[uid] = row
    return list(first.values())


def _payments_derive(values: dict[str, float]) -> dict[str, float]:
    count = values.get("count", 0.0)
    return {
        "success_rate": (values.get("success", 0.0) / count) * 100 if count else 0.0,
        "aov": values.get("revenue", 0.0) / count if count else 0.0,
    }


def _payments_fallback(payload: Mapping[str, Any]) -> list[AggregatedPoint]:
    points = []
    for m in payload.get("by_method") or []:
        count = as_num(m.get("count"))
        points.append(AggregatedPoint(
            period=str(m.get("method") or "inconnu"),
            values={
                "success_rate": as_num(m.get("success_rate")) * 100,
                "aov": as_num(m.get("revenue")) / count if count else 0.0,
            },
        ))
    return points


def _geo_fallback(payload: Mapping[str, Any]) -> list[AggregatedPoint]:
    points = []
    for z in payload.get("by_zone") or []:
        label = zone_of(z) or str(z.get("code") or "").upper()
        if not label:
            continue
        points.append(AggregatedPoint(
            period=label,
            values={"revenue": as_num(z.get("revenue")), "orders": as_num(z.get("orders"))},
        ))
    return points


def _rating_order(point: AggregatedPoint) -> float:
    return as_num(point.period)


def _sold_then_label(point: AggregatedPoint) -> tuple:
    return (-point.get("sold"), point.period.casefold())


# ----------------------------------------------------------------------
# Catalog sort modes
# ----------------------------------------------------------------------

CATALOG_SORTS: dict[str, tuple[str, bool]] = {
    "name-asc": ("label", False),
    "name-desc": ("label", True),
    "sold-desc": ("sold", True),
    "sold-asc": ("sold", False),
    "stock-desc": ("stock", True),
    "stock-asc": ("stock", False),
}
DEFAULT_CATALOG_SORT = "sold-desc"


def catalog_sort(mode: str) -> tuple[Callable[[AggregatedPoint], Any], bool]:
    """Return ``(key, reverse)`` for a catalog sort mode (default sold-desc)."""
    field_name, reverse = CATALOG_SORTS.get(mode, CATALOG_SORTS[DEFAULT_CATALOG_SORT])
    if field_name == "label":
        return (lambda p: p.period.casefold()), reverse
    return (lambda p: p.get(field_name)), reverse


# ----------------------------------------------------------------------
# Registry
# ----------------------------------------------------------------------

TAB_ORDER = (
    "sales", "orders", "customers", "carts", "catalog", "health",
    "impact", "payments", "cohorts", "geo", "reviews",
)


def _build(show_producer: bool, tz: Optional[tzinfo]) -> dict[str, TabSpec]:
    def when(row: Row) -> str:
        return format_datetime_fr(row.get("created_at"), tz)

    def amount(proj: Callable[[Row], float]) -> Callable[[Row], str]:
        return lambda row: format_eur(proj(row))

    producer = Column("producer", "Producteur", producer_of)
    company = Column("company", "Commerce", company_of, tags=company_tags)
    user = Column("user", "Utilisateur", user_of)
    date = Column("date", "Date", when)

    def with_owner(*cols: Column) -> tuple[Column, ...]:
        head = (producer, company) if show_producer else (company,)
        return head + cols

    specs = [
        TabSpec(
            key="sales",
            label="Ventes",
            path="/sales/timeseries/",
            extract=rows_of,
            columns=with_owner(
                date,
                user,
                Column("order", "Commande", lambda r: first_present(r, "order_id", default="—")),
                Column("item", "Id Item", lambda r: first_present(r, "item_id", default="—")),
                Column("content", "Contenu", lambda r: (
                    f"{first_present(r, 'bundle_title', 'label', default='—')}"
                    f" x {int(as_num(r.get('quantity'), 1))}"
                )),
                Column("amount", "CA (€)", amount(kpis.line_amount), align="right"),
            ),
            chart=ChartSpec(
                title="CA / commandes / unités",
                series=(("revenue", "CA (€)"), ("orders", "Commandes"), ("units", "Unités")),
                measures=Measures(
                    sums={"revenue": kpis.line_amount, "units": "quantity"},
                    distinct={"orders": "order_id"},
                ),
            ),
            kpis=kpis.sales_kpis,
        ),
        TabSpec(
            key="orders",
            label="Commandes",
            path="/orders/deep/",
            extract=flatten_orders,
            columns=with_owner(
                Column("order", "Commande", "order_code"),
                date,
                user,
                Column("status", "Statut", lambda r: r.get("status") or "—"),
                Column("content", "Contenu", lambda r: (
                    f"{r.get('bundle_title')} x {int(as_num(r.get('quantity')))}"
                ), filterable=False),
                Column("unit_price", "Prix unitaire", amount(lambda r: as_num(r.get("unit_price"))),
                       align="right", filterable=False),
                Column("amount", "Total", amount(kpis.line_amount), align="right", filterable=False),
            ),
            chart=ChartSpec(
                title="Commandes / CA / unités",
                series=(("revenue", "CA (€)"), ("orders", "Commandes"), ("units", "Unités")),
                measures=Measures(
                    sums={"revenue": kpis.line_amount, "units": "quantity"},
                    distinct={"orders": "order_id"},
                ),
            ),
            kpis=kpis.orders_kpis,
        ),
        TabSpec(
            key="customers",
            label="Clients",
            path="/customers/deep/",
            extract=rows_of,
            columns=with_owner(
                user,
                date,
                Column("order", "Commande", lambda r: first_present(r, "order_code", "order_id", default="—")),
                Column("amount", "Montant", amount(lambda r: as_num(
                    first_present(r, "amount", "total_price", "subtotal"))), align="right", filterable=False),
            ),
            chart=ChartSpec(
                title="Nouveaux clients",
                series=(("new_customers", "Nouveaux clients"),),
                measures=Measures(sums={"new_customers": lambda r: 1}),
                kind="bar",
                reduce_rows=first_seen_per_user,
            ),
            kpis=kpis.customers_kpis,
        ),
        TabSpec(
            key="carts",
            label="Paniers abandonnés",
            path="/carts/abandoned/deep/",
            extract=rows_of,
            columns=with_owner(
                user,
                Column("date", "Dernière activité", lambda r: format_datetime_fr(
                    first_present(r, "updated_at", "created_at"), tz)),
                Column("product", "Produit", cart_product),
                Column("quantity", "Qté", lambda r: int(as_num(r.get("quantity"))),
                       align="right", filterable=False),
                Column("amount", "Montant", amount(kpis.line_amount), align="right", filterable=False),
            ),
            chart=ChartSpec(
                title="Produits abandonnés",
                series=(("qty", "Quantité"), ("sum", "Montant (€)")),
                measures=Measures(sums={"qty": "quantity", "sum": kpis.line_amount}),
                kind="bar",
                group=cart_product,
                order=lambda p: -p.get("qty"),
            ),
            kpis=kpis.carts_kpis,
            uses_bucket=False,
            extra_params={"granularity": "item"},
        ),
        TabSpec(
            key="catalog",
            label="Catalogue",
            path="/catalog/deep/",
            extract=products_of,
            columns=with_owner(
                Column("product", "Produit", product_label),
                Column("category", "Catégorie", category_of),
                Column("sold", "Vendu", lambda r: int(as_num(r.get("sold"))), align="right", filterable=False),
                Column("stock", "Stock", lambda r: int(as_num(r.get("stock"))), align="right", filterable=False),
            ),
            chart=ChartSpec(
                title="Ventes & stock par produit",
                series=(("sold", "Vendu"), ("stock", "Stock")),
                measures=Measures(sums={"sold": "sold", "stock": "stock"}),
                kind="bar",
                group=product_label,
                sortable=True,
            ),
            kpis=kpis.catalog_kpis,
            timestamp=lambda r: None,
            uses_bucket=False,
        ),
        TabSpec(
            key="health",
            label="Santé catalogue",
            path="/products/health/",
            extract=products_of,
            columns=with_owner(
                Column("product", "Produit", product_label),
                Column("stock", "Stock", lambda r: int(as_num(r.get("stock"))), align="right", filterable=False),
                Column("sold", "Vendu", lambda r: int(as_num(r.get("sold"))), align="right", filterable=False),
                Column("dlc", "DLC", lambda r: format_date_fr(first_present(r, "dlc", "best_before"))),
            ),
            chart=ChartSpec(
                title="Santé du catalogue",
                series=(("stock", "Stock"), ("sold", "Vendu")),
                measures=Measures(sums={"stock": "stock", "sold": "sold"}),
                kind="bar",
                group=product_label,
                order=_sold_then_label,
            ),
            kpis=kpis.health_kpis,
            timestamp=lambda r: None,
            uses_bucket=False,
        ),
        TabSpec(
            key="impact",
            label="Impact",
            path="/impact/",
            extract=rows_of,
            columns=with_owner(
                date,
                user,
                Column("order", "Commande", lambda r: first_present(r, "order_code", "order_id", default="—")),
                Column("content", "Contenu", lambda r: r.get("bundle_title") or "—"),
                Column("co2", "CO₂ (kg)", lambda r: f"{as_num(r.get('avoided_co2_kg')):.2f}",
                       align="right", filterable=False),
                Column("waste", "Déchets (kg)", lambda r: f"{as_num(r.get('avoided_waste_kg')):.2f}",
                       align="right", filterable=False),
                Column("savings", "Économies", amount(lambda r: as_num(r.get("savings_eur"))),
                       align="right", filterable=False),
            ),
            chart=ChartSpec(
                title="Impact (CO₂ / déchets évités)",
                series=(("co2", "CO₂ (kg)"), ("waste", "Déchets (kg)")),
                measures=Measures(sums={"co2": "avoided_co2_kg", "waste": "avoided_waste_kg"}),
            ),
            kpis=kpis.impact_kpis,
        ),
        TabSpec(
            key="payments",
            label="Paiements",
            path="/payments/deep/",
            extract=rows_of,
            columns=with_owner(
                date,
                user,
                Column("method", "Méthode", payment_method),
                Column("status", "Statut", lambda r: first_present(r, "payment_status", "status", default="—")),
                Column("amount", "Montant", amount(lambda r: as_num(
                    first_present(r, "amount", "total_price", "subtotal"))), align="right", filterable=False),
            ),
            chart=ChartSpec(
                title="Paiements (taux de succès / AOV)",
                series=(("success_rate", "Succès (%)"), ("aov", "AOV (€)")),
                measures=Measures(sums={
                    "count": lambda r: 1,
                    "revenue": lambda r: first_present(r, "amount", "total_price", "subtotal"),
                    "success": lambda r: 1 if kpis.is_paid(r) else 0,
                }),
                kind="bar",
                group=payment_method,
                derive=_payments_derive,
                fallback=_payments_fallback,
            ),
            kpis=kpis.payments_kpis,
            uses_bucket=False,
        ),
        TabSpec(
            key="cohorts",
            label="Cohortes",
            path="/cohorts/monthly/",
            extract=cohort_rows_of,
            columns=with_owner(
                Column("cohort", "Cohorte", lambda r: r.get("cohort_month") or "—"),
                Column("periods", "Périodes", lambda r: " · ".join(
                    f"+{p.get('offset')}: {p.get('orders')} Commandes / {format_eur(as_num(p.get('revenue')))}"
                    for p in r.get("periods") or []
                ), filterable=False),
            ),
            kpis=kpis.cohorts_kpis,
            note="Les cohortes sont présentées sous forme de tableau uniquement.",
        ),
        TabSpec(
            key="geo",
            label="Géographie",
            path="/geo/deep/",
            extract=rows_of,
            columns=with_owner(
                Column("zone", "Zone", zone_of),
                date,
                Column("order", "Commande", lambda r: first_present(r, "order_code", "order_id", default="—")),
                Column("amount", "CA", amount(lambda r: as_num(
                    first_present(r, "revenue_share", "line_total", "amount"))), align="right", filterable=False),
            ),
            chart=ChartSpec(
                title="CA par zone",
                series=(("revenue", "CA (€)"), ("orders", "Commandes")),
                measures=Measures(sums={
                    "revenue": lambda r: first_present(r, "revenue_share", "line_total", "amount"),
                    "orders": lambda r: 1,
                }),
                kind="bar",
                group=zone_of,
                fallback=_geo_fallback,
            ),
            kpis=kpis.geo_kpis,
            uses_bucket=False,
            uses_level=True,
        ),
        TabSpec(
            key="reviews",
            label="Évaluations",
            path="/evaluations/deep/",
            extract=rows_of,
            columns=with_owner(
                date,
                Column("type", "Type", lambda r: r.get("type") or "—"),
                Column("rating", "Note", lambda r: first_present(r, "rating", "customer_rating", default="—")),
                user,
                Column("comment", "Commentaire", lambda r: r.get("comment") or "", filterable=False),
            ),
            chart=ChartSpec(
                title="Distribution des notes",
                series=(("items", "Articles"), ("orders", "Commandes")),
                measures=Measures(
                    sums={"items": lambda r: 1 if kpis.review_kind(r) == "item" else 0},
                    distinct={"orders": lambda r: (
                        first_present(r, "order_id", "id") if kpis.review_kind(r) == "order" else None
                    )},
                ),
                kind="bar",
                group=rating_label,
                order=_rating_order,
            ),
            kpis=kpis.reviews_kpis,
            uses_bucket=False,
            extra_params={"kind": "all"},
        ),
    ]
    return {spec.key: spec for spec in specs}


@lru_cache(maxsize=8)
def tab_specs(show_producer: bool = False, tz: Optional[tzinfo] = None) -> dict[str, TabSpec]:
    """All tab specs keyed by tab name, in display order."""
    return _build(show_producer, tz)


def get_tab_spec(key: str, show_producer: bool = False, tz: Optional[tzinfo] = None) -> TabSpec:
    """Return the spec for *key*.

    Raises:
        UnknownTabError: If no such tab exists.
    """
    specs = tab_specs(show_producer, tz)
    try:
        return specs[key]
    except KeyError:
        raise UnknownTabError(key) from None


def catalog_row_sort(mode: str) -> tuple[Callable[[Row], Any], bool]:
    """Same ordering as ``catalog_sort`` applied to product rows."""
    field_name, reverse = CATALOG_SORTS.get(mode, CATALOG_SORTS[DEFAULT_CATALOG_SORT])
    if field_name == "label":
        return (lambda r: product_label(r).casefold()), reverse
    return (lambda r: as_num(r.get(field_name))), reverse
