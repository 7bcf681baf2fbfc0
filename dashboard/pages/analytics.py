"""Report tab page: KPIs, chart, facet filters, paged table and PDF export."""

import asyncio
import concurrent.futures
import logging
from datetime import date

import plotly.graph_objects as go
import streamlit as st

from src.models.analytics import Bucket, GeoLevel, ReportModel, ViewMode
from src.modules.analytics.session import PAGE_SIZES
from src.modules.analytics.tab_specs import CATALOG_SORTS, DEFAULT_CATALOG_SORT

logger = logging.getLogger(__name__)

_PALETTE = ["#14532d", "#7cb518", "#0e7490", "#ca8a04", "#7c3aed"]

# ---------------------------------------------------------------------------
# Async helper
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine in Streamlit context."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_running():
            with concurrent.futures.ThreadPoolExecutor() as pool:
                future = pool.submit(asyncio.run, coro)
                return future.result()
        else:
            return loop.run_until_complete(coro)
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()


# ---------------------------------------------------------------------------
# Chart
# ---------------------------------------------------------------------------


def build_figure(model: ReportModel) -> go.Figure:
    """Plotly figure for the report's series."""
    fig = go.Figure()
    x = [p.period for p in model.series]
    for idx, (name, label) in enumerate(model.measures):
        y = [p.get(name) for p in model.series]
        color = _PALETTE[idx % len(_PALETTE)]
        if model.chart_kind == "bar":
            fig.add_trace(go.Bar(x=x, y=y, name=label, marker_color=color))
        else:
            fig.add_trace(go.Scatter(x=x, y=y, name=label, mode="lines", line={"color": color, "width": 2}))
    fig.update_layout(
        title=model.chart_title,
        barmode="group",
        height=380,
        margin={"l": 20, "r": 20, "t": 50, "b": 80},
        legend={"orientation": "h", "y": -0.25},
        xaxis={"tickangle": -35},
    )
    return fig


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _render_toolbar(session) -> bool:
    """Render the shared toolbar; return True when data must be reloaded."""
    reload = False
    col1, col2, col3, col4, col5 = st.columns([1, 1, 1, 1, 1])
    with col1:
        modes = [m.value for m in ViewMode]
        mode = st.selectbox("Affichage", modes, index=modes.index(session.view_mode.value))
        session.set_view_mode(mode)
    with col2:
        buckets = [b.value for b in Bucket]
        bucket = st.selectbox("Granularité", buckets, index=buckets.index(session.bucket.value))
        if bucket != session.bucket.value:
            session.set_bucket(bucket)
            reload = True
    with col3:
        d_from = st.date_input("Du", value=date.fromisoformat(session.date_from))
    with col4:
        d_to = st.date_input("Au", value=date.fromisoformat(session.date_to))
    if (d_from.isoformat(), d_to.isoformat()) != (session.date_from, session.date_to):
        session.set_dates(d_from.isoformat(), d_to.isoformat())
        reload = True
    with col5:
        if session.active_tab == "geo":
            levels = [lv.value for lv in GeoLevel]
            level = st.selectbox("Niveau", levels, index=levels.index(session.geo_level.value))
            if level != session.geo_level.value:
                session.set_geo_level(level)
                reload = True
        elif session.active_tab == "catalog":
            state = session.state("catalog")
            sorts = list(CATALOG_SORTS)
            current = state.sort or DEFAULT_CATALOG_SORT
            session.set_sort("catalog", st.selectbox("Tri", sorts, index=sorts.index(current)))
    return reload


def _render_filters(session, model: ReportModel) -> None:
    tab = model.tab
    state = session.state(tab)
    spec = session.spec(tab)
    columns = spec.filter_columns
    if not columns:
        return
    with st.expander("Filtres", expanded=state.filters.active):
        cols = st.columns(min(4, len(columns)))
        for idx, column in enumerate(columns):
            options = model.facets.get(column.key, [])
            current = sorted(state.filters.get(column.key))
            with cols[idx % len(cols)]:
                chosen = st.multiselect(
                    column.label,
                    options=sorted(set(options) | set(current)),
                    default=current,
                    key=f"flt_{tab}_{column.key}",
                )
            if sorted(chosen) != current:
                session.set_filter(tab, column.key, chosen)
                st.rerun()
        if state.filters.active and st.button("Réinitialiser les filtres", key=f"clear_{tab}"):
            session.clear_filters(tab)
            st.rerun()


def _render_table(session, model: ReportModel) -> None:
    tab = model.tab
    window = model.table
    titles = {key: title for key, title, _align in model.columns}
    records = [{titles[k]: row.get(k, "") for k in titles} for row in window.rows]
    if records:
        st.dataframe(records, use_container_width=True, hide_index=True)
    else:
        st.info("Aucune donnée.")

    col1, col2, col3 = st.columns([1, 1, 2])
    with col1:
        size = st.selectbox(
            "Lignes par page", PAGE_SIZES,
            index=PAGE_SIZES.index(window.page_size) if window.page_size in PAGE_SIZES else 1,
            key=f"size_{tab}",
        )
        if size != window.page_size:
            session.set_page_size(tab, size)
            st.rerun()
    with col2:
        page = st.number_input(
            "Page", min_value=1, max_value=window.page_count, value=window.page, key=f"page_{tab}",
        )
        if page != window.page:
            session.set_page(tab, int(page))
            st.rerun()
    with col3:
        st.caption(f"Page {window.page} / {window.page_count} · {window.total} lignes")


def _render_export(session, model: ReportModel) -> None:
    from export_helper import export_report_pdf

    if st.button("📄 Export PDF", key=f"export_{model.tab}", disabled=session.capturing):
        with st.spinner("Génération du PDF..."):
            result = export_report_pdf(session, model.tab, _run_async)
        if result.get("error"):
            st.error(result["error"])
        else:
            st.download_button(
                "Télécharger",
                data=result["data"],
                file_name=result["file_name"],
                mime="application/pdf",
                key=f"dl_{model.tab}",
            )


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------


def render_analytics_page(session) -> None:
    tab = session.active_tab
    spec = session.spec(tab)
    st.title(spec.label)

    state = session.state(tab)
    reload = _render_toolbar(session)
    if reload or session.is_stale(tab):
        with st.spinner("Chargement..."):
            _run_async(session.refresh(tab))

    if state.error:
        st.error(state.error)
        return

    model = session.report(tab)

    kpi_cols = st.columns(3)
    for idx, card in enumerate(model.kpis):
        with kpi_cols[idx % 3]:
            st.metric(card.label, card.display)

    _render_filters(session, model)

    if model.view_mode.shows_chart:
        if model.series:
            st.plotly_chart(build_figure(model), use_container_width=True)
        else:
            st.info("Aucune donnée pour le graphique.")
    if model.note:
        st.caption(model.note)
    if model.view_mode.shows_table:
        _render_table(session, model)

    _render_export(session, model)
