"""
report_renderer.py - Analytics report HTML rendering

Renders a ``ReportModel`` into a self-contained HTML page: an export-only
header, KPI cards, a matplotlib chart embedded as base64 PNG and the data
table.  The page is what the browser capturer rasterizes; every ``<tr>`` of
the table is a legal page-break position for the PDF export.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from src.models.analytics import AggregatedPoint, ReportModel
from src.models.export import CONTAINER_ID, EXPORTING_CLASS

logger = logging.getLogger(__name__)

_COLORS = {
    "bg": "#f7f7f2",
    "text": "#1f2937",
    "primary": "#14532d",
    "accent": "#fdf6d8",
    "card_bg": "#ffffff",
    "border": "#e5e7eb",
    "muted": "#6b7280",
    "danger": "#b91c1c",
}

_CHART_PALETTE = ["#14532d", "#7cb518", "#0e7490", "#ca8a04", "#7c3aed", "#db2777"]


def _escape_html(text) -> str:
    """Escape HTML special characters."""
    if text is None:
        return ""
    return (
        str(text)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


@dataclass
class ExportContext:
    """Header information printed on exported reports only."""

    product: str = "GreenCart"
    date_from: str = ""
    date_to: str = ""
    geo_level: Optional[str] = None
    user: Optional[str] = None
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def date_range(self) -> str:
        return f"{self.date_from} → {self.date_to}"


class ReportRenderer:
    """Render report models to HTML."""

    def __init__(self, viewport_width: int = 1200, table_font_px: int = 12):
        self.viewport_width = viewport_width
        self.table_font_px = table_font_px

    # ------------------------------------------------------------------
    # Public rendering methods
    # ------------------------------------------------------------------

    def render_html(self, model: ReportModel, context: Optional[ExportContext] = None) -> str:
        """Generate the full HTML page for *model*."""
        context = context or ExportContext()
        parts = []
        parts.append(self._build_html_head(model))
        parts.append('<div id="' + CONTAINER_ID + '" class="report">')
        parts.append(self._build_export_header_html(model, context))
        parts.append(self._build_kpis_html(model))
        if model.view_mode.shows_chart:
            parts.append(self._build_chart_html(model))
        if model.note:
            parts.append('<p class="note">' + _escape_html(model.note) + "</p>")
        if model.view_mode.shows_table:
            parts.append(self._build_table_html(model))
        parts.append("</div>")
        parts.append("</body></html>")

        html = "\n".join(parts)
        logger.debug("Rendered %s report (%d chars)", model.tab, len(html))
        return html

    def render_chart_png(self, model: ReportModel) -> Optional[str]:
        """Base64 PNG of the chart, or ``None`` when there is nothing to plot."""
        if not model.series or not model.measures:
            return None
        plt = self._import_plt()
        fig, ax = plt.subplots(figsize=(10, 4))
        labels = [p.period for p in model.series]
        if model.chart_kind == "bar":
            self._plot_bars(ax, model.series, model.measures)
        else:
            self._plot_lines(ax, model.series, model.measures)
        ax.set_xticks(range(len(labels)))
        ax.set_xticklabels(labels, rotation=35, ha="right", fontsize=8)
        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)
        ax.grid(axis="y", alpha=0.3)
        ax.legend(fontsize=8, framealpha=0.9)
        fig.tight_layout()
        return self._fig_to_base64(fig)

    # ------------------------------------------------------------------
    # Chart helpers (lazy-import matplotlib)
    # ------------------------------------------------------------------

    def _import_plt(self):
        """Lazy-import matplotlib with Agg backend."""
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        return plt

    @staticmethod
    def _fig_to_base64(fig) -> str:
        """Convert matplotlib figure to base64 PNG string."""
        import base64
        from io import BytesIO
        import matplotlib.pyplot as plt

        buf = BytesIO()
        fig.savefig(buf, format="png", dpi=110, bbox_inches="tight", facecolor="white")
        buf.seek(0)
        img_b64 = base64.b64encode(buf.read()).decode("utf-8")
        buf.close()
        plt.close(fig)
        return img_b64

    @staticmethod
    def _plot_lines(ax, series: list[AggregatedPoint], measures) -> None:
        xs = range(len(series))
        for idx, (name, label) in enumerate(measures):
            ax.plot(
                xs, [p.get(name) for p in series],
                color=_CHART_PALETTE[idx % len(_CHART_PALETTE)],
                linewidth=2,
                label=label,
            )

    @staticmethod
    def _plot_bars(ax, series: list[AggregatedPoint], measures) -> None:
        count = max(1, len(measures))
        width = 0.8 / count
        for idx, (name, label) in enumerate(measures):
            offset = (idx - (count - 1) / 2) * width
            ax.bar(
                [i + offset for i in range(len(series))],
                [p.get(name) for p in series],
                width=width,
                color=_CHART_PALETTE[idx % len(_CHART_PALETTE)],
                label=label,
            )

    def _chart_img_tag(self, b64: str) -> str:
        """Build an img tag from base64 data."""
        return (
            '<div class="chart-container">'
            '<img src="data:image/png;base64,{b64}" alt="chart">'
            "</div>"
        ).format(b64=b64)

    # ------------------------------------------------------------------
    # HTML blocks
    # ------------------------------------------------------------------

    def _build_html_head(self, model: ReportModel) -> str:
        c = _COLORS
        css = []
        css.append("* { margin:0; padding:0; box-sizing:border-box; }")
        css.append("body { font-family: 'Segoe UI', system-ui, -apple-system, sans-serif; ")
        css.append("background-color: " + c["bg"] + "; color: " + c["text"] + "; line-height: 1.5; }")
        css.append("#" + CONTAINER_ID + " { width: " + str(self.viewport_width) + "px; padding: 24px; background: " + c["bg"] + "; }")
        css.append(".export-only { display: none; }")
        css.append("." + EXPORTING_CLASS + " .export-only { display: block; }")
        css.append(".export-header { background: " + c["card_bg"] + "; border: 1px solid " + c["border"] + "; ")
        css.append("border-radius: 10px; padding: 16px 20px; margin-bottom: 16px; }")
        css.append(".export-header h1 { font-size: 22px; color: " + c["primary"] + "; }")
        css.append(".export-meta { font-size: 12px; color: " + c["muted"] + "; margin-top: 4px; }")
        css.append(".badge { display: inline-block; padding: 2px 10px; border-radius: 20px; font-size: 11px; ")
        css.append("font-weight: 600; background: #fef2f2; color: " + c["danger"] + "; margin-left: 8px; }")
        css.append(".kpi-grid { display: grid; grid-template-columns: repeat(3, 1fr); gap: 12px; margin-bottom: 16px; }")
        css.append(".kpi-card { background: " + c["card_bg"] + "; border-radius: 12px; padding: 14px 16px; ")
        css.append("box-shadow: 0 1px 3px rgba(0,0,0,0.06); }")
        css.append(".kpi-label { font-size: 12px; color: " + c["muted"] + "; }")
        css.append(".kpi-value { font-size: 20px; font-weight: 700; color: " + c["primary"] + "; }")
        css.append(".chart-block { background: " + c["card_bg"] + "; border-radius: 10px; padding: 16px; margin-bottom: 16px; }")
        css.append(".chart-block h2 { font-size: 15px; margin-bottom: 8px; }")
        css.append(".chart-container img { width: 100%; }")
        css.append(".empty { padding: 24px; text-align: center; color: " + c["muted"] + "; }")
        css.append(".note { font-size: 12px; color: " + c["muted"] + "; margin: 8px 0 16px; }")
        css.append(".table-block { background: " + c["card_bg"] + "; border-radius: 10px; padding: 16px; }")
        css.append("table { width: 100%; border-collapse: collapse; font-size: " + str(self.table_font_px) + "px; }")
        css.append("th { background: #f9fafb; padding: 8px 12px; text-align: left; font-size: 11px; ")
        css.append("text-transform: uppercase; letter-spacing: 0.5px; color: " + c["muted"] + "; }")
        css.append("td { padding: 8px 12px; border-top: 1px solid " + c["border"] + "; }")
        css.append(".right { text-align: right; }")
        css.append(".pager { font-size: 12px; color: " + c["muted"] + "; margin-top: 8px; }")

        head = []
        head.append("<!DOCTYPE html>")
        head.append('<html lang="fr">')
        head.append("<head>")
        head.append('<meta charset="UTF-8">')
        head.append("<title>" + _escape_html(model.title) + "</title>")
        head.append("<style>")
        head.append("\n".join(css))
        head.append("</style>")
        head.append("</head>")
        head.append("<body>")
        return "\n".join(head)

    def _build_export_header_html(self, model: ReportModel, context: ExportContext) -> str:
        meta = [
            "Période : " + _escape_html(context.date_range),
            "Généré le : " + context.generated_at.strftime("%d/%m/%Y %H:%M:%S"),
            "Onglet : " + _escape_html(model.tab),
            "Granularité : " + _escape_html(model.bucket.value),
        ]
        if model.tab == "geo" and context.geo_level:
            meta.append("Niveau : " + _escape_html(context.geo_level))
        if context.user:
            meta.append("Utilisateur : " + _escape_html(context.user))

        parts = []
        parts.append('<div class="export-only export-header">')
        parts.append(
            "<h1>" + _escape_html(context.product) + " – Rapport " + _escape_html(model.title)
            + '<span class="badge">Confidentiel</span></h1>'
        )
        parts.append('<div class="export-meta">' + " · ".join(meta) + "</div>")
        if model.filters_summary:
            parts.append(
                '<div class="export-meta">Filtres : ' + _escape_html(model.filters_summary) + "</div>"
            )
        parts.append("</div>")
        return "\n".join(parts)

    def _build_kpis_html(self, model: ReportModel) -> str:
        if not model.kpis:
            return ""
        parts = ['<div class="kpi-grid">']
        for card in model.kpis:
            parts.append('<div class="kpi-card">')
            parts.append('<div class="kpi-label">' + _escape_html(card.label) + "</div>")
            parts.append('<div class="kpi-value">' + _escape_html(card.display) + "</div>")
            parts.append("</div>")
        parts.append("</div>")
        return "\n".join(parts)

    def _build_chart_html(self, model: ReportModel) -> str:
        parts = ['<div class="chart-block">']
        parts.append("<h2>" + _escape_html(model.chart_title) + "</h2>")
        b64 = self.render_chart_png(model)
        if b64:
            parts.append(self._chart_img_tag(b64))
        else:
            parts.append('<div class="empty">Aucune donnée.</div>')
        parts.append("</div>")
        return "\n".join(parts)

    def _build_table_html(self, model: ReportModel) -> str:
        parts = ['<div class="table-block">', "<table>", "<thead><tr>"]
        for _key, title, align in model.columns:
            cls = ' class="right"' if align == "right" else ""
            parts.append("<th" + cls + ">" + _escape_html(title) + "</th>")
        parts.append("</tr></thead>")
        parts.append("<tbody>")
        for row in model.table.rows:
            cells = []
            for key, _title, align in model.columns:
                cls = ' class="right"' if align == "right" else ""
                cells.append("<td" + cls + ">" + _escape_html(row.get(key, "")) + "</td>")
            parts.append("<tr>" + "".join(cells) + "</tr>")
        if not model.table.rows:
            parts.append(
                '<tr><td class="empty" colspan="' + str(max(1, len(model.columns)))
                + '">Aucune donnée.</td></tr>'
            )
        parts.append("</tbody>")
        parts.append("</table>")
        window = model.table
        parts.append(
            '<div class="pager">Page ' + str(window.page) + " / " + str(window.page_count)
            + " · " + str(window.total) + " lignes</div>"
        )
        parts.append("</div>")
        return "\n".join(parts)
