"""Typer CLI application for the GreenCart analytics dashboard.

Provides commands to print a tab's KPIs, chart series and table page, to
export a tab as a paginated PDF, to check configuration and to launch the
Streamlit dashboard.
"""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from src.models.errors import AnalyticsError
from src.utils.validators import validate_iso_date

console = Console()
app = typer.Typer(
    name="greencart",
    help="GreenCart analytics -- time-bucketed reports, filters & PDF export.",
    add_completion=False,
    no_args_is_help=True,
)

TAB_HELP = "Report tab (sales, orders, customers, carts, catalog, health, impact, payments, cohorts, geo, reviews)."


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging level and format."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context."""
    return asyncio.run(coro)


def _parse_filters(filters: Optional[list[str]]) -> list[tuple[str, str]]:
    """Split ``column=value`` options."""
    parsed = []
    for item in filters or []:
        column, sep, value = item.partition("=")
        if not sep or not column.strip():
            raise typer.BadParameter(f"Expected column=value, got {item!r}", param_hint="--filter")
        parsed.append((column.strip(), value))
    return parsed


def _load_session(
    tab: str,
    config: str,
    date_from: Optional[str],
    date_to: Optional[str],
    bucket: Optional[str],
    level: Optional[str],
    filters: Optional[list[str]],
    with_exporter: bool = False,
    view: Optional[str] = None,
):
    """Build a session for *tab*, apply the options and fetch the data."""
    from src.app import AnalyticsApp

    analytics = AnalyticsApp(config_path=config)
    session = analytics.create_session(with_exporter=with_exporter)
    try:
        session.set_tab(tab)
        for value in (date_from, date_to):
            if value:
                ok, err = validate_iso_date(value)
                if not ok:
                    raise ValueError(err)
        if date_from or date_to:
            session.set_dates(date_from or session.date_from, date_to or session.date_to)
        if bucket:
            session.set_bucket(bucket)
        if view:
            session.set_view_mode(view)
        if level:
            session.set_geo_level(level)
        for column, value in _parse_filters(filters):
            if column not in session.state(tab).filters.columns:
                console.print(f"[yellow]Unknown filter column {column!r} ignored.[/yellow]")
            session.toggle_filter(tab, column, value)
    except (AnalyticsError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2)

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task(description=f"Loading {tab} analytics...", total=None)
        _run_async(session.refresh(tab))

    state = session.state(tab)
    if state.error:
        console.print(f"[red]{state.error}[/red]")
        raise typer.Exit(code=1)
    return session


def _header(session, tab: str) -> None:
    spec = session.spec(tab)
    console.print(Panel(
        f"[bold cyan]{spec.label}[/bold cyan]  {session.date_from} → {session.date_to}"
        f"  [dim]bucket={session.bucket.value}[/dim]"
    ))


# ------------------------------------------------------------------
# Shared options
# ------------------------------------------------------------------
_FROM = typer.Option(None, "--from", help="Start date (YYYY-MM-DD).")
_TO = typer.Option(None, "--to", help="End date (YYYY-MM-DD).")
_BUCKET = typer.Option(None, "--bucket", "-b", help="day, week or month.")
_LEVEL = typer.Option(None, "--level", "-l", help="Geo level: region, department or city.")
_FILTER = typer.Option(None, "--filter", "-f", help="Column filter column=value (repeatable).")
_CONFIG = typer.Option("config/settings.yaml", "--config", "-c", help="Settings file.")
_VERBOSE = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")


# ------------------------------------------------------------------
# summary
# ------------------------------------------------------------------
@app.command()
def summary(
    tab: str = typer.Argument("sales", help=TAB_HELP),
    date_from: Optional[str] = _FROM,
    date_to: Optional[str] = _TO,
    bucket: Optional[str] = _BUCKET,
    level: Optional[str] = _LEVEL,
    filters: Optional[list[str]] = _FILTER,
    config: str = _CONFIG,
    verbose: bool = _VERBOSE,
) -> None:
    """Print the KPI cards of a report tab."""
    _setup_logging(verbose)
    session = _load_session(tab, config, date_from, date_to, bucket, level, filters)
    report = session.report(tab)
    _header(session, tab)

    table = Table(title="KPI", show_header=True, header_style="bold magenta")
    table.add_column("Indicateur", style="cyan", min_width=25)
    table.add_column("Valeur", justify="right")
    for card in report.kpis:
        table.add_row(card.label, card.display)
    console.print(table)
    if report.filters_summary:
        console.print(f"Filtres : {report.filters_summary}")


# ------------------------------------------------------------------
# series
# ------------------------------------------------------------------
@app.command()
def series(
    tab: str = typer.Argument("sales", help=TAB_HELP),
    date_from: Optional[str] = _FROM,
    date_to: Optional[str] = _TO,
    bucket: Optional[str] = _BUCKET,
    level: Optional[str] = _LEVEL,
    filters: Optional[list[str]] = _FILTER,
    sort: Optional[str] = typer.Option(None, "--sort", help="Catalog sort mode (e.g. sold-desc)."),
    config: str = _CONFIG,
    verbose: bool = _VERBOSE,
) -> None:
    """Print the chart series of a report tab."""
    _setup_logging(verbose)
    session = _load_session(tab, config, date_from, date_to, bucket, level, filters)
    if sort:
        session.set_sort(tab, sort)
    report = session.report(tab)
    _header(session, tab)

    if not report.measures:
        console.print("[yellow]This tab has no chart.[/yellow]")
        return
    table = Table(title=report.chart_title, show_header=True, header_style="bold magenta")
    table.add_column("Période", style="cyan")
    for _name, label in report.measures:
        table.add_column(label, justify="right")
    for point in report.series:
        table.add_row(point.period, *[f"{point.get(name):.2f}".rstrip("0").rstrip(".") for name, _ in report.measures])
    console.print(table)


# ------------------------------------------------------------------
# table
# ------------------------------------------------------------------
@app.command("table")
def show_table(
    tab: str = typer.Argument("sales", help=TAB_HELP),
    page: int = typer.Option(1, "--page", "-p", help="Table page (1-based)."),
    page_size: int = typer.Option(20, "--page-size", "-n", help="Rows per page (10, 20, 50, 100)."),
    date_from: Optional[str] = _FROM,
    date_to: Optional[str] = _TO,
    bucket: Optional[str] = _BUCKET,
    level: Optional[str] = _LEVEL,
    filters: Optional[list[str]] = _FILTER,
    config: str = _CONFIG,
    verbose: bool = _VERBOSE,
) -> None:
    """Print one page of a report tab's table."""
    _setup_logging(verbose)
    session = _load_session(tab, config, date_from, date_to, bucket, level, filters)
    try:
        session.set_page_size(tab, page_size)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2)
    session.set_page(tab, page)
    report = session.report(tab)
    _header(session, tab)

    table = Table(show_header=True, header_style="bold magenta")
    for _key, title, align in report.columns:
        table.add_column(title, justify="right" if align == "right" else "left")
    for row in report.table.rows:
        table.add_row(*[row.get(key, "") for key, _title, _align in report.columns])
    console.print(table)
    window = report.table
    console.print(f"Page {window.page} / {window.page_count} · {window.total} lignes")


# ------------------------------------------------------------------
# export
# ------------------------------------------------------------------
@app.command()
def export(
    tab: str = typer.Argument("sales", help=TAB_HELP),
    date_from: Optional[str] = _FROM,
    date_to: Optional[str] = _TO,
    bucket: Optional[str] = _BUCKET,
    level: Optional[str] = _LEVEL,
    filters: Optional[list[str]] = _FILTER,
    view: str = typer.Option("both", "--view", help="table, chart or both."),
    config: str = _CONFIG,
    verbose: bool = _VERBOSE,
) -> None:
    """Export a report tab as a paginated PDF."""
    _setup_logging(verbose)
    session = _load_session(
        tab, config, date_from, date_to, bucket, level, filters, with_exporter=True, view=view
    )

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task(description="Rendering and paginating PDF...", total=None)
        try:
            path = _run_async(session.export(tab))
        except AnalyticsError as exc:
            console.print(f"[red]Export failed: {exc}[/red]")
            raise typer.Exit(code=1)
    console.print(f"[green]✔ PDF written:[/green] {path}")


# ------------------------------------------------------------------
# dashboard
# ------------------------------------------------------------------
@app.command()
def dashboard(
    port: int = typer.Option(8501, "--port", "-p", help="Streamlit server port."),
    verbose: bool = _VERBOSE,
) -> None:
    """Launch the Streamlit analytics dashboard."""
    _setup_logging(verbose)
    console.print("[bold cyan]Launching dashboard on port " + str(port) + "...[/bold cyan]")
    import subprocess
    subprocess.run(
        ["streamlit", "run", "dashboard/app.py", "--server.port", str(port)],
        check=False,
    )


# ------------------------------------------------------------------
# status
# ------------------------------------------------------------------
@app.command()
def status(
    config: str = _CONFIG,
    verbose: bool = _VERBOSE,
) -> None:
    """Show configuration and component health."""
    _setup_logging(verbose)
    from src.app import AnalyticsApp

    statuses = AnalyticsApp(config_path=config).get_status()
    table = Table(title="GreenCart analytics status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", min_width=15)
    table.add_column("Status", min_width=12)
    table.add_column("Details", max_width=60)
    for name, info in statuses.items():
        state = info.get("status")
        if state == "ok":
            display = "[green]✔ OK[/green]"
        elif state == "warning":
            display = "[yellow]⚠ Warning[/yellow]"
        else:
            display = "[red]✘ Error[/red]"
        table.add_row(name.title(), display, str(info.get("details", "")))
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
