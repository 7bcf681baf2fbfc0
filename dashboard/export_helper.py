"""PDF export helper for the dashboard pages."""

import logging
from typing import Any, Callable

from src.models.errors import AnalyticsError, ExportInProgressError

logger = logging.getLogger(__name__)


def export_report_pdf(session, tab: str, run_async: Callable) -> dict[str, Any]:
    """Export *tab* through the session and return the bytes for download.

    Returns:
        Dict with ``data`` and ``file_name`` on success, or ``error``.
    """
    try:
        path = run_async(session.export(tab))
    except ExportInProgressError:
        return {"error": "Un export est déjà en cours."}
    except AnalyticsError as exc:
        logger.error("Dashboard export of %s failed: %s", tab, exc)
        return {"error": f"Échec de l'export : {exc}"}

    with open(path, "rb") as fh:
        data = fh.read()
    return {"data": data, "file_name": path.name, "path": str(path)}
