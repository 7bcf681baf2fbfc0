"""Main application wiring for the GreenCart analytics dashboard."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo

import yaml
from dotenv import load_dotenv

from src.models.analytics import Bucket
from src.models.export import PageGeometry
from src.utils.validators import validate_url

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/settings.yaml"


@dataclass
class ExportConfig:
    product: str = "GreenCart"
    output_dir: str = "data/exports"
    page: PageGeometry = field(default_factory=PageGeometry)
    device_scale_factor: float = 2.0
    min_advance_px: int = 100
    min_row_height_px: float = 4.0
    viewport_width: int = 1280
    all_rows: bool = False


@dataclass
class AnalyticsConfig:
    """Resolved configuration, passed explicitly to every component."""

    base_url: str = "http://localhost:8000"
    token: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 2
    scope: str = "admin"
    timezone: str = "Europe/Paris"
    default_bucket: Bucket = Bucket.DAY
    page_size: int = 20
    user: Optional[str] = None
    export: ExportConfig = field(default_factory=ExportConfig)

    @property
    def show_producer(self) -> bool:
        """The producer column only appears in the producer dashboard."""
        return self.scope == "producer"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalyticsConfig":
        """Build a config from the YAML structure, with env overrides."""
        api = data.get("api", {}) or {}
        analytics = data.get("analytics", {}) or {}
        export = data.get("export", {}) or {}
        margins = export.get("margins", {}) or {}
        page = export.get("page", {}) or {}

        defaults = PageGeometry()
        geometry = PageGeometry(
            width=float(page.get("width", defaults.width)),
            height=float(page.get("height", defaults.height)),
            margin_top=float(margins.get("top", defaults.margin_top)),
            margin_bottom=float(margins.get("bottom", defaults.margin_bottom)),
            margin_left=float(margins.get("left", defaults.margin_left)),
            margin_right=float(margins.get("right", defaults.margin_right)),
        )
        export_cfg = ExportConfig(
            product=export.get("product", "GreenCart"),
            output_dir=export.get("output_dir", "data/exports"),
            page=geometry,
            device_scale_factor=float(export.get("device_scale_factor", 2)),
            min_advance_px=int(export.get("min_advance_px", 100)),
            min_row_height_px=float(export.get("min_row_height_px", 4)),
            viewport_width=int(export.get("viewport_width", 1280)),
            all_rows=bool(export.get("all_rows", False)),
        )
        return cls(
            base_url=os.getenv("GREENCART_API_URL") or api.get("base_url", "http://localhost:8000"),
            token=os.getenv("GREENCART_API_TOKEN") or api.get("token") or None,
            timeout=float(api.get("timeout", 30)),
            max_retries=int(api.get("max_retries", 2)),
            scope=os.getenv("GREENCART_DASHBOARD_SCOPE") or analytics.get("scope", "admin"),
            timezone=analytics.get("timezone", "Europe/Paris"),
            default_bucket=Bucket.parse(analytics.get("default_bucket", "day")),
            page_size=int(analytics.get("page_size", 20)),
            user=os.getenv("GREENCART_USER") or analytics.get("user"),
            export=export_cfg,
        )


def load_config(
    config_path: str = DEFAULT_CONFIG_PATH,
    env_path: str = ".env",
) -> AnalyticsConfig:
    """Load ``.env`` and the YAML settings file into an ``AnalyticsConfig``."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)
        logger.info("Loaded environment from %s", env_path)

    config_file = Path(config_path)
    if not config_file.exists():
        logger.warning("Config file not found: %s, using defaults.", config_path)
        data: dict[str, Any] = {}
    else:
        with open(config_file, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        logger.info("Configuration loaded from %s", config_path)
    return AnalyticsConfig.from_dict(data)


class AnalyticsApp:
    """Central application class that wires client, session and exporter.

    Usage::

        app = AnalyticsApp()
        session = app.create_session()
        await session.refresh("sales")
        report = session.report("sales")
    """

    def __init__(
        self,
        config_path: str = DEFAULT_CONFIG_PATH,
        env_path: str = ".env",
        config: Optional[AnalyticsConfig] = None,
    ):
        self._config_path = config_path
        self._env_path = env_path
        self.config: Optional[AnalyticsConfig] = config

    def initialize(self) -> AnalyticsConfig:
        if self.config is None:
            self.config = load_config(self._config_path, self._env_path)
        return self.config

    def create_client(self, transport=None):
        from src.integrations.analytics_api import AnalyticsClient

        cfg = self.initialize()
        return AnalyticsClient(
            cfg.base_url,
            token=cfg.token,
            scope=cfg.scope,
            timeout=cfg.timeout,
            max_retries=cfg.max_retries,
            transport=transport,
        )

    def create_exporter(self):
        from src.integrations.browser_capture import PlaywrightCapturer
        from src.modules.reporting import ExportPaginator, ReportExporter, ReportRenderer

        cfg = self.initialize()
        exp = cfg.export
        return ReportExporter(
            capturer=PlaywrightCapturer(
                device_scale_factor=exp.device_scale_factor,
                viewport_width=exp.viewport_width + 80,
            ),
            renderer=ReportRenderer(viewport_width=exp.viewport_width),
            paginator=ExportPaginator(
                geometry=exp.page,
                min_advance=exp.min_advance_px,
                min_row_height=exp.min_row_height_px,
            ),
            output_dir=exp.output_dir,
            product=exp.product,
        )

    def create_session(self, client=None, exporter=None, with_exporter: bool = True):
        from src.modules.analytics.session import DashboardSession

        cfg = self.initialize()
        return DashboardSession(
            client=client or self.create_client(),
            exporter=exporter or (self.create_exporter() if with_exporter else None),
            tz=cfg.tzinfo,
            show_producer=cfg.show_producer,
            page_size=cfg.page_size,
            default_bucket=cfg.default_bucket,
            export_all_rows=cfg.export.all_rows,
            user=cfg.user,
            product=cfg.export.product,
        )

    def get_status(self) -> dict[str, dict[str, Any]]:
        """Return configuration health of the major components."""
        cfg = self.initialize()
        status: dict[str, dict[str, Any]] = {}

        ok, err = validate_url(cfg.base_url)
        status["api"] = {
            "status": "ok" if ok else "error",
            "details": cfg.base_url if ok else err,
        }
        status["auth"] = {
            "status": "ok" if cfg.token else "warning",
            "details": "bearer token configured" if cfg.token else "no GREENCART_API_TOKEN set",
        }
        try:
            cfg.tzinfo
            status["timezone"] = {"status": "ok", "details": cfg.timezone}
        except Exception as exc:
            status["timezone"] = {"status": "error", "details": str(exc)}
        status["scope"] = {"status": "ok", "details": cfg.scope}

        out_dir = Path(cfg.export.output_dir)
        status["exports"] = {
            "status": "ok" if out_dir.exists() else "warning",
            "details": str(out_dir) if out_dir.exists() else f"{out_dir} (created on first export)",
        }
        try:
            import playwright  # noqa: F401
            status["browser"] = {"status": "ok", "details": "playwright installed"}
        except ImportError:
            status["browser"] = {"status": "error", "details": "playwright not installed"}
        return status
