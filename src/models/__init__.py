"""Value types and errors shared across the analytics package."""

from src.models.analytics import (
    AggregatedPoint,
    Bucket,
    GeoLevel,
    KpiCard,
    ReportModel,
    TableWindow,
    ViewMode,
)
from src.models.errors import (
    AnalyticsAPIError,
    AnalyticsError,
    CaptureError,
    ExportError,
    ExportInProgressError,
    InvalidBucketError,
    StaleDataError,
    UnknownTabError,
)
from src.models.export import PageGeometry, PageSlice, RasterCapture, RowBox

__all__ = [
    "AggregatedPoint",
    "Bucket",
    "GeoLevel",
    "KpiCard",
    "ReportModel",
    "TableWindow",
    "ViewMode",
    "AnalyticsAPIError",
    "AnalyticsError",
    "CaptureError",
    "ExportError",
    "ExportInProgressError",
    "InvalidBucketError",
    "StaleDataError",
    "UnknownTabError",
    "PageGeometry",
    "PageSlice",
    "RasterCapture",
    "RowBox",
]
