"""Exception hierarchy shared by the analytics, reporting and export layers."""

from typing import Any, Optional


class AnalyticsError(Exception):
    """Base class for every error raised by the analytics package."""


class AnalyticsAPIError(AnalyticsError):
    """Non-2xx response from the analytics backend.

    The decoded response body (JSON when possible, raw text otherwise) is
    kept on the exception so callers can surface server-side messages.
    """

    def __init__(self, status_code: int, url: str, body: Any = None):
        self.status_code = status_code
        self.url = url
        self.body = body
        super().__init__(f"HTTP {status_code} for {url}")


class InvalidBucketError(AnalyticsError, ValueError):
    """Raised when a bucket value is not one of day / week / month."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Unknown bucket: {value!r}. Expected day, week or month.")


class UnknownTabError(AnalyticsError, KeyError):
    """Raised when a report tab key has no registered projection spec."""

    def __init__(self, tab: str):
        self.tab = tab
        super().__init__(tab)

    def __str__(self) -> str:
        return f"Unknown report tab: {self.tab!r}"


class CaptureError(AnalyticsError):
    """The rendered report container could not be rasterized."""


class ExportError(AnalyticsError):
    """Slicing or writing the paginated document failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class ExportInProgressError(AnalyticsError):
    """A second export was requested while one is still running."""

    def __init__(self, tab: str):
        self.tab = tab
        super().__init__(f"An export is already running (tab={tab!r}).")


class StaleDataError(AnalyticsError):
    """A tab's data was fetched for other toolbar parameters than the current ones."""

    def __init__(self, tab: str):
        self.tab = tab
        super().__init__(f"Data of tab {tab!r} is out of date; reload it first.")
