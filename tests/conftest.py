"""Shared pytest fixtures for the GreenCart analytics tests."""

import sys
from datetime import timedelta, timezone
from pathlib import Path

import pytest

# Ensure project root is on sys.path so 'src' is importable.
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)


@pytest.fixture()
def paris_winter():
    """Fixed UTC+1 offset (Europe/Paris outside daylight saving)."""
    return timezone(timedelta(hours=1))


@pytest.fixture()
def sales_rows():
    """Line-level sales rows spread over three days and two companies."""
    return [
        {
            "order_id": 1, "item_id": 11, "created_at": "2025-01-06T09:00:00Z",
            "user_name": "Alice", "company_names": ["Ferme du Lac"],
            "bundle_title": "Panier légumes", "quantity": 2, "unit_price": 5.0,
            "line_total": 10.0,
        },
        {
            "order_id": 1, "item_id": 12, "created_at": "2025-01-06T09:00:00Z",
            "user_name": "Alice", "company_names": ["Boulangerie Nord"],
            "bundle_title": "Pain", "quantity": 1, "unit_price": 3.0,
            "line_total": 3.0,
        },
        {
            "order_id": 2, "item_id": 21, "created_at": "2025-01-07T15:30:00Z",
            "user_name": "Bob", "company_names": ["Ferme du Lac"],
            "bundle_title": "Panier fruits", "quantity": 3, "unit_price": 4.0,
            "line_total": 12.0,
        },
        {
            "order_id": 3, "item_id": 31, "created_at": "2025-01-08T08:15:00Z",
            "user_name": "Chloé", "company_names": ["Boulangerie Nord"],
            "bundle_title": "Viennoiseries", "quantity": 4, "unit_price": 1.5,
            "line_total": 6.0,
        },
    ]


@pytest.fixture()
def sales_payload(sales_rows):
    return {"rows": sales_rows, "summary": {"revenue": 31.0}}


class FakeClient:
    """Stand-in for ``AnalyticsClient`` returning canned payloads per tab."""

    def __init__(self, payloads=None, error=None):
        self.payloads = payloads or {}
        self.error = error
        self.calls = []

    async def fetch_tab(self, spec, bucket, level, date_from, date_to):
        self.calls.append((spec.key, bucket, level, date_from, date_to))
        if self.error is not None:
            raise self.error
        return self.payloads.get(spec.key, {"rows": []})


@pytest.fixture()
def fake_client_factory():
    return FakeClient
