"""CLI smoke tests via typer's CliRunner."""

import pytest
from typer.testing import CliRunner

from src.cli import app

runner = CliRunner()


@pytest.fixture()
def settings_file(tmp_path, monkeypatch):
    for var in ("GREENCART_API_URL", "GREENCART_API_TOKEN", "GREENCART_DASHBOARD_SCOPE", "GREENCART_USER"):
        monkeypatch.delenv(var, raising=False)
    path = tmp_path / "settings.yaml"
    path.write_text(
        "api:\n  base_url: http://localhost:8000\n"
        "analytics:\n  scope: admin\n  timezone: Europe/Paris\n"
        "export:\n  output_dir: " + str(tmp_path / "exports") + "\n",
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture()
def patched_client(monkeypatch, fake_client_factory, sales_payload):
    client = fake_client_factory({"sales": sales_payload})
    monkeypatch.setattr("src.app.AnalyticsApp.create_client", lambda self, transport=None: client)
    return client


class TestHelp:

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "GreenCart analytics" in result.output

    @pytest.mark.parametrize("command", [
        "summary", "series", "table", "export", "dashboard", "status",
    ])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0, result.output


class TestCommands:

    def test_summary_with_filter(self, settings_file, patched_client):
        result = runner.invoke(app, [
            "summary", "sales", "--from", "2025-01-01", "--to", "2025-01-31",
            "-f", "company=Ferme du Lac", "-c", settings_file,
        ])
        assert result.exit_code == 0, result.output
        assert "22.00€" in result.output
        assert patched_client.calls[0][3:] == ("2025-01-01", "2025-01-31")

    def test_series(self, settings_file, patched_client):
        result = runner.invoke(app, ["series", "sales", "--bucket", "week", "-c", settings_file])
        assert result.exit_code == 0, result.output
        assert "2025-W02" in result.output

    def test_table_rejects_bad_page_size(self, settings_file, patched_client):
        result = runner.invoke(app, ["table", "sales", "--page-size", "7", "-c", settings_file])
        assert result.exit_code == 2

    def test_bad_filter_syntax(self, settings_file, patched_client):
        result = runner.invoke(app, ["summary", "sales", "-f", "company", "-c", settings_file])
        assert result.exit_code == 2

    def test_bad_date(self, settings_file, patched_client):
        result = runner.invoke(app, ["summary", "sales", "--from", "01/02/2025", "-c", settings_file])
        assert result.exit_code == 2
        assert patched_client.calls == []

    def test_export_rejects_unknown_view(self, settings_file, patched_client):
        result = runner.invoke(app, ["export", "sales", "--view", "bogus", "-c", settings_file])
        assert result.exit_code == 2
        assert not isinstance(result.exception, ValueError)
        assert patched_client.calls == []

    def test_unknown_tab(self, settings_file, patched_client):
        result = runner.invoke(app, ["summary", "category", "-c", settings_file])
        assert result.exit_code == 2

    def test_load_error(self, settings_file, patched_client):
        patched_client.error = ValueError("bad json")
        result = runner.invoke(app, ["summary", "sales", "-c", settings_file])
        assert result.exit_code == 1
        assert "Erreur lors du chargement." in result.output

    def test_status(self, settings_file):
        result = runner.invoke(app, ["status", "-c", settings_file])
        assert result.exit_code == 0, result.output
        assert "Api" in result.output
