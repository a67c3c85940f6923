import yaml
from typer.testing import CliRunner

from chartfeed import cli
from chartfeed.cache import QueryCache
from chartfeed.client import MarketDataClient
from chartfeed.errors import HttpStatusError

runner = CliRunner()


def _config(tmp_path):
    cfg = tmp_path / "chartfeed.yaml"
    cfg.write_text(yaml.safe_dump({"prefs_db_path": str(tmp_path / "prefs.db")}))
    return str(cfg)


def test_pref_set_then_get(tmp_path):
    cfg = _config(tmp_path)
    result = runner.invoke(cli.app, ["pref-set", "theme", '"dark"', "--config", cfg])
    assert result.exit_code == 0
    assert "Saved theme" in result.output
    result = runner.invoke(cli.app, ["pref-get", "theme", "--config", cfg])
    assert result.exit_code == 0
    assert "dark" in result.output


def test_pref_get_default(tmp_path):
    result = runner.invoke(cli.app, ["pref-get", "missing", "--default", '["BTC"]', "--config", _config(tmp_path)])
    assert result.exit_code == 0
    assert "BTC" in result.output


def test_pref_set_rejects_non_json(tmp_path):
    result = runner.invoke(cli.app, ["pref-set", "theme", "dark", "--config", _config(tmp_path)])
    assert result.exit_code != 0


class FailingDispatcher:
    async def fetch(self, query):
        raise HttpStatusError(503)


def test_health_failure_exits_nonzero(monkeypatch, tmp_path):
    def fake_from_settings(settings, audit=None):
        return MarketDataClient(QueryCache(FailingDispatcher(), ttl=1), settings=settings)

    monkeypatch.setattr(cli.MarketDataClient, "from_settings", fake_from_settings)
    result = runner.invoke(cli.app, ["health", "--config", _config(tmp_path)])
    assert result.exit_code == 1
    assert "503" in result.output


def test_pref_get_rejects_non_json_default(tmp_path):
    result = runner.invoke(cli.app, ["pref-get", "theme", "--default", "dark", "--config", _config(tmp_path)])
    assert result.exit_code == 2
    assert not isinstance(result.exception, ValueError)
