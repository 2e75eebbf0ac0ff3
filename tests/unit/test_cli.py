"""Unit tests for the command line interface."""

from click.testing import CliRunner

from finresearch.main import cli
from finresearch.persistence import SettingsStore


class TestCLI:
    """Test commands that need no network access."""

    def test_configure_persists_settings(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["configure", "--news-api-key", "abc123", "--region", "GB"])

        assert result.exit_code == 0, result.output
        assert "news_api_key: ***" in result.output
        assert "news_region: GB" in result.output

        settings = SettingsStore().load_settings()
        assert settings["news_api_key"] == "abc123"
        assert settings["news_region"] == "GB"

    def test_configure_llm_key(self):
        result = CliRunner().invoke(cli, ["configure", "--llm-key", "sk-cli", "--llm-model", "local"])

        assert result.exit_code == 0, result.output
        settings = SettingsStore().load_settings()
        assert settings["llm_api_key"] == "sk-cli"
        assert settings["llm_model"] == "local"

    def test_logs_empty(self):
        result = CliRunner().invoke(cli, ["logs"])
        assert result.exit_code == 0
        assert "No runs recorded yet" in result.output

    def test_logs_lists_and_clears_runs(self):
        store = SettingsStore()
        store.append_run_log("research", {"query": "AAPL news", "steps": [{"step": "plan"}, {"step": "news"}]})

        listed = CliRunner().invoke(cli, ["logs", "--limit", "5"])
        assert "[research] AAPL news" in listed.output
        assert "2 steps" in listed.output

        cleared = CliRunner().invoke(cli, ["logs", "--clear"])
        assert cleared.exit_code == 0
        assert store.get_run_logs() == []

    def test_status_without_keys(self):
        result = CliRunner().invoke(cli, ["status"])

        assert result.exit_code == 0, result.output
        assert "NewsAPI: ❌ Missing" in result.output
        assert "LLM: no_key" in result.output
