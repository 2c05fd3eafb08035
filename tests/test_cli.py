"""
CLI tests: command parsing, config resolution and the fetch command
against an upstream served by httpx.MockTransport.
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest
import yaml
from click.testing import CliRunner

from animegate import __version__
from animegate.cli import cli
from animegate.upstream import UpstreamClient, build_coordinator


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def disable_config_autoload(monkeypatch):
    """Disable config auto-loading in all CLI tests."""
    monkeypatch.setattr("animegate.cli.app.find_config", lambda: None)


def make_upstream_factory(routes, seen):
    """Patchable UpstreamClient stand-in whose from_config builds a mocked client."""
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        status, body = routes.get(request.url.path, (404, "not found"))
        return httpx.Response(status, text=body)

    def from_config(cfg):
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        coordinator = build_coordinator(
            ttl=cfg.upstream_ttl_seconds,
            interval_ms=cfg.upstream_interval_ms,
            fetch_timeout=cfg.upstream_fetch_timeout,
            name="upstream",
        )
        return UpstreamClient(coordinator, "https://anime.example", "test", http_client=http)

    factory = MagicMock()
    factory.from_config.side_effect = from_config
    return factory


class TestVersionCommand:
    """Test 'animegate version'."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_version_option(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestConfigCommand:
    """Test 'animegate config'."""

    def test_defaults(self, runner):
        result = runner.invoke(cli, ["config", "--raw"])
        assert result.exit_code == 0
        data = yaml.safe_load(result.output)
        assert data["upstream"]["interval_ms"] == 500
        assert data["client"]["ttl_seconds"] == 600

    def test_explicit_config_file(self, runner, tmp_path):
        path = tmp_path / "gate.yaml"
        path.write_text("upstream:\n  interval_ms: 1200\n", encoding="utf-8")
        result = runner.invoke(cli, ["-c", str(path), "config", "--raw"])
        assert result.exit_code == 0
        assert yaml.safe_load(result.output)["upstream"]["interval_ms"] == 1200

    def test_invalid_config_file(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("upstream:\n  interval_ms: -5\n", encoding="utf-8")
        result = runner.invoke(cli, ["-c", str(path), "config"])
        assert result.exit_code == 1
        assert "Error" in result.output


class TestFindConfig:
    """Config discovery order."""

    def test_env_var(self, monkeypatch, tmp_path):
        from animegate.cli import app as app_module

        path = tmp_path / "env.yaml"
        path.write_text("{}", encoding="utf-8")
        monkeypatch.undo()  # restore the real find_config
        monkeypatch.setenv("ANIMEGATE_CONFIG", str(path))
        assert app_module.find_config() == str(path)

    def test_project_config(self, monkeypatch, tmp_path):
        from animegate.cli import app as app_module

        monkeypatch.undo()
        monkeypatch.delenv("ANIMEGATE_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        (tmp_path / ".animegate.yaml").write_text("{}", encoding="utf-8")
        assert app_module.find_config() == str(tmp_path / ".animegate.yaml")


class TestFetchCommand:
    """Test 'animegate fetch'."""

    def test_repeat_hits_cache(self, runner):
        seen = []
        factory = make_upstream_factory({"/anime/home": (200, "<html>home</html>")}, seen)
        with patch("animegate.cli.commands.fetch.UpstreamClient", factory):
            result = runner.invoke(
                cli,
                ["fetch", "/anime/home", "--repeat", "3", "--interval-ms", "0"],
                catch_exceptions=False,
            )
        assert result.exit_code == 0
        assert seen == ["/anime/home"]
        assert "cache hits" in result.output

    def test_overrides_reach_config(self, runner):
        factory = make_upstream_factory({"/anime/home": (200, "home")}, [])
        with patch("animegate.cli.commands.fetch.UpstreamClient", factory):
            result = runner.invoke(cli, ["fetch", "/anime/home", "--interval-ms", "0", "--ttl", "5"])
        assert result.exit_code == 0
        cfg = factory.from_config.call_args.args[0]
        assert cfg.upstream_interval_ms == 0
        assert cfg.upstream_ttl_seconds == 5

    def test_failure_exit_code(self, runner):
        seen = []
        factory = make_upstream_factory({}, seen)
        with patch("animegate.cli.commands.fetch.UpstreamClient", factory):
            result = runner.invoke(cli, ["fetch", "/anime/missing", "--interval-ms", "0"])
        assert result.exit_code == 1
        assert "error" in result.output

    def test_concurrent(self, runner):
        seen = []
        routes = {"/anime/home": (200, "h"), "/anime/genre": (200, "g")}
        factory = make_upstream_factory(routes, seen)
        with patch("animegate.cli.commands.fetch.UpstreamClient", factory):
            result = runner.invoke(
                cli,
                ["fetch", "/anime/home", "/anime/genre", "--concurrent", "--interval-ms", "0"],
            )
        assert result.exit_code == 0
        assert seen == ["/anime/home", "/anime/genre"]

    def test_requires_path(self, runner):
        result = runner.invoke(cli, ["fetch"])
        assert result.exit_code != 0
