import json

import pytest
from click.testing import CliRunner
from loguru import logger

from regroute.cli.main import cli

CATALOG = {
    "services": [
        {
            "name": "api",
            "attributes": ["traefik.frontend.entryPoints=https"],
            "instances": [
                {
                    "address": "10.0.0.1",
                    "port": 8080,
                    "tags": ["traefik.backend.weight=5"],
                }
            ],
        },
        {
            "name": "hidden",
            "instances": [
                {"address": "10.0.0.2", "port": 80, "tags": ["traefik.enable=false"]}
            ],
        },
    ]
}


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger.remove()


@pytest.fixture
def catalog_path(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(CATALOG))
    return path


class TestCLI:
    def test_cli_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "render" in result.output
        assert "watch" in result.output

    def test_render_json(self, catalog_path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["render", str(catalog_path), "--domain", "example.org"]
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert list(payload["frontends"]) == ["frontend-api"]
        frontend = payload["frontends"]["frontend-api"]
        assert frontend["routes"] == {
            "route-host-api": {"rule": "Host:api.example.org"}
        }
        assert frontend["entry_points"] == ["https"]
        assert payload["backends"]["backend-api"]["servers"] == {
            "api--10-0-0-1--8080--traefik-backend-weight-5--0": {
                "url": "http://10.0.0.1:8080",
                "weight": 5,
            }
        }

    def test_render_with_settings_file(self, catalog_path, tmp_path):
        settings = tmp_path / "regroute.toml"
        settings.write_text(
            '[regroute]\ndomain = "internal"\nexposed_by_default = false\n'
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["render", str(catalog_path), "-c", str(settings)])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"frontends": {}, "backends": {}}

        result = runner.invoke(
            cli,
            [
                "render",
                str(catalog_path),
                "-c",
                str(settings),
                "--exposed-by-default",
                "--rule",
                "PathPrefix:/{{.ServiceName}}",
            ],
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["frontends"]["frontend-api"]["routes"] == {
            "route-pathprefix-api": {"rule": "PathPrefix:/api"}
        }

    def test_render_table(self, catalog_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["render", str(catalog_path), "--output", "table"])
        assert result.exit_code == 0, result.output
        assert "Routing configuration" in result.output

    def test_render_rejects_bad_rule(self, catalog_path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["render", str(catalog_path), "--rule", "Host:{{ .ServiceName"]
        )
        assert result.exit_code != 0
        assert "Invalid frontend rule template" in result.output

    def test_render_rejects_bad_catalog(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text('"just a string"')
        runner = CliRunner()
        result = runner.invoke(cli, ["render", str(path)])
        assert result.exit_code != 0

    def test_watch_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["watch", "--help"])
        assert result.exit_code == 0
        assert "--endpoint" in result.output

    def test_log_level_from_settings_file(self, catalog_path, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["render", str(catalog_path)])
        assert result.exit_code == 0, result.output
        assert "has no exposed instances" not in result.output

        settings = tmp_path / "regroute.toml"
        settings.write_text('[regroute]\nlog_level = "debug"\n')
        result = runner.invoke(cli, ["render", str(catalog_path), "-c", str(settings)])
        assert result.exit_code == 0, result.output
        assert "Service hidden has no exposed instances" in result.output

    def test_verbose_overrides_settings_log_level(self, catalog_path, tmp_path):
        settings = tmp_path / "regroute.toml"
        settings.write_text('[regroute]\nlog_level = "ERROR"\n')
        runner = CliRunner()
        result = runner.invoke(
            cli, ["-v", "render", str(catalog_path), "-c", str(settings)]
        )
        assert result.exit_code == 0, result.output
        assert "Service hidden has no exposed instances" in result.output

    def test_unknown_log_level_is_rejected(self, catalog_path, tmp_path):
        settings = tmp_path / "regroute.toml"
        settings.write_text('[regroute]\nlog_level = "LOUD"\n')
        runner = CliRunner()
        result = runner.invoke(cli, ["render", str(catalog_path), "-c", str(settings)])
        assert result.exit_code != 0
        assert "Unknown log level" in result.output
