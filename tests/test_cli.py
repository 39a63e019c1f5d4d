from pathlib import Path
from unittest.mock import patch

import yaml
from click.testing import CliRunner

from routedoc.cli import main
from routedoc.errors import DocumentWriteError

FIXTURES = Path(__file__).parent / "fixtures"
PROJECT = FIXTURES / "project"
CONFIG = PROJECT / "routedoc.yaml"


class TestCliGenerate:
    def test_generate_from_config(self, tmp_path):
        output_dir = tmp_path / "docs"
        runner = CliRunner()
        result = runner.invoke(main, ["generate", "-c", str(CONFIG), "-o", str(output_dir)])

        assert result.exit_code == 0, result.output
        assert "Found 7 endpoints." in result.output
        document = yaml.safe_load((output_dir / "openapi-docs.yml").read_text(encoding="utf-8"))
        assert document["info"] == {"title": "Fixture API", "version": "2.0.0"}
        assert document["servers"] == [{"url": "https://api.example.com/api/v1", "description": "production"}]
        assert "/admin/reports/{year}" in document["paths"]

    def test_command_line_overrides(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, [
            "generate", "-c", str(CONFIG),
            "-o", str(tmp_path),
            "--title", "Override",
            "--api-version", "3.1.4",
            "--server", "http://localhost:8000",
        ])

        assert result.exit_code == 0, result.output
        document = yaml.safe_load((tmp_path / "openapi-docs.yml").read_text(encoding="utf-8"))
        assert document["info"]["title"] == "Override"
        assert document["info"]["version"] == "3.1.4"
        assert document["servers"] == [{"url": "http://localhost:8000"}]

    def test_router_argument_without_config(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, [
            "generate", str(PROJECT / "routes" / "index.ts"),
            "-s", str(PROJECT / "schemas"),
            "-o", str(tmp_path),
        ])

        assert result.exit_code == 0, result.output
        document = yaml.safe_load((tmp_path / "openapi-docs.yml").read_text(encoding="utf-8"))
        assert "/api/v1/users" in document["paths"]
        assert document["info"]["title"] == "API"

    def test_deny_keeps_middleware_out_of_summary(self, tmp_path):
        router = tmp_path / "main.ts"
        router.write_text("const r = new Router();\nr.get('/', audit, list);\napp.use('/r', r.routes());\n")
        runner = CliRunner()
        result = runner.invoke(main, ["generate", str(router), "-o", str(tmp_path), "--deny", "audit"])

        assert result.exit_code == 0, result.output
        document = yaml.safe_load((tmp_path / "openapi-docs.yml").read_text(encoding="utf-8"))
        assert document["paths"]["/r"]["get"]["summary"] == "list"

    def test_missing_schema_fails(self, tmp_path):
        router = tmp_path / "main.ts"
        router.write_text(
            "const r = new Router();\n"
            "r.post('/', validateBody(schemas.missing), create);\n"
            "app.use('/r', r.routes());\n"
        )
        runner = CliRunner()
        result = runner.invoke(main, ["generate", str(router), "-s", str(tmp_path), "-o", str(tmp_path / "out")])

        assert result.exit_code == 1
        assert "cannot resolve schema schemas.missing" in result.output
        assert not (tmp_path / "out").exists()

    def test_no_router_is_usage_error(self):
        runner = CliRunner()
        result = runner.invoke(main, ["generate"])

        assert result.exit_code == 2
        assert "No router file given" in result.output

    @patch("routedoc.cli.write_document")
    def test_write_failure_reported(self, mock_write, tmp_path):
        mock_write.side_effect = DocumentWriteError("disk full")
        runner = CliRunner()
        result = runner.invoke(main, ["generate", "-c", str(CONFIG), "-o", str(tmp_path)])

        assert result.exit_code == 1
        assert "disk full" in result.output
        mock_write.assert_called_once()


class TestCliRoutes:
    def test_lists_endpoints(self):
        runner = CliRunner()
        result = runner.invoke(main, ["routes", "-c", str(CONFIG)])

        assert result.exit_code == 0, result.output
        lines = [line for line in result.output.splitlines() if line.split()[:1] in (["GET"], ["POST"], ["PUT"], ["DELETE"])]
        assert len(lines) == 7
        assert lines[0].split() == ["GET", "/users", "listUsers", "[usersRouter]"]
        assert lines[-1].split() == ["GET", "/admin/reports/{year}", "getReport", "[reportsRouter]"]
