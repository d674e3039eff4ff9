import json
from pathlib import Path

from click.testing import CliRunner

from api_spec_importer.cli import main

FIXTURES = Path(__file__).parent / "fixtures"


class TestCliConvert:
    def test_convert_to_stdout(self):
        runner = CliRunner()
        result = runner.invoke(main, ["convert", str(FIXTURES / "petstore.yaml")])

        assert result.exit_code == 0
        assert '"format": "openapi"' in result.output
        assert '"baseUrl": "https://eu.petstore.example.com/v1"' in result.output

    def test_convert_to_file(self, tmp_path):
        output_file = tmp_path / "out" / "shop.json"
        runner = CliRunner()
        result = runner.invoke(main, [
            "convert", str(FIXTURES / "shop.postman.json"),
            "-o", str(output_file),
        ])

        assert result.exit_code == 0
        data = json.loads(output_file.read_text(encoding="utf-8"))
        assert data["variables"]["baseUrl"] == "https://api.shop.com"
        assert data["endpoints"][0]["request"]["parameters"][0]["in"] == "query"

    def test_convert_curl_file(self, tmp_path):
        doc = tmp_path / "request.sh"
        doc.write_text("curl -X POST https://api.example.com/users -d '{\"name\": \"John\"}'")
        output_file = tmp_path / "curl.json"
        runner = CliRunner()
        result = runner.invoke(main, ["convert", str(doc), "-o", str(output_file), "--format", "curl"])

        assert result.exit_code == 0
        data = json.loads(output_file.read_text(encoding="utf-8"))
        assert data["endpoints"][0]["request"]["contentType"] == "application/json"

    def test_convert_format_mismatch(self):
        runner = CliRunner()
        result = runner.invoke(main, [
            "convert", str(FIXTURES / "petstore.yaml"),
            "--format", "postman",
        ])

        assert result.exit_code == 1
        assert "Expected postman but detected openapi" in result.output

    def test_convert_missing_file(self):
        runner = CliRunner()
        result = runner.invoke(main, ["convert", "does-not-exist.json"])
        assert result.exit_code == 2


class TestCliDetect:
    def test_detect_swagger(self):
        runner = CliRunner()
        result = runner.invoke(main, ["detect", str(FIXTURES / "swagger_petstore.json")])

        assert result.exit_code == 0
        assert result.output.startswith("swagger 2.0 (confidence 100%)")

    def test_detect_unknown(self, tmp_path):
        doc = tmp_path / "notes.md"
        doc.write_text("# API Docs\nSome text")
        runner = CliRunner()
        result = runner.invoke(main, ["detect", str(doc)])

        assert result.exit_code == 1
        assert result.output.startswith("unknown")


class TestCliInfo:
    def test_info_postman(self):
        runner = CliRunner()
        result = runner.invoke(main, ["info", str(FIXTURES / "shop.postman.json")])

        assert result.exit_code == 0
        assert "Name: Shop API" in result.output
        assert "Endpoints: 7" in result.output
        assert "GET     /products" in result.output

    def test_log_level_option(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--log-level", "debug", "detect", str(FIXTURES / "petstore.yaml")])
        assert result.exit_code == 0
        assert "openapi 3.0.3" in result.output
