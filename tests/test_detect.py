import json
from pathlib import Path

from api_spec_importer.parser.detect import (
    CurlText,
    OpenApiDocument,
    PostmanDocument,
    SwaggerDocument,
    detect_document,
    detect_format,
    extract_basic_info,
    load_document,
    validate_format,
)

FIXTURES = Path(__file__).parent / "fixtures"


def _read(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class TestDetectFormat:
    def test_detect_openapi_yaml(self):
        result = detect_format(_read("petstore.yaml"))
        assert result.format == "openapi"
        assert result.version == "3.0.3"
        assert result.confidence == 1.0

    def test_detect_openapi_json(self):
        assert detect_format('{"openapi": "3.1.0", "info": {}}').format == "openapi"

    def test_detect_swagger(self):
        result = detect_format(_read("swagger_petstore.json"))
        assert result.format == "swagger"
        assert result.version == "2.0"

    def test_detect_postman(self):
        result = detect_format(_read("shop.postman.json"))
        assert result.format == "postman"
        assert result.version == "2.1.0"

    def test_detect_postman_without_schema_url(self):
        content = json.dumps({"info": {"name": "x", "_postman_id": "1"}, "item": []})
        result = detect_format(content)
        assert result.format == "postman"
        assert result.version is None
        assert result.confidence < 1.0

    def test_detect_curl(self):
        assert detect_format("  curl https://api.example.com/users\n").format == "curl"
        assert detect_format("CURL -X POST https://api.example.com").format == "curl"
        assert detect_format("curl -H 'Content-Type: application/json' https://a.example.com").format == "curl"

    def test_curl_must_be_a_token(self):
        assert detect_format("curlish https://api.example.com").format == "unknown"

    def test_detect_unknown(self):
        assert detect_format("# API Docs\nSome text").format == "unknown"
        assert detect_format("{}").format == "unknown"
        assert detect_format("").format == "unknown"
        assert detect_format("{not json").details == "Not valid JSON and not a cURL command"

    def test_document_variants(self):
        assert isinstance(detect_document('{"openapi": "3.0.0"}')[1], OpenApiDocument)
        assert isinstance(detect_document('{"swagger": "2.0"}')[1], SwaggerDocument)
        assert isinstance(detect_document(_read("shop.postman.json"))[1], PostmanDocument)
        curl = detect_document("curl https://x.example.com")[1]
        assert isinstance(curl, CurlText)
        assert curl.text == "curl https://x.example.com"
        assert detect_document("hello")[1] is None


class TestLoadDocument:
    def test_json_and_yaml(self):
        assert load_document('{"a": 1}') == {"a": 1}
        assert load_document("a: 1\nb: [x]") == {"a": 1, "b": ["x"]}

    def test_invalid_returns_none(self):
        assert load_document("a: [1, 2") is None


class TestValidateFormat:
    def test_valid_documents(self):
        assert validate_format(_read("petstore.yaml"), "openapi") == (True, [])
        assert validate_format(_read("shop.postman.json"), "postman") == (True, [])
        assert validate_format("curl https://x.example.com", "curl") == (True, [])

    def test_mismatch(self):
        valid, errors = validate_format(_read("petstore.yaml"), "swagger")
        assert valid is False
        assert errors == ["Expected swagger but detected openapi"]

    def test_openapi_missing_info_and_paths(self):
        valid, errors = validate_format('{"openapi": "3.0.3"}', "openapi")
        assert valid is False
        assert 'Missing "info" object' in errors
        assert 'Missing "paths" object (no endpoints defined)' in errors

    def test_schemas_only_document(self):
        content = json.dumps({
            "openapi": "3.0.0",
            "info": {"title": "Models", "version": "1"},
            "components": {"schemas": {"Pet": {"type": "object"}}},
        })
        assert validate_format(content, "openapi") == (True, [])

    def test_postman_without_items(self):
        content = json.dumps({
            "info": {"name": "x", "schema": "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"},
            "item": [],
        })
        valid, errors = validate_format(content, "postman")
        assert valid is False
        assert errors == ["Collection has no items (requests)"]


class TestExtractBasicInfo:
    def test_openapi(self):
        info = extract_basic_info(_read("petstore.yaml"))
        assert info == {"name": "Petstore", "version": "1.2.0", "description": "A sample pet store"}

    def test_postman(self):
        info = extract_basic_info(_read("shop.postman.json"))
        assert info["name"] == "Shop API"
        assert info["version"] == "1.0.0"

    def test_curl(self):
        info = extract_basic_info("curl -X GET 'https://api.example.com/users?page=1'")
        assert info["name"] == "cURL: https://api.example.com/users?page=1"

    def test_unknown(self):
        assert extract_basic_info("nothing here") == {}
