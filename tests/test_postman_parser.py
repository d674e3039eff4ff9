import json
from pathlib import Path

from api_spec_importer import diagnostics
from api_spec_importer.parser.postman import (
    MAX_FOLDER_DEPTH,
    convert_postman_auth,
    convert_postman_item,
    convert_postman_to_canonical,
    extract_variables,
    parse_postman_url,
)

FIXTURES = Path(__file__).parent / "fixtures"


def _collection() -> dict:
    return json.loads((FIXTURES / "shop.postman.json").read_text(encoding="utf-8"))


def _by_name(spec, name):
    return [e for e in spec.endpoints if e.name == name][0]


class TestPostmanParser:
    def test_parse_collection(self):
        spec = convert_postman_to_canonical(_collection())
        assert spec.name == "Shop API"
        assert spec.description == "Endpoints of the shop backend"
        assert spec.format == "postman"
        assert len(spec.endpoints) == 7
        assert all(e.source == "postman" for e in spec.endpoints)

    def test_folders_flattened_without_folder_tags(self):
        spec = convert_postman_to_canonical(_collection())
        assert [e.name for e in spec.endpoints] == [
            "List products", "Get product", "Create product", "Upload image", "Login", "Health", "Me",
        ]
        assert all(e.tags == ["imported"] for e in spec.endpoints)

    def test_variables_and_base_url(self):
        spec = convert_postman_to_canonical(_collection())
        assert spec.variables == {"baseUrl": "https://api.shop.com", "pageSize": "20"}
        assert spec.base_url == "https://api.shop.com"

    def test_query_parameters(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "List products")
        assert ep.method == "GET"
        assert ep.path == "/products"
        query = {p.name: p for p in ep.request.parameters}
        assert set(query) == {"page", "search"}
        assert query["page"].example == 1
        assert query["page"].type == "integer"
        assert query["page"].default == 1
        assert query["search"].required is False

    def test_saved_responses(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "List products")
        success = ep.responses.success
        assert success.status == 200
        assert success.description == "Product list"
        assert success.example == {"items": [{"id": 1, "title": "Shoe"}], "total": 42}
        assert [f.name for f in success.fields] == ["items", "total"]
        assert success.headers[0].name == "X-Total-Count"
        assert [e.status for e in ep.responses.errors] == [400]
        assert ep.responses.errors[0].reason == "Bad Request"

    def test_path_variables(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "Get product")
        assert ep.method == "GET"
        assert ep.path == "/products/{productId}"
        param = ep.request.parameters[0]
        assert param.location == "path"
        assert param.required is True
        assert param.example == "42"

    def test_undeclared_path_variable_gets_parameter(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "Upload image")
        assert ep.path == "/products/{id}/image"
        param = ep.request.parameters[0]
        assert (param.name, param.location, param.required) == ("id", "path", True)

    def test_collection_auth_inherited(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "Get product")
        assert ep.auth.type == "bearer"
        assert [e.status for e in ep.responses.errors] == [401, 403, 404, 500]

    def test_folder_auth_overrides_collection(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "Create product")
        assert ep.auth.type == "apiKey"
        assert ep.auth.name == "X-Admin-Key"
        assert ep.auth.location == "header"

    def test_noauth_request(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "Login")
        assert ep.auth is None
        assert [e.status for e in ep.responses.errors] == [400, 500]

    def test_authorization_header_wins(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "Me")
        assert ep.auth.type == "basic"
        header = ep.request.parameters[0]
        assert header.name == "Authorization"
        assert header.required is True

    def test_raw_json_body(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "Create product")
        assert ep.request.content_type == "application/json"
        assert ep.request.parameters is None
        body = ep.request.body
        assert body.example["dimensions"] == {"width": 10, "height": 20}
        fields = {f.name: f for f in body.fields}
        assert set(fields) == {"title", "price", "is_active", "dimensions", "tags"}
        assert fields["price"].type == "number"
        assert fields["is_active"].type == "boolean"
        assert [p.name for p in fields["dimensions"].properties] == ["width", "height"]

    def test_formdata_body(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "Upload image")
        assert ep.request.content_type == "multipart/form-data"
        body = ep.request.body
        assert body.example == {"image": "boot.png", "alt": "A boot"}
        fields = {f.name: f for f in body.fields}
        assert fields["image"].type == "file"
        assert fields["image"].format == "binary"

    def test_urlencoded_body(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "Login")
        assert ep.request.content_type == "application/x-www-form-urlencoded"
        assert ep.request.parameters is None
        fields = {f.name: f for f in ep.request.body.fields}
        assert fields["email"].format == "email"
        assert fields["password"].format == "password"
        assert fields["password"].min == 8

    def test_string_request(self):
        ep = _by_name(convert_postman_to_canonical(_collection()), "Health")
        assert ep.method == "GET"
        assert ep.path == "/health"
        assert ep.request.parameters[0].name == "verbose"
        assert ep.request.parameters[0].example == 1

    def test_conversion_is_idempotent(self):
        assert convert_postman_to_canonical(_collection()) == convert_postman_to_canonical(_collection())


class TestPostmanHelpers:
    def test_raw_url_with_placeholders(self):
        path, path_params, query = parse_postman_url("{{baseUrl}}/users/{{userId}}/posts?limit=5")
        assert path == "/users/{userId}/posts"
        assert [p.name for p in path_params] == ["userId"]
        assert query[0].name == "limit"
        assert query[0].example == 5

    def test_url_object_without_path_uses_raw(self):
        path, _, _ = parse_postman_url({"raw": "https://api.example.com/a/:b"})
        assert path == "/a/{b}"

    def test_extract_variables(self):
        variables = extract_variables([
            {"key": "a", "value": "1"},
            {"key": "b", "value": {"x": 1}},
            {"key": "c"},
            {"key": "d", "value": "x", "disabled": True},
            {"value": "no key"},
        ])
        assert variables == {"a": "1", "b": '{"x": 1}', "c": ""}

    def test_apikey_auth_v20_object_form(self):
        auth = convert_postman_auth({"type": "apikey", "apikey": {"key": "token", "in": "query"}})
        assert auth.type == "apiKey"
        assert auth.location == "query"
        assert auth.name == "token"

    def test_unknown_auth(self):
        assert convert_postman_auth({"type": "hawk"}) is None
        assert convert_postman_auth(None) is None

    def test_version_object_and_missing_base_url(self):
        collection = {
            "info": {"name": "Old", "version": {"major": 2, "minor": 1, "patch": 0}},
            "item": [{"name": "Ping", "request": {"method": "GET", "url": "https://x.example.com/ping"}}],
        }
        spec = convert_postman_to_canonical(collection)
        assert spec.version == "2.1.0"
        assert spec.base_url is None
        assert spec.variables == {}

    def test_deep_folders_are_cut(self):
        item = {"name": "Leaf", "request": {"method": "GET", "url": "https://x.example.com/leaf"}}
        for level in range(MAX_FOLDER_DEPTH + 1):
            item = {"name": f"folder-{level}", "item": [item]}
        with diagnostics.collecting() as collected:
            spec = convert_postman_to_canonical({"info": {"name": "Deep"}, "item": [item]})
        assert spec.endpoints == []
        assert "nested deeper" in collected[0].message

    def test_bad_request_isolated(self):
        collection = {
            "info": {"name": "Mixed"},
            "item": [
                {"name": "Bad", "request": {"method": "FETCH", "url": "https://x.example.com/a"}},
                {"name": "Good", "request": {"method": "GET", "url": "https://x.example.com/b"}},
            ],
        }
        with diagnostics.collecting() as collected:
            spec = convert_postman_to_canonical(collection)
        assert [e.name for e in spec.endpoints] == ["Good"]
        assert collected[0].level == "error"

    def test_query_without_value_keeps_null_example(self):
        item = {
            "name": "Search",
            "request": {
                "method": "GET",
                "url": {"raw": "https://x.example.com/search?q", "path": ["search"], "query": [{"key": "q"}]},
            },
        }
        param = convert_postman_item(item).to_dict()["request"]["parameters"][0]
        assert param["name"] == "q"
        assert param["example"] is None
