from api_spec_importer.parser.base import (
    CanonicalAuth,
    CanonicalEndpoint,
    CanonicalField,
    CanonicalParameter,
    CanonicalRequest,
    CanonicalRequestBody,
    CanonicalResponses,
    SuccessResponse,
)
from api_spec_importer.parser.defaults import (
    apply_smart_defaults,
    calculate_metadata_completeness,
    common_error_responses,
    detect_value_format,
    enrich_field,
    enrich_parameter,
    is_boolean_field,
    is_datetime_field,
    name_words,
)


def _param(name, location="query", example=None, **kwargs):
    return CanonicalParameter(name=name, location=location, example=example, **kwargs)


class TestEnrichParameter:
    def test_path_parameter_required(self):
        p = enrich_parameter(_param("userId", "path", "42"))
        assert p.required is True
        assert p.description == "Path parameter: userId"

    def test_pagination(self):
        page = enrich_parameter(_param("page", example=3))
        assert (page.type, page.required, page.min, page.default) == ("integer", False, 1, 1)
        limit = enrich_parameter(_param("limit", example=50))
        assert (limit.min, limit.max, limit.default) == (1, 100, 10)
        offset = enrich_parameter(_param("offset", example=0))
        assert offset.type == "integer"
        assert offset.min is None

    def test_sort_and_filter(self):
        assert enrich_parameter(_param("sort_by", example="name")).description == "Sort order for results"
        status = enrich_parameter(_param("status", required=True, example="open"))
        assert status.required is False
        assert status.description == "Filter results by status"

    def test_existing_description_kept(self):
        p = enrich_parameter(_param("page", example=1, description="Which page"))
        assert p.description == "Which page"

    def test_format_and_type_from_example(self):
        assert enrich_parameter(_param("contact", example="a@b.io")).format == "email"
        assert enrich_parameter(_param("since", example="2024-05-01")).format == "date"
        assert enrich_parameter(_param("flag", example=True)).type == "boolean"


class TestEnrichField:
    def test_name_rules(self):
        assert enrich_field(CanonicalField(name="email")).format == "email"
        password = enrich_field(CanonicalField(name="password"))
        assert (password.format, password.min) == ("password", 8)
        assert enrich_field(CanonicalField(name="avatar_url")).format == "uri"
        assert enrich_field(CanonicalField(name="created_at")).format == "date-time"
        assert enrich_field(CanonicalField(name="is_admin")).type == "boolean"

    def test_plain_name_untouched(self):
        field = CanonicalField(name="name", type="string")
        assert enrich_field(field) == field

    def test_file_and_container_fields_untouched(self):
        file_field = CanonicalField(name="profile_url", type="file", format="binary")
        assert enrich_field(file_field) == file_field
        obj = CanonicalField(name="email_settings", type="object")
        assert enrich_field(obj) == obj


class TestNameRules:
    def test_name_words(self):
        assert name_words("createdAt") == ["created", "at"]
        assert name_words("user_id") == ["user", "id"]
        assert name_words("X-API-Key") == ["x", "api", "key"]

    def test_datetime_names(self):
        assert is_datetime_field("updatedAt")
        assert is_datetime_field("birth_date")
        assert is_datetime_field("created")
        assert not is_datetime_field("category")
        assert not is_datetime_field("format")

    def test_boolean_names(self):
        assert is_boolean_field("isActive")
        assert is_boolean_field("has_children")
        assert is_boolean_field("published")
        assert not is_boolean_field("island")

    def test_detect_value_format(self):
        assert detect_value_format("https://x.example.com") == "uri"
        assert detect_value_format("123e4567-e89b-12d3-a456-426614174000") == "uuid"
        assert detect_value_format("2024-01-01T10:00:00Z") == "date-time"
        assert detect_value_format("10:30:00") == "time"
        assert detect_value_format("plain") is None
        assert detect_value_format(5) is None


class TestApplySmartDefaults:
    def test_errors_added_when_missing(self):
        ep = CanonicalEndpoint(
            source="curl",
            method="POST",
            path="/users",
            auth=CanonicalAuth(type="bearer"),
            responses=CanonicalResponses(success=SuccessResponse()),
        )
        enriched = apply_smart_defaults(ep)
        assert [e.status for e in enriched.responses.errors] == [401, 403, 400, 500]
        assert enriched.responses.success.description == "Resource created successfully"
        assert ep.responses.errors is None

    def test_fields_and_parameters_enriched(self):
        ep = CanonicalEndpoint(
            source="postman",
            method="GET",
            path="/users/{id}",
            request=CanonicalRequest(
                parameters=[_param("id", "path", "7")],
                body=CanonicalRequestBody(fields=[CanonicalField(name="email")]),
            ),
        )
        enriched = apply_smart_defaults(ep)
        assert enriched.request.parameters[0].required is True
        assert enriched.request.body.fields[0].format == "email"

    def test_common_errors_without_auth(self):
        assert [e.status for e in common_error_responses("GET", None)] == [404, 500]
        assert [e.status for e in common_error_responses("OPTIONS", CanonicalAuth(type="none"))] == [500]


class TestMetadataCompleteness:
    def test_bare_endpoint(self):
        ep = CanonicalEndpoint(
            source="curl",
            method="GET",
            path="/x",
            responses=CanonicalResponses(success=SuccessResponse(description="OK")),
        )
        result = calculate_metadata_completeness(ep)
        assert (result.score, result.complete, result.total) == (25, 1, 4)
        assert result.details["parameters"].total == 0

    def test_parameters_counted(self):
        ep = CanonicalEndpoint(
            source="curl",
            method="GET",
            path="/x",
            request=CanonicalRequest(parameters=[_param("q", example="x")]),
            responses=CanonicalResponses(success=SuccessResponse(description="OK")),
        )
        result = calculate_metadata_completeness(ep)
        assert result.details["parameters"].score == 3
        assert result.score == 50
