"""OpenAPI / Swagger document converter.

Converts OpenAPI 3.x and Swagger 2.0 operations into CanonicalEndpoint models.
OpenAPI 3.x carries bodies in ``requestBody`` and auth in
``components.securitySchemes``; Swagger 2.0 uses ``body``/``formData``
parameters and ``securityDefinitions``.
"""

import logging
import re
from typing import Any

from api_spec_importer import diagnostics
from api_spec_importer.exceptions import OperationConversionError
from api_spec_importer.parser.base import (
    DEFAULT_CONTENT_TYPE,
    ERROR_REASONS,
    CanonicalAuth,
    CanonicalEndpoint,
    CanonicalParameter,
    CanonicalRequest,
    CanonicalRequestBody,
    CanonicalResponses,
    CanonicalSpec,
    ErrorResponse,
    ParameterItems,
    ResponseHeader,
    SuccessResponse,
)
from api_spec_importer.parser.schema import (
    auth_example,
    extract_content_type,
    extract_example,
    first_number,
    flatten_schema_to_fields,
    infer_fields_from_example,
    resolve_node,
    schema_to_example,
    schema_type,
)

logger = logging.getLogger(__name__)

OPERATION_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
SUCCESS_CODES = ("200", "201", "204")
FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")

# Swagger 2.0 non-body parameters describe their type inline
INLINE_SCHEMA_KEYS = (
    "type", "format", "items", "enum", "default", "pattern",
    "minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum", "minLength", "maxLength",
)


def parse_openapi_document(spec: dict, fmt: str = "openapi", raw_spec: str = "") -> CanonicalSpec:
    """Convert every operation of an OpenAPI/Swagger document.

    Each (path, method) pair converts independently: a failing operation is
    reported as an error diagnostic and skipped, its siblings still convert.
    """
    endpoints = []
    paths = spec.get("paths") or {}

    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            continue
        shared = path_item.get("parameters") or []

        for method, operation in path_item.items():
            if str(method).lower() not in OPERATION_METHODS or not isinstance(operation, dict):
                continue
            if shared:
                own = operation.get("parameters") or []
                operation = {**operation, "parameters": _merge_parameters(shared, own, spec)}
            try:
                endpoints.append(convert_openapi_to_canonical(operation, str(path), str(method), spec))
            except Exception as e:
                failure = OperationConversionError(str(method), str(path), e)
                diagnostics.error(failure.message, method=failure.method, path=failure.path)

    info = spec.get("info") or {}
    return CanonicalSpec(
        name=info.get("title") or "Unnamed API",
        version=str(info.get("version") or "1.0.0"),
        description=info.get("description"),
        base_url=extract_base_url(spec, fmt),
        format=fmt,
        endpoints=endpoints,
        raw_spec=raw_spec,
    )


def convert_openapi_to_canonical(operation: dict, path: str, method: str, spec: dict) -> CanonicalEndpoint:
    """Convert one operation. ``spec`` is the whole document, needed for
    $ref resolution and the global ``security`` requirement."""
    method = method.upper()
    logger.debug("Converting %s %s", method, path)

    # An explicit operation-level security (even []) overrides the global one.
    security = operation["security"] if "security" in operation else spec.get("security")
    produces = operation.get("produces") or spec.get("produces") or []

    return CanonicalEndpoint(
        source="swagger" if "swagger" in spec else "openapi",
        method=method,
        path=path,
        name=operation.get("summary") or f"{method} {path}",
        description=operation.get("description"),
        tags=[str(tag) for tag in operation.get("tags") or []],
        operation_id=operation.get("operationId"),
        deprecated=bool(operation.get("deprecated", False)),
        request=_convert_request(operation, spec),
        responses=_convert_responses(operation.get("responses"), spec, produces),
        auth=_convert_security(security, spec),
    )


def _merge_parameters(shared: list, own: list, spec: dict) -> list:
    def key(param: Any) -> tuple:
        resolved = resolve_node(param, spec) or {}
        return resolved.get("name"), resolved.get("in")

    own_keys = {key(p) for p in own}
    return [p for p in shared if key(p) not in own_keys] + list(own)


def _convert_request(operation: dict, spec: dict) -> CanonicalRequest:
    parameters = [resolve_node(p, spec) for p in operation.get("parameters") or []]
    parameters = [p for p in parameters if p]

    form_params = [p for p in parameters if p.get("in") == "formData"]
    body_param = next((p for p in parameters if p.get("in") == "body"), None)

    if form_params:
        request_body = _form_data_body(form_params)
        content_type = "multipart/form-data"
    elif body_param:
        consumes = operation.get("consumes") or spec.get("consumes") or [DEFAULT_CONTENT_TYPE]
        content_type = DEFAULT_CONTENT_TYPE if DEFAULT_CONTENT_TYPE in consumes else consumes[0]
        request_body = _body_param_body(body_param, content_type)
    else:
        request_body = resolve_node(operation.get("requestBody"), spec)
        content_type = extract_content_type(request_body)

    return CanonicalRequest(
        content_type=content_type,
        parameters=_convert_parameters(parameters, spec),
        body=_convert_request_body(request_body, spec),
    )


def _convert_parameters(parameters: list[dict], spec: dict) -> list[CanonicalParameter] | None:
    result = []
    for param in parameters:
        if param.get("in") in ("body", "formData") or not param.get("name"):
            continue
        name = str(param["name"])

        if isinstance(param.get("schema"), dict):
            schema = resolve_node(param["schema"], spec) or {}
        else:
            schema = {key: param[key] for key in INLINE_SCHEMA_KEYS if key in param}
        kind = schema_type(schema) or "string"

        data: dict[str, Any] = {
            "name": name,
            "location": param.get("in", "query"),
            "type": kind,
            "required": bool(param.get("required", False)),
            "description": param.get("description"),
            "example": _parameter_example(param, schema, spec),
            "enum": schema.get("enum"),
            "pattern": schema.get("pattern"),
            "min": first_number(schema, "minimum", "minLength"),
            "max": first_number(schema, "maximum", "maxLength"),
            "default": schema.get("default"),
            "format": schema.get("format"),
        }
        if kind == "array" and isinstance(schema.get("items"), dict):
            items = resolve_node(schema["items"], spec) or {}
            data["items"] = ParameterItems(
                type=schema_type(items) or "string",
                example=schema_to_example(items, spec=spec),
            )
        result.append(CanonicalParameter(**data))

    return result or None


def _parameter_example(param: dict, schema: dict, spec: dict) -> Any:
    name = str(param["name"])
    if param.get("example") is not None:
        return param["example"]

    examples = param.get("examples")
    if isinstance(examples, dict) and examples:
        first = resolve_node(next(iter(examples.values())), spec)
        if first and "value" in first:
            return first["value"]

    example = extract_example(schema, name, spec)
    if example is None:
        example = schema_to_example(schema, name, spec)
    return example


def _convert_request_body(request_body: Any, spec: dict) -> CanonicalRequestBody | None:
    body = resolve_node(request_body, spec)
    if body is None:
        return None

    content_type = extract_content_type(body)
    content = body.get("content") if isinstance(body.get("content"), dict) else {}
    media = content.get(content_type) if isinstance(content.get(content_type), dict) else {}
    schema = resolve_node(media.get("schema"), spec)

    if "example" in media:
        example = media["example"]
    elif isinstance(media.get("examples"), dict) and media["examples"]:
        first = resolve_node(next(iter(media["examples"].values())), spec)
        example = first.get("value", first) if first else None
    elif schema is not None:
        example = schema_to_example(schema, spec=spec)
    else:
        example = None

    if schema is not None:
        fields = flatten_schema_to_fields(schema, schema.get("required") or [], spec)
    else:
        fields = infer_fields_from_example(example)

    if isinstance(example, dict):
        fields = [
            field.model_copy(update={"example": example[field.name]}) if field.name in example else field
            for field in fields
        ]

    # Form bodies are described by their fields alone.
    is_form = content_type.split(";")[0].strip().lower() in FORM_CONTENT_TYPES

    return CanonicalRequestBody(
        required=bool(body.get("required", False)),
        description=body.get("description"),
        example=None if is_form else example,
        fields=fields,
    )


def _form_data_body(form_params: list[dict]) -> dict:
    """Describe Swagger 2.0 formData parameters as an OpenAPI 3 requestBody."""
    properties = {}
    required = []
    for param in form_params:
        name = param.get("name")
        if not name:
            continue
        prop = {key: param[key] for key in INLINE_SCHEMA_KEYS if key in param}
        prop.setdefault("type", "string")
        if prop["type"] == "file":
            prop.setdefault("format", "binary")
        for key in ("description", "example"):
            if param.get(key) is not None:
                prop[key] = param[key]
        properties[name] = prop
        if param.get("required"):
            required.append(name)

    return {
        "required": bool(required),
        "description": "Form data",
        "content": {
            "multipart/form-data": {
                "schema": {"type": "object", "properties": properties, "required": required},
            },
        },
    }


def _body_param_body(body_param: dict, content_type: str) -> dict:
    """Describe a Swagger 2.0 ``in: body`` parameter as an OpenAPI 3 requestBody."""
    return {
        "required": bool(body_param.get("required", False)),
        "description": body_param.get("description"),
        "content": {content_type: {"schema": body_param.get("schema")}},
    }


def _convert_responses(responses: Any, spec: dict, produces: list) -> CanonicalResponses:
    if not isinstance(responses, dict) or not responses:
        return CanonicalResponses(success=SuccessResponse(status=200, description="Success"))

    by_code = {str(code): response for code, response in responses.items()}
    errors = _error_responses(by_code, spec, produces)
    return CanonicalResponses(
        success=_success_response(by_code, spec, produces),
        errors=errors or None,
    )


def _success_response(by_code: dict, spec: dict, produces: list) -> SuccessResponse:
    # Priority order, not numeric order
    for code in SUCCESS_CODES:
        response = resolve_node(by_code.get(code), spec)
        if response is None:
            continue

        content_type, media, schema = _response_media(response, spec, produces)
        fields = None
        if schema is not None:
            fields = flatten_schema_to_fields(schema, schema.get("required") or [], spec)

        return SuccessResponse(
            status=int(code),
            description=response.get("description"),
            content_type=content_type,
            example=_response_example(media, schema, spec),
            fields=fields,
            headers=_response_headers(response.get("headers"), spec),
        )

    return SuccessResponse(status=200, description="Success")


def _error_responses(by_code: dict, spec: dict, produces: list) -> list[ErrorResponse]:
    errors = []
    for code, ref in by_code.items():
        # "default" and ranges like "4XX" are skipped
        if not code.isdigit() or not 400 <= int(code) < 600:
            continue
        response = resolve_node(ref, spec)
        if response is None:
            continue

        status = int(code)
        content_type, media, schema = _response_media(response, spec, produces)
        errors.append(
            ErrorResponse(
                status=status,
                reason=response.get("description") or ERROR_REASONS.get(status, "Error"),
                description=response.get("description"),
                content_type=content_type,
                example=_response_example(media, schema, spec),
            )
        )
    return errors


def _response_media(response: dict, spec: dict, produces: list) -> tuple[str, dict, dict | None]:
    """Content type, media type object and resolved schema of a response."""
    if isinstance(response.get("content"), dict):
        content_type = extract_content_type(response)
        media = response["content"].get(content_type)
        media = media if isinstance(media, dict) else {}
        return content_type, media, resolve_node(media.get("schema"), spec)

    # Swagger 2.0: schema on the response, examples keyed by MIME type
    examples = response.get("examples") if isinstance(response.get("examples"), dict) else {}
    declared = list(produces) or list(examples)
    content_type = DEFAULT_CONTENT_TYPE if not declared or DEFAULT_CONTENT_TYPE in declared else declared[0]
    media: dict[str, Any] = {}
    if "schema" in response:
        media["schema"] = response["schema"]
    if examples:
        media["example"] = examples.get(content_type, next(iter(examples.values())))
    return content_type, media, resolve_node(media.get("schema"), spec)


def _response_example(media: dict, schema: dict | None, spec: dict) -> Any:
    example = extract_example(media, spec=spec) if media else None
    if example is None and schema is not None:
        example = schema_to_example(schema, spec=spec)
    return example


def _response_headers(headers: Any, spec: dict) -> list[ResponseHeader] | None:
    if not isinstance(headers, dict) or not headers:
        return None

    result = []
    for name, header in headers.items():
        header = resolve_node(header, spec)
        if header is None:
            continue
        schema = resolve_node(header.get("schema"), spec)
        if schema is None:
            schema = {key: header[key] for key in INLINE_SCHEMA_KEYS if key in header}
        example = header.get("example")
        if example is None and schema:
            example = schema_to_example(schema, str(name), spec)
        result.append(
            ResponseHeader(
                name=str(name),
                type=schema_type(schema) or "string",
                description=header.get("description"),
                example=example,
            )
        )
    return result or None


def _convert_security(security: Any, spec: dict) -> CanonicalAuth | None:
    if not isinstance(security, list) or not security:
        return None

    requirement = security[0]
    if not isinstance(requirement, dict) or not requirement:
        return None
    scheme_name = next(iter(requirement))

    schemes = (spec.get("components") or {}).get("securitySchemes") or spec.get("securityDefinitions") or {}
    scheme = resolve_node(schemes.get(scheme_name), spec)
    if scheme is None:
        diagnostics.warn(f'Security scheme "{scheme_name}" not found in spec', scheme=scheme_name)
        return None

    auth_type = map_security_type(scheme.get("type"), scheme.get("scheme"))
    location = scheme.get("in")
    return CanonicalAuth(
        required=True,
        type=auth_type,
        scheme=scheme.get("scheme"),
        bearer_format=scheme.get("bearerFormat"),
        location=location if location in ("header", "query", "cookie") else None,
        name=scheme.get("name") or scheme_name,
        description=scheme.get("description"),
        example=auth_example(auth_type),
    )


def map_security_type(type_: str | None, scheme: str | None = None) -> str:
    """Map an OpenAPI/Swagger security scheme type to a canonical auth type."""
    if type_ == "http":
        return "bearer" if str(scheme or "").lower() == "bearer" else "basic"
    if type_ == "basic":
        return "basic"
    if type_ == "apiKey":
        return "apiKey"
    if type_ == "oauth2":
        return "oauth2"
    return "none"


def extract_base_url(spec: dict, fmt: str) -> str | None:
    """Base URL of the API without a trailing slash.

    OpenAPI 3.x uses the first server (variables replaced by their defaults);
    Swagger 2.0 combines schemes, host and basePath.
    """
    if fmt == "openapi":
        servers = spec.get("servers")
        if not isinstance(servers, list) or not servers or not isinstance(servers[0], dict):
            return None
        server = servers[0]
        variables = server.get("variables") or {}
        url = re.sub(
            r"\{([^}]+)\}",
            lambda m: str((variables.get(m.group(1)) or {}).get("default", m.group(0))),
            str(server.get("url") or ""),
        )
        return url.rstrip("/") or None

    host = spec.get("host")
    if not host:
        return None
    schemes = spec.get("schemes")
    scheme = schemes[0] if isinstance(schemes, list) and schemes else "https"
    base_path = str(spec.get("basePath") or "").strip("/")
    url = f"{scheme}://{str(host).strip('/')}"
    return f"{url}/{base_path}" if base_path else url
