"""Postman Collection v2.0 / v2.1 converter.

Walks the ``item`` tree (folders nest, requests are leaves) and converts
each request into a CanonicalEndpoint. Collection variables become spec
variables.
"""

import json
import logging
import re
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from api_spec_importer import diagnostics
from api_spec_importer.exceptions import OperationConversionError
from api_spec_importer.parser.base import (
    DEFAULT_CONTENT_TYPE,
    ERROR_REASONS,
    CanonicalAuth,
    CanonicalEndpoint,
    CanonicalField,
    CanonicalParameter,
    CanonicalRequest,
    CanonicalRequestBody,
    CanonicalResponses,
    CanonicalSpec,
    ErrorResponse,
    ResponseHeader,
    SuccessResponse,
)
from api_spec_importer.parser.defaults import apply_smart_defaults, detect_header_auth
from api_spec_importer.parser.schema import (
    auth_example,
    infer_fields_from_example,
    infer_type_from_example,
    parse_scalar,
)

logger = logging.getLogger(__name__)

MAX_FOLDER_DEPTH = 64

BASE_URL_VARIABLES = ("baseUrl", "base_url")

RAW_LANGUAGE_TYPES = {
    "json": "application/json",
    "xml": "application/xml",
    "html": "text/html",
    "javascript": "application/javascript",
}

BODY_MODE_TYPES = {
    "urlencoded": "application/x-www-form-urlencoded",
    "formdata": "multipart/form-data",
    "graphql": "application/json",
    "file": "application/octet-stream",
}


def convert_postman_to_canonical(collection: dict, raw_spec: str = "") -> CanonicalSpec:
    """Convert a loaded Postman collection into a CanonicalSpec."""
    info = collection.get("info") if isinstance(collection.get("info"), dict) else {}
    logger.debug("Converting Postman collection %r", info.get("name"))

    endpoints: list[CanonicalEndpoint] = []
    _collect_endpoints(collection.get("item") or [], endpoints, collection.get("auth"), 0)

    variables = extract_variables(collection.get("variable"))
    base_url = next((variables[key] for key in BASE_URL_VARIABLES if variables.get(key)), None)

    return CanonicalSpec(
        name=info.get("name") or "Postman Collection",
        version=_version(info.get("version")),
        description=_description(info.get("description")),
        base_url=base_url.rstrip("/") if base_url else None,
        format="postman",
        variables=variables,
        endpoints=endpoints,
        raw_spec=raw_spec,
    )


def _collect_endpoints(items: list, endpoints: list[CanonicalEndpoint], inherited_auth: Any, depth: int) -> None:
    for item in items:
        if not isinstance(item, dict):
            continue

        children = item.get("item")
        if isinstance(children, list) and children:
            if depth >= MAX_FOLDER_DEPTH:
                diagnostics.warn(
                    f'Folder "{item.get("name")}" nested deeper than {MAX_FOLDER_DEPTH} levels, skipped',
                    folder=item.get("name"),
                )
                continue
            auth = item["auth"] if "auth" in item else inherited_auth
            _collect_endpoints(children, endpoints, auth, depth + 1)
        elif item.get("request"):
            try:
                endpoints.append(convert_postman_item(item, inherited_auth))
            except Exception as e:
                request = item["request"]
                method = request.get("method", "GET") if isinstance(request, dict) else "GET"
                failure = OperationConversionError(str(method), str(item.get("name", "")), e)
                diagnostics.error(failure.message, method=failure.method, item=item.get("name"))


def convert_postman_item(item: dict, inherited_auth: Any = None) -> CanonicalEndpoint:
    """Convert one request item. ``inherited_auth`` is the folder or
    collection ``auth`` used when the request has none of its own."""
    request = item["request"]
    if isinstance(request, str):
        request = {"method": "GET", "url": request}

    method = str(request.get("method") or "GET").upper()
    path, path_params, query_params = parse_postman_url(request.get("url"))

    headers = [h for h in request.get("header") or [] if isinstance(h, dict) and not h.get("disabled")]
    content_type_header = next(
        (str(h.get("value", "")) for h in headers if str(h.get("key", "")).lower() == "content-type"),
        None,
    )
    header_params = [
        _header_parameter(str(h["key"]), h.get("value"))
        for h in headers
        if h.get("key") and str(h["key"]).lower() != "content-type"
    ]

    body = request.get("body") if isinstance(request.get("body"), dict) else None
    if body is not None and body.get("disabled"):
        body = None
    content_type = content_type_header or _body_content_type(body)

    auth = detect_header_auth(header_params)
    if auth is None:
        auth = convert_postman_auth(request["auth"] if "auth" in request else inherited_auth)

    parameters = path_params + query_params + header_params
    endpoint = CanonicalEndpoint(
        source="postman",
        method=method,
        path=path,
        name=item.get("name") or f"{method} {path}",
        description=_description(item.get("description")) or _description(request.get("description")),
        tags=["imported"],
        request=CanonicalRequest(
            content_type=content_type,
            parameters=parameters or None,
            body=convert_postman_body(body, content_type) if body else None,
        ),
        responses=_saved_responses(item.get("response")),
        auth=auth,
    )
    return apply_smart_defaults(endpoint)


def parse_postman_url(url: Any) -> tuple[str, list[CanonicalParameter], list[CanonicalParameter]]:
    """Path template, path parameters and query parameters of a request URL.

    ``url`` is a raw string or a v2 URL object.
    """
    if isinstance(url, dict):
        segments = url.get("path")
        if isinstance(segments, str):
            segments = segments.split("/")
        if isinstance(segments, list):
            path = "/" + "/".join(_path_segment(s) for s in segments if _segment_text(s))
            query = [q for q in url.get("query") or [] if isinstance(q, dict) and not q.get("disabled")]
            query_params = [
                _query_parameter(str(q["key"]), q.get("value")) for q in query if q.get("key")
            ]
        else:
            path, query_params = _parse_raw_url(str(url.get("raw") or ""))
        variables = url.get("variable") or []
    else:
        path, query_params = _parse_raw_url(str(url or ""))
        variables = []

    path_params = []
    declared = set()
    for variable in variables:
        if not isinstance(variable, dict) or not variable.get("key"):
            continue
        declared.add(variable["key"])
        path_params.append(
            CanonicalParameter(
                name=str(variable["key"]),
                location="path",
                type="string",
                required=True,
                description=_description(variable.get("description")) or f"Path variable: {variable['key']}",
                example=variable.get("value") or "example",
            )
        )
    for name in re.findall(r"\{([^}/]+)\}", path):
        if name not in declared:
            declared.add(name)
            path_params.append(
                CanonicalParameter(name=name, location="path", type="string", required=True, example="example")
            )

    return path, path_params, query_params


def _parse_raw_url(raw: str) -> tuple[str, list[CanonicalParameter]]:
    raw = raw.strip()
    # {{baseUrl}}/users -> /users
    raw = re.sub(r"^\{\{[^}]+\}\}", "", raw)

    if "://" in raw:
        parts = urlsplit(raw)
        path, query = parts.path, parts.query
    else:
        path, _, query = raw.partition("?")
        path = path.split("#")[0]

    segments = [s for s in path.split("/") if s]
    path = "/" + "/".join(_path_segment(s) for s in segments)
    params = [_query_parameter(name, value) for name, value in parse_qsl(query, keep_blank_values=True)]
    return path, params


def _segment_text(segment: Any) -> str:
    if isinstance(segment, dict):
        return str(segment.get("value") or "")
    return str(segment)


def _path_segment(segment: Any) -> str:
    text = _segment_text(segment)
    if text.startswith(":") and len(text) > 1:
        return "{" + text[1:] + "}"
    match = re.fullmatch(r"\{\{([^}]+)\}\}", text)
    if match:
        return "{" + match.group(1) + "}"
    return text


def _query_parameter(name: str, value: Any) -> CanonicalParameter:
    example = parse_scalar(value) if isinstance(value, str) else value
    return CanonicalParameter(
        name=name,
        location="query",
        type=_value_type(example),
        required=False,
        example=example,
    )


def _header_parameter(name: str, value: Any) -> CanonicalParameter:
    is_auth = name.lower() == "authorization"
    return CanonicalParameter(
        name=name,
        location="header",
        type="string",
        required=is_auth,
        description="Authentication header" if is_auth else None,
        example="" if value is None else str(value),
    )


def _value_type(value: Any) -> str:
    kind = infer_type_from_example(value)
    return "string" if kind == "null" else kind


def _body_content_type(body: dict | None) -> str:
    if body is None:
        return DEFAULT_CONTENT_TYPE
    mode = body.get("mode")
    if mode == "raw":
        language = ((body.get("options") or {}).get("raw") or {}).get("language")
        if language in RAW_LANGUAGE_TYPES:
            return RAW_LANGUAGE_TYPES[language]
        return "text/plain"
    return BODY_MODE_TYPES.get(mode, DEFAULT_CONTENT_TYPE)


def convert_postman_body(body: dict, content_type: str) -> CanonicalRequestBody | None:
    """Convert a request body for any of the Postman body modes."""
    mode = body.get("mode")
    if mode == "raw":
        return _raw_body(str(body.get("raw") or ""), content_type)
    if mode == "urlencoded":
        return _keyed_body(body.get("urlencoded") or [])
    if mode == "formdata":
        return _keyed_body(body.get("formdata") or [])
    if mode == "graphql":
        return _graphql_body(body.get("graphql") or {})
    if mode == "file":
        src = (body.get("file") or {}).get("src")
        filename = _filename(src) if src else None
        return CanonicalRequestBody(
            required=True,
            example=filename,
            fields=[CanonicalField(name="file", type="file", format="binary", required=True, example=filename)],
        )
    return None


def _raw_body(raw: str, content_type: str) -> CanonicalRequestBody:
    if "json" in content_type.lower():
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.debug("Raw body declared as JSON does not parse, keeping text")
        else:
            return CanonicalRequestBody(
                required=True,
                description="Request body",
                example=parsed,
                fields=infer_fields_from_example(parsed, required=True),
            )

    return CanonicalRequestBody(
        required=True,
        example=raw,
        fields=[CanonicalField(name="body", type="string", required=True, example=raw)],
    )


def _keyed_body(entries: list) -> CanonicalRequestBody:
    """urlencoded and formdata bodies: one field per enabled key."""
    example: dict[str, Any] = {}
    fields = []
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("disabled") or not entry.get("key"):
            continue
        name = str(entry["key"])
        if entry.get("type") == "file":
            value = _filename(entry.get("src") or entry.get("value") or "")
            example[name] = value
            fields.append(
                CanonicalField(name=name, type="file", format="binary", required=True, example=value)
            )
            continue
        value = entry.get("value")
        value = parse_scalar(value) if isinstance(value, str) else value
        example[name] = value
        fields.append(CanonicalField(name=name, type=_value_type(value), required=True, example=value))

    return CanonicalRequestBody(required=True, example=example, fields=fields)


def _graphql_body(graphql: dict) -> CanonicalRequestBody:
    variables = graphql.get("variables") or {}
    if isinstance(variables, str):
        try:
            variables = json.loads(variables) if variables.strip() else {}
        except ValueError:
            logger.debug("GraphQL variables are not JSON, dropped")
            variables = {}
    example = {"query": graphql.get("query") or "", "variables": variables}
    return CanonicalRequestBody(
        required=True,
        description="GraphQL request",
        example=example,
        fields=infer_fields_from_example(example, required=True),
    )


def _filename(src: Any) -> str:
    if isinstance(src, list):
        src = src[0] if src else ""
    return re.split(r"[\\/]", str(src))[-1]


def _auth_attributes(auth: dict, auth_type: str) -> dict:
    """Auth attributes as a dict; v2.1 stores them as a key/value list."""
    attributes = auth.get(auth_type)
    if isinstance(attributes, list):
        return {a.get("key"): a.get("value") for a in attributes if isinstance(a, dict)}
    return attributes if isinstance(attributes, dict) else {}


def convert_postman_auth(auth: Any) -> CanonicalAuth | None:
    """Map a Postman ``auth`` object onto a CanonicalAuth."""
    if not isinstance(auth, dict):
        return None

    auth_type = auth.get("type")
    if auth_type == "bearer":
        return CanonicalAuth(
            type="bearer", scheme="bearer", location="header", name="Authorization",
            example=auth_example("bearer"),
        )
    if auth_type == "basic":
        return CanonicalAuth(
            type="basic", scheme="basic", location="header", name="Authorization",
            example=auth_example("basic"),
        )
    if auth_type == "apikey":
        attributes = _auth_attributes(auth, "apikey")
        location = attributes.get("in") if attributes.get("in") in ("header", "query") else "header"
        return CanonicalAuth(
            type="apiKey", location=location, name=attributes.get("key") or "X-API-Key",
            example=auth_example("apiKey"),
        )
    if auth_type == "oauth2":
        return CanonicalAuth(
            type="oauth2", location="header", name="Authorization", example=auth_example("oauth2"),
        )
    return None


def _saved_responses(responses: Any) -> CanonicalResponses:
    success = None
    errors: dict[int, ErrorResponse] = {}

    for response in responses if isinstance(responses, list) else []:
        if not isinstance(response, dict) or not isinstance(response.get("code"), int):
            continue
        code = response["code"]
        headers = [h for h in response.get("header") or [] if isinstance(h, dict) and h.get("key")]
        content_type = next(
            (str(h.get("value")) for h in headers if str(h["key"]).lower() == "content-type"),
            DEFAULT_CONTENT_TYPE,
        )
        example = _response_example(response.get("body"), content_type)

        if 200 <= code < 300 and success is None:
            response_headers = [
                ResponseHeader(name=str(h["key"]), example=h.get("value"))
                for h in headers
                if str(h["key"]).lower() != "content-type"
            ]
            success = SuccessResponse(
                status=code,
                description=response.get("name") or response.get("status"),
                content_type=content_type,
                example=example,
                fields=infer_fields_from_example(example) or None,
                headers=response_headers or None,
            )
        elif 400 <= code < 600 and code not in errors:
            errors[code] = ErrorResponse(
                status=code,
                reason=response.get("status") or ERROR_REASONS.get(code, "Error"),
                description=response.get("name"),
                content_type=content_type,
                example=example,
            )

    if success is None:
        success = SuccessResponse(
            status=200,
            description="Expected successful response",
            content_type=DEFAULT_CONTENT_TYPE,
        )
    return CanonicalResponses(success=success, errors=list(errors.values()) or None)


def _response_example(body: Any, content_type: str) -> Any:
    if not isinstance(body, str) or not body:
        return None
    if "json" in content_type.lower():
        try:
            return json.loads(body)
        except ValueError:
            return body
    return body


def extract_variables(variables: Any) -> dict[str, str]:
    """Collection ``variable[]`` as a name to value mapping."""
    result = {}
    for variable in variables if isinstance(variables, list) else []:
        if not isinstance(variable, dict) or not variable.get("key") or variable.get("disabled"):
            continue
        value = variable.get("value")
        if value is None:
            value = ""
        elif not isinstance(value, str):
            value = json.dumps(value)
        result[str(variable["key"])] = value
    return result


def _version(version: Any) -> str:
    if isinstance(version, dict):
        # v2.0 {"major": 1, "minor": 2, "patch": 0}
        return ".".join(str(version.get(part, 0)) for part in ("major", "minor", "patch"))
    return str(version) if version else "1.0.0"


def _description(description: Any) -> str | None:
    if isinstance(description, dict):
        description = description.get("content")
    return description if isinstance(description, str) and description else None
