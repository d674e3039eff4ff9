"""Smart defaults for endpoints imported from cURL and Postman.

Those sources carry almost no metadata, so names and example values are used
to guess what an OpenAPI document would have said: required flags, formats,
pagination bounds and the usual error responses.
"""

import re
from typing import Any, Callable

from pydantic import BaseModel

from api_spec_importer.parser.base import (
    DEFAULT_CONTENT_TYPE,
    CanonicalAuth,
    CanonicalEndpoint,
    CanonicalField,
    CanonicalParameter,
    ErrorResponse,
    SuccessResponse,
)
from api_spec_importer.parser.schema import auth_example, infer_type_from_example

API_KEY_HEADERS = ("x-api-key", "api-key", "apikey", "x-api-token")
PAGINATION_PARAMS = ("page", "limit", "offset", "per_page", "page_size", "size")
SORT_PARAMS = ("sort", "sort_by", "order", "order_by", "sort_order")

# (min, max, default, description) per pagination parameter
PAGINATION_BOUNDS = {
    "page": (1, None, 1, "Page number for pagination (starts at 1)"),
    "limit": (1, 100, 10, "Number of items per page"),
    "per_page": (1, 100, 10, "Number of items per page"),
}

# Checked in order against string example values; first match wins.
VALUE_FORMATS: list[tuple[Callable[[str], bool], str]] = [
    (lambda v: "@" in v and "." in v, "email"),
    (lambda v: v.startswith(("http://", "https://")), "uri"),
    (lambda v: bool(re.fullmatch(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", v, re.I)), "uuid"),
    (lambda v: bool(re.match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}", v)), "date-time"),
    (lambda v: bool(re.fullmatch(r"\d{4}-\d{2}-\d{2}", v)), "date"),
    (lambda v: bool(re.fullmatch(r"\d{2}:\d{2}:\d{2}", v)), "time"),
]

COMMON_ERRORS = {
    400: ("Bad Request", "Invalid request parameters or body", "Invalid input"),
    401: ("Unauthorized", "Authentication credentials are missing or invalid", "Unauthorized"),
    403: ("Forbidden", "Authenticated but not authorized to access this resource", "Forbidden"),
    404: ("Not Found", "Resource not found", "Resource not found"),
    500: ("Internal Server Error", "Unexpected server error", "Internal server error"),
}


class SectionScore(BaseModel):
    score: int = 0
    total: int = 0


class MetadataCompleteness(BaseModel):
    """How much of an endpoint's metadata is filled in, 0-100."""

    score: int
    total: int
    complete: int
    details: dict[str, SectionScore]


def name_words(name: str) -> list[str]:
    """Split snake_case, kebab-case and camelCase names into lower-case words."""
    return [w.lower() for w in re.findall(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])", name)]


def detect_value_format(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    for matches, fmt in VALUE_FORMATS:
        if matches(value):
            return fmt
    return None


def is_filter_parameter(name: str) -> bool:
    lower = name.lower()
    return (
        lower == "q"
        or lower.startswith("filter_")
        or any(word in lower for word in ("search", "query", "status", "category"))
        or "type" in name_words(name)
    )


def is_datetime_field(name: str) -> bool:
    words = name_words(name)
    if not words:
        return False
    return (
        any(word in ("date", "time", "datetime", "timestamp") for word in words)
        or (words[-1] == "at" and len(words) > 1)
        or name.lower() in ("created", "updated")
    )


def is_boolean_field(name: str) -> bool:
    words = name_words(name)
    return bool(words) and (
        (words[0] in ("is", "has", "can", "should") and len(words) > 1)
        or name.lower() in ("active", "enabled", "disabled", "deleted", "published")
    )


def detect_header_auth(parameters: list[CanonicalParameter]) -> CanonicalAuth | None:
    """Auth block implied by Authorization or well-known API key headers."""
    headers = {p.name.lower(): p for p in parameters if p.location == "header"}

    authorization = headers.get("authorization")
    if authorization is not None:
        value = str(authorization.example or "")
        if value.startswith("Bearer "):
            return CanonicalAuth(
                type="bearer", scheme="bearer", location="header", name=authorization.name,
                description="Bearer token authentication", example=auth_example("bearer"),
            )
        if value.startswith("Basic "):
            return CanonicalAuth(
                type="basic", scheme="basic", location="header", name=authorization.name,
                description="Basic authentication", example=auth_example("basic"),
            )
        return CanonicalAuth(
            type="apiKey", location="header", name=authorization.name,
            description="API key authentication", example=auth_example("apiKey"),
        )

    for key in API_KEY_HEADERS:
        if key in headers:
            return CanonicalAuth(
                type="apiKey", location="header", name=headers[key].name,
                description="API key authentication", example=auth_example("apiKey"),
            )
    return None


def apply_smart_defaults(endpoint: CanonicalEndpoint) -> CanonicalEndpoint:
    """Return a copy of ``endpoint`` enriched with inferred metadata."""
    request = endpoint.request
    if request is not None:
        updates: dict[str, Any] = {}
        if request.parameters:
            updates["parameters"] = [enrich_parameter(p) for p in request.parameters]
        if request.body is not None and request.body.fields:
            updates["body"] = request.body.model_copy(
                update={"fields": [enrich_field(f) for f in request.body.fields]}
            )
        if updates:
            request = request.model_copy(update=updates)

    success = endpoint.responses.success
    if not success.description:
        success = success.model_copy(update={"description": _success_description(endpoint.method)})

    errors = endpoint.responses.errors or common_error_responses(endpoint.method, endpoint.auth)
    responses = endpoint.responses.model_copy(update={"success": success, "errors": errors})

    return endpoint.model_copy(update={"request": request, "responses": responses})


def enrich_parameter(param: CanonicalParameter) -> CanonicalParameter:
    lower = param.name.lower()
    data = param.model_dump()

    if param.location == "path":
        data["required"] = True
        data["description"] = data["description"] or f"Path parameter: {param.name}"

    if lower == "authorization":
        data["required"] = True
        data["description"] = data["description"] or "Authentication token"

    if lower in API_KEY_HEADERS:
        data["required"] = True
        data["description"] = data["description"] or "API key for authentication"

    if lower in PAGINATION_PARAMS:
        data["type"] = "integer"
        data["required"] = False
        if lower in PAGINATION_BOUNDS:
            minimum, maximum, default, description = PAGINATION_BOUNDS[lower]
            data.update(min=minimum, max=maximum, default=default)
            data["description"] = data["description"] or description

    if lower in SORT_PARAMS:
        data["type"] = "string"
        data["required"] = False
        data["description"] = data["description"] or "Sort order for results"

    if is_filter_parameter(param.name):
        data["required"] = False
        data["description"] = data["description"] or f"Filter results by {param.name}"

    example = param.example
    if example is not None:
        data["format"] = data["format"] or detect_value_format(example)
        data["type"] = infer_type_from_example(example)

    return CanonicalParameter(**data)


def enrich_field(field: CanonicalField) -> CanonicalField:
    # Files and containers keep their shape.
    if field.type in ("file", "object", "array"):
        return field

    lower = field.name.lower()
    updates: dict[str, Any] = {}

    if "email" in lower:
        updates.update(type="string", format="email", description=field.description or "Email address")
    if "password" in lower:
        updates.update(
            type="string", format="password", min=8,
            description=field.description or "Password (minimum 8 characters)",
        )
    if "url" in lower or "link" in lower:
        updates.update(type="string", format="uri")
    if is_datetime_field(field.name):
        updates.update(type="string", format="date-time")
    if is_boolean_field(field.name):
        updates.update(type="boolean", format=None)

    if field.example is not None and not updates.get("format", field.format):
        detected = detect_value_format(field.example)
        if detected:
            updates["format"] = detected

    return field.model_copy(update=updates) if updates else field


def _success_description(method: str) -> str:
    if method == "POST":
        return "Resource created successfully"
    if method == "DELETE":
        return "Resource deleted successfully"
    return "Successful response"


def common_error_responses(method: str, auth: CanonicalAuth | None) -> list[ErrorResponse]:
    """Error responses most APIs return for this kind of endpoint."""
    statuses = []
    if auth is not None and auth.type != "none":
        statuses += [401, 403]
    if method in ("POST", "PUT", "PATCH"):
        statuses.append(400)
    if method in ("GET", "PUT", "PATCH", "DELETE"):
        statuses.append(404)
    statuses.append(500)

    errors = []
    for status in statuses:
        reason, description, message = COMMON_ERRORS[status]
        errors.append(
            ErrorResponse(
                status=status,
                reason=reason,
                description=description,
                content_type=DEFAULT_CONTENT_TYPE,
                example={"code": status, "message": message},
            )
        )
    return errors


def calculate_metadata_completeness(endpoint: CanonicalEndpoint) -> MetadataCompleteness:
    """Score how well documented an endpoint is.

    Each parameter and body field contributes four points (description,
    required flag, type, example); the responses contribute four more
    (success description, success example, success fields, error responses).
    """
    request = endpoint.request
    parameters = SectionScore()
    for param in (request.parameters if request else None) or []:
        parameters.total += 4
        parameters.score += 2 + bool(param.description) + (param.example is not None)

    body = SectionScore()
    fields = request.body.fields if request and request.body else []
    for field in fields:
        body.total += 4
        body.score += 2 + bool(field.description) + (field.example is not None)

    success = endpoint.responses.success
    responses = SectionScore(total=4)
    responses.score = (
        bool(success.description)
        + bool(success.example)
        + bool(success.fields)
        + bool(endpoint.responses.errors)
    )

    complete = parameters.score + body.score + responses.score
    total = parameters.total + body.total + responses.total
    score = int(complete * 100 / total + 0.5) if total else 100

    return MetadataCompleteness(
        score=score,
        total=total,
        complete=complete,
        details={"parameters": parameters, "body": body, "responses": responses},
    )
