"""Canonical data models for imported API descriptions.

All converters (OpenAPI/Swagger, Postman, cURL) convert their input
into these models for downstream processing. Attributes are snake_case;
dumping with by_alias=True gives the camelCase JSON shape the UI reads
(contentType, baseUrl, rawSpec, ...), with parameter/auth location under "in".
"""

from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    field_validator,
    model_serializer,
    model_validator,
)
from pydantic.alias_generators import to_camel

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "TRACE")

DEFAULT_CONTENT_TYPE = "application/json"

ERROR_REASONS = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}

ImportFormat = Literal["openapi", "swagger", "postman", "curl"]
AuthType = Literal["none", "basic", "bearer", "apiKey", "oauth2"]


class CanonicalModel(BaseModel):
    """Immutable base with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ParameterItems(CanonicalModel):
    type: str = "string"
    example: Any = None


class FieldItems(CanonicalModel):
    type: str = "string"
    enum: list[Any] | None = None
    properties: list["CanonicalField"] | None = None


class CanonicalField(CanonicalModel):
    """A body or response field. Nested objects keep their children in
    ``properties``; names are never dot-joined."""

    name: str
    type: str = "string"
    required: bool = False
    description: str | None = None
    format: str | None = None
    enum: list[Any] | None = None
    pattern: str | None = None
    min: int | float | None = None
    max: int | float | None = None
    items: FieldItems | None = None
    properties: list["CanonicalField"] | None = None
    example: Any = None

    @model_validator(mode="before")
    @classmethod
    def _fill_nested(cls, data: Any) -> Any:
        if isinstance(data, dict):
            kind = data.get("type")
            if kind == "object" and data.get("properties") is None:
                data = {**data, "properties": []}
            elif kind == "array" and data.get("items") is None:
                data = {**data, "items": {"type": "string"}}
        return data


FieldItems.model_rebuild()


class CanonicalParameter(CanonicalModel):
    """A single API parameter (path, query, header, or cookie)."""

    name: str
    location: Literal["path", "query", "header", "cookie"] = Field(alias="in")
    type: str = "string"
    required: bool = False
    description: str | None = None
    example: Any  # always set, possibly to JSON null
    enum: list[Any] | None = None
    pattern: str | None = None
    min: int | float | None = None
    max: int | float | None = None
    default: Any = None
    format: str | None = None
    items: ParameterItems | None = None

    @model_serializer(mode="wrap")
    def _keep_null_example(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        # exclude_none must not drop the example key
        data = handler(self)
        data.setdefault("example", None)
        return data


class CanonicalRequestBody(CanonicalModel):
    required: bool = False
    description: str | None = None
    example: Any = None
    fields: list[CanonicalField] = []


class CanonicalRequest(CanonicalModel):
    content_type: str = DEFAULT_CONTENT_TYPE
    parameters: list[CanonicalParameter] | None = None
    body: CanonicalRequestBody | None = None


class ResponseHeader(CanonicalModel):
    name: str
    type: str = "string"
    description: str | None = None
    example: Any = None


class SuccessResponse(CanonicalModel):
    status: int = 200
    description: str | None = None
    content_type: str | None = None
    example: Any = None
    fields: list[CanonicalField] | None = None
    headers: list[ResponseHeader] | None = None


class ErrorResponse(CanonicalModel):
    status: int = Field(ge=400, lt=600)
    reason: str
    description: str | None = None
    content_type: str | None = None
    example: Any = None


class CanonicalResponses(CanonicalModel):
    success: SuccessResponse = Field(default_factory=SuccessResponse)
    errors: list[ErrorResponse] | None = None


class CanonicalAuth(CanonicalModel):
    required: bool = True
    type: AuthType = "none"
    scheme: str | None = None
    bearer_format: str | None = None
    location: Literal["header", "query", "cookie"] | None = Field(default=None, alias="in")
    name: str | None = None
    description: str | None = None
    example: str = ""


class CanonicalEndpoint(CanonicalModel):
    """A single HTTP operation in canonical form."""

    source: ImportFormat
    method: str  # GET / POST / PUT / DELETE / PATCH / HEAD / OPTIONS / TRACE
    path: str  # /users/{id}
    name: str
    description: str | None = None
    tags: list[str] = []
    operation_id: str | None = None
    deprecated: bool = False
    request: CanonicalRequest | None = None
    responses: CanonicalResponses = Field(default_factory=CanonicalResponses)
    auth: CanonicalAuth | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            method = str(data.get("method", "")).upper()
            path = _leading_slash(str(data.get("path", "")))
            data = {**data, "name": f"{method} {path}"}
        return data

    @field_validator("method")
    @classmethod
    def _check_method(cls, value: str) -> str:
        method = value.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"unsupported HTTP method: {value}")
        return method

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        return _leading_slash(value)


class CanonicalSpec(CanonicalModel):
    """Root of an import: one API with its endpoints and the untouched input."""

    name: str
    version: str = "1.0.0"
    description: str | None = None
    base_url: str | None = None
    format: ImportFormat
    variables: dict[str, str] = {}
    endpoints: list[CanonicalEndpoint] = []
    raw_spec: str = ""


def _leading_slash(path: str) -> str:
    return path if path.startswith("/") else "/" + path
