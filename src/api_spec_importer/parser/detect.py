"""Auto-detect the format of imported API descriptions.

Recognizes OpenAPI 3.x, Swagger 2.0, Postman Collection v2.x (JSON or YAML
documents) and cURL command lines. Detection also hands back the loaded
document, wrapped in a small tagged type per format, so the dispatcher
never parses the input twice.
"""

import json
import re
from typing import Any, Literal

import yaml
from pydantic import BaseModel

DetectedFormat = Literal["openapi", "swagger", "postman", "curl", "unknown"]

POSTMAN_SCHEMA_PATTERN = re.compile(r"postman\.com/json/collection/v?(\d+(?:\.\d+)*)", re.IGNORECASE)
CURL_PATTERN = re.compile(r"^curl(\s|$)", re.IGNORECASE)


class DetectionResult(BaseModel):
    format: DetectedFormat
    version: str | None = None
    confidence: float = 0.0  # 0-1, 1 = certain
    details: str | None = None


class OpenApiDocument(BaseModel):
    doc: dict[str, Any]


class SwaggerDocument(BaseModel):
    doc: dict[str, Any]


class PostmanDocument(BaseModel):
    doc: dict[str, Any]


class CurlText(BaseModel):
    text: str


ImportDocument = OpenApiDocument | SwaggerDocument | PostmanDocument | CurlText


def load_document(text: str) -> Any:
    """Load JSON, falling back to YAML. Returns None when neither parses."""
    try:
        return json.loads(text)
    except ValueError:
        pass
    try:
        return yaml.safe_load(text)
    except (yaml.YAMLError, ValueError):
        return None


def detect_document(content: str) -> tuple[DetectionResult, ImportDocument | None]:
    """Detect the format of ``content`` and return the loaded document with it."""
    trimmed = content.strip()
    data = load_document(trimmed) if trimmed else None

    if isinstance(data, dict):
        openapi = data.get("openapi")
        if isinstance(openapi, (str, int, float)) and not isinstance(openapi, bool):
            version = str(openapi)
            return (
                DetectionResult(format="openapi", version=version, confidence=1.0, details=f"OpenAPI {version} specification"),
                OpenApiDocument(doc=data),
            )

        swagger = data.get("swagger")
        if isinstance(swagger, (str, int, float)) and not isinstance(swagger, bool):
            version = str(swagger)
            return (
                DetectionResult(format="swagger", version=version, confidence=1.0, details=f"Swagger {version} specification"),
                SwaggerDocument(doc=data),
            )

        postman_version = _postman_version(data)
        if postman_version is not None:
            return (
                DetectionResult(
                    format="postman",
                    version=postman_version or None,
                    confidence=1.0 if postman_version else 0.9,
                    details=f"Postman Collection {postman_version or 'v2.x'}",
                ),
                PostmanDocument(doc=data),
            )

    if CURL_PATTERN.match(trimmed):
        return (
            DetectionResult(format="curl", confidence=1.0, details="Detected cURL command"),
            CurlText(text=content),
        )

    details = "Not valid JSON and not a cURL command" if data is None else "Could not determine format"
    return DetectionResult(format="unknown", confidence=0.0, details=details), None


def detect_format(content: str) -> DetectionResult:
    """Detect the format of an API description.

    Returns a DetectionResult whose format is 'openapi', 'swagger', 'postman',
    'curl', or 'unknown'.
    """
    detection, _ = detect_document(content)
    return detection


def _postman_version(data: dict) -> str | None:
    """Schema version of a Postman collection, "" when it is one but the
    version is unknown, None when it is not a collection."""
    info = data.get("info")
    if not isinstance(info, dict) or "name" not in info:
        return None

    schema = info.get("schema")
    if isinstance(schema, str):
        match = POSTMAN_SCHEMA_PATTERN.search(schema)
        if match:
            return match.group(1)
        if "postman" in schema.lower():
            return ""

    if "_postman_id" in info and isinstance(data.get("item"), list):
        return ""
    return None


def validate_document(data: dict, fmt: str) -> list[str]:
    """Check required top-level fields. Returns one message per problem."""
    errors: list[str] = []
    if fmt in ("openapi", "swagger"):
        info = data.get("info")
        if not isinstance(info, dict):
            errors.append('Missing "info" object')
            info = {}
        components = data.get("components") if isinstance(data.get("components"), dict) else {}
        # A schemas-only document is still a valid description
        if not isinstance(data.get("paths"), dict) and not isinstance(components.get("schemas"), dict):
            errors.append('Missing "paths" object (no endpoints defined)')
        if not info.get("title"):
            errors.append('Missing "info.title"')
        if not info.get("version"):
            errors.append('Missing "info.version"')
    elif fmt == "postman":
        info = data.get("info") if isinstance(data.get("info"), dict) else {}
        if not info.get("name"):
            errors.append('Missing "info.name"')
        items = data.get("item")
        if not isinstance(items, list):
            errors.append('Missing or invalid "item" array')
        elif not items:
            errors.append("Collection has no items (requests)")
    return errors


def validate_format(content: str, expected_format: str) -> tuple[bool, list[str]]:
    """Validate that ``content`` is a well-formed document of ``expected_format``."""
    detection, document = detect_document(content)
    if detection.format != expected_format:
        return False, [f"Expected {expected_format} but detected {detection.format}"]
    if isinstance(document, CurlText) or document is None:
        return True, []
    errors = validate_document(document.doc, detection.format)
    return not errors, errors


def extract_basic_info(content: str) -> dict[str, str]:
    """Name, version and description without converting the whole document."""
    detection, document = detect_document(content)

    if isinstance(document, CurlText):
        match = re.search(r"https?://[^\s'\"]+", content)
        if not match:
            return {}
        return {
            "name": f"cURL: {match.group(0)}",
            "version": "1.0.0",
            "description": "Imported from cURL command",
        }

    if document is None:
        return {}
    info = document.doc.get("info")
    if not isinstance(info, dict):
        return {}
    result = {
        "name": info.get("title") or info.get("name"),
        "version": str(info.get("version") or "1.0.0"),
        "description": info.get("description"),
    }
    return {key: value for key, value in result.items() if isinstance(value, str) and value}
