"""Schema helpers shared by the converters.

Generates example values from JSON-Schema fragments, flattens schemas into
canonical fields, resolves local $ref pointers, and infers types from literal
examples when no schema exists. Nothing here raises on malformed input:
unknown shapes degrade to placeholders and unresolved references are
reported as warning diagnostics.
"""

import logging
import math
from typing import Any, Callable, Iterable

from api_spec_importer import diagnostics
from api_spec_importer.parser.base import DEFAULT_CONTENT_TYPE, CanonicalField

logger = logging.getLogger(__name__)

MAX_SCHEMA_DEPTH = 32

FAKE_JWT = "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."
FAKE_BEARER = f"Bearer {FAKE_JWT}"
FAKE_BASIC = "Basic dXNlcm5hbWU6cGFzc3dvcmQ="
FAKE_API_KEY = "your-api-key-here"

FORMAT_EXAMPLES = {
    "date-time": "2024-01-01T00:00:00.000Z",
    "date": "2024-01-01",
    "time": "10:30:00",
    "email": "user@example.com",
    "uuid": "123e4567-e89b-12d3-a456-426614174000",
    "uri": "https://example.com",
    "url": "https://example.com",
    "hostname": "example.com",
    "ipv4": "192.168.1.1",
    "ipv6": "2001:0db8:85a3:0000:0000:8a2e:0370:7334",
    "byte": "SGVsbG8gV29ybGQ=",
    "password": "secret123",
}

PATTERN_EXAMPLES = {
    "^[a-z]+$": "example",
    "^[A-Z]+$": "EXAMPLE",
    "^[0-9]+$": "12345",
}


def _contains(*needles: str) -> Callable[[str], bool]:
    return lambda name: any(needle in name for needle in needles)


# Checked in order against the lower-cased field name; first match wins.
NAME_RULES: list[tuple[Callable[[str], bool], str | Callable[[str], str]]] = [
    (_contains("email"), "user@example.com"),
    (_contains("phone"), "+1-555-0123"),
    (_contains("url", "link"), "https://example.com"),
    (_contains("name"), "Example Name"),
    (_contains("description"), "Example description"),
    (_contains("title"), "Example Title"),
    (_contains("id"), "abc123"),
    (_contains("code"), "CODE123"),
    (_contains("token"), FAKE_JWT),
    (_contains("key"), FAKE_API_KEY),
    (_contains("file", "image", "photo"), lambda name: f"{name}.jpg"),
]


def example_for_field_name(field_name: str) -> str:
    """Pick a realistic string for a field based on its name alone."""
    lower = field_name.lower()
    for matches, value in NAME_RULES:
        if matches(lower):
            return value(field_name) if callable(value) else value
    return f"example-{field_name}"


def _placeholder(field_name: str | None) -> str:
    return f"example-{field_name}" if field_name else "example-value"


def schema_to_example(schema: Any, field_name: str | None = None, spec: dict | None = None) -> Any:
    """Build a representative value for a JSON-Schema node.

    Priority: ``example``, first of ``examples``, ``default``, then synthesis
    from ``type``. When ``spec`` is given, ``$ref`` nodes are followed.
    """
    return _to_example(schema, field_name, spec, 0, frozenset())


def _to_example(schema: Any, field_name: str | None, spec: dict | None, depth: int, seen: frozenset) -> Any:
    if depth > MAX_SCHEMA_DEPTH:
        return _placeholder(field_name)
    schema, seen = _resolve_node(schema, spec, seen, quiet=True)
    if not isinstance(schema, dict):
        return _placeholder(field_name)

    if "example" in schema:
        return schema["example"]
    examples = schema.get("examples")
    if isinstance(examples, list) and examples:
        return examples[0]
    if "default" in schema:
        return schema["default"]

    kind = schema_type(schema)
    if kind == "string":
        return _string_example(schema, field_name)
    if kind in ("number", "integer"):
        return _number_example(schema, kind)
    if kind == "boolean":
        return True
    if kind == "array":
        items = schema.get("items")
        if isinstance(items, dict):
            return [_to_example(items, field_name, spec, depth + 1, seen)]
        return []
    if kind == "object":
        properties = schema.get("properties")
        if not isinstance(properties, dict):
            return {}
        return {
            name: _to_example(prop, name, spec, depth + 1, seen)
            for name, prop in properties.items()
        }
    if kind == "file":
        return f"{field_name or 'file'}.jpg"
    if kind == "null":
        return None
    return _placeholder(field_name)


def _string_example(schema: dict, field_name: str | None) -> str:
    fmt = schema.get("format")
    if fmt == "binary":
        return f"{field_name or 'file'}.jpg"
    if fmt in FORMAT_EXAMPLES:
        return FORMAT_EXAMPLES[fmt]

    enum = schema.get("enum")
    if isinstance(enum, list) and enum:
        return enum[0]

    pattern = schema.get("pattern")
    if pattern in PATTERN_EXAMPLES:
        return PATTERN_EXAMPLES[pattern]

    if field_name:
        return example_for_field_name(field_name)
    return "example-value"


def _number_example(schema: dict, kind: str) -> int | float:
    minimum = first_number(schema, "minimum")
    if minimum is not None:
        return minimum
    exclusive = first_number(schema, "exclusiveMinimum")
    if exclusive is not None:
        return exclusive + 1
    enum = schema.get("enum")
    if isinstance(enum, list) and enum:
        return enum[0]
    return 123 if kind == "integer" else 123.45


def schema_type(schema: dict) -> str | None:
    """Declared type of a schema node, inferred from its shape when missing."""
    kind = schema.get("type")
    if isinstance(kind, list):
        # OpenAPI 3.1 style ["string", "null"]
        concrete = [k for k in kind if k != "null"]
        kind = concrete[0] if concrete else ("null" if kind else None)
    if kind is None:
        if isinstance(schema.get("properties"), dict):
            return "object"
        if isinstance(schema.get("items"), dict):
            return "array"
    return kind


def first_number(node: dict, *keys: str) -> Any:
    """First of ``keys`` holding a number; booleans (3.0 exclusiveMinimum) skipped."""
    for key in keys:
        value = node.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
    return None


def resolve_schema_ref(ref: str, spec: Any) -> Any | None:
    """Follow a local ``#/a/b/c`` pointer into ``spec``.

    Returns None (and records a warning) for external refs or missing segments.
    """
    if not isinstance(ref, str) or not ref.startswith("#/"):
        diagnostics.warn(f"Unsupported $ref format: {ref}", ref=ref)
        return None

    current = spec
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            diagnostics.warn(f"Could not resolve $ref: {ref}", ref=ref)
            return None
    return current


def _resolve_node(node: Any, spec: dict | None, seen: frozenset, quiet: bool = False) -> tuple[Any, frozenset]:
    """Resolve ``$ref`` chains and flatten allOf/oneOf/anyOf.

    ``seen`` holds the refs already followed on this branch; meeting one again
    leaves the node unresolved instead of recursing forever.
    """
    while isinstance(node, dict) and "$ref" in node and spec is not None:
        ref = node["$ref"]
        if ref in seen:
            if not quiet:
                diagnostics.warn(f"Circular $ref {ref} left unresolved", ref=ref)
            return node, seen
        resolved = resolve_schema_ref(ref, spec)
        if resolved is None:
            return node, seen
        node, seen = resolved, seen | {ref}

    if isinstance(node, dict):
        node = _merge_composite(node, spec, seen)
    return node, seen


def _merge_composite(node: dict, spec: dict | None, seen: frozenset) -> dict:
    parts = node.get("allOf")
    if isinstance(parts, list) and parts:
        merged = {key: value for key, value in node.items() if key != "allOf"}
        properties = dict(merged.get("properties") or {})
        required = list(merged.get("required") or [])
        for part in parts:
            part, _ = _resolve_node(part, spec, seen)
            if not isinstance(part, dict):
                continue
            properties.update(part.get("properties") or {})
            required.extend(name for name in part.get("required") or [] if name not in required)
            for key in ("type", "description", "example"):
                if key in part:
                    merged.setdefault(key, part[key])
        if properties:
            merged["properties"] = properties
            merged.setdefault("type", "object")
        if required:
            merged["required"] = required
        return merged

    for key in ("oneOf", "anyOf"):
        options = node.get(key)
        if isinstance(options, list) and options:
            first, _ = _resolve_node(options[0], spec, seen)
            if isinstance(first, dict):
                rest = {k: v for k, v in node.items() if k != key}
                return {**first, **rest}
    return node


def resolve_node(node: Any, spec: dict | None) -> Any:
    """Resolve a node (schema, parameter, response, ...) that may be a ``$ref``.

    Returns None when the node is not an object or its ``$ref`` is missing or
    circular, so callers treat it as absent.
    """
    if not isinstance(node, dict):
        return None
    resolved, _ = _resolve_node(node, spec, frozenset())
    if not isinstance(resolved, dict):
        return None
    if "$ref" in resolved and spec is not None:
        return None
    return resolved


def flatten_schema_to_fields(
    schema: Any,
    required_field_names: Iterable[str] = (),
    spec: dict | None = None,
) -> list[CanonicalField]:
    """Turn ``schema.properties`` into one level of canonical fields.

    Nested objects (and arrays of objects) keep their children under
    ``properties`` / ``items.properties``; names are never dot-joined.
    Pass ``spec`` to resolve ``$ref`` on properties and array items.
    """
    return _flatten(schema, required_field_names, spec, 0, frozenset())


def _flatten(schema: Any, required: Iterable[str], spec: dict | None, depth: int, seen: frozenset) -> list[CanonicalField]:
    schema, seen = _resolve_node(schema, spec, seen)
    if not isinstance(schema, dict):
        return []
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return []
    if depth >= MAX_SCHEMA_DEPTH:
        diagnostics.warn(f"Schema nested deeper than {MAX_SCHEMA_DEPTH} levels, truncated", depth=depth)
        return []

    required_names = set(required or ())
    fields = []
    for name, prop in properties.items():
        prop, prop_seen = _resolve_node(prop, spec, seen)
        if not isinstance(prop, dict):
            prop = {}
        fields.append(_to_field(name, prop, name in required_names, spec, depth, prop_seen))
    return fields


def _to_field(name: str, prop: dict, required: bool, spec: dict | None, depth: int, seen: frozenset) -> CanonicalField:
    kind = schema_type(prop) or "string"
    data: dict[str, Any] = {
        "name": name,
        "type": kind,
        "required": required,
        "description": prop.get("description"),
        "format": prop.get("format"),
        "enum": prop.get("enum"),
        "pattern": prop.get("pattern"),
        "min": first_number(prop, "minimum", "minLength"),
        "max": first_number(prop, "maximum", "maxLength"),
    }

    if kind == "array" and isinstance(prop.get("items"), dict):
        items, items_seen = _resolve_node(prop["items"], spec, seen)
        if not isinstance(items, dict):
            items = {}
        item_kind = schema_type(items) or "string"
        item_data: dict[str, Any] = {"type": item_kind}
        if items.get("enum"):
            item_data["enum"] = items["enum"]
        if item_kind == "object":
            item_data["properties"] = _flatten(items, items.get("required") or [], spec, depth + 1, items_seen)
        data["items"] = item_data

    if kind == "object":
        data["properties"] = _flatten(prop, prop.get("required") or [], spec, depth + 1, seen)

    return CanonicalField(**data)


def infer_type_from_example(value: Any) -> str:
    """Canonical type name for a literal JSON value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "integer" if value.is_integer() else "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "string"


def infer_fields_from_example(example: Any, required: bool = False) -> list[CanonicalField]:
    """Derive fields from a literal object when there is no schema."""
    if not isinstance(example, dict):
        return []
    return [_infer_field(str(name), value, required) for name, value in example.items()]


def _infer_field(name: str, value: Any, required: bool) -> CanonicalField:
    data: dict[str, Any] = {"name": name, "type": _field_type(value), "required": required}
    if isinstance(value, dict):
        data["properties"] = infer_fields_from_example(value, required)
    elif isinstance(value, list) and value:
        first = value[0]
        items: dict[str, Any] = {"type": _field_type(first)}
        if isinstance(first, dict):
            items["properties"] = infer_fields_from_example(first, required)
        data["items"] = items
    return CanonicalField(**data)


def _field_type(value: Any) -> str:
    kind = infer_type_from_example(value)
    return "string" if kind == "null" else kind


def extract_content_type(container: Any) -> str:
    """Pick the content type of a request body or response.

    Prefers application/json, else the first declared media type.
    """
    content = container.get("content") if isinstance(container, dict) else None
    if not isinstance(content, dict) or not content:
        return DEFAULT_CONTENT_TYPE
    if DEFAULT_CONTENT_TYPE in content:
        return DEFAULT_CONTENT_TYPE
    return next(iter(content))


def extract_example(node: Any, field_name: str | None = None, spec: dict | None = None) -> Any:
    """Find the primary example on a schema or media type object."""
    if spec is not None:
        node = resolve_node(node, spec) or node
    if not isinstance(node, dict):
        return None

    if "example" in node:
        return node["example"]

    examples = node.get("examples")
    if isinstance(examples, list) and examples:
        return examples[0]
    if isinstance(examples, dict) and examples:
        first = next(iter(examples.values()))
        if spec is not None:
            first = resolve_node(first, spec) or first
        if isinstance(first, dict) and "value" in first:
            return first["value"]
        return first

    if isinstance(node.get("schema"), dict):
        return extract_example(node["schema"], field_name, spec)

    if "type" in node or "properties" in node:
        return schema_to_example(node, field_name, spec)
    return None


def parse_scalar(value: str) -> Any:
    """Turn a query/form string into a bool or number when it looks like one."""
    if value == "true":
        return True
    if value == "false":
        return False
    if not value.strip() or "_" in value:
        return value
    try:
        number = float(value)
    except ValueError:
        return value
    if not math.isfinite(number):
        return value
    return int(number) if number.is_integer() else number


def auth_example(auth_type: str) -> str:
    """Fake but plausible credential for an auth type."""
    if auth_type in ("bearer", "oauth2"):
        return FAKE_BEARER
    if auth_type == "basic":
        return FAKE_BASIC
    if auth_type == "apiKey":
        return FAKE_API_KEY
    return ""
