"""cURL command converter.

Tokenizes a copy-pasted ``curl`` command line with POSIX shell rules and
turns it into a single CanonicalEndpoint.
"""

import base64
import json
import logging
import re
import shlex
from typing import Any
from urllib.parse import parse_qsl, quote_plus, urlsplit

from pydantic import BaseModel

from api_spec_importer import diagnostics
from api_spec_importer.exceptions import CurlParseError
from api_spec_importer.parser.base import (
    DEFAULT_CONTENT_TYPE,
    CanonicalEndpoint,
    CanonicalField,
    CanonicalParameter,
    CanonicalRequest,
    CanonicalRequestBody,
    CanonicalResponses,
    CanonicalSpec,
    SuccessResponse,
)
from api_spec_importer.parser.defaults import apply_smart_defaults, detect_header_auth
from api_spec_importer.parser.schema import infer_fields_from_example, infer_type_from_example, parse_scalar

logger = logging.getLogger(__name__)

FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART = "multipart/form-data"

METHOD_FLAGS = ("-X", "--request")
HEADER_FLAGS = ("-H", "--header")
DATA_FLAGS = ("-d", "--data", "--data-raw", "--data-binary", "--data-ascii")
URLENCODE_FLAGS = ("--data-urlencode",)
FORM_FLAGS = ("-F", "--form", "--form-string")
USER_FLAGS = ("-u", "--user")
URL_FLAGS = ("--url",)

# Flags whose value becomes a header
HEADER_SHORTHANDS = {
    "-A": "User-Agent",
    "--user-agent": "User-Agent",
    "-e": "Referer",
    "--referer": "Referer",
    "-b": "Cookie",
    "--cookie": "Cookie",
}

# Value-taking flags that carry nothing for the endpoint
IGNORED_VALUE_FLAGS = (
    "-o", "--output", "-m", "--max-time", "--connect-timeout", "-x", "--proxy",
    "-U", "--proxy-user", "-w", "--write-out", "-c", "--cookie-jar", "-K", "--config",
    "-E", "--cert", "--key", "--cacert", "--capath", "-r", "--range", "--retry",
    "--retry-delay", "--max-redirs", "--limit-rate", "--resolve", "--interface",
    "-T", "--upload-file", "-y", "--speed-time", "-Y", "--speed-limit",
)

VALUE_FLAGS = (
    METHOD_FLAGS + HEADER_FLAGS + DATA_FLAGS + URLENCODE_FLAGS + FORM_FLAGS
    + USER_FLAGS + URL_FLAGS + tuple(HEADER_SHORTHANDS) + IGNORED_VALUE_FLAGS
)

HEAD_FLAGS = ("-I", "--head")
GET_FLAGS = ("-G", "--get")


class CurlCommand(BaseModel):
    """The parts of a curl command line that describe the request."""

    method: str = "GET"
    url: str
    headers: list[tuple[str, str]] = []
    body: str | None = None
    form: list[tuple[str, str]] = []
    content_type: str | None = None


def tokenize(command: str) -> list[str]:
    """Split a command line into arguments, joining backslash continuations."""
    joined = re.sub(r"\\\r?\n", " ", command)
    try:
        return shlex.split(joined, posix=True)
    except ValueError as e:
        raise CurlParseError(f"Could not tokenize cURL command: {e}") from e


def _split_option(token: str) -> tuple[str, str | None]:
    """Separate ``--data=x`` / ``-XPOST`` into flag and attached value."""
    if token.startswith("--"):
        flag, sep, value = token.partition("=")
        if sep and flag in VALUE_FLAGS:
            return flag, value
        return token, None
    if len(token) > 2 and token[:2] in VALUE_FLAGS:
        return token[:2], token[2:]
    return token, None


def parse_curl_command(command: str) -> CurlCommand:
    """Parse a curl command line. Raises CurlParseError when no URL is found."""
    tokens = tokenize(command.strip())
    if not tokens or tokens[0].lower() != "curl":
        raise CurlParseError("Command does not start with curl")

    method = None
    url = None
    force_get = False
    head = False
    headers: list[tuple[str, str]] = []
    data: list[str] = []
    form: list[tuple[str, str]] = []
    user = None

    args = iter(tokens[1:])
    for token in args:
        if token == "--" or not token.startswith("-") or token == "-":
            if url is None and token != "--":
                url = token
            continue

        flag, value = _split_option(token)
        if flag in VALUE_FLAGS and value is None:
            value = next(args, None)
            if value is None:
                logger.debug("Flag %s has no value", flag)
                break

        if flag in METHOD_FLAGS:
            method = value.upper()
        elif flag in HEADER_FLAGS:
            name, _, header_value = value.partition(":")
            if name.strip():
                headers.append((name.strip(), header_value.strip()))
        elif flag in HEADER_SHORTHANDS:
            headers.append((HEADER_SHORTHANDS[flag], value))
        elif flag in DATA_FLAGS:
            data.append(value)
        elif flag in URLENCODE_FLAGS:
            data.append(_urlencode_data(value))
        elif flag in FORM_FLAGS:
            name, _, form_value = value.partition("=")
            form.append((name.strip(), form_value))
        elif flag in USER_FLAGS:
            user = value
        elif flag in URL_FLAGS:
            url = value
        elif flag in HEAD_FLAGS:
            head = True
        elif flag in GET_FLAGS:
            force_get = True
        # anything else (-L, -s, -k, --compressed, ...) is ignored

    if not url:
        raise CurlParseError("Could not extract URL from cURL command")
    if "://" not in url:
        url = f"http://{url}"

    parts = urlsplit(url)
    if user is not None:
        headers.insert(0, ("Authorization", _basic_header(user)))
    if parts.username is not None:
        if not any(name.lower() == "authorization" for name, _ in headers):
            headers.append(("Authorization", _basic_header(f"{parts.username}:{parts.password or ''}")))
        url = parts._replace(netloc=parts.netloc.rpartition("@")[2]).geturl()

    body = _combine_data(data)
    if force_get and body is not None:
        url = f"{url}{'&' if '?' in url else '?'}{body}"
        body = None

    if method is None:
        if head:
            method = "HEAD"
        elif force_get:
            method = "GET"
        elif body is not None or form:
            method = "POST"
        else:
            method = "GET"

    content_type = None
    if form:
        content_type = MULTIPART
    else:
        content_type = next((v for name, v in headers if name.lower() == "content-type"), None)
        if content_type is None and body is not None:
            content_type = DEFAULT_CONTENT_TYPE if _load_json(body) is not None else FORM_URLENCODED

    return CurlCommand(method=method, url=url, headers=headers, body=body, form=form, content_type=content_type)


def _combine_data(parts: list[str]) -> str | None:
    """Combine repeated -d payloads.

    When the first payload is JSON only it is kept; otherwise every payload is
    joined with ``&`` the way curl sends form data.
    """
    if not parts:
        return None
    if _load_json(parts[0]) is not None:
        if len(parts) > 1:
            diagnostics.warn(
                f"Ignored {len(parts) - 1} additional -d payload(s) after a JSON body",
                dropped=parts[1:],
            )
        return parts[0]
    return "&".join(parts)


def _urlencode_data(value: str) -> str:
    name, sep, content = value.partition("=")
    if sep:
        return f"{name}={quote_plus(content)}"
    return quote_plus(value)


def _load_json(text: str) -> Any:
    """Parsed JSON object or array, None for anything else."""
    stripped = text.strip()
    if not stripped.startswith(("{", "[")):
        return None
    try:
        return json.loads(stripped)
    except ValueError:
        return None


def _basic_header(credentials: str) -> str:
    if ":" not in credentials:
        credentials += ":"
    return "Basic " + base64.b64encode(credentials.encode("utf-8")).decode("ascii")


def _query_parameters(query: str) -> list[CanonicalParameter]:
    params = []
    for name, value in parse_qsl(query, keep_blank_values=True):
        example = parse_scalar(value)
        params.append(
            CanonicalParameter(
                name=name,
                location="query",
                type=infer_type_from_example(example),
                required=False,
                example=example,
            )
        )
    return params


def _header_parameter(name: str, value: str) -> CanonicalParameter:
    lower = name.lower()
    if lower == "content-type":
        description = "Request content type"
    elif lower == "authorization":
        description = "Authentication token"
    else:
        description = None
    return CanonicalParameter(
        name=name,
        location="header",
        type="string",
        required=lower == "authorization",
        description=description,
        example=value,
    )


def _convert_body(parsed: CurlCommand) -> CanonicalRequestBody | None:
    if parsed.form:
        return _form_body(parsed.form)
    if parsed.body is None:
        return None

    body = parsed.body
    content_type = (parsed.content_type or "").lower()
    example: Any = body
    fields: list[CanonicalField]

    structured = _load_json(body) if "json" in content_type or body.strip().startswith(("{", "[")) else None
    if structured is not None:
        example = structured
        fields = infer_fields_from_example(structured, required=True)
    elif "form-urlencoded" in content_type:
        fields = [
            CanonicalField(name=name, type=infer_type_from_example(parse_scalar(value)), required=True)
            for name, value in parse_qsl(body, keep_blank_values=True)
        ]
    else:
        fields = [CanonicalField(name="body", type="string", required=True)]

    return CanonicalRequestBody(
        required=True,
        description="Request body from cURL command",
        example=example,
        fields=fields,
    )


def _form_body(form: list[tuple[str, str]]) -> CanonicalRequestBody:
    example: dict[str, Any] = {}
    fields = []
    for name, value in form:
        if not name:
            continue
        if value.startswith("@"):
            # @path/to/file;type=image/png
            filename = re.split(r"[\\/]", value[1:].split(";")[0])[-1]
            example[name] = filename
            fields.append(
                CanonicalField(
                    name=name, type="file", format="binary", required=True,
                    description=f"File upload: {filename}", example=filename,
                )
            )
        else:
            example[name] = value
            fields.append(CanonicalField(name=name, type="string", required=True))

    return CanonicalRequestBody(
        required=True,
        description="Request body from cURL command",
        example=example,
        fields=fields,
    )


def _to_endpoint(parsed: CurlCommand) -> CanonicalEndpoint:
    parts = urlsplit(parsed.url)
    path = parts.path or "/"
    logger.debug("Converting curl %s %s", parsed.method, path)

    parameters = _query_parameters(parts.query)
    parameters += [_header_parameter(name, value) for name, value in parsed.headers]

    endpoint = CanonicalEndpoint(
        source="curl",
        method=parsed.method,
        path=path,
        name=f"{parsed.method} {path}",
        description="Imported from cURL command",
        tags=["imported", "curl"],
        request=CanonicalRequest(
            content_type=parsed.content_type or DEFAULT_CONTENT_TYPE,
            parameters=parameters or None,
            body=_convert_body(parsed),
        ),
        responses=CanonicalResponses(
            success=SuccessResponse(
                status=200,
                description="Expected successful response",
                content_type=DEFAULT_CONTENT_TYPE,
            ),
        ),
        auth=detect_header_auth(parameters),
    )
    return apply_smart_defaults(endpoint)


def convert_curl_to_canonical(command: str) -> CanonicalEndpoint:
    """Convert one curl command line into a CanonicalEndpoint."""
    return _to_endpoint(parse_curl_command(command))


def generate_spec_from_curl(command: str, spec_name: str | None = None) -> CanonicalSpec:
    """Wrap a curl command into a one-endpoint CanonicalSpec."""
    parsed = parse_curl_command(command)
    endpoint = _to_endpoint(parsed)
    parts = urlsplit(parsed.url)

    return CanonicalSpec(
        name=spec_name or f"cURL Import — {endpoint.method} {endpoint.path}",
        version="1.0.0",
        description="Imported from cURL command",
        base_url=f"{parts.scheme}://{parts.netloc}",
        format="curl",
        endpoints=[endpoint],
        raw_spec=command,
    )
