"""Exceptions raised while importing API descriptions.

Every exception inherits from SpecImportError so the import dispatcher can
turn any of them into a failure result with a single except clause.
"""


class SpecImportError(Exception):
    """Base exception for all import errors."""

    def __init__(self, message: str, *args):
        self.message = message
        super().__init__(message, *args)


class FormatDetectionError(SpecImportError):
    """Input does not match any supported format signature."""

    def __init__(self, details: str | None = None):
        self.details = details
        super().__init__(
            "Could not detect format. Supported formats: OpenAPI 3.x, Swagger 2.0, "
            "Postman Collection v2.x, cURL command"
        )


class FormatMismatchError(SpecImportError):
    """The caller declared a format that differs from the detected one.

    Attributes:
        expected: The format the caller asked for.
        detected: The format found in the input.
    """

    def __init__(self, expected: str, detected: str):
        self.expected = expected
        self.detected = detected
        super().__init__(f"Expected {expected} but detected {detected}")


class StructureValidationError(SpecImportError):
    """Detected format is missing required top-level fields.

    Attributes:
        format: The detected format.
        errors: One message per missing or malformed field.
    """

    def __init__(self, format: str, errors: list[str]):
        self.format = format
        self.errors = errors
        super().__init__(f"Invalid {format} structure: {', '.join(errors)}")


class CurlParseError(SpecImportError):
    """A cURL command could not be turned into an endpoint."""

    pass


class OperationConversionError(SpecImportError):
    """A single OpenAPI/Swagger operation failed to convert.

    Attributes:
        method: HTTP method of the operation.
        path: Path template of the operation.
        cause: The underlying exception.
    """

    def __init__(self, method: str, path: str, cause: Exception | None = None):
        self.method = method.upper()
        self.path = path
        self.cause = cause
        message = f"Failed to convert {self.method} {path}"
        if cause:
            message += f": {cause}"
        super().__init__(message)
