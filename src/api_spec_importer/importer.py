"""Format dispatcher: detect, validate and convert an imported document.

parse_imported_content() is the single entry point the UI calls. It never
raises; every failure comes back as a ParseResult with success=False.
"""

import logging

from pydantic import BaseModel

from api_spec_importer import diagnostics
from api_spec_importer.diagnostics import Diagnostic
from api_spec_importer.exceptions import (
    FormatDetectionError,
    FormatMismatchError,
    SpecImportError,
    StructureValidationError,
)
from api_spec_importer.parser.base import CanonicalSpec, ImportFormat
from api_spec_importer.parser.curl import generate_spec_from_curl
from api_spec_importer.parser.detect import (
    CurlText,
    DetectionResult,
    ImportDocument,
    OpenApiDocument,
    PostmanDocument,
    SwaggerDocument,
    detect_document,
    validate_document,
)
from api_spec_importer.parser.postman import convert_postman_to_canonical
from api_spec_importer.parser.swagger import parse_openapi_document

logger = logging.getLogger(__name__)


class ParseResult(BaseModel):
    """Outcome of an import: the canonical spec or an error message."""

    success: bool
    data: CanonicalSpec | None = None
    error: str | None = None
    detection: DetectionResult
    diagnostics: list[Diagnostic] = []


def parse_imported_content(content: str, expected_format: ImportFormat | None = None) -> ParseResult:
    """Detect the format of ``content`` and convert it to a CanonicalSpec.

    When ``expected_format`` is given it must match the detected format;
    it is never used to override detection.
    """
    with diagnostics.collecting() as collected:
        detection, document = detect_document(content)
        logger.debug("Detected %s (confidence %.2f)", detection.format, detection.confidence)
        try:
            data = _convert(content, detection, document, expected_format)
        except SpecImportError as e:
            logger.info("Import failed: %s", e.message)
            return ParseResult(success=False, error=e.message, detection=detection, diagnostics=collected)
        except Exception as e:
            logger.exception("Unexpected error while converting %s document", detection.format)
            return ParseResult(
                success=False,
                error=f"Parse error: {e}",
                detection=detection,
                diagnostics=collected,
            )

    logger.info("Imported %d endpoint(s) from %s document", len(data.endpoints), detection.format)
    return ParseResult(success=True, data=data, detection=detection, diagnostics=collected)


def _convert(
    content: str,
    detection: DetectionResult,
    document: ImportDocument | None,
    expected_format: str | None,
) -> CanonicalSpec:
    if document is None:
        raise FormatDetectionError(detection.details)
    if expected_format and expected_format != detection.format:
        raise FormatMismatchError(expected_format, detection.format)

    if not isinstance(document, CurlText):
        errors = validate_document(document.doc, detection.format)
        if errors:
            raise StructureValidationError(detection.format, errors)

    match document:
        case OpenApiDocument(doc=doc):
            return parse_openapi_document(doc, "openapi", raw_spec=content)
        case SwaggerDocument(doc=doc):
            return parse_openapi_document(doc, "swagger", raw_spec=content)
        case PostmanDocument(doc=doc):
            return convert_postman_to_canonical(doc, raw_spec=content)
        case CurlText(text=text):
            return generate_spec_from_curl(text)
