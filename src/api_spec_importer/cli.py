"""CLI entry point for api-spec-importer."""

import json
import logging
import sys
from pathlib import Path

import click

from api_spec_importer.importer import ParseResult, parse_imported_content
from api_spec_importer.parser.defaults import calculate_metadata_completeness
from api_spec_importer.parser.detect import detect_format, extract_basic_info

FORMATS = ["auto", "openapi", "swagger", "postman", "curl"]


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _echo_diagnostics(result: ParseResult) -> None:
    for diagnostic in result.diagnostics:
        click.echo(f"{diagnostic.level}: {diagnostic.message}", err=True)


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    envvar="API_SPEC_IMPORT_LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity.",
)
def main(log_level: str):
    """API Spec Importer: normalize OpenAPI, Swagger, Postman and cURL into one model."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write the canonical spec JSON here instead of stdout.")
@click.option("--format", "fmt", default="auto", type=click.Choice(FORMATS), help="Expected document format.")
def convert(doc_path: Path, output: Path | None, fmt: str):
    """Convert an API description into the canonical spec JSON."""
    result = parse_imported_content(_read(doc_path), None if fmt == "auto" else fmt)
    _echo_diagnostics(result)

    if not result.success:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)

    text = json.dumps(result.data.to_dict(), indent=2, ensure_ascii=False)
    if output is None:
        click.echo(text)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    click.echo(f"Converted {len(result.data.endpoints)} endpoints ({result.detection.format}) to {output}", err=True)


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def detect(doc_path: Path):
    """Print the detected format of an API description."""
    detection = detect_format(_read(doc_path))
    version = f" {detection.version}" if detection.version else ""
    click.echo(f"{detection.format}{version} (confidence {detection.confidence:.0%})")
    if detection.details:
        click.echo(detection.details)
    if detection.format == "unknown":
        sys.exit(1)


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def info(doc_path: Path):
    """Show basic info and per-endpoint metadata completeness."""
    content = _read(doc_path)
    basic = extract_basic_info(content)
    for key in ("name", "version", "description"):
        if basic.get(key):
            click.echo(f"{key.capitalize()}: {basic[key]}")

    result = parse_imported_content(content)
    _echo_diagnostics(result)
    if not result.success:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)

    click.echo(f"Format: {result.detection.format}")
    click.echo(f"Endpoints: {len(result.data.endpoints)}")
    for endpoint in result.data.endpoints:
        completeness = calculate_metadata_completeness(endpoint)
        click.echo(f"  {endpoint.method:<7} {endpoint.path}  {completeness.score}%")
