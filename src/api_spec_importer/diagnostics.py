"""Diagnostics collected while converting a document.

Converters report recoverable problems (unresolved $ref, dropped cURL data,
unknown security schemes, failed operations) through warn() and error().
Each call is logged and, when a collector is active in the current context,
appended to it so callers get the messages back with the result instead of
having to scrape logs.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Diagnostic(BaseModel):
    """A single warning or error raised during conversion."""

    level: Literal["warning", "error"]
    message: str
    context: dict[str, Any] = {}


_active: ContextVar[list[Diagnostic] | None] = ContextVar("api_spec_importer_diagnostics", default=None)


@contextmanager
def collecting() -> Iterator[list[Diagnostic]]:
    """Collect diagnostics reported inside the block into the yielded list."""
    items: list[Diagnostic] = []
    token = _active.set(items)
    try:
        yield items
    finally:
        _active.reset(token)


def _report(level: str, message: str, context: dict[str, Any]) -> None:
    items = _active.get()
    if items is not None:
        items.append(Diagnostic(level=level, message=message, context=context))


def warn(message: str, **context: Any) -> None:
    logger.warning(message)
    _report("warning", message, context)


def error(message: str, **context: Any) -> None:
    logger.error(message)
    _report("error", message, context)
