"""Structured-output extraction from free-form model text.

Models wrap JSON in prose and code fences.  ``extract_json`` finds the first
balanced object or array, ignoring brackets that sit inside string literals,
and parses it strictly.
"""

from __future__ import annotations

import json
from typing import Any, Literal

import structlog

from northstar.domain.exceptions import MalformedStructuredOutputError
from northstar.shared.observability.metrics import STRUCTURED_OUTPUT_FALLBACKS

logger = structlog.get_logger(__name__)

_CLOSERS = {"{": "}", "[": "]"}


def extract_json(text: str, *, expect: Literal["object", "array"] | None = None) -> Any:
    """Return the first balanced JSON value embedded in *text*.

    Args:
        text:   Raw provider output.
        expect: Restrict the search to objects or arrays.

    Raises:
        MalformedStructuredOutputError: nothing balanced was found, or the
            balanced span is not valid JSON.
    """
    if not isinstance(text, str):
        raise MalformedStructuredOutputError("provider output is not text")

    openers = {"object": "{", "array": "["}.get(expect or "", "{[")
    start = next((i for i, ch in enumerate(text) if ch in openers), -1)
    if start < 0:
        raise MalformedStructuredOutputError()

    span = _balanced_span(text, start)
    if span is None:
        raise MalformedStructuredOutputError("unbalanced JSON in provider output")

    try:
        return json.loads(span)
    except json.JSONDecodeError as exc:
        raise MalformedStructuredOutputError(f"invalid JSON in provider output: {exc.msg}") from None


def _balanced_span(text: str, start: int) -> str | None:
    stack: list[str] = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in "}]":
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return text[start : i + 1]
    return None


def record_fallback(caller: str, exc: Exception) -> None:
    """Log and count a caller answering with its safe default."""
    STRUCTURED_OUTPUT_FALLBACKS.labels(caller=caller).inc()
    logger.warning(
        "caller_fallback_used",
        caller=caller,
        error_code=getattr(exc, "code", type(exc).__name__),
        error=str(exc),
    )
