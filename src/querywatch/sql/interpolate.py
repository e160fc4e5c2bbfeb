"""Bind parameter values into parameterized query text.

Interpolation is all-or-nothing: either every placeholder is replaced by a SQL
literal or `InterpolationError` is raised. Partially substituted text is never
returned.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from ..errors import InterpolationError
from .tokenizer import SqlTokenizeError, Token, TokenKind, tokenize

_POSITIONAL = frozenset({"qmark", "format"})
_NAMED = frozenset({"named", "pyformat"})


def quote_string(value: str, *, backslash_escapes: bool = False) -> str:
    """Quote a string as a SQL literal, escaping embedded quotes."""
    if backslash_escapes:
        value = value.replace("\\", "\\\\")
    return "'" + value.replace("'", "''") + "'"


def render_literal(value: Any, *, backslash_escapes: bool = False) -> str:
    """Render a Python value as a SQL literal.

    Raises:
        InterpolationError: for types without an unambiguous literal form
            (bytes, containers, arbitrary objects).
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "'NaN'"
        if math.isinf(value):
            return "'Infinity'" if value > 0 else "'-Infinity'"
        return repr(value)
    if isinstance(value, Decimal):
        if value.is_nan():
            return "'NaN'"
        if value.is_infinite():
            return "'Infinity'" if value > 0 else "'-Infinity'"
        return str(value)
    if isinstance(value, str):
        return quote_string(value, backslash_escapes=backslash_escapes)
    if isinstance(value, (datetime, date, time)):
        return quote_string(value.isoformat())
    if isinstance(value, uuid.UUID):
        return quote_string(str(value))
    raise InterpolationError(f"cannot render parameter of type {type(value).__name__} as a SQL literal")


def _is_sequence(parameters: Any) -> bool:
    return isinstance(parameters, Sequence) and not isinstance(parameters, (str, bytes, bytearray))


def _resolve_positional(placeholders: list[Token], parameters: Any) -> list[Any]:
    if parameters is None:
        parameters = ()
    if not _is_sequence(parameters):
        raise InterpolationError(
            f"positional placeholders need a sequence of values, got {type(parameters).__name__}"
        )
    if len(placeholders) != len(parameters):
        raise InterpolationError(
            f"query has {len(placeholders)} positional placeholder(s) but {len(parameters)} value(s) were supplied"
        )
    return list(parameters)


def _resolve_named(placeholders: list[Token], parameters: Any) -> list[Any]:
    if parameters is None:
        parameters = {}
    if not isinstance(parameters, Mapping):
        raise InterpolationError(f"named placeholders need a mapping of values, got {type(parameters).__name__}")
    values = []
    for token in placeholders:
        if token.key not in parameters:
            raise InterpolationError(f"no value supplied for named placeholder {token.text}")
        values.append(parameters[token.key])
    return values


def _resolve_numeric(placeholders: list[Token], parameters: Any) -> list[Any]:
    if parameters is None:
        parameters = ()
    if not _is_sequence(parameters):
        raise InterpolationError(f"numeric placeholders need a sequence of values, got {type(parameters).__name__}")
    values = []
    for token in placeholders:
        index = int(token.key)  # type: ignore[arg-type]
        if not 1 <= index <= len(parameters):
            raise InterpolationError(
                f"placeholder {token.text} is out of range for {len(parameters)} supplied value(s)"
            )
        values.append(parameters[index - 1])
    referenced = {int(t.key) for t in placeholders}  # type: ignore[arg-type]
    if len(referenced) != len(parameters):
        raise InterpolationError(
            f"query references {len(referenced)} distinct value(s) but {len(parameters)} were supplied"
        )
    return values


def interpolate(
    query: str,
    parameters: Sequence[Any] | Mapping[str, Any] | None = None,
    *,
    paramstyle: str | None = None,
    backslash_escapes: bool = False,
) -> str:
    """Return `query` with every placeholder replaced by its literal value.

    Args:
        query: Parameterized query text.
        parameters: Positional values (sequence) or named values (mapping).
        paramstyle: DB-API paramstyle of the source; `None` accepts any style.
        backslash_escapes: Escape backslashes in string literals (MySQL).

    Raises:
        InterpolationError: on count mismatch, missing names, mixed placeholder
            styles or values without a literal form.
    """
    has_values = bool(parameters)
    try:
        tokens = tokenize(query, paramstyle=paramstyle, backslash_escapes=backslash_escapes)
    except SqlTokenizeError as exc:
        if not has_values:
            return query
        raise InterpolationError(f"cannot locate placeholders: {exc}") from exc

    placeholders = [t for t in tokens if t.kind is TokenKind.PLACEHOLDER]
    if not placeholders:
        if has_values and _is_sequence(parameters):
            raise InterpolationError(f"query has no placeholders but {len(parameters)} value(s) were supplied")  # type: ignore[arg-type]
        return query

    styles = {t.style for t in placeholders}
    if styles <= _POSITIONAL and len(styles) == 1:
        values = _resolve_positional(placeholders, parameters)
    elif styles <= _NAMED:
        values = _resolve_named(placeholders, parameters)
    elif styles == {"numeric"}:
        values = _resolve_numeric(placeholders, parameters)
    else:
        raise InterpolationError(f"query mixes placeholder styles: {', '.join(sorted(s or '' for s in styles))}")

    rendered = iter([render_literal(v, backslash_escapes=backslash_escapes) for v in values])
    unescape_percent = styles & {"format", "pyformat"}
    out: list[str] = []
    for token in tokens:
        if token.kind is TokenKind.PLACEHOLDER:
            out.append(next(rendered))
        elif unescape_percent and token.kind is TokenKind.PUNCT and token.text == "%%":
            out.append("%")
        else:
            out.append(token.text)
    return "".join(out)
