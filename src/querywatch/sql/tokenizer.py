"""Minimal SQL lexer shared by the interpolator and the formatter.

The lexer only needs to tell literal spans (strings, quoted names, comments)
apart from everything else, so that placeholder-looking text inside a literal
is never substituted and never reformatted. It is not a parser.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class SqlTokenizeError(ValueError):
    """Raised for input the lexer cannot split (unterminated literal/comment)."""


class TokenKind(str, Enum):
    WHITESPACE = "whitespace"
    COMMENT = "comment"
    STRING = "string"
    QUOTED_NAME = "quoted_name"
    PLACEHOLDER = "placeholder"
    WORD = "word"
    NUMBER = "number"
    PUNCT = "punct"


# DB-API paramstyles, plus "numeric" also covering `$1` (asyncpg / libpq).
PARAMSTYLES = frozenset({"qmark", "format", "named", "pyformat", "numeric"})


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str

    # Placeholder details (only set when kind is PLACEHOLDER).
    style: str | None = None
    key: str | int | None = None

    @property
    def upper(self) -> str:
        return self.text.upper()

    def is_word(self, *values: str) -> bool:
        return self.kind is TokenKind.WORD and self.text.upper() in values


_WHITESPACE = re.compile(r"\s+")
_NUMBER = re.compile(r"(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_WORD = re.compile(r"[^\W\d]\w*(?:\$\w*)*")
_NUMERIC_DOLLAR = re.compile(r"\$(\d+)")
_DOLLAR_TAG = re.compile(r"\$(?:[^\W\d]\w*)?\$")
_NAMED = re.compile(r":([^\W\d]\w*)")
_NUMERIC_COLON = re.compile(r":(\d+)")
_PYFORMAT = re.compile(r"%\(([^)]+)\)s")
_OPERATORS = ("->>", "#>>", "<=", ">=", "<>", "!=", "||", "->", "#>", "@>", "<@", "&&", "::", "%%")


def _allowed(paramstyle: str | None, style: str) -> bool:
    return paramstyle is None or paramstyle == style


def _scan_quoted(sql: str, start: int, quote: str, *, backslash_escapes: bool) -> int:
    """Return the index just past the closing quote of a literal starting at `start`."""
    i = start + 1
    n = len(sql)
    while i < n:
        ch = sql[i]
        if backslash_escapes and ch == "\\":
            i += 2
            continue
        if ch == quote:
            if i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    raise SqlTokenizeError(f"unterminated {quote} literal starting at offset {start}")


def iter_tokens(
    sql: str,
    *,
    paramstyle: str | None = None,
    backslash_escapes: bool = False,
) -> Iterable[Token]:
    """Yield tokens for `sql`.

    Args:
        sql: Query text.
        paramstyle: Restrict placeholder recognition to one DB-API paramstyle;
            `None` recognizes every style.
        backslash_escapes: Treat backslash as an escape inside '...' strings
            (MySQL default).
    """
    if paramstyle is not None and paramstyle not in PARAMSTYLES:
        raise ValueError(f"unknown paramstyle: {paramstyle!r}")

    format_family = paramstyle is None or paramstyle in {"format", "pyformat"}
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]
        nxt = sql[i + 1] if i + 1 < n else ""

        if ch.isspace():
            m = _WHITESPACE.match(sql, i)
            assert m is not None
            yield Token(TokenKind.WHITESPACE, m.group())
            i = m.end()
            continue

        if ch == "-" and nxt == "-":
            end = sql.find("\n", i)
            end = n if end == -1 else end
            yield Token(TokenKind.COMMENT, sql[i:end])
            i = end
            continue

        if ch == "/" and nxt == "*":
            end = sql.find("*/", i + 2)
            if end == -1:
                raise SqlTokenizeError(f"unterminated block comment starting at offset {i}")
            yield Token(TokenKind.COMMENT, sql[i : end + 2])
            i = end + 2
            continue

        if ch == "'":
            end = _scan_quoted(sql, i, "'", backslash_escapes=backslash_escapes)
            yield Token(TokenKind.STRING, sql[i:end])
            i = end
            continue

        # E'...' (escape string) and N'...' (national string) prefixes.
        if ch in "eEnN" and nxt == "'" and (i == 0 or not (sql[i - 1].isalnum() or sql[i - 1] == "_")):
            escapes = backslash_escapes or ch in "eE"
            end = _scan_quoted(sql, i + 1, "'", backslash_escapes=escapes)
            yield Token(TokenKind.STRING, sql[i:end])
            i = end
            continue

        if ch in "\"`":
            end = _scan_quoted(sql, i, ch, backslash_escapes=False)
            yield Token(TokenKind.QUOTED_NAME, sql[i:end])
            i = end
            continue

        if ch == "$":
            m = _NUMERIC_DOLLAR.match(sql, i)
            if m and _allowed(paramstyle, "numeric"):
                yield Token(TokenKind.PLACEHOLDER, m.group(), style="numeric", key=int(m.group(1)))
                i = m.end()
                continue
            m = _DOLLAR_TAG.match(sql, i)
            if m:
                tag = m.group()
                end = sql.find(tag, m.end())
                if end == -1:
                    raise SqlTokenizeError(f"unterminated dollar-quoted string starting at offset {i}")
                yield Token(TokenKind.STRING, sql[i : end + len(tag)])
                i = end + len(tag)
                continue

        if ch == "?" and _allowed(paramstyle, "qmark"):
            yield Token(TokenKind.PLACEHOLDER, "?", style="qmark")
            i += 1
            continue

        # Not `::` casts, and not slices such as `arr[1:2]`.
        if ch == ":" and nxt != ":" and (i == 0 or not (sql[i - 1].isalnum() or sql[i - 1] in "_:])")):
            m = _NAMED.match(sql, i)
            if m and _allowed(paramstyle, "named"):
                yield Token(TokenKind.PLACEHOLDER, m.group(), style="named", key=m.group(1))
                i = m.end()
                continue
            m = _NUMERIC_COLON.match(sql, i)
            if m and _allowed(paramstyle, "numeric"):
                yield Token(TokenKind.PLACEHOLDER, m.group(), style="numeric", key=int(m.group(1)))
                i = m.end()
                continue

        if ch == "%" and format_family:
            if nxt == "s" and _allowed(paramstyle, "format"):
                yield Token(TokenKind.PLACEHOLDER, "%s", style="format")
                i += 2
                continue
            m = _PYFORMAT.match(sql, i)
            if m and _allowed(paramstyle, "pyformat"):
                yield Token(TokenKind.PLACEHOLDER, m.group(), style="pyformat", key=m.group(1))
                i = m.end()
                continue

        if ch.isdigit() or (ch == "." and nxt.isdigit()):
            m = _NUMBER.match(sql, i)
            assert m is not None
            yield Token(TokenKind.NUMBER, m.group())
            i = m.end()
            continue

        m = _WORD.match(sql, i)
        if m:
            yield Token(TokenKind.WORD, m.group())
            i = m.end()
            continue

        for op in _OPERATORS:
            if sql.startswith(op, i):
                yield Token(TokenKind.PUNCT, op)
                i += len(op)
                break
        else:
            yield Token(TokenKind.PUNCT, ch)
            i += 1


def tokenize(sql: str, *, paramstyle: str | None = None, backslash_escapes: bool = False) -> list[Token]:
    """Return the full token list for `sql` (raises `SqlTokenizeError`)."""
    return list(iter_tokens(sql, paramstyle=paramstyle, backslash_escapes=backslash_escapes))


def literal_value(text: str, *, backslash_escapes: bool = False) -> str:
    """Decode a single-quoted string literal back into the value it denotes."""
    if text[:1] in "eEnN" and text[1:2] == "'":
        backslash_escapes = backslash_escapes or text[0] in "eE"
        text = text[1:]
    if len(text) < 2 or text[0] != "'" or text[-1] != "'":
        raise ValueError(f"not a string literal: {text!r}")
    body = text[1:-1]
    out: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if backslash_escapes and ch == "\\" and i + 1 < len(body):
            out.append(body[i + 1])
            i += 2
            continue
        if ch == "'":
            # Doubled quote inside the literal.
            i += 1
        out.append(ch)
        i += 1
    return "".join(out)
