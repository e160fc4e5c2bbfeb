"""Display formatting for SQL text.

`format_query` is cosmetic: it never raises and falls back to the input when the
lexer rejects it. Layout depends only on the non-whitespace tokens, which makes
the output a fixed point (formatting it again returns the same text).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .tokenizer import SqlTokenizeError, Token, TokenKind, tokenize

logger = logging.getLogger(__name__)

INDENT = "  "

KEYWORDS = frozenset(
    """
    ADD ALL ALTER AND AS ASC BEGIN BETWEEN BY CASE CHECK COMMIT CONFLICT CONSTRAINT CREATE CROSS
    DEFAULT DELETE DESC DISTINCT DO DROP ELSE END EXCEPT EXISTS FALSE FETCH FOR FOREIGN FROM FULL
    GROUP HAVING IF ILIKE IN INDEX INNER INSERT INTERSECT INTO IS JOIN KEY LEFT LIKE LIMIT NOT
    NOTHING NULL OFFSET ON OR ORDER OUTER OVER PARTITION PRIMARY REFERENCES RELEASE RETURNING RIGHT
    ROLLBACK SAVEPOINT SELECT SET START TABLE THEN TO TRANSACTION TRUE UNION UNIQUE UPDATE USING
    VALUES WHEN WHERE WINDOW WITH
    """.split()
)

# Longest sequences first so "LEFT OUTER JOIN" wins over "LEFT JOIN".
CLAUSES: tuple[tuple[str, ...], ...] = tuple(
    sorted(
        (
            ("SELECT",),
            ("FROM",),
            ("WHERE",),
            ("GROUP", "BY"),
            ("ORDER", "BY"),
            ("HAVING",),
            ("LIMIT",),
            ("OFFSET",),
            ("INSERT", "INTO"),
            ("VALUES",),
            ("UPDATE",),
            ("SET",),
            ("DELETE", "FROM"),
            ("RETURNING",),
            ("UNION", "ALL"),
            ("UNION",),
            ("INTERSECT",),
            ("EXCEPT",),
            ("WITH",),
            ("WINDOW",),
            ("ON", "CONFLICT"),
            ("JOIN",),
            ("INNER", "JOIN"),
            ("CROSS", "JOIN"),
            ("LEFT", "JOIN"),
            ("LEFT", "OUTER", "JOIN"),
            ("RIGHT", "JOIN"),
            ("RIGHT", "OUTER", "JOIN"),
            ("FULL", "JOIN"),
            ("FULL", "OUTER", "JOIN"),
        ),
        key=len,
        reverse=True,
    )
)

# Words after which an opening parenthesis belongs to a name, not a call.
_NAME_INTRODUCERS = frozenset({"INTO", "TABLE"})

# `UPDATE` / `SET` only open a clause outside these contexts (`DO UPDATE SET`, `FOR UPDATE`).
_INLINE_AFTER = {"UPDATE": frozenset({"DO", "FOR"}), "SET": frozenset()}


@dataclass
class _Frame:
    subquery: bool
    between: bool = False


class _Layout:
    """Accumulates output lines."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.current = ""

    def newline(self, indent: str) -> None:
        if self.current.strip():
            self.lines.append(self.current.rstrip())
        self.current = indent

    def write(self, text: str, *, space: bool) -> None:
        if space and self.current.strip():
            self.current += " "
        self.current += text

    def char_before(self, tail: str) -> str:
        """The character preceding `tail` at the end of the current line."""
        head = self.current[: len(self.current) - len(tail)]
        return head[-1:]

    @property
    def at_line_start(self) -> bool:
        return not self.current.strip()

    def render(self) -> str:
        self.newline("")
        return "\n".join(self.lines)


def _display(token: Token) -> str:
    if token.kind is TokenKind.WORD and token.upper in KEYWORDS:
        return token.upper
    return token.text


def _match_clause(tokens: list[Token], i: int) -> tuple[str, ...] | None:
    for clause in CLAUSES:
        end = i + len(clause)
        if end <= len(tokens) and all(tokens[i + k].is_word(word) for k, word in enumerate(clause)):
            return clause
    return None


def _needs_space(prev: Token | None, before_prev: Token | None, token: Token) -> bool:
    if prev is None:
        return False
    if token.text in {",", ";", ")", ".", "::", ":", "[", "]"} or prev.text in {"(", ".", "::", ":", "["}:
        return False
    if token.text == "(":
        if prev.kind is TokenKind.WORD and prev.upper not in KEYWORDS:
            # Function call unless the word is a table name after INTO/TABLE/...
            return before_prev is not None and before_prev.is_word(*_NAME_INTRODUCERS)
        return True
    return True


def _texts(sql: str) -> list[str]:
    return [t.text for t in tokenize(sql) if t.kind is not TokenKind.WHITESPACE]


def _joins_cleanly(context: str, left: str, right: str) -> bool:
    """Return True when writing `right` right after `left` keeps both tokens intact.

    `context` is the character preceding `left` on the line; the lexer looks
    one character back for `:` placeholders and string prefixes.
    """
    try:
        return _texts(context + left + right) == _texts(context + left) + [right]
    except SqlTokenizeError:
        return False


def _signature(tokens: list[Token]) -> list[tuple[TokenKind, str]]:
    return [(t.kind, _display(t)) for t in tokens if t.kind is not TokenKind.WHITESPACE]


def _layout(tokens: list[Token]) -> str:
    out = _Layout()
    stack: list[_Frame] = [_Frame(subquery=True)]
    depth = 0
    prev: Token | None = None
    before_prev: Token | None = None
    force_break = False

    def indent(extra: int = 0) -> str:
        return INDENT * (depth + extra)

    i = 0
    while i < len(tokens):
        token = tokens[i]
        top = stack[-1]

        if force_break:
            out.newline(indent())
            force_break = False

        clause = _match_clause(tokens, i) if top.subquery else None
        if clause is not None and len(clause) == 1 and clause[0] in _INLINE_AFTER:
            if prev is not None and prev.is_word(*_INLINE_AFTER[clause[0]]):
                clause = None

        if clause is not None:
            out.newline(indent())
            out.write(" ".join(clause), space=False)
            top.between = False
            before_prev, prev = prev, tokens[i + len(clause) - 1]
            i += len(clause)
            continue

        if top.subquery and token.is_word("AND", "OR"):
            if token.is_word("AND") and top.between:
                top.between = False
            else:
                out.newline(indent(1))
                out.write(token.upper, space=False)
                before_prev, prev = prev, token
                i += 1
                continue

        if token.is_word("BETWEEN"):
            top.between = True

        if token.text == ")" and token.kind is TokenKind.PUNCT and len(stack) > 1:
            frame = stack.pop()
            if frame.subquery:
                depth -= 1
                out.newline(indent())
                out.write(")", space=False)
                before_prev, prev = prev, token
                i += 1
                continue

        space = False
        if not out.at_line_start and prev is not None:
            left = _display(prev)
            space = _needs_space(prev, before_prev, token) or not _joins_cleanly(
                out.char_before(left), left, _display(token)
            )
        out.write(_display(token), space=space)

        if token.kind is TokenKind.PUNCT and token.text == "(":
            following = tokens[i + 1] if i + 1 < len(tokens) else None
            opens_subquery = following is not None and following.is_word("SELECT", "WITH")
            stack.append(_Frame(subquery=opens_subquery))
            if opens_subquery:
                depth += 1
        elif token.kind is TokenKind.PUNCT and token.text == ";":
            stack = [_Frame(subquery=True)]
            depth = 0
            force_break = True
        elif token.kind is TokenKind.COMMENT and token.text.startswith("--"):
            force_break = True

        before_prev, prev = prev, token
        i += 1

    return out.render()


def format_query(query: str) -> str:
    """Pretty-print SQL for display.

    Keywords are upper-cased, each clause starts a new line, `AND`/`OR`
    continuation lines and subqueries are indented. Input the lexer rejects is
    returned unchanged.
    """
    try:
        tokens = [t for t in tokenize(query) if t.kind is not TokenKind.WHITESPACE]
    except SqlTokenizeError:
        return query
    try:
        formatted = _layout(tokens)
        # The layout must lex back into the same tokens, or a second pass would differ.
        if _signature(tokenize(formatted)) != _signature(tokens):
            logger.debug("query layout changed its tokens; returning input unchanged")
            return query
    except Exception:  # noqa: BLE001 - display formatting must never block ingestion
        logger.debug("query formatting failed; returning input unchanged", exc_info=True)
        return query
    return formatted
