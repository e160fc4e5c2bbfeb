"""SQL text utilities: lexer, binding interpolation and display formatting."""

from .formatting import format_query
from .interpolate import interpolate, render_literal
from .tokenizer import SqlTokenizeError, Token, TokenKind, literal_value, tokenize

__all__ = [
    "SqlTokenizeError",
    "Token",
    "TokenKind",
    "format_query",
    "interpolate",
    "literal_value",
    "render_literal",
    "tokenize",
]
