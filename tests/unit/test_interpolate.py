from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

import pytest

from querywatch.errors import InterpolationError
from querywatch.sql import TokenKind, interpolate, literal_value, render_literal, tokenize


def test_positional_values_are_quoted_and_consumed_in_order():
    sql = interpolate("insert into user (name, age, admin) values (?, ?, ?)", ["John Doe", 42, False])
    assert sql == "insert into user (name, age, admin) values ('John Doe', 42, FALSE)"


def test_format_style_placeholders():
    sql = interpolate("select * from t where a = %s and b = %s", (1, None), paramstyle="format")
    assert sql == "select * from t where a = 1 and b = NULL"


def test_named_placeholders_are_looked_up_by_key():
    sql = interpolate("select * from t where a = :a and b = :b or a = :a", {"a": 1, "b": "x", "unused": 3})
    assert sql == "select * from t where a = 1 and b = 'x' or a = 1"


def test_pyformat_placeholders_and_escaped_percent():
    sql = interpolate(
        "select * from t where name like %(p)s and pct = 100%%",
        {"p": "a%"},
        paramstyle="pyformat",
    )
    assert sql == "select * from t where name like 'a%' and pct = 100%"


def test_numeric_placeholders_may_repeat():
    assert interpolate("select $1, $2, $1", ["a", 2]) == "select 'a', 2, 'a'"


def test_casts_and_slices_are_not_placeholders():
    assert interpolate("select :v::text", {"v": "x"}) == "select 'x'::text"
    sql = interpolate("select arr[1:2] from t where id = $1", [7], paramstyle="numeric")
    assert sql == "select arr[1:2] from t where id = 7"


def test_placeholder_text_inside_literals_and_comments_is_left_alone():
    sql = interpolate("select '?' as q, \"col?\" from t where a = ? -- ?\n", [5])
    assert sql == "select '?' as q, \"col?\" from t where a = 5 -- ?\n"

    assert interpolate("select $$ ? $$, ?", [1]) == "select $$ ? $$, 1"
    assert interpolate("select E'it\\'s ?', ?", [1]) == "select E'it\\'s ?', 1"
    assert interpolate("select /* :name */ :id", {"id": 3}) == "select /* :name */ 3"


@pytest.mark.parametrize(
    "query",
    [
        "select 1",
        "select * from t where name = 'x?'",
        "insert into user (name) values ('John Doe')",
        "select 'unterminated",
    ],
)
def test_empty_parameters_return_input_unchanged(query: str):
    assert interpolate(query, []) == query
    assert interpolate(query, None) == query


def test_all_placeholders_are_replaced_when_counts_match():
    query = "select * from t where a in (" + ", ".join("?" for _ in range(25)) + ")"
    sql = interpolate(query, list(range(25)))
    assert not [t for t in tokenize(sql) if t.kind is TokenKind.PLACEHOLDER]


@pytest.mark.parametrize(
    ("query", "parameters"),
    [
        ("select ?, ?", [1]),
        ("select ?", [1, 2]),
        ("select ?", []),
        ("select 1", [1]),
        ("select :a, :b", {"a": 1}),
        ("select ?", {"a": 1}),
        ("select :a", [1]),
        ("select $2", [1]),
        ("select $1", [1, 2]),
        ("select ?, :a", [1]),
        ("select ?, %s", [1, 2]),
        ("select ?", "a"),
    ],
)
def test_mismatches_raise_instead_of_returning_partial_text(query: str, parameters):
    with pytest.raises(InterpolationError):
        interpolate(query, parameters)


def test_unterminated_literal_with_values_raises():
    with pytest.raises(InterpolationError):
        interpolate("select 'oops, ?", [1])


@pytest.mark.parametrize("value", ["O'Brien", "it''s", "'", "a\\b", "line\nbreak", ""])
def test_quote_escaping_round_trips(value: str):
    sql = interpolate("select ?", [value])
    strings = [t for t in tokenize(sql) if t.kind is TokenKind.STRING]
    assert len(strings) == 1
    assert literal_value(strings[0].text) == value


def test_backslash_escaping_round_trips():
    value = "a\\'b"
    sql = interpolate("select ?", [value], backslash_escapes=True)
    strings = [t for t in tokenize(sql, backslash_escapes=True) if t.kind is TokenKind.STRING]
    assert literal_value(strings[0].text, backslash_escapes=True) == value


@pytest.mark.parametrize(
    ("value", "literal"),
    [
        (None, "NULL"),
        (True, "TRUE"),
        (0, "0"),
        (1.5, "1.5"),
        (float("nan"), "'NaN'"),
        (float("-inf"), "'-Infinity'"),
        (Decimal("1.10"), "1.10"),
        (date(2024, 1, 2), "'2024-01-02'"),
        (datetime(2024, 1, 2, 3, 4, 5), "'2024-01-02T03:04:05'"),
        (uuid.UUID("12345678-1234-5678-1234-567812345678"), "'12345678-1234-5678-1234-567812345678'"),
    ],
)
def test_render_literal_by_type(value, literal: str):
    assert render_literal(value) == literal


@pytest.mark.parametrize("value", [b"\x00", bytearray(b"x"), [1, 2], {"a": 1}, object()])
def test_unrecognized_parameter_types_raise(value):
    with pytest.raises(InterpolationError):
        interpolate("select ?", [value])
