from __future__ import annotations

import pytest

from file_archiver.errors import InvalidArgumentError
from file_archiver.placeholders import PlaceholderToken, evaluate_string, find_placeholders


def test_template_without_placeholders_is_unchanged():
    calls = []

    def resolve(raw, name, fmt):
        calls.append(raw)
        return "x"

    assert evaluate_string("backup.zip", resolve) == "backup.zip"
    assert evaluate_string("", resolve) == ""
    assert calls == []


def test_missing_resolver_raises():
    with pytest.raises(InvalidArgumentError):
        evaluate_string("backup_{Date}.zip", None)


def test_tokens_are_split_into_name_and_format():
    assert PlaceholderToken.parse("{Date}") == PlaceholderToken("{Date}", "Date", None)
    assert PlaceholderToken.parse("{Date:yyyyMMdd}") == PlaceholderToken("{Date:yyyyMMdd}", "Date", "yyyyMMdd")
    assert PlaceholderToken.parse("{Date:}") == PlaceholderToken("{Date:}", "Date", "")


def test_find_placeholders_returns_distinct_tokens_in_order():
    tokens = find_placeholders("{B}-{A:x}-{B}-{A:y}-{A:x}")
    assert [t.raw for t in tokens] == ["{B}", "{A:x}", "{A:y}"]


def test_malformed_braces_are_left_alone():
    seen = []

    def resolve(raw, name, fmt):
        seen.append(raw)
        return "R"

    assert evaluate_string("{} {a-b} {ok} {unclosed", resolve) == "{} {a-b} R {unclosed"
    assert seen == ["{ok}"]


def test_resolver_called_once_per_distinct_token_and_all_occurrences_replaced():
    counter = {"n": 0}

    def resolve(raw, name, fmt):
        counter["n"] += 1
        return f"{name}{counter['n']}"

    result = evaluate_string("{Date}/{Date}/{Timestamp:HH}", resolve)
    assert result == "Date1/Date1/Timestamp2"
    assert counter["n"] == 2


def test_resolver_receives_format_or_none():
    received = []

    def resolve(raw, name, fmt):
        received.append((raw, name, fmt))
        return ""

    evaluate_string("a{StartDate:yyyy-MM-dd}b{EndDate}c", resolve)
    assert received == [
        ("{StartDate:yyyy-MM-dd}", "StartDate", "yyyy-MM-dd"),
        ("{EndDate}", "EndDate", None),
    ]


def test_replacement_is_textual():
    # A value spelling a later token is replaced again when that token resolves.
    values = {"{A}": "{B}", "{B}": "b"}
    assert evaluate_string("{A}-{B}", lambda raw, name, fmt: values[raw]) == "b-b"
