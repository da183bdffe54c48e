"""Tests for the textual value codec."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from jcr_mcp_server.core.values import (
    EMPTY_STRING_MARKER,
    format_value,
    get_value_type,
    normalize_required_type,
    parse_value,
    serialize_value,
    unserialize_value,
)


class TestGetValueType:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (True, "Boolean"),
            (42, "Long"),
            (5.0, "Long"),
            (1.5, "Double"),
            ("text", "String"),
            (datetime(2024, 1, 1, tzinfo=timezone.utc), "Date"),
            (["a", "b"], "String[]"),
            ([1, 2], "Long[]"),
            ([], ""),
            ({}, ""),
            (None, ""),
        ],
    )
    def test_inferred_types(self, value, expected):
        assert get_value_type(value) == expected

    def test_bool_is_not_long(self):
        assert get_value_type(False) == "Boolean"


class TestFormatValue:
    def test_booleans(self):
        assert format_value(True) == "true"
        assert format_value(False) == "false"

    def test_integral_float_has_no_fraction(self):
        assert format_value(5.0) == "5"
        assert format_value(5) == format_value(5.0)

    def test_non_integral_float(self):
        assert format_value(1.25) == "1.25"

    def test_special_floats(self):
        assert format_value(math.inf) == "Infinity"
        assert format_value(-math.inf) == "-Infinity"
        assert format_value(math.nan) == "NaN"

    def test_aware_date_converted_to_utc(self):
        value = datetime(
            2024, 1, 31, 12, 0, 0, 123456, tzinfo=timezone(timedelta(hours=2))
        )
        assert format_value(value) == "2024-01-31T10:00:00.123Z"

    def test_sub_millisecond_digits_truncated(self):
        value = datetime(2024, 1, 31, 10, 0, 0, 123456, tzinfo=timezone.utc)
        text = serialize_value(value, "Date")
        assert text == "{Date}2024-01-31T10:00:00.123Z"
        assert unserialize_value(text).value == value.replace(microsecond=123000)

    def test_naive_date_has_no_zone(self):
        assert format_value(datetime(2024, 1, 31, 10, 0)) == "2024-01-31T10:00:00.000"

    def test_strings_unchanged(self):
        assert format_value("nt:unstructured") == "nt:unstructured"


class TestParseValue:
    def test_inferred_boolean(self):
        assert parse_value("true") is True
        assert parse_value("false") is False

    def test_inferred_number(self):
        assert parse_value("42") == 42.0
        assert parse_value("-1.5") == -1.5

    def test_inferred_date(self):
        value = parse_value("2024-01-31T10:00:00.000Z")
        assert value == datetime(2024, 1, 31, 10, 0, tzinfo=timezone.utc)

    def test_date_with_offset(self):
        value = parse_value("2024-01-31T12:00:00.000+02:00")
        assert value.astimezone(timezone.utc) == datetime(
            2024, 1, 31, 10, 0, tzinfo=timezone.utc
        )

    def test_plain_string(self):
        assert parse_value("Hello") == "Hello"
        assert parse_value("") == ""

    def test_empty_string_marker(self):
        assert parse_value(EMPTY_STRING_MARKER) == ""

    def test_explicit_string_hint_keeps_text(self):
        assert parse_value("true", "String") == "true"
        assert parse_value("42", "String") == "42"

    def test_long_hint(self):
        value = parse_value("42", "Long")
        assert value == 42
        assert isinstance(value, int)

    def test_invalid_long_raises(self):
        with pytest.raises(ValueError):
            parse_value("abc", "Long")

    def test_unicode_escape(self):
        assert parse_value("caf\\u00e9") == "café"

    def test_escaped_brackets(self):
        assert parse_value("\\[x\\]") == "[x]"


class TestSerializeValue:
    def test_scalar(self):
        assert serialize_value("Hello") == "Hello"
        assert serialize_value(True) == "true"
        assert serialize_value(42) == "42"

    def test_type_prefix(self):
        assert serialize_value(42, "Long") == "{Long}42"

    def test_array(self):
        assert serialize_value(["a", "b"]) == "[a,b]"

    def test_array_prefix_drops_brackets_from_hint(self):
        assert serialize_value([1, 2], "Long[]") == "{Long}[1,2]"

    def test_array_escapes_commas(self):
        assert serialize_value(["a,b", "c"]) == "[a\\,b,c]"

    def test_single_empty_string_array(self):
        assert serialize_value([""]) == "[\\0]"

    def test_empty_array(self):
        assert serialize_value([]) == "[]"

    def test_scalar_starting_with_bracket_is_escaped(self):
        assert serialize_value("[not an array]") == "\\[not an array]"
        assert serialize_value("{curly}") == "\\{curly}"

    def test_backslash_escaped(self):
        assert serialize_value("a\\b") == "a\\\\b"


class TestUnserializeValue:
    def test_untyped_scalar(self):
        assert unserialize_value("Hello") == ("Hello", "")

    def test_typed_scalar(self):
        assert unserialize_value("{Long}42") == (42, "Long")

    def test_typed_array(self):
        assert unserialize_value("{Long}[1,2]") == ([1, 2], "Long[]")

    def test_untyped_array(self):
        assert unserialize_value("[a,b]") == (["a", "b"], "")

    def test_empty_array(self):
        assert unserialize_value("[]") == ([], "")

    def test_single_empty_string_array(self):
        assert unserialize_value("[\\0]") == ([""], "")

    def test_array_with_escaped_comma(self):
        value, _ = unserialize_value("[a\\,b,c]")
        assert value == ["a,b", "c"]

    def test_escaped_leading_bracket_is_scalar(self):
        assert unserialize_value("\\[x]") == ("[x]", "")

    def test_backslash_survives_serialization(self):
        text = serialize_value("C:\\temp")
        assert unserialize_value(text).value == "C:\\temp"

    def test_date_array_with_hint(self):
        value, hint = unserialize_value("{Date}[2024-01-01T00:00:00.000Z]")
        assert hint == "Date[]"
        assert value == [datetime(2024, 1, 1, tzinfo=timezone.utc)]


class TestNormalizeRequiredType:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("STRING", "String"),
            ("LONG", "Long"),
            ("WEAKREFERENCE", "WeakReference"),
            ("UNDEFINED", "Undefined"),
        ],
    )
    def test_capitalization(self, raw, expected):
        assert normalize_required_type(raw) == expected
