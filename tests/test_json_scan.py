"""Tests for coverline.extract.json_scan."""

import json
from datetime import date
from decimal import Decimal

from coverline.extract.json_scan import (
    find_balanced_object,
    get_bool,
    get_confidence,
    get_date,
    get_decimal,
    get_int,
    get_list,
    get_string,
    get_string_list,
    scan_json,
    to_decimal,
)


class TestScanJson:
    """Test JSON object extraction from LLM responses."""

    def test_clean_json(self):
        """Parse a bare JSON object."""
        result = scan_json('{"key": "value"}')
        assert result.ok
        assert result.data == {"key": "value"}

    def test_json_fence(self):
        """Parse JSON inside a ```json fence."""
        result = scan_json('Here you go:\n```json\n{"key": "value"}\n```\nDone.')
        assert result.data == {"key": "value"}

    def test_plain_fence(self):
        """Parse JSON inside an unlabelled fence."""
        result = scan_json('```\n{"key": 1}\n```')
        assert result.data == {"key": 1}

    def test_surrounding_prose(self):
        """Parse an object embedded in explanation text."""
        result = scan_json('The extracted data is {"limit": 1000000} as requested.')
        assert result.data == {"limit": 1000000}

    def test_braces_inside_strings(self):
        """Braces inside string values don't end the object."""
        result = scan_json('Result: {"a": "{not json}"} trailing {junk}')
        assert result.data == {"a": "{not json}"}

    def test_escaped_quotes(self):
        """Escaped quotes inside strings are handled."""
        result = scan_json(r'{"name": "The \"Best\" Co {LLC}", "n": 2}')
        assert result.data == {"name": 'The "Best" Co {LLC}', "n": 2}

    def test_brace_spans_in_prose(self):
        """Brace spans in the prose before the object are skipped."""
        result = scan_json('The limits {per the schedule} are below: {"each_occurrence_limit": 1000000}')
        assert result.data == {"each_occurrence_limit": 1000000}

    def test_unclosed_brace_before_object(self):
        """A stray opening brace does not hide a later object."""
        result = scan_json('Limits {see schedule, then {"aggregate_limit": 2000000}')
        assert result.data == {"aggregate_limit": 2000000}

    def test_first_parseable_object_wins(self):
        """Later objects are ignored once one parses."""
        result = scan_json('{"a": 1} and {"b": 2}')
        assert result.data == {"a": 1}

    def test_fence_with_prose_inside(self):
        """A fence holding prose around the object falls back to the braces."""
        result = scan_json('```json\nSure! {"key": "value"} hope that helps\n```')
        assert result.data == {"key": "value"}

    def test_no_json(self):
        """Plain text gives an error result."""
        result = scan_json("I could not find any policy information.")
        assert not result.ok
        assert "No JSON object" in result.error

    def test_empty_response(self):
        """Empty and None responses give an error result."""
        assert scan_json("").error == "Empty response"
        assert scan_json(None).error == "Empty response"

    def test_invalid_json(self):
        """Malformed objects give an error result, never raise."""
        result = scan_json('{"key": value}')
        assert not result.ok
        assert result.error.startswith("Invalid JSON")

    def test_non_object(self):
        """A JSON array inside a fence is rejected."""
        result = scan_json('```json\n[1, 2, 3]\n```')
        assert not result.ok

    def test_find_balanced_object_unterminated(self):
        """An unclosed object has no balanced region."""
        assert find_balanced_object('{"a": {"b": 1}') is None


class TestCoercion:
    """Test safe field coercion helpers."""

    def test_get_string(self):
        """Strings are stripped; blanks and non-strings are None."""
        data = {"a": "  Acme  ", "b": "   ", "c": 5}
        assert get_string(data, "a") == "Acme"
        assert get_string(data, "b") is None
        assert get_string(data, "c") is None
        assert get_string(data, "missing") is None

    def test_get_decimal(self):
        """Numbers and money strings become Decimal."""
        data = {"n": 1000000, "f": 12.5, "s": "$1,000,000", "bad": "n/a", "b": True, "empty": ""}
        assert get_decimal(data, "n") == Decimal("1000000")
        assert get_decimal(data, "f") == Decimal("12.5")
        assert get_decimal(data, "s") == Decimal("1000000")
        assert get_decimal(data, "bad") is None
        assert get_decimal(data, "b") is None
        assert get_decimal(data, "empty") is None

    def test_non_finite_numbers(self):
        """NaN and Infinity from the JSON parser are treated as missing."""
        data = json.loads('{"nan": NaN, "inf": Infinity, "neg": -Infinity, "huge": 1e999, "s": "Infinity"}')
        for key in data:
            assert get_decimal(data, key) is None
            assert get_int(data, key) is None
        assert to_decimal(float("nan")) is None
        assert to_decimal(float("-inf")) is None
        assert to_decimal(2.5) == Decimal("2.5")
        assert get_confidence({"confidence": float("nan")}) == 0.5
        assert get_confidence({"confidence": float("inf")}) == 0.5

    def test_get_bool(self):
        """Only JSON booleans count."""
        data = {"t": True, "f": False, "s": "true", "n": 1}
        assert get_bool(data, "t") is True
        assert get_bool(data, "f") is False
        assert get_bool(data, "s") is None
        assert get_bool(data, "n") is None

    def test_get_int(self):
        """Integral numbers and numeric strings become int."""
        data = {"i": 90, "s": "365", "f": 2.5, "b": False}
        assert get_int(data, "i") == 90
        assert get_int(data, "s") == 365
        assert get_int(data, "f") is None
        assert get_int(data, "b") is None

    def test_get_date_formats(self):
        """ISO, US and long-form dates parse."""
        expected = date(2024, 1, 1)
        for value in ("2024-01-01", "01/01/2024", "01-01-2024", "January 1, 2024", "Jan 1, 2024", "2024-01-01T00:00:00"):
            assert get_date({"d": value}, "d") == expected

    def test_get_date_invalid(self):
        """Unparseable dates are None."""
        assert get_date({"d": "sometime next year"}, "d") is None
        assert get_date({"d": 20240101}, "d") is None

    def test_get_confidence(self):
        """Confidence is clamped and defaults to 0.5."""
        assert get_confidence({"confidence": 0.9}) == 0.9
        assert get_confidence({"confidence": 1.7}) == 1.0
        assert get_confidence({"confidence": -2}) == 0.0
        assert get_confidence({"confidence": "0.75"}) == 0.75
        assert get_confidence({}) == 0.5
        assert get_confidence({"confidence": None}) == 0.5
        assert get_confidence({"confidence": True}) == 0.5

    def test_get_list(self):
        """Only non-empty lists are returned."""
        assert get_list({"l": [1]}, "l") == [1]
        assert get_list({"l": []}, "l") is None
        assert get_list({"l": "x"}, "l") is None

    def test_get_string_list(self):
        """Non-string and blank items are dropped."""
        assert get_string_list({"l": [" a ", "", 3, "b"]}, "l") == ["a", "b"]
        assert get_string_list({"l": [1, 2]}, "l") is None
