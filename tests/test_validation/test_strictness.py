"""Tests for oasmodel.validation.strictness."""

from __future__ import annotations

from typing import Any

import pytest

from oasmodel.exceptions import ValidationException
from oasmodel.models import SchemaNode, Strictness
from oasmodel.validation.rules import property_rules
from oasmodel.validation.strictness import StrictnessEvaluator, cast_value, check_field

PET_RULES = {
    "name": ["required", "string", "min:1", "max:100"],
    "status": ["string", "in:available,pending,sold"],
    "price": ["numeric", "min:0"],
    "quantity": ["integer", "min:1", "max:100"],
}


# ---------------------------------------------------------------------------
# Casting
# ---------------------------------------------------------------------------


class TestCastValue:
    @pytest.mark.parametrize(
        "value, token, expected",
        [
            ("123", "integer", 123),
            (" -7 ", "integer", -7),
            (4.0, "integer", 4),
            ("99.99", "numeric", 99.99),
            ("42", "numeric", 42),
            ("1e3", "numeric", 1000.0),
            ("true", "boolean", True),
            ("YES", "boolean", True),
            ("off", "boolean", False),
            (0, "boolean", False),
            ('["a", "b"]', "array", ["a", "b"]),
        ],
    )
    def test_successful_casts(self, value: Any, token: str, expected: Any) -> None:
        result = cast_value(value, token)
        assert result == expected
        assert type(result) is type(expected)

    @pytest.mark.parametrize(
        "value, token",
        [
            ("12abc", "integer"),
            (4.5, "integer"),
            ("n/a", "numeric"),
            ("maybe", "boolean"),
            (2, "boolean"),
            ('{"a": 1}', "array"),
            ("[broken", "array"),
            (12, "string"),
        ],
    )
    def test_failed_casts_keep_original(self, value: Any, token: str) -> None:
        assert cast_value(value, token) == value


# ---------------------------------------------------------------------------
# Field checks
# ---------------------------------------------------------------------------


class TestCheckField:
    def test_missing_required(self) -> None:
        assert check_field("name", {}, ["required", "string"]) == ["The name field is required."]

    def test_empty_string_counts_as_missing(self) -> None:
        assert check_field("name", {"name": ""}, ["required", "string"]) == ["The name field is required."]

    def test_missing_optional_passes(self) -> None:
        assert check_field("tag", {"tag": None}, ["string", "min:3"]) == []

    def test_type_mismatch_short_circuits(self) -> None:
        assert check_field("quantity", {"quantity": "lots"}, PET_RULES["quantity"]) == [
            "The quantity field must be an integer."
        ]

    def test_string_length_bounds(self) -> None:
        messages = check_field("code", {"code": "toolong"}, ["string", "min:2", "max:3"])
        assert messages == ["The code field must not be greater than 3 characters."]

    def test_numeric_bounds(self) -> None:
        assert check_field("price", {"price": -1}, PET_RULES["price"]) == [
            "The price field must be at least 0."
        ]

    def test_array_bounds(self) -> None:
        assert check_field("tags", {"tags": []}, ["array", "min:1"]) == [
            "The tags field must be at least 1 items."
        ]

    def test_enum(self) -> None:
        assert check_field("status", {"status": "lost"}, PET_RULES["status"]) == [
            "The selected status is invalid; expected one of: available,pending,sold."
        ]
        assert check_field("status", {"status": "sold"}, PET_RULES["status"]) == []

    def test_enum_values_containing_commas(self) -> None:
        rules = ["string", "in:a\\,b,c"]
        assert check_field("code", {"code": "a,b"}, rules) == []
        assert check_field("code", {"code": "c"}, rules) == []
        assert check_field("code", {"code": "a"}, rules) != []
        assert check_field("code", {"code": "b"}, rules) != []

    def test_date(self) -> None:
        assert check_field("d", {"d": "2024-02-30"}, ["string", "date"]) == ["The d field must be a valid date."]
        assert check_field("d", {"d": "2024-02-28T10:00:00Z"}, ["string", "date"]) == []

    def test_regex(self) -> None:
        rules = ["string", "regex:^[A-Z]{3}$"]
        assert check_field("code", {"code": "ABC"}, rules) == []
        assert check_field("code", {"code": "abc"}, rules) == ["The code field format is invalid."]


# ---------------------------------------------------------------------------
# Strictness levels
# ---------------------------------------------------------------------------


class TestStrictMode:
    def test_valid_payload_is_cast(self) -> None:
        outcome = StrictnessEvaluator().evaluate(
            {"name": "Rex", "price": "99.99", "quantity": "3"}, PET_RULES
        )
        assert outcome.valid is True
        assert outcome.strictness == Strictness.STRICT
        assert outcome.data == {"name": "Rex", "price": 99.99, "quantity": 3}
        assert outcome.errors == {}

    def test_raises_on_first_violation(self) -> None:
        with pytest.raises(ValidationException) as exc_info:
            StrictnessEvaluator("strict").evaluate({"status": "lost", "quantity": 0}, PET_RULES)
        assert exc_info.value.field == "name"
        assert exc_info.value.errors == {"name": ["The name field is required."]}

    def test_unknown_fields_are_ignored(self) -> None:
        outcome = StrictnessEvaluator().evaluate({"name": "Rex", "colour": "brown"}, PET_RULES)
        assert outcome.warnings == []
        assert outcome.data["colour"] == "brown"

    def test_failed_cast_reports_type_error(self) -> None:
        with pytest.raises(ValidationException) as exc_info:
            StrictnessEvaluator().evaluate({"name": "Rex", "price": "cheap"}, PET_RULES)
        assert exc_info.value.errors == {"price": ["The price field must be a number."]}

    def test_enum_member_with_comma_round_trips(self) -> None:
        rules = {"code": property_rules(SchemaNode(type="string", enum=["a,b", "c"]))}
        evaluator = StrictnessEvaluator(Strictness.STRICT)
        assert evaluator.evaluate({"code": "a,b"}, rules).valid is True
        with pytest.raises(ValidationException):
            evaluator.evaluate({"code": "a"}, rules)


class TestModerateMode:
    def test_collects_all_violations(self) -> None:
        with pytest.raises(ValidationException) as exc_info:
            StrictnessEvaluator(Strictness.MODERATE).evaluate({"status": "lost", "quantity": 0}, PET_RULES)
        assert list(exc_info.value.errors) == ["name", "status", "quantity"]
        assert exc_info.value.to_dict()["field"] == "name"

    def test_unknown_fields_warn(self) -> None:
        outcome = StrictnessEvaluator(Strictness.MODERATE).evaluate({"name": "Rex", "colour": "brown"}, PET_RULES)
        assert outcome.valid is True
        assert outcome.warnings == ["Unknown field 'colour'"]


class TestLenientMode:
    def test_violations_become_warnings(self) -> None:
        outcome = StrictnessEvaluator().evaluate(
            {"status": "lost", "extra": 1}, PET_RULES, strictness="lenient"
        )
        assert outcome.valid is True
        assert outcome.errors == {}
        assert outcome.strictness == Strictness.LENIENT
        assert outcome.warnings == [
            "Unknown field 'extra'",
            "The name field is required.",
            "The selected status is invalid; expected one of: available,pending,sold.",
        ]

    def test_invalid_strictness_name(self) -> None:
        with pytest.raises(ValueError):
            StrictnessEvaluator("paranoid")
