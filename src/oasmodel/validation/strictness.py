"""Evaluate payloads against rule sets at three strictness levels.

============  =====================  ===================================
Mode          Unknown fields         Rule violations
============  =====================  ===================================
strict        ignored                raise on the first violation
moderate      warnings               collect all, then raise
lenient       warnings               warnings only, never raise
============  =====================  ===================================

Before any check, string-encoded scalars are cast to the declared type
(``"123"`` -> ``123``, ``"99.99"`` -> ``99.99``, ``"true"`` -> ``True``, a JSON
array string -> ``list``). A cast that fails keeps the original value, which
then fails the type rule.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime
from typing import Any, Optional

from oasmodel.exceptions import ValidationException
from oasmodel.models import Strictness, ValidationOutcome, ValidationRuleSet
from oasmodel.validation.rules import format_value, parse_rule, split_enum

logger = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"^\s*[+-]?\d+\s*$")
_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*$")
_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})
_TYPE_TOKENS = ("integer", "numeric", "boolean", "array", "string")


class StrictnessEvaluator:
    """Apply :data:`~oasmodel.models.ValidationRuleSet` rules to payloads.

    Args:
        strictness: Default level used when :meth:`evaluate` is not given one.
    """

    def __init__(self, strictness: Strictness | str = Strictness.STRICT) -> None:
        self.strictness = Strictness(strictness)

    def evaluate(
        self,
        data: dict[str, Any],
        rules: ValidationRuleSet,
        strictness: Strictness | str | None = None,
    ) -> ValidationOutcome:
        """Cast and validate *data* against *rules*.

        Returns:
            The outcome with the cast payload. In lenient mode violations are
            reported in ``warnings`` and ``valid`` stays ``True``.

        Raises:
            ValidationException: In strict mode on the first violation, in
                moderate mode after collecting every violation.
        """
        level = Strictness(strictness) if strictness is not None else self.strictness
        cast_data = cast_payload(data, rules)
        warnings: list[str] = []

        if level != Strictness.STRICT:
            for name in data:
                if name not in rules:
                    warnings.append(f"Unknown field '{name}'")

        errors: dict[str, list[str]] = {}
        for name, tokens in rules.items():
            messages = check_field(name, cast_data, tokens)
            if not messages:
                continue
            if level == Strictness.STRICT:
                raise ValidationException({name: messages[:1]})
            errors[name] = messages

        if errors and level == Strictness.MODERATE:
            raise ValidationException(errors)

        if errors:
            for name, messages in errors.items():
                warnings.extend(messages)
            logger.debug("Lenient validation recorded %d warnings", len(warnings))
            errors = {}

        return ValidationOutcome(
            valid=True,
            data=cast_data,
            errors=errors,
            warnings=warnings,
            strictness=level,
        )


def _type_token(tokens: list[str]) -> Optional[str]:
    for token in tokens:
        if token in _TYPE_TOKENS:
            return token
    return None


def cast_payload(data: dict[str, Any], rules: ValidationRuleSet) -> dict[str, Any]:
    """Return a copy of *data* with ruled fields cast to their declared types."""
    result = dict(data)
    for name, value in data.items():
        if name not in rules or value is None:
            continue
        type_token = _type_token(rules[name])
        if type_token is not None:
            result[name] = cast_value(value, type_token)
    return result


def cast_value(value: Any, type_token: str) -> Any:
    """Cast a string-encoded scalar to *type_token*, or return it unchanged."""
    if type_token == "integer":
        if isinstance(value, str) and _INTEGER_RE.match(value):
            return int(value)
        if isinstance(value, float) and value.is_integer():
            return int(value)
    elif type_token == "numeric":
        if isinstance(value, str) and _NUMERIC_RE.match(value):
            number = float(value)
            return int(number) if _INTEGER_RE.match(value) else number
    elif type_token == "boolean":
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        elif isinstance(value, int) and not isinstance(value, bool) and value in (0, 1):
            return bool(value)
    elif type_token == "array":
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except ValueError:
                return value
            if isinstance(decoded, list):
                return decoded
    return value


def check_field(name: str, data: dict[str, Any], tokens: list[str]) -> list[str]:
    """Return violation messages for one field (empty when it passes)."""
    value = data.get(name)
    missing = name not in data or value is None or (isinstance(value, str) and value == "")

    if missing:
        if "required" in tokens:
            return [f"The {name} field is required."]
        return []

    messages: list[str] = []
    type_token = _type_token(tokens)
    if type_token is not None and not _matches_type(value, type_token):
        # Remaining rules are meaningless for a value of the wrong type.
        return [f"The {name} field must be {_TYPE_LABELS[type_token]}."]

    for token in tokens:
        rule, argument = parse_rule(token)
        if rule == "date" and not _is_date(value):
            messages.append(f"The {name} field must be a valid date.")
        elif rule in ("min", "max") and argument is not None:
            message = _check_bound(name, value, rule, argument)
            if message:
                messages.append(message)
        elif rule == "in" and argument is not None:
            allowed = split_enum(argument)
            if format_value(value) not in allowed:
                messages.append(f"The selected {name} is invalid; expected one of: {argument}.")
        elif rule == "regex" and argument is not None:
            if not isinstance(value, str) or re.search(argument, value) is None:
                messages.append(f"The {name} field format is invalid.")
    return messages


_TYPE_LABELS = {
    "integer": "an integer",
    "numeric": "a number",
    "boolean": "true or false",
    "array": "an array",
    "string": "a string",
}


def _matches_type(value: Any, type_token: str) -> bool:
    if type_token == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if type_token == "numeric":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if type_token == "boolean":
        return isinstance(value, bool)
    if type_token == "array":
        return isinstance(value, list)
    return isinstance(value, str)


def _is_date(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    if not isinstance(value, str):
        return False
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        datetime.fromisoformat(text)
    except ValueError:
        return False
    return True


def _check_bound(name: str, value: Any, rule: str, argument: str) -> Optional[str]:
    try:
        limit = float(argument)
    except ValueError:
        return None

    if isinstance(value, (str, list)):
        measured = len(value)
        unit = " characters" if isinstance(value, str) else " items"
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        measured = value
        unit = ""
    else:
        return None

    if rule == "min" and measured < limit:
        return f"The {name} field must be at least {argument}{unit}."
    if rule == "max" and measured > limit:
        return f"The {name} field must not be greater than {argument}{unit}."
    return None
