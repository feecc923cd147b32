"""
Parsing of the model's textual reply into a ``FinancialData`` record.

The reply is expected to contain one flat JSON object, possibly surrounded
by commentary. Keys are matched case-insensitively against a static field
table; unknown keys are ignored and a value that cannot be parsed leaves
its field unset without aborting the rest of the parse.
"""

import json
import logging
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import Any

from ...models import (
    ALREADY_IN_THOUSANDS_FIELD,
    AMOUNT_FIELDS,
    COMPANY_ID_FIELD,
    COMPANY_NAME_FIELD,
    FinancialData,
)
from .exceptions import ExtractionError

logger = logging.getLogger(__name__)

Setter = Callable[[FinancialData, Any], None]


# =============================================================================
# Value Parsers
# =============================================================================


def parse_amount(value: str) -> Decimal:
    """
    Parse an amount given as text.

    Every ``.`` is treated as a thousands separator and removed before
    parsing, so ``"1.234.567"`` is 1234567 and ``"12.5"`` is 125.

    Raises:
        ValueError: If the remaining text is not a finite number.
    """
    try:
        amount = Decimal(value.replace(".", "").strip())
    except InvalidOperation as e:
        raise ValueError(f"'{value}' is not a number") from e
    if not amount.is_finite():
        raise ValueError(f"'{value}' is not a finite number")
    return amount


def parse_company_id(value: str) -> int:
    """Keep only the digits of ``value`` and read them as an integer."""
    digits = "".join(ch for ch in value if ch.isdecimal())
    if not digits:
        raise ValueError(f"'{value}' contains no digits")
    return int(digits)


# =============================================================================
# Field Setters
# =============================================================================


def _amount_setter(attribute: str) -> Setter:
    def _set(data: FinancialData, value: Any) -> None:
        if isinstance(value, bool):
            raise TypeError("expected a number, got a boolean")
        if isinstance(value, str):
            amount = parse_amount(value)
        elif isinstance(value, Decimal):
            if not value.is_finite():
                raise ValueError(f"{value} is not a finite number")
            amount = value
        else:
            raise TypeError(f"unsupported value type {type(value).__name__}")
        setattr(data, attribute, amount)

    return _set


def _set_company_id(data: FinancialData, value: Any) -> None:
    if isinstance(value, bool):
        raise TypeError("expected a company number, got a boolean")
    if isinstance(value, str):
        data.company_id = parse_company_id(value)
    elif isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise ValueError(f"{value} is not a whole number")
        data.company_id = int(value)
    else:
        raise TypeError(f"unsupported value type {type(value).__name__}")


def _set_company_name(data: FinancialData, value: Any) -> None:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    data.company_name = value


def _set_already_in_thousands(data: FinancialData, value: Any) -> None:
    if not isinstance(value, bool):
        raise TypeError(f"expected a boolean, got {type(value).__name__}")
    data.already_in_thousands = value


# Lowercased JSON key -> setter
FIELD_TABLE: dict[str, Setter] = {
    COMPANY_ID_FIELD.json_name.lower(): _set_company_id,
    COMPANY_NAME_FIELD.json_name.lower(): _set_company_name,
    ALREADY_IN_THOUSANDS_FIELD.json_name.lower(): _set_already_in_thousands,
    **{field.json_name.lower(): _amount_setter(field.attribute) for field in AMOUNT_FIELDS},
}


# =============================================================================
# Reply Parsing
# =============================================================================


def extract_json_object(text: str) -> str:
    """Return the text between the first ``{`` and the last ``}`` inclusive."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ExtractionError("No JSON object found in model response")
    return text[start : end + 1]


def parse_financial_data(text: str) -> FinancialData:
    """
    Convert the model's reply into a ``FinancialData`` record.

    Args:
        text: Raw reply text.

    Returns:
        The parsed record (not yet normalized).

    Raises:
        ExtractionError: If the reply holds no parseable JSON object.
    """
    raw = extract_json_object(text)
    try:
        payload = json.loads(
            raw,
            parse_float=Decimal,
            parse_int=Decimal,
            parse_constant=Decimal,
        )
    except json.JSONDecodeError as e:
        logger.error("Failed to parse extraction response: %s", raw[:500])
        raise ExtractionError(f"Invalid JSON in extraction response: {e}") from e

    if not isinstance(payload, dict):
        raise ExtractionError("Extraction response is not a JSON object")

    data = FinancialData()
    for key, value in payload.items():
        setter = FIELD_TABLE.get(key.lower())
        if setter is None or value is None:
            continue
        try:
            setter(data, value)
        except (TypeError, ValueError) as e:
            logger.warning("Error setting field %s: %s", key, e)

    return data
