"""Tests for parsing the model reply into FinancialData."""

from decimal import Decimal

import pytest

from app.pdf_processor.services.ai.exceptions import ExtractionError
from app.pdf_processor.services.ai.parsing import (
    FIELD_TABLE,
    extract_json_object,
    parse_amount,
    parse_company_id,
    parse_financial_data,
)


class TestParseAmount:
    """Tests for textual amounts."""

    def test_dots_are_thousands_separators(self):
        assert parse_amount("1.234.567") == Decimal("1234567")

    def test_dot_is_never_a_decimal_point(self):
        assert parse_amount("12.5") == Decimal("125")

    def test_negative_amount(self):
        assert parse_amount("-85.000") == Decimal("-85000")

    def test_invalid_raises(self):
        with pytest.raises(ValueError):
            parse_amount("n/a")

    def test_non_finite_raises(self):
        with pytest.raises(ValueError):
            parse_amount("Infinity")


class TestParseCompanyId:
    """Tests for company registration numbers."""

    def test_keeps_only_digits(self):
        assert parse_company_id("DK 12 34-56") == 123456

    def test_plain_digits(self):
        assert parse_company_id("12345678") == 12345678

    def test_no_digits_raises(self):
        with pytest.raises(ValueError):
            parse_company_id("unknown")


class TestExtractJsonObject:
    def test_strips_surrounding_commentary(self):
        text = 'Sure! Here you go:\n{"companyName": "A/S"}\nLet me know.'
        assert extract_json_object(text) == '{"companyName": "A/S"}'

    def test_no_braces_raises(self):
        with pytest.raises(ExtractionError):
            extract_json_object("I could not read the document.")


class TestParseFinancialData:
    """Tests for parse_financial_data."""

    def test_full_reply(self):
        reply = """```json
{
  "companyId": "DK 12 34-56",
  "companyName": "Nordic Widgets ApS",
  "grossProfit": 2450000,
  "staffCosts": -1300000.5,
  "totalAssets": "5.120.000",
  "alreadyInThousands": false
}
```"""
        data = parse_financial_data(reply)

        assert data.company_id == 123456
        assert data.company_name == "Nordic Widgets ApS"
        assert data.gross_profit == Decimal("2450000")
        assert data.staff_costs == Decimal("-1300000.5")
        assert data.total_assets == Decimal("5120000")
        assert data.already_in_thousands is False

    def test_keys_are_case_insensitive(self):
        data = parse_financial_data('{"COMPANYNAME": "Upper", "grossprofit": 10}')
        assert data.company_name == "Upper"
        assert data.gross_profit == Decimal("10")

    def test_unknown_keys_are_ignored(self):
        data = parse_financial_data('{"ceoName": "Jane", "equity": 100}')
        assert data.equity == Decimal("100")
        assert not hasattr(data, "ceo_name")

    def test_null_values_leave_fields_unset(self):
        data = parse_financial_data('{"companyName": null, "equity": null}')
        assert data.company_name is None
        assert data.equity is None

    def test_bad_field_does_not_abort_parse(self):
        data = parse_financial_data(
            '{"grossProfit": "lots", "equity": 500, "alreadyInThousands": "yes"}'
        )
        assert data.gross_profit is None
        assert data.equity == Decimal("500")
        assert data.already_in_thousands is False

    def test_boolean_amount_is_rejected(self):
        data = parse_financial_data('{"tax": true}')
        assert data.tax is None

    def test_fractional_numeric_company_id_is_rejected(self):
        data = parse_financial_data('{"companyId": 12.5}')
        assert data.company_id is None

    def test_numeric_company_id(self):
        data = parse_financial_data('{"companyId": 87654321}')
        assert data.company_id == 87654321

    def test_invalid_json_raises(self):
        with pytest.raises(ExtractionError):
            parse_financial_data('{"companyName": "Broken",}')

    def test_set_literal_raises(self):
        with pytest.raises(ExtractionError):
            parse_financial_data('Result: {1, 2}')

    def test_field_table_covers_every_json_key(self):
        assert "companyid" in FIELD_TABLE
        assert "equityandliabilities" in FIELD_TABLE
        assert "alreadyinthousands" in FIELD_TABLE
        assert len(FIELD_TABLE) == 25
