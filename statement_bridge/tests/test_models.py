"""
Tests for the canonical statement model.

Tests cover:
- Transaction construction and validation
- Balance and Statement invariants
- Amount formatting per currency
- Merging statement pages
"""

import pytest
from dataclasses import FrozenInstanceError, replace
from datetime import date, datetime
from decimal import Decimal

from statement_bridge.core.exceptions import MalformedTransaction, StatementParseError
from statement_bridge.models.statement import (
    Balance,
    Direction,
    Statement,
    Transaction,
    format_amount,
    merge_statements,
    minor_units,
    normalize_text,
)


def make_transaction(amount="-10.00", currency="EUR", value_date=date(2023, 1, 15), **kwargs):
    return Transaction.from_signed_amount(value_date, Decimal(amount), currency, **kwargs)


class TestTransaction:
    """Tests for Transaction construction."""

    def test_debit_transaction(self):
        """Test a negative amount with debit direction."""
        transaction = Transaction(
            value_date=date(2023, 1, 15),
            amount=Decimal("-1500.00"),
            currency="EUR",
            direction=Direction.DEBIT,
            reference="Invoice 42",
        )

        assert transaction.direction is Direction.DEBIT
        assert transaction.absolute_amount == Decimal("1500.00")
        assert transaction.booking_date == date(2023, 1, 15)

    def test_direction_from_string(self):
        """Test that a direction given as text is normalized to the enum."""
        transaction = Transaction(date(2023, 1, 15), Decimal("5"), "EUR", "credit")
        assert transaction.direction is Direction.CREDIT

    def test_sign_disagreeing_with_direction(self):
        """Test that a positive amount marked as debit is rejected."""
        with pytest.raises(MalformedTransaction) as exc_info:
            Transaction(date(2023, 1, 15), Decimal("10.00"), "EUR", Direction.DEBIT)

        assert exc_info.value.field_name == "direction"
        assert exc_info.value.raw_value == "debit"

    def test_zero_amount_allowed_both_ways(self):
        """Test that a zero amount agrees with either direction."""
        Transaction(date(2023, 1, 15), Decimal("0"), "EUR", Direction.DEBIT)
        Transaction(date(2023, 1, 15), Decimal("0"), "EUR", Direction.CREDIT)

    @pytest.mark.parametrize("currency", ["eur", "EURO", "E1R", "", None])
    def test_invalid_currency(self, currency):
        """Test currency codes that are not three uppercase letters."""
        with pytest.raises(MalformedTransaction) as exc_info:
            Transaction(date(2023, 1, 15), Decimal("1"), currency, Direction.CREDIT)

        assert exc_info.value.field_name == "currency"
        assert exc_info.value.raw_value == currency

    def test_invalid_value_date(self):
        """Test that a non-date value date is rejected."""
        with pytest.raises(MalformedTransaction) as exc_info:
            Transaction("2023-01-15", Decimal("1"), "EUR", Direction.CREDIT)
        assert exc_info.value.field_name == "value_date"

    def test_datetime_is_not_a_date(self):
        """Test that a datetime is rejected as value date."""
        with pytest.raises(MalformedTransaction):
            Transaction(datetime(2023, 1, 15, 12, 0), Decimal("1"), "EUR", Direction.CREDIT)

    def test_float_amount_rejected(self):
        """Test that binary floating point amounts are rejected."""
        with pytest.raises(MalformedTransaction) as exc_info:
            Transaction(date(2023, 1, 15), 10.5, "EUR", Direction.CREDIT)
        assert exc_info.value.field_name == "amount"

    def test_non_finite_amount_rejected(self):
        """Test that NaN and infinity are rejected."""
        with pytest.raises(MalformedTransaction):
            Transaction(date(2023, 1, 15), Decimal("NaN"), "EUR", Direction.CREDIT)

    def test_text_fields_normalized(self):
        """Test reference whitespace collapsing and empty optional fields."""
        transaction = make_transaction(
            reference="  Invoice\n 42  ",
            bank_reference="   ",
            customer_reference=" REF1 ",
        )

        assert transaction.reference == "Invoice 42"
        assert transaction.bank_reference is None
        assert transaction.customer_reference == "REF1"

    def test_from_signed_amount(self):
        """Test that direction follows the sign of the amount."""
        assert make_transaction("-1").direction is Direction.DEBIT
        assert make_transaction("1").direction is Direction.CREDIT
        assert make_transaction("0").direction is Direction.CREDIT

    def test_immutable(self):
        """Test that transactions cannot be modified after construction."""
        transaction = make_transaction()
        with pytest.raises(FrozenInstanceError):
            transaction.amount = Decimal("1")

    def test_to_dict(self):
        """Test dictionary conversion."""
        data = make_transaction("-1500.00", reference="Invoice 42").to_dict()

        assert data["amount"] == "-1500.00"
        assert data["direction"] == "debit"
        assert data["value_date"] == "2023-01-15"
        assert data["reference"] == "Invoice 42"


class TestStatement:
    """Tests for Statement construction and balance checks."""

    def test_currency_mismatch_rejected(self):
        """Test that a foreign transaction needs per_transaction_currency."""
        with pytest.raises(MalformedTransaction) as exc_info:
            Statement("ACC1", "EUR", transactions=[make_transaction(currency="USD")])
        assert exc_info.value.field_name == "currency"

    def test_per_transaction_currency(self):
        """Test mixed currencies when allowed."""
        statement = Statement(
            "ACC1",
            "EUR",
            transactions=[make_transaction(currency="USD")],
            per_transaction_currency=True,
        )
        assert statement.transactions[0].currency == "USD"

    def test_transactions_stored_as_tuple(self):
        """Test that a transaction list is frozen into a tuple."""
        statement = Statement("ACC1", "EUR", transactions=[make_transaction()])
        assert isinstance(statement.transactions, tuple)

    def test_warnings_do_not_affect_equality(self, sample_statement):
        """Test that diagnostics are not part of statement equality."""
        warned = sample_statement.with_warnings(["row 3 skipped"])

        assert warned == sample_statement
        assert warned.warnings == ("row 3 skipped",)
        assert sample_statement.warnings == ()

    def test_balance_discrepancy_reconciled(self, sample_statement):
        """Test that the sample statement balances."""
        assert sample_statement.balance_discrepancy() == Decimal("0")

    def test_balance_discrepancy(self, sample_statement):
        """Test a closing balance that does not follow from the entries."""
        statement = replace(
            sample_statement,
            closing_balance=Balance(Decimal("9000.00"), "EUR", date(2023, 1, 16)),
        )
        assert statement.balance_discrepancy() == Decimal("250.00")

    def test_balance_discrepancy_without_balances(self):
        """Test that a missing balance yields no discrepancy."""
        assert Statement("ACC1", "EUR").balance_discrepancy() is None

    def test_totals(self, sample_statement):
        """Test credit and debit totals."""
        assert sample_statement.total_credits == Decimal("250.00")
        assert sample_statement.total_debits == Decimal("1500.00")

    def test_balance_direction(self):
        """Test the direction of a debit balance."""
        balance = Balance(Decimal("-5.00"), "EUR", date(2023, 1, 1))
        assert balance.direction is Direction.DEBIT


class TestMergeStatements:
    """Tests for joining statement pages."""

    def test_merge_pages(self):
        """Test that pages of one account are joined in order."""
        page_1 = Statement(
            "ACC1",
            "EUR",
            transactions=[make_transaction("-1")],
            opening_balance=Balance(Decimal("10"), "EUR", date(2023, 1, 1)),
            closing_balance=Balance(Decimal("9"), "EUR", date(2023, 1, 1), is_intermediate=True),
        )
        page_2 = Statement(
            "ACC1",
            "EUR",
            transactions=[make_transaction("-2")],
            opening_balance=Balance(Decimal("9"), "EUR", date(2023, 1, 1), is_intermediate=True),
            closing_balance=Balance(Decimal("7"), "EUR", date(2023, 1, 2)),
        )

        merged = merge_statements([page_1, page_2])

        assert [t.amount for t in merged.transactions] == [Decimal("-1"), Decimal("-2")]
        assert merged.opening_balance.amount == Decimal("10")
        assert merged.closing_balance.amount == Decimal("7")
        assert merged.balance_discrepancy() == Decimal("0")

    def test_merge_different_accounts(self):
        """Test that pages of different accounts cannot be merged."""
        with pytest.raises(StatementParseError):
            merge_statements([Statement("ACC1", "EUR"), Statement("ACC2", "EUR")])

    def test_merge_nothing(self):
        """Test that an empty document has no statement."""
        with pytest.raises(StatementParseError):
            merge_statements([])


class TestFormatting:
    """Tests for amount and text helpers."""

    def test_minor_units(self):
        """Test currency minor units."""
        assert minor_units("EUR") == 2
        assert minor_units("JPY") == 0
        assert minor_units("KWD") == 3

    def test_format_amount(self):
        """Test amount formatting with separators and precision."""
        assert format_amount(Decimal("-1500"), "EUR") == "1500.00"
        assert format_amount(Decimal("1500.5"), "EUR", ",") == "1500,50"
        assert format_amount(Decimal("1500"), "JPY") == "1500"
        assert format_amount(Decimal("1.2345"), "EUR") == "1.2345"

    def test_normalize_text(self):
        """Test whitespace normalization."""
        assert normalize_text("  a \n b\t c ") == "a b c"
        assert normalize_text(None) == ""
