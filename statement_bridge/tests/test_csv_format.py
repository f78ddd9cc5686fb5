"""
Tests for the mapped CSV statement codec.

Tests cover:
- Signed and split debit/credit layouts
- Header and index based column mapping
- Row-level error collection with 1-indexed row numbers
- Regional number and date formats
"""

import pytest
from datetime import date
from decimal import Decimal

from statement_bridge.core.config import CsvMappingConfig
from statement_bridge.core.exceptions import (
    ConfigurationException,
    InvalidCsvRow,
    UnsupportedConversion,
)
from statement_bridge.models.statement import Direction
from statement_bridge.protocols.delimited.csv_format import CsvCodec, parse_csv


def csv_bytes(*rows: str, encoding: str = "utf-8") -> bytes:
    return ("\n".join(rows) + "\n").encode(encoding)


class TestCsvParsing:
    """Tests for reading CSV exports."""

    def test_signed_amounts(self, config, csv_mapping):
        """Test the default date/amount/description layout."""
        data = csv_bytes(
            "date,amount,description",
            "2023-01-15,-1500.00,Invoice 42",
            '2023-01-16,250.00,"Refund, order 7781"',
        )
        result = CsvCodec(config, mapping=csv_mapping).parse_with_errors(data)

        assert not result.has_errors
        statement = result.statement
        assert statement.account_id == "DE89370400440532013000"
        assert statement.currency == "EUR"
        assert statement.period_start == date(2023, 1, 15)
        assert statement.period_end == date(2023, 1, 16)

        debit, credit = statement.transactions
        assert debit.amount == Decimal("-1500.00")
        assert debit.direction is Direction.DEBIT
        assert debit.reference == "Invoice 42"
        assert credit.reference == "Refund, order 7781"
        assert statement.opening_balance is None

    def test_bad_row_does_not_discard_file(self, config, csv_mapping):
        """Test ten good rows and one bad row."""
        rows = ["date,amount,description"]
        for day in range(1, 11):
            rows.append(f"2023-01-{day:02d},{day}.00,Payment {day}")
        rows.insert(8, "2023-13-45,5.00,Broken date")

        result = CsvCodec(config, mapping=csv_mapping).parse_with_errors(csv_bytes(*rows))

        assert len(result.statement.transactions) == 10
        assert len(result.errors) == 1
        error = result.errors[0]
        assert isinstance(error, InvalidCsvRow)
        assert error.row_number == 9
        assert error.raw_row == "2023-13-45,5.00,Broken date"
        assert "value_date" in error.reason

    def test_errors_collected_per_row(self, config, csv_mapping):
        """Test column count, amount and date errors in one file."""
        data = csv_bytes(
            "date,amount,description",
            "2023-01-15,1.00",
            "2023-01-15,abc,Bad amount",
            "15/01/2023,1.00,Bad date",
            "2023-01-15,,Empty amount",
            "2023-01-15,2.00,Good",
        )
        result = CsvCodec(config, mapping=csv_mapping).parse_with_errors(data)

        assert [e.row_number for e in result.errors] == [2, 3, 4, 5]
        assert "expected 3 columns" in result.errors[0].reason
        assert len(result.statement.transactions) == 1

    def test_parse_carries_errors_as_warnings(self, config, csv_mapping):
        """Test that parse keeps row errors as statement warnings."""
        data = csv_bytes("date,amount,description", "bad,1.00,x", "2023-01-15,1.00,ok")
        statement = CsvCodec(config, mapping=csv_mapping).parse(data)

        assert len(statement.transactions) == 1
        assert len(statement.warnings) == 1
        assert "Invalid CSV row 2" in statement.warnings[0]

    def test_blank_rows_skipped(self, config, csv_mapping):
        """Test that empty lines are not reported."""
        data = csv_bytes("date,amount,description", "", "2023-01-15,1.00,ok", ",,")
        result = CsvCodec(config, mapping=csv_mapping).parse_with_errors(data)

        assert not result.errors
        assert len(result.statement.transactions) == 1

    def test_missing_header_column(self, config):
        """Test that a mapped column absent from the header is fatal."""
        mapping = CsvMappingConfig(columns={"value_date": "Datum", "amount": "Betrag"})

        with pytest.raises(InvalidCsvRow) as exc_info:
            CsvCodec(config, mapping=mapping).parse(csv_bytes("date,amount", "2023-01-15,1.00"))

        assert exc_info.value.row_number == 1
        assert "Datum" in exc_info.value.reason

    def test_split_debit_credit(self, config):
        """Test separate debit and credit columns."""
        mapping = CsvMappingConfig.from_preset("split_debit_credit")
        data = csv_bytes(
            "Booking Date,Value Date,Details,Debit,Credit",
            "2023-01-14,2023-01-15,Invoice 42,1500.00,",
            "2023-01-16,2023-01-16,Refund,,250.00",
            "2023-01-16,2023-01-16,Both,1.00,2.00",
        )
        result = CsvCodec(config, mapping=mapping).parse_with_errors(data)

        debit, credit = result.statement.transactions
        assert debit.amount == Decimal("-1500.00")
        assert debit.booking_date == date(2023, 1, 14)
        assert credit.amount == Decimal("250.00")
        assert credit.direction is Direction.CREDIT
        assert result.errors[0].row_number == 4
        assert "both a debit and a credit" in result.errors[0].reason

    def test_regional_ledger_export(self, config):
        """Test semicolons, dd.mm.yyyy dates and comma decimals with space grouping."""
        mapping = CsvMappingConfig.from_preset("ru_ledger")
        data = csv_bytes(
            "Дата проводки;Сумма по дебету;Сумма по кредиту;Назначение платежа",
            "15.01.2023;1 500,00;;Оплата по счету 42",
            "16.01.2023;;12 345,67;Возврат",
            encoding="utf-8-sig",
        )
        statement = CsvCodec(config, mapping=mapping).parse(data)

        assert statement.currency == "RUB"
        assert statement.transactions[0].amount == Decimal("-1500.00")
        assert statement.transactions[0].reference == "Оплата по счету 42"
        assert statement.transactions[1].amount == Decimal("12345.67")

    def test_ledger_export_with_preamble_and_footer(self, config):
        """Test header detection, a wrapped header and a footer after the table."""
        mapping = CsvMappingConfig.from_preset("ru_ledger")
        data = csv_bytes(
            "Выписка по счету 40702810000000001;;;",
            "Период: январь 2023;;;",
            "Организация ООО Ромашка;;;",
            "Дата проводки;Сумма по;Сумма по;Назначение платежа",
            ";дебету;кредиту;",
            "20.01.2023;123,45;;Оплата",
            "21.01.2023;;10,00;Возврат",
            ";;;",
            "Итого обороты;123,45;10,00;",
        )
        result = CsvCodec(config, mapping=mapping).parse_with_errors(data)

        assert not result.errors
        debit, credit = result.statement.transactions
        assert debit.value_date == date(2023, 1, 20)
        assert debit.amount == Decimal("-123.45")
        assert credit.amount == Decimal("10.00")

    def test_header_marker_not_found(self, config):
        """Test a file without the configured header row."""
        mapping = CsvMappingConfig.from_preset("ru_ledger")

        with pytest.raises(InvalidCsvRow) as exc_info:
            CsvCodec(config, mapping=mapping).parse(csv_bytes("Дата;Сумма", "20.01.2023;1,00"))
        assert "Дата проводки" in exc_info.value.reason

    def test_blank_row_ends_table(self, config, csv_mapping):
        """Test that a footer after a blank row is ignored when configured."""
        csv_mapping.stop_at_blank_row = True
        data = csv_bytes(
            "date,amount,description",
            "2023-01-15,1.00,ok",
            "",
            "Generated by online banking",
        )
        result = CsvCodec(config, mapping=csv_mapping).parse_with_errors(data)

        assert not result.errors
        assert len(result.statement.transactions) == 1

    def test_unreadable_record_is_row_error(self, config, csv_mapping):
        """Test that a record the csv module rejects does not abort the file."""
        rows = ["date,amount,description"]
        rows += [f"2023-01-{day:02d},{day}.00,Payment {day}" for day in range(1, 11)]
        rows.insert(4, "2023-01-31,1.00," + "x" * 200_000)

        result = CsvCodec(config, mapping=csv_mapping).parse_with_errors(csv_bytes(*rows))

        assert len(result.statement.transactions) == 10
        assert len(result.errors) == 1
        assert result.errors[0].row_number == 5
        assert "unreadable record" in result.errors[0].reason

    def test_row_numbers_are_physical_lines(self, config, csv_mapping):
        """Test row numbers after a quoted field spanning two lines."""
        data = csv_bytes(
            "date,amount,description",
            '2023-01-15,1.00,"Two',
            'lines"',
            "2023-01-16,abc,Bad amount",
        )
        result = CsvCodec(config, mapping=csv_mapping).parse_with_errors(data)

        assert result.statement.transactions[0].reference == "Two lines"
        assert result.errors[0].row_number == 4

    def test_index_mapping_without_header(self, config):
        """Test columns mapped by position."""
        mapping = CsvMappingConfig(
            has_header=False,
            delimiter="|",
            columns={"value_date": 0, "amount": 2, "reference": 1, "currency": 3},
            date_format="%d/%m/%Y",
        )
        data = csv_bytes("15/01/2023|Invoice 42|-10.50|usd", "16/01/2023|short")
        result = CsvCodec(config, mapping=mapping).parse_with_errors(data)

        transaction = result.statement.transactions[0]
        assert transaction.currency == "USD"
        assert transaction.amount == Decimal("-10.50")
        assert result.statement.per_transaction_currency
        assert result.errors[0].row_number == 2

    def test_skip_rows(self, config):
        """Test preamble lines before the header."""
        mapping = CsvMappingConfig(skip_rows=2)
        data = csv_bytes("Account export", "Generated 2023-01-31", "date,amount,description", "x,1,y")
        result = CsvCodec(config, mapping=mapping).parse_with_errors(data)

        assert result.errors[0].row_number == 4

    def test_thousands_separator(self, config):
        """Test grouped amounts with a dot decimal separator."""
        mapping = CsvMappingConfig(thousands_separator=",", delimiter=";")
        data = csv_bytes("date;amount;description", "2023-01-15;-1,234.50;Rent")
        statement = CsvCodec(config, mapping=mapping).parse(data)

        assert statement.transactions[0].amount == Decimal("-1234.50")

    def test_invalid_mapping(self, config):
        """Test that an inconsistent mapping is rejected before parsing."""
        mapping = CsvMappingConfig(sign_convention="split")
        with pytest.raises(ConfigurationException):
            CsvCodec(config, mapping=mapping).parse(csv_bytes("date,amount,description"))

    def test_empty_file(self, config, csv_mapping):
        """Test an export with a header only."""
        statement = CsvCodec(config, mapping=csv_mapping).parse(csv_bytes("date,amount,description"))

        assert statement.transactions == ()
        assert statement.period_start is None

    def test_mapping_from_config(self, config):
        """Test that the codec falls back to the configured mapping."""
        config.csv = CsvMappingConfig(default_currency="CHF")
        statement = CsvCodec(config).parse(csv_bytes("date,amount,description", "2023-01-15,1,x"))
        assert statement.currency == "CHF"

    def test_parse_csv_helper(self, csv_mapping):
        """Test the convenience function."""
        result = parse_csv(csv_bytes("date,amount,description", "2023-01-15,1,x"), csv_mapping)
        assert len(result.statement.transactions) == 1


class TestCsvSerialization:
    """Tests for the parse-only restriction."""

    def test_cannot_serialize(self, config, sample_statement):
        """Test that CSV has no serializer."""
        codec = CsvCodec(config)

        assert not codec.can_serialize
        with pytest.raises(UnsupportedConversion):
            codec.serialize(sample_statement)
