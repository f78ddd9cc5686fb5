"""
CSV Statement Format

Bank CSV exports differ in delimiter, date format, decimal convention and
column layout, so the codec is driven by a CsvMappingConfig. The format is
parse-only: rows that cannot be read are collected as errors while the
remaining rows still produce a statement.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence, Tuple

from ...core.config import CsvMappingConfig, SignConvention
from ...core.exceptions import InvalidCsvRow, MalformedTransaction
from ...core.structured_logging import LogCategory
from ...models.statement import Statement, Transaction
from ..base import StatementCodec, StatementFormat

logger = logging.getLogger(__name__)


@dataclass
class CsvParseResult:
    """A statement built from the readable rows plus the rows that failed."""

    statement: Statement
    errors: List[InvalidCsvRow] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class CsvCodec(StatementCodec):
    """Parse-only codec for mapped CSV statement exports."""

    format = StatementFormat.CSV

    def __init__(self, config=None, mapping: Optional[CsvMappingConfig] = None):
        super().__init__(config)
        self.mapping = mapping or self.config.csv

    def parse_all(self, data: bytes) -> List[Statement]:
        return [self.parse(data)]

    def parse(self, data: bytes) -> Statement:
        """Parse a CSV export; row errors are carried in ``Statement.warnings``."""
        result = self.parse_with_errors(data)
        if not result.errors:
            return result.statement
        return result.statement.with_warnings(str(error) for error in result.errors)

    def parse_with_errors(self, data: bytes) -> CsvParseResult:
        """
        Parse a CSV export, collecting row errors.

        Raises:
            ConfigurationException: if the mapping is invalid
            InvalidCsvRow: if the header lacks a mapped column
        """
        mapping = self.mapping
        mapping.validate()

        text = self._decode(data, mapping.encoding)
        reader = csv.reader(
            io.StringIO(text, newline=""),
            delimiter=mapping.delimiter,
            quotechar=mapping.quotechar,
        )

        columns: Optional[Dict[str, int]] = None
        header: Optional[List[str]] = None
        header_position: Tuple[int, str] = (0, "")
        expected_width: Optional[int] = None
        transactions: List[Transaction] = []
        errors: List[InvalidCsvRow] = []
        records = 0
        preamble = 0
        data_rows = 0

        if not mapping.has_header:
            columns = dict(mapping.columns)
            expected_width = max(columns.values()) + 1

        while True:
            # Physical line on which the next record starts
            row_number = reader.line_num + 1
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                error = InvalidCsvRow(row_number, "", f"unreadable record: {e}")
                logger.debug(str(error))
                errors.append(error)
                continue

            records += 1
            if records <= mapping.skip_rows:
                continue

            blank = not any(cell.strip() for cell in row)
            raw_row = mapping.delimiter.join(row)

            if columns is None and header is None:
                if blank:
                    continue
                if mapping.header_marker and not self._is_header_row(row):
                    preamble += 1
                    continue
                header = [cell.strip() for cell in row]
                header_position = (row_number, raw_row)
                expected_width = len(row)
                continue

            if header is not None:
                if mapping.header_marker and self._continues_header(row):
                    self._join_header(header, row)
                    continue
                columns = self._resolve_header(header, *header_position)
                header = None

            if blank:
                if mapping.stop_at_blank_row and data_rows:
                    logger.debug(f"CSV table ends at blank row {row_number}; ignoring the rows after it")
                    break
                continue

            data_rows += 1
            if mapping.has_header and len(row) != expected_width:
                reason = f"expected {expected_width} columns, found {len(row)}"
                errors.append(InvalidCsvRow(row_number, raw_row, reason))
                continue
            if not mapping.has_header and len(row) < expected_width:
                reason = f"expected at least {expected_width} columns, found {len(row)}"
                errors.append(InvalidCsvRow(row_number, raw_row, reason))
                continue

            try:
                transactions.append(self._parse_row(row, columns, row_number, raw_row))
            except InvalidCsvRow as e:
                logger.debug(str(e))
                errors.append(e)

        if header is not None:
            # Header without data rows still has to carry every mapped column
            self._resolve_header(header, *header_position)
        elif columns is None and mapping.header_marker:
            raise InvalidCsvRow(
                reader.line_num, "", f"no header row containing {mapping.header_marker!r}"
            )
        if preamble:
            logger.debug(f"Skipped {preamble} preamble row(s) before the CSV header")

        statement = self._build_statement(transactions)

        logger.info(
            f"Parsed CSV statement with {len(transactions)} transaction(s) and {len(errors)} rejected row(s)",
            extra={
                "category": LogCategory.PARSING,
                "metadata": {
                    "format": self.format.value,
                    "transactions": len(transactions),
                    "errors": len(errors),
                },
            },
        )
        return CsvParseResult(statement=statement, errors=errors)

    def _is_header_row(self, row: Sequence[str]) -> bool:
        marker = self.mapping.header_marker.strip()
        return any(cell.strip() == marker for cell in row)

    @staticmethod
    def _continues_header(row: Sequence[str]) -> bool:
        """A row without digits continues the header; data rows always carry a date."""
        return not any(ch.isdigit() for cell in row for ch in cell)

    @staticmethod
    def _join_header(header: List[str], row: Sequence[str]) -> None:
        for index, cell in enumerate(row[: len(header)]):
            cell = cell.strip()
            if cell:
                header[index] = f"{header[index]} {cell}".strip()

    def _resolve_header(self, header: Sequence[str], row_number: int, raw_row: str) -> Dict[str, int]:
        """Map each configured field onto a column index of the header row."""
        names = [cell.strip() for cell in header]
        columns: Dict[str, int] = {}

        for field_name, column in self.mapping.columns.items():
            if isinstance(column, int):
                if column >= len(names):
                    reason = f"header has no column {column} for {field_name}"
                    raise InvalidCsvRow(row_number, raw_row, reason)
                columns[field_name] = column
            elif column.strip() in names:
                columns[field_name] = names.index(column.strip())
            else:
                reason = f"header is missing column {column!r} for {field_name}"
                raise InvalidCsvRow(row_number, raw_row, reason)

        return columns

    def _parse_row(
        self, row: Sequence[str], columns: Dict[str, int], row_number: int, raw_row: str
    ) -> Transaction:
        """Turn one data row into a Transaction."""
        mapping = self.mapping

        def cell(name: str) -> str:
            index = columns.get(name)
            return row[index].strip() if index is not None else ""

        value_date = self._parse_date(cell("value_date"), "value_date", row_number, raw_row)
        booking_text = cell("booking_date")
        booking_date = (
            self._parse_date(booking_text, "booking_date", row_number, raw_row) if booking_text else None
        )

        if mapping.sign_convention is SignConvention.SIGNED:
            amount_text = cell("amount")
            if not amount_text:
                raise InvalidCsvRow(row_number, raw_row, "amount is empty")
            amount = self._parse_decimal(amount_text, "amount", row_number, raw_row)
        else:
            debit_text, credit_text = cell("debit"), cell("credit")
            if not debit_text and not credit_text:
                raise InvalidCsvRow(row_number, raw_row, "both debit and credit are empty")
            debit = credit = Decimal("0")
            if debit_text:
                debit = self._parse_decimal(debit_text, "debit", row_number, raw_row)
            if credit_text:
                credit = self._parse_decimal(credit_text, "credit", row_number, raw_row)
            if debit and credit:
                raise InvalidCsvRow(row_number, raw_row, "row has both a debit and a credit amount")
            amount = abs(credit) - abs(debit)

        try:
            return Transaction.from_signed_amount(
                value_date=value_date,
                amount=amount,
                currency=cell("currency").upper() or mapping.default_currency,
                reference=cell("reference"),
                booking_date=booking_date,
                counterparty_account=cell("counterparty_account") or None,
                bank_reference=cell("bank_reference") or None,
            )
        except MalformedTransaction as e:
            raise InvalidCsvRow(row_number, raw_row, e.message)

    def _parse_date(self, text: str, field_name: str, row_number: int, raw_row: str) -> date:
        try:
            return datetime.strptime(text, self.mapping.date_format).date()
        except ValueError:
            raise InvalidCsvRow(row_number, raw_row, f"invalid {field_name} {text!r}")

    def _parse_decimal(self, text: str, field_name: str, row_number: int, raw_row: str) -> Decimal:
        """Parse an amount using the mapping's decimal and thousands separators."""
        mapping = self.mapping
        normalized = text.replace("\u00a0", " ")
        if mapping.thousands_separator:
            normalized = normalized.replace(mapping.thousands_separator, "")
        normalized = normalized.replace(" ", "")
        if mapping.decimal_separator != ".":
            if "." in normalized:
                raise InvalidCsvRow(row_number, raw_row, f"invalid {field_name} {text!r}")
            normalized = normalized.replace(mapping.decimal_separator, ".")

        try:
            value = Decimal(normalized)
        except InvalidOperation:
            raise InvalidCsvRow(row_number, raw_row, f"invalid {field_name} {text!r}")
        if not value.is_finite():
            raise InvalidCsvRow(row_number, raw_row, f"invalid {field_name} {text!r}")
        return value

    def _build_statement(self, transactions: List[Transaction]) -> Statement:
        currency = self.mapping.default_currency
        dates = [t.value_date for t in transactions]
        return Statement(
            account_id=self.mapping.account_id,
            currency=currency,
            transactions=transactions,
            period_start=min(dates) if dates else None,
            period_end=max(dates) if dates else None,
            per_transaction_currency=any(t.currency != currency for t in transactions),
        )


def parse_csv(data: bytes, mapping: CsvMappingConfig) -> CsvParseResult:
    """Convenience function to parse a CSV export with a mapping."""
    return CsvCodec(mapping=mapping).parse_with_errors(data)
