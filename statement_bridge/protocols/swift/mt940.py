"""
SWIFT MT940 - Customer Statement Message

MT940 is the end-of-day account statement sent by an account servicing
institution to the account owner. A message carries:
- Header: reference (:20:), related reference (:21:), account (:25:),
  statement/sequence number (:28C:)
- Opening balance (:60F: or intermediate :60M:)
- Statement lines (:61:), each optionally followed by narrative (:86:)
- Closing balance (:62F: or intermediate :62M:)
- Optional available balances (:64:, :65:) and statement information (:86:)

Parsing runs a finite-state machine over the fields so that out-of-order
tags are rejected with their line number.
"""

import logging
import re
import textwrap
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ...core.config import BalanceMismatchPolicy
from ...core.exceptions import InvalidMt940Field, MalformedTransaction
from ...core.structured_logging import LogCategory
from ...models.statement import (
    Balance,
    Statement,
    Transaction,
    format_amount,
)
from ..base import StatementCodec, StatementFormat
from .swift_codes import (
    ACCOUNT_LENGTH,
    DEFAULT_TRANSACTION_TYPE,
    NARRATIVE_LINE_LENGTH,
    NARRATIVE_MAX_LINES,
    NO_REFERENCE,
    REFERENCE_LENGTH,
    SUPPLEMENTARY_LENGTH,
    TRANSACTION_TYPE_PATTERN,
    DebitCreditMark,
    expand_year,
    is_no_reference,
)
from .swift_message import SwiftField, SwiftTextBlock
from .swift_parser import SwiftParser

logger = logging.getLogger(__name__)


class Mt940State(Enum):
    """Position of the parser within a statement."""

    AWAITING_STATEMENT = "awaiting_statement"
    HEADER = "header"
    TRANSACTIONS = "transactions"
    FOOTER = "footer"


# Allowed (state, tag) pairs and the state they lead to
TRANSITIONS: Dict[Tuple[Mt940State, str], Mt940State] = {
    (Mt940State.AWAITING_STATEMENT, "20"): Mt940State.HEADER,
    (Mt940State.HEADER, "21"): Mt940State.HEADER,
    (Mt940State.HEADER, "25"): Mt940State.HEADER,
    (Mt940State.HEADER, "28"): Mt940State.HEADER,
    (Mt940State.HEADER, "28C"): Mt940State.HEADER,
    (Mt940State.HEADER, "60F"): Mt940State.TRANSACTIONS,
    (Mt940State.HEADER, "60M"): Mt940State.TRANSACTIONS,
    (Mt940State.TRANSACTIONS, "61"): Mt940State.TRANSACTIONS,
    (Mt940State.TRANSACTIONS, "86"): Mt940State.TRANSACTIONS,
    (Mt940State.TRANSACTIONS, "62F"): Mt940State.FOOTER,
    (Mt940State.TRANSACTIONS, "62M"): Mt940State.FOOTER,
    (Mt940State.FOOTER, "64"): Mt940State.FOOTER,
    (Mt940State.FOOTER, "65"): Mt940State.FOOTER,
    (Mt940State.FOOTER, "86"): Mt940State.FOOTER,
    (Mt940State.FOOTER, "20"): Mt940State.HEADER,
}

BALANCE_PATTERN = re.compile(
    r"^(?P<mark>[CD])(?P<date>\d{6})(?P<currency>[A-Z]{3})(?P<amount>[\d,]{1,15})$"
)

STATEMENT_LINE_PATTERN = re.compile(
    r"^(?P<value_date>\d{6})"
    r"(?P<entry_date>\d{4})?"
    r"(?P<mark>RC|RD|C|D)"
    r"(?P<funds_code>[A-Z])?"
    r"(?P<amount>\d[\d,]{0,14})"
    r"(?P<type>[NSF][A-Z0-9]{3})"
    r"(?P<customer_ref>.*?)"
    r"(?://(?P<bank_ref>.*))?$"
)

STATEMENT_NUMBER_PATTERN = re.compile(r"^(?P<number>\d{1,5})(?:/(?P<sequence>\d{1,5}))?$")
AMOUNT_PATTERN = re.compile(r"^\d+,\d*$")


@dataclass
class _PendingEntry:
    """A :61: line waiting for its narrative."""

    line_number: int
    values: Dict[str, Any]
    narrative: List[str] = field(default_factory=list)


@dataclass
class _StatementBuilder:
    """Fields collected for the statement currently being parsed."""

    start_line: int
    statement_id: Optional[str] = None
    related_reference: Optional[str] = None
    account_id: Optional[str] = None
    statement_number: Optional[str] = None
    sequence_number: Optional[str] = None
    opening_balance: Optional[Balance] = None
    closing_balance: Optional[Balance] = None
    closing_field: Optional[SwiftField] = None
    closing_available_balance: Optional[Balance] = None
    forward_available_balance: Optional[Balance] = None
    entries: List[_PendingEntry] = field(default_factory=list)
    information: List[str] = field(default_factory=list)

    @property
    def currency(self) -> Optional[str]:
        return self.opening_balance.currency if self.opening_balance else None


class Mt940Codec(StatementCodec):
    """
    Codec for SWIFT MT940 customer statements.

    Reads bare tag text or FIN-enveloped messages (several per file) and
    writes one text block per statement.
    """

    format = StatementFormat.MT940

    def __init__(self, config=None):
        super().__init__(config)
        self.mt940_config = self.config.mt940
        self.parser = SwiftParser()

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse_all(self, data: bytes) -> List[Statement]:
        """
        Parse every statement in an MT940 document.

        Raises:
            InvalidMt940Field: for out-of-order tags, malformed field content
                or a truncated statement
        """
        text = self._decode(data, self.mt940_config.encoding)
        fields = self.parser.parse_fields(text)

        if not fields:
            raise InvalidMt940Field("20", 0, "document contains no MT940 fields")

        statements: List[Statement] = []
        state = Mt940State.AWAITING_STATEMENT
        builder: Optional[_StatementBuilder] = None

        for swift_field in fields:
            tag = swift_field.full_tag
            next_state = TRANSITIONS.get((state, tag))
            if next_state is None:
                raise InvalidMt940Field(
                    tag,
                    swift_field.line_number,
                    f"unexpected field in state {state.value}",
                    swift_field.value,
                )

            if tag == "20":
                if builder is not None:
                    statements.append(self._build_statement(builder))
                builder = _StatementBuilder(start_line=swift_field.line_number)
                builder.statement_id = self._parse_reference(swift_field, REFERENCE_LENGTH)
            elif tag == "21":
                builder.related_reference = self._parse_reference(swift_field, REFERENCE_LENGTH)
            elif tag == "25":
                builder.account_id = self._parse_account(swift_field)
            elif tag in ("28", "28C"):
                builder.statement_number, builder.sequence_number = self._parse_statement_number(
                    swift_field
                )
            elif tag in ("60F", "60M"):
                if not builder.account_id:
                    raise InvalidMt940Field(
                        "25", swift_field.line_number, "account identification is missing"
                    )
                builder.opening_balance = self._parse_balance(swift_field)
            elif tag == "61":
                builder.entries.append(self._parse_statement_line(swift_field))
            elif tag == "86":
                narrative = self._parse_narrative(swift_field)
                if state is Mt940State.TRANSACTIONS and builder.entries:
                    builder.entries[-1].narrative.append(narrative)
                else:
                    builder.information.append(narrative)
            elif tag in ("62F", "62M"):
                builder.closing_balance = self._parse_balance(swift_field, builder.currency)
                builder.closing_field = swift_field
            elif tag == "64":
                builder.closing_available_balance = self._parse_balance(swift_field, builder.currency)
            elif tag == "65":
                if builder.forward_available_balance is None:
                    builder.forward_available_balance = self._parse_balance(
                        swift_field, builder.currency
                    )
                else:
                    logger.debug(f"Ignoring repeated :65: at line {swift_field.line_number}")

            state = next_state

        if state is not Mt940State.FOOTER:
            raise InvalidMt940Field(
                "62F",
                fields[-1].line_number,
                "statement ends without a closing balance",
            )

        statements.append(self._build_statement(builder))

        logger.info(
            f"Parsed {len(statements)} MT940 statement(s)",
            extra={
                "category": LogCategory.PARSING,
                "metadata": {
                    "format": self.format.value,
                    "statements": len(statements),
                    "transactions": sum(len(s.transactions) for s in statements),
                },
            },
        )
        return statements

    def _build_statement(self, builder: _StatementBuilder) -> Statement:
        """Turn collected fields into a Statement and check its balances."""
        currency = builder.currency
        transactions = []
        for entry in builder.entries:
            try:
                transactions.append(
                    Transaction(
                        currency=currency,
                        reference=" ".join(entry.narrative),
                        **entry.values,
                    )
                )
            except MalformedTransaction as e:
                raise InvalidMt940Field("61", entry.line_number, e.message)

        statement = Statement(
            account_id=builder.account_id,
            currency=currency,
            transactions=transactions,
            opening_balance=builder.opening_balance,
            closing_balance=builder.closing_balance,
            closing_available_balance=builder.closing_available_balance,
            forward_available_balance=builder.forward_available_balance,
            period_start=builder.opening_balance.date,
            period_end=builder.closing_balance.date,
            statement_id=builder.statement_id,
            related_reference=builder.related_reference,
            statement_number=builder.statement_number,
            sequence_number=builder.sequence_number,
            information=" ".join(builder.information) or None,
        )

        warning = self._reconciliation_warning(statement)
        if warning:
            if self.mt940_config.balance_mismatch_policy is BalanceMismatchPolicy.ERROR:
                closing = builder.closing_field
                raise InvalidMt940Field(closing.full_tag, closing.line_number, warning, closing.value)
            statement = statement.with_warnings([warning])

        return statement

    def _parse_reference(self, swift_field: SwiftField, max_length: int) -> Optional[str]:
        value = swift_field.value.strip()
        if not value:
            raise InvalidMt940Field(swift_field.full_tag, swift_field.line_number, "reference is empty")
        if "\n" in value or len(value) > max_length:
            raise InvalidMt940Field(
                swift_field.full_tag,
                swift_field.line_number,
                f"reference exceeds {max_length} characters",
                value,
            )
        return None if is_no_reference(value) else value

    def _parse_account(self, swift_field: SwiftField) -> str:
        value = swift_field.value.strip()
        if not value or "\n" in value or len(value) > ACCOUNT_LENGTH:
            raise InvalidMt940Field(
                "25",
                swift_field.line_number,
                f"account identification must be 1 to {ACCOUNT_LENGTH} characters",
                value,
            )
        return value

    def _parse_statement_number(self, swift_field: SwiftField) -> Tuple[str, Optional[str]]:
        match = STATEMENT_NUMBER_PATTERN.match(swift_field.value.strip())
        if not match:
            raise InvalidMt940Field(
                swift_field.full_tag,
                swift_field.line_number,
                "expected statement number[/sequence number]",
                swift_field.value,
            )
        return match.group("number"), match.group("sequence")

    def _parse_date(self, swift_field: SwiftField, text: str) -> date:
        """Parse a YYMMDD date."""
        try:
            return date(expand_year(int(text[0:2])), int(text[2:4]), int(text[4:6]))
        except ValueError:
            raise InvalidMt940Field(
                swift_field.full_tag, swift_field.line_number, f"invalid date {text}", swift_field.value
            )

    def _parse_amount(self, swift_field: SwiftField, text: str) -> Decimal:
        """Parse a SWIFT decimal amount (comma as decimal separator)."""
        if len(text) > 15 or not AMOUNT_PATTERN.match(text):
            raise InvalidMt940Field(
                swift_field.full_tag,
                swift_field.line_number,
                f"invalid amount {text!r}",
                swift_field.value,
            )
        try:
            return Decimal(text.replace(",", "."))
        except InvalidOperation:
            raise InvalidMt940Field(
                swift_field.full_tag, swift_field.line_number, f"invalid amount {text!r}", swift_field.value
            )

    def _parse_balance(self, swift_field: SwiftField, expected_currency: Optional[str] = None) -> Balance:
        """Parse a balance field (1!a6!n3!a15d)."""
        match = BALANCE_PATTERN.match(swift_field.value.strip())
        if not match:
            raise InvalidMt940Field(
                swift_field.full_tag,
                swift_field.line_number,
                "expected D/C mark, YYMMDD date, currency and amount",
                swift_field.value,
            )

        currency = match.group("currency")
        if expected_currency and currency != expected_currency:
            raise InvalidMt940Field(
                swift_field.full_tag,
                swift_field.line_number,
                f"currency {currency} differs from opening balance currency {expected_currency}",
                swift_field.value,
            )

        amount = self._parse_amount(swift_field, match.group("amount"))
        if match.group("mark") == "D":
            amount = -amount

        return Balance(
            amount=amount,
            currency=currency,
            date=self._parse_date(swift_field, match.group("date")),
            is_intermediate=swift_field.qualifier == "M",
        )

    def _parse_statement_line(self, swift_field: SwiftField) -> _PendingEntry:
        """Parse a :61: statement line and its optional supplementary details line."""
        lines = swift_field.lines
        if len(lines) > 2:
            raise InvalidMt940Field(
                "61", swift_field.line_number, "statement line has more than two lines", swift_field.value
            )

        match = STATEMENT_LINE_PATTERN.match(lines[0].strip())
        if not match:
            raise InvalidMt940Field(
                "61",
                swift_field.line_number,
                "expected value date, [entry date], mark, amount, type and reference",
                swift_field.value,
            )

        value_date = self._parse_date(swift_field, match.group("value_date"))
        booking_date = value_date
        if match.group("entry_date"):
            booking_date = self._parse_entry_date(swift_field, match.group("entry_date"), value_date)

        mark = DebitCreditMark.from_code(match.group("mark"))
        amount = self._parse_amount(swift_field, match.group("amount"))

        customer_ref = match.group("customer_ref")
        bank_ref = match.group("bank_ref")
        code = match.group("type")
        if len(customer_ref) > REFERENCE_LENGTH:
            raise InvalidMt940Field(
                "61",
                swift_field.line_number,
                f"reference exceeds {REFERENCE_LENGTH} characters",
                customer_ref,
            )
        if bank_ref is not None and len(bank_ref) > REFERENCE_LENGTH:
            raise InvalidMt940Field(
                "61",
                swift_field.line_number,
                f"bank reference exceeds {REFERENCE_LENGTH} characters",
                bank_ref,
            )

        supplementary = lines[1].strip() if len(lines) > 1 else None
        if supplementary and len(supplementary) > SUPPLEMENTARY_LENGTH:
            raise InvalidMt940Field(
                "61",
                swift_field.line_number,
                f"supplementary details exceed {SUPPLEMENTARY_LENGTH} characters",
                supplementary,
            )

        return _PendingEntry(
            line_number=swift_field.line_number,
            values={
                "value_date": value_date,
                "booking_date": booking_date,
                "amount": amount * mark.direction.sign,
                "direction": mark.direction,
                "is_reversal": mark.is_reversal,
                # NMSC is what the writer emits for an entry without a code
                "transaction_code": None if code == DEFAULT_TRANSACTION_TYPE else code,
                "customer_reference": None if is_no_reference(customer_ref) else customer_ref,
                "bank_reference": bank_ref or None,
                "supplementary_details": supplementary,
            },
        )

    def _parse_entry_date(self, swift_field: SwiftField, text: str, value_date: date) -> date:
        """Parse an MMDD entry date, taking the year from the value date."""
        month, day = int(text[0:2]), int(text[2:4])
        year = value_date.year
        # Entry and value date may straddle a year end
        if month == 12 and value_date.month == 1:
            year -= 1
        elif month == 1 and value_date.month == 12:
            year += 1
        try:
            return date(year, month, day)
        except ValueError:
            raise InvalidMt940Field(
                "61", swift_field.line_number, f"invalid entry date {text}", swift_field.value
            )

    def _parse_narrative(self, swift_field: SwiftField) -> str:
        lines = swift_field.lines
        if len(lines) > NARRATIVE_MAX_LINES or any(len(line) > NARRATIVE_LINE_LENGTH for line in lines):
            raise InvalidMt940Field(
                "86",
                swift_field.line_number,
                f"narrative exceeds {NARRATIVE_MAX_LINES} lines of {NARRATIVE_LINE_LENGTH} characters",
                swift_field.value,
            )
        return " ".join(line.strip() for line in lines if line.strip())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize_all(self, statements: Sequence[Statement]) -> bytes:
        """
        Serialize statements into an MT940 document.

        Raises:
            InvalidMt940Field: when a mandatory field cannot be produced
        """
        line_ending = self.mt940_config.line_ending
        blocks = [self._build_text_block(statement) for statement in statements]
        text = "".join(block.to_swift(line_ending) for block in blocks)

        logger.info(
            f"Serialized {len(blocks)} MT940 statement(s)",
            extra={
                "category": LogCategory.SERIALIZATION,
                "metadata": {"format": self.format.value, "statements": len(blocks)},
            },
        )
        return text.encode(self.mt940_config.encoding)

    def _build_text_block(self, statement: Statement) -> SwiftTextBlock:
        block = SwiftTextBlock(enveloped=self.mt940_config.envelope)

        if not statement.account_id:
            raise InvalidMt940Field("25", 0, "statement has no account identification")

        block.add_field("20", self._truncate(statement.statement_id or NO_REFERENCE, REFERENCE_LENGTH, "20"))
        if statement.related_reference:
            block.add_field("21", self._truncate(statement.related_reference, REFERENCE_LENGTH, "21"))
        block.add_field("25", self._truncate(statement.account_id, ACCOUNT_LENGTH, "25"))

        statement_number = statement.statement_number or "1"
        if statement.sequence_number:
            statement_number = f"{statement_number}/{statement.sequence_number}"
        block.add_field("28C", statement_number)

        opening = statement.opening_balance or self._synthesize_opening_balance(statement)
        closing = statement.closing_balance or self._derive_closing_balance(statement, opening)

        block.add_field("60M" if opening.is_intermediate else "60F", self._format_balance(opening))

        foreign = 0
        for index, transaction in enumerate(statement.transactions, start=1):
            if transaction.currency != statement.currency:
                foreign += 1
            block.add_field("61", self._format_statement_line(transaction, index))
            narrative = self._wrap_narrative(transaction.reference)
            if narrative:
                block.add_field("86", narrative)

        if foreign:
            logger.warning(
                f"{foreign} transaction(s) in a foreign currency written without their currency",
                extra={
                    "category": LogCategory.SERIALIZATION,
                    "metadata": {"account_id": statement.account_id},
                },
            )

        block.add_field("62M" if closing.is_intermediate else "62F", self._format_balance(closing))

        if statement.closing_available_balance:
            block.add_field("64", self._format_balance(statement.closing_available_balance))
        if statement.forward_available_balance:
            block.add_field("65", self._format_balance(statement.forward_available_balance))

        information = self._wrap_narrative(statement.information)
        if information:
            block.add_field("86", information)

        return block

    def _synthesize_opening_balance(self, statement: Statement) -> Balance:
        """Zero opening balance dated at the period start or first entry."""
        opening_date = statement.period_start
        if opening_date is None and statement.transactions:
            opening_date = min(t.value_date for t in statement.transactions)
        if opening_date is None:
            raise InvalidMt940Field("60F", 0, "opening balance date cannot be derived")
        return Balance(amount=Decimal("0"), currency=statement.currency, date=opening_date)

    def _derive_closing_balance(self, statement: Statement, opening: Balance) -> Balance:
        """Closing balance implied by the opening balance and the entries."""
        booked = sum(
            (t.amount for t in statement.transactions if t.currency == statement.currency),
            Decimal("0"),
        )
        closing_date = statement.period_end
        if closing_date is None and statement.transactions:
            closing_date = max(t.value_date for t in statement.transactions)
        return Balance(
            amount=opening.amount + booked,
            currency=statement.currency,
            date=closing_date or opening.date,
        )

    @staticmethod
    def _format_amount(amount: Decimal, currency: str) -> str:
        """SWIFT amount: the decimal comma is mandatory, even without minor units (JPY 1500 is '1500,')."""
        text = format_amount(amount, currency, ",")
        return text if "," in text else text + ","

    def _format_balance(self, balance: Balance) -> str:
        mark = "D" if balance.amount < 0 else "C"
        return (
            f"{mark}{balance.date.strftime('%y%m%d')}{balance.currency}"
            f"{self._format_amount(balance.amount, balance.currency)}"
        )

    def _format_statement_line(self, transaction: Transaction, index: int) -> str:
        """Format a :61: statement line."""
        value = transaction.value_date.strftime("%y%m%d")
        if transaction.booking_date != transaction.value_date:
            value += transaction.booking_date.strftime("%m%d")

        mark = DebitCreditMark.for_entry(transaction.direction, transaction.is_reversal)
        value += mark.code
        value += self._format_amount(transaction.amount, transaction.currency)

        code = transaction.transaction_code
        value += code if code and TRANSACTION_TYPE_PATTERN.match(code) else DEFAULT_TRANSACTION_TYPE

        if transaction.customer_reference:
            value += self._truncate(transaction.customer_reference, REFERENCE_LENGTH, "61")
        elif transaction.bank_reference:
            value += NO_REFERENCE
        else:
            value += f"{NO_REFERENCE}{index}"

        if transaction.bank_reference:
            value += "//" + self._truncate(transaction.bank_reference, REFERENCE_LENGTH, "61")

        if transaction.supplementary_details:
            value += "\n" + self._truncate(transaction.supplementary_details, SUPPLEMENTARY_LENGTH, "61")

        return value

    def _wrap_narrative(self, text: Optional[str]) -> str:
        if not text:
            return ""
        lines = textwrap.wrap(
            text,
            width=NARRATIVE_LINE_LENGTH,
            break_long_words=True,
            break_on_hyphens=False,
        )
        if len(lines) > NARRATIVE_MAX_LINES:
            logger.debug(f"Narrative truncated to {NARRATIVE_MAX_LINES} lines")
            lines = lines[:NARRATIVE_MAX_LINES]
        return "\n".join(lines)

    def _truncate(self, value: str, length: int, tag: str) -> str:
        if len(value) > length:
            logger.debug(f"Value of :{tag}: truncated to {length} characters: {value!r}")
            return value[:length]
        return value


def parse_mt940(data: bytes, config=None) -> Statement:
    """Convenience function to parse an MT940 document into one statement."""
    return Mt940Codec(config).parse(data)
