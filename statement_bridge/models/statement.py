"""
Canonical Statement Model

Format-independent representation of bank statements:
- Direction of a booked amount
- Transaction (one booked entry)
- Balance (opening, closing, available)
- Statement (account header, balances and entries)

Instances are immutable once constructed. Construction is the only
validation surface: codecs normalize their input and let the model reject
values that violate its invariants.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.exceptions import MalformedTransaction, StatementParseError


CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


# ISO 4217 minor units where they differ from two
CURRENCY_MINOR_UNITS: Dict[str, int] = {
    "BHD": 3,
    "BIF": 0,
    "CLP": 0,
    "DJF": 0,
    "GNF": 0,
    "IQD": 3,
    "ISK": 0,
    "JOD": 3,
    "JPY": 0,
    "KMF": 0,
    "KRW": 0,
    "KWD": 3,
    "LYD": 3,
    "OMR": 3,
    "PYG": 0,
    "RWF": 0,
    "TND": 3,
    "UGX": 0,
    "VND": 0,
    "VUV": 0,
    "XAF": 0,
    "XOF": 0,
    "XPF": 0,
}


def minor_units(currency: str) -> int:
    """Number of decimal places conventionally used for a currency."""
    return CURRENCY_MINOR_UNITS.get(currency, 2)


def format_amount(amount: Decimal, currency: str, decimal_separator: str = ".") -> str:
    """
    Format the absolute value of an amount with at least the currency's
    minor units, keeping any further significant decimal places.
    """
    value = abs(amount)
    exponent = value.normalize().as_tuple().exponent
    places = max(minor_units(currency), -exponent if exponent < 0 else 0)
    text = f"{value:.{places}f}"
    if decimal_separator != ".":
        text = text.replace(".", decimal_separator)
    return text


class Direction(str, Enum):
    """Direction of a booked amount relative to the account."""

    CREDIT = "credit"
    DEBIT = "debit"

    @classmethod
    def from_amount(cls, amount: Decimal) -> "Direction":
        """Derive a direction from a signed amount (zero reads as credit)."""
        return cls.DEBIT if amount < 0 else cls.CREDIT

    @property
    def sign(self) -> int:
        return 1 if self is Direction.CREDIT else -1


def normalize_text(value: Optional[str]) -> str:
    """Collapse whitespace runs into single spaces and strip the ends."""
    if not value:
        return ""
    return " ".join(value.split())


def _check_amount(field_name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, Decimal):
        raise MalformedTransaction(field_name, value, "amount must be a Decimal")
    if not value.is_finite():
        raise MalformedTransaction(field_name, value, "amount must be finite")


def _check_currency(field_name: str, value: Any) -> None:
    if not isinstance(value, str) or not CURRENCY_PATTERN.match(value):
        raise MalformedTransaction(field_name, value, "expected a three-letter ISO 4217 code")


def _check_date(field_name: str, value: Any) -> None:
    # datetime is a subclass of date and carries a time of day, which the model does not
    if not isinstance(value, date) or isinstance(value, datetime):
        raise MalformedTransaction(field_name, value, "expected a calendar date")


def _optional_text(field_name: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedTransaction(field_name, value, "expected text")
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Transaction:
    """
    One booked statement entry.

    ``amount`` is signed: credits are non-negative and debits non-positive,
    and ``direction`` must agree with that sign. ``booking_date`` defaults
    to ``value_date``.
    """

    value_date: date
    amount: Decimal
    currency: str
    direction: Direction
    reference: str = ""
    booking_date: Optional[date] = None
    counterparty_account: Optional[str] = None
    bank_reference: Optional[str] = None
    customer_reference: Optional[str] = None
    transaction_code: Optional[str] = None
    is_reversal: bool = False
    supplementary_details: Optional[str] = None

    def __post_init__(self):
        _check_date("value_date", self.value_date)
        _check_amount("amount", self.amount)
        _check_currency("currency", self.currency)

        try:
            direction = Direction(self.direction)
        except ValueError:
            raise MalformedTransaction("direction", self.direction, "expected credit or debit")
        object.__setattr__(self, "direction", direction)

        if self.amount * direction.sign < 0:
            raise MalformedTransaction(
                "direction", direction.value, f"does not agree with amount {self.amount}"
            )

        if self.booking_date is None:
            object.__setattr__(self, "booking_date", self.value_date)
        else:
            _check_date("booking_date", self.booking_date)

        if self.reference is None:
            object.__setattr__(self, "reference", "")
        elif not isinstance(self.reference, str):
            raise MalformedTransaction("reference", self.reference, "expected text")
        object.__setattr__(self, "reference", normalize_text(self.reference))

        for name in (
            "counterparty_account",
            "bank_reference",
            "customer_reference",
            "transaction_code",
            "supplementary_details",
        ):
            object.__setattr__(self, name, _optional_text(name, getattr(self, name)))

        object.__setattr__(self, "is_reversal", bool(self.is_reversal))

    @classmethod
    def from_signed_amount(cls, value_date: date, amount: Decimal, currency: str, **kwargs) -> "Transaction":
        """Create a transaction whose direction follows the sign of ``amount``."""
        _check_amount("amount", amount)
        return cls(
            value_date=value_date,
            amount=amount,
            currency=currency,
            direction=Direction.from_amount(amount),
            **kwargs,
        )

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "value_date": self.value_date.isoformat(),
            "booking_date": self.booking_date.isoformat() if self.booking_date else None,
            "amount": str(self.amount),
            "currency": self.currency,
            "direction": self.direction.value,
            "reference": self.reference,
            "counterparty_account": self.counterparty_account,
            "bank_reference": self.bank_reference,
            "customer_reference": self.customer_reference,
            "transaction_code": self.transaction_code,
            "is_reversal": self.is_reversal,
            "supplementary_details": self.supplementary_details,
        }


@dataclass(frozen=True)
class Balance:
    """A dated account balance; ``amount`` is negative for a debit balance."""

    amount: Decimal
    currency: str
    date: date
    is_intermediate: bool = False

    def __post_init__(self):
        _check_amount("amount", self.amount)
        _check_currency("currency", self.currency)
        _check_date("date", self.date)

    @property
    def direction(self) -> Direction:
        return Direction.from_amount(self.amount)


@dataclass(frozen=True)
class Statement:
    """
    An account statement (or one page of it).

    Unless ``per_transaction_currency`` is set, every transaction must be
    in the statement currency. ``warnings`` holds non-fatal parse
    diagnostics and does not take part in equality.
    """

    account_id: str
    currency: str
    transactions: Tuple[Transaction, ...] = ()
    opening_balance: Optional[Balance] = None
    closing_balance: Optional[Balance] = None
    closing_available_balance: Optional[Balance] = None
    forward_available_balance: Optional[Balance] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    statement_id: Optional[str] = None
    related_reference: Optional[str] = None
    statement_number: Optional[str] = None
    sequence_number: Optional[str] = None
    information: Optional[str] = None
    per_transaction_currency: bool = False
    warnings: Tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self):
        if not isinstance(self.account_id, str):
            raise MalformedTransaction("account_id", self.account_id, "expected text")
        object.__setattr__(self, "account_id", self.account_id.strip())
        _check_currency("currency", self.currency)

        transactions = tuple(self.transactions)
        for transaction in transactions:
            if not isinstance(transaction, Transaction):
                raise MalformedTransaction("transactions", transaction, "expected a Transaction")
            if not self.per_transaction_currency and transaction.currency != self.currency:
                raise MalformedTransaction(
                    "currency",
                    transaction.currency,
                    f"transaction currency differs from statement currency {self.currency}",
                )
        object.__setattr__(self, "transactions", transactions)
        object.__setattr__(self, "warnings", tuple(self.warnings))

        for name in ("period_start", "period_end"):
            value = getattr(self, name)
            if value is not None:
                _check_date(name, value)

        for name in ("statement_id", "related_reference", "statement_number", "sequence_number"):
            object.__setattr__(self, name, _optional_text(name, getattr(self, name)))
        information = _optional_text("information", self.information)
        object.__setattr__(self, "information", normalize_text(information) or None)

    def balance_discrepancy(self) -> Optional[Decimal]:
        """
        Difference between the reported closing balance and the one implied
        by the opening balance plus the booked entries.

        Returns None when either balance is missing. Entries in a foreign
        currency are left out of the sum.
        """
        if self.opening_balance is None or self.closing_balance is None:
            return None
        booked = sum(
            (t.amount for t in self.transactions if t.currency == self.currency),
            Decimal("0"),
        )
        return self.closing_balance.amount - (self.opening_balance.amount + booked)

    def with_warnings(self, warnings: Iterable[str]) -> "Statement":
        """Return a copy carrying additional warnings."""
        return replace(self, warnings=self.warnings + tuple(warnings))

    @property
    def total_credits(self) -> Decimal:
        return sum((t.amount for t in self.transactions if t.direction is Direction.CREDIT), Decimal("0"))

    @property
    def total_debits(self) -> Decimal:
        return sum((-t.amount for t in self.transactions if t.direction is Direction.DEBIT), Decimal("0"))


def merge_statements(statements: Sequence[Statement]) -> Statement:
    """
    Join consecutive pages of one account's statement.

    The opening balance comes from the first page and the closing balances
    from the last. Pages of different accounts cannot be merged.
    """
    if not statements:
        raise StatementParseError("No statements to merge")
    if len(statements) == 1:
        return statements[0]

    first, last = statements[0], statements[-1]
    accounts = {s.account_id for s in statements}
    if len(accounts) > 1:
        raise StatementParseError(
            "Document contains statements for several accounts",
            context={"accounts": sorted(accounts)},
        )

    transactions: List[Transaction] = []
    warnings: List[str] = []
    information = []
    for statement in statements:
        transactions.extend(statement.transactions)
        warnings.extend(statement.warnings)
        if statement.information:
            information.append(statement.information)

    mixed = any(s.per_transaction_currency or s.currency != first.currency for s in statements)

    return Statement(
        account_id=first.account_id,
        currency=first.currency,
        transactions=tuple(transactions),
        opening_balance=first.opening_balance,
        closing_balance=last.closing_balance,
        closing_available_balance=last.closing_available_balance,
        forward_available_balance=last.forward_available_balance,
        period_start=first.period_start,
        period_end=last.period_end,
        statement_id=first.statement_id,
        related_reference=first.related_reference,
        statement_number=first.statement_number,
        information=" ".join(information) or None,
        per_transaction_currency=mixed,
        warnings=tuple(warnings),
    )
