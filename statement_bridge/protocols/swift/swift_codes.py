"""
SWIFT MT940 Codes and Constants

Defines:
- Debit/credit marks of statement lines and balances
- Transaction type identification and reference placeholders
- Field length limits and the two-digit year window
"""

import re
from enum import Enum
from typing import Optional

from ...models.statement import Direction


class DebitCreditMark(Enum):
    """Debit/credit mark of a :61: statement line."""

    CREDIT = ("C", Direction.CREDIT, False)
    DEBIT = ("D", Direction.DEBIT, False)
    # Reversal of a credit books as a debit, reversal of a debit as a credit
    REVERSAL_OF_CREDIT = ("RC", Direction.DEBIT, True)
    REVERSAL_OF_DEBIT = ("RD", Direction.CREDIT, True)

    def __init__(self, code: str, direction: Direction, is_reversal: bool):
        self.code = code
        self.direction = direction
        self.is_reversal = is_reversal

    @classmethod
    def from_code(cls, code: str) -> Optional["DebitCreditMark"]:
        for mark in cls:
            if mark.code == code:
                return mark
        return None

    @classmethod
    def for_entry(cls, direction: Direction, is_reversal: bool) -> "DebitCreditMark":
        for mark in cls:
            if mark.direction is direction and mark.is_reversal == is_reversal:
                return mark
        raise ValueError(f"No mark for {direction} (reversal={is_reversal})")


DEFAULT_TRANSACTION_TYPE = "NMSC"
NO_REFERENCE = "NONREF"

TRANSACTION_TYPE_PATTERN = re.compile(r"^[NSF][A-Z0-9]{3}$")
NO_REFERENCE_PATTERN = re.compile(r"^NONREF\d*$")

# Narrative limits of :86: (6 lines of 65 characters)
NARRATIVE_LINE_LENGTH = 65
NARRATIVE_MAX_LINES = 6
REFERENCE_LENGTH = 16
SUPPLEMENTARY_LENGTH = 34
ACCOUNT_LENGTH = 35

# SWIFT two-digit year window: YY below the pivot is 20YY, otherwise 19YY
YEAR_PIVOT = 80


def expand_year(yy: int) -> int:
    """Map a two-digit SWIFT year onto a four-digit year."""
    return 2000 + yy if yy < YEAR_PIVOT else 1900 + yy


def is_no_reference(value: Optional[str]) -> bool:
    """Whether a reference sub-field stands for 'no reference'."""
    return value is None or value == "" or bool(NO_REFERENCE_PATTERN.match(value))
