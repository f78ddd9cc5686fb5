"""
Canonical statement model shared by every format codec.
"""

from statement_bridge.models.statement import (
    CURRENCY_MINOR_UNITS,
    Balance,
    Direction,
    Statement,
    Transaction,
    format_amount,
    merge_statements,
    minor_units,
    normalize_text,
)

__all__ = [
    "CURRENCY_MINOR_UNITS",
    "Balance",
    "Direction",
    "Statement",
    "Transaction",
    "format_amount",
    "merge_statements",
    "minor_units",
    "normalize_text",
]
