"""
Statement Bridge

Reads and writes bank account statements in SWIFT MT940, ISO 20022
camt.053 and bank CSV exports through one canonical model, converts
between the formats and compares two statements transaction by
transaction.
"""

from statement_bridge.models.statement import Balance, Direction, Statement, Transaction
from statement_bridge.protocols.base import StatementFormat, get_codec
from statement_bridge.services.comparer import ComparisonReport, compare
from statement_bridge.services.converter import convert

__version__ = "1.0.0"

__all__ = [
    "Balance",
    "Direction",
    "Statement",
    "Transaction",
    "StatementFormat",
    "get_codec",
    "ComparisonReport",
    "compare",
    "convert",
]
