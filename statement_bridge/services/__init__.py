"""
Statement Services

Format conversion and statement comparison on top of the codecs.
"""

from statement_bridge.services.comparer import (
    ComparisonReport,
    Discrepancy,
    FieldDifference,
    MatchedPair,
    MatchKind,
    StatementComparer,
    compare,
)
from statement_bridge.services.converter import StatementConverter, convert

__all__ = [
    "ComparisonReport",
    "Discrepancy",
    "FieldDifference",
    "MatchedPair",
    "MatchKind",
    "StatementComparer",
    "compare",
    "StatementConverter",
    "convert",
]
