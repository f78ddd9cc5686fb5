"""
Statement Comparer

Matches the transactions of two statements, possibly read from different
formats:
1. Strong match on identical bank reference
2. Heuristic match on (value date, amount, currency) among the rest
3. Anything left over is reported as present on one side only

Matching is deterministic: candidates are consumed in statement order.
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Set, Tuple

from ..core.structured_logging import LogCategory, PerformanceLogger
from ..models.statement import Statement, Transaction, normalize_text

logger = logging.getLogger(__name__)
performance_logger = PerformanceLogger(logger)

HeuristicKey = Tuple[date, Decimal, str]


class MatchKind(str, Enum):
    """How two transactions were paired."""

    STRONG = "strong"
    HEURISTIC = "heuristic"


@dataclass(frozen=True)
class MatchedPair:
    """A transaction of statement A paired with one of statement B."""

    a: Transaction
    b: Transaction
    kind: MatchKind
    index_a: int
    index_b: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "index_a": self.index_a,
            "index_b": self.index_b,
            "a": self.a.to_dict(),
            "b": self.b.to_dict(),
        }


@dataclass(frozen=True)
class FieldDifference:
    """One field whose value differs between the paired transactions."""

    field_name: str
    value_a: Any
    value_b: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field_name, "a": _jsonable(self.value_a), "b": _jsonable(self.value_b)}


@dataclass(frozen=True)
class Discrepancy:
    """A matched pair whose fields disagree."""

    pair: MatchedPair
    differences: Tuple[FieldDifference, ...]
    description: str

    def to_dict(self) -> Dict[str, Any]:
        result = self.pair.to_dict()
        result["differences"] = [d.to_dict() for d in self.differences]
        result["description"] = self.description
        return result


@dataclass
class ComparisonReport:
    """Outcome of comparing two statements."""

    matched: List[MatchedPair] = field(default_factory=list)
    matched_with_discrepancy: List[Discrepancy] = field(default_factory=list)
    only_in_a: List[Transaction] = field(default_factory=list)
    only_in_b: List[Transaction] = field(default_factory=list)

    @property
    def is_reconciled(self) -> bool:
        """True when every transaction matched without discrepancy."""
        return not (self.matched_with_discrepancy or self.only_in_a or self.only_in_b)

    def summary(self) -> Dict[str, int]:
        return {
            "matched": len(self.matched),
            "matched_with_discrepancy": len(self.matched_with_discrepancy),
            "only_in_a": len(self.only_in_a),
            "only_in_b": len(self.only_in_b),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "is_reconciled": self.is_reconciled,
            "summary": self.summary(),
            "matched": [pair.to_dict() for pair in self.matched],
            "matched_with_discrepancy": [d.to_dict() for d in self.matched_with_discrepancy],
            "only_in_a": [t.to_dict() for t in self.only_in_a],
            "only_in_b": [t.to_dict() for t in self.only_in_b],
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (Decimal, date)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _narrative_key(text: str) -> str:
    return normalize_text(text).casefold()


class StatementComparer:
    """Compares the transactions of two statements."""

    # Fields checked on strong matches
    STRONG_MATCH_FIELDS = ("amount", "currency", "value_date", "direction")

    def compare(self, statement_a: Statement, statement_b: Statement) -> ComparisonReport:
        """
        Compare two statements.

        Neither statement is modified; the same inputs always give the same
        report.
        """
        with performance_logger.time_operation(
            "compare",
            transactions_a=len(statement_a.transactions),
            transactions_b=len(statement_b.transactions),
        ):
            report = self._compare(statement_a.transactions, statement_b.transactions)

        logger.info(
            "Compared statements: "
            + ", ".join(f"{name}={count}" for name, count in report.summary().items()),
            extra={
                "category": LogCategory.COMPARISON,
                "metadata": {
                    "account_a": statement_a.account_id,
                    "account_b": statement_b.account_id,
                    "is_reconciled": report.is_reconciled,
                    **report.summary(),
                },
            },
        )
        return report

    def _compare(self, a: Tuple[Transaction, ...], b: Tuple[Transaction, ...]) -> ComparisonReport:
        pairs: List[MatchedPair] = []
        matched_a: Set[int] = set()
        matched_b: Set[int] = set()

        # Strong matches: bank reference -> B indices in statement order
        by_reference: Dict[str, Deque[int]] = defaultdict(deque)
        for j, transaction in enumerate(b):
            if transaction.bank_reference:
                by_reference[transaction.bank_reference].append(j)

        for i, transaction in enumerate(a):
            candidates = by_reference.get(transaction.bank_reference) if transaction.bank_reference else None
            if candidates:
                j = candidates.popleft()
                pairs.append(MatchedPair(transaction, b[j], MatchKind.STRONG, i, j))
                matched_a.add(i)
                matched_b.add(j)

        # Heuristic matches among what is left
        by_key: Dict[HeuristicKey, Deque[int]] = defaultdict(deque)
        for j, transaction in enumerate(b):
            if j not in matched_b:
                by_key[self._heuristic_key(transaction)].append(j)

        for i, transaction in enumerate(a):
            if i in matched_a:
                continue
            candidates = by_key.get(self._heuristic_key(transaction))
            if candidates:
                j = candidates.popleft()
                pairs.append(MatchedPair(transaction, b[j], MatchKind.HEURISTIC, i, j))
                matched_a.add(i)
                matched_b.add(j)

        pairs.sort(key=lambda pair: pair.index_a)

        report = ComparisonReport(
            only_in_a=[t for i, t in enumerate(a) if i not in matched_a],
            only_in_b=[t for j, t in enumerate(b) if j not in matched_b],
        )
        for pair in pairs:
            discrepancy = self._find_discrepancy(pair)
            if discrepancy is None:
                report.matched.append(pair)
            else:
                report.matched_with_discrepancy.append(discrepancy)

        return report

    def _heuristic_key(self, transaction: Transaction) -> HeuristicKey:
        return (transaction.value_date, transaction.amount, transaction.currency)

    def _find_discrepancy(self, pair: MatchedPair) -> Optional[Discrepancy]:
        differences: List[FieldDifference] = []

        if pair.kind is MatchKind.STRONG:
            for name in self.STRONG_MATCH_FIELDS:
                value_a, value_b = getattr(pair.a, name), getattr(pair.b, name)
                if value_a != value_b:
                    differences.append(FieldDifference(name, value_a, value_b))

        narrative_a, narrative_b = _narrative_key(pair.a.reference), _narrative_key(pair.b.reference)
        if narrative_a and narrative_b and narrative_a != narrative_b:
            differences.append(FieldDifference("reference", pair.a.reference, pair.b.reference))

        if not differences:
            return None

        description = "; ".join(
            f"{d.field_name} differs: {_jsonable(d.value_a)!s} vs {_jsonable(d.value_b)!s}"
            for d in differences
        )
        if pair.kind is MatchKind.STRONG:
            description = f"bank reference {pair.a.bank_reference}: {description}"
        return Discrepancy(pair=pair, differences=tuple(differences), description=description)


def compare(statement_a: Statement, statement_b: Statement) -> ComparisonReport:
    """Convenience function to compare two statements."""
    return StatementComparer().compare(statement_a, statement_b)
