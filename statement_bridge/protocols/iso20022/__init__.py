"""
ISO 20022 camt.053 Statement Support

Bank-to-customer statements in any ``camt.053.001.xx`` namespace.
"""

from statement_bridge.protocols.iso20022.base import AccountIdentification, ISO20022Builder, ISO20022Parser
from statement_bridge.protocols.iso20022.camt053 import (
    BalanceType,
    Camt053Builder,
    Camt053Codec,
    Camt053Parser,
    CreditDebitIndicator,
    EntryStatus,
)

__all__ = [
    "AccountIdentification",
    "ISO20022Builder",
    "ISO20022Parser",
    "BalanceType",
    "Camt053Builder",
    "Camt053Codec",
    "Camt053Parser",
    "CreditDebitIndicator",
    "EntryStatus",
]
