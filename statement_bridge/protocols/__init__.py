"""
Statement Format Codecs

Codec implementations between the canonical model and:
- SWIFT MT940 customer statements
- ISO 20022 camt.053 bank-to-customer statements
- Mapped bank CSV exports (parse only)
"""

from statement_bridge.protocols.base import StatementCodec, StatementFormat, get_codec

__all__ = [
    "StatementCodec",
    "StatementFormat",
    "get_codec",
]
