"""
SWIFT MT940 Statement Support

Supports:
- Bare tag text and FIN-enveloped messages, several per file
- Statement line, narrative and balance fields
- Serialization with configurable line endings
"""

from statement_bridge.protocols.swift.swift_codes import (
    DebitCreditMark,
    expand_year,
)
from statement_bridge.protocols.swift.swift_message import SwiftField, SwiftTextBlock
from statement_bridge.protocols.swift.swift_parser import SwiftParser, parse_swift_fields
from statement_bridge.protocols.swift.mt940 import Mt940Codec, Mt940State, parse_mt940

__all__ = [
    "DebitCreditMark",
    "expand_year",
    "SwiftField",
    "SwiftTextBlock",
    "SwiftParser",
    "parse_swift_fields",
    "Mt940Codec",
    "Mt940State",
    "parse_mt940",
]
