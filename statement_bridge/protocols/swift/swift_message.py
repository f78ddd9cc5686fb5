"""
SWIFT Message Data Structures

Text-level representation of SWIFT MT statement messages:
- Field representation (tag, option letter, value lines)
- Text block (block 4) holding the fields of one message
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class SwiftField:
    """Represents a single SWIFT field."""

    tag: str
    value: str
    qualifier: str = ""  # Option letter (C, F, M, ...)
    line_number: int = 0

    @property
    def full_tag(self) -> str:
        """Get full tag including qualifier."""
        if self.qualifier:
            return f"{self.tag}{self.qualifier}"
        return self.tag

    @property
    def lines(self) -> List[str]:
        """Get value as lines."""
        return self.value.split("\n")

    @classmethod
    def from_full_tag(cls, full_tag: str, value: str, line_number: int = 0) -> "SwiftField":
        """Split a tag such as ``60F`` into tag and option letter."""
        if len(full_tag) > 2 and full_tag[-1].isalpha():
            return cls(tag=full_tag[:-1], value=value, qualifier=full_tag[-1], line_number=line_number)
        return cls(tag=full_tag, value=value, line_number=line_number)

    def to_swift(self, line_ending: str = "\r\n") -> str:
        """Convert to SWIFT format."""
        return f":{self.full_tag}:" + line_ending.join(self.lines)

    def __str__(self) -> str:
        return self.to_swift("\n")


@dataclass
class SwiftTextBlock:
    """
    Block 4: Text Block

    Holds the fields of one message in document order. ``start_line`` is
    the 0-indexed line of the document where the block begins.
    """

    fields: List[SwiftField] = field(default_factory=list)
    start_line: int = 0
    enveloped: bool = False

    def get_field(self, tag: str) -> Optional[SwiftField]:
        """Get first field by full tag."""
        for f in self.fields:
            if f.full_tag == tag:
                return f
        return None

    def get_fields(self, tag: str) -> List[SwiftField]:
        """Get all fields with the given full tag."""
        return [f for f in self.fields if f.full_tag == tag]

    def add_field(self, full_tag: str, value: str) -> SwiftField:
        """Append a field."""
        swift_field = SwiftField.from_full_tag(full_tag, value)
        self.fields.append(swift_field)
        return swift_field

    def to_swift(self, line_ending: str = "\r\n") -> str:
        """Convert to SWIFT text, wrapped in ``{4:`` ... ``-}`` when enveloped."""
        lines = [f.to_swift(line_ending) for f in self.fields]
        if self.enveloped:
            lines = ["{4:"] + lines + ["-}"]
        return line_ending.join(lines) + line_ending
