"""
SWIFT Message Parser

Splits SWIFT MT text into text blocks and fields. Documents may be bare tag
text or FIN messages wrapped in ``{1:...}{2:...}{4:`` ... ``-}`` blocks,
several per file.
"""

import logging
import re
from typing import List, Tuple

from .swift_message import SwiftField, SwiftTextBlock

logger = logging.getLogger(__name__)

NumberedLine = Tuple[int, str]


class SwiftParser:
    """
    Parser for SWIFT MT text.

    Handles:
    - Line ending normalization (CRLF, CR, LF)
    - Block 4 extraction
    - Multi-line field values

    Line numbers are 0-indexed over the whole document.
    """

    TEXT_BLOCK_START = "{4:"
    TEXT_BLOCK_END = "-}"

    # Field start in text block: :TAG:value
    FIELD_START_PATTERN = re.compile(r"^:(\d{2}[A-Z]?):")

    def parse(self, raw_message: str) -> List[SwiftTextBlock]:
        """
        Parse SWIFT text into its text blocks.

        Args:
            raw_message: Raw SWIFT text

        Returns:
            Text blocks in document order; bare tag text yields one block
        """
        # Normalize line endings
        text = raw_message.replace("\r\n", "\n").replace("\r", "\n")
        lines = text.split("\n")

        if self.TEXT_BLOCK_START not in text:
            return [self._parse_text_block(list(enumerate(lines)), enveloped=False)]

        blocks = []
        for block_lines in self._extract_text_blocks(lines):
            blocks.append(self._parse_text_block(block_lines, enveloped=True))
        return blocks

    def parse_fields(self, raw_message: str) -> List[SwiftField]:
        """Parse SWIFT text into the fields of all its text blocks."""
        fields: List[SwiftField] = []
        for block in self.parse(raw_message):
            fields.extend(block.fields)
        return fields

    def _extract_text_blocks(self, lines: List[str]) -> List[List[NumberedLine]]:
        """Collect the lines of every ``{4:`` block."""
        blocks: List[List[NumberedLine]] = []
        current = None

        for line_number, line in enumerate(lines):
            if current is None:
                start = line.find(self.TEXT_BLOCK_START)
                if start == -1:
                    continue
                current = []
                rest = line[start + len(self.TEXT_BLOCK_START):]
                if rest.strip():
                    current.append((line_number, rest))
                continue

            if line.strip().startswith(self.TEXT_BLOCK_END):
                blocks.append(current)
                current = None
            else:
                current.append((line_number, line))

        if current is not None:
            # Unterminated block: keep what was read, the statement parser
            # reports any truncated statement
            logger.debug("Text block is not terminated by '-}'")
            blocks.append(current)

        return blocks

    def _parse_text_block(self, lines: List[NumberedLine], enveloped: bool) -> SwiftTextBlock:
        """Parse the lines of a text block into fields."""
        text_block = SwiftTextBlock(start_line=lines[0][0] if lines else 0, enveloped=enveloped)

        current_tag = None
        current_line = 0
        current_value_lines: List[str] = []

        for line_number, line in lines:
            line = line.rstrip()

            match = self.FIELD_START_PATTERN.match(line)
            if match:
                # Save previous field
                if current_tag:
                    text_block.fields.append(
                        SwiftField.from_full_tag(current_tag, "\n".join(current_value_lines), current_line)
                    )

                current_tag = match.group(1)
                current_line = line_number
                current_value_lines = [line[match.end():]]
            elif not line.strip() or line.strip() in ("-", self.TEXT_BLOCK_END):
                # Blank lines and message separators carry no field content
                continue
            elif current_tag:
                # Continuation of previous field
                current_value_lines.append(line)
            else:
                logger.debug(f"Skipping text before first field at line {line_number}")

        # Save last field
        if current_tag:
            text_block.fields.append(
                SwiftField.from_full_tag(current_tag, "\n".join(current_value_lines), current_line)
            )

        return text_block


def parse_swift_fields(raw_message: str) -> List[SwiftField]:
    """
    Convenience function to parse the fields of SWIFT text.

    Args:
        raw_message: Raw SWIFT text

    Returns:
        Fields of all text blocks in document order
    """
    return SwiftParser().parse_fields(raw_message)
