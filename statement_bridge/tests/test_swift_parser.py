"""
Tests for SWIFT text block and field parsing.
"""

from statement_bridge.protocols.swift.swift_codes import (
    DebitCreditMark,
    expand_year,
    is_no_reference,
)
from statement_bridge.protocols.swift.swift_message import SwiftField, SwiftTextBlock
from statement_bridge.protocols.swift.swift_parser import SwiftParser, parse_swift_fields
from statement_bridge.models.statement import Direction


class TestSwiftParser:
    """Tests for SWIFT field extraction."""

    def test_parse_bare_fields(self):
        """Test fields of bare tag text."""
        fields = parse_swift_fields(":20:REF1\n:25:ACC1\n:60F:C230114EUR1,00\n")

        assert [f.full_tag for f in fields] == ["20", "25", "60F"]
        assert fields[2].tag == "60"
        assert fields[2].qualifier == "F"
        assert fields[0].value == "REF1"

    def test_multiline_field(self):
        """Test that continuation lines belong to the preceding field."""
        fields = parse_swift_fields(":86:Invoice 42\nACME Trading\nBerlin\n:62F:C230116EUR1,00")

        assert fields[0].lines == ["Invoice 42", "ACME Trading", "Berlin"]
        assert fields[1].full_tag == "62F"

    def test_line_numbers(self):
        """Test 0-indexed line numbers with CRLF line endings."""
        fields = parse_swift_fields(":20:REF1\r\n:86:first\r\nsecond\r\n:62F:X")

        assert [f.line_number for f in fields] == [0, 1, 3]

    def test_enveloped_messages(self):
        """Test several FIN messages in one file."""
        text = (
            "{1:F01BANKDEFFAXXX0000000000}{2:I940BANKDEFFXXXXN}{4:\n"
            ":20:FIRST\n"
            ":25:ACC1\n"
            "-}\n"
            "{1:F01BANKDEFFAXXX0000000000}{2:I940BANKDEFFXXXXN}{4:\n"
            ":20:SECOND\n"
            ":25:ACC1\n"
            "-}{5:{CHK:123456789ABC}}\n"
        )
        blocks = SwiftParser().parse(text)

        assert len(blocks) == 2
        assert all(block.enveloped for block in blocks)
        assert blocks[0].get_field("20").value == "FIRST"
        assert blocks[1].get_field("20").value == "SECOND"
        assert blocks[1].get_field("20").line_number == 5

    def test_text_before_first_field_skipped(self):
        """Test that leading noise and separators are ignored."""
        fields = parse_swift_fields("header line\n\n:20:REF1\n-\n")

        assert len(fields) == 1
        assert fields[0].value == "REF1"


class TestSwiftMessage:
    """Tests for SWIFT field and text block rendering."""

    def test_field_to_swift(self):
        """Test field rendering with a custom line ending."""
        swift_field = SwiftField.from_full_tag("86", "line one\nline two")
        assert swift_field.to_swift("\r\n") == ":86:line one\r\nline two"

    def test_text_block_envelope(self):
        """Test block 4 wrapping."""
        block = SwiftTextBlock(enveloped=True)
        block.add_field("20", "REF1")
        block.add_field("28C", "1/1")

        assert block.to_swift("\n") == "{4:\n:20:REF1\n:28C:1/1\n-}\n"
        assert block.get_field("28C").qualifier == "C"
        assert len(block.get_fields("20")) == 1

    def test_bare_text_block(self):
        """Test a block written without envelope."""
        block = SwiftTextBlock()
        block.add_field("20", "REF1")
        assert block.to_swift("\n") == ":20:REF1\n"


class TestSwiftCodes:
    """Tests for MT940 codes and helpers."""

    def test_debit_credit_marks(self):
        """Test booking direction of marks, reversals included."""
        assert DebitCreditMark.from_code("D").direction is Direction.DEBIT
        assert DebitCreditMark.from_code("RC").direction is Direction.DEBIT
        assert DebitCreditMark.from_code("RC").is_reversal
        assert DebitCreditMark.from_code("RD").direction is Direction.CREDIT
        assert DebitCreditMark.from_code("X") is None

    def test_mark_for_entry(self):
        """Test mark selection when writing."""
        assert DebitCreditMark.for_entry(Direction.CREDIT, False).code == "C"
        assert DebitCreditMark.for_entry(Direction.CREDIT, True).code == "RD"

    def test_expand_year(self):
        """Test the two-digit year window."""
        assert expand_year(23) == 2023
        assert expand_year(79) == 2079
        assert expand_year(80) == 1980

    def test_no_reference(self):
        """Test NONREF placeholders."""
        assert is_no_reference("NONREF")
        assert is_no_reference("NONREF12")
        assert is_no_reference("")
        assert not is_no_reference("INV42")
