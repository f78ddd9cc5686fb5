"""
Statement Converter

Converts statement documents between formats through the canonical model:
the source codec parses every statement and the destination codec writes
them into one document.
"""

import logging
from typing import Optional, Union

from ..core.config import Config, get_config
from ..core.exceptions import UnsupportedConversion
from ..core.structured_logging import LogCategory, PerformanceLogger
from ..protocols.base import StatementFormat, get_codec

logger = logging.getLogger(__name__)
performance_logger = PerformanceLogger(logger)

FormatTag = Union[str, StatementFormat]


class StatementConverter:
    """Converts documents between statement formats."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    def convert(self, source_format: FormatTag, destination_format: FormatTag, data: bytes) -> bytes:
        """
        Convert a document from one format to another.

        Args:
            source_format: Format of ``data``
            destination_format: Format to write
            data: Source document

        Returns:
            The converted document

        Raises:
            UnsupportedFormat: for an unknown format tag
            UnsupportedConversion: when the destination cannot be written
            StatementParseError: when the source cannot be parsed
        """
        source = StatementFormat.from_tag(source_format)
        destination = StatementFormat.from_tag(destination_format)

        destination_codec = get_codec(destination, self.config)
        if not destination_codec.can_serialize:
            raise UnsupportedConversion(source.value, destination.value)

        source_codec = get_codec(source, self.config)

        with performance_logger.time_operation(
            "convert", source=source.value, destination=destination.value
        ):
            statements = source_codec.parse_all(data)
            output = destination_codec.serialize_all(statements)

        warnings = sum(len(s.warnings) for s in statements)
        logger.info(
            f"Converted {len(statements)} statement(s) from {source.value} to {destination.value}",
            extra={
                "category": LogCategory.CONVERSION,
                "metadata": {
                    "source": source.value,
                    "destination": destination.value,
                    "statements": len(statements),
                    "transactions": sum(len(s.transactions) for s in statements),
                    "warnings": warnings,
                    "input_bytes": len(data),
                    "output_bytes": len(output),
                },
            },
        )
        return output


def convert(
    source_format: FormatTag,
    destination_format: FormatTag,
    data: bytes,
    config: Optional[Config] = None,
) -> bytes:
    """Convenience function to convert a document between formats."""
    return StatementConverter(config).convert(source_format, destination_format, data)
