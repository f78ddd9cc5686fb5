"""
Statement Bridge - Custom Exceptions

This module defines the exception hierarchy shared by the canonical model,
the format codecs, the converter and the comparer.
"""

from typing import Any, Dict, Optional


class StatementBridgeException(Exception):
    """Base exception for all Statement Bridge errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "STATEMENT_BRIDGE_ERROR"
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (Code: {self.error_code}, Context: {self.context})"
        return f"{self.message} (Code: {self.error_code})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "error": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationException(StatementBridgeException):
    """Exception raised for configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(
            message,
            error_code="CONFIG_ERROR",
            context={"config_key": config_key} if config_key else {},
        )


class UnsupportedFormat(StatementBridgeException):
    """Exception raised for an unknown statement format tag."""

    def __init__(self, format_tag: str):
        super().__init__(
            f"Unsupported statement format: {format_tag!r}",
            error_code="UNSUPPORTED_FORMAT",
            context={"format": format_tag},
        )
        self.format_tag = format_tag


class UnsupportedConversion(StatementBridgeException):
    """Exception raised when the destination format has no serializer."""

    def __init__(self, source_format: str, destination_format: str):
        super().__init__(
            f"Cannot convert {source_format} to {destination_format}: "
            f"{destination_format} has no serializer",
            error_code="UNSUPPORTED_CONVERSION",
            context={"source_format": source_format, "destination_format": destination_format},
        )
        self.source_format = source_format
        self.destination_format = destination_format


class MalformedTransaction(StatementBridgeException):
    """Exception raised when canonical model data violates an invariant."""

    def __init__(self, field_name: str, raw_value: Any, reason: str = ""):
        message = f"Malformed value for {field_name}: {raw_value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message,
            error_code="MALFORMED_TRANSACTION",
            context={"field": field_name, "value": repr(raw_value)},
        )
        self.field_name = field_name
        self.raw_value = raw_value
        self.reason = reason


class StatementParseError(StatementBridgeException):
    """Base exception for errors raised while reading or writing a statement format."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code or "PARSE_ERROR", context=context)


class InvalidMt940Field(StatementParseError):
    """Exception raised for an MT940 tag whose content or position is invalid."""

    def __init__(self, tag: str, line_number: int, reason: str, value: Optional[str] = None):
        context: Dict[str, Any] = {"tag": tag, "line": line_number}
        if value is not None:
            context["value"] = value
        super().__init__(
            f"Invalid MT940 field :{tag}: at line {line_number}: {reason}",
            error_code="INVALID_MT940_FIELD",
            context=context,
        )
        self.tag = tag
        self.line_number = line_number
        self.reason = reason
        self.value = value


class MalformedXml(StatementParseError):
    """Exception raised when a CAMT.053 document is not well-formed XML."""

    def __init__(self, reason: str, line: Optional[int] = None, column: Optional[int] = None):
        context: Dict[str, Any] = {}
        if line is not None:
            context["line"] = line
        if column is not None:
            context["column"] = column
        super().__init__(
            f"Malformed XML document: {reason}",
            error_code="MALFORMED_XML",
            context=context,
        )
        self.reason = reason
        self.line = line
        self.column = column


class InvalidCamtField(StatementParseError):
    """Exception raised for a missing or invalid CAMT.053 element."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Invalid CAMT.053 field at {path}: {reason}",
            error_code="INVALID_CAMT_FIELD",
            context={"path": path},
        )
        self.path = path
        self.reason = reason


class InvalidCsvRow(StatementParseError):
    """Exception describing a CSV row that could not be turned into a transaction."""

    def __init__(self, row_number: int, raw_row: str, reason: str):
        super().__init__(
            f"Invalid CSV row {row_number}: {reason}",
            error_code="INVALID_CSV_ROW",
            context={"row": row_number, "raw": raw_row},
        )
        self.row_number = row_number
        self.raw_row = raw_row
        self.reason = reason
