"""
Statement Bridge - Core Module

This module provides the shared infrastructure: configuration management,
the exception hierarchy and structured logging.
"""

from .config import (
    Config,
    Mt940Config,
    Camt053Config,
    CsvMappingConfig,
    get_config,
    set_config,
    load_config,
)
from .exceptions import (
    StatementBridgeException,
    ConfigurationException,
    UnsupportedFormat,
    UnsupportedConversion,
    MalformedTransaction,
    StatementParseError,
    InvalidMt940Field,
    MalformedXml,
    InvalidCamtField,
    InvalidCsvRow,
)

__all__ = [
    "Config",
    "Mt940Config",
    "Camt053Config",
    "CsvMappingConfig",
    "get_config",
    "set_config",
    "load_config",
    "StatementBridgeException",
    "ConfigurationException",
    "UnsupportedFormat",
    "UnsupportedConversion",
    "MalformedTransaction",
    "StatementParseError",
    "InvalidMt940Field",
    "MalformedXml",
    "InvalidCamtField",
    "InvalidCsvRow",
]
