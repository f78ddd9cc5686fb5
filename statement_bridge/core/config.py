"""
Statement Bridge - Configuration Management

This module provides configuration for the statement codecs, the CSV column
mapping and the logging setup. Configuration can be loaded from a YAML file
or from environment variables.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

import yaml

from .exceptions import ConfigurationException

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Environment types for configuration."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    TEXT = "text"
    JSON = "json"


class BalanceMismatchPolicy(str, Enum):
    """What to do when balances do not reconcile with the booked entries."""

    WARN = "warn"
    ERROR = "error"


class SignConvention(str, Enum):
    """How a CSV layout encodes the direction of an amount."""

    SIGNED = "signed"  # one amount column, negative = debit
    SPLIT = "split"  # separate debit and credit columns


@dataclass
class Mt940Config:
    """MT940 codec configuration."""

    line_ending: str = "\r\n"
    envelope: bool = True
    encoding: str = "utf-8"
    balance_mismatch_policy: BalanceMismatchPolicy = BalanceMismatchPolicy.WARN

    def __post_init__(self):
        if isinstance(self.balance_mismatch_policy, str):
            self.balance_mismatch_policy = BalanceMismatchPolicy(self.balance_mismatch_policy)

    def validate(self) -> None:
        if self.line_ending not in ("\r\n", "\n"):
            raise ConfigurationException(
                f"MT940 line ending must be CRLF or LF, got {self.line_ending!r}",
                config_key="mt940.line_ending",
            )


@dataclass
class Camt053Config:
    """CAMT.053 codec configuration."""

    version: str = "02"
    message_id_prefix: str = "STMT"
    creation_datetime: Optional[str] = None  # ISO datetime; derived from the statement when unset
    pretty_print: bool = True
    balance_mismatch_policy: BalanceMismatchPolicy = BalanceMismatchPolicy.WARN

    def __post_init__(self):
        if isinstance(self.balance_mismatch_policy, str):
            self.balance_mismatch_policy = BalanceMismatchPolicy(self.balance_mismatch_policy)
        self.version = str(self.version).zfill(2)

    def validate(self) -> None:
        if not self.version.isdigit() or len(self.version) != 2:
            raise ConfigurationException(
                f"camt.053 version must be two digits, got {self.version!r}",
                config_key="camt053.version",
            )
        if len(self.message_id_prefix) > 20:
            raise ConfigurationException(
                "camt.053 message id prefix must not exceed 20 characters",
                config_key="camt053.message_id_prefix",
            )


@dataclass
class CsvMappingConfig:
    """
    Column mapping for one bank's CSV export.

    ``columns`` maps canonical field names to a header name or a 0-based
    column index. Recognised keys: value_date, booking_date, amount, debit,
    credit, currency, reference, counterparty_account, bank_reference.

    With ``header_marker`` set, rows before the first row holding that cell
    are preamble, and header rows that continue on following lines (no
    digits in any cell) are joined into the column names. With
    ``stop_at_blank_row`` the table ends at the first fully blank row and
    any footer after it is ignored.
    """

    delimiter: str = ","
    quotechar: str = '"'
    encoding: str = "utf-8-sig"
    has_header: bool = True
    skip_rows: int = 0
    columns: Dict[str, Union[str, int]] = field(
        default_factory=lambda: {
            "value_date": "date",
            "amount": "amount",
            "reference": "description",
        }
    )
    date_format: str = "%Y-%m-%d"
    decimal_separator: str = "."
    thousands_separator: Optional[str] = None
    sign_convention: SignConvention = SignConvention.SIGNED
    default_currency: str = "EUR"
    account_id: str = ""
    # Header row located by this cell instead of an exact skip_rows
    header_marker: Optional[str] = None
    stop_at_blank_row: bool = False

    KNOWN_COLUMNS = (
        "value_date",
        "booking_date",
        "amount",
        "debit",
        "credit",
        "currency",
        "reference",
        "counterparty_account",
        "bank_reference",
    )

    def __post_init__(self):
        if isinstance(self.sign_convention, str):
            self.sign_convention = SignConvention(self.sign_convention)

    def validate(self) -> None:
        """Validate the mapping."""
        errors = []

        if len(self.delimiter) != 1:
            errors.append("Delimiter must be a single character")
        if self.decimal_separator not in (".", ","):
            errors.append("Decimal separator must be '.' or ','")
        if self.thousands_separator == self.decimal_separator:
            errors.append("Thousands separator must differ from the decimal separator")
        if self.skip_rows < 0:
            errors.append("skip_rows must not be negative")
        if self.header_marker is not None and not self.header_marker.strip():
            errors.append("header_marker must not be empty")

        unknown = [name for name in self.columns if name not in self.KNOWN_COLUMNS]
        if unknown:
            errors.append(f"Unknown mapped fields: {', '.join(sorted(unknown))}")

        if "value_date" not in self.columns:
            errors.append("A value_date column is required")

        if self.sign_convention == SignConvention.SIGNED:
            if "amount" not in self.columns:
                errors.append("Signed sign convention requires an amount column")
        elif "debit" not in self.columns or "credit" not in self.columns:
            errors.append("Split sign convention requires debit and credit columns")

        if not self.has_header:
            named = [name for name, column in self.columns.items() if not isinstance(column, int)]
            if named:
                errors.append(
                    f"Columns must be mapped by index when there is no header: {', '.join(named)}"
                )
            if self.header_marker:
                errors.append("header_marker requires a header row")

        if errors:
            raise ConfigurationException(
                "CSV mapping validation failed: " + "; ".join(errors),
                config_key="csv",
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CsvMappingConfig":
        """Create a mapping from a dictionary, optionally starting from a preset."""
        data = dict(data or {})
        preset = data.pop("preset", None)
        if preset and preset not in CSV_MAPPING_PRESETS:
            raise ConfigurationException(f"Unknown CSV mapping preset: {preset}", config_key="csv.preset")
        base: Dict[str, Any] = dict(CSV_MAPPING_PRESETS[preset]) if preset else {}
        base.update(data)
        if "columns" in base:
            base["columns"] = dict(base["columns"])
        try:
            return cls(**base)
        except (TypeError, ValueError) as e:
            raise ConfigurationException(f"Invalid CSV mapping: {e}", config_key="csv")

    @classmethod
    def from_preset(cls, name: str) -> "CsvMappingConfig":
        """Create a mapping from a named preset."""
        if name not in CSV_MAPPING_PRESETS:
            raise ConfigurationException(f"Unknown CSV mapping preset: {name}", config_key="csv.preset")
        return cls.from_dict({"preset": name})

    @classmethod
    def load_from_file(cls, path: Union[str, Path]) -> "CsvMappingConfig":
        """Load a mapping from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationException(f"CSV mapping file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Invalid YAML in CSV mapping file: {e}")

        mapping = cls.from_dict(data)
        mapping.validate()
        return mapping

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delimiter": self.delimiter,
            "quotechar": self.quotechar,
            "encoding": self.encoding,
            "has_header": self.has_header,
            "skip_rows": self.skip_rows,
            "columns": dict(self.columns),
            "date_format": self.date_format,
            "decimal_separator": self.decimal_separator,
            "thousands_separator": self.thousands_separator,
            "sign_convention": self.sign_convention.value,
            "default_currency": self.default_currency,
            "account_id": self.account_id,
            "header_marker": self.header_marker,
            "stop_at_blank_row": self.stop_at_blank_row,
        }


# Column layouts of known exports.
CSV_MAPPING_PRESETS: Dict[str, Dict[str, Any]] = {
    "generic": {
        "columns": {
            "value_date": "date",
            "amount": "amount",
            "currency": "currency",
            "reference": "description",
            "bank_reference": "reference",
        },
    },
    "split_debit_credit": {
        "sign_convention": "split",
        "columns": {
            "value_date": "Value Date",
            "booking_date": "Booking Date",
            "debit": "Debit",
            "credit": "Credit",
            "reference": "Details",
        },
    },
    # 1C-style ledger export: dd.mm.yyyy dates, comma decimals, split columns
    "ru_ledger": {
        "delimiter": ";",
        "sign_convention": "split",
        "date_format": "%d.%m.%Y",
        "decimal_separator": ",",
        "thousands_separator": " ",
        "default_currency": "RUB",
        "header_marker": "Дата проводки",
        "stop_at_blank_row": True,
        "columns": {
            "value_date": "Дата проводки",
            "debit": "Сумма по дебету",
            "credit": "Сумма по кредиту",
            "reference": "Назначение платежа",
        },
    },
}


@dataclass
class Config:
    """Main configuration class."""

    environment: Environment = Environment.DEVELOPMENT
    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.TEXT
    service_name: str = "statement-bridge"

    mt940: Mt940Config = field(default_factory=Mt940Config)
    camt053: Camt053Config = field(default_factory=Camt053Config)
    csv: CsvMappingConfig = field(default_factory=CsvMappingConfig)

    @classmethod
    def load_from_file(cls, config_path: Union[str, Path]) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigurationException(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Invalid YAML in configuration file: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationException("Configuration file must contain a mapping")

        return cls._from_dict(config_data)

    @classmethod
    def load_from_env(cls, prefix: str = "STATEMENT_BRIDGE_") -> "Config":
        """Load configuration from environment variables."""
        config = cls()

        try:
            config.environment = Environment(
                os.getenv(f"{prefix}ENVIRONMENT", config.environment.value)
            )
            config.log_level = LogLevel(
                os.getenv(f"{prefix}LOG_LEVEL", config.log_level.value).upper()
            )
            config.log_format = LogFormat(
                os.getenv(f"{prefix}LOG_FORMAT", config.log_format.value).lower()
            )

            if os.getenv(f"{prefix}MT940_LINE_ENDING"):
                config.mt940.line_ending = {"crlf": "\r\n", "lf": "\n"}.get(
                    os.environ[f"{prefix}MT940_LINE_ENDING"].lower(), "\r\n"
                )
            if os.getenv(f"{prefix}BALANCE_MISMATCH_POLICY"):
                policy = BalanceMismatchPolicy(os.environ[f"{prefix}BALANCE_MISMATCH_POLICY"].lower())
                config.mt940.balance_mismatch_policy = policy
                config.camt053.balance_mismatch_policy = policy
            if os.getenv(f"{prefix}CAMT_VERSION"):
                config.camt053.version = os.environ[f"{prefix}CAMT_VERSION"].zfill(2)
            if os.getenv(f"{prefix}CSV_PRESET"):
                config.csv = CsvMappingConfig.from_preset(os.environ[f"{prefix}CSV_PRESET"])
        except ValueError as e:
            raise ConfigurationException(f"Invalid environment configuration: {e}")

        return config

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create configuration from dictionary."""
        config = cls()

        try:
            if "environment" in data:
                config.environment = Environment(data["environment"])
            if "log_level" in data:
                config.log_level = LogLevel(str(data["log_level"]).upper())
            if "log_format" in data:
                config.log_format = LogFormat(str(data["log_format"]).lower())

            if "mt940" in data:
                config.mt940 = Mt940Config(**data["mt940"])
            if "camt053" in data:
                config.camt053 = Camt053Config(**data["camt053"])
        except (TypeError, ValueError) as e:
            raise ConfigurationException(f"Invalid configuration value: {e}")

        if "csv" in data:
            config.csv = CsvMappingConfig.from_dict(data["csv"])

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "environment": self.environment.value,
            "log_level": self.log_level.value,
            "log_format": self.log_format.value,
            "service_name": self.service_name,
            "mt940": {
                "line_ending": self.mt940.line_ending,
                "envelope": self.mt940.envelope,
                "encoding": self.mt940.encoding,
                "balance_mismatch_policy": self.mt940.balance_mismatch_policy.value,
            },
            "camt053": {
                "version": self.camt053.version,
                "message_id_prefix": self.camt053.message_id_prefix,
                "creation_datetime": self.camt053.creation_datetime,
                "pretty_print": self.camt053.pretty_print,
                "balance_mismatch_policy": self.camt053.balance_mismatch_policy.value,
            },
            "csv": self.csv.to_dict(),
        }

    def validate(self) -> None:
        """Validate configuration settings."""
        self.mt940.validate()
        self.camt053.validate()
        self.csv.validate()


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load_from_env()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    config.validate()
    _config = config


def load_config(config_path: Union[str, Path]) -> Config:
    """Load and set configuration from file."""
    config = Config.load_from_file(config_path)
    set_config(config)
    return config
