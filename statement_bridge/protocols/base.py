"""
Statement Codec Base Classes

Common interface for the statement format codecs and the fixed registry
that maps a format tag onto its codec.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Sequence, Union
import logging

from ..core.config import Config, get_config
from ..core.exceptions import StatementParseError, UnsupportedConversion, UnsupportedFormat
from ..core.structured_logging import LogCategory
from ..models.statement import Statement, merge_statements

logger = logging.getLogger(__name__)


class StatementFormat(str, Enum):
    """Supported statement formats."""

    MT940 = "mt940"
    CAMT053 = "camt053"
    CSV = "csv"

    @classmethod
    def from_tag(cls, tag: Union[str, "StatementFormat"]) -> "StatementFormat":
        """Resolve a format tag, raising UnsupportedFormat for unknown tags."""
        if isinstance(tag, cls):
            return tag
        normalized = str(tag).strip().lower().replace("-", "").replace(".", "").replace("_", "")
        for fmt in cls:
            if fmt.value == normalized:
                return fmt
        raise UnsupportedFormat(str(tag))


class StatementCodec(ABC):
    """
    Base codec between a statement format and the canonical model.

    Subclasses implement ``parse_all`` and, where the format can be written,
    ``serialize_all``. Codecs hold configuration only and keep no state
    between calls.
    """

    format: StatementFormat

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    @abstractmethod
    def parse_all(self, data: bytes) -> List[Statement]:
        """Parse every statement in a document."""
        pass

    def parse(self, data: bytes) -> Statement:
        """
        Parse a document into one statement.

        Several pages of one account are merged; statements of different
        accounts raise StatementParseError.
        """
        return merge_statements(self.parse_all(data))

    def serialize(self, statement: Statement) -> bytes:
        """Serialize one statement."""
        return self.serialize_all([statement])

    def serialize_all(self, statements: Sequence[Statement]) -> bytes:
        """Serialize statements into one document."""
        raise UnsupportedConversion("statement", self.format.value)

    @property
    def can_serialize(self) -> bool:
        return type(self).serialize_all is not StatementCodec.serialize_all

    def _decode(self, data: Union[bytes, str], encoding: str) -> str:
        """Decode input bytes, dropping a byte order mark."""
        if isinstance(data, str):
            text = data
        else:
            try:
                text = data.decode(encoding)
            except UnicodeDecodeError as e:
                raise StatementParseError(
                    f"Input is not valid {encoding} text: {e.reason}",
                    context={"format": self.format.value, "offset": e.start},
                )
        return text.lstrip("\ufeff")

    def _reconciliation_warning(self, statement: Statement) -> Optional[str]:
        """Describe a balance mismatch, or return None when the statement reconciles."""
        discrepancy = statement.balance_discrepancy()
        if not discrepancy:
            return None

        message = (
            f"Balances of account {statement.account_id} do not reconcile: "
            f"opening {statement.opening_balance.amount} plus entries differs from "
            f"closing {statement.closing_balance.amount} by {discrepancy}"
        )
        logger.warning(
            message,
            extra={
                "category": LogCategory.RECONCILIATION,
                "metadata": {
                    "format": self.format.value,
                    "account_id": statement.account_id,
                    "statement_id": statement.statement_id,
                    "discrepancy": str(discrepancy),
                },
            },
        )
        return message


def get_codec(fmt: Union[str, StatementFormat], config: Optional[Config] = None) -> StatementCodec:
    """Return the codec registered for a format tag."""
    from .delimited.csv_format import CsvCodec
    from .iso20022.camt053 import Camt053Codec
    from .swift.mt940 import Mt940Codec

    registry = {
        StatementFormat.MT940: Mt940Codec,
        StatementFormat.CAMT053: Camt053Codec,
        StatementFormat.CSV: CsvCodec,
    }
    return registry[StatementFormat.from_tag(fmt)](config)
