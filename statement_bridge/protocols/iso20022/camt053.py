"""
ISO 20022 camt.053 - Bank to Customer Statement

This message is sent by the account servicer to an account owner or
to a party authorised by the account owner to receive the message.
It is used to inform the account owner of the entries reported on their account.

Used by: All banks for account statements, treasury systems
"""

import logging
import textwrap
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
from xml.etree import ElementTree as ET

from ...core.config import BalanceMismatchPolicy
from ...core.exceptions import InvalidCamtField, MalformedTransaction
from ...core.structured_logging import LogCategory
from ...models.statement import (
    CURRENCY_PATTERN,
    Balance,
    Direction,
    Statement,
    Transaction,
    format_amount,
)
from ..base import StatementCodec, StatementFormat
from .base import ISO20022Builder, ISO20022Parser, local_name

logger = logging.getLogger(__name__)

NOT_PROVIDED = "NOTPROVIDED"
NO_REFERENCE = "NONREF"
UNKNOWN_CURRENCY = "XXX"
REMITTANCE_LINE_LENGTH = 140


class BalanceType(Enum):
    """Balance type codes."""

    OPENING_BOOKED = ("OPBD", "Opening Booked")
    PREVIOUSLY_CLOSED_BOOKED = ("PRCD", "Previously Closed Booked")
    CLOSING_BOOKED = ("CLBD", "Closing Booked")
    CLOSING_AVAILABLE = ("CLAV", "Closing Available")
    FORWARD_AVAILABLE = ("FWAV", "Forward Available")
    INTERIM_BOOKED = ("ITBD", "Interim Booked")

    def __init__(self, code: str, description: str):
        self.type_code = code
        self.description = description

    @classmethod
    def from_code(cls, code: str) -> Optional["BalanceType"]:
        for bt in cls:
            if bt.type_code == code:
                return bt
        return None


class CreditDebitIndicator(Enum):
    """Credit/Debit indicator."""

    CREDIT = "CRDT"
    DEBIT = "DBIT"

    @property
    def direction(self) -> Direction:
        return Direction.CREDIT if self is CreditDebitIndicator.CREDIT else Direction.DEBIT

    @classmethod
    def for_amount(cls, amount: Decimal) -> "CreditDebitIndicator":
        return cls.DEBIT if amount < 0 else cls.CREDIT


class EntryStatus(Enum):
    """Entry status codes."""

    BOOKED = "BOOK"


class Camt053Parser(ISO20022Parser):
    """
    Parser for camt.053 messages.

    Accepts any ``camt.053.001.xx`` namespace or none. Errors name the
    offending element with an indexed path such as
    ``Document/BkToCstmrStmt/Stmt[1]/Ntry[2]/Amt``.
    """

    def parse(self, xml_content) -> List[dict]:
        """Parse camt.053 XML into keyword arguments for each Statement."""
        root = self._parse_xml(xml_content)
        self._detect_namespace(root)

        if local_name(root.tag) != "Document":
            raise InvalidCamtField(local_name(root.tag), "root element must be Document")

        bk_to_cstmr_stmt = self._find_element(root, "BkToCstmrStmt")
        if bk_to_cstmr_stmt is None:
            raise InvalidCamtField("Document/BkToCstmrStmt", "element is missing")

        related_reference = None
        grp_hdr = self._find_element(bk_to_cstmr_stmt, "GrpHdr")
        if grp_hdr is not None:
            related_reference = self._get_path_text(grp_hdr, "OrgnlBizQry/MsgId") or None

        stmts = self._find_all_elements(bk_to_cstmr_stmt, "Stmt")
        if not stmts:
            raise InvalidCamtField("Document/BkToCstmrStmt/Stmt", "document contains no statement")

        return [
            self._parse_statement(stmt, f"Document/BkToCstmrStmt/Stmt[{index}]", related_reference)
            for index, stmt in enumerate(stmts, start=1)
        ]

    def _parse_statement(self, stmt: ET.Element, path: str, related_reference: Optional[str]) -> dict:
        """Parse statement."""
        statement_id = self._get_path_text(stmt, "Id")

        period_start = period_end = None
        fr_to_dt = self._find_element(stmt, "FrToDt")
        if fr_to_dt is not None:
            period_start = self._parse_datetime_text(fr_to_dt, "FrDtTm", f"{path}/FrToDt")
            period_end = self._parse_datetime_text(fr_to_dt, "ToDtTm", f"{path}/FrToDt")

        acct = self._find_element(stmt, "Acct")
        if acct is None:
            raise InvalidCamtField(f"{path}/Acct", "element is missing")
        account_id = self._get_account(acct)
        if not account_id:
            raise InvalidCamtField(f"{path}/Acct/Id", "account has no IBAN or other identification")
        account_currency = self._get_path_text(acct, "Ccy") or None

        balances: Dict[str, Optional[Balance]] = {
            "opening_balance": None,
            "closing_balance": None,
            "closing_available_balance": None,
            "forward_available_balance": None,
        }
        for index, bal in enumerate(self._find_all_elements(stmt, "Bal"), start=1):
            self._parse_balance(bal, f"{path}/Bal[{index}]", balances)

        entries = [
            self._parse_entry(ntry, f"{path}/Ntry[{index}]")
            for index, ntry in enumerate(self._find_all_elements(stmt, "Ntry"), start=1)
        ]

        currency = account_currency
        if currency is None and balances["opening_balance"] is not None:
            currency = balances["opening_balance"].currency
        if currency is None and entries:
            currency = entries[0].currency
        currency = currency or UNKNOWN_CURRENCY
        if not CURRENCY_PATTERN.match(currency):
            raise InvalidCamtField(f"{path}/Acct/Ccy", f"invalid currency {currency!r}")

        if statement_id == NO_REFERENCE:
            statement_id = ""

        information = " ".join(
            self._get_text(elem) for elem in self._find_all_elements(stmt, "AddtlStmtInf")
        )

        return {
            "path": path,
            "account_id": account_id,
            "currency": currency,
            "transactions": entries,
            "period_start": period_start,
            "period_end": period_end,
            "statement_id": statement_id or None,
            "related_reference": related_reference,
            "statement_number": self._get_path_text(stmt, "ElctrncSeqNb") or None,
            "sequence_number": self._get_path_text(stmt, "LglSeqNb") or None,
            "information": information or None,
            "per_transaction_currency": any(t.currency != currency for t in entries),
            **balances,
        }

    def _parse_datetime_text(self, parent: ET.Element, name: str, path: str) -> Optional[date]:
        text = self._get_path_text(parent, name)
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            raise InvalidCamtField(f"{path}/{name}", f"invalid date {text!r}")

    def _parse_amount(self, parent: ET.Element, path: str) -> Tuple[Decimal, str]:
        """Parse a mandatory unsigned ``Amt`` element and its currency."""
        amt = self._find_element(parent, "Amt")
        if amt is None:
            raise InvalidCamtField(f"{path}/Amt", "element is missing")

        text = self._get_text(amt)
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise InvalidCamtField(f"{path}/Amt", f"invalid amount {text!r}")
        if not value.is_finite() or value < 0:
            raise InvalidCamtField(f"{path}/Amt", f"invalid amount {text!r}")

        currency = (amt.get("Ccy") or "").strip()
        if not currency:
            raise InvalidCamtField(f"{path}/Amt/@Ccy", "currency attribute is missing")
        if not CURRENCY_PATTERN.match(currency):
            raise InvalidCamtField(f"{path}/Amt/@Ccy", f"invalid currency {currency!r}")

        return value, currency

    def _parse_indicator(self, parent: ET.Element, path: str) -> CreditDebitIndicator:
        text = self._get_path_text(parent, "CdtDbtInd")
        if not text:
            raise InvalidCamtField(f"{path}/CdtDbtInd", "element is missing")
        try:
            return CreditDebitIndicator(text)
        except ValueError:
            raise InvalidCamtField(f"{path}/CdtDbtInd", f"expected CRDT or DBIT, got {text!r}")

    def _parse_balance(self, bal: ET.Element, path: str, balances: Dict[str, Optional[Balance]]) -> None:
        """Parse balance into the matching statement slot."""
        code = self._get_path_text(bal, "Tp/CdOrPrtry/Cd")
        balance_type = BalanceType.from_code(code)
        if balance_type is None:
            logger.debug(f"Ignoring balance of type {code!r} at {path}")
            return

        value, currency = self._parse_amount(bal, path)
        indicator = self._parse_indicator(bal, path)
        try:
            balance_date = self._get_date(self._find_element(bal, "Dt"))
        except ValueError:
            raise InvalidCamtField(f"{path}/Dt", "invalid date")
        if balance_date is None:
            raise InvalidCamtField(f"{path}/Dt", "element is missing")

        balance = Balance(
            amount=value if indicator is CreditDebitIndicator.CREDIT else -value,
            currency=currency,
            date=balance_date,
            is_intermediate=balance_type is BalanceType.INTERIM_BOOKED,
        )

        if balance_type in (BalanceType.OPENING_BOOKED, BalanceType.PREVIOUSLY_CLOSED_BOOKED):
            balances["opening_balance"] = balance
        elif balance_type is BalanceType.CLOSING_BOOKED:
            balances["closing_balance"] = balance
        elif balance_type is BalanceType.CLOSING_AVAILABLE:
            balances["closing_available_balance"] = balance
        elif balance_type is BalanceType.FORWARD_AVAILABLE:
            if balances["forward_available_balance"] is None:
                balances["forward_available_balance"] = balance
        elif balance_type is BalanceType.INTERIM_BOOKED:
            # Interim balances open and close a page in document order
            if balances["opening_balance"] is None:
                balances["opening_balance"] = balance
            elif balances["closing_balance"] is None:
                balances["closing_balance"] = balance

    def _parse_entry(self, ntry: ET.Element, path: str) -> Transaction:
        """Parse statement entry."""
        value, currency = self._parse_amount(ntry, path)
        indicator = self._parse_indicator(ntry, path)
        direction = indicator.direction

        reversal_text = self._get_path_text(ntry, "RvslInd").lower()
        is_reversal = reversal_text in ("true", "1")

        try:
            booking_date = self._get_date(self._find_element(ntry, "BookgDt"))
        except ValueError:
            raise InvalidCamtField(f"{path}/BookgDt", "invalid date")
        try:
            value_date = self._get_date(self._find_element(ntry, "ValDt"))
        except ValueError:
            raise InvalidCamtField(f"{path}/ValDt", "invalid date")
        if value_date is None:
            value_date = booking_date
        if value_date is None:
            raise InvalidCamtField(f"{path}/ValDt", "entry has neither value date nor booking date")

        tx_dtls_list: List[ET.Element] = []
        ntry_dtls = self._find_element(ntry, "NtryDtls")
        if ntry_dtls is not None:
            tx_dtls_list = self._find_all_elements(ntry_dtls, "TxDtls")
        tx_dtls = tx_dtls_list[0] if tx_dtls_list else None

        bank_reference = self._get_path_text(ntry, "AcctSvcrRef")
        customer_reference = ""
        counterparty = None
        if tx_dtls is not None:
            bank_reference = (
                bank_reference
                or self._get_path_text(tx_dtls, "Refs/AcctSvcrRef")
                or self._get_path_text(tx_dtls, "Refs/TxId")
            )
            customer_reference = self._get_path_text(tx_dtls, "Refs/EndToEndId")
            if customer_reference == NOT_PROVIDED:
                customer_reference = ""
            party = "DbtrAcct" if direction is Direction.CREDIT else "CdtrAcct"
            counterparty = self._get_account(self._find_path(tx_dtls, f"RltdPties/{party}"))

        remittance = " ".join(filter(None, (self._parse_remittance(tx) for tx in tx_dtls_list)))

        try:
            return Transaction(
                value_date=value_date,
                booking_date=booking_date,
                amount=value * direction.sign,
                currency=currency,
                direction=direction,
                reference=remittance,
                counterparty_account=counterparty,
                bank_reference=bank_reference or None,
                customer_reference=customer_reference or None,
                transaction_code=self._get_path_text(ntry, "BkTxCd/Prtry/Cd") or None,
                is_reversal=is_reversal,
                supplementary_details=self._get_path_text(ntry, "AddtlNtryInf") or None,
            )
        except MalformedTransaction as e:
            raise InvalidCamtField(path, e.message)

    def _parse_remittance(self, tx_dtls: ET.Element) -> str:
        """Structured remittance text, else unstructured lines, else additional info."""
        rmt_inf = self._find_element(tx_dtls, "RmtInf")
        if rmt_inf is not None:
            structured = self._find_all_elements(rmt_inf, "Strd")
            if structured:
                return " ".join(
                    text.strip() for strd in structured for text in strd.itertext() if text.strip()
                )
            unstructured = self._find_all_elements(rmt_inf, "Ustrd")
            if unstructured:
                return " ".join(self._get_text(u) for u in unstructured)
        return self._get_path_text(tx_dtls, "AddtlTxInf")


class Camt053Builder(ISO20022Builder):
    """Builder for camt.053 messages in schema element order."""

    def __init__(self, version: str = "02", message_id_prefix: str = "STMT",
                 creation_datetime: Optional[str] = None, pretty_print: bool = True):
        super().__init__("camt.053", version, pretty_print)
        self.message_id_prefix = message_id_prefix
        self.creation_datetime = creation_datetime

    def build(self, statements: Sequence[Statement]) -> bytes:
        """Build a camt.053 document holding the given statements."""
        root = self._create_root()
        bk_to_cstmr_stmt = self._add_element(root, "BkToCstmrStmt")

        created = self._creation_datetime(statements)

        grp_hdr = self._add_element(bk_to_cstmr_stmt, "GrpHdr")
        first_id = statements[0].statement_id if statements else None
        self._add_element(grp_hdr, "MsgId", f"{self.message_id_prefix}-{first_id or NO_REFERENCE}"[:35])
        self._add_element(grp_hdr, "CreDtTm", created)
        related = next((s.related_reference for s in statements if s.related_reference), None)
        if related:
            orgnl_biz_qry = self._add_element(grp_hdr, "OrgnlBizQry")
            self._add_element(orgnl_biz_qry, "MsgId", related)

        for statement in statements:
            self._add_statement(bk_to_cstmr_stmt, statement, created)

        return self._to_bytes(root)

    def _creation_datetime(self, statements: Sequence[Statement]) -> str:
        """Configured creation time, else the end of the latest statement period."""
        if self.creation_datetime:
            return self.creation_datetime
        end_dates = [d for d in (_statement_end_date(s) for s in statements) if d is not None]
        if not end_dates:
            return self._format_datetime(datetime.now())
        return self._format_datetime(datetime.combine(max(end_dates), time(23, 59, 59)))

    def _add_statement(self, parent: ET.Element, statement: Statement, created: str) -> None:
        stmt = self._add_element(parent, "Stmt")
        self._add_element(stmt, "Id", statement.statement_id or NO_REFERENCE)
        if statement.statement_number:
            self._add_element(stmt, "ElctrncSeqNb", statement.statement_number)
        if statement.sequence_number:
            self._add_element(stmt, "LglSeqNb", statement.sequence_number)
        self._add_element(stmt, "CreDtTm", created)

        if statement.period_start and statement.period_end:
            fr_to_dt = self._add_element(stmt, "FrToDt")
            start = datetime.combine(statement.period_start, time(0, 0))
            end = datetime.combine(statement.period_end, time(23, 59, 59))
            self._add_element(fr_to_dt, "FrDtTm", self._format_datetime(start))
            self._add_element(fr_to_dt, "ToDtTm", self._format_datetime(end))

        acct = self._add_account(stmt, "Acct", statement.account_id)
        self._add_element(acct, "Ccy", statement.currency)

        opening = statement.opening_balance
        if opening:
            opening_type = BalanceType.OPENING_BOOKED
            if opening.is_intermediate:
                opening_type = BalanceType.INTERIM_BOOKED
            self._add_balance(stmt, opening_type, opening)
        closing = statement.closing_balance
        if closing:
            closing_type = BalanceType.CLOSING_BOOKED
            if closing.is_intermediate:
                closing_type = BalanceType.INTERIM_BOOKED
            self._add_balance(stmt, closing_type, closing)
        if statement.closing_available_balance:
            self._add_balance(stmt, BalanceType.CLOSING_AVAILABLE, statement.closing_available_balance)
        if statement.forward_available_balance:
            self._add_balance(stmt, BalanceType.FORWARD_AVAILABLE, statement.forward_available_balance)

        if statement.transactions:
            self._add_summary(stmt, statement)

        for transaction in statement.transactions:
            self._add_entry(stmt, transaction)

        if statement.information:
            self._add_element(stmt, "AddtlStmtInf", statement.information[:500])

    def _add_balance(self, parent: ET.Element, balance_type: BalanceType, balance: Balance) -> None:
        bal = self._add_element(parent, "Bal")
        tp = self._add_element(bal, "Tp")
        cd_or_prtry = self._add_element(tp, "CdOrPrtry")
        self._add_element(cd_or_prtry, "Cd", balance_type.type_code)
        self._add_amount(bal, "Amt", format_amount(balance.amount, balance.currency), balance.currency)
        self._add_element(bal, "CdtDbtInd", CreditDebitIndicator.for_amount(balance.amount).value)
        self._add_date(bal, "Dt", balance.date)

    def _add_summary(self, parent: ET.Element, statement: Statement) -> None:
        """Transaction summary: entry counts and sums."""
        credits = [t for t in statement.transactions if t.direction is Direction.CREDIT]
        debits = [t for t in statement.transactions if t.direction is Direction.DEBIT]
        currency = statement.currency

        txs_sumry = self._add_element(parent, "TxsSummry")
        ttl_ntries = self._add_element(txs_sumry, "TtlNtries")
        self._add_element(ttl_ntries, "NbOfNtries", str(len(statement.transactions)))
        total = sum((abs(t.amount) for t in statement.transactions), Decimal("0"))
        self._add_element(ttl_ntries, "Sum", format_amount(total, currency))

        for tag, entries in (("TtlCdtNtries", credits), ("TtlDbtNtries", debits)):
            node = self._add_element(txs_sumry, tag)
            self._add_element(node, "NbOfNtries", str(len(entries)))
            entries_total = sum((abs(t.amount) for t in entries), Decimal("0"))
            self._add_element(node, "Sum", format_amount(entries_total, currency))

    def _add_entry(self, parent: ET.Element, transaction: Transaction) -> None:
        ntry = self._add_element(parent, "Ntry")
        amount_text = format_amount(transaction.amount, transaction.currency)
        self._add_amount(ntry, "Amt", amount_text, transaction.currency)
        indicator = CreditDebitIndicator.for_amount(Decimal(transaction.direction.sign))
        self._add_element(ntry, "CdtDbtInd", indicator.value)
        if transaction.is_reversal:
            self._add_element(ntry, "RvslInd", "true")
        self._add_element(ntry, "Sts", EntryStatus.BOOKED.value)
        self._add_date(ntry, "BookgDt", transaction.booking_date or transaction.value_date)
        self._add_date(ntry, "ValDt", transaction.value_date)
        if transaction.bank_reference:
            self._add_element(ntry, "AcctSvcrRef", transaction.bank_reference)

        if transaction.transaction_code:
            bk_tx_cd = self._add_element(ntry, "BkTxCd")
            prtry = self._add_element(bk_tx_cd, "Prtry")
            self._add_element(prtry, "Cd", transaction.transaction_code)
            self._add_element(prtry, "Issr", "SWIFT")

        if transaction.customer_reference or transaction.counterparty_account or transaction.reference:
            ntry_dtls = self._add_element(ntry, "NtryDtls")
            tx_dtls = self._add_element(ntry_dtls, "TxDtls")

            if transaction.customer_reference:
                refs = self._add_element(tx_dtls, "Refs")
                self._add_element(refs, "EndToEndId", transaction.customer_reference)

            if transaction.counterparty_account:
                rltd_pties = self._add_element(tx_dtls, "RltdPties")
                party = "DbtrAcct" if transaction.direction is Direction.CREDIT else "CdtrAcct"
                self._add_account(rltd_pties, party, transaction.counterparty_account)

            if transaction.reference:
                rmt_inf = self._add_element(tx_dtls, "RmtInf")
                for line in textwrap.wrap(
                    transaction.reference,
                    width=REMITTANCE_LINE_LENGTH,
                    break_long_words=True,
                    break_on_hyphens=False,
                ):
                    self._add_element(rmt_inf, "Ustrd", line)

        if transaction.supplementary_details:
            self._add_element(ntry, "AddtlNtryInf", transaction.supplementary_details)


def _statement_end_date(statement: Statement) -> Optional[date]:
    if statement.period_end:
        return statement.period_end
    if statement.closing_balance:
        return statement.closing_balance.date
    if statement.transactions:
        return max(t.value_date for t in statement.transactions)
    return None


class Camt053Codec(StatementCodec):
    """Codec for ISO 20022 camt.053 bank-to-customer statements."""

    format = StatementFormat.CAMT053

    def __init__(self, config=None):
        super().__init__(config)
        self.camt_config = self.config.camt053

    def parse_all(self, data: bytes) -> List[Statement]:
        """
        Parse every statement of a camt.053 document.

        Raises:
            MalformedXml: if the document is not well-formed
            InvalidCamtField: for a missing or invalid element
        """
        parser = Camt053Parser()
        statements = []
        for values in parser.parse(data):
            path = values.pop("path")
            try:
                statement = Statement(**values)
            except MalformedTransaction as e:
                raise InvalidCamtField(path, e.message)

            warning = self._reconciliation_warning(statement)
            if warning:
                if self.camt_config.balance_mismatch_policy is BalanceMismatchPolicy.ERROR:
                    raise InvalidCamtField(f"{path}/Bal", warning)
                statement = statement.with_warnings([warning])
            statements.append(statement)

        logger.info(
            f"Parsed {len(statements)} camt.053 statement(s)",
            extra={
                "category": LogCategory.PARSING,
                "metadata": {
                    "format": self.format.value,
                    "namespace": parser.namespaces.get("ns"),
                    "statements": len(statements),
                    "transactions": sum(len(s.transactions) for s in statements),
                },
            },
        )
        return statements

    def serialize_all(self, statements: Sequence[Statement]) -> bytes:
        """Serialize statements into one camt.053 document."""
        builder = Camt053Builder(
            version=self.camt_config.version,
            message_id_prefix=self.camt_config.message_id_prefix,
            creation_datetime=self.camt_config.creation_datetime,
            pretty_print=self.camt_config.pretty_print,
        )
        document = builder.build(statements)

        logger.info(
            f"Serialized {len(statements)} camt.053 statement(s)",
            extra={
                "category": LogCategory.SERIALIZATION,
                "metadata": {"format": self.format.value, "namespace": builder.namespace},
            },
        )
        return document
