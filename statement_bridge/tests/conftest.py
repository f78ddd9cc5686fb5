"""
Shared fixtures for the Statement Bridge test suite.
"""

import logging
from datetime import date
from decimal import Decimal

import pytest

from statement_bridge.core import config as config_module
from statement_bridge.core.config import Config, CsvMappingConfig
from statement_bridge.models.statement import Balance, Direction, Statement, Transaction


SAMPLE_MT940 = (
    ":20:STMT20230115\n"
    ":25:DE89370400440532013000\n"
    ":28C:1/1\n"
    ":60F:C230114EUR10000,00\n"
    ":61:2301150115D1500,00NTRF\n"
    ":86:Invoice 42\n"
    ":61:2301160116C250,00NTRFCUST1//BANK1\n"
    ":86:Refund order 7781\n"
    "ACME Trading GmbH\n"
    ":62F:C230116EUR8750,00\n"
)

SAMPLE_CAMT053 = """<?xml version="1.0" encoding="UTF-8"?>
<Document xmlns="urn:iso:std:iso:20022:tech:xsd:camt.053.001.08">
  <BkToCstmrStmt>
    <GrpHdr>
      <MsgId>MSG-0001</MsgId>
      <CreDtTm>2023-01-16T23:59:59</CreDtTm>
    </GrpHdr>
    <Stmt>
      <Id>STMT20230115</Id>
      <ElctrncSeqNb>1</ElctrncSeqNb>
      <CreDtTm>2023-01-16T23:59:59</CreDtTm>
      <FrToDt>
        <FrDtTm>2023-01-14T00:00:00</FrDtTm>
        <ToDtTm>2023-01-16T23:59:59</ToDtTm>
      </FrToDt>
      <Acct>
        <Id><IBAN>DE89370400440532013000</IBAN></Id>
        <Ccy>EUR</Ccy>
      </Acct>
      <Bal>
        <Tp><CdOrPrtry><Cd>OPBD</Cd></CdOrPrtry></Tp>
        <Amt Ccy="EUR">10000.00</Amt>
        <CdtDbtInd>CRDT</CdtDbtInd>
        <Dt><Dt>2023-01-14</Dt></Dt>
      </Bal>
      <Bal>
        <Tp><CdOrPrtry><Cd>CLBD</Cd></CdOrPrtry></Tp>
        <Amt Ccy="EUR">8750.00</Amt>
        <CdtDbtInd>CRDT</CdtDbtInd>
        <Dt><Dt>2023-01-16</Dt></Dt>
      </Bal>
      <Ntry>
        <Amt Ccy="EUR">1500.00</Amt>
        <CdtDbtInd>DBIT</CdtDbtInd>
        <Sts>BOOK</Sts>
        <BookgDt><Dt>2023-01-15</Dt></BookgDt>
        <ValDt><Dt>2023-01-15</Dt></ValDt>
        <NtryDtls>
          <TxDtls>
            <Refs><EndToEndId>NOTPROVIDED</EndToEndId></Refs>
            <RltdPties>
              <CdtrAcct><Id><IBAN>GB29NWBK60161331926819</IBAN></Id></CdtrAcct>
            </RltdPties>
            <RmtInf><Ustrd>Invoice 42</Ustrd></RmtInf>
          </TxDtls>
        </NtryDtls>
      </Ntry>
      <Ntry>
        <Amt Ccy="EUR">250.00</Amt>
        <CdtDbtInd>CRDT</CdtDbtInd>
        <Sts>BOOK</Sts>
        <BookgDt><Dt>2023-01-16</Dt></BookgDt>
        <ValDt><Dt>2023-01-16</Dt></ValDt>
        <AcctSvcrRef>BANK1</AcctSvcrRef>
        <NtryDtls>
          <TxDtls>
            <Refs><EndToEndId>CUST1</EndToEndId></Refs>
            <RmtInf>
              <Ustrd>Refund order 7781</Ustrd>
              <Ustrd>ACME Trading GmbH</Ustrd>
            </RmtInf>
          </TxDtls>
        </NtryDtls>
      </Ntry>
    </Stmt>
  </BkToCstmrStmt>
</Document>
"""


@pytest.fixture(autouse=True)
def reset_global_state():
    """Undo logging configuration and the global config after each test."""
    yield
    package_logger = logging.getLogger("statement_bridge")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
    config_module._config = None


@pytest.fixture
def config():
    """Default configuration, independent of the environment."""
    return Config()


@pytest.fixture
def mt940_bytes():
    return SAMPLE_MT940.encode("utf-8")


@pytest.fixture
def camt053_bytes():
    return SAMPLE_CAMT053.encode("utf-8")


@pytest.fixture
def csv_mapping():
    return CsvMappingConfig(account_id="DE89370400440532013000")


@pytest.fixture
def sample_statement():
    """A statement every writable format can represent without loss."""
    return Statement(
        account_id="DE89370400440532013000",
        currency="EUR",
        transactions=(
            Transaction(
                value_date=date(2023, 1, 15),
                amount=Decimal("-1500.00"),
                currency="EUR",
                direction=Direction.DEBIT,
                reference="Invoice 42",
                transaction_code="NTRF",
            ),
            Transaction(
                value_date=date(2023, 1, 16),
                amount=Decimal("250.00"),
                currency="EUR",
                direction=Direction.CREDIT,
                reference="Refund order 7781",
                bank_reference="BANK1",
                customer_reference="CUST1",
                transaction_code="NTRF",
            ),
        ),
        opening_balance=Balance(Decimal("10000.00"), "EUR", date(2023, 1, 14)),
        closing_balance=Balance(Decimal("8750.00"), "EUR", date(2023, 1, 16)),
        period_start=date(2023, 1, 14),
        period_end=date(2023, 1, 16),
        statement_id="STMT20230115",
        statement_number="1",
        sequence_number="1",
    )


@pytest.fixture
def rich_statement():
    """A statement using fields that only camt.053 carries in full."""
    return Statement(
        account_id="DE89370400440532013000",
        currency="EUR",
        transactions=(
            Transaction(
                value_date=date(2023, 3, 1),
                booking_date=date(2023, 2, 28),
                amount=Decimal("-200.00"),
                currency="EUR",
                direction=Direction.DEBIT,
                reference="Reversal of card payment 5521",
                counterparty_account="GB29NWBK60161331926819",
                bank_reference="REV-5521",
                customer_reference="E2E-5521",
                transaction_code="NRTI",
                is_reversal=True,
                supplementary_details="Card 4321",
            ),
            Transaction(
                value_date=date(2023, 3, 2),
                amount=Decimal("50.00"),
                currency="USD",
                direction=Direction.CREDIT,
                reference="FX rebate",
                counterparty_account="12345678",
                bank_reference="FX-1",
                transaction_code="NTRF",
            ),
        ),
        opening_balance=Balance(Decimal("1000.00"), "EUR", date(2023, 2, 28)),
        closing_balance=Balance(Decimal("800.00"), "EUR", date(2023, 3, 2)),
        closing_available_balance=Balance(Decimal("800.00"), "EUR", date(2023, 3, 2)),
        forward_available_balance=Balance(Decimal("750.00"), "EUR", date(2023, 3, 3)),
        period_start=date(2023, 2, 28),
        period_end=date(2023, 3, 2),
        statement_id="STMT-0302",
        related_reference="QRY-77",
        statement_number="12",
        information="Statement produced on request",
        per_transaction_currency=True,
    )
