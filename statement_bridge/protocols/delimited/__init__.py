"""
Delimited Statement Exports

Parse-only support for bank CSV exports driven by a column mapping.
"""

from statement_bridge.protocols.delimited.csv_format import CsvCodec, CsvParseResult, parse_csv

__all__ = ["CsvCodec", "CsvParseResult", "parse_csv"]
