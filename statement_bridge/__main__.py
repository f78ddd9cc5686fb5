"""
Statement Bridge - Main Entry Point

Command-line front end for converting statements between formats and
comparing two statements.

Exit codes: 0 on success (or when the compared statements reconcile),
1 when a comparison finds differences, 2 on any error.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .core.config import Config, CsvMappingConfig, LogFormat, LogLevel, set_config
from .core.exceptions import StatementBridgeException
from .core.structured_logging import configure_logging
from .protocols.base import StatementFormat, get_codec
from .services.comparer import ComparisonReport, compare
from .services.converter import convert

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DIFFERENCES = 1
EXIT_ERROR = 2

FORMAT_CHOICES = [fmt.value for fmt in StatementFormat]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="statement_bridge",
        description="Statement Bridge - convert and compare MT940, camt.053 and CSV bank statements",
    )

    # Configuration
    parser.add_argument("--config", type=str, help="Configuration file path (YAML)")

    # Logging
    parser.add_argument(
        "--log-level",
        type=str,
        choices=[level.value for level in LogLevel],
        help="Log level",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=[fmt.value for fmt in LogFormat],
        help="Log output format",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    convert_parser = subparsers.add_parser("convert", help="Convert a statement document")
    convert_parser.add_argument("--from", dest="source_format", required=True, choices=FORMAT_CHOICES)
    convert_parser.add_argument("--to", dest="destination_format", required=True, choices=FORMAT_CHOICES)
    convert_parser.add_argument("input", help="Input file, or - for standard input")
    convert_parser.add_argument("-o", "--output", help="Output file (default: standard output)")

    compare_parser = subparsers.add_parser("compare", help="Compare the transactions of two statements")
    compare_parser.add_argument("statement_a", help="First statement file")
    compare_parser.add_argument("--format-a", required=True, choices=FORMAT_CHOICES)
    compare_parser.add_argument("statement_b", help="Second statement file")
    compare_parser.add_argument("--format-b", required=True, choices=FORMAT_CHOICES)
    compare_parser.add_argument("--csv-mapping", help="CSV column mapping file (YAML)")
    compare_parser.add_argument("--csv-preset", help="Named CSV column mapping preset")
    compare_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    return parser


def load_configuration(args: argparse.Namespace) -> Config:
    """Build configuration from file or environment, then apply CLI overrides."""
    config = Config.load_from_file(args.config) if args.config else Config.load_from_env()

    if args.log_level:
        config.log_level = LogLevel(args.log_level)
    if args.log_format:
        config.log_format = LogFormat(args.log_format)

    csv_mapping = getattr(args, "csv_mapping", None)
    csv_preset = getattr(args, "csv_preset", None)
    if csv_mapping:
        config.csv = CsvMappingConfig.load_from_file(csv_mapping)
    elif csv_preset:
        config.csv = CsvMappingConfig.from_preset(csv_preset)

    return config


def read_input(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    return Path(path).read_bytes()


def write_output(path: Optional[str], data: bytes) -> None:
    if path:
        Path(path).write_bytes(data)
    else:
        sys.stdout.buffer.write(data)
        sys.stdout.flush()


def run_convert(args: argparse.Namespace, config: Config) -> int:
    output = convert(args.source_format, args.destination_format, read_input(args.input), config)
    write_output(args.output, output)
    return EXIT_OK


def run_compare(args: argparse.Namespace, config: Config) -> int:
    statement_a = get_codec(args.format_a, config).parse(read_input(args.statement_a))
    statement_b = get_codec(args.format_b, config).parse(read_input(args.statement_b))

    for label, statement in (("A", statement_a), ("B", statement_b)):
        for warning in statement.warnings:
            logger.warning(f"Statement {label}: {warning}")

    report = compare(statement_a, statement_b)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(render_report(report))

    return EXIT_OK if report.is_reconciled else EXIT_DIFFERENCES


def render_report(report: ComparisonReport) -> str:
    """Render a comparison report as plain text."""
    lines = [f"Matched: {len(report.matched)}"]

    lines.append(f"Matched with discrepancy: {len(report.matched_with_discrepancy)}")
    for discrepancy in report.matched_with_discrepancy:
        pair = discrepancy.pair
        lines.append(f"  [{pair.kind.value}] A#{pair.index_a + 1} / B#{pair.index_b + 1}: {discrepancy.description}")

    for label, transactions in (("A", report.only_in_a), ("B", report.only_in_b)):
        lines.append(f"Only in {label}: {len(transactions)}")
        for t in transactions:
            lines.append(f"  {t.value_date.isoformat()} {t.amount} {t.currency} {t.reference}".rstrip())

    lines.append("Result: statements reconcile" if report.is_reconciled else "Result: differences found")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for Statement Bridge."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_configuration(args)
        config.validate()
    except StatementBridgeException as e:
        print(f"error: {e.message}", file=sys.stderr)
        return EXIT_ERROR

    set_config(config)
    configure_logging(config.log_level.value, config.log_format.value)

    try:
        if args.command == "convert":
            return run_convert(args, config)
        return run_compare(args, config)
    except StatementBridgeException as e:
        logger.error(f"{args.command} failed: {e}", extra={"metadata": e.to_dict()})
        print(f"error: {e.message}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
