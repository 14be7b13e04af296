"""
Command Line Interface

Usage:
    sales-analytics report branch-growth --data WalmartSales.csv
    sales-analytics report anomalies --data WalmartSales.csv --stddev-factor 2
    sales-analytics report all --data WalmartSales.csv --format markdown
    sales-analytics validate --data WalmartSales.csv

Exit codes: 0 on success, 1 when validate finds rejected rows, 2 on input
errors (missing file, unsupported format, missing columns, unparsable
field with --on-parse-error abort).
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from sales_analytics.analytics.formatters import OutputFormat, render, write_report
from sales_analytics.analytics.reports import REPORTS, SalesAnalytics
from sales_analytics.config import Settings, get_settings
from sales_analytics.config.logging import configure_logging, get_logger
from sales_analytics.exceptions import SalesAnalyticsError
from sales_analytics.ingestion.loader import SalesLoader, SalesTable

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_INVALID_ROWS = 1
EXIT_INPUT_ERROR = 2

# `report all --output DIR` writes one file per report
FILE_EXTENSIONS = {
    OutputFormat.TABLE: "txt",
    OutputFormat.MARKDOWN: "md",
    OutputFormat.CSV: "csv",
    OutputFormat.JSON: "json",
    OutputFormat.PARQUET: "parquet",
}


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative, got {value}")
    return number


def _non_negative_float(value: str) -> float:
    number = float(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative, got {value}")
    return number


def _input_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--data", type=Path, help="Sales dataset (csv, json, jsonl, parquet)")
    parent.add_argument(
        "--on-parse-error",
        choices=["skip", "abort"],
        help="Skip and log unparsable rows, or abort on the first one",
    )
    return parent


def _output_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--format",
        dest="output_format",
        choices=[f.value for f in OutputFormat],
        help="Output format (default: table)",
    )
    parent.add_argument("--output", type=Path, help="Write to this file instead of stdout")
    return parent


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser"""
    parser = argparse.ArgumentParser(
        prog="sales-analytics",
        description="Analytical reports over a retail sales table",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-format", choices=["text", "json"])

    commands = parser.add_subparsers(dest="command", required=True)
    inputs = _input_options()
    outputs = _output_options()

    report = commands.add_parser("report", help="Compute a report")
    reports = report.add_subparsers(dest="report", required=True)

    def add_report(name: str, options: Optional[List[str]] = None) -> argparse.ArgumentParser:
        sub = reports.add_parser(
            name,
            help=REPORTS[name].description,
            parents=[inputs, outputs],
        )
        sub.set_defaults(options=options or [])
        return sub

    add_report("branch-growth", ["all_months"]).add_argument(
        "--all", dest="all_months", action="store_true", help="Show every branch and month"
    )
    add_report("product-profit", ["all_lines"]).add_argument(
        "--all", dest="all_lines", action="store_true", help="Show every product line"
    )
    add_report("customer-segments", ["percentile_method"]).add_argument(
        "--percentile-method", choices=["weak", "percent_rank"]
    )

    anomalies = add_report("anomalies", ["stddev_factor", "only_anomalies"])
    anomalies.add_argument("--stddev-factor", type=_non_negative_float, help="Standard deviations from the mean")
    anomalies.add_argument("--only-anomalies", action="store_true", help="Hide normal transactions")

    add_report("payment-by-city")
    add_report("gender-monthly")
    add_report("customer-type-preference")

    repeat = add_report("repeat-customers", ["window_days", "mode"])
    repeat.add_argument("--window-days", type=_non_negative_int, help="Max days between paired purchases")
    repeat.add_argument("--mode", choices=["pairs", "purchases"])

    add_report("top-customers", ["n"]).add_argument("-n", "--top", dest="n", type=_non_negative_int)
    add_report("weekday-sales")

    everything = reports.add_parser("all", help="Compute every report", parents=[inputs, outputs])
    everything.set_defaults(options=[])

    validate = commands.add_parser("validate", help="Check a dataset and list rejected rows", parents=[inputs])
    validate.add_argument("--limit", type=int, default=20, help="Rejected rows to show (default: 20)")

    return parser


def _load(args: argparse.Namespace, settings: Settings) -> SalesTable:
    data = args.data or settings.data.source_path
    if data is None:
        raise SalesAnalyticsError("No dataset given: pass --data or set DATA_SOURCE_PATH")
    return SalesLoader(settings=settings, parse_error_policy=args.on_parse_error).load(data)


def _run_report(args: argparse.Namespace, settings: Settings) -> int:
    table = _load(args, settings)
    analytics = SalesAnalytics(table, settings=settings)
    output_format = args.output_format or settings.report.output_format

    if args.report == "all":
        for name, result in analytics.run_all().items():
            output = None
            if args.output is not None:
                output = args.output / f"{name}.{FILE_EXTENSIONS[OutputFormat(output_format)]}"
            write_report(result.frame, output_format, output=output, title=name)
        return EXIT_OK

    options = {
        key: getattr(args, key)
        for key in args.options
        if getattr(args, key) is not None
    }
    result = analytics.run(args.report, **options)
    write_report(result.frame, output_format, output=args.output)
    return EXIT_OK


def _run_validate(args: argparse.Namespace, settings: Settings) -> int:
    table = _load(args, settings)
    summary = table.summary

    print(
        f"{summary.source}: {summary.rows_read} rows read, "
        f"{summary.rows_loaded} loaded, {summary.rows_rejected} rejected "
        f"({summary.parse_errors} unparsable)"
    )
    if table.rejected.is_empty():
        return EXIT_OK

    print(render(table.rejected.head(args.limit), OutputFormat.TABLE))
    return EXIT_INVALID_ROWS


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point; returns the process exit code"""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level, args.log_format)
    settings = get_settings()

    try:
        if args.command == "report":
            return _run_report(args, settings)
        return _run_validate(args, settings)
    except (SalesAnalyticsError, FileNotFoundError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
