"""Exceptions raised by the sales analytics package.

All exceptions inherit from SalesAnalyticsError so callers can catch any
package failure in one place.
"""

from typing import Iterable, Optional


class SalesAnalyticsError(Exception):
    """Base exception for all sales analytics errors."""


class SchemaError(SalesAnalyticsError):
    """Raised when the fact table is missing required columns.

    Fatal: raised before any parsing or aggregation happens.
    """

    def __init__(self, missing_columns: Iterable[str], available: Optional[Iterable[str]] = None):
        self.missing_columns = sorted(missing_columns)
        self.available = sorted(available) if available is not None else []
        message = f"Missing required columns: {', '.join(self.missing_columns)}"
        if self.available:
            message += f" (found: {', '.join(self.available)})"
        super().__init__(message)


class ParseError(SalesAnalyticsError):
    """Raised when a date or numeric field cannot be parsed.

    Carries the offending value and, when known, the column, row number
    and invoice id so the caller can report exactly what failed.
    """

    def __init__(
        self,
        value: object,
        column: Optional[str] = None,
        row: Optional[int] = None,
        invoice_id: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        self.value = value
        self.column = column
        self.row = row
        self.invoice_id = invoice_id

        location = []
        if row is not None:
            location.append(f"row {row}")
        if invoice_id is not None:
            location.append(f"invoice {invoice_id}")
        if column is not None:
            location.append(f"column '{column}'")

        message = f"Cannot parse {value!r}"
        if location:
            message += f" at {', '.join(location)}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class UnsupportedFormatError(SalesAnalyticsError):
    """Raised when an input or output file format is not supported."""


class UnknownReportError(SalesAnalyticsError):
    """Raised when a report name is not registered."""
