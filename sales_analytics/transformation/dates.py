"""
Date Normalization

Parses the day-month-year text dates of the sales dataset into calendar
dates and derives the month bucket and weekday used for grouping. The
source mixes two- and four-digit years, so several formats are tried in
order.
"""

from datetime import date, datetime
from typing import List, Optional, Sequence
import re

import polars as pl
import structlog

from sales_analytics.data import schema
from sales_analytics.exceptions import ParseError

logger = structlog.get_logger(__name__)

DEFAULT_FORMATS = ("%d-%m-%Y", "%d-%m-%y")
MONTH_KEY_FORMAT = "%Y-%m"

_SEPARATORS = re.compile(r"[/.]")


class DateNormalizer:
    """
    Parses text dates under a configurable list of formats.

    Example:
        normalizer = DateNormalizer()
        normalizer.parse("05-01-19")       # date(2019, 1, 5)
        normalizer.parse("05/01/2019")     # date(2019, 1, 5)
        normalizer.month_key(date(2019, 1, 5))  # "2019-01"
    """

    def __init__(self, formats: Optional[Sequence[str]] = None):
        self.formats: List[str] = list(formats or DEFAULT_FORMATS)

    def try_parse(self, text: Optional[str]) -> Optional[date]:
        """Parse text, returning None when no format matches"""
        if text is None:
            return None

        value = _SEPARATORS.sub("-", str(text).strip())
        for fmt in self.formats:
            try:
                return datetime.strptime(value, fmt).date()
            except ValueError:
                continue
        return None

    def parse(self, text: Optional[str]) -> date:
        """Parse text or raise ParseError"""
        parsed = self.try_parse(text)
        if parsed is None:
            raise ParseError(
                text,
                column=schema.DATE,
                reason=f"expected one of {', '.join(self.formats)}",
            )
        return parsed

    @staticmethod
    def month_key(value: date) -> str:
        """Year-month bucket key, e.g. '2019-03'"""
        return value.strftime(MONTH_KEY_FORMAT)

    @staticmethod
    def weekday_name(value: date) -> str:
        """English day name, e.g. 'Saturday'"""
        return value.strftime("%A")

    def parse_column(
        self,
        df: pl.DataFrame,
        column: str = schema.DATE,
        output: Optional[str] = None,
    ) -> pl.DataFrame:
        """
        Parse a text date column.

        Each distinct raw value is parsed once and joined back, since a sales
        table holds far fewer distinct dates than rows. Unparsable text
        becomes null; the caller decides whether to drop or abort.
        """
        output = output or column
        dtype = df.schema[column]

        if dtype == pl.Date:
            return df if output == column else df.with_columns(pl.col(column).alias(output))
        if dtype == pl.Datetime:
            return df.with_columns(pl.col(column).dt.date().alias(output))

        raw = df[column].cast(pl.Utf8).unique().drop_nulls().to_list()
        lookup = pl.DataFrame(
            {
                "_date_raw": raw,
                "_date_parsed": [self.try_parse(value) for value in raw],
            },
            schema={"_date_raw": pl.Utf8, "_date_parsed": pl.Date},
        )

        parsed = (
            df.with_columns(pl.col(column).cast(pl.Utf8).alias("_date_raw"))
            .join(lookup, on="_date_raw", how="left", maintain_order="left")
            .drop("_date_raw")
        )
        if output == "_date_parsed":
            return parsed
        if output != column:
            return parsed.rename({"_date_parsed": output})
        return parsed.drop(column).rename({"_date_parsed": column}).select(df.columns)


def add_calendar_columns(df: pl.DataFrame, date_col: str = schema.DATE) -> pl.DataFrame:
    """Add the month bucket key and weekday name derived from a Date column"""
    return df.with_columns([
        pl.col(date_col).dt.strftime(MONTH_KEY_FORMAT).alias(schema.MONTH),
        pl.col(date_col).dt.strftime("%A").alias(schema.WEEKDAY),
    ])
