"""
Report Output Formatting

Renders report DataFrames as terminal tables, Markdown, CSV or JSON, and
writes them to stdout or a file.
"""

from enum import Enum
from pathlib import Path
from typing import Optional, TextIO, Union
import sys

import polars as pl
import structlog

from sales_analytics.exceptions import UnsupportedFormatError

logger = structlog.get_logger(__name__)


class OutputFormat(str, Enum):
    """Supported report output formats"""
    TABLE = "table"
    MARKDOWN = "markdown"
    CSV = "csv"
    JSON = "json"
    PARQUET = "parquet"


def _table_config(markdown: bool = False) -> pl.Config:
    options = dict(
        tbl_rows=-1,
        tbl_cols=-1,
        tbl_hide_dataframe_shape=True,
        tbl_hide_column_data_types=True,
        tbl_width_chars=1000,
        fmt_str_lengths=80,
        float_precision=2,
    )
    if markdown:
        options["tbl_formatting"] = "ASCII_MARKDOWN"
    return pl.Config(**options)


def render(frame: pl.DataFrame, output_format: Union[str, OutputFormat] = OutputFormat.TABLE, title: Optional[str] = None) -> str:
    """Render a report as text"""
    fmt = OutputFormat(output_format)

    if fmt == OutputFormat.TABLE:
        with _table_config():
            text = str(frame)
        return f"{title}\n{text}" if title else text

    if fmt == OutputFormat.MARKDOWN:
        with _table_config(markdown=True):
            text = str(frame)
        return f"## {title}\n\n{text}" if title else text

    if fmt == OutputFormat.CSV:
        return frame.write_csv()

    if fmt == OutputFormat.JSON:
        return frame.write_json()

    raise UnsupportedFormatError(f"{fmt.value} output can only be written to a file")


def write_report(
    frame: pl.DataFrame,
    output_format: Union[str, OutputFormat] = OutputFormat.TABLE,
    output: Optional[Union[str, Path]] = None,
    title: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> Optional[Path]:
    """
    Write a report to a file, or to stdout when no output path is given.

    Returns:
        The written file path, or None when writing to a stream
    """
    fmt = OutputFormat(output_format)

    if output is None:
        stream = stream or sys.stdout
        stream.write(render(frame, fmt, title=title).rstrip("\n") + "\n")
        return None

    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == OutputFormat.PARQUET:
        frame.write_parquet(path)
    elif fmt == OutputFormat.CSV:
        frame.write_csv(path)
    elif fmt == OutputFormat.JSON:
        frame.write_json(path)
    else:
        path.write_text(render(frame, fmt, title=title) + "\n", encoding="utf-8")

    logger.info(f"Written {len(frame)} rows to {path}", format=fmt.value)
    return path
