"""
Sales Data Loader

Loads the sales fact table from CSV, JSON, NDJSON or Parquet files (or an
in-memory polars/pandas DataFrame) and turns it into a validated,
immutable SalesTable.

Pipeline:
1. Normalize headers to canonical column names
2. Check required columns (SchemaError, before anything else)
3. Trim strings, parse numeric and date fields
4. Handle unparsable rows per policy (skip and log, or abort)
5. Reject rows failing data quality checks
6. Add month and weekday columns
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union
import hashlib

import pandas as pd
import polars as pl
import structlog
from pydantic import BaseModel

from sales_analytics.config import Settings, get_settings
from sales_analytics.data import schema
from sales_analytics.data.schema import SalesRecord
from sales_analytics.exceptions import ParseError, SchemaError, UnsupportedFormatError
from sales_analytics.quality.validators import ERROR_COLUMN, DataValidator, create_sales_validator
from sales_analytics.transformation.dates import DateNormalizer, add_calendar_columns

logger = structlog.get_logger(__name__)

ROW_COLUMN = "_row"


class FileFormat(str, Enum):
    """Supported file formats"""
    CSV = "csv"
    JSON = "json"
    JSONL = "jsonl"
    PARQUET = "parquet"

    @classmethod
    def from_path(cls, path: Path) -> "FileFormat":
        suffix = path.suffix.lower().lstrip(".")
        aliases = {"ndjson": cls.JSONL, "pq": cls.PARQUET, "txt": cls.CSV}
        if suffix in aliases:
            return aliases[suffix]
        try:
            return cls(suffix)
        except ValueError:
            raise UnsupportedFormatError(f"Unsupported file format: {path.suffix or path.name}") from None


class LoadSummary(BaseModel):
    """Result of a load operation"""
    source: str
    file_hash: Optional[str] = None
    rows_read: int = 0
    rows_loaded: int = 0
    rows_rejected: int = 0
    parse_errors: int = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0


@dataclass(frozen=True)
class SalesTable:
    """
    The validated sales fact table.

    frame holds the rows every report aggregates; rejected holds the rows
    that failed parsing or validation (as text, with an _error_message).
    """
    frame: pl.DataFrame
    rejected: pl.DataFrame = field(default_factory=pl.DataFrame)
    summary: Optional[LoadSummary] = None

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def columns(self) -> List[str]:
        return self.frame.columns

    def iter_records(self) -> Iterator[SalesRecord]:
        """Iterate rows as SalesRecord models"""
        fields = set(SalesRecord.model_fields)
        for row in self.frame.iter_rows(named=True):
            yield SalesRecord(**{k: v for k, v in row.items() if k in fields})


class SalesLoader:
    """
    Loader for the sales fact table.

    Example:
        loader = SalesLoader()
        table = loader.load("data/WalmartSales.csv")
        print(table.summary.rows_loaded, len(table.rejected))
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        validator: Optional[DataValidator] = None,
        parse_error_policy: Optional[str] = None,
    ):
        self.settings = settings or get_settings()
        self.validator = validator or create_sales_validator(self.settings)
        self.normalizer = DateNormalizer(self.settings.data.date_formats)
        self.parse_error_policy = (parse_error_policy or self.settings.data.parse_error_policy).lower()
        if self.parse_error_policy not in ("skip", "abort"):
            raise ValueError(f"Unknown parse error policy: {self.parse_error_policy}")

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def _compute_file_hash(self, file_path: Path) -> str:
        """Compute MD5 hash of file"""
        hash_md5 = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    def _read_file(self, file_path: Path, file_format: FileFormat) -> pl.DataFrame:
        """Read file based on format"""
        if file_format == FileFormat.CSV:
            # Everything as text; parsing is done row-aware below
            return pl.read_csv(
                file_path,
                infer_schema_length=0,
                null_values=self.settings.data.null_values,
            )
        if file_format == FileFormat.JSON:
            return pl.read_json(file_path)
        if file_format == FileFormat.JSONL:
            return pl.read_ndjson(file_path)
        if file_format == FileFormat.PARQUET:
            return pl.read_parquet(file_path)
        raise UnsupportedFormatError(f"Unsupported file format: {file_format}")

    def load(
        self,
        file_path: Union[str, Path],
        file_format: Optional[FileFormat] = None,
    ) -> SalesTable:
        """
        Load and validate a sales file.

        Raises:
            FileNotFoundError: file does not exist
            UnsupportedFormatError: unknown file suffix
            SchemaError: required columns missing
            ParseError: unparsable field with the abort policy
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        file_format = file_format or FileFormat.from_path(path)
        logger.info("Starting sales load", file=str(path), format=file_format.value)

        raw = self._read_file(path, file_format)
        return self._build(raw, source=str(path), file_hash=self._compute_file_hash(path))

    def load_frame(
        self,
        frame: Union[pl.DataFrame, pd.DataFrame],
        source: str = "<dataframe>",
    ) -> SalesTable:
        """Load and validate an in-memory polars or pandas DataFrame"""
        if isinstance(frame, pd.DataFrame):
            frame = pl.from_pandas(frame)
        return self._build(frame, source=source)

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------

    def _prepare(self, raw: pl.DataFrame) -> pl.DataFrame:
        """Canonical headers, schema check and trimmed strings"""
        df = schema.normalize_headers(raw)

        missing = schema.missing_columns(df.columns)
        if missing:
            raise SchemaError(missing, available=df.columns)

        string_cols = [col for col, dtype in df.schema.items() if dtype == pl.Utf8]
        return df.with_columns([
            pl.col(col).str.strip_chars() for col in string_cols
        ]).with_row_index(ROW_COLUMN, offset=1)

    def _parse(self, df: pl.DataFrame) -> Tuple[pl.DataFrame, pl.DataFrame]:
        """
        Parse numeric and date fields.

        Returns:
            (parsed rows, text rows that failed parsing with an _error_message)
        """
        numeric_cols = [col for col in schema.NUMERIC_COLUMNS if col in df.columns]
        failures: List[pl.Expr] = []

        parsed = self.normalizer.parse_column(df, schema.DATE, output="_date_parsed")
        date_text = pl.col(schema.DATE).cast(pl.Utf8)
        failures.append(
            pl.when(pl.col(schema.DATE).is_not_null() & pl.col("_date_parsed").is_null())
            .then(pl.format("cannot parse {} '{}'", pl.lit(schema.DATE), date_text))
        )

        conversions = []
        for col in numeric_cols:
            text = pl.col(col).cast(pl.Utf8).str.strip_chars()
            number = text.cast(pl.Float64, strict=False)
            conversions.append(number.alias(f"_{col}_parsed"))
            failures.append(
                pl.when(text.is_not_null() & (text != "") & number.is_null())
                .then(pl.format("cannot parse {} '{}'", pl.lit(col), text))
            )

        parsed = parsed.with_columns(conversions).with_columns(
            pl.concat_str(failures, separator="; ", ignore_nulls=True).alias(ERROR_COLUMN)
        ).with_columns(
            pl.when(pl.col(ERROR_COLUMN) == "")
            .then(pl.lit(None, dtype=pl.Utf8))
            .otherwise(pl.col(ERROR_COLUMN))
            .alias(ERROR_COLUMN)
        )

        bad = parsed.filter(pl.col(ERROR_COLUMN).is_not_null())
        if len(bad):
            self._handle_parse_failures(df, bad, numeric_cols)

        good = parsed.filter(pl.col(ERROR_COLUMN).is_null()).with_columns(
            [pl.col(f"_{col}_parsed").alias(col) for col in numeric_cols]
            + [pl.col("_date_parsed").alias(schema.DATE)]
        ).drop([f"_{col}_parsed" for col in numeric_cols] + ["_date_parsed", ERROR_COLUMN])

        rejected = df.join(
            bad.select([ROW_COLUMN, ERROR_COLUMN]), on=ROW_COLUMN, how="inner", maintain_order="left"
        )
        return good, rejected

    def _handle_parse_failures(
        self,
        df: pl.DataFrame,
        bad: pl.DataFrame,
        numeric_cols: List[str],
    ) -> None:
        """Abort on the first unparsable row, or log every skipped one"""
        if self.parse_error_policy == "abort":
            row = bad.row(0, named=True)
            for col in [schema.DATE] + numeric_cols:
                text = row[col]
                if col == schema.DATE:
                    failed = text is not None and row["_date_parsed"] is None
                else:
                    failed = text is not None and str(text).strip() != "" and row[f"_{col}_parsed"] is None
                if failed:
                    raise ParseError(
                        text,
                        column=col,
                        row=row[ROW_COLUMN],
                        invoice_id=row.get(schema.INVOICE_ID),
                    )
            raise ParseError(row[ERROR_COLUMN], row=row[ROW_COLUMN], invoice_id=row.get(schema.INVOICE_ID))

        for row in bad.select([ROW_COLUMN, schema.INVOICE_ID, ERROR_COLUMN]).iter_rows(named=True):
            logger.warning(
                "Skipping unparsable row",
                row=row[ROW_COLUMN],
                invoice_id=row[schema.INVOICE_ID],
                error=row[ERROR_COLUMN],
            )

    def _as_text(self, df: pl.DataFrame) -> pl.DataFrame:
        return df.with_columns([pl.col(col).cast(pl.Utf8) for col in df.columns if col != ROW_COLUMN])

    def _order_columns(self, df: pl.DataFrame) -> pl.DataFrame:
        known = [col for col in schema.RAW_HEADERS if col in df.columns]
        extra = [col for col in df.columns if col not in known]
        return df.select(known + extra)

    def _build(
        self,
        raw: pl.DataFrame,
        source: str,
        file_hash: Optional[str] = None,
    ) -> SalesTable:
        started_at = datetime.now()

        df = self._prepare(raw)
        parsed, parse_rejected = self._parse(df)
        valid, invalid = self.validator.split(parsed)

        rejected = pl.concat(
            [self._as_text(parse_rejected), self._as_text(invalid)],
            how="diagonal",
        ).sort(ROW_COLUMN)

        frame = self._order_columns(add_calendar_columns(valid.drop(ROW_COLUMN)))

        completed_at = datetime.now()
        summary = LoadSummary(
            source=source,
            file_hash=file_hash,
            rows_read=len(raw),
            rows_loaded=len(frame),
            rows_rejected=len(rejected),
            parse_errors=len(parse_rejected),
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
        )

        if len(rejected) and self.settings.data.dead_letter_path:
            self._write_to_dead_letter(rejected, source)

        logger.info(
            "Sales load complete",
            source=source,
            rows_read=summary.rows_read,
            rows_loaded=summary.rows_loaded,
            rows_rejected=summary.rows_rejected,
        )

        return SalesTable(frame=frame, rejected=rejected, summary=summary)

    def _write_to_dead_letter(self, rejected: pl.DataFrame, source: str) -> Path:
        """Write rejected rows to the dead letter directory"""
        dead_letter_path = Path(self.settings.data.dead_letter_path)
        dead_letter_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        stem = Path(source).stem.strip("<>") or "dataframe"
        dead_letter_file = dead_letter_path / f"{stem}_{timestamp}.parquet"

        rejected.with_columns(
            pl.lit(datetime.now()).alias("_failed_at"),
        ).write_parquet(dead_letter_file)

        logger.warning(
            "Written rejected rows to dead letter directory",
            file=str(dead_letter_file),
            records=len(rejected),
        )
        return dead_letter_file


def load_sales(
    file_path: Union[str, Path],
    settings: Optional[Settings] = None,
    parse_error_policy: Optional[str] = None,
) -> SalesTable:
    """Convenience function: load and validate a sales file"""
    return SalesLoader(settings=settings, parse_error_policy=parse_error_policy).load(file_path)
