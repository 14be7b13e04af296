"""
Aggregation Primitives

Grouped sums, row-number style "top per partition" selection, lag-based
growth rates and percentile ranks shared by the reports. All functions
take and return polars DataFrames and never mutate their input.
"""

from typing import List, Optional, Sequence, Union

import polars as pl

Columns = Union[str, Sequence[str]]


def _as_list(columns: Columns) -> List[str]:
    return [columns] if isinstance(columns, str) else list(columns)


def grouped_sum(
    df: pl.DataFrame,
    by: Columns,
    value: str,
    alias: str,
) -> pl.DataFrame:
    """Sum a value column per group, sorted by the group keys"""
    keys = _as_list(by)
    return (
        df.group_by(keys)
        .agg(pl.col(value).sum().alias(alias))
        .sort(keys)
    )


def grouped_count(df: pl.DataFrame, by: Columns, alias: str) -> pl.DataFrame:
    """Count rows per group, sorted by the group keys"""
    keys = _as_list(by)
    return (
        df.group_by(keys)
        .agg(pl.len().cast(pl.Int64).alias(alias))
        .sort(keys)
    )


def top_per_partition(
    df: pl.DataFrame,
    partition: Columns,
    order_by: str,
    tie_break: Columns,
    descending: bool = True,
) -> pl.DataFrame:
    """
    Keep the first row of each partition, like ROW_NUMBER() ... WHERE rn = 1.

    Rows are ordered by order_by (descending by default) and then by the
    tie_break columns ascending, so the winner is deterministic.
    """
    keys = _as_list(partition)
    ties = _as_list(tie_break)
    ranked = df.sort(
        keys + [order_by] + ties,
        descending=[False] * len(keys) + [descending] + [False] * len(ties),
    )
    return (
        ranked.filter(pl.int_range(pl.len()).over(keys) == 0)
        .sort(keys)
    )


def with_growth_rate(
    df: pl.DataFrame,
    partition: Columns,
    order_by: str,
    value: str,
    alias: str = "growth_rate",
) -> pl.DataFrame:
    """
    Percentage change against the previous row of the same partition.

    The first row of a partition has no previous value, and a previous
    value of zero has no defined rate; both get a null growth rate.
    """
    keys = _as_list(partition)
    previous = pl.col(value).shift(1).over(keys)

    return (
        df.sort(keys + [order_by])
        .with_columns(previous.alias("_previous"))
        .with_columns(
            pl.when(pl.col("_previous").is_null() | (pl.col("_previous") == 0))
            .then(pl.lit(None, dtype=pl.Float64))
            .otherwise((pl.col(value) - pl.col("_previous")) / pl.col("_previous") * 100)
            .alias(alias)
        )
        .drop("_previous")
    )


def percentile_rank(column: str, method: str = "weak") -> pl.Expr:
    """
    Percentile rank of each value within the whole column.

    Methods:
        weak: fraction of values <= this value (k / n)
        percent_rank: (rank - 1) / (n - 1) with minimum rank for ties,
            0 when there is a single value, as SQL PERCENT_RANK()
    """
    n = pl.len()
    if method == "weak":
        return pl.col(column).rank("max") / n
    if method == "percent_rank":
        return (
            pl.when(n > 1)
            .then((pl.col(column).rank("min") - 1) / (n - 1))
            .otherwise(pl.lit(0.0))
        )
    raise ValueError(f"Unknown percentile method: {method}")


def assign_tier(
    column: str,
    high_threshold: float,
    medium_threshold: float,
    labels: Optional[Sequence[str]] = None,
) -> pl.Expr:
    """Map a percentile to High / Medium / Low; thresholds are inclusive"""
    high, medium, low = labels or ("High", "Medium", "Low")
    return (
        pl.when(pl.col(column) >= high_threshold)
        .then(pl.lit(high))
        .when(pl.col(column) >= medium_threshold)
        .then(pl.lit(medium))
        .otherwise(pl.lit(low))
    )
