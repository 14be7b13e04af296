"""
Anomaly Detection Module

Flags sales transactions whose total lies unusually far from the mean of
their group (by default the product line).

A transaction is a "High Anomaly" when total > mean + k * stddev and a
"Low Anomaly" when total < mean - k * stddev. Groups with a single
transaction have no standard deviation; it is taken as 0, so the strict
comparisons can never fire and every such row is "Normal".
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

import polars as pl
import structlog

from sales_analytics.data import schema

logger = structlog.get_logger(__name__)


class AnomalyStatus(str, Enum):
    """Classification of a single transaction"""
    HIGH = "High Anomaly"
    LOW = "Low Anomaly"
    NORMAL = "Normal"


@dataclass
class AnomalySummary:
    """Counts per status for one detection run"""
    started_at: datetime
    completed_at: datetime
    transactions_checked: int
    groups_checked: int
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def anomalies_found(self) -> int:
        return self.counts.get(AnomalyStatus.HIGH.value, 0) + self.counts.get(AnomalyStatus.LOW.value, 0)

    @property
    def has_anomalies(self) -> bool:
        return self.anomalies_found > 0


class AnomalyDetector:
    """
    Group-wise z-score anomaly detector for transaction totals.

    Example:
        detector = AnomalyDetector(stddev_factor=2.0)
        flagged = detector.detect(sales_df)
        summary = detector.summarize(flagged)
    """

    def __init__(
        self,
        stddev_factor: float = 2.0,
        ddof: int = 1,
        group_col: str = schema.PRODUCT_LINE,
        value_col: str = schema.TOTAL,
    ):
        if stddev_factor < 0:
            raise ValueError(f"stddev_factor must be non-negative, got {stddev_factor}")
        self.stddev_factor = stddev_factor
        self.ddof = ddof
        self.group_col = group_col
        self.value_col = value_col

    def baselines(self, df: pl.DataFrame) -> pl.DataFrame:
        """Mean and standard deviation of the value column per group"""
        return df.group_by(self.group_col).agg([
            pl.col(self.value_col).mean().alias("avg_sales"),
            pl.col(self.value_col).std(ddof=self.ddof).fill_null(0.0).alias("std_dev_sales"),
        ])

    def detect(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Classify every transaction against its group baseline.

        Returns:
            DataFrame with invoice id, group, value, avg_sales, std_dev_sales
            and anomaly_status, in input order.
        """
        band = pl.lit(self.stddev_factor) * pl.col("std_dev_sales")

        flagged = (
            df.select([schema.INVOICE_ID, self.group_col, self.value_col])
            .join(self.baselines(df), on=self.group_col, how="left", maintain_order="left")
            .with_columns(
                pl.when(pl.col(self.value_col) > pl.col("avg_sales") + band)
                .then(pl.lit(AnomalyStatus.HIGH.value))
                .when(pl.col(self.value_col) < pl.col("avg_sales") - band)
                .then(pl.lit(AnomalyStatus.LOW.value))
                .otherwise(pl.lit(AnomalyStatus.NORMAL.value))
                .alias("anomaly_status")
            )
        )

        logger.debug(
            f"Classified {len(flagged)} transactions",
            stddev_factor=self.stddev_factor,
            ddof=self.ddof,
        )
        return flagged

    def summarize(self, flagged: pl.DataFrame, started_at: Optional[datetime] = None) -> AnomalySummary:
        """Count transactions per status in a detect() result"""
        counts = {status.value: 0 for status in AnomalyStatus}
        for status, count in flagged.group_by("anomaly_status").len().iter_rows():
            counts[status] = count

        summary = AnomalySummary(
            started_at=started_at or datetime.now(),
            completed_at=datetime.now(),
            transactions_checked=len(flagged),
            groups_checked=flagged[self.group_col].n_unique() if len(flagged) else 0,
            counts=counts,
        )

        if summary.has_anomalies:
            logger.warning(
                f"Anomalies detected: {summary.anomalies_found}",
                high=counts[AnomalyStatus.HIGH.value],
                low=counts[AnomalyStatus.LOW.value],
            )
        else:
            logger.info(f"Anomaly detection complete: {len(flagged)} transactions normal")

        return summary
