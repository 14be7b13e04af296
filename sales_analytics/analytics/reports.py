"""
Sales Reports

The analytics engine: one method per report over the immutable sales fact
table. Reports are independent of each other; each reads the table,
groups/ranks it and returns a new result DataFrame.

Reports:
- Branch growth: month-over-month sales growth per branch
- Product-line profit per branch
- Customer spend segments (High / Medium / Low)
- Transaction anomalies per product line
- Most popular payment method per city
- Monthly sales by gender
- Top product line per customer type
- Repeat customers
- Top customers by spend
- Sales by weekday
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

import pandas as pd
import polars as pl
import structlog

from sales_analytics.analytics import primitives
from sales_analytics.config import Settings, get_settings
from sales_analytics.data import schema
from sales_analytics.exceptions import UnknownReportError
from sales_analytics.ingestion.loader import SalesLoader, SalesTable
from sales_analytics.quality.anomaly_detector import AnomalyDetector, AnomalyStatus, AnomalySummary
from sales_analytics.transformation.dates import add_calendar_columns

logger = structlog.get_logger(__name__)

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


@dataclass
class ReportResult:
    """Result of a single report run"""
    name: str
    frame: pl.DataFrame
    started_at: datetime
    completed_at: datetime

    @property
    def row_count(self) -> int:
        return len(self.frame)

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def is_empty(self) -> bool:
        return self.frame.is_empty()


class SalesAnalytics:
    """
    Analytics engine over the sales fact table.

    Holds nothing but the table and the report settings; every method is a
    pure function of the table.

    Example:
        table = load_sales("WalmartSales.csv")
        analytics = SalesAnalytics(table)
        analytics.top_branch_growth()
        analytics.run("anomalies", stddev_factor=3)
    """

    def __init__(
        self,
        table: Union[SalesTable, pl.DataFrame, pd.DataFrame],
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        if isinstance(table, SalesTable):
            self.table = table.frame
        else:
            # Bare frames go through the same checks as files
            self.table = SalesLoader(settings=self.settings).load_frame(table).frame

        if schema.MONTH not in self.table.columns or schema.WEEKDAY not in self.table.columns:
            self.table = add_calendar_columns(self.table)

    # =========================================================================
    # Branch growth
    # =========================================================================

    def monthly_branch_growth(self) -> pl.DataFrame:
        """
        Total sales per branch and month with month-over-month growth (%).

        The first month of each branch, and any month following a zero
        total, has a null growth rate.
        """
        monthly = primitives.grouped_sum(
            self.table, [schema.BRANCH, schema.MONTH], schema.TOTAL, "total_sales"
        )
        return primitives.with_growth_rate(
            monthly,
            partition=schema.BRANCH,
            order_by=schema.MONTH,
            value="total_sales",
        )

    def top_branch_growth(self) -> pl.DataFrame:
        """The (branch, month) with the highest growth rate; earliest month wins ties"""
        return (
            self.monthly_branch_growth()
            .filter(pl.col("growth_rate").is_not_null())
            .sort(
                ["growth_rate", schema.MONTH, schema.BRANCH],
                descending=[True, False, False],
            )
            .head(1)
        )

    # =========================================================================
    # Product-line profit
    # =========================================================================

    def product_line_profit(self) -> pl.DataFrame:
        """Profit (gross income minus cogs) per branch and product line"""
        return (
            self.table.group_by([schema.BRANCH, schema.PRODUCT_LINE])
            .agg((pl.col(schema.GROSS_INCOME).sum() - pl.col(schema.COGS).sum()).alias("profit"))
            .sort([schema.BRANCH, schema.PRODUCT_LINE])
        )

    def top_product_line_by_branch(self) -> pl.DataFrame:
        """Most profitable product line of each branch; ties go to the first name"""
        return primitives.top_per_partition(
            self.product_line_profit(),
            partition=schema.BRANCH,
            order_by="profit",
            tie_break=schema.PRODUCT_LINE,
        )

    # =========================================================================
    # Customer segments
    # =========================================================================

    def customer_segments(self, percentile_method: Optional[str] = None) -> pl.DataFrame:
        """
        Spending tier of every customer.

        spending_percentile is the fraction of customers spending at most as
        much (or SQL PERCENT_RANK with method "percent_rank"). Tiers:
        >= high threshold High, >= medium threshold Medium, else Low.
        """
        report = self.settings.report
        method = percentile_method or report.percentile_method

        spending = primitives.grouped_sum(
            self.table, schema.CUSTOMER_ID, schema.TOTAL, "total_spending"
        )
        return (
            spending.with_columns(
                primitives.percentile_rank("total_spending", method).alias("spending_percentile")
            )
            .with_columns(
                primitives.assign_tier(
                    "spending_percentile",
                    high_threshold=report.high_tier_threshold,
                    medium_threshold=report.medium_tier_threshold,
                ).alias("spending_tier")
            )
            .sort(["total_spending", schema.CUSTOMER_ID], descending=[True, False])
        )

    # =========================================================================
    # Anomalies
    # =========================================================================

    def _anomaly_detector(self, stddev_factor: Optional[float] = None) -> AnomalyDetector:
        report = self.settings.report
        return AnomalyDetector(
            stddev_factor=report.anomaly_stddev_factor if stddev_factor is None else stddev_factor,
            ddof=report.anomaly_ddof,
        )

    def anomalies(
        self,
        stddev_factor: Optional[float] = None,
        only_anomalies: bool = False,
    ) -> pl.DataFrame:
        """Every transaction classified against its product line's mean and stddev"""
        flagged = self._anomaly_detector(stddev_factor).detect(self.table)
        if only_anomalies:
            flagged = flagged.filter(pl.col("anomaly_status") != AnomalyStatus.NORMAL.value)
        return flagged

    def anomaly_summary(self, stddev_factor: Optional[float] = None) -> AnomalySummary:
        started_at = datetime.now()
        detector = self._anomaly_detector(stddev_factor)
        return detector.summarize(detector.detect(self.table), started_at=started_at)

    # =========================================================================
    # Payment methods
    # =========================================================================

    def payment_method_counts(self) -> pl.DataFrame:
        """Transactions per city and payment method"""
        return primitives.grouped_count(
            self.table, [schema.CITY, schema.PAYMENT_METHOD], "method_count"
        )

    def top_payment_by_city(self) -> pl.DataFrame:
        """Most used payment method per city; ties go to the alphabetically first method"""
        return primitives.top_per_partition(
            self.payment_method_counts(),
            partition=schema.CITY,
            order_by="method_count",
            tie_break=schema.PAYMENT_METHOD,
        )

    # =========================================================================
    # Gender / month
    # =========================================================================

    def monthly_sales_by_gender(self) -> pl.DataFrame:
        return primitives.grouped_sum(
            self.table, [schema.MONTH, schema.GENDER], schema.TOTAL, "total_sales"
        )

    # =========================================================================
    # Customer type preference
    # =========================================================================

    def top_product_line_by_customer_type(self) -> pl.DataFrame:
        """Highest-revenue product line for each customer type"""
        sales = primitives.grouped_sum(
            self.table, [schema.CUSTOMER_TYPE, schema.PRODUCT_LINE], schema.TOTAL, "total_sales"
        )
        return primitives.top_per_partition(
            sales,
            partition=schema.CUSTOMER_TYPE,
            order_by="total_sales",
            tie_break=schema.PRODUCT_LINE,
        )

    # =========================================================================
    # Repeat customers
    # =========================================================================

    def repeat_customers(
        self,
        window_days: Optional[int] = None,
        mode: Optional[str] = None,
    ) -> pl.DataFrame:
        """
        Customers who came back.

        mode "pairs": ordered purchase pairs of the same customer where the
        later purchase is strictly after, and at most window_days after, the
        earlier one. Customers without such a pair are excluded.

        mode "purchases": customers with at least two purchases.

        Columns: customer_id, first_purchase_date, second_purchase_date,
        purchase_frequency.
        """
        report = self.settings.report
        window_days = report.repeat_window_days if window_days is None else window_days
        mode = (mode or report.repeat_mode).lower()

        if mode == "pairs":
            return self._repeat_customer_pairs(window_days)
        if mode == "purchases":
            return self._repeat_customer_purchases()
        raise ValueError(f"Unknown repeat customer mode: {mode}")

    def _repeat_customer_pairs(self, window_days: int) -> pl.DataFrame:
        purchases = self.table.select([schema.CUSTOMER_ID, schema.DATE])

        pairs = (
            purchases.join(purchases, on=schema.CUSTOMER_ID, how="inner", suffix="_later")
            .filter(
                (pl.col(f"{schema.DATE}_later") > pl.col(schema.DATE))
                & ((pl.col(f"{schema.DATE}_later") - pl.col(schema.DATE)).dt.total_days() <= window_days)
            )
        )

        return (
            pairs.group_by(schema.CUSTOMER_ID)
            .agg([
                pl.col(schema.DATE).min().alias("first_purchase_date"),
                pl.col(f"{schema.DATE}_later").min().alias("second_purchase_date"),
                pl.len().cast(pl.Int64).alias("purchase_frequency"),
            ])
            .sort(schema.CUSTOMER_ID)
        )

    def _repeat_customer_purchases(self) -> pl.DataFrame:
        return (
            self.table.group_by(schema.CUSTOMER_ID)
            .agg([
                pl.col(schema.DATE).min().alias("first_purchase_date"),
                pl.col(schema.DATE).sort().head(2).max().alias("second_purchase_date"),
                pl.len().cast(pl.Int64).alias("purchase_frequency"),
            ])
            .filter(pl.col("purchase_frequency") >= 2)
            .sort(schema.CUSTOMER_ID)
        )

    # =========================================================================
    # Top customers / weekdays
    # =========================================================================

    def top_customers(self, n: Optional[int] = None) -> pl.DataFrame:
        """Customers with the highest total spend; ties by customer id"""
        n = self.settings.report.top_customers_n if n is None else n
        if n < 0:
            raise ValueError(f"n must be non-negative, got {n}")
        return (
            primitives.grouped_sum(self.table, schema.CUSTOMER_ID, schema.TOTAL, "total_sales")
            .sort(["total_sales", schema.CUSTOMER_ID], descending=[True, False])
            .head(n)
        )

    def weekday_sales(self) -> pl.DataFrame:
        """Total sales per weekday, highest first; ties in calendar order"""
        return (
            primitives.grouped_sum(self.table, schema.WEEKDAY, schema.TOTAL, "total_sales")
            .with_columns(
                pl.col(schema.WEEKDAY)
                .replace_strict(WEEKDAYS, list(range(len(WEEKDAYS))), default=len(WEEKDAYS))
                .alias("_weekday_order")
            )
            .sort(["total_sales", "_weekday_order"], descending=[True, False])
            .drop("_weekday_order")
        )

    # =========================================================================
    # Orchestration
    # =========================================================================

    def run(self, name: str, **options) -> ReportResult:
        """Run a registered report by name"""
        report = REPORTS.get(name)
        if report is None:
            raise UnknownReportError(
                f"Unknown report: {name}. Available: {', '.join(sorted(REPORTS))}"
            )

        started_at = datetime.now()
        frame = report.compute(self, **options)
        result = ReportResult(
            name=name,
            frame=frame,
            started_at=started_at,
            completed_at=datetime.now(),
        )

        if result.is_empty:
            logger.info(f"Report {name} produced no rows")
        else:
            logger.info(
                f"Report {name} complete",
                rows=result.row_count,
                duration_seconds=round(result.duration_seconds, 4),
            )
        return result

    def run_all(self) -> Dict[str, ReportResult]:
        """Run every registered report with default options"""
        return {name: self.run(name) for name in REPORTS}


@dataclass(frozen=True)
class ReportDefinition:
    """A named report and the engine method computing it"""
    name: str
    description: str
    compute: Callable[..., pl.DataFrame]


def _definitions() -> List[ReportDefinition]:
    return [
        ReportDefinition(
            "branch-growth",
            "Branch and month with the highest month-over-month sales growth",
            lambda engine, all_months=False: (
                engine.monthly_branch_growth() if all_months else engine.top_branch_growth()
            ),
        ),
        ReportDefinition(
            "product-profit",
            "Most profitable product line per branch",
            lambda engine, all_lines=False: (
                engine.product_line_profit() if all_lines else engine.top_product_line_by_branch()
            ),
        ),
        ReportDefinition(
            "customer-segments",
            "High / Medium / Low spending tiers",
            SalesAnalytics.customer_segments,
        ),
        ReportDefinition(
            "anomalies",
            "Transactions far from their product line mean",
            SalesAnalytics.anomalies,
        ),
        ReportDefinition(
            "payment-by-city",
            "Most popular payment method per city",
            SalesAnalytics.top_payment_by_city,
        ),
        ReportDefinition(
            "gender-monthly",
            "Monthly sales by gender",
            SalesAnalytics.monthly_sales_by_gender,
        ),
        ReportDefinition(
            "customer-type-preference",
            "Top product line per customer type",
            SalesAnalytics.top_product_line_by_customer_type,
        ),
        ReportDefinition(
            "repeat-customers",
            "Customers purchasing again within the repeat window",
            SalesAnalytics.repeat_customers,
        ),
        ReportDefinition(
            "top-customers",
            "Top customers by total spend",
            SalesAnalytics.top_customers,
        ),
        ReportDefinition(
            "weekday-sales",
            "Total sales by day of the week",
            SalesAnalytics.weekday_sales,
        ),
    ]


REPORTS: Dict[str, ReportDefinition] = {d.name: d for d in _definitions()}
