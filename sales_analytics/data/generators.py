"""
Synthetic Data Generator

Generates a realistic sales fact table in the layout of the published
dataset (same headers, day-month-year text dates mixing two- and
four-digit years) for testing and demos. Every generated row satisfies
the table invariants: total = cogs + gross income = unit price x quantity + tax.
"""

from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import polars as pl
import structlog
from faker import Faker

from sales_analytics.data.schema import RAW_HEADERS, SalesRecord

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

BRANCH_CITIES: Dict[str, str] = {
    "A": "Yangon",
    "B": "Mandalay",
    "C": "Naypyitaw",
}

PRODUCT_LINES = [
    "Electronic accessories",
    "Fashion accessories",
    "Food and beverages",
    "Health and beauty",
    "Home and lifestyle",
    "Sports and travel",
]

UNIT_PRICE_RANGE = (10.0, 100.0)

PAYMENT_METHODS = [
    ("Ewallet", 0.35),
    ("Cash", 0.34),
    ("Credit card", 0.31),
]

TAX_RATE = 0.05


class SalesDataGenerator:
    """
    Generate sales transactions.

    Example:
        generator = SalesDataGenerator(seed=42)
        df = generator.generate(1000)
        generator.write_csv("data/generated/sales.csv", n=1000)
    """

    def __init__(
        self,
        seed: Optional[int] = 42,
        n_customers: int = 200,
        start_date: date = date(2019, 1, 1),
        end_date: date = date(2019, 3, 31),
        two_digit_year_share: float = 0.5,
    ):
        self.fake = Faker()
        if seed is not None:
            self.fake.seed_instance(seed)
        self.rng = np.random.default_rng(seed)
        self.n_customers = n_customers
        self.start_date = start_date
        self.end_date = end_date
        self.two_digit_year_share = two_digit_year_share

    def _customers(self) -> List[Dict[str, str]]:
        """Customer pool with a fixed type and gender per customer"""
        return [
            {
                "customer_id": f"CUST-{i:05d}",
                "customer_type": str(self.rng.choice(["Member", "Normal"])),
                "gender": str(self.rng.choice(["Male", "Female"])),
            }
            for i in range(1, self.n_customers + 1)
        ]

    def records(self, n: int = 1000) -> List[SalesRecord]:
        """Generate n validated sales records"""
        customers = self._customers()
        branches = list(BRANCH_CITIES)
        methods = [m for m, _ in PAYMENT_METHODS]
        weights = [w for _, w in PAYMENT_METHODS]
        days = (self.end_date - self.start_date).days + 1

        records = []
        for _ in range(n):
            customer = customers[int(self.rng.integers(len(customers)))]
            branch = str(self.rng.choice(branches))
            product_line = PRODUCT_LINES[int(self.rng.integers(len(PRODUCT_LINES)))]

            unit_price = round(float(self.rng.uniform(*UNIT_PRICE_RANGE)), 2)
            quantity = int(self.rng.integers(1, 11))
            cogs = round(unit_price * quantity, 2)
            tax = round(cogs * TAX_RATE, 4)
            total = round(cogs + tax, 4)

            records.append(SalesRecord(
                invoice_id=self.fake.unique.bothify("###-##-####"),
                branch=branch,
                city=BRANCH_CITIES[branch],
                customer_id=customer["customer_id"],
                customer_type=customer["customer_type"],
                gender=customer["gender"],
                product_line=product_line,
                unit_price=unit_price,
                quantity=quantity,
                tax=tax,
                total=total,
                date=self.start_date + timedelta(days=int(self.rng.integers(days))),
                time=self.fake.time(pattern="%H:%M"),
                payment_method=str(self.rng.choice(methods, p=weights)),
                cogs=cogs,
                gross_margin_pct=round(TAX_RATE / (1 + TAX_RATE) * 100, 9),
                gross_income=round(total - cogs, 4),
                rating=round(float(self.rng.uniform(4.0, 10.0)), 1),
            ))

        return records

    def generate(self, n: int = 1000) -> pl.DataFrame:
        """Generate n rows with the raw dataset headers and text dates"""
        rows = [
            record.to_raw("%d-%m-%y" if self.rng.random() < self.two_digit_year_share else "%d-%m-%Y")
            for record in self.records(n)
        ]
        if rows:
            df = pl.DataFrame(rows)
        else:
            df = pl.DataFrame(schema={header: pl.Utf8 for header in RAW_HEADERS.values()})
        logger.info(f"Generated {len(df)} sales rows", customers=self.n_customers)
        return df.select(list(RAW_HEADERS.values()))

    def write_csv(self, output_path: Union[str, Path], n: int = 1000) -> Path:
        """Generate n rows and save them as CSV"""
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.generate(n).write_csv(path)
        logger.info(f"Written {n} rows to {path}")
        return path
