"""
Test Suite Configuration
"""
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List

import polars as pl
import pytest

from sales_analytics.config import Settings
from sales_analytics.data import schema
from sales_analytics.data.generators import BRANCH_CITIES, SalesDataGenerator

BASE_DATE = date(2019, 1, 1)

SALES_SCHEMA = {
    schema.INVOICE_ID: pl.Utf8,
    schema.BRANCH: pl.Utf8,
    schema.CITY: pl.Utf8,
    schema.CUSTOMER_ID: pl.Utf8,
    schema.CUSTOMER_TYPE: pl.Utf8,
    schema.GENDER: pl.Utf8,
    schema.PRODUCT_LINE: pl.Utf8,
    schema.UNIT_PRICE: pl.Float64,
    schema.QUANTITY: pl.Float64,
    schema.TAX: pl.Float64,
    schema.TOTAL: pl.Float64,
    schema.DATE: pl.Date,
    schema.PAYMENT_METHOD: pl.Utf8,
    schema.COGS: pl.Float64,
    schema.GROSS_INCOME: pl.Float64,
}


def _sale(i: int, row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fill a partial sale with defaults that satisfy the table invariants.

    Give either total alone (split 100 / 5 into cogs and tax) or cogs and
    gross_income; unit price x 1 = cogs and tax = gross income.
    """
    row = dict(row)
    if "day" in row:
        row[schema.DATE] = BASE_DATE + timedelta(days=row.pop("day") - 1)

    if schema.COGS in row and schema.GROSS_INCOME in row:
        row[schema.TOTAL] = row[schema.COGS] + row[schema.GROSS_INCOME]
    else:
        total = row.get(schema.TOTAL, 105.0)
        row[schema.TOTAL] = total
        row[schema.COGS] = total / 1.05
        row[schema.GROSS_INCOME] = total - row[schema.COGS]

    branch = row.get(schema.BRANCH, "A")
    defaults = {
        schema.INVOICE_ID: f"INV-{i:05d}",
        schema.BRANCH: branch,
        schema.CITY: BRANCH_CITIES.get(branch, "Yangon"),
        schema.CUSTOMER_ID: "CUST-00001",
        schema.CUSTOMER_TYPE: "Member",
        schema.GENDER: "Female",
        schema.PRODUCT_LINE: "Health and beauty",
        schema.UNIT_PRICE: row[schema.COGS],
        schema.QUANTITY: 1.0,
        schema.TAX: row[schema.GROSS_INCOME],
        schema.DATE: BASE_DATE,
        schema.PAYMENT_METHOD: "Cash",
    }
    return {**defaults, **row}


def build_sales(rows: List[Dict[str, Any]]) -> pl.DataFrame:
    """Parsed sales fact table from partial rows"""
    return pl.DataFrame(
        [_sale(i, row) for i, row in enumerate(rows, start=1)],
        schema=SALES_SCHEMA,
    )


def raw_row(i: int = 1, **overrides: str) -> Dict[str, str]:
    """One valid row in the published dataset layout, all values as text"""
    row = {
        "Invoice ID": f"750-67-{i:04d}",
        "Branch": "A",
        "City": "Yangon",
        "Customer ID": "CUST-00001",
        "Customer type": "Member",
        "Gender": "Female",
        "Product line": "Health and beauty",
        "Unit price": "74.69",
        "Quantity": "7",
        "Tax 5%": "26.1415",
        "Total": "548.9715",
        "Date": "05-01-2019",
        "Time": "13:08",
        "Payment": "Ewallet",
        "cogs": "522.83",
        "gross margin percentage": "4.761904762",
        "gross income": "26.1415",
        "Rating": "9.1",
    }
    row.update(overrides)
    return row


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(app_env="testing")


@pytest.fixture
def make_sales() -> Callable[[List[Dict[str, Any]]], pl.DataFrame]:
    """Factory for small hand-built sales tables"""
    return build_sales


@pytest.fixture
def make_raw_row() -> Callable[..., Dict[str, str]]:
    """Factory for raw rows with overridden fields"""
    return raw_row


@pytest.fixture
def raw_rows() -> List[Dict[str, str]]:
    """Three valid raw rows for two customers"""
    return [
        raw_row(1),
        raw_row(2, **{"Date": "12-02-19", "Customer ID": "CUST-00002", "Payment": "Cash"}),
        raw_row(3, **{"Date": "03/03/2019", "Branch": "B", "City": "Mandalay"}),
    ]


@pytest.fixture
def write_raw_csv(tmp_path: Path) -> Callable[[List[Dict[str, str]]], Path]:
    """Write raw rows as a CSV file and return its path"""
    def _write(rows: List[Dict[str, str]], name: str = "sales.csv") -> Path:
        path = tmp_path / name
        pl.DataFrame(rows).write_csv(path)
        return path

    return _write


@pytest.fixture
def generated_csv(tmp_path: Path) -> Path:
    """A generated 300-row dataset on disk"""
    return SalesDataGenerator(seed=7, n_customers=40).write_csv(tmp_path / "generated.csv", n=300)


@pytest.fixture
def sample_sales_df() -> pl.DataFrame:
    """Sales table over two branches, two months and three customers"""
    return build_sales([
        {schema.BRANCH: "A", "day": 1, schema.TOTAL: 100.0, schema.CUSTOMER_ID: "CUST-00001"},
        {schema.BRANCH: "A", "day": 35, schema.TOTAL: 150.0, schema.CUSTOMER_ID: "CUST-00001"},
        {schema.BRANCH: "B", "day": 2, schema.TOTAL: 200.0, schema.CUSTOMER_ID: "CUST-00002",
         schema.GENDER: "Male", schema.PAYMENT_METHOD: "Ewallet"},
        {schema.BRANCH: "B", "day": 40, schema.TOTAL: 210.0, schema.CUSTOMER_ID: "CUST-00003",
         schema.CUSTOMER_TYPE: "Normal", schema.PRODUCT_LINE: "Sports and travel"},
    ])
