"""
Sales Fact Table Schema

Canonical column names for the denormalized sales table, the mapping from
the raw dataset headers, and the SalesRecord row model.
"""

import re
import datetime as dt
from typing import Dict, List, Optional

import polars as pl
from pydantic import BaseModel, Field


# =============================================================================
# COLUMNS
# =============================================================================

INVOICE_ID = "invoice_id"
BRANCH = "branch"
CITY = "city"
CUSTOMER_ID = "customer_id"
CUSTOMER_TYPE = "customer_type"
GENDER = "gender"
PRODUCT_LINE = "product_line"
UNIT_PRICE = "unit_price"
QUANTITY = "quantity"
TAX = "tax"
TOTAL = "total"
DATE = "date"
TIME = "time"
PAYMENT_METHOD = "payment_method"
COGS = "cogs"
GROSS_MARGIN_PCT = "gross_margin_pct"
GROSS_INCOME = "gross_income"
RATING = "rating"

# Derived at load time
MONTH = "month"
WEEKDAY = "weekday"

REQUIRED_COLUMNS: List[str] = [
    INVOICE_ID,
    BRANCH,
    CITY,
    CUSTOMER_ID,
    CUSTOMER_TYPE,
    GENDER,
    PRODUCT_LINE,
    TOTAL,
    DATE,
    PAYMENT_METHOD,
    COGS,
    GROSS_INCOME,
]

OPTIONAL_COLUMNS: List[str] = [
    UNIT_PRICE,
    QUANTITY,
    TAX,
    TIME,
    GROSS_MARGIN_PCT,
    RATING,
]

STRING_COLUMNS: List[str] = [
    INVOICE_ID,
    BRANCH,
    CITY,
    CUSTOMER_ID,
    CUSTOMER_TYPE,
    GENDER,
    PRODUCT_LINE,
    PAYMENT_METHOD,
    TIME,
]

NUMERIC_COLUMNS: List[str] = [
    UNIT_PRICE,
    QUANTITY,
    TAX,
    TOTAL,
    COGS,
    GROSS_MARGIN_PCT,
    GROSS_INCOME,
    RATING,
]

# Headers of the published dataset, keyed by canonical name
RAW_HEADERS: Dict[str, str] = {
    INVOICE_ID: "Invoice ID",
    BRANCH: "Branch",
    CITY: "City",
    CUSTOMER_ID: "Customer ID",
    CUSTOMER_TYPE: "Customer type",
    GENDER: "Gender",
    PRODUCT_LINE: "Product line",
    UNIT_PRICE: "Unit price",
    QUANTITY: "Quantity",
    TAX: "Tax 5%",
    TOTAL: "Total",
    DATE: "Date",
    TIME: "Time",
    PAYMENT_METHOD: "Payment",
    COGS: "cogs",
    GROSS_MARGIN_PCT: "gross margin percentage",
    GROSS_INCOME: "gross income",
    RATING: "Rating",
}

HEADER_ALIASES: Dict[str, str] = {
    "tax_5": TAX,
    "tax_5_pct": TAX,
    "payment": PAYMENT_METHOD,
    "gross_margin_percentage": GROSS_MARGIN_PCT,
}

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def normalize_column_name(name: str) -> str:
    """Map a raw header such as 'Tax 5%' or 'Customer ID' to its canonical name"""
    key = _NON_ALNUM.sub("_", name.strip().lower()).strip("_")
    return HEADER_ALIASES.get(key, key)


def normalize_headers(df: pl.DataFrame) -> pl.DataFrame:
    """Rename every column of a raw frame to its canonical name"""
    return df.rename({col: normalize_column_name(col) for col in df.columns})


def missing_columns(columns: List[str]) -> List[str]:
    """Required columns absent from the given column list"""
    present = set(columns)
    return [col for col in REQUIRED_COLUMNS if col not in present]


# =============================================================================
# ROW MODEL
# =============================================================================

class SalesRecord(BaseModel):
    """One row of the sales fact table"""

    invoice_id: str
    branch: str
    city: str
    customer_id: str
    customer_type: str
    gender: str
    product_line: str
    unit_price: Optional[float] = None
    quantity: Optional[float] = None
    tax: Optional[float] = None
    total: float
    date: dt.date
    time: Optional[str] = None
    payment_method: str
    cogs: float
    gross_margin_pct: Optional[float] = None
    gross_income: float
    rating: Optional[float] = Field(default=None, ge=0, le=10)

    def to_raw(self, date_format: str = "%d-%m-%Y") -> Dict[str, object]:
        """Row keyed by the published dataset headers, with a text date"""
        row = self.model_dump()
        row[DATE] = self.date.strftime(date_format)
        return {RAW_HEADERS[key]: value for key, value in row.items()}
