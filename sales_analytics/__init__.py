"""
Retail Sales Analytics

Analytical reports over a retail sales fact table: branch growth,
product-line profit, customer segments, anomalies, payment preferences,
repeat customers and more.
"""

from sales_analytics.analytics.reports import REPORTS, SalesAnalytics
from sales_analytics.ingestion.loader import SalesLoader, SalesTable, load_sales

__version__ = "1.0.0"

__all__ = [
    "REPORTS",
    "SalesAnalytics",
    "SalesLoader",
    "SalesTable",
    "load_sales",
    "__version__",
]
