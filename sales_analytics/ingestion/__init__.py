"""
Data Ingestion Module
"""
from .loader import FileFormat, LoadSummary, SalesLoader, SalesTable, load_sales

__all__ = [
    "FileFormat",
    "LoadSummary",
    "SalesLoader",
    "SalesTable",
    "load_sales",
]
