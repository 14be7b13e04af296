"""
Data Transformation Module
"""
from .dates import DateNormalizer, add_calendar_columns

__all__ = [
    "DateNormalizer",
    "add_calendar_columns",
]
