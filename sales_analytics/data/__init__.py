"""
Sales Data Module
"""
from . import schema
from .schema import SalesRecord
from .generators import SalesDataGenerator

__all__ = [
    "schema",
    "SalesRecord",
    "SalesDataGenerator",
]
