"""
Sales Analytics Module
"""
from .reports import REPORTS, ReportDefinition, ReportResult, SalesAnalytics
from .formatters import OutputFormat, render, write_report

__all__ = [
    "REPORTS",
    "ReportDefinition",
    "ReportResult",
    "SalesAnalytics",
    "OutputFormat",
    "render",
    "write_report",
]
