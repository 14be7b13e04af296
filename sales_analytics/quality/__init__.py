"""
Data Quality Module
"""
from .validators import DataValidator, ValidationResult, create_sales_validator
from .anomaly_detector import AnomalyDetector, AnomalyStatus, AnomalySummary

__all__ = [
    "DataValidator",
    "ValidationResult",
    "create_sales_validator",
    "AnomalyDetector",
    "AnomalyStatus",
    "AnomalySummary",
]
