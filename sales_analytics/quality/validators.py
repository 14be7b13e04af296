"""
Data Validation Module

Rule-based data quality checks for the sales fact table.

Every check is a row-level rule: it knows which rows fail, so the same
validator both summarizes a table (validate) and separates the rows that
must not reach any aggregate (split).

Features:
- Null checks
- Uniqueness checks
- Range checks
- Allowed-value checks
- Custom row expressions (e.g. total reconciliation)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import polars as pl
import structlog

from sales_analytics.config import Settings, get_settings
from sales_analytics.data import schema

logger = structlog.get_logger(__name__)

ERROR_COLUMN = "_error_message"


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Row is rejected
    WARNING = "warning"  # Logged, row is kept
    INFO = "info"  # Informational only


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    @property
    def failed(self) -> List[ValidationCheck]:
        return [c for c in self.checks if not c.passed]


@dataclass
class _RowRule:
    name: str
    columns: Tuple[str, ...]
    failing: pl.Expr
    message: str
    severity: ValidationSeverity
    skip_if_missing: bool = False
    details: Dict[str, Any] = field(default_factory=dict)


class DataValidator:
    """
    Data validator with a chainable check suite.

    Example:
        validator = DataValidator()
        validator.add_not_null_check("customer_id")
        validator.add_enum_check("gender", ["Male", "Female"])
        result = validator.validate(df)
        valid, rejected = validator.split(df)
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # Fail on any warning
        self._rules: List[_RowRule] = []

    def reset(self) -> None:
        """Reset validator state"""
        self._rules = []

    @property
    def rule_names(self) -> List[str]:
        return [rule.name for rule in self._rules]

    def _add(self, rule: _RowRule) -> "DataValidator":
        self._rules.append(rule)
        return self

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        return self._add(_RowRule(
            name=f"not_null_{column}",
            columns=(column,),
            failing=pl.col(column).is_null(),
            message=f"{column} is null",
            severity=severity,
        ))

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for uniqueness of column values; the first occurrence passes"""
        return self._add(_RowRule(
            name=f"unique_{column}",
            columns=(column,),
            failing=~pl.col(column).is_first_distinct() & pl.col(column).is_not_null(),
            message=f"duplicate {column}",
            severity=severity,
        ))

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        skip_if_missing: bool = False,
    ) -> "DataValidator":
        """Add check for values within specified range"""
        failing = pl.lit(False)
        if min_value is not None:
            failing = failing | (pl.col(column) < min_value)
        if max_value is not None:
            failing = failing | (pl.col(column) > max_value)

        return self._add(_RowRule(
            name=f"range_{column}",
            columns=(column,),
            failing=failing.fill_null(False),
            message=f"{column} outside [{min_value}, {max_value}]",
            severity=severity,
            skip_if_missing=skip_if_missing,
            details={"min": min_value, "max": max_value},
        ))

    def add_positive_check(
        self,
        column: str,
        allow_zero: bool = True,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for positive values"""
        min_val = 0 if allow_zero else 0.0001
        return self.add_range_check(column, min_value=min_val, severity=severity)

    def add_enum_check(
        self,
        column: str,
        allowed_values: Sequence[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values in allowed set"""
        allowed = list(allowed_values)
        return self._add(_RowRule(
            name=f"enum_{column}",
            columns=(column,),
            failing=~pl.col(column).is_in(allowed) & pl.col(column).is_not_null(),
            message=f"{column} not one of {allowed}",
            severity=severity,
            details={"allowed_values": allowed},
        ))

    def add_custom_check(
        self,
        name: str,
        valid_when: pl.Expr,
        message_on_fail: str,
        columns: Sequence[str] = (),
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        skip_if_missing: bool = True,
    ) -> "DataValidator":
        """Add custom row check; rows where valid_when is False fail"""
        return self._add(_RowRule(
            name=name,
            columns=tuple(columns),
            failing=(~valid_when).fill_null(False),
            message=message_on_fail,
            severity=severity,
            skip_if_missing=skip_if_missing,
        ))

    def _applicable(self, df: pl.DataFrame) -> Tuple[List[_RowRule], List[ValidationCheck]]:
        """Split rules into runnable ones and results for rules whose columns are absent"""
        runnable = []
        absent = []
        for rule in self._rules:
            missing = [c for c in rule.columns if c not in df.columns]
            if not missing:
                runnable.append(rule)
            elif rule.skip_if_missing:
                logger.debug(f"Skipping check {rule.name}", missing=missing)
            else:
                absent.append(ValidationCheck(
                    name=rule.name,
                    passed=False,
                    severity=rule.severity,
                    message=f"Column '{missing[0]}' not found",
                    total_rows=len(df),
                ))
        return runnable, absent

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.now()
        runnable, results = self._applicable(df)

        logger.info(f"Running {len(self._rules)} validation checks on {len(df)} rows")

        counts = {}
        if runnable:
            counts = df.select([
                rule.failing.sum().alias(rule.name) for rule in runnable
            ]).row(0, named=True)

        for rule in runnable:
            failed_rows = int(counts.get(rule.name) or 0)
            results.append(ValidationCheck(
                name=rule.name,
                passed=failed_rows == 0,
                severity=rule.severity,
                message=f"{failed_rows} rows: {rule.message}" if failed_rows else "Check passed",
                details=rule.details or None,
                failed_rows=failed_rows,
                total_rows=len(df),
            ))

        for result in results:
            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        validation_result = ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=datetime.now(),
        )

        logger.info(
            f"Validation complete: {status.value}",
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return validation_result

    def flag(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Add an _error_message column naming every rejecting check a row fails.

        Null for rows that pass. WARNING checks reject a row only in strict
        mode.
        """
        runnable, _ = self._applicable(df)
        rejecting = [
            rule for rule in runnable
            if rule.severity == ValidationSeverity.ERROR
            or (self.strict_mode and rule.severity == ValidationSeverity.WARNING)
        ]

        if not rejecting:
            return df.with_columns(pl.lit(None, dtype=pl.Utf8).alias(ERROR_COLUMN))

        messages = [
            pl.when(rule.failing).then(pl.lit(rule.message)).otherwise(pl.lit(None, dtype=pl.Utf8))
            for rule in rejecting
        ]
        return df.with_columns(
            pl.when(pl.any_horizontal([rule.failing for rule in rejecting]))
            .then(pl.concat_str(messages, separator="; ", ignore_nulls=True))
            .otherwise(pl.lit(None, dtype=pl.Utf8))
            .alias(ERROR_COLUMN)
        )

    def split(self, df: pl.DataFrame) -> Tuple[pl.DataFrame, pl.DataFrame]:
        """
        Separate valid rows from rejected ones.

        Returns:
            (valid rows, rejected rows with an _error_message column)
        """
        flagged = self.flag(df)
        valid = flagged.filter(pl.col(ERROR_COLUMN).is_null()).drop(ERROR_COLUMN)
        rejected = flagged.filter(pl.col(ERROR_COLUMN).is_not_null())

        if len(rejected):
            logger.warning(
                f"Rejected {len(rejected)} of {len(df)} rows",
                reasons=rejected[ERROR_COLUMN].value_counts().height,
            )

        return valid, rejected


def _within(left: pl.Expr, right: pl.Expr, tolerance: float) -> pl.Expr:
    return (left - right).abs() <= tolerance


def create_sales_validator(settings: Optional[Settings] = None) -> DataValidator:
    """Create pre-configured validator for the sales fact table"""
    settings = settings or get_settings()
    quality = settings.data_quality
    tolerance = quality.total_tolerance

    validator = DataValidator(strict_mode=quality.strict_mode)
    for column in schema.REQUIRED_COLUMNS:
        validator.add_not_null_check(column)

    return (
        validator
        .add_unique_check(schema.INVOICE_ID)
        .add_enum_check(schema.CUSTOMER_TYPE, quality.customer_types)
        .add_enum_check(schema.GENDER, quality.genders)
        .add_enum_check(schema.PAYMENT_METHOD, quality.payment_methods)
        .add_enum_check(schema.PRODUCT_LINE, quality.product_lines)
        .add_custom_check(
            name="total_equals_cogs_plus_gross_income",
            valid_when=_within(
                pl.col(schema.TOTAL),
                pl.col(schema.COGS) + pl.col(schema.GROSS_INCOME),
                tolerance,
            ),
            message_on_fail="total != cogs + gross income",
            columns=[schema.TOTAL, schema.COGS, schema.GROSS_INCOME],
        )
        .add_custom_check(
            name="total_equals_price_times_quantity_plus_tax",
            valid_when=_within(
                pl.col(schema.TOTAL),
                pl.col(schema.UNIT_PRICE) * pl.col(schema.QUANTITY) + pl.col(schema.TAX),
                tolerance,
            ),
            message_on_fail="total != unit price * quantity + tax",
            columns=[schema.TOTAL, schema.UNIT_PRICE, schema.QUANTITY, schema.TAX],
        )
        .add_range_check(
            schema.RATING,
            min_value=0,
            max_value=10,
            severity=ValidationSeverity.WARNING,
            skip_if_missing=True,
        )
    )
