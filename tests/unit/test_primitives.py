"""
Unit Tests - Aggregation Primitives
"""
import numpy as np
import polars as pl
import pytest
from scipy.stats import percentileofscore

from sales_analytics.analytics import primitives


class TestGroupedAggregates:
    """Tests for grouped sums and counts"""

    def test_grouped_sum_sorted_by_keys(self):
        """Test sums per group in key order"""
        df = pl.DataFrame({"k": ["b", "a", "b"], "v": [1.0, 2.0, 3.0]})

        result = primitives.grouped_sum(df, "k", "v", "total")

        assert result.to_dicts() == [{"k": "a", "total": 2.0}, {"k": "b", "total": 4.0}]

    def test_grouped_count(self):
        """Test row counts per group"""
        df = pl.DataFrame({"city": ["X", "X", "Y"], "method": ["Cash", "Cash", "Ewallet"]})

        result = primitives.grouped_count(df, ["city", "method"], "n")

        assert result["n"].to_list() == [2, 1]
        assert result.schema["n"] == pl.Int64


class TestTopPerPartition:
    """Tests for row-number style selection"""

    def test_one_row_per_partition(self):
        """Test the highest value wins in each partition"""
        df = pl.DataFrame({
            "branch": ["A", "A", "B", "B"],
            "line": ["x", "y", "x", "y"],
            "profit": [1.0, 5.0, 7.0, 2.0],
        })

        result = primitives.top_per_partition(df, "branch", "profit", "line")

        assert result.to_dicts() == [
            {"branch": "A", "line": "y", "profit": 5.0},
            {"branch": "B", "line": "x", "profit": 7.0},
        ]

    def test_ties_go_to_first_name(self):
        """Test deterministic tie-break"""
        df = pl.DataFrame({
            "city": ["X", "X", "X"],
            "method": ["Ewallet", "Cash", "Credit card"],
            "n": [3, 3, 1],
        })

        result = primitives.top_per_partition(df, "city", "n", "method")

        assert result["method"].to_list() == ["Cash"]

    def test_ascending(self):
        """Test lowest-first selection"""
        df = pl.DataFrame({"g": ["a", "a"], "name": ["p", "q"], "v": [2, 1]})

        result = primitives.top_per_partition(df, "g", "v", "name", descending=False)

        assert result["name"].to_list() == ["q"]


class TestGrowthRate:
    """Tests for lag-based growth"""

    def test_growth_per_partition(self):
        """Test first row null and percentage change after"""
        df = pl.DataFrame({
            "branch": ["A", "A", "A", "B"],
            "month": ["2019-02", "2019-01", "2019-03", "2019-01"],
            "sales": [150.0, 100.0, 75.0, 80.0],
        })

        result = primitives.with_growth_rate(df, "branch", "month", "sales")

        assert result["month"].to_list() == ["2019-01", "2019-02", "2019-03", "2019-01"]
        assert result["growth_rate"].to_list() == [None, 50.0, -50.0, None]

    def test_zero_previous_is_null(self):
        """Test growth from zero is undefined"""
        df = pl.DataFrame({
            "branch": ["A", "A"],
            "month": ["2019-01", "2019-02"],
            "sales": [0.0, 100.0],
        })

        result = primitives.with_growth_rate(df, "branch", "month", "sales")

        assert result["growth_rate"].to_list() == [None, None]


class TestPercentileRank:
    """Tests for percentile ranks"""

    def test_weak_matches_scipy(self):
        """Test fraction-at-or-below against scipy"""
        values = np.random.default_rng(3).integers(1, 20, size=50).astype(float)
        df = pl.DataFrame({"v": values})

        result = df.select(primitives.percentile_rank("v", "weak"))["v"].to_list()

        expected = [percentileofscore(values, v, kind="weak") / 100 for v in values]
        assert result == pytest.approx(expected)

    def test_weak_exact_boundaries(self):
        """Test k / n is exact at the tier thresholds"""
        df = pl.DataFrame({"v": [float(i) for i in range(1, 101)]})

        result = df.select(primitives.percentile_rank("v", "weak"))["v"]

        assert result[32] == 0.33
        assert result[65] == 0.66

    def test_percent_rank(self):
        """Test SQL PERCENT_RANK semantics"""
        df = pl.DataFrame({"v": [10.0, 20.0, 20.0, 40.0]})

        result = df.select(primitives.percentile_rank("v", "percent_rank"))["v"].to_list()

        assert result == pytest.approx([0.0, 1 / 3, 1 / 3, 1.0])

    def test_percent_rank_single_value(self):
        """Test a single value ranks 0"""
        df = pl.DataFrame({"v": [10.0]})

        result = df.select(primitives.percentile_rank("v", "percent_rank"))["v"].to_list()

        assert result == [0.0]

    def test_unknown_method(self):
        """Test invalid method"""
        with pytest.raises(ValueError):
            primitives.percentile_rank("v", "nearest")


class TestAssignTier:
    """Tests for tier mapping"""

    def test_thresholds_are_inclusive(self):
        """Test exact threshold values"""
        df = pl.DataFrame({"p": [0.0, 0.32, 0.33, 0.65, 0.66, 1.0]})

        result = df.select(primitives.assign_tier("p", 0.66, 0.33).alias("tier"))

        assert result["tier"].to_list() == ["Low", "Low", "Medium", "Medium", "High", "High"]

    def test_custom_labels(self):
        """Test label override"""
        df = pl.DataFrame({"p": [0.9, 0.5, 0.1]})

        result = df.select(
            primitives.assign_tier("p", 0.66, 0.33, labels=("Gold", "Silver", "Bronze")).alias("tier")
        )

        assert result["tier"].to_list() == ["Gold", "Silver", "Bronze"]
