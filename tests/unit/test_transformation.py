"""
Unit Tests - Date Normalization
"""
from datetime import date

import polars as pl
import pytest

from sales_analytics.exceptions import ParseError
from sales_analytics.transformation.dates import DateNormalizer, add_calendar_columns


class TestDateNormalizer:
    """Tests for DateNormalizer"""

    @pytest.mark.parametrize("text", ["05-01-2019", "05-01-19", "05/01/2019", "05.01.19", " 5-1-2019 "])
    def test_parses_supported_formats(self, text):
        """Test two- and four-digit years and alternative separators"""
        assert DateNormalizer().try_parse(text) == date(2019, 1, 5)

    def test_unparsable_returns_none(self):
        """Test try_parse on invalid dates"""
        normalizer = DateNormalizer()

        assert normalizer.try_parse("31-02-2019") is None
        assert normalizer.try_parse("2019-01-05") is None
        assert normalizer.try_parse(None) is None

    def test_parse_raises_with_value_and_column(self):
        """Test parse error carries the offending value"""
        with pytest.raises(ParseError) as exc_info:
            DateNormalizer().parse("not a date")

        assert exc_info.value.value == "not a date"
        assert exc_info.value.column == "date"
        assert "not a date" in str(exc_info.value)

    def test_custom_formats(self):
        """Test configured formats are tried in order"""
        normalizer = DateNormalizer(["%Y-%m-%d"])

        assert normalizer.parse("2019-03-08") == date(2019, 3, 8)
        assert normalizer.try_parse("08-03-2019") is None

    def test_month_key_and_weekday(self):
        """Test derived calendar fields"""
        day = date(2019, 1, 5)

        assert DateNormalizer.month_key(day) == "2019-01"
        assert DateNormalizer.weekday_name(day) == "Saturday"


class TestParseColumn:
    """Tests for column-wise date parsing"""

    def test_keeps_row_order_and_nulls_failures(self):
        """Test unparsable values become null in place"""
        df = pl.DataFrame({
            "id": [1, 2, 3, 4],
            "date": ["05-01-2019", "bad", "05-01-19", None],
        })

        result = DateNormalizer().parse_column(df)

        assert result.columns == ["id", "date"]
        assert result.schema["date"] == pl.Date
        assert result["id"].to_list() == [1, 2, 3, 4]
        assert result["date"].to_list() == [date(2019, 1, 5), None, date(2019, 1, 5), None]

    def test_output_column(self):
        """Test parsing into a separate column keeps the raw text"""
        df = pl.DataFrame({"date": ["01-03-2019"]})

        result = DateNormalizer().parse_column(df, output="parsed")

        assert result["date"].to_list() == ["01-03-2019"]
        assert result["parsed"].to_list() == [date(2019, 3, 1)]

    def test_date_column_passthrough(self):
        """Test already-typed dates are left alone"""
        df = pl.DataFrame({"date": [date(2019, 2, 1)]})

        result = DateNormalizer().parse_column(df)

        assert result["date"].to_list() == [date(2019, 2, 1)]


class TestCalendarColumns:
    """Tests for month and weekday derivation"""

    def test_add_calendar_columns(self):
        """Test month key and weekday name columns"""
        df = pl.DataFrame({"date": [date(2019, 1, 5), date(2019, 3, 31)]})

        result = add_calendar_columns(df)

        assert result["month"].to_list() == ["2019-01", "2019-03"]
        assert result["weekday"].to_list() == ["Saturday", "Sunday"]
