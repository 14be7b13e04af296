"""
Unit Tests - Command Line Interface
"""
import json
import logging

import polars as pl
import pytest

from sales_analytics.analytics.reports import REPORTS
from sales_analytics.cli import main
from sales_analytics.config import get_settings


@pytest.fixture(autouse=True)
def reset_logging():
    """Detach the handlers main() installs on the root logger"""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)


class TestReportCommand:
    """Tests for `report`"""

    def test_report_csv(self, generated_csv, capsys):
        """Test a report written to stdout"""
        code = main(["report", "top-customers", "--data", str(generated_csv), "-n", "3", "--format", "csv"])

        out = capsys.readouterr().out.strip().splitlines()
        assert code == 0
        assert out[0] == "customer_id,total_sales"
        assert len(out) == 4

    def test_report_json_with_options(self, generated_csv, capsys):
        """Test report options reach the engine"""
        code = main([
            "report", "anomalies", "--data", str(generated_csv),
            "--stddev-factor", "1", "--only-anomalies", "--format", "json",
        ])

        rows = json.loads(capsys.readouterr().out)
        assert code == 0
        assert rows
        assert {row["anomaly_status"] for row in rows} <= {"High Anomaly", "Low Anomaly"}

    def test_report_table(self, generated_csv, capsys):
        """Test the default table format"""
        code = main(["report", "weekday-sales", "--data", str(generated_csv)])

        assert code == 0
        assert "weekday" in capsys.readouterr().out

    def test_report_to_file(self, generated_csv, tmp_path):
        """Test parquet output file"""
        output = tmp_path / "growth.parquet"

        code = main([
            "report", "branch-growth", "--all", "--data", str(generated_csv),
            "--format", "parquet", "--output", str(output),
        ])

        assert code == 0
        assert "growth_rate" in pl.read_parquet(output).columns

    def test_report_all(self, generated_csv, tmp_path):
        """Test every report written to a directory"""
        code = main([
            "report", "all", "--data", str(generated_csv),
            "--format", "csv", "--output", str(tmp_path / "reports"),
        ])

        assert code == 0
        assert sorted(p.stem for p in (tmp_path / "reports").glob("*.csv")) == sorted(REPORTS)

    def test_missing_file(self, tmp_path, capsys):
        """Test exit code 2 on a missing dataset"""
        code = main(["report", "weekday-sales", "--data", str(tmp_path / "missing.csv")])

        assert code == 2
        assert "missing.csv" in capsys.readouterr().err

    def test_schema_error(self, write_raw_csv, raw_rows):
        """Test exit code 2 on missing columns"""
        path = write_raw_csv([{k: v for k, v in row.items() if k != "Total"} for row in raw_rows])

        assert main(["report", "top-customers", "--data", str(path)]) == 2

    def test_parse_error_policies(self, write_raw_csv, raw_rows, make_raw_row, capsys):
        """Test abort exits 2 and skip still reports"""
        path = write_raw_csv(raw_rows + [make_raw_row(4, Date="32-01-2019")])

        assert main(["report", "top-customers", "--data", str(path), "--on-parse-error", "abort"]) == 2
        assert "32-01-2019" in capsys.readouterr().err
        assert main(["report", "top-customers", "--data", str(path), "--on-parse-error", "skip"]) == 0

    def test_data_from_settings(self, generated_csv, monkeypatch, capsys):
        """Test --data falls back to DATA_SOURCE_PATH"""
        monkeypatch.setenv("DATA_SOURCE_PATH", str(generated_csv))
        get_settings.cache_clear()
        try:
            code = main(["report", "top-customers", "--format", "csv"])
        finally:
            get_settings.cache_clear()

        assert code == 0
        assert len(capsys.readouterr().out.strip().splitlines()) == 6

    def test_unknown_report(self, generated_csv):
        """Test argparse rejects unknown report names"""
        with pytest.raises(SystemExit) as exc_info:
            main(["report", "best-day", "--data", str(generated_csv)])

        assert exc_info.value.code == 2


class TestValidateCommand:
    """Tests for `validate`"""

    def test_clean_dataset(self, generated_csv, capsys):
        """Test a clean file exits 0"""
        code = main(["validate", "--data", str(generated_csv)])

        assert code == 0
        assert "300 rows read, 300 loaded, 0 rejected" in capsys.readouterr().out

    def test_rejected_rows(self, write_raw_csv, raw_rows, make_raw_row, capsys):
        """Test rejected rows are listed and exit 1"""
        path = write_raw_csv(raw_rows + [make_raw_row(4, Payment="Bitcoin")])

        code = main(["validate", "--data", str(path)])

        out = capsys.readouterr().out
        assert code == 1
        assert "1 rejected" in out
        assert "Bitcoin" in out


class TestArguments:
    """Tests for option parsing"""

    @pytest.mark.parametrize("argv", [
        ["report", "anomalies", "--stddev-factor", "-1"],
        ["report", "top-customers", "-n", "-1"],
        ["report", "repeat-customers", "--window-days", "-5"],
    ])
    def test_negative_values_rejected(self, generated_csv, argv, capsys):
        """Test negative counts and factors exit 2 without a traceback"""
        with pytest.raises(SystemExit) as exc_info:
            main(argv + ["--data", str(generated_csv)])

        assert exc_info.value.code == 2
        assert "must be non-negative" in capsys.readouterr().err
