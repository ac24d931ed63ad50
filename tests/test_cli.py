"""
End-to-end tests through the click CLI against a small generated snapshot.
"""

import json

import polars as pl
import pytest
from click.testing import CliRunner

from fxpay_analytics.contracts.schemas import REPORT_SCHEMAS
from fxpay_analytics.data_generator.generate import generate_snapshot
from fxpay_analytics.main import cli
from fxpay_analytics.pipeline.__main__ import run_reports
from fxpay_analytics.pipeline.ingest import validate_snapshot


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def dirs(tmp_path):
    return {
        "data": str(tmp_path / "raw"),
        "output": str(tmp_path / "processed"),
        "summary": str(tmp_path / "analytics" / "summary.json"),
    }


def _generate(runner, dirs):
    return runner.invoke(cli, ["generate", "--data-dir", dirs["data"], "--users", "120", "--seed", "5"])


class TestCli:

    def test_generate_writes_snapshot(self, runner, dirs, tmp_path):
        result = _generate(runner, dirs)
        assert result.exit_code == 0, result.output
        written = {p.name for p in (tmp_path / "raw").iterdir()}
        assert "transactions.parquet" in written
        assert "transactions_sample.csv" in written

    def test_pipeline_then_report(self, runner, dirs, tmp_path):
        assert _generate(runner, dirs).exit_code == 0

        result = runner.invoke(cli, ["pipeline", "--data-dir", dirs["data"], "--output-dir", dirs["output"]])
        assert result.exit_code == 0, result.output
        for name, schema in REPORT_SCHEMAS.items():
            df = pl.read_parquet(tmp_path / "processed" / f"{name}.parquet")
            assert df.schema == pl.Schema(schema)
            assert (tmp_path / "processed" / f"{name}.csv").exists()

        result = runner.invoke(
            cli,
            ["report", "--output-dir", dirs["output"], "--summary-path", dirs["summary"], "--limit", "5"],
        )
        assert result.exit_code == 0, result.output
        with open(dirs["summary"]) as fh:
            summary = json.load(fh)
        assert set(summary) >= {"user_acquisition", "transaction_revenue", "market_performance"}

    def test_single_report_selection(self, runner, dirs, tmp_path):
        assert _generate(runner, dirs).exit_code == 0
        result = runner.invoke(
            cli,
            ["pipeline", "--data-dir", dirs["data"], "--output-dir", dirs["output"], "-r", "market_performance"],
        )
        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in (tmp_path / "processed").iterdir()) == [
            "market_performance.csv",
            "market_performance.parquet",
        ]

    def test_single_report_then_report_only_that_report(self, runner, dirs):
        assert _generate(runner, dirs).exit_code == 0
        result = runner.invoke(
            cli,
            ["pipeline", "--data-dir", dirs["data"], "--output-dir", dirs["output"], "-r", "market_performance"],
        )
        assert result.exit_code == 0, result.output

        result = runner.invoke(
            cli,
            [
                "report", "--output-dir", dirs["output"], "--summary-path", dirs["summary"],
                "--only", "market_performance",
            ],
        )
        assert result.exit_code == 0, result.output
        with open(dirs["summary"]) as fh:
            summary = json.load(fh)
        assert "market_performance" in summary
        assert "user_acquisition" not in summary
        assert "transaction_revenue" not in summary

    def test_report_only_requires_the_requested_output(self, runner, dirs):
        assert _generate(runner, dirs).exit_code == 0
        runner.invoke(
            cli,
            ["pipeline", "--data-dir", dirs["data"], "--output-dir", dirs["output"], "-r", "market_performance"],
        )
        result = runner.invoke(
            cli,
            [
                "report", "--output-dir", dirs["output"], "--summary-path", dirs["summary"],
                "--only", "user_acquisition",
            ],
        )
        assert isinstance(result.exception, FileNotFoundError)

    def test_unknown_report_choice_is_rejected(self, runner, dirs):
        result = runner.invoke(cli, ["pipeline", "--data-dir", dirs["data"], "-r", "churn"])
        assert result.exit_code != 0

    def test_report_without_outputs_fails(self, runner, dirs):
        result = runner.invoke(cli, ["report", "--output-dir", dirs["output"], "--summary-path", dirs["summary"]])
        assert result.exit_code != 0
        assert isinstance(result.exception, FileNotFoundError)


class TestRunReports:

    def test_unknown_report_raises(self):
        with pytest.raises(ValueError, match="churn"):
            run_reports(generate_snapshot(n_users=20), ("churn",))

    def test_utc_snapshot_runs_every_report(self):
        tables = generate_snapshot(n_users=80, seed=2)
        tables["transactions"] = tables["transactions"].with_columns(
            pl.col("initiated_at").dt.replace_time_zone("UTC")
        )
        validate_snapshot(tables)
        results = run_reports(tables)
        for name, schema in REPORT_SCHEMAS.items():
            assert results[name].schema == pl.Schema(schema)
