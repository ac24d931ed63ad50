"""
Tests for the transaction revenue report: USD conversion, the exact-date
exchange-rate join, user segmentation, corridor fees and ordering.
"""

from datetime import date, datetime

import polars as pl
import pytest
from polars.testing import assert_frame_equal

from fxpay_analytics.contracts.schemas import TRANSACTION_REVENUE_SCHEMA
from fxpay_analytics.data_generator.generate import generate_snapshot
from fxpay_analytics.pipeline.revenue import (
    build_corridor_performance,
    build_seasonal_patterns,
    build_transaction_revenue,
    build_transaction_values,
    build_user_segments,
    count_unmatched_rates,
)

from factories import exchange_rates_frame, fees_frame, transactions_frame, txn


@pytest.fixture
def rates():
    return exchange_rates_frame([
        ("USD/NGN", date(2024, 3, 3), 1500.0),
        ("USD/NGN", date(2024, 3, 4), 1510.0),
        ("USD/NGN", date(2024, 4, 2), 1490.0),
        ("GBP/KES", date(2024, 3, 4), 165.0),
    ])


@pytest.fixture
def revenue_tables(rates):
    transactions = transactions_frame([
        txn(1, 1, datetime(2024, 3, 4, 10), source_amount=10_000, fee_amount=100),
        txn(2, 2, datetime(2024, 3, 4, 18), source_amount=30_000, fee_amount=500),
        txn(3, 3, datetime(2024, 3, 4, 20), source_currency="GBP", destination_currency="KES",
            source_amount=10_000, fee_amount=500),
        txn(4, 1, datetime(2024, 4, 2, 9), source_amount=5_000, fee_amount=200),
        # no USD/NGN rate on 2024-03-06
        txn(5, 2, datetime(2024, 3, 6, 9), source_amount=90_000, fee_amount=900),
        txn(6, 3, datetime(2024, 3, 4, 11), status="failed", source_amount=70_000, fee_amount=700),
    ])
    fees = fees_frame([
        ("USD/NGN", "percentage", 1.5, 199, 4_999, True),
        ("USD/NGN", "flat", 4.99, 499, 499, False),
    ])
    return transactions, rates, fees


class TestTransactionValues:

    def test_conversion_and_calendar_columns(self, rates):
        transactions = transactions_frame([
            txn(1, 1, datetime(2024, 3, 3, 14), source_amount=12_345, fee_amount=370),
        ])
        row = build_transaction_values(transactions, rates).to_dicts()[0]
        assert row["currency_pair"] == "USD/NGN"
        assert row["source_amount_usd"] == pytest.approx(123.45)
        assert row["destination_amount_usd"] == pytest.approx(123.45 * 1500.0)
        assert row["fee_amount_usd"] == pytest.approx(3.70)
        # 2024-03-03 is a Sunday
        assert row["day_of_week"] == 0
        assert row["month_of_year"] == 3
        assert row["month"] == datetime(2024, 3, 1)

    def test_only_completed_with_same_day_rate(self, revenue_tables):
        transactions, rates, _ = revenue_tables
        values = build_transaction_values(transactions, rates)
        assert sorted(values["transaction_id"].to_list()) == [1, 2, 3, 4]

    def test_unmatched_rate_count(self, revenue_tables):
        transactions, rates, _ = revenue_tables
        # the failed transaction is not completed, so it is not counted
        assert count_unmatched_rates(transactions, rates) == 1


class TestUserSegments:

    @staticmethod
    def _values(spec: dict[int, list[float]]) -> pl.DataFrame:
        rows = [
            {"user_id": user_id, "source_amount_usd": amount, "fee_amount_usd": 1.0}
            for user_id, amounts in spec.items()
            for amount in amounts
        ]
        return pl.DataFrame(rows)

    def test_segment_ladder(self):
        values = self._values({
            1: [600.0] * 5,       # 5 txns, $3,000
            2: [4_000.0] * 3,     # 3 txns, $12,000
            3: [10.0] * 10,       # 10 small txns
            4: [50.0],
            5: [100.0] * 4,
        })
        segments = build_user_segments(values)
        by_user = dict(zip(segments["user_id"].to_list(), segments["user_segment"].to_list()))
        assert by_user == {
            1: "Regular",
            2: "High-Value",
            3: "High-Value",
            4: "Occasional",
            5: "Occasional",
        }

    def test_every_user_in_exactly_one_segment(self, revenue_tables):
        transactions, rates, _ = revenue_tables
        segments = build_user_segments(build_transaction_values(transactions, rates))
        assert segments["user_id"].n_unique() == len(segments)
        assert set(segments["user_segment"]) <= {"High-Value", "Regular", "Occasional"}


class TestCorridors:

    def test_effective_fee_rate(self, revenue_tables):
        transactions, rates, _ = revenue_tables
        corridors = build_corridor_performance(build_transaction_values(transactions, rates))
        ngn_march = corridors.filter(
            (pl.col("currency_pair") == "USD/NGN") & (pl.col("month") == datetime(2024, 3, 1))
        ).to_dicts()[0]
        assert ngn_march["transaction_count"] == 2
        assert ngn_march["total_value_usd"] == 400.0
        assert ngn_march["total_fees_usd"] == 6.0
        assert ngn_march["effective_fee_rate"] == pytest.approx(0.015)
        assert ngn_march["avg_txn_size_usd"] == 200.0

    def test_zero_value_corridor_has_null_rate(self, rates):
        transactions = transactions_frame([
            txn(1, 1, datetime(2024, 3, 3, 14), source_amount=0, fee_amount=0),
        ])
        corridors = build_corridor_performance(build_transaction_values(transactions, rates))
        assert corridors["effective_fee_rate"].to_list() == [None]

    def test_seasonal_buckets(self, revenue_tables):
        transactions, rates, _ = revenue_tables
        seasonal = build_seasonal_patterns(build_transaction_values(transactions, rates))
        monday_march = seasonal.filter(
            (pl.col("day_of_week") == 1) & (pl.col("month_of_year") == 3)
        ).to_dicts()[0]
        assert monday_march["transaction_count"] == 3
        assert monday_march["total_value_usd"] == 500.0


class TestTransactionRevenueReport:

    def test_rows_and_order(self, revenue_tables):
        report = build_transaction_revenue(*revenue_tables)
        assert report.select(["month", "currency_pair", "total_fees_usd"]).rows() == [
            ("2024-03", "USD/NGN", 6.0),
            ("2024-03", "GBP/KES", 5.0),
            ("2024-04", "USD/NGN", 2.0),
        ]

    def test_corridor_row_details(self, revenue_tables):
        ngn, kes, _ = build_transaction_revenue(*revenue_tables).to_dicts()

        assert ngn["user_segment"] == "Occasional"
        assert ngn["user_count"] == 2
        assert ngn["transaction_count"] == 2
        assert ngn["effective_fee_rate_pct"] == 1.5
        assert ngn["day_of_week"] == 1
        assert ngn["month_of_year"] == 3
        assert ngn["seasonal_txn_count"] == 3
        assert ngn["seasonal_value_usd"] == 500.0
        # only the active fee structure is attached
        assert ngn["fee_type"] == "percentage"
        assert ngn["fee_percentage"] == 1.5
        assert ngn["min_fee_usd"] == 1.99
        assert ngn["max_fee_usd"] == 49.99
        assert ngn["pricing_recommendation"] == "Consider fee increase"

        assert kes["effective_fee_rate_pct"] == 5.0
        assert kes["fee_type"] is None
        assert kes["pricing_recommendation"] == "Potential for volume discounts"

    def test_optimal_fee_range(self, rates):
        transactions = transactions_frame([
            txn(1, 1, datetime(2024, 3, 3, 14), source_amount=10_000, fee_amount=300),
        ])
        report = build_transaction_revenue(transactions, rates, fees_frame([]))
        assert report["effective_fee_rate_pct"].to_list() == [3.0]
        assert report["pricing_recommendation"].to_list() == ["Optimal fee range"]

    def test_output_matches_contract(self, revenue_tables):
        report = build_transaction_revenue(*revenue_tables)
        assert report.schema == pl.Schema(TRANSACTION_REVENUE_SCHEMA)

    def test_rerun_is_identical(self):
        snapshot = generate_snapshot(n_users=250, seed=7)
        tables = (snapshot["transactions"], snapshot["exchange_rates"], snapshot["transaction_fees"])
        report = build_transaction_revenue(*tables)
        assert len(report) > 0
        assert_frame_equal(build_transaction_revenue(*tables), report)
