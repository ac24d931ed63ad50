"""
Transaction revenue report: corridor volume and fee performance, user
segmentation, seasonal patterns and a pricing recommendation per corridor.

Only completed transactions that have an exchange rate recorded for the same
currency pair on the same calendar day take part. Transactions without a
same-day rate are dropped by the inner join; count_unmatched_rates reports how
many that affects.
"""

import polars as pl

from fxpay_analytics.contracts.schemas import (
    COMPLETED_STATUS,
    PRICING_DEFAULT,
    PRICING_RULES,
    TRANSACTION_REVENUE_SCHEMA,
    USER_SEGMENT_DEFAULT,
    USER_SEGMENT_RULES,
)
from fxpay_analytics.pipeline.expressions import (
    any_of,
    first_match,
    month_label,
    month_start,
    safe_divide,
    sql_round,
    threshold_ladder,
)

# Grouping keys of the final report, in tie-break order after the primary sort
REPORT_KEYS = [
    "month",
    "currency_pair",
    "user_segment",
    "transaction_count",
    "total_value_usd",
    "total_fees_usd",
    "effective_fee_rate",
    "avg_txn_size_usd",
    "day_of_week",
    "month_of_year",
    "seasonal_txn_count",
    "seasonal_value_usd",
    "fee_type",
    "fee_percentage",
    "min_fee_usd",
    "max_fee_usd",
]


def _currency_pair() -> pl.Expr:
    return pl.concat_str([pl.col("source_currency"), pl.lit("/"), pl.col("destination_currency")])


def _completed_with_rate_keys(transactions: pl.DataFrame) -> pl.DataFrame:
    return (
        transactions
        .filter(pl.col("status") == COMPLETED_STATUS)
        .with_columns([
            _currency_pair().alias("currency_pair"),
            pl.col("initiated_at").dt.date().alias("date_recorded"),
        ])
    )


def build_transaction_values(transactions: pl.DataFrame, exchange_rates: pl.DataFrame) -> pl.DataFrame:
    """Completed transactions converted to USD, with calendar dimensions."""
    amount_usd = pl.col("source_amount") / 100
    return (
        _completed_with_rate_keys(transactions)
        .join(
            exchange_rates.select(["currency_pair", "date_recorded", "rate"]),
            on=["currency_pair", "date_recorded"],
            how="inner",
        )
        .select([
            pl.col("id").alias("transaction_id"),
            "user_id",
            "initiated_at",
            "currency_pair",
            amount_usd.alias("source_amount_usd"),
            (amount_usd * pl.col("rate")).alias("destination_amount_usd"),
            (pl.col("fee_amount") / 100).alias("fee_amount_usd"),
            "status",
            # weekday() is ISO (Monday=1 .. Sunday=7); report uses Sunday=0
            (pl.col("initiated_at").dt.weekday() % 7).cast(pl.Int32).alias("day_of_week"),
            pl.col("initiated_at").dt.month().cast(pl.Int32).alias("month_of_year"),
            month_start("initiated_at").alias("month"),
        ])
    )


def count_unmatched_rates(transactions: pl.DataFrame, exchange_rates: pl.DataFrame) -> int:
    """Completed transactions with no exchange rate for their pair on their day."""
    rate_keys = exchange_rates.select(["currency_pair", "date_recorded"]).unique()
    return (
        _completed_with_rate_keys(transactions)
        .join(rate_keys, on=["currency_pair", "date_recorded"], how="anti")
        .height
    )


def build_user_segments(values: pl.DataFrame) -> pl.DataFrame:
    """
    Per-user totals and behavioural segment.

    Segment rules are checked in order (High-Value, Regular, Occasional) and
    the first match wins, so 5 transactions worth $3,000 is Regular while
    3 transactions worth $12,000 is High-Value.
    """
    rules = [(any_of(conditions), label) for conditions, label in USER_SEGMENT_RULES]
    return (
        values
        .group_by("user_id")
        .agg([
            pl.len().cast(pl.Int64).alias("transaction_count"),
            pl.col("source_amount_usd").sum().alias("total_value_usd"),
            pl.col("fee_amount_usd").sum().alias("total_fees_usd"),
        ])
        .with_columns(first_match(rules, USER_SEGMENT_DEFAULT).alias("user_segment"))
    )


def build_corridor_performance(values: pl.DataFrame) -> pl.DataFrame:
    return (
        values
        .group_by(["currency_pair", "month"])
        .agg([
            pl.len().cast(pl.Int64).alias("transaction_count"),
            pl.col("source_amount_usd").sum().alias("total_value_usd"),
            pl.col("fee_amount_usd").sum().alias("total_fees_usd"),
            pl.col("source_amount_usd").mean().alias("avg_txn_size_usd"),
        ])
        .with_columns(
            safe_divide(pl.col("total_fees_usd"), pl.col("total_value_usd")).alias("effective_fee_rate")
        )
    )


def build_seasonal_patterns(values: pl.DataFrame) -> pl.DataFrame:
    return (
        values
        .group_by(["day_of_week", "month_of_year"])
        .agg([
            pl.len().cast(pl.Int64).alias("transaction_count"),
            pl.col("source_amount_usd").sum().alias("total_value_usd"),
            pl.col("fee_amount_usd").sum().alias("total_fees_usd"),
        ])
    )


def _active_fee_structures(transaction_fees: pl.DataFrame) -> pl.DataFrame:
    return (
        transaction_fees
        .filter(pl.col("is_active"))
        .select([
            "currency_pair",
            "fee_type",
            pl.col("fee_value").alias("fee_percentage"),
            (pl.col("minimum_fee") / 100).alias("min_fee_usd"),
            (pl.col("maximum_fee") / 100).alias("max_fee_usd"),
        ])
    )


def build_transaction_revenue(
    transactions: pl.DataFrame,
    exchange_rates: pl.DataFrame,
    transaction_fees: pl.DataFrame,
) -> pl.DataFrame:
    """
    Full transaction revenue report matching TRANSACTION_REVENUE_SCHEMA.

    Each corridor-month is broken down by user segment, seasonal bucket and
    active fee structure; user_count is the number of distinct users behind
    each row. Ordered by month then total_fees_usd descending.
    """
    values = build_transaction_values(transactions, exchange_rates)
    segments = build_user_segments(values).select(["user_id", "user_segment"])
    corridors = build_corridor_performance(values)
    seasonal = (
        build_seasonal_patterns(values)
        .select([
            "day_of_week",
            "month_of_year",
            pl.col("transaction_count").alias("seasonal_txn_count"),
            pl.col("total_value_usd").alias("seasonal_value_usd"),
        ])
    )

    joined = (
        corridors
        .join(
            values.select(["user_id", "currency_pair", "month", "day_of_week", "month_of_year"]),
            on=["currency_pair", "month"],
            how="inner",
        )
        .join(segments, on="user_id", how="inner")
        .join(seasonal, on=["day_of_week", "month_of_year"], how="inner")
        .join(_active_fee_structures(transaction_fees), on="currency_pair", how="left")
    )

    return (
        joined
        .group_by(REPORT_KEYS)
        .agg(pl.col("user_id").n_unique().cast(pl.Int64).alias("user_count"))
        .with_columns([
            sql_round(pl.col("effective_fee_rate") * 100, 2).alias("effective_fee_rate_pct"),
            # recommendation reads the raw fraction, not the rounded percentage
            threshold_ladder("effective_fee_rate", PRICING_RULES, PRICING_DEFAULT).alias("pricing_recommendation"),
        ])
        .sort(
            ["month", "total_fees_usd"] + [k for k in REPORT_KEYS if k not in ("month", "total_fees_usd")],
            descending=[False, True] + [False] * (len(REPORT_KEYS) - 2),
            nulls_last=True,
        )
        .with_columns(month_label(pl.col("month")).alias("month"))
        .select(list(TRANSACTION_REVENUE_SCHEMA.keys()))
        .cast(TRANSACTION_REVENUE_SCHEMA)
    )
