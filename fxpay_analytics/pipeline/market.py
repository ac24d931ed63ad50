"""
Geographic market performance: per country and month KPIs, month-over-month
growth, growth category and investment priority.

Stages:
  1. join users / transactions / verifications / payment methods
  2. aggregate raw metrics per (country_code, analysis_month)
  3. attach the previous month's raw metrics per country (lag)
  4. derive rounded ratios, growth rates and categorical labels
"""

from datetime import date, datetime

import polars as pl

from fxpay_analytics.contracts.schemas import (
    APPROVED_KYC_STATUS,
    BANK_TRANSFER_METHOD,
    COMPLETED_STATUS,
    GROWTH_CATEGORY_DEFAULT,
    GROWTH_CATEGORY_RULES,
    INVESTMENT_PRIORITY_DEFAULT,
    INVESTMENT_PRIORITY_RULES,
    MARKET_FIRST_REPORT_MONTH,
    MARKET_PERFORMANCE_SCHEMA,
    MARKET_START_DATE,
    MOBILE_MONEY_METHOD,
)
from fxpay_analytics.pipeline.expressions import (
    all_of,
    first_match,
    growth_rate,
    month_label,
    month_start,
    percentage,
    sql_round,
    threshold_ladder,
)

# Raw metric -> name of its previous-month column
LAG_COLUMNS = {
    "total_users": "prev_month_users",
    "total_transactions": "prev_month_transactions",
    "volume_usd": "prev_month_volume",
    "revenue_usd": "prev_month_revenue",
}


def _join_market_facts(
    users: pl.DataFrame,
    transactions: pl.DataFrame,
    verifications: pl.DataFrame,
    payment_methods: pl.DataFrame,
    start_date: date,
) -> pl.DataFrame:
    """One row per transaction (x verification record) on or after start_date."""
    time_zone = transactions.schema["initiated_at"].time_zone
    window_start = pl.lit(datetime.combine(start_date, datetime.min.time())).dt.replace_time_zone(time_zone)
    txns = (
        transactions
        .filter(pl.col("initiated_at") >= window_start)
        .select([
            pl.col("id").alias("transaction_id"),
            "user_id",
            "initiated_at",
            "status",
            "source_amount",
            "revenue_usd",
            "payment_method_id",
        ])
    )
    return (
        users
        .select([pl.col("id").alias("user_id"), "country_code"])
        .join(txns, on="user_id", how="inner")
        .join(
            verifications.select(["user_id", "kyc_status", "verification_level"]),
            on="user_id",
            how="left",
        )
        .join(
            payment_methods.select([pl.col("id").alias("payment_method_id"), "method_name"]),
            on="payment_method_id",
            how="left",
        )
    )


def build_market_base_metrics(
    users: pl.DataFrame,
    transactions: pl.DataFrame,
    verifications: pl.DataFrame,
    payment_methods: pl.DataFrame,
    start_date: date = MARKET_START_DATE,
) -> pl.DataFrame:
    """Raw (unrounded) aggregates per (country_code, analysis_month)."""
    completed = pl.col("status") == COMPLETED_STATUS
    facts = _join_market_facts(users, transactions, verifications, payment_methods, start_date)
    return (
        facts
        .with_columns(month_start("initiated_at").alias("analysis_month"))
        .group_by(["country_code", "analysis_month"])
        .agg([
            pl.col("user_id").n_unique().alias("total_users"),
            pl.col("user_id").filter(pl.col("kyc_status") == APPROVED_KYC_STATUS).n_unique().alias("approved_users"),
            pl.col("transaction_id").count().alias("total_transactions"),
            completed.sum().alias("successful_transactions"),
            pl.when(completed).then(pl.col("source_amount") / 100).otherwise(0.0).sum().alias("volume_usd"),
            pl.when(completed).then(pl.col("revenue_usd")).otherwise(0.0).sum().alias("revenue_usd"),
            (pl.col("method_name") == BANK_TRANSFER_METHOD).sum().alias("bank_transfer_count"),
            (pl.col("method_name") == MOBILE_MONEY_METHOD).sum().alias("mobile_money_count"),
            pl.col("user_id").filter(pl.col("verification_level") == 3).n_unique().alias("tier3_users"),
            pl.col("user_id").filter(pl.col("verification_level") == 2).n_unique().alias("tier2_users"),
        ])
        .cast({
            "total_users": pl.Int64,
            "approved_users": pl.Int64,
            "total_transactions": pl.Int64,
            "successful_transactions": pl.Int64,
            "volume_usd": pl.Float64,
            "revenue_usd": pl.Float64,
            "bank_transfer_count": pl.Int64,
            "mobile_money_count": pl.Int64,
            "tier3_users": pl.Int64,
            "tier2_users": pl.Int64,
        })
    )


def attach_prior_month(base: pl.DataFrame) -> pl.DataFrame:
    """
    Add the previous observed month's raw metrics within each country.

    Rows are sorted chronologically per country first; the lookback is the
    preceding row of that ordering, so the first month of every country gets
    nulls.
    """
    ordered = base.sort(["country_code", "analysis_month"], nulls_last=True)
    return ordered.with_columns([
        pl.col(metric).shift(1).over("country_code").alias(prev)
        for metric, prev in LAG_COLUMNS.items()
    ])


def derive_market_performance(growth: pl.DataFrame) -> pl.DataFrame:
    """
    Rounded ratios, growth rates and the growth category.

    Ratios and growth rates are computed from the raw aggregates; rounding
    happens once, on the final value.
    """
    performance = growth.select([
        "country_code",
        month_label(pl.col("analysis_month")).alias("report_month"),
        "total_users",
        percentage(pl.col("approved_users"), pl.col("total_users")).alias("approval_rate"),
        percentage(pl.col("tier3_users"), pl.col("total_users")).alias("tier3_concentration"),
        "total_transactions",
        percentage(pl.col("successful_transactions"), pl.col("total_transactions")).alias("success_rate"),
        sql_round(pl.col("volume_usd"), 2).alias("volume_usd"),
        sql_round(pl.col("revenue_usd"), 2).alias("revenue_usd"),
        percentage(pl.col("revenue_usd"), pl.col("volume_usd")).alias("margin_pct"),
        percentage(pl.col("bank_transfer_count"), pl.col("total_transactions")).alias("bank_transfer_pct"),
        percentage(pl.col("mobile_money_count"), pl.col("total_transactions")).alias("mobile_money_pct"),
        growth_rate(pl.col("total_users"), pl.col("prev_month_users")).alias("user_growth_pct"),
        growth_rate(pl.col("revenue_usd"), pl.col("prev_month_revenue")).alias("revenue_growth_pct"),
    ])
    # The label reads the displayed (rounded) growth value
    return performance.with_columns(
        threshold_ladder("revenue_growth_pct", GROWTH_CATEGORY_RULES, GROWTH_CATEGORY_DEFAULT)
        .alias("growth_category")
    )


def classify_investment_priority(performance: pl.DataFrame) -> pl.DataFrame:
    rules = [(all_of(conditions), label) for conditions, label in INVESTMENT_PRIORITY_RULES]
    return performance.with_columns(
        first_match(rules, INVESTMENT_PRIORITY_DEFAULT).alias("investment_priority")
    )


def build_market_performance(
    users: pl.DataFrame,
    transactions: pl.DataFrame,
    verifications: pl.DataFrame,
    payment_methods: pl.DataFrame,
    start_date: date = MARKET_START_DATE,
    first_report_month: str = MARKET_FIRST_REPORT_MONTH,
) -> pl.DataFrame:
    """
    Full market performance report matching MARKET_PERFORMANCE_SCHEMA.

    Months before first_report_month are dropped only after the lag has been
    computed, so the first reported month still compares against the partial
    month before it.
    """
    base = build_market_base_metrics(users, transactions, verifications, payment_methods, start_date)
    performance = derive_market_performance(attach_prior_month(base))
    return (
        classify_investment_priority(performance)
        .filter(pl.col("report_month") >= first_report_month)
        .sort(
            ["country_code", "report_month", "investment_priority"],
            descending=[False, False, True],
            nulls_last=True,
        )
        .select(list(MARKET_PERFORMANCE_SCHEMA.keys()))
        .cast(MARKET_PERFORMANCE_SCHEMA)
    )
