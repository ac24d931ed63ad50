"""
User acquisition report: monthly onboarding cohorts, 30-day activation and
funnel health.

A cohort is (acquisition_month, country_code, acquisition_channel,
verification_level). Only KYC-approved users outside the test-fixture id
range take part in any metric.
"""

import polars as pl

from fxpay_analytics.contracts.schemas import (
    ACTIVATION_WINDOW_DAYS,
    APPROVED_KYC_STATUS,
    COMPLETED_STATUS,
    FUNNEL_HEALTH_DEFAULT,
    FUNNEL_HEALTH_RULES,
    TEST_USER_MAX_ID,
    USER_ACQUISITION_SCHEMA,
)
from fxpay_analytics.pipeline.expressions import (
    month_label,
    month_start,
    safe_divide,
    sql_round,
    threshold_ladder,
)

COHORT_KEYS = ["acquisition_month", "country_code", "acquisition_channel", "verification_level"]


def eligible_users(users: pl.DataFrame, verifications: pl.DataFrame) -> pl.DataFrame:
    """Non-test users joined to their approved verification record(s)."""
    approved = (
        verifications
        .filter(pl.col("kyc_status") == APPROVED_KYC_STATUS)
        .select(["user_id", "verification_level", "monthly_limit_usd", "single_transaction_limit_usd"])
    )
    return (
        users
        .filter(pl.col("id") > TEST_USER_MAX_ID)
        .select([pl.col("id").alias("user_id"), "registration_date", "country_code", "acquisition_channel"])
        .join(approved, on="user_id", how="inner")
    )


def build_user_activation(
    users: pl.DataFrame,
    verifications: pl.DataFrame,
    transactions: pl.DataFrame,
) -> pl.DataFrame:
    """
    One row per eligible user with the timestamp of their first completed
    transaction, the 30-day activation flag and whole days to activation.

    The activation deadline is registration midnight + 30 days, inclusive.
    Users without a completed transaction get a null first date and flag 0.
    """
    first_completed = (
        transactions
        .filter(pl.col("status") == COMPLETED_STATUS)
        .group_by("user_id")
        .agg(pl.col("initiated_at").min().alias("first_completed_transaction_date"))
    )
    # registration midnight in the same time zone as initiated_at
    time_zone = transactions.schema["initiated_at"].time_zone
    registered_at = pl.col("registration_date").cast(pl.Datetime("us")).dt.replace_time_zone(time_zone)
    first = pl.col("first_completed_transaction_date")
    deadline = registered_at + pl.duration(days=ACTIVATION_WINDOW_DAYS)

    return (
        eligible_users(users, verifications)
        .select(["user_id", "registration_date", "country_code", "acquisition_channel"])
        .unique(subset=["user_id"], keep="first", maintain_order=True)
        .join(first_completed, on="user_id", how="left")
        .with_columns([
            (first.is_not_null() & (first <= deadline)).fill_null(False).cast(pl.Int32).alias("activated_within_30_days"),
            (first - registered_at).dt.total_days().alias("days_to_activation"),
        ])
        .sort("user_id")
    )


def build_cohort_metrics(
    users: pl.DataFrame,
    verifications: pl.DataFrame,
    activation: pl.DataFrame,
) -> pl.DataFrame:
    """Per-cohort counts, activation rate, average days to activation and limits."""
    activated = pl.col("activated_within_30_days") == 1
    return (
        eligible_users(users, verifications)
        .join(
            activation.select(["user_id", "activated_within_30_days", "days_to_activation"]),
            on="user_id",
            how="left",
        )
        .with_columns(month_start("registration_date").alias("acquisition_month"))
        .group_by(COHORT_KEYS)
        .agg([
            pl.col("user_id").n_unique().cast(pl.Int64).alias("total_users"),
            pl.col("user_id").filter(activated).n_unique().cast(pl.Int64).alias("activated_users"),
            # days are only meaningful for activated users
            pl.col("days_to_activation").filter(activated).mean().alias("avg_days_to_activation"),
            pl.col("monthly_limit_usd").mean().alias("avg_monthly_limit_usd"),
            pl.col("single_transaction_limit_usd").mean().alias("avg_transaction_limit_usd"),
        ])
        .with_columns([
            sql_round(safe_divide(pl.col("activated_users") * 100.0, pl.col("total_users")), 1).alias("activation_rate"),
            sql_round(pl.col("avg_days_to_activation"), 1),
            sql_round(pl.col("avg_monthly_limit_usd"), 0),
            sql_round(pl.col("avg_transaction_limit_usd"), 0),
        ])
    )


def count_available_payment_methods(payment_methods: pl.DataFrame) -> pl.DataFrame:
    return (
        payment_methods
        .filter(pl.col("is_active"))
        .group_by("country_code")
        .agg(pl.col("id").n_unique().cast(pl.Int64).alias("available_payment_methods"))
    )


def _display_channel(expr: pl.Expr) -> pl.Expr:
    """'paid_social' -> 'Paid Social'"""
    return expr.str.replace_all("_", " ").str.to_titlecase()


def build_user_acquisition(
    users: pl.DataFrame,
    verifications: pl.DataFrame,
    transactions: pl.DataFrame,
    payment_methods: pl.DataFrame,
) -> pl.DataFrame:
    """
    Full user acquisition report matching USER_ACQUISITION_SCHEMA, ordered by
    acquisition_month then activation_rate descending.
    """
    activation = build_user_activation(users, verifications, transactions)
    cohorts = build_cohort_metrics(users, verifications, activation)
    methods = count_available_payment_methods(payment_methods)

    return (
        cohorts
        .join(methods, on="country_code", how="left")
        .with_columns([
            pl.col("available_payment_methods").fill_null(0),
            threshold_ladder("activation_rate", FUNNEL_HEALTH_RULES, FUNNEL_HEALTH_DEFAULT).alias("funnel_health"),
        ])
        .sort(
            ["acquisition_month", "activation_rate", "country_code", "acquisition_channel", "verification_level"],
            descending=[False, True, False, False, False],
            nulls_last=True,
        )
        .with_columns([
            month_label(pl.col("acquisition_month")).alias("acquisition_month"),
            _display_channel(pl.col("acquisition_channel")).alias("acquisition_channel"),
        ])
        .select(list(USER_ACQUISITION_SCHEMA.keys()))
        .cast(USER_ACQUISITION_SCHEMA)
    )
