"""
Data contracts for the FX Payments Analytics reports.

These schemas are the single source of truth for table shapes, file paths
and the business thresholds used by the classification ladders.

Layer flow: raw snapshot tables -> report outputs -> analytics summary
"""

from datetime import date

import polars as pl


# =============================================================================
# LAYER 1: Raw snapshot (Data Generator / ETL -> data/raw/<table>.parquet)
# =============================================================================

USERS_SCHEMA = {
    "id": pl.Int64,
    "registration_date": pl.Date,
    "country_code": pl.Utf8,           # NG, KE, GH, PH, MX, IN
    "acquisition_channel": pl.Utf8,    # organic_search, paid_social, referral, ...
}

USER_VERIFICATIONS_SCHEMA = {
    "user_id": pl.Int64,
    "kyc_status": pl.Utf8,             # approved, pending, rejected
    "verification_level": pl.Int32,    # 1-3
    "monthly_limit_usd": pl.Float64,
    "single_transaction_limit_usd": pl.Float64,
}

TRANSACTIONS_SCHEMA = {
    "id": pl.Int64,
    "user_id": pl.Int64,
    "initiated_at": pl.Datetime("us"),
    "status": pl.Utf8,                 # completed, pending, failed, cancelled
    "source_currency": pl.Utf8,
    "destination_currency": pl.Utf8,
    "source_amount": pl.Int64,         # minor units (cents)
    "fee_amount": pl.Int64,            # minor units (cents)
    "revenue_usd": pl.Float64,
    "payment_method_id": pl.Int64,
}

PAYMENT_METHODS_SCHEMA = {
    "id": pl.Int64,
    "method_name": pl.Utf8,            # Bank Transfer, Mobile Money, Debit Card, ...
    "country_code": pl.Utf8,
    "is_active": pl.Boolean,
}

EXCHANGE_RATES_SCHEMA = {
    "currency_pair": pl.Utf8,          # "USD/NGN"
    "date_recorded": pl.Date,
    "rate": pl.Float64,
}

TRANSACTION_FEES_SCHEMA = {
    "currency_pair": pl.Utf8,
    "fee_type": pl.Utf8,               # percentage, flat, tiered
    "fee_value": pl.Float64,
    "minimum_fee": pl.Int64,           # minor units
    "maximum_fee": pl.Int64,           # minor units
    "is_active": pl.Boolean,
}

# table name -> schema; file name on disk is "<table>.parquet"
SNAPSHOT_SCHEMAS = {
    "users": USERS_SCHEMA,
    "user_verifications": USER_VERIFICATIONS_SCHEMA,
    "transactions": TRANSACTIONS_SCHEMA,
    "payment_methods": PAYMENT_METHODS_SCHEMA,
    "exchange_rates": EXCHANGE_RATES_SCHEMA,
    "transaction_fees": TRANSACTION_FEES_SCHEMA,
}

RAW_DATA_DIR = "data/raw"


# =============================================================================
# LAYER 2: Report outputs (Pipeline -> data/processed/)
# =============================================================================

USER_ACQUISITION_SCHEMA = {
    "acquisition_month": pl.Utf8,             # "YYYY-MM"
    "country_code": pl.Utf8,
    "acquisition_channel": pl.Utf8,           # "Paid Social"
    "verification_level": pl.Int32,
    "total_users": pl.Int64,
    "activated_users": pl.Int64,
    "activation_rate": pl.Float64,            # 0-100, 1 decimal
    "avg_days_to_activation": pl.Float64,     # null when nobody activated
    "available_payment_methods": pl.Int64,
    "avg_monthly_limit_usd": pl.Float64,
    "avg_transaction_limit_usd": pl.Float64,
    "funnel_health": pl.Utf8,
}

TRANSACTION_REVENUE_SCHEMA = {
    "month": pl.Utf8,                         # "YYYY-MM"
    "currency_pair": pl.Utf8,
    "user_segment": pl.Utf8,
    "user_count": pl.Int64,
    "transaction_count": pl.Int64,
    "total_value_usd": pl.Float64,
    "total_fees_usd": pl.Float64,
    "effective_fee_rate_pct": pl.Float64,     # null when corridor value is 0
    "avg_txn_size_usd": pl.Float64,
    "day_of_week": pl.Int32,                  # 0 = Sunday ... 6 = Saturday
    "month_of_year": pl.Int32,
    "seasonal_txn_count": pl.Int64,
    "seasonal_value_usd": pl.Float64,
    "fee_type": pl.Utf8,                      # null without an active fee structure
    "fee_percentage": pl.Float64,
    "min_fee_usd": pl.Float64,
    "max_fee_usd": pl.Float64,
    "pricing_recommendation": pl.Utf8,
}

MARKET_PERFORMANCE_SCHEMA = {
    "country_code": pl.Utf8,
    "report_month": pl.Utf8,                  # "YYYY-MM"
    "total_users": pl.Int64,
    "approval_rate": pl.Float64,
    "tier3_concentration": pl.Float64,
    "total_transactions": pl.Int64,
    "success_rate": pl.Float64,
    "volume_usd": pl.Float64,
    "revenue_usd": pl.Float64,
    "margin_pct": pl.Float64,
    "bank_transfer_pct": pl.Float64,
    "mobile_money_pct": pl.Float64,
    "user_growth_pct": pl.Float64,            # null for the first month per country
    "revenue_growth_pct": pl.Float64,         # null for the first month per country
    "growth_category": pl.Utf8,
    "investment_priority": pl.Utf8,
}

PROCESSED_DATA_DIR = "data/processed"

# report name -> output schema; files are "<report>.parquet" and "<report>.csv"
REPORT_SCHEMAS = {
    "user_acquisition": USER_ACQUISITION_SCHEMA,
    "transaction_revenue": TRANSACTION_REVENUE_SCHEMA,
    "market_performance": MARKET_PERFORMANCE_SCHEMA,
}


# =============================================================================
# LAYER 3: Analytics output (Analytics -> data/analytics/)
# =============================================================================

SUMMARY_OUTPUT_PATH = "data/analytics/summary.json"


# =============================================================================
# BUSINESS CONSTANTS
# =============================================================================

COMPLETED_STATUS = "completed"
APPROVED_KYC_STATUS = "approved"

# Users with id <= TEST_USER_MAX_ID are internal test fixtures
TEST_USER_MAX_ID = 10
ACTIVATION_WINDOW_DAYS = 30

# Market report: current-year window; the first month is partial
MARKET_START_DATE = date(2024, 1, 1)
MARKET_FIRST_REPORT_MONTH = "2024-02"

BANK_TRANSFER_METHOD = "Bank Transfer"
MOBILE_MONEY_METHOD = "Mobile Money"


# =============================================================================
# CLASSIFICATION LADDERS
# Evaluated top to bottom, first match wins. Thresholds overlap on purpose,
# so the order of each list is part of the contract.
# =============================================================================

# (threshold_op, threshold, label) on revenue_growth_pct
GROWTH_CATEGORY_RULES = [
    (">", 20.0, "High Growth"),
    ("<", -5.0, "Declining"),
]
GROWTH_CATEGORY_DEFAULT = "Stable"

# ({column: (op, threshold)} all of which must hold, label)
INVESTMENT_PRIORITY_RULES = [
    ({"revenue_growth_pct": (">", 20.0), "tier3_concentration": (">", 15.0)}, "Priority Market"),
    ({"revenue_growth_pct": (">", 15.0), "success_rate": (">", 90.0)}, "Growth Market"),
    ({"revenue_growth_pct": ("<", -5.0)}, "At-Risk Market"),
]
INVESTMENT_PRIORITY_DEFAULT = "Core Market"

# on activation_rate (percent)
FUNNEL_HEALTH_RULES = [
    ("<", 50.0, "Needs Improvement"),
    ("<", 70.0, "Moderate"),
]
FUNNEL_HEALTH_DEFAULT = "Strong"

# on effective_fee_rate (fraction, not percent)
PRICING_RULES = [
    ("<", 0.02, "Consider fee increase"),
    (">", 0.04, "Potential for volume discounts"),
]
PRICING_DEFAULT = "Optimal fee range"

# ({column: (op, threshold)} any of which may hold, label)
USER_SEGMENT_RULES = [
    ({"transaction_count": (">=", 10), "total_value_usd": (">=", 10_000.0)}, "High-Value"),
    ({"transaction_count": (">=", 5)}, "Regular"),
    ({"transaction_count": (">=", 1)}, "Occasional"),
]
USER_SEGMENT_DEFAULT = "Dormant"


# =============================================================================
# GENERATOR CONSTANTS
# =============================================================================

COUNTRIES = {
    "NG": {"currency": "NGN", "weight": 0.30, "usd_rate": 1450.0},
    "KE": {"currency": "KES", "weight": 0.20, "usd_rate": 129.0},
    "GH": {"currency": "GHS", "weight": 0.15, "usd_rate": 14.5},
    "PH": {"currency": "PHP", "weight": 0.15, "usd_rate": 56.0},
    "MX": {"currency": "MXN", "weight": 0.10, "usd_rate": 17.2},
    "IN": {"currency": "INR", "weight": 0.10, "usd_rate": 83.0},
}

# Sending currencies and their USD value of one unit
SOURCE_CURRENCIES = {"USD": 1.0, "GBP": 1.27, "EUR": 1.09}

ACQUISITION_CHANNELS = {
    "organic_search": 0.30,
    "paid_social": 0.25,
    "referral": 0.20,
    "app_store": 0.15,
    "affiliate_partner": 0.10,
}

TRANSACTION_STATUSES = {"completed": 0.86, "pending": 0.05, "failed": 0.06, "cancelled": 0.03}

PAYMENT_METHOD_NAMES = ["Bank Transfer", "Mobile Money", "Debit Card", "Cash Pickup"]

VERIFICATION_LEVELS = {
    1: {"weight": 0.50, "monthly_limit_usd": 1_000.0, "single_transaction_limit_usd": 500.0},
    2: {"weight": 0.35, "monthly_limit_usd": 10_000.0, "single_transaction_limit_usd": 3_000.0},
    3: {"weight": 0.15, "monthly_limit_usd": 50_000.0, "single_transaction_limit_usd": 15_000.0},
}
