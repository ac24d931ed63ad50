"""
Synthetic snapshot generator for the FX payments analytics reports.

Generates a mutually consistent set of input tables (users, verifications,
transactions, payment methods, exchange rates, fee structures) covering
December 2023 to June 2024, so the partial first month of the market report
and the 30-day activation window are both exercised.

Embedded behaviours:
  1. ~20% of approved users never complete a transaction (dormant)
  2. Exchange-rate rows are missing on ~2% of days (known join gap)
  3. Referral and organic users activate faster than paid channels

Usage:
    python -m fxpay_analytics.data_generator.generate
"""

import os
from datetime import date, datetime, timedelta

import numpy as np
import polars as pl

from fxpay_analytics.contracts.schemas import (
    ACQUISITION_CHANNELS,
    COUNTRIES,
    PAYMENT_METHOD_NAMES,
    RAW_DATA_DIR,
    SNAPSHOT_SCHEMAS,
    SOURCE_CURRENCIES,
    TEST_USER_MAX_ID,
    TRANSACTION_STATUSES,
    VERIFICATION_LEVELS,
)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
DEFAULT_SEED = 42
DEFAULT_USERS = 2_000
START_DATE = date(2023, 12, 1)
END_DATE = date(2024, 6, 30)
LAST_REGISTRATION_DATE = date(2024, 5, 31)

SOURCE_CURRENCY_WEIGHTS = {"USD": 0.60, "GBP": 0.25, "EUR": 0.15}
KYC_STATUS_WEIGHTS = {"approved": 0.85, "pending": 0.10, "rejected": 0.05}
MISSING_RATE_PROBABILITY = 0.02
NEVER_TRANSACTS_PROBABILITY = 0.20

# Mean days from registration to first transaction, per channel
CHANNEL_ACTIVATION_DAYS = {
    "organic_search": 10.0,
    "paid_social": 24.0,
    "referral": 7.0,
    "app_store": 15.0,
    "affiliate_partner": 30.0,
}

# Mobile money rails only exist in some markets
MOBILE_MONEY_COUNTRIES = {"NG", "KE", "GH", "PH"}


def _weighted_choice(rng: np.random.Generator, weights: dict) -> str:
    keys = list(weights.keys())
    probs = np.array(list(weights.values()), dtype=float)
    probs /= probs.sum()
    return str(rng.choice(keys, p=probs))


def _random_date(rng: np.random.Generator, start: date, end: date) -> date:
    span = (end - start).days
    return start + timedelta(days=int(rng.integers(0, span + 1)))


# ---------------------------------------------------------------------------
# Dimension tables
# ---------------------------------------------------------------------------

def generate_users(rng: np.random.Generator, n_users: int) -> pl.DataFrame:
    country_weights = {c: meta["weight"] for c, meta in COUNTRIES.items()}
    records = []
    for user_id in range(1, n_users + 1):
        records.append({
            "id": user_id,
            "registration_date": _random_date(rng, START_DATE, LAST_REGISTRATION_DATE),
            "country_code": _weighted_choice(rng, country_weights),
            "acquisition_channel": _weighted_choice(rng, ACQUISITION_CHANNELS),
        })
    return pl.DataFrame(records, schema=SNAPSHOT_SCHEMAS["users"])


def generate_verifications(rng: np.random.Generator, users: pl.DataFrame) -> pl.DataFrame:
    level_weights = {level: meta["weight"] for level, meta in VERIFICATION_LEVELS.items()}
    records = []
    for user_id in users["id"].to_list():
        # a few users never started KYC
        if rng.random() < 0.03:
            continue
        level = int(_weighted_choice(rng, level_weights))
        limits = VERIFICATION_LEVELS[level]
        records.append({
            "user_id": user_id,
            "kyc_status": _weighted_choice(rng, KYC_STATUS_WEIGHTS),
            "verification_level": level,
            "monthly_limit_usd": limits["monthly_limit_usd"],
            "single_transaction_limit_usd": limits["single_transaction_limit_usd"],
        })
    return pl.DataFrame(records, schema=SNAPSHOT_SCHEMAS["user_verifications"])


def generate_payment_methods(rng: np.random.Generator) -> pl.DataFrame:
    records = []
    method_id = 1
    for country in COUNTRIES:
        for name in PAYMENT_METHOD_NAMES:
            if name == "Mobile Money" and country not in MOBILE_MONEY_COUNTRIES:
                continue
            records.append({
                "id": method_id,
                "method_name": name,
                "country_code": country,
                # cash pickup is being retired in some markets
                "is_active": not (name == "Cash Pickup" and rng.random() < 0.5),
            })
            method_id += 1
    return pl.DataFrame(records, schema=SNAPSHOT_SCHEMAS["payment_methods"])


def _currency_pairs() -> list[tuple[str, str]]:
    return [(src, meta["currency"]) for src in SOURCE_CURRENCIES for meta in COUNTRIES.values()]


def generate_exchange_rates(rng: np.random.Generator) -> pl.DataFrame:
    """Daily random-walk rates per pair, with some days missing."""
    usd_rates = {meta["currency"]: meta["usd_rate"] for meta in COUNTRIES.values()}
    records = []
    days = (END_DATE - START_DATE).days + 1
    for src, dst in _currency_pairs():
        rate = usd_rates[dst] * SOURCE_CURRENCIES[src]
        for offset in range(days):
            rate *= float(1 + rng.normal(0, 0.004))
            if rng.random() < MISSING_RATE_PROBABILITY:
                continue
            records.append({
                "currency_pair": f"{src}/{dst}",
                "date_recorded": START_DATE + timedelta(days=offset),
                "rate": round(rate, 6),
            })
    return pl.DataFrame(records, schema=SNAPSHOT_SCHEMAS["exchange_rates"])


def generate_transaction_fees(rng: np.random.Generator) -> pl.DataFrame:
    records = []
    for src, dst in _currency_pairs():
        pair = f"{src}/{dst}"
        records.append({
            "currency_pair": pair,
            "fee_type": "percentage",
            "fee_value": round(float(rng.uniform(1.2, 4.8)), 2),
            "minimum_fee": 199,
            "maximum_fee": 4_999,
            "is_active": True,
        })
        # superseded structure kept for history
        if rng.random() < 0.3:
            records.append({
                "currency_pair": pair,
                "fee_type": "flat",
                "fee_value": 4.99,
                "minimum_fee": 499,
                "maximum_fee": 499,
                "is_active": False,
            })
    return pl.DataFrame(records, schema=SNAPSHOT_SCHEMAS["transaction_fees"])


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

def _fee_rates(fees: pl.DataFrame) -> dict[str, dict]:
    active = fees.filter(pl.col("is_active"))
    return {row["currency_pair"]: row for row in active.iter_rows(named=True)}


def _random_timestamp(rng: np.random.Generator, day: date) -> datetime:
    # remittances peak in the evening
    hour = int(rng.integers(17, 24)) if rng.random() < 0.4 else int(rng.integers(0, 24))
    return datetime(day.year, day.month, day.day) + timedelta(
        hours=hour,
        minutes=int(rng.integers(0, 60)),
        seconds=int(rng.integers(0, 60)),
    )


def generate_transactions(
    rng: np.random.Generator,
    users: pl.DataFrame,
    payment_methods: pl.DataFrame,
    fees: pl.DataFrame,
) -> pl.DataFrame:
    methods_by_country: dict[str, list[int]] = {}
    for row in payment_methods.iter_rows(named=True):
        methods_by_country.setdefault(row["country_code"], []).append(row["id"])
    fee_rates = _fee_rates(fees)

    records = []
    txn_id = 1
    for user in users.iter_rows(named=True):
        if user["id"] > TEST_USER_MAX_ID and rng.random() < NEVER_TRANSACTS_PROBABILITY:
            continue
        dst = COUNTRIES[user["country_code"]]["currency"]
        src = _weighted_choice(rng, SOURCE_CURRENCY_WEIGHTS)
        pair = f"{src}/{dst}"
        fee = fee_rates[pair]

        n_txns = 1 + int(rng.poisson(3.5))
        day = user["registration_date"] + timedelta(
            days=int(rng.exponential(CHANNEL_ACTIVATION_DAYS[user["acquisition_channel"]]))
        )
        for _ in range(n_txns):
            if day > END_DATE:
                break
            amount_usd = float(min(rng.lognormal(5.5, 0.9), 14_000.0))
            source_amount = int(round(amount_usd * 100))
            fee_amount = int(round(source_amount * fee["fee_value"] / 100))
            fee_amount = max(fee["minimum_fee"], min(fee["maximum_fee"], fee_amount))
            records.append({
                "id": txn_id,
                "user_id": user["id"],
                "initiated_at": _random_timestamp(rng, day),
                "status": _weighted_choice(rng, TRANSACTION_STATUSES),
                "source_currency": src,
                "destination_currency": dst,
                "source_amount": source_amount,
                "fee_amount": fee_amount,
                # fee income plus ~0.6% FX spread
                "revenue_usd": round(fee_amount / 100 + amount_usd * 0.006, 2),
                "payment_method_id": int(rng.choice(methods_by_country[user["country_code"]])),
            })
            txn_id += 1
            day += timedelta(days=int(rng.exponential(18.0)) + 1)

    return pl.DataFrame(records, schema=SNAPSHOT_SCHEMAS["transactions"])


def generate_snapshot(n_users: int = DEFAULT_USERS, seed: int = DEFAULT_SEED) -> dict[str, pl.DataFrame]:
    """Generate every snapshot table. Same seed and size -> identical tables."""
    rng = np.random.default_rng(seed=seed)
    users = generate_users(rng, n_users)
    verifications = generate_verifications(rng, users)
    payment_methods = generate_payment_methods(rng)
    exchange_rates = generate_exchange_rates(rng)
    fees = generate_transaction_fees(rng)
    transactions = generate_transactions(rng, users, payment_methods, fees)
    return {
        "users": users,
        "user_verifications": verifications,
        "transactions": transactions,
        "payment_methods": payment_methods,
        "exchange_rates": exchange_rates,
        "transaction_fees": fees,
    }


# ---------------------------------------------------------------------------
# Validation / summary statistics
# ---------------------------------------------------------------------------

def print_summary(tables: dict[str, pl.DataFrame]) -> None:
    print("\n" + "=" * 60)
    print("DATA GENERATOR SUMMARY")
    print("=" * 60)
    for table, df in tables.items():
        print(f"  {table:<20} {len(df):>8,} rows")

    txns = tables["transactions"]
    print("\n--- Transaction status mix ---")
    status_mix = txns.group_by("status").agg(pl.len().alias("n")).sort("n", descending=True)
    for row in status_mix.iter_rows(named=True):
        print(f"  {row['status']:<10} {row['n']:>8,} ({row['n'] / len(txns):.1%})")

    print("\n--- Completed volume per month (USD) ---")
    monthly = (
        txns.filter(pl.col("status") == "completed")
        .group_by(pl.col("initiated_at").dt.strftime("%Y-%m").alias("month"))
        .agg((pl.col("source_amount").sum() / 100).alias("volume_usd"))
        .sort("month")
    )
    for row in monthly.iter_rows(named=True):
        print(f"  {row['month']}: ${row['volume_usd']:>14,.2f}")

    approved = tables["user_verifications"].filter(pl.col("kyc_status") == "approved").height
    print(f"\n  KYC approved users: {approved:,} / {len(tables['users']):,}")
    print("=" * 60)


def write_snapshot(tables: dict[str, pl.DataFrame], data_dir: str = RAW_DATA_DIR) -> list[str]:
    os.makedirs(data_dir, exist_ok=True)
    written = []
    for table, df in tables.items():
        path = os.path.join(data_dir, f"{table}.parquet")
        df.write_parquet(path)
        written.append(path)
    return written


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(data_dir: str = RAW_DATA_DIR, n_users: int = DEFAULT_USERS, seed: int = DEFAULT_SEED) -> None:
    print("Generating synthetic snapshot...")
    tables = generate_snapshot(n_users=n_users, seed=seed)

    for table, df in tables.items():
        expected_cols = set(SNAPSHOT_SCHEMAS[table].keys())
        assert set(df.columns) == expected_cols, f"Schema mismatch in {table}: {set(df.columns) ^ expected_cols}"

    print_summary(tables)

    for path in write_snapshot(tables, data_dir):
        print(f"Saved -> {path}")

    sample_path = os.path.join(data_dir, "transactions_sample.csv")
    tables["transactions"].head(100).write_csv(sample_path)
    print(f"Saved 100-row sample -> {sample_path}")


if __name__ == "__main__":
    main()
