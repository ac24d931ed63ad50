"""
CLI entrypoint: python -m fxpay_analytics.pipeline
Runs ingestion and the three report pipelines, then writes the outputs.
"""

from pathlib import Path

import polars as pl

from fxpay_analytics.contracts.schemas import PROCESSED_DATA_DIR, RAW_DATA_DIR, REPORT_SCHEMAS
from fxpay_analytics.pipeline.acquisition import build_user_acquisition
from fxpay_analytics.pipeline.ingest import load_snapshot
from fxpay_analytics.pipeline.market import build_market_performance
from fxpay_analytics.pipeline.revenue import build_transaction_revenue, count_unmatched_rates


def run_reports(tables: dict[str, pl.DataFrame], reports: tuple[str, ...] = tuple(REPORT_SCHEMAS)) -> dict[str, pl.DataFrame]:
    """Compute the requested reports from an already validated snapshot."""
    unknown = set(reports) - set(REPORT_SCHEMAS)
    if unknown:
        raise ValueError(f"Unknown report(s): {', '.join(sorted(unknown))}")

    results = {}
    if "user_acquisition" in reports:
        print("[pipeline] User acquisition...")
        results["user_acquisition"] = build_user_acquisition(
            tables["users"],
            tables["user_verifications"],
            tables["transactions"],
            tables["payment_methods"],
        )

    if "transaction_revenue" in reports:
        print("[pipeline] Transaction revenue...")
        dropped = count_unmatched_rates(tables["transactions"], tables["exchange_rates"])
        if dropped:
            print(f"  {dropped:,} completed transactions have no same-day exchange rate and are excluded")
        results["transaction_revenue"] = build_transaction_revenue(
            tables["transactions"],
            tables["exchange_rates"],
            tables["transaction_fees"],
        )

    if "market_performance" in reports:
        print("[pipeline] Market performance...")
        results["market_performance"] = build_market_performance(
            tables["users"],
            tables["transactions"],
            tables["user_verifications"],
            tables["payment_methods"],
        )

    for name, df in results.items():
        print(f"  {name:<20} {len(df):>8,} rows")
    return results


def write_reports(results: dict[str, pl.DataFrame], output_dir: str = PROCESSED_DATA_DIR) -> list[Path]:
    """Write each report as parquet and as CSV for BI tools."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    written = []
    for name, df in results.items():
        parquet_path = out / f"{name}.parquet"
        csv_path = out / f"{name}.csv"
        df.write_parquet(parquet_path)
        df.write_csv(csv_path)
        written.extend([parquet_path, csv_path])
    return written


def main(
    data_dir: str = RAW_DATA_DIR,
    output_dir: str = PROCESSED_DATA_DIR,
    reports: tuple[str, ...] = tuple(REPORT_SCHEMAS),
) -> dict[str, pl.DataFrame]:
    print("[pipeline] Starting FX Payments Analytics pipeline")

    print("[pipeline] Step 1/3 - Loading snapshot...")
    tables = load_snapshot(data_dir)

    print("[pipeline] Step 2/3 - Building reports...")
    results = run_reports(tables, reports)

    print("[pipeline] Step 3/3 - Writing outputs...")
    for path in write_reports(results, output_dir):
        print(f"  -> {path}")

    print("\n[pipeline] Done.")
    return results


if __name__ == "__main__":
    main()
