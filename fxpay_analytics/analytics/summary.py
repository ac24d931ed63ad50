"""
Headline summary across the three reports.

Reads the report outputs, condenses them into a small dict of headline
numbers and label counts, and saves it as JSON for the console report.

Outputs: data/analytics/summary.json
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import polars as pl

from fxpay_analytics.contracts.schemas import PROCESSED_DATA_DIR, REPORT_SCHEMAS, SUMMARY_OUTPUT_PATH


def load_reports(output_dir: str = PROCESSED_DATA_DIR, names: Optional[tuple[str, ...]] = None) -> dict[str, pl.DataFrame]:
    """
    Load report outputs from output_dir.

    With names given, every named report must exist. Without, whichever
    reports the pipeline has written are loaded, and at least one must be.
    """
    paths = {name: Path(output_dir) / f"{name}.parquet" for name in REPORT_SCHEMAS}
    if names is None:
        names = tuple(name for name, path in paths.items() if path.exists())
        if not names:
            raise FileNotFoundError(
                f"No reports found under '{output_dir}'. "
                "Run the pipeline first."
            )

    reports = {}
    for name in names:
        path = paths[name]
        if not path.exists():
            raise FileNotFoundError(
                f"Report not found at '{path}'. "
                "Run the pipeline first."
            )
        reports[name] = pl.read_parquet(path)
    return reports


def _safe_ratio(num: float, den: float) -> Optional[float]:
    if not den:
        return None
    return num / den


def _label_counts(df: pl.DataFrame, column: str) -> dict[str, int]:
    counts = df.group_by(column).agg(pl.len().alias("n")).sort(column)
    return {row[column]: int(row["n"]) for row in counts.iter_rows(named=True)}


def summarise_acquisition(acquisition: pl.DataFrame) -> dict:
    total = int(acquisition["total_users"].sum())
    activated = int(acquisition["activated_users"].sum())
    rate = _safe_ratio(activated * 100.0, total)
    return {
        "cohorts": len(acquisition),
        "total_users": total,
        "activated_users": activated,
        "overall_activation_rate": round(rate, 1) if rate is not None else None,
        "funnel_health": _label_counts(acquisition, "funnel_health"),
    }


def summarise_revenue(revenue: pl.DataFrame) -> dict:
    """Corridor metrics repeat across segment/seasonal rows, so dedupe per corridor-month first."""
    corridors = revenue.unique(subset=["month", "currency_pair"], keep="first", maintain_order=True)
    top: Optional[dict] = None
    if len(corridors):
        by_pair = (
            corridors.group_by("currency_pair")
            .agg(pl.col("total_fees_usd").sum())
            .sort(["total_fees_usd", "currency_pair"], descending=[True, False])
        )
        best = by_pair.row(0, named=True)
        top = {"currency_pair": best["currency_pair"], "total_fees_usd": round(best["total_fees_usd"], 2)}
    return {
        "corridor_months": len(corridors),
        "total_value_usd": round(float(corridors["total_value_usd"].sum()), 2),
        "total_fees_usd": round(float(corridors["total_fees_usd"].sum()), 2),
        "pricing_recommendation": _label_counts(corridors, "pricing_recommendation"),
        "top_corridor_by_fees": top,
    }


def summarise_market(market: pl.DataFrame) -> dict:
    latest_month = market["report_month"].max() if len(market) else None
    latest = market.filter(pl.col("report_month") == latest_month) if latest_month else market.head(0)
    return {
        "country_months": len(market),
        "latest_month": latest_month,
        "latest_investment_priority": {
            row["country_code"]: row["investment_priority"] for row in latest.iter_rows(named=True)
        },
        "growth_category": _label_counts(market, "growth_category"),
        "investment_priority": _label_counts(market, "investment_priority"),
    }


SUMMARISERS = {
    "user_acquisition": summarise_acquisition,
    "transaction_revenue": summarise_revenue,
    "market_performance": summarise_market,
}


def build_summary(reports: dict[str, pl.DataFrame]) -> dict:
    """Summarise whichever reports are present; absent ones are left out."""
    summary = {name: summarise(reports[name]) for name, summarise in SUMMARISERS.items() if name in reports}
    summary["analysis_timestamp"] = datetime.now(timezone.utc).isoformat()
    return summary


def save_summary(summary: dict, path: str = SUMMARY_OUTPUT_PATH) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as fh:
        json.dump(summary, fh, indent=2)
    print(f"[summary] Saved summary to '{path}'")


def run(
    output_dir: str = PROCESSED_DATA_DIR,
    summary_path: str = SUMMARY_OUTPUT_PATH,
    names: Optional[tuple[str, ...]] = None,
) -> dict:
    """Load the reports, build and save the summary. Returns the summary dict."""
    reports = load_reports(output_dir, names)
    summary = build_summary(reports)
    save_summary(summary, summary_path)
    return summary


if __name__ == "__main__":
    run()
