"""
CLI entrypoint for the console report.

Usage:
    python -m fxpay_analytics.analytics
"""

from typing import Optional

import polars as pl
from rich import box
from rich.console import Console
from rich.table import Table

from fxpay_analytics.analytics.summary import run as run_summary, load_reports
from fxpay_analytics.contracts.schemas import PROCESSED_DATA_DIR, SUMMARY_OUTPUT_PATH

console = Console()

LABEL_COLORS = {
    "Priority Market": "bold green",
    "Growth Market": "green",
    "Core Market": "white",
    "At-Risk Market": "red",
    "High Growth": "green",
    "Stable": "white",
    "Declining": "red",
    "Strong": "green",
    "Moderate": "yellow",
    "Needs Improvement": "red",
    "Consider fee increase": "yellow",
    "Optimal fee range": "green",
    "Potential for volume discounts": "cyan",
}

# columns rendered with a % suffix
PERCENT_COLUMNS = {
    "activation_rate",
    "effective_fee_rate_pct",
    "approval_rate",
    "tier3_concentration",
    "success_rate",
    "margin_pct",
    "bank_transfer_pct",
    "mobile_money_pct",
    "user_growth_pct",
    "revenue_growth_pct",
}

REPORT_COLUMNS = {
    "market_performance": [
        "country_code", "report_month", "total_users", "approval_rate", "success_rate",
        "revenue_usd", "revenue_growth_pct", "growth_category", "investment_priority",
    ],
    "transaction_revenue": [
        "month", "currency_pair", "user_segment", "user_count", "transaction_count",
        "total_fees_usd", "effective_fee_rate_pct", "pricing_recommendation",
    ],
    "user_acquisition": [
        "acquisition_month", "country_code", "acquisition_channel", "verification_level",
        "total_users", "activated_users", "activation_rate", "avg_days_to_activation", "funnel_health",
    ],
}


def format_cell(column: str, value) -> str:
    if value is None:
        return "[dim]-[/dim]"
    if column in PERCENT_COLUMNS:
        return f"{value}%"
    if isinstance(value, str) and value in LABEL_COLORS:
        color = LABEL_COLORS[value]
        return f"[{color}]{value}[/{color}]"
    if isinstance(value, float):
        return f"{value:,.2f}"
    if isinstance(value, int):
        return f"{value:,}"
    return str(value)


def render_report(name: str, df: pl.DataFrame, limit: int = 20) -> Table:
    columns = REPORT_COLUMNS[name]
    table = Table(
        title=f"{name.replace('_', ' ').title()} ({len(df):,} rows)",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta",
        expand=True,
    )
    for column in columns:
        table.add_column(column, overflow="fold")
    for row in df.head(limit).select(columns).iter_rows(named=True):
        table.add_row(*[format_cell(col, row[col]) for col in columns])
    return table


def main(
    output_dir: str = PROCESSED_DATA_DIR,
    summary_path: str = SUMMARY_OUTPUT_PATH,
    limit: int = 20,
    only: Optional[str] = None,
) -> dict:
    console.rule("[bold blue]FX Payments Analytics - Report")

    names = (only,) if only else None
    reports = load_reports(output_dir, names)
    for name in REPORT_COLUMNS:
        if name in reports:
            console.print(render_report(name, reports[name], limit=limit))

    console.rule("[bold green]Summary")
    summary = run_summary(output_dir, summary_path, tuple(reports))

    if "user_acquisition" in summary:
        acq = summary["user_acquisition"]
        console.print(
            f"  Users: [bold]{acq['total_users']:,}[/bold] approved, "
            f"{acq['activated_users']:,} activated within 30 days "
            f"({acq['overall_activation_rate']}%)"
        )
    if "transaction_revenue" in summary:
        rev = summary["transaction_revenue"]
        console.print(
            f"  Fees:  [bold]${rev['total_fees_usd']:,.2f}[/bold] on ${rev['total_value_usd']:,.2f} "
            f"across {rev['corridor_months']:,} corridor-months"
        )
        if rev["top_corridor_by_fees"]:
            top = rev["top_corridor_by_fees"]
            console.print(f"  Top corridor: [bold]{top['currency_pair']}[/bold] (${top['total_fees_usd']:,.2f} fees)")
    if "market_performance" in summary and summary["market_performance"]["latest_month"]:
        mkt = summary["market_performance"]
        console.print(f"  Markets in {mkt['latest_month']}:")
        for country, priority in mkt["latest_investment_priority"].items():
            console.print(f"    {country}: {format_cell('investment_priority', priority)}")

    console.rule()
    console.print(f"[dim]Outputs: {output_dir}/*.parquet, {output_dir}/*.csv, {summary_path}[/dim]")
    return summary


if __name__ == "__main__":
    main()
