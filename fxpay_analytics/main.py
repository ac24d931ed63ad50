"""
FX Payments Analytics - CLI Entrypoint.

Usage:
    python -m fxpay_analytics.main generate    # Generate a synthetic snapshot
    python -m fxpay_analytics.main pipeline    # Run the report pipelines
    python -m fxpay_analytics.main report      # Console report + summary JSON
    python -m fxpay_analytics.main run-all     # Full end-to-end run
"""

import click
from rich.console import Console

from fxpay_analytics.contracts.schemas import (
    PROCESSED_DATA_DIR,
    RAW_DATA_DIR,
    REPORT_SCHEMAS,
    SUMMARY_OUTPUT_PATH,
)

console = Console()

data_dir_option = click.option(
    "--data-dir", default=RAW_DATA_DIR, show_default=True, help="Directory holding the snapshot parquet files."
)
output_dir_option = click.option(
    "--output-dir", default=PROCESSED_DATA_DIR, show_default=True, help="Directory for report outputs."
)


@click.group()
def cli():
    """FX Payments Analytics reports."""
    pass


@cli.command()
@data_dir_option
@click.option("--users", "n_users", default=2_000, show_default=True, type=click.IntRange(min=1))
@click.option("--seed", default=42, show_default=True, type=int)
def generate(data_dir, n_users, seed):
    """Generate a synthetic input snapshot."""
    console.rule("[bold]Step 1: Data Generation[/bold]")
    from fxpay_analytics.data_generator.generate import main

    main(data_dir=data_dir, n_users=n_users, seed=seed)
    console.print("[green]Data generation complete.[/green]\n")


@cli.command()
@data_dir_option
@output_dir_option
@click.option(
    "--report",
    "-r",
    "reports",
    multiple=True,
    type=click.Choice(list(REPORT_SCHEMAS)),
    help="Report(s) to build; all when omitted.",
)
def pipeline(data_dir, output_dir, reports):
    """Run the report pipelines against the snapshot."""
    console.rule("[bold]Step 2: Pipeline[/bold]")
    from fxpay_analytics.pipeline.__main__ import main as pipeline_main

    pipeline_main(data_dir=data_dir, output_dir=output_dir, reports=tuple(reports) or tuple(REPORT_SCHEMAS))
    console.print("[green]Pipeline complete.[/green]\n")


@cli.command()
@output_dir_option
@click.option("--summary-path", default=SUMMARY_OUTPUT_PATH, show_default=True)
@click.option("--limit", default=20, show_default=True, type=click.IntRange(min=1), help="Rows shown per report.")
@click.option("--only", type=click.Choice(list(REPORT_SCHEMAS)), default=None, help="Show a single report.")
def report(output_dir, summary_path, limit, only):
    """Print the reports and write the headline summary."""
    console.rule("[bold]Step 3: Report[/bold]")
    from fxpay_analytics.analytics.__main__ import main as report_main

    report_main(output_dir=output_dir, summary_path=summary_path, limit=limit, only=only)


@cli.command(name="run-all")
@data_dir_option
@output_dir_option
@click.pass_context
def run_all(ctx, data_dir, output_dir):
    """Run generation, pipelines and the report end-to-end."""
    console.rule("[bold cyan]FX Payments Analytics[/bold cyan]")
    console.print("Running full end-to-end pipeline...\n")

    ctx.invoke(generate, data_dir=data_dir)
    ctx.invoke(pipeline, data_dir=data_dir, output_dir=output_dir)
    ctx.invoke(report, output_dir=output_dir)

    console.rule("[bold green]Pipeline Complete[/bold green]")
    console.print("\nOutputs:")
    console.print(f"  Snapshot: {data_dir}/*.parquet")
    console.print(f"  Reports:  {output_dir}/*.parquet, {output_dir}/*.csv")
    console.print(f"  Summary:  {SUMMARY_OUTPUT_PATH}")


if __name__ == "__main__":
    cli()
