"""
Load the raw snapshot tables from parquet and validate them against the contracts.
"""

from pathlib import Path

import polars as pl

from fxpay_analytics.contracts.schemas import RAW_DATA_DIR, SNAPSHOT_SCHEMAS


def _validate_schema(df: pl.DataFrame, schema: dict, table: str) -> None:
    """Raise if df is missing required columns or has wrong types."""
    for col, dtype in schema.items():
        if col not in df.columns:
            raise ValueError(f"Table '{table}': missing required column: {col}")
        actual = df[col].dtype
        # For Datetime, compare only time_unit; the timezone is optional
        if isinstance(dtype, pl.Datetime):
            if not isinstance(actual, pl.Datetime) or actual.time_unit != dtype.time_unit:
                raise TypeError(f"Table '{table}', column '{col}': expected {dtype}, got {actual}")
        elif actual != dtype:
            raise TypeError(f"Table '{table}', column '{col}': expected {dtype}, got {actual}")


def validate_snapshot(tables: dict[str, pl.DataFrame]) -> None:
    """Check that every contract table is present and matches its schema."""
    for table, schema in SNAPSHOT_SCHEMAS.items():
        if table not in tables:
            raise ValueError(f"Snapshot is missing table: {table}")
        _validate_schema(tables[table], schema, table)


def snapshot_paths(data_dir: str = RAW_DATA_DIR) -> dict[str, Path]:
    return {table: Path(data_dir) / f"{table}.parquet" for table in SNAPSHOT_SCHEMAS}


def load_snapshot(data_dir: str = RAW_DATA_DIR, strict: bool = False) -> dict[str, pl.DataFrame]:
    """
    Load and validate all snapshot tables from data_dir.

    If any table file is absent the whole snapshot is replaced by a generated
    mock snapshot (tables must stay mutually consistent), unless strict is set,
    in which case FileNotFoundError is raised.
    """
    paths = snapshot_paths(data_dir)
    missing = [str(p) for p in paths.values() if not p.exists()]
    if missing:
        if strict:
            raise FileNotFoundError(
                f"Snapshot tables not found: {', '.join(missing)}. "
                "Run the data generator first."
            )
        print(f"[ingest] {len(missing)} table(s) missing under '{data_dir}' - generating mock snapshot")
        from fxpay_analytics.data_generator.generate import generate_snapshot

        tables = generate_snapshot(n_users=300)
    else:
        tables = {table: pl.read_parquet(path) for table, path in paths.items()}

    validate_snapshot(tables)
    for table, df in tables.items():
        print(f"[ingest] {table}: {len(df):,} rows")
    return tables
