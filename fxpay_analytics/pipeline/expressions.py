"""
Shared polars expression helpers for the report pipelines.

Every percentage in every report goes through safe_divide so that a zero or
null denominator always yields null (never an error, never a made-up 0).
"""

import operator

import polars as pl


_COMPARISONS = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


def sql_round(expr: pl.Expr, decimals: int) -> pl.Expr:
    """Round like SQL ROUND on numerics: ties go away from zero."""
    return expr.round(decimals, mode="half_away_from_zero")


def safe_divide(numerator: pl.Expr, denominator: pl.Expr) -> pl.Expr:
    """numerator / denominator as Float64, null when denominator is 0 or null."""
    return (
        pl.when(denominator.is_null() | (denominator == 0))
        .then(pl.lit(None, dtype=pl.Float64))
        .otherwise(numerator.cast(pl.Float64) / denominator.cast(pl.Float64))
    )


def percentage(numerator: pl.Expr, denominator: pl.Expr, decimals: int = 2) -> pl.Expr:
    """round(numerator / denominator * 100, decimals) with safe division."""
    return sql_round(safe_divide(numerator, denominator) * 100, decimals)


def growth_rate(current: pl.Expr, previous: pl.Expr, decimals: int = 2) -> pl.Expr:
    """
    Period-over-period growth in percent.

    Null when there is no previous period or the previous value is 0.
    """
    return sql_round(safe_divide(current - previous, previous) * 100, decimals)


def month_start(column: str) -> pl.Expr:
    return pl.col(column).dt.truncate("1mo")


def month_label(expr: pl.Expr) -> pl.Expr:
    return expr.dt.strftime("%Y-%m")


def compare(column: str, op: str, threshold: float) -> pl.Expr:
    if op not in _COMPARISONS:
        raise ValueError(f"Unsupported comparison operator: {op!r}")
    return _COMPARISONS[op](pl.col(column), threshold)


def all_of(conditions: dict) -> pl.Expr:
    """Conjunction of {column: (op, threshold)} comparisons."""
    return pl.all_horizontal([compare(col, op, value) for col, (op, value) in conditions.items()])


def any_of(conditions: dict) -> pl.Expr:
    """Disjunction of {column: (op, threshold)} comparisons."""
    return pl.any_horizontal([compare(col, op, value) for col, (op, value) in conditions.items()])


def first_match(rules: list[tuple[pl.Expr, str]], default: str) -> pl.Expr:
    """
    Build a when/then chain from (condition, label) pairs.

    Rules are evaluated in list order and the first true condition wins.
    A null condition counts as not matched, so null inputs fall through to
    later rules and finally to `default`.
    """
    if not rules:
        return pl.repeat(pl.lit(default), pl.len())
    condition, label = rules[0]
    chain = pl.when(condition).then(pl.lit(label))
    for condition, label in rules[1:]:
        chain = chain.when(condition).then(pl.lit(label))
    return chain.otherwise(pl.lit(default))


def threshold_ladder(column: str, rules: list[tuple[str, float, str]], default: str) -> pl.Expr:
    """first_match over single-column (op, threshold, label) rules."""
    return first_match(
        [(compare(column, op, value), label) for op, value, label in rules],
        default,
    )
