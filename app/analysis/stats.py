# ==============================================================================
# app/analysis/stats.py
# ------------------------------------------------------------------------------
# Statistics primitives shared by the anomaly, fraud and performance modules.
# Population statistics throughout (ddof=0), computed on pandas Series.
# ==============================================================================

import pandas as pd


def _series(xs, name):
    series = pd.Series(list(xs), dtype=float)
    if series.empty:
        raise ValueError(f"{name}() requires at least one value")
    return series


def mean(xs):
    return float(_series(xs, 'mean').mean())


def variance(xs):
    """Population variance (divides by n, not n - 1)."""
    return float(_series(xs, 'variance').var(ddof=0))


def std_dev(xs):
    return float(_series(xs, 'std_dev').std(ddof=0))


def median(xs):
    """
    Middle element of the sorted values. For an even number of values the
    lower-middle element is returned; the two middle values are not averaged.
    """
    values = _series(xs, 'median').sort_values(ignore_index=True)
    return float(values.iloc[(len(values) - 1) // 2])


def z_score(x, mu, sigma):
    """Distance of `x` from `mu` in standard deviations; 0 for a constant series."""
    if sigma == 0:
        return 0.0
    return (x - mu) / sigma
