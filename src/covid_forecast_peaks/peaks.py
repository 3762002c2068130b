import numbers

import numpy as np
import pandas as pd


class InvalidInput(ValueError):
    """Raised when a series or window cannot be analyzed for peaks."""


def _validate(series, m):
    if isinstance(m, bool) or not isinstance(m, numbers.Integral):
        raise InvalidInput(f"window m must be an integer, got {m!r}")
    if m < 0:
        raise InvalidInput(f"window m must be non-negative, got {m}")

    try:
        raw = np.asarray(series)
    except ValueError as e:
        raise InvalidInput(f"series must be a flat sequence of numbers: {e}") from e
    if raw.dtype.kind == "O":
        bad = [v for v in raw.ravel() if isinstance(v, bool) or not isinstance(v, numbers.Real)]
        if bad:
            raise InvalidInput(f"series must be numeric, got {bad[:3]!r}")
    elif raw.dtype.kind not in "iuf":
        raise InvalidInput(f"series must be numeric, got dtype {raw.dtype}")
    values = raw.astype(float)

    if values.ndim != 1:
        raise InvalidInput(f"series must be one-dimensional, got shape {values.shape}")
    if values.size == 0:
        raise InvalidInput("series is empty")
    if not np.all(np.isfinite(values)):
        bad = np.flatnonzero(~np.isfinite(values)).tolist()
        raise InvalidInput(f"series has non-finite values at positions {bad}")
    return values


def find_peaks(series, m=3, symmetric=False):
    """
    Indices of local maxima in `series`.

    A candidate is any position where the slope sign drops (rising or flat
    into falling). It is kept only if it is >= every value in its window.

    The default window reproduces the historical rule: left flank
    series[c-m..c], right flank series[c+2..c+m+1], both clipped to the
    series bounds. With symmetric=True the right flank is series[c+1..c+m]
    so both sides see exactly m neighbours.
    """
    x = _validate(series, m)
    n = len(x)
    if n < 3:
        return []

    shape = np.diff(np.sign(np.diff(x)))
    candidates = np.flatnonzero(shape < 0) + 1

    peaks = []
    for c in candidates:
        z = max(0, c - m)
        if symmetric:
            right = x[c + 1:min(n - 1, c + m) + 1]
        else:
            right = x[c + 2:min(n - 1, c + m + 1) + 1]
        left = x[z:c + 1]
        if np.all(left <= x[c]) and np.all(right <= x[c]):
            peaks.append(int(c))
    return peaks


def peak_dates(dates, series, m=3, symmetric=False):
    """Dates at the peak positions of a date-aligned series."""
    dates = pd.DatetimeIndex(dates)
    if len(dates) != len(series):
        raise InvalidInput(f"got {len(dates)} dates for {len(series)} values")
    return [dates[i] for i in find_peaks(series, m=m, symmetric=symmetric)]
