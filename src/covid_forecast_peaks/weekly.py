import numpy as np
import pandas as pd
from scipy.interpolate import interp1d

from covid_forecast_peaks.config import CONFIG
from covid_forecast_peaks.peaks import InvalidInput
from covid_forecast_peaks.records import WeeklyCase, to_frame


def to_weekly(daily, freq=None):
    """
    Sum daily incident cases into epidemiological weeks (Sunday-Saturday).

    `daily` has columns location, date, value. Returns location, week_end,
    value. Weeks with fewer than 7 reported days are dropped so a partial
    first or last week does not show up as a trough.
    """
    freq = freq or CONFIG["week_end"]
    if daily.empty:
        return to_frame([], WeeklyCase)

    df = daily.copy()
    df["date"] = pd.to_datetime(df["date"])
    grouped = df.groupby(["location", pd.Grouper(key="date", freq=freq)])["value"]
    weekly = grouped.agg(["sum", "count"]).reset_index()
    weekly = weekly[weekly["count"] == 7].sort_values(["location", "date"])
    records = [
        WeeklyCase(location=loc, week_end=week.date(), value=float(total))
        for loc, week, total in weekly[["location", "date", "sum"]].itertuples(index=False)
    ]
    return to_frame(records, WeeklyCase)


def prepare_series(values):
    """
    Make a series safe for peak detection.

    Leading and trailing missing values are trimmed; interior gaps are filled
    by linear interpolation. Returns (clean values, offset of the first kept
    position) so detected indices can be shifted back.
    """
    x = np.asarray(values, dtype=float)
    defined = np.flatnonzero(np.isfinite(x))
    if len(defined) < 2:
        raise InvalidInput(f"series needs at least 2 defined values, got {len(defined)}")

    first, last = defined[0], defined[-1]
    trimmed = x[first:last + 1]
    known = np.flatnonzero(np.isfinite(trimmed))
    if len(known) < len(trimmed):
        fill = interp1d(known, trimmed[known], kind="linear")
        trimmed = fill(np.arange(len(trimmed)))
    return trimmed, int(first)


def horizon_series(forecasts, model, horizon):
    """Point forecasts of one model at one horizon, indexed by target end date."""
    sel = forecasts[(forecasts["model"] == model) & (forecasts["horizon"] == horizon)]
    point = sel[sel["quantile"].isna()].groupby("target_end_date")["value"].mean()
    # Hub submissions may omit the point row; the median stands in for that target
    median = sel[np.isclose(sel["quantile"].astype(float), 0.5)].groupby("target_end_date")["value"].mean()
    series = point.combine_first(median).astype(float)
    series.index = pd.to_datetime(series.index)
    return series.sort_index()


def regularize(series, freq="7D"):
    """Reindex a date-indexed series onto an unbroken weekly grid; missing weeks become NaN."""
    if series.empty:
        return series
    series = series.sort_index()
    grid = pd.date_range(series.index[0], series.index[-1], freq=freq)
    return series.reindex(grid)
