import numpy as np
import pandas as pd

from covid_forecast_peaks.records import ScoreRecord


def interval_score(observation, lower, upper, interval_range):
    """
    Interval score for central prediction intervals.

    interval_range is the nominal coverage in percent, e.g. 90 for the
    (0.05, 0.95) quantile pair. Returns a dict of arrays: interval_score,
    dispersion, underprediction, overprediction.
    """
    obs, l, u = np.atleast_1d(observation), np.atleast_1d(lower), np.atleast_1d(upper)
    if not (len(obs) == len(l) == len(u)):
        raise ValueError("vector shape mismatch")
    if interval_range <= 0 or interval_range >= 100:
        raise ValueError("interval range should be strictly between 0 and 100")

    alpha = 1 - interval_range / 100
    dispersion = u - l
    underprediction = (2 / alpha) * (l - obs) * (obs < l)
    overprediction = (2 / alpha) * (obs - u) * (obs > u)
    return {
        "interval_score": dispersion + underprediction + overprediction,
        "dispersion": dispersion,
        "underprediction": underprediction,
        "overprediction": overprediction,
    }


def _pairs(quantiles):
    """Split sorted quantile levels into symmetric (lower, upper) index pairs and the median index."""
    q = np.asarray(quantiles, dtype=float)
    if len(q) % 2 != 1:
        raise ValueError(f"expected an odd number of quantile levels, got {len(q)}")
    mid = len(q) // 2
    if not np.isclose(q[mid], 0.5):
        raise ValueError("quantile levels must include the median")
    pairs = [(i, len(q) - i - 1) for i in range(mid)]
    for lo, hi in pairs:
        if not np.isclose(q[lo] + q[hi], 1.0):
            raise ValueError(f"quantile levels {q[lo]} and {q[hi]} are not symmetric")
    return pairs, mid


def weighted_interval_score(observation, quantiles, values):
    """WIS of one observation against a quantile forecast."""
    order = np.argsort(quantiles)
    q = np.asarray(quantiles, dtype=float)[order]
    v = np.asarray(values, dtype=float)[order]
    pairs, mid = _pairs(q)

    total = 0.5 * abs(observation - v[mid])
    for lo, hi in pairs:
        alpha = 1 - (q[hi] - q[lo])
        score = interval_score(observation, v[lo], v[hi], 100 * (q[hi] - q[lo]))["interval_score"][0]
        total += alpha / 2 * score
    return float(total / (len(pairs) + 0.5))


def absolute_error(observation, point):
    return np.abs(np.asarray(observation, dtype=float) - np.asarray(point, dtype=float))


def coverage(observation, lower, upper):
    """Fraction of observations inside [lower, upper]."""
    obs, l, u = np.atleast_1d(observation), np.atleast_1d(lower), np.atleast_1d(upper)
    if not (len(obs) == len(l) == len(u)):
        raise ValueError("vector shape mismatch")
    return float(np.mean((obs >= l) & (obs <= u)))


def mape(observation, point):
    """Mean absolute percentage error; zero observations are left out."""
    obs = np.asarray(observation, dtype=float)
    pred = np.asarray(point, dtype=float)
    keep = obs != 0
    if not keep.any():
        return float("nan")
    return float(np.mean(np.abs((obs[keep] - pred[keep]) / obs[keep])))


def _interval_coverage(obs, by_level, lower_level):
    upper_level = round(1 - lower_level, 3)
    if lower_level not in by_level or upper_level not in by_level:
        return float("nan")
    return coverage(obs, by_level[lower_level], by_level[upper_level])


def score_forecasts(forecasts, truth):
    """
    Score each submission (model, location, forecast date, horizon, target date)
    against observed weekly cases. A submission with repeated quantile levels
    or several point rows for one target raises ValueError.

    forecasts: columns model, location, forecast_date, target_end_date, horizon,
    quantile, value (quantile NaN for point rows).
    truth: columns location, week_end, value.
    Target dates with no observation are skipped.
    """
    observed = {
        (loc, pd.Timestamp(week)): val
        for loc, week, val in truth[["location", "week_end", "value"]].itertuples(index=False)
    }

    records = []
    keys = ["model", "location", "forecast_date", "horizon", "target_end_date"]
    for (model, location, forecast_date, horizon, target), group in forecasts.groupby(keys, sort=True):
        y = observed.get((location, pd.Timestamp(target)))
        if y is None or pd.isna(y):
            continue

        label = f"{model} {location} {pd.Timestamp(forecast_date).date()} h{horizon} {target}"
        quant = group[group["quantile"].notna()]
        levels = [round(float(q), 3) for q in quant["quantile"]]
        if len(set(levels)) != len(levels):
            raise ValueError(f"{label}: duplicate quantile levels")
        by_level = dict(zip(levels, quant["value"].astype(float)))
        if 0.5 not in by_level:
            raise ValueError(f"{label}: no median forecast")
        point_rows = group[group["quantile"].isna()]
        if len(point_rows) > 1:
            raise ValueError(f"{label}: {len(point_rows)} point forecasts")
        point = float(point_rows["value"].iloc[0]) if not point_rows.empty else by_level[0.5]

        wis = weighted_interval_score(y, list(by_level.keys()), list(by_level.values()))
        records.append(ScoreRecord(
            model=model,
            location=location,
            forecast_date=pd.Timestamp(forecast_date).date(),
            horizon=int(horizon),
            target_end_date=pd.Timestamp(target).date(),
            wis=wis,
            abs_error=float(absolute_error(y, point)),
            coverage_50=_interval_coverage(y, by_level, 0.25),
            coverage_95=_interval_coverage(y, by_level, 0.025),
            ape=abs(y - point) / abs(y) if y != 0 else float("nan"),
        ))
    return records


def summarize_scores(scores):
    """Mean scores per model and horizon, best WIS first."""
    if scores.empty:
        return pd.DataFrame(columns=["model", "horizon", "n", "wis", "abs_error", "coverage_50", "coverage_95", "mape"])
    summary = (scores.groupby(["model", "horizon"])
               .agg(n=("wis", "size"),
                    wis=("wis", "mean"),
                    abs_error=("abs_error", "mean"),
                    coverage_50=("coverage_50", "mean"),
                    coverage_95=("coverage_95", "mean"),
                    mape=("ape", "mean"))
               .reset_index())
    return summary.sort_values(["horizon", "wis"]).reset_index(drop=True)
