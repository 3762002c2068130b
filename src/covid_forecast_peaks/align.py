import pandas as pd

from covid_forecast_peaks.records import PeakMatch


def match_peaks(observed_dates, forecast_dates, model, horizon, max_lag_weeks=None):
    """
    Pair each observed peak with the nearest forecasted peak.

    Ties go to the earlier forecast date. lag_weeks is positive when the
    forecast peaks after the observed one. With max_lag_weeks set, observed
    peaks with no forecast peak that close get forecast_peak=None.
    """
    forecast = sorted(pd.Timestamp(d) for d in forecast_dates)
    matches = []
    for obs in sorted(pd.Timestamp(d) for d in observed_dates):
        best = None
        if forecast:
            best = min(forecast, key=lambda f: (abs((f - obs).days), f))
        lag = (best - obs).days / 7 if best is not None else None
        if lag is not None and max_lag_weeks is not None and abs(lag) > max_lag_weeks:
            best, lag = None, None
        matches.append(PeakMatch(
            model=model,
            horizon=horizon,
            observed_peak=obs.date(),
            forecast_peak=best.date() if best is not None else None,
            lag_weeks=lag,
        ))
    return matches
