import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd


def _band(forecasts, model, horizon, lower, upper):
    sel = forecasts[(forecasts["model"] == model) & (forecasts["horizon"] == horizon)]
    lo = sel[np.isclose(sel["quantile"].astype(float), lower)].groupby("target_end_date")["value"].mean()
    hi = sel[np.isclose(sel["quantile"].astype(float), upper)].groupby("target_end_date")["value"].mean()
    both = pd.concat([lo.rename("lo"), hi.rename("hi")], axis=1).dropna()
    both.index = pd.to_datetime(both.index)
    return both.sort_index()


def plot_actual_vs_forecast(truth, series_by_model, peaks, path, title="", forecasts=None, band_model=None, horizon=1):
    """
    Weekly observed cases against model point forecasts, with peak markers.

    truth: Series of observed weekly values indexed by week end.
    series_by_model: {model: Series of point forecasts indexed by target date}.
    peaks: {name: list of peak dates}; "observed" marks the truth line, other
    names mark the matching model line.
    forecasts/band_model: when given, 50% and 95% bands for that model are shaded.
    """
    fig, ax = plt.subplots(figsize=(12, 5))
    ax.plot(truth.index, truth.values, ".-", color="k", markersize=8, label="observed")

    if forecasts is not None and band_model is not None:
        for lower, upper, alpha in [(0.025, 0.975, 0.15), (0.25, 0.75, 0.3)]:
            band = _band(forecasts, band_model, horizon, lower, upper)
            if not band.empty:
                ax.fill_between(band.index, band["lo"], band["hi"], alpha=alpha, color="tab:blue")

    for model, series in series_by_model.items():
        ax.plot(series.index, series.values, ".-", alpha=0.8, label=model)

    for name, dates in peaks.items():
        source = truth if name == "observed" else series_by_model.get(name)
        if source is None or not dates:
            continue
        ys = [source.loc[pd.Timestamp(d)] for d in dates]
        ax.scatter(pd.to_datetime(dates), ys, marker="^", s=90, zorder=5,
                   color="red" if name == "observed" else None)

    ax.set_title(title)
    ax.set_ylabel("weekly incident cases")
    ax.legend(loc="upper left", fontsize=8)
    fig.autofmt_xdate()
    fig.tight_layout()

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    fig.savefig(path)
    plt.close(fig)
    return path
