import argparse
import os

import pandas as pd
from tqdm import tqdm

from covid_forecast_peaks.align import match_peaks
from covid_forecast_peaks.config import CONFIG, STATE_FIPS
from covid_forecast_peaks.peaks import InvalidInput, peak_dates
from covid_forecast_peaks.plotting import plot_actual_vs_forecast
from covid_forecast_peaks.records import PeakMatch, ScoreRecord, to_frame
from covid_forecast_peaks.scoring import score_forecasts, summarize_scores
from covid_forecast_peaks.sources import FORECAST_COLUMNS, SourceError, fetch_daily_cases, fetch_forecast, list_models
from covid_forecast_peaks.weekly import horizon_series, prepare_series, regularize, to_weekly

# Each stage takes its inputs explicitly and returns a new frame; nothing is
# shared between stages except what run() passes along.


def load_truth(location, start, end):
    daily = fetch_daily_cases(location, start, end)
    weekly = to_weekly(daily)
    weekly["location"] = STATE_FIPS[location.lower()]
    return weekly


def forecast_dates(first, last):
    return list(pd.date_range(first, last, freq="7D"))


def load_forecasts(models, dates, location):
    frames = []
    for model in tqdm(models, desc="models"):
        for d in dates:
            try:
                df = fetch_forecast(model, d, location=location)
            except SourceError as e:
                print(f"  - skipping {model} {d.date()}: {e}")
                continue
            if not df.empty:
                frames.append(df)
    if not frames:
        return pd.DataFrame(columns=FORECAST_COLUMNS)
    return pd.concat(frames, ignore_index=True)


def observed_series(truth):
    series = truth.set_index("week_end")["value"].sort_index()
    series.index = pd.to_datetime(series.index)
    return regularize(series)


def series_peaks(series, m, symmetric):
    """Peak dates of a date-indexed series, tolerating missing edges and gaps."""
    values, offset = prepare_series(series.values)
    return peak_dates(series.index[offset:offset + len(values)], values, m=m, symmetric=symmetric)


def detect_peaks(truth, forecasts, models, horizons, m, symmetric=False, max_lag_weeks=None):
    """
    Returns ({"observed": dates, (model, horizon): dates, ...}, [PeakMatch]).
    Series that cannot be analyzed are reported and left out.
    """
    try:
        observed = series_peaks(observed_series(truth), m, symmetric)
    except InvalidInput as e:
        print(f"  - cannot analyze observed cases: {e}")
        observed = []
    peaks = {"observed": observed}

    matches = []
    for model in models:
        for h in horizons:
            series = regularize(horizon_series(forecasts, model, h))
            if series.empty:
                continue
            try:
                found = series_peaks(series, m, symmetric)
            except InvalidInput as e:
                print(f"  - cannot analyze {model} h{h}: {e}")
                continue
            peaks[(model, h)] = found
            matches.extend(match_peaks(peaks["observed"], found, model, h, max_lag_weeks=max_lag_weeks))
    return peaks, matches


def peaks_frame(peaks):
    rows = []
    for key, dates in peaks.items():
        model, horizon = ("observed", 0) if key == "observed" else key
        rows.extend({"series": model, "horizon": horizon, "peak_date": pd.Timestamp(d).date()} for d in dates)
    return pd.DataFrame(rows, columns=["series", "horizon", "peak_date"])


def run(location, start, end, first_forecast, last_forecast, models=None, m=None,
        symmetric=False, horizons=None, max_lag_weeks=None, out_dir="results"):
    m = CONFIG["peak_window"] if m is None else m
    horizons = horizons or CONFIG["horizons"]
    os.makedirs(out_dir, exist_ok=True)

    print(f"STAGE 1: Fetching daily cases for {location.upper()} ({start} to {end})...")
    truth = load_truth(location, start, end)
    print(f"  - {len(truth)} complete epi-weeks")

    if not models:
        print("STAGE 2: Listing hub models...")
        models = list_models()
    dates = forecast_dates(first_forecast, last_forecast)
    print(f"STAGE 2: Fetching {len(models)} models x {len(dates)} forecast dates...")
    forecasts = load_forecasts(models, dates, location)
    models = sorted(forecasts["model"].unique()) if not forecasts.empty else []
    print(f"  - {len(forecasts)} forecast rows from {len(models)} models")

    print("STAGE 3: Scoring...")
    scores = to_frame(score_forecasts(forecasts, truth), ScoreRecord)
    summary = summarize_scores(scores)
    scores.to_csv(os.path.join(out_dir, "scores.csv"), index=False)
    summary.to_csv(os.path.join(out_dir, "summary.csv"), index=False)

    print(f"STAGE 4: Detecting peaks (m={m}, {'symmetric' if symmetric else 'compatibility'} window)...")
    peaks, matches = detect_peaks(truth, forecasts, models, horizons, m,
                                  symmetric=symmetric, max_lag_weeks=max_lag_weeks)
    peaks_frame(peaks).to_csv(os.path.join(out_dir, "peaks.csv"), index=False)
    to_frame(matches, PeakMatch).to_csv(os.path.join(out_dir, "peak_matches.csv"), index=False)
    print(f"  - observed peaks: {[str(pd.Timestamp(d).date()) for d in peaks['observed']]}")

    print("STAGE 5: Plotting...")
    observed = observed_series(truth)
    for h in horizons:
        by_model = {mdl: regularize(horizon_series(forecasts, mdl, h)) for mdl in models}
        by_model = {mdl: s for mdl, s in by_model.items() if not s.empty}
        marks = {"observed": peaks["observed"]}
        marks.update({mdl: peaks[(mdl, h)] for mdl in by_model if (mdl, h) in peaks})
        path = plot_actual_vs_forecast(
            observed, by_model, marks,
            os.path.join(out_dir, f"{location.lower()}_h{h}.png"),
            title=f"{location.upper()} incident cases, {h} wk ahead",
            forecasts=forecasts, band_model=models[0] if len(models) == 1 else None, horizon=h,
        )
        print(f"  - wrote {path}")

    print(f"DONE: {len(scores)} scored forecasts, {len(matches)} peak matches in {out_dir}")
    return scores, summary, peaks, matches


def main(argv=None):
    parser = argparse.ArgumentParser(description="Score COVID-19 case forecasts and compare peaks")
    parser.add_argument("--location", type=str, default="us")
    parser.add_argument("--start", type=str, required=True, help="first day of observed cases")
    parser.add_argument("--end", type=str, required=True, help="last day of observed cases")
    parser.add_argument("--first-forecast", type=str, required=True)
    parser.add_argument("--last-forecast", type=str, required=True)
    parser.add_argument("--models", type=str, default="", help="comma separated; default all hub models")
    parser.add_argument("--m", type=int, default=CONFIG["peak_window"])
    parser.add_argument("--symmetric", action="store_true", help="use m neighbours on both sides")
    parser.add_argument("--horizons", type=str, default=",".join(str(h) for h in CONFIG["horizons"]))
    parser.add_argument("--max-lag-weeks", type=float, default=None)
    parser.add_argument("--out", type=str, default="results")
    args = parser.parse_args(argv)

    run(
        args.location, args.start, args.end, args.first_forecast, args.last_forecast,
        models=[s for s in args.models.split(",") if s],
        m=args.m,
        symmetric=args.symmetric,
        horizons=[int(h) for h in args.horizons.split(",") if h],
        max_lag_weeks=args.max_lag_weeks,
        out_dir=args.out,
    )


if __name__ == "__main__":
    main()
