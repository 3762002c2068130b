import os

import pandas as pd
import pytest

from covid_forecast_peaks import pipeline
from covid_forecast_peaks.plotting import plot_actual_vs_forecast

# Seven full epi-weeks shaped like a tent: weekly sums 7, 14, 21, 28, 21, 14, 7
WEEKLY_SHAPE = [1, 2, 3, 4, 3, 2, 1]
FIRST_SUNDAY = pd.Timestamp("2021-01-03")
WEEK_ENDS = pd.date_range("2021-01-09", periods=7, freq="7D")


def fake_daily_cases(location, start, end):
    rows = []
    for week, level in enumerate(WEEKLY_SHAPE):
        for day in range(7):
            rows.append({"location": location, "date": FIRST_SUNDAY + pd.Timedelta(days=7 * week + day), "value": float(level)})
    return pd.DataFrame(rows)


def fake_forecast(model, forecast_date, location=None):
    target = pd.Timestamp(forecast_date) + pd.Timedelta(days=5)
    if target not in WEEK_ENDS:
        return pd.DataFrame(columns=["model", "location", "forecast_date", "target_end_date", "horizon", "quantile", "value"])
    observed = 7.0 * WEEKLY_SHAPE[list(WEEK_ENDS).index(target)]
    rows = [
        {"model": model, "location": "36", "forecast_date": pd.Timestamp(forecast_date),
         "target_end_date": target, "horizon": 1, "quantile": q, "value": observed * f}
        for q, f in [(0.025, 0.5), (0.25, 0.9), (0.5, 1.1), (0.75, 1.3), (0.975, 2.0)]
    ]
    rows.append({"model": model, "location": "36", "forecast_date": pd.Timestamp(forecast_date),
                 "target_end_date": target, "horizon": 1, "quantile": float("nan"), "value": observed * 1.1})
    return pd.DataFrame(rows)


@pytest.fixture
def offline(monkeypatch):
    monkeypatch.setattr(pipeline, "fetch_daily_cases", fake_daily_cases)
    monkeypatch.setattr(pipeline, "fetch_forecast", fake_forecast)
    monkeypatch.setattr(pipeline, "list_models", lambda: ["A"])


def test_run_end_to_end(offline, tmp_path):
    """Requirement: every stage runs from explicit inputs and writes its outputs."""
    scores, summary, peaks, matches = pipeline.run(
        "ny", "2021-01-03", "2021-02-20", "2021-01-04", "2021-02-15",
        models=["A"], m=1, horizons=[1], out_dir=str(tmp_path),
    )

    assert len(scores) == 7
    assert list(scores["ape"]) == pytest.approx([0.1] * 7)
    assert summary.loc[0, "model"] == "A"
    assert peaks["observed"] == [pd.Timestamp("2021-01-30")]
    assert peaks[("A", 1)] == [pd.Timestamp("2021-01-30")]
    assert [m.lag_weeks for m in matches] == [0.0]

    for name in ["scores.csv", "summary.csv", "peaks.csv", "peak_matches.csv", "ny_h1.png"]:
        assert os.path.exists(tmp_path / name)


def test_run_lists_models_when_none_given(offline, tmp_path):
    scores, _, _, _ = pipeline.run(
        "ny", "2021-01-03", "2021-02-20", "2021-01-04", "2021-02-15",
        horizons=[1], out_dir=str(tmp_path),
    )
    assert set(scores["model"]) == {"A"}


def test_unanalyzable_series_is_skipped(capsys):
    truth = pd.DataFrame({"location": "36", "week_end": WEEK_ENDS, "value": [7.0 * v for v in WEEKLY_SHAPE]})
    # a single forecast point cannot be prepared for peak detection
    forecasts = fake_forecast("A", "2021-01-04")
    peaks, matches = pipeline.detect_peaks(truth, forecasts, ["A"], [1], m=1)

    assert ("A", 1) not in peaks
    assert matches == []
    assert "cannot analyze A h1" in capsys.readouterr().out


def test_observed_gaps_are_interpolated():
    values = [7.0 * v for v in WEEKLY_SHAPE]
    truth = pd.DataFrame({"location": "36", "week_end": WEEK_ENDS, "value": values}).drop(index=1)
    empty = fake_forecast("A", "2020-01-01")
    peaks, _ = pipeline.detect_peaks(truth, empty, [], [1], m=1)
    assert peaks["observed"] == [pd.Timestamp("2021-01-30")]


def test_peaks_frame():
    df = pipeline.peaks_frame({"observed": [pd.Timestamp("2021-01-30")], ("A", 1): []})
    assert list(df["series"]) == ["observed"]
    assert list(df["horizon"]) == [0]


def test_main_parses_arguments(monkeypatch):
    seen = {}
    monkeypatch.setattr(pipeline, "run", lambda *args, **kwargs: seen.update(args=args, kwargs=kwargs))
    pipeline.main(["--location", "ca", "--start", "2021-01-01", "--end", "2021-03-01",
                   "--first-forecast", "2021-01-04", "--last-forecast", "2021-02-15",
                   "--models", "A,B", "--m", "2", "--symmetric", "--horizons", "1,2"])
    assert seen["args"] == ("ca", "2021-01-01", "2021-03-01", "2021-01-04", "2021-02-15")
    assert seen["kwargs"]["models"] == ["A", "B"]
    assert seen["kwargs"]["m"] == 2
    assert seen["kwargs"]["symmetric"] is True
    assert seen["kwargs"]["horizons"] == [1, 2]


def test_plot_writes_file(tmp_path):
    truth = pd.Series([1.0, 3.0, 2.0], index=pd.date_range("2021-01-09", periods=3, freq="7D"))
    path = plot_actual_vs_forecast(truth, {"A": truth * 1.2}, {"observed": [truth.index[1]], "A": [truth.index[1]]},
                                   str(tmp_path / "plots" / "chart.png"), title="test")
    assert os.path.exists(path)


def test_series_peaks_maps_back_past_missing_leading_weeks():
    """Requirement: peaks found after trimming missing edges keep their original dates."""
    dates = pd.date_range("2021-01-02", periods=8, freq="7D")
    series = pd.Series([float("nan"), float("nan"), 0.0, 1.0, 3.0, 1.0, 0.0, float("nan")], index=dates)
    assert pipeline.series_peaks(series, m=1, symmetric=False) == [pd.Timestamp("2021-01-30")]
