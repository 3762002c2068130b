import io
import re

import pandas as pd
import requests

from covid_forecast_peaks.config import CONFIG, STATE_FIPS
from covid_forecast_peaks.records import DailyCase, ForecastRecord, columns, to_frame

# Remote data: Delphi Epidata for reported cases, the COVID-19 Forecast Hub
# archive on GitHub for model submissions.

TARGET_PATTERN = re.compile(r"^(\d+) wk ahead inc case$")
FORECAST_COLUMNS = columns(ForecastRecord)


class SourceError(RuntimeError):
    """A remote source answered with an error or an unusable payload."""


def _get(url, params=None):
    try:
        r = requests.get(url, params=params, timeout=CONFIG["timeout"])
    except requests.RequestException as e:
        raise SourceError(f"request to {url} failed: {e}") from e
    return r


def _day(d):
    return pd.Timestamp(d).strftime("%Y%m%d")


def fetch_daily_cases(location, start, end):
    """
    Daily incident confirmed cases for a state (postal code) or 'us'.
    Returns columns location, date, value.
    """
    location = location.lower()
    if location not in STATE_FIPS:
        raise SourceError(f"unknown location {location!r}")

    params = {
        "data_source": CONFIG["case_source"],
        "signals": CONFIG["case_signal"],
        "time_type": "day",
        "geo_type": "nation" if location == "us" else "state",
        "time_values": f"{_day(start)}-{_day(end)}",
        "geo_value": location,
    }
    r = _get(CONFIG["epidata_url"], params=params)
    try:
        r.raise_for_status()
    except requests.HTTPError as e:
        raise SourceError(f"epidata returned HTTP {r.status_code}") from e

    payload = r.json()
    # result -2 means "no results", which is an empty window rather than a failure
    if payload.get("result") == -2:
        return to_frame([], DailyCase)
    if payload.get("result") != 1:
        raise SourceError(f"epidata error: {payload.get('message', 'unknown')}")

    records = sorted(
        (DailyCase(location=location,
                   date=pd.to_datetime(str(row["time_value"]), format="%Y%m%d").date(),
                   value=float(row["value"]))
         for row in payload["epidata"]),
        key=lambda rec: rec.date,
    )
    return to_frame(records, DailyCase)


def list_models():
    """Model directory names in the hub's data-processed folder."""
    r = _get(CONFIG["hub_contents_url"])
    try:
        r.raise_for_status()
    except requests.HTTPError as e:
        raise SourceError(f"GitHub contents API returned HTTP {r.status_code}") from e
    return sorted(item["name"] for item in r.json() if item.get("type") == "dir")


def parse_submission(text, model, location=None):
    """Keep incident-case targets from one hub submission CSV."""
    raw = pd.read_csv(io.StringIO(text), dtype={"location": str})
    horizon = raw["target"].str.extract(TARGET_PATTERN, expand=False)
    df = raw[horizon.notna()].copy()
    df["horizon"] = horizon[horizon.notna()].astype(int)
    if location is not None:
        df = df[df["location"] == STATE_FIPS[location.lower()]]

    records = [
        ForecastRecord(
            model=model,
            location=row["location"],
            forecast_date=pd.Timestamp(row["forecast_date"]).date(),
            target_end_date=pd.Timestamp(row["target_end_date"]).date(),
            horizon=int(row["horizon"]),
            # point rows carry NA in the quantile column
            quantile=float(row["quantile"]) if row["type"] == "quantile" else None,
            value=float(row["value"]),
        )
        for row in df.to_dict("records")
    ]
    return to_frame(records, ForecastRecord)


def fetch_forecast(model, forecast_date, location=None):
    """
    One model's submission for a forecast date. Returns an empty frame when
    the model did not submit that week.
    """
    forecast_date = pd.Timestamp(forecast_date).strftime("%Y-%m-%d")
    url = f"{CONFIG['hub_raw_url']}/{model}/{forecast_date}-{model}.csv"
    r = _get(url)
    if r.status_code == 404:
        return to_frame([], ForecastRecord)
    try:
        r.raise_for_status()
    except requests.HTTPError as e:
        raise SourceError(f"hub returned HTTP {r.status_code} for {model} {forecast_date}") from e
    return parse_submission(r.text, model, location=location)
