from dataclasses import asdict, dataclass, fields
from datetime import date
from typing import Optional

import pandas as pd

# Typed rows for each logical table. DataFrames are only used at the edges
# (download, scoring joins, CSV output) and converted through these types.


@dataclass(frozen=True)
class DailyCase:
    location: str
    date: date
    value: float


@dataclass(frozen=True)
class WeeklyCase:
    location: str
    week_end: date
    value: float


@dataclass(frozen=True)
class ForecastRecord:
    model: str
    location: str
    forecast_date: date
    target_end_date: date
    horizon: int
    quantile: Optional[float]  # None for point forecasts
    value: float


@dataclass(frozen=True)
class ScoreRecord:
    model: str
    location: str
    forecast_date: date
    horizon: int
    target_end_date: date
    wis: float
    abs_error: float
    coverage_50: float
    coverage_95: float
    ape: float


@dataclass(frozen=True)
class PeakMatch:
    model: str
    horizon: int
    observed_peak: date
    forecast_peak: Optional[date]
    lag_weeks: Optional[float]


DATE_FIELDS = {"date", "week_end", "forecast_date", "target_end_date", "observed_peak", "forecast_peak"}


def columns(record_type):
    return [f.name for f in fields(record_type)]


def to_frame(records, record_type):
    """Rows of `record_type` as a DataFrame; date fields become datetime64 columns."""
    names = columns(record_type)
    df = pd.DataFrame([asdict(r) for r in records], columns=names)
    for name in DATE_FIELDS.intersection(names):
        df[name] = pd.to_datetime(df[name])
    return df


def _cell(name, value):
    if pd.isna(value):
        return None
    if name in DATE_FIELDS:
        return pd.Timestamp(value).date()
    return value


def from_frame(df, record_type):
    names = columns(record_type)
    missing = [n for n in names if n not in df.columns]
    if missing:
        raise ValueError(f"{record_type.__name__} frame is missing columns {missing}")
    return [
        record_type(**{n: _cell(n, row[n]) for n in names})
        for row in df[names].to_dict("records")
    ]
