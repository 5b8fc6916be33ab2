# charger_HealthReporter/core/trend.py
from __future__ import annotations
from typing import Literal

import pandas as pd

from .fields import resolve_field
from .metrics import SessionValues, duration_weighted_avg, session_values
from .model import TrendPoint
from .normalize import round_half_up, to_timestamp

TrendMode = Literal["bucketed", "per_row"]

_COLUMNS = ["abs_time", "peak_kw", "energy_kwh", "hours", "avg_kw"]


def _dated_frame(rows: list[dict] | None) -> pd.DataFrame:
    records = []
    for row in rows or []:
        ts = to_timestamp(resolve_field(row, "start_time"))
        if ts is None:
            continue
        v = session_values(row)
        records.append({"abs_time": ts, "peak_kw": v.peak_kw, "energy_kwh": v.energy_kwh,
                        "hours": v.hours, "avg_kw": v.avg_kw})
    df = pd.DataFrame(records, columns=_COLUMNS)
    return df.sort_values("abs_time", kind="mergesort").reset_index(drop=True)


def _values(df: pd.DataFrame) -> list[SessionValues]:
    return [SessionValues(r.peak_kw, r.energy_kwh, r.hours, r.avg_kw)
            for r in df.itertuples(index=False)]


def _epoch_ms(ts: pd.Timestamp) -> int:
    return int(ts.value // 1_000_000)


def _day_label(ts: pd.Timestamp, with_year: bool) -> str:
    label = f"{ts:%b} {ts.day}"
    return f"{label} {ts.year}" if with_year else label


def _point(label: str, sort_key: float, df: pd.DataFrame) -> TrendPoint:
    return TrendPoint(
        label=label,
        sort_key=sort_key,
        peak=round_half_up(float(df["peak_kw"].max()) if not df.empty else 0.0, 2),
        avg=round_half_up(duration_weighted_avg(_values(df)), 2),
    )


def build_trend(rows: list[dict] | None, mode: TrendMode = "bucketed") -> list[TrendPoint]:
    """
    Peak / average power series for the power-quality chart.

    Rows without a parsable start time are dropped. When every dated row falls
    on one calendar day the series is hourly ("H:00", key = hour), otherwise
    daily ("Jan 5", key = day start in epoch ms). ``per_row`` skips bucketing
    and emits one point per session instead.
    """
    df = _dated_frame(rows)
    if df.empty:
        return []

    first, last = df["abs_time"].iloc[0], df["abs_time"].iloc[-1]
    same_day = first.normalize() == last.normalize()
    multi_year = first.year != last.year

    if mode == "per_row":
        points = []
        for i in range(len(df)):
            ts = df["abs_time"].iloc[i]
            if same_day:
                label = f"{ts:%H:%M}"
            else:
                label = f"{_day_label(ts, multi_year)} {ts:%H:%M}"
            points.append(_point(label, _epoch_ms(ts), df.iloc[i:i + 1]))
        return points

    if same_day:
        keys = df["abs_time"].dt.hour
    else:
        keys = df["abs_time"].dt.normalize()

    points = []
    for key, group in df.groupby(keys, sort=True):
        if same_day:
            points.append(_point(f"{int(key)}:00", int(key), group))
        else:
            day = pd.Timestamp(key)
            points.append(_point(_day_label(day, multi_year), _epoch_ms(day), group))
    return points
