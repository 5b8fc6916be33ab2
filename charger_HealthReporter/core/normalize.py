# charger_HealthReporter/core/normalize.py
from __future__ import annotations
from datetime import datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
import math
import re

import numpy as np
import pandas as pd

_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_DAY_FIRST = re.compile(r"^\d{1,2}[./-]\d{1,2}[./-]\d{4}\b")


def _is_missing(raw) -> bool:
    if raw is None or isinstance(raw, bool):
        return True
    if isinstance(raw, (float, np.floating)) and math.isnan(raw):
        return True
    return raw is pd.NaT


def to_number(raw) -> float | None:
    """Lenient float parse: leading numeric prefix, decimal comma tolerated."""
    if _is_missing(raw):
        return None
    if isinstance(raw, (int, float, np.integer, np.floating)):
        v = float(raw)
        return v if math.isfinite(v) else None
    s = str(raw).strip()
    if "," in s and "." not in s:
        s = s.replace(",", ".")
    m = _NUMBER_PREFIX.match(s)
    if not m:
        return None
    v = float(m.group(0))
    return v if math.isfinite(v) else None


def to_hours(raw) -> float:
    """
    Duration in fractional hours.
    - numbers are minutes
    - "H:MM:SS" -> h + m/60 + s/3600
    - "M:SS"    -> m/60 + s/3600   (minutes:seconds, not hours:minutes)
    - anything else -> 0
    """
    if _is_missing(raw):
        return 0.0
    if isinstance(raw, (pd.Timedelta, timedelta)):
        hours = raw.total_seconds() / 3600.0
    elif isinstance(raw, time):
        hours = raw.hour + raw.minute / 60.0 + raw.second / 3600.0
    elif isinstance(raw, (int, float, np.integer, np.floating)):
        hours = float(raw) / 60.0
    elif isinstance(raw, str):
        parts = raw.strip().split(":")
        try:
            nums = [float(p) for p in parts]
        except ValueError:
            return 0.0
        if len(nums) == 3:
            hours = nums[0] + nums[1] / 60.0 + nums[2] / 3600.0
        elif len(nums) == 2:
            hours = nums[0] / 60.0 + nums[1] / 3600.0
        else:
            return 0.0
    else:
        return 0.0
    if not math.isfinite(hours) or hours < 0:
        return 0.0
    return hours


def to_timestamp(raw) -> pd.Timestamp | None:
    if _is_missing(raw) or isinstance(raw, (int, float, np.integer, np.floating)):
        return None
    if isinstance(raw, (pd.Timestamp, datetime)):
        ts = pd.Timestamp(raw)
    else:
        s = str(raw).strip()
        if not s:
            return None
        # dd.mm.yyyy style dates are never read month-first
        day_first = bool(_DAY_FIRST.match(s))
        ts = _parse_with_formats(s) if day_first else None
        if ts is None:
            ts = pd.to_datetime(s, dayfirst=day_first, errors="coerce")
        if ts is None or pd.isna(ts):
            return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def _parse_with_formats(s: str) -> pd.Timestamp | None:
    fmts = [
        "%d.%m.%Y %H:%M:%S", "%d.%m.%Y %H:%M", "%d.%m.%Y",
        "%d/%m/%Y %H:%M:%S", "%d/%m/%Y %H:%M", "%d/%m/%Y",
        "%d-%m-%Y %H:%M:%S", "%d-%m-%Y %H:%M", "%d-%m-%Y",
    ]
    for fmt in fmts:
        z = pd.to_datetime(s, format=fmt, errors="coerce")
        if not pd.isna(z):
            return z
    return None


def round_half_up(value, ndigits: int = 0) -> float:
    if value is None or pd.isna(value) or not math.isfinite(float(value)):
        return 0.0
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def percent(part, whole) -> int:
    """Integer percentage, rounded half up; 0 when ``whole`` is 0."""
    if not whole:
        return 0
    return int(round_half_up(100.0 * part / whole))
