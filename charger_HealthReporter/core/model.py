# charger_HealthReporter/core/model.py
from __future__ import annotations
from dataclasses import dataclass
import json
import logging
import math
import re

from .fields import resolve_field
from .normalize import to_number

_LOG = logging.getLogger(__name__)

ALL = "All"                  # filter sentinel
ALL_FILES = "All Files"      # synthetic aggregate key in a result set
UNKNOWN = "Unknown"

# ----- summary keys (as emitted by the processing service) -----
PREPARING = "Preparing Sessions"
CHARGING = "Charging Sessions"
SUCCESSFUL = "Successful Sessions"
FAILED = "Failed / Error Stops"
REMOTE_START = "Remote Start"
AUTO_START = "Auto Start"
RFID_START = "RFID Start"
PEAK_POWER = "Peak Power Delivered (kW)"
AVG_POWER = "Avg Power per Session (kW)"

COUNTER_KEYS: tuple[str, ...] = (
    PREPARING, CHARGING, SUCCESSFUL, FAILED, REMOTE_START, AUTO_START, RFID_START,
)
ERROR_MAP_KEYS: tuple[str, ...] = ("Successful Error Summary", "Failed / Error Error Summary")

CONNECTORS: tuple[int, ...] = (1, 2)

_CONNECTOR_KEY = re.compile(r"^Connector(\d+)$")


@dataclass(frozen=True)
class StationInfo:
    station_name: str = UNKNOWN
    charge_point_id: str = UNKNOWN
    oem_name: str = UNKNOWN
    rated_power_kw: float = 0.0
    firmware: str = UNKNOWN


@dataclass(frozen=True)
class TrendPoint:
    label: str
    sort_key: float
    peak: float
    avg: float


@dataclass(frozen=True)
class Breakdown:
    name: str
    value: int
    fill: str | None = None


# ---------- FileResult accessors ----------
# A FileResult is the plain mapping returned by the processing service:
#   {"info": ..., "date": {...}, "report_1": {...}, "report_2": {...},
#    "Connector1": [...], "Connector2": [...]}
# Every part may be missing.

def summary(result: dict | None, connector: int) -> dict:
    s = (result or {}).get(f"report_{connector}")
    return s if isinstance(s, dict) else {}


def raw_table(result: dict | None, connector: int) -> list[dict]:
    rows = (result or {}).get(f"Connector{connector}")
    if not isinstance(rows, list):
        return []
    return [r for r in rows if isinstance(r, dict)]


def connector_tables(result: dict | None) -> dict[str, list[dict]]:
    """All ``ConnectorN`` tables, ordered by connector number."""
    found = []
    for key in (result or {}):
        m = _CONNECTOR_KEY.match(str(key))
        if m:
            found.append((int(m.group(1)), key))
    return {key: raw_table(result, n) for n, key in sorted(found)}


def all_rows(result: dict | None) -> list[dict]:
    rows: list[dict] = []
    for table in connector_tables(result).values():
        rows.extend(table)
    return rows


def counter(report: dict, key: str) -> int:
    try:
        v = int(report.get(key) or 0)
    except (TypeError, ValueError):
        return 0
    return max(v, 0)


def power_value(report: dict, key: str) -> float | None:
    v = report.get(key)
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def station_record(result: dict | None) -> dict | None:
    """First station metadata record, or None when absent or malformed."""
    info = (result or {}).get("info")
    if not info:
        return None
    try:
        if isinstance(info, (str, bytes)):
            info = json.loads(info)
        if isinstance(info, list):
            info = info[0] if info else None
        return info if isinstance(info, dict) else None
    except (ValueError, TypeError) as e:
        _LOG.debug("malformed station info: %s", e)
        return None


def station_info(result: dict | None) -> StationInfo:
    rec = station_record(result)
    if rec is None:
        return StationInfo()

    def text(field: str) -> str:
        v = resolve_field(rec, field)
        s = "" if v is None else str(v).strip()
        return s or UNKNOWN

    return StationInfo(
        station_name=text("station_name"),
        charge_point_id=text("charge_point_id"),
        oem_name=text("oem"),
        rated_power_kw=max(to_number(resolve_field(rec, "rated_power")) or 0.0, 0.0),
        firmware=text("firmware"),
    )


def date_range(result: dict | None) -> tuple[str | None, str | None]:
    d = (result or {}).get("date")
    if not isinstance(d, dict):
        return None, None
    start, end = d.get("start_date"), d.get("end_date")
    return (str(start) if start else None), (str(end) if end else None)
