# charger_HealthReporter/core/tabulate.py
from __future__ import annotations
import logging
import re
from typing import Mapping

from .fields import FIELD_ALIASES, clean_key, resolve_field
from .metrics import (
    compute_connector_metrics, compute_negative_stop_breakdown,
    is_negative_stop, is_precharging_failure,
)
from .model import (
    AUTO_START, AVG_POWER, CHARGING, FAILED, PEAK_POWER, PREPARING,
    REMOTE_START, RFID_START, SUCCESSFUL,
)
from .normalize import round_half_up, to_timestamp

_LOG = logging.getLogger(__name__)

_INFO_TABLES = {"info", "station", "stationinfo", "metadata"}
_CONNECTOR_TABLE = re.compile(r"^connector(\d+)$")
_DIGITS = re.compile(r"\d+")
_START_TYPES = ((REMOTE_START, "remote"), (AUTO_START, "auto"), (RFID_START, "rfid"))
_STATION_FIELDS = ("station_name", "charge_point_id", "oem", "rated_power", "firmware")


def _connector_number(row: dict) -> int:
    v = resolve_field(row, "connector")
    m = _DIGITS.search(str(v)) if v is not None else None
    n = int(m.group(0)) if m else 1
    return n if n > 0 else 1


def split_by_connector(rows: list[dict]) -> dict[int, list[dict]]:
    out: dict[int, list[dict]] = {}
    for row in rows:
        out.setdefault(_connector_number(row), []).append(row)
    return out


def summarize_connector(rows: list[dict]) -> dict:
    """Summary counters derived from one connector's session rows."""
    precharging = sum(1 for r in rows if is_precharging_failure(r))
    charging_rows = [r for r in rows if not is_precharging_failure(r)]
    negative = sum(1 for r in charging_rows if is_negative_stop(r))

    report: dict = {
        PREPARING: len(rows),
        CHARGING: len(charging_rows),
        SUCCESSFUL: max(len(charging_rows) - negative, 0),
        FAILED: negative,
    }
    for key, needle in _START_TYPES:
        report[key] = sum(1 for r in rows if needle in str(resolve_field(r, "start_type") or "").lower())

    m = compute_connector_metrics(rows)
    report[PEAK_POWER] = round_half_up(m.peak_kw, 2)
    report[AVG_POWER] = round_half_up(m.avg_kw, 2)
    report["Failed / Error Error Summary"] = {
        b.name: b.value for b in compute_negative_stop_breakdown(rows)
    }
    if precharging:
        _LOG.debug("%d precharging failure(s) excluded from charging sessions", precharging)
    return report


def _station_from_rows(rows: list[dict]) -> dict | None:
    for row in rows:
        rec = {}
        for f in _STATION_FIELDS:
            v = resolve_field(row, f)
            if v is not None and str(v).strip():
                rec[FIELD_ALIASES[f][0]] = v
        if "Charge Point id" in rec or "Station Alias Name" in rec:
            return rec
    return None


def _date_range(rows: list[dict]) -> dict | None:
    stamps = [ts for ts in (to_timestamp(resolve_field(r, "start_time")) for r in rows) if ts is not None]
    if not stamps:
        return None
    return {"start_date": f"{min(stamps):%Y-%m-%d}", "end_date": f"{max(stamps):%Y-%m-%d}"}


def tabulate_file(name: str, tables: Mapping[str, list[dict]]) -> dict:
    """
    Local processing: turn the named raw tables of one source file into a
    FileResult (info, date, report_N, ConnectorN).
    """
    info_rows: list[dict] = []
    by_connector: dict[int, list[dict]] = {}
    for table_name, rows in tables.items():
        rows = [r for r in (rows or []) if isinstance(r, dict)]
        key = clean_key(table_name)
        if key in _INFO_TABLES:
            info_rows.extend(rows)
            continue
        m = _CONNECTOR_TABLE.match(key)
        if m:
            by_connector.setdefault(int(m.group(1)), []).extend(rows)
            continue
        for n, part in split_by_connector(rows).items():
            by_connector.setdefault(n, []).extend(part)

    if not by_connector:
        raise ValueError(f"{name}: no session rows")

    result: dict = {}
    station = info_rows[:1]
    all_session_rows = [r for n in sorted(by_connector) for r in by_connector[n]]
    if not station:
        rec = _station_from_rows(all_session_rows)
        station = [rec] if rec else []
    if station:
        result["info"] = station

    dates = _date_range(all_session_rows)
    if dates:
        result["date"] = dates

    for n in sorted(by_connector):
        rows = by_connector[n]
        result[f"report_{n}"] = summarize_connector(rows)
        result[f"Connector{n}"] = rows
    _LOG.debug("%s: tabulated %d session(s) on %d connector(s)",
               name, len(all_session_rows), len(by_connector))
    return result
