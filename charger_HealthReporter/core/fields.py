# charger_HealthReporter/core/fields.py
from __future__ import annotations
import math
import re

# Ordered candidate column names per logical field. Earlier names win.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "peak_power": (
        "Session Peak Power (kW)",
        "Peak Power Delivered (kW)",
        "Peak Power (kW)",
        "Peak Power",
        "PeakPower",
        "SESSION_PEAK_POWER_KW",
        "Max Power",
        "Power (kW)",
    ),
    "energy": (
        "Session Energy Delivered (kWh)",
        "Energy Delivered (kWh)",
        "Energy Mode (kWh)",
        "Energy (kWh)",
        "Energy",
    ),
    "duration": (
        "Session Duration",
        "Duration",
        "Charging Time",
        "Session Duration (min)",
        "Duration (min)",
    ),
    "avg_power": (
        "Avg Power (kW)",
        "Average Power (kW)",
        "Avg Power per Session (kW)",
        "Average Power",
    ),
    "start_time": (
        "Session Start Time",
        "Start Time",
        "Date",
        "Started",
        "Timestamp",
    ),
    "status": ("STOP", "Stop", "Status", "Session Status"),
    "stop_reason": (
        "STOPREASON", "Stop Reason", "StopReason",
        "REASON", "Reason",
        "VENDORERRORCODE", "VendorErrorCode",
        "ERRORCODE", "ErrorCode",
    ),
    "vendor_error_code": ("vendorErrorCode", "Vendor Error Code"),
    "charging_flag": ("is_Charging", "Is Charging", "isCharging"),
    "connector": ("Connector", "Connector Id", "ConnectorId", "Connector No"),
    "start_type": ("Start Type", "Authentication", "Auth Method", "Id Tag Type"),
    "station_name": ("Station Alias Name", "Station Name", "Station"),
    "charge_point_id": ("Charge Point id", "Charge Point ID", "ChargePointId", "CP ID"),
    "oem": ("OEM Name", "OEM", "Manufacturer"),
    "rated_power": ("Power (kW)", "Rated Power (kW)", "Rated Power"),
    "firmware": ("Firmware Version", "Firmware"),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_MIN_FUZZY_LEN = 3
_NO_REASON = {"", "null", "noerror"}


def clean_key(name) -> str:
    return _NON_ALNUM.sub("", str(name).lower())


def _present(v) -> bool:
    if v is None:
        return False
    if isinstance(v, float) and math.isnan(v):
        return False
    return True


def resolve(record: dict | None, *candidates: str):
    """
    Look up the first candidate present in ``record``.

    Pass 1: exact key match, in candidate order.
    Pass 2: case-insensitive match on alphanumerics only; candidates shorter
            than 3 cleaned characters never take part.
    None/NaN values count as absent. Returns None when nothing matches.
    """
    if not record:
        return None
    for c in candidates:
        if c in record and _present(record[c]):
            return record[c]

    cleaned: dict[str, list[str]] = {}
    for k in record:
        cleaned.setdefault(clean_key(k), []).append(k)
    for c in candidates:
        cc = clean_key(c)
        if len(cc) < _MIN_FUZZY_LEN:
            continue
        for k in cleaned.get(cc, ()):
            if _present(record[k]):
                return record[k]
    return None


def resolve_field(record: dict | None, field: str):
    return resolve(record, *FIELD_ALIASES[field])


def _is_reason(v) -> bool:
    if not _present(v) or isinstance(v, bool):
        return False
    if isinstance(v, (int, float)) and v == 0:
        return False
    return str(v).strip().lower() not in _NO_REASON


def resolve_reason(record: dict | None, *candidates: str):
    """
    Like ``resolve`` but one candidate at a time, skipping values that carry no
    reason (0, empty, "null", "NoError") so the next candidate gets a chance.
    """
    for c in candidates or FIELD_ALIASES["stop_reason"]:
        v = resolve(record, c)
        if _is_reason(v):
            return v
    return None
