# charger_HealthReporter/core/metrics.py
from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
import math
from typing import Iterable

from .fields import resolve_field, resolve_reason
from .model import (
    AVG_POWER, CHARGING, CONNECTORS, COUNTER_KEYS, PEAK_POWER, Breakdown,
    counter, power_value, raw_table, summary,
)
from .normalize import percent, to_hours, to_number

PRECHARGING_FAILURE = "Precharging Failure"
UNKNOWN_REASON = "Unknown"


@dataclass(frozen=True)
class SessionValues:
    peak_kw: float
    energy_kwh: float
    hours: float
    avg_kw: float


@dataclass(frozen=True)
class ConnectorMetrics:
    peak_kw: float = 0.0
    avg_kw: float = 0.0
    session_count: int = 0


def session_values(row: dict) -> SessionValues:
    """Resolved per-session numbers; anything unparsable becomes 0."""
    def num(field: str) -> float:
        v = to_number(resolve_field(row, field))
        return v if v is not None and v > 0 else 0.0

    return SessionValues(
        peak_kw=num("peak_power"),
        energy_kwh=num("energy"),
        hours=to_hours(resolve_field(row, "duration")),
        avg_kw=num("avg_power"),
    )


def duration_weighted_avg(values: Iterable[SessionValues]) -> float:
    """
    Sum(energy) / sum(hours). With no usable duration, the mean of the direct
    average-power readings, else 0.
    """
    values = list(values)
    total_h = math.fsum(v.hours for v in values)
    if total_h > 0:
        return math.fsum(v.energy_kwh for v in values) / total_h
    direct = [v.avg_kw for v in values if v.avg_kw > 0]
    return math.fsum(direct) / len(direct) if direct else 0.0


def compute_connector_metrics(rows: list[dict] | None) -> ConnectorMetrics:
    if not rows:
        return ConnectorMetrics()
    values = [session_values(r) for r in rows]
    return ConnectorMetrics(
        peak_kw=max((v.peak_kw for v in values), default=0.0),
        avg_kw=duration_weighted_avg(values),
        session_count=len(rows),
    )


# ---------- precharging failures ----------
def _not_charging(flag) -> bool:
    if flag is None or isinstance(flag, str):
        return False
    return flag == 0


def is_precharging_failure(row: dict) -> bool:
    return (resolve_field(row, "vendor_error_code") == PRECHARGING_FAILURE
            and _not_charging(resolve_field(row, "charging_flag")))


def precharging_failure_rows(rows: list[dict] | None) -> list[dict]:
    return [r for r in (rows or []) if is_precharging_failure(r)]


def compute_precharging_failures(rows: list[dict] | None) -> int:
    return len(precharging_failure_rows(rows))


# ---------- negative stops ----------
def is_negative_stop(row: dict) -> bool:
    status = resolve_field(row, "status")
    if status is None or isinstance(status, bool):
        return False
    s = str(status).lower()
    return "failed" in s or "error" in s


def stop_reason(row: dict) -> str:
    reason = resolve_reason(row)
    return UNKNOWN_REASON if reason is None else str(reason).strip()


def compute_negative_stop_breakdown(rows: list[dict] | None) -> list[Breakdown]:
    """Failed/error sessions grouped by stop reason, most frequent first."""
    counts = Counter(stop_reason(r) for r in (rows or []) if is_negative_stop(r))
    return [Breakdown(name, n) for name, n in counts.most_common()]


# ---------- per-connector and combined figures ----------
def connector_power(result: dict | None, connector: int,
                    metrics: ConnectorMetrics | None = None) -> tuple[float | None, float | None]:
    """
    (peak, avg) for one connector: the value recomputed from the raw table when
    positive, else the value reported in the summary, else None.
    """
    if metrics is None:
        metrics = compute_connector_metrics(raw_table(result, connector))
    report = summary(result, connector)
    peak = metrics.peak_kw if metrics.peak_kw > 0 else power_value(report, PEAK_POWER)
    avg = metrics.avg_kw if metrics.avg_kw > 0 else power_value(report, AVG_POWER)
    return peak, avg


def combined_power(result: dict | None) -> tuple[float | None, float | None]:
    """
    Peak: max of the connector peaks.
    Avg: plain mean of the connectors' non-zero recomputed averages. When no
    connector has one, the summaries' averages weighted by charging sessions.
    """
    metrics = {n: compute_connector_metrics(raw_table(result, n)) for n in CONNECTORS}
    peaks = [connector_power(result, n, metrics[n])[0] for n in CONNECTORS]
    peaks = [p for p in peaks if p is not None]
    peak = max(peaks) if peaks else None

    recalculated = [m.avg_kw for m in metrics.values() if m.avg_kw > 0]
    if recalculated:
        return peak, math.fsum(recalculated) / len(recalculated)

    reported = [(power_value(summary(result, n), AVG_POWER), counter(summary(result, n), CHARGING))
                for n in CONNECTORS]
    if all(avg is None for avg, _ in reported):
        return peak, None
    sessions = sum(s for _, s in reported)
    if sessions <= 0:
        return peak, 0.0
    return peak, math.fsum((avg or 0.0) * s for avg, s in reported) / sessions


def combined_counts(result: dict | None) -> dict[str, int]:
    return {k: sum(counter(summary(result, n), k) for n in CONNECTORS) for k in COUNTER_KEYS}


def success_rate(successful: int, charging: int) -> int:
    return percent(successful, charging)
