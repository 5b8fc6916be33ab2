# charger_HealthReporter/core/classify.py
from __future__ import annotations
from collections import Counter
import logging
from typing import Iterable, Mapping

from .metrics import compute_negative_stop_breakdown
from .model import ALL_FILES, CHARGING, CONNECTORS, FAILED, UNKNOWN, Breakdown, counter, station_info, summary
from .normalize import percent

_LOG = logging.getLogger(__name__)

DEFAULT_TOP_N = 5
OVERALL = "OVERALL"
FILL_OEM = "oem"
FILL_OVERALL = "overall"


def top_error_reasons(rows: list[dict] | None, limit: int = DEFAULT_TOP_N) -> list[Breakdown]:
    """Most frequent negative-stop reasons; ties keep first-seen order."""
    return compute_negative_stop_breakdown(rows)[:max(int(limit), 0)]


def combine_breakdowns(*breakdowns: Iterable[Breakdown]) -> list[Breakdown]:
    total: Counter[str] = Counter()
    for bd in breakdowns:
        for item in bd:
            total[item.name] += item.value
    return [Breakdown(name, n) for name, n in total.most_common()]


def _oem_key(result: dict) -> str:
    name = station_info(result).oem_name
    return (name or UNKNOWN).strip().upper() or UNKNOWN.upper()


def network_performance(results: Mapping[str, dict]) -> list[Breakdown]:
    """
    Negative-stop rate (%) per OEM across files, alphabetical, followed by an
    OVERALL entry over all files. The synthetic "All Files" aggregate is skipped.
    """
    totals: dict[str, list[int]] = {}
    for name, result in results.items():
        if name == ALL_FILES or not isinstance(result, dict):
            continue
        charging = sum(counter(summary(result, n), CHARGING) for n in CONNECTORS)
        negative = sum(counter(summary(result, n), FAILED) for n in CONNECTORS)
        acc = totals.setdefault(_oem_key(result), [0, 0])
        acc[0] += charging
        acc[1] += negative

    out = [Breakdown(oem, percent(neg, tot), FILL_OEM) for oem, (tot, neg) in sorted(totals.items())]
    grand_total = sum(t for t, _ in totals.values())
    grand_negative = sum(n for _, n in totals.values())
    out.append(Breakdown(OVERALL, percent(grand_negative, grand_total), FILL_OVERALL))
    _LOG.debug("network performance over %d OEM(s)", len(totals))
    return out
