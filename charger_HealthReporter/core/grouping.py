# charger_HealthReporter/core/grouping.py
from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, replace
import logging
import math
from typing import Mapping

from .model import (
    ALL, ALL_FILES, AVG_POWER, CHARGING, COUNTER_KEYS, ERROR_MAP_KEYS, PEAK_POWER,
    connector_tables, counter, date_range, power_value, station_info,
)
from .normalize import to_timestamp

_LOG = logging.getLogger(__name__)

DIMENSIONS: tuple[str, ...] = ("file", "charge_point_id", "station")


@dataclass(frozen=True)
class FilterSelection:
    file: str = ALL
    charge_point_id: str = ALL
    station: str = ALL

    def select(self, dimension: str, value) -> "FilterSelection":
        """
        New selection with ``dimension`` set. A concrete value clears the other
        two dimensions; "All" only clears this one.
        """
        if dimension not in DIMENSIONS:
            raise ValueError(f"unknown filter dimension: {dimension!r}")
        if value is None or str(value) == ALL:
            return replace(self, **{dimension: ALL})
        return FilterSelection(**{dimension: str(value)})

    def concrete(self) -> tuple[str, str] | None:
        for dim in DIMENSIONS:
            v = getattr(self, dim)
            if v != ALL:
                return dim, v
        return None


def selection_from_config(cfg: dict | None) -> FilterSelection:
    flt = (cfg or {}).get("filters", {}) or {}
    sel = FilterSelection()
    # applied lowest precedence first so a concrete file wins
    for dim in reversed(DIMENSIONS):
        value = flt.get(dim)
        if value is not None and str(value) != ALL:
            sel = sel.select(dim, value)
    return sel


# ---------- aggregation ----------
def _sum_error_maps(maps: list[dict]) -> dict[str, int]:
    total: Counter[str] = Counter()
    for m in maps:
        for reason, n in m.items():
            try:
                total[str(reason)] += int(n or 0)
            except (TypeError, ValueError):
                continue
    return dict(total)


def _merge_reports(reports: list[dict]) -> dict:
    merged: dict = {k: sum(counter(r, k) for r in reports) for k in COUNTER_KEYS}

    peaks = [p for p in (power_value(r, PEAK_POWER) for r in reports) if p is not None]
    if peaks:
        merged[PEAK_POWER] = max(peaks)

    avgs = []
    for r in reports:
        a = power_value(r, AVG_POWER)
        if a is not None:
            avgs.append((a, counter(r, CHARGING)))
    if avgs:
        sessions = sum(s for _, s in avgs)
        if sessions > 0:
            merged[AVG_POWER] = math.fsum(a * s for a, s in avgs) / sessions
        else:
            merged[AVG_POWER] = math.fsum(a for a, _ in avgs) / len(avgs)

    for key in ERROR_MAP_KEYS:
        maps = [r[key] for r in reports if isinstance(r.get(key), dict)]
        if maps:
            merged[key] = _sum_error_maps(maps)
    return merged


def _merge_dates(results: list[dict]) -> dict | None:
    starts, ends = [], []
    for r in results:
        start, end = date_range(r)
        ts_start = to_timestamp(start) if start else None
        ts_end = to_timestamp(end) if end else None
        if ts_start is not None:
            starts.append((ts_start, start))
        if ts_end is not None:
            ends.append((ts_end, end))
    if not starts and not ends:
        return None
    return {
        "start_date": min(starts)[1] if starts else None,
        "end_date": max(ends)[1] if ends else None,
    }


def aggregate_results(results: Mapping[str, dict]) -> dict:
    """
    Merge several FileResults into one FileResult-shaped mapping.

    A single result is returned as-is. Otherwise members are visited in name
    order: summary counters are summed, peak power is the max, average power is
    weighted by charging sessions, error maps are summed per reason, raw
    connector tables are concatenated. Station info survives only when every
    member reports the same station.
    """
    members = sorted(((str(k), v) for k, v in results.items() if isinstance(v, dict)),
                     key=lambda kv: kv[0])
    if len(members) == 1:
        return members[0][1]
    if not members:
        return {}
    files = [r for _, r in members]

    out: dict = {}
    report_keys = sorted({k for r in files for k in r if str(k).startswith("report_")})
    for key in report_keys:
        out[key] = _merge_reports([r[key] for r in files if isinstance(r.get(key), dict)])

    table_keys: dict[str, None] = {}
    for r in files:
        table_keys.update(dict.fromkeys(connector_tables(r)))
    for key in table_keys:
        rows: list[dict] = []
        for r in files:
            rows.extend(connector_tables(r).get(key, []))
        out[key] = rows

    dates = _merge_dates(files)
    if dates is not None:
        out["date"] = dates

    infos = [station_info(r) for r in files]
    if all(r.get("info") for r in files) and all(i == infos[0] for i in infos):
        out["info"] = files[0]["info"]
    return out


def with_all_files(results: Mapping[str, dict]) -> dict[str, dict]:
    """Copy of ``results`` plus an "All Files" aggregate when there is more than one file."""
    files = {k: v for k, v in results.items() if k != ALL_FILES and isinstance(v, dict)}
    out = dict(files)
    if len(files) > 1:
        out[ALL_FILES] = aggregate_results(files)
    return out


# ---------- grouping ----------
def _group_by(results: Mapping[str, dict], key_fn) -> dict[str, dict[str, dict]]:
    groups: dict[str, dict[str, dict]] = {}
    for name, result in results.items():
        if name == ALL_FILES or not isinstance(result, dict):
            continue
        groups.setdefault(key_fn(result), {})[name] = result
    return dict(sorted(groups.items()))


def group_by_charge_point(results: Mapping[str, dict]) -> dict[str, dict[str, dict]]:
    return _group_by(results, lambda r: station_info(r).charge_point_id)


def group_by_station(results: Mapping[str, dict]) -> dict[str, dict[str, dict]]:
    return _group_by(results, lambda r: station_info(r).station_name)


class FilterComposer:
    """
    Resolves the active result for a selection. Precedence: concrete file,
    then charge point id (aggregate of its files), then station (aggregate of
    its files), then the "All Files" aggregate.
    """

    def __init__(self, results: Mapping[str, dict]):
        self._results = {str(k): v for k, v in results.items() if isinstance(v, dict)}
        self._by_cp = group_by_charge_point(self._results)
        self._by_station = group_by_station(self._results)
        self._cache: dict[tuple[str, str], dict] = {}

    @property
    def results(self) -> dict[str, dict]:
        return self._results

    def files(self) -> list[str]:
        return sorted(k for k in self._results if k != ALL_FILES)

    def charge_point_ids(self) -> list[str]:
        return list(self._by_cp)

    def stations(self) -> list[str]:
        return list(self._by_station)

    def _aggregate(self, kind: str, key: str, members: Mapping[str, dict]) -> dict:
        ck = (kind, key)
        if ck not in self._cache:
            _LOG.debug("aggregating %d file(s) for %s=%s", len(members), kind, key)
            self._cache[ck] = aggregate_results(members)
        return self._cache[ck]

    def all_files(self) -> dict:
        if ALL_FILES in self._results:
            return self._results[ALL_FILES]
        files = {k: self._results[k] for k in self.files()}
        return self._aggregate("all", ALL_FILES, files)

    def active(self, selection: FilterSelection | None = None) -> dict:
        sel = selection or FilterSelection()
        if sel.file != ALL and sel.file in self._results:
            return self._results[sel.file]
        if sel.charge_point_id != ALL and sel.charge_point_id in self._by_cp:
            return self._aggregate("charge_point_id", sel.charge_point_id,
                                   self._by_cp[sel.charge_point_id])
        if sel.station != ALL and sel.station in self._by_station:
            return self._aggregate("station", sel.station, self._by_station[sel.station])
        return self.all_files()

    def active_label(self, selection: FilterSelection | None = None) -> str:
        sel = selection or FilterSelection()
        if sel.file != ALL and sel.file in self._results:
            return sel.file
        if sel.charge_point_id != ALL and sel.charge_point_id in self._by_cp:
            return f"CP {sel.charge_point_id}"
        if sel.station != ALL and sel.station in self._by_station:
            return sel.station
        files = self.files()
        return files[0] if len(files) == 1 else ALL_FILES
