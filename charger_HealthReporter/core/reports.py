# charger_HealthReporter/core/reports.py
from __future__ import annotations
from dataclasses import asdict, replace
from datetime import datetime
import json
from pathlib import Path
from typing import Literal, Mapping, Sequence
import numpy as np
import pandas as pd
from scipy.io import savemat

from .classify import DEFAULT_TOP_N, combine_breakdowns, top_error_reasons
from .layout import Banner, Document, Header, Note, PageGeometry, Table, Text
from .metrics import (
    combined_counts, combined_power, compute_connector_metrics,
    compute_negative_stop_breakdown, compute_precharging_failures, connector_power,
    precharging_failure_rows, success_rate,
)
from .fields import resolve_field
from .model import (
    ALL_FILES, AUTO_START, CHARGING, CONNECTORS, COUNTER_KEYS, FAILED, PREPARING,
    REMOTE_START, RFID_START, SUCCESSFUL, UNKNOWN, Breakdown, TrendPoint, all_rows,
    counter, date_range, raw_table, station_info, summary,
)
from .normalize import percent, round_half_up, to_hours

ReportFormat = Literal["csv", "mat", "both"]

NO_DATA = "—"
GOOD = "good"
ATTENTION = "attention"
GOOD_RATE_PCT = 60
CAPACITY_SHARE = 0.9

COMBINED = "COMBINED CHARGER"
COLUMNS = (COMBINED,) + tuple(f"CONNECTOR {n}" for n in CONNECTORS)


# ---------- per-column figures ----------
def _column_figures(result: dict, column: str) -> dict:
    """Counts and power for one report column (Combined or one connector)."""
    info = station_info(result)
    if column == COMBINED:
        counts = combined_counts(result)
        peak, avg = combined_power(result)
        rows = all_rows(result)
        capacity = info.rated_power_kw
        errors = combine_breakdowns(*(compute_negative_stop_breakdown(raw_table(result, n))
                                      for n in CONNECTORS))
    else:
        n = int(column.rsplit(" ", 1)[1])
        report = summary(result, n)
        counts = {k: counter(report, k) for k in COUNTER_KEYS}
        rows = raw_table(result, n)
        peak, avg = connector_power(result, n, compute_connector_metrics(rows))
        capacity = info.rated_power_kw / 2
        errors = compute_negative_stop_breakdown(rows)
    return {
        "counts": counts,
        "peak": peak,
        "avg": avg,
        "capacity": capacity,
        "precharging": precharging_failure_rows(rows),
        "errors": errors,
    }


def _fmt_power(v: float | None) -> str:
    return NO_DATA if v is None else f"{round_half_up(v, 2):.2f}"


def _power_style(peak: float | None, capacity: float) -> str:
    if peak is not None and capacity > 0 and peak > CAPACITY_SHARE * capacity:
        return GOOD
    return ATTENTION


def _success_banner(counts: dict) -> Banner:
    charging, ok = counts[CHARGING], counts[SUCCESSFUL]
    rate = success_rate(ok, charging)
    text = f"Success Rate: {rate}% ({ok} / {charging})" if charging else "Success Rate: 0%"
    return Banner(text, GOOD if rate > GOOD_RATE_PCT else ATTENTION)


def _summary_steps(column: str, fig: dict) -> list[list]:
    counts = fig["counts"]
    usage = Table(("Metric", "Count"), (
        ("Preparing", str(counts[PREPARING])),
        ("Charging", str(counts[CHARGING])),
        ("Positive Stops", str(counts[SUCCESSFUL])),
        ("Negative Stops", str(counts[FAILED])),
        ("Precharging Failure", str(len(fig["precharging"]))),
    ))
    auth = Table(("Start Type", "Accepted"), (
        ("Remote Start", str(counts[REMOTE_START])),
        ("Auto Charge", str(counts[AUTO_START])),
        ("RFID", str(counts[RFID_START])),
    ))
    power = Table(
        ("Metric", "Value"),
        (("Peak Power (kW)", _fmt_power(fig["peak"])),
         ("Avg Power (kW)", _fmt_power(fig["avg"]))),
        styles={(0, 1): _power_style(fig["peak"], fig["capacity"])},
    )
    return [
        [Header(column)],
        [_success_banner(counts)],
        [Header("1. Charger Usage & Readiness"), usage],
        [Header("2. Authentication Method"), auth],
        [Header("3. Power & Charging Quality"), power],
    ]


def _precharging_table(rows: list[dict]) -> Table | Note:
    if not rows:
        return Note("No precharging failures recorded.")
    body = []
    for r in rows:
        start = resolve_field(r, "start_time")
        status = resolve_field(r, "status")
        body.append((
            NO_DATA if start is None else str(start),
            f"{to_hours(resolve_field(r, 'duration')):.2f}",
            NO_DATA if status is None else str(status),
        ))
    return Table(("Session Start", "Duration (h)", "Status"), tuple(body))


def _error_table(errors: Sequence[Breakdown]) -> Table | Note:
    if not errors:
        return Note("No Failed/Error stops recorded.")
    return Table(("Stop Reason", "Count"), tuple((e.name, str(e.value)) for e in errors))


def _detail_steps(column: str, fig: dict) -> list[list]:
    return [
        [Header(f"{column} - DETAILS")],
        [Header("4. Precharging Failures"), _precharging_table(fig["precharging"])],
        [Header("5. Error Summary"), _error_table(fig["errors"])],
    ]


def _place_steps(doc: Document, steps_by_column: Mapping[str, list[list]], fresh_page: bool) -> None:
    with doc.parallel_section(list(steps_by_column), fresh_page=fresh_page) as section:
        depth = max(len(s) for s in steps_by_column.values())
        for i in range(depth):
            section.place_all({name: steps[i] for name, steps in steps_by_column.items()
                               if i < len(steps)})


def _title_blocks(result: dict, title: str) -> list[Text]:
    info = station_info(result)
    blocks = [
        Text(title, "title", 6.0, 1.0),
        Text(f"Generated: {datetime.now():%Y-%m-%d %H:%M}", "caption"),
    ]
    if info.station_name != UNKNOWN or info.charge_point_id != UNKNOWN:
        rated = f"{info.rated_power_kw:g} kW" if info.rated_power_kw > 0 else NO_DATA
        blocks.append(Text(
            f"{info.station_name} | CP: {info.charge_point_id} | OEM: {info.oem_name} | "
            f"Rated: {rated} | FW: {info.firmware}", "caption"))
    start, end = date_range(result)
    if start or end:
        blocks.append(Text(f"Period: {start or NO_DATA} to {end or NO_DATA}", "period"))
    blocks[-1] = replace(blocks[-1], gap=4.0)
    return blocks


def build_report_plan(result: dict, title: str, cfg: dict | None = None,
                      doc: Document | None = None) -> Document:
    """
    Lay out one result: title block, then a three-column summary section
    (Combined / Connector 1 / Connector 2) and a detail section that starts
    on a fresh page. Appends to ``doc`` when given.
    """
    if doc is None:
        doc = Document(PageGeometry.from_config(cfg))
    elif doc.placements():
        doc.new_page()
    for block in _title_blocks(result or {}, title):
        doc.place(block)

    figures = {col: _column_figures(result or {}, col) for col in COLUMNS}
    _place_steps(doc, {col: _summary_steps(col, f) for col, f in figures.items()}, fresh_page=False)
    _place_steps(doc, {col: _detail_steps(col, f) for col, f in figures.items()}, fresh_page=True)
    return doc


def build_multi_file_plan(results: Mapping[str, dict], title: str,
                          cfg: dict | None = None) -> Document:
    """One report per file, name order, each from a fresh page; the "All Files" aggregate is skipped."""
    doc = Document(PageGeometry.from_config(cfg))
    for name in sorted(k for k in results if k != ALL_FILES):
        build_report_plan(results[name], f"{title} - {name}", cfg, doc)
    return doc


# ---------- tabular reports ----------
_METRIC_COLS = [
    "file", "station", "charge_point_id", "oem", "start_date", "end_date",
    "preparing", "charging", "successful", "failed", "success_rate_pct",
    "precharging_failures", "remote_start", "auto_start", "rfid_start",
    "peak_power_kW", "avg_power_kW",
]
_STR_COLS = {"file", "station", "charge_point_id", "oem", "start_date", "end_date"}


def file_metrics(name: str, result: dict) -> dict:
    info = station_info(result)
    start, end = date_range(result)
    counts = combined_counts(result)
    peak, avg = combined_power(result)
    return {
        "file": name,
        "station": info.station_name,
        "charge_point_id": info.charge_point_id,
        "oem": info.oem_name,
        "start_date": start or "",
        "end_date": end or "",
        "preparing": counts[PREPARING],
        "charging": counts[CHARGING],
        "successful": counts[SUCCESSFUL],
        "failed": counts[FAILED],
        "success_rate_pct": success_rate(counts[SUCCESSFUL], counts[CHARGING]),
        "precharging_failures": sum(compute_precharging_failures(raw_table(result, n))
                                    for n in CONNECTORS),
        "remote_start": counts[REMOTE_START],
        "auto_start": counts[AUTO_START],
        "rfid_start": counts[RFID_START],
        "peak_power_kW": round_half_up(peak, 2) if peak is not None else np.nan,
        "avg_power_kW": round_half_up(avg, 2) if avg is not None else np.nan,
    }


def _build_dataframe(results: Mapping[str, dict]) -> pd.DataFrame:
    """Per-file rows + TOTAL row."""
    rows = [file_metrics(name, results[name]) for name in sorted(results) if name != ALL_FILES]
    summed = ("preparing", "charging", "successful", "failed", "precharging_failures",
              "remote_start", "auto_start", "rfid_start")
    total = {c: "" for c in _STR_COLS}
    total["file"] = "TOTAL"
    total.update({c: sum(r[c] for r in rows) for c in summed})
    total["success_rate_pct"] = percent(total["successful"], total["charging"])
    peaks = [r["peak_power_kW"] for r in rows if not pd.isna(r["peak_power_kW"])]
    total["peak_power_kW"] = max(peaks) if peaks else np.nan
    total["avg_power_kW"] = np.nan
    return pd.DataFrame(rows + [total], columns=_METRIC_COLS)


def _write_csv(df: pd.DataFrame, path: Path, title: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding="utf-8")
    print(f"[OK] {title}: {len(df)} row(s) → {path}")


def _mat_field(col: pd.Series) -> np.ndarray:
    """One report column as an Nx1 MATLAB field: cellstr for text, double otherwise."""
    if col.name in _STR_COLS:
        cells = np.empty((len(col), 1), dtype=object)
        cells[:, 0] = col.fillna("").astype(str).tolist()
        return cells
    return pd.to_numeric(col, errors="coerce").to_numpy(dtype=float).reshape(-1, 1)


def _write_mat(df: pd.DataFrame, path: Path, varname: str, title: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    savemat(path, {varname: {name: _mat_field(df[name]) for name in df.columns}})
    print(f"[OK] {title}: struct '{varname}' → {path}")


def write_report(results: Mapping[str, dict],
                 out_base: Path,
                 title: str,
                 fmt: ReportFormat = "csv",
                 mat_variable: str = "report") -> pd.DataFrame | None:
    """
    Write the per-file metrics report.
    - out_base is a *base path without extension* (e.g., .../report)
    - fmt: "csv" | "mat" | "both"
    - mat_variable: MATLAB variable name of the struct
    """
    if not any(k != ALL_FILES for k in results):
        return None
    df_out = _build_dataframe(results)
    if fmt in ("csv", "both"):
        _write_csv(df_out, out_base.with_suffix(".csv"), title)
    if fmt in ("mat", "both"):
        _write_mat(df_out, out_base.with_suffix(".mat"), mat_variable, title)
    return df_out


def write_trend_csv(points: Sequence[TrendPoint], out_csv: Path, title: str) -> None:
    if not points:
        print(f"[INFO] {title}: no dated sessions; skipping trend report.")
        return
    df = pd.DataFrame([asdict(p) for p in points], columns=["label", "sort_key", "peak", "avg"])
    _write_csv(df, out_csv, title)


def write_breakdown_csv(items: Sequence[Breakdown], out_csv: Path, title: str,
                        value_column: str = "count") -> None:
    df = pd.DataFrame([(b.name, b.value) for b in items], columns=["name", value_column])
    _write_csv(df, out_csv, title)


# ---------- dashboard payload ----------
def _funnel(counts: dict, precharging: int = 0) -> list[dict]:
    return [
        {"name": "Preparing", "value": counts[PREPARING]},
        {"name": "Charging", "value": counts[CHARGING]},
        {"name": "Negative Stops", "value": counts[FAILED]},
        {"name": "Precharging Failure", "value": precharging},
    ]


def _auth_entries(counts: dict) -> list[dict]:
    entries = [("Remote Start", counts[REMOTE_START]), ("Auto Charge", counts[AUTO_START]),
               ("RFID", counts[RFID_START])]
    return [{"name": n, "value": v} for n, v in entries if v > 0]


def dashboard_payload(result: dict, trend: Sequence[TrendPoint],
                      network: Sequence[Breakdown] = (), label: str = ALL_FILES,
                      top_n: int = DEFAULT_TOP_N) -> dict:
    """JSON-ready chart series for the active result."""
    figures = {col: _column_figures(result or {}, col) for col in COLUMNS}
    keys = {COMBINED: "combined"}
    keys.update({f"CONNECTOR {n}": f"connector_{n}" for n in CONNECTORS})
    out: dict = {"label": label, "usage": {}, "success_rate": {}, "power": {}}
    for col, fig in figures.items():
        key = keys[col]
        counts = fig["counts"]
        out["usage"][key] = _funnel(counts, len(fig["precharging"]))
        out["success_rate"][key] = success_rate(counts[SUCCESSFUL], counts[CHARGING])
        out["power"][key] = {
            "peak": None if fig["peak"] is None else round_half_up(fig["peak"], 2),
            "avg": None if fig["avg"] is None else round_half_up(fig["avg"], 2),
        }
    out["authentication"] = _auth_entries(figures[COMBINED]["counts"])
    out["trend"] = [asdict(p) for p in trend]
    out["errors"] = [asdict(b) for b in top_error_reasons(all_rows(result), top_n)]
    out["network"] = [asdict(b) for b in network]
    return out


def write_dashboard_payload(payload: dict, out_json: Path) -> None:
    out_json.parent.mkdir(parents=True, exist_ok=True)
    with out_json.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
    print(f"[OK] wrote dashboard payload → {out_json}")
