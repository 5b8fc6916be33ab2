# charger_HealthReporter/core/pipeline.py
from __future__ import annotations
import logging
from pathlib import Path
from typing import Mapping

from .classify import DEFAULT_TOP_N, network_performance, top_error_reasons
from .grouping import selection_from_config
from .model import all_rows
from .plotting import render_pdf, safe_name, save_network_plot, save_trend_plot
from .reports import (
    build_multi_file_plan, build_report_plan, dashboard_payload, write_breakdown_csv,
    write_dashboard_payload, write_report, write_trend_csv,
)
from .state import DashboardState
from .trend import build_trend

_LOG = logging.getLogger(__name__)


def run_pipeline(results: Mapping[str, dict], cfg: dict, out_root: Path) -> DashboardState:
    """
    Produce every artefact for one processed batch: the per-file metrics report,
    trend / error / network tables and plots for the active selection, the PDF
    report and the dashboard payload. Returns the dashboard state it built.
    """
    state = DashboardState()
    state.load_results(results)
    if not state.results:
        print("[INFO] No results to report.")
        return state
    state.selection = selection_from_config(cfg)

    composer = state.composer()
    active = state.active_result()
    label = composer.active_label(state.selection)
    rows = all_rows(active)
    _LOG.info("active selection: %s (%d session row(s))", label, len(rows))

    trend_mode = str(cfg.get("trend", {}).get("mode", "bucketed")).lower()
    top_n = int(cfg.get("breakdown", {}).get("top_n", DEFAULT_TOP_N))
    fmt = str(cfg.get("reports", {}).get("format", "csv")).lower()
    mat_var = str(cfg.get("reports", {}).get("mat_variable", "report"))

    out_root.mkdir(parents=True, exist_ok=True)
    sel_dir = out_root / (safe_name(label) or "selection")

    # reports
    write_report(state.results, out_root / "report", "per-file metrics", fmt=fmt, mat_variable=mat_var)

    trend = build_trend(rows, mode="per_row" if trend_mode == "per_row" else "bucketed")
    errors = top_error_reasons(rows, top_n)
    network = network_performance(state.results)
    write_trend_csv(trend, sel_dir / "power_trend.csv", f"{label} power trend")
    write_breakdown_csv(errors, sel_dir / "top_error_reasons.csv", f"{label} top error reasons")
    write_breakdown_csv(network, out_root / "network_performance.csv", "network performance",
                        value_column="negative_stop_pct")

    # plots
    plots_cfg = cfg.get("plots", {})
    if bool(plots_cfg.get("enabled", True)):
        dpi = int(plots_cfg.get("dpi", 160))
        save_trend_plot(trend, sel_dir, label, dpi=dpi)
        save_network_plot(network, out_root, dpi=dpi)

    # pdf
    pdf_cfg = cfg.get("pdf", {})
    if bool(pdf_cfg.get("enabled", True)):
        title = str(pdf_cfg.get("title", "Charger Health Report"))
        if bool(pdf_cfg.get("per_file", False)) and len(composer.files()) > 1:
            plan = build_multi_file_plan(state.results, title, cfg)
        else:
            plan = build_report_plan(active, f"{title} - {label}", cfg)
        render_pdf(plan, out_root / str(pdf_cfg.get("file_name", "charger_health_report.pdf")), title)

    payload = dashboard_payload(active, trend, network, label=label, top_n=top_n)
    write_dashboard_payload(payload, out_root / "dashboard.json")
    return state
