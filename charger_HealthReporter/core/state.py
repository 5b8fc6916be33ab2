# charger_HealthReporter/core/state.py
from __future__ import annotations
from dataclasses import asdict, dataclass, field
from typing import Mapping

from .grouping import DIMENSIONS, FilterComposer, FilterSelection, with_all_files


@dataclass
class DashboardState:
    """
    What a dashboard shell keeps between visits: the last result set, the
    active filter and whether the dashboard is open. Persistence, and any
    inactivity timeout, belong to the shell; it stores ``snapshot()`` and hands
    it back to ``restore()``.
    """
    results: dict[str, dict] = field(default_factory=dict)
    selection: FilterSelection = field(default_factory=FilterSelection)
    dashboard_visible: bool = False

    def load_results(self, results: Mapping[str, dict]) -> None:
        self.results = with_all_files(results)
        self.selection = FilterSelection()
        self.dashboard_visible = bool(self.results)

    def select(self, dimension: str, value) -> None:
        self.selection = self.selection.select(dimension, value)

    def reset(self) -> None:
        self.results = {}
        self.selection = FilterSelection()
        self.dashboard_visible = False

    def composer(self) -> FilterComposer:
        return FilterComposer(self.results)

    def active_result(self) -> dict:
        return self.composer().active(self.selection)

    def snapshot(self) -> dict:
        return {
            "results": self.results,
            "selection": asdict(self.selection),
            "dashboard_visible": self.dashboard_visible,
        }

    @classmethod
    def restore(cls, snapshot: Mapping | None) -> "DashboardState":
        """Rebuild from ``snapshot()``; None, {} or partial snapshots give defaults."""
        snap = snapshot or {}
        results = snap.get("results")
        results = {str(k): v for k, v in results.items() if isinstance(v, dict)} \
            if isinstance(results, Mapping) else {}

        selection = FilterSelection()
        raw_sel = snap.get("selection")
        if isinstance(raw_sel, Mapping):
            for dim in DIMENSIONS:
                if raw_sel.get(dim) is not None:
                    selection = selection.select(dim, raw_sel[dim])

        return cls(
            results=results,
            selection=selection,
            dashboard_visible=bool(snap.get("dashboard_visible", False)) and bool(results),
        )
