# charger_HealthReporter/utils/detect.py
from __future__ import annotations
from pathlib import Path
import zipfile
from dataclasses import dataclass
from typing import Iterable, Literal

InputKind = Literal["json", "csv", "xlsx", "zip", "unknown"]

_TABLE_SUFFIXES = (".csv", ".xlsx")
_KIND_BY_SUFFIX: dict[str, InputKind] = {".json": "json", ".csv": "csv", ".xlsx": "xlsx"}


@dataclass(frozen=True)
class DetectedItem:
    path: Path        # resolved path on disk
    kind: InputKind


def _zip_has_tables(p: Path) -> bool:
    try:
        with zipfile.ZipFile(p, "r") as zf:
            return any(m.lower().endswith(_TABLE_SUFFIXES) for m in zf.namelist())
    except (OSError, zipfile.BadZipFile):
        return False


def detect_kind(p: Path) -> InputKind:
    """
    json = processed results; csv / xlsx = raw session tables;
    zip = archive with at least one csv/xlsx member. Office lock files
    ("~$book.xlsx") and everything else are 'unknown'.
    """
    if p.name.startswith("~$"):
        return "unknown"
    suffix = p.suffix.lower()
    if suffix == ".zip":
        return "zip" if p.is_file() and _zip_has_tables(p) else "unknown"
    return _KIND_BY_SUFFIX.get(suffix, "unknown")


def _known(paths: Iterable[Path]) -> list[DetectedItem]:
    items = []
    for p in paths:
        if not p.is_file():
            continue
        kind = detect_kind(p)
        if kind != "unknown":
            items.append(DetectedItem(p.resolve(), kind))
    return items


def discover_inputs(root: Path, recurse: bool = True) -> list[DetectedItem]:
    """A single known file, or every known file under a folder, sorted by kind then path."""
    if root.is_file():
        return _known([root])
    if not root.is_dir():
        return []
    items = _known(root.rglob("*") if recurse else root.glob("*"))
    items.sort(key=lambda x: (x.kind, str(x.path)))
    return items
