# charger_HealthReporter/loaders/json_loader.py
from __future__ import annotations
from pathlib import Path
import json, logging, re

_LOG = logging.getLogger(__name__)

_RESULT_KEY = re.compile(r"^(info|date|report_\d+|Connector\d+)$")


def _looks_like_result(obj) -> bool:
    return isinstance(obj, dict) and any(_RESULT_KEY.match(str(k)) for k in obj)


def load(path: Path) -> dict[str, dict]:
    """
    Already-processed export(s).
    Accepts either a single FileResult (keyed by the file stem) or a mapping
    {file name: FileResult}; entries that are not result-shaped are skipped.
    """
    with path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path.name}: invalid JSON ({e})") from e

    if _looks_like_result(data):
        return {path.stem: data}
    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: expected a JSON object")

    out = {}
    for name, result in data.items():
        if _looks_like_result(result):
            out[str(name)] = result
        else:
            _LOG.debug("%s: skipping non-result entry %r", path.name, name)
    if not out:
        raise ValueError(f"{path.name}: no processed results found")
    return out
