# charger_HealthReporter/main.py
from __future__ import annotations
from pathlib import Path
import logging
import sys
import yaml

from .core.batch import BatchFailedError, process_batch
from .core.pipeline import run_pipeline
from .core.tabulate import tabulate_file
from .loaders import csvzip_loader, json_loader
from .utils.detect import discover_inputs

here = Path(__file__).resolve().parent


def load_config(cfg_path: Path) -> dict:
    with cfg_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _setup_logging(cfg: dict) -> None:
    level = str(cfg.get("logging", {}).get("level", "WARNING")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.WARNING),
                        format="%(levelname)s %(name)s: %(message)s")


def _unique(name: str, taken: set, item_path: Path) -> str:
    return name if name not in taken else f"{item_path.stem}/{name}"


def main(argv: list[str] | None = None):
    argv = sys.argv[1:] if argv is None else argv
    # ---------- config ----------
    cfg_path = Path(argv[0]) if argv else here / "config.yaml"
    cfg = load_config(cfg_path)
    _setup_logging(cfg)

    in_path = Path(cfg["input"]["path"]).resolve()
    recurse = bool(cfg["input"].get("recurse", True))
    out_root = Path(cfg["output"]["root"]).resolve()
    out_root.mkdir(parents=True, exist_ok=True)

    verbose = bool(cfg.get("logging", {}).get("verbose", True))
    if verbose:
        print(f"[cfg] config={cfg_path}")
        print(f"[cfg] input={in_path} (recurse={recurse})")
        print(f"[cfg] output={out_root}")

    # ---------- discover ----------
    detected = discover_inputs(in_path, recurse=recurse)
    if not detected:
        print(f"[INFO] No JSON/CSV/XLSX/ZIP inputs found under: {in_path}")
        sys.exit(0)
    if verbose:
        kinds = {}
        for d in detected:
            kinds.setdefault(d.kind, 0)
            kinds[d.kind] += 1
        print(f"[detector] found {sum(kinds.values())} inputs → {kinds}")

    # ---------- loader registry ----------
    registry = {
        "json": json_loader.load,
        "csv":  csvzip_loader.load,
        "xlsx": csvzip_loader.load,
        "zip":  csvzip_loader.load,
    }

    processed: dict[str, dict] = {}        # already processed exports
    raw_entries: dict[str, dict] = {}      # entry name -> named raw tables
    seen: set[str] = set()
    for item in detected:
        loader = registry.get(item.kind)
        if loader is None:
            if verbose:
                print(f"[skip] no loader for {item.kind}: {item.path.name}")
            continue
        if verbose:
            print(f"  [load] {item.kind:5} {item.path.name}")
        try:
            loaded = loader(item.path)
        except (ValueError, OSError) as e:
            print(f"[WARN] loader failed for {item.path.name}: {e}")
            continue
        target = processed if item.kind == "json" else raw_entries
        for name, payload in loaded.items():
            name = _unique(name, seen, item.path)
            seen.add(name)
            target[name] = payload

    # ---------- processing ----------
    results = dict(processed)
    if raw_entries:
        max_conc = cfg.get("processing", {}).get("max_concurrency")
        if verbose:
            print(f"[batch] processing {len(raw_entries)} file(s)")
        try:
            results.update(process_batch(raw_entries, tabulate_file,
                                         int(max_conc) if max_conc else None))
        except BatchFailedError as e:
            if not results:
                print(f"[ERROR] {e}")
                sys.exit(1)
            print(f"[WARN] {e}")

    if not results:
        if verbose:
            print("[INFO] No results loaded; exiting without processing pipeline.")
        sys.exit(0)

    if verbose:
        print(f"[pipeline] reporting on {len(results)} file(s): {', '.join(sorted(results))}")
    run_pipeline(results, cfg, out_root)
    if verbose:
        print(f"[summary] finished with {len(results)} file(s)")


if __name__ == "__main__":
    main()
