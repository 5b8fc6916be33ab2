# charger_HealthReporter/loaders/csvzip_loader.py
from __future__ import annotations
from pathlib import Path
import zipfile, io, logging
import pandas as pd

_LOG = logging.getLogger(__name__)

TABLE_SUFFIXES = (".csv", ".xlsx")

RawTables = dict[str, list[dict]]


# ---------- frame -> records ----------
def _records(df: pd.DataFrame) -> list[dict]:
    """Row dicts with NaN/NaT turned into None; fully empty rows dropped."""
    df = df.dropna(how="all")
    df.columns = [str(c).strip() for c in df.columns]
    return df.astype(object).where(df.notna(), None).to_dict(orient="records")


def _tables_from_csv_bytes(buff: bytes) -> RawTables:
    df = pd.read_csv(io.BytesIO(buff), sep=",", encoding="utf-8-sig", low_memory=False)
    return {"rows": _records(df)}


def _tables_from_excel_bytes(buff: bytes) -> RawTables:
    sheets = pd.read_excel(io.BytesIO(buff), sheet_name=None)
    return {str(name): _records(df) for name, df in sheets.items() if not df.empty}


def tables_from_bytes(name: str, buff: bytes) -> RawTables:
    suffix = Path(name).suffix.lower()
    if suffix == ".csv":
        return _tables_from_csv_bytes(buff)
    if suffix == ".xlsx":
        return _tables_from_excel_bytes(buff)
    raise ValueError(f"unsupported table file: {name}")


# ---------- public loader ----------
def load(path: Path) -> dict[str, RawTables]:
    """
    Accepts: a loose .csv or .xlsx file, or a .zip whose CSV/XLSX members
    are each treated as an independent source file.
    Returns: {entry name: {table name: [row dict, ...]}}.
    """
    suffix = path.suffix.lower()
    if suffix in TABLE_SUFFIXES:
        return {path.name: tables_from_bytes(path.name, path.read_bytes())}
    if suffix != ".zip":
        raise ValueError(f"unsupported input: {path.name}")

    entries: dict[str, RawTables] = {}
    with zipfile.ZipFile(path, "r") as zf:
        members = [m for m in zf.namelist()
                   if m.lower().endswith(TABLE_SUFFIXES) and not Path(m).name.startswith(("._", "~$"))]
        for member in members:
            name = Path(member).name
            if name in entries:
                name = member
            try:
                entries[name] = tables_from_bytes(member, zf.read(member))
            except (ValueError, OSError) as e:
                _LOG.warning("skipping %s in %s: %s", member, path.name, e)
    if not entries:
        raise ValueError(f"{path.name}: no readable CSV/XLSX members")
    return entries
