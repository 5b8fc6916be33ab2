import json
from pathlib import Path
import tempfile
import unittest
import zipfile

import pandas as pd

from charger_HealthReporter.core.metrics import compute_connector_metrics
from charger_HealthReporter.core.model import ALL_FILES, CHARGING, FAILED, SUCCESSFUL
from charger_HealthReporter.core.pipeline import run_pipeline
from charger_HealthReporter.core.reports import build_report_plan, dashboard_payload
from charger_HealthReporter.core.tabulate import tabulate_file
from charger_HealthReporter.core.trend import build_trend
from charger_HealthReporter.loaders import csvzip_loader, json_loader
from charger_HealthReporter.utils.detect import detect_kind, discover_inputs

CSV_TEXT = (
    "Connector,Start Type,STOP,STOPREASON,Session Peak Power (kW),Session Energy Delivered (kWh),"
    "Session Duration,Session Start Time,Charge Point id,OEM Name\n"
    "1,Remote,Successful,,60,30,60,2024-01-05 08:00:00,CP-1,ABB\n"
    "1,RFID,Failed,PowerLoss,20,5,30,2024-01-05 09:30:00,CP-1,ABB\n"
    "2,Auto,Successful,,45,15,30,2024-01-05 12:00:00,CP-1,ABB\n"
)


def _result(cp, oem, charging, successful, failed):
    return {
        "info": [{"Charge Point id": cp, "Station Alias Name": f"Station {cp}", "OEM Name": oem,
                  "Power (kW)": 120}],
        "date": {"start_date": "2024-01-05", "end_date": "2024-01-06"},
        "report_1": {CHARGING: charging, SUCCESSFUL: successful, FAILED: failed},
        "Connector1": [
            {"Session Start Time": "2024-01-05 08:00:00", "Session Peak Power (kW)": 100,
             "Session Energy Delivered (kWh)": 50, "Session Duration": 60, "STOP": "Successful"},
            {"Session Start Time": "2024-01-06 10:00:00", "Session Peak Power (kW)": 80,
             "Session Energy Delivered (kWh)": 20, "Session Duration": 30, "STOP": "Failed",
             "STOPREASON": "EmergencyStop"},
        ],
    }


class CsvZipLoaderTests(unittest.TestCase):
    def test_loose_csv_becomes_one_entry(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "site.csv"
            path.write_text(CSV_TEXT, encoding="utf-8")
            entries = csvzip_loader.load(path)
        self.assertEqual(["site.csv"], list(entries))
        rows = entries["site.csv"]["rows"]
        self.assertEqual(3, len(rows))
        self.assertIsNone(rows[0]["STOPREASON"])
        self.assertEqual("PowerLoss", rows[1]["STOPREASON"])

    def test_zip_members_are_independent_entries(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bundle.zip"
            with zipfile.ZipFile(path, "w") as zf:
                zf.writestr("logs/a.csv", CSV_TEXT)
                zf.writestr("logs/b.csv", CSV_TEXT)
                zf.writestr("readme.txt", "ignored")
            self.assertEqual("zip", detect_kind(path))
            entries = csvzip_loader.load(path)
        self.assertEqual(["a.csv", "b.csv"], sorted(entries))

    def test_xlsx_sheets_become_tables(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "book.xlsx"
            with pd.ExcelWriter(path) as writer:
                pd.DataFrame([{"Charge Point id": "CP-7"}]).to_excel(writer, sheet_name="Info", index=False)
                pd.DataFrame([{"STOP": "Successful"}, {"STOP": "Failed"}]).to_excel(
                    writer, sheet_name="Connector1", index=False)
            entries = csvzip_loader.load(path)
        tables = entries["book.xlsx"]
        self.assertEqual({"Info", "Connector1"}, set(tables))
        result = tabulate_file("book.xlsx", tables)
        self.assertEqual(2, len(result["Connector1"]))

    def test_infinite_cell_does_not_spoil_the_table(self):
        text = (
            "Connector,STOP,Session Peak Power (kW),Session Energy Delivered (kWh),Session Duration,Session Start Time\n"
            "1,Successful,inf,inf,60,2024-01-05 08:00:00\n"
            "1,Successful,10,10,60,2024-01-05 09:00:00\n"
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "site.csv"
            path.write_text(text, encoding="utf-8")
            tables = csvzip_loader.load(path)["site.csv"]
        rows = tables["rows"]
        metrics = compute_connector_metrics(rows)
        self.assertEqual((10.0, 5.0), (metrics.peak_kw, metrics.avg_kw))
        self.assertEqual([0.0, 10.0], [p.peak for p in build_trend(rows)])

        result = tabulate_file("site.csv", tables)
        payload = dashboard_payload(result, build_trend(rows))
        self.assertEqual(10.0, payload["power"]["combined"]["peak"])
        self.assertEqual(2, build_report_plan(result, "Report").page_count)

    def test_unsupported_input(self):
        with self.assertRaises(ValueError):
            csvzip_loader.load(Path("notes.txt"))


class JsonLoaderTests(unittest.TestCase):
    def test_single_and_multi_file_exports(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            single = Path(tmpdir) / "export.json"
            single.write_text(json.dumps(_result("CP-1", "ABB", 2, 1, 1)), encoding="utf-8")
            multi = Path(tmpdir) / "all.json"
            multi.write_text(json.dumps({"a.csv": _result("CP-1", "ABB", 2, 1, 1), "meta": 3}),
                             encoding="utf-8")
            broken = Path(tmpdir) / "broken.json"
            broken.write_text("{", encoding="utf-8")

            self.assertEqual(["export"], list(json_loader.load(single)))
            self.assertEqual(["a.csv"], list(json_loader.load(multi)))
            with self.assertRaises(ValueError):
                json_loader.load(broken)


class DetectTests(unittest.TestCase):
    def test_discover_inputs(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "a.json").write_text("{}", encoding="utf-8")
            (root / "sub").mkdir()
            (root / "sub" / "b.csv").write_text(CSV_TEXT, encoding="utf-8")
            (root / "notes.txt").write_text("x", encoding="utf-8")
            (root / "empty.zip").write_bytes(b"not a zip")

            kinds = sorted(d.kind for d in discover_inputs(root))
            self.assertEqual(["csv", "json"], kinds)
            self.assertEqual(["json"], [d.kind for d in discover_inputs(root, recurse=False)])
            self.assertEqual([], discover_inputs(root / "missing"))


class PipelineTests(unittest.TestCase):
    def test_pipeline_writes_reports_plots_pdf_and_payload(self):
        results = {
            "a.csv": _result("CP-1", "ABB", 10, 8, 2),
            "b.csv": _result("CP-2", "Kempower", 5, 5, 0),
        }
        cfg = {
            "reports": {"format": "both", "mat_variable": "report"},
            "pdf": {"enabled": True, "file_name": "report.pdf"},
            "plots": {"enabled": True, "dpi": 60},
        }
        with tempfile.TemporaryDirectory() as tmpdir:
            out_root = Path(tmpdir) / "out"
            state = run_pipeline(results, cfg, out_root)

            self.assertIn(ALL_FILES, state.results)
            for name in ("report.csv", "report.mat", "network_performance.csv",
                         "network_performance.png", "report.pdf", "dashboard.json"):
                self.assertTrue((out_root / name).exists(), f"{name} missing")
            self.assertTrue((out_root / "All_Files" / "power_trend.csv").exists())
            self.assertTrue((out_root / "All_Files" / "top_error_reasons.csv").exists())

            df = pd.read_csv(out_root / "report.csv")
            self.assertEqual(["a.csv", "b.csv", "TOTAL"], df["file"].tolist())
            total = df[df["file"] == "TOTAL"].iloc[0]
            self.assertEqual(15, total["charging"])
            self.assertEqual(87, total["success_rate_pct"])

            network = pd.read_csv(out_root / "network_performance.csv")
            self.assertEqual(["ABB", "KEMPOWER", "OVERALL"], network["name"].tolist())
            self.assertEqual([20, 0, 13], network["negative_stop_pct"].tolist())

            with (out_root / "dashboard.json").open(encoding="utf-8") as f:
                payload = json.load(f)
            self.assertEqual(ALL_FILES, payload["label"])
            self.assertEqual(87, payload["success_rate"]["combined"])
            self.assertEqual(["Jan 5", "Jan 6"], [p["label"] for p in payload["trend"]])

    def test_file_filter_from_config(self):
        results = {
            "a.csv": _result("CP-1", "ABB", 10, 8, 2),
            "b.csv": _result("CP-2", "Kempower", 5, 5, 0),
        }
        cfg = {"filters": {"file": "b.csv"}, "pdf": {"enabled": False}, "plots": {"enabled": False}}
        with tempfile.TemporaryDirectory() as tmpdir:
            out_root = Path(tmpdir)
            run_pipeline(results, cfg, out_root)
            with (out_root / "dashboard.json").open(encoding="utf-8") as f:
                payload = json.load(f)
            self.assertFalse((out_root / "charger_health_report.pdf").exists())
        self.assertEqual("b.csv", payload["label"])
        self.assertEqual(100, payload["success_rate"]["combined"])


if __name__ == "__main__":
    unittest.main()
