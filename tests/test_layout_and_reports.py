import unittest

from charger_HealthReporter.core.layout import Banner, Document, Note, PageGeometry, Table
from charger_HealthReporter.core.model import (
    AUTO_START, AVG_POWER, CHARGING, FAILED, PEAK_POWER, PREPARING, REMOTE_START, SUCCESSFUL,
)
from charger_HealthReporter.core.reports import (
    ATTENTION, COMBINED, GOOD, NO_DATA, build_multi_file_plan, build_report_plan, dashboard_payload,
)

# 40 mm of usable height: exactly four 10 mm notes per page
SMALL = PageGeometry(top=10.0, bottom=50.0)


def _notes(n):
    return [Note(f"line {i}", height=10.0, gap=0.0) for i in range(n)]


def _result():
    rows = [
        {"Session Start Time": "2024-01-05 10:00:00", "Session Peak Power (kW)": 95,
         "Session Energy Delivered (kWh)": 40, "Session Duration": 60, "STOP": "Successful"},
        {"Session Start Time": "2024-01-07 11:00:00", "Session Peak Power (kW)": 0,
         "STOP": "Failed", "STOPREASON": "EmergencyStop"},
        {"Session Start Time": "2024-01-07 12:00:00", "vendorErrorCode": "Precharging Failure",
         "is_Charging": 0, "STOP": "Failed"},
    ]
    return {
        "info": [{"Station Alias Name": "Depot A", "Charge Point id": "CP-1", "OEM Name": "abb",
                  "Power (kW)": 100, "Firmware Version": "1.2"}],
        "date": {"start_date": "2024-01-05", "end_date": "2024-01-07"},
        "report_1": {PREPARING: 16, CHARGING: 15, SUCCESSFUL: 13, FAILED: 2, REMOTE_START: 10,
                     AUTO_START: 5, PEAK_POWER: 95, AVG_POWER: 40},
        "Connector1": rows,
    }


class PaginatorTests(unittest.TestCase):
    def test_section_ends_on_widest_column_page(self):
        doc = Document(SMALL)
        section = doc.parallel_section(["A", "B", "C"])
        for name, n in (("A", 2), ("B", 10), ("C", 6)):
            for block in _notes(n):
                section.place(name, block)

        self.assertEqual([1], doc.column_pages("A"))
        self.assertEqual([1, 2, 3], doc.column_pages("B"))
        self.assertEqual([1, 2], doc.column_pages("C"))
        self.assertEqual(3, section.close())
        self.assertEqual(3, doc.active_page)
        self.assertEqual(3, doc.page_count)

        nxt = doc.parallel_section(["A2", "B2", "C2"])
        self.assertEqual(3, nxt.start_page)
        nxt.place_all({"A2": _notes(1), "B2": _notes(1), "C2": _notes(1)})
        for name in ("A2", "B2", "C2"):
            self.assertEqual([3], doc.column_pages(name))
            # continues below column B's content on page 3
            self.assertEqual(30.0, doc.placements(name)[0].y)
        nxt.close()
        self.assertEqual(3, doc.page_count)

    def test_lock_step_placement_matches_serial_page_counts(self):
        doc = Document(SMALL)
        with doc.parallel_section(["A", "B", "C"]) as section:
            for i in range(10):
                section.place_all({"A": _notes(1) if i < 2 else [], "B": _notes(1),
                                   "C": _notes(1) if i < 6 else []})
        self.assertEqual(3, doc.active_page)
        self.assertEqual(3, doc.page_count)
        self.assertEqual([1, 2], doc.column_pages("C"))

    def test_fresh_page_section_starts_after_high_water_mark(self):
        doc = Document(SMALL)
        with doc.parallel_section(["A", "B"]) as section:
            for block in _notes(5):
                section.place("A", block)
        detail = doc.parallel_section(["A", "B"], fresh_page=True)
        self.assertEqual(3, detail.start_page)
        self.assertEqual(3, doc.page_count)

    def test_tables_split_with_head_repeated(self):
        doc = Document(SMALL)
        rows = tuple((f"r{i}", str(i)) for i in range(15))
        with doc.parallel_section(["A"]) as section:
            section.place("A", Table(("Reason", "Count"), rows, styles={(12, 1): GOOD}))
        parts = [pl.block for pl in doc.placements("A")]
        self.assertEqual(2, len(parts))
        self.assertEqual([1, 2], doc.column_pages("A"))
        self.assertEqual(rows, parts[0].rows + parts[1].rows)
        self.assertEqual(("Reason", "Count"), parts[1].head)
        self.assertTrue(parts[1].continued)
        self.assertEqual({(3, 1): GOOD}, dict(parts[1].styles))

    def test_too_many_columns(self):
        with self.assertRaises(ValueError):
            Document().parallel_section(["a", "b", "c", "d"])


class ReportPlanTests(unittest.TestCase):
    def _blocks(self, doc, column, kind):
        return [pl.block for pl in doc.placements(column) if isinstance(pl.block, kind)]

    def test_summary_and_detail_sections(self):
        doc = build_report_plan(_result(), "Charger Health Report")
        self.assertEqual(2, doc.page_count)

        banner = self._blocks(doc, COMBINED, Banner)[0]
        self.assertEqual("Success Rate: 87% (13 / 15)", banner.text)
        self.assertEqual(GOOD, banner.style)
        empty = self._blocks(doc, "CONNECTOR 2", Banner)[0]
        self.assertEqual(("Success Rate: 0%", ATTENTION), (empty.text, empty.style))

        tables = {t.head: t for t in self._blocks(doc, COMBINED, Table)}
        usage = dict(tables[("Metric", "Count")].rows)
        self.assertEqual("13", usage["Positive Stops"])
        self.assertEqual("1", usage["Precharging Failure"])
        power = tables[("Metric", "Value")]
        self.assertEqual((("Peak Power (kW)", "95.00"), ("Avg Power (kW)", "40.00")), power.rows)
        self.assertEqual(GOOD, power.styles[(0, 1)])

        c2_power = [t for t in self._blocks(doc, "CONNECTOR 2", Table) if t.head == ("Metric", "Value")][0]
        self.assertEqual(NO_DATA, c2_power.rows[0][1])
        self.assertEqual(ATTENTION, c2_power.styles[(0, 1)])

        detail = [pl for pl in doc.placements(COMBINED) if pl.page == 2]
        errors = [pl.block for pl in detail if isinstance(pl.block, Table) and pl.block.head[0] == "Stop Reason"][0]
        self.assertEqual({"EmergencyStop", "Precharging Failure"}, {r[0] for r in errors.rows})
        notes = [b.text for b in self._blocks(doc, "CONNECTOR 2", Note)]
        self.assertIn("No Failed/Error stops recorded.", notes)

    def _column(self, doc, column):
        banner = self._blocks(doc, column, Banner)[0]
        power = [t for t in self._blocks(doc, column, Table) if t.head == ("Metric", "Value")][0]
        return banner.style, power.styles[(0, 1)]

    def test_style_thresholds_are_strict(self):
        result = {
            "info": [{"Charge Point id": "CP-1", "Power (kW)": 200}],
            # 60% and exactly 90% of the 100 kW connector share
            "report_1": {CHARGING: 10, SUCCESSFUL: 6, PEAK_POWER: 90},
            "report_2": {CHARGING: 5, SUCCESSFUL: 4, PEAK_POWER: 91},
        }
        doc = build_report_plan(result, "Thresholds")
        self.assertEqual((ATTENTION, ATTENTION), self._column(doc, "CONNECTOR 1"))
        self.assertEqual((GOOD, GOOD), self._column(doc, "CONNECTOR 2"))
        # 10 / 15 sessions, but 91 kW is below 90% of the full 200 kW
        self.assertEqual((GOOD, ATTENTION), self._column(doc, COMBINED))

        result["report_2"][PEAK_POWER] = 181
        self.assertEqual(GOOD, self._column(build_report_plan(result, "Thresholds"), COMBINED)[1])

    def test_empty_result_never_raises(self):
        doc = build_report_plan({}, "Empty")
        self.assertEqual(2, doc.page_count)
        power = [t for t in self._blocks(doc, COMBINED, Table) if t.head == ("Metric", "Value")][0]
        self.assertEqual(NO_DATA, power.rows[0][1])

    def test_multi_file_plan_skips_all_files(self):
        doc = build_multi_file_plan({"b": _result(), "a": _result(), "All Files": _result()}, "Report")
        self.assertEqual(4, doc.page_count)
        titles = [pl.block.text for pl in doc.placements(None) if pl.column is None and pl.block.kind == "title"]
        self.assertEqual(["Report - a", "Report - b"], titles)


class DashboardPayloadTests(unittest.TestCase):
    def test_payload_series(self):
        payload = dashboard_payload(_result(), [], label="x")
        self.assertEqual(87, payload["success_rate"]["combined"])
        funnel = {e["name"]: e["value"] for e in payload["usage"]["connector_1"]}
        self.assertEqual((16, 15, 2), (funnel["Preparing"], funnel["Charging"], funnel["Negative Stops"]))
        # RFID had no accepted starts and is left out of the pie
        self.assertEqual(["Remote Start", "Auto Charge"], [e["name"] for e in payload["authentication"]])
        self.assertEqual(95.0, payload["power"]["combined"]["peak"])
        self.assertIsNone(payload["power"]["connector_2"]["peak"])
        self.assertEqual(2, len(payload["errors"]))


if __name__ == "__main__":
    unittest.main()
