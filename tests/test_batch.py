"""Tests for batch grouping."""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from scheme_fixture import build_tables, make_case

from chs_drg_grouper.batch import group_cases, group_rows
from chs_drg_grouper.grouper import DRGGrouper


def row(case_id, pdx, sdx="", pproc="", sex="1", age="45", weight=""):
    return {
        "case_id": case_id, "principal_dx": pdx, "principal_proc": pproc,
        "secondary_dx": sdx, "secondary_procs": "", "sex": sex, "age": age,
        "weight": weight,
    }


class TestBatch(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.grouper = DRGGrouper(build_tables())

    def test_bad_row_does_not_stop_batch(self):
        rows = [
            row("C1", "J20.900", sdx="E87.102"),
            row("C2", "", age="40"),
            row("C3", "J20.900", age="abc"),
            row("C4", "P07.100", age="0", weight="1200"),
        ]
        with self.assertLogs("chs_drg_grouper.batch", level="WARNING"):
            results = group_rows(self.grouper, rows)

        self.assertEqual([r.drg for r in results], ["ES23", None, None, "PS15"])
        self.assertIsNone(results[0].error)
        self.assertIn("C2", results[1].error)
        self.assertEqual(results[2].case_id, "C3")
        self.assertIsNotNone(results[2].error)

    def test_thread_pool_keeps_row_order(self):
        pdxs = ["J20.900", "Z99.999", "I21.000", "N40.000", "P07.100", "A41.900"] * 10
        rows = [row(f"C{i}", pdx, age="0" if pdx == "P07.100" else "45", weight="1200")
                for i, pdx in enumerate(pdxs)]

        sequential = group_rows(self.grouper, rows)
        threaded = group_rows(self.grouper, rows, max_workers=4)

        self.assertEqual([r.index for r in threaded], list(range(len(rows))))
        self.assertEqual([r.case_id for r in threaded], [r["case_id"] for r in rows])
        self.assertEqual([r.drg for r in threaded], [r.drg for r in sequential])

    def test_group_cases(self):
        cases = [make_case(principal_dx="J20.900", case_id="A"),
                 make_case(principal_dx="Z99.999", case_id="B")]
        results = group_cases(self.grouper, cases, max_workers=2)
        self.assertEqual([(r.case_id, r.drg) for r in results], [("A", "ES25"), ("B", "KBBZ")])

    def test_overflowing_weight_does_not_stop_batch(self):
        rows = [
            row("C1", "J20.900"),
            row("C2", "J20.900", weight="1e400"),
            row("C3", "J20.900"),
        ]
        with self.assertLogs("chs_drg_grouper.batch", level="WARNING"):
            results = group_rows(self.grouper, rows)

        self.assertEqual([r.drg for r in results], ["ES25", None, "ES25"])
        self.assertIn("weight", results[1].error)

    def test_non_finite_age_reported_on_row(self):
        rows = [row("C1", "J20.900", age="nan"), row("C2", "J20.900", age="inf")]
        with self.assertLogs("chs_drg_grouper.batch", level="WARNING"):
            results = group_rows(self.grouper, rows, max_workers=2)
        self.assertEqual([r.drg for r in results], [None, None])
        self.assertTrue(all(r.error for r in results))

    def test_empty_batch(self):
        self.assertEqual(group_rows(self.grouper, []), [])


if __name__ == "__main__":
    unittest.main()
