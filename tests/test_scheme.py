"""Tests for loading a grouping scheme directory."""

import dataclasses
import json
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from scheme_fixture import raw_scheme, write_scheme

from chs_drg_grouper.data.models import (
    ADRGType, CCLevel, ComplicationSplit, GroupingMode, TableKey, TableKind
)
from chs_drg_grouper.errors import ConfigurationError
from chs_drg_grouper.parser import scheme


class SchemeDirTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def load(self, raw=None):
        write_scheme(self.data_dir, raw)
        return scheme.load_scheme(self.data_dir)


class TestLoadScheme(SchemeDirTestCase):

    def test_loads_every_table(self):
        tables = self.load()
        self.assertEqual(tables.mdc_diagnoses["MDCE"], {"J20.900", "J18.900"})
        self.assertEqual(tables.trauma_regions["head_dis"], {"S06.000"})
        self.assertEqual(tables.codes("FM1", TableKind.PROCEDURE_2), {"88.5500"})
        self.assertEqual(tables.mdc_adrgs["MDCF"], {"FR1", "FM1", "FB2"})
        self.assertIn("86.2200", tables.all_procedures)
        self.assertNotIn("93.3500x004", tables.all_procedures)
        self.assertEqual(tables.exclusions["J18.900"], "J96")

    def test_adrg_types(self):
        info = self.load().info("FR1")
        self.assertEqual(info.adrg_type, ADRGType.MEDICAL)
        self.assertEqual(info.split, ComplicationSplit.MERGE_3_5)
        self.assertEqual(info.mode, GroupingMode.COMMON_DIS)
        self.assertTrue(info.is_medical)

    def test_cc_levels(self):
        tables = self.load()
        self.assertEqual(tables.cc_mcc["E87.102"].level, CCLevel.CC)
        self.assertEqual(tables.cc_mcc["E87.803"].level, CCLevel.NONE)
        self.assertEqual(tables.cc_mcc["I21.000"].exclusion_category, "无")

    def test_pre_mdc_candidates_fixed_order(self):
        tables = self.load()
        self.assertEqual(tables.candidate_adrgs("MDCA")[:2], ["AA1", "AB1"])
        self.assertEqual(tables.candidate_adrgs("MDCF"), ["FB2", "FM1", "FR1"])

    def test_tables_are_read_only(self):
        tables = self.load()
        with self.assertRaises(TypeError):
            tables.exclusions["J20.900"] = "J96"
        with self.assertRaises(dataclasses.FrozenInstanceError):
            tables.cc_mcc = {}

    def test_missing_file(self):
        write_scheme(self.data_dir)
        (self.data_dir / scheme.CC_MCC_FILE).unlink()
        with self.assertRaises(FileNotFoundError):
            scheme.load_scheme(self.data_dir)

    def test_invalid_json(self):
        write_scheme(self.data_dir)
        (self.data_dir / scheme.ADRG_TYPES_FILE).write_text("{", encoding="utf-8")
        with self.assertRaises(ConfigurationError):
            scheme.load_scheme(self.data_dir)


class TestSchemeProblems(SchemeDirTestCase):
    """An incomplete scheme is refused before any case is grouped."""

    def assertProblem(self, raw, fragment):
        with self.assertRaises(ConfigurationError) as ctx:
            self.load(raw)
        self.assertTrue(
            any(fragment in problem for problem in ctx.exception.problems),
            ctx.exception.problems
        )

    def test_missing_type_entry(self):
        raw = raw_scheme()
        del raw[scheme.ADRG_TYPES_FILE]["FR1"]
        self.assertProblem(raw, "FR1 (in MDCF): no type entry")

    def test_unknown_grouping_mode(self):
        raw = raw_scheme()
        raw[scheme.ADRG_TYPES_FILE]["ES2"] = ["内科", "细分", "some_dis"]
        self.assertProblem(raw, "unknown grouping mode 'some_dis'")

    def test_unknown_type_label(self):
        raw = raw_scheme()
        raw[scheme.ADRG_TYPES_FILE]["ES2"] = ["其他", "细分", "common_dis"]
        self.assertProblem(raw, "unknown type '其他'")

    def test_unknown_list_kind(self):
        raw = raw_scheme()
        raw[scheme.ADRG_CODES_FILE]["ES2_opt9"] = ["32.2901"]
        self.assertProblem(raw, "unknown list kind in key 'ES2_opt9'")

    def test_missing_code_list(self):
        raw = raw_scheme()
        del raw[scheme.ADRG_CODES_FILE]["IC1_opt4"]
        self.assertProblem(raw, "IC1 (main_dis_and_multi_opt): no opt4 code list")

    def test_missing_trauma_region(self):
        raw = raw_scheme()
        del raw[scheme.TRAUMA_REGIONS_FILE]["bon_dis"]
        self.assertProblem(raw, "no diagnosis list for region bon_dis")

    def test_missing_mdc(self):
        raw = raw_scheme()
        del raw[scheme.MDC_DIAGNOSES_FILE]["MDCB"]
        self.assertProblem(raw, "MDCB: no principal diagnosis list")

    def test_missing_wb1_list(self):
        raw = raw_scheme()
        del raw[scheme.ADRG_CODES_FILE]["WB1_opt"]
        self.assertProblem(raw, "no WB1 opt code list")

    def test_unknown_cc_level(self):
        raw = raw_scheme()
        raw[scheme.CC_MCC_FILE]["E87.102"] = ["E87", "XCC"]
        self.assertProblem(raw, "E87.102 has unknown level 'XCC'")

    def test_problems_listed_in_message(self):
        raw = raw_scheme()
        del raw[scheme.ADRG_TYPES_FILE]["FR1"]
        del raw[scheme.ADRG_TYPES_FILE]["ES2"]
        with self.assertRaises(ConfigurationError) as ctx:
            self.load(raw)
        self.assertEqual(len(ctx.exception.problems), 2)
        self.assertIn("ES2", str(ctx.exception))


class TestParsers(unittest.TestCase):

    def test_procedure_sheet(self):
        self.assertEqual(
            scheme.parse_procedure_sheet("37.5100, 50.5900,\n,32.2901"),
            {"37.5100", "50.5900", "32.2901"}
        )

    def test_adrg_code_keys(self):
        problems = []
        codes = scheme.parse_adrg_codes({"IB1_opt2": ["03.0900"], "ES2_dis": []}, problems)
        self.assertEqual(problems, [])
        self.assertEqual(codes[TableKey("IB1", TableKind.PROCEDURE_2)], {"03.0900"})
        self.assertEqual(codes[TableKey("ES2", TableKind.DIAGNOSIS)], frozenset())

    def test_code_set_must_be_list(self):
        problems = []
        scheme.parse_code_sets({"MDCE": "J20.900"}, "MDC_main_dis.json", problems)
        self.assertEqual(len(problems), 1)

    def test_top_level_must_be_object(self):
        with self.assertRaises(ConfigurationError):
            scheme.parse_exclusions(json.loads("[]"))


if __name__ == "__main__":
    unittest.main()
