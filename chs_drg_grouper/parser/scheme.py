"""Loader for a CHS-DRG grouping scheme directory.

The scheme is a set of JSON files plus a comma-separated list of every
significant procedure:

    MDC_main_dis.json        MDC -> principal diagnoses
    MDCZ_main_dis_list.json  trauma body region -> diagnoses
    adrg_dis_opt.json        "<ADRG>_<dis|opt|opt1..opt4>" -> codes
    adrg_type_dict.json      ADRG -> [type, complication split, grouping mode]
    mdc_map_adrg.json        MDC -> ADRGs
    cc_mcc_dict.json         diagnosis -> [exclusion category, CC|MCC|""]
    exclusive_dict.json      principal diagnosis -> excluded category
    all_opt_sheet.txt        procedure,procedure,...
"""

import json
import logging
from pathlib import Path

from ..data.models import (
    ADRGInfo, ADRGType, CCLevel, CCMCCInfo, ComplicationSplit, GroupingMode,
    TableKey, TableKind
)
from ..data.tables import ReferenceTables, validate_tables
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

MDC_DIAGNOSES_FILE = "MDC_main_dis.json"
TRAUMA_REGIONS_FILE = "MDCZ_main_dis_list.json"
ADRG_CODES_FILE = "adrg_dis_opt.json"
ADRG_TYPES_FILE = "adrg_type_dict.json"
MDC_ADRGS_FILE = "mdc_map_adrg.json"
CC_MCC_FILE = "cc_mcc_dict.json"
EXCLUSIONS_FILE = "exclusive_dict.json"
ALL_PROCEDURES_FILE = "all_opt_sheet.txt"

ADRG_TYPE_LABELS = {
    "内科": ADRGType.MEDICAL,
    "medical": ADRGType.MEDICAL,
    "外科": ADRGType.SURGICAL,
    "操作": ADRGType.SURGICAL,
    "非手术室操作": ADRGType.SURGICAL,
    "surgical": ADRGType.SURGICAL,
}

SPLIT_LABELS = {
    "未细分": ComplicationSplit.UNSPLIT,
    "unsplit": ComplicationSplit.UNSPLIT,
    "1合并3": ComplicationSplit.MERGE_1_3,
    "merge-1-3": ComplicationSplit.MERGE_1_3,
    "3合并5": ComplicationSplit.MERGE_3_5,
    "merge-3-5": ComplicationSplit.MERGE_3_5,
    "细分": ComplicationSplit.STANDARD,
    "正常": ComplicationSplit.STANDARD,
    "standard": ComplicationSplit.STANDARD,
}

CC_LEVEL_LABELS = {
    "": CCLevel.NONE,
    "NONE": CCLevel.NONE,
    "CC": CCLevel.CC,
    "MCC": CCLevel.MCC,
}


def read_json(filepath: Path):
    if not filepath.exists():
        raise FileNotFoundError(f"Scheme file not found at {filepath}")
    with open(filepath, 'r', encoding='utf-8') as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{filepath.name} is not valid JSON: {e}") from e


def _expect_dict(raw, name: str) -> dict:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{name} must hold a JSON object")
    return raw


def parse_code_sets(raw, name: str, problems: list[str]) -> dict[str, frozenset[str]]:
    """Parse a ``{key: [code, ...]}`` object."""
    code_sets = {}
    for key, codes in _expect_dict(raw, name).items():
        if not isinstance(codes, list):
            problems.append(f"{name}: {key} is not a list of codes")
            continue
        code_sets[key] = frozenset(str(code).strip() for code in codes)
    return code_sets


def parse_adrg_codes(raw, problems: list[str]) -> dict[TableKey, frozenset[str]]:
    """
    Parse the ADRG code lists.

    Keys look like ``AA1_opt`` or ``IB1_opt2``; the suffix names the list.
    """
    adrg_codes = {}
    for key, codes in parse_code_sets(raw, ADRG_CODES_FILE, problems).items():
        adrg, _, suffix = key.rpartition("_")
        try:
            kind = TableKind(suffix)
        except ValueError:
            problems.append(f"{ADRG_CODES_FILE}: unknown list kind in key {key!r}")
            continue
        if not adrg:
            problems.append(f"{ADRG_CODES_FILE}: no ADRG in key {key!r}")
            continue
        adrg_codes[TableKey(adrg, kind)] = codes
    return adrg_codes


def parse_adrg_types(raw, problems: list[str]) -> dict[str, ADRGInfo]:
    """Parse ``ADRG -> [type, complication split, grouping mode]``."""
    adrg_info = {}
    for adrg, labels in _expect_dict(raw, ADRG_TYPES_FILE).items():
        if not isinstance(labels, list) or len(labels) < 3:
            problems.append(f"{ADRG_TYPES_FILE}: {adrg} needs [type, split, mode]")
            continue

        type_label, split_label, mode_label = (str(label).strip() for label in labels[:3])
        adrg_type = ADRG_TYPE_LABELS.get(type_label)
        split = SPLIT_LABELS.get(split_label)
        try:
            mode = GroupingMode(mode_label)
        except ValueError:
            mode = None

        if adrg_type is None:
            problems.append(f"{ADRG_TYPES_FILE}: {adrg} has unknown type {type_label!r}")
        if split is None:
            problems.append(f"{ADRG_TYPES_FILE}: {adrg} has unknown split {split_label!r}")
        if mode is None:
            problems.append(f"{ADRG_TYPES_FILE}: {adrg} has unknown grouping mode {mode_label!r}")
        if adrg_type and split and mode:
            adrg_info[adrg] = ADRGInfo(adrg=adrg, adrg_type=adrg_type, split=split, mode=mode)

    return adrg_info


def parse_cc_mcc(raw, problems: list[str]) -> dict[str, CCMCCInfo]:
    """Parse ``diagnosis -> [exclusion category, level]``."""
    cc_mcc = {}
    for code, entry in _expect_dict(raw, CC_MCC_FILE).items():
        if not isinstance(entry, list) or len(entry) < 2:
            problems.append(f"{CC_MCC_FILE}: {code} needs [exclusion category, level]")
            continue

        exclusion_category = "" if entry[0] is None else str(entry[0]).strip()
        level_label = "" if entry[1] is None else str(entry[1]).strip().upper()
        level = CC_LEVEL_LABELS.get(level_label)
        if level is None:
            problems.append(f"{CC_MCC_FILE}: {code} has unknown level {entry[1]!r}")
            continue

        cc_mcc[code] = CCMCCInfo(code=code, level=level, exclusion_category=exclusion_category)
    return cc_mcc


def parse_exclusions(raw) -> dict[str, str]:
    return {
        code: "" if category is None else str(category).strip()
        for code, category in _expect_dict(raw, EXCLUSIONS_FILE).items()
    }


def parse_procedure_sheet(content: str) -> frozenset[str]:
    """Parse the comma-separated list of significant procedures."""
    return frozenset(code.strip() for code in content.split(',') if code.strip())


def load_procedure_sheet(filepath: Path) -> frozenset[str]:
    if not filepath.exists():
        raise FileNotFoundError(f"Procedure sheet not found at {filepath}")
    with open(filepath, 'r', encoding='utf-8') as f:
        return parse_procedure_sheet(f.read())


def load_scheme(data_dir: Path) -> ReferenceTables:
    """
    Load and validate every reference table in a scheme directory.

    Raises:
        FileNotFoundError: a scheme file is missing
        ConfigurationError: a file is malformed or the scheme is incomplete
    """
    data_dir = Path(data_dir)
    problems = []

    mdc_diagnoses = parse_code_sets(
        read_json(data_dir / MDC_DIAGNOSES_FILE), MDC_DIAGNOSES_FILE, problems)
    trauma_regions = parse_code_sets(
        read_json(data_dir / TRAUMA_REGIONS_FILE), TRAUMA_REGIONS_FILE, problems)
    adrg_codes = parse_adrg_codes(read_json(data_dir / ADRG_CODES_FILE), problems)
    adrg_info = parse_adrg_types(read_json(data_dir / ADRG_TYPES_FILE), problems)
    mdc_adrgs = parse_code_sets(
        read_json(data_dir / MDC_ADRGS_FILE), MDC_ADRGS_FILE, problems)
    cc_mcc = parse_cc_mcc(read_json(data_dir / CC_MCC_FILE), problems)
    exclusions = parse_exclusions(read_json(data_dir / EXCLUSIONS_FILE))
    all_procedures = load_procedure_sheet(data_dir / ALL_PROCEDURES_FILE)

    if problems:
        raise ConfigurationError(f"Malformed grouping scheme in {data_dir}", problems)

    tables = ReferenceTables(
        mdc_diagnoses=mdc_diagnoses,
        trauma_regions=trauma_regions,
        adrg_codes=adrg_codes,
        adrg_info=adrg_info,
        mdc_adrgs=mdc_adrgs,
        all_procedures=all_procedures,
        cc_mcc=cc_mcc,
        exclusions=exclusions,
    )
    validate_tables(tables)

    logger.info(
        "Loaded %d MDCs, %d ADRGs, %d ADRG code lists, %d CC/MCC codes, "
        "%d significant procedures",
        len(mdc_diagnoses), len(adrg_info), len(adrg_codes), len(cc_mcc),
        len(all_procedures)
    )
    return tables
