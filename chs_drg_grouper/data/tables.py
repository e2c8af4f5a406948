"""Reference tables of a CHS-DRG grouping scheme."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from ..errors import ConfigurationError
from .models import ADRGInfo, CCMCCInfo, GroupingMode, TableKey, TableKind

# MDCs in the order they are tried.
MDC_ORDER = (
    "MDCA", "MDCP", "MDCY", "MDCZ", "MDCB", "MDCC", "MDCD", "MDCE", "MDCF",
    "MDCG", "MDCH", "MDCI", "MDCJ", "MDCK", "MDCL", "MDCM", "MDCN", "MDCO",
    "MDCQ", "MDCR", "MDCS", "MDCT", "MDCU", "MDCV", "MDCW", "MDCX",
)

PRE_MDC = "MDCA"
TRAUMA_MDC = "MDCZ"

# Pre-MDC ADRGs, tried in this order.
PRE_MDC_ADRGS = ("AA1", "AB1", "AC1", "AD1", "AE1", "AF1", "AG1", "AG2", "AH1")

# Body regions of the multiple trauma MDC.
TRAUMA_REGIONS = (
    "head_dis", "chest_dis", "belly_dis", "urinary_dis", "reproductive_dis",
    "torso_spine_dis", "upper_limb_dis", "lower_limb_dis", "bon_dis",
)

# ADRG whose procedure list is read by the exclude_wb1_opt rule.
WB1_ADRG = "WB1"

# Neonatal birth weight ADRGs, lightest first.
BIRTH_WEIGHT_ADRGS = ("PS1", "PS2", "PS3", "PS4")

# Exclusion category of CC/MCC entries that are never excluded.
NO_EXCLUSION = "无"

# Code lists each grouping mode reads from its own ADRG.
MODE_TABLES = {
    GroupingMode.COMMON_OPT: (TableKind.PROCEDURE,),
    GroupingMode.COMMON_DIS: (TableKind.DIAGNOSIS,),
    GroupingMode.BOTH_OPT: (TableKind.PROCEDURE_1, TableKind.PROCEDURE_2),
    GroupingMode.DIS_AND_OPT: (TableKind.DIAGNOSIS, TableKind.PROCEDURE),
    GroupingMode.MAIN_DIS_AND_ANY_OPT: (
        TableKind.DIAGNOSIS, TableKind.PROCEDURE_1, TableKind.PROCEDURE_2,
    ),
    GroupingMode.MAIN_DIS_AND_MULTI_OPT: (
        TableKind.DIAGNOSIS, TableKind.PROCEDURE_1, TableKind.PROCEDURE_2,
        TableKind.PROCEDURE_3, TableKind.PROCEDURE_4,
    ),
    GroupingMode.MAIN_DIS_AND_MULTI_OPT2: (
        TableKind.DIAGNOSIS, TableKind.PROCEDURE_1, TableKind.PROCEDURE_2,
        TableKind.PROCEDURE_3,
    ),
    GroupingMode.ANY_DIS: (TableKind.DIAGNOSIS,),
    GroupingMode.ALL_OPT: (),
    GroupingMode.NO_OPT: (),
    GroupingMode.EXCLUDE_WB1_OPT: (),
}


def _freeze(mapping) -> Mapping:
    return MappingProxyType({
        key: frozenset(value) if isinstance(value, (set, frozenset, list, tuple)) else value
        for key, value in mapping.items()
    })


@dataclass(frozen=True, eq=False)
class ReferenceTables:
    """All lookup tables of a grouping scheme.

    Built once before grouping and never modified; every mapping is
    wrapped read-only so one instance can be shared between threads.
    """
    mdc_diagnoses: Mapping[str, frozenset[str]]
    trauma_regions: Mapping[str, frozenset[str]]
    adrg_codes: Mapping[TableKey, frozenset[str]]
    adrg_info: Mapping[str, ADRGInfo]
    mdc_adrgs: Mapping[str, frozenset[str]]
    all_procedures: frozenset[str]
    cc_mcc: Mapping[str, CCMCCInfo]
    exclusions: Mapping[str, str]

    def __post_init__(self):
        for name in ("mdc_diagnoses", "trauma_regions", "adrg_codes",
                     "adrg_info", "mdc_adrgs", "cc_mcc", "exclusions"):
            object.__setattr__(self, name, _freeze(getattr(self, name)))
        object.__setattr__(self, "all_procedures", frozenset(self.all_procedures))

    def codes(self, adrg: str, kind: TableKind) -> frozenset[str]:
        """Return one code list of an ADRG."""
        try:
            return self.adrg_codes[TableKey(adrg, kind)]
        except KeyError:
            raise ConfigurationError(
                f"No {kind.value} code list for ADRG {adrg}"
            ) from None

    def info(self, adrg: str) -> ADRGInfo:
        try:
            return self.adrg_info[adrg]
        except KeyError:
            raise ConfigurationError(f"No type entry for ADRG {adrg}") from None

    def principal_diagnoses(self, mdc: str) -> frozenset[str]:
        try:
            return self.mdc_diagnoses[mdc]
        except KeyError:
            raise ConfigurationError(f"No principal diagnosis list for {mdc}") from None

    def candidate_adrgs(self, mdc: str) -> list[str]:
        """ADRGs of an MDC in the order they are tried."""
        if mdc == PRE_MDC:
            return list(PRE_MDC_ADRGS)
        try:
            return sorted(self.mdc_adrgs[mdc])
        except KeyError:
            raise ConfigurationError(f"No ADRG list for {mdc}") from None


def find_problems(tables: ReferenceTables) -> list[str]:
    """
    Check that every lookup the grouper can make will succeed.

    Returns a list of human readable problems; empty when the scheme is
    complete.
    """
    problems = []

    for mdc in MDC_ORDER:
        if mdc == PRE_MDC:
            continue
        if mdc != TRAUMA_MDC and mdc not in tables.mdc_diagnoses:
            problems.append(f"{mdc}: no principal diagnosis list")
        if mdc not in tables.mdc_adrgs:
            problems.append(f"{mdc}: no ADRG list")

    for region in TRAUMA_REGIONS:
        if region not in tables.trauma_regions:
            problems.append(f"{TRAUMA_MDC}: no diagnosis list for region {region}")

    referenced = {adrg: PRE_MDC for adrg in PRE_MDC_ADRGS}
    for mdc in sorted(tables.mdc_adrgs):
        for adrg in sorted(tables.mdc_adrgs[mdc]):
            referenced.setdefault(adrg, mdc)

    for adrg, mdc in referenced.items():
        info = tables.adrg_info.get(adrg)
        if info is None:
            problems.append(f"{adrg} (in {mdc}): no type entry")
            continue
        for kind in MODE_TABLES[info.mode]:
            if TableKey(adrg, kind) not in tables.adrg_codes:
                problems.append(
                    f"{adrg} ({info.mode.value}): no {kind.value} code list"
                )
        if (info.mode == GroupingMode.EXCLUDE_WB1_OPT
                and TableKey(WB1_ADRG, TableKind.PROCEDURE) not in tables.adrg_codes):
            problems.append(f"{adrg} ({info.mode.value}): no {WB1_ADRG} opt code list")
        if info.mode == GroupingMode.ANY_DIS:
            for band in BIRTH_WEIGHT_ADRGS:
                if band not in tables.adrg_info:
                    problems.append(f"{adrg} ({info.mode.value}): no type entry for {band}")

    return problems


def validate_tables(tables: ReferenceTables) -> ReferenceTables:
    """Raise ConfigurationError unless the scheme is complete."""
    problems = find_problems(tables)
    if problems:
        raise ConfigurationError(
            f"Grouping scheme has {len(problems)} problem(s)", problems
        )
    return tables
