"""ADRG entry rules.

Every ADRG of the scheme names one grouping mode. Each mode is a rule
``rule(case, tables, adrg) -> str | None`` that returns the ADRG the case
enters, or None when the case does not meet the rule.
"""

from typing import Callable, Optional

from .data.models import DrgCase, GroupingMode, TableKind
from .data.tables import BIRTH_WEIGHT_ADRGS, WB1_ADRG, ReferenceTables

ADRGRule = Callable[[DrgCase, ReferenceTables, str], Optional[str]]

ADRG_RULES: dict[GroupingMode, ADRGRule] = {}

# Birth weight bands in grams: (ADRG, lower bound, upper bound).
PS1, PS2, PS3, PS4 = BIRTH_WEIGHT_ADRGS
BIRTH_WEIGHT_BANDS = (
    (PS1, None, 1500),
    (PS2, 1500, 1999),
    (PS3, 1999, 2499),
)
BIRTH_WEIGHT_DEFAULT = PS4


def adrg_rule(mode: GroupingMode):
    """Register a rule for a grouping mode."""
    def register(func: ADRGRule) -> ADRGRule:
        ADRG_RULES[mode] = func
        return func
    return register


def _hits(codes: frozenset[str], case_codes: frozenset[str]) -> bool:
    return not codes.isdisjoint(case_codes)


@adrg_rule(GroupingMode.COMMON_OPT)
def principal_procedure_rule(case, tables, adrg):
    """Principal procedure is on the ADRG procedure list."""
    if not case.has_procedure:
        return None
    if case.principal_proc in tables.codes(adrg, TableKind.PROCEDURE):
        return adrg
    return None


@adrg_rule(GroupingMode.COMMON_DIS)
def principal_diagnosis_rule(case, tables, adrg):
    """Principal diagnosis is on the ADRG diagnosis list."""
    if case.principal_dx in tables.codes(adrg, TableKind.DIAGNOSIS):
        return adrg
    return None


@adrg_rule(GroupingMode.BOTH_OPT)
def two_procedure_lists_rule(case, tables, adrg):
    """Procedures hit both procedure list 1 and procedure list 2."""
    if not case.has_secondary_procs:
        return None
    if (_hits(tables.codes(adrg, TableKind.PROCEDURE_1), case.all_procs)
            and _hits(tables.codes(adrg, TableKind.PROCEDURE_2), case.all_procs)):
        return adrg
    return None


@adrg_rule(GroupingMode.DIS_AND_OPT)
def diagnosis_and_procedure_rule(case, tables, adrg):
    """Principal diagnosis and principal procedure are both listed."""
    if not case.has_procedure:
        return None
    if (case.principal_dx in tables.codes(adrg, TableKind.DIAGNOSIS)
            and case.principal_proc in tables.codes(adrg, TableKind.PROCEDURE)):
        return adrg
    return None


@adrg_rule(GroupingMode.MAIN_DIS_AND_ANY_OPT)
def diagnosis_and_two_procedures_rule(case, tables, adrg):
    """Principal diagnosis listed, procedures hit lists 1 and 2."""
    if not case.has_procedure or not case.has_secondary_procs:
        return None
    if (case.principal_dx in tables.codes(adrg, TableKind.DIAGNOSIS)
            and _hits(tables.codes(adrg, TableKind.PROCEDURE_1), case.all_procs)
            and _hits(tables.codes(adrg, TableKind.PROCEDURE_2), case.all_procs)):
        return adrg
    return None


@adrg_rule(GroupingMode.MAIN_DIS_AND_MULTI_OPT)
def diagnosis_and_procedure_combination_rule(case, tables, adrg):
    """Principal diagnosis listed and lists 1+2 or lists 1+3+4 hit."""
    if not case.has_secondary_procs:
        return None
    if case.principal_dx not in tables.codes(adrg, TableKind.DIAGNOSIS):
        return None

    procs = case.all_procs
    if not _hits(tables.codes(adrg, TableKind.PROCEDURE_1), procs):
        return None
    if _hits(tables.codes(adrg, TableKind.PROCEDURE_2), procs):
        return adrg
    if (_hits(tables.codes(adrg, TableKind.PROCEDURE_3), procs)
            and _hits(tables.codes(adrg, TableKind.PROCEDURE_4), procs)):
        return adrg
    return None


@adrg_rule(GroupingMode.MAIN_DIS_AND_MULTI_OPT2)
def diagnosis_and_procedure_exclusion_rule(case, tables, adrg):
    """Principal diagnosis listed and list 1 hit, or lists 2 and 3 both missed.

    The second branch tests for disjointness, not intersection.
    """
    if case.principal_dx not in tables.codes(adrg, TableKind.DIAGNOSIS):
        return None

    procs = case.all_procs
    if _hits(tables.codes(adrg, TableKind.PROCEDURE_1), procs):
        return adrg
    if (not _hits(tables.codes(adrg, TableKind.PROCEDURE_2), procs)
            and not _hits(tables.codes(adrg, TableKind.PROCEDURE_3), procs)):
        return adrg
    return None


@adrg_rule(GroupingMode.ANY_DIS)
def any_diagnosis_rule(case, tables, adrg):
    """
    Any diagnosis is on the ADRG diagnosis list.

    Only used by the neonatal PS1-PS4 ADRGs. A matching case is placed by
    birth weight: it keeps the invoking ADRG when that ADRG's weight band
    holds the case, otherwise it falls into PS4. Cases without a recorded
    weight always fall into PS4.
    """
    if not _hits(tables.codes(adrg, TableKind.DIAGNOSIS), case.all_dx):
        return None

    weight = case.weight
    if weight is not None:
        for band, low, high in BIRTH_WEIGHT_BANDS:
            if adrg == band and (low is None or weight >= low) and weight < high:
                return band
    return BIRTH_WEIGHT_DEFAULT


@adrg_rule(GroupingMode.ALL_OPT)
def any_procedure_rule(case, tables, adrg):
    """At least one procedure is a significant procedure."""
    if not case.has_procedure:
        return None
    if _hits(tables.all_procedures, case.all_procs):
        return adrg
    return None


@adrg_rule(GroupingMode.NO_OPT)
def no_procedure_rule(case, tables, adrg):
    """No procedure at all, or none of them is significant."""
    if not case.has_procedure:
        return adrg
    if _hits(tables.all_procedures, case.all_procs):
        return None
    return adrg


@adrg_rule(GroupingMode.EXCLUDE_WB1_OPT)
def wb1_procedure_rule(case, tables, adrg):
    # Reads WB1's procedure list whatever ADRG is being tested.
    if not case.has_procedure:
        return None
    if _hits(tables.codes(WB1_ADRG, TableKind.PROCEDURE), case.all_procs):
        return adrg
    return None


def match_adrg(case: DrgCase, tables: ReferenceTables, adrg: str) -> Optional[str]:
    """Apply the rule of ``adrg``'s grouping mode to a case."""
    rule = ADRG_RULES[tables.info(adrg).mode]
    return rule(case, tables, adrg)
