"""CC/MCC severity grading.

The last character of a DRG code grades the complications recorded as
secondary diagnoses:

    1  with MCC
    3  with CC (or with CC/MCC when they are merged)
    5  without CC/MCC
    9  ADRG not split by severity
"""

from typing import Optional

from .data.models import CCLevel, ComplicationSplit, DrgCase
from .data.tables import NO_EXCLUSION, ReferenceTables


def find_complications(case: DrgCase, tables: ReferenceTables) -> list[tuple[str, CCLevel]]:
    """
    Collect the CC/MCC secondary diagnoses that count for a case.

    A CC/MCC is dropped when its exclusion category equals the category
    the principal diagnosis excludes.
    """
    excluded_category = tables.exclusions.get(case.principal_dx, "")
    complications = []

    for dx in case.secondary_dx:
        info = tables.cc_mcc.get(dx)
        if info is None or info.level == CCLevel.NONE:
            continue
        if info.exclusion_category != NO_EXCLUSION and info.exclusion_category == excluded_category:
            continue
        complications.append((dx, info.level))

    return complications


def severity_digit(
    split: ComplicationSplit,
    has_secondary_dx: bool,
    levels: list[CCLevel]
) -> str:
    """Turn the counted complication levels into the trailing DRG digit."""
    if split == ComplicationSplit.UNSPLIT:
        return "9"
    if not has_secondary_dx:
        return "5"

    has_mcc = CCLevel.MCC in levels
    if split == ComplicationSplit.MERGE_1_3:
        return "3" if levels else "5"
    if split == ComplicationSplit.MERGE_3_5:
        return "1" if has_mcc else "5"
    if has_mcc:
        return "1"
    return "3" if levels else "5"


def grade_severity(
    case: DrgCase,
    adrg: str,
    tables: ReferenceTables
) -> tuple[str, Optional[str], Optional[str]]:
    """
    Grade a grouped case.

    Returns:
        (digit, mcc_dx, cc_dx) where mcc_dx / cc_dx are the first
        diagnoses counted at each level, or None
    """
    split = tables.info(adrg).split
    if split == ComplicationSplit.UNSPLIT:
        return "9", None, None

    complications = find_complications(case, tables)
    mcc_dx = next((dx for dx, level in complications if level == CCLevel.MCC), None)
    cc_dx = next((dx for dx, level in complications if level == CCLevel.CC), None)

    digit = severity_digit(
        split, case.has_secondary_dx, [level for _, level in complications]
    )
    return digit, mcc_dx, cc_dx
