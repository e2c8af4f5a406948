"""Main CHS-DRG Grouper Engine."""

from pathlib import Path

from .data.models import DrgCase, GroupingResult, is_qy_group
from .data.tables import ReferenceTables
from .mdc import admitting_mdcs, find_adrg
from .parser.scheme import load_scheme
from .qy import reclassify_qy
from .severity import grade_severity


def group_case(case: DrgCase, tables: ReferenceTables) -> GroupingResult:
    """
    Assign a CHS-DRG to a case.

    Runs MDC/ADRG selection, QY reclassification and severity grading.
    Neither the case nor the tables are modified.

    Args:
        case: Case with normalized diagnosis and procedure codes
        tables: Validated reference tables

    Returns:
        GroupingResult; ``result.drg`` is the output code
    """
    notes = []

    # Step 1: MDC and ADRG
    adrg, mdc = find_adrg(case, tables)
    if adrg is None:
        admitted = admitting_mdcs(case, tables)
        if admitted:
            note = f"Admitted to {', '.join(admitted)} but no ADRG matched"
        else:
            note = f"No MDC accepts PDX {case.principal_dx}"
        return GroupingResult(adrg=None, mdc=None, grouping_notes=[note])
    notes.append(f"{mdc} -> {adrg}")

    # Step 2: medical ADRG with a significant procedure
    qy_adrg, mdc = reclassify_qy(case, adrg, mdc, tables)
    if qy_adrg != adrg:
        notes.append(f"{adrg} is medical but procedures were performed: {qy_adrg}")
        adrg = qy_adrg

    if is_qy_group(adrg):
        return GroupingResult(adrg=adrg, mdc=mdc, grouping_notes=notes)

    # Step 3: CC/MCC
    digit, mcc_dx, cc_dx = grade_severity(case, adrg, tables)
    if mcc_dx:
        notes.append(f"MCC from {mcc_dx}")
    elif cc_dx:
        notes.append(f"CC from {cc_dx}")

    return GroupingResult(
        adrg=adrg,
        mdc=mdc,
        severity=digit,
        mcc_dx=mcc_dx,
        cc_dx=cc_dx,
        grouping_notes=notes
    )


def assign_drg(case: DrgCase, tables: ReferenceTables) -> str:
    """Return just the DRG code of a case."""
    return group_case(case, tables).drg


class DRGGrouper:
    """CHS-DRG Grouper - assigns DRGs to cases."""

    def __init__(self, tables: ReferenceTables):
        self.tables = tables

    def group(self, case: DrgCase) -> GroupingResult:
        return group_case(case, self.tables)


def create_grouper(data_dir: str | Path) -> DRGGrouper:
    """Load and validate the grouping scheme in ``data_dir``."""
    return DRGGrouper(load_scheme(Path(data_dir)))
