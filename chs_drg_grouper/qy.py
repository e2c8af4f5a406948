"""QY reclassification.

A case that lands in a medical ADRG although a significant procedure was
performed is moved to the QY group of its MDC.
"""

from typing import Optional

from .data.models import DrgCase
from .data.tables import ReferenceTables

# ADRGs that already cover every procedure; they never become QY.
QY_EXEMPT_ADRGS = frozenset({"YC1", "SB1", "XJ1", "TB1"})

# MDCS, MDCT, MDCX and MDCY have no QY group.
QY_GROUPS = {
    "MDCA": "AQY",
    "MDCB": "BQY",
    "MDCC": "CQY",
    "MDCD": "SQY",
    "MDCE": "EQY",
    "MDCF": "FQY",
    "MDCG": "GQY",
    "MDCH": "HQY",
    "MDCI": "IQY",
    "MDCJ": "JQY",
    "MDCK": "KQY",
    "MDCL": "LQY",
    "MDCM": "MQY",
    "MDCN": "NQY",
    "MDCO": "OQY",
    "MDCP": "PQY",
    "MDCQ": "QQY",
    "MDCR": "RQY",
    "MDCU": "UQY",
    "MDCV": "VQY",
    "MDCW": "WQY",
    "MDCZ": "ZQY",
}


def needs_qy(case: DrgCase, adrg: str, tables: ReferenceTables) -> bool:
    """True when a medical ADRG was reached by a case with a significant procedure."""
    if adrg in QY_EXEMPT_ADRGS or not case.has_procedure:
        return False
    return (tables.info(adrg).is_medical
            and not tables.all_procedures.isdisjoint(case.all_procs))


def reclassify_qy(
    case: DrgCase,
    adrg: Optional[str],
    mdc: Optional[str],
    tables: ReferenceTables
) -> tuple[Optional[str], Optional[str]]:
    """
    Move a case to its MDC's QY group when needed.

    Returns the (adrg, mdc) pair, unchanged unless the case is a QY case
    of an MDC that has a QY group.
    """
    if adrg is None or mdc is None:
        return adrg, mdc
    if needs_qy(case, adrg, tables):
        return QY_GROUPS.get(mdc, adrg), mdc
    return adrg, mdc
