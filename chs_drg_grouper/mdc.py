"""MDC selection.

MDCs are tried in a fixed priority order. The first MDC that admits the
case and has an ADRG accepting it decides the grouping; later MDCs are
never tried.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .adrg import match_adrg
from .data.models import DrgCase, Sex
from .data.tables import MDC_ORDER, PRE_MDC, TRAUMA_MDC, TRAUMA_REGIONS, ReferenceTables

logger = logging.getLogger(__name__)

# Neonate age limit in years. 29 // 365 truncates to 0, so only cases
# recorded with age 0 qualify.
NEONATE_AGE_LIMIT = float(29 // 365)
NEONATE_MDC = "MDCP"

# MDCs restricted to one sex.
SEX_MDCS = {"MDCM": Sex.MALE, "MDCN": Sex.FEMALE}


def admits_pre_mdc(case: DrgCase, tables: ReferenceTables) -> bool:
    return case.has_procedure


def admits_neonate(case: DrgCase, tables: ReferenceTables) -> bool:
    return (case.age <= NEONATE_AGE_LIMIT
            and case.principal_dx in tables.principal_diagnoses(NEONATE_MDC))


def admits_multiple_trauma(case: DrgCase, tables: ReferenceTables) -> bool:
    """
    Multiple trauma needs at least one secondary diagnosis and a diagnosis
    in at least one body region.
    """
    if not case.has_secondary_dx:
        return False
    return any(
        not tables.trauma_regions[region].isdisjoint(case.all_dx)
        for region in TRAUMA_REGIONS
    )


def _admits_by_sex(mdc: str, sex: Sex):
    def admits(case: DrgCase, tables: ReferenceTables) -> bool:
        return case.sex == sex and case.principal_dx in tables.principal_diagnoses(mdc)
    return admits


def _admits_by_principal_dx(mdc: str):
    def admits(case: DrgCase, tables: ReferenceTables) -> bool:
        return case.principal_dx in tables.principal_diagnoses(mdc)
    return admits


@dataclass(frozen=True)
class MDCRule:
    """One step of the MDC cascade."""
    mdc: str
    admits: Callable[[DrgCase, ReferenceTables], bool]


def _build_cascade() -> list[MDCRule]:
    special = {
        PRE_MDC: admits_pre_mdc,
        NEONATE_MDC: admits_neonate,
        TRAUMA_MDC: admits_multiple_trauma,
    }
    cascade = []
    for mdc in MDC_ORDER:
        if mdc in special:
            admits = special[mdc]
        elif mdc in SEX_MDCS:
            admits = _admits_by_sex(mdc, SEX_MDCS[mdc])
        else:
            admits = _admits_by_principal_dx(mdc)
        cascade.append(MDCRule(mdc, admits))
    return cascade


MDC_CASCADE = _build_cascade()


def admitting_mdcs(case: DrgCase, tables: ReferenceTables) -> list[str]:
    """All MDCs whose entry condition the case meets, in priority order."""
    return [rule.mdc for rule in MDC_CASCADE if rule.admits(case, tables)]


def find_adrg(case: DrgCase, tables: ReferenceTables) -> tuple[Optional[str], Optional[str]]:
    """
    Find the ADRG and MDC of a case.

    Returns:
        (adrg, mdc), or (None, None) when no MDC yields an ADRG
    """
    for rule in MDC_CASCADE:
        if not rule.admits(case, tables):
            continue

        for adrg in tables.candidate_adrgs(rule.mdc):
            matched = match_adrg(case, tables, adrg)
            if matched is not None:
                logger.debug("Case %s: %s via %s", case.case_id, matched, rule.mdc)
                return matched, rule.mdc

        logger.debug("Case %s: admitted to %s but no ADRG matched",
                     case.case_id, rule.mdc)

    return None, None
