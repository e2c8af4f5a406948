"""Data models for the CHS-DRG grouper."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional

from ..errors import CaseValidationError

# Output code for a case that no ADRG accepts.
UNGROUPABLE = "KBBZ"


class Sex(Enum):
    """Patient sex as recorded on the settlement sheet."""
    FEMALE = 0
    MALE = 1


class ADRGType(Enum):
    """Ward type of an ADRG - medical or surgical."""
    MEDICAL = "medical"
    SURGICAL = "surgical"


class ComplicationSplit(Enum):
    """How an ADRG is split into DRGs by complication severity."""
    UNSPLIT = "unsplit"      # always 9
    MERGE_1_3 = "merge-1-3"  # CC and MCC share 3
    MERGE_3_5 = "merge-3-5"  # CC shares 5 with no complication
    STANDARD = "standard"    # 1 / 3 / 5


class GroupingMode(Enum):
    """Rule used to decide whether a case enters an ADRG."""
    COMMON_OPT = "common_opt"
    COMMON_DIS = "common_dis"
    BOTH_OPT = "both_opt"
    DIS_AND_OPT = "dis_and_opt"
    MAIN_DIS_AND_ANY_OPT = "main_dis_and_any_opt"
    MAIN_DIS_AND_MULTI_OPT = "main_dis_and_multi_opt"
    MAIN_DIS_AND_MULTI_OPT2 = "main_dis_and_multi_opt2"
    ANY_DIS = "any_dis"
    ALL_OPT = "all_opt"
    NO_OPT = "no_opt"
    EXCLUDE_WB1_OPT = "exclude_wb1_opt"


class TableKind(Enum):
    """Which code list of an ADRG a lookup refers to."""
    DIAGNOSIS = "dis"
    PROCEDURE = "opt"
    PROCEDURE_1 = "opt1"
    PROCEDURE_2 = "opt2"
    PROCEDURE_3 = "opt3"
    PROCEDURE_4 = "opt4"


class CCLevel(Enum):
    """Complication/Comorbidity severity level."""
    NONE = "None"
    CC = "CC"
    MCC = "MCC"


class TableKey(NamedTuple):
    """Key of one ADRG code list, e.g. ``TableKey("AA1", TableKind.PROCEDURE)``."""
    adrg: str
    kind: TableKind


def normalize_code(code: str) -> str:
    """Uppercase an ICD code, keeping the lowercase ``x`` extension marker.

    >>> normalize_code(' "j20.900" ')
    'J20.900'
    >>> normalize_code("93.3500x004")
    '93.3500x004'
    """
    code = code.strip().strip('"').strip()
    return "".join(c if c == "x" else c.upper() for c in code)


def _normalize_codes(codes) -> tuple[str, ...]:
    normalized = (normalize_code(code) for code in codes or ())
    return tuple(code for code in normalized if code)


def is_qy_group(adrg: str) -> bool:
    """True for the QY pseudo-groups (``AQY``, ``EQY``, ...)."""
    return adrg[1:3] == "QY"


@dataclass(frozen=True)
class DrgCase:
    """A single case to be grouped.

    Codes are normalized on construction and the case is immutable
    afterwards. ``all_dx`` and ``all_procs`` are derived sets; ``all_procs``
    stays empty when there is no principal procedure.
    """
    principal_dx: str
    sex: Sex
    age: float  # years; days / 365 below one year
    principal_proc: str = ""
    secondary_dx: tuple[str, ...] = ()
    secondary_procs: tuple[str, ...] = ()
    weight: Optional[int] = None  # grams
    case_id: str = ""
    all_dx: frozenset[str] = field(init=False, repr=False)
    all_procs: frozenset[str] = field(init=False, repr=False)

    def __post_init__(self):
        label = f"Case {self.case_id or '<no id>'}"
        pdx = normalize_code(self.principal_dx or "")
        if not pdx:
            raise CaseValidationError(f"{label}: principal diagnosis is required")

        try:
            age = float(self.age)
        except (TypeError, ValueError):
            raise CaseValidationError(f"{label}: invalid age {self.age!r}") from None
        if not math.isfinite(age) or age < 0:
            raise CaseValidationError(f"{label}: invalid age {self.age!r}")

        weight = self.weight
        if weight is not None:
            try:
                weight = int(float(weight))
            except (TypeError, ValueError, OverflowError):
                raise CaseValidationError(f"{label}: invalid weight {self.weight!r}") from None

        try:
            sex = Sex(self.sex)
        except ValueError:
            raise CaseValidationError(f"{label}: invalid sex {self.sex!r}") from None

        pproc = normalize_code(self.principal_proc or "")
        secondary_dx = _normalize_codes(self.secondary_dx)
        secondary_procs = _normalize_codes(self.secondary_procs)

        set_ = object.__setattr__
        set_(self, "principal_dx", pdx)
        set_(self, "principal_proc", pproc)
        set_(self, "secondary_dx", secondary_dx)
        set_(self, "secondary_procs", secondary_procs)
        set_(self, "sex", sex)
        set_(self, "age", age)
        set_(self, "weight", weight)
        set_(self, "all_dx", frozenset((pdx, *secondary_dx)))
        set_(self, "all_procs",
             frozenset((pproc, *secondary_procs)) if pproc else frozenset())

    @property
    def has_procedure(self) -> bool:
        return self.principal_proc != ""

    @property
    def has_secondary_procs(self) -> bool:
        return len(self.secondary_procs) > 0

    @property
    def has_secondary_dx(self) -> bool:
        return len(self.secondary_dx) > 0


@dataclass(frozen=True)
class ADRGInfo:
    """Grouping metadata of a single ADRG."""
    adrg: str
    adrg_type: ADRGType
    split: ComplicationSplit
    mode: GroupingMode

    @property
    def is_medical(self) -> bool:
        return self.adrg_type == ADRGType.MEDICAL


@dataclass(frozen=True)
class CCMCCInfo:
    """CC/MCC entry for a secondary diagnosis."""
    code: str
    level: CCLevel
    exclusion_category: str  # NO_EXCLUSION when the entry is never excluded


@dataclass
class GroupingResult:
    """Result of grouping one case."""
    adrg: Optional[str]
    mdc: Optional[str]
    severity: Optional[str] = None  # trailing digit, None for QY / ungrouped
    mcc_dx: Optional[str] = None    # first diagnosis counted as MCC
    cc_dx: Optional[str] = None     # first diagnosis counted as CC
    grouping_notes: list[str] = field(default_factory=list)

    @property
    def drg(self) -> str:
        if self.adrg is None:
            return UNGROUPABLE
        return self.adrg + (self.severity or "")

    @property
    def is_grouped(self) -> bool:
        return self.adrg is not None

    @property
    def is_qy(self) -> bool:
        return self.adrg is not None and is_qy_group(self.adrg)


@dataclass
class BatchResult:
    """Outcome of one row of a batch; exactly one of result / error is set."""
    index: int
    case_id: str
    result: Optional[GroupingResult] = None
    error: Optional[str] = None

    @property
    def drg(self) -> Optional[str]:
        return self.result.drg if self.result else None
