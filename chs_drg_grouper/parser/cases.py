"""Reader and writer for case tables (CSV).

Two layouts are accepted. The compact layout has one column per field and
``;``-separated code lists:

    case_id,principal_dx,principal_proc,secondary_dx,secondary_procs,sex,age,weight
    C001,J20.900,93.3500x004,E87.102;E87.803,,1,29,2789

The wide layout is the settlement sheet export, with up to sixteen
numbered columns for other diagnoses and other procedures.
"""

import csv
import math
from pathlib import Path
from typing import Iterable, Mapping

from ..data.models import BatchResult, DrgCase, Sex
from ..errors import CaseValidationError

# Settlement sheet column names
WIDE_CASE_ID = "结算流水号"
WIDE_PRINCIPAL_DX = "主诊断编码"
WIDE_PRINCIPAL_PROC = "主手术编码"
WIDE_SECONDARY_DX = "其他诊断编码"   # followed by 1..16
WIDE_SECONDARY_PROC = "其他手术编码"  # followed by 1..16
WIDE_SEX = "性别"
WIDE_AGE = "年龄"
WIDE_WEIGHT = "体重"
WIDE_MAX_CODES = 16

RESULT_COLUMNS = ['drg', 'error']

SEX_LABELS = {
    "0": Sex.FEMALE,
    "1": Sex.MALE,
    "F": Sex.FEMALE,
    "M": Sex.MALE,
    "FEMALE": Sex.FEMALE,
    "MALE": Sex.MALE,
    "女": Sex.FEMALE,
    "男": Sex.MALE,
}


def parse_sex(value: str) -> Sex:
    """Parse ``0``/``1``, ``F``/``M`` or ``女``/``男``."""
    label = str(value).strip().upper()
    if label.endswith(".0"):
        label = label[:-2]
    try:
        return SEX_LABELS[label]
    except KeyError:
        raise CaseValidationError(f"Unknown sex {value!r}") from None


def parse_age(value: str) -> float:
    text = str(value).strip()
    if not text:
        raise CaseValidationError("Age is required")
    try:
        age = float(text)
    except ValueError:
        raise CaseValidationError(f"Invalid age {value!r}") from None
    if not math.isfinite(age):
        raise CaseValidationError(f"Invalid age {value!r}")
    return age


def parse_weight(value: str) -> int | None:
    """Weight in grams; blank means not recorded."""
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        raise CaseValidationError(f"Invalid weight {value!r}") from None


def split_codes(value: str, sep: str = ";") -> list[str]:
    """Split a code list like ``E87.102;E87.803``."""
    if not value:
        return []
    return [code.strip() for code in value.split(sep) if code.strip()]


def _cell(row: Mapping[str, str], column: str) -> str:
    value = row.get(column)
    return "" if value is None else str(value).strip()


def _numbered_codes(row: Mapping[str, str], prefix: str) -> list[str]:
    codes = []
    for i in range(1, WIDE_MAX_CODES + 1):
        value = _cell(row, f"{prefix}{i}")
        if value:
            codes.append(value)
    return codes


def is_wide_layout(columns: Iterable[str]) -> bool:
    return WIDE_PRINCIPAL_DX in columns


def case_from_row(row: Mapping[str, str]) -> DrgCase:
    """
    Build a case from one CSV row of either layout.

    Raises:
        CaseValidationError: a required field is missing or unreadable
    """
    if is_wide_layout(row.keys()):
        case_id = _cell(row, WIDE_CASE_ID)
        fields = dict(
            principal_dx=_cell(row, WIDE_PRINCIPAL_DX),
            principal_proc=_cell(row, WIDE_PRINCIPAL_PROC),
            secondary_dx=_numbered_codes(row, WIDE_SECONDARY_DX),
            secondary_procs=_numbered_codes(row, WIDE_SECONDARY_PROC),
        )
        sex, age, weight = (_cell(row, WIDE_SEX), _cell(row, WIDE_AGE),
                            _cell(row, WIDE_WEIGHT))
    else:
        case_id = _cell(row, 'case_id')
        fields = dict(
            principal_dx=_cell(row, 'principal_dx'),
            principal_proc=_cell(row, 'principal_proc'),
            secondary_dx=split_codes(_cell(row, 'secondary_dx')),
            secondary_procs=split_codes(_cell(row, 'secondary_procs')),
        )
        sex, age, weight = _cell(row, 'sex'), _cell(row, 'age'), _cell(row, 'weight')

    try:
        return DrgCase(
            case_id=case_id,
            sex=parse_sex(sex),
            age=parse_age(age),
            weight=parse_weight(weight),
            **fields
        )
    except CaseValidationError as e:
        if case_id and case_id not in str(e):
            raise CaseValidationError(f"Case {case_id}: {e}") from e
        raise


def read_case_rows(filepath: str | Path) -> tuple[list[str], list[dict[str, str]]]:
    """Read a case table; returns (column names, rows)."""
    with open(filepath, 'r', newline='', encoding='utf-8-sig') as f:
        reader = csv.DictReader(f)
        rows = list(reader)
        return list(reader.fieldnames or []), rows


def write_results(
    filepath: str | Path,
    columns: list[str],
    rows: list[dict[str, str]],
    results: list[BatchResult]
) -> None:
    """Write the input rows back out with ``drg`` and ``error`` appended."""
    fieldnames = columns + [c for c in RESULT_COLUMNS if c not in columns]
    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction='ignore')
        writer.writeheader()
        for row, result in zip(rows, results):
            out = dict(row)
            out['drg'] = result.drg or ''
            out['error'] = result.error or ''
            writer.writerow(out)
