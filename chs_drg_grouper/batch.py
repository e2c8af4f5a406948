"""Batch grouping.

Rows are independent: a row that cannot be turned into a case is reported
on its own result and the rest of the batch carries on. Results always come
back in input order, whether grouped sequentially or on a thread pool.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Mapping

from .data.models import BatchResult, DrgCase
from .grouper import DRGGrouper
from .parser.cases import case_from_row

logger = logging.getLogger(__name__)


def _group_row(grouper: DRGGrouper, index: int, row: Mapping[str, str]) -> BatchResult:
    try:
        case = case_from_row(row)
    except ValueError as e:  # includes CaseValidationError
        logger.warning("Row %d skipped: %s", index, e)
        return BatchResult(index=index, case_id=_row_id(row), error=str(e))
    return BatchResult(index=index, case_id=case.case_id, result=grouper.group(case))


def _row_id(row: Mapping[str, str]) -> str:
    return str(row.get('case_id') or row.get('结算流水号') or '').strip()


def _run(func, items: list, max_workers: int) -> list[BatchResult]:
    if max_workers <= 1 or len(items) <= 1:
        return [func(i, item) for i, item in enumerate(items)]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(func, range(len(items)), items))


def group_rows(
    grouper: DRGGrouper,
    rows: Iterable[Mapping[str, str]],
    max_workers: int = 1
) -> list[BatchResult]:
    """
    Group every row of a case table.

    Args:
        grouper: Grouper with loaded reference tables
        rows: CSV rows (see ``parser.cases`` for the accepted layouts)
        max_workers: Threads to use; 1 groups sequentially

    Returns:
        One BatchResult per row, in row order
    """
    rows = list(rows)
    results = _run(lambda i, row: _group_row(grouper, i, row), rows, max_workers)

    failed = sum(1 for r in results if r.error)
    logger.info("Grouped %d rows (%d failed)", len(results) - failed, failed)
    return results


def group_cases(
    grouper: DRGGrouper,
    cases: Iterable[DrgCase],
    max_workers: int = 1
) -> list[BatchResult]:
    """Group already-built cases, keeping input order."""
    def group_one(index: int, case: DrgCase) -> BatchResult:
        return BatchResult(index=index, case_id=case.case_id, result=grouper.group(case))

    return _run(group_one, list(cases), max_workers)
