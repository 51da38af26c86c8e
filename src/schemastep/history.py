"""
History Repair

A reconciling run applies migrations that were missed earlier, so their
history rows get higher ids than newer versions that were applied before
them. This module rewrites the history so id order and version order agree
again. Row ids stay fixed; only the (version_id, is_applied, tstamp)
payloads move between rows. The set of applied versions does not change.
"""

import logging

from .connection import DatabaseConnection
from .dialect import SQLDialect
from .exceptions import HistoryRepairFailed
from .state import MigrationRecord

logger = logging.getLogger(__name__)

Payload = tuple[int, bool, str | None]


def _sorted_payloads(payloads: list[Payload]) -> list[Payload]:
    """Swap adjacent payloads until versions ascend; equal versions keep their order."""
    result = list(payloads)
    swapped = True
    while swapped:
        swapped = False
        for i in range(1, len(result)):
            if result[i - 1][0] > result[i][0]:
                result[i - 1], result[i] = result[i], result[i - 1]
                swapped = True
    return result


def repair_history(db: DatabaseConnection, dialect: SQLDialect) -> int:
    """
    Reorder history payloads so ascending ids carry ascending versions.

    Returns:
        Number of rows rewritten

    Raises:
        HistoryRepairFailed: If reading or rewriting the history fails; the
            rewrite is rolled back as a whole
    """
    try:
        rows = db.fetch_all(dialect.query_history_asc_sql())
    except Exception as e:
        raise HistoryRepairFailed(f"failed to read migration history: {e}") from e

    records = [MigrationRecord.from_row(row) for row in rows]
    original = [(r.version_id, r.is_applied, r.tstamp) for r in records]
    repaired = _sorted_payloads(original)

    changes = [
        (record.id, payload)
        for record, before, payload in zip(records, original, repaired)
        if payload != before
    ]
    if not changes:
        logger.debug("Migration history already in version order")
        return 0

    try:
        with db.transaction():
            for row_id, (version_id, is_applied, tstamp) in changes:
                logger.debug(f"History row {row_id} -> version {version_id}")
                db.execute(
                    dialect.update_record_sql(),
                    (version_id, is_applied, tstamp, row_id),
                )
    except Exception as e:
        raise HistoryRepairFailed(f"failed to repair migration history: {e}") from e

    logger.info(f"Repaired migration history: {len(changes)} rows reordered")
    return len(changes)
