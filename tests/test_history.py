"""Tests for the history repair."""

import pytest

from helpers import history_rows
from schemastep.exceptions import HistoryRepairFailed
from schemastep.history import repair_history
from schemastep.state import applied_db_versions, ensure_db_version


def seed(db, dialect, *versions):
    db.execute(dialect.create_version_table_sql())
    for version in versions:
        db.execute(dialect.insert_version_sql(), (version, True))


class TestRepairHistory:
    """Test repair_history."""

    def test_swaps_adjacent_pair(self, db, dialect):
        seed(db, dialect, 3, 1)

        assert repair_history(db, dialect) == 2
        assert history_rows(db, dialect) == [(1, 1, True), (2, 3, True)]

    def test_ids_stay_fixed_and_applied_set_unchanged(self, db, dialect):
        seed(db, dialect, 0, 1, 4, 2, 3)
        ids_before = [row[0] for row in history_rows(db, dialect)]
        applied_before = applied_db_versions(db, dialect)

        repair_history(db, dialect)

        rows = history_rows(db, dialect)
        assert [row[0] for row in rows] == ids_before
        assert [row[1] for row in rows] == [0, 1, 2, 3, 4]
        assert applied_db_versions(db, dialect) == applied_before

    def test_current_version_becomes_highest_applied(self, db, dialect):
        seed(db, dialect, 0, 1, 3, 2)
        assert ensure_db_version(db, dialect) == 2

        repair_history(db, dialect)

        assert ensure_db_version(db, dialect) == 3

    def test_payload_moves_with_flag_and_timestamp(self, db, dialect):
        db.execute(dialect.create_version_table_sql())
        db.execute(
            f"INSERT INTO {dialect.table_name} (version_id, is_applied, tstamp) VALUES (?, ?, ?)",
            (5, True, "2024-01-02 00:00:00"),
        )
        db.execute(
            f"INSERT INTO {dialect.table_name} (version_id, is_applied, tstamp) VALUES (?, ?, ?)",
            (2, False, "2024-01-01 00:00:00"),
        )

        repair_history(db, dialect)

        rows = db.fetch_all(dialect.query_history_asc_sql())
        assert [(r["version_id"], bool(r["is_applied"]), r["tstamp"]) for r in rows] == [
            (2, False, "2024-01-01 00:00:00"),
            (5, True, "2024-01-02 00:00:00"),
        ]

    def test_ordered_history_untouched(self, db, dialect):
        seed(db, dialect, 0, 1, 2, 3)

        assert repair_history(db, dialect) == 0

    def test_missing_table(self, db, dialect):
        with pytest.raises(HistoryRepairFailed):
            repair_history(db, dialect)

    def test_write_failure_rolls_back(self, db, dialect):
        seed(db, dialect, 0, 2, 1)
        db.execute(
            f"CREATE TRIGGER block_updates BEFORE UPDATE ON {dialect.table_name} "
            f"WHEN NEW.version_id = 2 BEGIN SELECT RAISE(ABORT, 'blocked'); END"
        )

        with pytest.raises(HistoryRepairFailed):
            repair_history(db, dialect)

        assert [row[1] for row in history_rows(db, dialect)] == [0, 2, 1]
