"""Tests for migration collection and the function registry."""

import pytest

from helpers import create_table_migration, write_sql_migration
from schemastep.collector import collect_all_migrations, collect_migrations, list_files
from schemastep.config import MAX_VERSION
from schemastep.exceptions import (
    DirectoryNotFound,
    DuplicateVersionError,
    InvalidMigrationName,
    MigrationError,
)
from schemastep.migration import MigrationKind
from schemastep.registry import FunctionRegistry


def noop(tx):
    pass


class TestFunctionRegistry:
    """Test explicit registration of Python migrations."""

    def test_register_named(self):
        registry = FunctionRegistry()
        version = registry.register_named("00004_backfill.py", up=noop, down=noop)

        assert version == 4
        assert 4 in registry
        assert registry.get(4).up is noop
        assert len(registry) == 1

    def test_duplicate_registration_is_fatal(self):
        registry = FunctionRegistry()
        registry.register_named("00004_backfill.py", up=noop)

        with pytest.raises(DuplicateVersionError) as exc_info:
            registry.register_named("00004_other.py", up=noop)

        assert exc_info.value.sources == ("00004_backfill.py", "00004_other.py")
        assert not isinstance(exc_info.value, MigrationError)

    def test_invalid_name_rejected(self):
        registry = FunctionRegistry()
        with pytest.raises(InvalidMigrationName):
            registry.register_named("backfill.py", up=noop)

    def test_iteration_is_sorted(self):
        registry = FunctionRegistry()
        registry.register_named("3_c.py", up=noop)
        registry.register_named("1_a.py", up=noop)
        registry.register_named("2_b.py", up=noop)

        assert [r.version for r in registry] == [1, 2, 3]

    def test_load_directory(self, migrations_dir):
        (migrations_dir / "00002_seed.py").write_text(
            "def up(tx):\n"
            "    tx.execute('CREATE TABLE seeded (id INTEGER)')\n"
            "\n"
            "def down(tx):\n"
            "    tx.execute('DROP TABLE seeded')\n"
        )
        (migrations_dir / "helpers.py").write_text("VALUE = 1\n")
        (migrations_dir / "00003_constants.py").write_text("VALUE = 1\n")

        registry = FunctionRegistry()
        loaded = registry.load_directory(migrations_dir)

        assert loaded == [2]
        assert callable(registry.get(2).up)
        assert callable(registry.get(2).down)
        assert 3 not in registry

    def test_load_directory_keeps_existing_registration(self, migrations_dir):
        (migrations_dir / "00002_seed.py").write_text("def up(tx):\n    pass\n")

        registry = FunctionRegistry()
        registry.register_named("00002_seed.py", up=noop)
        assert registry.load_directory(migrations_dir) == []
        assert registry.get(2).up is noop

    def test_load_directory_import_failure(self, migrations_dir):
        (migrations_dir / "00002_broken.py").write_text("def up(tx):\n    return (\n")

        with pytest.raises(MigrationError):
            FunctionRegistry().load_directory(migrations_dir)


class TestCollectMigrations:
    """Test collect_migrations."""

    def test_missing_directory(self, tmp_path):
        with pytest.raises(DirectoryNotFound):
            collect_migrations(tmp_path / "nope", 0, MAX_VERSION)

    def test_sql_files_collected_in_order(self, migrations_dir):
        for version in (3, 1, 2):
            create_table_migration(migrations_dir, version, f"t{version}")

        migrations = collect_migrations(migrations_dir, 0, MAX_VERSION)

        assert migrations.versions() == [1, 2, 3]
        assert all(m.kind is MigrationKind.SCRIPT for m in migrations)

    def test_bad_sql_name_aborts(self, migrations_dir):
        create_table_migration(migrations_dir, 1, "t1")
        write_sql_migration(migrations_dir, "create_users.sql", up="SELECT 1;")

        with pytest.raises(InvalidMigrationName):
            collect_migrations(migrations_dir, 0, MAX_VERSION)

    def test_bad_python_name_skipped(self, migrations_dir):
        create_table_migration(migrations_dir, 1, "t1")
        (migrations_dir / "utils.py").write_text("X = 1\n")

        assert collect_migrations(migrations_dir, 0, MAX_VERSION).versions() == [1]

    def test_filter_bounds(self, migrations_dir):
        for version in (1, 2, 3, 4):
            create_table_migration(migrations_dir, version, f"t{version}")

        assert collect_migrations(migrations_dir, 1, 3).versions() == [2, 3]
        assert collect_migrations(migrations_dir, 3, 1).versions() == [2, 3]
        assert collect_migrations(migrations_dir, 2, 2).versions() == []

    def test_registered_functions_included(self, migrations_dir):
        create_table_migration(migrations_dir, 1, "t1")
        registry = FunctionRegistry()
        registry.register_named("00002_backfill.py", up=noop)

        migrations = collect_migrations(migrations_dir, 0, MAX_VERSION, registry)

        assert migrations.versions() == [1, 2]
        assert migrations.current(2).kind is MigrationKind.FUNCTION
        assert migrations.current(2).action.registered

    def test_registration_takes_precedence_over_file(self, migrations_dir):
        (migrations_dir / "00002_backfill.py").write_text("def up(tx):\n    pass\n")
        registry = FunctionRegistry()
        registry.register_named(str(migrations_dir / "00002_backfill.py"), up=noop)

        migrations = collect_migrations(migrations_dir, 0, MAX_VERSION, registry)

        assert migrations.versions() == [2]
        assert migrations.current(2).action.registered

    def test_unregistered_python_file_collected(self, migrations_dir):
        (migrations_dir / "00002_backfill.py").write_text("def up(tx):\n    pass\n")

        migrations = collect_migrations(migrations_dir, 0, MAX_VERSION)

        assert migrations.versions() == [2]
        assert not migrations.current(2).action.registered

    def test_duplicate_sql_versions_are_fatal(self, migrations_dir):
        create_table_migration(migrations_dir, 1, "users")
        write_sql_migration(migrations_dir, "00001_other.sql", up="SELECT 1;")

        with pytest.raises(DuplicateVersionError):
            collect_migrations(migrations_dir, 0, MAX_VERSION)

    def test_duplicate_between_sql_and_registered_function(self, migrations_dir):
        create_table_migration(migrations_dir, 1, "users")
        registry = FunctionRegistry()
        registry.register_named("00001_backfill.py", up=noop)

        with pytest.raises(DuplicateVersionError):
            collect_migrations(migrations_dir, 0, MAX_VERSION, registry)

    def test_each_collection_builds_fresh_links(self, migrations_dir):
        registry = FunctionRegistry()
        registry.register_named("00002_backfill.py", up=noop)
        create_table_migration(migrations_dir, 1, "t1")

        full = collect_migrations(migrations_dir, 0, MAX_VERSION, registry)
        partial = collect_migrations(migrations_dir, 1, MAX_VERSION, registry)

        assert full.current(2).previous == 1
        assert partial.current(2).previous is None

    def test_list_files_sorted(self, migrations_dir):
        for version in (10, 2, 1):
            create_table_migration(migrations_dir, version, f"t{version}")

        names = [p.name for p in list_files(migrations_dir, ".sql")]
        assert names == sorted(names)


class TestCollectAllMigrations:
    """Test the reconciling collection."""

    def test_applied_first_then_unapplied(self, migrations_dir):
        for version in (1, 2, 3):
            create_table_migration(migrations_dir, version, f"t{version}")

        migrations = collect_all_migrations(
            migrations_dir, {0: True, 1: True, 3: True}, 0, MAX_VERSION
        )

        assert migrations.versions() == [1, 3, 2]

    def test_applied_outside_forward_range_excluded(self, migrations_dir):
        for version in (1, 2, 3):
            create_table_migration(migrations_dir, version, f"t{version}")

        migrations = collect_all_migrations(migrations_dir, {1: True, 3: True}, 1, MAX_VERSION)

        assert migrations.versions() == [3, 2]

    def test_never_walks_backward(self, migrations_dir):
        for version in (1, 2, 3):
            create_table_migration(migrations_dir, version, f"t{version}")

        migrations = collect_all_migrations(migrations_dir, {1: True, 3: True}, 3, 1)

        assert migrations.versions() == [2]
