"""
Migration Sequencer

Orders collected migrations and links each to its neighbours. Links are
stored as versions on the migrations; lookups go through a version->index
map over the ordered list.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping

from .exceptions import DuplicateVersionError, NoCurrentVersion, NoNextVersion
from .migration import Migration

logger = logging.getLogger(__name__)


class Migrations:
    """Ordered, linked sequence of migrations."""

    def __init__(self, migrations: Iterable[Migration] = ()) -> None:
        self._items: list[Migration] = list(migrations)
        self._index: dict[int, int] = {}
        for position, migration in enumerate(self._items):
            if migration.version in self._index:
                other = self._items[self._index[migration.version]]
                _raise_duplicate(other, migration)
            self._index[migration.version] = position

    def current(self, version: int) -> Migration:
        """
        Return the migration with this version.

        Raises:
            NoCurrentVersion: If no migration has this version
        """
        position = self._index.get(version)
        if position is None:
            raise NoCurrentVersion(f"no migration with version {version} in this set")
        return self._items[position]

    def next(self, current: int) -> Migration:
        """
        Return the migration that follows ``current`` in the resolved order.

        Version 0 (a freshly created history table) maps to the first
        migration.

        Raises:
            NoNextVersion: If the sequence is empty or ``current`` is last
            NoCurrentVersion: If ``current`` is not part of this set
        """
        if not self._items:
            raise NoNextVersion()
        if current == 0:
            return self._items[0]

        migration = self.current(current)
        if migration.next is None:
            raise NoNextVersion()
        return self.current(migration.next)

    def previous(self, current: int) -> Migration:
        """
        Return the migration that precedes ``current`` in the resolved order.

        Raises:
            NoNextVersion: If ``current`` is first
            NoCurrentVersion: If ``current`` is not part of this set
        """
        migration = self.current(current)
        if migration.previous is None:
            raise NoNextVersion("no previous version found")
        return self.current(migration.previous)

    def last(self) -> Migration:
        if not self._items:
            raise NoNextVersion()
        return self._items[-1]

    def versions(self) -> list[int]:
        return [m.version for m in self._items]

    def __iter__(self) -> Iterator[Migration]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, position: int) -> Migration:
        return self._items[position]

    def __contains__(self, version: object) -> bool:
        return version in self._index

    def __str__(self) -> str:
        return "".join(f"{m}\n" for m in self._items)


def _raise_duplicate(first: Migration, second: Migration) -> None:
    raise DuplicateVersionError(
        f"duplicate version {first.version} detected:\n{first.source}\n{second.source}",
        version=first.version,
        sources=(first.source, second.source),
    )


def _sorted_unique(migrations: Iterable[Migration]) -> list[Migration]:
    ordered = sorted(migrations, key=lambda m: m.version)
    for earlier, later in zip(ordered, ordered[1:]):
        if earlier.version == later.version:
            _raise_duplicate(earlier, later)
    return ordered


def _link(chain: list[Migration]) -> None:
    for i, migration in enumerate(chain):
        migration.previous = chain[i - 1].version if i > 0 else None
        migration.next = chain[i + 1].version if i + 1 < len(chain) else None


def sort_and_connect(migrations: Iterable[Migration]) -> Migrations:
    """
    Sort migrations ascending by version and link neighbours.

    Raises:
        DuplicateVersionError: If two migrations share a version
    """
    ordered = _sorted_unique(migrations)
    _link(ordered)
    return Migrations(ordered)


def sort_and_connect_all(
    migrations: Iterable[Migration], applied: Mapping[int, bool]
) -> Migrations:
    """
    Order already-applied migrations before unapplied ones.

    Each partition keeps ascending version order; the last applied migration
    links to the first unapplied one. Traversal therefore replays history
    first and then proceeds with new work, even when an unapplied migration
    has a smaller version than an applied one.

    Raises:
        DuplicateVersionError: If two migrations share a version
    """
    ordered = _sorted_unique(migrations)
    applied_chain = [m for m in ordered if applied.get(m.version)]
    unapplied_chain = [m for m in ordered if not applied.get(m.version)]

    _link(applied_chain)
    _link(unapplied_chain)

    if applied_chain and unapplied_chain:
        applied_chain[-1].next = unapplied_chain[0].version
        unapplied_chain[0].previous = applied_chain[-1].version

    logger.debug(
        f"Sequenced {len(applied_chain)} applied and "
        f"{len(unapplied_chain)} unapplied migrations"
    )
    return Migrations(applied_chain + unapplied_chain)


def version_filter(v: int, current: int, target: int) -> bool:
    """
    Select versions between ``current`` and ``target``.

    Forward (target > current): current < v <= target.
    Backward (target < current): target < v <= current.
    Equal bounds select nothing.
    """
    if target > current:
        return current < v <= target
    if target < current:
        return target < v <= current
    return False


def unapplied_version_filter(v: int, current: int, target: int, applied: bool) -> bool:
    """Unapplied versions always pass; applied ones only under the forward rule."""
    if not applied:
        return True
    if target > current:
        return current < v <= target
    return False
