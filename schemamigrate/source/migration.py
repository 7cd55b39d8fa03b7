"""Migration file names and the ordered index of available versions."""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from enum import Enum

_MAX_VERSION = 2**64 - 1

# Matches names such as ``123_name.up.ext`` and ``123_name.down.ext``.
REGEX = re.compile(r"([0-9]+)_(.*)\.(down|up)\.(.*)")


class Direction(str, Enum):
    """Direction a migration file applies in."""

    DOWN = "down"
    UP = "up"


@dataclass(frozen=True)
class Migration:
    """One migration file known to a source."""

    version: int
    direction: Direction
    identifier: str = ""
    raw: str = ""


class ParseError(ValueError):
    """Raised when a file name is not a migration file name."""


class DuplicateMigrationError(Exception):
    """Raised when two files provide the same version and direction."""

    def __init__(self, migration: Migration, name: str) -> None:
        super().__init__(f"duplicate migration file: {name}")
        self.migration = migration
        self.name = name


def parse(raw: str) -> Migration:
    """Parse a migration file name into a :class:`Migration`."""
    match = REGEX.fullmatch(raw)
    if match is None:
        raise ParseError("no match")
    version = int(match.group(1))
    if version > _MAX_VERSION:
        raise ValueError(f"version {match.group(1)} out of range")
    return Migration(
        version=version,
        direction=Direction(match.group(3)),
        identifier=match.group(2),
        raw=raw,
    )


class Migrations:
    """Migrations indexed by version and direction, kept in version order."""

    def __init__(self) -> None:
        self._index: list[int] = []
        self._migrations: dict[int, dict[Direction, Migration]] = {}

    def append(self, m: Migration | None) -> bool:
        """Add a migration; return False for None or a duplicate."""
        if m is None:
            return False
        by_direction = self._migrations.setdefault(m.version, {})
        direction = Direction(m.direction)
        if direction in by_direction:
            return False
        by_direction[direction] = m
        if len(by_direction) == 1:
            bisect.insort(self._index, m.version)
        return True

    def _find_pos(self, version: int) -> int:
        pos = bisect.bisect_left(self._index, version)
        if pos < len(self._index) and self._index[pos] == version:
            return pos
        return -1

    def first(self) -> int | None:
        """Return the lowest version, or None when there is none."""
        return self._index[0] if self._index else None

    def prev(self, version: int) -> int | None:
        """Return the version before ``version``, or None."""
        pos = self._find_pos(version)
        if pos >= 1:
            return self._index[pos - 1]
        return None

    def next(self, version: int) -> int | None:
        """Return the version after ``version``, or None."""
        pos = self._find_pos(version)
        if pos >= 0 and pos + 1 < len(self._index):
            return self._index[pos + 1]
        return None

    def up(self, version: int) -> Migration | None:
        """Return the up migration for ``version``, or None."""
        return self._migrations.get(version, {}).get(Direction.UP)

    def down(self, version: int) -> Migration | None:
        """Return the down migration for ``version``, or None."""
        return self._migrations.get(version, {}).get(Direction.DOWN)