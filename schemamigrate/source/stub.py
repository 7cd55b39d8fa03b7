"""In-memory source driver for tests (``stub://``)."""

from __future__ import annotations

import errno
import io
from dataclasses import dataclass, field
from typing import Any, BinaryIO

from .driver import Driver, register
from .migration import Migrations


@dataclass
class StubConfig:
    """Configuration of a stub driver; it has no settings."""


@dataclass(eq=False)
class StubDriver(Driver):
    """Serves migrations from :attr:`migrations`; bodies are identifiers."""

    url: str = ""
    instance: Any = None
    migrations: Migrations = field(default_factory=Migrations)
    config: StubConfig | None = None
    closed: bool = field(default=False, init=False)

    def _not_found(self, op: str) -> FileNotFoundError:
        return FileNotFoundError(errno.ENOENT, op, self.url)

    def open(self, url: str) -> StubDriver:
        return StubDriver(url=url, migrations=Migrations(), config=StubConfig())

    def close(self) -> None:
        """Mark the driver closed; there is nothing else to release."""
        self.closed = True

    def first(self) -> int:
        version = self.migrations.first()
        if version is None:
            raise self._not_found("first")
        return version

    def prev(self, version: int) -> int:
        found = self.migrations.prev(version)
        if found is None:
            raise self._not_found(f"prev for version {version}")
        return found

    def next(self, version: int) -> int:
        found = self.migrations.next(version)
        if found is None:
            raise self._not_found(f"next for version {version}")
        return found

    def read_up(self, version: int) -> tuple[BinaryIO, str]:
        m = self.migrations.up(version)
        if m is None:
            raise self._not_found(f"read up version {version}")
        return io.BytesIO(m.identifier.encode()), f"{version}.up.stub"

    def read_down(self, version: int) -> tuple[BinaryIO, str]:
        m = self.migrations.down(version)
        if m is None:
            raise self._not_found(f"read down version {version}")
        return io.BytesIO(m.identifier.encode()), f"{version}.down.stub"


def with_instance(instance: Any, config: StubConfig | None) -> StubDriver:
    """Return a stub driver wrapping ``instance``."""
    return StubDriver(instance=instance, migrations=Migrations(), config=config)


register("stub", StubDriver())