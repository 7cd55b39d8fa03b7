"""Source driver over named in-memory assets."""

from __future__ import annotations

import errno
import io
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable

from .driver import Driver, register
from .migration import Migrations, parse

AssetFunc = Callable[[str], bytes]

_ASSET_PATH = "<bindata>"


@dataclass
class AssetSource:
    """Asset names together with the function that loads an asset's bytes."""

    names: list[str] = field(default_factory=list)
    asset_func: AssetFunc | None = None


def resource(names: list[str], asset_func: AssetFunc) -> AssetSource:
    """Bundle asset names and their loader into an :class:`AssetSource`."""
    return AssetSource(names=list(names), asset_func=asset_func)


class BindataDriver(Driver):
    """Reads migrations from an :class:`AssetSource`; it cannot open URLs."""

    def __init__(self, asset_source: AssetSource | None = None) -> None:
        self.path = _ASSET_PATH
        self.asset_source = asset_source
        self.migrations = Migrations()
        self.closed = False

    def _not_found(self, op: str) -> FileNotFoundError:
        return FileNotFoundError(errno.ENOENT, op, self.path)

    def open(self, url: str) -> Driver:
        raise ValueError("bindata source: opening by URL is not supported, use with_instance()")

    def close(self) -> None:
        """Mark the driver closed; the assets themselves stay untouched."""
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

    def _load(self, raw: str) -> BinaryIO:
        assert self.asset_source is not None and self.asset_source.asset_func is not None
        return io.BytesIO(self.asset_source.asset_func(raw))

    def read_up(self, version: int) -> tuple[BinaryIO, str]:
        m = self.migrations.up(version)
        if m is None:
            raise self._not_found(f"read version {version}")
        return self._load(m.raw), m.identifier

    def read_down(self, version: int) -> tuple[BinaryIO, str]:
        m = self.migrations.down(version)
        if m is None:
            raise self._not_found(f"read version {version}")
        return self._load(m.raw), m.identifier


def with_instance(instance: Any) -> BindataDriver:
    """Return a driver serving the migrations named in an :class:`AssetSource`."""
    if not isinstance(instance, AssetSource):
        raise TypeError("expects AssetSource")
    driver = BindataDriver(instance)
    for name in instance.names:
        try:
            m = parse(name)
        except ValueError:
            continue
        if not driver.migrations.append(m):
            raise ValueError(f"unable to parse file {name}")
    return driver


register("bindata", BindataDriver())