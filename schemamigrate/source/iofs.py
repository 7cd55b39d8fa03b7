"""Source drivers over a traversable file tree.

Any object shaped like :class:`pathlib.Path` or :class:`zipfile.Path`
(``iterdir``, ``is_dir``, ``name``, ``open`` and ``/``) can serve as the
tree; strings and path-like objects are taken as directories. Opening
by URL is not supported by the plain :class:`FSDriver`.
"""

from __future__ import annotations

import errno
import os
import posixpath
from pathlib import Path
from typing import Any, BinaryIO

from .driver import Driver
from .migration import DuplicateMigrationError, Migrations, parse


def _as_tree(fs: Any) -> Any:
    if isinstance(fs, (str, os.PathLike)):
        return Path(fs)
    return fs


def _descend(node: Any, path: str) -> Any:
    for part in path.split("/"):
        if part and part != ".":
            node = node / part
    return node


class PartialDriver(Driver):
    """Every driver operation except ``open``, over a file tree.

    Call :meth:`init` before use.
    """

    def __init__(self) -> None:
        self._fs: Any = None
        self._root: Any = None
        self._path = ""
        self._migrations = Migrations()

    def init(self, fs: Any, path: str) -> None:
        """Read the migrations found directly under ``path`` in ``fs``."""
        tree = _as_tree(fs)
        root = _descend(tree, path)
        migrations = Migrations()
        for entry in list(root.iterdir()):
            if entry.is_dir():
                continue
            try:
                m = parse(entry.name)
            except ValueError:
                continue
            if not migrations.append(m):
                raise DuplicateMigrationError(m, entry.name)
        self._fs = tree
        self._root = root
        self._path = path
        self._migrations = migrations

    def _not_found(self, op: str) -> FileNotFoundError:
        return FileNotFoundError(errno.ENOENT, op, self._path)

    def close(self) -> None:
        """Close the file tree if it can be closed."""
        closer = getattr(self._fs, "close", None)
        if callable(closer):
            closer()

    def first(self) -> int:
        version = self._migrations.first()
        if version is None:
            raise self._not_found("first")
        return version

    def prev(self, version: int) -> int:
        found = self._migrations.prev(version)
        if found is None:
            raise self._not_found(f"prev for version {version}")
        return found

    def next(self, version: int) -> int:
        found = self._migrations.next(version)
        if found is None:
            raise self._not_found(f"next for version {version}")
        return found

    def read_up(self, version: int) -> tuple[BinaryIO, str]:
        m = self._migrations.up(version)
        if m is None:
            raise self._not_found(f"read up for version {version}")
        return self._open(m.raw), m.identifier

    def read_down(self, version: int) -> tuple[BinaryIO, str]:
        m = self._migrations.down(version)
        if m is None:
            raise self._not_found(f"read down for version {version}")
        return self._open(m.raw), m.identifier

    def _open(self, raw: str) -> BinaryIO:
        try:
            return (self._root / raw).open("rb")
        except OSError:
            raise
        except Exception as exc:
            location = posixpath.join(self._path, raw)
            raise OSError(f"open {location}: {exc}") from exc


class FSDriver(PartialDriver):
    """A driver built directly from a file tree; it cannot open URLs."""

    def open(self, url: str) -> Driver:
        raise RuntimeError("open() cannot be called on the file tree passthrough driver")


def new(fs: Any, path: str) -> FSDriver:
    """Return a driver reading migrations from ``path`` within ``fs``."""
    driver = FSDriver()
    driver.init(fs, path)
    return driver