"""The source driver interface and the registry of named drivers."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import BinaryIO
from urllib.parse import urlsplit

_lock = threading.RLock()
_drivers: dict[str, Driver] = {}


class Driver(ABC):
    """Read-only access to migrations kept in some source.

    Lookups that find nothing raise :class:`FileNotFoundError`.
    """

    @abstractmethod
    def open(self, url: str) -> Driver:
        """Return a new driver configured from ``url``."""

    @abstractmethod
    def close(self) -> None:
        """Release whatever the driver holds."""

    @abstractmethod
    def first(self) -> int:
        """Return the first available version."""

    @abstractmethod
    def prev(self, version: int) -> int:
        """Return the version before ``version``."""

    @abstractmethod
    def next(self, version: int) -> int:
        """Return the version after ``version``."""

    @abstractmethod
    def read_up(self, version: int) -> tuple[BinaryIO, str]:
        """Return the unread up body and its identifier."""

    @abstractmethod
    def read_down(self, version: int) -> tuple[BinaryIO, str]:
        """Return the unread down body and its identifier."""


def register(name: str, driver: Driver) -> None:
    """Register ``driver`` under the URL scheme ``name``."""
    with _lock:
        if driver is None:
            raise ValueError("register driver is None")
        if name in _drivers:
            raise ValueError(f"register called twice for driver {name}")
        _drivers[name] = driver


def open_source(url: str) -> Driver:
    """Open a source through the driver registered for the URL's scheme."""
    scheme = urlsplit(url).scheme
    if not scheme:
        raise ValueError("source driver: invalid URL scheme")
    with _lock:
        driver = _drivers.get(scheme)
    if driver is None:
        raise ValueError(f"source driver: unknown driver '{scheme}' (not registered?)")
    return driver.open(url)


def list_drivers() -> list[str]:
    """Return the names of the registered drivers."""
    with _lock:
        return list(_drivers)