"""Source driver reading migrations from a local directory (``file://``)."""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import unquote, urlsplit

from .driver import register
from .iofs import PartialDriver


class FileDriver(PartialDriver):
    """Reads migrations from the directory named by a ``file://`` URL."""

    def __init__(self) -> None:
        super().__init__()
        self.url = ""
        self.path = ""

    def open(self, url: str) -> FileDriver:
        directory = parse_url(url)
        driver = FileDriver()
        driver.url = url
        driver.path = directory
        driver.init(Path(directory), ".")
        return driver


def parse_url(url: str) -> str:
    """Return the absolute directory a ``file://`` URL points at."""
    parts = urlsplit(url)
    path = parts.netloc + unquote(parts.path)
    if not path:
        return os.getcwd()
    if not path.startswith("/"):
        return os.path.abspath(path)
    return path


register("file", FileDriver())