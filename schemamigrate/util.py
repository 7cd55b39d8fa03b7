"""Small helpers shared by the migration machinery."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


class MultiError(Exception):
    """Several errors reported as one; ``None`` entries are dropped."""

    def __init__(self, *args: BaseException | None) -> None:
        self.errors = [e for e in args if e is not None]
        super().__init__(*self.errors)

    def __str__(self) -> str:
        return " and ".join(text for text in map(str, self.errors) if text)


def suint(n: int) -> int:
    """Return ``n`` if it is a valid unsigned value, else raise ValueError."""
    if n < 0:
        raise ValueError(f"suint({n}) expects input >= 0")
    return n


def filter_custom_query(url: str) -> str:
    """Return ``url`` without query parameters whose names start with ``x-``."""
    parts = urlsplit(url)
    kept = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if not key.startswith("x-")
    ]
    kept.sort(key=lambda item: item[0])
    return urlunsplit(parts._replace(query=urlencode(kept)))