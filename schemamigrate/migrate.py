"""Reads migrations from a source and applies them to a database.

Source and database drivers are kept simple; all migration logic lives
here. Versions are non-negative integers; -1 stands for the nil version,
meaning no migration has been applied.
"""

from __future__ import annotations

import errno
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from contextlib import contextmanager
from typing import Any, BinaryIO, Iterable, Iterator
from urllib.parse import urlsplit

from .migration import Migration
from .source.driver import Driver, open_source
from .util import MultiError, suint

NIL_VERSION = -1
DEFAULT_PREFETCH_MIGRATIONS = 10
DEFAULT_LOCK_TIMEOUT = 15.0


class MigrateError(Exception):
    """Base class of the errors raised by :class:`Migrate`."""


class NoChangeError(MigrateError):
    """Nothing was there to migrate."""

    def __init__(self, message: str = "no change") -> None:
        super().__init__(message)


class NilVersionError(MigrateError):
    """No migration has been applied yet."""

    def __init__(self, message: str = "no migration") -> None:
        super().__init__(message)


class InvalidVersionError(MigrateError, ValueError):
    """A version below -1 was given."""

    def __init__(self, message: str = "version must be >= -1") -> None:
        super().__init__(message)


class LockedError(MigrateError):
    """This instance already holds the database lock."""

    def __init__(self, message: str = "database locked") -> None:
        super().__init__(message)


class LockTimeoutError(MigrateError, TimeoutError):
    """The database lock could not be acquired in time."""

    def __init__(self, message: str = "timeout: can't acquire database lock") -> None:
        super().__init__(message)


class ShortLimitError(MigrateError):
    """The source ran out of migrations before the requested number was reached."""

    def __init__(self, short: int) -> None:
        super().__init__(f"limit {short} short")
        self.short = short


class DirtyError(MigrateError):
    """The database was left in a dirty state by an earlier failed migration."""

    def __init__(self, version: int) -> None:
        super().__init__(f"Dirty database version {version}. Fix and force version.")
        self.version = version


class DatabaseDriver(ABC):
    """What a database must offer to have migrations applied to it."""

    @abstractmethod
    def lock(self) -> None:
        """Acquire an exclusive migration lock."""

    @abstractmethod
    def unlock(self) -> None:
        """Release the migration lock."""

    @abstractmethod
    def run(self, body: BinaryIO) -> None:
        """Execute the migration read from ``body``."""

    @abstractmethod
    def set_version(self, version: int, dirty: bool) -> None:
        """Record the current version and whether it is dirty."""

    @abstractmethod
    def version(self) -> tuple[int, bool]:
        """Return the recorded version (-1 for none) and the dirty flag."""

    @abstractmethod
    def drop(self) -> None:
        """Delete everything in the database."""

    @abstractmethod
    def close(self) -> None:
        """Release the database connection."""


class Logger(ABC):
    """Receives progress messages; ``verbose`` enables the detailed ones."""

    verbose: bool = False

    @abstractmethod
    def log(self, message: str) -> None:
        """Write one message."""


def _scheme_from_url(url: str) -> str:
    if not url:
        raise ValueError("URL cannot be empty")
    scheme = urlsplit(url).scheme
    if not scheme:
        raise ValueError("no scheme")
    return scheme


class Migrate:
    """Applies migrations from a source driver to a database driver."""

    def __init__(
        self,
        source_name: str,
        source_driver: Driver,
        database_name: str,
        database_driver: DatabaseDriver,
    ) -> None:
        self.source_name = source_name
        self.source_driver = source_driver
        self.database_name = database_name
        self.database_driver = database_driver
        self.log: Logger | None = None
        self.prefetch_migrations = DEFAULT_PREFETCH_MIGRATIONS
        self.lock_timeout = DEFAULT_LOCK_TIMEOUT
        self._stop_event = threading.Event()
        self._is_locked_mu = threading.Lock()
        self._is_locked = False

    # -- public operations -------------------------------------------------

    def close(self) -> None:
        """Close the source and the database, raising if either fails."""
        self._log_verbose("Closing source and database")
        errors: list[BaseException] = []
        for closer in (self.source_driver.close, self.database_driver.close):
            try:
                closer()
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise MultiError(*errors)

    def migrate(self, version: int) -> None:
        """Migrate up or down until ``version`` is the active version."""
        target = suint(version)
        with self._locked():
            current = self._clean_version()
            self._run_migrations(self._read(current, target))

    def steps(self, n: int) -> None:
        """Apply ``n`` migrations: up when positive, down when negative."""
        if n == 0:
            raise NoChangeError()
        with self._locked():
            current = self._clean_version()
            if n > 0:
                self._run_migrations(self._read_up(current, n))
            else:
                self._run_migrations(self._read_down(current, -n))

    def up(self) -> None:
        """Apply every remaining up migration."""
        with self._locked():
            current = self._clean_version()
            self._run_migrations(self._read_up(current, -1))

    def down(self) -> None:
        """Apply every down migration, back to the nil version."""
        with self._locked():
            current = self._clean_version()
            self._run_migrations(self._read_down(current, -1))

    def drop(self) -> None:
        """Delete everything in the database."""
        with self._locked():
            self.database_driver.drop()

    def run(self, *args: Migration) -> None:
        """Apply the given migrations without consulting the source."""
        if not args:
            raise NoChangeError()
        with self._locked():
            self._clean_version()

            def scheduled() -> Iterator[Migration]:
                for migr in args:
                    self._log_scheduled(migr)
                    yield migr

            self._run_migrations(scheduled())

    def force(self, version: int) -> None:
        """Set ``version`` as active and clean, without running anything."""
        if version < -1:
            raise InvalidVersionError()
        with self._locked():
            self.database_driver.set_version(version, False)

    def version(self) -> tuple[int, bool]:
        """Return the active version and dirty flag.

        Raises :class:`NilVersionError` when nothing has been applied.
        """
        version, dirty = self.database_driver.version()
        if version == NIL_VERSION:
            raise NilVersionError()
        return suint(version), dirty

    def graceful_stop(self) -> None:
        """Stop at the next safe point between migrations."""
        self._stop_event.set()

    # -- reading migrations from the source --------------------------------

    def _read(self, from_: int, to: int) -> Iterator[Migration]:
        if from_ >= 0:
            self._version_exists(suint(from_))
        if to >= 0:
            self._version_exists(suint(to))
        if from_ == to:
            raise NoChangeError()

        if from_ < to:
            if from_ == NIL_VERSION:
                first = self.source_driver.first()
                yield self._new_migration(first, first)
                from_ = first
            while from_ < to:
                if self._stop():
                    return
                nxt = self.source_driver.next(suint(from_))
                yield self._new_migration(nxt, nxt)
                from_ = nxt
            return

        while from_ > to and from_ >= 0:
            if self._stop():
                return
            try:
                prev = self.source_driver.prev(suint(from_))
            except FileNotFoundError:
                if to != NIL_VERSION:
                    raise
                prev = None
            if prev is None:
                yield self._new_migration(suint(from_), NIL_VERSION)
                return
            yield self._new_migration(suint(from_), prev)
            from_ = prev

    def _read_up(self, from_: int, limit: int) -> Iterator[Migration]:
        if from_ >= 0:
            self._version_exists(suint(from_))
        if limit == 0:
            raise NoChangeError()

        count = 0
        while count < limit or limit == -1:
            if self._stop():
                return
            if from_ == NIL_VERSION:
                first = self.source_driver.first()
                yield self._new_migration(first, first)
                from_ = first
                count += 1
                continue

            try:
                nxt = self.source_driver.next(suint(from_))
            except FileNotFoundError as missing:
                if limit == -1 and count == 0:
                    raise NoChangeError() from missing
                if limit == -1:
                    return
                if count == 0:
                    raise
                raise ShortLimitError(suint(limit - count)) from missing

            yield self._new_migration(nxt, nxt)
            from_ = nxt
            count += 1

    def _read_down(self, from_: int, limit: int) -> Iterator[Migration]:
        if from_ >= 0:
            self._version_exists(suint(from_))
        if limit == 0:
            raise NoChangeError()
        if from_ == NIL_VERSION and limit == -1:
            raise NoChangeError()
        if from_ == NIL_VERSION and limit > 0:
            raise FileNotFoundError(errno.ENOENT, "no migration below the nil version")

        count = 0
        while count < limit or limit == -1:
            if self._stop():
                return
            try:
                prev: int | None = self.source_driver.prev(suint(from_))
            except FileNotFoundError:
                prev = None

            if prev is None:
                if limit == -1 or limit - count > 0:
                    first = self.source_driver.first()
                    yield self._new_migration(first, NIL_VERSION)
                    count += 1
                if count < limit:
                    raise ShortLimitError(suint(limit - count))
                return

            yield self._new_migration(suint(from_), prev)
            from_ = prev
            count += 1

    def _version_exists(self, version: int) -> None:
        missing: BaseException | None = None
        for read in (self.source_driver.read_up, self.source_driver.read_down):
            try:
                body, _ = read(version)
            except FileNotFoundError as exc:
                missing = exc
                continue
            except FileExistsError:
                return
            body.close()
            return
        err = FileNotFoundError(errno.ENOENT, f"no migration found for version {version}")
        self._log_error(err)
        raise err from missing

    def _new_migration(self, version: int, target_version: int) -> Migration:
        reader = (
            self.source_driver.read_up
            if target_version >= version
            else self.source_driver.read_down
        )
        try:
            body, identifier = reader(version)
        except FileNotFoundError:
            migr = Migration(None, "", version, target_version)
        else:
            migr = Migration(body, identifier, version, target_version)
        self._log_scheduled(migr)
        return migr

    # -- applying migrations ----------------------------------------------

    def _prefetch(self, items: Iterable[Migration]) -> Iterator[Migration | Exception]:
        """Read ahead up to ``prefetch_migrations`` items, buffering bodies.

        An error raised while reading is yielded in its place, after the
        migrations that preceded it.
        """
        source = iter(items)
        pending: deque[Migration | Exception] = deque()
        exhausted = False
        try:
            while True:
                while not exhausted and len(pending) <= self.prefetch_migrations:
                    try:
                        migr = next(source)
                    except StopIteration:
                        exhausted = True
                    except Exception as exc:
                        exhausted = True
                        pending.append(exc)
                    else:
                        self._start_buffering(migr)
                        pending.append(migr)
                if not pending:
                    return
                yield pending.popleft()
        finally:
            closer = getattr(source, "close", None)
            if callable(closer):
                closer()

    def _start_buffering(self, migr: Migration) -> None:
        if migr.body is None:
            return

        def work() -> None:
            try:
                migr.buffer()
            except Exception as exc:
                self._log_error(exc)

        threading.Thread(target=work, daemon=True).start()

    def _run_migrations(self, items: Iterable[Migration]) -> None:
        queue = self._prefetch(items)
        try:
            for item in queue:
                if self._stop():
                    return
                if isinstance(item, Exception):
                    raise item
                self._apply(item)
        finally:
            queue.close()

    def _apply(self, migr: Migration) -> None:
        db = self.database_driver
        db.set_version(migr.target_version, True)
        if migr.body is not None and migr.buffered_body is not None:
            self._log_verbose(f"Read and execute {migr.log_string()}")
            db.run(migr.buffered_body)  # type: ignore[arg-type]
        db.set_version(migr.target_version, False)

        if self.log is None:
            return
        end = time.monotonic()
        finished_reading = migr.finished_reading if migr.finished_reading is not None else end
        started = migr.started_buffering if migr.started_buffering is not None else migr.scheduled
        read_time = max(finished_reading - started, 0.0)
        run_time = max(end - finished_reading, 0.0)
        if self.log.verbose:
            self._log(
                f"Finished {migr.log_string()} "
                f"(read {_format_seconds(read_time)}, ran {_format_seconds(run_time)})"
            )
        else:
            self._log(f"{migr.log_string()} ({_format_seconds(read_time + run_time)})")

    # -- state helpers ----------------------------------------------------

    def _clean_version(self) -> int:
        version, dirty = self.database_driver.version()
        if dirty:
            raise DirtyError(version)
        return version

    def _stop(self) -> bool:
        return self._stop_event.is_set()

    def _lock(self) -> None:
        with self._is_locked_mu:
            if self._is_locked:
                raise LockedError()

            outcome: dict[str, BaseException] = {}
            done = threading.Event()

            def acquire() -> None:
                try:
                    self.database_driver.lock()
                except BaseException as exc:
                    outcome["error"] = exc
                finally:
                    done.set()

            threading.Thread(target=acquire, daemon=True).start()
            if not done.wait(self.lock_timeout):
                raise LockTimeoutError()
            if "error" in outcome:
                raise outcome["error"]
            self._is_locked = True

    def _unlock(self) -> None:
        with self._is_locked_mu:
            self.database_driver.unlock()
            self._is_locked = False

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self._lock()
        try:
            yield
        except BaseException as exc:
            try:
                self._unlock()
            except Exception as unlock_exc:
                raise MultiError(exc, unlock_exc) from exc
            raise
        self._unlock()

    # -- logging ------------------------------------------------------------

    def _log(self, message: str) -> None:
        if self.log is not None:
            self.log.log(message)

    def _log_verbose(self, message: str) -> None:
        if self.log is not None and self.log.verbose:
            self.log.log(message)

    def _log_error(self, err: BaseException) -> None:
        self._log(f"error: {err}")

    def _log_scheduled(self, migr: Migration) -> None:
        if self.prefetch_migrations > 0 and migr.body is not None:
            self._log_verbose(f"Start buffering {migr.log_string()}")
        else:
            self._log_verbose(f"Scheduled {migr.log_string()}")


def _format_seconds(seconds: float) -> str:
    return f"{seconds * 1000:.3f}ms"


def new_with_database_instance(
    source_url: str, database_name: str, database_instance: DatabaseDriver
) -> Migrate:
    """Open the source at ``source_url`` and pair it with an open database.

    The caller remains responsible for closing the database client.
    """
    source_name = _scheme_from_url(source_url)
    try:
        source_driver = open_source(source_url)
    except Exception as exc:
        raise ValueError(f"failed to open source, {source_url!r}: {exc}") from exc
    return Migrate(source_name, source_driver, database_name, database_instance)


def new_with_instance(
    source_name: str,
    source_instance: Driver,
    database_name: str,
    database_instance: Any,
) -> Migrate:
    """Pair an open source driver with an open database driver."""
    return Migrate(source_name, source_instance, database_name, database_instance)