# schemamigrate

Reads versioned migrations from a source and applies them to a database,
up or down one step at a time. The database keeps a version and a "dirty"
flag; a migration that fails leaves the flag set, and nothing more runs
until the version is forced.

## Installation

```
pip install schemamigrate
```

To run the test suite:

```
pip install "schemamigrate[test]"
pytest
```

## Migration files

Sources recognise migrations by name:

```
<version>_<identifier>.up.<ext>
<version>_<identifier>.down.<ext>
```

for example `1_create_users.up.sql` and `1_create_users.down.sql`.
`schemamigrate.source.migration.parse(name)` turns such a name into a
`Migration` (version, direction, identifier, raw name) and raises
`ParseError`, a `ValueError`, for any other name. Names that do not match
are skipped by every source. `Migrations` is the ordered index the sources
build from them, with `first()`, `prev(version)`, `next(version)`,
`up(version)` and `down(version)`, each returning `None` when there is
nothing to find.

## Sources

A source implements `schemamigrate.source.driver.Driver`: `open(url)`,
`close()`, `first()`, `prev(version)`, `next(version)`, `read_up(version)`
and `read_down(version)`. The two read methods return an unread binary body
and an identifier. A version that is not there raises `FileNotFoundError`.

- `schemamigrate.source.file.FileDriver` reads a local directory named by a
  `file://` URL. Relative paths are resolved against the working directory;
  an empty path means the working directory itself. `parse_url(url)` gives
  the directory a URL resolves to.
- `schemamigrate.source.iofs.new(fs, path)` reads the directory `path`
  inside a file tree: a string or path-like object, a `pathlib.Path`, or any
  object shaped like one, such as `zipfile.Path`. `FSDriver.open` cannot be
  used; `PartialDriver` provides everything except `open` for building other
  sources over a file tree. Sub-directories are ignored, and two files with
  the same version and direction raise `DuplicateMigrationError`.
- `schemamigrate.source.bindata.with_instance(resource(names, asset_func))`
  serves in-memory assets: `names` lists the asset names and `asset_func`
  returns the bytes of one. It cannot be opened by URL; a duplicate name
  raises `ValueError`.
- `schemamigrate.source.stub` holds `StubDriver`, an in-memory source for
  tests. Fill its `migrations` attribute with a `Migrations` index; each
  body read is the migration's identifier.

Importing a source module registers it under a URL scheme: `file`, `stub`
or `bindata`. `register(name, driver)` adds another, `open_source(url)`
opens a source by the URL's scheme, and `list_drivers()` lists what is
registered.

## Running migrations

```python
from schemamigrate.migrate import new_with_instance
from schemamigrate.source.file import FileDriver

source = FileDriver().open("file://./migrations")
m = new_with_instance("file", source, "mydb", my_database_driver)

m.up()            # apply every pending up migration
m.steps(-1)       # roll back one migration
m.migrate(3)      # go up or down until version 3 is active
version, dirty = m.version()
m.close()
```

`new_with_database_instance(source_url, database_name, database)` opens the
source from a URL instead. `my_database_driver` is your own subclass of
`schemamigrate.migrate.DatabaseDriver`, implementing `lock()`, `unlock()`,
`run(body)`, `set_version(version, dirty)`, `version()` (returning -1 when
nothing is applied), `drop()` and `close()`.

Other operations of `Migrate`:

- `down()` applies every down migration, back to no version at all.
- `drop()` deletes everything through the database driver.
- `force(version)` records `version` as active and clean without running
  anything; `-1` clears the version.
- `run(*migrations)` applies `schemamigrate.migration.Migration` objects
  you build yourself, without consulting the source.
- `graceful_stop()` stops a run at the next point between migrations.

Settings on a `Migrate` instance: `prefetch_migrations` (default 10
migrations read ahead, their bodies buffered in background threads),
`lock_timeout` (default 15 seconds) and `log`, which takes a
`schemamigrate.migrate.Logger` subclass with a `log(message)` method and a
`verbose` flag.

Errors are raised as exceptions, all subclasses of `MigrateError`:

- `NoChangeError`: nothing to do.
- `NilVersionError`: no migration has been applied yet.
- `DirtyError`: the last migration failed; fix it and call `force(version)`.
- `ShortLimitError`: fewer migrations existed than the steps asked for; its
  `short` attribute says how many were missing.
- `InvalidVersionError`: `force` was given a version below -1.
- `LockedError` and `LockTimeoutError`: the database lock could not be taken.

A failure while unlocking after another error is raised as
`schemamigrate.util.MultiError` holding both; `close()` raises it too when
closing the source or the database fails.

`schemamigrate.util` also has `suint(n)`, which rejects negative values with
`ValueError`, and `filter_custom_query(url)`, which drops query parameters
whose names start with `x-`.

## What it does not do

The package has no database drivers and cannot open a database from a URL:
the database side is always an object you supply. There is no command-line
program, and no sources for remote storage or hosted repositories; the
sources read local directories, file trees and in-memory data.