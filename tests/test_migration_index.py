import pytest

from schemamigrate.source.migration import (
    Direction,
    DuplicateMigrationError,
    Migration,
    Migrations,
    ParseError,
    parse,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("1_foobar.up.sql", Migration(1, Direction.UP, "foobar", "1_foobar.up.sql")),
        ("1_foobar.down.sql", Migration(1, Direction.DOWN, "foobar", "1_foobar.down.sql")),
        ("1_f-o_ob+ar.up.sql", Migration(1, Direction.UP, "f-o_ob+ar", "1_f-o_ob+ar.up.sql")),
        (
            "1485385885_foobar.up.sql",
            Migration(1485385885, Direction.UP, "foobar", "1485385885_foobar.up.sql"),
        ),
        (
            "20170412214116_date_foobar.up.sql",
            Migration(
                20170412214116, Direction.UP, "date_foobar", "20170412214116_date_foobar.up.sql"
            ),
        ),
    ],
)
def test_parse_valid(name, expected):
    assert parse(name) == expected


@pytest.mark.parametrize(
    "name",
    [
        "-1_foobar.up.sql",
        "foobar.up.sql",
        "1.up.sql",
        "1_foobar.sql",
        "1_foobar.up",
        "1_foobar.down",
    ],
)
def test_parse_invalid(name):
    with pytest.raises(ParseError, match="no match"):
        parse(name)


def test_parse_version_out_of_range():
    with pytest.raises(ValueError):
        parse("99999999999999999999999_x.up.sql")


@pytest.fixture
def migrations():
    ms = Migrations()
    ms.append(Migration(1, Direction.UP, "CREATE 1"))
    ms.append(Migration(1, Direction.DOWN, "DROP 1"))
    ms.append(Migration(3, Direction.UP, "CREATE 3"))
    ms.append(Migration(4, Direction.UP, "CREATE 4"))
    ms.append(Migration(4, Direction.DOWN, "DROP 4"))
    ms.append(Migration(5, Direction.DOWN, "DROP 5"))
    ms.append(Migration(7, Direction.UP, "CREATE 7"))
    ms.append(Migration(7, Direction.DOWN, "DROP 7"))
    return ms


def test_first(migrations):
    assert migrations.first() == 1


def test_first_empty():
    assert Migrations().first() is None


@pytest.mark.parametrize(
    "version, expected",
    [(0, None), (1, 3), (2, None), (3, 4), (4, 5), (5, 7), (6, None), (7, None), (8, None)],
)
def test_next(migrations, version, expected):
    assert migrations.next(version) == expected


@pytest.mark.parametrize(
    "version, expected",
    [(0, None), (1, None), (2, None), (3, 1), (4, 3), (5, 4), (6, None), (7, 5), (8, None)],
)
def test_prev(migrations, version, expected):
    assert migrations.prev(version) == expected


def test_positions_in_small_index():
    ms = Migrations()
    for v in (3, 1, 2):
        ms.append(Migration(v, Direction.UP))
    assert ms.next(0) is None
    assert ms.prev(1) is None
    assert ms.next(1) == 2
    assert ms.prev(3) == 2
    assert ms.next(3) is None


def test_up_and_down(migrations):
    assert migrations.up(1).identifier == "CREATE 1"
    assert migrations.down(1).identifier == "DROP 1"
    assert migrations.up(5) is None
    assert migrations.down(3) is None
    assert migrations.up(2) is None


def test_append_rejects_duplicate(migrations):
    assert migrations.append(Migration(1, Direction.UP, "again")) is False
    assert migrations.up(1).identifier == "CREATE 1"


def test_append_rejects_none():
    assert Migrations().append(None) is False


def test_append_accepts_plain_direction_string():
    ms = Migrations()
    assert ms.append(Migration(2, "down", "x")) is True
    assert ms.down(2).identifier == "x"
    assert ms.append(Migration(2, Direction.DOWN, "y")) is False


def test_duplicate_error_message():
    err = DuplicateMigrationError(Migration(1, Direction.UP), "1_foo.up.sql")
    assert str(err) == "duplicate migration file: 1_foo.up.sql"
    assert err.migration.version == 1
    assert err.name == "1_foo.up.sql"