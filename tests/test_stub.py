import pytest

from schemamigrate.source.driver import open_source
from schemamigrate.source.migration import Direction, Migration, Migrations
from schemamigrate.source.stub import StubConfig, StubDriver, with_instance


@pytest.fixture
def driver():
    d = StubDriver().open("")
    ms = Migrations()
    ms.append(Migration(1, Direction.UP))
    ms.append(Migration(1, Direction.DOWN))
    ms.append(Migration(3, Direction.UP))
    ms.append(Migration(4, Direction.UP))
    ms.append(Migration(4, Direction.DOWN))
    ms.append(Migration(5, Direction.DOWN))
    ms.append(Migration(7, Direction.UP))
    ms.append(Migration(7, Direction.DOWN))
    d.migrations = ms
    return d


def test_first(driver):
    assert driver.first() == 1


@pytest.mark.parametrize("version, expected", [(3, 1), (4, 3), (5, 4), (7, 5)])
def test_prev_found(driver, version, expected):
    assert driver.prev(version) == expected


@pytest.mark.parametrize("version", [0, 1, 2, 6, 8, 9])
def test_prev_missing(driver, version):
    with pytest.raises(FileNotFoundError):
        driver.prev(version)


@pytest.mark.parametrize("version, expected", [(1, 3), (3, 4), (4, 5), (5, 7)])
def test_next_found(driver, version, expected):
    assert driver.next(version) == expected


@pytest.mark.parametrize("version", [0, 2, 6, 7, 8, 9])
def test_next_missing(driver, version):
    with pytest.raises(FileNotFoundError):
        driver.next(version)


@pytest.mark.parametrize("version", [1, 3, 4, 7])
def test_read_up_found(driver, version):
    body, identifier = driver.read_up(version)
    assert identifier == f"{version}.up.stub"
    assert body.read() == b""


@pytest.mark.parametrize("version", [0, 2, 5, 6, 8])
def test_read_up_missing(driver, version):
    with pytest.raises(FileNotFoundError):
        driver.read_up(version)


@pytest.mark.parametrize("version", [1, 4, 5, 7])
def test_read_down_found(driver, version):
    body, identifier = driver.read_down(version)
    assert identifier == f"{version}.down.stub"
    assert body.read() == b""


@pytest.mark.parametrize("version", [0, 2, 3, 6, 8])
def test_read_down_missing(driver, version):
    with pytest.raises(FileNotFoundError):
        driver.read_down(version)


def test_body_is_identifier():
    d = StubDriver().open("stub://")
    d.migrations.append(Migration(1, Direction.UP, "CREATE 1"))
    body, identifier = d.read_up(1)
    assert body.read() == b"CREATE 1"
    assert identifier == "1.up.stub"


def test_open_sets_url_and_config():
    d = StubDriver().open("stub://x")
    assert d.url == "stub://x"
    assert d.config == StubConfig()


def test_missing_error_carries_url():
    d = StubDriver().open("stub://x")
    with pytest.raises(FileNotFoundError) as excinfo:
        d.first()
    assert excinfo.value.filename == "stub://x"
    assert excinfo.value.strerror == "first"


def test_with_instance():
    instance = {"name": "source"}
    config = StubConfig()
    d = with_instance(instance, config)
    assert d.instance is instance
    assert d.config is config
    assert d.url == ""
    with pytest.raises(FileNotFoundError):
        d.first()


def test_registered_under_stub_scheme():
    d = open_source("stub://")
    assert isinstance(d, StubDriver)
    assert d.url == "stub://"