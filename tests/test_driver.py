import pytest

from schemamigrate.source.driver import Driver, list_drivers, open_source, register


class _EchoDriver(Driver):
    def __init__(self, url=""):
        self.url = url

    def open(self, url):
        return _EchoDriver(url)

    def close(self):
        return None

    def first(self):
        return 1

    def prev(self, version):
        raise FileNotFoundError(version)

    def next(self, version):
        raise FileNotFoundError(version)

    def read_up(self, version):
        raise FileNotFoundError(version)

    def read_down(self, version):
        raise FileNotFoundError(version)


def test_register_and_list():
    register("test-echo-list", _EchoDriver())
    assert "test-echo-list" in list_drivers()


def test_open_source_delegates_to_driver():
    register("test-echo-open", _EchoDriver())
    d = open_source("test-echo-open://somewhere/x")
    assert isinstance(d, _EchoDriver)
    assert d.url == "test-echo-open://somewhere/x"


def test_register_twice_fails():
    register("test-echo-dup", _EchoDriver())
    with pytest.raises(ValueError, match="twice"):
        register("test-echo-dup", _EchoDriver())


def test_register_none_fails():
    with pytest.raises(ValueError, match="None"):
        register("test-echo-none", None)
    assert "test-echo-none" not in list_drivers()


def test_open_source_without_scheme():
    with pytest.raises(ValueError, match="invalid URL scheme"):
        open_source("just/a/path")


def test_open_source_unknown_scheme():
    with pytest.raises(ValueError, match="unknown driver 'nosuchdriver'"):
        open_source("nosuchdriver://x")


def test_driver_is_abstract():
    with pytest.raises(TypeError):
        Driver()