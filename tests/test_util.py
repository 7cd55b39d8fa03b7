from urllib.parse import parse_qs, urlsplit

import pytest

from schemamigrate.util import MultiError, filter_custom_query, suint


def test_suint_rejects_negative():
    with pytest.raises(ValueError):
        suint(-1)


def test_suint_zero():
    assert suint(0) == 0


def test_suint_positive():
    assert suint(42) == 42


def test_filter_custom_query():
    filtered = filter_custom_query("foo://host?a=b&x-custom=foo&c=d&ok=y")
    query = parse_qs(urlsplit(filtered).query)
    assert "x-custom" not in query
    assert query["ok"] == ["y"]


def test_filter_custom_query_exact():
    assert filter_custom_query("foo://host?a=b&x-custom=foo&c=d&ok=y") == "foo://host?a=b&c=d&ok=y"


def test_filter_custom_query_keeps_short_keys():
    assert filter_custom_query("foo://host/db?x=1&x-a=2") == "foo://host/db?x=1"


def test_multi_error_joins_and_skips_none():
    err = MultiError(ValueError("first"), None, RuntimeError("second"))
    assert len(err.errors) == 2
    assert str(err) == "first and second"


def test_multi_error_skips_empty_messages():
    err = MultiError(ValueError(""), ValueError("only"))
    assert str(err) == "only"


def test_multi_error_raises():
    first = ValueError("a")
    second = ValueError("b")
    err = MultiError(first, second)
    with pytest.raises(MultiError) as excinfo:
        raise err
    assert excinfo.value.errors == [first, second]
    assert str(excinfo.value) == "a and b"