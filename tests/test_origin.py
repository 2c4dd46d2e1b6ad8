import pytest

from ddcchain.origin import BadOrigin, Origin


def test_root_is_root():
    origin = Origin.root()
    assert origin.is_root
    assert not origin.is_signed


def test_signed_returns_signer():
    assert Origin.signed(7).ensure_signed() == 7


def test_signed_is_not_root():
    with pytest.raises(BadOrigin):
        Origin.signed(7).ensure_root()


def test_root_is_not_signed():
    with pytest.raises(BadOrigin):
        Origin.root().ensure_signed()


def test_empty_origin_is_neither():
    origin = Origin()
    with pytest.raises(BadOrigin):
        origin.ensure_signed()
    with pytest.raises(BadOrigin):
        origin.ensure_root()


def test_signed_requires_account():
    with pytest.raises(ValueError):
        Origin.signed(None)


def test_origins_compare_by_value():
    assert Origin.signed(3) == Origin.signed(3)
    assert Origin.root() == Origin.root()
    assert Origin.signed(3) != Origin.signed(4)