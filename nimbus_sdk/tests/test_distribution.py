# NimbusFlags/nimbus_sdk/tests/test_distribution.py
"""
Unit tests for consistent-hash bucketing.

The salted hash must be identical to the other NimbusFlags SDKs, so the
fixed vector below is part of the wire contract.
"""


import pytest

from nimbus_sdk.errors import EvalDetailError, EvalError
from nimbus_sdk.repositories.models import Distribution, Select, Split
from nimbus_sdk.services import distribution as distribution_module
from nimbus_sdk.services.distribution import (
    BUCKET_SIZE,
    find_index,
    salt_hash,
    select_variation,
)
from nimbus_sdk.user import User


def test_salt_hash_vector():
    assert salt_hash("key", "salt", 10000) == 2647


def test_salt_hash_is_in_range():
    for i in range(200):
        assert 0 <= salt_hash(str(i), "toggle", BUCKET_SIZE) < BUCKET_SIZE


def test_find_index_exact_bucket():
    distribution = Distribution(
        ranges=(((0, 2647),), ((2647, 2648),), ((2648, 10000),)),
        bucket_by="name",
        salt="salt",
    )
    user = User().with_attr("name", "key")

    assert find_index(distribution, user, "not care", True) == 1


def test_find_index_bucket_in_gap():
    distribution = Distribution(
        ranges=(((0, 2647),), ((2648, 10000),)),
        bucket_by="name",
        salt="salt",
    )
    user = User().with_attr("name", "key")

    with pytest.raises(EvalDetailError) as exc_info:
        find_index(distribution, user, "not care", True)
    assert "not find hash_bucket" in exc_info.value.detail

    with pytest.raises(EvalError):
        find_index(distribution, user, "not care", False)


def test_find_index_covers_every_bucket_of_a_partition(monkeypatch):
    ranges = (
        ((0, 1000), (5000, 6000)),
        ((1000, 5000),),
        ((6000, 9999),),
        ((9999, 10000),),
    )
    distribution = Distribution(ranges=ranges, bucket_by="name", salt="salt")
    user = User().with_attr("name", "key")
    current = {"bucket": 0}
    monkeypatch.setattr(
        distribution_module, "salt_hash", lambda key, salt, size: current["bucket"]
    )

    for bucket in range(BUCKET_SIZE):
        current["bucket"] = bucket
        owners = [
            index
            for index, spans in enumerate(ranges)
            if any(lower <= bucket < upper for lower, upper in spans)
        ]
        assert len(owners) == 1
        assert find_index(distribution, user, "toggle", True) == owners[0]


def test_find_index_uses_toggle_key_when_salt_missing():
    # salt_hash("key", "salt") == 2647, so the toggle key acts as the salt.
    distribution = Distribution(
        ranges=(((0, 2647),), ((2647, 2648),), ((2648, 10000),)),
        bucket_by="name",
        salt="",
    )
    user = User().with_attr("name", "key")

    assert find_index(distribution, user, "salt", True) == 1


def test_find_index_defaults_to_user_key():
    distribution = Distribution(
        ranges=(((0, 2647),), ((2647, 2648),), ((2648, 10000),)),
        salt="salt",
    )

    assert find_index(distribution, User("key"), "t", True) == 1


def test_select_variation_missing_bucket_by_attribute():
    serve = Split(
        Distribution(
            ranges=(((0, 5000),), ((5000, 10000),)),
            bucket_by="name",
            salt="salt",
        )
    )

    with pytest.raises(EvalDetailError) as exc_info:
        select_variation(serve, ("a", "b"), User("u"), "", True)
    assert "does not have attribute" in exc_info.value.detail
    assert "[name]" in exc_info.value.detail

    with pytest.raises(EvalError):
        select_variation(serve, ("a", "b"), User("u"), "", False)


def test_select_variation_index_overflow():
    with pytest.raises(EvalDetailError) as exc_info:
        select_variation(Select(3), ("a", "b"), User("u"), "t", True)

    assert exc_info.value.detail == "index 3 overflow, variations count is 2"


def test_select_variation_select():
    variation = select_variation(Select(1), ("a", "b"), User("u"), "t", False)

    assert variation.value == "b"
    assert variation.index == 1
