# NimbusFlags/nimbus_sdk/tests/test_user.py
"""Unit tests for the User evaluation context."""


import threading

from nimbus_sdk.user import User


def test_explicit_key_is_kept():
    user = User("user-1")

    assert user.key == "user-1"


def test_generated_key_is_stable():
    user = User()

    first = user.key
    assert first.isdigit()
    assert user.key == first


def test_generated_key_is_generated_once_across_threads():
    user = User()
    keys = []

    def read_key():
        keys.append(user.key)

    threads = [threading.Thread(target=read_key) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(set(keys)) == 1


def test_with_attr_returns_new_user():
    base = User("u")
    user = base.with_attr("city", "1").with_attr("os", "linux")

    assert base.get("city") is None
    assert user.get("city") == "1"
    assert user.get("os") == "linux"
    assert user.key == "u"


def test_with_attrs_merges():
    user = User("u", {"a": "1"}).with_attrs({"b": "2", "a": "3"})

    assert user.attrs == {"a": "3", "b": "2"}


def test_attrs_returns_a_copy():
    user = User("u", {"a": "1"})

    attrs = user.attrs
    attrs["a"] = "changed"

    assert user.get("a") == "1"
