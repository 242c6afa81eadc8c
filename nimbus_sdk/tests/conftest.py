# NimbusFlags/nimbus_sdk/tests/conftest.py
"""Shared fixtures for the SDK test suite."""


import pathlib

import pytest

from nimbus_sdk.repositories.models import Repository, load_json


FIXTURES_DIR = pathlib.Path(__file__).resolve().parent / "fixtures"


def read_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


@pytest.fixture
def repo_json() -> str:
    """Raw toggles document, as served by the toggles endpoint."""
    return read_fixture("repo.json")


@pytest.fixture
def repo(repo_json) -> Repository:
    return load_json(repo_json)
