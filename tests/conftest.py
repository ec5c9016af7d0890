"""Shared fixtures for capguard tests."""

import pytest

from capguard.scanner.catalog import default_catalog
from capguard.scanner.scope import LocalBindingResolver


@pytest.fixture(scope="session")
def catalog():
    return default_catalog()


@pytest.fixture(scope="session")
def scoped_catalog():
    return default_catalog(resolver=LocalBindingResolver())
