"""
Configuration for integration tests.

Marks every test in this directory as an integration test, so they can be
selected or deselected with ``-m integration``.
"""

import pytest

from pester_runtime.configuration import PesterConfiguration
from pester_runtime.models import ContainerInfo, ContainerType
from pester_runtime.runner import TestRunner


def pytest_collection_modifyitems(config, items):
    """Mark all tests in the integration directory."""
    for item in items:
        if "/integration/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def run_definitions():
    """
    Discover and run in-memory definitions end to end.

    Usage:
        run = run_definitions(define, config={"Run": {"Exit": True}})
    """

    def _run(*definitions, config=None):
        configuration = PesterConfiguration.from_mapping(config or {})
        infos = [
            ContainerInfo(type=ContainerType.SCRIPT_BLOCK, item=definition)
            for definition in definitions
        ]
        return TestRunner(configuration).invoke(infos)

    return _run
