"""
Global pytest configuration and fixtures.

This file defines pytest markers and the fixtures shared by the unit and
integration tests of the pester runtime.
"""

import pytest

from pester_runtime.configuration import PesterConfiguration
from pester_runtime.discovery import Discovery
from pester_runtime.models import ContainerInfo, ContainerType


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks end-to-end runs through discovery, filtering, "
        "execution and summary",
    )


@pytest.fixture
def default_config() -> PesterConfiguration:
    """Configuration with every option at its default."""
    return PesterConfiguration.default()


@pytest.fixture
def discover():
    """
    Discover in-memory container definitions.

    Usage:
        containers = discover(define_a, define_b, configuration=config)
    """

    def _discover(*definitions, configuration=None):
        infos = [
            ContainerInfo(type=ContainerType.SCRIPT_BLOCK, item=definition)
            for definition in definitions
        ]
        return Discovery(configuration).discover(infos)

    return _discover


@pytest.fixture
def calls() -> list:
    """Records hook and test invocations in order."""
    return []
