"""Closed enumerations used across the test tree."""

from enum import Enum
from typing import Any

from ..errors import ArgumentOutOfRangeError


class _ParsableEnum(str, Enum):
    """String enum parsed case-insensitively from its value."""

    @classmethod
    def parse(cls, value: Any, name: str | None = None) -> Any:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        raise ArgumentOutOfRangeError(
            name or cls.__name__, value, [m.value for m in cls]
        )

    def __str__(self) -> str:
        return self.value


class ContainerType(_ParsableEnum):
    FILE = "File"
    SCRIPT_BLOCK = "ScriptBlock"


class TestResult(_ParsableEnum):
    NOT_RUN = "NotRun"
    PASSED = "Passed"
    FAILED = "Failed"
    SKIPPED = "Skipped"
    INCONCLUSIVE = "Inconclusive"

    __test__ = False


class SkipRemainingOnFailure(_ParsableEnum):
    """Scope in which a failed test stops the remaining tests from running."""

    NONE = "None"
    RUN = "Run"
    CONTAINER = "Container"
    BLOCK = "Block"


class ItemType(_ParsableEnum):
    CONTAINER = "Container"
    BLOCK = "Block"
    TEST = "Test"
