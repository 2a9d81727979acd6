"""Test-tree entities and the values recorded on them."""

from .block import HOOK_SLOTS, Block
from .container import Container
from .container_info import ContainerInfo
from .coverage import CodeCoverage, CodeCoveragePoint
from .enums import ContainerType, ItemType, SkipRemainingOnFailure, TestResult
from .error_record import (
    ErrorRecord,
    InvocationResult,
    ShouldExpectResult,
    ShouldResult,
    create_error_record,
    create_should_error_record,
    error_record_from_exception,
)
from .run import Run
from .test import Test

__all__ = [
    "HOOK_SLOTS",
    "Block",
    "CodeCoverage",
    "CodeCoveragePoint",
    "Container",
    "ContainerInfo",
    "ContainerType",
    "ErrorRecord",
    "InvocationResult",
    "ItemType",
    "Run",
    "ShouldExpectResult",
    "ShouldResult",
    "SkipRemainingOnFailure",
    "Test",
    "TestResult",
    "create_error_record",
    "create_should_error_record",
    "error_record_from_exception",
]
