"""
Pester runtime object model.

Container, Block and Test entities, the filter evaluator, the result
aggregation engine, the run summary and the layered configuration tree that
drives them.
"""

__version__ = "0.1.0"

from .aggregation import aggregate_block, aggregate_container
from .configuration import ConfigLoader, PesterConfiguration
from .discovery import Discovery, TreeBuilder
from .errors import (
    ArgumentOutOfRangeError,
    AssertionFailure,
    ConfigurationError,
    DiscoveryError,
    MergeError,
)
from .filtering import FilterEvaluator
from .models import (
    Block,
    CodeCoverage,
    Container,
    ContainerInfo,
    ContainerType,
    ErrorRecord,
    InvocationResult,
    Run,
    SkipRemainingOnFailure,
    Test,
    TestResult,
)
from .runner import CallableExecutor, TestRunner
from .summary import build_run_summary

__all__ = [
    "ArgumentOutOfRangeError",
    "AssertionFailure",
    "Block",
    "CallableExecutor",
    "CodeCoverage",
    "ConfigLoader",
    "ConfigurationError",
    "Container",
    "ContainerInfo",
    "ContainerType",
    "Discovery",
    "DiscoveryError",
    "ErrorRecord",
    "FilterEvaluator",
    "InvocationResult",
    "MergeError",
    "PesterConfiguration",
    "Run",
    "SkipRemainingOnFailure",
    "Test",
    "TestResult",
    "TestRunner",
    "TreeBuilder",
    "aggregate_block",
    "aggregate_container",
    "build_run_summary",
]
