"""
Run model.

The summary of a whole run: every container plus flattened, cross-cutting
lists of tests, blocks and containers by outcome.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from .block import Block
from .container import Container
from .coverage import CodeCoverage
from .enums import TestResult
from .formatting import format_run
from .test import Test

if TYPE_CHECKING:
    from ..configuration.root import PesterConfiguration


@dataclass(eq=False)
class Run:
    containers: list[Container] = field(default_factory=list)

    result: TestResult = TestResult.NOT_RUN
    failed_count: int = 0
    failed_blocks_count: int = 0
    failed_containers_count: int = 0
    passed_count: int = 0
    skipped_count: int = 0
    inconclusive_count: int = 0
    not_run_count: int = 0
    total_count: int = 0

    duration: timedelta = field(default_factory=timedelta)
    discovery_duration: timedelta = field(default_factory=timedelta)
    user_duration: timedelta = field(default_factory=timedelta)
    framework_duration: timedelta = field(default_factory=timedelta)

    executed: bool = False
    executed_at: datetime | None = None
    version: str | None = None
    configuration: "PesterConfiguration | None" = None
    plugin_data: dict[str, Any] = field(default_factory=dict)

    failed: list[Test] = field(default_factory=list)
    failed_blocks: list[Block] = field(default_factory=list)
    failed_containers: list[Container] = field(default_factory=list)
    passed: list[Test] = field(default_factory=list)
    skipped: list[Test] = field(default_factory=list)
    inconclusive: list[Test] = field(default_factory=list)
    not_run: list[Test] = field(default_factory=list)
    tests: list[Test] = field(default_factory=list)

    code_coverage: CodeCoverage | None = None

    @classmethod
    def create(cls) -> "Run":
        return cls()

    def __str__(self) -> str:
        return format_run(self)
