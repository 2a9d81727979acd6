"""
Test model.

The leaf of the test tree: one executable test body with its filter flags,
execution state and timing.
"""

import weakref
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, ClassVar

from .enums import ItemType, TestResult
from .error_record import ErrorRecord
from .formatting import format_test

if TYPE_CHECKING:
    from .block import Block


def _framework_data() -> dict[str, Any]:
    return {"Runtime": {"Phase": None, "ExecutionStep": None}}


@dataclass(eq=False)
class Test:
    """
    A single test.

    Attributes:
        name: Declared name, may contain <key> templates for data-driven tests
        script_block: Test body, called with the bound data row as keywords
        path: Names of all ancestor blocks followed by the test name
        data: Data row bound to this instance of a data-driven test
        expanded_name: Name with templates replaced by values from data
        expanded_path: Dot-joined expanded names of ancestors and this test
        tag: Tags declared on the test
        file: Source file where the test was declared
        start_line: Line where the test was declared
        result: Outcome after execution
    """

    name: str = ""
    script_block: Callable[..., Any] | None = None
    path: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    expanded_name: str | None = None
    expanded_path: str | None = None
    id: str | None = None
    tag: list[str] = field(default_factory=list)

    focus: bool = False
    skip: bool = False
    first: bool = False
    last: bool = False
    include: bool = False
    exclude: bool = False
    explicit: bool = False
    should_run: bool = False

    file: str | None = None
    start_line: int = 0

    result: TestResult = TestResult.NOT_RUN
    passed: bool = False
    skipped: bool = False
    executed: bool = False
    executed_at: datetime | None = None
    error_record: list[ErrorRecord] = field(default_factory=list)
    standard_output: Any = None

    user_duration: timedelta = field(default_factory=timedelta)
    framework_duration: timedelta = field(default_factory=timedelta)

    plugin_data: dict[str, Any] = field(default_factory=dict)
    framework_data: dict[str, Any] = field(default_factory=_framework_data)

    _block_ref: "weakref.ReferenceType[Block] | None" = field(
        default=None, repr=False
    )

    item_type: ClassVar[ItemType] = ItemType.TEST
    __test__: ClassVar[bool] = False

    @classmethod
    def create(cls, name: str = "", **kwargs: Any) -> "Test":
        return cls(name=name, **kwargs)

    @property
    def block(self) -> "Block | None":
        """Owning block; a lookup reference, the block owns the test."""
        return self._block_ref() if self._block_ref is not None else None

    @block.setter
    def block(self, value: "Block | None") -> None:
        self._block_ref = weakref.ref(value) if value is not None else None

    @property
    def duration(self) -> timedelta:
        return self.user_duration + self.framework_duration

    @property
    def full_name(self) -> str:
        """Dot-joined path used by FullName filters."""
        return self.expanded_path or ".".join(self.path)

    @property
    def declaration_site(self) -> str:
        """file:line string matched by Line filters."""
        return f"{self.file}:{self.start_line}"

    def set_result(self, result: TestResult) -> None:
        self.result = result
        self.passed = result is TestResult.PASSED
        self.skipped = result is TestResult.SKIPPED

    def reset_execution(self) -> None:
        """Clear the outcome of a previous run, keeping the declaration."""
        self.set_result(TestResult.NOT_RUN)
        self.executed = False
        self.executed_at = None
        self.error_record = []
        self.standard_output = None
        self.user_duration = timedelta()
        self.framework_duration = timedelta()
        self.framework_data = _framework_data()

    def __str__(self) -> str:
        return format_test(self)
