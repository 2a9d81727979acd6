"""
Block model.

A named, nestable group of tests (a Describe or Context). Blocks own their
child blocks and tests; parent and container links are weak references used
for lookup only.
"""

import weakref
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, ClassVar

from .enums import ItemType, TestResult
from .error_record import ErrorRecord
from .formatting import format_block
from .test import Test

if TYPE_CHECKING:
    from .container import Container

Hook = Callable[..., Any]

HOOK_SLOTS = (
    "each_test_setup",
    "one_time_test_setup",
    "each_test_teardown",
    "one_time_test_teardown",
    "each_block_setup",
    "one_time_block_setup",
    "each_block_teardown",
    "one_time_block_teardown",
)


@dataclass(eq=False)
class Block:
    """
    A block of tests.

    Totals (``passed_count`` ...) include every descendant; the ``own_*``
    counters only count tests declared directly in this block.
    """

    name: str = ""
    path: list[str] = field(default_factory=list)
    data: Any = None
    expanded_name: str | None = None
    expanded_path: str | None = None
    blocks: list["Block"] = field(default_factory=list)
    tests: list[Test] = field(default_factory=list)
    order: list["Block | Test"] = field(default_factory=list)

    group_id: str | None = None
    tag: list[str] = field(default_factory=list)
    focus: bool = False
    skip: bool = False
    first: bool = False
    last: bool = False
    include: bool = False
    exclude: bool = False
    explicit: bool = False
    should_run: bool = False
    is_root: bool = False

    script_block: Hook | None = None
    file: str | None = None
    start_line: int = 0

    each_test_setup: Hook | None = None
    one_time_test_setup: Hook | None = None
    each_test_teardown: Hook | None = None
    one_time_test_teardown: Hook | None = None
    each_block_setup: Hook | None = None
    one_time_block_setup: Hook | None = None
    each_block_teardown: Hook | None = None
    one_time_block_teardown: Hook | None = None

    result: TestResult = TestResult.NOT_RUN
    passed: bool = False
    own_passed: bool = False
    executed: bool = False
    executed_at: datetime | None = None
    error_record: list[ErrorRecord] = field(default_factory=list)
    standard_output: Any = None

    failed_count: int = 0
    passed_count: int = 0
    skipped_count: int = 0
    not_run_count: int = 0
    inconclusive_count: int = 0
    total_count: int = 0

    own_failed_count: int = 0
    own_passed_count: int = 0
    own_skipped_count: int = 0
    own_not_run_count: int = 0
    own_inconclusive_count: int = 0
    own_total_count: int = 0

    discovery_duration: timedelta = field(default_factory=timedelta)
    user_duration: timedelta = field(default_factory=timedelta)
    framework_duration: timedelta = field(default_factory=timedelta)
    own_duration: timedelta = field(default_factory=timedelta)

    plugin_data: dict[str, Any] = field(default_factory=dict)
    framework_data: dict[str, Any] = field(default_factory=dict)

    _parent_ref: "weakref.ReferenceType[Block] | None" = field(default=None, repr=False)
    _container_ref: "weakref.ReferenceType[Container] | None" = field(
        default=None, repr=False
    )

    item_type: ClassVar[ItemType] = ItemType.BLOCK

    @classmethod
    def create(cls, name: str = "", **kwargs: Any) -> "Block":
        return cls(name=name, **kwargs)

    @property
    def parent(self) -> "Block | None":
        return self._parent_ref() if self._parent_ref is not None else None

    @parent.setter
    def parent(self, value: "Block | None") -> None:
        self._parent_ref = weakref.ref(value) if value is not None else None

    @property
    def container(self) -> "Container | None":
        if self._container_ref is not None:
            return self._container_ref()
        parent = self.parent
        return parent.container if parent is not None else None

    @container.setter
    def container(self, value: "Container | None") -> None:
        self._container_ref = weakref.ref(value) if value is not None else None

    @property
    def duration(self) -> timedelta:
        return self.discovery_duration + self.framework_duration + self.user_duration

    @property
    def full_name(self) -> str:
        return self.expanded_path or ".".join(self.path)

    @property
    def declaration_site(self) -> str:
        return f"{self.file}:{self.start_line}"

    def add_block(self, block: "Block") -> "Block":
        block.parent = self
        self.blocks.append(block)
        self.order.append(block)
        return block

    def add_test(self, test: Test) -> Test:
        test.block = self
        self.tests.append(test)
        self.order.append(test)
        return test

    def reset_execution(self) -> None:
        """Clear the outcome of a previous run. Discovery time is kept."""
        self.result = TestResult.NOT_RUN
        self.passed = False
        self.own_passed = False
        self.executed = False
        self.executed_at = None
        self.error_record = []
        self.standard_output = None
        self.user_duration = timedelta()
        self.framework_duration = timedelta()
        self.own_duration = timedelta()

    def ancestors(self) -> Iterator["Block"]:
        """Parent blocks from the nearest outwards."""
        parent = self.parent
        while parent is not None:
            yield parent
            parent = parent.parent

    def iter_blocks(self) -> Iterator["Block"]:
        """This block and every descendant block, depth-first."""
        yield self
        for child in self.blocks:
            yield from child.iter_blocks()

    def iter_tests(self) -> Iterator[Test]:
        """Every test in this block and its descendants, in declaration order."""
        for item in self.order:
            if isinstance(item, Block):
                yield from item.iter_tests()
            else:
                yield item

    def __str__(self) -> str:
        return format_block(self)
