"""
Container model.

The top-level unit of discovery: one test file or one in-memory definition.
A container owns its top-level blocks and the counters aggregated from them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, ClassVar

from .block import Block
from .container_info import ContainerInfo
from .enums import ContainerType, ItemType, TestResult
from .error_record import ErrorRecord
from .formatting import container_item_to_string, format_container
from .test import Test


@dataclass(eq=False)
class Container:
    """
    A discovered container.

    Assigning ``type`` parses the value; anything other than File or
    ScriptBlock raises ArgumentOutOfRangeError.
    """

    type: ContainerType = ContainerType.FILE
    item: Any = None
    data: dict[str, Any] | None = None
    blocks: list[Block] = field(default_factory=list)

    result: TestResult = TestResult.NOT_RUN
    failed_count: int = 0
    passed_count: int = 0
    skipped_count: int = 0
    inconclusive_count: int = 0
    not_run_count: int = 0
    total_count: int = 0
    error_record: list[ErrorRecord] = field(default_factory=list)

    passed: bool = False
    own_passed: bool = False
    skip: bool = False
    should_run: bool = False
    executed: bool = False
    executed_at: datetime | None = None

    discovery_duration: timedelta = field(default_factory=timedelta)
    user_duration: timedelta = field(default_factory=timedelta)
    framework_duration: timedelta = field(default_factory=timedelta)
    standard_output: Any = None

    item_type: ClassVar[ItemType] = ItemType.CONTAINER

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "type":
            value = ContainerType.parse(value, "Type")
        super().__setattr__(name, value)

    @classmethod
    def create(cls) -> "Container":
        return cls()

    @classmethod
    def create_from_file(cls, file: str | Path) -> "Container":
        return cls(type=ContainerType.FILE, item=Path(file))

    @classmethod
    def from_info(
        cls, info: ContainerInfo, data: dict[str, Any] | None = None
    ) -> "Container":
        return cls(type=info.type, item=info.item, data=data)

    @classmethod
    def create_from_block(cls, block: Block) -> "Container":
        """Build a container from a root block that already ran."""
        source = block.container
        container = cls(
            type=source.type if source is not None else ContainerType.SCRIPT_BLOCK,
            item=source.item if source is not None else block.script_block,
            data=block.data,
            blocks=list(block.blocks),
            result=block.result,
            failed_count=block.failed_count,
            passed_count=block.passed_count,
            skipped_count=block.skipped_count,
            inconclusive_count=block.inconclusive_count,
            not_run_count=block.not_run_count,
            total_count=block.total_count,
            error_record=list(block.error_record),
            passed=block.passed,
            own_passed=block.own_passed,
            skip=block.skip,
            should_run=block.should_run,
            executed=block.executed,
            executed_at=block.executed_at,
            discovery_duration=block.discovery_duration,
            user_duration=block.user_duration,
            framework_duration=block.framework_duration,
            standard_output=block.standard_output,
        )
        for child in container.blocks:
            child.container = container
        return container

    @property
    def name(self) -> str:
        return container_item_to_string(self.type, self.item)

    @property
    def duration(self) -> timedelta:
        return self.discovery_duration + self.user_duration + self.framework_duration

    def add_block(self, block: Block) -> Block:
        block.container = self
        block.parent = None
        self.blocks.append(block)
        return block

    def iter_blocks(self):
        for block in self.blocks:
            yield from block.iter_blocks()

    def iter_tests(self):
        for block in self.blocks:
            yield from block.iter_tests()

    def all_tests(self) -> list[Test]:
        return list(self.iter_tests())

    def reset_execution(self) -> None:
        """
        Clear the outcome of a previous run from the whole tree.

        Discovery errors and discovery time stay, since the tree is not
        discovered again.
        """
        for block in self.iter_blocks():
            block.reset_execution()
        for test in self.iter_tests():
            test.reset_execution()
        self.result = (
            TestResult.FAILED if self.error_record else TestResult.NOT_RUN
        )
        self.passed = False
        self.own_passed = False
        self.executed = False
        self.executed_at = None
        self.user_duration = timedelta()
        self.framework_duration = timedelta()

    def __str__(self) -> str:
        return format_container(self)
