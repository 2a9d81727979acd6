"""
Pydantic report models.

Serializable snapshot of a finished run, handed to result sinks (console,
NUnit/JUnit writers) and used for JSON output.
"""

from typing import Any

from pydantic import BaseModel, Field

from .block import Block
from .container import Container
from .error_record import ErrorRecord
from .run import Run
from .test import Test


class ErrorRecordReport(BaseModel):
    message: str
    file: str | None = None
    line: int | None = None
    line_text: str | None = None
    terminating: bool = True
    expected_value: Any = None
    actual_value: Any = None
    because_value: str | None = None

    @classmethod
    def from_record(cls, record: ErrorRecord) -> "ErrorRecordReport":
        return cls(
            message=record.message,
            file=record.file,
            line=record.line,
            line_text=record.line_text,
            terminating=record.terminating,
            expected_value=record.expected_value,
            actual_value=record.actual_value,
            because_value=record.because_value,
        )


class TestReport(BaseModel):
    __test__ = False

    name: str
    expanded_path: str
    result: str
    tags: list[str] = Field(default_factory=list)
    start_line: int = 0
    duration_seconds: float = Field(0.0, ge=0.0)
    errors: list[ErrorRecordReport] = Field(default_factory=list)

    @classmethod
    def from_test(cls, test: Test) -> "TestReport":
        return cls(
            name=test.expanded_name or test.name,
            expanded_path=test.full_name,
            result=test.result.value,
            tags=list(test.tag),
            start_line=test.start_line,
            duration_seconds=test.duration.total_seconds(),
            errors=[ErrorRecordReport.from_record(e) for e in test.error_record],
        )


class BlockReport(BaseModel):
    name: str
    result: str
    passed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    not_run_count: int = 0
    inconclusive_count: int = 0
    total_count: int = 0
    duration_seconds: float = Field(0.0, ge=0.0)
    errors: list[ErrorRecordReport] = Field(default_factory=list)
    blocks: list["BlockReport"] = Field(default_factory=list)
    tests: list[TestReport] = Field(default_factory=list)

    @classmethod
    def from_block(cls, block: Block) -> "BlockReport":
        return cls(
            name=block.expanded_name or block.name,
            result=block.result.value,
            passed_count=block.passed_count,
            failed_count=block.failed_count,
            skipped_count=block.skipped_count,
            not_run_count=block.not_run_count,
            inconclusive_count=block.inconclusive_count,
            total_count=block.total_count,
            duration_seconds=block.duration.total_seconds(),
            errors=[ErrorRecordReport.from_record(e) for e in block.error_record],
            blocks=[cls.from_block(b) for b in block.blocks],
            tests=[TestReport.from_test(t) for t in block.tests],
        )


class ContainerReport(BaseModel):
    name: str
    type: str
    result: str
    passed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    not_run_count: int = 0
    inconclusive_count: int = 0
    total_count: int = 0
    duration_seconds: float = Field(0.0, ge=0.0)
    errors: list[ErrorRecordReport] = Field(default_factory=list)
    blocks: list[BlockReport] = Field(default_factory=list)

    @classmethod
    def from_container(cls, container: Container) -> "ContainerReport":
        return cls(
            name=container.name,
            type=container.type.value,
            result=container.result.value,
            passed_count=container.passed_count,
            failed_count=container.failed_count,
            skipped_count=container.skipped_count,
            not_run_count=container.not_run_count,
            inconclusive_count=container.inconclusive_count,
            total_count=container.total_count,
            duration_seconds=container.duration.total_seconds(),
            errors=[ErrorRecordReport.from_record(e) for e in container.error_record],
            blocks=[BlockReport.from_block(b) for b in container.blocks],
        )


class RunReport(BaseModel):
    """Top-level report of a run."""

    result: str
    passed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    not_run_count: int = 0
    inconclusive_count: int = 0
    total_count: int = 0
    failed_blocks_count: int = 0
    failed_containers_count: int = 0
    duration_seconds: float = Field(0.0, ge=0.0)
    discovery_seconds: float = Field(0.0, ge=0.0)
    user_seconds: float = Field(0.0, ge=0.0)
    framework_seconds: float = Field(0.0, ge=0.0)
    executed_at: str | None = None
    version: str | None = None
    coverage_percent: float | None = None
    containers: list[ContainerReport] = Field(default_factory=list)

    @classmethod
    def from_run(cls, run: Run) -> "RunReport":
        return cls(
            result=run.result.value,
            passed_count=run.passed_count,
            failed_count=run.failed_count,
            skipped_count=run.skipped_count,
            not_run_count=run.not_run_count,
            inconclusive_count=run.inconclusive_count,
            total_count=run.total_count,
            failed_blocks_count=run.failed_blocks_count,
            failed_containers_count=run.failed_containers_count,
            duration_seconds=run.duration.total_seconds(),
            discovery_seconds=run.discovery_duration.total_seconds(),
            user_seconds=run.user_duration.total_seconds(),
            framework_seconds=run.framework_duration.total_seconds(),
            executed_at=run.executed_at.isoformat() if run.executed_at else None,
            version=run.version,
            coverage_percent=(
                float(run.code_coverage.coverage_percent)
                if run.code_coverage is not None
                else None
            ),
            containers=[ContainerReport.from_container(c) for c in run.containers],
        )
