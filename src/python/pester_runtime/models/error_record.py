"""
Error records and invocation results.

An ErrorRecord is the structured form of a failure captured on a container,
block or test. Result sinks consume it through ``to_dict``.
"""

import traceback
from dataclasses import dataclass, field
from typing import Any

from ..errors import AssertionFailure, ErrorCategory
from .enums import TestResult

ASSERTION_ERROR_ID = "PesterAssertionFailed"
TEST_FAILURE_ERROR_ID = "PesterTestFailure"


@dataclass(frozen=True)
class ErrorRecord:
    """
    Immutable record of one failure.

    Attributes:
        message: Failure message
        error_id: Identifier of the failure kind
        category: Where in the lifecycle the failure happened
        file: Source file of the failing line, when known
        line: Line number of the failing line, when known
        line_text: Text of the failing line, when known
        terminating: Whether the failure stopped the invocation
        expected_value: Expected value of a failed assertion
        actual_value: Actual value of a failed assertion
        because_value: Reason given with a failed assertion
        exception: The captured exception, if any
    """

    message: str
    error_id: str = TEST_FAILURE_ERROR_ID
    category: ErrorCategory = ErrorCategory.TEST_BODY
    file: str | None = None
    line: int | None = None
    line_text: str | None = None
    terminating: bool = True
    expected_value: Any = None
    actual_value: Any = None
    because_value: str | None = None
    exception: BaseException | None = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize into the shape result sinks expect."""
        data: dict[str, Any] = {
            "Message": self.message,
            "File": self.file,
            "Line": self.line,
            "LineText": self.line_text,
            "Terminating": self.terminating,
        }
        if self.expected_value is not None:
            data["ExpectedValue"] = self.expected_value
        if self.actual_value is not None:
            data["ActualValue"] = self.actual_value
        if self.because_value is not None:
            data["BecauseValue"] = self.because_value
        return data

    def __str__(self) -> str:
        location = f" at {self.file}:{self.line}" if self.file else ""
        return f"{self.message}{location}"


def create_error_record(
    error_id: str,
    message: str,
    file: str | None = None,
    line: int | None = None,
    line_text: str | None = None,
    terminating: bool = True,
    category: ErrorCategory = ErrorCategory.TEST_BODY,
) -> ErrorRecord:
    return ErrorRecord(
        message=message,
        error_id=error_id,
        category=category,
        file=file,
        line=line,
        line_text=line_text,
        terminating=terminating,
    )


def create_should_error_record(
    message: str,
    file: str | None = None,
    line: int | None = None,
    line_text: str | None = None,
    terminating: bool = True,
    expected: Any = None,
    actual: Any = None,
    because: str | None = None,
) -> ErrorRecord:
    return ErrorRecord(
        message=message,
        error_id=ASSERTION_ERROR_ID,
        category=ErrorCategory.ASSERTION,
        file=file,
        line=line,
        line_text=line_text,
        terminating=terminating,
        expected_value=expected,
        actual_value=actual,
        because_value=because,
    )


def error_record_from_exception(
    exc: BaseException, category: ErrorCategory = ErrorCategory.TEST_BODY
) -> ErrorRecord:
    """Build an error record pointing at the innermost frame of the traceback."""
    file = line = line_text = None
    frames = traceback.extract_tb(exc.__traceback__)
    if frames:
        frame = frames[-1]
        file, line, line_text = frame.filename, frame.lineno, frame.line

    if isinstance(exc, AssertionFailure):
        return ErrorRecord(
            message=exc.message or str(exc),
            error_id=ASSERTION_ERROR_ID,
            category=ErrorCategory.ASSERTION,
            file=file,
            line=line,
            line_text=line_text,
            expected_value=exc.expected,
            actual_value=exc.actual,
            because_value=exc.because,
            exception=exc,
        )

    # bare `assert` statements count as assertion failures too
    is_assertion = isinstance(exc, AssertionError)
    return ErrorRecord(
        message=str(exc) or type(exc).__name__,
        error_id=ASSERTION_ERROR_ID if is_assertion else TEST_FAILURE_ERROR_ID,
        category=ErrorCategory.ASSERTION if is_assertion else category,
        file=file,
        line=line,
        line_text=line_text,
        exception=exc,
    )


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of invoking a test body or hook."""

    success: bool
    error_record: list[ErrorRecord] = field(default_factory=list)
    standard_output: Any = None
    # Skipped or Inconclusive when the body ended itself with that result
    result_override: TestResult | None = None

    @classmethod
    def create(
        cls,
        success: bool,
        error_record: list[ErrorRecord] | None,
        standard_output: Any,
    ) -> "InvocationResult":
        return cls(success, list(error_record or []), standard_output)


@dataclass
class ShouldExpectResult:
    actual: str | None = None
    expected: str | None = None
    because: str | None = None

    def __str__(self) -> str:
        return (
            f"Expected: {self.expected} Actual: {self.actual} Because: {self.because}"
        )


@dataclass
class ShouldResult:
    """Outcome of an assertion, before it is turned into an error record."""

    succeeded: bool
    failure_message: str | None = None
    expect_result: ShouldExpectResult | None = None

    def to_error_record(
        self, file: str | None = None, line: int | None = None
    ) -> ErrorRecord | None:
        if self.succeeded:
            return None
        expect = self.expect_result or ShouldExpectResult()
        return create_should_error_record(
            self.failure_message or "Assertion failed",
            file=file,
            line=line,
            expected=expect.expected,
            actual=expect.actual,
            because=expect.because,
        )
