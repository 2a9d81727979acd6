"""
Exception types and error classification for the pester runtime.

Only configuration and structural errors unwind to the caller. Errors raised
while discovering or executing tests are captured into the owning scope's
error records (see ``models.error_record``) and folded into its result.
"""

from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Categories of errors recorded on containers, blocks and tests."""

    CONFIGURATION = "configuration"
    DISCOVERY = "discovery"
    SETUP = "setup"
    TEARDOWN = "teardown"
    ASSERTION = "assertion"
    TEST_BODY = "test_body"
    MERGE = "merge"


class ConfigurationError(Exception):
    """Exception raised when configuration is invalid or cannot be loaded."""

    def __init__(self, message: str, source: str | None = None) -> None:
        """
        Initialize configuration error.

        Args:
            message: Error message
            source: Configuration source that failed (optional)
        """
        super().__init__(message)
        self.source = source


class ArgumentOutOfRangeError(ConfigurationError, ValueError):
    """A value is not one of the recognized enumerands."""

    def __init__(self, name: str, value: Any, allowed: list[str]) -> None:
        quoted = ", ".join(f"'{a}'" for a in allowed)
        super().__init__(f"{name} must be one of {quoted}, got {value!r}")
        self.name = name
        self.value = value
        self.allowed = allowed


class MergeError(ConfigurationError, TypeError):
    """Two configurations of different shape were merged or cloned."""


class DiscoveryError(Exception):
    """Raised while building a container's test tree."""


class AssertionFailure(AssertionError):
    """
    Assertion failure raised from a test body.

    Carries the structured expected/actual/because values that end up on the
    test's error record.
    """

    def __init__(
        self,
        message: str = "",
        expected: Any = None,
        actual: Any = None,
        because: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.expected = expected
        self.actual = actual
        self.because = because


class ResultOverride(Exception):
    """
    Raised from a test body to end it as Skipped or Inconclusive.

    The test is not failed; the error record is omitted and ``because`` is
    kept as the test's standard output.
    """

    def __init__(self, result: str, because: str | None = None) -> None:
        super().__init__(because or result)
        self.result = result
        self.because = because


class RunFailedError(Exception):
    """Raised after a failed run when Run.Throw is set."""

    def __init__(self, message: str, failed_count: int = 0, run: Any = None) -> None:
        super().__init__(message)
        self.failed_count = failed_count
        self.run = run
