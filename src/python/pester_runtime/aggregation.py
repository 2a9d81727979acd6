"""
Result aggregation.

Rolls test outcomes up into blocks and containers. A scope is aggregated once
its children are final: its own counters count the tests declared directly in
it, its totals add the totals of its child blocks, and its result follows one
precedence rule shared with the run summary.
"""

from collections import Counter
from collections.abc import Iterable
from datetime import timedelta

from .models import Block, Container, Test, TestResult

_COUNTED = (
    TestResult.FAILED,
    TestResult.PASSED,
    TestResult.SKIPPED,
    TestResult.NOT_RUN,
    TestResult.INCONCLUSIVE,
)


def compute_result(
    failed: int,
    passed: int,
    skipped: int,
    inconclusive: int,
    has_errors: bool = False,
    skip: bool = False,
) -> TestResult:
    """
    Result of a scope from its counts.

    Failed when anything failed or the scope recorded its own errors, Passed
    when at least one test passed (or was inconclusive), Skipped when the
    scope was skipped or only skipped tests remain, otherwise NotRun.
    """
    if failed > 0 or has_errors:
        return TestResult.FAILED
    if passed + inconclusive > 0:
        return TestResult.PASSED
    if skip or skipped > 0:
        return TestResult.SKIPPED
    return TestResult.NOT_RUN


def count_results(tests: Iterable[Test]) -> Counter:
    counts: Counter = Counter(test.result for test in tests)
    for result in _COUNTED:
        counts.setdefault(result, 0)
    return counts


def aggregate_block(block: Block) -> Block:
    """
    Compute counters, result and durations of a block.

    Child blocks must already be aggregated.
    """
    own = count_results(block.tests)
    block.own_failed_count = own[TestResult.FAILED]
    block.own_passed_count = own[TestResult.PASSED]
    block.own_skipped_count = own[TestResult.SKIPPED]
    block.own_not_run_count = own[TestResult.NOT_RUN]
    block.own_inconclusive_count = own[TestResult.INCONCLUSIVE]
    block.own_total_count = sum(own[r] for r in _COUNTED)

    children = block.blocks
    block.failed_count = block.own_failed_count + sum(c.failed_count for c in children)
    block.passed_count = block.own_passed_count + sum(c.passed_count for c in children)
    block.skipped_count = block.own_skipped_count + sum(
        c.skipped_count for c in children
    )
    block.not_run_count = block.own_not_run_count + sum(
        c.not_run_count for c in children
    )
    block.inconclusive_count = block.own_inconclusive_count + sum(
        c.inconclusive_count for c in children
    )
    block.total_count = (
        block.failed_count
        + block.passed_count
        + block.skipped_count
        + block.not_run_count
        + block.inconclusive_count
    )

    block.result = compute_result(
        block.failed_count,
        block.passed_count,
        block.skipped_count,
        block.inconclusive_count,
        has_errors=bool(block.error_record)
        or any(c.result is TestResult.FAILED for c in children),
        skip=block.skip and not block.explicit,
    )
    block.own_passed = block.own_failed_count == 0
    block.passed = (
        block.failed_count == 0
        and not block.error_record
        and all(c.passed for c in children)
    )

    block.user_duration = sum(
        (t.user_duration for t in block.tests), timedelta()
    ) + sum((c.user_duration for c in children), timedelta())
    block.framework_duration = (
        block.own_duration
        + sum((t.framework_duration for t in block.tests), timedelta())
        + sum((c.framework_duration for c in children), timedelta())
    )
    return block


def aggregate_tree(block: Block) -> Block:
    """Aggregate a block and all its descendants, deepest first."""
    for child in block.blocks:
        aggregate_tree(child)
    return aggregate_block(block)


def aggregate_container(container: Container) -> Container:
    """
    Compute counters, result and durations of a container.

    Top-level blocks must already be aggregated. Containers own no tests
    directly, so their totals are the sums over their blocks.
    """
    blocks = container.blocks
    container.failed_count = sum(b.failed_count for b in blocks)
    container.passed_count = sum(b.passed_count for b in blocks)
    container.skipped_count = sum(b.skipped_count for b in blocks)
    container.not_run_count = sum(b.not_run_count for b in blocks)
    container.inconclusive_count = sum(b.inconclusive_count for b in blocks)
    container.total_count = (
        container.failed_count
        + container.passed_count
        + container.skipped_count
        + container.not_run_count
        + container.inconclusive_count
    )

    container.result = compute_result(
        container.failed_count,
        container.passed_count,
        container.skipped_count,
        container.inconclusive_count,
        has_errors=bool(container.error_record)
        or any(b.result is TestResult.FAILED for b in blocks),
        skip=container.skip,
    )
    container.own_passed = not container.error_record
    container.passed = (
        container.failed_count == 0
        and not container.error_record
        and all(b.passed for b in blocks)
    )

    container.user_duration = sum((b.user_duration for b in blocks), timedelta())
    container.framework_duration = sum(
        (b.framework_duration for b in blocks), timedelta()
    )
    return container


def aggregate_container_tree(container: Container) -> Container:
    """Aggregate every block of a container, then the container itself."""
    for block in container.blocks:
        aggregate_tree(block)
    return aggregate_container(container)
