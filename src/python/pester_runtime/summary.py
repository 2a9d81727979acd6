"""
Run summary.

Walks the finished tree once and builds the Run object: every test classified
into exactly one outcome list, failed blocks and containers collected, totals
counted and durations split into discovery, user and framework time.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from . import __version__
from .aggregation import compute_result
from .logging_config import get_logger
from .models import CodeCoverage, Container, Run, TestResult

if TYPE_CHECKING:
    from .configuration.root import PesterConfiguration

logger = get_logger(__name__)


def build_run_summary(
    containers: Iterable[Container],
    configuration: "PesterConfiguration | None" = None,
    code_coverage: CodeCoverage | None = None,
    version: str | None = None,
    executed_at: datetime | None = None,
    executed: bool = True,
    framework_overhead: timedelta = timedelta(),
) -> Run:
    """
    Build the summary of a finished run.

    Containers, blocks and tests must already be aggregated.

    Args:
        containers: Containers of the run in execution order
        configuration: Configuration the run used
        code_coverage: Coverage result, when coverage was collected
        version: Framework version reported in the summary
        executed_at: When the run started
        executed: False when tests were only discovered
        framework_overhead: Framework time spent outside any container

    Returns:
        The run summary
    """
    run = Run(
        containers=list(containers),
        configuration=configuration,
        code_coverage=code_coverage,
        version=version or __version__,
        executed=executed,
        executed_at=executed_at or datetime.now(),
    )

    by_result = {
        TestResult.PASSED: run.passed,
        TestResult.FAILED: run.failed,
        TestResult.SKIPPED: run.skipped,
        TestResult.INCONCLUSIVE: run.inconclusive,
        TestResult.NOT_RUN: run.not_run,
    }

    for container in run.containers:
        if container.result is TestResult.FAILED:
            run.failed_containers.append(container)
        for block in container.iter_blocks():
            if block.result is TestResult.FAILED:
                run.failed_blocks.append(block)
        for test in container.iter_tests():
            run.tests.append(test)
            by_result[test.result].append(test)

        run.discovery_duration += container.discovery_duration
        run.user_duration += container.user_duration
        run.framework_duration += container.framework_duration

    run.framework_duration += framework_overhead
    run.duration = run.discovery_duration + run.user_duration + run.framework_duration

    run.passed_count = len(run.passed)
    run.failed_count = len(run.failed)
    run.skipped_count = len(run.skipped)
    run.inconclusive_count = len(run.inconclusive)
    run.not_run_count = len(run.not_run)
    run.total_count = len(run.tests)
    run.failed_blocks_count = len(run.failed_blocks)
    run.failed_containers_count = len(run.failed_containers)

    run.result = compute_result(
        run.failed_count,
        run.passed_count,
        run.skipped_count,
        run.inconclusive_count,
        has_errors=bool(run.failed_blocks or run.failed_containers),
    )

    if code_coverage is not None and configuration is not None:
        target = configuration.code_coverage.coverage_percent_target.value
        if not code_coverage.meets_target(target):
            logger.warning(
                "Code coverage below target",
                coverage=str(code_coverage),
                target=str(target),
            )

    logger.debug(
        "Built run summary",
        source="Summary",
        containers=len(run.containers),
        total=run.total_count,
        result=run.result.value,
    )
    return run
