"""
Test runner.

Executes filtered containers sequentially and depth-first, in declaration
order. Hooks wrap scopes as follows:

- a block's one-time setup runs before its children and its one-time teardown
  after them, even when the setup failed;
- each-test setups run outermost first before every test and each-test
  teardowns innermost first after it;
- a block's each-block setup and teardown wrap every child block it runs, and
  its one-time block setup and teardown bracket the first and last of them.

Failures are recorded on the scope where they happened and folded into the
aggregated results; nothing below the run level raises to the caller.
"""

import time
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

from .aggregation import aggregate_block, aggregate_container, aggregate_tree
from .configuration.root import PesterConfiguration
from .discovery import Discovery, FileLoader, containers_from_configuration
from .errors import ErrorCategory, ResultOverride, RunFailedError
from .filtering import FilterEvaluator
from .logging_config import get_logger
from .models import (
    Block,
    Container,
    ContainerInfo,
    InvocationResult,
    Run,
    SkipRemainingOnFailure,
    Test,
    TestResult,
    error_record_from_exception,
)
from .summary import build_run_summary

logger = get_logger(__name__)

Executor = Callable[[Test], InvocationResult]

_OVERRIDABLE = (TestResult.SKIPPED, TestResult.INCONCLUSIVE)


def _call(fn: Callable[..., Any], data: Any) -> Any:
    if isinstance(data, dict) and data:
        return fn(**data)
    return fn()


def _elapsed(start: float) -> timedelta:
    return timedelta(seconds=time.perf_counter() - start)


class CallableExecutor:
    """
    Default test-body executor.

    Calls the test's script block with its data row as keyword arguments.
    The return value becomes the test's standard output; exceptions become
    error records.
    """

    def __call__(self, test: Test) -> InvocationResult:
        fn = test.script_block
        if fn is None:
            return InvocationResult(success=True)
        try:
            output = _call(fn, test.data)
        except ResultOverride as e:
            result = next(
                (r for r in _OVERRIDABLE if r.value.lower() == str(e.result).lower()),
                None,
            )
            if result is None:
                return InvocationResult(
                    success=False,
                    error_record=[error_record_from_exception(e)],
                )
            return InvocationResult(
                success=True, standard_output=e.because, result_override=result
            )
        except Exception as e:
            return InvocationResult(
                success=False, error_record=[error_record_from_exception(e)]
            )
        return InvocationResult(success=True, standard_output=output)


class _SkipRemaining:
    """Tracks scopes whose remaining tests must not run after a failure."""

    def __init__(self, policy: SkipRemainingOnFailure) -> None:
        self.policy = policy
        self.run_failed = False
        self.containers: set[Container] = set()
        self.blocks: set[Block] = set()

    def record_failure(self, test: Test, container: Container) -> None:
        if self.policy is SkipRemainingOnFailure.RUN:
            self.run_failed = True
        elif self.policy is SkipRemainingOnFailure.CONTAINER:
            self.containers.add(container)
        elif self.policy is SkipRemainingOnFailure.BLOCK and test.block is not None:
            self.blocks.add(test.block)

    def applies(self, item: Block | Test | Container, container: Container) -> bool:
        if self.run_failed or container in self.containers:
            return True
        if not self.blocks or isinstance(item, Container):
            return False
        block = item if isinstance(item, Block) else item.block
        while block is not None:
            if block in self.blocks:
                return True
            block = block.parent
        return False


class TestRunner:
    """
    Runs discovered containers and builds the run summary.

    Args:
        configuration: Run configuration, defaults to all defaults
        executor: Test-body executor, defaults to CallableExecutor
        file_loader: Used by ``invoke`` to discover File containers
    """

    __test__ = False

    def __init__(
        self,
        configuration: PesterConfiguration | None = None,
        executor: Executor | None = None,
        file_loader: FileLoader | None = None,
    ) -> None:
        self.configuration = configuration or PesterConfiguration.default()
        self.executor = executor or CallableExecutor()
        self.file_loader = file_loader
        self.policy = SkipRemainingOnFailure.parse(
            self.configuration.run.skip_remaining_on_failure.value,
            "Run.SkipRemainingOnFailure",
        )
        self.verbosity = self.configuration.output.verbosity.value
        self._skip = _SkipRemaining(self.policy)

    def invoke(self, container_infos: Iterable[ContainerInfo] | None = None) -> Run:
        """
        Discover and run containers.

        Args:
            container_infos: Containers to run, defaults to the ones named by
                the Run section

        Raises:
            RunFailedError: If the run failed and Run.Throw is set
        """
        if container_infos is None:
            container_infos = containers_from_configuration(self.configuration)
        containers = Discovery(self.configuration, self.file_loader).discover(
            container_infos
        )
        run = self.run(containers)

        if self.configuration.run.throw.value and run.result is TestResult.FAILED:
            raise RunFailedError(
                f"Pester run failed, because {run.failed_count} test(s) failed, "
                f"{run.failed_blocks_count} block(s) failed and "
                f"{run.failed_containers_count} container(s) failed",
                failed_count=run.failed_count,
                run=run,
            )
        return run

    def run(self, containers: Iterable[Container]) -> Run:
        """
        Filter, execute and summarize already discovered containers.

        Outcomes left on the tree by an earlier run are cleared first, so the
        same containers can be run again with different filters. The earlier
        Run shares those tests; take a RunReport to keep its results.
        """
        containers = list(containers)
        for container in containers:
            container.reset_execution()
        executed_at = datetime.now()
        self._skip = _SkipRemaining(self.policy)

        start = time.perf_counter()
        FilterEvaluator.from_configuration(self.configuration).evaluate(containers)
        overhead = _elapsed(start)

        skip_run = self.configuration.run.skip_run.value
        if skip_run:
            logger.info("SkipRun is set, tests were discovered but not run")
            for container in containers:
                for block in container.blocks:
                    aggregate_tree(block)
                aggregate_container(container)
        else:
            for container in containers:
                self._run_container(container)

        run = build_run_summary(
            containers,
            self.configuration,
            executed_at=executed_at,
            executed=not skip_run,
            framework_overhead=overhead,
        )
        if self.verbosity != "None":
            logger.info(
                "Tests completed",
                result=run.result.value,
                passed=run.passed_count,
                failed=run.failed_count,
                skipped=run.skipped_count,
                inconclusive=run.inconclusive_count,
                not_run=run.not_run_count,
                duration_seconds=round(run.duration.total_seconds(), 3),
            )
        return run

    def _run_container(self, container: Container) -> None:
        if container.error_record:
            # discovery failed, there is nothing to run
            aggregate_container(container)
            return

        if not container.should_run or self._skip.applies(container, container):
            for block in container.blocks:
                self._settle(block, container)
                aggregate_tree(block)
            aggregate_container(container)
            return

        container.executed_at = datetime.now()
        logger.debug("Running container", source="Runtime", container=container.name)
        self._run_children(None, container.blocks, container)
        container.executed = True
        aggregate_container(container)

    def _run_children(
        self,
        parent: Block | None,
        items: Iterable[Block | Test],
        container: Container,
    ) -> None:
        block_setup_ok: bool | None = None
        for item in items:
            if isinstance(item, Test):
                if parent is not None:
                    self._run_test(item, parent, container)
                continue

            if parent is not None and self._will_execute(item, container):
                if block_setup_ok is None:
                    block_setup_ok = self._invoke_hook(
                        parent.one_time_block_setup,
                        parent.data,
                        parent,
                        ErrorCategory.SETUP,
                    )
                if not block_setup_ok:
                    aggregate_tree(item)
                    continue
            self._run_block(item, parent, container)

        if parent is not None and block_setup_ok is not None:
            self._invoke_hook(
                parent.one_time_block_teardown,
                parent.data,
                parent,
                ErrorCategory.TEARDOWN,
            )

    def _will_execute(self, block: Block, container: Container) -> bool:
        """True when at least one test in the block will actually be invoked."""
        if not block.should_run or self._skip.applies(block, container):
            return False
        return any(
            t.should_run
            and (not t.skip or t.explicit)
            and not self._skip.applies(t, container)
            for t in block.iter_tests()
        )

    def _settle(self, block: Block, container: Container) -> None:
        """Mark skipped tests of a block that is not entered."""
        for test in block.iter_tests():
            if (
                test.should_run
                and test.skip
                and not test.explicit
                and not self._skip.applies(test, container)
            ):
                test.set_result(TestResult.SKIPPED)

    def _run_block(
        self, block: Block, parent: Block | None, container: Container
    ) -> None:
        if not self._will_execute(block, container):
            self._settle(block, container)
            aggregate_tree(block)
            return

        block.executed_at = datetime.now()
        logger.debug("Running block", source="Runtime", block=block.full_name)

        entered = True
        if parent is not None:
            entered = self._invoke_hook(
                parent.each_block_setup, parent.data, block, ErrorCategory.SETUP
            )

        setup_ok = False
        if entered:
            setup_ok = self._invoke_hook(
                block.one_time_test_setup, block.data, block, ErrorCategory.SETUP
            )
            if setup_ok:
                self._run_children(block, list(block.order), container)
            else:
                logger.warning(
                    "Block setup failed, its tests will not run",
                    block=block.full_name,
                )
            self._invoke_hook(
                block.one_time_test_teardown, block.data, block, ErrorCategory.TEARDOWN
            )

        if parent is not None:
            self._invoke_hook(
                parent.each_block_teardown, parent.data, block, ErrorCategory.TEARDOWN
            )

        if not setup_ok:
            for child in block.blocks:
                aggregate_tree(child)

        block.executed = True
        aggregate_block(block)

    def _invoke_hook(
        self,
        fn: Callable[..., Any] | None,
        data: Any,
        record_on: Block,
        category: ErrorCategory,
    ) -> bool:
        """Run a block-level hook, recording a failure on ``record_on``."""
        if fn is None:
            return True
        start = time.perf_counter()
        try:
            _call(fn, data)
            return True
        except Exception as e:
            record_on.error_record.append(error_record_from_exception(e, category))
            logger.warning(
                "Hook failed",
                block=record_on.full_name,
                hook=getattr(fn, "__qualname__", repr(fn)),
                phase=category.value,
                error=str(e),
            )
            return False
        finally:
            record_on.own_duration += _elapsed(start)

    def _invoke_test_hook(
        self,
        test: Test,
        fn: Callable[..., Any],
        data: Any,
        category: ErrorCategory,
    ) -> bool:
        try:
            _call(fn, data)
            return True
        except Exception as e:
            test.error_record.append(error_record_from_exception(e, category))
            return False

    def _run_test(self, test: Test, block: Block, container: Container) -> None:
        if not test.should_run:
            return

        if self._skip.applies(test, container):
            logger.debug(
                "Test not run after a previous failure",
                source="Skip",
                test=test.full_name,
                policy=self.policy.value,
            )
            return

        if test.skip and not test.explicit:
            test.set_result(TestResult.SKIPPED)
            logger.debug("Test skipped", source="Skip", test=test.full_name)
            return

        if self.configuration.debug.show_start_markers.value:
            logger.info("Starting test", test=test.full_name)

        start = time.perf_counter()
        test.executed_at = datetime.now()
        runtime = test.framework_data.setdefault("Runtime", {})
        chain = [*reversed(list(block.ancestors())), block]

        runtime["ExecutionStep"] = "EachTestSetup"
        setups_ok = all(
            self._invoke_test_hook(test, b.each_test_setup, b.data, ErrorCategory.SETUP)
            for b in chain
            if b.each_test_setup is not None
        )

        outcome: InvocationResult | None = None
        user = timedelta()
        if setups_ok:
            runtime["ExecutionStep"] = "Test"
            body_start = time.perf_counter()
            outcome = self.executor(test)
            user = _elapsed(body_start)
            test.error_record.extend(outcome.error_record)
            test.standard_output = outcome.standard_output

        runtime["ExecutionStep"] = "EachTestTeardown"
        for b in reversed(chain):
            if b.each_test_teardown is not None:
                self._invoke_test_hook(
                    test, b.each_test_teardown, b.data, ErrorCategory.TEARDOWN
                )
        runtime["ExecutionStep"] = None

        if test.error_record or outcome is None or not outcome.success:
            result = TestResult.FAILED
        elif outcome.result_override is not None:
            result = outcome.result_override
        else:
            result = TestResult.PASSED

        test.set_result(result)
        test.executed = True
        test.user_duration = user
        test.framework_duration = _elapsed(start) - user

        if result is TestResult.FAILED:
            self._skip.record_failure(test, container)
        self._report(test)

    def _report(self, test: Test) -> None:
        navigation = self.configuration.debug.show_navigation_markers.value
        extra = {"site": test.declaration_site} if navigation else {}
        if test.result is TestResult.FAILED and self.verbosity != "None":
            logger.warning(
                "Test failed",
                test=test.full_name,
                errors=[e.message for e in test.error_record],
                **extra,
            )
        elif self.verbosity in ("Detailed", "Diagnostic"):
            logger.info(
                "Test finished",
                test=test.full_name,
                result=test.result.value,
                **extra,
            )
