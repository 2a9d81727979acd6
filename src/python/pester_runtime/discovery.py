"""
Discovery.

Builds the Container -> Block -> Test tree before anything executes. A
container's definition is a callable that receives a TreeBuilder and declares
blocks, tests and hooks on it:

    def define(t):
        with t.describe("Get-Item", tag=["smoke"]):
            t.before_each(reset_state)
            t.it("returns the item", check_item)
            t.it("reads <name>", read_item, for_each=[{"name": "a"}, {"name": "b"}])

Errors raised while a container is discovered are recorded on that container
and never stop other containers from being discovered.
"""

import fnmatch
import importlib.machinery
import importlib.util
import os
import re
import sys
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any

from .configuration.root import PesterConfiguration
from .errors import DiscoveryError, ErrorCategory
from .logging_config import get_logger
from .models import (
    Block,
    Container,
    ContainerInfo,
    ContainerType,
    Test,
    TestResult,
    error_record_from_exception,
)

logger = get_logger(__name__)

Definition = Callable[..., Any]
FileLoader = Callable[[Path], Definition]

_NO_DATA: Any = object()
_TEMPLATE = re.compile(r"<([^<>]+)>")


def expand_name(name: str, data: Mapping[str, Any] | None) -> str:
    """
    Replace ``<key>`` templates in a name with values from a data row.

    ``<_>`` refers to a data item that was not a mapping. Templates without a
    matching key are left as they are.
    """
    if not data:
        return name

    def replace(match: re.Match) -> str:
        key = match.group(1)
        if key in data:
            return str(data[key])
        return match.group(0)

    return _TEMPLATE.sub(replace, name)


def _tags(tag: Iterable[str] | str | None) -> list[str]:
    if tag is None:
        return []
    if isinstance(tag, str):
        return [tag]
    return list(tag)


def _caller_site(depth: int = 2) -> tuple[str | None, int]:
    frame = sys._getframe(depth)
    return frame.f_code.co_filename, frame.f_lineno


class TreeBuilder:
    """
    Declares blocks, tests and hooks into a container.

    Args:
        container: Container receiving the top-level blocks
        fail_on_null_or_empty_for_each: Treat ``for_each=None`` or an empty
            sequence as a discovery error
    """

    def __init__(
        self,
        container: Container | None = None,
        fail_on_null_or_empty_for_each: bool = True,
    ) -> None:
        self.container = (
            container
            if container is not None
            else Container(type=ContainerType.SCRIPT_BLOCK)
        )
        self.fail_on_null_or_empty_for_each = fail_on_null_or_empty_for_each
        self._stack: list[Block] = []
        self._data_stack: list[dict[str, Any]] = []
        self._test_count = 0

    @property
    def current_block(self) -> Block | None:
        return self._stack[-1] if self._stack else None

    def _scope_data(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.container.data or {})
        for row in self._data_stack:
            data.update(row)
        return data

    def _rows(
        self, kind: str, name: str, for_each: Any, allow_null_or_empty: bool
    ) -> list[dict[str, Any] | None]:
        if for_each is _NO_DATA:
            return [None]
        items = list(for_each) if for_each is not None else []
        if not items:
            if self.fail_on_null_or_empty_for_each and not allow_null_or_empty:
                raise DiscoveryError(
                    f"{kind} '{name}' was given for_each with no data. Provide "
                    "at least one item, or set allow_null_or_empty_for_each "
                    "to skip it."
                )
            logger.debug(
                "Empty for_each, nothing declared",
                source="Discovery",
                kind=kind,
                name=name,
            )
            return []
        return [dict(i) if isinstance(i, Mapping) else {"_": i} for i in items]

    def block(
        self,
        name: str,
        body: Definition | None = None,
        *,
        tag: Iterable[str] | str | None = None,
        skip: bool = False,
        focus: bool = False,
        for_each: Any = _NO_DATA,
        allow_null_or_empty_for_each: bool = False,
        file: str | None = None,
        start_line: int | None = None,
    ) -> Any:
        """
        Declare a block.

        Without ``body`` this returns a context manager; blocks and tests
        declared inside the ``with`` statement belong to the new block. With
        ``body``, the body is called with this builder (and the data row as
        keywords) once per ``for_each`` item, and the created blocks are
        returned.
        """
        site_file, site_line = _caller_site()
        file = file if file is not None else site_file
        start_line = start_line if start_line is not None else site_line
        options = {
            "tag": _tags(tag),
            "skip": skip,
            "focus": focus,
            "file": file,
            "start_line": start_line,
        }

        if body is None:
            if for_each is not _NO_DATA:
                raise DiscoveryError(
                    f"Block '{name}' uses for_each and must be given a body"
                )
            return self._block_scope(name, None, body, options)

        blocks = []
        rows = self._rows("Block", name, for_each, allow_null_or_empty_for_each)
        for row in rows:
            with self._block_scope(name, row, body, options) as block:
                body(self, **(row or {}))
            blocks.append(block)
        return blocks

    describe = block
    context = block

    @contextmanager
    def _block_scope(
        self,
        name: str,
        row: dict[str, Any] | None,
        body: Definition | None,
        options: dict[str, Any],
    ) -> Iterator[Block]:
        parent = self.current_block
        self._data_stack.append(row or {})
        expanded = expand_name(name, self._scope_data())
        block = Block(
            name=name,
            data=row,
            expanded_name=expanded,
            script_block=body,
            group_id=f"{options['file']}:{options['start_line']}",
            tag=options["tag"],
            skip=options["skip"],
            focus=options["focus"],
            file=options["file"],
            start_line=options["start_line"],
        )
        if parent is None:
            block.path = [name]
            block.expanded_path = expanded
            self.container.add_block(block)
        else:
            block.path = [*parent.path, name]
            block.expanded_path = f"{parent.expanded_path}.{expanded}"
            parent.add_block(block)

        logger.debug(
            "Found block", source="Discovery", block=block.expanded_path
        )
        self._stack.append(block)
        try:
            yield block
        finally:
            self._stack.pop()
            self._data_stack.pop()

    def test(
        self,
        name: str,
        body: Definition | None = None,
        *,
        tag: Iterable[str] | str | None = None,
        skip: bool = False,
        focus: bool = False,
        for_each: Any = _NO_DATA,
        allow_null_or_empty_for_each: bool = False,
        file: str | None = None,
        start_line: int | None = None,
    ) -> list[Test]:
        """
        Declare a test in the current block.

        A test without a body is pending and is reported as skipped. With
        ``for_each`` one test is created per data item.

        Raises:
            DiscoveryError: If no block is open
        """
        block = self.current_block
        if block is None:
            raise DiscoveryError(f"Test '{name}' must be declared inside a block")

        site_file, site_line = _caller_site()
        file = file if file is not None else site_file
        start_line = start_line if start_line is not None else site_line

        tests = []
        rows = self._rows("Test", name, for_each, allow_null_or_empty_for_each)
        for row in rows:
            scope = self._scope_data()
            scope.update(row or {})
            expanded = expand_name(name, scope)
            self._test_count += 1
            test = Test(
                name=name,
                script_block=body,
                path=[*block.path, name],
                data=row or {},
                expanded_name=expanded,
                expanded_path=f"{block.expanded_path}.{expanded}",
                id=str(self._test_count),
                tag=_tags(tag),
                skip=skip or body is None,
                focus=focus,
                file=file,
                start_line=start_line,
            )
            block.add_test(test)
            tests.append(test)
            logger.debug("Found test", source="Discovery", test=test.expanded_path)
        return tests

    it = test

    def _set_hook(self, slot: str, fn: Definition, label: str) -> Definition:
        block = self.current_block
        if block is None:
            raise DiscoveryError(f"{label} must be declared inside a block")
        if getattr(block, slot) is not None:
            raise DiscoveryError(
                f"{label} is already defined in block '{block.name}'"
            )
        setattr(block, slot, fn)
        return fn

    def before_all(self, fn: Definition) -> Definition:
        """Run once before the tests and child blocks of the current block."""
        return self._set_hook("one_time_test_setup", fn, "BeforeAll")

    def after_all(self, fn: Definition) -> Definition:
        return self._set_hook("one_time_test_teardown", fn, "AfterAll")

    def before_each(self, fn: Definition) -> Definition:
        """Run before every test in the current block and its descendants."""
        return self._set_hook("each_test_setup", fn, "BeforeEach")

    def after_each(self, fn: Definition) -> Definition:
        return self._set_hook("each_test_teardown", fn, "AfterEach")

    def before_each_block(self, fn: Definition) -> Definition:
        return self._set_hook("each_block_setup", fn, "BeforeEachBlock")

    def after_each_block(self, fn: Definition) -> Definition:
        return self._set_hook("each_block_teardown", fn, "AfterEachBlock")

    def before_all_blocks(self, fn: Definition) -> Definition:
        return self._set_hook("one_time_block_setup", fn, "BeforeAllBlocks")

    def after_all_blocks(self, fn: Definition) -> Definition:
        return self._set_hook("one_time_block_teardown", fn, "AfterAllBlocks")


def module_file_loader(attribute: str = "define") -> FileLoader:
    """
    Build a file loader that imports a Python test file.

    The module is executed and its ``attribute`` callable is used as the
    container definition.
    """

    def load(path: Path) -> Definition:
        module_name = "pester_container_" + re.sub(r"\W", "_", path.stem)
        loader = importlib.machinery.SourceFileLoader(module_name, str(path))
        spec = importlib.util.spec_from_file_location(
            module_name, path, loader=loader
        )
        if spec is None or spec.loader is None:
            raise DiscoveryError(f"Cannot load test file: {path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        definition = getattr(module, attribute, None)
        if not callable(definition):
            raise DiscoveryError(f"{path} does not define a callable '{attribute}'")
        return definition

    return load


class Discovery:
    """
    Discovers containers into test trees.

    Args:
        configuration: Run configuration, for FailOnNullOrEmptyForEach
        file_loader: Turns a File container's path into its definition
    """

    def __init__(
        self,
        configuration: PesterConfiguration | None = None,
        file_loader: FileLoader | None = None,
    ) -> None:
        configuration = configuration or PesterConfiguration.default()
        self.fail_on_null_or_empty_for_each = (
            configuration.run.fail_on_null_or_empty_for_each.value
        )
        self.file_loader = file_loader

    def discover(self, container_infos: Iterable[ContainerInfo]) -> list[Container]:
        """
        Discover every container, one per data row of each description.

        Returns:
            Containers in the order given; failed discoveries are included
            with their error records
        """
        containers = []
        for info in container_infos:
            for row in info.data or [None]:
                container = Container.from_info(info, row)
                containers.append(self.discover_container(container))

        logger.info(
            "Discovery finished",
            containers=len(containers),
            tests=sum(len(c.all_tests()) for c in containers),
            failed=sum(1 for c in containers if c.error_record),
        )
        return containers

    def discover_container(self, container: Container) -> Container:
        start = time.perf_counter()
        logger.debug(
            "Discovering container", source="Discovery", container=container.name
        )
        try:
            definition = self._resolve(container)
            builder = TreeBuilder(container, self.fail_on_null_or_empty_for_each)
            definition(builder, **(container.data or {}))
        except Exception as e:
            container.blocks.clear()
            container.error_record.append(
                error_record_from_exception(e, ErrorCategory.DISCOVERY)
            )
            container.result = TestResult.FAILED
            logger.warning(
                "Container discovery failed", container=container.name, error=str(e)
            )
        container.discovery_duration = timedelta(seconds=time.perf_counter() - start)
        return container

    def _resolve(self, container: Container) -> Definition:
        if container.type is ContainerType.SCRIPT_BLOCK:
            if not callable(container.item):
                raise DiscoveryError(
                    f"ScriptBlock container item is not callable: {container.item!r}"
                )
            return container.item

        if self.file_loader is None:
            raise DiscoveryError(
                f"No file loader configured to discover {container.item}"
            )
        return self.file_loader(Path(container.item))


def _is_excluded(path: Path, patterns: Iterable[str]) -> bool:
    full = os.path.abspath(path)
    for pattern in patterns:
        pattern = os.path.abspath(pattern)
        if fnmatch.fnmatch(full, pattern):
            return True
        if full.startswith(pattern.rstrip(os.sep) + os.sep):
            return True
    return False


def find_test_files(
    paths: Iterable[str], exclude_paths: Iterable[str], extension: str
) -> list[Path]:
    """
    Resolve test files from paths, searching directories recursively.

    Files given directly are used whatever their extension; directories
    contribute files whose names end with ``extension`` (case-insensitive).
    """
    exclude_paths = list(exclude_paths)
    suffix = extension.lower()
    found: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            candidates = sorted(
                p
                for p in path.rglob("*")
                if p.is_file() and p.name.lower().endswith(suffix)
            )
        elif path.is_file():
            candidates = [path]
        else:
            logger.warning("Test path not found", path=str(path))
            continue

        for candidate in candidates:
            if _is_excluded(candidate, exclude_paths):
                logger.debug(
                    "Excluded test file", source="Discovery", path=str(candidate)
                )
                continue
            if candidate not in found:
                found.append(candidate)
    return found


def containers_from_configuration(
    configuration: PesterConfiguration,
) -> list[ContainerInfo]:
    """
    Collect container descriptions from the Run section.

    Paths are only searched when Run.Path was set explicitly or when neither
    Run.ScriptBlock nor Run.Container provide containers.
    """
    run = configuration.run
    infos: list[ContainerInfo] = []

    search_paths = run.path.is_modified or not (
        run.script_block.value or run.container.value
    )
    if search_paths:
        for file in find_test_files(
            run.path.value, run.exclude_path.value, run.test_extension.value
        ):
            infos.append(ContainerInfo(type=ContainerType.FILE, item=file))

    for script_block in run.script_block.value:
        infos.append(ContainerInfo(type=ContainerType.SCRIPT_BLOCK, item=script_block))

    infos.extend(run.container.value)
    return infos
