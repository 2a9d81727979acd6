"""
Unit tests for discovery.

Tests TreeBuilder declarations, data-driven expansion, discovery error
isolation and test file resolution.
"""

import inspect

import pytest

from pester_runtime.configuration import PesterConfiguration
from pester_runtime.discovery import (
    Discovery,
    TreeBuilder,
    containers_from_configuration,
    expand_name,
    find_test_files,
    module_file_loader,
)
from pester_runtime.errors import DiscoveryError, ErrorCategory
from pester_runtime.models import ContainerInfo, ContainerType, TestResult


def noop(**kwargs):
    pass


class TestExpandName:
    """Unit tests for name templates."""

    def test_replaces_known_keys(self):
        """Test that <key> is replaced with the row value."""
        assert expand_name("adds <a> and <b>", {"a": 1, "b": 2}) == "adds 1 and 2"

    def test_leaves_unknown_keys(self):
        """Test that templates without data stay as written."""
        assert expand_name("adds <a> and <c>", {"a": 1}) == "adds 1 and <c>"

    def test_no_data(self):
        """Test that names without data are unchanged."""
        assert expand_name("plain <x>", None) == "plain <x>"

    def test_underscore_item(self):
        """Test that <_> refers to a non-mapping data item."""
        assert expand_name("value <_>", {"_": 42}) == "value 42"


class TestTreeBuilder:
    """Unit tests for declaring trees."""

    def test_nested_blocks_with_context_managers(self):
        """Test that with-blocks nest and record paths."""
        builder = TreeBuilder()
        with builder.describe("calc") as calc:
            with builder.context("adding") as adding:
                (test,) = builder.it("adds", noop)

        assert builder.container.blocks == [calc]
        assert calc.blocks == [adding]
        assert adding.parent is calc
        assert test.path == ["calc", "adding", "adds"]
        assert test.expanded_path == "calc.adding.adds"
        assert test.block is adding
        assert builder.current_block is None

    def test_declaration_site_of_with_block(self):
        """Test that blocks declared with `with` record the caller line."""
        builder = TreeBuilder()
        with builder.describe("calc") as calc:
            pass

        assert calc.file.endswith("test_discovery.py")
        assert calc.start_line > 0
        assert calc.group_id == f"{calc.file}:{calc.start_line}"

    def test_test_records_call_site(self):
        """Test that tests are located where they are declared, not at their body."""
        builder = TreeBuilder()
        with builder.describe("calc"):
            line = inspect.currentframe().f_lineno + 1
            (test,) = builder.it("adds", noop)

        assert test.file.endswith("test_discovery.py")
        assert test.start_line == line
        assert test.start_line != noop.__code__.co_firstlineno

    def test_shared_body_gets_separate_sites(self):
        """Test that two tests sharing one body have their own sites."""
        builder = TreeBuilder()
        with builder.describe("calc"):
            (first,) = builder.it("a", noop)
            (second,) = builder.it("b", noop)

        assert second.start_line == first.start_line + 1

    def test_explicit_site_wins(self):
        """Test that file and start_line arguments override the call site."""
        builder = TreeBuilder()
        with builder.describe("calc", file="calc.py", start_line=3) as calc:
            (test,) = builder.it("adds", noop, file="calc.py", start_line=4)

        assert calc.declaration_site == "calc.py:3"
        assert test.declaration_site == "calc.py:4"

    def test_block_with_body(self):
        """Test that a block body receives the builder."""
        builder = TreeBuilder()

        def body(t):
            t.it("inner", noop)

        (block,) = builder.describe("outer", body)

        assert [t.name for t in block.tests] == ["inner"]
        assert block.script_block is body

    def test_tags_and_flags(self):
        """Test that tag, skip and focus are recorded."""
        builder = TreeBuilder()
        with builder.describe("calc", tag="unit", focus=True) as calc:
            (test,) = builder.it("adds", noop, tag=["fast", "math"], skip=True)

        assert calc.tag == ["unit"]
        assert calc.focus
        assert test.tag == ["fast", "math"]
        assert test.skip

    def test_pending_test_is_skipped(self):
        """Test that a test without a body is marked skip."""
        builder = TreeBuilder()
        with builder.describe("calc"):
            (test,) = builder.it("not written yet")

        assert test.skip
        assert test.script_block is None

    def test_test_ids_are_unique(self):
        """Test that each declared test gets its own id."""
        builder = TreeBuilder()
        with builder.describe("calc"):
            tests = builder.it("a", noop) + builder.it("b", noop)

        assert [t.id for t in tests] == ["1", "2"]

    def test_test_outside_block_fails(self):
        """Test that top-level tests are rejected."""
        with pytest.raises(DiscoveryError):
            TreeBuilder().it("orphan", noop)

    def test_hook_outside_block_fails(self):
        """Test that top-level hooks are rejected."""
        with pytest.raises(DiscoveryError):
            TreeBuilder().before_each(noop)

    def test_hook_slots(self):
        """Test that each hook lands in its block slot."""
        builder = TreeBuilder()
        hooks = {
            "before_all": "one_time_test_setup",
            "after_all": "one_time_test_teardown",
            "before_each": "each_test_setup",
            "after_each": "each_test_teardown",
            "before_each_block": "each_block_setup",
            "after_each_block": "each_block_teardown",
            "before_all_blocks": "one_time_block_setup",
            "after_all_blocks": "one_time_block_teardown",
        }
        with builder.describe("calc") as calc:
            for method, slot in hooks.items():
                fn = getattr(builder, method)(lambda: None)
                assert getattr(calc, slot) is fn

    def test_hook_used_as_decorator(self):
        """Test that hook methods return the function."""
        builder = TreeBuilder()
        with builder.describe("calc") as calc:

            @builder.before_all
            def setup():
                pass

        assert calc.one_time_test_setup is setup

    def test_duplicate_hook_fails(self):
        """Test that a block accepts one hook per slot."""
        builder = TreeBuilder()
        with builder.describe("calc"):
            builder.after_each(noop)
            with pytest.raises(DiscoveryError, match="already defined"):
                builder.after_each(noop)


class TestForEach:
    """Unit tests for data-driven declarations."""

    def test_one_test_per_row(self):
        """Test that for_each creates one test per data item."""
        builder = TreeBuilder()
        with builder.describe("calc"):
            tests = builder.it(
                "adds <a> to <b>", noop, for_each=[{"a": 1, "b": 2}, {"a": 3, "b": 4}]
            )

        assert [t.expanded_name for t in tests] == ["adds 1 to 2", "adds 3 to 4"]
        assert [t.name for t in tests] == ["adds <a> to <b>"] * 2
        assert tests[1].data == {"a": 3, "b": 4}
        assert tests[1].full_name == "calc.adds 3 to 4"

    def test_scalar_items(self):
        """Test that non-mapping items are bound as _."""
        builder = TreeBuilder()
        with builder.describe("calc"):
            tests = builder.it("value <_>", noop, for_each=[1, 2])

        assert [t.expanded_name for t in tests] == ["value 1", "value 2"]
        assert tests[0].data == {"_": 1}

    def test_block_rows_reach_nested_tests(self):
        """Test that block data expands the names of tests inside it."""
        builder = TreeBuilder()

        def body(t, os_name):
            t.it("runs on <os_name>", noop)

        blocks = builder.describe(
            "<os_name>", body, for_each=[{"os_name": "linux"}, {"os_name": "mac"}]
        )

        assert [b.expanded_name for b in blocks] == ["linux", "mac"]
        assert blocks[0].data == {"os_name": "linux"}
        assert blocks[1].tests[0].expanded_path == "mac.runs on mac"

    def test_container_data_expands_names(self):
        """Test that container data is visible to every name."""
        discovery = Discovery()
        info = ContainerInfo(
            type=ContainerType.SCRIPT_BLOCK,
            item=lambda t, target: t.describe("deploys to <target>", noop_body),
            data=[{"target": "prod"}, {"target": "test"}],
        )

        containers = discovery.discover([info])

        assert len(containers) == 2
        assert containers[0].data == {"target": "prod"}
        assert containers[1].blocks[0].expanded_name == "deploys to test"

    def test_empty_for_each_fails_by_default(self):
        """Test that an empty data set is a discovery error."""
        builder = TreeBuilder()
        with builder.describe("calc"):
            with pytest.raises(DiscoveryError, match="for_each"):
                builder.it("adds", noop, for_each=[])

    def test_none_for_each_fails_by_default(self):
        """Test that None data is a discovery error."""
        builder = TreeBuilder()
        with pytest.raises(DiscoveryError):
            builder.describe("calc", noop_body, for_each=None)

    def test_allow_null_or_empty_for_each(self):
        """Test that the per-call switch declares nothing instead of failing."""
        builder = TreeBuilder()
        with builder.describe("calc") as calc:
            tests = builder.it(
                "adds", noop, for_each=None, allow_null_or_empty_for_each=True
            )

        assert tests == []
        assert calc.tests == []

    def test_configuration_disables_check(self):
        """Test that FailOnNullOrEmptyForEach false allows empty data."""
        builder = TreeBuilder(fail_on_null_or_empty_for_each=False)

        assert builder.describe("calc", noop_body, for_each=[]) == []

    def test_for_each_requires_body_for_blocks(self):
        """Test that a data-driven block cannot be a with-block."""
        with pytest.raises(DiscoveryError):
            TreeBuilder().describe("calc", for_each=[1])


def noop_body(t, **kwargs):
    pass


class TestDiscovery:
    """Unit tests for discovering containers."""

    def test_discovers_script_blocks(self, discover):
        """Test discovering in-memory definitions."""

        def define(t):
            with t.describe("calc"):
                t.it("adds", noop)

        (container,) = discover(define)

        assert container.type is ContainerType.SCRIPT_BLOCK
        assert [t.full_name for t in container.iter_tests()] == ["calc.adds"]
        assert container.error_record == []
        assert container.discovery_duration.total_seconds() >= 0

    def test_failure_is_isolated(self, discover):
        """Test that one failing definition does not stop the others."""

        def broken(t):
            with t.describe("calc"):
                t.it("adds", noop)
            raise RuntimeError("cannot import module")

        def healthy(t):
            with t.describe("strings"):
                t.it("joins", noop)

        first, second = discover(broken, healthy)

        assert first.blocks == []
        assert first.result is TestResult.FAILED
        assert first.error_record[0].category is ErrorCategory.DISCOVERY
        assert "cannot import module" in first.error_record[0].message
        assert second.error_record == []
        assert len(second.all_tests()) == 1

    def test_top_level_test_fails_container(self, discover):
        """Test that a test outside any block fails discovery."""
        (container,) = discover(lambda t: t.it("orphan", noop))

        assert container.result is TestResult.FAILED
        assert "inside a block" in container.error_record[0].message

    def test_configuration_controls_for_each_check(self, discover):
        """Test that Run.FailOnNullOrEmptyForEach reaches the builder."""
        config = PesterConfiguration.from_mapping(
            {"Run": {"FailOnNullOrEmptyForEach": False}}
        )

        def define(t):
            with t.describe("calc"):
                t.it("adds", noop, for_each=[])

        (container,) = discover(define, configuration=config)

        assert container.error_record == []

    def test_file_container_without_loader(self):
        """Test that file containers need a loader."""
        (container,) = Discovery().discover(
            [ContainerInfo(type=ContainerType.FILE, item="a.Tests.py")]
        )

        assert container.result is TestResult.FAILED
        assert "No file loader" in container.error_record[0].message

    def test_module_file_loader(self, tmp_path):
        """Test that Python test files are imported and their definition run."""
        test_file = tmp_path / "calc.Tests.py"
        test_file.write_text(
            "def define(t):\n"
            "    with t.describe('calc'):\n"
            "        t.it('adds', lambda: None)\n"
        )
        discovery = Discovery(file_loader=module_file_loader())

        (container,) = discovery.discover(
            [ContainerInfo(type=ContainerType.FILE, item=test_file)]
        )

        assert container.error_record == []
        (test,) = container.all_tests()
        assert test.full_name == "calc.adds"
        assert test.file == str(test_file)

    def test_module_file_loader_ignores_extension(self, tmp_path):
        """Test that files found with the default .Tests.ps1 extension load."""
        test_file = tmp_path / "calc.Tests.ps1"
        test_file.write_text(
            "def define(t):\n"
            "    with t.describe('calc'):\n"
            "        t.it('adds', lambda: None)\n"
        )
        infos = containers_from_configuration(
            PesterConfiguration.from_mapping({"Run": {"Path": str(tmp_path)}})
        )

        (container,) = Discovery(file_loader=module_file_loader()).discover(infos)

        assert container.error_record == []
        assert [t.full_name for t in container.all_tests()] == ["calc.adds"]

    def test_module_without_definition(self, tmp_path):
        """Test that a file without the definition function fails discovery."""
        test_file = tmp_path / "empty.Tests.py"
        test_file.write_text("x = 1\n")

        (container,) = Discovery(file_loader=module_file_loader()).discover(
            [ContainerInfo(type=ContainerType.FILE, item=test_file)]
        )

        assert "does not define a callable 'define'" in (
            container.error_record[0].message
        )


class TestFindTestFiles:
    """Unit tests for resolving test files."""

    def test_search_directories(self, tmp_path):
        """Test that directories are searched recursively by extension."""
        (tmp_path / "sub").mkdir()
        (tmp_path / "a.Tests.py").write_text("")
        (tmp_path / "sub" / "b.tests.py").write_text("")
        (tmp_path / "helper.py").write_text("")

        files = find_test_files([str(tmp_path)], [], ".Tests.py")

        assert files == [tmp_path / "a.Tests.py", tmp_path / "sub" / "b.tests.py"]

    def test_files_are_taken_as_given(self, tmp_path):
        """Test that a file path is used whatever its name."""
        helper = tmp_path / "helper.py"
        helper.write_text("")

        assert find_test_files([str(helper)], [], ".Tests.py") == [helper]

    def test_exclude_paths(self, tmp_path):
        """Test that excluded directories and patterns are skipped."""
        (tmp_path / "skip").mkdir()
        (tmp_path / "a.Tests.py").write_text("")
        (tmp_path / "skip" / "b.Tests.py").write_text("")
        (tmp_path / "c.Tests.py").write_text("")

        files = find_test_files(
            [str(tmp_path)],
            [str(tmp_path / "skip"), str(tmp_path / "c.*")],
            ".Tests.py",
        )

        assert files == [tmp_path / "a.Tests.py"]

    def test_missing_paths_are_ignored(self, tmp_path):
        """Test that nonexistent paths produce no files."""
        assert find_test_files([str(tmp_path / "nope")], [], ".Tests.py") == []

    def test_containers_from_configuration(self, tmp_path):
        """Test collecting containers from Run options."""
        (tmp_path / "a.Tests.py").write_text("")
        config = PesterConfiguration.from_mapping(
            {
                "Run": {
                    "Path": str(tmp_path),
                    "TestExtension": ".Tests.py",
                    "ScriptBlock": noop_body,
                }
            }
        )

        infos = containers_from_configuration(config)

        assert [i.type for i in infos] == [
            ContainerType.FILE,
            ContainerType.SCRIPT_BLOCK,
        ]
        assert infos[0].item == tmp_path / "a.Tests.py"
        assert infos[1].item is noop_body

    def test_default_path_not_searched_with_script_blocks(self):
        """Test that the default Path is ignored when script blocks are given."""
        config = PesterConfiguration.from_mapping({"Run": {"ScriptBlock": noop_body}})

        infos = containers_from_configuration(config)

        assert len(infos) == 1
        assert infos[0].type is ContainerType.SCRIPT_BLOCK
