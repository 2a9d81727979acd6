"""
Unit tests for the pester-runtime command line.
"""

import json

import pytest
import yaml

from pester_runtime.cli import main, parse_assignments
from pester_runtime.errors import ConfigurationError

TEST_FILE = """
def fails():
    raise AssertionError("expected 2, got 3")


def define(t):
    with t.describe("calc", tag=["unit"]):
        t.it("adds", lambda: None)
        t.it("divides", fails)
        t.it("rounds", lambda: None, tag=["slow"])
"""


class TestParseAssignments:
    """Unit tests for parse_assignments."""

    def test_values_are_typed(self):
        """Test that values are parsed as YAML scalars and sequences."""
        mapping = parse_assignments(
            [
                "Run.Exit=true",
                "CodeCoverage.CoveragePercentTarget=80",
                "Filter.Tag=[fast, unit]",
                "Output.Verbosity=Detailed",
            ]
        )

        assert mapping == {
            "Run": {"Exit": True},
            "CodeCoverage": {"CoveragePercentTarget": 80},
            "Filter": {"Tag": ["fast", "unit"]},
            "Output": {"Verbosity": "Detailed"},
        }

    def test_empty_value_is_none(self):
        """Test that an empty value clears the option."""
        assert parse_assignments(["Run.Path="]) == {"Run": {"Path": None}}

    @pytest.mark.parametrize("assignment", ["Run.Exit", "Exit=true", ".Exit=1"])
    def test_malformed(self, assignment):
        """Test that malformed assignments are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            parse_assignments([assignment])

        assert exc_info.value.source == "--set"


class TestConfigCommands:
    """Unit tests for the config subcommands."""

    def test_show_modified_only(self, capsys):
        """Test that config show prints only the options that were set."""
        code = main(
            [
                "config",
                "show",
                "--no-env",
                "--set",
                "Run.Exit=true",
                "--modified-only",
                "--format",
                "json",
            ]
        )

        assert code == 0
        assert json.loads(capsys.readouterr().out) == {"Run": {"Exit": True}}

    def test_show_reads_file(self, tmp_path, capsys):
        """Test that a configuration file is layered below --set."""
        config_file = tmp_path / "pester.yaml"
        config_file.write_text(
            yaml.safe_dump({"Run": {"Exit": True}, "Output": {"Verbosity": "Normal"}})
        )

        code = main(
            [
                "config",
                "show",
                "--no-env",
                "--file",
                str(config_file),
                "--set",
                "Output.Verbosity=Detailed",
                "--modified-only",
            ]
        )

        assert code == 0
        shown = yaml.safe_load(capsys.readouterr().out)
        assert shown["Run"] == {"Exit": True}
        assert shown["Output"] == {"Verbosity": "Detailed"}

    def test_merge(self, tmp_path, capsys):
        """Test that config merge keeps base options the override leaves unset."""
        base = tmp_path / "base.yaml"
        override = tmp_path / "override.json"
        base.write_text(
            yaml.safe_dump({"Run": {"Exit": True}, "Filter": {"Tag": ["unit"]}})
        )
        override.write_text(json.dumps({"Filter": {"Tag": ["fast"]}}))

        code = main(
            ["config", "merge", str(base), str(override), "--modified-only"]
        )

        assert code == 0
        merged = yaml.safe_load(capsys.readouterr().out)
        assert merged == {"Run": {"Exit": True}, "Filter": {"Tag": ["fast"]}}

    def test_describe_section(self, capsys):
        """Test that config describe lists the options of one section."""
        code = main(["config", "describe", "run"])

        out = capsys.readouterr().out
        assert code == 0
        assert out.startswith("Run: ")
        assert "  Exit: " in out
        assert "Filter:" not in out

    def test_invalid_value_exits_with_two(self, capsys):
        """Test that an invalid option value is reported as a configuration error."""
        code = main(
            ["config", "show", "--no-env", "--set", "Output.Verbosity=Loud"]
        )

        assert code == 2
        err = capsys.readouterr().err
        assert "Configuration error" in err
        assert "Source: overrides" in err

    def test_malformed_set_exits_with_two(self, capsys):
        """Test that a malformed --set is reported with its source."""
        code = main(["config", "show", "--no-env", "--set", "Run.Exit"])

        assert code == 2
        assert "Source: --set" in capsys.readouterr().err


class TestRunCommand:
    """Unit tests for the run subcommand."""

    def setup_method(self):
        self.argv = ["run", "--no-env", "--extension", ".Tests.py"]

    def test_failed_run_exit_code(self, tmp_path, capsys):
        """Test that Run.Exit turns failures into a non-zero exit code."""
        (tmp_path / "calc.Tests.py").write_text(TEST_FILE)

        code = main([*self.argv, str(tmp_path), "--set", "Run.Exit=true"])

        out = capsys.readouterr().out
        # one failed test, its block and its container
        assert code == 3
        assert "calc.divides" in out
        assert "2 passed, 1 failed" in out

    def test_throw_is_reported_without_traceback(self, tmp_path, capsys):
        """Test that Run.Throw ends the command with an exit code, not a traceback."""
        (tmp_path / "calc.Tests.py").write_text(TEST_FILE)

        code = main([*self.argv, str(tmp_path), "--set", "Run.Throw=true"])

        captured = capsys.readouterr()
        assert code == 3
        assert "2 passed, 1 failed" in captured.out
        assert "Run failed: Pester run failed" in captured.err

    def test_failures_without_exit(self, tmp_path, capsys):
        """Test that a failed run exits with zero unless Run.Exit is set."""
        (tmp_path / "calc.Tests.py").write_text(TEST_FILE)

        assert main([*self.argv, str(tmp_path)]) == 0

    def test_tag_filter_and_json(self, tmp_path, capsys):
        """Test that tag filters apply and JSON output is a run report."""
        (tmp_path / "calc.Tests.py").write_text(TEST_FILE)

        code = main(
            [
                *self.argv,
                str(tmp_path),
                "--tag",
                "slow",
                "--set",
                "Run.Exit=true",
                "--format",
                "json",
            ]
        )

        report = json.loads(capsys.readouterr().out)
        assert code == 0
        assert report["result"] == "Passed"
        assert report["passed_count"] == 1
        assert report["not_run_count"] == 2
