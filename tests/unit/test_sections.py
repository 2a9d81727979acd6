"""
Unit tests for configuration sections.
"""

import pytest

from pester_runtime.configuration.options import BoolOption
from pester_runtime.configuration.sections import (
    CodeCoverageConfiguration,
    FilterConfiguration,
    OutputConfiguration,
    RunConfiguration,
)
from pester_runtime.errors import ArgumentOutOfRangeError, MergeError


class TestSectionAccess:
    """Unit tests for reading and assigning section options."""

    def test_attribute_returns_option(self):
        """Test that attributes expose the option with its metadata."""
        run = RunConfiguration()

        assert isinstance(run.exit, BoolOption)
        assert run.exit.value is False
        assert run.exit.description.startswith("Exit with non-zero exit code")

    def test_assignment_marks_option_modified(self):
        """Test that assigning a plain value records an explicit assignment."""
        run = RunConfiguration()
        run.exit = True

        assert run.exit.value is True
        assert run.exit.is_modified
        assert not run.throw.is_modified

    def test_invalid_choice_names_section_and_key(self):
        """Test that range errors are qualified with the section name."""
        run = RunConfiguration()

        with pytest.raises(ArgumentOutOfRangeError) as exc_info:
            run.skip_remaining_on_failure = "Everything"

        assert exc_info.value.name == "Run.SkipRemainingOnFailure"
        assert run.skip_remaining_on_failure.value == "None"

    def test_constructor_keywords(self):
        """Test that options can be assigned through the constructor."""
        run = RunConfiguration(path=["tests"], pass_thru=True)

        assert run.path.value == ("tests",)
        assert run.pass_thru.is_modified

    def test_constructor_rejects_unknown_option(self):
        """Test that an unknown keyword is a TypeError."""
        with pytest.raises(TypeError):
            RunConfiguration(paths=["tests"])

    def test_options_are_listed_in_declaration_order(self):
        """Test that options() yields external keys in declaration order."""
        keys = [key for key, _ in FilterConfiguration().options()]

        assert keys == ["Tag", "ExcludeTag", "Line", "ExcludeLine", "FullName"]

    def test_sections_do_not_share_options(self):
        """Test that each instance owns its options."""
        first = RunConfiguration()
        second = RunConfiguration()
        first.exit = True

        assert second.exit.value is False


class TestSectionFromMapping:
    """Unit tests for building sections from sparse mappings."""

    def test_keys_are_case_insensitive(self):
        """Test that keys match regardless of case."""
        run = RunConfiguration.from_mapping({"pAtH": "tests", "exit": "true"})

        assert run.path.value == ("tests",)
        assert run.exit.value is True
        assert run.exit.is_modified

    def test_absent_keys_keep_defaults(self):
        """Test that unset options stay unmodified."""
        run = RunConfiguration.from_mapping({"Exit": True})

        assert run.test_extension.value == ".Tests.ps1"
        assert not run.test_extension.is_modified

    def test_unknown_keys_are_ignored(self):
        """Test that unrecognized keys do not fail the section."""
        run = RunConfiguration.from_mapping({"NoSuchOption": 1, "Exit": True})

        assert run.exit.value is True

    def test_wrong_type_keeps_default(self):
        """Test that an uncoercible value leaves the option untouched."""
        run = RunConfiguration.from_mapping({"Exit": "maybe"})

        assert run.exit.value is False
        assert not run.exit.is_modified

    def test_none_keeps_default(self):
        """Test that a null value is treated as absent."""
        run = RunConfiguration.from_mapping({"Exit": None})

        assert not run.exit.is_modified

    def test_serialized_option_shape(self):
        """Test that the {Value, IsModified} shape is unwrapped."""
        run = RunConfiguration.from_mapping(
            {
                "Exit": {"Value": True, "IsModified": True},
                "Throw": {"Value": True, "IsModified": False},
            }
        )

        assert run.exit.value is True
        assert run.exit.is_modified
        assert run.throw.value is False
        assert not run.throw.is_modified

    def test_invalid_choice_is_fatal(self):
        """Test that a value outside the choices raises with a qualified name."""
        with pytest.raises(ArgumentOutOfRangeError) as exc_info:
            OutputConfiguration.from_mapping({"Verbosity": "Loud"})

        assert exc_info.value.name == "Output.Verbosity"
        assert exc_info.value.allowed == ["None", "Normal", "Detailed", "Diagnostic"]

    def test_legacy_verbosity_alias(self):
        """Test that Minimal verbosity loads as Normal."""
        output = OutputConfiguration.from_mapping({"Verbosity": "Minimal"})

        assert output.verbosity.value == "Normal"
        assert output.verbosity.is_modified

    def test_decimal_from_string(self):
        """Test that the coverage target accepts numeric strings."""
        coverage = CodeCoverageConfiguration.from_mapping(
            {"CoveragePercentTarget": "80.5"}
        )

        assert coverage.to_dict(modified_only=True) == {"CoveragePercentTarget": 80.5}


class TestSectionMerge:
    """Unit tests for merging and cloning sections."""

    def test_merge_takes_modified_options_from_override(self):
        """Test that each option comes from the side that set it."""
        base = RunConfiguration(exit=True, path=["base"])
        override = RunConfiguration(path=["override"])

        merged = RunConfiguration.merge(base, override)

        assert merged.path.value == ("override",)
        assert merged.exit.value is True
        assert merged.exit.is_modified
        assert not merged.throw.is_modified

    def test_explicit_default_in_override_wins(self):
        """Test that an override set to the default still replaces the base."""
        base = RunConfiguration(exit=True)
        override = RunConfiguration(exit=False)

        merged = RunConfiguration.merge(base, override)

        assert merged.exit.value is False
        assert merged.exit.is_modified

    def test_merge_does_not_modify_inputs(self):
        """Test that merging leaves both inputs unchanged."""
        base = RunConfiguration(exit=True)
        override = RunConfiguration(throw=True)

        merged = RunConfiguration.merge(base, override)
        merged.pass_thru = True

        assert not base.throw.is_modified
        assert not override.exit.is_modified
        assert not base.pass_thru.is_modified

    def test_merge_of_different_sections_fails(self):
        """Test that sections of different kinds cannot be merged."""
        with pytest.raises(MergeError):
            RunConfiguration.merge(RunConfiguration(), FilterConfiguration())

    def test_shallow_clone_keeps_modified_flags(self):
        """Test that a clone is equal and independent."""
        original = FilterConfiguration(tag=["fast"])
        clone = FilterConfiguration.shallow_clone(original)

        assert clone == original
        assert clone.tag.is_modified
        clone.tag = ["slow"]
        assert original.tag.value == ("fast",)

    def test_to_dict_modified_only(self):
        """Test that sparse serialization keeps only set options."""
        run = RunConfiguration(exit=False, path="tests")

        assert run.to_dict(modified_only=True) == {"Path": ["tests"], "Exit": False}
        assert "TestExtension" in run.to_dict()
