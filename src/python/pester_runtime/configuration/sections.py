"""
Configuration sections.

Each section declares its options as class-level ``OptionField`` descriptors,
so the list of options is explicit per section. Reading an attribute returns
the Option (value, description and default together); assigning a plain value
or another Option records an explicit assignment:

    run = RunConfiguration()
    run.exit = True
    run.exit.value          # True
    run.exit.is_modified    # True

Sections are built from sparse mappings (unset keys keep their defaults),
cloned, merged per option and serialized back into sparse mappings.
"""

from collections.abc import Iterator, Mapping
from typing import Any, ClassVar

from ..errors import ArgumentOutOfRangeError, MergeError
from ..logging_config import get_logger
from .options import (
    BoolOption,
    CoercionStatus,
    ContainerInfoArrayOption,
    DecimalOption,
    Option,
    ScriptBlockArrayOption,
    StringArrayOption,
    StringOption,
)

logger = get_logger(__name__)


class OptionField:
    """Descriptor declaring one option of a configuration section."""

    def __init__(
        self,
        key: str,
        option_type: type[Option[Any]],
        description: str,
        default: Any,
        **option_kwargs: Any,
    ) -> None:
        self.key = key
        self.option_type = option_type
        self.description = description
        self.default = default
        self.option_kwargs = option_kwargs
        self.name = key

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def create(self) -> Option[Any]:
        return self.option_type(self.description, self.default, **self.option_kwargs)

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance._options[self.name]

    def __set__(self, instance: "ConfigurationSection", value: Any) -> None:
        current = instance._options[self.name]
        try:
            instance._options[self.name] = current.with_value(value)
        except ArgumentOutOfRangeError as e:
            raise ArgumentOutOfRangeError(
                f"{instance.section_name}.{self.key}", e.value, e.allowed
            ) from None


def _unwrap_serialized_option(raw: Any) -> tuple[bool, Any]:
    """
    Accept the serialized option shape ``{"Value": ..., "IsModified": ...}``.

    Returns (present, value); options saved with IsModified false are treated
    as absent so they keep their default.
    """
    if isinstance(raw, Option):
        return True, raw.value
    if isinstance(raw, Mapping):
        lowered = {str(k).lower(): v for k, v in raw.items()}
        if "value" in lowered and set(lowered) <= {
            "value",
            "ismodified",
            "default",
            "description",
        }:
            if lowered.get("ismodified") is False:
                return False, None
            return True, lowered["value"]
    return True, raw


class ConfigurationSection:
    """Base class of a named group of options."""

    section_name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    _fields: ClassVar[dict[str, OptionField]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        fields: dict[str, OptionField] = {}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, OptionField):
                    fields[name] = value
        cls._fields = fields

    def __init__(self, **values: Any) -> None:
        self._options: dict[str, Option[Any]] = {
            name: f.create() for name, f in self._fields.items()
        }
        for name, value in values.items():
            if name not in self._fields:
                raise TypeError(
                    f"{type(self).__name__} has no option named {name!r}"
                )
            setattr(self, name, value)

    @classmethod
    def default(cls) -> "ConfigurationSection":
        return cls()

    @classmethod
    def field_for_key(cls, key: str) -> OptionField | None:
        """Find an option by its external key, case-insensitively."""
        lowered = key.lower()
        for f in cls._fields.values():
            if f.key.lower() == lowered or f.name.lower() == lowered:
                return f
        return None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "ConfigurationSection":
        """
        Build a section from a sparse mapping.

        Keys are matched case-insensitively. Absent keys keep their defaults,
        unknown keys are ignored, and values of the wrong type fall back to the
        default with a warning. Values outside an option's choices raise.
        """
        section = cls()
        if not mapping:
            return section

        for raw_key, raw in mapping.items():
            f = cls.field_for_key(str(raw_key))
            if f is None:
                logger.debug(
                    "Ignoring unknown configuration key",
                    source="Configuration",
                    section=cls.section_name,
                    key=raw_key,
                )
                continue

            present, raw = _unwrap_serialized_option(raw)
            if not present:
                continue

            option = section._options[f.name]
            try:
                result = option.coerce(raw)
            except ArgumentOutOfRangeError as e:
                raise ArgumentOutOfRangeError(
                    f"{cls.section_name}.{f.key}", e.value, e.allowed
                ) from None

            if result.status is CoercionStatus.DEFAULT:
                continue
            if result.status is CoercionStatus.INVALID:
                logger.warning(
                    "Invalid configuration value, keeping default",
                    source="Configuration",
                    section=cls.section_name,
                    key=f.key,
                    reason=result.message,
                )
                continue

            section._options[f.name] = option.with_value(result.value)

        return section

    @classmethod
    def _check_type(cls, *sections: Any) -> None:
        for section in sections:
            if type(section) is not cls:
                raise MergeError(
                    f"Expected {cls.__name__}, got {type(section).__name__}"
                )

    @classmethod
    def shallow_clone(cls, section: "ConfigurationSection") -> "ConfigurationSection":
        """Copy every option as-is, keeping values and their modified flags."""
        cls._check_type(section)
        clone = cls()
        clone._options = dict(section._options)
        return clone

    @classmethod
    def merge(
        cls,
        configuration: "ConfigurationSection",
        override: "ConfigurationSection",
    ) -> "ConfigurationSection":
        """
        Merge two sections option by option.

        Each option comes from ``override`` when it was explicitly set there,
        otherwise from ``configuration``.
        """
        cls._check_type(configuration, override)
        merged = cls()
        for name in cls._fields:
            try:
                override_option = override._options[name]
                base_option = configuration._options[name]
            except KeyError as e:
                raise MergeError(
                    f"{cls.__name__} option {name!r} is missing from one side"
                ) from e
            merged._options[name] = (
                override_option if override_option.is_modified else base_option
            )
        return merged

    def options(self) -> Iterator[tuple[str, Option[Any]]]:
        """(key, option) pairs in declaration order."""
        for name, f in self._fields.items():
            yield f.key, self._options[name]

    def to_dict(self, modified_only: bool = False) -> dict[str, Any]:
        """Serialize option values, optionally only the explicitly set ones."""
        return {
            key: option.serialize()
            for key, option in self.options()
            if option.is_modified or not modified_only
        }

    def describe(self) -> dict[str, str]:
        return {key: str(option) for key, option in self.options()}

    def values(self) -> dict[str, Any]:
        return {key: option.value for key, option in self.options()}

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.values() == other.values()

    def __repr__(self) -> str:
        items = ", ".join(f"{k}={v!r}" for k, v in self.values().items())
        return f"{type(self).__name__}({items})"


class RunConfiguration(ConfigurationSection):
    section_name = "Run"
    description = (
        "General runtime options for Pester including tests containers to execute."
    )

    path = OptionField(
        "Path",
        StringArrayOption,
        "Directories to be searched for tests, paths directly to test files, "
        "or combination of both.",
        ["."],
    )
    exclude_path = OptionField(
        "ExcludePath",
        StringArrayOption,
        "Directories or files to be excluded from the run.",
        [],
    )
    script_block = OptionField(
        "ScriptBlock",
        ScriptBlockArrayOption,
        "ScriptBlocks containing tests to be executed.",
        [],
    )
    container = OptionField(
        "Container",
        ContainerInfoArrayOption,
        "ContainerInfo objects containing tests to be executed.",
        [],
    )
    test_extension = OptionField(
        "TestExtension",
        StringOption,
        "Filter used to identify test files.",
        ".Tests.ps1",
    )
    exit = OptionField(
        "Exit",
        BoolOption,
        "Exit with non-zero exit code when the test run fails. When used "
        "together with Throw, throwing an exception is preferred.",
        False,
    )
    throw = OptionField(
        "Throw",
        BoolOption,
        "Throw an exception when test run fails. When used together with Exit, "
        "throwing an exception is preferred.",
        False,
    )
    pass_thru = OptionField(
        "PassThru",
        BoolOption,
        "Return result object to the pipeline after finishing the test run.",
        False,
    )
    skip_run = OptionField(
        "SkipRun",
        BoolOption,
        "Runs the discovery phase but skips run. Use it with PassThru to get "
        "object populated with all tests.",
        False,
    )
    skip_remaining_on_failure = OptionField(
        "SkipRemainingOnFailure",
        StringOption,
        "Skips remaining tests after failure for selected scope, options are "
        "None, Run, Container and Block.",
        "None",
        choices=("None", "Run", "Container", "Block"),
    )
    fail_on_null_or_empty_for_each = OptionField(
        "FailOnNullOrEmptyForEach",
        BoolOption,
        "Fails discovery when -ForEach is provided $null or @() in a block or "
        "test. Can be overriden for a specific Describe/Context/It using "
        "-AllowNullOrEmptyForEach.",
        True,
    )


class FilterConfiguration(ConfigurationSection):
    section_name = "Filter"
    description = (
        "Filter options to include/exclude tests and blocks in the targeted "
        "containers using tags, name or location. Include by default when no "
        "include filters are provided. Exclude filters take precedence."
    )

    tag = OptionField(
        "Tag", StringArrayOption, "Tags of Describe, Context or It to be run.", []
    )
    exclude_tag = OptionField(
        "ExcludeTag",
        StringArrayOption,
        "Tags of Describe, Context or It to be excluded from the run.",
        [],
    )
    line = OptionField(
        "Line",
        StringArrayOption,
        "Filter by file and scriptblock start line, useful to run parsed tests "
        "programmatically to avoid problems with expanded names. Explicit filter "
        "that overrides -Skip. Example: 'C:\\tests\\file1.Tests.ps1:37'",
        [],
    )
    exclude_line = OptionField(
        "ExcludeLine",
        StringArrayOption,
        "Exclude by file and scriptblock start line, takes precedence over Line.",
        [],
    )
    full_name = OptionField(
        "FullName",
        StringArrayOption,
        "Full name of test with -like wildcards, joined by dot. "
        "Example: '*.describe Get-Item.test1'",
        [],
    )


class CodeCoverageConfiguration(ConfigurationSection):
    section_name = "CodeCoverage"
    description = "Options to enable and configure Pester's code coverage feature."

    enabled = OptionField("Enabled", BoolOption, "Enable CodeCoverage.", False)
    output_format = OptionField(
        "OutputFormat",
        StringOption,
        "Format to use for code coverage report. Possible values: JaCoCo, "
        "CoverageGutters, Cobertura",
        "JaCoCo",
        choices=("JaCoCo", "CoverageGutters", "Cobertura"),
    )
    output_path = OptionField(
        "OutputPath",
        StringOption,
        "Path relative to the current directory where code coverage report is saved.",
        "coverage.xml",
    )
    output_encoding = OptionField(
        "OutputEncoding", StringOption, "Encoding of the output file.", "UTF8"
    )
    path = OptionField(
        "Path",
        StringArrayOption,
        "Directories or files to be used for code coverage, by default the "
        "Path(s) from general settings are used, unless overridden here.",
        [],
    )
    exclude_tests = OptionField(
        "ExcludeTests",
        BoolOption,
        "Exclude tests from code coverage. This uses the TestFilter from "
        "general configuration.",
        True,
    )
    recurse_paths = OptionField(
        "RecursePaths",
        BoolOption,
        "Will recurse through directories in the Path option.",
        True,
    )
    coverage_percent_target = OptionField(
        "CoveragePercentTarget",
        DecimalOption,
        "Target percent of code coverage that you want to achieve, default 75%.",
        75,
    )
    use_breakpoints = OptionField(
        "UseBreakpoints",
        BoolOption,
        "When false, use Profiler based tracer to do CodeCoverage instead of "
        "using breakpoints.",
        False,
    )
    single_hit_breakpoints = OptionField(
        "SingleHitBreakpoints",
        BoolOption,
        "Remove breakpoint when it is hit. This increases performance of "
        "breakpoint based CodeCoverage.",
        True,
    )


class TestResultConfiguration(ConfigurationSection):
    section_name = "TestResult"
    description = (
        "Export options to output Pester's testresult to known file formats "
        "like NUnit and JUnit XML."
    )
    __test__ = False

    enabled = OptionField("Enabled", BoolOption, "Enable TestResult.", False)
    output_format = OptionField(
        "OutputFormat",
        StringOption,
        "Format to use for test result report. Possible values: NUnitXml, "
        "NUnit2.5, NUnit3 or JUnitXml",
        "NUnitXml",
        choices=("NUnitXml", "NUnit2.5", "NUnit3", "JUnitXml"),
    )
    output_path = OptionField(
        "OutputPath",
        StringOption,
        "Path relative to the current directory where test result report is saved.",
        "testResults.xml",
    )
    output_encoding = OptionField(
        "OutputEncoding", StringOption, "Encoding of the output file.", "UTF8"
    )
    test_suite_name = OptionField(
        "TestSuiteName",
        StringOption,
        "Set the name assigned to the root 'test-suite' element.",
        "Pester",
    )


class ShouldConfiguration(ConfigurationSection):
    section_name = "Should"
    description = "Options to control the behavior of the Pester's Should assertions."

    error_action = OptionField(
        "ErrorAction",
        StringOption,
        "Controls if Should throws on error. Use 'Stop' to throw on error, or "
        "'Continue' to fail at the end of the test.",
        "Stop",
        choices=("Stop", "Continue"),
    )
    disable_v5 = OptionField(
        "DisableV5",
        BoolOption,
        "Disables usage of Should -Be assertions, that are replaced by "
        "Should-Be in version 6.",
        False,
    )


class DebugConfiguration(ConfigurationSection):
    section_name = "Debug"
    description = "Debug configuration for Pester. Use at your own risk!"

    show_full_errors = OptionField(
        "ShowFullErrors",
        BoolOption,
        "Show full errors including Pester internal stack. This property is "
        "deprecated, and if set to true it will override "
        "Output.StackTraceVerbosity to 'Full'.",
        False,
    )
    write_debug_messages = OptionField(
        "WriteDebugMessages", BoolOption, "Write Debug messages to screen.", False
    )
    write_debug_messages_from = OptionField(
        "WriteDebugMessagesFrom",
        StringArrayOption,
        "Write Debug messages from a given source, WriteDebugMessages must be "
        "set to true for this to work. You can use like wildcards to get "
        "messages from multiple sources, as well as * to get everything.",
        ["Discovery", "Skip", "Mock", "CodeCoverage"],
    )
    show_navigation_markers = OptionField(
        "ShowNavigationMarkers",
        BoolOption,
        "Write paths after every block and test, for easy navigation in VSCode.",
        False,
    )
    show_start_markers = OptionField(
        "ShowStartMarkers",
        BoolOption,
        "Write an indication when each test starts.",
        False,
    )
    return_raw_result_object = OptionField(
        "ReturnRawResultObject",
        BoolOption,
        "Returns unfiltered result object, this is for development only. Do not "
        "rely on this object for additional properties, non-public properties "
        "will be renamed without previous notice.",
        False,
    )


class OutputConfiguration(ConfigurationSection):
    section_name = "Output"
    description = "Output configuration"

    verbosity = OptionField(
        "Verbosity",
        StringOption,
        "The verbosity of output, options are None, Normal, Detailed and Diagnostic.",
        "Normal",
        choices=("None", "Normal", "Detailed", "Diagnostic"),
        aliases={"Minimal": "Normal"},
    )
    stack_trace_verbosity = OptionField(
        "StackTraceVerbosity",
        StringOption,
        "The verbosity of stacktrace output, options are None, FirstLine, "
        "Filtered and Full.",
        "Filtered",
        choices=("None", "FirstLine", "Filtered", "Full"),
    )
    ci_format = OptionField(
        "CIFormat",
        StringOption,
        "The CI format of output in build logs, options are None, Auto, "
        "AzureDevops and GithubActions.",
        "Auto",
        choices=("None", "Auto", "AzureDevops", "GithubActions"),
    )


class TestDriveConfiguration(ConfigurationSection):
    section_name = "TestDrive"
    description = "Options to configure the TestDrive feature."
    __test__ = False

    enabled = OptionField("Enabled", BoolOption, "Enable TestDrive.", True)


class TestRegistryConfiguration(ConfigurationSection):
    section_name = "TestRegistry"
    description = (
        "Options to configure the TestRegistry feature. TestRegistry is only "
        "available on Windows-systems."
    )
    __test__ = False

    enabled = OptionField("Enabled", BoolOption, "Enable TestRegistry.", True)
