"""
Root configuration object.

PesterConfiguration groups one instance of every section. It is built from a
nested sparse mapping, merged layer by layer and serialized back into the
sparse form used in configuration files.
"""

from collections.abc import Iterator, Mapping
from typing import Any, ClassVar

from ..errors import ConfigurationError, MergeError
from ..logging_config import get_logger
from .sections import (
    CodeCoverageConfiguration,
    ConfigurationSection,
    DebugConfiguration,
    FilterConfiguration,
    OutputConfiguration,
    RunConfiguration,
    ShouldConfiguration,
    TestDriveConfiguration,
    TestRegistryConfiguration,
    TestResultConfiguration,
)

logger = get_logger(__name__)


class SectionField:
    """Descriptor for one section of the root configuration."""

    def __init__(self, section_type: type[ConfigurationSection]) -> None:
        self.section_type = section_type
        self.key = section_type.section_name
        self.name = self.key

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance._sections[self.name]

    def __set__(self, instance: "PesterConfiguration", value: Any) -> None:
        if value is None:
            section = self.section_type.default()
        elif isinstance(value, self.section_type):
            section = value
        elif isinstance(value, Mapping):
            section = self.section_type.from_mapping(value)
        else:
            raise ConfigurationError(
                f"{self.key} must be a {self.section_type.__name__} or a mapping, "
                f"got {type(value).__name__}"
            )
        instance._sections[self.name] = section


class PesterConfiguration:
    """
    Complete configuration of a run.

    Example:
        config = PesterConfiguration.from_mapping(
            {"Run": {"Path": "tests"}, "Output": {"Verbosity": "Detailed"}}
        )
        config.filter.tag = ["fast"]
        config.run.path.value        # ("tests",)
    """

    run = SectionField(RunConfiguration)
    filter = SectionField(FilterConfiguration)
    code_coverage = SectionField(CodeCoverageConfiguration)
    test_result = SectionField(TestResultConfiguration)
    should = SectionField(ShouldConfiguration)
    debug = SectionField(DebugConfiguration)
    output = SectionField(OutputConfiguration)
    test_drive = SectionField(TestDriveConfiguration)
    test_registry = SectionField(TestRegistryConfiguration)

    _section_fields: ClassVar[dict[str, SectionField]] = {}

    def __init__(self, **sections: Any) -> None:
        self._sections: dict[str, ConfigurationSection] = {
            name: f.section_type.default() for name, f in self._section_fields.items()
        }
        for name, value in sections.items():
            if name not in self._section_fields:
                raise TypeError(f"PesterConfiguration has no section named {name!r}")
            setattr(self, name, value)

    @classmethod
    def default(cls) -> "PesterConfiguration":
        return cls()

    @classmethod
    def field_for_key(cls, key: str) -> SectionField | None:
        lowered = key.lower()
        for f in cls._section_fields.values():
            if f.key.lower() == lowered or f.name.lower() == lowered:
                return f
        return None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "PesterConfiguration":
        """
        Build a configuration from a nested sparse mapping.

        Args:
            mapping: Section name -> {option name -> value}. Names are matched
                case-insensitively; absent sections and options keep defaults.

        Returns:
            New configuration

        Raises:
            ArgumentOutOfRangeError: If a value is not an allowed choice
            ConfigurationError: If a container description is malformed
        """
        config = cls()
        if not mapping:
            return config

        for raw_key, raw in mapping.items():
            f = cls.field_for_key(str(raw_key))
            if f is None:
                logger.debug(
                    "Ignoring unknown configuration section",
                    source="Configuration",
                    section=raw_key,
                )
                continue
            if isinstance(raw, f.section_type):
                config._sections[f.name] = raw
                continue
            if raw is None:
                continue
            if not isinstance(raw, Mapping):
                logger.warning(
                    "Configuration section is not a mapping, keeping defaults",
                    source="Configuration",
                    section=f.key,
                    value_type=type(raw).__name__,
                )
                continue
            config._sections[f.name] = f.section_type.from_mapping(raw)

        return config

    @classmethod
    def shallow_clone(
        cls, configuration: "PesterConfiguration"
    ) -> "PesterConfiguration":
        """Copy every section; options keep their values and modified flags."""
        if not isinstance(configuration, PesterConfiguration):
            raise MergeError(
                f"Expected PesterConfiguration, got {type(configuration).__name__}"
            )
        clone = cls()
        for name, section in configuration._sections.items():
            clone._sections[name] = type(section).shallow_clone(section)
        return clone

    @classmethod
    def merge(
        cls,
        configuration: "PesterConfiguration",
        override: "PesterConfiguration",
    ) -> "PesterConfiguration":
        """
        Merge two configurations option by option.

        Every option of the result comes from ``override`` when it was
        explicitly set there, otherwise from ``configuration``. Neither input
        is modified.
        """
        for side in (configuration, override):
            if not isinstance(side, PesterConfiguration):
                raise MergeError(
                    f"Expected PesterConfiguration, got {type(side).__name__}"
                )
        merged = cls()
        for name, f in cls._section_fields.items():
            merged._sections[name] = f.section_type.merge(
                configuration._sections[name], override._sections[name]
            )
        return merged

    def sections(self) -> Iterator[tuple[str, ConfigurationSection]]:
        """(key, section) pairs in declaration order."""
        for name, f in self._section_fields.items():
            yield f.key, self._sections[name]

    def to_dict(self, modified_only: bool = False) -> dict[str, Any]:
        """
        Serialize the configuration.

        Args:
            modified_only: Only include explicitly set options, and drop
                sections with none. The result loads back into an equal
                configuration through ``from_mapping``.
        """
        result: dict[str, Any] = {}
        for key, section in self.sections():
            values = section.to_dict(modified_only=modified_only)
            if values or not modified_only:
                result[key] = values
        return result

    def describe(self) -> dict[str, dict[str, str]]:
        return {key: section.describe() for key, section in self.sections()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PesterConfiguration):
            return NotImplemented
        return all(
            self._sections[name] == other._sections[name]
            for name in self._section_fields
        )

    def __repr__(self) -> str:
        return f"PesterConfiguration({self.to_dict(modified_only=True)!r})"


PesterConfiguration._section_fields = {
    name: value
    for name, value in vars(PesterConfiguration).items()
    if isinstance(value, SectionField)
}
