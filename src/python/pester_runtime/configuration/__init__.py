"""Layered, self-documenting configuration."""

from .loader import ConfigLoader, load_pester_config
from .options import (
    BoolOption,
    Coerced,
    CoercionStatus,
    ContainerInfoArrayOption,
    DecimalOption,
    IntOption,
    Option,
    ScriptBlockArrayOption,
    StringArrayOption,
    StringOption,
)
from .root import PesterConfiguration
from .sections import (
    CodeCoverageConfiguration,
    ConfigurationSection,
    DebugConfiguration,
    FilterConfiguration,
    OptionField,
    OutputConfiguration,
    RunConfiguration,
    ShouldConfiguration,
    TestDriveConfiguration,
    TestRegistryConfiguration,
    TestResultConfiguration,
)

__all__ = [
    "BoolOption",
    "CodeCoverageConfiguration",
    "Coerced",
    "CoercionStatus",
    "ConfigLoader",
    "ConfigurationSection",
    "ContainerInfoArrayOption",
    "DebugConfiguration",
    "DecimalOption",
    "FilterConfiguration",
    "IntOption",
    "Option",
    "OptionField",
    "OutputConfiguration",
    "PesterConfiguration",
    "RunConfiguration",
    "ScriptBlockArrayOption",
    "ShouldConfiguration",
    "StringArrayOption",
    "StringOption",
    "TestDriveConfiguration",
    "TestRegistryConfiguration",
    "TestResultConfiguration",
    "load_pester_config",
]
