"""
Configuration loader.

Builds a PesterConfiguration from layered sources: defaults, a YAML or JSON
file, PESTER_* environment variables and caller overrides. Each layer is
parsed into its own configuration and the layers are merged option by option,
so a later layer only replaces the options it explicitly sets.
"""

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from ..errors import ConfigurationError
from ..logging_config import get_logger
from ..models.formatting import to_plain
from .options import ContainerInfoArrayOption, ScriptBlockArrayOption, StringArrayOption
from .root import PesterConfiguration

logger = get_logger(__name__)

ENV_PREFIX = "PESTER_"
DEFAULT_CONFIG_FILENAME = "pester.yaml"


class ConfigLoader:
    """
    Loads Pester configuration from multiple sources.

    Precedence, lowest first: defaults, configuration file, environment
    variables, explicit overrides.
    """

    def __init__(
        self,
        config_search_paths: list[str] | None = None,
        env_prefix: str = ENV_PREFIX,
    ) -> None:
        """
        Initialize configuration loader.

        Args:
            config_search_paths: List of paths to search for config files
            env_prefix: Prefix of environment variables holding overrides
        """
        self.config_search_paths = (
            config_search_paths
            if config_search_paths is not None
            else self._get_default_search_paths()
        )
        self.env_prefix = env_prefix

    def _get_default_search_paths(self) -> list[str]:
        return [
            ".",
            "config",
            str(Path.home() / ".config" / "pester"),
        ]

    def find_config_file(self, filename: str = DEFAULT_CONFIG_FILENAME) -> Path | None:
        """
        Find configuration file in search paths.

        Args:
            filename: Configuration filename to search for

        Returns:
            Path to configuration file if found, None otherwise
        """
        filenames = [filename]
        if filename.endswith(".yaml"):
            filenames.append(filename.replace(".yaml", ".yml"))
        elif filename.endswith(".yml"):
            filenames.append(filename.replace(".yml", ".yaml"))

        base_name = filename.rsplit(".", 1)[0]
        filenames.append(f"{base_name}.json")

        for search_path in self.config_search_paths:
            search_dir = Path(search_path)
            if not search_dir.is_dir():
                continue

            for fname in filenames:
                config_file = search_dir / fname
                if config_file.is_file():
                    logger.info("Found configuration file", path=str(config_file))
                    return config_file

        logger.debug(
            "No configuration file found", source="Configuration", filename=filename
        )
        return None

    def load_yaml_config(self, file_path: Path) -> dict[str, Any]:
        """
        Load configuration mapping from YAML file.

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        try:
            with open(file_path, encoding="utf-8") as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}", str(file_path)
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read configuration file: {e}", str(file_path)
            ) from e

        return self._check_mapping(config_dict, file_path)

    def load_json_config(self, file_path: Path) -> dict[str, Any]:
        """
        Load configuration mapping from JSON file.

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        try:
            with open(file_path, encoding="utf-8") as f:
                config_dict = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Failed to parse JSON configuration: {e}", str(file_path)
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read configuration file: {e}", str(file_path)
            ) from e

        return self._check_mapping(config_dict, file_path)

    def _check_mapping(self, config_dict: Any, file_path: Path) -> dict[str, Any]:
        # An empty file is an empty configuration.
        if config_dict is None:
            return {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration file must contain a mapping, "
                f"got {type(config_dict).__name__}",
                str(file_path),
            )
        logger.info("Loaded configuration file", path=str(file_path))
        return config_dict

    def load_from_file(self, file_path: Path | str) -> dict[str, Any]:
        """
        Load configuration mapping from file, detecting the format.

        Args:
            file_path: Path to configuration file

        Returns:
            Sparse configuration mapping

        Raises:
            ConfigurationError: If file cannot be loaded
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}", str(file_path)
            )

        suffix = file_path.suffix.lower()
        if suffix in (".yaml", ".yml"):
            return self.load_yaml_config(file_path)
        if suffix == ".json":
            return self.load_json_config(file_path)

        # YAML is a superset of JSON, so one parser covers both.
        return self.load_yaml_config(file_path)

    def load_from_env(self, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
        """
        Collect overrides from environment variables.

        ``PESTER_RUN_EXIT=true`` sets Run.Exit, ``PESTER_FILTER_TAG=a,b`` sets
        Filter.Tag. Section and option names are case-insensitive and may use
        underscores between words (``PESTER_OUTPUT_STACK_TRACE_VERBOSITY``).

        Args:
            environ: Environment to read, defaults to ``os.environ``

        Returns:
            Sparse configuration mapping
        """
        environ = os.environ if environ is None else environ
        result: dict[str, dict[str, Any]] = {}

        for name, raw in environ.items():
            if not name.upper().startswith(self.env_prefix.upper()):
                continue
            rest = name[len(self.env_prefix):].upper()
            resolved = self._resolve_env_name(rest)
            if resolved is None:
                logger.debug(
                    "Ignoring unknown environment override",
                    source="Configuration",
                    variable=name,
                )
                continue

            section_key, field = resolved
            option_type = field.option_type
            if option_type in (ScriptBlockArrayOption, ContainerInfoArrayOption):
                logger.warning(
                    "Option cannot be set from the environment",
                    source="Configuration",
                    variable=name,
                )
                continue
            if option_type is StringArrayOption:
                value: Any = [item.strip() for item in raw.split(",") if item.strip()]
            else:
                value = raw

            result.setdefault(section_key, {})[field.key] = value

        if result:
            logger.info(
                "Collected environment overrides",
                sections=sorted(result),
            )
        return result

    def _resolve_env_name(self, rest: str) -> tuple[str, Any] | None:
        for name, section_field in PesterConfiguration._section_fields.items():
            section_type = section_field.section_type
            for candidate in (section_type.section_name.upper(), name.upper()):
                if not rest.startswith(candidate + "_"):
                    continue
                option_part = rest[len(candidate) + 1:].replace("_", "").lower()
                for field in section_type._fields.values():
                    if field.key.lower() == option_part:
                        return section_type.section_name, field
        return None

    def load_config(
        self,
        config_file: str | Path | None = None,
        overrides: Mapping[str, Any] | PesterConfiguration | None = None,
        include_env: bool = True,
        search: bool = True,
    ) -> PesterConfiguration:
        """
        Load configuration from all sources.

        Args:
            config_file: Specific configuration file path (optional)
            overrides: Highest precedence layer, as a sparse mapping or a
                configuration object
            include_env: Whether to include environment variables
            search: Whether to search for a configuration file when none is
                given

        Returns:
            Merged configuration

        Raises:
            ConfigurationError: If a source cannot be loaded or holds an
                invalid value
        """
        layers: list[tuple[str, PesterConfiguration]] = []

        file_path = Path(config_file) if config_file else None
        if file_path is None and search:
            file_path = self.find_config_file()
        if file_path is not None:
            source = str(file_path)
            layers.append((source, self._parse(self.load_from_file(file_path), source)))

        if include_env:
            env_mapping = self.load_from_env()
            if env_mapping:
                layers.append(("environment", self._parse(env_mapping, "environment")))

        if overrides is not None:
            if isinstance(overrides, PesterConfiguration):
                layers.append(("overrides", overrides))
            else:
                layers.append(("overrides", self._parse(overrides, "overrides")))

        config = PesterConfiguration.default()
        for source, layer in layers:
            config = PesterConfiguration.merge(config, layer)
            logger.debug(
                "Merged configuration layer", source="Configuration", layer=source
            )

        return config

    def _parse(self, mapping: Mapping[str, Any], source: str) -> PesterConfiguration:
        try:
            return PesterConfiguration.from_mapping(mapping)
        except ConfigurationError as e:
            if e.source is None:
                e.source = source
            raise

    def save_config(
        self,
        config: PesterConfiguration,
        output_path: Path | str,
        format_type: str = "yaml",
        modified_only: bool = True,
    ) -> None:
        """
        Save configuration to file.

        Args:
            config: Configuration to save
            output_path: Output file path
            format_type: Output format ("yaml" or "json")
            modified_only: Write only explicitly set options

        Raises:
            ConfigurationError: If saving fails
        """
        output_path = Path(output_path)
        config_dict = to_plain(config.to_dict(modified_only=modified_only))

        try:
            if format_type.lower() == "yaml":
                with open(output_path, "w", encoding="utf-8") as f:
                    yaml.safe_dump(
                        config_dict,
                        f,
                        default_flow_style=False,
                        indent=2,
                        sort_keys=False,
                    )
            elif format_type.lower() == "json":
                with open(output_path, "w", encoding="utf-8") as f:
                    json.dump(config_dict, f, indent=2)
            else:
                raise ConfigurationError(
                    f"Unsupported format: {format_type}", str(output_path)
                )
        except OSError as e:
            raise ConfigurationError(
                f"Failed to save configuration: {e}", str(output_path)
            ) from e

        logger.info("Saved configuration", path=str(output_path))


def load_pester_config(
    config_file: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> PesterConfiguration:
    """
    Load configuration with default settings.

    Raises:
        ConfigurationError: If configuration cannot be loaded
    """
    loader = ConfigLoader()
    return loader.load_config(config_file, overrides)
