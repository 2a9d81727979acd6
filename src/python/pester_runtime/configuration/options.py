"""
Self-documenting configuration options.

Every option carries its description and default next to the current value,
and remembers whether the value was explicitly assigned. That flag is what
configuration merging keys on: an option that still holds its original value
never overrides the value from a lower configuration layer.

Options are immutable. Assigning a value produces a new option that keeps the
description and default of the one it replaces.
"""

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from ..errors import ArgumentOutOfRangeError, ConfigurationError
from ..models.container_info import ContainerInfo
from ..models.enums import ContainerType

T = TypeVar("T")

_UNSET: Any = object()

_CONTAINER_KEYS = {"type": "Type", "item": "Item", "data": "Data"}

_BOOL_ADAPTER = TypeAdapter(bool)
_INT_ADAPTER = TypeAdapter(int)
_DECIMAL_ADAPTER = TypeAdapter(Decimal)


class CoercionStatus(Enum):
    """Outcome of coercing a raw value for an option."""

    DEFAULT = "default"
    VALUE = "value"
    INVALID = "invalid"


@dataclass(frozen=True)
class Coerced:
    """Tagged result of a coercion: keep the default, use a value, or reject."""

    status: CoercionStatus
    value: Any = None
    message: str | None = None

    @classmethod
    def keep_default(cls) -> "Coerced":
        return cls(CoercionStatus.DEFAULT)

    @classmethod
    def of(cls, value: Any) -> "Coerced":
        return cls(CoercionStatus.VALUE, value)

    @classmethod
    def invalid(cls, message: str) -> "Coerced":
        return cls(CoercionStatus.INVALID, message=message)


@dataclass(frozen=True)
class Option(Generic[T]):
    """
    A configuration value with its description and default.

    Attributes:
        description: Human readable documentation of the option
        default: Value the option holds when nothing was assigned
        value: Current value
        is_modified: True when the value was explicitly assigned
    """

    description: str
    default: T
    value: T = _UNSET
    is_modified: bool = False

    type_name: ClassVar[str] = "object"
    # Value used when None is assigned; _UNSET means None is rejected.
    empty_value: ClassVar[Any] = _UNSET

    def __post_init__(self) -> None:
        if self.value is _UNSET:
            object.__setattr__(self, "value", self.default)

    def is_original_value(self) -> bool:
        """True while the option was never explicitly assigned."""
        return not self.is_modified

    def coerce(self, raw: Any) -> Coerced:
        raise NotImplementedError

    def with_value(self, raw: Any) -> "Option[T]":
        """
        Return a copy of this option holding an explicitly assigned value.

        Raises:
            ConfigurationError: If the value cannot be converted
            ArgumentOutOfRangeError: If the value is not an allowed choice
        """
        if isinstance(raw, Option):
            raw = raw.value

        result = self.coerce(raw)
        if result.status is CoercionStatus.DEFAULT:
            if self.empty_value is _UNSET:
                raise ConfigurationError(
                    f"{self.type_name} option cannot be assigned None"
                )
            value = self.empty_value
        elif result.status is CoercionStatus.INVALID:
            raise ConfigurationError(result.message or "Invalid value")
        else:
            value = result.value

        return replace(self, value=value, is_modified=True)

    def serialize(self) -> Any:
        """Value as it appears in a configuration mapping."""
        return self.value

    def __str__(self) -> str:
        return f"{self.description} ({self.value}, default: {self.default})"


@dataclass(frozen=True)
class BoolOption(Option[bool]):
    type_name: ClassVar[str] = "bool"

    def coerce(self, raw: Any) -> Coerced:
        if raw is None:
            return Coerced.keep_default()
        try:
            return Coerced.of(_BOOL_ADAPTER.validate_python(raw))
        except ValidationError:
            return Coerced.invalid(f"Expected a boolean value, got {raw!r}")


@dataclass(frozen=True)
class IntOption(Option[int]):
    type_name: ClassVar[str] = "int"

    def coerce(self, raw: Any) -> Coerced:
        if raw is None:
            return Coerced.keep_default()
        if isinstance(raw, bool):
            return Coerced.invalid(f"Expected an integer value, got {raw!r}")
        try:
            return Coerced.of(_INT_ADAPTER.validate_python(raw))
        except ValidationError:
            return Coerced.invalid(f"Expected an integer value, got {raw!r}")


@dataclass(frozen=True)
class DecimalOption(Option[Decimal]):
    type_name: ClassVar[str] = "decimal"

    def __post_init__(self) -> None:
        object.__setattr__(self, "default", Decimal(str(self.default)))
        if self.value is not _UNSET:
            object.__setattr__(self, "value", Decimal(str(self.value)))
        super().__post_init__()

    def coerce(self, raw: Any) -> Coerced:
        if raw is None:
            return Coerced.keep_default()
        if isinstance(raw, bool):
            return Coerced.invalid(f"Expected a decimal value, got {raw!r}")
        if isinstance(raw, float):
            raw = str(raw)
        try:
            return Coerced.of(_DECIMAL_ADAPTER.validate_python(raw))
        except ValidationError:
            return Coerced.invalid(f"Expected a decimal value, got {raw!r}")

    def serialize(self) -> Any:
        value = self.value
        return int(value) if value == value.to_integral_value() else float(value)


@dataclass(frozen=True)
class StringOption(Option[str]):
    """
    String option, optionally restricted to a set of choices.

    Choices are matched case-insensitively and stored in their canonical
    spelling. Aliases map legacy spellings onto a canonical choice.
    """

    choices: tuple[str, ...] | None = field(default=None, compare=False)
    aliases: Mapping[str, str] | None = field(default=None, compare=False)

    type_name: ClassVar[str] = "string"

    def coerce(self, raw: Any) -> Coerced:
        if raw is None:
            return Coerced.keep_default()
        if isinstance(raw, os.PathLike):
            raw = os.fspath(raw)
        if not isinstance(raw, str):
            return Coerced.invalid(f"Expected a string value, got {raw!r}")
        return Coerced.of(self._canonical(raw))

    def _canonical(self, value: str) -> str:
        if self.aliases:
            for alias, target in self.aliases.items():
                if alias.lower() == value.lower():
                    value = target
                    break
        if self.choices is None:
            return value
        for choice in self.choices:
            if choice.lower() == value.lower():
                return choice
        raise ArgumentOutOfRangeError(
            self.description or "value", value, list(self.choices)
        )


@dataclass(frozen=True)
class StringArrayOption(Option[tuple[str, ...]]):
    """Sequence of strings; a single string or path becomes a one-item tuple."""

    type_name: ClassVar[str] = "string[]"
    empty_value: ClassVar[Any] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "default", tuple(self.default))
        if self.value is not _UNSET:
            object.__setattr__(self, "value", tuple(self.value))
        super().__post_init__()

    def coerce(self, raw: Any) -> Coerced:
        if raw is None:
            return Coerced.keep_default()
        if isinstance(raw, (str, os.PathLike)):
            return Coerced.of((os.fspath(raw),))
        if isinstance(raw, (list, tuple, set, frozenset)):
            items = []
            for item in raw:
                if item is None:
                    continue
                if isinstance(item, os.PathLike):
                    item = os.fspath(item)
                items.append(item if isinstance(item, str) else str(item))
            return Coerced.of(tuple(items))
        return Coerced.invalid(f"Expected a string or list of strings, got {raw!r}")

    def serialize(self) -> Any:
        return list(self.value)


@dataclass(frozen=True)
class ScriptBlockArrayOption(Option[tuple[Callable[..., Any], ...]]):
    """Sequence of callables containing test definitions."""

    type_name: ClassVar[str] = "scriptblock[]"
    empty_value: ClassVar[Any] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "default", tuple(self.default))
        if self.value is not _UNSET:
            object.__setattr__(self, "value", tuple(self.value))
        super().__post_init__()

    def coerce(self, raw: Any) -> Coerced:
        if raw is None:
            return Coerced.keep_default()
        if callable(raw):
            return Coerced.of((raw,))
        if isinstance(raw, (list, tuple)):
            if all(callable(item) for item in raw):
                return Coerced.of(tuple(raw))
        return Coerced.invalid(f"Expected a callable or list of callables, got {raw!r}")

    def serialize(self) -> Any:
        return list(self.value)


@dataclass(frozen=True)
class ContainerInfoArrayOption(Option[tuple[ContainerInfo, ...]]):
    """Sequence of container descriptions; mappings are validated into ContainerInfo."""

    type_name: ClassVar[str] = "containerinfo[]"
    empty_value: ClassVar[Any] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "default", tuple(self.default))
        if self.value is not _UNSET:
            object.__setattr__(self, "value", tuple(self.value))
        super().__post_init__()

    def coerce(self, raw: Any) -> Coerced:
        if raw is None:
            return Coerced.keep_default()
        items = raw if isinstance(raw, (list, tuple)) else [raw]
        infos = []
        for item in items:
            if isinstance(item, ContainerInfo):
                infos.append(item)
            elif isinstance(item, Mapping):
                fields = {
                    _CONTAINER_KEYS.get(str(k).lower(), k): v for k, v in item.items()
                }
                # parsed up front so a bad type surfaces as a range error
                fields["Type"] = ContainerType.parse(
                    fields.get("Type", ContainerType.FILE), "Container.Type"
                )
                try:
                    infos.append(ContainerInfo.model_validate(fields))
                except ValidationError as e:
                    raise ConfigurationError(f"Invalid container: {e}") from e
            else:
                return Coerced.invalid(f"Expected ContainerInfo, got {item!r}")
        return Coerced.of(tuple(infos))

    def serialize(self) -> Any:
        return [info.to_dict() for info in self.value]
