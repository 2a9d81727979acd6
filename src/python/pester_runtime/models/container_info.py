"""
ContainerInfo model.

Describes a container to be discovered: a test file or an in-memory
definition, plus the optional data rows a data-driven container is run with.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ContainerType
from .formatting import container_item_to_string


class ContainerInfo(BaseModel):
    """Pydantic model for container descriptions coming from configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    type: ContainerType = Field(
        default=ContainerType.FILE, alias="Type", description="File or ScriptBlock"
    )
    item: Any = Field(None, alias="Item", description="Path or test definition")
    data: list[dict[str, Any]] | None = Field(
        None, alias="Data", description="Data rows, one container per row"
    )

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, v: Any) -> ContainerType:
        """Parse the container type case-insensitively."""
        return ContainerType.parse(v, "Type")

    @field_validator("data", mode="before")
    @classmethod
    def validate_data(cls, v: Any) -> Any:
        """Accept a single mapping as one data row."""
        if isinstance(v, Mapping):
            return [dict(v)]
        return v

    @classmethod
    def create(cls) -> "ContainerInfo":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        """Mapping form accepted back by ``Run.Container``; the item is kept as is."""
        return {"Type": self.type.value, "Item": self.item, "Data": self.data}

    def __str__(self) -> str:
        return container_item_to_string(self.type, self.item)
