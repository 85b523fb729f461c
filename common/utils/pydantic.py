from __future__ import annotations

from typing import Annotated, Any

from pydantic import (
    BaseModel as _PydanticBaseModel,
    RootModel as _PydanticRootModel,
    ConfigDict,
    PlainValidator,
    PlainSerializer,
)
from typing_extensions import Self

from .cached import cached_method, cached_property
from .format import has_hex_start, hex_to_int, str_fmt_object


class BaseModel(_PydanticBaseModel):
    model_config = ConfigDict(
        extra="forbid",
        strict=True,
        frozen=True,
        ignored_types=(cached_property, cached_method),
    )

    @classmethod
    def from_json(cls, json_data: str) -> Self:
        return cls.model_validate_json(json_data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls.model_validate(data)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @cached_method
    def to_string(self) -> str:
        return str_fmt_object(self)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return self.to_string()

    def __deepcopy__(self, memo: dict[int, Any] | None = None) -> Self:
        """The object is not mutable, so there is no point in creating a copy."""
        memo[id(self)] = self
        return self


class RootModel(_PydanticRootModel):
    model_config = ConfigDict(
        strict=True,
        ignored_types=(cached_property, cached_method),
    )

    @classmethod
    def from_json(cls, json_data: str) -> Self:
        return cls.model_validate_json(json_data)

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        return cls.model_validate(data)

    def to_json(self) -> str:
        return self.model_dump_json()

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


# Allows: 0x | 0X | 10 | 0xa | 0Xa | 0xA | 0XA | A
def _hex_to_int(value: str | int) -> int | None:
    if isinstance(value, str):
        if (len(value) == 2) and has_hex_start(value):
            return 0
        result = hex_to_int(value)
    elif isinstance(value, int):
        result = value
    else:
        raise ValueError(f"Wrong input type: {type(value).__name__}")

    if result < 0:
        raise ValueError("Input can't be a negative number")
    return result


def _uint_to_hex(value: int | None) -> str | None:
    if value is None:
        return None
    elif isinstance(value, int):
        if value < 0:
            raise ValueError("Input can't be a negative number")
        return hex(value)
    raise ValueError(f"Wrong input type: {type(value).__name__}")


HexUIntField = Annotated[int, PlainValidator(_hex_to_int), PlainSerializer(_uint_to_hex)]
