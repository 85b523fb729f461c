from __future__ import annotations

import inspect
import re
import typing
from dataclasses import dataclass
from inspect import Signature
from types import NoneType
from typing import Any, Callable, Sequence, Union, Annotated, Final

import aiohttp.typedefs
from pydantic import PlainValidator
from typing_extensions import Self

HttpURL = aiohttp.typedefs.URL
HttpStrOrURL = aiohttp.typedefs.StrOrURL
HttpRequestId = Union[str, int, None]

_METHOD_REGEX: Final[re.Pattern] = re.compile(r"^[a-zA-Z]+[a-zA-Z0-9_\-]+[a-zA-Z0-9]+$")


@dataclass(frozen=True)
class HttpMethod:
    handler: Callable

    name: str
    module: str

    is_async_def: bool
    signature: Signature
    type_hint_dict: dict[str, Any]

    has_self: bool
    param_name_list: Sequence[str]
    ReturnType: type

    @classmethod
    def from_handler(cls, handler: Callable) -> Self:
        assert inspect.isfunction(handler), f"Handler {handler} is not a function"

        signature = inspect.signature(handler)
        type_hint_dict = typing.get_type_hints(handler)
        param_name_list = [v.name for v in signature.parameters.values()]

        has_self, param_name_list = _has_self(param_name_list)

        # Type of the return value
        _ReturnType = type_hint_dict.get("return", NoneType)

        return cls(
            handler=handler,
            name=handler.__name__,
            module=handler.__module__,  # noqa
            is_async_def=inspect.iscoroutinefunction(handler),
            signature=signature,
            type_hint_dict=type_hint_dict,
            has_self=has_self,
            param_name_list=param_name_list,
            ReturnType=_ReturnType,
        )


def _has_self(param_name_list: list[str]) -> tuple[bool, list[str]]:
    if param_name_list and (param_name_list[0] == "self"):
        return True, param_name_list[1:]
    return False, param_name_list


def http_validate_method_name(name: str) -> None:
    assert isinstance(name, str)
    assert _METHOD_REGEX.fullmatch(name), f"Invalid method name {name}"


def _validate_request_id(value: HttpRequestId) -> HttpRequestId:
    if (value is None) or isinstance(value, int) or isinstance(value, str):
        return value
    raise ValueError("'id' must be a string or integer")


HttpRequestIdField = Annotated[HttpRequestId, PlainValidator(_validate_request_id)]
