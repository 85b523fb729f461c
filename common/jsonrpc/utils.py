from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Callable, Sequence

import pydantic
from pydantic import Field
from typing_extensions import Self

from ..http.utils import HttpMethod, http_validate_method_name
from ..utils.pydantic import BaseModel


@dataclass(frozen=True)
class JsonRpcMethod(HttpMethod):
    RequestValidator: type[BaseModel]
    ReturnValidator: type[BaseModel] | None

    @classmethod
    def from_handler(cls, handler: Callable, name: str = None) -> Self:
        method = HttpMethod.from_handler(handler)

        req = _create_request_validator(method)
        resp = _create_return_validator(method)

        kwargs = dataclasses.asdict(method)
        kwargs.pop("name")
        kwargs.pop("param_name_list")
        kwargs.pop("ReturnType")

        name = name or method.name
        http_validate_method_name(name)

        return cls(
            **kwargs,
            name=name,
            param_name_list=req.param_name_list,
            RequestValidator=req.RequestValidator,
            ReturnType=resp.ReturnType,
            ReturnValidator=resp.ReturnValidator,
        )


@dataclass(frozen=True)
class _RequestInfo:
    param_name_list: Sequence[str]
    RequestValidator: type[BaseModel]


def _create_request_validator(method: HttpMethod) -> _RequestInfo:
    # Get parameters from the method signature
    param_list = [method.signature.parameters.get(n) for n in method.param_name_list]
    param_dict = {p.name: (p.annotation, Field(...) if p.default is p.empty else p.default) for p in param_list}

    # Create pydantic.BaseModel for input parameters validation
    _RequestValidator = pydantic.create_model(
        f"_JsonRpcRequest[{method.module}:{method.name}]",
        __module__=method.module,
        __base__=BaseModel,
        **param_dict,
    )

    return _RequestInfo(
        param_name_list=method.param_name_list,
        RequestValidator=_RequestValidator,
    )


@dataclass(frozen=True)
class _RespInfo:
    ReturnType: type
    ReturnValidator: type[BaseModel] | None


def _create_return_validator(method: HttpMethod) -> _RespInfo:
    _ReturnType = method.ReturnType
    _ReturnAnnotation = method.signature.return_annotation
    assert _ReturnAnnotation is not method.signature.empty, "Method must return a value"

    if _is_base_model(method.ReturnType):
        # exclude surplus type conversions
        _ReturnValidator = None
    else:
        _ReturnValidator = pydantic.create_model(
            f"_JsonRpcResp[{method.module}:{method.name}]",
            __module__=method.module,
            __base__=BaseModel,
            result=(_ReturnAnnotation, Field(...)),
        )

    return _RespInfo(_ReturnType, _ReturnValidator)


def _is_base_model(cls: type) -> bool:
    try:
        return issubclass(cls, BaseModel)
    except (BaseException,):
        return False
