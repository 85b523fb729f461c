from __future__ import annotations

import inspect

from typing_extensions import Self


class _CachedValue:
    __cached_value_dict__ = "__cached_value_dict__"

    def __init__(self, func=None) -> None:
        self._is_async = False
        self._func = None
        if func is not None:
            self.__call__(func)

    def __call__(self, func) -> Self:
        self.__doc__ = getattr(func, "__doc__")
        self.__name__ = getattr(func, "__name__")
        self.__module__ = getattr(func, "__module__")
        self._is_async = inspect.iscoroutinefunction(func)
        self._func = func
        return self

    def _get_cached_value_dict(self, obj) -> dict:
        if not hasattr(obj, self.__cached_value_dict__):
            cached_value_dict = obj.__dict__[self.__cached_value_dict__] = dict()
        else:
            cached_value_dict = obj.__dict__[self.__cached_value_dict__]
        return cached_value_dict


class cached_property(_CachedValue):  # noqa
    def __get__(self, obj, cls):
        if obj is None:
            return self

        value = self._func(obj)
        obj.__dict__[self.__name__] = value
        return value


class cached_method(_CachedValue):  # noqa
    def __get__(self, obj, cls):
        if obj is None:
            return self

        def _wrapper():
            value = self._func(obj)

            def _return_value():
                return value

            obj.__dict__[self.__name__] = _return_value
            return value

        async def _async_wrapper():
            # only one task can change the cached value
            cached_value_dict = self._get_cached_value_dict(obj)
            has_task = self.__name__ in cached_value_dict
            if not has_task:
                cached_value_dict[self.__name__] = True

            try:
                value = await self._func(obj)
            except BaseException:
                if not has_task:
                    cached_value_dict.pop(self.__name__, None)
                raise

            async def _return_value():
                return value

            if not has_task:
                obj.__dict__[self.__name__] = _return_value
            return value

        if self._is_async:
            return _async_wrapper
        return _wrapper
