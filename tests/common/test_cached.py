import asyncio
import unittest

from common.utils.cached import cached_property, cached_method


class TestCachedValue(unittest.IsolatedAsyncioTestCase):
    class _CachedValue:
        def __init__(self, value: int):
            self._value = value
            self.call_cnt = 0

        @cached_method
        def get_value(self) -> int:
            self._value += 1
            return self._value

        @cached_property
        def value(self) -> int:
            self._value += 1
            return self._value

        @cached_method
        async def get_async_value(self) -> int:
            self.call_cnt += 1
            await asyncio.sleep(0.001)
            return self._value * 2

        @cached_method
        async def get_failed_value(self) -> int:
            self.call_cnt += 1
            raise ValueError("no value")

    def test_cached_method(self):
        test_m1 = self._CachedValue(10)
        for i in range(5):
            self.assertEqual(test_m1.get_value(), 11)

        test_m2 = self._CachedValue(21)
        self.assertEqual(test_m2.get_value(), 22)
        self.assertEqual(test_m1.get_value(), 11)

    def test_cached_property(self):
        test_v1 = self._CachedValue(30)
        for i in range(5):
            self.assertEqual(test_v1.value, 31)

        test_v2 = self._CachedValue(41)
        self.assertEqual(test_v2.value, 42)
        self.assertEqual(test_v1.value, 31)

    async def test_async_cached_method(self):
        test_v = self._CachedValue(5)
        for i in range(3):
            self.assertEqual(await test_v.get_async_value(), 10)
        self.assertEqual(test_v.call_cnt, 1)

    async def test_async_cached_method_error(self):
        test_v = self._CachedValue(5)
        for i in range(2):
            with self.assertRaises(ValueError):
                await test_v.get_failed_value()
        # the error isn't cached
        self.assertEqual(test_v.call_cnt, 2)


if __name__ == "__main__":
    unittest.main()
