import unittest

from common.utils.format import (
    bytes_to_hex,
    has_hex_start,
    hex_to_int,
    hex_to_bytes,
    hex_to_fixed_bytes,
    normalize_eth_address,
    normalize_storage_key,
    str_fmt_object,
)


class TestBytesToHex(unittest.TestCase):

    def test_none_input(self):
        self.assertEqual(bytes_to_hex(None), "0x")

    def test_empty_string_input(self):
        self.assertEqual(bytes_to_hex(""), "0x")

    def test_string_representation_of_bytes_input(self):
        # assuming the hex_to_bytes function returns a bytes object
        self.assertEqual(bytes_to_hex("68656c6c6f"), "0x68656c6c6f")

    def test_bytes_input(self):
        self.assertEqual(bytes_to_hex(b"hello"), "0x68656c6c6f")

    def test_bytearray_input(self):
        self.assertEqual(bytes_to_hex(bytearray(b"hello")), "0x68656c6c6f")

    def test_with_different_prefix(self):
        self.assertEqual(bytes_to_hex(b"hello", prefix="0b"), "0b68656c6c6f")

    def test_invalid_value_type(self):
        with self.assertRaises(AttributeError):
            bytes_to_hex(123456)  # noqa


class TestHelpers(unittest.TestCase):

    def test_has_hex_start_with_hex_value(self):
        self.assertTrue(has_hex_start("0xabc123"))

    def test_has_hex_start_with_uppercase_hex_value(self):
        self.assertTrue(has_hex_start("0Xabc123"))

    def test_has_hex_start_with_no_hex_symbol(self):
        self.assertFalse(has_hex_start("abc123"))

    def test_has_hex_start_with_non_string_value(self):
        self.assertFalse(has_hex_start(123))  # noqa

    def test_has_hex_start_with_empty_string(self):
        self.assertFalse(has_hex_start(""))


class TestHexToInt(unittest.TestCase):
    def test_hex_to_int(self):
        self.assertEqual(hex_to_int("1"), 1)
        self.assertEqual(hex_to_int("a"), 10)
        self.assertEqual(hex_to_int("f"), 15)
        self.assertEqual(hex_to_int("10"), 16)
        self.assertEqual(hex_to_int("1a"), 26)
        self.assertEqual(hex_to_int("ff"), 255)

    def test_hex_to_int_invalid_input(self):
        with self.assertRaises(ValueError):
            hex_to_int("g")


class TestHexToBytes(unittest.TestCase):
    def test_hex_to_bytes_with_None(self):
        self.assertEqual(hex_to_bytes(None), bytes())

    def test_hex_to_bytes_with_empty_str(self):
        self.assertEqual(hex_to_bytes(""), bytes())

    def test_hex_to_bytes_with_bytes_input(self):
        self.assertEqual(hex_to_bytes(b"ab"), b"ab")

    def test_hex_to_bytes_with_bytearray_input(self):
        self.assertEqual(hex_to_bytes(bytearray(b"ab")), b"ab")

    def test_hex_to_bytes_with_hex_str(self):
        self.assertEqual(hex_to_bytes("0x6162"), b"ab")

    def test_hex_to_bytes_with_hex_str_no_prefix(self):
        self.assertEqual(hex_to_bytes("6162"), b"ab")

    def test_hex_to_bytes_with_nonhex_str(self):
        with self.assertRaises(ValueError):
            hex_to_bytes("GX")


class TestHexToFixedBytes(unittest.TestCase):
    def test_exact_size(self):
        self.assertEqual(hex_to_fixed_bytes("0x" + "ab" * 20, 20), bytes([0xAB] * 20))

    def test_wrong_size(self):
        with self.assertRaises(ValueError):
            hex_to_fixed_bytes("0x" + "ab" * 19, 20)
        with self.assertRaises(ValueError):
            hex_to_fixed_bytes("0x" + "ab" * 21, 20)
        with self.assertRaises(ValueError):
            hex_to_fixed_bytes("0x", 20)

    def test_left_pad(self):
        self.assertEqual(hex_to_fixed_bytes("0x1", 32, left_pad=True), bytes(31) + b"\x01")
        self.assertEqual(hex_to_fixed_bytes("abc", 4, left_pad=True), b"\x00\x00\x0a\xbc")

    def test_left_pad_too_long(self):
        with self.assertRaises(ValueError):
            hex_to_fixed_bytes("0x" + "11" * 33, 32, left_pad=True)


class TestNormalizeEthKeys(unittest.TestCase):
    def test_normalize_eth_address(self):
        self.assertEqual(normalize_eth_address("0x" + "AB" * 20), "0x" + "ab" * 20)
        self.assertEqual(normalize_eth_address("AB" * 20), "0x" + "ab" * 20)

    def test_normalize_bad_eth_address(self):
        with self.assertRaises(ValueError):
            normalize_eth_address("0x1234")
        with self.assertRaises(ValueError):
            normalize_eth_address("0x" + "zz" * 20)

    def test_normalize_storage_key(self):
        self.assertEqual(normalize_storage_key("0x0"), "0x" + "00" * 32)
        self.assertEqual(normalize_storage_key("0X01"), "0x" + "00" * 31 + "01")


LOG_FULL_OBJECT_INFO = False


class TestStrFmtObject(unittest.TestCase):
    def test_str_fmt_object_with_none(self):
        self.assertEqual(str_fmt_object(None), "None")

    def test_str_fmt_object_with_string(self):
        test_str = "Hello, world!"
        self.assertEqual(str_fmt_object(test_str), "'" + test_str + "'")

    def test_str_fmt_object_with_bytes(self):
        test_bytes = b"Hello, world!"
        self.assertEqual(str_fmt_object(test_bytes), "'48656c6c6f2c20776f72...'")

    def test_str_fmt_object_with_list(self):
        test_list = [1, 2, 3, 4, 5]
        self.assertEqual(str_fmt_object(test_list), "list(len=5, [...])")

    def test_str_fmt_object_with_dict(self):
        test_dict = {"key1": "value1", "key2": "value2"}
        self.assertEqual(
            str_fmt_object(test_dict), "dict(key1='value1', key2='value2')"
        )

    def test_str_fmt_object_with_custom_object(self):
        class TestNestedClass(object):
            def __init__(self, param):
                self.param = param

            def __str__(self):
                return str_fmt_object(self)

        class TestClass:
            def __init__(self, param1, param2):
                self.param1 = param1
                self.param2 = param2
                self.param3 = TestNestedClass([param1, param2])
                self.param4 = TestNestedClass({param1: param2})

            def __str__(self):
                return str_fmt_object(self)

        test_obj = TestClass("hello", "world")

        self.assertEqual(
            (
                "TestClass("
                "param1='hello', "
                "param2='world', "
                "param3=TestNestedClass(param=list(len=2, [...])), "
                "param4=TestNestedClass(param=dict(hello='world'))"
                ")"
            ),
            str(test_obj),
        )


if __name__ == "__main__":
    unittest.main()
