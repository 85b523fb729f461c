import unittest

from common.config.config import DecodeErrorPolicy
from expiry_indexer.base.errors import StateDiffDecodeError
from expiry_indexer.base.objects import BlockStateDiff
from expiry_indexer.base.state_diff_decoder import StateDiffDecoder, decode_account_diff, decode_tx_state_diff

ADDR_A = "0x" + "aa" * 20
ADDR_B = "0x" + "bb" * 20


class TestDecodeAccountDiff(unittest.TestCase):
    def test_balance_change(self):
        diff = decode_account_diff(
            ADDR_A,
            {
                "balance": {"*": {"from": "0x1", "to": "0x2"}},
                "code": "=",
                "nonce": "=",
                "storage": {},
            },
        )
        self.assertTrue(diff.account_changed)
        self.assertFalse(diff.storage_changed)
        self.assertFalse(diff.is_contract)
        self.assertEqual(diff.slot_list, tuple())
        self.assertTrue(diff.is_touched)

    def test_unchanged_fields(self):
        for raw in (
            {"balance": "=", "code": "=", "nonce": "=", "storage": {}},
            {"balance": None, "code": None, "nonce": None, "storage": None},
            {"balance": {}, "nonce": {}},
            {},
        ):
            diff = decode_account_diff(ADDR_A, raw)
            self.assertFalse(diff.is_touched, raw)
            self.assertFalse(diff.is_contract, raw)

    def test_change_forms(self):
        for value in (
            {"*": {"from": "0x1", "to": "0x2"}},
            {"+": "0x1"},
            {"-": "0x1"},
            {"from": "0x1", "to": "0x2"},
        ):
            diff = decode_account_diff(ADDR_A, {"nonce": value})
            self.assertTrue(diff.account_changed, value)

    def test_storage_change(self):
        diff = decode_account_diff(
            ADDR_A.upper().replace("0X", "0x"),
            {
                "balance": "=",
                "storage": {
                    "0x00000000000000000000000000000000000000000000000000000000000000AB": {
                        "*": {"from": "0x0", "to": "0x1"}
                    },
                    "0x01": "=",
                },
            },
        )
        self.assertEqual(diff.address, ADDR_A)
        self.assertFalse(diff.account_changed)
        self.assertTrue(diff.storage_changed)
        self.assertTrue(diff.is_contract)
        self.assertEqual(diff.slot_list, ("0x00000000000000000000000000000000000000000000000000000000000000ab",))

    def test_code_change(self):
        diff = decode_account_diff(ADDR_B, {"code": {"+": "0x6080604052"}})
        self.assertTrue(diff.is_contract)
        self.assertTrue(diff.account_changed)

        diff = decode_account_diff(ADDR_B, {"code": {"*": {"from": "0x", "to": "0x"}}})
        self.assertFalse(diff.is_contract)

        diff = decode_account_diff(ADDR_B, {"code": {"-": "0x6080"}})
        self.assertTrue(diff.is_contract)

    def test_wrong_field(self):
        with self.assertRaises(StateDiffDecodeError):
            decode_account_diff(ADDR_A, {"balance": 5})
        with self.assertRaises(StateDiffDecodeError):
            decode_account_diff(ADDR_A, {"balance": {"unknown": "0x1"}})
        with self.assertRaises(StateDiffDecodeError):
            decode_account_diff(ADDR_A, {"storage": ["0x1"]})
        with self.assertRaises(StateDiffDecodeError):
            decode_account_diff(ADDR_A, "=")


class TestDecodeTxStateDiff(unittest.TestCase):
    def test_null_state_diff(self):
        tx = decode_tx_state_diff({"transactionHash": "0x01", "stateDiff": None})
        self.assertEqual(tx.tx_hash, "0x01")
        self.assertEqual(tx.account_diff_list, tuple())

        tx = decode_tx_state_diff({"output": "0x"})
        self.assertEqual(tx.tx_hash, "")
        self.assertEqual(tx.account_diff_list, tuple())

    def test_tx_hash_in_error(self):
        with self.assertRaises(StateDiffDecodeError) as ctx:
            decode_tx_state_diff({"transactionHash": "0x02", "stateDiff": {ADDR_A: {"balance": 1}}})
        self.assertEqual(ctx.exception.tx_hash, "0x02")


class TestStateDiffDecoder(unittest.TestCase):
    _good_tx = {"transactionHash": "0x01", "stateDiff": {ADDR_A: {"balance": {"+": "0x1"}}}}
    _bad_tx = {"transactionHash": "0x02", "stateDiff": {ADDR_B: {"nonce": 7}}}

    def _block(self) -> BlockStateDiff:
        return BlockStateDiff.from_dict({"blockNum": 12, "diffs": [self._good_tx, self._bad_tx, self._good_tx]})

    def test_strict_policy(self):
        decoder = StateDiffDecoder(DecodeErrorPolicy.Strict)
        with self.assertRaises(StateDiffDecodeError) as ctx:
            decoder.decode_block(self._block())
        self.assertEqual(ctx.exception.block_num, 12)
        self.assertEqual(ctx.exception.tx_hash, "0x02")
        self.assertIn("block: 12", str(ctx.exception))

    def test_lenient_policy(self):
        decoder = StateDiffDecoder(DecodeErrorPolicy.Lenient)
        with self.assertLogs("expiry_indexer.base.state_diff_decoder", level="WARNING"):
            tx_list = decoder.decode_block(self._block())
        self.assertEqual(len(tx_list), 2)
        self.assertEqual(decoder.skipped_tx_cnt, 1)

    def test_not_dict_tx(self):
        decoder = StateDiffDecoder(DecodeErrorPolicy.Lenient)
        with self.assertLogs("expiry_indexer.base.state_diff_decoder", level="WARNING"):
            tx_list = decoder.decode_tx_list(1, ["0x1", self._good_tx])
        self.assertEqual(len(tx_list), 1)
        self.assertEqual(decoder.skipped_tx_cnt, 1)


if __name__ == "__main__":
    unittest.main()
