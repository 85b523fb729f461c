import json
import os
import tempfile
import unittest

from expiry_indexer.base.genesis import GENESIS_BLOCK_NUM, GenesisLoadError, load_genesis_batch

ADDR_EOA = "0x" + "11" * 20
ADDR_CODE = "0x" + "22" * 20
ADDR_STORAGE = "22" * 19 + "33"


class TestGenesis(unittest.TestCase):
    def setUp(self):
        self._tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp_dir.cleanup)
        self._path = os.path.join(self._tmp_dir.name, "genesis.json")

    def _write(self, data) -> None:
        with open(self._path, "w") as f:
            f.write(json.dumps(data) if not isinstance(data, str) else data)

    def test_load_alloc(self):
        self._write(
            {
                "config": {"chainId": 1},
                "alloc": {
                    ADDR_EOA: {"balance": "0x100"},
                    ADDR_CODE.upper().replace("0X", "0x"): {"balance": "0x0", "code": "0x6080"},
                    ADDR_STORAGE: {"balance": "0x0", "storage": {"0x01": "0x02"}},
                },
            }
        )
        batch = load_genesis_batch(self._path)

        addr_storage = "0x" + ADDR_STORAGE
        self.assertEqual(
            batch.account_dict,
            {ADDR_EOA: GENESIS_BLOCK_NUM, ADDR_CODE: GENESIS_BLOCK_NUM, addr_storage: GENESIS_BLOCK_NUM},
        )
        self.assertFalse(batch.contract_dict[ADDR_EOA])
        self.assertTrue(batch.contract_dict[ADDR_CODE])
        self.assertTrue(batch.contract_dict[addr_storage])
        self.assertEqual(batch.storage_dict, {(addr_storage, "0x" + "00" * 31 + "01"): GENESIS_BLOCK_NUM})

    def test_empty_code(self):
        self._write({"alloc": {ADDR_EOA: {"balance": "0x1", "code": "0x", "storage": {}}}})
        batch = load_genesis_batch(self._path)
        self.assertFalse(batch.contract_dict[ADDR_EOA])

    def test_bad_file(self):
        with self.assertRaises(GenesisLoadError):
            load_genesis_batch(os.path.join(self._tmp_dir.name, "missing.json"))

        self._write("{not json")
        with self.assertRaises(GenesisLoadError):
            load_genesis_batch(self._path)

        self._write({"config": {}})
        with self.assertRaises(GenesisLoadError):
            load_genesis_batch(self._path)

        self._write({"alloc": {ADDR_EOA: "0x1"}})
        with self.assertRaises(GenesisLoadError):
            load_genesis_batch(self._path)


if __name__ == "__main__":
    unittest.main()
