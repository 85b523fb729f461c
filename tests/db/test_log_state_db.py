from __future__ import annotations

import os
import unittest
from unittest import mock

from common.ch.ch_connect import ChConnection
from common.config.config import Config
from expiry_indexer.base.state_access_reducer import StateAccessReducer
from expiry_indexer.db.log.log_state_db import LogStateDb

ADDR_A = "0x" + "aa" * 20
ADDR_B = "0x" + "bb" * 20
SLOT_1 = "0x" + "00" * 31 + "01"


class _FakeChConnection(ChConnection):
    def __init__(self) -> None:  # noqa
        self.insert_list: list[tuple[str, str, tuple]] = list()
        self.fetch_list: list[str] = list()
        self.fetch_result: list[dict] = list()
        self.watermark: str | None = None

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def execute(self, table_name: str, query: str, *row_list: tuple) -> None:
        self.insert_list.append((table_name, query, row_list))
        if table_name == "metadata_archive" and row_list:
            self.watermark = row_list[-1][1]

    async def fetch(self, table_name: str, query: str, *param_list) -> list:
        self.fetch_list.append(query)
        return self.fetch_result

    async def fetch_val(self, table_name: str, query: str, *param_list):
        self.fetch_list.append(query)
        if table_name == "metadata_archive":
            return self.watermark
        return 7


class TestLogStateDb(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        with mock.patch.dict(os.environ, {Config.db_write_chunk_size_name: "100"}):
            cfg = Config()
            _ = cfg.db_write_chunk_size

        self._ch = _FakeChConnection()
        self._db = LogStateDb(cfg, self._ch)

    @staticmethod
    def _new_batch():
        reducer = StateAccessReducer()
        reducer.add_account(ADDR_A, 10, False)
        reducer.add_account(ADDR_A, 20, True)
        reducer.add_account(ADDR_B, 15, False)
        reducer.add_account("0xbad", 15, False)
        reducer.add_storage(ADDR_A, SLOT_1, 20)
        reducer.add_storage(ADDR_A, "0x" + "11" * 33, 20)
        return reducer.batch

    async def test_apply_batch(self):
        self.assertEqual(await self._db.get_last_indexed_range(), 0)

        with self.assertLogs("expiry_indexer.db.log.log_state_db", level="WARNING"):
            await self._db.apply_batch(self._new_batch(), 1)

        table_list = [table_name for table_name, _, _ in self._ch.insert_list]
        self.assertEqual(table_list, ["accounts_archive", "storage_archive", "metadata_archive"])

        _, account_query, account_row_list = self._ch.insert_list[0]
        self.assertTrue(account_query.startswith("INSERT INTO accounts_archive (address, block_number"))
        self.assertIn("insert_deduplication_token='account:1:0'", account_query)
        self.assertTrue(account_query.endswith("VALUES"))
        self.assertEqual(
            list(account_row_list),
            [(ADDR_A, 10, 1, 1), (ADDR_B, 15, 0, 1), (ADDR_A, 20, 1, 1)],
        )

        _, storage_query, storage_row_list = self._ch.insert_list[1]
        self.assertIn("insert_deduplication_token='storage:1:0'", storage_query)
        self.assertEqual(list(storage_row_list), [(ADDR_A, SLOT_1, 20, 1)])

        _, watermark_query, watermark_row_list = self._ch.insert_list[2]
        self.assertIn("insert_deduplication_token='watermark:1:0'", watermark_query)
        self.assertEqual(list(watermark_row_list), [("last_indexed_range", "1")])
        self.assertEqual(await self._db.get_last_indexed_range(), 1)

    async def test_reapply_range(self):
        self._ch.watermark = "3"
        await self._db.apply_batch(self._new_batch(), 2)

        table_list = [table_name for table_name, _, _ in self._ch.insert_list]
        self.assertNotIn("metadata_archive", table_list)
        self.assertEqual(await self._db.get_last_indexed_range(), 3)

    async def test_chunked_insert(self):
        reducer = StateAccessReducer()
        for idx in range(150):
            reducer.add_account("0x" + f"{idx:040x}", 5, False)
        await self._db.apply_batch(reducer.batch, 4)

        account_insert_list = [x for x in self._ch.insert_list if x[0] == "accounts_archive"]
        self.assertEqual(len(account_insert_list), 2)
        self.assertIn("'account:4:0'", account_insert_list[0][1])
        self.assertIn("'account:4:1'", account_insert_list[1][1])
        self.assertEqual(sum(len(x[2]) for x in account_insert_list), 150)

    async def test_empty_batch(self):
        reducer = StateAccessReducer()
        await self._db.apply_batch(reducer.batch, 1)

        table_list = [table_name for table_name, _, _ in self._ch.insert_list]
        self.assertEqual(table_list, ["metadata_archive"])

    async def test_get_account(self):
        self._ch.watermark = "5"
        self._ch.fetch_result = [dict(address=ADDR_A, last_access_block=20, is_contract=1)]

        rec = await self._db.get_account_last_access(ADDR_A.upper().replace("0X", "0x"))
        self.assertEqual(rec.address, ADDR_A)
        self.assertEqual(rec.last_access_block, 20)
        self.assertTrue(rec.is_contract)
        self.assertIn(f"address = '{ADDR_A}'", self._ch.fetch_list[-1])
        self.assertIn("range_num <= 5", self._ch.fetch_list[-1])

        self._ch.fetch_result = list()
        self.assertIsNone(await self._db.get_account_last_access(ADDR_B))
        self.assertIsNone(await self._db.is_account_expired(ADDR_B, 100))

        with self.assertRaises(ValueError):
            await self._db.get_account_last_access("0x' OR 1 = 1 --")

    async def test_get_storage(self):
        self._ch.watermark = "2"
        self._ch.fetch_result = [dict(last_access_block=33)]

        self.assertEqual(await self._db.get_storage_last_access(ADDR_A, "0x1"), 33)
        self.assertIn(f"slot_key = '{SLOT_1}'", self._ch.fetch_list[-1])

    async def test_expired_cnt(self):
        self._ch.watermark = "2"
        self._ch.fetch_result = [dict(account_cnt=3, contract_cnt=1)]

        expired = await self._db.get_expired_state_cnt(100)
        self.assertEqual((expired.account_cnt, expired.contract_cnt, expired.slot_cnt), (3, 1, 7))
        self.assertEqual(expired.expiry_block, 100)

        account_query, storage_query = self._ch.fetch_list[-2:]
        self.assertIn("argMax(is_contract, (block_number, is_contract))", account_query)
        self.assertIn("WHERE range_num <= 2 GROUP BY address", account_query)
        self.assertIn("WHERE last_access_block < 100", account_query)
        self.assertIn("WHERE range_num <= 2 GROUP BY address, slot_key", storage_query)
        self.assertIn("WHERE last_access_block < 100", storage_query)


if __name__ == "__main__":
    unittest.main()
