from __future__ import annotations

import json
import os
import tempfile
import unittest
from unittest import mock

from common.config.config import Config
from expiry_indexer.base.errors import StateDiffDecodeError
from expiry_indexer.base.objects import AccountLastAccess, ExpiredStateCnt, StateAccessBatch
from expiry_indexer.base.range_cache import RangeCache
from expiry_indexer.db.state_db import StateDb
from expiry_indexer.indexing.indexer import Indexer

ADDR_A = "0x" + "aa" * 20
ADDR_B = "0x" + "bb" * 20
ADDR_G = "0x" + "99" * 20
SLOT_1 = "0x" + "00" * 31 + "01"


class _MemoryStateDb(StateDb):
    def __init__(self) -> None:
        self.account_dict: dict[str, AccountLastAccess] = dict()
        self.storage_dict: dict[tuple[str, str], int] = dict()
        self.applied_range_list: list[int] = list()
        self.last_indexed_range = 0

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def init_schema(self) -> None:
        pass

    async def get_last_indexed_range(self) -> int:
        return self.last_indexed_range

    async def apply_batch(self, batch: StateAccessBatch, range_num: int) -> None:
        for address, block_num in batch.account_dict.items():
            is_contract = batch.contract_dict.get(address, False)
            if rec := self.account_dict.get(address, None):
                block_num = max(block_num, rec.last_access_block)
                is_contract = is_contract or rec.is_contract
            self.account_dict[address] = AccountLastAccess(address, block_num, is_contract)

        for key, block_num in batch.storage_dict.items():
            self.storage_dict[key] = max(block_num, self.storage_dict.get(key, -1))

        self.applied_range_list.append(range_num)
        self.last_indexed_range = max(self.last_indexed_range, range_num)

    async def get_account_last_access(self, address: str) -> AccountLastAccess | None:
        return self.account_dict.get(address, None)

    async def get_storage_last_access(self, address: str, slot: str) -> int | None:
        return self.storage_dict.get((address, slot), None)

    async def get_expired_state_cnt(self, expiry_block: int) -> ExpiredStateCnt:
        expired_list = [rec for rec in self.account_dict.values() if rec.last_access_block < expiry_block]
        return ExpiredStateCnt(
            expiry_block=expiry_block,
            account_cnt=len(expired_list),
            contract_cnt=sum(1 for rec in expired_list if rec.is_contract),
            slot_cnt=sum(1 for block_num in self.storage_dict.values() if block_num < expiry_block),
        )


class _FakeEthClient:
    def __init__(self, latest_block: int, diff_dict: dict[int, list[dict]]) -> None:
        self.latest_block = latest_block
        self.diff_dict = diff_dict
        self.call_list: list[int] = list()

    async def get_latest_block_number(self) -> int:
        return self.latest_block

    async def get_state_diff(self, block_num: int) -> list[dict]:
        self.call_list.append(block_num)
        return self.diff_dict.get(block_num, list())


def _balance_tx(tx_hash: str, address: str) -> dict:
    return {
        "transactionHash": tx_hash,
        "stateDiff": {address: {"balance": {"*": {"from": "0x1", "to": "0x2"}}, "code": "=", "nonce": "="}},
    }


def _contract_tx(tx_hash: str, address: str) -> dict:
    return {
        "transactionHash": tx_hash,
        "stateDiff": {
            address: {
                "balance": "=",
                "code": {"+": "0x6080604052"},
                "nonce": {"+": "0x1"},
                "storage": {SLOT_1: {"+": "0x01"}},
            }
        },
    }


class TestIndexer(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp_dir.cleanup)

    def _new_cfg(self, **kwargs) -> Config:
        env = {
            Config.data_dir_name: os.path.join(self._tmp_dir.name, "data"),
            Config.range_size_name: "100",
            Config.finalized_block_offset_name: "0",
            Config.download_worker_cnt_name: "2",
            Config.download_ahead_range_cnt_name: "2",
            Config.genesis_file_name: "",
        }
        env.update(kwargs)
        with mock.patch.dict(os.environ, env):
            cfg = Config()
            for name in (
                "data_dir",
                "range_size",
                "finalized_block_offset",
                "download_worker_cnt",
                "download_ahead_range_cnt",
                "genesis_file",
                "decode_error_policy",
                "metrics_log_skip_cnt",
                "indexer_poll_sec",
            ):
                getattr(cfg, name)
        return cfg

    def _new_indexer(self, cfg: Config, eth_client: _FakeEthClient) -> tuple[Indexer, _MemoryStateDb]:
        state_db = _MemoryStateDb()
        range_cache = RangeCache(cfg, eth_client)  # noqa
        return Indexer(cfg, eth_client, range_cache, state_db), state_db  # noqa

    async def test_index_two_ranges(self):
        eth_client = _FakeEthClient(
            latest_block=250,
            diff_dict={
                50: [_balance_tx("0x01", ADDR_A), _contract_tx("0x02", ADDR_B)],
                150: [_balance_tx("0x03", ADDR_A)],
                220: [_balance_tx("0x04", ADDR_B)],
            },
        )
        indexer, state_db = self._new_indexer(self._new_cfg(), eth_client)

        self.assertEqual(await indexer.get_latest_range_num(), 2)
        self.assertEqual(await indexer.run_cycle(), 2)
        self.assertEqual(state_db.applied_range_list, [1, 2])
        self.assertEqual(sorted(eth_client.call_list), list(range(1, 201)))

        self.assertEqual(await state_db.get_last_indexed_range(), 2)
        self.assertFalse(await state_db.is_account_expired(ADDR_A, 100))
        self.assertTrue(await state_db.is_account_expired(ADDR_B, 100))
        self.assertIsNone(await state_db.is_account_expired(ADDR_G, 100))

        rec_b = await state_db.get_account_last_access(ADDR_B)
        self.assertEqual(rec_b.last_access_block, 50)
        self.assertTrue(rec_b.is_contract)
        self.assertEqual(await state_db.get_storage_last_access(ADDR_B, SLOT_1), 50)

        status = await state_db.get_sync_status(2, 1000)
        self.assertTrue(status.is_synced)
        self.assertEqual(status.end_block, 2000)

        status = await indexer.get_sync_status()
        self.assertTrue(status.is_synced)
        self.assertEqual(status.end_block, 200)

        # nothing new
        self.assertEqual(await indexer.run_cycle(), 0)

        # the range 3 is completed
        eth_client.latest_block = 300
        self.assertEqual(await indexer.run_cycle(), 1)
        self.assertEqual(state_db.applied_range_list, [1, 2, 3])
        rec_b = await state_db.get_account_last_access(ADDR_B)
        self.assertEqual(rec_b.last_access_block, 220)
        self.assertTrue(rec_b.is_contract)

    async def test_finalized_offset(self):
        eth_client = _FakeEthClient(latest_block=250, diff_dict=dict())
        cfg = self._new_cfg(**{Config.finalized_block_offset_name: "60"})
        indexer, state_db = self._new_indexer(cfg, eth_client)

        self.assertEqual(await indexer.get_latest_range_num(), 1)
        self.assertEqual(await indexer.run_cycle(), 1)
        self.assertEqual(state_db.applied_range_list, [1])

    async def test_cached_range_is_not_downloaded(self):
        eth_client = _FakeEthClient(latest_block=100, diff_dict={10: [_balance_tx("0x01", ADDR_A)]})
        cfg = self._new_cfg()

        indexer, _ = self._new_indexer(cfg, eth_client)
        await indexer.run_cycle()
        self.assertEqual(len(eth_client.call_list), 100)

        # new store, the same cache
        indexer, state_db = self._new_indexer(cfg, eth_client)
        self.assertEqual(await indexer.run_cycle(), 1)
        self.assertEqual(len(eth_client.call_list), 100)
        self.assertEqual((await state_db.get_account_last_access(ADDR_A)).last_access_block, 10)

    async def test_strict_decode_error(self):
        bad_tx = {"transactionHash": "0x05", "stateDiff": {ADDR_A: {"balance": 10}}}
        eth_client = _FakeEthClient(latest_block=200, diff_dict={120: [bad_tx]})
        indexer, state_db = self._new_indexer(self._new_cfg(), eth_client)

        with self.assertRaises(StateDiffDecodeError):
            await indexer.run_cycle()
        # the range 1 is applied, the watermark doesn't pass the bad range
        self.assertEqual(state_db.applied_range_list, [1])
        self.assertEqual(await state_db.get_last_indexed_range(), 1)

    async def test_lenient_decode_error(self):
        bad_tx = {"transactionHash": "0x05", "stateDiff": {ADDR_A: {"balance": 10}}}
        eth_client = _FakeEthClient(latest_block=100, diff_dict={20: [bad_tx, _balance_tx("0x06", ADDR_B)]})
        cfg = self._new_cfg(**{Config.decode_error_policy_name: "lenient"})
        indexer, state_db = self._new_indexer(cfg, eth_client)

        self.assertEqual(await indexer.run_cycle(), 1)
        self.assertIsNone(await state_db.get_account_last_access(ADDR_A))
        self.assertEqual((await state_db.get_account_last_access(ADDR_B)).last_access_block, 20)

    async def test_lenient_not_object_tx(self):
        eth_client = _FakeEthClient(latest_block=100, diff_dict={30: ["garbage", _balance_tx("0x07", ADDR_B)]})
        cfg = self._new_cfg(**{Config.decode_error_policy_name: "lenient"})
        indexer, state_db = self._new_indexer(cfg, eth_client)

        with self.assertLogs("expiry_indexer.indexing.indexer", level="WARNING"):
            self.assertEqual(await indexer.run_cycle(), 1)
        self.assertEqual(await state_db.get_last_indexed_range(), 1)
        self.assertEqual((await state_db.get_account_last_access(ADDR_B)).last_access_block, 30)

    async def test_strict_not_object_tx(self):
        eth_client = _FakeEthClient(latest_block=100, diff_dict={30: [["garbage"]]})
        indexer, state_db = self._new_indexer(self._new_cfg(), eth_client)

        with self.assertRaises(StateDiffDecodeError):
            await indexer.run_cycle()
        self.assertEqual(await state_db.get_last_indexed_range(), 0)

    async def test_genesis(self):
        genesis_path = os.path.join(self._tmp_dir.name, "genesis.json")
        with open(genesis_path, "w") as f:
            json.dump({"alloc": {ADDR_G: {"balance": "0x1"}, ADDR_B: {"code": "0x6080"}}}, f)

        eth_client = _FakeEthClient(latest_block=100, diff_dict={30: [_balance_tx("0x01", ADDR_A)]})
        cfg = self._new_cfg(**{Config.genesis_file_name: genesis_path})
        indexer, state_db = self._new_indexer(cfg, eth_client)

        self.assertEqual(await indexer.run_cycle(), 1)
        self.assertEqual(state_db.applied_range_list, [0, 1])

        rec_g = await state_db.get_account_last_access(ADDR_G)
        self.assertEqual(rec_g.last_access_block, 0)
        self.assertFalse(rec_g.is_contract)
        self.assertTrue((await state_db.get_account_last_access(ADDR_B)).is_contract)

        # the genesis is applied once
        eth_client.latest_block = 200
        await indexer.run_cycle()
        self.assertEqual(state_db.applied_range_list, [0, 1, 2])

    async def test_stop(self):
        eth_client = _FakeEthClient(latest_block=500, diff_dict=dict())
        indexer, state_db = self._new_indexer(self._new_cfg(), eth_client)

        indexer.stop()
        self.assertEqual(await indexer.index_range_list(1, 5), 0)
        self.assertEqual(state_db.applied_range_list, list())


if __name__ == "__main__":
    unittest.main()
