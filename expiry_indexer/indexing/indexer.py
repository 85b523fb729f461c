from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from common.config.config import Config
from common.config.constants import GENESIS_RANGE_NUM
from common.config.utils import LogMsgFilter
from common.eth_rpc.client import EthClient
from common.utils.json_logger import log_msg, logging_context
from common.utils.metrics_logger import MetricsLogger
from ..base.genesis import load_genesis_batch
from ..base.objects import BlockStateDiff, StateAccessBatch, SyncStatus
from ..base.range_cache import RangeCache
from ..base.state_access_reducer import StateAccessReducer
from ..base.state_diff_decoder import StateDiffDecoder
from ..db.state_db import StateDb

_LOG = logging.getLogger(__name__)


class Indexer:
    def __init__(self, cfg: Config, eth_client: EthClient, range_cache: RangeCache, state_db: StateDb) -> None:
        self._cfg = cfg
        self._eth_client = eth_client
        self._range_cache = range_cache
        self._range_math = range_cache.range_math
        self._state_db = state_db

        self._msg_filter = LogMsgFilter(cfg)
        self._counted_logger = MetricsLogger(cfg.metrics_log_skip_cnt)
        self._decoder = StateDiffDecoder(cfg.decode_error_policy)

        self._is_stopped = False
        self._is_genesis_done = False
        self._last_indexed_range = 0
        self._latest_range = 0
        self._applied_account_cnt = 0
        self._applied_slot_cnt = 0

    def stop(self) -> None:
        self._is_stopped = True

    async def run(self) -> None:
        while not self._is_stopped:
            indexed_cnt = 0
            try:
                indexed_cnt = await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except BaseException as exc:
                _LOG.error("error on indexing cycle, retry later...", exc_info=exc, extra=self._msg_filter)

            if not indexed_cnt:
                await asyncio.sleep(self._cfg.indexer_poll_sec)

    async def get_latest_range_num(self) -> int:
        latest_block_num = await self._eth_client.get_latest_block_number()
        finalized_block_num = max(latest_block_num - self._cfg.finalized_block_offset, 0)
        return self._range_math.get_latest_complete_range_num(finalized_block_num)

    async def get_sync_status(self) -> SyncStatus:
        latest_range = await self.get_latest_range_num()
        return await self._state_db.get_sync_status(latest_range, self._range_math.range_size)

    async def run_cycle(self) -> int:
        """Indexes all complete ranges after the watermark, returns the number of the indexed ranges."""
        self._last_indexed_range = await self._state_db.get_last_indexed_range()
        self._latest_range = await self.get_latest_range_num()

        if self._last_indexed_range == GENESIS_RANGE_NUM:
            await self._apply_genesis()

        if self._last_indexed_range >= self._latest_range:
            _LOG.debug(
                log_msg(
                    "no new ranges: last indexed range {LastRange}, latest range {LatestRange}",
                    LastRange=self._last_indexed_range,
                    LatestRange=self._latest_range,
                )
            )
            return 0

        indexed_cnt = await self.index_range_list(self._last_indexed_range + 1, self._latest_range)
        _LOG.info(
            log_msg(
                "indexed {RangeCnt} ranges, last indexed range {LastRange}, latest range {LatestRange}",
                RangeCnt=indexed_cnt,
                LastRange=self._last_indexed_range,
                LatestRange=self._latest_range,
            )
        )
        return indexed_cnt

    async def index_range_list(self, start_range: int, stop_range: int) -> int:
        """
        Downloads the ranges ahead by the pool of workers,
        and applies them strictly one by one in the order of ranges.
        """
        semaphore = asyncio.Semaphore(self._cfg.download_worker_cnt)
        ahead_cnt = self._cfg.download_ahead_range_cnt
        task_dict: dict[int, asyncio.Task] = dict()
        next_range = start_range
        indexed_cnt = 0

        try:
            for range_num in range(start_range, stop_range + 1):
                if self._is_stopped:
                    break

                while next_range <= min(stop_range, range_num + ahead_cnt - 1):
                    task_dict[next_range] = asyncio.create_task(self._download_range(semaphore, next_range))
                    next_range += 1

                await task_dict.pop(range_num)
                await self.apply_range(range_num)
                indexed_cnt += 1
        finally:
            for task in task_dict.values():
                task.cancel()
            if task_dict:
                await asyncio.gather(*task_dict.values(), return_exceptions=True)

        return indexed_cnt

    async def _download_range(self, semaphore: asyncio.Semaphore, range_num: int) -> None:
        async with semaphore:
            await self._range_cache.ensure_range_exists(range_num)

    async def apply_range(self, range_num: int) -> None:
        with logging_context(range=range_num):
            block_list = await asyncio.to_thread(self._range_cache.read_range, range_num)
            batch = self.reduce_block_list(block_list)
            await self._state_db.apply_batch(batch, range_num)

            self._last_indexed_range = max(self._last_indexed_range, range_num)
            self._applied_account_cnt += len(batch.account_dict)
            self._applied_slot_cnt += len(batch.storage_dict)
            if batch.skipped_tx_cnt:
                _LOG.warning(log_msg("skipped {TxCnt} malformed transactions", TxCnt=batch.skipped_tx_cnt))
            self._print_progress_stat()

    def reduce_block_list(self, block_list: Sequence[BlockStateDiff]) -> StateAccessBatch:
        reducer = StateAccessReducer()
        skipped_tx_cnt = self._decoder.skipped_tx_cnt
        for block in block_list:
            reducer.add_tx_list(block.block_num, self._decoder.decode_block(block))
        reducer.add_skipped_tx_cnt(self._decoder.skipped_tx_cnt - skipped_tx_cnt)
        return reducer.batch

    async def _apply_genesis(self) -> None:
        if self._is_genesis_done:
            return
        elif not self._cfg.genesis_file:
            _LOG.debug("%s is not defined, skip the genesis accounts", self._cfg.genesis_file_name)
            self._is_genesis_done = True
            return

        with logging_context(range=GENESIS_RANGE_NUM):
            batch = load_genesis_batch(self._cfg.genesis_file)
            await self._state_db.apply_batch(batch, GENESIS_RANGE_NUM)
            _LOG.info(log_msg("applied {AccountCnt} genesis accounts", AccountCnt=len(batch.account_dict)))
        self._is_genesis_done = True

    def _print_progress_stat(self) -> None:
        if not self._counted_logger.is_print_time:
            return

        self._counted_logger.print(
            dict(
                last_indexed_range=self._last_indexed_range,
                latest_range=self._latest_range,
                indexed_block=self._range_math.get_range_end_block(self._last_indexed_range),
                applied_account_cnt=self._applied_account_cnt,
                applied_slot_cnt=self._applied_slot_cnt,
            )
        )
        self._applied_account_cnt = 0
        self._applied_slot_cnt = 0
