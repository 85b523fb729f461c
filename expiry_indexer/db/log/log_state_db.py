from __future__ import annotations

import logging
from typing import Sequence

from common.ch.ch_connect import ChConnection
from common.config.config import Config
from common.config.constants import LAST_INDEXED_RANGE_KEY
from common.config.utils import LogMsgFilter
from common.utils.format import normalize_eth_address, normalize_storage_key
from common.utils.json_logger import log_msg
from .archive_db import AccountArchiveDb, MetadataArchiveDb, StorageArchiveDb
from ..state_db import StateDb
from ...base.objects import AccountLastAccess, ExpiredStateCnt, StateAccessBatch

_LOG = logging.getLogger(__name__)


class LogStateDb(StateDb):
    """
    ClickHouse store, every touch is appended as an event with the number of its range.
    ClickHouse doesn't have transactions over tables, so:
        - the events are written before the watermark,
        - the reads skip the events of ranges after the watermark,
        - each insert has the deduplication token of the range and the chunk,
          so the retry of a range doesn't duplicate the history.
    """

    def __init__(self, cfg: Config, ch_conn: ChConnection | None = None) -> None:
        self._cfg = cfg
        self._msg_filter = LogMsgFilter(cfg)
        self._ch_conn = ch_conn or ChConnection(cfg)

        self._metadata_db = MetadataArchiveDb(self._ch_conn)
        self._account_db = AccountArchiveDb(self._ch_conn)
        self._storage_db = StorageArchiveDb(self._ch_conn)
        self._db_list = (self._metadata_db, self._account_db, self._storage_db)

    async def start(self) -> None:
        await self._ch_conn.start()

    async def stop(self) -> None:
        await self._ch_conn.stop()

    async def init_schema(self) -> None:
        for db in self._db_list:
            await db.init_schema()
        _LOG.info("log schema is initialized")

    async def get_last_indexed_range(self) -> int:
        return await self._metadata_db.get_int(LAST_INDEXED_RANGE_KEY, 0)

    async def apply_batch(self, batch: StateAccessBatch, range_num: int) -> None:
        account_list, account_skip_cnt = self._get_account_row_list(batch, range_num)
        storage_list, storage_skip_cnt = self._get_storage_row_list(batch, range_num)
        if account_skip_cnt or storage_skip_cnt:
            _LOG.warning(
                log_msg(
                    "skip {AccountCnt} account touches and {SlotCnt} storage touches "
                    "with invalid keys in the range {Range}",
                    AccountCnt=account_skip_cnt,
                    SlotCnt=storage_skip_cnt,
                    Range=range_num,
                ),
                extra=self._msg_filter,
            )

        chunk_size = self._cfg.db_write_chunk_size
        for idx, chunk in enumerate(_chunk_list(account_list, chunk_size)):
            await self._account_db.append_account_list(self._get_token("account", range_num, idx), chunk)
        for idx, chunk in enumerate(_chunk_list(storage_list, chunk_size)):
            await self._storage_db.append_storage_list(self._get_token("storage", range_num, idx), chunk)

        # the watermark is the last, the events above are invisible without it
        last_range_num = await self.get_last_indexed_range()
        if range_num > last_range_num:
            token = self._get_token("watermark", range_num, 0)
            await self._metadata_db.set(LAST_INDEXED_RANGE_KEY, range_num, token)

        _LOG.debug(
            log_msg(
                "appended {AccountCnt} account touches and {SlotCnt} storage touches of the range {Range}",
                AccountCnt=len(account_list),
                SlotCnt=len(storage_list),
                Range=range_num,
            )
        )

    async def get_account_last_access(self, address: str) -> AccountLastAccess | None:
        address = normalize_eth_address(address)
        last_range_num = await self.get_last_indexed_range()
        rec = await self._account_db.get_account(address, last_range_num)
        if not rec:
            return None
        return AccountLastAccess(
            address=address,
            last_access_block=rec["last_access_block"],
            is_contract=bool(rec["is_contract"]),
        )

    async def get_storage_last_access(self, address: str, slot: str) -> int | None:
        address = normalize_eth_address(address)
        slot = normalize_storage_key(slot)
        last_range_num = await self.get_last_indexed_range()
        return await self._storage_db.get_last_access_block(address, slot, last_range_num)

    async def get_expired_state_cnt(self, expiry_block: int) -> ExpiredStateCnt:
        last_range_num = await self.get_last_indexed_range()
        account_cnt, contract_cnt = await self._account_db.get_expired_cnt(expiry_block, last_range_num)
        slot_cnt = await self._storage_db.get_expired_cnt(expiry_block, last_range_num)
        return ExpiredStateCnt(
            expiry_block=expiry_block,
            account_cnt=account_cnt,
            contract_cnt=contract_cnt,
            slot_cnt=slot_cnt,
        )

    @staticmethod
    def _get_token(name: str, range_num: int, chunk_idx: int) -> str:
        return f"{name}:{range_num}:{chunk_idx}"

    @staticmethod
    def _get_account_row_list(batch: StateAccessBatch, range_num: int) -> tuple[list[tuple], int]:
        skip_cnt = 0
        row_list: list[tuple] = list()
        for touch in batch.iter_account_touch():
            try:
                address = normalize_eth_address(touch.address)
            except ValueError as exc:
                _LOG.debug("skip the account %s: %s", touch.address, str(exc))
                skip_cnt += 1
                continue
            row_list.append((address, touch.block_num, int(touch.is_contract), range_num))
        return row_list, skip_cnt

    @staticmethod
    def _get_storage_row_list(batch: StateAccessBatch, range_num: int) -> tuple[list[tuple], int]:
        skip_cnt = 0
        row_list: list[tuple] = list()
        for touch in batch.iter_storage_touch():
            try:
                address = normalize_eth_address(touch.address)
                slot = normalize_storage_key(touch.slot)
            except ValueError as exc:
                _LOG.debug("skip the storage slot %s:%s: %s", touch.address, touch.slot, str(exc))
                skip_cnt += 1
                continue
            row_list.append((address, slot, touch.block_num, range_num))
        return row_list, skip_cnt


def _chunk_list(src_list: Sequence, chunk_size: int):
    for idx in range(0, len(src_list), chunk_size):
        yield src_list[idx:idx + chunk_size]
