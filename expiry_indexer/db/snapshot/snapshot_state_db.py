from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from common.config.config import Config
from common.config.constants import ETH_ADDRESS_SIZE, ETH_STORAGE_KEY_SIZE, LAST_INDEXED_RANGE_KEY
from common.config.utils import LogMsgFilter
from common.db.db_connect import DbConnection, DbTxCtx
from common.db.metadata_db import MetadataDb
from common.utils.format import bytes_to_hex, hex_to_fixed_bytes
from common.utils.json_logger import log_msg
from .account_db import AccountDb, AccountRecord
from .storage_db import StorageDb, StorageRecord
from ..state_db import StateDb
from ...base.objects import AccountLastAccess, ExpiredStateCnt, StateAccessBatch

_LOG = logging.getLogger(__name__)


class SnapshotStateDb(StateDb):
    """PostgreSQL store with one row per account and per storage slot."""

    def __init__(self, cfg: Config, db_conn: DbConnection | None = None) -> None:
        self._cfg = cfg
        self._msg_filter = LogMsgFilter(cfg)
        self._db_conn = db_conn or DbConnection(cfg)

        self._metadata_db = MetadataDb(self._db_conn)
        self._account_db = AccountDb(self._db_conn)
        self._storage_db = StorageDb(self._db_conn)
        self._db_list = (self._metadata_db, self._account_db, self._storage_db)

    async def start(self) -> None:
        await self._db_conn.start()
        await asyncio.gather(*[db.start() for db in self._db_list])

    async def stop(self) -> None:
        await asyncio.gather(*[db.stop() for db in self._db_list])
        await self._db_conn.stop()

    async def init_schema(self) -> None:
        async def _tx(ctx: DbTxCtx) -> None:
            for db in self._db_list:
                await db.init_schema(ctx)

        await self._db_conn.run_tx(_tx)
        _LOG.info("snapshot schema is initialized")

    async def get_last_indexed_range(self) -> int:
        return await self._metadata_db.get_int(None, LAST_INDEXED_RANGE_KEY, 0)

    async def apply_batch(self, batch: StateAccessBatch, range_num: int) -> None:
        account_list, account_skip_cnt = self._get_account_record_list(batch)
        storage_list, storage_skip_cnt = self._get_storage_record_list(batch)
        if account_skip_cnt or storage_skip_cnt:
            _LOG.warning(
                log_msg(
                    "skip {AccountCnt} accounts and {SlotCnt} storage slots with invalid keys in the range {Range}",
                    AccountCnt=account_skip_cnt,
                    SlotCnt=storage_skip_cnt,
                    Range=range_num,
                ),
                extra=self._msg_filter,
            )

        chunk_size = self._cfg.db_write_chunk_size

        async def _tx(ctx: DbTxCtx) -> None:
            for chunk in _chunk_list(account_list, chunk_size):
                await self._account_db.set_account_list(ctx, chunk)
            for chunk in _chunk_list(storage_list, chunk_size):
                await self._storage_db.set_storage_list(ctx, chunk)

            last_range_num = await self._metadata_db.get_int(ctx, LAST_INDEXED_RANGE_KEY, 0)
            await self._metadata_db.set(ctx, LAST_INDEXED_RANGE_KEY, max(last_range_num, range_num))

        await self._db_conn.run_tx(_tx)
        _LOG.debug(
            log_msg(
                "applied {AccountCnt} accounts and {SlotCnt} storage slots of the range {Range}",
                AccountCnt=len(account_list),
                SlotCnt=len(storage_list),
                Range=range_num,
            )
        )

    async def get_account_last_access(self, address: str) -> AccountLastAccess | None:
        rec = await self._account_db.get_account(None, _to_address(address))
        if not rec:
            return None
        return AccountLastAccess(
            address=bytes_to_hex(rec.address),
            last_access_block=rec.last_access_block,
            is_contract=rec.is_contract,
        )

    async def get_storage_last_access(self, address: str, slot: str) -> int | None:
        return await self._storage_db.get_last_access_block(None, _to_address(address), _to_slot(slot))

    async def get_expired_state_cnt(self, expiry_block: int) -> ExpiredStateCnt:
        account_cnt, contract_cnt = await self._account_db.get_expired_cnt(None, expiry_block)
        slot_cnt = await self._storage_db.get_expired_cnt(None, expiry_block)
        return ExpiredStateCnt(
            expiry_block=expiry_block,
            account_cnt=account_cnt,
            contract_cnt=contract_cnt,
            slot_cnt=slot_cnt,
        )

    @staticmethod
    def _get_account_record_list(batch: StateAccessBatch) -> tuple[list[AccountRecord], int]:
        skip_cnt = 0
        record_list: list[AccountRecord] = list()
        for address, block_num in batch.account_dict.items():
            try:
                rec = AccountRecord(
                    address=_to_address(address),
                    last_access_block=block_num,
                    is_contract=batch.contract_dict.get(address, False),
                )
            except ValueError as exc:
                _LOG.debug("skip the account %s: %s", address, str(exc))
                skip_cnt += 1
                continue
            record_list.append(rec)
        return record_list, skip_cnt

    @staticmethod
    def _get_storage_record_list(batch: StateAccessBatch) -> tuple[list[StorageRecord], int]:
        skip_cnt = 0
        record_list: list[StorageRecord] = list()
        for (address, slot), block_num in batch.storage_dict.items():
            try:
                rec = StorageRecord(
                    address=_to_address(address),
                    slot_key=_to_slot(slot),
                    last_access_block=block_num,
                )
            except ValueError as exc:
                _LOG.debug("skip the storage slot %s:%s: %s", address, slot, str(exc))
                skip_cnt += 1
                continue
            record_list.append(rec)
        return record_list, skip_cnt


def _to_address(address: str) -> bytes:
    return hex_to_fixed_bytes(address, ETH_ADDRESS_SIZE)


def _to_slot(slot: str) -> bytes:
    return hex_to_fixed_bytes(slot, ETH_STORAGE_KEY_SIZE, left_pad=True)


def _chunk_list(src_list: Sequence, chunk_size: int):
    for idx in range(0, len(src_list), chunk_size):
        yield src_list[idx:idx + chunk_size]
