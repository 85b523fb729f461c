from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from common.db.base_db_table import BaseDbTable
from common.db.db_connect import DbConnection, DbSql, DbSqlComposable, DbSqlIdent, DbSqlParam, DbTxCtx, DbQueryBody

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageRecord:
    address: bytes
    slot_key: bytes
    last_access_block: int


@dataclass(frozen=True)
class _BySlot:
    address: bytes
    slot_key: bytes


@dataclass(frozen=True)
class _ByBlock:
    block_num: int


@dataclass(frozen=True)
class _ExpiredCnt:
    slot_cnt: int


class StorageDb(BaseDbTable):
    def __init__(self, db: DbConnection, table_name: str = "storage_current"):
        super().__init__(db, table_name, StorageRecord, ("address", "slot_key"))

        self._get_query = DbQueryBody()
        self._expired_cnt_query = DbQueryBody()

    async def start(self) -> None:
        await super().start()

        get_sql = DbSql(
            """;
            SELECT {column_list}
              FROM {table_name} AS a
             WHERE a.address = {address}
               AND a.slot_key = {slot_key}
            """
        ).format(
            column_list=self._column_list,
            table_name=self._table_name,
            address=DbSqlParam("address"),
            slot_key=DbSqlParam("slot_key"),
        )

        expired_cnt_sql = DbSql(
            """;
            SELECT COUNT(*) AS slot_cnt
              FROM {table_name} AS a
             WHERE a.last_access_block < {block_num}
            """
        ).format(
            table_name=self._table_name,
            block_num=DbSqlParam("block_num"),
        )

        (
            self._get_query,
            self._expired_cnt_query,
        ) = await self._db.sql_to_query(
            get_sql,
            expired_cnt_sql,
        )

    def _build_on_conflict_sql(self) -> DbSqlComposable:
        return DbSql(
            """
             (address, slot_key) DO UPDATE SET
                last_access_block = EXCLUDED.last_access_block
             WHERE
                {table_name}.last_access_block < EXCLUDED.last_access_block
            """
        ).format(table_name=self._table_name)

    def _build_create_table_sql_list(self) -> tuple[DbSqlComposable, ...]:
        create_table_sql = DbSql(
            """;
            CREATE TABLE IF NOT EXISTS {table_name} (
                address BYTEA NOT NULL,
                slot_key BYTEA NOT NULL,
                last_access_block BIGINT NOT NULL,
                CONSTRAINT {pk_name} PRIMARY KEY (address, slot_key)
            )
            """
        ).format(table_name=self._table_name, pk_name=DbSqlIdent("pk_" + self._raw_table_name))

        create_index_sql = DbSql(
            """;
            CREATE INDEX IF NOT EXISTS {idx_name} ON {table_name} (last_access_block)
            """
        ).format(table_name=self._table_name, idx_name=DbSqlIdent("idx_" + self._raw_table_name + "_block"))

        return create_table_sql, create_index_sql

    async def set_storage_list(self, ctx: DbTxCtx, record_list: Sequence[StorageRecord]) -> None:
        await self._insert_row_list(ctx, record_list)

    async def get_last_access_block(self, ctx: DbTxCtx, address: bytes, slot_key: bytes) -> int | None:
        if not (rec := await self._fetch_one(ctx, self._get_query, _BySlot(address, slot_key))):
            return None
        return rec.last_access_block

    async def get_expired_cnt(self, ctx: DbTxCtx, block_num: int) -> int:
        rec: _ExpiredCnt = await self._fetch_one(
            ctx,
            self._expired_cnt_query,
            _ByBlock(block_num),
            record_type=_ExpiredCnt,
        )
        return rec.slot_cnt if rec else 0
