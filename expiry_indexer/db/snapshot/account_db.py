from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from common.db.base_db_table import BaseDbTable
from common.db.db_connect import DbConnection, DbSql, DbSqlComposable, DbSqlIdent, DbSqlParam, DbTxCtx, DbQueryBody

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountRecord:
    address: bytes
    last_access_block: int
    is_contract: bool


@dataclass(frozen=True)
class _ByAddress:
    address: bytes


@dataclass(frozen=True)
class _ByBlock:
    block_num: int


@dataclass(frozen=True)
class _ExpiredCnt:
    account_cnt: int
    contract_cnt: int


class AccountDb(BaseDbTable):
    def __init__(self, db: DbConnection, table_name: str = "accounts_current"):
        super().__init__(db, table_name, AccountRecord, ("address",))

        self._get_query = DbQueryBody()
        self._expired_cnt_query = DbQueryBody()

    async def start(self) -> None:
        await super().start()

        get_sql = DbSql(
            """;
            SELECT {column_list}
              FROM {table_name} AS a
             WHERE a.address = {address}
            """
        ).format(
            column_list=self._column_list,
            table_name=self._table_name,
            address=DbSqlParam("address"),
        )

        expired_cnt_sql = DbSql(
            """;
            SELECT COUNT(*) AS account_cnt,
                   COUNT(*) FILTER (WHERE a.is_contract) AS contract_cnt
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
        # the block never goes back, the contract flag is sticky
        return DbSql(
            """
             (address) DO UPDATE SET
                last_access_block = GREATEST({table_name}.last_access_block, EXCLUDED.last_access_block),
                is_contract = {table_name}.is_contract OR EXCLUDED.is_contract
             WHERE
                {table_name}.last_access_block < EXCLUDED.last_access_block
                OR (NOT {table_name}.is_contract AND EXCLUDED.is_contract)
            """
        ).format(table_name=self._table_name)

    def _build_create_table_sql_list(self) -> tuple[DbSqlComposable, ...]:
        create_table_sql = DbSql(
            """;
            CREATE TABLE IF NOT EXISTS {table_name} (
                address BYTEA NOT NULL,
                last_access_block BIGINT NOT NULL,
                is_contract BOOLEAN NOT NULL DEFAULT FALSE,
                CONSTRAINT {pk_name} PRIMARY KEY (address)
            )
            """
        ).format(table_name=self._table_name, pk_name=DbSqlIdent("pk_" + self._raw_table_name))

        create_index_sql = DbSql(
            """;
            CREATE INDEX IF NOT EXISTS {idx_name} ON {table_name} (last_access_block)
            """
        ).format(table_name=self._table_name, idx_name=DbSqlIdent("idx_" + self._raw_table_name + "_block"))

        return create_table_sql, create_index_sql

    async def set_account_list(self, ctx: DbTxCtx, record_list: Sequence[AccountRecord]) -> None:
        await self._insert_row_list(ctx, record_list)

    async def get_account(self, ctx: DbTxCtx, address: bytes) -> AccountRecord | None:
        return await self._fetch_one(ctx, self._get_query, _ByAddress(address))

    async def get_expired_cnt(self, ctx: DbTxCtx, block_num: int) -> tuple[int, int]:
        rec: _ExpiredCnt = await self._fetch_one(
            ctx,
            self._expired_cnt_query,
            _ByBlock(block_num),
            record_type=_ExpiredCnt,
        )
        if not rec:
            return 0, 0
        return rec.account_cnt, rec.contract_cnt
