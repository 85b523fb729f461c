from __future__ import annotations

import logging
from dataclasses import dataclass

from .base_db_table import BaseDbTable
from .db_connect import DbConnection, DbTxCtx, DbSql, DbSqlComposable, DbSqlIdent, DbSqlParam, DbQueryBody

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Record:
    key: str
    value: str


@dataclass(frozen=True)
class _ByKey:
    key: list[str]


class MetadataDb(BaseDbTable):
    """Key-value table with the service state, the values are stored as text."""

    def __init__(self, db_conn: DbConnection, table_name: str = "metadata"):
        super().__init__(db_conn, table_name, _Record, ("key",))
        self._get_query = DbQueryBody()

    async def start(self) -> None:
        await super().start()

        get_sql = DbSql(";SELECT {column_list} FROM {table_name} AS a WHERE key = ANY({key})").format(
            table_name=self._table_name, column_list=self._column_list, key=DbSqlParam("key")
        )
        self._get_query = await self._db.sql_to_query(get_sql)

    def _build_create_table_sql_list(self) -> tuple[DbSqlComposable, ...]:
        create_sql = DbSql(
            """;
            CREATE TABLE IF NOT EXISTS {table_name} (
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                CONSTRAINT {pk_name} PRIMARY KEY (key)
            )
            """
        ).format(table_name=self._table_name, pk_name=DbSqlIdent("pk_" + self._raw_table_name))
        return tuple([create_sql])

    async def get_int(self, ctx: DbTxCtx, key: str, default: int) -> int:
        if not (rec := await self._fetch_one(ctx, self._get_query, _ByKey([key]))):
            return default
        return int(rec.value, 10)

    async def set(self, ctx: DbTxCtx, key: str, value: str | int) -> None:
        value = str(value) if isinstance(value, int) else value
        await self._insert_row(ctx, _Record(key, value))
