from __future__ import annotations

import logging
from typing import Final, Sequence

from common.ch.ch_connect import ChConnection, ChRecord

_LOG = logging.getLogger(__name__)


class BaseArchiveTable:
    """Append-only ClickHouse table, the rows are never updated in place."""

    _dedup_window: Final[int] = 1000

    def __init__(self, ch: ChConnection, table_name: str, column_list: tuple[str, ...]):
        self._ch = ch
        self._table_name = table_name
        self._column_list = column_list
        self._insert_query = ch.sql_to_query(
            f"INSERT INTO {table_name} ({', '.join(column_list)}) SETTINGS insert_deduplication_token='{{token}}' VALUES"
        )

    @property
    def table_name(self) -> str:
        return self._table_name

    def _build_create_table_sql(self) -> str:
        raise NotImplementedError

    async def init_schema(self) -> None:
        await self._ch.execute(self._table_name, self._ch.sql_to_query(self._build_create_table_sql()))

    async def _insert_row_list(self, token: str, row_list: Sequence[tuple]) -> None:
        if not row_list:
            return
        query = self._insert_query.replace("{token}", token)
        await self._ch.execute(self._table_name, query, *row_list)

    async def _fetch(self, query: str) -> list[ChRecord]:
        return await self._ch.fetch(self._table_name, self._ch.sql_to_query(query))

    async def _fetch_val(self, query: str):
        return await self._ch.fetch_val(self._table_name, self._ch.sql_to_query(query))


class AccountArchiveDb(BaseArchiveTable):
    def __init__(self, ch: ChConnection, table_name: str = "accounts_archive"):
        super().__init__(ch, table_name, ("address", "block_number", "is_contract", "range_num"))

    def _build_create_table_sql(self) -> str:
        return f"""
            CREATE TABLE IF NOT EXISTS {self._table_name} (
                address String,
                block_number UInt64,
                is_contract UInt8,
                range_num UInt64
            )
            ENGINE = MergeTree
            ORDER BY (address, block_number)
            SETTINGS non_replicated_deduplication_window = {self._dedup_window}
        """

    async def append_account_list(self, token: str, row_list: Sequence[tuple[str, int, int, int]]) -> None:
        await self._insert_row_list(token, row_list)

    async def get_account(self, address: str, last_range_num: int) -> ChRecord | None:
        row_list = await self._fetch(
            f"""
            SELECT address,
                   max(block_number) AS last_access_block,
                   argMax(is_contract, (block_number, is_contract)) AS is_contract
              FROM {self._table_name}
             WHERE address = '{address}'
               AND range_num <= {last_range_num}
             GROUP BY address
            """
        )
        return row_list[0] if row_list else None

    async def get_expired_cnt(self, block_num: int, last_range_num: int) -> tuple[int, int]:
        row_list = await self._fetch(
            f"""
            SELECT count() AS account_cnt,
                   countIf(is_contract = 1) AS contract_cnt
              FROM (
                SELECT address,
                       max(block_number) AS last_access_block,
                       argMax(is_contract, (block_number, is_contract)) AS is_contract
                  FROM {self._table_name}
                 WHERE range_num <= {last_range_num}
                 GROUP BY address
              )
             WHERE last_access_block < {block_num}
            """
        )
        if not row_list:
            return 0, 0
        return row_list[0]["account_cnt"], row_list[0]["contract_cnt"]


class StorageArchiveDb(BaseArchiveTable):
    def __init__(self, ch: ChConnection, table_name: str = "storage_archive"):
        super().__init__(ch, table_name, ("address", "slot_key", "block_number", "range_num"))

    def _build_create_table_sql(self) -> str:
        return f"""
            CREATE TABLE IF NOT EXISTS {self._table_name} (
                address String,
                slot_key String,
                block_number UInt64,
                range_num UInt64
            )
            ENGINE = MergeTree
            ORDER BY (address, slot_key, block_number)
            SETTINGS non_replicated_deduplication_window = {self._dedup_window}
        """

    async def append_storage_list(self, token: str, row_list: Sequence[tuple[str, str, int, int]]) -> None:
        await self._insert_row_list(token, row_list)

    async def get_last_access_block(self, address: str, slot: str, last_range_num: int) -> int | None:
        row_list = await self._fetch(
            f"""
            SELECT max(block_number) AS last_access_block
              FROM {self._table_name}
             WHERE address = '{address}'
               AND slot_key = '{slot}'
               AND range_num <= {last_range_num}
             GROUP BY address, slot_key
            """
        )
        return row_list[0]["last_access_block"] if row_list else None

    async def get_expired_cnt(self, block_num: int, last_range_num: int) -> int:
        value = await self._fetch_val(
            f"""
            SELECT count()
              FROM (
                SELECT address, slot_key, max(block_number) AS last_access_block
                  FROM {self._table_name}
                 WHERE range_num <= {last_range_num}
                 GROUP BY address, slot_key
              )
             WHERE last_access_block < {block_num}
            """
        )
        return value or 0


class MetadataArchiveDb(BaseArchiveTable):
    """Each write appends a new version of the key, the latest version wins without waiting for the merge."""

    def __init__(self, ch: ChConnection, table_name: str = "metadata_archive"):
        super().__init__(ch, table_name, ("key", "value"))

    def _build_create_table_sql(self) -> str:
        return f"""
            CREATE TABLE IF NOT EXISTS {self._table_name} (
                key String,
                value String,
                updated_at DateTime64(3) DEFAULT now64(3)
            )
            ENGINE = ReplacingMergeTree(updated_at)
            ORDER BY key
        """

    async def set(self, key: str, value: str | int, token: str) -> None:
        await self._insert_row_list(token, [(key, str(value))])

    async def get_int(self, key: str, default: int) -> int:
        value = await self._fetch_val(
            f"""
            SELECT argMax(value, (updated_at, toUInt64OrZero(value)))
              FROM {self._table_name}
             WHERE key = '{key}'
            """
        )
        if not value:
            return default
        return int(value, 10)
