from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Final

import aiochclient as _ch
import aiohttp as _cl

from ..config.config import Config
from ..config.utils import LogMsgFilter
from ..utils.json_logger import log_msg

_LOG = logging.getLogger(__name__)

ChRecord = Any


class ChConnection:
    _max_retry_cnt: Final[int] = 3

    def __init__(self, cfg: Config) -> None:
        cfg.validate_db_config()
        self._cfg = cfg
        self._msg_filter = LogMsgFilter(cfg)
        self._ch_client: _ch.ChClient | None = None

    async def start(self) -> None:
        ch_session = _cl.ClientSession()
        self._ch_client = _ch.ChClient(
            ch_session,
            url=self._cfg.ch_dsn,
            user=self._cfg.ch_user,
            password=self._cfg.ch_password,
            database=self._cfg.ch_database,
        )
        if not await self._ch_client.is_alive():
            await self.stop()
            raise ConnectionError("ClickHouse server is not available")

    async def stop(self) -> None:
        if self._ch_client is not None:
            await self._ch_client.close()
            self._ch_client = None

    @staticmethod
    def sql_to_query(sql: str) -> str:
        """Removes surplus spaces, tabs, \r\n, and ; at the end and start"""
        return " ".join(sql.split()).strip("; ")

    async def execute(self, table_name: str, query: str, *row_list: tuple) -> None:
        """
        The query for the inserting of rows must end with VALUES,
        the rows are passed as tuples in the order of the column list.
        """

        async def _action() -> None:
            await self._ch_client.execute(query, *row_list)

        await self._exec_action(table_name, _action)

    async def fetch(self, table_name: str, query: str, *param_list) -> list[ChRecord]:
        async def _action() -> list[ChRecord]:
            return await self._ch_client.fetch(query, *param_list)

        return await self._exec_action(table_name, _action)

    async def fetch_val(self, table_name: str, query: str, *param_list) -> Any:
        async def _action() -> Any:
            return await self._ch_client.fetchval(query, *param_list)

        return await self._exec_action(table_name, _action)

    async def _exec_action(self, table_name: str, action: Callable):
        assert self._ch_client is not None, "ClickHouse connection is not started"

        for retry in itertools.count():
            try:
                return await action()
            except BaseException as exc:
                self._on_fail_execute(retry, exc, table_name)
                await asyncio.sleep(0.2)

    def _on_fail_execute(self, retry: int, exc: BaseException, table_name: str) -> None:
        if isinstance(exc, (_cl.ClientConnectionError, asyncio.TimeoutError)):
            if retry >= self._max_retry_cnt:
                _LOG.error(
                    log_msg(
                        "reach maximum {Retry} retries to execute query on ClickHouse {Table}: {Error}",
                        Retry=retry,
                        Table=table_name,
                        Error=str(exc),
                    ),
                    extra=self._msg_filter,
                )
                raise exc
            elif retry > 0:
                _LOG.warning(
                    log_msg(
                        "error on {Retry} try to execute query on ClickHouse: {Error}",
                        Retry=retry,
                        Error=str(exc),
                    ),
                    extra=self._msg_filter,
                )
        else:
            if not isinstance(exc, asyncio.CancelledError):
                _LOG.error(
                    log_msg("unexpected error on {Retry} try to execute query on ClickHouse", Retry=retry),
                    exc_info=exc,
                    extra=self._msg_filter,
                )
            raise exc
