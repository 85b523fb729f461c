from __future__ import annotations

import logging

from common.cmd_client.cmd_handler import BaseCmdHandler
from common.utils.cached import cached_method
from expiry_indexer.base.range_cache import RangeCache
from expiry_indexer.db.state_db import StateDb
from expiry_indexer.db.state_db_factory import create_state_db

_LOG = logging.getLogger(__name__)


class BaseIndexerCmdHandler(BaseCmdHandler):
    @cached_method
    async def _get_state_db(self) -> StateDb:
        return await self._new_client(create_state_db, self._cfg)

    @cached_method
    async def _get_range_cache(self) -> RangeCache:
        return RangeCache(self._cfg, await self._get_eth_client())

    @staticmethod
    def _check_range_list(from_range: int, to_range: int | None) -> tuple[int, int] | None:
        to_range = from_range if to_range is None else to_range
        if from_range < 1:
            _LOG.error("from-range %s should be bigger than 0, the genesis range doesn't have a file", from_range)
            return None
        elif from_range > to_range:
            _LOG.error("from-range %s should be less or equal to to-range %s", from_range, to_range)
            return None
        return from_range, to_range
