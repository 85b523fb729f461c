from __future__ import annotations

import logging
from typing import ClassVar

from typing_extensions import Self

from common.config.config import Config
from common.utils.json_logger import logging_context
from expiry_indexer.base.objects import RangeMath
from .cmd_handler import BaseIndexerCmdHandler

_LOG = logging.getLogger(__name__)


class StatusHandler(BaseIndexerCmdHandler):
    command: ClassVar[str] = "status"

    @classmethod
    async def new_arg_parser(cls, cfg: Config, cmd_list_parser) -> Self:
        self = cls(cfg)
        self._cmd_parser = cmd_list_parser.add_parser(self.command, help="show the sync status of the indexer.")
        return self

    async def _exec_impl(self, arg_space) -> int:
        req_id = self._gen_req_id()
        with logging_context(**req_id):
            eth_client = await self._get_eth_client()
            state_db = await self._get_state_db()
            range_math = RangeMath(self._cfg.range_size)

            latest_block = await eth_client.get_latest_block_number()
            finalized_block = max(latest_block - self._cfg.finalized_block_offset, 0)
            latest_range = range_math.get_latest_complete_range_num(finalized_block)
            status = await state_db.get_sync_status(latest_range, range_math.range_size)

            print(f"storage mode:       {self._cfg.storage_mode}")
            print(f"latest block:       {latest_block}")
            print(f"latest range:       {latest_range}")
            print(f"last indexed range: {status.last_indexed_range}")
            print(f"indexed end block:  {status.end_block}")
            print(f"is synced:          {status.is_synced}")
        return 0
