from __future__ import annotations

import logging
from typing import ClassVar

from typing_extensions import Self

from common.config.config import Config
from common.utils.json_logger import logging_context
from .cmd_handler import BaseIndexerCmdHandler

_LOG = logging.getLogger(__name__)


class InitSchemaHandler(BaseIndexerCmdHandler):
    command: ClassVar[str] = "init-schema"

    @classmethod
    async def new_arg_parser(cls, cfg: Config, cmd_list_parser) -> Self:
        self = cls(cfg)
        self._cmd_parser = cmd_list_parser.add_parser(self.command, help="create the tables of the storage mode.")
        return self

    async def _exec_impl(self, arg_space) -> int:
        req_id = self._gen_req_id()
        with logging_context(**req_id):
            state_db = await self._get_state_db()
            await state_db.init_schema()
            print(f"schema for the storage mode {self._cfg.storage_mode} is ready")
        return 0
