from __future__ import annotations

import asyncio
import logging
from typing import ClassVar

from typing_extensions import Self

from common.config.config import Config
from common.utils.json_logger import logging_context
from .cmd_handler import BaseIndexerCmdHandler

_LOG = logging.getLogger(__name__)


class DownloadHandler(BaseIndexerCmdHandler):
    command: ClassVar[str] = "download"

    @classmethod
    async def new_arg_parser(cls, cfg: Config, cmd_list_parser) -> Self:
        self = cls(cfg)
        self._cmd_parser = cmd_list_parser.add_parser(self.command, help="download the ranges into the cache.")
        self._cmd_parser.add_argument("from_range", type=int, help="the first range to download")
        self._cmd_parser.add_argument(
            "to_range",
            type=int,
            default=None,
            nargs="?",
            help="the last range to download, by default is equal to from_range",
        )
        return self

    async def _exec_impl(self, arg_space) -> int:
        req_id = self._gen_req_id()
        with logging_context(**req_id):
            if not (range_list := self._check_range_list(arg_space.from_range, arg_space.to_range)):
                return 1

            range_cache = await self._get_range_cache()
            semaphore = asyncio.Semaphore(self._cfg.download_worker_cnt)

            async def _download(_range_num: int) -> bool:
                async with semaphore:
                    return await range_cache.ensure_range_exists(_range_num)

            from_range, to_range = range_list
            result_list = await asyncio.gather(*[_download(n) for n in range(from_range, to_range + 1)])

            for range_num, is_downloaded in zip(range(from_range, to_range + 1), result_list):
                status = "downloaded" if is_downloaded else "exists"
                print(f"{range_num}: {range_cache.get_range_path(range_num)} {status}")
        return 0
