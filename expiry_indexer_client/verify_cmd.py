from __future__ import annotations

import logging
from typing import ClassVar

from typing_extensions import Self

from common.config.config import Config
from common.utils.json_logger import logging_context
from expiry_indexer.base.errors import StateIndexerError
from expiry_indexer.base.range_cache import RangeCache
from .cmd_handler import BaseIndexerCmdHandler

_LOG = logging.getLogger(__name__)


class VerifyHandler(BaseIndexerCmdHandler):
    command: ClassVar[str] = "verify"

    @classmethod
    async def new_arg_parser(cls, cfg: Config, cmd_list_parser) -> Self:
        self = cls(cfg)
        self._cmd_parser = cmd_list_parser.add_parser(
            self.command,
            help="check that the range files exist and can be read.",
        )
        self._cmd_parser.add_argument("from_range", type=int, help="the first range to check")
        self._cmd_parser.add_argument(
            "to_range",
            type=int,
            default=None,
            nargs="?",
            help="the last range to check, by default is equal to from_range",
        )
        self._cmd_parser.add_argument(
            "--deep",
            action="store_true",
            help="read each file and check that it has all blocks of the range",
        )
        return self

    async def _exec_impl(self, arg_space) -> int:
        req_id = self._gen_req_id()
        with logging_context(**req_id):
            if not (range_list := self._check_range_list(arg_space.from_range, arg_space.to_range)):
                return 1

            range_cache = await self._get_range_cache()
            from_range, to_range = range_list
            bad_cnt = 0
            for range_num in range(from_range, to_range + 1):
                if error := self._verify_range(range_cache, range_num, arg_space.deep):
                    bad_cnt += 1
                    print(f"{range_num}: {error}")

            total_cnt = to_range - from_range + 1
            print(f"checked {total_cnt} ranges, {total_cnt - bad_cnt} valid, {bad_cnt} invalid")
        return 0 if not bad_cnt else 1

    @staticmethod
    def _verify_range(range_cache: RangeCache, range_num: int, is_deep: bool) -> str | None:
        if not range_cache.range_exists(range_num):
            return "missing"
        elif not range_cache.verify_range(range_num):
            return "bad compressed data"
        elif not is_deep:
            return None

        block_range = range_cache.range_math.get_block_range(range_num)
        try:
            block_list = range_cache.read_range(range_num)
        except StateIndexerError as exc:
            return str(exc)

        block_set = set([block.block_num for block in block_list])
        if lost_cnt := sum(1 for block_num in block_range.block_num_iter() if block_num not in block_set):
            return f"lost {lost_cnt} blocks"
        return None
