from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import tempfile
from typing import Final, Sequence

from common.config.config import Config
from common.config.constants import RANGE_FILE_SUFFIX
from common.eth_rpc.client import EthClient
from common.utils.compression import ZstdCodec, CompressionError
from common.utils.json_logger import log_msg, logging_context
from .errors import (
    GenesisRangeError,
    RangeBlockNotFoundError,
    RangeCorruptedError,
    RangeDownloadError,
    RangeNotFoundError,
)
from .objects import BlockRange, BlockStateDiff, BlockStateDiffList, RangeMath

_LOG = logging.getLogger(__name__)


class RangeCache:
    """
    Stores the raw state diffs of the block ranges in the files {start}_{end}.json.zst.
    A range file is immutable, an empty file is the same as an absent file.
    """

    _file_name_regex: Final[re.Pattern] = re.compile(r"^(\d+)_(\d+)" + re.escape(RANGE_FILE_SUFFIX) + "$")
    _tmp_suffix: Final[str] = ".tmp"

    def __init__(self, cfg: Config, eth_client: EthClient, codec: ZstdCodec | None = None) -> None:
        self._cfg = cfg
        self._eth_client = eth_client
        self._codec = codec or ZstdCodec()
        self._range_math = RangeMath(cfg.range_size)
        self._data_dir = cfg.data_dir

    @property
    def range_math(self) -> RangeMath:
        return self._range_math

    @property
    def data_dir(self) -> str:
        return self._data_dir

    def get_range_path(self, range_num: int) -> str:
        block_range = self._range_math.get_block_range(range_num)
        if block_range.is_genesis:
            raise GenesisRangeError()
        return os.path.join(self._data_dir, block_range.file_name)

    def range_exists(self, range_num: int) -> bool:
        if self._range_math.get_block_range(range_num).is_genesis:
            return True

        path = self.get_range_path(range_num)
        try:
            return os.path.isfile(path) and (os.path.getsize(path) > 0)
        except OSError:
            return False

    async def ensure_range_exists(self, range_num: int) -> bool:
        """Returns True if the range was downloaded by the call."""
        if self.range_exists(range_num):
            return False

        await self.download_range(range_num)
        return True

    async def download_range(self, range_num: int) -> None:
        block_range = self._range_math.get_block_range(range_num)
        if block_range.is_genesis:
            raise GenesisRangeError()
        elif self.range_exists(range_num):
            return

        with logging_context(range=range_num):
            _LOG.debug(
                log_msg(
                    "download the blocks {StartBlock}..{EndBlock}",
                    StartBlock=block_range.start_block,
                    EndBlock=block_range.end_block,
                )
            )

            block_list = await self._download_block_list(block_range)
            data = json.dumps([dict(blockNum=block.block_num, diffs=block.diffs) for block in block_list])
            await asyncio.to_thread(self._write_range_file, self.get_range_path(range_num), data.encode("utf-8"))

            _LOG.debug(log_msg("done the download of {BlockCnt} blocks", BlockCnt=len(block_list)))

    async def _download_block_list(self, block_range: BlockRange) -> list[BlockStateDiff]:
        block_list: list[BlockStateDiff] = list()
        for block_num in block_range.block_num_iter():
            try:
                tx_diff_list = await self._eth_client.get_state_diff(block_num)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                raise RangeDownloadError(block_range.range_num, block_num, exc) from exc

            block_list.append(BlockStateDiff.from_dict(dict(blockNum=block_num, diffs=tx_diff_list or list())))
        return block_list

    def _write_range_file(self, path: str, data: bytes) -> None:
        os.makedirs(self._data_dir, exist_ok=True)

        prefix = os.path.basename(path) + "."
        fd, tmp_path = tempfile.mkstemp(dir=self._data_dir, prefix=prefix, suffix=self._tmp_suffix)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(self._codec.compress(data))
            os.replace(tmp_path, path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    def read_range(self, range_num: int) -> list[BlockStateDiff]:
        return self.read_range_file(self.get_range_path(range_num))

    def read_range_file(self, path: str) -> list[BlockStateDiff]:
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            raise RangeNotFoundError(path)
        except OSError as exc:
            raise RangeCorruptedError(path, str(exc)) from exc

        if not data:
            raise RangeNotFoundError(path)

        try:
            return BlockStateDiffList.from_json(self._codec.decompress(data)).root
        except (CompressionError, ValueError) as exc:
            raise RangeCorruptedError(path, str(exc)) from exc

    @staticmethod
    def find_block_in_range(block_list: Sequence[BlockStateDiff], block_num: int) -> list:
        for block in block_list:
            if block.block_num == block_num:
                return block.diffs
        raise RangeBlockNotFoundError(block_num)

    def read_block(self, block_num: int) -> list:
        range_num = self._range_math.get_block_owner_range_num(block_num)
        block_list = self.read_range(range_num)
        return self.find_block_in_range(block_list, block_num)

    def verify_range(self, range_num: int) -> bool:
        if not self.range_exists(range_num):
            return False

        path = self.get_range_path(range_num)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as exc:
            _LOG.warning(log_msg("cannot read range file {Path}: {Error}", Path=path, Error=str(exc)))
            return False

        if not self._codec.is_valid(data):
            _LOG.warning(log_msg("range file {Path} has a bad zstd frame", Path=path))
            return False
        return True

    def scan_range_file_dict(self, data_dir: str | None = None) -> dict[int, str]:
        """Maps each block number to the path of the range file with this block."""
        data_dir = data_dir or self._data_dir

        block_dict: dict[int, str] = dict()
        if not os.path.isdir(data_dir):
            return block_dict

        for entry in os.scandir(data_dir):
            if not entry.is_file():
                continue
            elif not (match := self._file_name_regex.match(entry.name)):
                continue

            start_block, end_block = int(match.group(1)), int(match.group(2))
            for block_num in range(start_block, end_block + 1):
                block_dict[block_num] = entry.path
        return block_dict
