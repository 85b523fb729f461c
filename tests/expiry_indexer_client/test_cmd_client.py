from __future__ import annotations

import asyncio
import contextlib
import io
import os
import tempfile
import unittest
from unittest import mock

from common.config.config import Config
from expiry_indexer.base.range_cache import RangeCache
from expiry_indexer_client.__main__ import CmdExecutor


class _FakeEthClient:
    async def get_state_diff(self, block_num: int) -> list[dict]:
        return [{"transactionHash": hex(block_num), "stateDiff": None}]


class TestCmdClient(unittest.TestCase):
    def setUp(self):
        self._tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp_dir.cleanup)
        self._data_dir = os.path.join(self._tmp_dir.name, "data")

        patcher = mock.patch.dict(os.environ, {Config.range_size_name: "5"})
        patcher.start()
        self.addCleanup(patcher.stop)

    def _prepare_range(self, range_num: int) -> str:
        with mock.patch.dict(os.environ, {Config.data_dir_name: self._data_dir}):
            range_cache = RangeCache(Config(), _FakeEthClient())  # noqa
        asyncio.run(range_cache.ensure_range_exists(range_num))
        return range_cache.get_range_path(range_num)

    def _run(self, *arg_list: str) -> tuple[int, str]:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            exit_code = CmdExecutor(Config()).run(list(arg_list))
        return exit_code, out.getvalue()

    def test_verify(self):
        self._prepare_range(1)

        exit_code, out = self._run("-d", self._data_dir, "verify", "1", "--deep")
        self.assertEqual(exit_code, 0)
        self.assertIn("checked 1 ranges, 1 valid, 0 invalid", out)

        exit_code, out = self._run("-d", self._data_dir, "verify", "1", "2")
        self.assertEqual(exit_code, 1)
        self.assertIn("2: missing", out)

    def test_verify_corrupted(self):
        path = self._prepare_range(2)
        with open(path, "wb") as f:
            f.write(b"broken")

        exit_code, out = self._run("-d", self._data_dir, "verify", "2")
        self.assertEqual(exit_code, 1)
        self.assertIn("2: bad compressed data", out)

    def test_wrong_range(self):
        exit_code, _ = self._run("-d", self._data_dir, "verify", "0")
        self.assertEqual(exit_code, 1)

        exit_code, _ = self._run("-d", self._data_dir, "download", "3", "2")
        self.assertEqual(exit_code, 1)

    def test_no_command(self):
        exit_code, out = self._run()
        self.assertEqual(exit_code, 0)
        self.assertIn("usage", out)


if __name__ == "__main__":
    unittest.main()
