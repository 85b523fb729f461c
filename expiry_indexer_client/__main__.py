from __future__ import annotations

import os
import sys

from common.cmd_client.cmd_executor import BaseCmdExecutor
from common.config.config import Config
from .download_cmd import DownloadHandler
from .init_schema_cmd import InitSchemaHandler
from .last_access_cmd import LastAccessHandler
from .status_cmd import StatusHandler
from .verify_cmd import VerifyHandler


class CmdExecutor(BaseCmdExecutor):
    def __init__(self, cfg: Config) -> None:
        super().__init__(cfg, description="Client command line utility for StateExpiryIndexer.")
        self._handler_type_list.append(DownloadHandler)
        self._handler_type_list.append(VerifyHandler)
        self._handler_type_list.append(StatusHandler)
        self._handler_type_list.append(LastAccessHandler)
        self._handler_type_list.append(InitSchemaHandler)

        self._parser.add_argument(
            "-u",
            "--rpc-url",
            type=str,
            dest="rpc_url",
            help="Ethereum node URL",
        )
        self._parser.add_argument(
            "-d",
            "--data-dir",
            type=str,
            dest="data_dir",
            help="directory with the range files",
        )
        self._parser.add_argument(
            "-m",
            "--storage-mode",
            type=str,
            choices=("snapshot", "log"),
            dest="storage_mode",
            help="storage mode: snapshot (PostgreSQL) or log (ClickHouse)",
        )

    async def _before_exec_handler(self, arg_space) -> None:
        # the config values are read on the first access, so it's enough to set the environment
        if arg_space.rpc_url:
            os.environ[self._cfg.rpc_url_name] = arg_space.rpc_url
        if arg_space.data_dir:
            os.environ[self._cfg.data_dir_name] = arg_space.data_dir
        if arg_space.storage_mode:
            os.environ[self._cfg.storage_mode_name] = arg_space.storage_mode


def main() -> None:
    cfg = Config()
    cmd_executor = CmdExecutor(cfg)

    exit_code = cmd_executor.run()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
