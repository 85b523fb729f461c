from __future__ import annotations

import asyncio
import logging
import signal

import uvloop

from common.config.config import Config
from common.config.constants import STATE_EXPIRY_INDEXER_VER
from common.config.utils import LogMsgFilter
from common.eth_rpc.client import EthClient
from common.utils.json_logger import Logger
from .base.range_cache import RangeCache
from .db.state_db_factory import create_state_db
from .indexing.indexer import Indexer

_LOG = logging.getLogger(__name__)


class StateExpiryIndexerApp:
    def __init__(self):
        Logger.setup()
        cfg = Config()
        _LOG.info("running StateExpiryIndexer %s with the config: %s", STATE_EXPIRY_INDEXER_VER, cfg.to_string())

        self._cfg = cfg
        self._msg_filter = LogMsgFilter(cfg)

        self._eth_client = EthClient(cfg)
        self._range_cache = RangeCache(cfg, self._eth_client)
        self._state_db = create_state_db(cfg)
        self._indexer = Indexer(cfg, self._eth_client, self._range_cache, self._state_db)

    def start(self) -> int:
        exit_code = uvloop.run(self._run())
        return exit_code

    async def _run(self) -> int:
        try:
            self._cfg.validate_db_config()
            self._set_stop_handler()

            await self._eth_client.start()
            await self._state_db.start()
            await self._state_db.init_schema()

            await self._indexer.run()

            await self._state_db.stop()
            await self._eth_client.stop()
            return 0

        except BaseException as exc:
            _LOG.error("error on StateExpiryIndexer run", exc_info=exc, extra=self._msg_filter)
            return 1

    def _set_stop_handler(self) -> None:
        event_loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            event_loop.add_signal_handler(sig, self._on_stop_signal)

    def _on_stop_signal(self) -> None:
        _LOG.info("got the stop signal, finish the current range...")
        self._indexer.stop()
