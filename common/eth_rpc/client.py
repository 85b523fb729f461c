from __future__ import annotations

import logging
from typing import Any, Final

from ..config.config import Config
from ..jsonrpc.client import JsonRpcClient
from ..utils.pydantic import HexUIntField

_LOG = logging.getLogger(__name__)

EthRawTxStateDiff = Any
"""One item of trace_replayBlockTransactions: {"output", "stateDiff", "trace", "transactionHash", ...},
the shape is checked by the decoder."""


class EthClient(JsonRpcClient):
    _state_diff_trace_type_list: Final[tuple[str, ...]] = ("stateDiff",)

    def __init__(self, cfg: Config, *args, **kwargs) -> None:
        super().__init__(cfg, *args, **kwargs)

        self.connect(base_url_list=self._cfg.rpc_url_list)
        self.set_timeout_sec(self._cfg.rpc_timeout_sec)
        self.set_max_retry_cnt(self._cfg.rpc_max_retry_cnt)

    async def get_latest_block_number(self) -> int:
        return await self._get_block_number()

    async def get_state_diff(self, block_num: int) -> list[EthRawTxStateDiff]:
        """Replays all transactions in the block and returns the state changes for each of them"""
        tx_diff_list = await self._replay_block_tx_list(block_num, list(self._state_diff_trace_type_list)) or list()
        _LOG.debug("got %d transactions with state diffs in the block %s", len(tx_diff_list), block_num)
        return tx_diff_list

    async def get_code(self, address: str, block_tag: str | int = "latest") -> str:
        if isinstance(block_tag, int):
            block_tag = hex(block_tag)
        return await self._get_code(address, block_tag)

    @JsonRpcClient.method(name="eth_blockNumber")
    async def _get_block_number(self) -> HexUIntField: ...

    @JsonRpcClient.method(name="trace_replayBlockTransactions")
    async def _replay_block_tx_list(self, block_num: HexUIntField, trace_type_list: list[str]) -> list | None: ...

    @JsonRpcClient.method(name="eth_getCode")
    async def _get_code(self, address: str, block_tag: str) -> str: ...
