from __future__ import annotations

import json
import logging

from common.utils.json_logger import log_msg
from .errors import StateIndexerError
from .objects import StateAccessBatch
from .state_access_reducer import StateAccessReducer

_LOG = logging.getLogger(__name__)

GENESIS_BLOCK_NUM = 0


class GenesisLoadError(StateIndexerError):
    pass


def _norm_hex(value: str) -> str:
    value = value.lower()
    return value if value.startswith("0x") else "0x" + value


def load_genesis_batch(path: str) -> StateAccessBatch:
    """
    Reads the geth genesis file and builds the batch with all allocated accounts in the block 0.
    An account with code or with storage is a contract.
    """
    try:
        with open(path, "r") as f:
            genesis = json.load(f)
    except (OSError, ValueError) as exc:
        raise GenesisLoadError(f"fail to read the genesis file {path}: {exc}") from exc

    alloc = genesis.get("alloc", None) if isinstance(genesis, dict) else None
    if not isinstance(alloc, dict):
        raise GenesisLoadError(f"genesis file {path} doesn't have the alloc section")

    reducer = StateAccessReducer()
    for address, account in alloc.items():
        if not isinstance(account, dict):
            raise GenesisLoadError(f"genesis account {address} has wrong type {type(account).__name__}")

        address = _norm_hex(address)
        storage = account.get("storage", None) or dict()
        code = account.get("code", None) or ""
        is_contract = bool(storage) or (_norm_hex(code) != "0x")

        reducer.add_account(address, GENESIS_BLOCK_NUM, is_contract)
        for slot in storage:
            reducer.add_storage(address, _norm_hex(slot), GENESIS_BLOCK_NUM)

    batch = reducer.batch
    _LOG.info(
        log_msg(
            "loaded {AccountCnt} genesis accounts and {SlotCnt} storage slots",
            AccountCnt=len(batch.account_dict),
            SlotCnt=len(batch.storage_dict),
        )
    )
    return batch
