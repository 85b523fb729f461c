from __future__ import annotations

import logging
from typing import Iterable, Sequence

from common.utils.format import normalize_eth_address, normalize_storage_key
from .objects import AccountDiff, AccountTouch, StateAccessBatch, StorageTouch, TxStateDiff

_LOG = logging.getLogger(__name__)


class StateAccessReducer:
    """
    Folds the decoded state diffs of many blocks into the latest access per account and per storage slot.
    The fold takes the max block number, so the result doesn't depend on the order of blocks.
    A storage-only change touches the slots and the contract flag, but not the account.
    """

    def __init__(self) -> None:
        self._batch = StateAccessBatch()

    @property
    def batch(self) -> StateAccessBatch:
        return self._batch

    def reset(self) -> StateAccessBatch:
        batch, self._batch = self._batch, StateAccessBatch()
        return batch

    def add_skipped_tx_cnt(self, cnt: int) -> None:
        self._batch.skipped_tx_cnt += cnt

    def add_tx_list(self, block_num: int, tx_list: Sequence[TxStateDiff]) -> None:
        for tx in tx_list:
            for account_diff in tx.account_diff_list:
                self.add_account_diff(block_num, account_diff)

    def add_account_diff(self, block_num: int, diff: AccountDiff) -> None:
        if not diff.is_touched:
            return

        address = _norm_address(diff.address)
        if diff.account_changed:
            self.add_account(address, block_num, diff.is_contract)
        else:
            self._add_contract_flag(address, diff.is_contract)

        for slot in diff.slot_list:
            self.add_storage(address, slot, block_num)

    def add_account(self, address: str, block_num: int, is_contract: bool) -> None:
        batch = self._batch
        address = _norm_address(address)

        last_block_num = batch.account_dict.get(address, -1)
        if block_num > last_block_num:
            batch.account_dict[address] = block_num

        self._add_contract_flag(address, is_contract)
        batch.account_touch_set.add(AccountTouch(address, block_num, is_contract))

    def _add_contract_flag(self, address: str, is_contract: bool) -> None:
        contract_dict = self._batch.contract_dict
        contract_dict[address] = contract_dict.get(address, False) or is_contract

    def add_storage(self, address: str, slot: str, block_num: int) -> None:
        batch = self._batch
        key = (_norm_address(address), _norm_slot(slot))

        last_block_num = batch.storage_dict.get(key, -1)
        if block_num > last_block_num:
            batch.storage_dict[key] = block_num

        batch.storage_touch_set.add(StorageTouch(key[0], key[1], block_num))


def _norm_address(address: str) -> str:
    """An invalid key is only lowercased, the store skips it."""
    try:
        return normalize_eth_address(address)
    except ValueError:
        return address.lower()


def _norm_slot(slot: str) -> str:
    try:
        return normalize_storage_key(slot)
    except ValueError:
        return slot.lower()


def reduce_state_access(block_list: Iterable[tuple[int, Sequence[TxStateDiff]]]) -> StateAccessBatch:
    reducer = StateAccessReducer()
    for block_num, tx_list in block_list:
        reducer.add_tx_list(block_num, tx_list)
    return reducer.batch
