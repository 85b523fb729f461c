from __future__ import annotations

import logging
from typing import Any, Final, Sequence

from common.config.config import DecodeErrorPolicy
from common.utils.json_logger import log_msg
from .errors import StateDiffDecodeError
from .objects import AccountDiff, TxStateDiff, BlockStateDiff

_LOG = logging.getLogger(__name__)

_UNCHANGED: Final[str] = "="
_CHANGE_KEY_SET: Final[frozenset[str]] = frozenset(("*", "+", "-", "from", "to"))
_ACCOUNT_FIELD_LIST: Final[tuple[str, ...]] = ("balance", "nonce", "code")
_EMPTY_CODE_SET: Final[frozenset[str | None]] = frozenset((None, "", "0x", "0X"))


def _is_field_changed(name: str, value: Any) -> bool:
    """
    The field of the account diff can be:
        "=" - not changed
        {"*": {"from": "0x1", "to": "0x2"}} - changed
        {"+": "0x1"} - created
        {"-": "0x1"} - removed
        {"from": "0x1", "to": "0x2"} - changed
    """
    if (value is None) or (value == _UNCHANGED):
        return False
    elif not isinstance(value, dict):
        raise StateDiffDecodeError(f"field {name} has wrong type {type(value).__name__}")
    elif not value:
        return False

    if bad_key_list := [key for key in value if key not in _CHANGE_KEY_SET]:
        raise StateDiffDecodeError(f"field {name} has unknown change keys {bad_key_list}")
    return True


def _get_side_value_list(value: dict) -> list[Any]:
    side_list: list[Any] = list()
    for key, side in value.items():
        if key == "*":
            if not isinstance(side, dict):
                raise StateDiffDecodeError("field code has wrong '*' change")
            side_list.extend((side.get("from", None), side.get("to", None)))
        else:
            side_list.append(side)
    return side_list


def _is_code_changed(value: Any) -> bool:
    """Genuine code change: one of the sides carries non-empty bytecode."""
    if not _is_field_changed("code", value):
        return False
    return any(side not in _EMPTY_CODE_SET for side in _get_side_value_list(value))


def _decode_slot_list(value: Any) -> tuple[str, ...]:
    if (value is None) or (value == _UNCHANGED):
        return tuple()
    elif not isinstance(value, dict):
        raise StateDiffDecodeError(f"field storage has wrong type {type(value).__name__}")

    slot_list: list[str] = list()
    for slot, slot_value in value.items():
        if not isinstance(slot, str):
            raise StateDiffDecodeError(f"storage slot has wrong type {type(slot).__name__}")
        if _is_field_changed("storage slot", slot_value):
            slot_list.append(slot.lower())
    return tuple(slot_list)


def decode_account_diff(address: str, raw: Any) -> AccountDiff:
    if not isinstance(address, str):
        raise StateDiffDecodeError(f"address has wrong type {type(address).__name__}")
    elif not isinstance(raw, dict):
        raise StateDiffDecodeError(f"diff of the address {address} has wrong type {type(raw).__name__}")

    account_changed = False
    for name in _ACCOUNT_FIELD_LIST:
        if _is_field_changed(name, raw.get(name, None)):
            account_changed = True

    slot_list = _decode_slot_list(raw.get("storage", None))
    storage_changed = len(slot_list) > 0
    is_contract = storage_changed or _is_code_changed(raw.get("code", None))

    return AccountDiff(
        address=address.lower(),
        account_changed=account_changed,
        storage_changed=storage_changed,
        is_contract=is_contract,
        slot_list=slot_list,
    )


def decode_tx_state_diff(raw_tx: Any) -> TxStateDiff:
    """Decodes one result item of trace_replayBlockTransactions"""
    if not isinstance(raw_tx, dict):
        raise StateDiffDecodeError(f"transaction result has wrong type {type(raw_tx).__name__}")

    tx_hash = raw_tx.get("transactionHash", None) or ""
    state_diff = raw_tx.get("stateDiff", None)
    if state_diff is None:
        return TxStateDiff(tx_hash=tx_hash, account_diff_list=tuple())
    elif not isinstance(state_diff, dict):
        raise StateDiffDecodeError(f"stateDiff has wrong type {type(state_diff).__name__}", tx_hash=tx_hash)

    try:
        account_diff_list = tuple([decode_account_diff(addr, raw) for addr, raw in state_diff.items()])
    except StateDiffDecodeError as exc:
        raise StateDiffDecodeError(exc.message, tx_hash=tx_hash) from exc

    return TxStateDiff(tx_hash=tx_hash, account_diff_list=account_diff_list)


class StateDiffDecoder:
    def __init__(self, policy: DecodeErrorPolicy = DecodeErrorPolicy.Strict) -> None:
        self._policy = policy
        self._skipped_tx_cnt = 0

    @property
    def skipped_tx_cnt(self) -> int:
        return self._skipped_tx_cnt

    def decode_block(self, block: BlockStateDiff) -> list[TxStateDiff]:
        return self.decode_tx_list(block.block_num, block.diffs)

    def decode_tx_list(self, block_num: int, raw_tx_list: Sequence[Any]) -> list[TxStateDiff]:
        tx_list: list[TxStateDiff] = list()
        for raw_tx in raw_tx_list:
            try:
                tx_list.append(decode_tx_state_diff(raw_tx))
            except StateDiffDecodeError as exc:
                exc = exc.with_position(block_num, exc.tx_hash)
                if self._policy == DecodeErrorPolicy.Strict:
                    raise exc

                self._skipped_tx_cnt += 1
                _LOG.warning(
                    log_msg(
                        "skip the transaction {TxHash} in the block {BlockNum}: {Error}",
                        TxHash=exc.tx_hash or "?",
                        BlockNum=block_num,
                        Error=exc.message,
                    )
                )
        return tx_list
