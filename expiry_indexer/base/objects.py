from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Final

from pydantic import Field
from typing_extensions import Self

from common.config.constants import GENESIS_RANGE_NUM, RANGE_FILE_SUFFIX
from common.utils.pydantic import BaseModel, RootModel


@dataclass(frozen=True)
class BlockRange:
    range_num: int
    start_block: int
    end_block: int

    @property
    def is_genesis(self) -> bool:
        return self.range_num == GENESIS_RANGE_NUM

    @property
    def block_cnt(self) -> int:
        return self.end_block - self.start_block + 1

    @property
    def file_name(self) -> str:
        assert not self.is_genesis, "genesis range doesn't have a file"
        return f"{self.start_block}_{self.end_block}{RANGE_FILE_SUFFIX}"

    def block_num_iter(self):
        return range(self.start_block, self.end_block + 1)


class RangeMath:
    """
    Range 0 is the genesis block.
    Range N >= 1 covers the blocks [(N - 1) * size + 1, N * size].
    """

    _genesis_block: Final[int] = 0

    def __init__(self, range_size: int) -> None:
        assert range_size > 0, "range size must be positive"
        self._range_size = range_size

    @property
    def range_size(self) -> int:
        return self._range_size

    def get_range_num(self, block_num: int) -> int:
        if block_num <= self._genesis_block:
            return GENESIS_RANGE_NUM
        return (block_num - 1) // self._range_size

    def get_block_owner_range_num(self, block_num: int) -> int:
        """The range whose file holds the block."""
        if block_num <= self._genesis_block:
            return GENESIS_RANGE_NUM
        return (block_num - 1) // self._range_size + 1

    def get_block_range(self, range_num: int) -> BlockRange:
        assert range_num >= 0
        if range_num == GENESIS_RANGE_NUM:
            return BlockRange(range_num, self._genesis_block, self._genesis_block)

        start_block = (range_num - 1) * self._range_size + 1
        return BlockRange(range_num, start_block, start_block + self._range_size - 1)

    def get_range_end_block(self, range_num: int) -> int:
        return range_num * self._range_size

    def get_latest_complete_range_num(self, finalized_block_num: int) -> int:
        """The last range whose end block is not after the finalized block."""
        if finalized_block_num <= self._genesis_block:
            return GENESIS_RANGE_NUM
        return finalized_block_num // self._range_size


class BlockStateDiff(BaseModel):
    """Raw trace_replayBlockTransactions result of one block, it's the item of the range file."""

    block_num: int = Field(alias="blockNum")
    diffs: list[Any]


class BlockStateDiffList(RootModel):
    root: list[BlockStateDiff]


@dataclass(frozen=True)
class AccountDiff:
    address: str
    account_changed: bool
    storage_changed: bool
    is_contract: bool
    slot_list: tuple[str, ...] = tuple()

    @property
    def is_touched(self) -> bool:
        return self.account_changed or self.storage_changed


@dataclass(frozen=True)
class TxStateDiff:
    tx_hash: str
    account_diff_list: tuple[AccountDiff, ...]


@dataclass(frozen=True)
class AccountTouch:
    address: str
    block_num: int
    is_contract: bool


@dataclass(frozen=True)
class StorageTouch:
    address: str
    slot: str
    block_num: int


@dataclass
class StateAccessBatch:
    account_dict: dict[str, int] = field(default_factory=dict)
    contract_dict: dict[str, bool] = field(default_factory=dict)
    storage_dict: dict[tuple[str, str], int] = field(default_factory=dict)
    account_touch_set: set[AccountTouch] = field(default_factory=set)
    storage_touch_set: set[StorageTouch] = field(default_factory=set)
    skipped_tx_cnt: int = 0

    @property
    def is_empty(self) -> bool:
        return (not self.account_dict) and (not self.storage_dict)

    def iter_account_touch(self):
        """
        Per-block account touches, or one touch per account when the batch has no account touch set.
        The contract flag of each touch is the flag of the account in the whole batch.
        """
        if self.account_touch_set:
            key_set = set([(x.address, x.block_num) for x in self.account_touch_set])
            for address, block_num in sorted(key_set, key=lambda x: (x[1], x[0])):
                yield AccountTouch(address, block_num, self.contract_dict.get(address, False))
            return

        for address, block_num in self.account_dict.items():
            yield AccountTouch(address, block_num, self.contract_dict.get(address, False))

    def iter_storage_touch(self):
        if self.storage_touch_set:
            yield from sorted(self.storage_touch_set, key=lambda x: (x.block_num, x.address, x.slot))
            return

        for (address, slot), block_num in self.storage_dict.items():
            yield StorageTouch(address, slot, block_num)


@dataclass(frozen=True)
class AccountLastAccess:
    address: str
    last_access_block: int
    is_contract: bool


@dataclass(frozen=True)
class SyncStatus:
    is_synced: bool
    last_indexed_range: int
    end_block: int

    @classmethod
    def from_range(cls, last_indexed_range: int, latest_range: int, range_size: int) -> Self:
        return cls(
            is_synced=last_indexed_range >= latest_range,
            last_indexed_range=last_indexed_range,
            end_block=last_indexed_range * range_size,
        )


@dataclass(frozen=True)
class ExpiredStateCnt:
    expiry_block: int
    account_cnt: int
    contract_cnt: int
    slot_cnt: int
