from __future__ import annotations

import abc

from ..base.objects import AccountLastAccess, ExpiredStateCnt, StateAccessBatch, SyncStatus


class StateDb(abc.ABC):
    """
    Last-access store of accounts and storage slots with the watermark of the last indexed range.
    The store reflects every block up to last_indexed_range * range_size and no block beyond it.
    """

    @abc.abstractmethod
    async def start(self) -> None: ...

    @abc.abstractmethod
    async def stop(self) -> None: ...

    @abc.abstractmethod
    async def init_schema(self) -> None: ...

    @abc.abstractmethod
    async def get_last_indexed_range(self) -> int:
        """Returns 0 if nothing was indexed yet."""

    @abc.abstractmethod
    async def apply_batch(self, batch: StateAccessBatch, range_num: int) -> None:
        """Applies the batch and moves the watermark to range_num, both or nothing."""

    @abc.abstractmethod
    async def get_account_last_access(self, address: str) -> AccountLastAccess | None: ...

    @abc.abstractmethod
    async def get_storage_last_access(self, address: str, slot: str) -> int | None: ...

    @abc.abstractmethod
    async def get_expired_state_cnt(self, expiry_block: int) -> ExpiredStateCnt:
        """Counts the accounts and the slots with last_access_block < expiry_block."""

    async def get_sync_status(self, latest_range: int, range_size: int) -> SyncStatus:
        last_indexed_range = await self.get_last_indexed_range()
        return SyncStatus.from_range(last_indexed_range, latest_range, range_size)

    async def is_account_expired(self, address: str, expiry_block: int) -> bool | None:
        if not (rec := await self.get_account_last_access(address)):
            return None
        return rec.last_access_block < expiry_block
