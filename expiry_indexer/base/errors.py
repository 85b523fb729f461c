from __future__ import annotations


class StateIndexerError(Exception):
    pass


class GenesisRangeError(StateIndexerError):
    def __init__(self) -> None:
        super().__init__("genesis range doesn't have a range file")


class RangeDownloadError(StateIndexerError):
    def __init__(self, range_num: int, block_num: int, exc: BaseException) -> None:
        super().__init__(f"fail to download the block {block_num} of the range {range_num}: {exc}")
        self.range_num = range_num
        self.block_num = block_num


class RangeNotFoundError(StateIndexerError):
    def __init__(self, path: str) -> None:
        super().__init__(f"range file {path} doesn't exist")
        self.path = path


class RangeCorruptedError(StateIndexerError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"range file {path} is corrupted: {reason}")
        self.path = path


class RangeBlockNotFoundError(StateIndexerError):
    def __init__(self, block_num: int) -> None:
        super().__init__(f"block {block_num} is not found in the range")
        self.block_num = block_num


class StateDiffDecodeError(StateIndexerError):
    def __init__(self, message: str, *, block_num: int | None = None, tx_hash: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.block_num = block_num
        self.tx_hash = tx_hash

    def with_position(self, block_num: int, tx_hash: str) -> StateDiffDecodeError:
        return StateDiffDecodeError(self.message, block_num=block_num, tx_hash=tx_hash)

    def __str__(self) -> str:
        if self.block_num is None:
            return self.message
        return f"{self.message} (block: {self.block_num}, tx: {self.tx_hash or '?'})"
