from typing import Final

######################################
# Ethereum general settings:
ETH_ADDRESS_SIZE: Final[int] = 20
ETH_STORAGE_KEY_SIZE: Final[int] = 32

######################################
# Range cache settings:
RANGE_FILE_SUFFIX: Final[str] = ".json.zst"
GENESIS_RANGE_NUM: Final[int] = 0

######################################
# Metadata keys:
LAST_INDEXED_RANGE_KEY: Final[str] = "last_indexed_range"

_MAJOR_VER = 0
_MINOR_VER = 3
_BUILD_VER = 0
_REVISION = "STATE_EXPIRY_INDEXER_REVISION_TO_BE_REPLACED"
STATE_EXPIRY_INDEXER_VER = f"v{_MAJOR_VER}.{_MINOR_VER}.{_BUILD_VER}-{_REVISION}"

STATE_EXPIRY_INDEXER_PKG_VER = f"State-Expiry-Indexer/{STATE_EXPIRY_INDEXER_VER}"
