from __future__ import annotations

from common.config.config import Config, StorageMode
from .log.log_state_db import LogStateDb
from .snapshot.snapshot_state_db import SnapshotStateDb
from .state_db import StateDb


def create_state_db(cfg: Config) -> StateDb:
    if cfg.storage_mode == StorageMode.Log:
        return LogStateDb(cfg)
    return SnapshotStateDb(cfg)
