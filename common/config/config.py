from __future__ import annotations

import logging
import os
import random
import re
from decimal import Decimal
from typing import Final

from strenum import StrEnum

from .constants import (
    GENESIS_RANGE_NUM,
    LAST_INDEXED_RANGE_KEY,
    RANGE_FILE_SUFFIX,
    STATE_EXPIRY_INDEXER_VER,
)
from ..utils.cached import cached_property, cached_method
from ..utils.format import str_fmt_object

_LOG = logging.getLogger(__name__)
_RE_SPLIT_REGEX = re.compile(r",|;|\s")


class StorageMode(StrEnum):
    Snapshot = "snapshot"
    Log = "log"

    @classmethod
    def from_raw(cls, raw: str | StorageMode) -> StorageMode:
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw.lower().strip())
        except ValueError:
            raise ValueError(f"Wrong storage mode value: {raw}")


class DecodeErrorPolicy(StrEnum):
    Strict = "strict"
    Lenient = "lenient"

    @classmethod
    def from_raw(cls, raw: str | DecodeErrorPolicy) -> DecodeErrorPolicy:
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw.lower().strip())
        except ValueError:
            raise ValueError(f"Wrong decode error policy value: {raw}")


class Config:
    hide_sensitive_info_name: Final[str] = "HIDE_SENSITIVE_INFO"
    debug_db_query_name: Final[str] = "DEBUG_DB_QUERY"
    # Ethereum node settings
    rpc_url_name: Final[str] = "RPC_URL"
    rpc_timeout_sec_name: Final[str] = "RPC_TIMEOUT_SEC"
    rpc_max_retry_cnt_name: Final[str] = "RPC_MAX_RETRY_COUNT"
    # Range cache settings
    data_dir_name: Final[str] = "DATA_DIR"
    range_size_name: Final[str] = "RANGE_SIZE"
    genesis_file_name: Final[str] = "GENESIS_FILE"
    # Storage settings
    storage_mode_name: Final[str] = "STORAGE_MODE"
    db_write_chunk_size_name: Final[str] = "DB_WRITE_CHUNK_SIZE"
    # Postgres DB settings
    pg_host_name: Final[str] = "POSTGRES_HOST"
    pg_db_name: Final[str] = "POSTGRES_DB"
    pg_user_name: Final[str] = "POSTGRES_USER"
    pg_password_name: Final[str] = "POSTGRES_PASSWORD"
    pg_timeout_sec_name: Final[str] = "POSTGRES_TIMEOUT"
    pg_conn_cnt_name: Final[str] = "POSTGRES_CONNECTION_COUNT"
    # ClickHouse DB settings
    ch_dsn_name: Final[str] = "CLICKHOUSE_DSN"
    ch_user_name: Final[str] = "CLICKHOUSE_USER"
    ch_password_name: Final[str] = "CLICKHOUSE_PASSWORD"
    ch_database_name: Final[str] = "CLICKHOUSE_DATABASE"
    # Indexing settings
    download_worker_cnt_name: Final[str] = "DOWNLOAD_WORKER_COUNT"
    download_ahead_range_cnt_name: Final[str] = "DOWNLOAD_AHEAD_RANGE_COUNT"
    finalized_block_offset_name: Final[str] = "FINALIZED_BLOCK_OFFSET"
    indexer_poll_sec_name: Final[str] = "INDEXER_POLL_SEC"
    decode_error_policy_name: Final[str] = "DECODE_ERROR_POLICY"
    metrics_log_skip_cnt_name: Final[str] = "METRICS_LOG_SKIP_COUNT"

    _db_null_value: Final[str] = ""
    _1min: Final[int] = 60
    _1hour: Final[int] = 60 * 60

    def validate_db_config(self) -> None:
        if self.storage_mode == StorageMode.Snapshot:
            value_dict = {
                self.pg_host_name: self.pg_host,
                self.pg_db_name: self.pg_db,
                self.pg_user_name: self.pg_user,
                self.pg_password_name: self.pg_password,
            }
        else:
            value_dict = {
                self.ch_dsn_name: self.ch_dsn,
            }

        for key, value in value_dict.items():
            if value == self._db_null_value:
                raise ValueError(f"{key} is not specified")

    @staticmethod
    def _split_str(src: str) -> list[str]:
        str_list = _RE_SPLIT_REGEX.split(src)
        str_list = [s.strip() for s in str_list]
        return [s for s in str_list if s]

    @staticmethod
    def _env_bool(name: str, default_value: bool) -> bool:
        true_value_list = ("TRUE", "YES", "ON", "1")
        false_value_list = ("FALSE", "NO", "OFF", "0")
        os_def_value = true_value_list[0] if default_value else false_value_list[0]

        value = os.environ.get(name, os_def_value).upper().strip()  # fmt: skip
        if (value not in true_value_list) and (value not in false_value_list):
            _LOG.warning(
                "%s can be: %s or %s, force to use the default value %s",
                name,
                true_value_list,
                false_value_list,
                os_def_value,
            )
            return default_value

        return value in true_value_list

    @staticmethod
    def _env_num(
        name: str,
        default_value: int | float | Decimal,
        min_value: int | float | Decimal | None = None,
        max_value: int | float | Decimal | None = None,
    ) -> int | float | Decimal:
        value = os.environ.get(name, None)
        if value is None:
            return default_value

        try:
            if isinstance(default_value, int):
                value = int(value, base=10)
            elif isinstance(default_value, float):
                value = float(value)
            else:
                value = Decimal(value)

            if min_value is not None:
                assert type(min_value) is type(default_value), f"{type(min_value)} is {type(default_value)}"
                if value < min_value:
                    _LOG.warning("%s cannot be less than min value %s", name, min_value)
                    value = min_value

            if max_value is not None:
                assert type(max_value) is type(default_value)
                if value > max_value:
                    _LOG.warning("%s cannot be bigger than max value %s", name, max_value)
                    value = max_value
            return value

        except ValueError:
            _LOG.warning("bad value for %s, force to use the default value %s", name, default_value)
            return default_value

    @staticmethod
    def _env_storage_mode(name: str, default_value: StorageMode) -> StorageMode:
        value = os.environ.get(name, None)
        if value is None:
            return default_value

        try:
            return StorageMode.from_raw(value)
        except ValueError:
            _LOG.warning("%s has bad value %s, force to use the default value %s", name, value, default_value)
            return default_value

    @staticmethod
    def _env_decode_error_policy(name: str, default_value: DecodeErrorPolicy) -> DecodeErrorPolicy:
        value = os.environ.get(name, None)
        if value is None:
            return default_value

        try:
            return DecodeErrorPolicy.from_raw(value)
        except ValueError:
            _LOG.warning("%s has bad value %s, force to use the default value %s", name, value, default_value)
            return default_value

    ###################
    # Base settings

    @cached_property
    def hide_sensitive_info(self) -> bool:
        return self._env_bool(self.hide_sensitive_info_name, True)

    @cached_property
    def sensitive_info_list(self) -> tuple[str, ...]:
        res_list = (
            list(self.rpc_url_list)
            + [self.ch_dsn, self.ch_user, self.ch_password]
            + [self.pg_host, self.pg_db, self.pg_user, self.pg_password]
        )
        res_set = set([item for item in res_list if item])
        res_list = sorted(res_set, key=lambda x: len(x), reverse=True)
        return tuple(res_list)

    @cached_property
    def debug_db_query(self) -> bool:
        return self._env_bool(self.debug_db_query_name, False)

    ###########################
    # Ethereum node settings

    @cached_property
    def rpc_url_list(self) -> tuple[str, ...]:
        rpc_url_list = self._split_str(os.environ.get(self.rpc_url_name, ""))
        if not rpc_url_list:
            _LOG.warning("%s is not defined, force to use the localhost", self.rpc_url_name)
            rpc_url_list = ["http://localhost:8545"]
        return tuple(rpc_url_list)

    @property
    def random_rpc_url(self) -> str:
        return self._random_from_list(self.rpc_url_list)

    @staticmethod
    def _random_from_list(src_list: tuple[str, ...]) -> str:
        if len(src_list) == 0:
            return ""
        elif len(src_list) == 1:
            return src_list[0]
        return src_list[random.randrange(0, len(src_list))]

    @cached_property
    def rpc_timeout_sec(self) -> float:
        return float(self._env_num(self.rpc_timeout_sec_name, self._1min, 1, self._1hour))

    @cached_property
    def rpc_max_retry_cnt(self) -> int:
        return self._env_num(self.rpc_max_retry_cnt_name, 3, 1, 100)

    ###########################
    # Range cache settings

    @cached_property
    def data_dir(self) -> str:
        return os.environ.get(self.data_dir_name, "data")

    @cached_property
    def range_size(self) -> int:
        return self._env_num(self.range_size_name, 1000, 1, 1_000_000)

    @cached_property
    def genesis_file(self) -> str:
        return os.environ.get(self.genesis_file_name, "")

    ###########################
    # Storage settings

    @cached_property
    def storage_mode(self) -> StorageMode:
        return self._env_storage_mode(self.storage_mode_name, StorageMode.Snapshot)

    @cached_property
    def db_write_chunk_size(self) -> int:
        return self._env_num(self.db_write_chunk_size_name, 10_000, 100, 1_000_000)

    ###########################
    # Postgres DB settings

    @cached_property
    def pg_host(self) -> str:
        return os.environ.get(self.pg_host_name, self._db_null_value)

    @cached_property
    def pg_db(self) -> str:
        return os.environ.get(self.pg_db_name, self._db_null_value)

    @cached_property
    def pg_user(self) -> str:
        return os.environ.get(self.pg_user_name, self._db_null_value)

    @cached_property
    def pg_password(self) -> str:
        return os.environ.get(self.pg_password_name, self._db_null_value)

    @cached_property
    def pg_timeout_sec(self) -> int:
        return self._env_num(self.pg_timeout_sec_name, 0, 0)

    @cached_property
    def pg_conn_cnt(self) -> int:
        return self._env_num(self.pg_conn_cnt_name, max((os.cpu_count() or 2) // 2, 5), 5)

    ###########################
    # ClickHouse DB settings

    @cached_property
    def ch_dsn(self) -> str:
        """HTTP address of the ClickHouse server with the archive tables"""
        return os.environ.get(self.ch_dsn_name, self._db_null_value).strip()

    @cached_property
    def ch_user(self) -> str:
        return os.environ.get(self.ch_user_name, "default")

    @cached_property
    def ch_password(self) -> str:
        return os.environ.get(self.ch_password_name, "")

    @cached_property
    def ch_database(self) -> str:
        return os.environ.get(self.ch_database_name, "default")

    ####################
    # Indexing settings

    @cached_property
    def download_worker_cnt(self) -> int:
        return self._env_num(self.download_worker_cnt_name, 4, 1, 64)

    @cached_property
    def download_ahead_range_cnt(self) -> int:
        return self._env_num(self.download_ahead_range_cnt_name, 8, 1, 1024)

    @cached_property
    def finalized_block_offset(self) -> int:
        return self._env_num(self.finalized_block_offset_name, 64, 0, 1024)

    @cached_property
    def indexer_poll_sec(self) -> float:
        return float(self._env_num(self.indexer_poll_sec_name, 10, 1, self._1hour))

    @cached_property
    def decode_error_policy(self) -> DecodeErrorPolicy:
        return self._env_decode_error_policy(self.decode_error_policy_name, DecodeErrorPolicy.Strict)

    @cached_property
    def metrics_log_skip_cnt(self) -> int:
        return self._env_num(self.metrics_log_skip_cnt_name, 10, 1, 100_000)

    @cached_method
    def to_string(self) -> str:
        cfg_dict = {
            "VERSION": STATE_EXPIRY_INDEXER_VER,
            "GENESIS_RANGE": GENESIS_RANGE_NUM,
            "RANGE_FILE_SUFFIX": RANGE_FILE_SUFFIX,
            "WATERMARK_KEY": LAST_INDEXED_RANGE_KEY,
            self.hide_sensitive_info_name: self.hide_sensitive_info,
            self.debug_db_query_name: self.debug_db_query,
            # Ethereum node settings
            self.rpc_url_name: self.rpc_url_list,
            self.rpc_timeout_sec_name: self.rpc_timeout_sec,
            self.rpc_max_retry_cnt_name: self.rpc_max_retry_cnt,
            # Range cache settings
            self.data_dir_name: self.data_dir,
            self.range_size_name: self.range_size,
            self.genesis_file_name: self.genesis_file,
            # Storage settings
            self.storage_mode_name: self.storage_mode,
            self.db_write_chunk_size_name: self.db_write_chunk_size,
            # Postgres DB settings
            self.pg_host_name: self.pg_host,
            self.pg_db_name: self.pg_db,
            self.pg_user_name: self.pg_user,
            self.pg_password_name: self.pg_password,
            self.pg_timeout_sec_name: self.pg_timeout_sec,
            self.pg_conn_cnt_name: self.pg_conn_cnt,
            # ClickHouse DB settings
            self.ch_dsn_name: self.ch_dsn,
            self.ch_user_name: self.ch_user,
            self.ch_password_name: self.ch_password,
            self.ch_database_name: self.ch_database,
            # Indexing settings
            self.download_worker_cnt_name: self.download_worker_cnt,
            self.download_ahead_range_cnt_name: self.download_ahead_range_cnt,
            self.finalized_block_offset_name: self.finalized_block_offset,
            self.indexer_poll_sec_name: self.indexer_poll_sec,
            self.decode_error_policy_name: self.decode_error_policy,
            self.metrics_log_skip_cnt_name: self.metrics_log_skip_cnt,
        }

        return str_fmt_object(self._filter_sensitive_info(cfg_dict))

    def _filter_sensitive_info(self, cfg_dict: dict) -> dict:
        if not self.hide_sensitive_info:
            return cfg_dict

        sensitive_info_list = self.sensitive_info_list
        hide_key_list: list[str] = list()

        def _is_sensitive_info(_value: str) -> bool:
            return _value in sensitive_info_list

        for key, value in cfg_dict.items():
            if isinstance(value, (list, set, tuple)):
                for item in value:
                    if _is_sensitive_info(item):
                        hide_key_list.append(key)
                        break
            elif _is_sensitive_info(value):
                hide_key_list.append(key)

        for key in hide_key_list:
            cfg_dict[key] = "?*****?"

        return cfg_dict
