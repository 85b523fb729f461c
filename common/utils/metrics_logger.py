from __future__ import annotations

import logging
import time

from .json_logger import log_msg

_LOG = logging.getLogger(__name__)


class MetricsLogger:
    def __init__(self, skip_log_cnt: int):
        self._skip_log_cnt = skip_log_cnt
        self._counter: int = 0
        self._start_time_sec = time.monotonic()

    def _reset(self):
        self._counter = 0
        self._start_time_sec = time.monotonic()

    @property
    def is_print_time(self) -> bool:
        self._counter += 1
        return (self._counter % self._skip_log_cnt) == 0

    def print(self, latest_value_dict: dict[str, int]):
        value_dict = dict(latest_value_dict)
        value_dict["elapsed_sec"] = round(time.monotonic() - self._start_time_sec, 3)

        msg = ", ".join(f"{key}: {{{key}}}" for key in value_dict)
        _LOG.info(log_msg("indexing progress: " + msg, **value_dict))
        self._reset()
