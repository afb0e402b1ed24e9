"""Variable difficulty retargeting based on share submission times."""

from __future__ import annotations

import math
import time
from typing import Callable

from monopool.config import VarDiffOptions

_NANOS_PER_SECOND = 1_000_000_000


class RingBuffer:
    """Fixed-capacity buffer of the most recent integer samples."""

    def __init__(self, max_size: int):
        self.max_size = max_size
        self.is_full = False
        self.cursor = 0
        self.data: list[int] = []

    def append(self, x: int) -> None:
        if self.is_full:
            self.data[self.cursor] = x
            self.cursor = (self.cursor + 1) % self.max_size
        else:
            self.data.append(x)
            self.cursor += 1
            if len(self.data) == self.max_size:
                self.cursor = 0
                self.is_full = True

    def avg(self) -> float:
        """Mean of the held samples; NaN when empty."""
        size = self.size()
        if size == 0:
            return math.nan
        return sum(self.data) / size

    def size(self) -> int:
        return self.max_size if self.is_full else self.cursor

    def clear(self) -> None:
        self.data = []
        self.cursor = 0
        self.is_full = False


class VarDiff:
    """Tracks submission intervals and proposes a new miner difficulty."""

    def __init__(self, options: VarDiffOptions, clock: Callable[[], float] = time.time):
        self.options = options
        self._clock = clock
        now = int(clock())
        self.buffer_size = options.retarget_time // options.target_time * 4
        self.max_target_time = options.target_time * (1 + options.variance_percent)
        self.min_target_time = options.target_time * (1 - options.variance_percent)
        self.time_buffer = RingBuffer(self.buffer_size)
        self.last_rtc = now - options.retarget_time // 2
        self.last_timestamp = now

    def calc_next_diff(self, current_diff: float) -> float:
        """Record a submission; return the new difficulty, or 0.0 when no retarget is due."""
        now = int(self._clock())
        opts = self.options

        if self.last_rtc == 0:
            self.last_rtc = now - opts.retarget_time // 2
            self.last_timestamp = now
            return 0.0

        self.time_buffer.append(now - self.last_timestamp)
        self.last_timestamp = now

        if now - self.last_rtc < opts.retarget_time and self.time_buffer.size() > 0:
            return 0.0

        self.last_rtc = now
        avg = self.time_buffer.avg()
        target = opts.target_time * _NANOS_PER_SECOND
        ddiff = target / avg if avg else math.inf

        if avg > self.max_target_time and current_diff > opts.min_diff:
            if opts.x2_mode:
                ddiff = 0.5
            if ddiff * current_diff < opts.min_diff:
                ddiff = opts.min_diff / current_diff
        elif avg < self.min_target_time:
            if opts.x2_mode:
                ddiff = 2.0
            if ddiff * current_diff > opts.max_diff:
                ddiff = opts.max_diff / current_diff
        else:
            return current_diff

        new_diff = current_diff * ddiff
        if new_diff <= 0:
            new_diff = current_diff

        self.time_buffer.clear()
        return new_diff