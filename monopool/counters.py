"""Share tallies, subscription ids and extranonce1 generation."""

from __future__ import annotations

import math
import secrets
import struct
from dataclasses import dataclass

_UINT64_MAX = (1 << 64) - 1


@dataclass
class ShareCounts:
    """Valid and invalid share counts of one client."""

    valid: int = 0
    invalid: int = 0

    def total(self) -> int:
        return self.valid + self.invalid

    def bad_percent(self) -> float:
        """Percentage of invalid shares; NaN when nothing was counted."""
        total = self.total()
        if total == 0:
            return math.nan
        return self.invalid * 100 / total

    def reset(self) -> None:
        self.valid = 0
        self.invalid = 0


@dataclass
class SubscriptionCounter:
    """Hands out little-endian 64-bit subscription ids."""

    count: int = 0
    padding: bytes = b""

    def next(self) -> bytes:
        self.count += 1
        if self.count == _UINT64_MAX:
            self.count = 0
        return self.padding + struct.pack("<Q", self.count)


@dataclass
class ExtraNonce1Generator:
    """Random extranonce1 values of a fixed size."""

    size: int = 4

    def generate(self) -> bytes:
        return secrets.token_bytes(self.size)