"""Share results and stored block records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ShareError(IntEnum):
    """Reasons a submitted share is rejected; values are stratum error codes."""

    BANNED = 10
    JOB_NOT_FOUND = 20
    INCORRECT_EXTRA_NONCE2_SIZE = 21
    INCORRECT_NTIME_SIZE = 22
    NTIME_OUT_OF_RANGE = 23
    INCORRECT_NONCE_SIZE = 24
    DUPLICATE_SHARE = 25
    LOW_DIFF_SHARE = 26

    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    ShareError.BANNED: "you are banned by pool",
    ShareError.JOB_NOT_FOUND: "job not found",
    ShareError.INCORRECT_EXTRA_NONCE2_SIZE: "incorrect size of extranonce2",
    ShareError.INCORRECT_NTIME_SIZE: "incorrect size of ntime",
    ShareError.NTIME_OUT_OF_RANGE: "ntime out of range",
    ShareError.INCORRECT_NONCE_SIZE: "incorrect size of nonce",
    ShareError.DUPLICATE_SHARE: "duplicate share",
    ShareError.LOW_DIFF_SHARE: "low difficulty share",
}


@dataclass
class Share:
    """The outcome of one submission; ``error_code`` is None for a valid share."""

    job_id: str = ""
    remote_addr: Any = None
    miner: str = ""
    rig: str = ""
    error_code: ShareError | None = None
    block_height: int = 0
    block_reward: int = 0
    diff: float = 0.0
    block_hash: str = ""
    block_hex: str = ""
    tx_hash: str = ""


_MISSING = object()


def _lookup(data: dict, key: str) -> Any:
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if name.lower() == lowered:
            return value
    return _MISSING


_BLOCK_KEYS = {
    "hash": "hash",
    "confirmations": "confirmations",
    "stripped_size": "strippedsize",
    "size": "size",
    "weight": "weight",
    "height": "height",
    "version": "version",
    "version_hex": "versionHex",
    "merkle_root": "merkleroot",
    "tx": "tx",
    "time": "time",
    "median_time": "mediantime",
    "nonce": "nonce",
    "bits": "bits",
    "difficulty": "difficulty",
    "chain_work": "chainwork",
    "n_tx": "nTx",
    "previous_block_hash": "previousblockhash",
}


@dataclass
class Block:
    """A block as reported by a coin daemon."""

    hash: str = ""
    confirmations: int = 0
    stripped_size: int = 0
    size: int = 0
    weight: int = 0
    height: int = 0
    version: int = 0
    version_hex: str = ""
    merkle_root: str = ""
    tx: list[str] = field(default_factory=list)
    time: int = 0
    median_time: int = 0
    nonce: int = 0
    bits: str = ""
    difficulty: float = 0.0
    chain_work: str = ""
    n_tx: int = 0
    previous_block_hash: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Block:
        """Build a block from a decoded JSON object."""
        if not isinstance(data, dict):
            raise ValueError("block must be a JSON object")
        kwargs = {}
        for attr, key in _BLOCK_KEYS.items():
            value = _lookup(data, key)
            if value is not _MISSING and value is not None:
                kwargs[attr] = value
        if "tx" in kwargs:
            if not isinstance(kwargs["tx"], list):
                raise ValueError("block tx must be a list")
            kwargs["tx"] = list(kwargs["tx"])
        return cls(**kwargs)