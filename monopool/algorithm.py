"""Proof-of-work hash functions and difficulty targets."""

from __future__ import annotations

import hashlib
import logging
from typing import Callable

from monopool.encoding import sha256, sha256d

_log = logging.getLogger(__name__)

# difficulty = MAX_TARGET_TRUNCATED / current_target
MAX_TARGET_TRUNCATED = 0xFFFF << 208
MAX_TARGET = (1 << 224) - 1

_TAG = bytes.fromhex("ce04921a0d6d9badccfec07629a154a6637383d6979ba5eb6298c1667a2a5a11")


class UnsupportedAlgorithmError(ValueError):
    """The requested proof-of-work algorithm is not available."""


def scrypt_hash(data: bytes) -> bytes:
    """Scrypt with N=1024, r=1, p=1, as used by litecoin for its proof of work."""
    return hashlib.scrypt(data, salt=data, n=1024, r=1, p=1, dklen=32)


def double_sha256_hash(data: bytes) -> bytes:
    """Double SHA-256, as used by bitcoin for its proof of work."""
    return sha256d(data)


def tagged_double_sha256(data: bytes) -> bytes:
    """Double tagged SHA-256, returned in reversed byte order."""
    _log.debug("HEADER - %s", data.hex())
    prefix = _TAG + _TAG
    first = sha256(prefix + data)
    second = sha256(prefix + first)
    return second[::-1]


_HASHERS: dict[str, Callable[[bytes], bytes]] = {
    "scrypt": scrypt_hash,
    "sha256d": double_sha256_hash,
    "sha256dt": tagged_double_sha256,
}


def get_hash_func(name: str) -> Callable[[bytes], bytes]:
    """Look up a header hash function by algorithm name (case-insensitive)."""
    try:
        return _HASHERS[name.lower()]
    except KeyError:
        raise UnsupportedAlgorithmError(f"{name} is not supported") from None