"""Merkle branch computation for the coinbase transaction."""

from __future__ import annotations

from typing import Sequence

from monopool.encoding import sha256d


def merkle_join(h1: bytes | None, h2: bytes | None) -> bytes:
    """Double SHA-256 of two concatenated hashes."""
    return sha256d((h1 or b"") + (h2 or b""))


def calculate_steps(data: Sequence[bytes | None]) -> list[bytes]:
    """The merkle branch for the first leaf, which is left as a placeholder."""
    level = list(data)
    steps: list[bytes] = []
    while len(level) > 1:
        steps.append(level[1])
        size = len(level)
        if size % 2:
            level.append(level[-1])
        level = [None] + [merkle_join(level[i], level[i + 1]) for i in range(2, size, 2)]
    return steps


def get_merkle_hashes(steps: Sequence[bytes]) -> list[str]:
    """The branch steps as hex strings."""
    return [(step or b"").hex() for step in steps]


class MerkleTree:
    """Merkle branch over transaction hashes whose first entry is filled in later."""

    def __init__(self, data: Sequence[bytes | None]):
        self.data = list(data)
        self.steps = calculate_steps(self.data)

    def with_first(self, first: bytes) -> bytes:
        """The merkle root once ``first`` is placed as the leading leaf."""
        for step in self.steps:
            first = sha256d(first + (step or b""))
        return first