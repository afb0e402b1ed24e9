"""A mining job built from one block template."""

from __future__ import annotations

import logging
import struct
import time
from typing import Any, Sequence

from monopool.algorithm import MAX_TARGET_TRUNCATED
from monopool.blocktemplate import BlockTemplate, TxParams
from monopool.encoding import (
    bigint_from_bits_hex,
    reverse_byte_order,
    uint256_bytes_from_hash,
    var_int_bytes,
)
from monopool.merkletree import MerkleTree, get_merkle_hashes
from monopool.transactions import create_generation

_log = logging.getLogger(__name__)


def _hex(value: str, what: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise ValueError(f"invalid hex in {what}: {value!r}") from exc


def transaction_hashes(txs: Sequence[TxParams]) -> list[bytes | None]:
    """Merkle leaves: a placeholder for the coinbase, then each tx hash reversed."""
    hashes: list[bytes | None] = [None]
    for tx in txs:
        if tx.txid:
            hashes.append(uint256_bytes_from_hash(tx.txid))
        elif tx.hash:
            hashes.append(uint256_bytes_from_hash(tx.hash))
        else:
            raise ValueError("no hash or txid in transactions params")
    return hashes


class Job:
    """Work derived from a block template, handed to miners via mining.notify."""

    def __init__(
        self,
        job_id: str,
        rpc_data: BlockTemplate,
        pool_address_script: bytes,
        extra_nonce_placeholder: bytes,
        reward: str,
        tx_messages: bool,
        recipients: Sequence[Any],
        timestamp: int | None = None,
    ):
        if rpc_data.target:
            target = int(rpc_data.target, 16)
        else:
            target = bigint_from_bits_hex(rpc_data.bits)
        if target <= 0:
            raise ValueError("block template target must be positive")

        self.block_template = rpc_data
        self.job_id = job_id
        self.target = target
        self.difficulty = MAX_TARGET_TRUNCATED / target
        self.prev_hash_reversed = reverse_byte_order(
            _hex(rpc_data.previous_block_hash, "previous block hash")
        ).hex()
        self.transaction_data = b"".join(
            _hex(tx.data, "transaction data") for tx in rpc_data.transactions
        )
        self.merkle_tree = MerkleTree(transaction_hashes(rpc_data.transactions))
        self.merkle_branch = get_merkle_hashes(self.merkle_tree.steps)
        self.generation_transaction = create_generation(
            rpc_data,
            pool_address_script,
            extra_nonce_placeholder,
            reward,
            tx_messages,
            recipients,
            timestamp,
        )
        self.reward = ""
        self.submits: set[str] = set()
        _log.info("New Job, diff: %s", self.difficulty)

    def serialize_coinbase(self, extra_nonce1: bytes, extra_nonce2: bytes) -> bytes:
        part1, part2 = self.generation_transaction
        return part1 + extra_nonce1 + extra_nonce2 + part2

    def serialize_block(self, header: bytes, coinbase: bytes) -> bytes:
        # POS coins need a trailing zero byte the daemon replaces with the signature.
        suffix = b"\x00" if self.reward == "POS" else b""
        vote_data = self.vote_data()
        if not vote_data:
            _log.warning("no vote data")
        return b"".join(
            [
                header,
                var_int_bytes(len(self.block_template.transactions) + 1),
                coinbase,
                self.transaction_data,
                vote_data,
                suffix,
            ]
        )

    def serialize_header(self, merkle_root: bytes, ntime: bytes, nonce: bytes) -> bytes:
        """The 80-byte block header in little-endian order."""
        bits = _hex(self.block_template.bits, "bits")
        prev_hash = _hex(self.block_template.previous_block_hash, "previous block hash")
        version = struct.pack(">I", self.block_template.version & 0xFFFFFFFF)
        header = nonce + bits + ntime + merkle_root + prev_hash + version
        if len(header) > 80:
            raise ValueError("header fields exceed 80 bytes")
        return header.ljust(80, b"\x00")[::-1]

    def register_submit(self, extra_nonce1: str, extra_nonce2: str, ntime: str, nonce: str) -> bool:
        """Record a submission; False if the same one was seen before."""
        submission = extra_nonce1 + extra_nonce2 + ntime + nonce
        if submission in self.submits:
            return False
        self.submits.add(submission)
        return True

    def job_params(self, force_update: bool) -> list:
        part1, part2 = self.generation_transaction
        return [
            self.job_id,
            self.prev_hash_reversed,
            part1.hex(),
            part2.hex(),
            self.merkle_branch,
            struct.pack(">I", self.block_template.version & 0xFFFFFFFF).hex(),
            self.block_template.bits,
            struct.pack(">I", int(time.time()) & 0xFFFFFFFF).hex(),
            force_update,
        ]

    def vote_data(self) -> bytes:
        if self.block_template.masternode_payments is None:
            return b""
        return var_int_bytes(len(self.block_template.votes))