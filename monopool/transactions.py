"""Coinbase (generation) transaction construction."""

from __future__ import annotations

import logging
import math
import struct
import time
from typing import Protocol, Sequence

from monopool.blocktemplate import BlockTemplate
from monopool.encoding import (
    serialize_number,
    serialize_string,
    uint256_bytes_from_hash,
    var_int_bytes,
)
from monopool.scripts import p2pkh_address_to_script

_log = logging.getLogger(__name__)

_SCRIPT_SIG_TAG = "/by Command/"
_TX_COMMENT = "by Command"


class _Recipient(Protocol):
    percent: float

    def script(self) -> bytes | None: ...


def _hex(value: str, what: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise ValueError(f"invalid hex in {what}: {value!r}") from exc


def _output(amount: int, script: bytes) -> bytes:
    if amount < 0:
        raise ValueError("output rewards exceed the coinbase value")
    return struct.pack("<Q", amount) + var_int_bytes(len(script)) + script


def generate_output_transactions(
    pool_recipient: bytes,
    recipients: Sequence[_Recipient],
    rpc_data: BlockTemplate,
) -> bytes:
    """Serialize the coinbase outputs: witness commitment, pool, then payees."""
    reward = rpc_data.coinbase_value
    reward_to_pool = reward
    outputs: list[bytes] = []

    if rpc_data.masternode:
        _log.info("handling dash's masternode")
        for masternode in rpc_data.masternode:
            amount = masternode.amount
            reward -= amount
            reward_to_pool -= amount
            if masternode.script:
                script = _hex(masternode.script, "masternode script")
            else:
                script = p2pkh_address_to_script(masternode.payee)
            outputs.append(struct.pack(">Q", amount) + var_int_bytes(len(script)))

    if rpc_data.superblock:
        _log.info("handling dash's superblock")
        for superblock in rpc_data.superblock:
            amount = superblock.amount
            reward -= amount
            reward_to_pool -= amount
            if superblock.script:
                script = _hex(superblock.script, "superblock script")
            else:
                script = p2pkh_address_to_script(superblock.payee)
            outputs.append(_output(amount, script))

    if rpc_data.payee is not None:
        if rpc_data.payee_amount is not None:
            amount = int(rpc_data.payee_amount)
        else:
            amount = math.ceil(reward / 5)
        reward -= amount
        reward_to_pool -= amount
        if not isinstance(rpc_data.payee, str):
            raise ValueError("payee must be an address string")
        outputs.append(_output(amount, p2pkh_address_to_script(rpc_data.payee)))

    for recipient in recipients:
        script = recipient.script()
        if script is None:
            raise ValueError("recipient has no usable script")
        amount = math.floor(recipient.percent * reward)
        reward_to_pool -= amount
        outputs.append(_output(amount, script))

    outputs.insert(0, _output(reward_to_pool, pool_recipient))

    if rpc_data.default_witness_commitment:
        commitment = _hex(rpc_data.default_witness_commitment, "witness commitment")
        outputs.insert(0, _output(0, commitment))

    return var_int_bytes(len(outputs)) + b"".join(outputs)


def create_generation(
    rpc_data: BlockTemplate,
    public_key: bytes,
    extra_nonce_placeholder: bytes,
    reward: str,
    tx_messages: bool,
    recipients: Sequence[_Recipient],
    timestamp: int | None = None,
) -> tuple[bytes, bytes]:
    """The coinbase split around the extranonce placeholder: (part1, part2)."""
    if timestamp is None:
        timestamp = int(time.time())

    if tx_messages:
        tx_version = 2
        tx_comment = serialize_string(_TX_COMMENT)
    else:
        tx_version = 1
        tx_comment = b""
    tx_type = 0
    tx_extra_payload = b""
    tx_lock_time = 0

    if rpc_data.coinbase_payload:
        tx_version = 3
        tx_type = 5
        tx_extra_payload = _hex(rpc_data.coinbase_payload, "coinbase payload")

    tx_version += tx_type << 16

    tx_in_prev_out_index = (1 << 32) - 1
    tx_in_sequence = 0

    tx_timestamp = struct.pack("<I", rpc_data.curtime) if reward == "POS" else b""

    flags = _hex(rpc_data.coinbase_aux_flags, "coinbase aux flags")
    script_sig_part1 = (
        serialize_number(rpc_data.height)
        + flags
        + serialize_number(timestamp)
        + bytes([len(extra_nonce_placeholder)])
    )
    script_sig_part2 = serialize_string(_SCRIPT_SIG_TAG)

    script_sig_size = len(script_sig_part1) + len(extra_nonce_placeholder) + len(script_sig_part2)
    part1 = b"".join(
        [
            struct.pack("<I", tx_version & 0xFFFFFFFF),
            tx_timestamp,
            var_int_bytes(1),
            uint256_bytes_from_hash(""),
            struct.pack("<I", tx_in_prev_out_index),
            var_int_bytes(script_sig_size),
            script_sig_part1,
        ]
    )

    part2 = b"".join(
        [
            script_sig_part2,
            struct.pack("<I", tx_in_sequence),
            generate_output_transactions(public_key, recipients, rpc_data),
            struct.pack("<I", tx_lock_time),
            tx_comment,
        ]
    )

    if tx_extra_payload:
        part2 += var_int_bytes(len(tx_extra_payload)) + tx_extra_payload

    return part1, part2