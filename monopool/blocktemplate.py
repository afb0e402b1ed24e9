"""Block templates as returned by a daemon's getblocktemplate call."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

_MISSING = object()


def _lookup(data: dict, key: str) -> Any:
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if name.lower() == lowered:
            return value
    return _MISSING


def _get(data: dict, key: str, kind: type | tuple, default: Any) -> Any:
    value = _lookup(data, key)
    if value is _MISSING or value is None:
        return default
    if isinstance(value, bool) and kind is not bool:
        raise ValueError(f"{key} has the wrong type")
    if not isinstance(value, kind):
        raise ValueError(f"{key} has the wrong type")
    return value


def _optional(data: dict, key: str) -> Any:
    value = _lookup(data, key)
    return None if value is _MISSING else value


@dataclass
class MasternodeParams:
    payee: str = ""
    script: str = ""
    amount: int = 0


@dataclass
class SuperblockParams:
    payee: str = ""
    script: str = ""
    amount: int = 0


def _payments(data: dict, key: str, cls):
    items = _get(data, key, list, [])
    result = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f"{key} entries must be objects")
        result.append(
            cls(
                payee=_get(item, "payee", str, ""),
                script=_get(item, "script", str, ""),
                amount=_get(item, "amount", int, 0),
            )
        )
    return result


@dataclass
class TxParams:
    data: str = ""
    hash: str = ""
    depends: list = field(default_factory=list)
    fee: int = 0
    sigops: int = 0
    txid: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> TxParams:
        if not isinstance(data, dict):
            raise ValueError("transaction must be an object")
        return cls(
            data=_get(data, "data", str, ""),
            hash=_get(data, "hash", str, ""),
            depends=list(_get(data, "depends", list, [])),
            fee=_get(data, "fee", int, 0),
            sigops=_get(data, "sigops", int, 0),
            txid=_get(data, "txid", str, ""),
        )


@dataclass
class BlockTemplate:
    version: int = 0
    bits: str = ""
    curtime: int = 0
    height: int = 0
    previous_block_hash: str = ""
    transactions: list[TxParams] = field(default_factory=list)
    coinbase_aux_flags: str = ""
    coinbase_value: int = 0
    default_witness_commitment: str = ""
    target: str = ""
    masternode: list[MasternodeParams] = field(default_factory=list)
    superblock: list[SuperblockParams] = field(default_factory=list)
    coinbase_payload: str = ""
    votes: list[str] = field(default_factory=list)
    masternode_payments: Any = None
    payee: Any = None
    payee_amount: Any = None

    @classmethod
    def from_dict(cls, data: dict) -> BlockTemplate:
        """Build a template from a decoded JSON object."""
        if not isinstance(data, dict):
            raise ValueError("block template must be an object")
        aux = _get(data, "coinbaseaux", dict, {})
        return cls(
            version=_get(data, "version", int, 0),
            bits=_get(data, "bits", str, ""),
            curtime=_get(data, "curtime", int, 0),
            height=_get(data, "height", int, 0),
            previous_block_hash=_get(data, "previousblockhash", str, ""),
            transactions=[
                TxParams.from_dict(tx)
                for tx in _get(data, "transactions", list, [])
                if tx is not None
            ],
            coinbase_aux_flags=_get(aux, "flags", str, ""),
            coinbase_value=_get(data, "coinbasevalue", int, 0),
            default_witness_commitment=_get(data, "default_witness_commitment", str, ""),
            target=_get(data, "target", str, ""),
            masternode=_payments(data, "masternode", MasternodeParams),
            superblock=_payments(data, "superblock", SuperblockParams),
            coinbase_payload=_get(data, "coinbase_payload", str, ""),
            votes=list(_get(data, "votes", list, [])),
            masternode_payments=_optional(data, "masternodepayments"),
            payee=_optional(data, "payee"),
            payee_amount=_optional(data, "payeeamount"),
        )


def parse_block_template(raw: bytes | str) -> BlockTemplate:
    """Parse the JSON result of getblocktemplate."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"malformed block template: {exc}") from exc
    return BlockTemplate.from_dict(data)