"""Typed records for the results of coin daemon RPC calls.

Every ``parse_*`` function takes either raw JSON text (``bytes`` or ``str``)
or an already decoded JSON value. Keys are matched case-insensitively, and
``null`` values leave a field at its default.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from typing import Any

_MISSING = object()


def _decode(raw: Any, what: str) -> Any:
    if isinstance(raw, (bytes, bytearray, str)):
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValueError(f"{what} call failed with error {exc}") from exc
    return raw


def _lookup(data: dict, key: str) -> Any:
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if name.lower() == lowered:
            return value
    return _MISSING


def _check(key: str, value: Any, kind: type | None) -> Any:
    if kind is None:
        return value
    if kind is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{key} must be a number")
        return float(value)
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{key} must be an integer")
        return value
    if not isinstance(value, kind):
        raise ValueError(f"{key} must be of type {kind.__name__}")
    return list(value) if kind is list else value


def _build(cls, data: Any):
    if not isinstance(data, dict):
        raise ValueError(f"{cls.__name__} must be a JSON object")
    kwargs = {}
    for f in fields(cls):
        key = f.metadata["json"]
        value = _lookup(data, key)
        if value is _MISSING or value is None:
            continue
        loader = f.metadata.get("load")
        kwargs[f.name] = loader(value) if loader else _check(key, value, f.metadata.get("kind"))
    return cls(**kwargs)


def _f(key: str, kind: type | None, default: Any = None, *, factory=None):
    metadata = {"json": key, "kind": kind}
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _nested(key: str, cls):
    return field(default_factory=cls, metadata={"json": key, "load": lambda v: _build(cls, v)})


def _expect_list(key: str, value: Any) -> list:
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a list")
    return value


def _nested_list(key: str, cls):
    return field(
        default_factory=list,
        metadata={
            "json": key,
            "load": lambda v: [_build(cls, item) for item in _expect_list(key, v)],
        },
    )


def _strings(key: str):
    def load(value: Any) -> list[str]:
        items = _expect_list(key, value)
        if not all(isinstance(item, str) for item in items):
            raise ValueError(f"{key} must be a list of strings")
        return list(items)

    return field(default_factory=list, metadata={"json": key, "load": load})


@dataclass
class BlockInfo:
    """Result of ``getblock``."""

    hash: str = _f("hash", str, "")
    confirmations: int = _f("confirmations", int, 0)
    stripped_size: int = _f("strippedsize", int, 0)
    size: int = _f("size", int, 0)
    weight: int = _f("weight", int, 0)
    height: int = _f("height", int, 0)
    version: int = _f("version", int, 0)
    version_hex: str = _f("versionHex", str, "")
    merkle_root: str = _f("merkleroot", str, "")
    tx: list[str] = _strings("tx")
    time: int = _f("time", int, 0)
    median_time: int = _f("mediantime", int, 0)
    nonce: int = _f("nonce", int, 0)
    bits: str = _f("bits", str, "")
    difficulty: float = _f("difficulty", float, 0.0)
    chain_work: str = _f("chainwork", str, "")
    n_tx: int = _f("nTx", int, 0)
    previous_block_hash: str = _f("previousblockhash", str, "")


@dataclass
class Bip9Deployment:
    status: str = _f("status", str, "")
    start_time: int = _f("startTime", int, 0)
    timeout: int = _f("timeout", int, 0)
    since: int = _f("since", int, 0)


@dataclass
class Bip9Softforks:
    csv: Bip9Deployment = _nested("csv", Bip9Deployment)
    dip0001: Bip9Deployment = _nested("dip0001", Bip9Deployment)
    dip0003: Bip9Deployment = _nested("dip0003", Bip9Deployment)
    dip0008: Bip9Deployment = _nested("dip0008", Bip9Deployment)
    bip147: Bip9Deployment = _nested("bip147", Bip9Deployment)


@dataclass
class BlockchainInfo:
    """Result of ``getblockchaininfo``."""

    chain: str = _f("chain", str, "")
    blocks: int = _f("blocks", int, 0)
    headers: int = _f("headers", int, 0)
    best_block_hash: str = _f("bestblockhash", str, "")
    difficulty: float = _f("difficulty", float, 0.0)
    median_time: int = _f("mediantime", int, 0)
    verification_progress: float = _f("verificationprogress", float, 0.0)
    chain_work: str = _f("chainwork", str, "")
    pruned: bool = _f("pruned", bool, False)
    softforks: Any = _f("softforks", None)
    bip9_softforks: Bip9Softforks = _nested("bip9_softforks", Bip9Softforks)


@dataclass
class NodeInfo:
    """Result of the legacy ``getinfo`` call."""

    version: int = _f("version", int, 0)
    protocol_version: int = _f("protocolversion", int, 0)
    wallet_version: int = _f("walletversion", int, 0)
    balance: float = _f("balance", float, 0.0)
    privatesend_balance: float = _f("privatesend_balance", float, 0.0)
    blocks: int = _f("blocks", int, 0)
    time_offset: int = _f("timeoffset", int, 0)
    connections: int = _f("connections", int, 0)
    proxy: str = _f("proxy", str, "")
    difficulty: float = _f("difficulty", float, 0.0)
    testnet: bool = _f("testnet", bool, False)
    keypool_oldest: int = _f("keypoololdest", int, 0)
    keypool_size: int = _f("keypoolsize", int, 0)
    pay_tx_fee: float = _f("paytxfee", float, 0.0)
    relay_fee: float = _f("relayfee", float, 0.0)
    errors: str = _f("errors", str, "")


@dataclass
class MiningInfo:
    """Result of ``getmininginfo``."""

    blocks: int = _f("blocks", int, 0)
    current_block_size: int = _f("currentblocksize", int, 0)
    current_block_tx: int = _f("currentblocktx", int, 0)
    difficulty: float = _f("difficulty", float, 0.0)
    errors: str = _f("errors", str, "")
    network_hashps: float = _f("networkhashps", float, 0.0)
    pooled_tx: int = _f("pooledtx", int, 0)
    chain: str = _f("chain", str, "")


@dataclass
class NetworkEntry:
    name: str = _f("name", str, "")
    limited: bool = _f("limited", bool, False)
    reachable: bool = _f("reachable", bool, False)
    proxy: str = _f("proxy", str, "")
    proxy_randomize_credentials: bool = _f("proxy_randomize_credentials", bool, False)


@dataclass
class NetworkInfo:
    """Result of ``getnetworkinfo``."""

    version: int = _f("version", int, 0)
    subversion: str = _f("subversion", str, "")
    protocol_version: int = _f("protocolversion", int, 0)
    local_services: str = _f("localservices", str, "")
    local_relay: bool = _f("localrelay", bool, False)
    time_offset: int = _f("timeoffset", int, 0)
    network_active: bool = _f("networkactive", bool, False)
    connections: int = _f("connections", int, 0)
    networks: list[NetworkEntry] = _nested_list("networks", NetworkEntry)
    relay_fee: float = _f("relayfee", float, 0.0)
    incremental_fee: float = _f("incrementalfee", float, 0.0)
    local_addresses: list = _f("localaddresses", list, factory=list)
    warnings: str = _f("warnings", str, "")


@dataclass
class WalletInfo:
    """Result of ``getwalletinfo``."""

    wallet_version: int = _f("walletversion", int, 0)
    balance: float = _f("balance", float, 0.0)
    privatesend_balance: float = _f("privatesend_balance", float, 0.0)
    unconfirmed_balance: float = _f("unconfirmed_balance", float, 0.0)
    immature_balance: float = _f("immature_balance", float, 0.0)
    tx_count: int = _f("txcount", int, 0)
    keypool_oldest: int = _f("keypoololdest", int, 0)
    keypool_size: int = _f("keypoolsize", int, 0)
    keys_left: int = _f("keys_left", int, 0)
    pay_tx_fee: float = _f("paytxfee", float, 0.0)


@dataclass
class EmbeddedAddress:
    is_script: bool = _f("isscript", bool, False)
    is_witness: bool = _f("iswitness", bool, False)
    witness_version: int = _f("witness_version", int, 0)
    witness_program: str = _f("witness_program", str, "")
    pubkey: str = _f("pubkey", str, "")
    address: str = _f("address", str, "")
    script_pubkey: str = _f("scriptPubKey", str, "")


@dataclass
class AddressLabel:
    name: str = _f("name", str, "")
    purpose: str = _f("purpose", str, "")


@dataclass
class AddressValidation:
    """Result of ``validateaddress``."""

    is_valid: bool = _f("isvalid", bool, False)
    address: str = _f("address", str, "")
    script_pubkey: str = _f("scriptPubKey", str, "")
    is_mine: bool = _f("ismine", bool, False)
    is_watch_only: bool = _f("iswatchonly", bool, False)
    is_script: bool = _f("isscript", bool, False)
    is_witness: bool = _f("iswitness", bool, False)
    script: str = _f("script", str, "")
    hex: str = _f("hex", str, "")
    pubkey: str = _f("pubkey", str, "")
    embedded: EmbeddedAddress = _nested("embedded", EmbeddedAddress)
    addresses: list[str] = _strings("addresses")
    label: str = _f("label", str, "")
    timestamp: int = _f("timestamp", int, 0)
    hd_key_path: str = _f("hdkeypath", str, "")
    hd_seed_id: str = _f("hdseedid", str, "")
    hd_master_key_id: str = _f("hdmasterkeyid", str, "")
    labels: list[AddressLabel] = _nested_list("labels", AddressLabel)


def _parse(cls, raw: Any, what: str):
    data = _decode(raw, what)
    try:
        return _build(cls, data)
    except ValueError as exc:
        raise ValueError(f"{what} call failed with error {exc}") from exc


def parse_block(raw: Any) -> BlockInfo:
    return _parse(BlockInfo, raw, "getblock")


def parse_blockchain_info(raw: Any) -> BlockchainInfo:
    return _parse(BlockchainInfo, raw, "getblockchaininfo")


def parse_difficulty(raw: Any) -> Any:
    """The decoded ``getdifficulty`` result: a number or a per-algorithm object."""
    return _decode(raw, "getdifficulty")


def parse_info(raw: Any) -> NodeInfo:
    return _parse(NodeInfo, raw, "getinfo")


def parse_mining_info(raw: Any) -> MiningInfo:
    return _parse(MiningInfo, raw, "getmininginfo")


def parse_network_info(raw: Any) -> NetworkInfo:
    return _parse(NetworkInfo, raw, "getnetworkinfo")


def parse_wallet_info(raw: Any) -> WalletInfo:
    return _parse(WalletInfo, raw, "getwalletinfo")


def parse_validate_address(raw: Any) -> AddressValidation:
    return _parse(AddressValidation, raw, "validateaddress")


def parse_balance(raw: Any) -> float:
    """The ``getbalance`` result as a float."""
    value = _decode(raw, "getbalance")
    return _check("getbalance", value, float)