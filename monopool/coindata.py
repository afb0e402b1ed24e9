"""Start-up probing of the coin daemons: readiness, reward type and network data."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from monopool.config import ConfigError, Options
from monopool.daemons import GBT_PARAMS, DaemonError, DaemonManager
from monopool.jsonrpc import JsonRpcResponse
from monopool.rpcresults import (
    parse_blockchain_info,
    parse_difficulty,
    parse_info,
    parse_mining_info,
    parse_network_info,
)

_log = logging.getLogger(__name__)

_BALANCE_DECIMALS = re.compile(r'"result"\s*:\s*-?\d+\.(\d+)')


@dataclass
class CoinData:
    """What the daemons reported about the coin and its network."""

    reward: str = ""
    difficulty: float = 0.0
    network_hashrate: float = 0.0
    no_submit_block: bool = False
    testnet: bool = False
    protocol_version: int = 0
    connections: int = 0


def _checked(daemon_manager: DaemonManager, method: str) -> JsonRpcResponse:
    _, response, _ = daemon_manager.cmd(method, [])
    if response.error is not None:
        raise DaemonError(
            f"Could not start pool, error with init batch RPC call {method}: "
            f"{response.error.message}"
        )
    return response


def detect_magnitude(daemon_manager: DaemonManager) -> int:
    """Derive the satoshi magnitude from the decimals of the wallet balance."""
    _, response, http = daemon_manager.cmd("getbalance", [])
    if response.error is not None:
        raise DaemonError(f"getbalance failed: {response.error.message}")
    match = _BALANCE_DECIMALS.search(http.text)
    if match is None:
        raise DaemonError(
            "Error detecting number of satoshis in a coin, cannot do payments processing. "
            f"Tried parsing: {http.text}"
        )
    return int(f"10{len(match.group(1))}0")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def detect_coin_data(daemon_manager: DaemonManager, options: Options) -> CoinData:
    """Probe the daemons and fill the auto-detected coin options."""
    coin = options.coin
    if coin is None:
        raise ConfigError("coin options are missing")
    if options.algorithm is None:
        raise ConfigError("algorithm options are missing")

    diff = 0.0
    difficulty = parse_difficulty(_checked(daemon_manager, "getdifficulty").result)
    if _is_number(difficulty):
        diff = float(difficulty)
        coin.reward = "POW"
    elif isinstance(difficulty, dict):
        pow_diff = difficulty.get("proof-of-work")
        if not _is_number(pow_diff):
            raise DaemonError("getdifficulty returned no proof-of-work difficulty")
        diff = float(pow_diff)
        if not coin.reward:
            coin.reward = "POS" if "proof-of-stake" in difficulty else "POW"
    else:
        _log.error("unexpected getdifficulty result: %r", difficulty)

    mining = parse_mining_info(_checked(daemon_manager, "getmininginfo").result)

    _, submit, _ = daemon_manager.cmd("submitblock", [])
    if submit.error is None:
        raise DaemonError("Could not start pool, error with init batch RPC call: submitblock")
    if submit.error.message == "Method not found":
        coin.no_submit_block = True
    elif submit.error.code == -1:
        coin.no_submit_block = False
    else:
        raise DaemonError(
            "Could not detect block submission RPC method, "
            f"code {submit.error.code}: {submit.error.message}"
        )

    _checked(daemon_manager, "getwalletinfo")

    _, info_response, _ = daemon_manager.cmd("getinfo", [])
    if info_response.error is None:
        info = parse_info(info_response.result)
        coin.testnet = info.testnet
        protocol_version = info.protocol_version
        connections = info.connections
    else:
        network = parse_network_info(_checked(daemon_manager, "getnetworkinfo").result)
        chain = parse_blockchain_info(_checked(daemon_manager, "getblockchaininfo").result)
        coin.testnet = "test" in chain.chain
        protocol_version = network.protocol_version
        connections = network.connections

    return CoinData(
        reward=coin.reward,
        difficulty=diff * (1 << options.algorithm.multiplier),
        network_hashrate=mining.network_hashps,
        no_submit_block=coin.no_submit_block,
        testnet=coin.testnet,
        protocol_version=protocol_version,
        connections=connections,
    )


def check_all_ready(daemon_manager: DaemonManager) -> None:
    """Raise DaemonError unless every daemon can hand out block templates."""
    _, results = daemon_manager.cmd_all("getblocktemplate", GBT_PARAMS)
    for daemon, result in zip(daemon_manager.daemons, results):
        if result is None:
            raise DaemonError(f"daemon {daemon.url()} is not available")
        if result.error is not None:
            raise DaemonError(
                f"daemon {daemon.url()} is not ready for mining: {result.error.message}"
            )