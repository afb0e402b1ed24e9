"""The mining pool: wires daemons, jobs, storage and the stratum server together."""

from __future__ import annotations

import argparse
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from monopool.banning import BanningManager
from monopool.coindata import check_all_ready, detect_coin_data, detect_magnitude
from monopool.config import ConfigError, load_options
from monopool.daemons import DaemonError, DaemonManager
from monopool.encoding import readable_hashrate
from monopool.job_manager import JobManager
from monopool.storage import Storage
from monopool.stratum_server import StratumServer

_log = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.json"
DEFAULT_MAGNITUDE = 100_000_000

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "dpanic": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}


@dataclass
class PoolStats:
    """Network figures shown when the pool starts."""

    connections: int = 0
    difficulty: float = 0.0
    network_hashrate: float = 0.0
    stratum_ports: list[int] = field(default_factory=list)


class Pool:
    """A running pool built from options; components may be supplied ready-made."""

    def __init__(
        self,
        options: Any,
        *,
        daemon_manager: Any = None,
        storage: Any = None,
        job_manager: Any = None,
        banning_manager: Any = None,
        stratum_server: Any = None,
    ):
        self.options = options
        if daemon_manager is None:
            daemon_manager = DaemonManager(options.daemons, options.coin)
            daemon_manager.check()
        self.daemon_manager = daemon_manager

        if options.pool_address is None or options.pool_address.script() is None:
            raise ConfigError("failed to get poolAddress' script, check the address and type")
        for recipient in options.reward_recipients or []:
            if recipient.script() is None:
                raise ConfigError(
                    f"failed to get addr {recipient.address}' script, check the address and type"
                )

        magnitude = DEFAULT_MAGNITUDE
        if not options.disable_payment:
            magnitude = detect_magnitude(daemon_manager)
        self.magnitude = magnitude
        self.coin_precision = len(str(magnitude)) - 1

        if storage is None:
            storage = Storage.from_options(options.coin.name, options.storage)
        self.storage = storage

        if job_manager is None:
            job_manager = JobManager(options, daemon_manager, storage)
        self.job_manager = job_manager

        if stratum_server is None:
            if banning_manager is None:
                banning_manager = BanningManager(options.banning)
            stratum_server = StratumServer(options, job_manager, banning_manager)
        self.banning_manager = banning_manager
        self.stratum_server = stratum_server

        self.stats = PoolStats()
        self.protocol_version = 0
        self._stop_polling = threading.Event()
        self._polling_thread: threading.Thread | None = None

    def start(self) -> None:
        """Check the daemons, build the first job and start serving miners."""
        check_all_ready(self.daemon_manager)
        coin_data = detect_coin_data(self.daemon_manager, self.options)
        self.stats.difficulty = coin_data.difficulty
        self.stats.network_hashrate = coin_data.network_hashrate
        self.stats.connections = coin_data.connections
        self.protocol_version = coin_data.protocol_version

        initial = self.daemon_manager.get_block_template()
        self.setup_block_polling()
        self.job_manager.start(initial)
        self.start_stratum_server()
        print("\n\t".join(self.pool_info_lines()))

    def setup_block_polling(self) -> bool:
        """Poll for block templates in the background; False if polling is disabled."""
        interval = self.options.block_refresh_interval
        if not interval or interval <= 0:
            _log.warning("Block template polling has been disabled")
            return False

        self._stop_polling.clear()

        def poll() -> None:
            while not self._stop_polling.wait(interval):
                try:
                    template = self.daemon_manager.get_block_template()
                except DaemonError as exc:
                    _log.error(
                        "Block notify error getting block template for %s: %s",
                        self.options.coin.name,
                        exc,
                    )
                    continue
                if template is not None:
                    self.job_manager.process_template(template)
            _log.warning("Block polling is stopped!")

        self._polling_thread = threading.Thread(target=poll, name="block-polling", daemon=True)
        self._polling_thread.start()
        return True

    def attach_miners(self, miners: Sequence[Any]) -> None:
        """Take over existing miner connections and send them the current job."""
        for miner in miners:
            self.stratum_server.manually_add_client(miner)
        self.stratum_server.broadcast_current_mining_job(
            self.job_manager.current_job.job_params(True)
        )

    def start_stratum_server(self) -> list[int]:
        ports = self.stratum_server.start()
        self.stats.stratum_ports = list(ports)
        return self.stats.stratum_ports

    def pool_info_lines(self) -> list[str]:
        """The summary printed once the pool is running."""
        coin = self.options.coin
        job = self.job_manager.current_job
        network = "Testnet" if coin.testnet else "Mainnet"
        block_diff = job.difficulty * (1 << self.options.algorithm.multiplier)
        ports = json.dumps(self.stats.stratum_ports, separators=(",", ":"))
        return [
            f"Stratum Pool Server Started for {coin.name} [{coin.symbol.upper()}] ",
            f"Network Connected:\t{network}",
            f"Detected Reward Type:\t{coin.reward}",
            f"Current Block Height:\t{job.block_template.height}",
            f"Current Connect Peers:\t{self.stats.connections}",
            f"Current Block Diff:\t{block_diff:.7f}",
            f"Network Difficulty:\t{self.stats.difficulty:.7f}",
            f"Network Hash Rate:\t{readable_hashrate(self.stats.network_hashrate)}",
            f"Stratum Port(s):\t{ports}",
            f"Total Pool Fee Percent:\t{self.options.total_fee_percent():.7f}%",
        ]

    def stop(self) -> None:
        """Stop polling and the stratum server."""
        self._stop_polling.set()
        if self._polling_thread is not None:
            self._polling_thread.join(timeout=5)
            self._polling_thread = None
        self.stratum_server.stop()


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="monopool", description="Run a stratum mining pool.")
    parser.add_argument(
        "-c", dest="config", default=DEFAULT_CONFIG_FILE, help="configuration file for pool"
    )
    parser.add_argument(
        "-l", dest="level", default="debug", choices=sorted(_LOG_LEVELS), help="log level"
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=_LOG_LEVELS[args.level])

    path = Path(args.config)
    if not path.is_file():
        raise SystemExit(f"the config file {path} does not exist")

    pool = Pool(load_options(path))
    pool.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pool.stop()
    return 0