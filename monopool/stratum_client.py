"""A connected stratum miner: request handling, difficulty and job delivery."""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from typing import Any, Callable

from monopool.counters import ShareCounts
from monopool.jsonrpc import JsonRpcError, JsonRpcRequest, JsonRpcResponse
from monopool.shares import ShareError
from monopool.vardiff import VarDiff

_log = logging.getLogger(__name__)

MAX_MESSAGE_SIZE = 10240


def _format_addr(host: Any, port: Any) -> str:
    host = str(host)
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _local_port(sock: Any) -> int | None:
    try:
        addr = sock.getsockname()
    except OSError:
        return None
    if isinstance(addr, tuple) and len(addr) >= 2:
        return addr[1]
    return None


def _peer_address(sock: Any) -> str:
    try:
        addr = sock.getpeername()
    except OSError:
        return "unknown"
    if isinstance(addr, tuple) and len(addr) >= 2:
        return _format_addr(addr[0], addr[1])
    return str(addr) if addr else "unknown"


def _str_param(params: list, index: int) -> str:
    if index < len(params) and isinstance(params[index], str):
        return params[index]
    return ""


class StratumClient:
    """One miner connection speaking line-delimited JSON-RPC."""

    def __init__(
        self,
        subscription_id: bytes,
        sock: Any,
        options: Any,
        job_manager: Any,
        banning_manager: Any,
        *,
        port: int | None = None,
        remote_address: str | None = None,
        on_close: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.subscription_id = subscription_id
        self.sock = sock
        self.options = options
        self.job_manager = job_manager
        self.banning_manager = banning_manager
        self.port = port if port is not None else _local_port(sock)
        self.remote_address = remote_address if remote_address is not None else _peer_address(sock)
        self._clock = clock
        self.last_activity = clock()
        self.shares = ShareCounts()
        self.is_authorized = False
        self.subscription_before_auth = False
        self.extra_nonce1: bytes | None = job_manager.extra_nonce1_generator.generate()

        port_options = self._port_options()
        var_diff_options = port_options.var_diff if port_options is not None else None
        self.var_diff = VarDiff(var_diff_options) if var_diff_options is not None else None

        self.worker_name = ""
        self.worker_pass = ""
        self.pending_difficulty: float | None = None
        self.current_difficulty: float | None = None
        self.previous_difficulty: float | None = None

        self.closed = False
        self._on_close = on_close
        self._send_lock = threading.Lock()
        self._close_lock = threading.Lock()

    def _port_options(self) -> Any:
        ports = self.options.ports or {}
        if self.port is None:
            return None
        return ports.get(self.port)

    @property
    def _subscription_number(self) -> str:
        return str(int.from_bytes(self.subscription_id[:8], "little"))

    def should_ban(self, share_valid: bool) -> bool:
        """Count the share; ban and close when too many shares were invalid."""
        if share_valid:
            self.shares.valid += 1
            return False

        self.shares.invalid += 1
        banning = self.options.banning
        if banning is None or self.shares.total() < banning.check_threshold:
            return False
        if self.shares.bad_percent() < banning.invalid_percent:
            self.shares.reset()
            return False

        _log.info(
            "%d out of the last %d shares were invalid", self.shares.invalid, self.shares.total()
        )
        self.banning_manager.add_banned_ip(self.remote_address)
        _log.warning(
            "closed socket %s due to shares bad percent reached the banning invalid percent threshold",
            self.worker_name,
        )
        self.close()
        return True

    def handle_message(self, message: JsonRpcRequest) -> None:
        if message.method == "mining.subscribe":
            self.handle_subscribe(message)
        elif message.method == "mining.authorize":
            self.handle_authorize(message, True)
        elif message.method == "mining.submit":
            self.last_activity = self._clock()
            self.handle_submit(message)
        elif message.method == "mining.get_transactions":
            self.send_json_rpc(JsonRpcResponse(id=0))
        else:
            _log.warning("unknown stratum method: %s", message.to_json().decode("utf-8"))

    def handle_subscribe(self, message: JsonRpcRequest) -> None:
        _log.info("handling subscribe")
        if not self.is_authorized:
            self.subscription_before_auth = True
        number = self._subscription_number
        self.send_json_rpc(
            JsonRpcResponse(
                id=message.id,
                result=[
                    [["mining.set_difficulty", number], ["mining.notify", number]],
                    (self.extra_nonce1 or b"").hex(),
                    self.job_manager.extra_nonce2_size,
                ],
            )
        )

    def handle_authorize(self, message: JsonRpcRequest, reply_to_socket: bool) -> None:
        _log.info("handling authorize")
        self.worker_name = _str_param(message.params, 0)
        self.worker_pass = _str_param(message.params, 1)

        authorized, disconnect, error = self.authorize(
            self.remote_address, self.port, self.worker_name, self.worker_pass
        )
        self.is_authorized = error is None and authorized

        if reply_to_socket:
            if self.is_authorized:
                self.send_json_rpc(JsonRpcResponse(id=message.id, result=True))
            else:
                self.send_json_rpc(
                    JsonRpcResponse(
                        id=message.id,
                        result=False,
                        error=JsonRpcError(
                            code=20, message=json.dumps(str(error) if error is not None else None)
                        ),
                    )
                )

        if disconnect:
            _log.warning("closed socket %s due to failed to authorize the miner", self.worker_name)
            self.close()
            return

        port_options = self._port_options()
        if port_options is not None:
            _log.info("sending init difficulty: %s", port_options.diff)
            self.send_difficulty(float(port_options.diff))
        job = self.job_manager.current_job
        if job is not None:
            self.send_mining_job(job.job_params(True))

    def authorize(
        self, remote_address: str, port: int | None, worker_name: str, password: str
    ) -> tuple[bool, bool, Any]:
        """Decide on a worker login: (authorized, disconnect, error). Accepts everyone."""
        _log.info("Authorize %s@%s", worker_name, remote_address)
        return True, False, None

    def handle_submit(self, message: JsonRpcRequest) -> None:
        if not self.is_authorized:
            self.send_json_rpc(
                JsonRpcResponse(
                    id=message.id, error=JsonRpcError(code=24, message="unauthorized worker")
                )
            )
            self.should_ban(False)
            return

        if self.extra_nonce1 is None:
            self.send_json_rpc(
                JsonRpcResponse(id=message.id, error=JsonRpcError(code=25, message="not subscribed"))
            )
            self.should_ban(False)
            return

        params = message.params
        share = self.job_manager.process_submit(
            _str_param(params, 1),
            self.previous_difficulty,
            self.current_difficulty,
            self.extra_nonce1,
            _str_param(params, 2),
            _str_param(params, 3),
            _str_param(params, 4),
            self.remote_address,
            _str_param(params, 0),
        )
        self.job_manager.process_share(share)

        if share.error_code == ShareError.LOW_DIFF_SHARE and self.current_difficulty is not None:
            _log.error("sending new diff %s to miner", self.current_difficulty)
            self.send_json_rpc(
                JsonRpcRequest(
                    id=None, method="mining.set_difficulty", params=[self.current_difficulty]
                )
            )

        if share.error_code == ShareError.NTIME_OUT_OF_RANGE:
            job = self.job_manager.current_job
            if job is not None:
                self.send_mining_job(job.job_params(True))

        if self.var_diff is not None and self.current_difficulty is not None:
            next_diff = self.var_diff.calc_next_diff(self.current_difficulty)
            if next_diff != self.current_difficulty and next_diff != 0:
                self.enqueue_next_difficulty(next_diff)

        self._flush_pending_difficulty()

        if self.should_ban(share.error_code is None):
            return

        if share.error_code is not None:
            error = JsonRpcError(code=int(share.error_code), message=share.error_code.message())
            _log.error("%s's share is invalid: %s", self.worker_name, error.message)
            self.send_json_rpc(JsonRpcResponse(id=message.id, result=False, error=error))
            return

        _log.info("%s submitted a valid share", self.worker_name)
        self.send_json_rpc(JsonRpcResponse(id=message.id, result=True))

    def _flush_pending_difficulty(self) -> None:
        diff = self.pending_difficulty
        if diff is None or diff == 0:
            return
        changed = self.send_difficulty(diff)
        self.pending_difficulty = None
        if changed:
            _log.info("Difficulty update to diff: %s & workerName: %s", diff, self.worker_name)

    def send_json_rpc(self, message: Any) -> None:
        """Write one message followed by a newline."""
        raw = message.to_json()
        with self._send_lock:
            try:
                self.sock.sendall(raw + b"\n")
            except OSError as exc:
                _log.error("failed sending %s: %s", raw, exc)
                return
        _log.debug("sent raw bytes: %s", raw)

    def serve(self) -> None:
        """Read and handle messages until the connection ends."""
        if self.banning_manager.check_ban(self.remote_address):
            _log.warning("kicked banned IP %s", self.remote_address)
            self.close()
            return

        first = True
        try:
            reader = self.sock.makefile("rb")
        except OSError as exc:
            _log.error("failed to read from socket: %s", exc)
            self.close()
            return

        with reader:
            while not self.closed:
                try:
                    raw = reader.readline(MAX_MESSAGE_SIZE + 1)
                except (OSError, ValueError) as exc:
                    if not self.closed:
                        _log.error("failed to read bytes from socket: %s", exc)
                    self.close()
                    return

                if not raw:
                    self.close()
                    return

                if len(raw) > MAX_MESSAGE_SIZE:
                    _log.warning("Flooding message from %s", self.label())
                    self.close()
                    return

                line = raw.strip()
                if not line:
                    continue

                if first and self.options.tcp_proxy_protocol:
                    first = False
                    if line.startswith(b"PROXY"):
                        self._apply_proxy_header(line)
                        continue
                    _log.error(
                        "Client IP detection failed, tcpProxyProtocol is enabled yet did not "
                        "receive proxy protocol message, instead got data: %r",
                        line,
                    )

                try:
                    message = JsonRpcRequest.from_json(line)
                except ValueError:
                    _log.error("Malformed message from %s: %r", self.label(), line)
                    self.close()
                    return

                if self.banning_manager.check_ban(self.remote_address):
                    self.close()
                    return

                _log.debug("handling message: %s", message.to_json())
                self.handle_message(message)

    def _apply_proxy_header(self, line: bytes) -> None:
        parts = line.decode("ascii", "replace").split()
        if len(parts) >= 6:
            self.remote_address = _format_addr(parts[2], parts[4])
        else:
            _log.error("failed to resolve tcp addr behind proxy: %r", line)

    def label(self) -> str:
        if self.worker_name:
            return f"{self.worker_name} [{self.remote_address}]"
        return f"(unauthorized) [{self.remote_address}]"

    def enqueue_next_difficulty(self, next_diff: float) -> bool:
        _log.info("Enqueue next difficulty: %s", next_diff)
        self.pending_difficulty = next_diff
        return True

    def send_difficulty(self, diff: float) -> bool:
        """Send a new difficulty; False if it equals the current one."""
        if diff is None:
            raise ValueError("trying to send empty diff!")
        if self.current_difficulty is not None and diff == self.current_difficulty:
            return False
        self.previous_difficulty = self.current_difficulty
        self.current_difficulty = diff
        self.send_json_rpc(JsonRpcRequest(id=0, method="mining.set_difficulty", params=[diff]))
        return True

    def send_mining_job(self, job_params: list) -> None:
        _log.info("sending job: %s", job_params)
        if self._clock() - self.last_activity > self.options.connection_timeout:
            _log.info("closed socket %s due to activity timeout", self.worker_name)
            self.close()
            return
        self._flush_pending_difficulty()
        self.send_json_rpc(JsonRpcRequest(id=None, method="mining.notify", params=list(job_params)))

    def manually_auth(self, username: str, password: str) -> None:
        self.handle_authorize(
            JsonRpcRequest(id=1, method="", params=[username, password]), False
        )

    def manually_set_values(self, other: StratumClient) -> None:
        self.extra_nonce1 = other.extra_nonce1
        self.previous_difficulty = other.previous_difficulty
        self.current_difficulty = other.current_difficulty

    def close(self) -> None:
        """Close the connection once and report it to the owner."""
        with self._close_lock:
            if self.closed:
                return
            self.closed = True
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self.sock.close()
        except OSError:
            pass
        if self._on_close is not None:
            self._on_close()