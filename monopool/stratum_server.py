"""The stratum listener: accepts miners and broadcasts jobs to them."""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Any, Callable

from monopool.counters import SubscriptionCounter
from monopool.stratum_client import StratumClient

_log = logging.getLogger(__name__)


def _client_key(subscription_id: bytes) -> int:
    return int.from_bytes(subscription_id[:8], "little")


class StratumServer:
    """Listens on the configured ports and keeps the connected clients."""

    def __init__(
        self,
        options: Any,
        job_manager: Any,
        banning_manager: Any,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.options = options
        self.job_manager = job_manager
        self.banning_manager = banning_manager
        self.subscription_counter = SubscriptionCounter()
        self.clients: dict[int, StratumClient] = {}
        self.listeners: list[socket.socket] = []
        self._clock = clock
        self._lock = threading.Lock()
        self._stop_event = threading.Event()

    def start(self) -> list[int]:
        """Listen on every configured port; return the ports actually bound."""
        if self.options.banning is not None:
            self.banning_manager.start()

        started: list[int] = []
        for port, port_options in (self.options.ports or {}).items():
            try:
                listener = self._listen(int(port), port_options)
            except OSError as exc:
                _log.error("failed to listen on port %s: %s", port, exc)
                continue
            self.listeners.append(listener)
            started.append(listener.getsockname()[1])

        if not started:
            raise RuntimeError("No port listened")

        self._stop_event.clear()
        for listener in self.listeners:
            threading.Thread(
                target=self._accept_loop, args=(listener,), name="stratum-accept", daemon=True
            ).start()

        timeout = self.options.job_rebroadcast_timeout
        if timeout and timeout > 0:
            threading.Thread(
                target=self._rebroadcast_loop, args=(timeout,), name="stratum-rebroadcast", daemon=True
            ).start()
        else:
            _log.warning("job rebroadcasting is disabled")
        return started

    @staticmethod
    def _listen(port: int, port_options: Any) -> socket.socket:
        listener = socket.create_server(("", port))
        tls = port_options.tls if port_options is not None else None
        if tls is not None:
            try:
                listener = tls.to_ssl_context().wrap_socket(listener, server_side=True)
            except Exception:
                listener.close()
                raise
        return listener

    def _accept_loop(self, listener: socket.socket) -> None:
        while not self._stop_event.is_set():
            try:
                conn, _ = listener.accept()
            except OSError as exc:
                if self._stop_event.is_set() or listener.fileno() == -1:
                    return
                _log.error("accept failed: %s", exc)
                continue
            _log.info("new conn from %s", conn.getpeername())
            self.handle_new_client(conn)

    def _rebroadcast_loop(self, timeout: float) -> None:
        last_id = None
        last_txs = None
        while not self._stop_event.wait(timeout):
            job = self.job_manager.current_job
            if job is None:
                continue
            force = job.job_id != last_id or job.transaction_data != last_txs
            self.broadcast_current_mining_job(job.job_params(force))
            last_id = job.job_id
            last_txs = job.transaction_data
        _log.warning("broadcaster stopped")

    def stop(self) -> None:
        """Stop listening and disconnect every client."""
        self._stop_event.set()
        for listener in self.listeners:
            try:
                listener.close()
            except OSError:
                pass
        self.listeners = []
        with self._lock:
            clients = list(self.clients.values())
        for client in clients:
            client.close()
        if self.options.banning is not None:
            self.banning_manager.stop()

    def handle_new_client(self, sock: Any) -> bytes:
        """Register a connection as a client, start serving it and return its subscription id."""
        with self._lock:
            subscription_id = self.subscription_counter.next()

        def on_close() -> None:
            _log.warning("a client socket closed")
            self.remove_client(subscription_id)

        client = StratumClient(
            subscription_id,
            sock,
            self.options,
            self.job_manager,
            self.banning_manager,
            on_close=on_close,
            clock=self._clock,
        )
        with self._lock:
            self.clients[_client_key(subscription_id)] = client
        threading.Thread(target=client.serve, name="stratum-client", daemon=True).start()
        return subscription_id

    def broadcast_current_mining_job(self, job_params: list) -> None:
        _log.info("broadcasting job params")
        with self._lock:
            clients = list(self.clients.values())
        for client in clients:
            client.send_mining_job(job_params)

    def remove_client(self, subscription_id: bytes) -> None:
        with self._lock:
            self.clients.pop(_client_key(subscription_id), None)

    def manually_add_client(self, client: StratumClient) -> StratumClient | None:
        """Take over another client's socket, login and difficulty state."""
        subscription_id = self.handle_new_client(client.sock)
        with self._lock:
            new_client = self.clients.get(_client_key(subscription_id))
        if new_client is not None:
            new_client.manually_auth(client.worker_name, client.worker_pass)
            new_client.manually_set_values(client)
        return new_client