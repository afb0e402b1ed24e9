"""JSON-RPC access to one or more coin daemons."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, Sequence

import requests

from monopool.blocktemplate import BlockTemplate
from monopool.config import CoinOptions, DaemonOptions
from monopool.encoding import rand_positive_int64
from monopool.jsonrpc import JsonRpcError, JsonRpcResponse

_log = logging.getLogger(__name__)

GBT_PARAMS = [
    {"capabilities": ["coinbasetxn", "workid", "coinbase/append"], "rules": ["segwit"]}
]

_CLIENT_ERRORS = {
    0: "daemon cannot understand the request",
    1: "daemon requires authorization (have to login before request)",
    3: "daemon rejected the request",
    4: "daemon cannot find the resource requested",
    13: "daemon cannot deal this large request",
}


class DaemonError(Exception):
    """A daemon could not be reached or answered with an error."""


def check_status_code(status_code: int) -> None:
    """Raise DaemonError describing a non-2xx HTTP status."""
    family, detail = divmod(status_code, 100)
    if family == 2:
        return
    if family == 4 and detail in _CLIENT_ERRORS:
        raise DaemonError(_CLIENT_ERRORS[detail])
    if family == 5:
        raise DaemonError("daemon internal error")
    raise DaemonError(f"unknown status code:{status_code}")


def _request_body(method: str, params: Any) -> dict:
    return {"id": rand_positive_int64(), "method": method, "params": params}


def _response_from_dict(data: Any) -> JsonRpcResponse:
    if not isinstance(data, dict):
        raise ValueError("JSON-RPC response must be an object")
    error = data.get("error")
    return JsonRpcResponse(
        id=data.get("id"),
        result=data.get("result"),
        error=JsonRpcError.from_dict(error) if error is not None else None,
    )


class DaemonManager:
    """Sends RPC calls to the configured daemons."""

    def __init__(
        self,
        daemons: Sequence[DaemonOptions] | None,
        coin: CoinOptions | None,
        timeout: float | None = None,
    ):
        if daemons is None or coin is None:
            raise DaemonError("new daemon with empty options!")
        self.daemons = list(daemons)
        self.coin = coin
        self.timeout = timeout
        self._sessions = {str(daemon): self._new_session(daemon) for daemon in self.daemons}

    @staticmethod
    def _new_session(daemon: DaemonOptions) -> requests.Session:
        session = requests.Session()
        if daemon.tls is not None:
            session.verify = False
            if daemon.tls.cert_file and daemon.tls.key_file:
                session.cert = (daemon.tls.cert_file, daemon.tls.key_file)
        return session

    def check(self) -> None:
        """Raise DaemonError unless every daemon answers."""
        if not self.is_all_online():
            raise DaemonError("daemons are not all online!")

    def is_all_online(self) -> bool:
        responses, results = self.cmd_all("getpeerinfo", [])
        for http, result in zip(responses, results):
            if http is None or http.status_code // 100 != 2:
                return False
            if result is None:
                return False
            if result.error is not None:
                _log.error("daemon error: %s", result.error.message)
                return False
        return True

    def do_http_request(self, daemon: DaemonOptions, payload: bytes) -> requests.Response:
        """POST a raw request body to one daemon."""
        session = self._sessions.get(str(daemon))
        if session is None:
            session = self._sessions[str(daemon)] = self._new_session(daemon)
        auth = (daemon.user, daemon.password) if daemon.user else None
        return session.post(daemon.url(), data=payload, auth=auth, timeout=self.timeout)

    def batch_cmd(
        self, commands: Iterable[tuple[str, Any]]
    ) -> tuple[DaemonOptions | None, list[JsonRpcResponse]]:
        """Send a batch of (method, params) calls to the first daemon."""
        body = [_request_body(method, params) for method, params in commands]
        if not self.daemons:
            return None, []
        daemon = self.daemons[0]
        try:
            http = self.do_http_request(daemon, json.dumps(body).encode("utf-8"))
        except requests.RequestException as exc:
            raise DaemonError(f"failed on daemon {daemon.url()}: {exc}") from exc
        try:
            data = json.loads(http.content)
            if not isinstance(data, list):
                raise ValueError("batch response must be a list")
            return daemon, [_response_from_dict(item) for item in data]
        except (ValueError, UnicodeDecodeError) as exc:
            raise DaemonError(f"malformed batch response from {daemon.url()}: {exc}") from exc

    def cmd_all(
        self, method: str, params: Any
    ) -> tuple[list[requests.Response | None], list[JsonRpcResponse | None]]:
        """Call every daemon concurrently; failed entries are None."""
        if not self.daemons:
            return [], []
        payload = json.dumps(_request_body(method, params)).encode("utf-8")
        _log.debug("%s", payload.decode("utf-8"))

        def call(daemon: DaemonOptions):
            try:
                http = self.do_http_request(daemon, payload)
            except requests.RequestException as exc:
                _log.error("failed on daemon %s: %s", daemon.url(), exc)
                return None, None
            try:
                return http, JsonRpcResponse.from_json(http.content)
            except ValueError:
                _log.error("failed to unmarshal response body: %r", http.content)
                return http, None

        with ThreadPoolExecutor(max_workers=len(self.daemons)) as executor:
            outcomes = list(executor.map(call, self.daemons))
        return [http for http, _ in outcomes], [result for _, result in outcomes]

    def cmd(
        self, method: str, params: Any
    ) -> tuple[DaemonOptions, JsonRpcResponse, requests.Response]:
        """Call the first daemon and return its answer."""
        if not self.daemons:
            raise DaemonError(f"no daemon available for {method}")
        daemon = self.daemons[0]
        payload = json.dumps(_request_body(method, params)).encode("utf-8")
        try:
            http = self.do_http_request(daemon, payload)
        except requests.RequestException as exc:
            raise DaemonError(f"failed on daemon {daemon.url()}: {exc}") from exc
        try:
            result = JsonRpcResponse.from_json(http.content)
        except ValueError as exc:
            raise DaemonError(f"malformed response from {daemon.url()}: {exc}") from exc
        return daemon, result, http

    def get_block_template(self) -> BlockTemplate:
        daemon, response, _ = self.cmd("getblocktemplate", GBT_PARAMS)
        if response.error is not None:
            raise DaemonError(
                f"getblocktemplate call failed for daemon instance {daemon.url()} "
                f"with error {response.error.message}"
            )
        try:
            return BlockTemplate.from_dict(response.result)
        except ValueError as exc:
            raise DaemonError(
                f"getblocktemplate call failed for daemon instance {daemon.url()} with error {exc}"
            ) from exc

    def submit_block(self, block_hex: str) -> list[JsonRpcResponse | None]:
        """Submit a block to every daemon and log how each one answered."""
        if self.coin.no_submit_block:
            _, results = self.cmd_all("getblocktemplate", [{"mode": "submit", "data": block_hex}])
        else:
            _, results = self.cmd_all("submitblock", [block_hex])

        for daemon, result in zip(self.daemons, results):
            if result is None:
                _log.error("failed submitting to daemon %s, see log above for details", daemon.url())
            elif result.error is not None:
                _log.error(
                    "rpc error with daemon when submitting block: %s",
                    json.dumps({"code": result.error.code, "message": result.error.message}),
                )
            elif result.result == "rejected":
                _log.error("Daemon instance rejected a supposedly valid block")
            elif result.result == "invalid":
                _log.error("Daemon instance rejected an invalid block")
            elif result.result == "inconclusive":
                _log.warning("Daemon instance warns an inconclusive block")
        return results