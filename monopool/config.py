"""Pool configuration: option records loaded from a JSON file."""

from __future__ import annotations

import json
import logging
import ssl
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable

from monopool import scripts

_log = logging.getLogger(__name__)


class ConfigError(Exception):
    """The configuration is missing or malformed."""


def _opt(key: str, default: Any = None, *, factory: Callable[[], Any] | None = None,
         load: Callable[[Any], Any] | None = None) -> Any:
    metadata: dict[str, Any] = {"json": key}
    if load is not None:
        metadata["load"] = load
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _load(cls, data):
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ConfigError(f"expected an object for {cls.__name__}, got {type(data).__name__}")
    kwargs = {}
    for f in fields(cls):
        if not f.init:
            continue
        key = f.metadata.get("json", f.name)
        if key not in data:
            continue
        loader = f.metadata.get("load")
        kwargs[f.name] = loader(data[key]) if loader else data[key]
    return cls(**kwargs)


@dataclass
class AlgorithmOptions:
    name: str = _opt("name", "")
    multiplier: int = _opt("multiplier", 0)
    sha256d_block_hasher: bool = _opt("sha256dBlockHasher", False)


@dataclass
class APIOptions:
    host: str = _opt("host", "")
    port: int = _opt("port", 0)

    def addr(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class BanningOptions:
    time: int = _opt("time", 0)
    invalid_percent: float = _opt("invalidPercent", 0.0)
    check_threshold: int = _opt("checkThreshold", 0)
    purge_interval: int = _opt("purgeInterval", 0)


@dataclass
class CoinOptions:
    name: str = _opt("name", "")
    symbol: str = _opt("symbol", "")
    tx_messages: bool = _opt("txMessages", False)
    reward: str = _opt("reward", "")
    no_submit_block: bool = _opt("noSubmitBlock", False)
    testnet: bool = _opt("testnet", False)


def _load_cert_chain(context: ssl.SSLContext, cert_file: str, key_file: str) -> None:
    if cert_file and key_file:
        try:
            context.load_cert_chain(cert_file, key_file)
        except (OSError, ssl.SSLError) as exc:
            raise ConfigError(f"failed loading key pair {cert_file}, {key_file}: {exc}") from exc


@dataclass
class TLSClientOptions:
    cert_file: str = _opt("certFile", "")
    key_file: str = _opt("keyFile", "")

    def to_ssl_context(self) -> ssl.SSLContext:
        """A client context that skips server verification."""
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        _load_cert_chain(context, self.cert_file, self.key_file)
        return context


@dataclass
class TLSServerOptions:
    cert_file: str = _opt("certFile", "")
    key_file: str = _opt("keyFile", "")

    def to_ssl_context(self) -> ssl.SSLContext:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        _load_cert_chain(context, self.cert_file, self.key_file)
        return context


@dataclass
class DaemonOptions:
    host: str = _opt("host", "")
    port: int = _opt("port", 0)
    user: str = _opt("user", "")
    password: str = _opt("password", "")
    tls: TLSClientOptions | None = _opt("tls", load=lambda v: _load(TLSClientOptions, v))

    def url(self) -> str:
        scheme = "https" if self.tls is not None else "http"
        return f"{scheme}://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.user}:{self.password}@{self.host}{self.port}"


@dataclass
class P2POptions:
    host: str = _opt("host", "")
    port: int = _opt("port", 0)
    magic: str = _opt("magic", "")
    disable_transactions: bool = _opt("disableTransactions", False)

    def addr(self) -> str:
        return f"{self.host}:{self.port}"


_SCRIPT_BUILDERS: dict[str, Callable[[str], bytes]] = {
    "p2sh": scripts.p2sh_address_to_script,
    "p2pkh": scripts.p2pkh_address_to_script,
    "p2wsh": scripts.p2wsh_address_to_script,
    "pk": scripts.public_key_to_script,
    "publickey": scripts.public_key_to_script,
    "script": scripts.script_pubkey_to_script,
}


@dataclass
class Recipient:
    address: str = _opt("address", "")
    type: str = _opt("type", "")
    percent: float = _opt("percent", 0.0)
    _script: bytes | None = field(default=None, init=False, repr=False, compare=False)

    def script(self) -> bytes | None:
        """The output script for this address, or None if its type is unusable."""
        if self._script is None:
            kind = self.type.lower()
            builder = _SCRIPT_BUILDERS.get(kind)
            if not kind:
                _log.error("%s has no type!", self.address)
            elif builder is None:
                _log.error("%s uses an unsupported type: %s", self.address, self.type)
            else:
                self._script = builder(self.address)
        return self._script


@dataclass
class RedisOptions:
    network: str = _opt("network", "")
    host: str = _opt("host", "")
    port: int = _opt("port", 0)
    password: str = _opt("password", "")
    db: int = _opt("db", 0)
    tls: TLSClientOptions | None = _opt("tls", load=lambda v: _load(TLSClientOptions, v))

    def addr(self) -> str:
        return f"{self.host}:{self.port}"

    def to_redis_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for a redis client."""
        kwargs: dict[str, Any] = {"password": self.password or None, "db": self.db}
        if self.network == "unix":
            kwargs["unix_socket_path"] = self.host
        else:
            kwargs["host"] = self.host
            kwargs["port"] = self.port
        if self.tls is not None:
            kwargs["ssl"] = True
            kwargs["ssl_cert_reqs"] = "none"
            if self.tls.cert_file and self.tls.key_file:
                kwargs["ssl_certfile"] = self.tls.cert_file
                kwargs["ssl_keyfile"] = self.tls.key_file
        return kwargs


@dataclass
class VarDiffOptions:
    min_diff: float = _opt("minDiff", 0.0)
    max_diff: float = _opt("maxDiff", 0.0)
    target_time: int = _opt("targetTime", 0)
    retarget_time: int = _opt("retargetTime", 0)
    variance_percent: float = _opt("variancePercent", 0.0)
    x2_mode: bool = _opt("x2mode", False)


@dataclass
class PortOptions:
    diff: float = _opt("diff", 0.0)
    var_diff: VarDiffOptions | None = _opt("varDiff", load=lambda v: _load(VarDiffOptions, v))
    tls: TLSServerOptions | None = _opt("tls", load=lambda v: _load(TLSServerOptions, v))


def _load_list(cls):
    def loader(value):
        if value is None:
            return []
        if not isinstance(value, list):
            raise ConfigError(f"expected a list of {cls.__name__}")
        return [_load(cls, item) for item in value]

    return loader


def _load_ports(value) -> dict[int, PortOptions]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("expected an object for ports")
    ports = {}
    for key, options in value.items():
        try:
            port = int(key)
        except ValueError as exc:
            raise ConfigError(f"invalid port number {key!r}") from exc
        ports[port] = _load(PortOptions, options)
    return ports


@dataclass
class Options:
    disable_payment: bool = _opt("disablePayment", False)
    coin: CoinOptions | None = _opt("coin", load=lambda v: _load(CoinOptions, v))
    pool_address: Recipient | None = _opt("poolAddress", load=lambda v: _load(Recipient, v))
    reward_recipients: list[Recipient] = _opt(
        "rewardRecipients", factory=list, load=_load_list(Recipient)
    )
    block_refresh_interval: int = _opt("blockRefreshInterval", 0)
    job_rebroadcast_timeout: int = _opt("jobRebroadcastTimeout", 0)
    connection_timeout: int = _opt("connectionTimeout", 0)
    emit_invalid_block_hashes: bool = _opt("emitInvalidBlockHashes", False)
    tcp_proxy_protocol: bool = _opt("tcpProxyProtocol", False)
    api: APIOptions | None = _opt("api", load=lambda v: _load(APIOptions, v))
    banning: BanningOptions | None = _opt("banning", load=lambda v: _load(BanningOptions, v))
    ports: dict[int, PortOptions] = _opt("ports", factory=dict, load=_load_ports)
    daemons: list[DaemonOptions] = _opt("daemons", factory=list, load=_load_list(DaemonOptions))
    p2p: P2POptions | None = _opt("p2p", load=lambda v: _load(P2POptions, v))
    storage: RedisOptions | None = _opt("storage", load=lambda v: _load(RedisOptions, v))
    algorithm: AlgorithmOptions | None = _opt(
        "algorithm", load=lambda v: _load(AlgorithmOptions, v)
    )

    @classmethod
    def from_dict(cls, data: dict) -> Options:
        """Build options from a decoded JSON object."""
        if not isinstance(data, dict):
            raise ConfigError("configuration must be a JSON object")
        return _load(cls, data)

    def total_fee_percent(self) -> float:
        return sum(recipient.percent for recipient in self.reward_recipients)


def load_options(path) -> Options:
    """Read and parse a JSON configuration file."""
    file = Path(path)
    if not file.is_file():
        raise ConfigError(f"the config file {path} does not exist")
    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"failed to parse config file {path}: {exc}") from exc
    return Options.from_dict(data)