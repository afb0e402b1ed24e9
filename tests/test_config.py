import json
import ssl

import pytest

from monopool.config import (
    APIOptions,
    ConfigError,
    DaemonOptions,
    Options,
    RedisOptions,
    Recipient,
    TLSClientOptions,
    TLSServerOptions,
    load_options,
)
from monopool.scripts import p2pkh_address_to_script, public_key_to_script

POOL_ADDRESS = "QPxrDq3sorCk8DWaYX2GeCkxoePhm1asyY"

SAMPLE = {
    "coin": {"name": "litecoin", "symbol": "ltc", "txMessages": False},
    "poolAddress": {"address": POOL_ADDRESS, "type": "p2pkh"},
    "rewardRecipients": [{"address": POOL_ADDRESS, "type": "p2pkh", "percent": 0.25}],
    "blockRefreshInterval": 1,
    "jobRebroadcastTimeout": 55,
    "connectionTimeout": 600,
    "api": {"host": "127.0.0.1", "port": 8080},
    "banning": {"time": 600, "invalidPercent": 50, "checkThreshold": 500, "purgeInterval": 300},
    "ports": {
        "3333": {
            "diff": 8,
            "varDiff": {
                "minDiff": 8,
                "maxDiff": 512,
                "targetTime": 15,
                "retargetTime": 90,
                "variancePercent": 0.3,
                "x2mode": False,
            },
        }
    },
    "daemons": [{"host": "127.0.0.1", "port": 19332, "user": "user", "password": "password"}],
    "storage": {"network": "tcp", "host": "127.0.0.1", "port": 6379, "db": 0},
    "algorithm": {"name": "scrypt", "multiplier": 16, "sha256dBlockHasher": True},
}


def test_from_dict_maps_json_keys():
    opts = Options.from_dict(SAMPLE)
    assert opts.coin.name == "litecoin"
    assert opts.ports[3333].var_diff.max_diff == 512
    assert opts.ports[3333].var_diff.retarget_time == 90
    assert opts.algorithm.sha256d_block_hasher is True
    assert opts.banning.invalid_percent == 50
    assert opts.daemons[0].user == "user"
    assert opts.p2p is None


def test_from_dict_defaults_for_missing_sections():
    opts = Options.from_dict({})
    assert opts.daemons == []
    assert opts.ports == {}
    assert opts.coin is None
    assert opts.disable_payment is False


def test_from_dict_rejects_bad_input():
    with pytest.raises(ConfigError):
        Options.from_dict({"ports": {"abc": {}}})
    with pytest.raises(ConfigError):
        Options.from_dict(["not", "an", "object"])
    with pytest.raises(ConfigError):
        Options.from_dict({"coin": 5})


def test_api_addr():
    assert APIOptions(host="127.0.0.1", port=8080).addr() == "127.0.0.1:8080"


def test_daemon_url_scheme_follows_tls():
    plain = DaemonOptions(host="localhost", port=8332)
    secure = DaemonOptions(host="localhost", port=8332, tls=TLSClientOptions())
    assert plain.url().startswith("http://")
    assert secure.url().startswith("https://")
    assert plain.url().endswith(":8332")


def test_daemon_str():
    password = "password"
    daemon = DaemonOptions(host="localhost", port=8332, user="user", password=password)
    assert str(daemon) == "user:password@localhost8332"


def test_total_fee_percent():
    assert Options(reward_recipients=[Recipient(percent=0.25)]).total_fee_percent() == 0.25
    assert Options().total_fee_percent() == 0


def test_recipient_script_is_built_and_cached():
    recipient = Recipient(address=POOL_ADDRESS, type="P2PKH")
    first = recipient.script()
    assert first == p2pkh_address_to_script(POOL_ADDRESS)
    assert recipient.script() is first


def test_recipient_public_key_type():
    key = "03" + "cd" * 32
    assert Recipient(address=key, type="PublicKey").script() == public_key_to_script(key)


def test_recipient_unusable_types_give_none():
    assert Recipient(address=POOL_ADDRESS, type="").script() is None
    assert Recipient(address=POOL_ADDRESS, type="weird").script() is None


def test_redis_kwargs():
    options = RedisOptions(host="localhost", port=6379, db=2)
    kwargs = options.to_redis_kwargs()
    assert options.addr() == "localhost:6379"
    assert kwargs["host"] == "localhost"
    assert kwargs["port"] == 6379
    assert kwargs["db"] == 2
    assert kwargs["password"] is None
    assert "ssl" not in kwargs

    secure = RedisOptions(host="localhost", port=6379, tls=TLSClientOptions()).to_redis_kwargs()
    assert secure["ssl"] is True
    assert secure["ssl_cert_reqs"] == "none"


def test_tls_client_context_skips_verification():
    context = TLSClientOptions().to_ssl_context()
    assert context.verify_mode == ssl.CERT_NONE
    assert context.check_hostname is False


def test_tls_missing_key_pair_raises(tmp_path):
    cert = str(tmp_path / "cert.pem")
    key = str(tmp_path / "key.pem")
    with pytest.raises(ConfigError):
        TLSClientOptions(cert_file=cert, key_file=key).to_ssl_context()
    with pytest.raises(ConfigError):
        TLSServerOptions(cert_file=cert, key_file=key).to_ssl_context()


def test_load_options_round_trip(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(SAMPLE), encoding="utf-8")
    opts = load_options(path)
    assert opts == Options.from_dict(SAMPLE)
    assert opts.pool_address.address == POOL_ADDRESS


def test_load_options_errors(tmp_path):
    with pytest.raises(ConfigError):
        load_options(tmp_path / "missing.json")
    with pytest.raises(ConfigError):
        load_options(tmp_path)
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_options(bad)