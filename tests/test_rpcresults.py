import json

import pytest

from monopool.rpcresults import (
    parse_balance,
    parse_block,
    parse_blockchain_info,
    parse_difficulty,
    parse_info,
    parse_mining_info,
    parse_network_info,
    parse_validate_address,
    parse_wallet_info,
)


def test_parse_block_from_bytes():
    raw = json.dumps(
        {
            "hash": "aa",
            "height": 10,
            "tx": ["t1", "t2"],
            "difficulty": 1.5,
            "nTx": 2,
            "previousblockhash": "bb",
        }
    ).encode()
    block = parse_block(raw)
    assert block.hash == "aa"
    assert block.height == 10
    assert block.tx == ["t1", "t2"]
    assert block.difficulty == 1.5
    assert block.n_tx == 2
    assert block.previous_block_hash == "bb"


def test_parse_block_matches_keys_case_insensitively():
    block = parse_block({"MerkleRoot": "cc", "VERSIONHEX": "20000000"})
    assert block.merkle_root == "cc"
    assert block.version_hex == "20000000"


def test_parse_block_null_keeps_defaults():
    block = parse_block({"tx": None, "hash": None})
    assert block.tx == []
    assert block.hash == ""


def test_parse_block_malformed_json():
    with pytest.raises(ValueError, match="getblock"):
        parse_block(b"{not json")


@pytest.mark.parametrize("data", [{"height": "ten"}, {"tx": [1]}, {"tx": "abc"}, {"height": 1.5}])
def test_parse_block_wrong_types(data):
    with pytest.raises(ValueError):
        parse_block(data)


def test_parse_block_rejects_non_object():
    with pytest.raises(ValueError):
        parse_block(b"[1, 2]")


def test_parse_difficulty_number_and_object():
    assert parse_difficulty(b"12.5") == 12.5
    pos = {"proof-of-work": 3.0, "proof-of-stake": 1.0}
    assert parse_difficulty(json.dumps(pos)) == pos


def test_parse_balance():
    assert parse_balance(b"0.00000000") == 0.0
    assert parse_balance(b"3") == 3.0
    with pytest.raises(ValueError):
        parse_balance(b'"x"')


def test_parse_blockchain_info_nested_deployments():
    data = {
        "chain": "test",
        "blocks": 42,
        "bip9_softforks": {
            "csv": {"status": "active", "startTime": 100, "timeout": 200, "since": 50}
        },
        "softforks": [{"id": "bip34"}],
    }
    info = parse_blockchain_info(data)
    assert info.chain == "test"
    assert info.blocks == 42
    assert info.bip9_softforks.csv.status == "active"
    assert info.bip9_softforks.csv.start_time == 100
    assert info.bip9_softforks.csv.since == 50
    assert info.bip9_softforks.bip147.status == ""
    assert info.softforks == [{"id": "bip34"}]


def test_parse_info():
    info = parse_info({"testnet": True, "protocolversion": 70015, "connections": 8})
    assert info.testnet is True
    assert info.protocol_version == 70015
    assert info.connections == 8


def test_parse_info_rejects_wrong_bool():
    with pytest.raises(ValueError):
        parse_info({"testnet": "yes"})


def test_parse_mining_info_accepts_integer_for_float():
    info = parse_mining_info({"networkhashps": 1234.5, "difficulty": 2, "chain": "main"})
    assert info.network_hashps == 1234.5
    assert info.difficulty == 2
    assert info.chain == "main"


def test_parse_network_info():
    data = {
        "protocolversion": 70016,
        "connections": 3,
        "networks": [{"name": "ipv4", "reachable": True, "proxy_randomize_credentials": True}],
        "localaddresses": [{"address": "127.0.0.1"}],
    }
    info = parse_network_info(data)
    assert info.protocol_version == 70016
    assert [n.name for n in info.networks] == ["ipv4"]
    assert info.networks[0].proxy_randomize_credentials is True
    assert info.local_addresses == [{"address": "127.0.0.1"}]


def test_parse_wallet_info():
    info = parse_wallet_info({"balance": 1.25, "keys_left": 99, "txcount": 4})
    assert info.balance == 1.25
    assert info.keys_left == 99
    assert info.tx_count == 4


def test_parse_validate_address():
    data = {
        "isvalid": True,
        "address": "addr",
        "scriptPubKey": "0014ab",
        "embedded": {"witness_version": 0, "witness_program": "ab", "iswitness": True},
        "addresses": ["a1", "a2"],
        "labels": [{"name": "main", "purpose": "receive"}],
    }
    result = parse_validate_address(data)
    assert result.is_valid is True
    assert result.script_pubkey == "0014ab"
    assert result.embedded.witness_program == "ab"
    assert result.embedded.is_witness is True
    assert result.addresses == ["a1", "a2"]
    assert [(label.name, label.purpose) for label in result.labels] == [("main", "receive")]