import json

import pytest
import responses

from monopool.coindata import check_all_ready, detect_coin_data, detect_magnitude
from monopool.config import AlgorithmOptions, CoinOptions, DaemonOptions, Options
from monopool.daemons import DaemonError, DaemonManager

URL = "http://localhost:8332/"


def make_daemon(port=8332):
    password = "password"
    return DaemonOptions(host="localhost", port=port, user="user", password=password)


def make_manager(*ports):
    return DaemonManager([make_daemon(p) for p in ports or (8332,)], CoinOptions())


def make_options(reward=""):
    return Options(
        coin=CoinOptions(name="testcoin", reward=reward),
        algorithm=AlgorithmOptions(name="scrypt", multiplier=0),
    )


@pytest.fixture
def rpc():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


def serve(mock, answers, url=URL):
    calls = []

    def callback(request):
        body = json.loads(request.body)
        calls.append(body)
        answer = answers[body["method"]]
        if isinstance(answer, str):
            return 200, {}, answer
        return 200, {}, json.dumps(dict(id=body["id"], **answer))

    mock.add_callback(responses.POST, url, callback=callback)
    return calls


def base_answers(**overrides):
    answers = {
        "getdifficulty": {"result": 2.5, "error": None},
        "getmininginfo": {"result": {"networkhashps": 1000.0}, "error": None},
        "submitblock": {
            "result": None,
            "error": {"code": -1, "message": "JSON value is not a string as expected"},
        },
        "getwalletinfo": {"result": {"balance": 0.0}, "error": None},
        "getinfo": {
            "result": {"testnet": True, "protocolversion": 70015, "connections": 8},
            "error": None,
        },
    }
    answers.update(overrides)
    return answers


def test_detect_pow_coin_with_getinfo(rpc):
    serve(rpc, base_answers())
    options = make_options()
    data = detect_coin_data(make_manager(), options)
    assert data.reward == "POW"
    assert options.coin.reward == "POW"
    assert data.difficulty == 2.5
    assert data.network_hashrate == 1000.0
    assert data.no_submit_block is False
    assert data.testnet is True
    assert options.coin.testnet is True
    assert data.protocol_version == 70015
    assert data.connections == 8


def test_falls_back_to_network_and_chain_info(rpc):
    calls = serve(
        rpc,
        base_answers(
            getinfo={"result": None, "error": {"code": -32601, "message": "Method not found"}},
            getnetworkinfo={"result": {"protocolversion": 70016, "connections": 3}, "error": None},
            getblockchaininfo={"result": {"chain": "main"}, "error": None},
        ),
    )
    data = detect_coin_data(make_manager(), make_options())
    assert data.protocol_version == 70016
    assert data.connections == 3
    assert data.testnet is False
    assert [c["method"] for c in calls][-2:] == ["getnetworkinfo", "getblockchaininfo"]


def test_test_chain_marks_testnet(rpc):
    serve(
        rpc,
        base_answers(
            getinfo={"result": None, "error": {"code": -32601, "message": "Method not found"}},
            getnetworkinfo={"result": {}, "error": None},
            getblockchaininfo={"result": {"chain": "test"}, "error": None},
        ),
    )
    assert detect_coin_data(make_manager(), make_options()).testnet is True


def test_missing_submitblock_switches_to_template_submission(rpc):
    serve(
        rpc,
        base_answers(submitblock={"result": None, "error": {"code": -32601, "message": "Method not found"}}),
    )
    options = make_options()
    data = detect_coin_data(make_manager(), options)
    assert data.no_submit_block is True
    assert options.coin.no_submit_block is True


def test_submitblock_without_error_fails(rpc):
    serve(rpc, base_answers(submitblock={"result": None, "error": None}))
    with pytest.raises(DaemonError, match="submitblock"):
        detect_coin_data(make_manager(), make_options())


def test_submitblock_unknown_error_fails(rpc):
    serve(rpc, base_answers(submitblock={"result": None, "error": {"code": -5, "message": "odd"}}))
    with pytest.raises(DaemonError, match="block submission"):
        detect_coin_data(make_manager(), make_options())


def test_mining_info_error_fails(rpc):
    serve(rpc, base_answers(getmininginfo={"result": None, "error": {"code": -1, "message": "no"}}))
    with pytest.raises(DaemonError, match="getmininginfo"):
        detect_coin_data(make_manager(), make_options())


def test_proof_of_stake_difficulty(rpc):
    serve(
        rpc,
        base_answers(getdifficulty={"result": {"proof-of-work": 4.0, "proof-of-stake": 1.0}, "error": None}),
    )
    data = detect_coin_data(make_manager(), make_options())
    assert data.reward == "POS"
    assert data.difficulty == 4.0


def test_configured_reward_is_kept_for_object_difficulty(rpc):
    serve(
        rpc,
        base_answers(getdifficulty={"result": {"proof-of-work": 4.0, "proof-of-stake": 1.0}, "error": None}),
    )
    assert detect_coin_data(make_manager(), make_options(reward="POW")).reward == "POW"


def test_detect_magnitude_from_balance_decimals(rpc):
    serve(rpc, {"getbalance": '{"result":0.00000000,"error":null,"id":1}'})
    assert detect_magnitude(make_manager()) == 1080


def test_detect_magnitude_needs_decimals(rpc):
    serve(rpc, {"getbalance": '{"result":5,"error":null,"id":1}'})
    with pytest.raises(DaemonError, match="satoshis"):
        detect_magnitude(make_manager())


def test_detect_magnitude_rpc_error(rpc):
    serve(rpc, {"getbalance": {"result": None, "error": {"code": -18, "message": "no wallet"}}})
    with pytest.raises(DaemonError, match="no wallet"):
        detect_magnitude(make_manager())


def test_check_all_ready_passes(rpc):
    calls = serve(rpc, {"getblocktemplate": {"result": {"height": 1}, "error": None}})
    outcome = check_all_ready(make_manager())
    assert outcome is None
    assert [c["method"] for c in calls] == ["getblocktemplate"]


def test_check_all_ready_unavailable_daemon(rpc):
    serve(rpc, {"getblocktemplate": {"result": {"height": 1}, "error": None}})
    with pytest.raises(DaemonError, match="not available"):
        check_all_ready(make_manager(8332, 18332))


def test_check_all_ready_not_ready(rpc):
    serve(
        rpc,
        {"getblocktemplate": {"result": None, "error": {"code": -10, "message": "still syncing"}}},
    )
    with pytest.raises(DaemonError, match="not ready for mining: still syncing"):
        check_all_ready(make_manager())