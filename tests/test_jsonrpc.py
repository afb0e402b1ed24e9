import pytest

from monopool.jsonrpc import JsonRpcError, JsonRpcRequest, JsonRpcResponse


def test_request_round_trip():
    request = JsonRpcRequest(id=7, method="mining.submit", params=["w", "job", "00", "11", "22"])
    assert JsonRpcRequest.from_json(request.to_json()) == request


def test_request_wire_form():
    request = JsonRpcRequest(id=None, method="mining.notify", params=[])
    assert request.to_json() == b'{"id":null,"method":"mining.notify","params":[]}'


def test_request_missing_params_is_empty():
    request = JsonRpcRequest.from_json('{"id":1,"method":"mining.subscribe"}')
    assert request.params == []
    assert request.method == "mining.subscribe"


def test_request_rejects_malformed():
    with pytest.raises(ValueError):
        JsonRpcRequest.from_json("not json")
    with pytest.raises(ValueError):
        JsonRpcRequest.from_json("[1, 2]")
    with pytest.raises(ValueError):
        JsonRpcRequest.from_json('{"id":1,"method":"x","params":5}')


def test_response_omits_empty_fields():
    assert JsonRpcResponse(id=1, result=True).to_json() == b'{"id":1,"result":true}'
    assert JsonRpcResponse(id=0).to_json() == b'{"id":0}'


def test_response_round_trip_with_error():
    response = JsonRpcResponse(id=3, result=False, error=JsonRpcError(code=23, message="ntime out of range"))
    parsed = JsonRpcResponse.from_json(response.to_json())
    assert parsed == response
    assert parsed.error.code == 23


def test_response_from_daemon_json():
    parsed = JsonRpcResponse.from_json(b'{"result":null,"error":{"code":-1,"message":"bad"},"id":5}')
    assert parsed.result is None
    assert parsed.error == JsonRpcError(code=-1, message="bad")
    assert parsed.id == 5


def test_error_from_dict_rejects_non_object():
    with pytest.raises(ValueError):
        JsonRpcError.from_dict("oops")