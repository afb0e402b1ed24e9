"""JSON-RPC message records shared by daemon calls and stratum."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


def _dumps(obj: Any) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def _parse_object(raw: bytes | str) -> dict:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"malformed JSON-RPC message: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("JSON-RPC message must be an object")
    return data


@dataclass
class JsonRpcError:
    code: int = 0
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> JsonRpcError:
        if not isinstance(data, dict):
            raise ValueError("JSON-RPC error must be an object")
        return cls(code=int(data.get("code") or 0), message=str(data.get("message") or ""))

    def _as_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


@dataclass
class JsonRpcRequest:
    id: Any = None
    method: str = ""
    params: list = field(default_factory=list)

    @classmethod
    def from_json(cls, raw: bytes | str) -> JsonRpcRequest:
        data = _parse_object(raw)
        params = data.get("params")
        if params is None:
            params = []
        if not isinstance(params, list):
            raise ValueError("JSON-RPC params must be a list")
        method = data.get("method") or ""
        if not isinstance(method, str):
            raise ValueError("JSON-RPC method must be a string")
        return cls(id=data.get("id"), method=method, params=params)

    def to_json(self) -> bytes:
        return _dumps({"id": self.id, "method": self.method, "params": self.params})


@dataclass
class JsonRpcResponse:
    """A response; ``result`` and ``error`` are left out of the wire form when None."""

    id: Any = None
    result: Any = None
    error: JsonRpcError | None = None

    @classmethod
    def from_json(cls, raw: bytes | str) -> JsonRpcResponse:
        data = _parse_object(raw)
        error = data.get("error")
        return cls(
            id=data.get("id"),
            result=data.get("result"),
            error=JsonRpcError.from_dict(error) if error is not None else None,
        )

    def to_json(self) -> bytes:
        message: dict[str, Any] = {"id": self.id}
        if self.result is not None:
            message["result"] = self.result
        if self.error is not None:
            message["error"] = self.error._as_dict()
        return _dumps(message)