"""Redis-backed records of shares, blocks and hash rates."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import redis

_log = logging.getLogger(__name__)


class StorageError(Exception):
    """The store could not be reached or held no usable value."""


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, (bytes, bytearray)) else str(value)


class Storage:
    """Pool statistics kept in Redis under keys prefixed with the coin name."""

    def __init__(self, client: Any, coin: str, clock: Callable[[], float] = time.time):
        self.client = client
        self.coin = coin
        self._clock = clock

    @classmethod
    def from_options(cls, coin: str, options: Any) -> Storage:
        """Connect with the given Redis options and check the server answers."""
        try:
            client = redis.Redis(**options.to_redis_kwargs())
            answer = client.ping()
        except redis.RedisError as exc:
            raise StorageError(f"failed to connect to the redis server: {exc}") from exc
        if answer is not True and _text(answer).lower() != "pong":
            raise StorageError(f"failed to connect to the redis server: {answer}")
        return cls(client, coin)

    def put_share(self, share: Any, accepted: bool) -> None:
        """Record a share and, if it carried a block, the block outcome."""
        now = int(self._clock())
        coin = self.coin
        str_diff = f"{share.diff:.5f}"
        pipe = self.client.pipeline(transaction=False)

        pipe.sadd(f"{coin}:pool:miners", share.miner)
        pipe.sadd(f"{coin}:miner:{share.miner}:rigs", share.rig)

        if share.error_code is None:
            _log.info("recording valid share")
            pipe.hincrbyfloat(f"{coin}:pool:contrib", share.miner, share.diff)
            pipe.hincrby(f"{coin}:miners:validShares", share.miner, 1)
            pipe.hincrby(f"{coin}:pool", "validShares", 1)
            pipe.zadd(f"{coin}:pool:shares", {str_diff: now})
            pipe.zadd(f"{coin}:miner:{share.miner}:hashes", {str_diff: now})
            pipe.zadd(f"{coin}:miner:{share.miner}:rig:{share.rig}:hashes", {str_diff: now})
        else:
            _log.info("recording invalid share")
            pipe.hincrby(f"{coin}:miners:invalidShares", share.miner, 1)
            pipe.hincrby(f"{coin}:pool", "invalidShares", 1)

        if share.block_hex:
            if accepted:
                _log.info("recording valid block")
                pipe.rename(f"{coin}:pool:contrib", f"{coin}:pool:contrib:{share.block_height}")
                pipe.sadd(f"{coin}:blocks:pending", share.block_hash)
                pipe.hsetnx(
                    f"{coin}:blocks",
                    share.block_hash,
                    ":".join([share.tx_hash, str(share.block_height), share.miner, str(now)]),
                )
                pipe.hincrby(f"{coin}:pool", "validBlocks", 1)
            else:
                _log.info("recording invalid block")
                pipe.hincrby(f"{coin}:pool", "invalidBlocks", 1)

        try:
            pipe.execute()
        except redis.RedisError as exc:
            _log.error("failed recording share: %s", exc)

    def _members(self, key: str) -> list[str]:
        try:
            return sorted(_text(m) for m in self.client.smembers(key))
        except redis.RedisError as exc:
            raise StorageError(str(exc)) from exc

    def _hget(self, key: str, field: str) -> str:
        try:
            value = self.client.hget(key, field)
        except redis.RedisError as exc:
            raise StorageError(str(exc)) from exc
        if value is None:
            raise StorageError(f"no value for {field} in {key}")
        return _text(value)

    def _hget_float(self, key: str, field: str) -> float:
        value = self._hget(key, field)
        try:
            return float(value)
        except ValueError as exc:
            raise StorageError(f"{key} {field} is not a number: {value!r}") from exc

    def _hget_uint(self, key: str, field: str) -> int:
        value = self._hget(key, field)
        try:
            number = int(value)
        except ValueError as exc:
            raise StorageError(f"{key} {field} is not an integer: {value!r}") from exc
        if number < 0:
            raise StorageError(f"{key} {field} is negative")
        return number

    def _hashrate(self, key: str, start: int, end: int) -> float:
        if end == start:
            raise ValueError("hash rate window must not be empty")
        try:
            members = self.client.zrange(key, start, end)
        except redis.RedisError as exc:
            raise StorageError(str(exc)) from exc
        try:
            total = sum(float(_text(m)) for m in members)
        except ValueError as exc:
            raise StorageError(f"malformed share difficulty in {key}") from exc
        return total / (end - start)

    def miner_index(self) -> list[str]:
        return self._members(f"{self.coin}:pool:miners")

    def rig_index(self, miner: str) -> list[str]:
        return self._members(f"{self.coin}:miner:{miner}:rigs")

    def miner_round_contrib(self, miner: str) -> float:
        """Total difficulty the miner contributed to the current round."""
        return self._hget_float(f"{self.coin}:shares:contrib", miner)

    def pool_total_valid_shares(self) -> int:
        return self._hget_uint(f"{self.coin}:pool", "validShares")

    def pool_total_valid_blocks(self) -> int:
        return self._hget_uint(f"{self.coin}:pool", "validBlocks")

    def pool_total_invalid_shares(self) -> int:
        return self._hget_uint(f"{self.coin}:pool", "validShares")

    def pool_total_invalid_blocks(self) -> int:
        return self._hget_uint(f"{self.coin}:pool", "invalidBlocks")

    def rig_hashrate(self, miner: str, rig: str, start: int, end: int) -> float:
        return self._hashrate(f"{self.coin}:miner:{miner}:rig:{rig}:hashes", start, end)

    def miner_hashrate(self, miner: str, start: int, end: int) -> float:
        return self._hashrate(f"{self.coin}:miner:{miner}:shares", start, end)

    def pool_hashrate(self, start: int, end: int) -> float:
        return self._hashrate(f"{self.coin}:pool:shares", start, end)

    def miner_rigs(self, miner: str) -> float:
        return self._hget_float(f"{self.coin}:shares:contrib", miner)

    def _move_pending(self, block_hash: str, target: str) -> bool:
        try:
            return bool(
                self.client.smove(f"{self.coin}:blocks:pending", f"{self.coin}:blocks:{target}", block_hash)
            )
        except redis.RedisError as exc:
            raise StorageError(str(exc)) from exc

    def confirm_block(self, block_hash: str) -> bool:
        """Move a pending block to the confirmed set."""
        return self._move_pending(block_hash, "confirmed")

    def kick_block(self, block_hash: str) -> bool:
        """Move a pending block to the kicked set."""
        return self._move_pending(block_hash, "kicked")