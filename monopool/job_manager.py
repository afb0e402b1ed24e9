"""Turns block templates into jobs and miner submissions into shares."""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable

from monopool.algorithm import MAX_TARGET_TRUNCATED, get_hash_func
from monopool.counters import ExtraNonce1Generator
from monopool.encoding import rand_hex_uint64, sha256d
from monopool.job import Job
from monopool.rpcresults import parse_block
from monopool.shares import Share, ShareError

_log = logging.getLogger(__name__)

EXTRA_NONCE_PLACEHOLDER = bytes.fromhex("f000000ff111111f")
NTIME_TOLERANCE = 7
MIN_DIFF_RATIO = 0.99

_JOB_NOT_FOUND = ShareError(20)
_INCORRECT_EXTRA_NONCE2_SIZE = ShareError(21)
_INCORRECT_NTIME_SIZE = ShareError(22)
_NTIME_OUT_OF_RANGE = ShareError(23)
_INCORRECT_NONCE_SIZE = ShareError(24)
_DUPLICATE_SHARE = ShareError(25)
_LOW_DIFF_SHARE = ShareError(26)


def _split_worker(worker_name: str) -> tuple[str, str]:
    names = worker_name.split(".")
    if len(names) < 2:
        return names[0], "unknown"
    return names[0], names[1]


class JobManager:
    """Keeps the current job, the jobs still accepted, and judges submissions."""

    def __init__(
        self,
        options: Any,
        daemon_manager: Any,
        storage: Any,
        clock: Callable[[], float] = time.time,
    ):
        self.options = options
        self.pool_address = options.pool_address
        self.daemon_manager = daemon_manager
        self.storage = storage
        self.extra_nonce1_generator = ExtraNonce1Generator()
        self.extra_nonce_placeholder = EXTRA_NONCE_PLACEHOLDER
        self.extra_nonce2_size = len(EXTRA_NONCE_PLACEHOLDER) - self.extra_nonce1_generator.size
        self.current_job: Job | None = None
        self.valid_jobs: dict[str, Job] = {}
        self.coinbase_hasher: Callable[[bytes], bytes] = sha256d
        self._clock = clock

    def start(self, template: Any) -> Job | None:
        """Build the first job from the initial block template."""
        return self.process_template(template)

    def process_share(self, share: Share) -> bool:
        """Submit a block-carrying share, refresh work, and record the share.

        Returns whether the daemons accepted the block.
        """
        accepted = False
        if share.block_hex:
            _log.info("submitting new Block: %s", share.block_hex)
            self.daemon_manager.submit_block(share.block_hex)
            accepted, tx_hash = self.check_block_accepted(share.block_hash)
            share.tx_hash = tx_hash
            if accepted:
                _log.info(
                    "Block %s Accepted! generation tx: %s. Wait for pending!",
                    share.block_hash,
                    share.tx_hash,
                )
            self.process_template(self.daemon_manager.get_block_template())

        if self.storage is not None:
            self.storage.put_share(share, accepted)
        return accepted

    def check_block_accepted(self, block_hash: str) -> tuple[bool, str]:
        """Ask every daemon for the block: (known to all, generation tx hash)."""
        _, results = self.daemon_manager.cmd_all("getblock", [block_hash])
        accepted = all(result is not None and result.error is None for result in results)

        for result in results:
            if result is None or result.error is not None or result.result is None:
                continue
            block = parse_block(result.result)
            if block.tx:
                return accepted, block.tx[0]
        return accepted, ""

    def _new_job(self, job_id: str, rpc_data: Any) -> Job:
        job = Job(
            job_id,
            rpc_data,
            self.pool_address.script(),
            self.extra_nonce_placeholder,
            self.options.coin.reward,
            self.options.coin.tx_messages,
            self.options.reward_recipients,
        )
        self.current_job = job
        self.valid_jobs[job.job_id] = job
        return job

    def update_current_job(self, rpc_data: Any) -> Job:
        """Replace the job for the same height when its transactions changed."""
        job = self._new_job(str(int(self._clock())), rpc_data)
        _log.debug("Job updated")
        return job

    def create_new_job(self, rpc_data: Any) -> Job:
        """Start a job for a new block height."""
        job = self._new_job(rand_hex_uint64(), rpc_data)
        _log.info("New Job (Block) from block template")
        return job

    def process_template(self, rpc_data: Any) -> Job | None:
        """Ignore stale templates, refresh the same height, or start a new one."""
        current = self.current_job
        if current is not None:
            current_height = current.block_template.height
            if rpc_data.height < current_height:
                return None
            if rpc_data.height == current_height:
                return self.update_current_job(rpc_data)
        return self.create_new_job(rpc_data)

    def process_submit(
        self,
        job_id: str,
        prev_diff: float | None,
        diff: float | None,
        extra_nonce1: bytes,
        hex_extra_nonce2: str,
        hex_ntime: str,
        hex_nonce: str,
        ip_addr: Any,
        worker_name: str,
    ) -> Share:
        """Validate a mining.submit and turn it into a share."""
        submit_time = self._clock()
        miner, rig = _split_worker(worker_name)

        def rejected(code: ShareError) -> Share:
            return Share(job_id=job_id, remote_addr=ip_addr, miner=miner, rig=rig, error_code=code)

        job = self.valid_jobs.get(job_id)
        if job is None or job.job_id != job_id:
            return rejected(_JOB_NOT_FOUND)

        try:
            extra_nonce2 = bytes.fromhex(hex_extra_nonce2)
        except ValueError:
            return rejected(_INCORRECT_EXTRA_NONCE2_SIZE)
        if len(extra_nonce2) != self.extra_nonce2_size:
            return rejected(_INCORRECT_EXTRA_NONCE2_SIZE)

        if len(hex_ntime) != 8:
            return rejected(_INCORRECT_NTIME_SIZE)

        try:
            ntime_bytes = bytes.fromhex(hex_ntime)
        except ValueError:
            return rejected(_NTIME_OUT_OF_RANGE)
        ntime = int.from_bytes(ntime_bytes, "big")
        latest = int(submit_time) + NTIME_TOLERANCE
        if ntime < job.block_template.curtime or ntime > latest:
            _log.error(
                "nTime incorrect: expect from %s to %s, got %s",
                job.block_template.curtime,
                latest,
                ntime,
            )
            return rejected(_NTIME_OUT_OF_RANGE)

        if len(hex_nonce) != 8:
            return rejected(_INCORRECT_NONCE_SIZE)
        try:
            nonce = bytes.fromhex(hex_nonce)
        except ValueError:
            return rejected(_INCORRECT_NONCE_SIZE)

        if not job.register_submit(extra_nonce1.hex(), hex_extra_nonce2, hex_ntime, hex_nonce):
            return rejected(_DUPLICATE_SHARE)

        coinbase = job.serialize_coinbase(extra_nonce1, extra_nonce2)
        coinbase_hash = self.coinbase_hasher(coinbase)
        merkle_root = job.merkle_tree.with_first(coinbase_hash)[::-1]

        header = job.serialize_header(merkle_root, ntime_bytes, nonce)
        hash_func = get_hash_func(self.options.algorithm.name)
        header_hash = hash_func(header)
        header_value = int.from_bytes(header_hash, "little")

        scaled_max = MAX_TARGET_TRUNCATED << self.options.algorithm.multiplier
        share_diff = scaled_max / header_value if header_value else math.inf

        template = job.block_template
        if job.target > header_value:
            block_hex = job.serialize_block(header, coinbase).hex()
            if self.options.algorithm.sha256d_block_hasher:
                block_hash = sha256d(header)[::-1].hex()
            else:
                block_hash = hash_func(header)[::-1].hex()
            _log.warning("Found Block: %s", block_hash)
            return Share(
                job_id=job_id,
                remote_addr=ip_addr,
                miner=miner,
                rig=rig,
                block_height=template.height,
                block_reward=template.coinbase_value,
                diff=share_diff,
                block_hash=block_hash,
                block_hex=block_hex,
            )

        if diff is not None and diff > 0 and share_diff / diff < MIN_DIFF_RATIO:
            if prev_diff is not None and share_diff >= prev_diff:
                return Share(
                    job_id=job_id,
                    remote_addr=ip_addr,
                    miner=miner,
                    rig=rig,
                    block_height=template.height,
                    block_reward=template.coinbase_value,
                    diff=share_diff,
                )
            return Share(
                job_id=job_id,
                remote_addr=ip_addr,
                miner=worker_name,
                error_code=_LOW_DIFF_SHARE,
            )

        return Share(job_id=job_id, remote_addr=ip_addr, miner=miner, rig=rig, diff=share_diff)