from __future__ import annotations

"""
CPU nonce search for line-protocol jobs.

Design
------
- `scan_range` is the only correctness-bearing loop: it walks [start, stop)
  one nonce at a time and stops on the first digest equal to the target.
- `NonceSearch` layers the skip-range ordering on top of it. With skipping
  enabled the upper range [difficulty, bound) is scanned first and the lower
  range [0, difficulty) only if that pass exhausts. Turning the policy off
  gives a single pass from the job's current nonce; both find the same answer
  for any nonce in the upper range.
- Exhaustion is not an error: the job comes back with ``solved == False`` and
  ``nonce`` parked on the stop value of the last pass.
- Digest failures (DigestIOError) propagate out of the loop unchanged.

Usage sketch
------------
    from duco_miner.mining.hash_search import NonceSearch

    engine = NonceSearch(skip_lower_range=True)
    job = engine.search(job)
    if job.solved:
        submit(job.nonce)
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..job import Job
from .digests import DigestFunction, digest_for

log = logging.getLogger("duco_miner.hash_search")


def scan_range(job: Job, digest: DigestFunction, start: int, stop: int) -> bool:
    """
    Linear scan of [start, stop). Returns True when ``job.nonce`` holds the answer.

    On exhaustion ``job.nonce`` is parked on ``stop`` and ``job.result_digest``
    is the digest of the last nonce tried (unchanged if the range was empty).
    """
    trial = digest.prepare(job.challenge_block)
    target = job.target_digest

    hashes = 0
    nonce = start
    while nonce < stop:
        result = trial(nonce)
        hashes += 1
        if result == target:
            job.nonce = nonce
            job.result_digest = result
            job.hashes += hashes
            return True
        job.result_digest = result
        nonce += 1

    job.nonce = max(start, stop)
    job.hashes += hashes
    return False


@dataclass(frozen=True)
class NonceSearch:
    """
    Search policy for one worker. Picklable, so it can be shipped to a process pool.
    """

    skip_lower_range: bool = False

    def search(self, job: Job, digest: Optional[DigestFunction] = None) -> Job:
        fn = digest or digest_for(job.algorithm)
        bound = job.difficulty_bound
        t0 = time.perf_counter()

        if not self.skip_lower_range:
            scan_range(job, fn, job.nonce, bound)
        elif not scan_range(job, fn, job.difficulty, bound):
            log.debug(
                "upper range exhausted, searching skipped space [0, %d)", job.difficulty
            )
            scan_range(job, fn, 0, job.difficulty)

        elapsed = time.perf_counter() - t0
        log.debug(
            "search done solved=%s nonce=%d hashes=%d in %.3fs",
            job.solved,
            job.nonce,
            job.hashes,
            elapsed,
        )
        return job


def hashrate(job: Job, elapsed: float) -> float:
    """Hashes per second for a finished job; 0.0 when no time was measured."""
    if elapsed <= 0.0:
        return 0.0
    return job.hashes / elapsed


__all__ = ["NonceSearch", "scan_range", "hashrate"]
