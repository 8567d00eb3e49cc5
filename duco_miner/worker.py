from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from concurrent.futures import BrokenExecutor, Executor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .config import MinerConfig
from .job import Job
from .mining.digests import digest_for
from .mining.errors import MinerError, ServerConnectionError, StreamEndError
from .mining.hash_search import NonceSearch, hashrate
from .pool_client import PoolClient, Transport
from .transport import LineTransport

log = logging.getLogger("duco_miner.worker")

TransportFactory = Callable[[str, int, str], Transport]
# Given the executor that broke, returns the one to search in next (None: loop default).
ExecutorFactory = Callable[[Optional[Executor]], Optional[Executor]]

RECONNECT_DELAY = 1.0
RECONNECT_DELAY_MAX = 30.0
RETRY_DELAY = 1.0


class WorkerState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    GET_JOB = "get_job"
    SEARCHING = "searching"
    REPORTING = "reporting"


@dataclass
class WorkerStats:
    jobs: int = 0
    solved: int = 0
    exhausted: int = 0
    submitted: int = 0
    reconnects: int = 0
    retries: int = 0
    hashes: int = 0


def _line_transport(host: str, port: int, tag: str) -> Transport:
    return LineTransport(host, port, tag=tag)


class Worker:
    """
    One self-contained mining loop: its own connection, its own job, its own
    search. Runs {get job -> search -> report} until stopped.

    Failure policy follows the error's ``action``:
      - "reconnect" (end of stream, failed dial): close, redial, fetch again
      - "retry" (malformed response) and plain OSError: retry on the same connection
      - "refetch_job" (digest failure): drop the job and fetch a new one
      - a broken search pool is swapped out and the job refetched
    Errors that are not retryable propagate.
    """

    def __init__(
        self,
        index: int,
        config: MinerConfig,
        *,
        transport_factory: Optional[TransportFactory] = None,
        executor: Optional[Executor] = None,
        executor_factory: Optional[ExecutorFactory] = None,
        engine: Optional[NonceSearch] = None,
        reconnect_delay: float = RECONNECT_DELAY,
        retry_delay: float = RETRY_DELAY,
    ) -> None:
        self.index = index
        self.config = config
        self.tag = f"[worker {index}] "
        # Resolve the digest up front: an unknown algorithm must fail before any I/O.
        self.digest = digest_for(config.algorithm)
        self.engine = engine or NonceSearch(skip_lower_range=config.skip_lower_range)
        self._transport_factory = transport_factory or _line_transport
        self._executor = executor
        self._executor_factory = executor_factory
        self._reconnect_delay = reconnect_delay
        self._retry_delay = retry_delay

        self.state = WorkerState.DISCONNECTED
        self.stats = WorkerStats()
        self.client: Optional[PoolClient] = None
        self._stop = asyncio.Event()

    # ------------------- connection -------------------

    async def connect(self) -> Optional[PoolClient]:
        """
        Dial and read the greeting, backing off until it works. Returns None only
        when the worker was stopped before a connection was established.
        """
        delay = self._reconnect_delay
        while not self._stop.is_set():
            self.state = WorkerState.CONNECTING
            log.info("%sconnecting to server %s", self.tag, self.config.server)
            transport = self._transport_factory(
                self.config.server_host, self.config.server_port, self.tag
            )
            client = PoolClient(transport, tag=self.tag)
            try:
                await transport.open()
                await client.handshake()
            except (ServerConnectionError, StreamEndError, OSError) as exc:
                log.warning(
                    "%sfailed to connect (%s). Retrying in %.1f s.", self.tag, exc, delay
                )
                await transport.close()
                self.state = WorkerState.DISCONNECTED
                await self._sleep(delay)
                delay = min(delay * 2, RECONNECT_DELAY_MAX)
                continue
            self.client = client
            self.state = WorkerState.READY
            return client
        return None

    async def disconnect(self) -> None:
        client, self.client = self.client, None
        if client is not None:
            await client.close()
        self.state = WorkerState.DISCONNECTED

    async def reconnect(self) -> Optional[PoolClient]:
        # Always close the old socket before dialing again.
        await self.disconnect()
        self.stats.reconnects += 1
        return await self.connect()

    # ------------------- cycle -------------------

    async def run_cycle(self) -> Optional[Job]:
        """
        One get-job / search / report pass. Returns the reported job, or None
        when the cycle was abandoned (error, exhaustion) and must start over.
        """
        client = self.client or await self.connect()
        if client is None:
            return None

        self.state = WorkerState.GET_JOB
        try:
            job = await client.request_job(
                self.config.algorithm, self.config.miner_name, self.config.difficulty
            )
        except (MinerError, OSError) as exc:
            await self._recover("get job", exc)
            return None
        self.stats.jobs += 1

        self.state = WorkerState.SEARCHING
        t0 = time.perf_counter()
        try:
            job = await self._search(job)
        except MinerError as exc:
            await self._recover("search", exc)
            return None
        except BrokenExecutor as exc:
            log.error("%ssearch pool failed, fetching a new job: %s", self.tag, exc)
            self._renew_executor()
            self.state = WorkerState.READY
            return None
        elapsed = time.perf_counter() - t0
        self.stats.hashes += job.hashes

        if not job.solved:
            self.stats.exhausted += 1
            log.warning(
                "%sno nonce in [0, %d) matched; fetching a new job",
                self.tag,
                job.difficulty_bound,
            )
            self.state = WorkerState.READY
            return None
        self.stats.solved += 1
        log.debug(
            "%sfound nonce %d after %d hashes (%.1f kH/s)",
            self.tag,
            job.nonce,
            job.hashes,
            hashrate(job, elapsed) / 1000.0,
        )

        self.state = WorkerState.REPORTING
        try:
            await client.submit_result(
                job, self.config.miner_name, self.config.rig_id, self.index
            )
        except (MinerError, OSError) as exc:
            await self._recover("report job", exc)
            return None
        self.stats.submitted += 1
        self.state = WorkerState.READY
        return job

    async def run(self) -> None:
        """Loop forever (until `stop`)."""
        try:
            await self.connect()
            while not self._stop.is_set():
                await self.run_cycle()
        finally:
            await self.disconnect()
            log.info("%sstopped %s", self.tag, self.stats)

    def stop(self) -> None:
        self._stop.set()

    # ------------------- helpers -------------------

    async def _search(self, job: Job) -> Job:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, self.engine.search, job, self.digest
        )

    async def _recover(self, step: str, exc: Exception) -> None:
        """Act on the error's ``action``; plain OSErrors retry in place."""
        if isinstance(exc, MinerError) and not exc.retryable:
            raise exc
        action = getattr(exc, "action", None) or "retry"
        if action == "reconnect":
            log.debug("%serror with %s: %s", self.tag, step, exc)
            await self.reconnect()
        elif action == "refetch_job":
            log.warning("%serror with %s, fetching a new job: %s", self.tag, step, exc)
            self.state = WorkerState.READY
        else:
            log.warning("%serror with %s: %s", self.tag, step, exc)
            await self._retry()

    def _renew_executor(self) -> None:
        # Without a factory, fall back to the loop's default thread pool.
        broken = self._executor
        if self._executor_factory is None:
            self._executor = None
        else:
            self._executor = self._executor_factory(broken)

    async def _retry(self) -> None:
        self.stats.retries += 1
        self.state = WorkerState.READY
        await self._sleep(self._retry_delay)

    async def _sleep(self, delay: float) -> None:
        if delay <= 0:
            await asyncio.sleep(0)
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop.wait(), timeout=delay)


__all__ = ["Worker", "WorkerState", "WorkerStats", "TransportFactory", "ExecutorFactory"]
