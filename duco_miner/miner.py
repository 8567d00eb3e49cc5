from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from concurrent.futures import Executor, ProcessPoolExecutor
from typing import Any, List, Optional

from .config import MinerConfig
from .mining.version import CLIENT_NAME, get_version
from .worker import TransportFactory, Worker

log = logging.getLogger("duco_miner.core")


class Miner:
    """
    Spawns one Worker per configured thread and waits for them.

    Workers share nothing but the read-only config. Searches run in a process
    pool sized to the thread count so hashing is not serialized by the GIL.
    """

    def __init__(
        self,
        config: MinerConfig,
        *,
        transport_factory: Optional[TransportFactory] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.config = config
        self._transport_factory = transport_factory
        self._owns_executor = executor is None
        self._executor = executor
        self.workers: List[Worker] = []
        self._tasks: List[asyncio.Task] = []

    async def start(self) -> None:
        if self._executor is None:
            self._executor = ProcessPoolExecutor(max_workers=self.config.threads)
        # Built before any task starts so a bad algorithm fails the whole start.
        self.workers = [
            Worker(
                i,
                self.config,
                transport_factory=self._transport_factory,
                executor=self._executor,
                executor_factory=self.renew_executor,
            )
            for i in range(self.config.threads)
        ]
        self._tasks = [
            asyncio.create_task(w.run(), name=f"duco-worker-{w.index}")
            for w in self.workers
        ]
        log.info(
            "Started %d worker(s) against %s algo=%s diff=%s skip=%s",
            len(self.workers),
            self.config.server,
            self.config.algorithm.value,
            self.config.difficulty,
            self.config.skip_lower_range,
        )

    def renew_executor(self, broken: Optional[Executor]) -> Optional[Executor]:
        """
        Replace a search pool that broke (a child process died). Every worker
        that saw the same break gets the one replacement. A pool handed in by
        the caller is not rebuilt; those workers fall back to the loop default.
        """
        if broken is None or broken is not self._executor:
            return self._executor
        if not self._owns_executor:
            return None
        broken.shutdown(wait=False, cancel_futures=True)
        self._executor = ProcessPoolExecutor(max_workers=self.config.threads)
        log.warning("Search pool broke; started a new one.")
        return self._executor

    async def wait(self) -> None:
        """Join all workers. Under normal operation this never returns."""
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def stop(self) -> None:
        for w in self.workers:
            w.stop()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        log.info("Miner stopped.")


# Convenience runner ---------------------------------------------------------

async def run_miner(config: MinerConfig) -> None:
    log.info("Starting %s version %s", CLIENT_NAME, get_version())
    miner = Miner(config)
    await miner.start()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _set_stop(*_: Any) -> None:
        stop.set()

    for signame in ("SIGINT", "SIGTERM"):
        if hasattr(signal, signame):
            sig = getattr(signal, signame)
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                # Windows Proactor loops do not implement add_signal_handler; fall back to sync handler.
                with contextlib.suppress(ValueError, RuntimeError):
                    signal.signal(sig, _set_stop)

    waiter = asyncio.create_task(miner.wait())
    stopper = asyncio.create_task(stop.wait())
    await asyncio.wait({waiter, stopper}, return_when=asyncio.FIRST_COMPLETED)
    stopper.cancel()
    await miner.stop()
    with contextlib.suppress(asyncio.CancelledError):
        await waiter


__all__ = ["Miner", "run_miner"]
