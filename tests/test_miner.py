import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from duco_miner import miner as miner_module
from duco_miner.config import MinerConfig
from duco_miner.miner import Miner
from duco_miner.mining.digests import Sha1Digest
from duco_miner.transport import LineTransport

from .conftest import free_port

BLOCK = "deadbeef"
ANSWER = 77


async def _serve(connections, results):
    """A job server that hands every worker the same easy job."""
    job_line = f"{BLOCK},{Sha1Digest()(BLOCK, ANSWER)},1\n".encode()

    async def handle(reader, writer):
        connections.append(writer)
        writer.write(b"2.7\n")
        await writer.drain()
        while True:
            line = await reader.readline()
            if not line:
                break
            text = line.decode().strip()
            if text.startswith("JOB"):
                writer.write(job_line)
            else:
                results.append(text)
                writer.write(b"GOOD\n")
            await writer.drain()
        writer.close()

    port = free_port()
    server = await asyncio.start_server(handle, "127.0.0.1", port)
    return server, port


@pytest.mark.asyncio
async def test_miner_runs_independent_workers_until_stopped():
    connections, results = [], []
    server, port = await _serve(connections, results)
    cfg = MinerConfig.build(miner_name="alice", server=f"127.0.0.1:{port}", threads=3)
    executor = ThreadPoolExecutor(max_workers=3)
    miner = Miner(cfg, executor=executor)
    try:
        await miner.start()
        assert len(miner.workers) == 3

        async def _enough():
            while len({r.rsplit(" ", 1)[1] for r in results}) < 3:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_enough(), timeout=10)
        await miner.stop()
    finally:
        server.close()
        await server.wait_closed()
        executor.shutdown()

    # one connection per worker, every report carries the worker index
    assert len(connections) == 3
    assert {r.rsplit(" ", 1)[1] for r in results} == {"0xSETID", "1xSETID", "2xSETID"}
    assert all(r.startswith(f"{ANSWER},0,alice,") for r in results)
    assert all(w.client is None for w in miner.workers)


@pytest.mark.asyncio
async def test_stop_interrupts_workers_still_dialing():
    made = []

    def factory(host, port, tag):
        t = LineTransport(host, port, tag=tag)
        made.append(t)
        return t

    cfg = MinerConfig.build(miner_name="alice", server=f"127.0.0.1:{free_port()}", threads=2)
    miner = Miner(cfg, transport_factory=factory, executor=ThreadPoolExecutor(max_workers=2))
    await miner.start()
    while len(made) < 2:
        await asyncio.sleep(0.01)
    await asyncio.wait_for(miner.stop(), timeout=5)
    assert {t.address for t in made} == {cfg.server}
    assert not any(t.is_open for t in made)


@pytest.mark.asyncio
async def test_broken_pool_is_replaced_once(monkeypatch):
    made = []

    class RecordingPool:
        def __init__(self, max_workers):
            self.max_workers = max_workers
            self.shut_down = False
            made.append(self)

        def shutdown(self, wait=True, cancel_futures=False):
            self.shut_down = True

    monkeypatch.setattr(miner_module, "ProcessPoolExecutor", RecordingPool)
    cfg = MinerConfig.build(miner_name="alice", server=f"127.0.0.1:{free_port()}", threads=2)
    miner = Miner(cfg)
    await miner.start()
    try:
        first = made[0]
        second = miner.renew_executor(first)
        assert first.shut_down
        assert second is made[1] and second.max_workers == 2
        # the other worker reports the same break and shares the replacement
        assert miner.renew_executor(first) is second
        assert len(made) == 2
    finally:
        await miner.stop()
    assert second.shut_down


def test_caller_supplied_pool_is_not_rebuilt():
    executor = ThreadPoolExecutor(max_workers=1)
    cfg = MinerConfig.build(miner_name="alice")
    miner = Miner(cfg, executor=executor)
    try:
        assert miner.renew_executor(executor) is None
        assert miner.renew_executor(None) is executor
    finally:
        executor.shutdown()
