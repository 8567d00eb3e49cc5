from __future__ import annotations

import logging
from typing import Protocol

from .job import Algorithm, Job
from .line_protocol import parse_job_response, req_job, req_submit
from .mining.errors import ServerConnectionError, StreamEndError
from .mining.version import __version__

log = logging.getLogger("duco_miner.pool_client")


class Transport(Protocol):
    """What PoolClient needs from a connection; LineTransport satisfies it."""

    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def send_line(self, text: str) -> None: ...

    async def read_line(self) -> str: ...


class PoolClient:
    """
    Request/response client for the job server over one transport.

    Every call is exactly one write followed by one read. Nothing is retried
    here; retry and reconnect policy belong to the Worker.

    Usage:
        client = PoolClient(transport, tag="[worker 0] ")
        await client.handshake()
        job = await client.request_job(Algorithm.DUCOS1A, "alice", "LOW")
        ...
        ack = await client.submit_result(job, "alice", "rig1", 0)
    """

    def __init__(self, transport: Transport, *, version: str = __version__, tag: str = "") -> None:
        self.transport = transport
        self.version = version
        self.tag = tag
        self.server_version: str = ""

    async def handshake(self) -> str:
        """Read the server's unsolicited version banner."""
        try:
            banner = await self.transport.read_line()
        except StreamEndError as exc:
            raise ServerConnectionError(
                message=f"no greeting from server: {exc.message}"
            ) from exc
        self.server_version = banner
        log.info("%sconnected to server version %s", self.tag, banner)
        return banner

    async def request_job(
        self, algorithm: Algorithm, miner_name: str, difficulty: str
    ) -> Job:
        await self.transport.send_line(req_job(algorithm, miner_name, difficulty))
        resp = await self.transport.read_line()
        log.info("%sget job response %s", self.tag, resp)
        return parse_job_response(resp, algorithm)

    async def submit_result(
        self, job: Job, miner_name: str, rig_id: str, thread_index: int
    ) -> str:
        line = req_submit(job, miner_name, self.version, thread_index, rig_id)
        await self.transport.send_line(line)
        ack = await self.transport.read_line()
        log.info("%ssubmit job response %s (nonce=%d)", self.tag, ack, job.nonce)
        return ack

    async def close(self) -> None:
        await self.transport.close()

    def __repr__(self) -> str:
        return f"PoolClient(transport={self.transport!r}, server_version={self.server_version!r})"


__all__ = ["PoolClient", "Transport"]
