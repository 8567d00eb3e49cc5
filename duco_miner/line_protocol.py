from __future__ import annotations

"""
Line protocol spoken by the job server
======================================

Purpose
-------
Builders and parsers for the plain-text, comma-separated protocol. Transport is
TCP; every message is one ASCII line. This module is pure and I/O-free so the
client, the tests and any local test server can share it.

Exchanges
---------
Greeting (server -> client, unsolicited on accept):
  <server version>

Job request / response:
  client: JOB,<miner name>,<difficulty tier>        (ducos1a)
  client: JOBXX,<miner name>,<difficulty tier>      (xxhash)
  server: <challenge block>,<target digest>,<difficulty>[,...]

Result submission / acknowledgement:
  client: <nonce>,<hashrate>,<miner name>,<client version> <thread>x<rig id>
  server: <ack>            (GOOD / BAD / BLOCK ..., not interpreted here)

Framing
-------
Each read pulls at most READ_BUFFER_SIZE bytes; trailing NUL and newline
characters are stripped. Writes append a single "\\n".
"""

from typing import List

from .job import UINT64_MAX, Algorithm, Job, scale_difficulty
from .mining.errors import ParseError, ProtocolError

SEPARATOR = ","
NEWLINE = "\n"
NULL = "\x00"
READ_BUFFER_SIZE = 256

JOB_REQUESTS = {
    Algorithm.DUCOS1A: "JOB",
    Algorithm.XXHASH: "JOBXX",
}

# Hashrate measurement is not reported; servers accept 0.
REPORTED_HASHRATE = 0


# ---------------------- Framing helpers ----------------------


def clean_line(raw: str) -> str:
    """Strip trailing NUL padding and line terminators."""
    return raw.rstrip(NULL + "\r" + NEWLINE)


def decode_line(data: bytes) -> str:
    return clean_line(data.decode("utf-8", errors="replace"))


def encode_line(text: str) -> bytes:
    return (text + NEWLINE).encode("utf-8")


# ---------------------- Numeric fields ----------------------


def parse_uint64(text: str) -> int:
    """
    Parse a base-10 unsigned 64-bit integer. Digits only: no sign, no spaces.
    """
    if not text or not text.isascii() or not text.isdigit():
        raise ParseError(
            message=f"not an unsigned integer: {text!r}", context={"field": text[:32]}
        )
    value = int(text, 10)
    if value > UINT64_MAX:
        raise ParseError(
            message=f"value out of uint64 range: {text!r}", context={"field": text[:32]}
        )
    return value


# ---------------------- Convenience builders ----------------------


def req_job(algorithm: Algorithm, miner_name: str, difficulty: str) -> str:
    verb = JOB_REQUESTS[Algorithm.parse(algorithm)]
    return SEPARATOR.join((verb, miner_name, difficulty))


def req_submit(
    job: Job,
    miner_name: str,
    version: str,
    thread_index: int,
    rig_id: str,
    hashrate: int = REPORTED_HASHRATE,
) -> str:
    worker_id = f"{thread_index}x{rig_id}"
    return SEPARATOR.join(
        (str(job.nonce), str(hashrate), miner_name, f"{version} {worker_id}")
    )


# ---------------------- Parsers ----------------------


def split_fields(line: str) -> List[str]:
    return line.split(SEPARATOR)


def parse_job_response(line: str, algorithm: Algorithm) -> Job:
    """
    ``<challenge>,<target>,<difficulty>[,...]`` -> Job.

    Raises ProtocolError for fewer than three fields and ParseError when the
    difficulty is not a uint64 or its scaled bound would overflow one.
    """
    fields = split_fields(line)
    if len(fields) < 3:
        raise ProtocolError(
            message=f"job response has {len(fields)} field(s), expected 3",
            context={"response": line[:READ_BUFFER_SIZE]},
        )
    challenge, target, difficulty_text = fields[0], fields[1], fields[2]
    difficulty = parse_uint64(difficulty_text)
    if scale_difficulty(difficulty) > UINT64_MAX:
        raise ParseError(
            message=f"difficulty {difficulty} overflows the nonce range",
            context={"field": difficulty_text},
        )
    return Job(
        algorithm=Algorithm.parse(algorithm),
        challenge_block=challenge,
        target_digest=target,
        difficulty=difficulty,
    )


__all__ = [
    "SEPARATOR",
    "READ_BUFFER_SIZE",
    "REPORTED_HASHRATE",
    "clean_line",
    "decode_line",
    "encode_line",
    "parse_uint64",
    "req_job",
    "req_submit",
    "split_fields",
    "parse_job_response",
]
