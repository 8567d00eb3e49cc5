from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional


class MiningErrorCode(IntEnum):
    """Stable, machine-consumable error codes for the worker loop."""

    MINER_ERROR = 1000
    CONNECTION_FAILED = 1001
    STREAM_END = 1002
    PROTOCOL = 1003
    PARSE = 1004
    UNSUPPORTED_ALGORITHM = 1005
    DIGEST_IO = 1006
    CONFIG = 1007


def _restore(cls: type, state: Dict[str, Any]) -> "MinerError":
    obj = cls.__new__(cls)
    obj.__dict__.update(state)
    return obj


@dataclass
class MinerError(Exception):
    """
    Base class for miner-facing errors.

    Attributes
    ----------
    message : str
        Human-friendly explanation (safe to log).
    code : MiningErrorCode
        Programmatic code stable across releases.
    retryable : bool
        Whether the worker may retry the cycle that raised it.
    context : dict
        Small, JSON-serializable context for diagnostics.
    action : Optional[str]
        One-word hint for the worker loop ("reconnect", "retry", "refetch_job").
    """

    message: str
    code: MiningErrorCode = MiningErrorCode.MINER_ERROR
    retryable: bool = False
    context: Dict[str, Any] = field(default_factory=dict)
    action: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        base = f"[{self.code}] {self.message}"
        if self.action:
            base += f" (action={self.action})"
        if self.context:
            base += f" ctx={self.context}"
        return base

    def __reduce__(self):
        # Searches run in a process pool; errors must survive the trip back.
        return (_restore, (type(self), dict(self.__dict__)))


@dataclass
class ServerConnectionError(MinerError):
    """Dialing the job server or reading its greeting failed."""

    message: str = "could not connect to job server"
    code: MiningErrorCode = MiningErrorCode.CONNECTION_FAILED
    retryable: bool = True
    action: str = "reconnect"


@dataclass
class StreamEndError(MinerError):
    """The server closed the stream (or reset it) mid-exchange."""

    message: str = "end of stream"
    code: MiningErrorCode = MiningErrorCode.STREAM_END
    retryable: bool = True
    action: str = "reconnect"


@dataclass
class ProtocolError(MinerError):
    """A response line was malformed or too short."""

    message: str = "malformed server response"
    code: MiningErrorCode = MiningErrorCode.PROTOCOL
    retryable: bool = True
    action: str = "retry"


@dataclass
class ParseError(ProtocolError):
    """A numeric field (the difficulty) was not a base-10 unsigned 64-bit integer."""

    message: str = "invalid numeric field"
    code: MiningErrorCode = MiningErrorCode.PARSE


@dataclass
class UnsupportedAlgorithm(MinerError):
    """The algorithm selector names no known digest function."""

    algorithm: str = ""
    message: str = "unsupported algorithm"
    code: MiningErrorCode = MiningErrorCode.UNSUPPORTED_ALGORITHM
    retryable: bool = False

    def __post_init__(self) -> None:
        self.context.setdefault("algorithm", self.algorithm)


@dataclass
class DigestIOError(MinerError):
    """A digest adapter failed while hashing; the current job is abandoned."""

    message: str = "digest computation failed"
    code: MiningErrorCode = MiningErrorCode.DIGEST_IO
    retryable: bool = True
    action: str = "refetch_job"


@dataclass
class ConfigError(MinerError):
    """Startup configuration is missing or invalid."""

    message: str = "invalid configuration"
    code: MiningErrorCode = MiningErrorCode.CONFIG
    retryable: bool = False


__all__ = [
    "MiningErrorCode",
    "MinerError",
    "ServerConnectionError",
    "StreamEndError",
    "ProtocolError",
    "ParseError",
    "UnsupportedAlgorithm",
    "DigestIOError",
    "ConfigError",
]
