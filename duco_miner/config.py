from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .job import Algorithm
from .mining.errors import ConfigError

DEFAULT_SERVER = "149.91.88.18:6000"
DEFAULT_RIG_ID = "SETID"
DEFAULT_DIFFICULTY = "MEDIUM"
DIFFICULTY_TIERS = ("LOW", "MEDIUM", "NET")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None and v != "" else default


def _env_bool(name: str, default: bool) -> bool:
    v = _env(name)
    if v is None:
        return default
    v = v.strip().lower()
    return v in ("1", "true", "t", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(v, 10)
    except ValueError:
        return default


def env_defaults() -> Dict[str, Any]:
    """
    Raw settings from the environment, keyed by CLI destination. Unset string
    settings are None so `MinerConfig.build` applies the real defaults.

      DUCOSERVER=host:port      (default: 149.91.88.18:6000)
      MINERNAME=name            (required)
      HOSTNAME=rig id           (default: SETID)
      DIFF=LOW|MEDIUM|NET       (default: MEDIUM)
      ALGO=ducos1a|xxhash       (default: ducos1a)
      DUCO_THREADS=int          (default: 1)
      DUCO_SKIP=true|false      (default: false)
    """
    return {
        "server": _env("DUCOSERVER"),
        "name": _env("MINERNAME"),
        "rig_id": _env("HOSTNAME"),
        "diff": _env("DIFF"),
        "algo": _env("ALGO"),
        "threads": _env_int("DUCO_THREADS", 1),
        "skip": _env_bool("DUCO_SKIP", False),
    }


def parse_server(address: str) -> Tuple[str, int]:
    """``host:port`` -> (host, port). IPv6 hosts may be bracketed."""
    host, sep, port_text = address.strip().rpartition(":")
    if not sep or not host:
        raise ConfigError(message=f"server address must be host:port, got {address!r}")
    host = host.strip("[]")
    try:
        port = int(port_text, 10)
    except ValueError:
        raise ConfigError(message=f"invalid server port in {address!r}") from None
    if not (0 < port < 65536):
        raise ConfigError(message=f"server port must be 1..65535, got {port}")
    return host, port


@dataclass(frozen=True)
class MinerConfig:
    """
    Process-wide miner settings, read once at startup and shared read-only by
    every worker. Built by the CLI from flags, which fall back to
    `env_defaults()`.
    """

    miner_name: str
    server_host: str = "149.91.88.18"
    server_port: int = 6000
    rig_id: str = DEFAULT_RIG_ID
    difficulty: str = DEFAULT_DIFFICULTY
    algorithm: Algorithm = Algorithm.DUCOS1A
    threads: int = 1

    # Search the range above the server difficulty first.
    skip_lower_range: bool = False

    # Console logging
    quiet: bool = False
    debug: bool = False

    @property
    def server(self) -> str:
        return f"{self.server_host}:{self.server_port}"

    @classmethod
    def build(
        cls,
        *,
        miner_name: Optional[str],
        server: Optional[str] = None,
        rig_id: Optional[str] = None,
        difficulty: Optional[str] = None,
        algorithm: Optional[str] = None,
        threads: Optional[int] = None,
        skip_lower_range: bool = False,
        quiet: bool = False,
        debug: bool = False,
    ) -> "MinerConfig":
        """Apply defaults to raw values (empty means unset) and validate."""
        host, port = parse_server(server or DEFAULT_SERVER)
        cfg = cls(
            miner_name=(miner_name or "").strip(),
            server_host=host,
            server_port=port,
            rig_id=rig_id or DEFAULT_RIG_ID,
            difficulty=difficulty or DEFAULT_DIFFICULTY,
            algorithm=Algorithm.parse(algorithm or Algorithm.DUCOS1A),
            threads=max(1, int(threads or 1)),
            skip_lower_range=bool(skip_lower_range),
            quiet=bool(quiet),
            debug=bool(debug),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if not self.miner_name:
            raise ConfigError(message="miner name is required (--name or MINERNAME)")
        if self.threads < 1:
            raise ConfigError(message="threads must be >= 1")
        for label, value in (("miner name", self.miner_name), ("rig id", self.rig_id)):
            if "," in value or "\n" in value:
                raise ConfigError(message=f"{label} may not contain ',' or newlines")


__all__ = [
    "MinerConfig",
    "DIFFICULTY_TIERS",
    "DEFAULT_SERVER",
    "env_defaults",
    "parse_server",
]
