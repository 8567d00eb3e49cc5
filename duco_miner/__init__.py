"""
Line-protocol proof-of-work miner.

This package wires the pool client, the CPU nonce search and the per-worker
reconnect loop together and exposes `Miner` for the CLI entry point.
"""

from .config import MinerConfig
from .job import Algorithm, Job
from .miner import Miner
from .mining.version import __version__

__all__ = ["Algorithm", "Job", "Miner", "MinerConfig", "__version__"]
