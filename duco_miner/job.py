from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .mining.errors import UnsupportedAlgorithm

UINT64_MAX = (1 << 64) - 1


class Algorithm(str, Enum):
    """Digest algorithms advertised by the job server."""

    DUCOS1A = "ducos1a"  # SHA-1
    XXHASH = "xxhash"  # 64-bit xxHash, seed 2811

    @classmethod
    def parse(cls, value: "str | Algorithm") -> "Algorithm":
        if isinstance(value, Algorithm):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedAlgorithm(
                algorithm=str(value),
                message=f"unsupported algorithm: {value!r}",
            ) from None


def scale_difficulty(difficulty: int) -> int:
    """Server difficulty → exclusive nonce bound (difficulty*100 + 1)."""
    return difficulty * 100 + 1


@dataclass
class Job:
    """
    One mining assignment, fetched fresh per cycle and mutated by the search.

    Attributes:
        algorithm: Digest algorithm the server expects.
        challenge_block: Previous block hash; the prefix every nonce is appended to.
        target_digest: Digest the search must reproduce.
        difficulty: Server-supplied difficulty, before scaling.
        nonce: Current search position; the answer once solved.
        result_digest: Digest computed for ``nonce``.
        hashes: Number of digests computed for this job.
    """

    algorithm: Algorithm
    challenge_block: str
    target_digest: str
    difficulty: int
    nonce: int = 0
    result_digest: str = ""
    hashes: int = 0

    @property
    def difficulty_bound(self) -> int:
        return scale_difficulty(self.difficulty)

    @property
    def solved(self) -> bool:
        return self.result_digest != "" and self.result_digest == self.target_digest
