from __future__ import annotations

"""
Digest adapters for the nonce search.

Each adapter maps (challenge_block, nonce) to a lower-case hex string over the
UTF-8 bytes of ``challenge_block + str(nonce)``:

  ducos1a : SHA-1, 40 hex chars
  xxhash  : 64-bit xxHash with seed 2811, hex of the integer (no zero padding)

The hot loop calls ``prepare(challenge_block)`` once per job and then the
returned callable once per nonce. Preparing hashes the prefix a single time and
clones the hasher state per trial.
"""

import hashlib
from abc import ABC, abstractmethod
from typing import Callable, Dict

import xxhash

from ..job import Algorithm
from .errors import DigestIOError

XXHASH_SEED = 2811

NonceDigest = Callable[[int], str]


def nonce_text(nonce: int) -> bytes:
    """Unsigned base-10 rendering of a nonce, no sign, no leading zeros."""
    if nonce < 0:
        raise ValueError(f"nonce must be non-negative, got {nonce}")
    return str(nonce).encode("ascii")


def _encode_block(challenge_block: str) -> bytes:
    try:
        return challenge_block.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise DigestIOError(
            message=f"challenge block is not encodable: {exc}",
            context={"block": challenge_block[:64]},
        ) from exc


class DigestFunction(ABC):
    """Pure mapping (challenge_block, nonce) -> hex digest string."""

    algorithm: Algorithm

    @abstractmethod
    def prepare(self, challenge_block: str) -> NonceDigest:
        """Return a per-nonce digest function bound to ``challenge_block``."""

    def __call__(self, challenge_block: str, nonce: int) -> str:
        return self.prepare(challenge_block)(nonce)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.algorithm.value})"


class Sha1Digest(DigestFunction):
    algorithm = Algorithm.DUCOS1A

    def prepare(self, challenge_block: str) -> NonceDigest:
        base = hashlib.sha1(_encode_block(challenge_block))

        def _digest(nonce: int) -> str:
            h = base.copy()
            try:
                h.update(nonce_text(nonce))
            except ValueError as exc:
                raise DigestIOError(message=str(exc), context={"nonce": nonce}) from exc
            return h.hexdigest()

        return _digest


class XxHash64Digest(DigestFunction):
    algorithm = Algorithm.XXHASH

    def __init__(self, seed: int = XXHASH_SEED) -> None:
        self.seed = seed

    def prepare(self, challenge_block: str) -> NonceDigest:
        base = xxhash.xxh64(_encode_block(challenge_block), seed=self.seed)

        def _digest(nonce: int) -> str:
            h = base.copy()
            try:
                h.update(nonce_text(nonce))
            except ValueError as exc:
                raise DigestIOError(message=str(exc), context={"nonce": nonce}) from exc
            # Servers compare against the unpadded hex of the 64-bit sum.
            return format(h.intdigest(), "x")

        return _digest


_DIGESTS: Dict[Algorithm, DigestFunction] = {
    Algorithm.DUCOS1A: Sha1Digest(),
    Algorithm.XXHASH: XxHash64Digest(),
}


def digest_for(algorithm: "Algorithm | str") -> DigestFunction:
    return _DIGESTS[Algorithm.parse(algorithm)]


__all__ = [
    "XXHASH_SEED",
    "DigestFunction",
    "Sha1Digest",
    "XxHash64Digest",
    "digest_for",
    "nonce_text",
]
