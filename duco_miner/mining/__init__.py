"""
Mining primitives for the line-protocol miner.

This package holds the digest adapters, the nonce search loop and the error
taxonomy shared by the worker and the pool client.

Exports
-------
__version__ : str
    Client version string reported in result submissions.
"""

from .version import __version__  # re-export

__all__ = ["__version__"]
