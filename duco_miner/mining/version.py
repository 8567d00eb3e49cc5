from __future__ import annotations

import os

# Reported to the server in every result line; servers key share stats on it.
__version__ = "0.2"

# Software tag printed in the startup banner.
CLIENT_NAME = "ds-py-miner"


def get_version() -> str:
    """
    Human-friendly version string for logs:
      1) Respect env override DUCO_MINER_VERSION if set
      2) Fall back to the semantic __version__
    """
    env = os.getenv("DUCO_MINER_VERSION")
    if env:
        return env
    return f"v{__version__}"


__all__ = ["__version__", "CLIENT_NAME", "get_version"]
