"""
packopt_api package

Multi-box shipping optimizer: packs the units of an order into the fewest,
cheapest containers of a box catalog and reports cost, utilization and
per-box contents.

This initializer exposes a small, stable surface:
- __version__: package version string
- get_version(): helper to retrieve the version

The computational core lives in `models`, `normalizer`, `catalog`, `policy`,
`packing` and `evaluator`; `service` glues them together and `api` exposes
them over FastAPI. `reporting` and `plotting` present finished plans.
Keep this file minimal to avoid import-time side-effects.
"""

from typing import Final

__all__ = ["__version__", "get_version"]

__version__: Final[str] = "0.2.0"


def get_version() -> str:
    """
    Return the package version.

    Use this from external code to check the installed API version.
    """
    return __version__
