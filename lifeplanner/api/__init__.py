"""API routers."""

from lifeplanner.api import repeats

__all__ = [
    "repeats",
]
