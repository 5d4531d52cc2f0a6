"""Parallel processing mode helpers for batch tokenization."""

import os
from enum import Enum
from typing import Final

from .errors import ModeError

# overrides os.cpu_count() as the default batch worker count
NUM_WORKERS_ENV: Final[str] = "GGTOK_NUM_WORKERS"


class ParallelMode(str, Enum):
    """Named parallelization modes for batch tokenization."""

    AUTO = "auto"
    BATCH = "batch"
    OFF = "off"

    @classmethod
    def get(cls, name: str) -> "ParallelMode":
        """Get parallel mode by name (case-insensitive)."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ModeError(
                "unknown mode",
                invalid_name=name,
                available=[mode.value for mode in cls],
            )


def list_parallel_modes() -> list[str]:
    """Return available parallel mode names."""
    return [mode.value for mode in ParallelMode]


def default_workers() -> int:
    """Return the worker count from ``GGTOK_NUM_WORKERS``, else the CPU count."""
    raw = os.environ.get(NUM_WORKERS_ENV, "").strip()
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            raise ModeError(f"{NUM_WORKERS_ENV} must be an integer, got {raw!r}")
    return os.cpu_count() or 1


__all__ = [
    "ParallelMode",
    "NUM_WORKERS_ENV",
    "list_parallel_modes",
    "default_workers",
]
