"""Timing decorator for vocabulary and metadata loading."""

import functools
import logging
import time
from typing import Callable


def measure_time(func: Callable) -> Callable:
    """
    Log how long each call of ``func`` takes, at debug level.

    Records go to the logger of the module that defines ``func``. A call
    that raises is logged as failed, and the exception propagates.
    """
    func_log = logging.getLogger(func.__module__)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        ok = False
        try:
            result = func(*args, **kwargs)
            ok = True
            return result
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            status = "completed" if ok else "failed"
            func_log.debug(f"{func.__qualname__} {status} after {elapsed_ms:.1f} ms")

    return wrapper
