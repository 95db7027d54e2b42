"""Bounded polling and retry helper."""

import time
from typing import Callable


def poll_until(predicate: Callable[[], bool],
               attempts: int,
               interval: float,
               sleep: Callable[[float], None] = time.sleep) -> bool:
    """
    Call predicate until it returns True, at most `attempts` times.

    Sleeps `interval` seconds between two calls, never after the last one,
    so the total wait is bounded by (attempts - 1) * interval plus the time
    spent inside predicate.

    Returns True as soon as predicate succeeds, False once attempts are
    exhausted.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    for attempt in range(1, attempts + 1):
        if predicate():
            return True
        if attempt < attempts:
            sleep(interval)
    return False
