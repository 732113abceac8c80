from __future__ import annotations

import time


def wait_until(predicate, timeout: float, interval: float = 0.2, ignored_exceptions: tuple = ()):
    """Polls ``predicate`` until it returns a truthy value or ``timeout`` elapses.

    Exceptions listed in ``ignored_exceptions`` count as a falsy poll. Returns the
    last polled value, so callers treat a falsy result as a timeout.
    """

    deadline = time.monotonic() + timeout
    while True:
        try:
            result = predicate()
        except ignored_exceptions:
            result = None
        if result:
            return result
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return result
        time.sleep(min(interval, remaining))
