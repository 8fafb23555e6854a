import logging
import threading
import time
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional


def poll_until(query: Callable[[], Future], accept: Callable[[Any], bool],
               seconds: float, interval: float = 0.0, name: str = 'poll') -> Optional[Any]:
    """
    Re-run a query until its result is accepted or the deadline passes.

    Blocks the calling thread, so it must not run on the cec-client reader
    thread (the answers arrive through that thread).

    Args:
        query: Starts one query and returns a Future with its answer
        accept: Predicate deciding whether an answer ends the polling
        seconds: Overall deadline
        interval: Pause between queries (0 re-queries immediately)
        name: Used in log messages

    Returns:
        The accepted answer, or None when the deadline passed first

    Example:
        poll_until(lambda: correlator.get_status('dev0'),
                   lambda status: status == 'on', 40.0)
    """
    logger = logging.getLogger(f'Poll({name})')
    start_time = time.monotonic()
    deadline = start_time + seconds
    attempts = 0

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break

        attempts += 1
        try:
            value = query().result(timeout=remaining)
        except FutureTimeoutError:
            break

        if accept(value):
            logger.debug(f"Accepted {value!r} after {attempts} attempt(s)")
            return value

        if interval:
            time.sleep(min(interval, max(deadline - time.monotonic(), 0)))

    elapsed = time.monotonic() - start_time
    logger.warning(f"'{name}' timed out after {elapsed:.2f}s ({attempts} attempt(s))")
    return None


def run_in_thread(func: Callable, *args, name: Optional[str] = None) -> Future:
    """Run func(*args) in a daemon thread and return a Future with its result"""
    future = Future()

    def runner():
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(func(*args))
        except Exception as e:
            future.set_exception(e)

    threading.Thread(target=runner, name=name or func.__name__, daemon=True).start()
    return future
