"""
Thread-level helpers: timeout-bounded calls and map-like worker pools.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_timeout(func: Callable[[], T], timeout: Optional[float]) -> Optional[T]:
    """
    Run func on a worker thread and wait at most timeout seconds.
    - timeout None or <= 0 waits until func returns.
    - On timeout returns None; the worker is left to finish on its own and its
      result is discarded (native computations cannot be interrupted).
    - Exceptions raised by func propagate to the caller.
    """
    limit = timeout if timeout is not None and timeout > 0 else None
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func)
    try:
        return future.result(timeout=limit)
    except FuturesTimeoutError:
        logger.debug("Call did not finish within %.3f s; result discarded", limit)
        return None
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


@contextmanager
def worker_map(n_workers: int) -> Iterator[Optional[Callable[[Callable[[Any], Any], Iterable], List[Any]]]]:
    """
    Yield a map-like callable backed by n_workers threads.
    - If n_workers <= 1, yield None (callers evaluate sequentially).
    - The pool is shut down when the context exits.
    """
    if n_workers <= 1:
        yield None
        return

    with ThreadPoolExecutor(max_workers=n_workers) as pool:

        def _map(func: Callable[[Any], Any], tasks: Iterable) -> List[Any]:
            return list(pool.map(func, tasks))

        yield _map
