from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

import numba

from .log import get_logger

logger = get_logger(__name__)


def resolve_threads(n_threads: Optional[int]) -> int:
    """
    Map a requested worker count onto numba's pool.

    ``None`` or 0 selects every configured thread; larger requests are clamped
    to ``numba.config.NUMBA_NUM_THREADS``.
    """
    available = int(numba.config.NUMBA_NUM_THREADS)
    if n_threads is None or n_threads <= 0:
        return available
    return min(int(n_threads), available)


@contextmanager
def thread_scope(n_threads: Optional[int]) -> Iterator[int]:
    """Run the enclosed parallel kernels on ``n_threads`` workers, then restore."""
    previous = numba.get_num_threads()
    requested = resolve_threads(n_threads)
    numba.set_num_threads(requested)
    logger.debug("parallel section on %d of %d threads", requested, numba.config.NUMBA_NUM_THREADS)
    try:
        yield requested
    finally:
        numba.set_num_threads(previous)
