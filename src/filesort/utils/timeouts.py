"""Run blocking filesystem calls with an upper bound on their duration.

A call on an unresponsive network share can block forever inside the
kernel, and Python cannot interrupt it. The call is therefore executed on
a worker thread and the caller stops waiting after ``timeout`` seconds.
The worker is abandoned, not killed: it finishes (or hangs) on its own,
which is why a fresh executor is created after every timeout.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

T = TypeVar("T")


class TimeoutRunner:
    """Execute callables on a worker thread, waiting at most ``timeout`` seconds.

    Parameters
    ----------
    timeout : float
        Seconds to wait for each call. ``0`` or a negative value waits forever.
    name : str
        Prefix of the worker thread names.

    Examples
    --------
    >>> runner = TimeoutRunner(timeout=5.0)
    >>> runner.call(sum, [1, 2, 3])
    6
    """

    def __init__(self, timeout: float, name: str = "filesort-io") -> None:
        self.timeout = timeout
        self.name = name
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=self.name
                )
            return self._executor

    def _abandon_executor(self) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None

    def call(self, func: Callable[..., T], *args: object, **kwargs: object) -> T:
        """Call ``func(*args, **kwargs)`` and return its result.

        Raises
        ------
        TimeoutError
            If the call did not finish within ``timeout`` seconds.
        Exception
            Whatever ``func`` raised.
        """
        if self.timeout <= 0:
            return func(*args, **kwargs)

        future = self._get_executor().submit(func, *args, **kwargs)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError as e:
            self._abandon_executor()
            name = getattr(func, "__name__", repr(func))
            msg = f"{name} did not complete within {self.timeout:g}s"
            raise TimeoutError(msg) from e

    def close(self) -> None:
        """Release the worker thread without waiting for a running call."""
        self._abandon_executor()
