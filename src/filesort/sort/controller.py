"""Run state of the sort service.

The state is a single flag. It is written by a signal handler or a host
stop callback and read by the sort loop between files and between cycles.
"""

from __future__ import annotations

import threading
from enum import Enum


class ServiceState(Enum):
    RUNNING = "running"
    STOP_REQUESTED = "stop_requested"


class ServiceController:
    """Cooperative stop flag shared by the sort loop and its host.

    Examples
    --------
    >>> controller = ServiceController()
    >>> controller.should_continue()
    True
    >>> controller.request_stop()
    >>> controller.state
    <ServiceState.STOP_REQUESTED: 'stop_requested'>
    """

    def __init__(self) -> None:
        self._stop = threading.Event()

    @property
    def state(self) -> ServiceState:
        if self._stop.is_set():
            return ServiceState.STOP_REQUESTED
        return ServiceState.RUNNING

    def request_stop(self) -> None:
        """Ask the sort loop to stop after the file it is placing."""
        self._stop.set()

    def reset(self) -> None:
        """Clear a previous stop request before the loop is started again."""
        self._stop.clear()

    def should_continue(self) -> bool:
        return not self._stop.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning early on a stop request.

        Returns
        -------
        bool
            True if the loop should continue.
        """
        return not self._stop.wait(timeout)
