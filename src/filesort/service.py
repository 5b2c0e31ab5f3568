"""Host embedding of the sort loop.

:class:`SortService` exposes the start and stop callbacks an OS service
supervisor needs, plus blocking entry points for the command line.
"""

from __future__ import annotations

import signal
import threading
from types import FrameType
from typing import Callable

from filesort.config import SortServiceSettings
from filesort.dicom import MetadataExtractor
from filesort.loggers import logger
from filesort.sort import CycleReport, ServiceController, SortLoop

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SortService:
    """Runs a :class:`SortLoop` under a host.

    Parameters
    ----------
    settings : SortServiceSettings
        Service configuration.
    extractor : MetadataExtractor, optional
        Classifier for input files, DICOM headers by default.

    Examples
    --------
    Embedded under a supervisor:
        >>> service = SortService(settings)
        >>> service.on_start()
        >>> ...
        >>> service.on_stop(timeout=30)
        True

    From a terminal, until Ctrl+C:
        >>> SortService(settings).run_forever()
    """

    def __init__(
        self,
        settings: SortServiceSettings,
        extractor: MetadataExtractor | None = None,
    ) -> None:
        self.settings = settings
        self.controller = ServiceController()
        self.loop = SortLoop(
            settings, extractor=extractor, controller=self.controller
        )
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def on_start(self) -> None:
        """Prepare the directories and run the loop on a worker thread.

        Raises
        ------
        ConfigurationError
            If the directories are missing or cannot be created.
        RuntimeError
            If the service is already running.
        """
        if self.is_running:
            msg = "Sort service is already running"
            raise RuntimeError(msg)
        self.settings.prepare_directories()
        self.controller.reset()
        self._thread = threading.Thread(
            target=self.loop.run, name="filesort-loop", daemon=True
        )
        self._thread.start()
        logger.info("Sort service started", thread=self._thread.name)

    def on_stop(self, timeout: float | None = None) -> bool:
        """Request a stop and wait up to ``timeout`` seconds for the loop.

        Returns
        -------
        bool
            True if the loop finished within ``timeout``.
        """
        self.request_stop()
        if self._thread is None:
            return True
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Sort loop did not stop in time", timeout=timeout)
            return False
        self._thread = None
        self.loop.close()
        logger.info("Sort service stopped")
        return True

    def request_stop(self) -> None:
        self.controller.request_stop()

    def run_forever(self) -> None:
        """Run the loop in the calling thread until SIGINT or SIGTERM."""
        self.settings.prepare_directories()
        self.controller.reset()
        previous = self._install_signal_handlers()
        try:
            self.loop.run()
        finally:
            self._restore_signal_handlers(previous)
            self.loop.close()

    def run_once(self) -> CycleReport:
        """Prepare the directories and run a single cycle."""
        self.settings.prepare_directories()
        try:
            return self.loop.run_cycle()
        finally:
            self.loop.close()

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        logger.warning(
            "Stop signal received, finishing current file",
            signal=signal.Signals(signum).name,
        )
        self.request_stop()

    def _install_signal_handlers(self) -> dict[int, Callable | int | None]:
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return {}
        previous = {}
        for signum in STOP_SIGNALS:
            previous[signum] = signal.getsignal(signum)
            signal.signal(signum, self._handle_signal)
        return previous

    def _restore_signal_handlers(
        self, previous: dict[int, Callable | int | None]
    ) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
