import time
import signal
import logging
import threading
import setproctitle
from typing import Any, Dict, Optional

from runsvdir.local.config import MergedSettings, effective_settings
from .errors import SupervisorError
from .reconciler import Reconciler

log = logging.getLogger(__name__)


class Supervisor:
    """
    Drives the reconciler: one pass every PAUSE_MS milliseconds until stopped.

    A failed pass is logged and the loop carries on; it is only left on
    SIGTERM/SIGINT, `stop()` or KeyboardInterrupt.
    """

    def __init__(self, config: Optional[MergedSettings] = None, reconciler: Optional[Reconciler] = None) -> None:
        """
        Initializes the Supervisor state.

        :param config: The settings to use, defaults to the module singleton.
        :param reconciler: Optional pre-built reconciler, mainly for tests.
        """
        self.config = effective_settings if config is None else config
        if reconciler is None:
            reconciler = Reconciler(self.config.SERVICE_DIR, run_file_name=self.config.RUN_FILE_NAME)
        self.reconciler = reconciler
        self.shutdown_signal_received = threading.Event()
        self.passes = 0
        self.failed_passes = 0

    @property
    def pause(self) -> float:
        """Seconds to wait between passes."""
        return max(0, self.config.PAUSE_MS) / 1000.0

    def stop(self) -> None:
        """Asks the supervision loop to exit after the current pass."""
        self.shutdown_signal_received.set()

    def _handle_shutdown_signal(self, signum: int, frame: Any) -> None:
        log.info(f"Signal {signal.Signals(signum).name} received, stopping supervisor.")
        self.stop()

    def install_signal_handlers(self) -> None:
        """Stops the loop on SIGTERM and SIGINT. Only possible from the main thread."""
        if threading.current_thread() is not threading.main_thread():
            log.debug("Not on the main thread, signal handlers not installed.")
            return
        signal.signal(signal.SIGTERM, self._handle_shutdown_signal)
        signal.signal(signal.SIGINT, self._handle_shutdown_signal)

    def run_once(self) -> bool:
        """
        Runs a single pass, logging instead of raising on failure.

        :return: True if the pass completed, False if it failed.
        """
        self.passes += 1
        try:
            self.reconciler.invoke()
            return True
        except SupervisorError as e:
            self.failed_passes += 1
            log.error(f"Pass failed: {e}")
        except Exception as e:
            self.failed_passes += 1
            log.critical(f"Unexpected error during pass: {e}", exc_info=True)
        return False

    def supervision_loop(self, max_passes: Optional[int] = None) -> None:
        """
        Main supervisor loop. Reconciles, then waits, until a stop is requested.

        :param max_passes: Stop after this many passes; None runs forever.
        """
        setproctitle.setproctitle(f"{self.config.PROCESS_TITLE_PREFIX}: {self.reconciler.directory}")
        log.info(f"Supervisor started. Watching '{self.reconciler.directory}' every {self.config.PAUSE_MS} ms.")
        start_time = time.time()

        try:
            while not self.shutdown_signal_received.is_set():
                self.run_once()
                if max_passes is not None and self.passes >= max_passes:
                    break
                self.shutdown_signal_received.wait(self.pause)
        except KeyboardInterrupt:
            log.info("Supervisor loop interrupted by user.")
        finally:
            self.reconciler.shutdown(self.config.GRACEFUL_SHUTDOWN_TIMEOUT)
            log.info(
                f"Supervisor stopped after {self.passes} passes ({self.failed_passes} failed). "
                f"Total runtime: {time.strftime('%H:%M:%S', time.gmtime(time.time() - start_time))}"
            )

    def status(self) -> Dict[str, Any]:
        """Returns a snapshot of the supervisor state for diagnostics."""
        return {
            "directory": str(self.reconciler.directory),
            "passes": self.passes,
            "failed_passes": self.failed_passes,
            "running": {fp.hex: pid for fp, pid in self.reconciler.pids().items()},
        }
