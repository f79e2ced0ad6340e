import time
import psutil
import logging
from typing import TYPE_CHECKING, Dict, MutableMapping

from .process_utils import ProcessHandle, describe_exit

if TYPE_CHECKING:
    from .fingerprint import Fingerprint

log = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1  # seconds between exit checks while waiting


def _terminate_processes(tracked: MutableMapping["Fingerprint", ProcessHandle]) -> None:
    """Sends SIGTERM to every tracked process."""
    for fp, proc in tracked.items():
        try:
            log.debug(f"Sending SIGTERM to {fp} (PID {proc.pid})")
            proc.terminate()
        except (psutil.Error, OSError) as e:
            log.warning(f"Terminating {fp} (PID {proc.pid}) failed: {e}")


def _reap_exited(tracked: MutableMapping["Fingerprint", ProcessHandle]) -> None:
    """Removes every process that has exited from `tracked`."""
    for fp, proc in list(tracked.items()):
        try:
            returncode = proc.poll()
        except (psutil.Error, OSError) as e:
            log.error(f"Get exit status for {fp} failed: {e}")
            continue
        if returncode is not None:
            log.info(f"{fp} dead with {describe_exit(returncode)}")
            del tracked[fp]


def graceful_shutdown_sequence(tracked: MutableMapping["Fingerprint", ProcessHandle], timeout: float) -> Dict["Fingerprint", int]:
    """
    Terminates all tracked processes and reaps the ones that exit in time.

    Processes still running after `timeout` seconds stay in `tracked`; they are
    never killed forcefully.

    :param tracked: The fingerprint to process mapping, updated in place.
    :param timeout: Seconds to wait for the processes to exit.
    :return: PIDs of the processes that were still alive, by fingerprint.
    """
    if not tracked:
        log.info("No running service processes to stop.")
        return {}

    log.info(f"Initiating graceful shutdown for {len(tracked)} service processes...")
    _terminate_processes(tracked)

    deadline = time.monotonic() + timeout
    while True:
        _reap_exited(tracked)
        if not tracked or time.monotonic() >= deadline:
            break
        time.sleep(_POLL_INTERVAL)

    alive = {fp: proc.pid for fp, proc in tracked.items()}
    for fp, pid in alive.items():
        log.warning(f"{fp} (PID {pid}) did not exit within {timeout} seconds.")
    return alive
