import os
import signal
import psutil
import logging
import subprocess
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

log = logging.getLogger(__name__)


#* --- Process Handle ---
class ProcessHandle(Protocol):
    """
    The only view the reconciler has of a child process.

    `poll` never blocks: it returns the return code once the process has
    exited (reaping it) and None while it is still running.
    """
    pid: int

    def poll(self) -> Optional[int]:
        ...

    def terminate(self) -> None:
        ...


class ChildProcess:
    """A ProcessHandle backed by psutil.Popen."""

    def __init__(self, proc: psutil.Popen) -> None:
        self._proc = proc

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def process(self) -> psutil.Popen:
        """The underlying psutil process, for diagnostics."""
        return self._proc

    def poll(self) -> Optional[int]:
        """Non-blocking exit check. Reaps the child when it has exited."""
        return self._proc.poll()

    def terminate(self) -> None:
        """
        Sends SIGTERM to the child.

        :raises psutil.NoSuchProcess: If the process is already gone.
        :raises psutil.AccessDenied: If the signal is not permitted.
        """
        self._proc.terminate()

    def __repr__(self) -> str:
        return f"ChildProcess(pid={self.pid})"


Spawner = Callable[[Path], ProcessHandle]


#* --- Process Creation ---
def spawn_process(path: Union[str, os.PathLike]) -> ChildProcess:
    """
    Launches a run file with no arguments and all standard streams on the null device.
    The working directory and environment are inherited from the supervisor.

    :param path: The executable to launch.
    :return: The handle of the new child.
    :raises OSError: If the executable cannot be launched.
    """
    p = psutil.Popen(
        [os.fspath(path)],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )
    log.debug(f"Started '{path}' with PID: {p.pid}")
    return ChildProcess(p)


#* --- Process Status ---
def describe_exit(returncode: int) -> str:
    """Renders a return code the way it is reported in the log."""
    if returncode >= 0:
        return f"exit status: {returncode}"
    signum = -returncode
    try:
        name = signal.Signals(signum).name
    except ValueError:
        return f"signal: {signum}"
    return f"signal: {signum} ({name})"
