import os
import psutil
import logging
from pathlib import Path
from typing import Dict, FrozenSet, List, MutableMapping, Optional, Set, Union

from runsvdir.local.config import effective_settings as config
from . import shutdown
from .errors import DirectoryListError, EntryReadError, SpawnError, SupervisorError
from .fingerprint import Fingerprint, fingerprint
from .process_utils import ProcessHandle, Spawner, describe_exit, spawn_process

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


#* --- Single pass ---
def _list_entries(directory: Path) -> List[os.DirEntry]:
    """
    Lists the service directory.

    An error raised while the listing is being iterated also fails the whole
    pass: `os.scandir` cannot resume after it, so there is no later entry to
    carry on with. Per-entry failures are handled in `_process_entry`.

    :raises DirectoryListError: If the directory cannot be opened or read.
    """
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise DirectoryListError(directory, e) from e


def _process_entry(
    directory: Path,
    entry: os.DirEntry,
    tracked: MutableMapping[Fingerprint, ProcessHandle],
    spawner: Spawner,
    run_file_name: str,
) -> Optional[Fingerprint]:
    """
    Fingerprints one service and spawns it if it is not tracked yet.

    :return: The fingerprint of the service, or None if the entry is not a directory.
    :raises SupervisorError: If the entry cannot be read, hashed or spawned.
    """
    try:
        if not entry.is_dir():
            log.debug(f"Ignoring '{entry.path}': not a directory")
            return None
    except OSError as e:
        raise EntryReadError(directory, e) from e

    run_path = Path(entry.path) / run_file_name
    fp = fingerprint(run_path)

    if fp in tracked:
        log.debug(f"{fp} is already running")
        return fp

    log.info(f"Spawn {fp}")
    try:
        tracked[fp] = spawner(run_path)
    except (OSError, psutil.Error) as e:
        raise SpawnError(fp, e) from e
    return fp


def _signal_stale(tracked: MutableMapping[Fingerprint, ProcessHandle], desired: Set[Fingerprint]) -> None:
    for fp, proc in tracked.items():
        if fp in desired:
            continue
        log.info(f"{fp} stale")
        try:
            proc.terminate()
        except (psutil.Error, OSError) as e:
            log.error(f"Kill {fp} (PID {proc.pid}) failed: {e}")


def _reap(tracked: MutableMapping[Fingerprint, ProcessHandle]) -> None:
    for fp, proc in list(tracked.items()):
        try:
            returncode = proc.poll()
        except (psutil.Error, OSError) as e:
            log.error(f"Get exit status for {fp} failed: {e}")
            continue
        if returncode is None:
            log.debug(f"{fp} alive")
            continue
        log.info(f"{fp} dead with {describe_exit(returncode)}")
        del tracked[fp]


def reconcile(
    directory: PathLike,
    tracked: MutableMapping[Fingerprint, ProcessHandle],
    spawner: Spawner = spawn_process,
    run_file_name: Optional[str] = None,
) -> None:
    """
    Runs one reconciliation pass over `directory`.

    Every subdirectory's run file is fingerprinted; fingerprints that are not
    tracked yet are spawned, tracked ones that were not seen in this pass get
    SIGTERM, and every tracked process that has exited is removed. A failure
    in one service entry is logged and skips that entry only.

    :param directory: The service directory.
    :param tracked: The fingerprint to process mapping, updated in place.
    :param spawner: Launches a run file and returns its handle.
    :param run_file_name: Name of the executable inside each service directory.
    :raises DirectoryListError: If `directory` cannot be listed. `tracked` is left untouched.
    """
    directory = Path(directory)
    run_file_name = run_file_name or config.RUN_FILE_NAME

    entries = _list_entries(directory)

    desired: Set[Fingerprint] = set()
    for entry in entries:
        try:
            fp = _process_entry(directory, entry, tracked, spawner, run_file_name)
        except SupervisorError as e:
            log.error(f"Skipping entry, err: {e}")
            continue
        if fp is not None:
            desired.add(fp)

    # All stale processes are signalled before any of them is polled.
    _signal_stale(tracked, desired)
    _reap(tracked)


class Reconciler:
    """
    Keeps one live process per run file fingerprint in a service directory.

    The reconciler owns the fingerprint to process mapping; it can only be
    changed by `invoke` and `shutdown`.
    """

    def __init__(
        self,
        directory: PathLike,
        spawner: Spawner = spawn_process,
        run_file_name: Optional[str] = None,
    ) -> None:
        self._directory = Path(directory)
        self._spawner = spawner
        self._run_file_name = run_file_name or config.RUN_FILE_NAME
        self._running: Dict[Fingerprint, ProcessHandle] = {}

    @property
    def directory(self) -> Path:
        return self._directory

    def invoke(self) -> None:
        """
        Performs one reconciliation pass.

        :raises DirectoryListError: If the service directory cannot be listed.
        """
        reconcile(self._directory, self._running, self._spawner, self._run_file_name)

    def shutdown(self, timeout: Optional[float] = None) -> Dict[Fingerprint, int]:
        """
        Sends SIGTERM to every tracked process and reaps those that exit in time.

        :param timeout: Seconds to wait, defaults to GRACEFUL_SHUTDOWN_TIMEOUT.
        :return: PIDs of processes still alive after the timeout.
        """
        if timeout is None:
            timeout = config.GRACEFUL_SHUTDOWN_TIMEOUT
        return shutdown.graceful_shutdown_sequence(self._running, timeout)

    def fingerprints(self) -> FrozenSet[Fingerprint]:
        return frozenset(self._running)

    def pids(self) -> Dict[Fingerprint, int]:
        return {fp: proc.pid for fp, proc in self._running.items()}

    def __len__(self) -> int:
        return len(self._running)

    def __contains__(self, fp: object) -> bool:
        return fp in self._running

    def __repr__(self) -> str:
        return f"Reconciler(directory={str(self._directory)!r}, running={len(self._running)})"
