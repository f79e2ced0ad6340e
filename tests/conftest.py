import sys
import time
import stat
import logging
from pathlib import Path
from typing import Dict, List, Optional

import psutil
import pytest

from runsvdir.local.supervisor import fingerprint


posix_only = pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX shell scripts and signals")


def write_service(root: Path, name: str, body: str = "exec sleep 30") -> Path:
    """Create `root/name/run` as an executable shell script and return its path."""
    service = root / name
    service.mkdir(parents=True, exist_ok=True)
    run = service / "run"
    # The service name is part of the content so every script is distinct.
    run.write_text(f"#!/bin/sh\n# service {name}\n{body}\n")
    run.chmod(run.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return run


class FakeProcess:
    """In-memory stand-in for a child process."""

    _next_pid = 1000

    def __init__(self, path: Path, events: Optional[List[tuple]] = None, exit_on_terminate: bool = True) -> None:
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.path = path
        self.returncode: Optional[int] = None
        self.exit_on_terminate = exit_on_terminate
        self.terminate_calls = 0
        self.poll_calls = 0
        self.terminate_error: Optional[Exception] = None
        self.poll_error: Optional[Exception] = None
        self.events = events if events is not None else []

    def poll(self) -> Optional[int]:
        self.poll_calls += 1
        self.events.append(("poll", self.path))
        if self.poll_error is not None:
            raise self.poll_error
        return self.returncode

    def terminate(self) -> None:
        self.terminate_calls += 1
        self.events.append(("terminate", self.path))
        if self.terminate_error is not None:
            raise self.terminate_error
        if self.exit_on_terminate:
            self.returncode = -15

    def exit(self, returncode: int = 0) -> None:
        self.returncode = returncode


class FakeSpawner:
    """Records spawn requests and hands out FakeProcess objects."""

    def __init__(self, exit_on_terminate: bool = True) -> None:
        self.exit_on_terminate = exit_on_terminate
        self.spawned: List[FakeProcess] = []
        self.attempts: List[Path] = []
        self.failures: Dict[str, int] = {}
        self.events: List[tuple] = []

    def fail(self, service: str, times: int = 1) -> None:
        """Make the next `times` spawns of `service` raise PermissionError."""
        self.failures[service] = times

    def __call__(self, path: Path) -> FakeProcess:
        self.attempts.append(path)
        service = path.parent.name
        if self.failures.get(service, 0) > 0:
            self.failures[service] -= 1
            raise PermissionError(13, "Permission denied", str(path))
        proc = FakeProcess(path, self.events, self.exit_on_terminate)
        self.spawned.append(proc)
        return proc

    def by_service(self, service: str) -> List[FakeProcess]:
        return [p for p in self.spawned if p.path.parent.name == service]


@pytest.fixture
def service_dir(tmp_path):
    root = tmp_path / "svc"
    root.mkdir()
    return root


@pytest.fixture
def spawner():
    return FakeSpawner()


@pytest.fixture
def fingerprint_of():
    def _fp(root: Path, name: str):
        return fingerprint(root / name / "run")
    return _fp


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way it was after a test reconfigures it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.05) -> bool:
    """Poll `predicate` until it is true or `timeout` seconds passed."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def pid_alive(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
