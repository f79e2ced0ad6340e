"""End-to-end passes against real child processes."""
import shutil

import pytest

from conftest import pid_alive, posix_only, wait_until, write_service
from runsvdir.local.supervisor import Reconciler, fingerprint, spawn_process

pytestmark = posix_only


def invoke_until(reconciler, predicate, timeout=5.0):
    """Run passes until `predicate()` holds, like the supervisor loop would."""
    def _step():
        reconciler.invoke()
        return predicate()
    return wait_until(_step, timeout=timeout)


@pytest.fixture
def reconciler(service_dir):
    r = Reconciler(service_dir)
    yield r
    r.shutdown(timeout=5)


def test_three_services_then_one_removed(service_dir, reconciler):
    for name in ("a", "b", "c"):
        write_service(service_dir, name)
    a = fingerprint(service_dir / "a" / "run")
    b = fingerprint(service_dir / "b" / "run")
    c = fingerprint(service_dir / "c" / "run")

    reconciler.invoke()
    pids = reconciler.pids()
    assert set(pids) == {a, b, c}
    assert all(pid_alive(pid) for pid in pids.values())

    shutil.rmtree(service_dir / "c")
    assert invoke_until(reconciler, lambda: c not in reconciler)

    assert reconciler.fingerprints() == {a, b}
    assert reconciler.pids() == {a: pids[a], b: pids[b]}
    assert not pid_alive(pids[c])


def test_service_that_exits_is_restarted(service_dir):
    # The child may exit and be reaped within the pass that started it
    started = []

    def recording_spawner(path):
        proc = spawn_process(path)
        started.append(proc.pid)
        return proc

    write_service(service_dir, "once", body="exit 0")
    reconciler = Reconciler(service_dir, spawner=recording_spawner)
    try:
        reconciler.invoke()
        assert len(started) == 1
        assert invoke_until(reconciler, lambda: len(started) >= 2)
    finally:
        reconciler.shutdown(timeout=5)

    assert started[1] != started[0]


def test_changed_script_is_replaced(service_dir, reconciler):
    write_service(service_dir, "a")
    reconciler.invoke()
    (old_fp,) = reconciler.fingerprints()
    old_pid = reconciler.pids()[old_fp]

    write_service(service_dir, "a", body="exec sleep 45")
    new_fp = fingerprint(service_dir / "a" / "run")

    assert invoke_until(reconciler, lambda: reconciler.fingerprints() == {new_fp})
    assert not pid_alive(old_pid)


def test_shutdown_terminates_everything(service_dir, reconciler):
    write_service(service_dir, "a")
    write_service(service_dir, "b")
    reconciler.invoke()
    pids = list(reconciler.pids().values())

    assert reconciler.shutdown(timeout=5) == {}
    assert len(reconciler) == 0
    assert not any(pid_alive(pid) for pid in pids)
