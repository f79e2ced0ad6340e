"""
The Supervisor package.
Keeps one process running per service definition in a directory.

This package contains the Reconciler, which performs a single pass over the
service directory, the content fingerprint it identifies services by, and the
Supervisor that drives the passes on a fixed interval.
"""
from .errors import DirectoryListError, EntryReadError, FingerprintError, SpawnError, SupervisorError
from .fingerprint import Fingerprint, fingerprint, fingerprint_bytes
from .process_utils import ChildProcess, ProcessHandle, describe_exit, spawn_process
from .reconciler import Reconciler, reconcile
from .supervisor import Supervisor

__all__ = [
    'Supervisor', 'Reconciler', 'reconcile',
    'Fingerprint', 'fingerprint', 'fingerprint_bytes',
    'ChildProcess', 'ProcessHandle', 'describe_exit', 'spawn_process',
    'SupervisorError', 'DirectoryListError', 'EntryReadError', 'FingerprintError', 'SpawnError',
]
